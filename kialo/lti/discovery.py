"""OpenID / LTI platform-configuration document builder."""

from pydantic import BaseModel, ConfigDict, Field

from kialo.core.config import KialoConfig
from kialo.crypto.types import ALG_RS256
from kialo.lti.constants import (
    AGS_SCOPES,
    MESSAGE_TYPE_DEEP_LINKING_REQUEST,
    MESSAGE_TYPE_RESOURCE_LINK,
    PRODUCT_FAMILY_CODE,
    SCOPE_UPDATE_DISCUSSION_URL,
)

PLATFORM_CONFIGURATION_CLAIM = (
    "https://purl.imsglobal.org/spec/lti-platform-configuration"
)

SUPPORTED_VARIABLES = [
    "basic-lti-launch-request",
    "ContentItemSelectionRequest",
    "ResourceLink.id",
    "ResourceLink.title",
    "ResourceLink.description",
    "User.id",
    "User.username",
    "Person.name.full",
    "Person.name.given",
    "Person.name.middle",
    "Person.name.family",
    "Person.email.primary",
    "Person.sourcedId",
    "Membership.role",
    "Result.sourcedId",
    "Result.autocreate",
]

SUPPORTED_CLAIMS = [
    "sub",
    "iss",
    "name",
    "given_name",
    "middle_name",
    "family_name",
    "email",
    "picture",
    "locale",
    "zoneinfo",
]


class MessageSupport(BaseModel):
    type: str
    placements: list[str] | None = None


class PlatformConfiguration(BaseModel):
    """LTI-specific block of the configuration document."""

    product_family_code: str
    version: str
    messages_supported: list[MessageSupport]
    variables: list[str]


class DiscoveryDocument(BaseModel):
    """Platform ``openid-configuration`` response."""

    model_config = ConfigDict(populate_by_name=True)

    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    token_endpoint_auth_methods_supported: list[str]
    token_endpoint_auth_signing_alg_values_supported: list[str]
    jwks_uri: str
    scopes_supported: list[str]
    response_types_supported: list[str]
    subject_types_supported: list[str]
    id_token_signing_alg_values_supported: list[str]
    claims_supported: list[str]
    platform_configuration: PlatformConfiguration = Field(
        alias=PLATFORM_CONFIGURATION_CLAIM
    )


def build_discovery(config: KialoConfig) -> DiscoveryDocument:
    """Build the platform configuration document from configuration."""
    return DiscoveryDocument(
        issuer=config.platform_url,
        authorization_endpoint=config.auth_url(),
        token_endpoint=config.token_url(),
        token_endpoint_auth_methods_supported=["private_key_jwt"],
        token_endpoint_auth_signing_alg_values_supported=[ALG_RS256],
        jwks_uri=config.platform_jwks_url(),
        scopes_supported=["openid", *AGS_SCOPES, SCOPE_UPDATE_DISCUSSION_URL],
        response_types_supported=["id_token"],
        subject_types_supported=["public", "pairwise"],
        id_token_signing_alg_values_supported=[ALG_RS256],
        claims_supported=SUPPORTED_CLAIMS,
        platform_configuration=PlatformConfiguration(
            product_family_code=PRODUCT_FAMILY_CODE,
            version=config.settings.moodle_version,
            messages_supported=[
                MessageSupport(type=MESSAGE_TYPE_RESOURCE_LINK),
                MessageSupport(
                    type=MESSAGE_TYPE_DEEP_LINKING_REQUEST, placements=["ContentArea"]
                ),
            ],
            variables=SUPPORTED_VARIABLES,
        ),
    )
