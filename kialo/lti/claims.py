"""Typed LTI claim sets, one model per message type.

The JWT payloads use URI claim names; the models expose them under short
field names through aliases and serialise back with ``to_claims()``.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from kialo.lti.constants import (
    CLAIM_CONTEXT,
    CLAIM_CUSTOM,
    CLAIM_DEPLOYMENT_ID,
    CLAIM_DL_CONTENT_ITEMS,
    CLAIM_DL_DATA,
    CLAIM_DL_SETTINGS,
    CLAIM_MESSAGE_TYPE,
    CLAIM_PLUGIN_VERSION,
    CLAIM_REGISTRATION_ID,
    CLAIM_RESOURCE_LINK,
    CLAIM_ROLES,
    CLAIM_TARGET_LINK_URI,
    CLAIM_VERSION,
    CONTENT_TYPE_RESOURCE_LINK,
    LTI_VERSION,
    MESSAGE_TYPE_DEEP_LINKING_REQUEST,
    MESSAGE_TYPE_DEEP_LINKING_RESPONSE,
    MESSAGE_TYPE_RESOURCE_LINK,
    PRESENTATION_TARGET_WINDOW,
)


class ContextClaim(BaseModel):
    """The course the launch happens in."""

    id: str
    title: str | None = None


class ResourceLinkClaim(BaseModel):
    """The placement of the activity inside the course."""

    id: str
    title: str | None = None
    description: str | None = None


class DeepLinkingSettings(BaseModel):
    """How the tool may return content to the platform."""

    deep_link_return_url: str
    accept_types: list[str] = [CONTENT_TYPE_RESOURCE_LINK]
    accept_presentation_document_targets: list[str] = [PRESENTATION_TARGET_WINDOW]
    accept_multiple: bool = False
    auto_create: bool = False
    data: str | None = None


class ContentItem(BaseModel):
    """A content item returned by the tool."""

    model_config = ConfigDict(extra="allow")

    type: str = ""
    url: str | None = None
    title: str | None = None


class _LtiClaims(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    version: str = Field(default=LTI_VERSION, alias=CLAIM_VERSION)
    deployment_id: str = Field(alias=CLAIM_DEPLOYMENT_ID)

    def to_claims(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class _LaunchClaims(_LtiClaims):
    registration_id: str = Field(alias=CLAIM_REGISTRATION_ID)
    target_link_uri: str = Field(alias=CLAIM_TARGET_LINK_URI)
    roles: list[str] = Field(alias=CLAIM_ROLES)
    context: ContextClaim = Field(alias=CLAIM_CONTEXT)
    plugin_version: str | None = Field(default=None, alias=CLAIM_PLUGIN_VERSION)


class ResourceLinkClaims(_LaunchClaims):
    """Claims carried by a resource-link launch."""

    message_type: Literal["LtiResourceLinkRequest"] = Field(
        default=MESSAGE_TYPE_RESOURCE_LINK, alias=CLAIM_MESSAGE_TYPE
    )
    resource_link: ResourceLinkClaim = Field(alias=CLAIM_RESOURCE_LINK)
    custom: dict[str, str | int] | None = Field(default=None, alias=CLAIM_CUSTOM)


class DeepLinkingRequestClaims(_LaunchClaims):
    """Claims carried by a deep-linking request to the tool."""

    message_type: Literal["LtiDeepLinkingRequest"] = Field(
        default=MESSAGE_TYPE_DEEP_LINKING_REQUEST, alias=CLAIM_MESSAGE_TYPE
    )
    deep_linking_settings: DeepLinkingSettings = Field(alias=CLAIM_DL_SETTINGS)


class DeepLinkingResponseClaims(_LtiClaims):
    """Claims carried by the tool's deep-linking response."""

    message_type: Literal["LtiDeepLinkingResponse"] = Field(
        default=MESSAGE_TYPE_DEEP_LINKING_RESPONSE, alias=CLAIM_MESSAGE_TYPE
    )
    iss: str
    aud: str | list[str]
    nonce: str | None = None
    content_items: list[ContentItem] | None = Field(
        default=None, alias=CLAIM_DL_CONTENT_ITEMS
    )
    data: str | None = Field(default=None, alias=CLAIM_DL_DATA)


LAUNCH_CLAIMS_BY_MESSAGE_TYPE: dict[str, type[_LaunchClaims]] = {
    MESSAGE_TYPE_RESOURCE_LINK: ResourceLinkClaims,
    MESSAGE_TYPE_DEEP_LINKING_REQUEST: DeepLinkingRequestClaims,
}

LaunchClaims = ResourceLinkClaims | DeepLinkingRequestClaims
