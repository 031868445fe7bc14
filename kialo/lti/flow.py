"""The three LTI legs: resource-link launch, OIDC auth and deep linking.

Each leg is a single exchange. Validation failures raise ``LtiError`` with a
detailed reason; callers show a generic page and keep the reason in logs.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import jwt
import uuid_utils
from pydantic import BaseModel, ValidationError

from kialo.core.config import KialoConfig
from kialo.crypto.jwt_manager import JWTManager, read_unverified, verify_jwt
from kialo.crypto.types import KeyChain
from kialo.lti.authorization import AuthorizationContext, assign_lti_roles
from kialo.lti.cache import MemoryCache
from kialo.lti.claims import (
    LAUNCH_CLAIMS_BY_MESSAGE_TYPE,
    ContextClaim,
    DeepLinkingRequestClaims,
    DeepLinkingResponseClaims,
    DeepLinkingSettings,
    LaunchClaims,
    ResourceLinkClaim,
    ResourceLinkClaims,
)
from kialo.lti.constants import (
    AGS_SCOPES,
    CLAIM_AGS_ENDPOINT,
    CLAIM_MESSAGE_TYPE,
    CLAIM_PLUGIN_VERSION,
    CLAIM_REGISTRATION_ID,
    CLAIM_TOOL_PLATFORM,
    CLAIM_UPDATE_DISCUSSION_URL,
    CONTENT_TYPE_RESOURCE_LINK,
    MESSAGE_TYPE_DEEP_LINKING_RESPONSE,
    PLATFORM_GUID,
    PRODUCT_FAMILY_CODE,
    RESOURCE_LINK_PREFIX,
    ROLE_INSTRUCTOR,
    SCOPE_UPDATE_DISCUSSION_URL,
)
from kialo.lti.errors import LtiError, LtiErrorKind
from kialo.lti.groups import GroupInfo
from kialo.lti.messages import LtiMessage
from kialo.lti.nonce import NonceRepository, NonceSource, RandomNonceSource
from kialo.lti.registration import Registration
from kialo.lti.tool_keys import fetch_tool_keychain, static_tool_keychain
from kialo.lti.user_auth import UserIdentity, parse_login_hint

logger = logging.getLogger(__name__)

OIDC_SCOPE = "openid"
OIDC_RESPONSE_TYPE = "id_token"
OIDC_RESPONSE_MODE = "form_post"
OIDC_PROMPT = "none"
AUTH_FAILED = "OIDC authentication failed"


class OidcAuthRequest(BaseModel):
    """Parameters of the tool's OIDC authentication request."""

    scope: str | None = None
    response_type: str | None = None
    client_id: str | None = None
    redirect_uri: str | None = None
    login_hint: str | None = None
    lti_message_hint: str | None = None
    state: str | None = None
    response_mode: str | None = None
    nonce: str | None = None
    prompt: str | None = None


class DeepLinkingResult(BaseModel):
    """The discussion selected by the teacher."""

    deployment_id: str
    discussion_url: str
    discussion_title: str


AuthRequestValidator = Callable[[OidcAuthRequest, KialoConfig], None]
UserAuthenticator = Callable[[str], Awaitable[UserIdentity | None]]


def resource_link_id(cmid: int) -> str:
    return f"{RESOURCE_LINK_PREFIX}{cmid}"


def parse_resource_link_id(value: str) -> int | None:
    """Return the course module id encoded in a resource link id."""
    if not value.startswith(RESOURCE_LINK_PREFIX):
        return None
    suffix = value.removeprefix(RESOURCE_LINK_PREFIX)
    return int(suffix) if suffix.isdigit() else None


def _auth_failure(detail: str) -> LtiError:
    return LtiError(LtiErrorKind.AUTHENTICATION_FAILED, f"{AUTH_FAILED}: {detail}")


def validate_oidc_request(request: OidcAuthRequest, config: KialoConfig) -> None:
    """Check the mandatory OIDC parameters of an authentication request."""
    for name in ("scope", "response_type", "client_id", "redirect_uri",
                 "login_hint", "state", "response_mode", "nonce"):
        if not getattr(request, name):
            raise _auth_failure(f"Missing mandatory {name}")
    if request.scope != OIDC_SCOPE:
        raise _auth_failure("Invalid scope")
    if request.response_type != OIDC_RESPONSE_TYPE:
        raise _auth_failure("Invalid response_type")
    if request.response_mode != OIDC_RESPONSE_MODE:
        raise _auth_failure("Invalid response_mode")
    if request.client_id != config.client_id:
        raise _auth_failure("Invalid client_id")
    if request.prompt is not None and request.prompt != OIDC_PROMPT:
        raise _auth_failure("Invalid prompt")
    if not str(request.redirect_uri).startswith(config.get_tool_url()):
        raise _auth_failure("Invalid redirect_uri")


class LtiFlow:
    """Builds and validates the platform side of every LTI exchange."""

    def __init__(
        self,
        config: KialoConfig,
        nonce_source: NonceSource | None = None,
        nonces: NonceRepository | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._nonce_source = nonce_source or RandomNonceSource()
        self._nonces = nonces or NonceRepository(MemoryCache())
        self._http_client = http_client

    @property
    def config(self) -> KialoConfig:
        return self._config

    def _platform_jwt(self) -> JWTManager:
        return JWTManager(self._config.platform_keychain, self._config.platform_url)

    def _issue_platform_token(self, claims: dict[str, Any], audience: str) -> str:
        nonce = self._nonce_source.generate()
        payload = {**claims, "nonce": nonce.value, "jti": str(uuid_utils.uuid7())}
        return self._platform_jwt().issue(
            payload, audience, self._config.settings.message_ttl
        )

    def _login_message(
        self,
        course_id: int,
        user_id: str,
        deployment_id: str,
        target_link_uri: str,
        message_hint: str,
    ) -> LtiMessage:
        return LtiMessage(
            url=self._config.tool_login_url(),
            parameters={
                "iss": self._config.platform_url,
                "login_hint": f"{course_id}/{user_id}",
                "target_link_uri": target_link_uri,
                "lti_message_hint": message_hint,
                "lti_deployment_id": deployment_id,
                "client_id": self._config.client_id,
                "kialo_plugin_version": self._config.release,
            },
        )

    # Resource link

    def init_resource_link(
        self,
        course_id: int,
        cmid: int,
        deployment_id: str,
        user_id: str,
        target_link_uri: str,
        authorization: AuthorizationContext,
        group: GroupInfo | None = None,
    ) -> LtiMessage:
        """Build the third-party-initiated login that starts a launch."""
        claims = ResourceLinkClaims(
            registration_id=self._config.registration_id,
            deployment_id=deployment_id,
            target_link_uri=target_link_uri,
            roles=assign_lti_roles(authorization),
            context=ContextClaim(id=str(course_id)),
            resource_link=ResourceLinkClaim(id=resource_link_id(cmid)),
            custom=group.to_custom_claims() if group else None,
            plugin_version=self._config.release,
        )
        hint = self._issue_platform_token(
            claims.to_claims(), self._config.get_tool_url()
        )
        logger.info(
            "Resource link launch for user %s in course %s (cmid=%s)",
            user_id,
            course_id,
            cmid,
        )
        return self._login_message(
            course_id, user_id, deployment_id, target_link_uri, hint
        )

    # Deep linking request

    def init_deep_link(
        self, course_id: int, user_id: str, deployment_id: str
    ) -> LtiMessage:
        """Build the login that starts content selection on the tool."""
        target = self._config.tool_deeplink_url()
        data_token = self._platform_jwt().sign({})
        claims = DeepLinkingRequestClaims(
            registration_id=self._config.registration_id,
            deployment_id=deployment_id,
            target_link_uri=target,
            roles=[ROLE_INSTRUCTOR],
            context=ContextClaim(id=str(course_id)),
            deep_linking_settings=DeepLinkingSettings(
                deep_link_return_url=self._config.deep_link_return_url(),
                data=data_token,
            ),
            plugin_version=self._config.release,
        )
        hint = self._issue_platform_token(
            claims.to_claims(), self._config.get_tool_url()
        )
        logger.info("Deep link request for user %s in course %s", user_id, course_id)
        return self._login_message(course_id, user_id, deployment_id, target, hint)

    # OIDC authentication

    def _decode_message_hint(self, token: str) -> dict[str, Any]:
        platform = self._platform_jwt()
        if not platform.verify(token):
            raise LtiError(LtiErrorKind.SIGNATURE_INVALID, "Invalid message hint")
        try:
            claims = platform.decode(token)
        except jwt.InvalidTokenError as exc:
            raise LtiError(
                LtiErrorKind.SIGNATURE_INVALID, f"Invalid message hint: {exc}"
            ) from exc
        if claims.get(CLAIM_REGISTRATION_ID) != self._config.registration_id:
            raise LtiError(
                LtiErrorKind.CLAIM_MISMATCH,
                "Invalid message hint registration id claim",
            )
        return claims

    def _parse_launch_claims(self, claims: dict[str, Any]) -> LaunchClaims:
        message_type = claims.get(CLAIM_MESSAGE_TYPE)
        model = LAUNCH_CLAIMS_BY_MESSAGE_TYPE.get(str(message_type))
        if model is None:
            raise LtiError(
                LtiErrorKind.MESSAGE_TYPE_INVALID,
                f"Unsupported message type in message hint: {message_type}",
            )
        try:
            return model.model_validate(claims)
        except ValidationError as exc:
            raise LtiError(
                LtiErrorKind.INVALID_REQUEST, f"Invalid message hint claims: {exc}"
            ) from exc

    def _service_claims(self, launch: LaunchClaims) -> dict[str, Any]:
        if not isinstance(launch, ResourceLinkClaims):
            return {}
        cmid = parse_resource_link_id(launch.resource_link.id)
        if cmid is None or not launch.context.id.isdigit():
            return {}
        course_id = int(launch.context.id)
        link_id = launch.resource_link.id
        return {
            CLAIM_AGS_ENDPOINT: {
                "scope": AGS_SCOPES,
                "lineitem": self._config.lineitem_url(course_id, cmid, link_id),
                "lineitems": self._config.lineitems_url(course_id, cmid, link_id),
            },
            CLAIM_UPDATE_DISCUSSION_URL: {
                "scope": [SCOPE_UPDATE_DISCUSSION_URL],
                "update_discussion_url": self._config.update_discussion_url(cmid),
            },
        }

    async def lti_auth(
        self,
        request: OidcAuthRequest,
        authenticate: UserAuthenticator,
        validator: AuthRequestValidator | None = None,
    ) -> LtiMessage:
        """Answer the tool's OIDC request with a platform-signed ID token.

        ``authenticate`` receives the login hint and resolves to the
        ``UserIdentity`` of the logged-in user, or None.
        """
        if not request.lti_message_hint:
            raise _auth_failure("Missing mandatory lti_message_hint")
        hint_claims = self._decode_message_hint(request.lti_message_hint)
        (validator or validate_oidc_request)(request, self._config)

        launch = self._parse_launch_claims(hint_claims)
        login = parse_login_hint(str(request.login_hint))
        if login is None or str(login[0]) != launch.context.id:
            raise _auth_failure("login_hint does not match message hint")

        if not request.nonce:
            raise LtiError(LtiErrorKind.NONCE_MISSING, "OIDC request nonce is missing")
        if not self._nonces.consume(request.nonce):
            raise LtiError(LtiErrorKind.NONCE_REUSED, "OIDC request nonce already used")

        identity = await authenticate(str(request.login_hint))
        if identity is None:
            raise _auth_failure("User authentication failed")

        claims = launch.to_claims()
        claims.pop(CLAIM_REGISTRATION_ID, None)
        claims.update(self._service_claims(launch))
        claims.update(identity.to_claims())
        claims[CLAIM_TOOL_PLATFORM] = {
            "guid": PLATFORM_GUID,
            "product_family_code": PRODUCT_FAMILY_CODE,
            "version": self._config.settings.moodle_version,
        }
        claims[CLAIM_PLUGIN_VERSION] = self._config.release
        claims["nonce"] = request.nonce

        id_token = self._platform_jwt().issue(
            claims, self._config.client_id, self._config.settings.message_ttl
        )
        logger.info(
            "Issued %s ID token for user %s", launch.message_type, identity.subject_id
        )
        return LtiMessage(
            url=str(request.redirect_uri),
            parameters={"id_token": id_token, "state": str(request.state)},
        )

    # Deep linking response

    async def _tool_keychain(
        self, registration: Registration, kid: str | None
    ) -> KeyChain:
        if registration.tool_keychain is not None:
            return registration.tool_keychain
        static = static_tool_keychain(self._config)
        if static is not None:
            return static
        return await fetch_tool_keychain(
            registration.tool_jwks_url, kid, self._http_client
        )

    async def validate_deep_linking_response(
        self, token: str, deployment_id: str
    ) -> DeepLinkingResult:
        """Validate the tool's response and extract the selected discussion."""
        try:
            headers, unverified = read_unverified(token)
        except jwt.InvalidTokenError as exc:
            raise LtiError(
                LtiErrorKind.INVALID_REQUEST, "Deep linking response is not a JWT"
            ) from exc

        registration = self._config.create_registration(deployment_id)
        if unverified.get("iss") != registration.client_id:
            raise LtiError(
                LtiErrorKind.REGISTRATION_NOT_FOUND,
                "No matching registration found platform side",
            )

        tool_keychain = await self._tool_keychain(registration, headers.get("kid"))
        tool = JWTManager(tool_keychain, registration.client_id)
        if not tool.verify(token):
            raise LtiError(LtiErrorKind.SIGNATURE_INVALID, "JWT validation failure")
        try:
            payload = tool.decode(token, audience=registration.platform.audience)
        except (jwt.InvalidAudienceError, jwt.MissingRequiredClaimError) as exc:
            raise LtiError(
                LtiErrorKind.CLAIM_MISMATCH, "JWT aud claim does not match platform"
            ) from exc
        except jwt.InvalidTokenError as exc:
            raise LtiError(
                LtiErrorKind.SIGNATURE_INVALID, f"JWT validation failure: {exc}"
            ) from exc

        nonce = payload.get("nonce")
        if not nonce:
            raise LtiError(LtiErrorKind.NONCE_MISSING, "JWT nonce claim is missing")
        if not self._nonces.consume(str(nonce)):
            raise LtiError(LtiErrorKind.NONCE_REUSED, "JWT nonce claim already used")

        if payload.get(CLAIM_MESSAGE_TYPE) != MESSAGE_TYPE_DEEP_LINKING_RESPONSE:
            raise LtiError(
                LtiErrorKind.MESSAGE_TYPE_INVALID, "Expected LtiDeepLinkingResponse"
            )
        try:
            response = DeepLinkingResponseClaims.model_validate(payload)
        except ValidationError as exc:
            raise LtiError(
                LtiErrorKind.INVALID_REQUEST, f"Invalid deep linking claims: {exc}"
            ) from exc

        if not registration.has_deployment_id(response.deployment_id):
            raise LtiError(
                LtiErrorKind.CLAIM_MISMATCH,
                "JWT deployment_id claim not valid for this registration",
            )
        if not response.data or not verify_jwt(
            response.data, self._config.platform_keychain.public_key_pem
        ):
            raise LtiError(
                LtiErrorKind.DATA_TOKEN_INVALID,
                "Deep linking data claim is not signed by the platform",
            )

        items = response.content_items
        if items is None:
            raise LtiError(
                LtiErrorKind.CONTENT_ITEMS_MISSING,
                "Expected deep linking content items",
            )
        if len(items) != 1:
            raise LtiError(
                LtiErrorKind.CONTENT_ITEM_COUNT_INVALID,
                "Expected exactly one content item",
            )
        item = items[0]
        if item.type != CONTENT_TYPE_RESOURCE_LINK:
            raise LtiError(
                LtiErrorKind.CONTENT_ITEM_TYPE_INVALID,
                "Expected content item to be of type ltiResourceLink",
            )
        if not item.url:
            raise LtiError(
                LtiErrorKind.CONTENT_ITEM_URL_MISSING,
                "Expected content item to have a url",
            )

        logger.info("Deep linking resolved to %s", item.url)
        return DeepLinkingResult(
            deployment_id=deployment_id,
            discussion_url=item.url,
            discussion_title=item.title or "",
        )
