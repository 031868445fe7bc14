"""Tests for the resource-link launch and the OIDC authentication leg."""

from typing import Any

import jwt
import pytest

from kialo.core.config import KialoConfig
from kialo.crypto.jwt_manager import JWTManager
from kialo.crypto.keys import generate_rsa_keypair, keychain_from_keypair
from kialo.lti.authorization import RoleCapabilityContext
from kialo.lti.constants import (
    CLAIM_AGS_ENDPOINT,
    CLAIM_CONTEXT,
    CLAIM_CUSTOM,
    CLAIM_DEPLOYMENT_ID,
    CLAIM_MESSAGE_TYPE,
    CLAIM_PLUGIN_VERSION,
    CLAIM_REGISTRATION_ID,
    CLAIM_RESOURCE_LINK,
    CLAIM_ROLES,
    CLAIM_TARGET_LINK_URI,
    CLAIM_TOOL_PLATFORM,
    CLAIM_UPDATE_DISCUSSION_URL,
    CUSTOM_GROUP_ID,
    MESSAGE_TYPE_RESOURCE_LINK,
    ROLE_INSTRUCTOR,
    ROLE_LEARNER,
    SCOPE_AGS_SCORE,
)
from kialo.lti.errors import LtiError, LtiErrorKind
from kialo.lti.flow import (
    LtiFlow,
    OidcAuthRequest,
    parse_resource_link_id,
    resource_link_id,
)
from kialo.lti.groups import GroupInfo
from kialo.lti.messages import LtiMessage
from kialo.lti.nonce import FixedNonceSource
from kialo.lti.user_auth import UserIdentity

TARGET = "https://tool.example.com/discussions/1"
TEACHER = RoleCapabilityContext(["editingteacher"])
STUDENT = RoleCapabilityContext(["student"])

IDENTITY = UserIdentity(
    subject_id="42",
    full_name="Alan Turing",
    email="alan@example.com",
    given_name="Alan",
    family_name="Turing",
)


async def _authenticated(_login_hint: str) -> UserIdentity | None:
    return IDENTITY


async def _anonymous(_login_hint: str) -> UserIdentity | None:
    return None


@pytest.fixture
def flow(config: KialoConfig) -> LtiFlow:
    return LtiFlow(config, nonce_source=FixedNonceSource("fixed-nonce"))


@pytest.fixture
def platform(config: KialoConfig) -> JWTManager:
    return JWTManager(config.platform_keychain, config.platform_url)


def _launch(flow: LtiFlow, group: GroupInfo | None = None) -> LtiMessage:
    return flow.init_resource_link(7, 3, "dep-1", "42", TARGET, STUDENT, group)


def _auth_request(
    config: KialoConfig, hint: str, **overrides: Any
) -> OidcAuthRequest:
    params = {
        "scope": "openid",
        "response_type": "id_token",
        "client_id": config.client_id,
        "redirect_uri": config.tool_launch_url(),
        "login_hint": "7/42",
        "lti_message_hint": hint,
        "state": "state-1",
        "response_mode": "form_post",
        "nonce": "tool-nonce",
        "prompt": "none",
        **overrides,
    }
    return OidcAuthRequest(**params)


class TestResourceLinkIds:
    """Tests for resource link id encoding."""

    def test_roundtrip(self) -> None:
        assert resource_link_id(3) == "resource-link-3"
        assert parse_resource_link_id("resource-link-3") == 3

    @pytest.mark.parametrize("value", ["3", "resource-link-", "resource-link-x"])
    def test_invalid(self, value: str) -> None:
        assert parse_resource_link_id(value) is None


class TestInitResourceLink:
    """Tests for the third-party-initiated login message."""

    def test_login_parameters(self, flow: LtiFlow, config: KialoConfig) -> None:
        message = flow.init_resource_link(7, 3, "dep-1", "u1", TARGET, TEACHER)
        assert message.url == config.tool_login_url()
        assert message.get("login_hint") == "7/u1"
        assert message.get("iss") == config.platform_url
        assert message.get("client_id") == config.client_id
        assert message.get("lti_deployment_id") == "dep-1"
        assert message.get("target_link_uri") == TARGET
        assert message.get("kialo_plugin_version") == config.release

    def test_message_hint_claims(
        self, flow: LtiFlow, config: KialoConfig, platform: JWTManager
    ) -> None:
        message = flow.init_resource_link(7, 3, "dep-1", "u1", TARGET, TEACHER)
        claims = platform.decode(
            str(message.get("lti_message_hint")), audience=config.get_tool_url()
        )
        assert claims["nonce"] == "fixed-nonce"
        assert claims["jti"]
        assert claims[CLAIM_MESSAGE_TYPE] == MESSAGE_TYPE_RESOURCE_LINK
        assert claims[CLAIM_REGISTRATION_ID] == config.registration_id
        assert claims[CLAIM_DEPLOYMENT_ID] == "dep-1"
        assert claims[CLAIM_TARGET_LINK_URI] == TARGET
        assert claims[CLAIM_ROLES] == [ROLE_INSTRUCTOR]
        assert claims[CLAIM_CONTEXT] == {"id": "7"}
        assert claims[CLAIM_RESOURCE_LINK] == {"id": "resource-link-3"}
        assert CLAIM_CUSTOM not in claims

    def test_student_is_learner_with_group(
        self, flow: LtiFlow, config: KialoConfig, platform: JWTManager
    ) -> None:
        message = _launch(flow, GroupInfo(group_id=2, group_name="Group B"))
        claims = platform.decode(
            str(message.get("lti_message_hint")), audience=config.get_tool_url()
        )
        assert claims[CLAIM_ROLES] == [ROLE_LEARNER]
        assert claims[CLAIM_CUSTOM][CUSTOM_GROUP_ID] == 2


class TestLtiAuth:
    """Tests for answering the tool's OIDC request."""

    async def test_issues_id_token(
        self, flow: LtiFlow, config: KialoConfig, platform: JWTManager
    ) -> None:
        hint = str(_launch(flow).get("lti_message_hint"))
        message = await flow.lti_auth(_auth_request(config, hint), _authenticated)

        assert message.url == config.tool_launch_url()
        assert message.get("state") == "state-1"
        claims = platform.decode(
            str(message.get("id_token")),
            audience=config.client_id,
            issuer=config.platform_url,
        )
        assert claims["sub"] == "42"
        assert claims["name"] == "Alan Turing"
        assert claims["nonce"] == "tool-nonce"
        assert claims[CLAIM_MESSAGE_TYPE] == MESSAGE_TYPE_RESOURCE_LINK
        assert claims[CLAIM_DEPLOYMENT_ID] == "dep-1"
        assert claims[CLAIM_ROLES] == [ROLE_LEARNER]
        assert claims[CLAIM_PLUGIN_VERSION] == config.release
        assert claims[CLAIM_TOOL_PLATFORM]["product_family_code"] == "moodle"
        assert CLAIM_REGISTRATION_ID not in claims

    async def test_service_endpoints(
        self, flow: LtiFlow, config: KialoConfig, platform: JWTManager
    ) -> None:
        hint = str(_launch(flow).get("lti_message_hint"))
        message = await flow.lti_auth(_auth_request(config, hint), _authenticated)
        id_token = str(message.get("id_token"))
        claims = platform.decode(id_token, audience=config.client_id)

        ags = claims[CLAIM_AGS_ENDPOINT]
        assert SCOPE_AGS_SCORE in ags["scope"]
        assert ags["lineitem"] == config.lineitem_url(7, 3, "resource-link-3")
        discussion = claims[CLAIM_UPDATE_DISCUSSION_URL]
        assert discussion["update_discussion_url"] == config.update_discussion_url(3)

    async def test_missing_message_hint(
        self, flow: LtiFlow, config: KialoConfig
    ) -> None:
        request = _auth_request(config, "", lti_message_hint=None)
        with pytest.raises(LtiError) as exc_info:
            await flow.lti_auth(request, _authenticated)
        assert exc_info.value.kind == LtiErrorKind.AUTHENTICATION_FAILED

    async def test_forged_message_hint(
        self, flow: LtiFlow, config: KialoConfig
    ) -> None:
        forger = JWTManager(
            keychain_from_keypair(generate_rsa_keypair()), config.platform_url
        )
        hint = forger.issue({CLAIM_REGISTRATION_ID: config.registration_id}, "x")
        with pytest.raises(LtiError) as exc_info:
            await flow.lti_auth(_auth_request(config, hint), _authenticated)
        assert exc_info.value.kind == LtiErrorKind.SIGNATURE_INVALID
        assert exc_info.value.reason == "Invalid message hint"

    async def test_wrong_registration(
        self, flow: LtiFlow, config: KialoConfig, platform: JWTManager
    ) -> None:
        hint = platform.issue({CLAIM_REGISTRATION_ID: "another-registration"}, "x")
        with pytest.raises(LtiError) as exc_info:
            await flow.lti_auth(_auth_request(config, hint), _authenticated)
        assert exc_info.value.kind == LtiErrorKind.CLAIM_MISMATCH

    async def test_unsupported_message_type(
        self, flow: LtiFlow, config: KialoConfig, platform: JWTManager
    ) -> None:
        hint = platform.issue(
            {
                CLAIM_REGISTRATION_ID: config.registration_id,
                CLAIM_MESSAGE_TYPE: "LtiSubmissionReviewRequest",
            },
            "x",
        )
        with pytest.raises(LtiError) as exc_info:
            await flow.lti_auth(_auth_request(config, hint), _authenticated)
        assert exc_info.value.kind == LtiErrorKind.MESSAGE_TYPE_INVALID

    @pytest.mark.parametrize(
        ("overrides", "reason"),
        [
            ({"scope": None}, "Missing mandatory scope"),
            ({"nonce": None}, "Missing mandatory nonce"),
            ({"scope": "profile"}, "Invalid scope"),
            ({"response_type": "code"}, "Invalid response_type"),
            ({"response_mode": "query"}, "Invalid response_mode"),
            ({"client_id": "other-client"}, "Invalid client_id"),
            ({"prompt": "login"}, "Invalid prompt"),
            (
                {"redirect_uri": "https://evil.example.com/launch"},
                "Invalid redirect_uri",
            ),
        ],
    )
    async def test_invalid_oidc_request(
        self, flow: LtiFlow, config: KialoConfig, overrides: dict, reason: str
    ) -> None:
        hint = str(_launch(flow).get("lti_message_hint"))
        with pytest.raises(LtiError) as exc_info:
            await flow.lti_auth(
                _auth_request(config, hint, **overrides), _authenticated
            )
        assert exc_info.value.kind == LtiErrorKind.AUTHENTICATION_FAILED
        assert exc_info.value.reason == f"OIDC authentication failed: {reason}"

    async def test_prompt_optional(self, flow: LtiFlow, config: KialoConfig) -> None:
        hint = str(_launch(flow).get("lti_message_hint"))
        request = _auth_request(config, hint, prompt=None)
        message = await flow.lti_auth(request, _authenticated)
        assert message.get("id_token")

    async def test_unauthenticated_user(
        self, flow: LtiFlow, config: KialoConfig
    ) -> None:
        hint = str(_launch(flow).get("lti_message_hint"))
        with pytest.raises(LtiError) as exc_info:
            await flow.lti_auth(_auth_request(config, hint), _anonymous)
        assert exc_info.value.reason.endswith("User authentication failed")

    async def test_custom_validator(self, flow: LtiFlow, config: KialoConfig) -> None:
        hint = str(_launch(flow).get("lti_message_hint"))
        request = _auth_request(config, hint, client_id="other-client")
        seen: list[OidcAuthRequest] = []

        def _accept(req: OidcAuthRequest, _config: KialoConfig) -> None:
            seen.append(req)

        message = await flow.lti_auth(request, _authenticated, _accept)
        assert seen == [request]
        assert message.get("id_token")

    async def test_hmac_message_hint(self, flow: LtiFlow, config: KialoConfig) -> None:
        hint = jwt.encode(
            {CLAIM_REGISTRATION_ID: config.registration_id}, "s" * 32, "HS256"
        )
        with pytest.raises(LtiError) as exc_info:
            await flow.lti_auth(_auth_request(config, hint), _authenticated)
        assert exc_info.value.kind == LtiErrorKind.SIGNATURE_INVALID

    async def test_replayed_request(self, flow: LtiFlow, config: KialoConfig) -> None:
        hint = str(_launch(flow).get("lti_message_hint"))
        request = _auth_request(config, hint)
        await flow.lti_auth(request, _authenticated)
        with pytest.raises(LtiError) as exc_info:
            await flow.lti_auth(request, _authenticated)
        assert exc_info.value.kind == LtiErrorKind.NONCE_REUSED

    async def test_fresh_nonce_after_replay(
        self, flow: LtiFlow, config: KialoConfig
    ) -> None:
        hint = str(_launch(flow).get("lti_message_hint"))
        await flow.lti_auth(_auth_request(config, hint), _authenticated)
        again = _auth_request(config, hint, nonce="tool-nonce-2")
        message = await flow.lti_auth(again, _authenticated)
        assert message.get("id_token")

    @pytest.mark.parametrize("login_hint", ["8/42", "42", "x/42"])
    async def test_login_hint_other_course(
        self, flow: LtiFlow, config: KialoConfig, login_hint: str
    ) -> None:
        hint = str(_launch(flow).get("lti_message_hint"))
        request = _auth_request(config, hint, login_hint=login_hint)
        with pytest.raises(LtiError) as exc_info:
            await flow.lti_auth(request, _authenticated)
        assert exc_info.value.kind == LtiErrorKind.AUTHENTICATION_FAILED
        assert exc_info.value.reason.endswith(
            "login_hint does not match message hint"
        )
