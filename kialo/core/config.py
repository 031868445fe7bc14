"""Plugin configuration object built from settings and passed down explicitly."""

from urllib.parse import urlencode

from pydantic import AnyUrl, TypeAdapter, ValidationError

from kialo.core.settings import KialoSettings
from kialo.crypto.types import KeyChain
from kialo.lti.errors import ConfigurationError
from kialo.lti.registration import Platform, Registration, Tool

DEFAULT_TOOL_URL = "https://www.kialo-edu.com"
PLATFORM_ID = "kialo-moodle-plugin"
PLATFORM_NAME = "Kialo Moodle Plugin"
TOOL_ID = "kialo-edu"
TOOL_NAME = "Kialo Edu"

_url_adapter = TypeAdapter(AnyUrl)


class KialoConfig:
    """Resolved configuration of one plugin installation.

    Holds the settings plus the platform key chain once it has been loaded,
    and derives every platform and tool endpoint URL from them.
    """

    def __init__(
        self,
        settings: KialoSettings,
        platform_keychain: KeyChain | None = None,
        tool_keychain: KeyChain | None = None,
    ) -> None:
        self._settings = settings
        self._platform_keychain = platform_keychain
        self._tool_keychain = tool_keychain

    @property
    def settings(self) -> KialoSettings:
        return self._settings

    @property
    def client_id(self) -> str:
        return self._settings.client_id

    @property
    def registration_id(self) -> str:
        return self._settings.registration_id

    @property
    def release(self) -> str:
        return self._settings.release

    @property
    def platform_url(self) -> str:
        return self._settings.issuer

    @property
    def platform_keychain(self) -> KeyChain:
        if self._platform_keychain is None:
            raise ConfigurationError("Platform key chain has not been loaded")
        return self._platform_keychain

    @property
    def tool_keychain(self) -> KeyChain | None:
        return self._tool_keychain

    def get_tool_url(self) -> str:
        """Return the tool base URL without trailing slash.

        Precedence: admin setting, then ``TARGET_KIALO_URL``, then the
        production default.
        """
        url = (
            self._settings.tool_url
            or self._settings.target_kialo_url
            or DEFAULT_TOOL_URL
        ).strip()
        try:
            parsed = _url_adapter.validate_python(url)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid tool URL: {url!r}") from exc
        if parsed.scheme not in ("http", "https") or not parsed.host:
            raise ConfigurationError(f"Tool URL must be absolute http(s): {url!r}")
        return url.rstrip("/")

    # Platform endpoints

    def platform_endpoint(self, name: str, **query: str | int) -> str:
        url = f"{self.platform_url}/{name}"
        if query:
            url = f"{url}?{urlencode(query)}"
        return url

    def auth_url(self) -> str:
        return self.platform_endpoint("lti_auth")

    def deep_link_return_url(self) -> str:
        return self.platform_endpoint("lti_select")

    def platform_jwks_url(self) -> str:
        return self.platform_endpoint("lti_jwks")

    def token_url(self) -> str:
        return self.platform_endpoint("lti_token")

    def lineitem_url(self, course_id: int, cmid: int, resource_link_id: str) -> str:
        return self.platform_endpoint(
            "lti_lineitem",
            course_id=course_id,
            resource_link_id=resource_link_id,
            cmid=cmid,
        )

    def lineitems_url(self, course_id: int, cmid: int, resource_link_id: str) -> str:
        return self.platform_endpoint(
            "lti_lineitems",
            course_id=course_id,
            resource_link_id=resource_link_id,
            cmid=cmid,
        )

    def update_discussion_url(self, cmid: int) -> str:
        return self.platform_endpoint("update_discussion_url", cmid=cmid)

    # Tool endpoints

    def tool_login_url(self) -> str:
        return f"{self.get_tool_url()}/lti/start"

    def tool_launch_url(self) -> str:
        return f"{self.get_tool_url()}/lti/launch"

    def tool_deeplink_url(self) -> str:
        return f"{self.get_tool_url()}/lti/deeplink"

    def tool_jwks_url(self) -> str:
        return f"{self.get_tool_url()}/lti/jwks.json"

    # Registration

    def get_platform(self) -> Platform:
        return Platform(
            id=PLATFORM_ID,
            name=PLATFORM_NAME,
            audience=self.platform_url,
            oidc_auth_url=self.auth_url(),
            token_url=self.token_url(),
        )

    def get_tool(self) -> Tool:
        tool_url = self.get_tool_url()
        return Tool(
            id=TOOL_ID,
            name=TOOL_NAME,
            audience=tool_url,
            login_url=self.tool_login_url(),
            launch_url=self.tool_launch_url(),
            deeplink_url=self.tool_deeplink_url(),
        )

    def create_registration(self, deployment_id: str | None = None) -> Registration:
        """Assemble the registration for the given deployment from configuration."""
        return Registration(
            identifier=self.registration_id,
            client_id=self.client_id,
            platform=self.get_platform(),
            tool=self.get_tool(),
            deployment_ids={deployment_id} if deployment_id else set(),
            platform_keychain=self.platform_keychain,
            tool_keychain=self._tool_keychain,
            platform_jwks_url=self.platform_jwks_url(),
            tool_jwks_url=self.tool_jwks_url(),
        )
