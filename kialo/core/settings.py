"""Application settings loaded from environment variables."""

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

MESSAGE_TTL_DEFAULT = 3600
SERVICE_TOKEN_TTL_DEFAULT = 3600
DB_POOL_SIZE_DEFAULT = 5
DB_MAX_OVERFLOW_DEFAULT = 10
DB_PORT_DEFAULT = 5432


class DatabaseSettings(BaseSettings):
    """PostgreSQL connection settings."""

    model_config = SettingsConfigDict(env_prefix="KIALO_DB_")

    host: str = "localhost"
    port: int = DB_PORT_DEFAULT
    user: str = "kialo"
    password: str = "kialo"
    database: str = "kialo"
    pool_size: int = DB_POOL_SIZE_DEFAULT
    max_overflow: int = DB_MAX_OVERFLOW_DEFAULT
    url: str = ""

    @property
    def async_url(self) -> str:
        """Return the explicit URL, or build the async PostgreSQL one."""
        if self.url:
            return self.url
        return (
            f"postgresql+asyncpg://{self.user}:{self.password}"
            f"@{self.host}:{self.port}/{self.database}"
        )


class KialoSettings(BaseSettings):
    """LTI platform settings for the Kialo plugin."""

    model_config = SettingsConfigDict(env_prefix="KIALO_", populate_by_name=True)

    platform_url: str = "http://localhost:8000/mod/kialo"
    tool_url: str | None = None
    target_kialo_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("target_kialo_url", "TARGET_KIALO_URL"),
    )
    client_id: str = "kialo-moodle-client"
    registration_id: str = "kialo-moodle-registration"
    deployment_id: str = "kialo-moodle-deployment"
    signing_key_encryption_key: str = ""
    tool_public_key_pem: str = ""
    tool_key_id: str = ""
    session_secret: str = "change-me"
    session_cookie_secure: bool = True
    release: str = "1.0.0"
    moodle_version: str = "2024100700"
    message_ttl: int = MESSAGE_TTL_DEFAULT
    token_ttl: int = SERVICE_TOKEN_TTL_DEFAULT
    log_level: str = "INFO"

    @property
    def issuer(self) -> str:
        """Platform issuer, also the audience of tool-signed messages."""
        return self.platform_url.rstrip("/")
