"""Key and registration store.

A registration is never persisted: it is assembled on every request from
the configuration and the platform key chain, which is the only long-lived
secret and lives Fernet-encrypted in the database.
"""

import logging

from cryptography.fernet import InvalidToken
from pydantic import BaseModel, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from kialo.core.settings import KialoSettings
from kialo.crypto.keys import decrypt_private_key
from kialo.crypto.types import KeyChain
from kialo.db.repo_keys import ensure_active_key
from kialo.lti.errors import ConfigurationError

logger = logging.getLogger(__name__)


class Platform(BaseModel):
    """The LMS side of the registration (this plugin)."""

    id: str
    name: str
    audience: str
    oidc_auth_url: str
    token_url: str


class Tool(BaseModel):
    """The external tool side of the registration (Kialo)."""

    id: str
    name: str
    audience: str
    login_url: str
    launch_url: str
    deeplink_url: str


class Registration(BaseModel):
    """Platform, tool and deployment identifiers plus their key chains."""

    identifier: str
    client_id: str
    platform: Platform
    tool: Tool
    deployment_ids: set[str]
    platform_keychain: KeyChain
    tool_keychain: KeyChain | None = None
    platform_jwks_url: str
    tool_jwks_url: str

    @model_validator(mode="after")
    def _platform_key_can_sign(self) -> "Registration":
        if not self.platform_keychain.can_sign:
            raise ValueError("Platform key chain must carry a private key")
        return self

    def has_deployment_id(self, deployment_id: str) -> bool:
        return deployment_id in self.deployment_ids


async def get_platform_keychain(
    session: AsyncSession, settings: KialoSettings
) -> KeyChain:
    """Return the platform's RSA key chain, generating it on first use."""
    fernet_key = settings.signing_key_encryption_key
    if not fernet_key:
        raise ConfigurationError("KIALO_SIGNING_KEY_ENCRYPTION_KEY is not set")
    try:
        entity = await ensure_active_key(session, fernet_key)
        private_pem = decrypt_private_key(entity.private_key_pem, fernet_key)
    except (InvalidToken, ValueError) as exc:
        logger.exception("Platform signing key could not be loaded")
        raise ConfigurationError("Platform signing key is unusable") from exc
    return KeyChain(
        key_id=entity.kid,
        key_set_name=entity.key_set_name,
        public_key_pem=entity.public_key_pem,
        private_key_pem=private_pem,
        algorithm=entity.algorithm,
    )
