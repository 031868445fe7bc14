"""Resolution of the tool's public key."""

import logging

import httpx
from cryptography.hazmat.primitives import serialization
from jwt import PyJWKSet
from jwt.exceptions import PyJWKError, PyJWKSetError

from kialo.core.config import KialoConfig
from kialo.crypto.types import KeyChain
from kialo.lti.errors import LtiError, LtiErrorKind

logger = logging.getLogger(__name__)

TOOL_KEY_SET_NAME = "kialo-edu"
JWKS_TIMEOUT_SECONDS = 10.0


def static_tool_keychain(config: KialoConfig) -> KeyChain | None:
    """Return the key chain configured in settings, if any."""
    if config.tool_keychain is not None:
        return config.tool_keychain
    settings = config.settings
    if not settings.tool_public_key_pem:
        return None
    return KeyChain(
        key_id=settings.tool_key_id or TOOL_KEY_SET_NAME,
        key_set_name=TOOL_KEY_SET_NAME,
        public_key_pem=settings.tool_public_key_pem,
    )


async def fetch_tool_keychain(
    jwks_url: str,
    kid: str | None,
    client: httpx.AsyncClient | None = None,
) -> KeyChain:
    """Download the tool JWKS and pick the key matching ``kid``."""
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=JWKS_TIMEOUT_SECONDS) as own:
                response = await own.get(jwks_url)
        else:
            response = await client.get(jwks_url)
        response.raise_for_status()
        key_set = PyJWKSet.from_dict(response.json())
        jwk = key_set[kid] if kid else key_set.keys[0]
    except (httpx.HTTPError, ValueError, PyJWKError, PyJWKSetError, KeyError) as exc:
        logger.warning(
            "Tool JWKS lookup failed for kid=%s at %s: %s", kid, jwks_url, exc
        )
        raise LtiError(
            LtiErrorKind.SIGNATURE_INVALID, "JWT validation failure"
        ) from exc

    public_pem = jwk.key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return KeyChain(
        key_id=jwk.key_id or kid or TOOL_KEY_SET_NAME,
        key_set_name=TOOL_KEY_SET_NAME,
        public_key_pem=public_pem,
    )


async def resolve_tool_keychain(
    config: KialoConfig,
    kid: str | None,
    client: httpx.AsyncClient | None = None,
) -> KeyChain:
    """Prefer a statically configured key, otherwise ask the tool's JWKS."""
    static = static_tool_keychain(config)
    if static is not None:
        return static
    return await fetch_tool_keychain(config.tool_jwks_url(), kid, client)
