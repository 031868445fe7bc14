"""Client-credentials access tokens for the tool's service calls."""

import hashlib
import logging
from datetime import UTC, datetime, timedelta

import jwt
import uuid_utils
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kialo.core.config import KialoConfig
from kialo.crypto.jwt_manager import JWTManager, read_unverified
from kialo.db.models_tokens import ServiceTokenEntity
from kialo.lti.constants import SERVICE_SCOPES
from kialo.lti.errors import LtiError, LtiErrorKind
from kialo.lti.tool_keys import resolve_tool_keychain

logger = logging.getLogger(__name__)

TOKEN_TYPE = "Bearer"


class ServiceTokenResponse(BaseModel):
    """OAuth token endpoint response."""

    access_token: str
    token_type: str = TOKEN_TYPE
    expires_in: int
    scope: str


def hash_token(token: str) -> str:
    """SHA-256 hash a token for database storage."""
    return hashlib.sha256(token.encode()).hexdigest()


def grant_scopes(requested: str | None) -> list[str]:
    """Keep the requested scopes the tool may hold, in request order."""
    if not requested:
        return []
    return [s for s in dict.fromkeys(requested.split()) if s in SERVICE_SCOPES]


async def validate_client_assertion(config: KialoConfig, assertion: str) -> str:
    """Check the tool-signed assertion and return the client id it names."""
    try:
        headers, _ = read_unverified(assertion)
    except jwt.InvalidTokenError as exc:
        raise LtiError(
            LtiErrorKind.INVALID_REQUEST, "Malformed client assertion"
        ) from exc

    keychain = await resolve_tool_keychain(config, headers.get("kid"))
    tool = JWTManager(keychain, config.client_id)
    if not tool.verify(assertion):
        raise LtiError(
            LtiErrorKind.SIGNATURE_INVALID, "Invalid client assertion signature"
        )
    try:
        claims = tool.decode(
            assertion,
            audience=[config.token_url(), config.platform_url],
            issuer=config.client_id,
        )
    except jwt.InvalidTokenError as exc:
        raise LtiError(
            LtiErrorKind.CLAIM_MISMATCH, f"Invalid client assertion claims: {exc}"
        ) from exc
    if claims.get("sub") != config.client_id:
        raise LtiError(LtiErrorKind.CLAIM_MISMATCH, "Client assertion subject mismatch")
    return config.client_id


async def issue_service_token(
    session: AsyncSession,
    config: KialoConfig,
    client_id: str,
    scopes: list[str],
) -> ServiceTokenResponse:
    """Sign, persist and return an access token for the granted scopes."""
    ttl = config.settings.token_ttl
    scope = " ".join(scopes)
    token_id = str(uuid_utils.uuid7())
    platform = JWTManager(config.platform_keychain, config.platform_url)
    access_token = platform.issue(
        {"sub": client_id, "scope": scope, "jti": token_id},
        config.platform_url,
        ttl,
    )
    entity = ServiceTokenEntity(
        id=token_id,
        client_id=client_id,
        access_token_hash=hash_token(access_token),
        scope=scope,
        expires_at=datetime.now(UTC) + timedelta(seconds=ttl),
        revoked=False,
    )
    session.add(entity)
    await session.flush()
    logger.info("Issued service token %s for %s (%s)", token_id, client_id, scope)
    return ServiceTokenResponse(access_token=access_token, expires_in=ttl, scope=scope)


async def validate_service_token(
    session: AsyncSession,
    config: KialoConfig,
    token: str,
    required_scopes: list[str],
) -> ServiceTokenEntity | None:
    """Return the stored token if it is genuine, live and carries a needed scope."""
    platform = JWTManager(config.platform_keychain, config.platform_url)
    try:
        claims = platform.decode(token, audience=config.platform_url)
    except jwt.InvalidTokenError:
        return None

    stmt = select(ServiceTokenEntity).where(
        ServiceTokenEntity.access_token_hash == hash_token(token),
        ServiceTokenEntity.revoked.is_(False),
    )
    result = await session.execute(stmt)
    entity = result.scalar_one_or_none()
    if entity is None:
        return None

    now = datetime.now(UTC)
    expiry = entity.expires_at
    if expiry.tzinfo is None:
        now = now.replace(tzinfo=None)
    if now > expiry:
        return None

    granted = set(str(claims.get("scope", "")).split())
    if granted.isdisjoint(required_scopes):
        return None
    return entity
