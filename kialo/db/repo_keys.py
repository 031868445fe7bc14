"""Database operations for the platform signing key."""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from kialo.crypto.keys import (
    PLATFORM_KEY_SET_NAME,
    encrypt_private_key,
    generate_rsa_keypair,
)
from kialo.crypto.types import ALG_RS256
from kialo.db.models_keys import SigningKeyEntity


async def get_active_key(
    session: AsyncSession,
    key_set_name: str = PLATFORM_KEY_SET_NAME,
) -> SigningKeyEntity | None:
    """Return the active signing key of a key set, oldest first."""
    stmt = (
        select(SigningKeyEntity)
        .where(
            SigningKeyEntity.is_active.is_(True),
            SigningKeyEntity.key_set_name == key_set_name,
        )
        .order_by(SigningKeyEntity.created_at)
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def ensure_active_key(session: AsyncSession, fernet_key: str) -> SigningKeyEntity:
    """Return the active key, or generate and store one if none exists."""
    active = await get_active_key(session)
    if active is not None:
        return active

    keypair = generate_rsa_keypair()
    entity = SigningKeyEntity(
        kid=keypair.kid,
        key_set_name=PLATFORM_KEY_SET_NAME,
        algorithm=ALG_RS256,
        private_key_pem=encrypt_private_key(keypair.private_key_pem, fernet_key),
        public_key_pem=keypair.public_key_pem,
        is_active=True,
    )
    session.add(entity)
    try:
        await session.flush()
    except IntegrityError:
        # Another worker stored its key first
        await session.rollback()
        winner = await get_active_key(session)
        if winner is None:
            raise
        return winner
    return entity
