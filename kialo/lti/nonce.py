"""Nonce generation and replay bookkeeping."""

import secrets
from datetime import UTC, datetime, timedelta
from typing import Protocol

from pydantic import BaseModel

from kialo.lti.cache import CacheStore

NONCE_TTL_DEFAULT = 600
NONCE_BYTES = 32
_KEY_PREFIX = "nonce:"


class Nonce(BaseModel):
    """A single-use value, optionally bounded in time."""

    value: str
    expires_at: datetime | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or datetime.now(UTC)) >= self.expires_at


class NonceSource(Protocol):
    """Strategy producing fresh nonces."""

    def generate(self) -> Nonce: ...


class RandomNonceSource:
    """Cryptographically random nonces with a fixed validity window."""

    def __init__(self, ttl_seconds: int = NONCE_TTL_DEFAULT) -> None:
        self._ttl = ttl_seconds

    def generate(self) -> Nonce:
        return Nonce(
            value=secrets.token_hex(NONCE_BYTES),
            expires_at=datetime.now(UTC) + timedelta(seconds=self._ttl),
        )


class FixedNonceSource:
    """Always returns the same nonce. For tests only."""

    def __init__(self, value: str) -> None:
        self._value = value

    def generate(self) -> Nonce:
        return Nonce(value=self._value)


class NonceRepository:
    """Remembers seen nonces in a cache so they can be consumed once."""

    def __init__(self, cache: CacheStore, ttl_seconds: int = NONCE_TTL_DEFAULT) -> None:
        self._cache = cache
        self._ttl = ttl_seconds

    def find(self, value: str) -> Nonce | None:
        """Return the stored nonce if it is known and still valid."""
        raw = self._cache.get(_KEY_PREFIX + value)
        if raw is None:
            return None
        nonce = Nonce.model_validate(raw)
        if nonce.is_expired():
            self._cache.delete(_KEY_PREFIX + value)
            return None
        return nonce

    def save(self, nonce: Nonce) -> None:
        if nonce.expires_at is None:
            nonce = nonce.model_copy(
                update={"expires_at": datetime.now(UTC) + timedelta(seconds=self._ttl)}
            )
        self._cache.set(_KEY_PREFIX + nonce.value, nonce.model_dump(mode="json"))

    def consume(self, value: str) -> bool:
        """Record ``value`` as used; False if it was already seen."""
        if self.find(value) is not None:
            return False
        self.save(Nonce(value=value))
        return True
