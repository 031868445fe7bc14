"""RS256 JWT signing and signature verification.

Signature checks live here; claim semantics (issuer, audience, nonce reuse,
message type) are validated by the LTI flow on top of ``decode``.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt.types import Options

from kialo.crypto.types import ALG_RS256, KeyChain

DEFAULT_TTL = 3600


def sign_jwt(
    claims: dict[str, Any],
    private_key_pem: str,
    kid: str,
    headers: dict[str, Any] | None = None,
) -> str:
    """Sign ``claims`` as a compact RS256 JWT with ``typ``/``alg``/``kid`` headers."""
    all_headers = {"typ": "JWT", "alg": ALG_RS256, "kid": kid}
    if headers:
        all_headers.update(headers)
    return jwt.encode(
        claims,
        private_key_pem,
        algorithm=ALG_RS256,
        headers=all_headers,
    )


def verify_jwt(token: str, public_key_pem: str) -> bool:
    """Return True if ``token`` carries a valid RS256 signature for the key."""
    opts: Options = {
        "verify_signature": True,
        "verify_exp": False,
        "verify_nbf": False,
        "verify_iat": False,
        "verify_aud": False,
        "verify_iss": False,
    }
    try:
        jwt.decode(token, public_key_pem, algorithms=[ALG_RS256], options=opts)
    except (jwt.PyJWTError, ValueError):
        return False
    return True


def read_unverified(token: str) -> tuple[dict[str, Any], dict[str, Any]]:
    """Return ``(headers, claims)`` without checking the signature."""
    headers = jwt.get_unverified_header(token)
    claims = jwt.decode(token, options={"verify_signature": False})
    return headers, claims


class JWTManager:
    """Creates and verifies RS256-signed JWT tokens for a key chain."""

    def __init__(self, keychain: KeyChain, issuer: str) -> None:
        self._keychain = keychain
        self._issuer = issuer

    @property
    def keychain(self) -> KeyChain:
        return self._keychain

    @property
    def issuer(self) -> str:
        return self._issuer

    def sign(
        self,
        claims: dict[str, Any],
        headers: dict[str, Any] | None = None,
    ) -> str:
        """Sign claims verbatim with the key chain's private key."""
        if self._keychain.private_key_pem is None:
            raise ValueError(f"Key chain {self._keychain.key_id} cannot sign")
        return sign_jwt(
            claims,
            self._keychain.private_key_pem,
            self._keychain.key_id,
            headers,
        )

    def issue(
        self,
        claims: dict[str, Any],
        audience: str,
        ttl_seconds: int = DEFAULT_TTL,
    ) -> str:
        """Sign claims with ``iss``/``aud``/``iat``/``exp`` filled in."""
        now = datetime.now(UTC)
        payload = {
            "iss": self._issuer,
            "aud": audience,
            "iat": now,
            "exp": now + timedelta(seconds=ttl_seconds),
            **claims,
        }
        return self.sign(payload)

    def verify(self, token: str, public_key_pem: str | None = None) -> bool:
        """Check the signature only, against this key chain unless a key is given."""
        return verify_jwt(token, public_key_pem or self._keychain.public_key_pem)

    def decode(
        self,
        token: str,
        public_key_pem: str | None = None,
        audience: str | list[str] | None = None,
        issuer: str | None = None,
    ) -> dict[str, Any]:
        """Verify signature and expiry, optionally audience and issuer, and decode."""
        opts: Options = {}
        if audience is None:
            opts["verify_aud"] = False
        return jwt.decode(
            token,
            public_key_pem or self._keychain.public_key_pem,
            algorithms=[ALG_RS256],
            audience=audience,
            issuer=issuer,
            options=opts,
        )
