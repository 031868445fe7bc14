"""Type definitions for signing keys, key chains and JWKS."""

from pydantic import BaseModel

ALG_RS256 = "RS256"


class SigningKeyData(BaseModel):
    """An RSA keypair for JWT signing."""

    kid: str
    private_key_pem: str
    public_key_pem: str


class KeyChain(BaseModel):
    """A public key with an optional private key, identified by ``key_id``."""

    key_id: str
    key_set_name: str
    public_key_pem: str
    private_key_pem: str | None = None
    algorithm: str = ALG_RS256

    @property
    def can_sign(self) -> bool:
        return self.private_key_pem is not None


class JWKEntry(BaseModel):
    """Single JWK entry in a JWKS response."""

    kty: str = "RSA"
    use: str = "sig"
    alg: str = ALG_RS256
    kid: str
    n: str
    e: str


class JWKSResponse(BaseModel):
    """JSON Web Key Set response."""

    keys: list[JWKEntry]
