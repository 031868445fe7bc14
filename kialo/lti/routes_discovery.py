"""Platform configuration and JWKS endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Response

from kialo.api.deps import get_kialo_config
from kialo.core.config import KialoConfig
from kialo.crypto.keys import pem_to_jwk_entry
from kialo.crypto.types import JWKSResponse
from kialo.lti.discovery import DiscoveryDocument, build_discovery

router = APIRouter()

JWKS_CACHE_CONTROL = "public, max-age=3600"


@router.get("/openid-configuration", response_model_exclude_none=True)
async def openid_configuration(
    config: Annotated[KialoConfig, Depends(get_kialo_config)],
) -> DiscoveryDocument:
    """OpenID / LTI platform configuration."""
    return build_discovery(config)


@router.get("/lti_jwks")
async def jwks(
    response: Response,
    config: Annotated[KialoConfig, Depends(get_kialo_config)],
) -> JWKSResponse:
    """JSON Web Key Set with the platform's public key."""
    keychain = config.platform_keychain
    entry = pem_to_jwk_entry(keychain.public_key_pem, keychain.key_id)
    response.headers["Cache-Control"] = JWKS_CACHE_CONTROL
    return JWKSResponse(keys=[entry])
