"""FastAPI dependencies shared by the plugin routers."""

from collections.abc import Awaitable, Callable
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from kialo.core.config import KialoConfig
from kialo.core.settings import KialoSettings
from kialo.db.engine import get_session
from kialo.db.models_course import UserEntity
from kialo.db.models_tokens import ServiceTokenEntity
from kialo.db.repo_course import get_enrolment_roles, get_user_by_id
from kialo.lti.authorization import RoleCapabilityContext
from kialo.lti.cache import SessionCache
from kialo.lti.errors import AuthorizationError
from kialo.lti.flow import LtiFlow
from kialo.lti.nonce import NonceRepository
from kialo.lti.registration import get_platform_keychain
from kialo.lti.service_tokens import validate_service_token

SESSION_USER_KEY = "user_id"

_bearer = HTTPBearer(auto_error=False)


def get_settings() -> KialoSettings:
    return KialoSettings()


def get_current_user_id(request: Request) -> str | None:
    """Return the id of the user logged in to the host, if any."""
    user_id = request.session.get(SESSION_USER_KEY)
    return str(user_id) if user_id is not None else None


async def require_user(
    db: Annotated[AsyncSession, Depends(get_session)],
    user_id: Annotated[str | None, Depends(get_current_user_id)],
) -> UserEntity:
    """Require a logged-in, non-guest user."""
    if user_id is None:
        raise AuthorizationError("Login required")
    user = await get_user_by_id(db, user_id)
    if user is None:
        raise AuthorizationError(f"Unknown session user {user_id}")
    if user.is_guest:
        raise AuthorizationError("Guest access is not allowed")
    return user


async def load_course_authorization(
    db: AsyncSession, course_id: int, user_id: str
) -> RoleCapabilityContext:
    """Build the capability context of a user in a course."""
    roles = await get_enrolment_roles(db, course_id, user_id)
    return RoleCapabilityContext(roles)


async def get_kialo_config(
    db: Annotated[AsyncSession, Depends(get_session)],
    settings: Annotated[KialoSettings, Depends(get_settings)],
) -> KialoConfig:
    """Configuration with the platform key chain loaded."""
    keychain = await get_platform_keychain(db, settings)
    return KialoConfig(settings, platform_keychain=keychain)


def get_lti_flow(
    request: Request,
    config: Annotated[KialoConfig, Depends(get_kialo_config)],
) -> LtiFlow:
    """Launch flow whose nonce bookkeeping lives in the user's session."""
    nonces = NonceRepository(
        SessionCache(request.session), config.settings.message_ttl
    )
    return LtiFlow(config, nonces=nonces)


def require_service_token(
    scopes: list[str],
) -> Callable[..., Awaitable[ServiceTokenEntity]]:
    """Build a dependency that accepts Bearer tokens holding one of ``scopes``."""

    async def _dependency(
        db: Annotated[AsyncSession, Depends(get_session)],
        config: Annotated[KialoConfig, Depends(get_kialo_config)],
        credentials: Annotated[
            HTTPAuthorizationCredentials | None, Depends(_bearer)
        ],
    ) -> ServiceTokenEntity:
        if credentials is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
        entity = await validate_service_token(
            db, config, credentials.credentials, scopes
        )
        if entity is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
        return entity

    return _dependency
