"""Authentication of the OIDC login hint against the logged-in user."""

import logging
from typing import Any

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from kialo.db.repo_course import get_enrolment_roles, get_user_by_id
from kialo.lti.authorization import CAP_VIEW, RoleCapabilityContext

logger = logging.getLogger(__name__)


class UserIdentity(BaseModel):
    """Profile of the authenticated user, sent as OIDC standard claims."""

    subject_id: str
    full_name: str
    email: str
    given_name: str
    family_name: str
    middle_name: str | None = None
    locale: str | None = None
    picture_url: str | None = None
    timezone: str | None = None
    preferred_username: str | None = None

    def to_claims(self) -> dict[str, Any]:
        claims = {
            "sub": self.subject_id,
            "name": self.full_name,
            "email": self.email,
            "given_name": self.given_name,
            "family_name": self.family_name,
            "middle_name": self.middle_name,
            "locale": self.locale,
            "picture": self.picture_url,
            "zoneinfo": self.timezone,
            "preferred_username": self.preferred_username,
        }
        return {k: v for k, v in claims.items() if v is not None}


def parse_login_hint(login_hint: str) -> tuple[int, str] | None:
    """Split ``"{course_id}/{user_id}"``; None when malformed."""
    course_part, sep, user_id = login_hint.partition("/")
    if not sep or not user_id or not course_part.isdigit():
        return None
    return int(course_part), user_id


async def authenticate_user(
    session: AsyncSession, current_user_id: str | None, login_hint: str
) -> UserIdentity | None:
    """Return the identity if the hint names the current user and they may view."""
    parsed = parse_login_hint(login_hint)
    if parsed is None or current_user_id is None:
        return None
    course_id, hinted_user_id = parsed
    if hinted_user_id != current_user_id:
        logger.warning(
            "Login hint user %s does not match session user %s",
            hinted_user_id,
            current_user_id,
        )
        return None

    user = await get_user_by_id(session, current_user_id)
    if user is None or user.is_guest:
        return None
    roles = await get_enrolment_roles(session, course_id, user.id)
    if not RoleCapabilityContext(roles).has_capability(CAP_VIEW):
        return None

    return UserIdentity(
        subject_id=user.id,
        full_name=user.full_name,
        email=user.email,
        given_name=user.first_name,
        family_name=user.last_name,
        middle_name=user.middle_name or None,
        locale=user.lang,
        picture_url=user.picture_url,
        timezone=user.timezone,
        preferred_username=user.username,
    )
