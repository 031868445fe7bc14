"""Group scoping of launches."""

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from kialo.db.models_activity import GROUP_MODE_NONE, KialoActivityEntity
from kialo.db.repo_course import (
    get_grouping,
    get_grouping_group_ids,
    get_user_groups,
)
from kialo.lti.authorization import CAP_ACCESS_ALL_GROUPS, AuthorizationContext
from kialo.lti.constants import CUSTOM_GROUP_ID, CUSTOM_GROUP_NAME

GROUPING_PREFIX = "grouping-"


class GroupInfo(BaseModel):
    """The group a launch is scoped to."""

    group_id: str | int
    group_name: str

    def to_custom_claims(self) -> dict[str, str | int]:
        return {CUSTOM_GROUP_ID: self.group_id, CUSTOM_GROUP_NAME: self.group_name}


async def get_current_group_info(
    session: AsyncSession,
    activity: KialoActivityEntity,
    user_id: str,
    context: AuthorizationContext,
) -> GroupInfo | None:
    """Return the group or grouping the user's launch is scoped to, if any.

    Users who can access all groups are never scoped. When the activity is
    bound to a grouping, every member of its groups shares the grouping.
    Otherwise the most recently joined group wins.
    """
    if activity.group_mode == GROUP_MODE_NONE:
        return None
    if context.has_capability(CAP_ACCESS_ALL_GROUPS):
        return None

    memberships = await get_user_groups(session, activity.course_id, user_id)
    if activity.grouping_id is not None:
        grouping_group_ids = await get_grouping_group_ids(session, activity.grouping_id)
        memberships = [m for m in memberships if m.group_id in grouping_group_ids]
        if not memberships:
            return None
        grouping = await get_grouping(session, activity.grouping_id)
        if grouping is None:
            return None
        return GroupInfo(
            group_id=f"{GROUPING_PREFIX}{grouping.id}", group_name=grouping.name
        )

    if not memberships:
        return None
    latest = memberships[0]
    return GroupInfo(group_id=latest.group_id, group_name=latest.name)
