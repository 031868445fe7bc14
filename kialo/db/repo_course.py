"""Read access to host users, enrolments and groups."""

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kialo.db.models_course import (
    EnrolmentEntity,
    GroupEntity,
    GroupingEntity,
    GroupingGroupEntity,
    GroupMemberEntity,
    UserEntity,
)


@dataclass(frozen=True)
class GroupMembership:
    """A group the user belongs to and when they joined it."""

    group_id: int
    name: str
    joined_at: datetime


async def get_user_by_id(session: AsyncSession, user_id: str) -> UserEntity | None:
    """Look up a user by ID."""
    return await session.get(UserEntity, user_id)


async def get_enrolment_roles(
    session: AsyncSession, course_id: int, user_id: str
) -> list[str]:
    """Return the role archetypes the user holds in the course."""
    stmt = select(EnrolmentEntity.role).where(
        EnrolmentEntity.course_id == course_id,
        EnrolmentEntity.user_id == user_id,
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def is_enrolled(session: AsyncSession, course_id: int, user_id: str) -> bool:
    return bool(await get_enrolment_roles(session, course_id, user_id))


async def get_user_groups(
    session: AsyncSession, course_id: int, user_id: str
) -> list[GroupMembership]:
    """Return the user's groups in a course, most recently joined first."""
    stmt = (
        select(GroupEntity.id, GroupEntity.name, GroupMemberEntity.joined_at)
        .join(GroupMemberEntity, GroupMemberEntity.group_id == GroupEntity.id)
        .where(
            GroupEntity.course_id == course_id,
            GroupMemberEntity.user_id == user_id,
        )
        .order_by(GroupMemberEntity.joined_at.desc(), GroupEntity.id.desc())
    )
    result = await session.execute(stmt)
    return [
        GroupMembership(group_id=row.id, name=row.name, joined_at=row.joined_at)
        for row in result
    ]


async def get_grouping(
    session: AsyncSession, grouping_id: int
) -> GroupingEntity | None:
    return await session.get(GroupingEntity, grouping_id)


async def get_grouping_group_ids(session: AsyncSession, grouping_id: int) -> set[int]:
    stmt = select(GroupingGroupEntity.group_id).where(
        GroupingGroupEntity.grouping_id == grouping_id
    )
    result = await session.execute(stmt)
    return set(result.scalars().all())
