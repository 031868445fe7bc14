"""Database operations for Kialo activities and their grade items."""

from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kialo.db.models_activity import (
    DEFAULT_GRADE_MAX,
    GradeEntity,
    GradeItemEntity,
    KialoActivityEntity,
)


async def get_activity(
    session: AsyncSession, cmid: int, course_id: int | None = None
) -> KialoActivityEntity | None:
    """Look up an activity by course module id, optionally within a course."""
    activity = await session.get(KialoActivityEntity, cmid)
    if activity is None:
        return None
    if course_id is not None and activity.course_id != course_id:
        return None
    return activity


async def update_discussion_url(
    session: AsyncSession, cmid: int, discussion_url: str
) -> bool:
    """Store a new discussion URL; False if the activity does not exist."""
    activity = await get_activity(session, cmid)
    if activity is None:
        return False
    activity.discussion_url = discussion_url
    activity.time_modified = datetime.now(UTC)
    await session.flush()
    return True


async def get_grade_item(session: AsyncSession, cmid: int) -> GradeItemEntity | None:
    stmt = select(GradeItemEntity).where(GradeItemEntity.cmid == cmid)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def ensure_grade_item(session: AsyncSession, cmid: int) -> GradeItemEntity:
    """Return the activity's grade item, creating it with the default maximum."""
    item = await get_grade_item(session, cmid)
    if item is not None:
        return item
    item = GradeItemEntity(cmid=cmid, grade_max=DEFAULT_GRADE_MAX)
    session.add(item)
    await session.flush()
    return item


async def get_grade(
    session: AsyncSession, grade_item_id: int, user_id: str
) -> GradeEntity | None:
    stmt = select(GradeEntity).where(
        GradeEntity.grade_item_id == grade_item_id,
        GradeEntity.user_id == user_id,
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def store_grade(
    session: AsyncSession,
    grade_item_id: int,
    user_id: str,
    *,
    raw_grade: float | None,
    feedback: str,
    date_graded: datetime,
) -> GradeEntity:
    """Insert or overwrite the user's grade in a grade item."""
    grade = await get_grade(session, grade_item_id, user_id)
    if grade is None:
        grade = GradeEntity(grade_item_id=grade_item_id, user_id=user_id)
        session.add(grade)
    grade.raw_grade = raw_grade
    grade.feedback = feedback
    grade.date_graded = date_graded
    await session.flush()
    return grade
