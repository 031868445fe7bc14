"""Assignment and Grading Services: line items and score postback."""

import logging
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from kialo.db.models_activity import DEFAULT_GRADE_MAX
from kialo.db.repo_activity import (
    ensure_grade_item,
    get_activity,
    get_grade,
    get_grade_item,
    store_grade,
)
from kialo.db.repo_course import get_user_by_id, is_enrolled
from kialo.lti.errors import LtiError, LtiErrorKind

logger = logging.getLogger(__name__)


class LineItem(BaseModel):
    """AGS line item descriptor, serialised with camelCase keys."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    label: str
    score_maximum: float = Field(alias="scoreMaximum")
    resource_link_id: str = Field(alias="resourceLinkId")
    resource_id: str | None = Field(default=None, alias="resourceId")
    tag: str | None = None
    start_date_time: datetime | None = Field(default=None, alias="startDateTime")
    end_date_time: datetime | None = Field(default=None, alias="endDateTime")
    grades_released: bool | None = Field(default=None, alias="gradesReleased")


class ScoreSubmission(BaseModel):
    """A score posted by the tool."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user_id: str = Field(alias="userId")
    score_given: float | None = Field(default=None, alias="scoreGiven")
    comment: str | None = None
    timestamp: datetime | None = None


class UserGrade(BaseModel):
    """A grade as stored in the gradebook."""

    user_id: str
    raw_grade: float | None
    feedback: str
    date_graded: datetime | None


async def get_line_item(
    session: AsyncSession,
    course_id: int,
    cmid: int,
    resource_link_id: str,
    request_url: str,
) -> LineItem | None:
    """Describe the activity's gradebook column; None for an unknown activity."""
    activity = await get_activity(session, cmid, course_id)
    if activity is None:
        return None
    item = await get_grade_item(session, cmid)
    score_maximum = item.grade_max if item is not None else DEFAULT_GRADE_MAX
    return LineItem(
        id=request_url,
        label=activity.name,
        score_maximum=float(score_maximum),
        resource_link_id=resource_link_id,
    )


def parse_score(data: dict[str, Any]) -> ScoreSubmission:
    """Read a score body; a missing ``userId`` is a protocol error."""
    if data.get("userId") in (None, ""):
        raise LtiError(
            LtiErrorKind.INVALID_REQUEST, "Missing userId in the request body"
        )
    payload = {**data, "userId": str(data["userId"])}
    return ScoreSubmission.model_validate(payload)


async def update_grade(
    session: AsyncSession, course_id: int, cmid: int, data: dict[str, Any]
) -> bool:
    """Write a score into the gradebook.

    Returns False when the activity, the user or their enrolment is missing.
    """
    score = parse_score(data)
    activity = await get_activity(session, cmid, course_id)
    if activity is None:
        logger.warning("Score for unknown activity cmid=%s course=%s", cmid, course_id)
        return False
    user = await get_user_by_id(session, score.user_id)
    if user is None or not await is_enrolled(session, course_id, score.user_id):
        logger.warning(
            "Score rejected for user %s not enrolled in course %s",
            score.user_id,
            course_id,
        )
        return False

    item = await ensure_grade_item(session, cmid)
    raw_grade = None
    if score.score_given is not None:
        raw_grade = max(0.0, min(score.score_given, item.grade_max))
    await store_grade(
        session,
        item.id,
        score.user_id,
        raw_grade=raw_grade,
        feedback=score.comment or "",
        date_graded=score.timestamp or datetime.now(UTC),
    )
    logger.info(
        "Stored grade %s for user %s on cmid=%s", raw_grade, score.user_id, cmid
    )
    return True


async def get_user_grade(
    session: AsyncSession, cmid: int, user_id: str
) -> UserGrade | None:
    """Read back a user's grade for an activity."""
    item = await get_grade_item(session, cmid)
    if item is None:
        return None
    grade = await get_grade(session, item.id, user_id)
    if grade is None:
        return None
    return UserGrade(
        user_id=grade.user_id,
        raw_grade=grade.raw_grade,
        feedback=grade.feedback,
        date_graded=grade.date_graded,
    )
