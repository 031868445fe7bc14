"""SQLAlchemy models for Kialo activities and their gradebook entries."""

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from kialo.db.base import BaseEntity

DISPLAY_NEW_WINDOW = "new_window"
DISPLAY_EMBED = "embed"

GROUP_MODE_NONE = "none"
GROUP_MODE_SEPARATE = "separate"
GROUP_MODE_VISIBLE = "visible"

DEFAULT_GRADE_MAX = 100.0


class KialoActivityEntity(BaseEntity):
    """A Kialo activity placed in a course, keyed by its course module id."""

    __tablename__ = "kialo_activities"

    cmid: Mapped[int] = mapped_column(Integer, primary_key=True)
    course_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("courses.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    discussion_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    display: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DISPLAY_NEW_WINDOW
    )
    group_mode: Mapped[str] = mapped_column(
        String(20), nullable=False, default=GROUP_MODE_NONE
    )
    grouping_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("course_groupings.id"), nullable=True
    )
    time_modified: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class GradeItemEntity(BaseEntity):
    """Gradebook column of an activity."""

    __tablename__ = "grade_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cmid: Mapped[int] = mapped_column(
        Integer, ForeignKey("kialo_activities.cmid"), nullable=False, unique=True
    )
    grade_max: Mapped[float] = mapped_column(
        Float, nullable=False, default=DEFAULT_GRADE_MAX
    )


class GradeEntity(BaseEntity):
    """A user's grade in a grade item."""

    __tablename__ = "grades"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    grade_item_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("grade_items.id"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(48), ForeignKey("users.id"), nullable=False
    )
    raw_grade: Mapped[float | None] = mapped_column(Float, nullable=True)
    feedback: Mapped[str] = mapped_column(Text, nullable=False, default="")
    date_graded: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
