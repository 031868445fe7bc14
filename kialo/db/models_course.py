"""SQLAlchemy models for the host data the plugin reads.

Users, courses, enrolments and groups belong to the hosting LMS. The plugin
only reads them to authenticate launches, map roles and scope groups.
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from kialo.db.base import BaseEntity


class UserEntity(BaseEntity):
    """A user of the hosting LMS."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(48), primary_key=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    middle_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    email: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    lang: Mapped[str] = mapped_column(String(30), nullable=False, default="en")
    timezone: Mapped[str] = mapped_column(String(100), nullable=False, default="UTC")
    picture_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    is_guest: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class CourseEntity(BaseEntity):
    """A course of the hosting LMS."""

    __tablename__ = "courses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class EnrolmentEntity(BaseEntity):
    """A user's role in a course (role archetype name)."""

    __tablename__ = "enrolments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    course_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("courses.id"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(
        String(48), ForeignKey("users.id"), nullable=False, index=True
    )
    role: Mapped[str] = mapped_column(String(50), nullable=False)


class GroupEntity(BaseEntity):
    """A group of users inside a course."""

    __tablename__ = "course_groups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    course_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("courses.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class GroupMemberEntity(BaseEntity):
    """Membership of a user in a group."""

    __tablename__ = "course_group_members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    group_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("course_groups.id"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(48), ForeignKey("users.id"), nullable=False
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class GroupingEntity(BaseEntity):
    """A named set of groups an activity can be restricted to."""

    __tablename__ = "course_groupings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    course_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("courses.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class GroupingGroupEntity(BaseEntity):
    """Membership of a group in a grouping."""

    __tablename__ = "course_grouping_groups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    grouping_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("course_groupings.id"), nullable=False
    )
    group_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("course_groups.id"), nullable=False
    )
