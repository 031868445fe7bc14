"""Capability checks and LTI role mapping."""

from collections.abc import Iterable
from typing import Protocol

from kialo.lti.constants import ROLE_INSTRUCTOR, ROLE_LEARNER

CAP_VIEW = "mod/kialo:view"
CAP_KIALO_ADMIN = "mod/kialo:kialo_admin"
CAP_ADD_INSTANCE = "mod/kialo:addinstance"
CAP_ACCESS_ALL_GROUPS = "moodle/site:accessallgroups"

ROLE_STUDENT = "student"
ROLE_TEACHER = "teacher"
ROLE_EDITING_TEACHER = "editingteacher"
ROLE_MANAGER = "manager"

CAPABILITY_ROLES: dict[str, frozenset[str]] = {
    CAP_VIEW: frozenset(
        {ROLE_STUDENT, ROLE_TEACHER, ROLE_EDITING_TEACHER, ROLE_MANAGER}
    ),
    CAP_KIALO_ADMIN: frozenset({ROLE_TEACHER, ROLE_EDITING_TEACHER, ROLE_MANAGER}),
    CAP_ADD_INSTANCE: frozenset({ROLE_EDITING_TEACHER, ROLE_MANAGER}),
    CAP_ACCESS_ALL_GROUPS: frozenset(
        {ROLE_TEACHER, ROLE_EDITING_TEACHER, ROLE_MANAGER}
    ),
}


class AuthorizationContext(Protocol):
    """Answers capability questions for one user in one context."""

    def has_capability(self, name: str) -> bool: ...


class RoleCapabilityContext:
    """Capability lookup from the user's role archetypes in a course."""

    def __init__(self, roles: Iterable[str]) -> None:
        self._roles = frozenset(roles)

    @property
    def roles(self) -> frozenset[str]:
        return self._roles

    def has_capability(self, name: str) -> bool:
        allowed = CAPABILITY_ROLES.get(name, frozenset())
        return not self._roles.isdisjoint(allowed)


def assign_lti_roles(context: AuthorizationContext) -> list[str]:
    """Map Kialo admins to Instructor and everybody else to Learner."""
    if context.has_capability(CAP_KIALO_ADMIN):
        return [ROLE_INSTRUCTOR]
    return [ROLE_LEARNER]
