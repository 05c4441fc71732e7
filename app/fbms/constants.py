"""
Central constants for the feedback service.
"""
from __future__ import annotations

from enum import Enum


class RoleName(str, Enum):
    STUDENT = "student"
    STAFF = "staff"
    ACADEMIC_DIRECTOR = "academic_director"
    EXECUTIVE_DIRECTOR = "executive_director"

    @property
    def authority(self) -> str:
        return f"ROLE_{self.value.upper()}"

    @classmethod
    def from_authority(cls, tag: str) -> "RoleName":
        return cls(tag.removeprefix("ROLE_").lower())


class QuestionAudience(str, Enum):
    STUDENT = "student"
    STAFF = "staff"
    BOTH = "both"


# Roles a user may pick for themselves at signup; directors are appointed.
SELF_SIGNUP_ROLES = frozenset({RoleName.STUDENT, RoleName.STAFF})
DEFAULT_ROLE = RoleName.STUDENT

RATING_MIN = 1
RATING_MAX = 5
RATING_VALUES = tuple(range(RATING_MIN, RATING_MAX + 1))

USER_YEAR_MIN, USER_YEAR_MAX = 1, 6
QUESTION_YEAR_MIN, QUESTION_YEAR_MAX = 1, 5

DEFAULT_DEPARTMENTS = (
    ("Computer Science and Engineering", "Department for Computer Science and Engineering courses", RoleName.STUDENT),
    ("Electrical Engineering", "Department for Electrical Engineering courses", RoleName.STUDENT),
    ("Mathematics", "Department for Mathematics courses", RoleName.STUDENT),
    ("Staff Department", "Department for staff members", RoleName.STAFF),
)
