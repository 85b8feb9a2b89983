"""
Authorization context for engine commands.

The authenticated user is converted once into a ``Principal`` and each command
checks the capability it needs against that value instead of inspecting the
user object.
"""
from dataclasses import dataclass
from typing import Optional, Union

from apps.common.exceptions import NotAuthorized


@dataclass(frozen=True)
class Student:
    user_id: int
    semester: Optional[int] = None


@dataclass(frozen=True)
class Faculty:
    user_id: int


@dataclass(frozen=True)
class Admin:
    user_id: int


Principal = Union[Student, Faculty, Admin]


def principal_for(user) -> Principal:
    if user is None or not user.is_authenticated:
        raise NotAuthorized("Authentication required")
    if getattr(user, "is_staff", False) or getattr(user, "is_superuser", False):
        return Admin(user_id=user.pk)

    from apps.users.models import User

    if user.role == User.Role.ADMIN:
        return Admin(user_id=user.pk)
    if user.role == User.Role.FACULTY:
        return Faculty(user_id=user.pk)
    return Student(user_id=user.pk, semester=user.semester)


def require_student(principal: Principal) -> Student:
    if not isinstance(principal, Student):
        raise NotAuthorized("Only students can perform this action")
    return principal


def require_faculty(principal: Principal) -> Faculty:
    if not isinstance(principal, Faculty):
        raise NotAuthorized("Only faculty can perform this action")
    return principal


def require_admin(principal: Principal) -> Admin:
    if not isinstance(principal, Admin):
        raise NotAuthorized("Admin privileges required")
    return principal


def is_admin(principal: Principal) -> bool:
    return isinstance(principal, Admin)
