"""
Capability checks, one per relationship type.
Assignment lookups need the database and live in
``services.catalog_service.is_assigned``.

Services call these instead of comparing roles or ids inline, so each rule
lives in exactly one place.
"""
from .models.user_model import User, UserRole
from .models.exam_model import Exam


def is_admin(user: User) -> bool:
    return user is not None and user.role == UserRole.ADMIN


def is_instructor(user: User) -> bool:
    return user is not None and user.role in (UserRole.INSTRUCTOR, UserRole.ADMIN)


def is_creator(user: User, exam: Exam) -> bool:
    return user is not None and exam is not None and exam.created_by_id == user.id
