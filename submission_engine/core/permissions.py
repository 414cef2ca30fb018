from dataclasses import dataclass

from fastapi import Depends, HTTPException, status

from submission_engine.core.config import GRADER_ROLES
from submission_engine.core.current_user import get_current_user
from submission_engine.models.user import User


@dataclass(frozen=True)
class Actor:
    """Capability object passed into every submission operation."""

    user_id: int
    role: str = "student"
    can_grade: bool = False
    is_admin: bool = False

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(
            user_id=user.id,
            role=user.role,
            can_grade=user.role in GRADER_ROLES,
            is_admin=user.role == "admin",
        )


def get_actor(current_user: User = Depends(get_current_user)) -> Actor:
    return Actor.from_user(current_user)


def require_instructor(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role not in GRADER_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Instructor role required",
        )
    return current_user
