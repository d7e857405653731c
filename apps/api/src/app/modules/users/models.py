"""
User Models

App user accounts and their cached client preferences.
"""

import enum
import uuid

from sqlalchemy import JSON, Boolean, Enum, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.modules.shared import BaseModel


class UserRole(str, enum.Enum):
    """How a user uses the app. ``unset`` until the role picker runs."""

    STUDENT = "student"
    MENTOR = "mentor"
    BOTH = "both"
    UNSET = "unset"


MENTOR_ROLES = frozenset({UserRole.MENTOR, UserRole.BOTH})


class PreferenceScope(str, enum.Enum):
    """Which role a cached preference belongs to."""

    MENTOR = "mentor"
    STUDENT = "student"
    SHARED = "shared"


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class User(BaseModel):
    """
    App user account.

    ``role`` starts as ``unset`` and is locked exactly once by the role
    picker, which also sets ``role_selection_completed``.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="user_role", values_callable=_enum_values),
        nullable=False,
        default=UserRole.UNSET,
    )
    role_selection_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Student profile fields
    interests: Mapped[list | None] = mapped_column(JSON, nullable=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role.value})>"


class UserPreference(BaseModel):
    """Key/value preference mirrored from the client (e.g. the mentor-mode toggle)."""

    __tablename__ = "user_preferences"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    scope: Mapped[PreferenceScope] = mapped_column(
        Enum(PreferenceScope, name="preference_scope", values_callable=_enum_values),
        nullable=False,
    )
    key: Mapped[str] = mapped_column(String(100), nullable=False)
    value: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (UniqueConstraint("user_id", "key", name="uq_user_preferences_user_key"),)
