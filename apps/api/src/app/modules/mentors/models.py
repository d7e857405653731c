"""
Mentor Models

Mentor-specific entities. A MentorProfile is the provisioned projection of
an approved mentor application; at most one exists per user.
"""

import enum
import uuid

from sqlalchemy import JSON, Enum, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.modules.shared import BaseModel


class VerificationStatus(str, enum.Enum):
    PENDING = "pending"
    VERIFIED = "verified"


class ContentKind(str, enum.Enum):
    """Mentor-authored content types."""

    VIDEO = "video"
    ADVICE_SESSION = "advice_session"
    PASS = "pass"
    COMMENT = "comment"


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class MentorProfile(BaseModel):
    """Mentor profile owned by exactly one user."""

    __tablename__ = "mentor_profiles"

    # Unique: concurrent provisioning for the same user collapses to one row
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    application_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    verification_status: Mapped[VerificationStatus] = mapped_column(
        Enum(VerificationStatus, name="mentor_verification_status", values_callable=_enum_values),
        nullable=False,
        default=VerificationStatus.VERIFIED,
    )
    institution: Mapped[str | None] = mapped_column(String(200), nullable=True)
    graduation_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    topics: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    session_formats: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    hours_per_week: Mapped[str | None] = mapped_column(String(200), nullable=True)
    languages: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<MentorProfile(id={self.id}, user_id={self.user_id})>"


class MentorExpertise(BaseModel):
    """Topic a mentor advises on."""

    __tablename__ = "mentor_expertise"

    mentor_profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("mentor_profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    topic: Mapped[str] = mapped_column(String(100), nullable=False)

    __table_args__ = (
        UniqueConstraint("mentor_profile_id", "topic", name="uq_mentor_expertise_profile_topic"),
    )


class MentorContent(BaseModel):
    """Content authored by a mentor (videos, advice sessions, passes, comments)."""

    __tablename__ = "mentor_content"

    mentor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    kind: Mapped[ContentKind] = mapped_column(
        Enum(ContentKind, name="mentor_content_kind", values_callable=_enum_values),
        nullable=False,
    )
    title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    body: Mapped[str | None] = mapped_column(Text, nullable=True)
