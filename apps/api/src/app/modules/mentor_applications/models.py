"""
Mentor Applications Models

Applications are the audit trail of the mentor program: rows are never
deleted, status only moves out of ``pending`` once, and review notes live
in an insert-only child table.

The partial unique index on ``email`` (rows not ``rejected``) is the
store-level arbiter for duplicate submissions: at most one pending or
approved application per email.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


class ApplicationStatus(str, enum.Enum):
    """Status of a mentor application. ``approved`` and ``rejected`` are terminal."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


TERMINAL_STATUSES = frozenset({ApplicationStatus.APPROVED, ApplicationStatus.REJECTED})


class ApplicationSource(str, enum.Enum):
    """Which intake path created the application."""

    FORM = "form"
    API = "api"
    IMPORT = "import"


class NoteKind(str, enum.Enum):
    REVIEWER = "reviewer"
    SYSTEM = "system"
    PROVISIONING_ERROR = "provisioning_error"


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


ACTIVE_EMAIL_PREDICATE = "status <> 'rejected'"

# Bounded text columns. The draft schema and the intake normalizer enforce
# the same limits.
MAX_LENGTHS: dict[str, int] = {
    "email": 255,
    "full_name": 200,
    "institution": 200,
    "hours_per_week": 200,
    "intro_video_url": 500,
    "referral_source": 200,
}


class MentorApplication(Base):
    """A single mentor application submission."""

    __tablename__ = "mentor_applications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Applicant (email is stored normalized: trimmed, lower-cased)
    email: Mapped[str] = mapped_column(String(MAX_LENGTHS["email"]), nullable=False)
    full_name: Mapped[str] = mapped_column(String(MAX_LENGTHS["full_name"]), nullable=False)
    institution: Mapped[str] = mapped_column(String(MAX_LENGTHS["institution"]), nullable=False)
    graduation_year: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Consent
    age_confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False)
    agreement_accepted: Mapped[bool] = mapped_column(Boolean, nullable=False)
    perspective_confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Offer
    topics: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    session_formats: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    hours_per_week: Mapped[str | None] = mapped_column(
        String(MAX_LENGTHS["hours_per_week"]), nullable=True
    )
    languages: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Free text
    prior_experience: Mapped[str | None] = mapped_column(Text, nullable=True)
    motivation: Mapped[str | None] = mapped_column(Text, nullable=True)
    intro_video_url: Mapped[str | None] = mapped_column(
        String(MAX_LENGTHS["intro_video_url"]), nullable=True
    )
    social_links: Mapped[str | None] = mapped_column(Text, nullable=True)
    referral_source: Mapped[str | None] = mapped_column(
        String(MAX_LENGTHS["referral_source"]), nullable=True
    )

    source: Mapped[ApplicationSource] = mapped_column(
        Enum(ApplicationSource, name="application_source", values_callable=_enum_values),
        nullable=False,
        default=ApplicationSource.API,
    )

    # Lifecycle
    status: Mapped[ApplicationStatus] = mapped_column(
        Enum(ApplicationStatus, name="mentor_application_status", values_callable=_enum_values),
        nullable=False,
        default=ApplicationStatus.PENDING,
    )
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    # Set together, once, by the transition out of pending
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # Set once the mentor profile exists
    provisioned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    notes: Mapped[list["ApplicationNote"]] = relationship(
        "ApplicationNote",
        back_populates="application",
        order_by="ApplicationNote.created_at",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_mentor_applications_email", "email"),
        Index("ix_mentor_applications_status", "status"),
        Index(
            "ux_mentor_applications_active_email",
            "email",
            unique=True,
            postgresql_where=text(ACTIVE_EMAIL_PREDICATE),
            sqlite_where=text(ACTIVE_EMAIL_PREDICATE),
        ),
    )

    def __repr__(self) -> str:
        return f"<MentorApplication(id={self.id}, email={self.email}, status={self.status.value})>"


class ApplicationNote(Base):
    """
    Review annotation on an application.

    Insert-only: the repository exposes no update or delete for notes.
    """

    __tablename__ = "mentor_application_notes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    application_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("mentor_applications.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    kind: Mapped[NoteKind] = mapped_column(
        Enum(NoteKind, name="application_note_kind", values_callable=_enum_values),
        nullable=False,
    )
    body: Mapped[str] = mapped_column(Text, nullable=False)
    author: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    application: Mapped["MentorApplication"] = relationship(
        "MentorApplication", back_populates="notes"
    )
