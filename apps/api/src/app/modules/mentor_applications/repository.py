"""
Mentor Applications Repository

Database operations for mentor applications and their notes.

Mutation discipline:
- Status changes go through conditional_transition(): one
  ``UPDATE ... WHERE id = :id AND status = 'pending'``. Callers learn the
  outcome from the affected row count; status is never read, modified and
  written back.
- Inserts rely on the partial unique index on ``email``; a concurrent
  duplicate surfaces as IntegrityError for the service to translate.
- Notes are insert-only.
- Applications are never deleted.
"""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import asc, desc, exists, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.users.models import User, UserRole

from .models import (
    ApplicationNote,
    ApplicationSource,
    ApplicationStatus,
    MentorApplication,
    NoteKind,
)
from .schemas import ApplicationDraft


async def insert_application(
    db: AsyncSession,
    draft: ApplicationDraft,
    source: ApplicationSource,
) -> MentorApplication:
    """
    Insert a new pending application and commit.

    Raises:
        IntegrityError: If an active application for the email already exists
    """
    application = MentorApplication(
        **draft.model_dump(),
        source=source,
        status=ApplicationStatus.PENDING,
        submitted_at=datetime.now(UTC),
    )

    db.add(application)
    await db.commit()
    await db.refresh(application)

    return application


async def get_by_id(db: AsyncSession, application_id: UUID) -> MentorApplication | None:
    result = await db.execute(
        select(MentorApplication)
        .where(MentorApplication.id == application_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_latest_by_email(db: AsyncSession, email: str) -> MentorApplication | None:
    """Most recent application for a normalized email, any status."""
    result = await db.execute(
        select(MentorApplication)
        .where(MentorApplication.email == email)
        .order_by(desc(MentorApplication.submitted_at), desc(MentorApplication.id))
        .limit(1)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_active_by_email(db: AsyncSession, email: str) -> MentorApplication | None:
    """
    The pending or approved application for an email, if any.

    The partial unique index allows at most one, and when it exists it is
    also the most recent application for the email.
    """
    result = await db.execute(
        select(MentorApplication)
        .where(
            MentorApplication.email == email,
            MentorApplication.status != ApplicationStatus.REJECTED,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def get_status(db: AsyncSession, application_id: UUID) -> ApplicationStatus | None:
    """Read the stored status column only."""
    result = await db.execute(
        select(MentorApplication.status).where(MentorApplication.id == application_id)
    )
    return result.scalar_one_or_none()


async def conditional_transition(
    db: AsyncSession,
    application_id: UUID,
    target_status: ApplicationStatus,
    reviewer_id: str | None,
    reviewed_at: datetime | None = None,
) -> int:
    """
    Move a pending application to ``target_status`` in one statement.

    Sets status, reviewed_at and reviewed_by together, only while the row
    is still pending. Does not commit.

    Returns:
        Rows affected: 1 if this call won, 0 if the row was not pending
    """
    result = await db.execute(
        update(MentorApplication)
        .where(
            MentorApplication.id == application_id,
            MentorApplication.status == ApplicationStatus.PENDING,
        )
        .values(
            status=target_status,
            reviewed_at=reviewed_at or datetime.now(UTC),
            reviewed_by=reviewer_id,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def mark_provisioned(db: AsyncSession, application_id: UUID) -> int:
    """Set provisioned_at once. Does not commit."""
    result = await db.execute(
        update(MentorApplication)
        .where(
            MentorApplication.id == application_id,
            MentorApplication.provisioned_at.is_(None),
        )
        .values(provisioned_at=datetime.now(UTC))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def append_note(
    db: AsyncSession,
    application_id: UUID,
    body: str,
    kind: NoteKind,
    author: str | None = None,
) -> ApplicationNote:
    """Insert a note and commit."""
    note = ApplicationNote(
        application_id=application_id,
        kind=kind,
        body=body,
        author=author,
        created_at=datetime.now(UTC),
    )
    db.add(note)
    await db.commit()
    await db.refresh(note)
    return note


async def get_notes(db: AsyncSession, application_id: UUID) -> list[ApplicationNote]:
    result = await db.execute(
        select(ApplicationNote)
        .where(ApplicationNote.application_id == application_id)
        .order_by(asc(ApplicationNote.created_at))
    )
    return list(result.scalars().all())


async def get_latest_note(
    db: AsyncSession, application_id: UUID, kind: NoteKind
) -> ApplicationNote | None:
    result = await db.execute(
        select(ApplicationNote)
        .where(ApplicationNote.application_id == application_id, ApplicationNote.kind == kind)
        .order_by(desc(ApplicationNote.created_at))
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_approved_unprovisioned(db: AsyncSession, limit: int = 100) -> list[MentorApplication]:
    """
    Approved applications still waiting for their mentor profile, oldest first.

    Applicants whose account is locked to the student role are left out;
    they can never be provisioned.
    """
    student_locked = exists().where(
        User.email == MentorApplication.email,
        User.role_selection_completed.is_(True),
        User.role == UserRole.STUDENT,
    )
    result = await db.execute(
        select(MentorApplication)
        .where(
            MentorApplication.status == ApplicationStatus.APPROVED,
            MentorApplication.provisioned_at.is_(None),
            ~student_locked,
        )
        .order_by(asc(MentorApplication.reviewed_at))
        .limit(limit)
    )
    return list(result.scalars().all())


async def list_applications(
    db: AsyncSession,
    *,
    status: ApplicationStatus | None = None,
    search: str | None = None,
    sort_order: str = "asc",
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[MentorApplication], int]:
    """
    Filtered, paginated application list for reviewers.

    Args:
        db: Database session
        status: Filter by status (optional)
        search: Case-insensitive match on email, name or institution
        sort_order: "asc" (oldest first, the default) or "desc"
        skip: Records to skip
        limit: Maximum records to return

    Returns:
        Tuple of (applications, total count matching filters)
    """
    query = select(MentorApplication)

    if status:
        query = query.where(MentorApplication.status == status)

    if search:
        pattern = f"%{search}%"
        query = query.where(
            or_(
                MentorApplication.email.ilike(pattern),
                MentorApplication.full_name.ilike(pattern),
                MentorApplication.institution.ilike(pattern),
            )
        )

    total_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total = total_result.scalar() or 0

    order = desc if sort_order.lower() == "desc" else asc
    query = query.order_by(order(MentorApplication.submitted_at)).offset(skip).limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all()), total
