"""
Mentor Applications Service Layer

Business logic for the mentor application lifecycle.

1. Submission (deduplication guard):
   - Fast path: look up the active (pending/approved) application for the
     email and refuse a duplicate, returning the existing id and status
   - Source of truth: the partial unique index on email. A concurrent
     duplicate insert is rolled back and reported the same way
   - A rejected application does not block re-applying

2. Approval state machine (pending -> approved | rejected):
   - Non-pending applications are an idempotent no-op
   - Approval requires the applicant not to be a mentor already
   - The status change is one conditional UPDATE; losing a race is a no-op
   - Only after the write commits: notification (fire-and-forget) and,
     for approvals, mentor profile provisioning. Provisioning failures are
     recorded as notes and retried by the reconciliation job; they never
     undo the approval

3. Triggers: reviewer API, manual-review sheet edits and batch
   reprocessing all call transition_application(). Batch paths isolate
   every row in its own session with its own timeout.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import notifications
from app.core.config import settings
from app.core.notifications import NotificationEvent, Notifier
from app.modules.mentor_applications import intake, repository, vocabulary
from app.modules.mentor_applications.models import (
    TERMINAL_STATUSES,
    ApplicationSource,
    ApplicationStatus,
    MentorApplication,
    NoteKind,
)
from app.modules.mentor_applications.schemas import (
    ApplicationDetailResponse,
    ApplicationDraft,
    ApplicationListItem,
    ApplicationListResponse,
    ApplicationStatusResponse,
    BatchResult,
    IntakeResult,
    NoteResponse,
    ReprocessItem,
    ReviewEdit,
    ReviewEditResult,
    RowResult,
    TransitionResult,
)
from app.modules.mentors import repository as mentor_repository
from app.modules.mentors.service import (
    ProvisioningError,
    StudentAccountLockedError,
    provision_mentor_profile,
)
from app.modules.shared import ErrorKind, ServiceError
from app.modules.users import MENTOR_ROLES, UserRepository

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Any]

REVIEW_SHEET_AUTHOR = "review-sheet"

# Provisioning outcomes
PROVISIONED = "provisioned"
FAILED = "failed"
SKIPPED = "skipped"

STATUS_LABELS = {
    ApplicationStatus.PENDING: "Under review",
    ApplicationStatus.APPROVED: "Approved",
    ApplicationStatus.REJECTED: "Not accepted",
}

STATUS_DESCRIPTIONS = {
    ApplicationStatus.PENDING: "Your application was received and is waiting for a reviewer.",
    ApplicationStatus.APPROVED: "You're approved! Sign in to the app and choose the mentor role.",
    ApplicationStatus.REJECTED: "Your application wasn't accepted this time. You may apply again.",
}


# ============================================
# Errors
# ============================================


class IntakeValidationError(ServiceError):
    """Raised when a submission is missing required fields."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(
            message="The application is missing required information.",
            error_code=ErrorKind.VALIDATION_ERROR,
            status_code=422,
        )


class DuplicateApplicationError(ServiceError):
    """Raised when the email already has a pending or approved application."""

    def __init__(
        self,
        existing_id: UUID | None = None,
        existing_status: ApplicationStatus | None = None,
    ):
        self.existing_id = existing_id
        self.existing_status = existing_status
        super().__init__(
            message="An application for this email is already pending or approved.",
            error_code=ErrorKind.DUPLICATE_APPLICATION,
            status_code=409,
        )


class ApplicationNotFoundError(ServiceError):
    """Raised when an application is not found."""

    def __init__(self, application_id: UUID | None = None):
        message = (
            f"Application {application_id} not found" if application_id else "Application not found"
        )
        super().__init__(
            message=message,
            error_code=ErrorKind.APPLICATION_NOT_FOUND,
            status_code=404,
        )


class AlreadyMentorError(ServiceError):
    """Raised when approving an applicant who already is a mentor."""

    def __init__(self, application_id: UUID | None = None):
        subject = f"The applicant of {application_id}" if application_id else "The applicant"
        super().__init__(
            message=f"{subject} already has a mentor role or mentor profile.",
            error_code=ErrorKind.ALREADY_MENTOR,
            status_code=409,
        )


class InvalidEmailError(ServiceError):
    """Raised when the provided email doesn't match the application."""

    def __init__(self):
        super().__init__(
            message="Email does not match the application",
            error_code=ErrorKind.INVALID_EMAIL,
            status_code=403,
        )


TRANSITION_ERRORS: dict[ErrorKind, type[ServiceError]] = {
    ErrorKind.APPLICATION_NOT_FOUND: ApplicationNotFoundError,
    ErrorKind.ALREADY_MENTOR: AlreadyMentorError,
}


# ============================================
# Side-effect helpers
# ============================================


def _notify(
    notify: Notifier | None,
    event: NotificationEvent,
    application: MentorApplication,
) -> None:
    """Hand the event to the notifier without waiting for delivery."""
    sender = notify or notifications.dispatch
    try:
        sender(
            event,
            application.email,
            {"application_id": str(application.id), "full_name": application.full_name},
        )
    except Exception as e:
        logger.error(
            f"Failed to dispatch {event.value} for application {application.id}: {e}",
            exc_info=True,
        )


async def _record_note(
    db: AsyncSession,
    application_id: UUID,
    body: str,
    kind: NoteKind,
    author: str | None = None,
) -> None:
    """Append a note; a failure here is logged, never raised."""
    try:
        await repository.append_note(db, application_id, body, kind, author)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Could not append {kind.value} note to application {application_id}: {e}")


async def _record_provisioning_failure(db: AsyncSession, application_id: UUID, body: str) -> None:
    """Append a provisioning_error note unless the latest one already says the same."""
    try:
        latest = await repository.get_latest_note(
            db, application_id, NoteKind.PROVISIONING_ERROR
        )
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Could not read notes for application {application_id}: {e}")
        return
    if latest is not None and latest.body == body:
        return
    await _record_note(db, application_id, body, NoteKind.PROVISIONING_ERROR)


async def _provision(db: AsyncSession, application: MentorApplication) -> str:
    """
    Provision the mentor profile for an approved application.

    Returns:
        PROVISIONED, FAILED (retry later) or SKIPPED (can never be provisioned)
    """
    # Provisioning may roll the session back and expire the instance
    application_id = application.id
    try:
        profile = await provision_mentor_profile(db, application)
        profile_id = profile.id
        await repository.mark_provisioned(db, application_id)
        await db.commit()
        logger.info(f"Application {application_id} provisioned as mentor profile {profile_id}")
        return PROVISIONED
    except StudentAccountLockedError as e:
        logger.info(f"Provisioning skipped for application {application_id}: {e.message}")
        outcome, reason = SKIPPED, e.message
    except ProvisioningError as e:
        logger.warning(f"Provisioning deferred for application {application_id}: {e.message}")
        outcome, reason = FAILED, e.message
    except Exception as e:
        logger.error(f"Provisioning crashed for application {application_id}: {e}", exc_info=True)
        await db.rollback()
        outcome, reason = FAILED, f"unexpected {type(e).__name__}"

    await _record_provisioning_failure(db, application_id, f"Provisioning failed: {reason}")
    return outcome


async def _applicant_is_mentor(db: AsyncSession, email: str) -> bool:
    """True if the email's account has a mentor role or owns a mentor profile."""
    user = await UserRepository.get_by_email(db, email)
    if user is None:
        return False
    if user.role in MENTOR_ROLES:
        return True
    return await mentor_repository.profile_exists(db, user.id)


# ============================================
# Submission
# ============================================


async def submit_application(
    db: AsyncSession,
    draft: ApplicationDraft,
    source: ApplicationSource = ApplicationSource.API,
    *,
    notify: Notifier | None = None,
) -> MentorApplication:
    """
    Store a normalized application unless the email already has an active one.

    Args:
        db: Database session
        draft: Output of the intake normalizer
        source: Intake path that produced the draft
        notify: Notification sender (defaults to the fire-and-forget dispatcher)

    Returns:
        The new pending application

    Raises:
        DuplicateApplicationError: If a pending or approved application exists
    """
    existing = await repository.get_active_by_email(db, draft.email)
    if existing is not None:
        logger.warning(
            f"Duplicate application attempt: email={draft.email}, "
            f"existing={existing.id} ({existing.status.value})"
        )
        raise DuplicateApplicationError(existing.id, existing.status)

    try:
        application = await repository.insert_application(db, draft, source)
    except IntegrityError as e:
        # A concurrent submission won the unique index
        await db.rollback()
        existing = await repository.get_active_by_email(db, draft.email)
        logger.warning(f"Concurrent duplicate application rejected by the store: {draft.email}")
        raise DuplicateApplicationError(
            existing.id if existing else None,
            existing.status if existing else None,
        ) from e

    logger.info(f"Created application {application.id} for {application.email} via {source.value}")

    _notify(notify, NotificationEvent.CONFIRMATION_RECEIVED, application)
    return application


async def submit_intake(
    db: AsyncSession,
    result: IntakeResult,
    source: ApplicationSource,
    *,
    notify: Notifier | None = None,
) -> MentorApplication:
    """
    Submit a normalizer result.

    Raises:
        IntakeValidationError: If normalization failed
        DuplicateApplicationError: If the email already has an active application
    """
    if not result.success or result.record is None:
        raise IntakeValidationError(result.errors)
    return await submit_application(db, result.record, source, notify=notify)


# ============================================
# Approval state machine
# ============================================


async def transition_application(
    db: AsyncSession,
    application_id: UUID,
    target_status: ApplicationStatus,
    reviewer_id: str | None,
    *,
    reason: str | None = None,
    notify: Notifier | None = None,
) -> TransitionResult:
    """
    Move a pending application to ``approved`` or ``rejected``.

    Safe to call from any number of uncoordinated triggers: only one
    conditional write can ever succeed for an application, and every other
    call reports a no-op.

    Args:
        db: Database session
        application_id: Application to transition
        target_status: APPROVED or REJECTED
        reviewer_id: Identity recorded in reviewed_by (may be None)
        reason: Optional reviewer comment, stored as a note
        notify: Notification sender (defaults to the fire-and-forget dispatcher)

    Returns:
        TransitionResult. ``error`` is APPLICATION_NOT_FOUND, ALREADY_MENTOR or
        VALIDATION_ERROR on failure.
    """
    if target_status not in TERMINAL_STATUSES:
        logger.warning(f"Rejected transition of {application_id} to {target_status.value}")
        return TransitionResult(success=False, error=ErrorKind.VALIDATION_ERROR)

    application = await repository.get_by_id(db, application_id)

    if application is None:
        logger.warning(f"Application not found for transition: {application_id}")
        return TransitionResult(success=False, error=ErrorKind.APPLICATION_NOT_FOUND)

    if application.status != ApplicationStatus.PENDING:
        logger.info(
            f"Application {application_id} already {application.status.value}; "
            f"{target_status.value} by {reviewer_id} is a no-op"
        )
        return TransitionResult(success=True, noop=True, status=application.status)

    if target_status == ApplicationStatus.APPROVED and await _applicant_is_mentor(
        db, application.email
    ):
        logger.warning(f"Refusing to approve {application_id}: {application.email} is a mentor")
        return TransitionResult(
            success=False, error=ErrorKind.ALREADY_MENTOR, status=ApplicationStatus.PENDING
        )

    rows = await repository.conditional_transition(db, application_id, target_status, reviewer_id)

    if rows == 0:
        await db.rollback()
        current = await repository.get_status(db, application_id)
        logger.info(
            f"Application {application_id} left pending concurrently (now {current}); no-op"
        )
        return TransitionResult(success=True, noop=True, status=current)

    await db.commit()
    logger.info(f"Application {application_id} {target_status.value} by {reviewer_id}")

    if reason:
        await _record_note(db, application_id, reason, NoteKind.REVIEWER, reviewer_id)

    if target_status == ApplicationStatus.APPROVED:
        _notify(notify, NotificationEvent.APPLICATION_APPROVED, application)
        await _provision(db, application)
    else:
        _notify(notify, NotificationEvent.APPLICATION_REJECTED, application)

    return TransitionResult(success=True, noop=False, status=target_status)


async def retry_provisioning(db: AsyncSession, application_id: UUID) -> str:
    """
    Retry mentor provisioning for one application.

    Returns:
        "provisioned", "failed" or "skipped" (not approved, already done or
        the account is locked as student)
    """
    application = await repository.get_by_id(db, application_id)
    if (
        application is None
        or application.status != ApplicationStatus.APPROVED
        or application.provisioned_at is not None
    ):
        return SKIPPED
    return await _provision(db, application)


# ============================================
# Manual-review sheet
# ============================================


def _is_approval_column(label: str) -> bool:
    return "approv" in vocabulary.normalize_phrase(label)


def _is_notes_column(label: str) -> bool:
    text = vocabulary.normalize_phrase(label)
    return "note" in text or "comment" in text


def review_decision(value: str | bool | None) -> ApplicationStatus | None:
    """
    Interpret an approval-cell value.

    Truthy phrases approve, rejection phrases reject. Anything else,
    including an unchecked box, is not a decision.
    """
    if value is None or value is False:
        return None
    if intake.is_truthy(value):
        return ApplicationStatus.APPROVED
    if isinstance(value, str) and (
        vocabulary.normalize_phrase(value) in vocabulary.REJECTION_PHRASES
    ):
        return ApplicationStatus.REJECTED
    return None


async def _locate(db: AsyncSession, edit: ReviewEdit) -> MentorApplication | None:
    if edit.application_id is not None:
        return await repository.get_by_id(db, edit.application_id)
    if edit.email:
        email = edit.email.strip().lower()
        return await repository.get_active_by_email(db, email) or (
            await repository.get_latest_by_email(db, email)
        )
    return None


async def handle_review_edit(
    db: AsyncSession,
    edit: ReviewEdit,
    *,
    notify: Notifier | None = None,
) -> ReviewEditResult:
    """
    Apply one manual-review sheet edit.

    Edits to an approval column trigger the state machine; edits to a
    notes column append a reviewer note. Other columns are ignored. The
    same edit delivered twice resolves to a no-op the second time.
    """
    approval = _is_approval_column(edit.column_label)
    notes = not approval and _is_notes_column(edit.column_label)

    if not approval and not notes:
        return ReviewEditResult(
            action="ignored", detail=f"column '{edit.column_label}' not tracked"
        )

    decision = review_decision(edit.value) if approval else None
    if approval and decision is None:
        return ReviewEditResult(action="ignored", detail="cell value is not a decision")

    application = await _locate(db, edit)
    if application is None:
        logger.warning(f"Review edit for unknown application: {edit.application_id or edit.email}")
        return ReviewEditResult(
            action="ignored",
            transition=TransitionResult(success=False, error=ErrorKind.APPLICATION_NOT_FOUND),
            detail="application not found",
        )

    reviewer = edit.editor or REVIEW_SHEET_AUTHOR

    if notes:
        text = intake.text_value(edit.value)
        if not text:
            return ReviewEditResult(
                action="ignored", application_id=application.id, detail="empty note"
            )
        await repository.append_note(db, application.id, text, NoteKind.REVIEWER, reviewer)
        return ReviewEditResult(action="note", application_id=application.id)

    result = await transition_application(db, application.id, decision, reviewer, notify=notify)
    if result.error is not None:
        await _record_note(
            db,
            application.id,
            f"Review sheet {decision.value} failed: {result.error.value}",
            NoteKind.SYSTEM,
            reviewer,
        )

    return ReviewEditResult(
        action="approve" if decision == ApplicationStatus.APPROVED else "reject",
        application_id=application.id,
        transition=result,
    )


# ============================================
# Batch paths
# ============================================


async def _run_row(
    index: int,
    work: Callable[[], Awaitable[RowResult]],
    timeout: float,
) -> RowResult:
    """Run one batch row; a timeout or crash becomes that row's result."""
    try:
        return await asyncio.wait_for(work(), timeout)
    except TimeoutError:
        logger.error(f"Batch row {index} timed out after {timeout}s")
        return RowResult(index=index, success=False, error=ErrorKind.TIMEOUT)
    except Exception as e:
        logger.error(f"Batch row {index} failed: {e}", exc_info=True)
        return RowResult(
            index=index, success=False, error=ErrorKind.INTERNAL_ERROR, errors=[str(e)]
        )


def _summarize(rows: list[RowResult]) -> BatchResult:
    succeeded = sum(1 for row in rows if row.success)
    return BatchResult(
        total=len(rows), succeeded=succeeded, failed=len(rows) - succeeded, rows=rows
    )


async def reprocess_applications(
    session_factory: SessionFactory,
    items: Iterable[ReprocessItem],
    reviewer_id: str | None,
    *,
    timeout: float | None = None,
    notify: Notifier | None = None,
) -> BatchResult:
    """
    Re-run decisions for many applications.

    Each row gets its own session and timeout. Rows are processed in order
    and a failing row never stops the ones after it.
    """
    row_timeout = timeout or settings.batch_row_timeout_seconds
    rows: list[RowResult] = []

    for index, item in enumerate(items):

        async def work(item: ReprocessItem = item, index: int = index) -> RowResult:
            async with session_factory() as db:
                result = await transition_application(
                    db, item.application_id, item.target_status, reviewer_id, notify=notify
                )
            return RowResult(
                index=index,
                success=result.success,
                application_id=item.application_id,
                noop=result.noop,
                error=result.error,
            )

        rows.append(await _run_row(index, work, row_timeout))

    summary = _summarize(rows)
    logger.info(
        f"Reprocessed {summary.total} application(s): "
        f"{summary.succeeded} succeeded, {summary.failed} failed"
    )
    return summary


async def import_rows(
    session_factory: SessionFactory,
    rows: Iterable[Mapping[str, Any]],
    *,
    timeout: float | None = None,
    notify: Notifier | None = None,
) -> BatchResult:
    """
    Normalize and submit spreadsheet rows.

    Invalid rows and duplicates are reported per row; the rest are
    imported.
    """
    row_timeout = timeout or settings.batch_row_timeout_seconds
    results: list[RowResult] = []

    for index, row in enumerate(rows):
        normalized = intake.normalize_csv_row(row)
        if not normalized.success:
            results.append(
                RowResult(
                    index=index,
                    success=False,
                    error=ErrorKind.VALIDATION_ERROR,
                    errors=normalized.errors,
                )
            )
            continue

        async def work(normalized: IntakeResult = normalized, index: int = index) -> RowResult:
            async with session_factory() as db:
                try:
                    application = await submit_intake(
                        db, normalized, ApplicationSource.IMPORT, notify=notify
                    )
                except DuplicateApplicationError as e:
                    return RowResult(
                        index=index,
                        success=False,
                        application_id=e.existing_id,
                        error=e.error_code,
                        errors=[e.message],
                    )
            return RowResult(index=index, success=True, application_id=application.id)

        results.append(await _run_row(index, work, row_timeout))

    summary = _summarize(results)
    logger.info(
        f"Imported {summary.succeeded} of {summary.total} row(s); {summary.failed} failed"
    )
    return summary


# ============================================
# Reads
# ============================================


async def get_application_status(
    db: AsyncSession,
    application_id: UUID,
    email: str,
) -> ApplicationStatusResponse:
    """
    Coarse status for the applicant.

    Raises:
        ApplicationNotFoundError: If the application doesn't exist
        InvalidEmailError: If the email doesn't match the application
    """
    application = await repository.get_by_id(db, application_id)

    if application is None:
        raise ApplicationNotFoundError(application_id)

    if email.strip().lower() != application.email:
        logger.warning(f"Status check for application {application_id} with mismatched email")
        raise InvalidEmailError()

    return ApplicationStatusResponse(
        id=application.id,
        status=application.status,
        status_label=STATUS_LABELS[application.status],
        status_description=STATUS_DESCRIPTIONS[application.status],
        submitted_at=application.submitted_at,
    )


async def list_applications(
    db: AsyncSession,
    *,
    status: ApplicationStatus | None = None,
    search: str | None = None,
    sort_order: str = "asc",
    skip: int = 0,
    limit: int = 20,
) -> ApplicationListResponse:
    applications, total = await repository.list_applications(
        db, status=status, search=search, sort_order=sort_order, skip=skip, limit=limit
    )
    return ApplicationListResponse(
        items=[ApplicationListItem.model_validate(app) for app in applications],
        total=total,
        skip=skip,
        limit=limit,
    )


async def get_application_detail(
    db: AsyncSession, application_id: UUID
) -> ApplicationDetailResponse:
    """
    Full application with its notes, for reviewers.

    Raises:
        ApplicationNotFoundError: If the application doesn't exist
    """
    application = await repository.get_by_id(db, application_id)
    if application is None:
        raise ApplicationNotFoundError(application_id)

    notes = await repository.get_notes(db, application_id)
    data = ApplicationListItem.model_validate(application).model_dump()
    return ApplicationDetailResponse(
        **data,
        graduation_year=application.graduation_year,
        age_confirmed=application.age_confirmed,
        agreement_accepted=application.agreement_accepted,
        perspective_confirmed=application.perspective_confirmed,
        topics=application.topics,
        session_formats=application.session_formats,
        hours_per_week=application.hours_per_week,
        languages=application.languages,
        prior_experience=application.prior_experience,
        motivation=application.motivation,
        intro_video_url=application.intro_video_url,
        social_links=application.social_links,
        referral_source=application.referral_source,
        notes=[NoteResponse.model_validate(note) for note in notes],
    )


async def add_reviewer_note(
    db: AsyncSession,
    application_id: UUID,
    note: str,
    author: str,
) -> NoteResponse:
    """
    Append a reviewer note.

    Raises:
        ApplicationNotFoundError: If the application doesn't exist
    """
    if await repository.get_status(db, application_id) is None:
        raise ApplicationNotFoundError(application_id)

    created = await repository.append_note(db, application_id, note, NoteKind.REVIEWER, author)
    logger.info(f"Note added to application {application_id} by {author}")
    return NoteResponse.model_validate(created)
