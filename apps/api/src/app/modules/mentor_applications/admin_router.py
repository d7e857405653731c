"""
Mentor Applications Admin Router

Reviewer endpoints for the mentor application queue. All endpoints require
a valid access token with the reviewer role.

Endpoints:
- GET /admin/mentor-applications - List applications with filters and pagination
- GET /admin/mentor-applications/{id} - Get application details and notes
- POST /admin/mentor-applications/{id}/approve - Approve (provisions mentor profile)
- POST /admin/mentor-applications/{id}/reject - Reject
- POST /admin/mentor-applications/{id}/transition - Approve or reject by target status
- POST /admin/mentor-applications/{id}/notes - Add reviewer note
- POST /admin/mentor-applications/review-edits - Apply a manual-review sheet edit
- POST /admin/mentor-applications/reprocess - Batch re-run of decisions
- POST /admin/mentor-applications/import - Import spreadsheet rows

Repeated decisions are safe: a second approve or reject of an application
that already left ``pending`` answers 200 with ``noop: true``.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CurrentUser, get_current_reviewer
from app.core.database import async_session_maker, get_db
from app.core.rate_limit import enforce_rate_limit
from app.modules.mentor_applications import service
from app.modules.mentor_applications.models import ApplicationStatus
from app.modules.mentor_applications.schemas import (
    AddNoteRequest,
    ApplicationDetailResponse,
    ApplicationListResponse,
    BatchResult,
    DecisionRequest,
    ImportRequest,
    NoteResponse,
    ReprocessRequest,
    ReviewEdit,
    ReviewEditResult,
    TransitionRequest,
    TransitionResult,
)
from app.modules.shared import ServiceError

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================
# Rate Limiting Configuration
# ============================================

RATE_LIMIT_DECISION = (30, 60)  # 30 approvals/rejections per minute
RATE_LIMIT_NOTES = (30, 60)  # 30 notes per minute
RATE_LIMIT_REVIEW_EDITS = (120, 60)  # sheet webhooks fire per cell
RATE_LIMIT_BATCH = (5, 60)  # 5 batch runs per minute


async def _check_reviewer_rate_limit(
    reviewer: CurrentUser,
    action: str,
    limit: int,
    window_seconds: int,
) -> None:
    await enforce_rate_limit(f"admin:mentor_{action}:{reviewer.id}", limit, window_seconds)


# ============================================
# Helper Functions
# ============================================


def _handle_service_error(e: ServiceError) -> None:
    """Convert service errors to HTTPExceptions."""
    raise HTTPException(status_code=e.status_code, detail=e.to_detail()) from e


def _transition_response(application_id: UUID, result: TransitionResult) -> TransitionResult:
    """Map a failed transition onto its HTTP error; pass successes and no-ops through."""
    if result.success:
        return result

    error_class = service.TRANSITION_ERRORS.get(result.error)
    if error_class is not None:
        logger.warning(f"Decision on {application_id} failed: {result.error.value}")
        _handle_service_error(error_class(application_id))

    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={
            "error": result.error.value if result.error else "VALIDATION_ERROR",
            "message": "Only 'approved' or 'rejected' are valid decisions.",
        },
    )


async def _decide(
    db: AsyncSession,
    application_id: UUID,
    target_status: ApplicationStatus,
    reviewer: CurrentUser,
    reason: str | None = None,
) -> TransitionResult:
    try:
        result = await service.transition_application(
            db, application_id, target_status, str(reviewer.id), reason=reason
        )
    except Exception as e:
        logger.exception(f"Error deciding application {application_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "INTERNAL_ERROR", "message": "An unexpected error occurred."},
        ) from e

    logger.info(
        f"Reviewer {reviewer.id} requested {target_status.value} for {application_id}: "
        f"success={result.success}, noop={result.noop}, error={result.error}"
    )
    return _transition_response(application_id, result)


# ============================================
# Queue
# ============================================


@router.get(
    "",
    response_model=ApplicationListResponse,
    summary="List Mentor Applications",
)
async def list_applications(
    status_filter: ApplicationStatus | None = Query(None, alias="status"),
    search: str | None = Query(None, max_length=100),
    sort_order: str = Query("asc", pattern="^(asc|desc)$"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    reviewer: CurrentUser = Depends(get_current_reviewer),
) -> ApplicationListResponse:
    """List applications, oldest first by default (review queue order)."""
    return await service.list_applications(
        db, status=status_filter, search=search, sort_order=sort_order, skip=skip, limit=limit
    )


@router.get(
    "/{application_id}",
    response_model=ApplicationDetailResponse,
    summary="Get Mentor Application Details",
)
async def get_application_detail(
    application_id: UUID,
    db: AsyncSession = Depends(get_db),
    reviewer: CurrentUser = Depends(get_current_reviewer),
) -> ApplicationDetailResponse:
    try:
        return await service.get_application_detail(db, application_id)
    except ServiceError as e:
        logger.warning(f"Application detail unavailable for {application_id}: {e.message}")
        _handle_service_error(e)


# ============================================
# Decisions
# ============================================


@router.post(
    "/{application_id}/approve",
    response_model=TransitionResult,
    summary="Approve Mentor Application",
    description="""
Approve a pending application.

On success the applicant is notified and a mentor profile is provisioned
when their account exists. A provisioning failure never undoes the
approval; it is recorded as a note and retried in the background.
""",
    responses={
        404: {"description": "Application not found"},
        409: {"description": "Applicant already is a mentor"},
    },
)
async def approve_application(
    application_id: UUID,
    data: DecisionRequest | None = None,
    db: AsyncSession = Depends(get_db),
    reviewer: CurrentUser = Depends(get_current_reviewer),
) -> TransitionResult:
    await _check_reviewer_rate_limit(reviewer, "decision", *RATE_LIMIT_DECISION)
    reason = data.reason if data else None
    return await _decide(db, application_id, ApplicationStatus.APPROVED, reviewer, reason)


@router.post(
    "/{application_id}/reject",
    response_model=TransitionResult,
    summary="Reject Mentor Application",
)
async def reject_application(
    application_id: UUID,
    data: DecisionRequest | None = None,
    db: AsyncSession = Depends(get_db),
    reviewer: CurrentUser = Depends(get_current_reviewer),
) -> TransitionResult:
    await _check_reviewer_rate_limit(reviewer, "decision", *RATE_LIMIT_DECISION)
    reason = data.reason if data else None
    return await _decide(db, application_id, ApplicationStatus.REJECTED, reviewer, reason)


@router.post(
    "/{application_id}/transition",
    response_model=TransitionResult,
    summary="Transition Mentor Application",
)
async def transition_application(
    application_id: UUID,
    data: TransitionRequest,
    db: AsyncSession = Depends(get_db),
    reviewer: CurrentUser = Depends(get_current_reviewer),
) -> TransitionResult:
    await _check_reviewer_rate_limit(reviewer, "decision", *RATE_LIMIT_DECISION)
    return await _decide(db, application_id, data.target_status, reviewer)


@router.post(
    "/{application_id}/notes",
    response_model=NoteResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add Reviewer Note",
)
async def add_note(
    application_id: UUID,
    data: AddNoteRequest,
    db: AsyncSession = Depends(get_db),
    reviewer: CurrentUser = Depends(get_current_reviewer),
) -> NoteResponse:
    await _check_reviewer_rate_limit(reviewer, "notes", *RATE_LIMIT_NOTES)

    try:
        return await service.add_reviewer_note(db, application_id, data.note, str(reviewer.id))
    except ServiceError as e:
        logger.warning(f"Note rejected for {application_id}: {e.message}")
        _handle_service_error(e)


# ============================================
# Sheet and batch triggers
# ============================================


@router.post(
    "/review-edits",
    response_model=ReviewEditResult,
    summary="Apply Manual-Review Sheet Edit",
    description="""
Webhook for the manual-review spreadsheet.

An edit to an approval column ("Approved?") approves on a truthy value and
rejects on "no"/"rejected". An edit to a notes column adds a reviewer
note. Other columns are ignored. Redelivered edits are no-ops.
""",
)
async def apply_review_edit(
    data: ReviewEdit,
    db: AsyncSession = Depends(get_db),
    reviewer: CurrentUser = Depends(get_current_reviewer),
) -> ReviewEditResult:
    await _check_reviewer_rate_limit(reviewer, "review_edits", *RATE_LIMIT_REVIEW_EDITS)

    if not data.editor:
        data.editor = reviewer.email

    result = await service.handle_review_edit(db, data)
    logger.info(
        f"Review edit '{data.column_label}' for {result.application_id or data.email}: "
        f"{result.action}"
    )
    return result


@router.post(
    "/reprocess",
    response_model=BatchResult,
    summary="Reprocess Mentor Applications",
    description="""
Re-run approval decisions for many applications.

Each row is isolated with its own database session and timeout, so a slow
or failing row does not affect the others. Rows that already left
``pending`` report ``noop: true``.
""",
)
async def reprocess_applications(
    data: ReprocessRequest,
    reviewer: CurrentUser = Depends(get_current_reviewer),
) -> BatchResult:
    await _check_reviewer_rate_limit(reviewer, "batch", *RATE_LIMIT_BATCH)
    return await service.reprocess_applications(async_session_maker, data.items, str(reviewer.id))


@router.post(
    "/import",
    response_model=BatchResult,
    summary="Import Mentor Applications",
)
async def import_applications(
    data: ImportRequest,
    reviewer: CurrentUser = Depends(get_current_reviewer),
) -> BatchResult:
    """Import spreadsheet rows keyed by column header; invalid rows are reported per row."""
    await _check_reviewer_rate_limit(reviewer, "batch", *RATE_LIMIT_BATCH)
    logger.info(f"Reviewer {reviewer.id} importing {len(data.rows)} row(s)")
    return await service.import_rows(async_session_maker, data.rows)
