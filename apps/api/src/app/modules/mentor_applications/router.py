"""
Mentor Applications Router

Public endpoints for applicants. No authentication is required since
applicants usually have no app account yet.

Endpoints:
- POST /mentor-applications - Submit a structured application (web app)
- POST /mentor-applications/form - Submit label/answer pairs (hosted form)
- GET /mentor-applications/{id}/status - Get application status

Security:
- Per-IP rate limiting on submissions and status checks
- Status access requires the applicant's email
- Consent fields are fail-closed in the intake normalizer
"""

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.rate_limit import client_ip_key, enforce_rate_limit
from app.modules.mentor_applications import intake, service
from app.modules.mentor_applications.models import ApplicationSource
from app.modules.mentor_applications.schemas import (
    ApplicationStatusResponse,
    FormSubmission,
    IntakeResult,
    SubmitApplicationResponse,
)
from app.modules.mentor_applications.service import (
    DuplicateApplicationError,
    IntakeValidationError,
)
from app.modules.shared import ServiceError

logger = logging.getLogger(__name__)

router = APIRouter()

RATE_LIMIT_SUBMIT = (5, 3600)  # 5 submissions per hour per IP
RATE_LIMIT_STATUS = (30, 60)  # 30 status checks per minute per IP

SUBMITTED_MESSAGE = (
    "Thanks for applying to mentor! We'll email you once a reviewer has looked at your application."
)


def _http_error(e: ServiceError) -> HTTPException:
    detail: dict[str, Any] = e.to_detail()
    if isinstance(e, IntakeValidationError):
        detail["errors"] = e.errors
    if isinstance(e, DuplicateApplicationError) and e.existing_id is not None:
        detail["existing_id"] = str(e.existing_id)
        detail["existing_status"] = e.existing_status.value if e.existing_status else None
    return HTTPException(status_code=e.status_code, detail=detail)


async def _submit(
    db: AsyncSession,
    result: IntakeResult,
    source: ApplicationSource,
) -> SubmitApplicationResponse:
    try:
        application = await service.submit_intake(db, result, source)
    except IntakeValidationError as e:
        logger.info(f"Application rejected by intake: {e.errors}")
        raise _http_error(e) from e
    except DuplicateApplicationError as e:
        logger.warning(f"Duplicate application rejected: {e.message}")
        raise _http_error(e) from e
    except ServiceError as e:
        logger.error(f"Application service error: {e.message}")
        raise _http_error(e) from e
    except Exception as e:
        logger.exception(f"Unexpected error submitting application: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "INTERNAL_ERROR",
                "message": "An unexpected error occurred. Please try again later.",
            },
        ) from e

    return SubmitApplicationResponse(
        id=application.id,
        status=application.status,
        record=result.record,
        message=SUBMITTED_MESSAGE,
    )


@router.post(
    "",
    response_model=SubmitApplicationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit Mentor Application",
    description="""
Submit a mentor application from the web app.

Accepts camelCase or snake_case keys. Required: email, full name,
institution, an explicit 18+ confirmation and acceptance of the mentor
agreement.

**Duplicate Prevention:**
Only one pending or approved application is allowed per email. A rejected
applicant may apply again.
""",
    responses={
        409: {
            "description": "Active application already exists",
            "content": {
                "application/json": {
                    "example": {
                        "detail": {
                            "error": "DUPLICATE_APPLICATION",
                            "message": (
                                "An application for this email is already pending or approved."
                            ),
                            "existing_id": "6f1c...",
                            "existing_status": "pending",
                        }
                    }
                }
            },
        },
        422: {"description": "Missing or invalid required fields"},
        429: {"description": "Rate limit exceeded"},
    },
)
async def submit_application(
    request: Request,
    payload: dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_db),
) -> SubmitApplicationResponse:
    """
    Normalize and store a structured application.

    Raises:
        HTTPException 422: If normalization fails (all problems listed)
        HTTPException 409: If the email already has an active application
    """
    await enforce_rate_limit(client_ip_key(request, "mentor_apply"), *RATE_LIMIT_SUBMIT)

    response = await _submit(db, intake.normalize_api_payload(payload), ApplicationSource.API)
    logger.info(f"Application submitted via API: id={response.id}")
    return response


@router.post(
    "/form",
    response_model=SubmitApplicationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit Mentor Application Form",
    description="""
Submit a hosted-form response as question/answer pairs.

Question labels are matched by keyword, so rewording a question on the
form does not break intake.
""",
)
async def submit_form(
    request: Request,
    data: FormSubmission,
    db: AsyncSession = Depends(get_db),
) -> SubmitApplicationResponse:
    await enforce_rate_limit(client_ip_key(request, "mentor_apply"), *RATE_LIMIT_SUBMIT)

    result = intake.normalize_form_answers(
        [answer.model_dump() for answer in data.answers],
        respondent_email=data.respondent_email,
    )
    response = await _submit(db, result, ApplicationSource.FORM)
    logger.info(f"Application submitted via form: id={response.id}")
    return response


@router.get(
    "/{application_id}/status",
    response_model=ApplicationStatusResponse,
    summary="Get Application Status",
    responses={
        403: {"description": "Email does not match the application"},
        404: {"description": "Application not found"},
    },
)
async def get_application_status(
    request: Request,
    application_id: UUID,
    email: str,
    db: AsyncSession = Depends(get_db),
) -> ApplicationStatusResponse:
    """
    Get the coarse status of an application.

    Args:
        application_id: UUID of the application
        email: Applicant email (must match)
        db: Database session (injected)
    """
    await enforce_rate_limit(client_ip_key(request, "mentor_status"), *RATE_LIMIT_STATUS)

    try:
        return await service.get_application_status(db, application_id, email)
    except ServiceError as e:
        logger.warning(f"Status check failed for {application_id}: {e.error_code.value}")
        raise _http_error(e) from e
