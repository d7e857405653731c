"""
Role Selection Router

Endpoints:
- POST /users/me/role - Choose student, mentor or both (once)
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CurrentUser, get_current_user
from app.core.database import get_db
from app.core.rate_limit import enforce_rate_limit
from app.modules.role_selection import service
from app.modules.role_selection.schemas import RoleSelectionRequest, RoleSelectionResult
from app.modules.shared import ServiceError

logger = logging.getLogger(__name__)

router = APIRouter()

RATE_LIMIT_SELECT_ROLE = (10, 60)


@router.post(
    "/me/role",
    response_model=RoleSelectionResult,
    summary="Select Role",
    description="""
Lock the caller's role. The choice is permanent.

- **student**: mentor profile, expertise, mentor content and mentor
  preferences are deleted
- **mentor**: saved items, questions and student preferences are deleted
- **both**: nothing is deleted
""",
    responses={
        400: {"description": "Role 'unset' cannot be selected"},
        404: {"description": "Account not found"},
        409: {"description": "Role already locked, or the lock could not be verified"},
    },
)
async def select_role(
    data: RoleSelectionRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> RoleSelectionResult:
    await enforce_rate_limit(f"users:select_role:{current_user.id}", *RATE_LIMIT_SELECT_ROLE)

    try:
        return await service.select_role(db, current_user.id, data.role)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "VALIDATION_ERROR", "message": str(e)},
        ) from e
    except ServiceError as e:
        logger.warning(f"Role selection failed for {current_user.id}: {e.error_code.value}")
        raise HTTPException(status_code=e.status_code, detail=e.to_detail()) from e
