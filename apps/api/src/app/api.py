from fastapi import APIRouter, Depends, HTTPException

from app.core.auth import get_current_reviewer
from app.core.scheduler import list_registered_jobs, pause_job, resume_job, trigger_job_manually
from app.modules.mentor_applications import router as mentor_applications_router
from app.modules.mentor_applications.admin_router import router as admin_mentor_applications_router
from app.modules.role_selection import router as role_selection_router

api_router = APIRouter()

api_router.include_router(
    mentor_applications_router, prefix="/mentor-applications", tags=["Mentor Applications"]
)

api_router.include_router(
    admin_mentor_applications_router,
    prefix="/admin/mentor-applications",
    tags=["Admin - Mentor Applications"],
)

api_router.include_router(role_selection_router, prefix="/users", tags=["Users"])


# ============================================
# Background Job Endpoints
# ============================================
# Jobs run on schedule; these allow reviewers to inspect and run them on demand.

jobs_router = APIRouter(dependencies=[Depends(get_current_reviewer)])


@jobs_router.get("")
async def list_jobs():
    """List registered background jobs with next run time and pause status."""
    return {"jobs": list_registered_jobs()}


@jobs_router.post("/{job_id}/trigger")
async def trigger_job(job_id: str):
    """
    Run a background job immediately, bypassing its schedule.

    Available jobs:
        - mentor_applications_reconcile_provisioning
    """
    try:
        return await trigger_job_manually(job_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


@jobs_router.post("/{job_id}/pause")
async def pause_job_endpoint(job_id: str):
    return {"job_id": job_id, "paused": pause_job(job_id)}


@jobs_router.post("/{job_id}/resume")
async def resume_job_endpoint(job_id: str):
    return {"job_id": job_id, "resumed": resume_job(job_id)}


api_router.include_router(jobs_router, prefix="/admin/jobs", tags=["Admin - Jobs"])
