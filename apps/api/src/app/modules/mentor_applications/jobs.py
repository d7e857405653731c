"""
Mentor Applications Background Jobs

Provisioning reconciliation: approved applications whose mentor profile
could not be created at approval time (no app account yet, transient
database error) are retried on a schedule until provisioned_at is set.

- The job is idempotent; provisioned applications are never selected again
- Each application is retried in its own session
- One failing application does not stop the run
"""

import logging
from datetime import UTC, datetime
from typing import Any

from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import settings
from app.core.database import async_session_maker
from app.core.scheduler import register_job
from app.modules.mentor_applications import repository, service

logger = logging.getLogger(__name__)

JOB_ID_RECONCILE_PROVISIONING = "mentor_applications_reconcile_provisioning"
RECONCILE_BATCH_SIZE = 100


async def reconcile_mentor_provisioning(session_factory=async_session_maker) -> dict[str, Any]:
    """
    Retry mentor profile provisioning for approved, unprovisioned applications.

    Returns:
        Dict with job execution summary: executed_at, provisioned, failed,
        skipped and errors (application ids per outcome)
    """
    executed_at = datetime.now(UTC)
    logger.info("Starting mentor provisioning reconciliation")

    results: dict[str, Any] = {
        "executed_at": executed_at.isoformat(),
        "provisioned": [],
        "failed": [],
        "skipped": [],
        "errors": [],
    }

    async with session_factory() as db:
        pending = await repository.get_approved_unprovisioned(db, limit=RECONCILE_BATCH_SIZE)
        application_ids = [application.id for application in pending]

    logger.info(f"Found {len(application_ids)} approved application(s) awaiting provisioning")

    for application_id in application_ids:
        try:
            async with session_factory() as db:
                outcome = await service.retry_provisioning(db, application_id)
            results[outcome].append(str(application_id))
        except Exception as e:
            logger.error(f"Error reconciling application {application_id}: {e}", exc_info=True)
            results["errors"].append(str(application_id))

    logger.info(
        f"Provisioning reconciliation completed. Provisioned: {len(results['provisioned'])}, "
        f"Failed: {len(results['failed'])}, Errors: {len(results['errors'])}"
    )
    return results


def register_mentor_application_jobs() -> None:
    """Register mentor application background jobs. Call before the scheduler starts."""
    interval = settings.provisioning_reconcile_interval_minutes
    register_job(
        job_id=JOB_ID_RECONCILE_PROVISIONING,
        func=reconcile_mentor_provisioning,
        trigger=IntervalTrigger(minutes=interval),
    )
    logger.info(f"Registered job: {JOB_ID_RECONCILE_PROVISIONING} (interval: {interval} minutes)")
