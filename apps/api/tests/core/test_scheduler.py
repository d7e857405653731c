"""
Tests for background job registration and manual triggering.
"""

from unittest.mock import AsyncMock, patch

import pytest
from apscheduler.triggers.interval import IntervalTrigger

from app.core import scheduler
from app.modules.mentor_applications.jobs import (
    JOB_ID_RECONCILE_PROVISIONING,
    register_mentor_application_jobs,
)


@pytest.fixture(autouse=True)
def clean_registry():
    with patch.dict(scheduler._job_registry, clear=True):
        yield


class TestRegistry:
    def test_register_mentor_jobs(self):
        register_mentor_application_jobs()

        jobs = scheduler.list_registered_jobs()

        assert [job["job_id"] for job in jobs] == [JOB_ID_RECONCILE_PROVISIONING]

    @pytest.mark.asyncio
    async def test_jobs_registered_before_start_are_scheduled(self):
        scheduler.register_job("noop_job", AsyncMock(), IntervalTrigger(minutes=5))

        await scheduler.start_scheduler()
        try:
            jobs = scheduler.list_registered_jobs()
            assert jobs[0]["job_id"] == "noop_job"
            assert jobs[0]["next_run_time"] is not None
            assert scheduler.pause_job("noop_job") is True
            assert scheduler.list_registered_jobs()[0]["is_paused"] is True
        finally:
            await scheduler.stop_scheduler()


class TestTriggerJobManually:
    @pytest.mark.asyncio
    async def test_success_returns_job_result(self):
        job = AsyncMock(return_value={"provisioned": ["x"]})
        scheduler.register_job("reconcile", job, IntervalTrigger(minutes=5))

        result = await scheduler.trigger_job_manually("reconcile")

        assert result["status"] == "success"
        assert result["result"] == {"provisioned": ["x"]}
        job.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failure_is_reported(self):
        scheduler.register_job(
            "broken", AsyncMock(side_effect=RuntimeError("boom")), IntervalTrigger(minutes=5)
        )

        result = await scheduler.trigger_job_manually("broken")

        assert result["status"] == "error"
        assert result["error"] == "boom"

    @pytest.mark.asyncio
    async def test_unknown_job(self):
        with pytest.raises(ValueError):
            await scheduler.trigger_job_manually("missing")
