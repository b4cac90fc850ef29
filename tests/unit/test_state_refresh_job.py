from unittest.mock import AsyncMock, MagicMock

import pytest

from resume_tracker.features.engagement.services.tracking_service import StateRefreshSummary
from resume_tracker.jobs.state_refresh_job import StateRefreshJob


@pytest.mark.asyncio
async def test_run_once_returns_summary(now):
    summary = StateRefreshSummary(started_at=now, processed=4, changed=1, skipped=1)
    service = MagicMock()
    service.refresh_all_resumes = AsyncMock(return_value=summary)
    job = StateRefreshJob(service=service)

    result = await job.run_once(now)

    service.refresh_all_resumes.assert_awaited_once_with(now)
    assert result["processed"] == 4
    assert result["changed"] == 1
    assert result["skipped"] == 1
    assert result["failed"] == 0
    assert job.is_running is False
    assert job.last_run_time is not None


@pytest.mark.asyncio
async def test_run_once_skips_overlapping_run():
    service = MagicMock()
    service.refresh_all_resumes = AsyncMock()
    job = StateRefreshJob(service=service)
    job.is_running = True

    result = await job.run_once()

    assert result == {"skipped": True, "reason": "already_running"}
    service.refresh_all_resumes.assert_not_awaited()


@pytest.mark.asyncio
async def test_run_once_resets_flag_on_failure():
    service = MagicMock()
    service.refresh_all_resumes = AsyncMock(side_effect=RuntimeError("db down"))
    job = StateRefreshJob(service=service)

    with pytest.raises(RuntimeError):
        await job.run_once()

    assert job.is_running is False
    assert job.last_run_time is None
