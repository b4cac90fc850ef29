"""
State Refresh Background Job - periodic engagement reclassification.

Time alone moves resumes between states (recently_viewed decays into
active, anything untouched for long enough becomes expired), so every
active resume is re-aggregated and reclassified on a fixed interval even
when no new tracking hits arrive.

Usage:
    python -m resume_tracker.jobs.worker state_refresh
"""

import asyncio
from datetime import UTC, datetime

from resume_tracker.config import settings
from resume_tracker.db.pool import db_pool
from resume_tracker.features.engagement.services.tracking_service import (
    TrackingService,
    tracking_service,
)
from resume_tracker.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class StateRefreshJob:
    """Runs one refresh pass at a time over all active resumes."""

    def __init__(self, service: TrackingService | None = None):
        self.service = service or tracking_service
        self.is_running = False
        self.last_run_time: datetime | None = None

    async def run_once(self, now: datetime | None = None) -> dict:
        if self.is_running:
            logger.warning("State refresh job already running, skipping this iteration")
            return {"skipped": True, "reason": "already_running"}

        self.is_running = True
        try:
            logger.info("Starting state refresh job")
            summary = await self.service.refresh_all_resumes(now)
            self.last_run_time = datetime.now(UTC)
            return summary.to_dict()
        finally:
            self.is_running = False


async def start_state_refresh_scheduler() -> None:
    """Run the refresh job forever on the configured interval."""
    job = StateRefreshJob()
    interval_seconds = settings.get_state_refresh_config()["interval_minutes"] * 60

    await db_pool.initialize()
    health = await db_pool.health_check()
    logger.info(
        "State refresh scheduler STARTED",
        interval_seconds=interval_seconds,
        db_healthy=health.healthy,
    )

    try:
        while True:
            try:
                result = await job.run_once()
                logger.info("Scheduled state refresh completed", result=result)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Error in state refresh scheduler, will retry", error=str(e))

            await asyncio.sleep(interval_seconds)
    except asyncio.CancelledError:
        logger.info("State refresh scheduler cancelled")
    finally:
        await db_pool.close()


async def run_state_refresh_once() -> None:
    """Single refresh pass, for cron-style invocation."""
    await db_pool.initialize()
    try:
        result = await StateRefreshJob().run_once()
        logger.info("State refresh run finished", result=result)
    finally:
        await db_pool.close()
