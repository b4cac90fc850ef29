"""
Tracking hit ingestion and engagement refresh.

Every write path runs append -> aggregate -> classify -> persist inside one
transaction that starts by row-locking the resume, so two hits racing on the
same resume are serialized and neither update is lost. Different resumes are
refreshed concurrently.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

import psycopg

from resume_tracker.config import settings
from resume_tracker.db.helpers import with_db_retry
from resume_tracker.db.pool import get_db_transaction
from resume_tracker.features.engagement.domain.models import (
    MetricsSnapshot,
    ResumeRecord,
    ResumeState,
    TrackingSource,
)
from resume_tracker.features.engagement.pipeline.aggregation.repository import (
    TrackingLogRepository,
)
from resume_tracker.features.engagement.pipeline.aggregation.service import MetricsAggregator
from resume_tracker.features.engagement.pipeline.classification.service import StateClassifier
from resume_tracker.features.engagement.repository.resume_repository import (
    ResumeNotFoundError,
    ResumeRepository,
)
from resume_tracker.features.engagement.user_agent import classify_user_agent
from resume_tracker.infrastructure.observability.logging import get_logger
from resume_tracker.security.hashing import fingerprint_device

from .event_service import resume_event_service

logger = get_logger(__name__)


@dataclass(slots=True)
class TrackingHit:
    """A single pixel load or redirect-link click."""

    resume_id: str
    source: TrackingSource
    ip_address: str = "unknown"
    user_agent: str = "unknown"
    location: str | None = None
    duration_seconds: float | None = None
    target_url: str | None = None


@dataclass(slots=True)
class RefreshResult:
    resume_id: str
    previous_state: ResumeState | None
    state: ResumeState | None
    metrics: MetricsSnapshot | None
    state_changed: bool = False
    skipped: bool = False


@dataclass
class StateRefreshSummary:
    """Counters for one pass over all active resumes."""

    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    processed: int = 0
    changed: int = 0
    skipped: int = 0
    failed: int = 0
    duration_seconds: float = 0.0
    errors: list[dict[str, Any]] = field(default_factory=list)

    def record(self, resume_id: str, outcome: RefreshResult | BaseException) -> None:
        self.processed += 1
        if isinstance(outcome, BaseException):
            self.failed += 1
            self.errors.append(
                {
                    "resume_id": resume_id,
                    "error": str(outcome) or type(outcome).__name__,
                    "error_type": type(outcome).__name__,
                }
            )
            logger.warning(
                "Resume refresh failed",
                resume_id=resume_id,
                error=str(outcome),
                error_type=type(outcome).__name__,
            )
        elif outcome.skipped:
            self.skipped += 1
        elif outcome.state_changed:
            self.changed += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "duration_seconds": round(self.duration_seconds, 2),
            "processed": self.processed,
            "changed": self.changed,
            "skipped": self.skipped,
            "failed": self.failed,
            "errors_count": len(self.errors),
        }


class TrackingService:
    def __init__(
        self,
        aggregator: MetricsAggregator | None = None,
        classifier: StateClassifier | None = None,
    ):
        self.aggregator = aggregator or MetricsAggregator(
            timedelta(days=settings.ENGAGEMENT_RECENT_WINDOW_DAYS)
        )
        self.classifier = classifier or StateClassifier(settings.get_classification_thresholds())

    @with_db_retry()
    async def record_hit(self, hit: TrackingHit, now: datetime | None = None) -> RefreshResult:
        """
        Append a tracking log row for the hit and refresh the resume.

        Raises:
            ResumeNotFoundError: If the resume id is unknown
        """
        now = now or datetime.now(UTC)
        agent = classify_user_agent(hit.user_agent)
        fingerprint = self._fingerprint(hit)

        async with await get_db_transaction() as conn:
            resume = await ResumeRepository.lock_resume(hit.resume_id, conn)
            if resume.is_frozen:
                return self._skip_frozen(resume, source=hit.source.value)

            metadata = {"target_url": hit.target_url} if hit.target_url else {}
            await TrackingLogRepository.insert_log(
                hit.resume_id,
                occurred_at=now,
                source=hit.source,
                ip_address=hit.ip_address or "unknown",
                user_agent=hit.user_agent or "unknown",
                device_type=agent.device_type,
                is_cloud_service=agent.is_cloud_service,
                device_fingerprint=fingerprint,
                location=hit.location,
                duration_seconds=hit.duration_seconds,
                metadata=metadata,
                connection=conn,
            )

            result = await self._recompute(resume, now, conn, source=hit.source.value)
            await resume_event_service.record_view(
                resume.id,
                result.metrics,
                now,
                connection=conn,
                device_type=agent.device_type.value,
                source=hit.source.value,
                location=hit.location,
            )

        logger.info(
            "Tracking hit recorded",
            resume_id=hit.resume_id,
            source=hit.source.value,
            device_type=agent.device_type.value,
            is_cloud_service=agent.is_cloud_service,
            state=result.state.value if result.state else None,
            state_changed=result.state_changed,
        )
        return result

    @with_db_retry()
    async def refresh_resume(self, resume_id: str, now: datetime | None = None) -> RefreshResult:
        """
        Recompute metrics and state from the stored log without appending.

        Raises:
            ResumeNotFoundError: If the resume id is unknown
        """
        now = now or datetime.now(UTC)
        async with await get_db_transaction() as conn:
            resume = await ResumeRepository.lock_resume(resume_id, conn)
            if resume.is_frozen:
                return self._skip_frozen(resume, source="refresh")
            return await self._recompute(resume, now, conn, source="refresh")

    async def refresh_all_resumes(
        self,
        now: datetime | None = None,
        *,
        batch_size: int | None = None,
        max_concurrency: int | None = None,
        timeout_seconds: float | None = None,
    ) -> StateRefreshSummary:
        """Refresh every active resume, one batch of ids at a time."""
        config = settings.get_state_refresh_config()
        batch_size = batch_size or config["batch_size"]
        semaphore = asyncio.Semaphore(max_concurrency or config["max_concurrency"])
        timeout_seconds = timeout_seconds or config["timeout_seconds"]
        now = now or datetime.now(UTC)

        summary = StateRefreshSummary()
        start_time = time.time()
        after_id: str | None = None

        while True:
            resume_ids = await ResumeRepository.list_active_resume_ids(batch_size, after_id)
            if not resume_ids:
                break

            outcomes = await asyncio.gather(
                *(
                    self._refresh_with_semaphore(semaphore, resume_id, now, timeout_seconds)
                    for resume_id in resume_ids
                ),
                return_exceptions=True,
            )
            for resume_id, outcome in zip(resume_ids, outcomes):
                summary.record(resume_id, outcome)

            if len(resume_ids) < batch_size:
                break
            after_id = resume_ids[-1]

        summary.duration_seconds = time.time() - start_time
        logger.info("Resume state refresh completed", **summary.to_dict())
        return summary

    async def _refresh_with_semaphore(
        self,
        semaphore: asyncio.Semaphore,
        resume_id: str,
        now: datetime,
        timeout_seconds: float,
    ) -> RefreshResult:
        async with semaphore:
            return await asyncio.wait_for(self.refresh_resume(resume_id, now), timeout_seconds)

    async def _recompute(
        self,
        resume: ResumeRecord,
        now: datetime,
        conn: psycopg.AsyncConnection,
        *,
        source: str,
    ) -> RefreshResult:
        logs = await TrackingLogRepository.fetch_logs(resume.id, connection=conn)
        metrics = self.aggregator.aggregate(logs, now)
        state = self.classifier.classify(
            metrics, resume.created_at, resume.application_status, now
        )

        if metrics != resume.metrics:
            await ResumeRepository.update_metrics(resume.id, metrics, connection=conn)

        state_changed = state != resume.state
        if state_changed:
            await ResumeRepository.update_state(resume.id, state, now, connection=conn)
            await resume_event_service.record_state_change(
                resume.id, resume.state, state, now, connection=conn, source=source
            )

        return RefreshResult(
            resume_id=resume.id,
            previous_state=resume.state,
            state=state,
            metrics=metrics,
            state_changed=state_changed,
        )

    def _skip_frozen(self, resume: ResumeRecord, *, source: str) -> RefreshResult:
        logger.warning(
            "Skipping engagement refresh for frozen resume",
            resume_id=resume.id,
            status=resume.status.value,
            source=source,
        )
        return RefreshResult(
            resume_id=resume.id,
            previous_state=resume.state,
            state=resume.state,
            metrics=resume.metrics,
            skipped=True,
        )

    def _fingerprint(self, hit: TrackingHit) -> str | None:
        if not settings.FINGERPRINT_SECRET:
            return None
        return fingerprint_device(hit.ip_address, hit.user_agent)


tracking_service = TrackingService()

__all__ = [
    "RefreshResult",
    "ResumeNotFoundError",
    "StateRefreshSummary",
    "TrackingHit",
    "TrackingService",
    "tracking_service",
]
