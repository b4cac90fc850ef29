"""
Per-resume analytics summary for dashboards.

Combines the recent tracking window, the cached metrics and the state-change
history into one payload, including a 0-100 engagement score.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from resume_tracker.config import settings
from resume_tracker.features.engagement.domain.models import (
    DeviceType,
    EventType,
    MetricsSnapshot,
    ResumeEvent,
    ResumeState,
    TrackingLogEntry,
)
from resume_tracker.features.engagement.pipeline.aggregation.repository import (
    TrackingLogRepository,
)
from resume_tracker.features.engagement.pipeline.aggregation.service import aggregate, as_utc
from resume_tracker.features.engagement.repository.event_repository import EventRepository
from resume_tracker.features.engagement.repository.resume_repository import ResumeRepository
from resume_tracker.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

EVENT_HISTORY_DAYS = 30
EVENT_HISTORY_LIMIT = 50


@dataclass(slots=True)
class DeviceShare:
    device_type: str
    count: int
    percentage: int


@dataclass(slots=True)
class StateHistoryEntry:
    timestamp: datetime
    previous_state: str | None
    new_state: str


@dataclass(slots=True)
class ResumeAnalytics:
    recent_views: int
    total_views: int
    location_count: int
    engagement_score: int
    device_distribution: list[DeviceShare] = field(default_factory=list)
    state_history: list[StateHistoryEntry] = field(default_factory=list)
    metrics: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        for entry in payload["state_history"]:
            entry["timestamp"] = entry["timestamp"].isoformat()
        last_accessed_at = payload["metrics"].get("last_accessed_at")
        if last_accessed_at is not None:
            payload["metrics"]["last_accessed_at"] = last_accessed_at.isoformat()
        return payload


def compute_engagement_score(
    recent_views: int, location_count: int, average_duration_seconds: float, distinct_devices: int
) -> int:
    raw = (
        recent_views * 30
        + location_count * 20
        + (average_duration_seconds / 60) * 30
        + (20 if distinct_devices > 1 else 0)
    ) / 2
    return min(100, round(raw))


def _device_distribution(logs: Iterable[TrackingLogEntry]) -> list[DeviceShare]:
    counts = Counter(DeviceType.parse(log.device_type).value for log in logs)
    total = sum(counts.values())
    return [
        DeviceShare(
            device_type=device_type,
            count=count,
            percentage=round(count / total * 100) if total else 0,
        )
        for device_type, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    ]


def _state_history(events: Iterable[ResumeEvent]) -> list[StateHistoryEntry]:
    history = []
    for event in events:
        if event.type != EventType.STATE_CHANGE:
            continue
        history.append(
            StateHistoryEntry(
                timestamp=event.created_at,
                previous_state=event.metadata.get("previous_state"),
                new_state=event.metadata.get("new_state") or ResumeState.NOT_OPENED.value,
            )
        )
    history.sort(key=lambda entry: entry.timestamp, reverse=True)
    return history


def build_resume_analytics(
    logs: list[TrackingLogEntry],
    events: list[ResumeEvent],
    metrics: MetricsSnapshot,
    now: datetime,
    recent_window: timedelta = timedelta(days=7),
) -> ResumeAnalytics:
    """Summarize a resume's engagement as of ``now``."""
    now = as_utc(now)
    window_start = now - recent_window
    recent_logs = [log for log in logs if window_start <= as_utc(log.occurred_at) <= now]
    recent = aggregate(recent_logs, now, recent_window)

    return ResumeAnalytics(
        recent_views=recent.recent_view_count_last_7_days,
        total_views=metrics.view_count,
        location_count=recent.unique_location_count_last_7_days,
        engagement_score=compute_engagement_score(
            recent.recent_view_count_last_7_days,
            recent.unique_location_count_last_7_days,
            metrics.average_view_duration_seconds,
            metrics.distinct_device_count,
        ),
        device_distribution=_device_distribution(recent_logs),
        state_history=_state_history(events),
        metrics={
            "avg_view_duration": metrics.average_view_duration_seconds,
            "device_access_count": metrics.device_access_count,
            "distinct_device_count": metrics.distinct_device_count,
            "cloud_access_count": metrics.cloud_access_count,
            "last_accessed_at": metrics.last_accessed_at,
        },
    )


class ResumeAnalyticsService:
    async def get_resume_analytics(
        self, resume_id: str, now: datetime | None = None
    ) -> ResumeAnalytics:
        now = now or datetime.now(UTC)
        resume = await ResumeRepository.fetch_resume(resume_id)
        logs = await TrackingLogRepository.fetch_logs(resume_id)
        events = await EventRepository.fetch_events(
            resume_id,
            since=now - timedelta(days=EVENT_HISTORY_DAYS),
            limit=EVENT_HISTORY_LIMIT,
        )

        analytics = build_resume_analytics(
            logs,
            events,
            resume.metrics,
            now,
            recent_window=timedelta(days=settings.ENGAGEMENT_RECENT_WINDOW_DAYS),
        )
        logger.debug(
            "Resume analytics built",
            resume_id=resume_id,
            recent_views=analytics.recent_views,
            engagement_score=analytics.engagement_score,
        )
        return analytics


resume_analytics_service = ResumeAnalyticsService()
