"""
Metrics aggregation for resume tracking logs.

Recomputes every per-resume counter from the complete set of tracking log
rows. The log is the source of truth; the counters stored on the resume are
only a cache of this function's output.
"""

from __future__ import annotations

import math
import statistics
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from resume_tracker.features.engagement.domain.models import (
    DeviceType,
    MetricsSnapshot,
    TrackingLogEntry,
)

DEFAULT_RECENT_WINDOW = timedelta(days=7)


def as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _normalize_location(location: str | None) -> str | None:
    if not location:
        return None
    stripped = location.strip()
    return stripped or None


def _valid_duration(duration: float | None) -> float | None:
    # Negative or non-finite durations are dropped, not rejected
    if duration is None or isinstance(duration, bool):
        return None
    try:
        value = float(duration)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value) or value < 0:
        return None
    return value


def _device_key(entry: TrackingLogEntry) -> tuple[str, str]:
    if entry.device_fingerprint:
        return ("fingerprint", entry.device_fingerprint)
    return ("device", DeviceType.parse(entry.device_type).value)


@dataclass
class _AggregationWorkingSet:
    view_count: int = 0
    cloud_access_count: int = 0
    device_access_count: int = 0
    recent_view_count: int = 0
    locations: set[str] = field(default_factory=set)
    recent_locations: set[str] = field(default_factory=set)
    device_keys: set[tuple[str, str]] = field(default_factory=set)
    durations: list[float] = field(default_factory=list)
    last_accessed_at: datetime | None = None
    last_device_type: DeviceType | None = None


class MetricsAggregator:
    """Pure aggregation of tracking log rows into a MetricsSnapshot."""

    def __init__(self, recent_window: timedelta = DEFAULT_RECENT_WINDOW):
        self.recent_window = recent_window

    def aggregate(self, logs: Iterable[TrackingLogEntry], now: datetime) -> MetricsSnapshot:
        now = as_utc(now)
        window_start = now - self.recent_window
        working = _AggregationWorkingSet()

        for entry in logs:
            occurred_at = as_utc(entry.occurred_at)
            in_window = window_start <= occurred_at <= now
            location = _normalize_location(entry.location)

            working.view_count += 1
            if entry.is_cloud_service:
                working.cloud_access_count += 1
            else:
                working.device_access_count += 1

            if location:
                working.locations.add(location)
                if in_window:
                    working.recent_locations.add(location)

            if in_window:
                working.recent_view_count += 1

            working.device_keys.add(_device_key(entry))

            duration = _valid_duration(entry.duration_seconds)
            if duration is not None:
                working.durations.append(duration)

            # Strictly greater keeps the first maximal entry in input order
            if working.last_accessed_at is None or occurred_at > working.last_accessed_at:
                working.last_accessed_at = occurred_at
                working.last_device_type = DeviceType.parse(entry.device_type)

        average_duration = statistics.fmean(working.durations) if working.durations else 0.0

        return MetricsSnapshot(
            view_count=working.view_count,
            unique_location_count=len(working.locations),
            unique_location_count_last_7_days=len(working.recent_locations),
            cloud_access_count=working.cloud_access_count,
            device_access_count=working.device_access_count,
            distinct_device_count=len(working.device_keys),
            average_view_duration_seconds=average_duration,
            recent_view_count_last_7_days=working.recent_view_count,
            last_accessed_at=working.last_accessed_at,
            last_device_type=working.last_device_type,
        )


def aggregate(
    logs: Iterable[TrackingLogEntry],
    now: datetime,
    recent_window: timedelta = DEFAULT_RECENT_WINDOW,
) -> MetricsSnapshot:
    """Aggregate a resume's complete tracking log as of ``now``."""
    return MetricsAggregator(recent_window).aggregate(logs, now)
