"""
Domain models for resume engagement tracking.

These dataclasses describe the shapes flowing between the tracking log,
the metrics aggregator, the state classifier and the storage layer. They
carry no I/O so repositories, services and jobs can share them.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class DeviceType(str, Enum):
    DESKTOP = "desktop"
    MOBILE = "mobile"
    TABLET = "tablet"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> "DeviceType":
        """Map a stored value onto the enum, falling back to UNKNOWN."""
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.UNKNOWN


class ResumeState(str, Enum):
    EXPIRED = "expired"
    FREQUENTLY_ACCESSED = "frequently_accessed"
    MULTI_DEVICE_VIEWED = "multi_device_viewed"
    CLOUD_ACCESSED = "cloud_accessed"
    RECENTLY_VIEWED = "recently_viewed"
    UNDER_CONSIDERATION = "under_consideration"
    NOT_OPENED = "not_opened"
    ACTIVE = "active"


class ResumeStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"
    DELETED = "deleted"


class TrackingSource(str, Enum):
    PIXEL = "pixel"
    LINK = "link"


class EventType(str, Enum):
    VIEW = "view"
    STATE_CHANGE = "state_change"
    CLOUD_ACCESS = "cloud_access"
    MULTI_DEVICE = "multi_device"
    HIGH_ENGAGEMENT = "high_engagement"
    EXPIRED = "expired"


@dataclass(frozen=True, slots=True)
class TrackingLogEntry:
    """One observed access of a resume. Rows are append-only."""

    occurred_at: datetime
    device_type: DeviceType = DeviceType.UNKNOWN
    is_cloud_service: bool = False
    location: str | None = None
    duration_seconds: float | None = None
    device_fingerprint: str | None = None


@dataclass(frozen=True, slots=True)
class MetricsSnapshot:
    """Counters derived from the full tracking log of a single resume."""

    view_count: int
    unique_location_count: int
    unique_location_count_last_7_days: int
    cloud_access_count: int
    device_access_count: int
    distinct_device_count: int
    average_view_duration_seconds: float
    recent_view_count_last_7_days: int
    last_accessed_at: datetime | None
    last_device_type: DeviceType | None

    @classmethod
    def empty(cls) -> "MetricsSnapshot":
        return cls(
            view_count=0,
            unique_location_count=0,
            unique_location_count_last_7_days=0,
            cloud_access_count=0,
            device_access_count=0,
            distinct_device_count=0,
            average_view_duration_seconds=0.0,
            recent_view_count_last_7_days=0,
            last_accessed_at=None,
            last_device_type=None,
        )


@dataclass(slots=True)
class ResumeRecord:
    """Projection of a resumes row as read by the engagement services."""

    id: str
    created_at: datetime
    status: ResumeStatus
    application_status: str | None
    state: ResumeState | None
    state_updated_at: datetime | None
    metrics: MetricsSnapshot

    @property
    def is_frozen(self) -> bool:
        """Archived and deleted resumes no longer aggregate new hits."""
        return self.status != ResumeStatus.ACTIVE


@dataclass(frozen=True, slots=True)
class ResumeEvent:
    """Represents a resume_events row."""

    resume_id: str
    type: EventType
    metadata: dict
    created_at: datetime
