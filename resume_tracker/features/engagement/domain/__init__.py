"""
Domain subpackage for resume engagement tracking.
"""

from .models import (
    DeviceType,
    EventType,
    MetricsSnapshot,
    ResumeEvent,
    ResumeRecord,
    ResumeState,
    ResumeStatus,
    TrackingLogEntry,
    TrackingSource,
)

__all__ = [
    "DeviceType",
    "EventType",
    "MetricsSnapshot",
    "ResumeEvent",
    "ResumeRecord",
    "ResumeState",
    "ResumeStatus",
    "TrackingLogEntry",
    "TrackingSource",
]
