"""
Service layer for resume engagement tracking.

The TrackingService singleton is imported from its own module
(``services.tracking_service.tracking_service``) so the package attribute
keeps pointing at the submodule.
"""

from .analytics_service import ResumeAnalyticsService, resume_analytics_service
from .event_service import ResumeEventService, resume_event_service
from .tracking_service import TrackingHit, TrackingService

__all__ = [
    "ResumeAnalyticsService",
    "resume_analytics_service",
    "ResumeEventService",
    "resume_event_service",
    "TrackingHit",
    "TrackingService",
]
