"""
Resume event recording.

State changes are stored as a state_change event carrying the previous and
new state, followed by any milestone events the transition implies.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

import psycopg

from resume_tracker.features.engagement.domain.models import (
    EventType,
    MetricsSnapshot,
    ResumeEvent,
    ResumeState,
)
from resume_tracker.features.engagement.repository.event_repository import EventRepository
from resume_tracker.infrastructure.observability.logging import get_logger, log_state_transition

logger = get_logger(__name__)

# Milestones emitted only when the state is entered
_ENTRY_MILESTONES = {
    ResumeState.CLOUD_ACCESSED: EventType.CLOUD_ACCESS,
    ResumeState.MULTI_DEVICE_VIEWED: EventType.MULTI_DEVICE,
    ResumeState.EXPIRED: EventType.EXPIRED,
}


def derive_transition_events(
    previous_state: ResumeState | None, new_state: ResumeState
) -> list[tuple[EventType, dict[str, Any]]]:
    """Return the (type, metadata) events implied by a state change, in write order."""
    if previous_state == new_state:
        return []

    events: list[tuple[EventType, dict[str, Any]]] = [
        (
            EventType.STATE_CHANGE,
            {
                "previous_state": previous_state.value if previous_state else None,
                "new_state": new_state.value,
            },
        )
    ]

    milestone = _ENTRY_MILESTONES.get(new_state)
    if milestone is not None:
        events.append((milestone, {}))

    if new_state == ResumeState.FREQUENTLY_ACCESSED:
        events.append((EventType.HIGH_ENGAGEMENT, {}))

    return events


class ResumeEventService:
    async def record_state_change(
        self,
        resume_id: str,
        previous_state: ResumeState | None,
        new_state: ResumeState,
        occurred_at: datetime,
        *,
        connection: psycopg.AsyncConnection | None = None,
        source: str | None = None,
    ) -> list[EventType]:
        events = derive_transition_events(previous_state, new_state)
        for event_type, metadata in events:
            await EventRepository.insert_event(
                resume_id, event_type, metadata, occurred_at, connection=connection
            )

        if events:
            log_state_transition(
                resume_id,
                previous_state.value if previous_state else None,
                new_state.value,
                source=source,
            )
        return [event_type for event_type, _ in events]

    async def record_view(
        self,
        resume_id: str,
        metrics: MetricsSnapshot,
        occurred_at: datetime,
        *,
        connection: psycopg.AsyncConnection | None = None,
        device_type: str | None = None,
        source: str | None = None,
        location: str | None = None,
    ) -> None:
        metadata: dict[str, Any] = {
            "view_count": metrics.view_count,
            "unique_locations": metrics.unique_location_count,
        }
        if device_type:
            metadata["device_type"] = device_type
        if source:
            metadata["source"] = source
        if location:
            metadata["location"] = location

        await EventRepository.insert_event(
            resume_id, EventType.VIEW, metadata, occurred_at, connection=connection
        )

    async def get_resume_events(
        self, resume_id: str, *, days: int | None = None, limit: int = 50
    ) -> list[ResumeEvent]:
        since = datetime.now(UTC) - timedelta(days=days) if days else None
        return await EventRepository.fetch_events(resume_id, since=since, limit=limit)

    async def get_event_stats(self, resume_id: str) -> dict[str, int]:
        """Count a resume's events by type, zero-filling types never seen."""
        counts = await EventRepository.count_events_by_type(resume_id)
        return {event_type.value: counts.get(event_type.value, 0) for event_type in EventType}


resume_event_service = ResumeEventService()
