"""
Repository helpers for the resume_events table.
"""

from datetime import datetime
from typing import Any

import psycopg
from psycopg.types.json import Jsonb

from resume_tracker.db.helpers import execute_query, fetch_all
from resume_tracker.features.engagement.domain.models import EventType, ResumeEvent
from resume_tracker.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class EventRepository:
    """Thin wrappers for appending and reading resume events."""

    @staticmethod
    async def insert_event(
        resume_id: str,
        event_type: EventType,
        metadata: dict[str, Any],
        created_at: datetime,
        *,
        connection: psycopg.AsyncConnection | None = None,
    ) -> None:
        await execute_query(
            """
            INSERT INTO resume_events (resume_id, type, metadata, created_at)
            VALUES (%s, %s, %s, %s)
            """,
            (resume_id, event_type.value, Jsonb(metadata), created_at),
            connection=connection,
        )

    @staticmethod
    async def fetch_events(
        resume_id: str, since: datetime | None = None, limit: int = 50
    ) -> list[ResumeEvent]:
        if since is None:
            rows = await fetch_all(
                """
                SELECT resume_id::text AS resume_id, type, metadata, created_at
                FROM resume_events
                WHERE resume_id = %s
                ORDER BY created_at DESC
                LIMIT %s
                """,
                (resume_id, limit),
            )
        else:
            rows = await fetch_all(
                """
                SELECT resume_id::text AS resume_id, type, metadata, created_at
                FROM resume_events
                WHERE resume_id = %s
                  AND created_at >= %s
                ORDER BY created_at DESC
                LIMIT %s
                """,
                (resume_id, since, limit),
            )

        events: list[ResumeEvent] = []
        for row in rows:
            try:
                event_type = EventType(row["type"])
            except ValueError:
                logger.warning("Skipping unknown resume event type", type=row["type"])
                continue
            events.append(
                ResumeEvent(
                    resume_id=row["resume_id"],
                    type=event_type,
                    metadata=row.get("metadata") or {},
                    created_at=row["created_at"],
                )
            )
        return events

    @staticmethod
    async def count_events_by_type(resume_id: str) -> dict[str, int]:
        rows = await fetch_all(
            """
            SELECT type, COUNT(*) AS count
            FROM resume_events
            WHERE resume_id = %s
            GROUP BY type
            """,
            (resume_id,),
        )
        return {row["type"]: row["count"] for row in rows}
