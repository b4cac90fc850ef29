"""
Repository helpers for the resumes table.

Reads the classification projection of a resume and writes back the cached
metrics and engagement state computed by the pipeline.
"""

from datetime import datetime
from typing import Any

import psycopg

from resume_tracker.db.helpers import execute_query, fetch_all, fetch_one
from resume_tracker.features.engagement.domain.models import (
    DeviceType,
    MetricsSnapshot,
    ResumeRecord,
    ResumeState,
    ResumeStatus,
)
from resume_tracker.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

_RESUME_COLUMNS = """
    id::text AS id,
    created_at,
    status,
    application_status,
    state,
    state_updated_at,
    COALESCE(view_count, 0) AS view_count,
    COALESCE(unique_locations, 0) AS unique_locations,
    COALESCE(unique_locations_7d, 0) AS unique_locations_7d,
    COALESCE(cloud_access_count, 0) AS cloud_access_count,
    COALESCE(device_access_count, 0) AS device_access_count,
    COALESCE(distinct_device_count, 0) AS distinct_device_count,
    COALESCE(avg_view_duration, 0) AS avg_view_duration,
    COALESCE(recent_view_count_7d, 0) AS recent_view_count_7d,
    last_accessed_at,
    last_device_type
"""


class ResumeNotFoundError(LookupError):
    """Raised when a tracking hit or refresh references an unknown resume."""

    def __init__(self, resume_id: str):
        super().__init__(f"Resume not found: {resume_id}")
        self.resume_id = resume_id


class ResumeRepository:
    """Raw SQL helpers for resume engagement columns."""

    @classmethod
    async def fetch_resume(
        cls, resume_id: str, *, connection: psycopg.AsyncConnection | None = None
    ) -> ResumeRecord:
        row = await fetch_one(
            f"SELECT {_RESUME_COLUMNS} FROM resumes WHERE id = %s",
            (resume_id,),
            connection=connection,
        )
        if not row:
            raise ResumeNotFoundError(resume_id)
        return cls._row_to_record(row)

    @classmethod
    async def lock_resume(
        cls, resume_id: str, connection: psycopg.AsyncConnection
    ) -> ResumeRecord:
        """
        Row-lock a resume for the rest of the caller's transaction.

        Concurrent hits on the same resume queue on this lock, so
        append -> aggregate -> classify -> persist runs as one unit.
        """
        row = await fetch_one(
            f"SELECT {_RESUME_COLUMNS} FROM resumes WHERE id = %s FOR UPDATE",
            (resume_id,),
            connection=connection,
        )
        if not row:
            raise ResumeNotFoundError(resume_id)
        return cls._row_to_record(row)

    @classmethod
    async def list_active_resume_ids(cls, limit: int, after_id: str | None = None) -> list[str]:
        """Page through active resume ids in id order (keyset pagination)."""
        if after_id is None:
            rows = await fetch_all(
                """
                SELECT id::text AS id FROM resumes
                WHERE status = 'active'
                ORDER BY id ASC
                LIMIT %s
                """,
                (limit,),
            )
        else:
            rows = await fetch_all(
                """
                SELECT id::text AS id FROM resumes
                WHERE status = 'active' AND id > %s
                ORDER BY id ASC
                LIMIT %s
                """,
                (after_id, limit),
            )
        return [row["id"] for row in rows]

    @classmethod
    async def update_metrics(
        cls,
        resume_id: str,
        metrics: MetricsSnapshot,
        *,
        connection: psycopg.AsyncConnection | None = None,
    ) -> None:
        query = """
            UPDATE resumes
            SET view_count = %s,
                unique_locations = %s,
                unique_locations_7d = %s,
                cloud_access_count = %s,
                device_access_count = %s,
                distinct_device_count = %s,
                avg_view_duration = %s,
                recent_view_count_7d = %s,
                last_accessed_at = %s,
                last_device_type = %s,
                updated_at = NOW()
            WHERE id = %s
        """
        await execute_query(
            query,
            (
                metrics.view_count,
                metrics.unique_location_count,
                metrics.unique_location_count_last_7_days,
                metrics.cloud_access_count,
                metrics.device_access_count,
                metrics.distinct_device_count,
                metrics.average_view_duration_seconds,
                metrics.recent_view_count_last_7_days,
                metrics.last_accessed_at,
                metrics.last_device_type.value if metrics.last_device_type else None,
                resume_id,
            ),
            connection=connection,
        )

    @classmethod
    async def update_state(
        cls,
        resume_id: str,
        state: ResumeState,
        state_updated_at: datetime,
        *,
        connection: psycopg.AsyncConnection | None = None,
    ) -> None:
        await execute_query(
            """
            UPDATE resumes
            SET state = %s,
                state_updated_at = %s,
                updated_at = NOW()
            WHERE id = %s
            """,
            (state.value, state_updated_at, resume_id),
            connection=connection,
        )
        logger.debug("Resume state persisted", resume_id=resume_id, state=state.value)

    @staticmethod
    def _row_to_record(row: dict[str, Any]) -> ResumeRecord:
        state = row.get("state")
        last_device_type = row.get("last_device_type")
        metrics = MetricsSnapshot(
            view_count=row["view_count"],
            unique_location_count=row["unique_locations"],
            unique_location_count_last_7_days=row["unique_locations_7d"],
            cloud_access_count=row["cloud_access_count"],
            device_access_count=row["device_access_count"],
            distinct_device_count=row["distinct_device_count"],
            average_view_duration_seconds=float(row["avg_view_duration"]),
            recent_view_count_last_7_days=row["recent_view_count_7d"],
            last_accessed_at=row.get("last_accessed_at"),
            last_device_type=DeviceType.parse(last_device_type) if last_device_type else None,
        )
        return ResumeRecord(
            id=row["id"],
            created_at=row["created_at"],
            status=ResumeStatus(row.get("status") or ResumeStatus.ACTIVE.value),
            application_status=row.get("application_status"),
            state=ResumeState(state) if state else None,
            state_updated_at=row.get("state_updated_at"),
            metrics=metrics,
        )
