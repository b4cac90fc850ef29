"""
Repository helpers for tracking log rows.

Appends new hits to the tracking_logs table and reads back the complete
log of a resume so metrics can be recomputed from scratch.
"""

from datetime import datetime
from typing import Any

import psycopg
from psycopg.types.json import Jsonb

from resume_tracker.db.helpers import execute_query, fetch_all
from resume_tracker.features.engagement.domain.models import (
    DeviceType,
    TrackingLogEntry,
    TrackingSource,
)
from resume_tracker.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class TrackingLogRepository:
    """Raw SQL helpers for the tracking_logs table."""

    @classmethod
    async def insert_log(
        cls,
        resume_id: str,
        *,
        occurred_at: datetime,
        source: TrackingSource,
        ip_address: str,
        user_agent: str,
        device_type: DeviceType,
        is_cloud_service: bool,
        device_fingerprint: str | None,
        location: str | None = None,
        duration_seconds: float | None = None,
        metadata: dict[str, Any] | None = None,
        connection: psycopg.AsyncConnection | None = None,
    ) -> None:
        query = """
            INSERT INTO tracking_logs (
                resume_id, occurred_at, source, ip_address, user_agent,
                device_type, is_cloud_service, device_fingerprint,
                location, view_duration, metadata
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        """
        await execute_query(
            query,
            (
                resume_id,
                occurred_at,
                source.value,
                ip_address,
                user_agent,
                device_type.value,
                is_cloud_service,
                device_fingerprint,
                location,
                duration_seconds,
                Jsonb(metadata or {}),
            ),
            connection=connection,
        )
        logger.debug(
            "Tracking log appended",
            resume_id=resume_id,
            source=source.value,
            device_type=device_type.value,
            is_cloud_service=is_cloud_service,
        )

    @classmethod
    async def fetch_logs(
        cls, resume_id: str, *, connection: psycopg.AsyncConnection | None = None
    ) -> list[TrackingLogEntry]:
        """Return every tracking log row for the resume in insertion order."""
        query = """
            SELECT
                occurred_at,
                device_type,
                is_cloud_service,
                NULLIF(location, '') AS location,
                view_duration,
                NULLIF(device_fingerprint, '') AS device_fingerprint
            FROM tracking_logs
            WHERE resume_id = %s
            ORDER BY id ASC
        """

        rows = await fetch_all(query, (resume_id,), connection=connection)
        return [cls._row_to_entry(row) for row in rows]

    @staticmethod
    def _row_to_entry(row: dict[str, Any]) -> TrackingLogEntry:
        return TrackingLogEntry(
            occurred_at=row["occurred_at"],
            device_type=DeviceType.parse(row.get("device_type")),
            is_cloud_service=bool(row.get("is_cloud_service")),
            location=row.get("location"),
            duration_seconds=row.get("view_duration"),
            device_fingerprint=row.get("device_fingerprint"),
        )
