import importlib
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from resume_tracker.features.engagement.domain.models import (
    DeviceType,
    MetricsSnapshot,
    ResumeRecord,
    ResumeStatus,
    TrackingLogEntry,
)
from resume_tracker.features.engagement.pipeline.aggregation.repository import (
    TrackingLogRepository,
)
from resume_tracker.features.engagement.repository.event_repository import EventRepository
from resume_tracker.features.engagement.repository.resume_repository import ResumeRepository

tracking_service_module = importlib.import_module(
    "resume_tracker.features.engagement.services.tracking_service"
)

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=UTC)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_log():
    def _make(
        occurred_at: datetime = NOW,
        device_type: DeviceType = DeviceType.DESKTOP,
        is_cloud_service: bool = False,
        location: str | None = None,
        duration_seconds: float | None = None,
        device_fingerprint: str | None = None,
    ) -> TrackingLogEntry:
        return TrackingLogEntry(
            occurred_at=occurred_at,
            device_type=device_type,
            is_cloud_service=is_cloud_service,
            location=location,
            duration_seconds=duration_seconds,
            device_fingerprint=device_fingerprint,
        )

    return _make


@pytest.fixture
def make_resume():
    def _make(**overrides) -> ResumeRecord:
        values = {
            "id": "resume-1",
            "created_at": NOW - timedelta(days=1),
            "status": ResumeStatus.ACTIVE,
            "application_status": None,
            "state": None,
            "state_updated_at": None,
            "metrics": MetricsSnapshot.empty(),
        }
        values.update(overrides)
        return ResumeRecord(**values)

    return _make


class FakeTransaction:
    def __init__(self):
        self.conn = object()
        self.entered = 0

    async def __aenter__(self):
        self.entered += 1
        return self.conn

    async def __aexit__(self, exc_type, exc, tb):
        return False


@pytest.fixture
def fake_transaction(monkeypatch):
    transaction = FakeTransaction()

    async def _get_transaction():
        return transaction

    monkeypatch.setattr(tracking_service_module, "get_db_transaction", _get_transaction)
    return transaction


@pytest.fixture
def repo_mocks(monkeypatch):
    """Replace every repository call used by the tracking service with AsyncMocks."""
    mocks = {
        "lock_resume": AsyncMock(),
        "update_metrics": AsyncMock(),
        "update_state": AsyncMock(),
        "list_active_resume_ids": AsyncMock(return_value=[]),
        "insert_log": AsyncMock(),
        "fetch_logs": AsyncMock(return_value=[]),
        "insert_event": AsyncMock(),
    }
    for name in ("lock_resume", "update_metrics", "update_state", "list_active_resume_ids"):
        monkeypatch.setattr(ResumeRepository, name, mocks[name])
    monkeypatch.setattr(TrackingLogRepository, "insert_log", mocks["insert_log"])
    monkeypatch.setattr(TrackingLogRepository, "fetch_logs", mocks["fetch_logs"])
    monkeypatch.setattr(EventRepository, "insert_event", mocks["insert_event"])
    return mocks
