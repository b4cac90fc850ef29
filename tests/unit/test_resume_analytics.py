from dataclasses import replace
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from resume_tracker.features.engagement.domain.models import (
    DeviceType,
    EventType,
    MetricsSnapshot,
    ResumeEvent,
)
from resume_tracker.features.engagement.pipeline.aggregation.repository import (
    TrackingLogRepository,
)
from resume_tracker.features.engagement.repository.event_repository import EventRepository
from resume_tracker.features.engagement.repository.resume_repository import ResumeRepository
from resume_tracker.features.engagement.services.analytics_service import (
    ResumeAnalyticsService,
    build_resume_analytics,
    compute_engagement_score,
)


def _state_event(now, hours_ago, previous, new):
    return ResumeEvent(
        resume_id="resume-1",
        type=EventType.STATE_CHANGE,
        metadata={"previous_state": previous, "new_state": new},
        created_at=now - timedelta(hours=hours_ago),
    )


def test_engagement_score_formula():
    assert compute_engagement_score(2, 1, 60.0, 2) == 65
    assert compute_engagement_score(2, 1, 60.0, 1) == 55
    assert compute_engagement_score(0, 0, 0.0, 0) == 0


def test_engagement_score_is_capped():
    assert compute_engagement_score(10, 5, 600.0, 3) == 100


def test_build_analytics_uses_recent_window(now, make_log):
    logs = [
        make_log(occurred_at=now - timedelta(days=1), device_type=DeviceType.DESKTOP, location="NYC"),
        make_log(occurred_at=now - timedelta(days=2), device_type=DeviceType.DESKTOP, location="NYC"),
        make_log(occurred_at=now - timedelta(days=3), device_type=DeviceType.MOBILE, location="NYC"),
        make_log(occurred_at=now - timedelta(days=10), device_type=DeviceType.TABLET, location="Boston"),
    ]
    metrics = replace(
        MetricsSnapshot.empty(),
        view_count=4,
        average_view_duration_seconds=60.0,
        distinct_device_count=3,
        last_accessed_at=now - timedelta(days=1),
    )

    analytics = build_resume_analytics(logs, [], metrics, now)

    assert analytics.recent_views == 3
    assert analytics.total_views == 4
    assert analytics.location_count == 1
    # (3*30 + 1*20 + 30 + 20) / 2
    assert analytics.engagement_score == 80
    assert [(share.device_type, share.count, share.percentage) for share in analytics.device_distribution] == [
        ("desktop", 2, 67),
        ("mobile", 1, 33),
    ]


def test_state_history_is_newest_first_and_ignores_other_events(now):
    events = [
        _state_event(now, 48, None, "expired"),
        ResumeEvent(
            resume_id="resume-1",
            type=EventType.VIEW,
            metadata={"view_count": 1},
            created_at=now - timedelta(hours=2),
        ),
        _state_event(now, 1, "expired", "recently_viewed"),
    ]

    analytics = build_resume_analytics([], events, MetricsSnapshot.empty(), now)

    assert [(entry.previous_state, entry.new_state) for entry in analytics.state_history] == [
        ("expired", "recently_viewed"),
        (None, "expired"),
    ]


def test_to_dict_serializes_timestamps(now):
    metrics = replace(MetricsSnapshot.empty(), last_accessed_at=now)
    events = [_state_event(now, 1, "active", "recently_viewed")]

    payload = build_resume_analytics([], events, metrics, now).to_dict()

    assert payload["state_history"][0]["timestamp"] == (now - timedelta(hours=1)).isoformat()
    assert payload["metrics"]["last_accessed_at"] == now.isoformat()
    assert payload["device_distribution"] == []


@pytest.mark.asyncio
async def test_service_loads_resume_logs_and_events(monkeypatch, now, make_resume, make_log):
    resume = make_resume(metrics=replace(MetricsSnapshot.empty(), view_count=1))
    monkeypatch.setattr(ResumeRepository, "fetch_resume", AsyncMock(return_value=resume))
    monkeypatch.setattr(
        TrackingLogRepository,
        "fetch_logs",
        AsyncMock(return_value=[make_log(occurred_at=now - timedelta(hours=3))]),
    )
    fetch_events = AsyncMock(return_value=[])
    monkeypatch.setattr(EventRepository, "fetch_events", fetch_events)

    analytics = await ResumeAnalyticsService().get_resume_analytics("resume-1", now=now)

    assert analytics.recent_views == 1
    assert analytics.total_views == 1
    assert fetch_events.await_args.kwargs["since"] == now - timedelta(days=30)
