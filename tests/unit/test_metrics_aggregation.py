from datetime import UTC, datetime, timedelta

from resume_tracker.features.engagement.domain.models import DeviceType, MetricsSnapshot
from resume_tracker.features.engagement.pipeline.aggregation.service import (
    MetricsAggregator,
    aggregate,
)
from resume_tracker.features.engagement.pipeline.classification.service import classify


def test_empty_log_produces_zero_snapshot(now):
    snapshot = aggregate([], now)

    assert snapshot == MetricsSnapshot.empty()
    assert snapshot.view_count == 0
    assert snapshot.last_accessed_at is None
    assert snapshot.last_device_type is None
    assert snapshot.average_view_duration_seconds == 0.0


def test_two_device_walkthrough(make_log):
    day0 = datetime(2024, 1, 1, tzinfo=UTC)
    day1 = day0 + timedelta(days=1)
    logs = [
        make_log(occurred_at=day0, device_type=DeviceType.DESKTOP, location="NYC"),
        make_log(occurred_at=day1, device_type=DeviceType.MOBILE, location="NYC"),
    ]

    snapshot = aggregate(logs, day1)

    assert snapshot.view_count == 2
    assert snapshot.unique_location_count == 1
    assert snapshot.distinct_device_count == 2
    assert snapshot.device_access_count == 2
    assert snapshot.cloud_access_count == 0
    assert snapshot.last_accessed_at == day1
    assert snapshot.last_device_type == DeviceType.MOBILE
    assert classify(snapshot, day0, None, day1).value == "multi_device_viewed"


def test_recent_window_bounds_are_inclusive(now, make_log):
    logs = [
        make_log(occurred_at=now - timedelta(days=7), location="Boston"),
        make_log(occurred_at=now - timedelta(days=7, seconds=1), location="Austin"),
        make_log(occurred_at=now, location="Boston"),
    ]

    snapshot = aggregate(logs, now)

    assert snapshot.view_count == 3
    assert snapshot.recent_view_count_last_7_days == 2
    assert snapshot.unique_location_count == 2
    assert snapshot.unique_location_count_last_7_days == 1


def test_hits_after_now_count_as_views_but_not_recent(now, make_log):
    snapshot = aggregate([make_log(occurred_at=now + timedelta(minutes=5))], now)

    assert snapshot.view_count == 1
    assert snapshot.recent_view_count_last_7_days == 0


def test_average_duration_skips_missing_and_invalid_values(now, make_log):
    logs = [
        make_log(duration_seconds=30),
        make_log(duration_seconds=None),
        make_log(duration_seconds=-5),
        make_log(duration_seconds=float("nan")),
        make_log(duration_seconds=90),
    ]

    snapshot = aggregate(logs, now)

    assert snapshot.average_view_duration_seconds == 60.0


def test_average_duration_is_zero_without_durations(now, make_log):
    snapshot = aggregate([make_log(), make_log(duration_seconds=-1)], now)

    assert snapshot.average_view_duration_seconds == 0.0


def test_cloud_and_device_access_are_split(now, make_log):
    logs = [
        make_log(is_cloud_service=True, device_type=DeviceType.UNKNOWN),
        make_log(is_cloud_service=True, device_type=DeviceType.UNKNOWN),
        make_log(device_type=DeviceType.DESKTOP),
    ]

    snapshot = aggregate(logs, now)

    assert snapshot.cloud_access_count == 2
    assert snapshot.device_access_count == 1
    assert snapshot.distinct_device_count == 2


def test_fingerprint_takes_precedence_over_device_type(now, make_log):
    logs = [
        make_log(device_type=DeviceType.DESKTOP, device_fingerprint="fp-a"),
        make_log(device_type=DeviceType.DESKTOP, device_fingerprint="fp-b"),
        make_log(device_type=DeviceType.MOBILE, device_fingerprint="fp-a"),
        make_log(device_type=DeviceType.DESKTOP),
    ]

    snapshot = aggregate(logs, now)

    # fp-a, fp-b, and the unfingerprinted desktop
    assert snapshot.distinct_device_count == 3


def test_blank_locations_are_ignored(now, make_log):
    logs = [
        make_log(location="NYC"),
        make_log(location=" NYC "),
        make_log(location="   "),
        make_log(location=""),
        make_log(location=None),
    ]

    snapshot = aggregate(logs, now)

    assert snapshot.unique_location_count == 1


def test_last_device_is_taken_from_latest_hit_regardless_of_order(now, make_log):
    logs = [
        make_log(occurred_at=now - timedelta(hours=1), device_type=DeviceType.TABLET),
        make_log(occurred_at=now - timedelta(days=3), device_type=DeviceType.DESKTOP),
        make_log(occurred_at=now - timedelta(days=1), device_type=DeviceType.MOBILE),
    ]

    snapshot = aggregate(logs, now)

    assert snapshot.last_accessed_at == now - timedelta(hours=1)
    assert snapshot.last_device_type == DeviceType.TABLET


def test_last_device_tie_keeps_first_entry(now, make_log):
    logs = [
        make_log(occurred_at=now, device_type=DeviceType.MOBILE),
        make_log(occurred_at=now, device_type=DeviceType.DESKTOP),
    ]

    assert aggregate(logs, now).last_device_type == DeviceType.MOBILE
    assert aggregate(list(reversed(logs)), now).last_device_type == DeviceType.DESKTOP


def test_naive_timestamps_are_treated_as_utc(now, make_log):
    naive = now.replace(tzinfo=None) - timedelta(days=1)

    snapshot = aggregate([make_log(occurred_at=naive)], now)

    assert snapshot.recent_view_count_last_7_days == 1
    assert snapshot.last_accessed_at == now - timedelta(days=1)


def test_aggregation_is_idempotent(now, make_log):
    logs = [
        make_log(occurred_at=now - timedelta(days=2), location="NYC", duration_seconds=12.5),
        make_log(occurred_at=now - timedelta(days=9), is_cloud_service=True, location="aws"),
    ]

    assert aggregate(logs, now) == aggregate(logs, now)


def test_custom_recent_window(now, make_log):
    aggregator = MetricsAggregator(recent_window=timedelta(days=1))
    logs = [
        make_log(occurred_at=now - timedelta(hours=12)),
        make_log(occurred_at=now - timedelta(days=2)),
    ]

    assert aggregator.aggregate(logs, now).recent_view_count_last_7_days == 1
