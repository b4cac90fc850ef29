"""
Ordered engagement rules.

Each rule pairs a ResumeState with a predicate over the classification
inputs. Rules are evaluated top to bottom and the first match wins, so the
order below is the business priority: expiry pre-empts every other signal.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from resume_tracker.features.engagement.domain.models import MetricsSnapshot, ResumeState

INTERVIEWING_STATUS = "interviewing"


@dataclass(frozen=True, slots=True)
class ClassificationThresholds:
    frequent_view_count: int = 10
    frequent_max_age: timedelta = timedelta(days=7)
    recently_viewed_within: timedelta = timedelta(hours=24)
    expires_after: timedelta = timedelta(days=30)

    @classmethod
    def from_settings(cls, settings) -> "ClassificationThresholds":
        return cls(
            frequent_view_count=settings.ENGAGEMENT_FREQUENT_VIEW_COUNT,
            frequent_max_age=timedelta(days=settings.ENGAGEMENT_FREQUENT_MAX_AGE_DAYS),
            recently_viewed_within=timedelta(hours=settings.ENGAGEMENT_RECENTLY_VIEWED_HOURS),
            expires_after=timedelta(days=settings.ENGAGEMENT_EXPIRY_DAYS),
        )


@dataclass(frozen=True, slots=True)
class ClassificationContext:
    metrics: MetricsSnapshot
    created_at: datetime
    application_status: str | None
    now: datetime
    thresholds: ClassificationThresholds


@dataclass(frozen=True, slots=True)
class StateRule:
    state: ResumeState
    predicate: Callable[[ClassificationContext], bool]


def _is_expired(ctx: ClassificationContext) -> bool:
    last = ctx.metrics.last_accessed_at
    if last is None:
        return True
    return ctx.now - last > ctx.thresholds.expires_after


def _is_frequently_accessed(ctx: ClassificationContext) -> bool:
    return (
        ctx.metrics.view_count >= ctx.thresholds.frequent_view_count
        and ctx.now - ctx.created_at <= ctx.thresholds.frequent_max_age
    )


def _is_multi_device(ctx: ClassificationContext) -> bool:
    return ctx.metrics.distinct_device_count > 1


def _is_cloud_accessed(ctx: ClassificationContext) -> bool:
    return ctx.metrics.cloud_access_count > 0


def _is_recently_viewed(ctx: ClassificationContext) -> bool:
    last = ctx.metrics.last_accessed_at
    if last is None:
        return False
    return ctx.now - last <= ctx.thresholds.recently_viewed_within


def _is_under_consideration(ctx: ClassificationContext) -> bool:
    return (ctx.application_status or "").strip().lower() == INTERVIEWING_STATUS


def _is_not_opened(ctx: ClassificationContext) -> bool:
    return ctx.metrics.view_count == 0


STATE_RULES: tuple[StateRule, ...] = (
    StateRule(ResumeState.EXPIRED, _is_expired),
    StateRule(ResumeState.FREQUENTLY_ACCESSED, _is_frequently_accessed),
    StateRule(ResumeState.MULTI_DEVICE_VIEWED, _is_multi_device),
    StateRule(ResumeState.CLOUD_ACCESSED, _is_cloud_accessed),
    StateRule(ResumeState.RECENTLY_VIEWED, _is_recently_viewed),
    StateRule(ResumeState.UNDER_CONSIDERATION, _is_under_consideration),
    StateRule(ResumeState.NOT_OPENED, _is_not_opened),
)

FALLBACK_STATE = ResumeState.ACTIVE
