"""
Engagement state classification.

Maps a metrics snapshot onto exactly one ResumeState. Classification is
memoryless: the previous state is never consulted, so calling it twice with
the same inputs always yields the same state.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from resume_tracker.features.engagement.domain.models import MetricsSnapshot, ResumeState
from resume_tracker.features.engagement.pipeline.aggregation.service import as_utc

from .rules import (
    FALLBACK_STATE,
    STATE_RULES,
    ClassificationContext,
    ClassificationThresholds,
    StateRule,
)


class StateClassifier:
    def __init__(
        self,
        thresholds: ClassificationThresholds | None = None,
        rules: tuple[StateRule, ...] = STATE_RULES,
    ):
        self.thresholds = thresholds or ClassificationThresholds()
        self.rules = rules

    def classify(
        self,
        metrics: MetricsSnapshot,
        created_at: datetime,
        application_status: str | None,
        now: datetime,
    ) -> ResumeState:
        ctx = self._build_context(metrics, created_at, application_status, now)
        for rule in self.rules:
            if rule.predicate(ctx):
                return rule.state
        return FALLBACK_STATE

    def _build_context(
        self,
        metrics: MetricsSnapshot,
        created_at: datetime,
        application_status: str | None,
        now: datetime,
    ) -> ClassificationContext:
        last_accessed_at = as_utc(metrics.last_accessed_at)
        if last_accessed_at is not metrics.last_accessed_at:
            # Normalized copy; the caller's snapshot is untouched
            metrics = replace(metrics, last_accessed_at=last_accessed_at)

        return ClassificationContext(
            metrics=metrics,
            created_at=as_utc(created_at),
            application_status=application_status,
            now=as_utc(now),
            thresholds=self.thresholds,
        )


def classify(
    metrics: MetricsSnapshot,
    created_at: datetime,
    application_status: str | None,
    now: datetime,
    thresholds: ClassificationThresholds | None = None,
) -> ResumeState:
    """Classify a resume into its engagement state as of ``now``."""
    return StateClassifier(thresholds).classify(metrics, created_at, application_status, now)
