"""
Resume engagement feature package.

Keeps every layer of resume view tracking co-located: domain models, the
aggregation and classification pipeline, repositories, services and the
user-agent heuristics that feed them.
"""

from .domain.models import MetricsSnapshot, ResumeState, TrackingLogEntry  # noqa: F401
from .pipeline.aggregation.service import aggregate  # noqa: F401
from .pipeline.classification.service import classify  # noqa: F401
