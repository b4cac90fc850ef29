"""
Aggregation package for resume engagement.

Contains the pure metrics aggregator and the repository that reads and
appends raw tracking log rows.
"""

from .service import MetricsAggregator, aggregate

__all__ = ["MetricsAggregator", "aggregate"]
