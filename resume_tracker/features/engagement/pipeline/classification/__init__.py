"""
Engagement state classification package.

Evaluates the ordered rule chain over a metrics snapshot to pick one
ResumeState per resume.
"""

from .rules import STATE_RULES, ClassificationThresholds, StateRule
from .service import StateClassifier, classify

__all__ = [
    "ClassificationThresholds",
    "STATE_RULES",
    "StateClassifier",
    "StateRule",
    "classify",
]
