"""
Pipeline components for resume engagement.

Pure computations applied to a resume's tracking log: aggregation into a
metrics snapshot, then classification into an engagement state.
"""

__all__ = ["aggregation", "classification"]
