"""Scoring components for tier classification."""

from .base import BaseScorer
from .points import METRIC_COLUMNS, PointTableScorer, score

__all__ = [
    "BaseScorer",
    "PointTableScorer",
    "METRIC_COLUMNS",
    "score",
]
