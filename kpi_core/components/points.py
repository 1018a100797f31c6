"""Point-table scoring component (one per metric)."""

import math
from typing import Dict, Optional

import numpy as np
import pandas as pd

from ..config import DEFAULT_CONFIG, Metric, MetricConfig, TierConfig, ZeroFallback
from .base import BaseScorer

# Input column scored by each metric
METRIC_COLUMNS: Dict[Metric, str] = {
    Metric.DA: "DEPOSIT_AMOUNT",
    Metric.GGR: "GGR",
    Metric.PF: "PURCHASE_FREQUENCY",
    Metric.ATV: "AVG_TRANSACTION_VALUE",
    Metric.WIN_RATE: "WIN_RATE",
}


def _clean_value(value) -> float:
    """Missing, non-finite and negative inputs count as zero."""
    if value is None:
        return 0.0
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(value) or value < 0:
        return 0.0
    return value


class PointTableScorer(BaseScorer):
    """
    Score a metric against its step-wise point table.

    The score is the one attached to the highest threshold that the
    value meets (thresholds are inclusive lower bounds). Values below
    the first threshold get the metric's zero fallback:

    - dash: no score (None / NaN), left out of weighted sums
    - zero: a numeric 0

    Example (DA table 65->5, 200->10, 700->25):
    - 150 -> 5
    - 700 -> 25
    - 10  -> fallback
    """

    def __init__(self, metric_config: MetricConfig):
        self.metric_config = metric_config
        self.name = metric_config.metric.value
        self.column = METRIC_COLUMNS[metric_config.metric]

    @property
    def required_columns(self) -> list[str]:
        return [self.column]

    @property
    def fallback(self) -> Optional[float]:
        if self.metric_config.zero_fallback is ZeroFallback.ZERO:
            return 0.0
        return None

    def score_value(self, value) -> Optional[float]:
        """Score a single value; None means "dash"."""
        value = _clean_value(value)
        matched = self.fallback
        for point in self.metric_config.points:
            if value >= point.value:
                matched = float(point.score)
            else:
                break
        return matched

    def score(self, df: pd.DataFrame) -> pd.Series:
        """Calculate point-table score for every row."""
        self.validate(df)
        values = (
            pd.to_numeric(df[self.column], errors="coerce")
            .replace([np.inf, -np.inf], np.nan)
            .fillna(0.0)
            .clip(lower=0.0)
        )

        # Highest threshold first so the first match wins
        conditions = []
        choices = []
        for point in reversed(self.metric_config.points):
            conditions.append(values >= point.value)
            choices.append(float(point.score))

        default = np.nan if self.fallback is None else self.fallback
        return pd.Series(
            np.select(conditions, choices, default=default),
            index=df.index,
            dtype=float,
        )


def score(metric: "Metric | str", value, config: TierConfig = DEFAULT_CONFIG) -> Optional[float]:
    """
    Score one metric value with the configured point table.

    Args:
        metric: Metric member or its name ("DA", "GGR", ...)
        value: Raw metric value in the unit of the point table
        config: Tier configuration holding the point tables

    Returns:
        The score, or None when the metric's fallback is "dash" and the
        value is below every threshold

    Raises:
        ConfigurationError: If the metric name is unknown
    """
    return PointTableScorer(config.metric_config(metric)).score_value(value)
