"""
Unit tests for the point-table scoring components.
"""

import math

import numpy as np
import pandas as pd
import pytest

from kpi_core.components import METRIC_COLUMNS, PointTableScorer, score
from kpi_core.config import (
    Metric,
    MetricConfig,
    MetricPoint,
    TierConfig,
    ZeroFallback,
)
from kpi_core.errors import ConfigurationError, InvalidInputError


def _da_only_table():
    return MetricConfig(
        Metric.DA,
        "DA",
        (MetricPoint(65, 5), MetricPoint(200, 10), MetricPoint(700, 25)),
        ZeroFallback.DASH,
    )


class TestPointLookup:
    """Greatest threshold <= value wins."""

    def test_between_thresholds_uses_lower_point(self):
        """150 meets 65 but not 200."""
        assert score(Metric.DA, 150) == 5

    def test_threshold_is_inclusive(self):
        assert score(Metric.DA, 700) == 25
        assert score(Metric.DA, 699.99) == 10

    def test_below_first_threshold_dash(self):
        """DA falls back to dash (None), not the first point's score."""
        assert score(Metric.DA, 10) is None

    def test_below_first_threshold_zero(self):
        """GGR falls back to a numeric zero."""
        assert score(Metric.GGR, 10) == 0

    def test_above_last_threshold_uses_last_point(self):
        assert score(Metric.DA, 10_000_000) == 100
        assert score(Metric.PF, 40) == 100

    def test_metric_by_name(self):
        assert score("ATV", 55) == 50

    def test_unknown_metric_raises(self):
        with pytest.raises(ConfigurationError, match="Unknown metric"):
            score("LTV", 10)

    @pytest.mark.parametrize("value", [None, float("nan"), -50, "abc"])
    def test_unusable_values_count_as_zero(self, value):
        assert score(Metric.DA, value) is None
        assert score(Metric.GGR, value) == 0

    def test_custom_table(self):
        """A config with only the three-point DA table still scores correctly."""
        default = TierConfig()
        metrics = tuple(
            _da_only_table() if m.metric is Metric.DA else m for m in default.metrics
        )
        config = TierConfig(metrics=metrics)

        assert score(Metric.DA, 150, config) == 5
        assert score(Metric.DA, 1_000_000, config) == 25
        assert score(Metric.DA, 10, config) is None


class TestMonotonicity:
    """Scores never decrease as the value grows."""

    @pytest.mark.parametrize("metric", list(Metric))
    def test_monotonic_non_decreasing(self, metric):
        values = np.linspace(0, 200_000, 2_001)
        scores = [score(metric, v) for v in values]
        numeric = [s if s is not None else -1 for s in scores]
        assert all(a <= b for a, b in zip(numeric, numeric[1:]))


class TestPointTableScorer:
    """Vectorized scoring must agree with the scalar lookup."""

    @pytest.mark.parametrize("metric", list(Metric))
    def test_vectorized_matches_scalar(self, default_config, sample_data, metric):
        component = PointTableScorer(default_config.metric_config(metric))
        vector = component.score(sample_data)

        for value, got in zip(sample_data[METRIC_COLUMNS[metric]], vector):
            expected = component.score_value(value)
            if expected is None:
                assert math.isnan(got)
            else:
                assert got == expected

    def test_dash_is_nan_in_frames(self, default_config):
        component = PointTableScorer(default_config.metric_config(Metric.PF))
        scores = component.score(pd.DataFrame({"PURCHASE_FREQUENCY": [0, 2.9, 3, 6]}))

        assert scores.isna().tolist() == [True, True, False, False]
        assert scores.iloc[2] == 15
        assert scores.iloc[3] == 50

    def test_zero_fallback_in_frames(self, default_config):
        component = PointTableScorer(default_config.metric_config(Metric.WIN_RATE))
        scores = component.score(pd.DataFrame({"WIN_RATE": [-10, 0, 14.9, 15, 75]}))

        assert scores.tolist() == [0, 0, 0, 15, 100]

    def test_missing_column_raises_error(self, default_config):
        component = PointTableScorer(default_config.metric_config(Metric.ATV))
        df = pd.DataFrame({"OTHER_COLUMN": [1.0]})

        with pytest.raises(InvalidInputError, match="AVG_TRANSACTION_VALUE"):
            component.score(df)

    def test_infinite_values_are_zero(self, default_config):
        component = PointTableScorer(default_config.metric_config(Metric.GGR))
        scores = component.score(pd.DataFrame({"GGR": [np.inf, -np.inf]}))

        assert scores.tolist() == [0, 0]


class TestMetricConfigValidation:
    """Malformed point tables are rejected at construction."""

    def test_unsorted_thresholds_rejected(self):
        bad = MetricConfig(
            Metric.DA, "DA", (MetricPoint(200, 10), MetricPoint(65, 5)), ZeroFallback.DASH
        )
        with pytest.raises(ConfigurationError):
            bad.validate()

    def test_decreasing_scores_rejected(self):
        bad = MetricConfig(
            Metric.DA, "DA", (MetricPoint(65, 10), MetricPoint(200, 5)), ZeroFallback.DASH
        )
        with pytest.raises(ConfigurationError):
            bad.validate()

    def test_empty_table_rejected(self):
        with pytest.raises(ConfigurationError):
            MetricConfig(Metric.DA, "DA", (), ZeroFallback.DASH).validate()
