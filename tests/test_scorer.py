"""
Tests for the weighted tier scorer.
"""

import math

import pandas as pd
import pytest

from kpi_core.config import Metric, ModuleWeight, PotentialWeights, TierConfig
from kpi_core.errors import InvalidInputError
from kpi_core.scorer import (
    TierScorer,
    compute_potential_score,
    compute_total_score,
    generate_sample_data,
)

MAIN_WEIGHTS = (
    ModuleWeight(Metric.DA, 0.30),
    ModuleWeight(Metric.GGR, 0.40),
    ModuleWeight(Metric.PF, 0.15),
    ModuleWeight(Metric.ATV, 0.15),
    ModuleWeight(Metric.WIN_RATE, 0.0, enabled=False),
)


class TestTotalScore:
    """Weighted sum over enabled metrics."""

    def test_weighted_example(self):
        """0.3*50 + 0.4*80 + 0.15*100 + 0.15*60 = 71."""
        scores = {"DA": 50, "GGR": 80, "PF": 100, "ATV": 60}
        assert compute_total_score(scores, MAIN_WEIGHTS) == 71

    def test_disabled_metric_ignored(self):
        scores = {"DA": 50, "GGR": 80, "PF": 100, "ATV": 60, "WIN_RATE": 100}
        weights = MAIN_WEIGHTS[:-1] + (ModuleWeight(Metric.WIN_RATE, 0.5, enabled=False),)
        assert compute_total_score(scores, weights) == 71

    def test_dash_contributes_nothing(self):
        scores = {"DA": None, "GGR": 80, "PF": float("nan"), "ATV": 60}
        assert compute_total_score(scores, MAIN_WEIGHTS) == pytest.approx(32 + 9)

    def test_weights_used_as_given(self):
        """Weights summing above 1 are not rescaled."""
        weights = (ModuleWeight(Metric.DA, 1.0), ModuleWeight(Metric.GGR, 1.0))
        assert compute_total_score({"DA": 50, "GGR": 80}, weights) == 130

    def test_normalize_excludes_dash_weight(self):
        scores = {"DA": None, "GGR": 80, "PF": 100, "ATV": 60}
        total = compute_total_score(scores, MAIN_WEIGHTS, normalize=True)
        assert total == pytest.approx(round((32 + 15 + 9) / 0.7, 4))

    def test_normalize_all_dash_is_zero(self):
        assert compute_total_score({}, MAIN_WEIGHTS, normalize=True) == 0

    def test_rounded_to_four_places(self):
        weights = (ModuleWeight(Metric.DA, 1 / 3),)
        assert compute_total_score({"DA": 10}, weights) == 3.3333


class TestPotentialScore:
    """PF/ATV/WIN_RATE combination, independent of enabled flags."""

    def test_fixed_weights(self):
        assert compute_potential_score(100, 50, 15, PotentialWeights()) == pytest.approx(59.0)

    def test_dash_counts_as_zero(self):
        assert compute_potential_score(None, 100, None, PotentialWeights()) == 65

    def test_clamped_to_hundred(self):
        weights = PotentialWeights(pf=1.0, atv=1.0, win_rate=1.0)
        assert compute_potential_score(100, 100, 100, weights) == 100

    def test_uses_win_rate_even_when_disabled(self, scorer, single_customer):
        """WIN_RATE is disabled for the total but still feeds potential."""
        customer = dict(single_customer, WIN_RATE=50.0)
        base = scorer.score_single(single_customer)
        boosted = scorer.score_single(customer)

        assert boosted["TOTAL_SCORE"] == base["TOTAL_SCORE"]
        assert boosted["POTENTIAL_SCORE"] == pytest.approx(base["POTENTIAL_SCORE"] + 10)


class TestTierScorer:
    """End-to-end scoring of customer frames."""

    def test_output_columns(self, scorer, sample_data):
        result = scorer.score(sample_data)
        for col in [
            "DA_SCORE", "GGR_SCORE", "PF_SCORE", "ATV_SCORE", "WIN_RATE_SCORE",
            "TOTAL_SCORE", "POTENTIAL_SCORE", "TIER", "TIER_NAME", "TIER_GROUP",
            "POTENTIAL_TIER",
        ]:
            assert col in result.df.columns
        assert len(result.df) == len(sample_data)

    def test_input_not_modified(self, scorer, sample_data):
        before = sample_data.copy()
        scorer.score(sample_data)
        pd.testing.assert_frame_equal(sample_data, before)

    def test_single_customer(self, scorer, single_customer):
        """DA 50, GGR 80, PF 100, ATV 50 -> 69.5 (Tier 4); potential 57.5 (P2)."""
        result = scorer.score_single(single_customer)

        assert result["TOTAL_SCORE"] == 69.5
        assert result["TIER"] == 3
        assert result["TIER_NAME"] == "Tier 4"
        assert result["TIER_GROUP"] == "Medium Value"
        assert result["POTENTIAL_SCORE"] == 57.5
        assert result["POTENTIAL_TIER"] == "P2"
        assert result["components"] == {
            "DA": 50, "GGR": 80, "PF": 100, "ATV": 50, "WIN_RATE": 0,
        }

    def test_edge_cases(self, scorer, edge_cases):
        df = scorer.score(edge_cases).df.set_index("USERKEY")

        assert df.loc["EDGE_WHALE", "TOTAL_SCORE"] == 100
        assert df.loc["EDGE_WHALE", "TIER_NAME"] == "Super VIP"
        assert df.loc["EDGE_WHALE", "POTENTIAL_SCORE"] == pytest.approx(91.5)

        assert df.loc["EDGE_INACTIVE", "TOTAL_SCORE"] == 0
        assert df.loc["EDGE_INACTIVE", "TIER_NAME"] == "Regular"
        assert df.loc["EDGE_INACTIVE", "POTENTIAL_TIER"] == "ND_P"
        assert math.isnan(df.loc["EDGE_INACTIVE", "DA_SCORE"])
        assert df.loc["EDGE_INACTIVE", "GGR_SCORE"] == 0

        assert df.loc["EDGE_BOUNDARY", "TOTAL_SCORE"] == pytest.approx(8.0)
        assert df.loc["EDGE_BOUNDARY", "POTENTIAL_SCORE"] == pytest.approx(15.0)

        assert df.loc["EDGE_WINNER", "TOTAL_SCORE"] == pytest.approx(24.75)
        assert df.loc["EDGE_WINNER", "TIER_NAME"] == "Tier 1"
        assert df.loc["EDGE_WINNER", "POTENTIAL_TIER"] == "P2"

        assert df.loc["EDGE_MISSING", "TOTAL_SCORE"] == 0
        assert df.loc["EDGE_MISSING", "TIER"] == 7

    def test_frame_matches_single(self, scorer, sample_data):
        """Vectorized and per-customer scoring agree."""
        result = scorer.score(sample_data).df
        for _, row in sample_data.head(25).iterrows():
            single = scorer.score_single(row.to_dict())
            scored = result[result["USERKEY"] == row["USERKEY"]].iloc[0]
            assert single["TOTAL_SCORE"] == pytest.approx(scored["TOTAL_SCORE"])
            assert single["POTENTIAL_SCORE"] == pytest.approx(scored["POTENTIAL_SCORE"])
            assert single["TIER"] == scored["TIER"]
            assert single["POTENTIAL_TIER"] == scored["POTENTIAL_TIER"]

    def test_normalized_config(self, sample_data):
        config = TierConfig(normalize_weights=True)
        result = TierScorer(config).score(sample_data).df

        assert result["TOTAL_SCORE"].between(0, 100).all()

    def test_missing_column_raises(self, scorer, sample_data):
        with pytest.raises(InvalidInputError, match="AVG_TRANSACTION_VALUE"):
            scorer.score(sample_data.drop(columns=["AVG_TRANSACTION_VALUE"]))

    def test_missing_field_single_raises(self, scorer, single_customer):
        del single_customer["GGR"]
        with pytest.raises(InvalidInputError, match="GGR"):
            scorer.score_single(single_customer)

    def test_negative_inputs_score_as_zero(self, scorer, single_customer):
        customer = dict(single_customer, DEPOSIT_AMOUNT=-5.0, AVG_TRANSACTION_VALUE=-1.0)
        scored = scorer.score(pd.DataFrame([customer])).df.iloc[0]
        single = scorer.score_single(customer)
        zeroed = scorer.score_single(dict(customer, DEPOSIT_AMOUNT=0.0, AVG_TRANSACTION_VALUE=0.0))

        assert scored["TOTAL_SCORE"] == pytest.approx(single["TOTAL_SCORE"])
        assert scored["POTENTIAL_SCORE"] == pytest.approx(single["POTENTIAL_SCORE"])
        assert scored["TIER"] == single["TIER"]
        assert single["TOTAL_SCORE"] == zeroed["TOTAL_SCORE"]


class TestScoringResult:
    """Result helpers."""

    def test_get_tier_at_least(self, scorer, sample_data):
        result = scorer.score(sample_data)
        top = result.get_tier_at_least(3)
        assert (top["TIER"] <= 3).all()

    def test_summary_counts_all_rows(self, scorer, sample_data):
        summary = scorer.score(sample_data).summary()
        assert summary["count"].sum() == len(sample_data)

    def test_component_breakdown(self, scorer, edge_cases):
        breakdown = scorer.score(edge_cases).component_breakdown()
        assert set(breakdown.index) == {"DA", "GGR", "PF", "ATV", "WIN_RATE"}
        assert breakdown.loc["DA", "dash"] == 2


class TestSampleData:
    def test_shape_and_determinism(self):
        a = generate_sample_data(n_customers=50, seed=7)
        b = generate_sample_data(n_customers=50, seed=7)

        assert len(a) == 50
        pd.testing.assert_frame_equal(a, b)
