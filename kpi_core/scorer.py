"""
Main TierScorer class - orchestrates metric scoring and tier classification.

Usage:
    from kpi_core import TierScorer, TierConfig

    # With default config
    scorer = TierScorer()
    result = scorer.score(df)

    # With custom config
    config = TierConfig.from_yaml("tiers.yaml")
    scorer = TierScorer(config)
    result = scorer.score(df)

    # Access results
    print(result.df[["USERKEY", "TOTAL_SCORE", "TIER_NAME", "POTENTIAL_TIER"]])
    print(result.summary())
"""

import logging
import math
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from .classifier import TierClassifier
from .components import METRIC_COLUMNS, PointTableScorer
from .config import DEFAULT_CONFIG, Metric, ModuleWeight, PotentialWeights, TierConfig
from .errors import InvalidInputError
from .schemas import TIER_INPUT_SCHEMA, validate_frame

logger = logging.getLogger(__name__)

SCORE_PRECISION = 4


def _is_score(value) -> bool:
    return value is not None and not (isinstance(value, float) and math.isnan(value))


def compute_total_score(
    metric_scores: Mapping["Metric | str", Optional[float]],
    weights: Sequence[ModuleWeight],
    normalize: bool = False,
) -> float:
    """
    Weighted sum of metric scores over enabled weights.

    Disabled weights are skipped entirely. A dash score (None/NaN)
    contributes nothing and, when ``normalize`` is set, its weight is
    also left out of the denominator.

    Args:
        metric_scores: Score per metric (missing metrics count as dash)
        weights: Module weights; used as given unless ``normalize``
        normalize: Divide by the sum of participating weights

    Returns:
        Total score rounded to 4 decimals
    """
    scores = {Metric.parse(k): v for k, v in metric_scores.items()}
    total = 0.0
    weight_sum = 0.0
    for weight in weights:
        if not weight.enabled:
            continue
        value = scores.get(weight.metric)
        if not _is_score(value):
            continue
        total += weight.weight * float(value)
        weight_sum += weight.weight

    if normalize:
        total = total / weight_sum if weight_sum > 0 else 0.0
    return round(total, SCORE_PRECISION)


def compute_potential_score(
    pf_score: Optional[float],
    atv_score: Optional[float],
    win_rate_score: Optional[float],
    potential_weights: PotentialWeights,
) -> float:
    """
    Fixed PF/ATV/WIN_RATE combination used for the potential tier.

    Enabled flags of the main weights do not apply here. Dash scores
    count as 0; the result is clamped to [0, 100].
    """
    pf = float(pf_score) if _is_score(pf_score) else 0.0
    atv = float(atv_score) if _is_score(atv_score) else 0.0
    win = float(win_rate_score) if _is_score(win_rate_score) else 0.0

    raw = (
        pf * potential_weights.pf
        + atv * potential_weights.atv
        + win * potential_weights.win_rate
    )
    return round(min(max(raw, 0.0), 100.0), SCORE_PRECISION)


@dataclass
class ScoringResult:
    """
    Container for scoring results with component breakdown.

    Attributes:
        df: Original DataFrame with scores and tiers added
        component_columns: List of metric score column names
    """

    df: pd.DataFrame
    component_columns: list[str]

    def get_tier_at_least(self, tier: int) -> pd.DataFrame:
        """
        Get customers in the given tier or better (lower number).

        Args:
            tier: Tier number (1 = Super VIP)

        Returns:
            DataFrame filtered to customers with TIER <= tier
        """
        return self.df[self.df["TIER"] <= tier]

    def summary(self) -> pd.DataFrame:
        """
        Generate summary statistics by tier and potential tier.

        Returns:
            DataFrame with counts and average scores
        """
        return (
            self.df.groupby(["TIER", "TIER_NAME", "POTENTIAL_TIER"])
            .agg(
                count=("TOTAL_SCORE", "size"),
                avg_score=("TOTAL_SCORE", "mean"),
                avg_potential=("POTENTIAL_SCORE", "mean"),
            )
            .round(1)
        )

    def component_breakdown(self) -> pd.DataFrame:
        """
        Show average score of each metric.

        Returns:
            DataFrame with component statistics (dash rows counted apart)
        """
        stats = {}
        for col in self.component_columns:
            metric_name = col.replace("_SCORE", "")
            stats[metric_name] = {
                "mean": self.df[col].mean(),
                "max": self.df[col].max(),
                "min": self.df[col].min(),
                "dash": int(self.df[col].isna().sum()),
            }
        return pd.DataFrame(stats).T.round(1)


class TierScorer:
    """
    Vectorized customer tier scoring engine.

    Scores each metric against its point table, combines enabled
    metrics into TOTAL_SCORE, PF/ATV/WIN_RATE into POTENTIAL_SCORE,
    then classifies both into tier labels.

    Input columns (per customer, per brand, per period):
    - DEPOSIT_AMOUNT
    - GGR
    - PURCHASE_FREQUENCY
    - AVG_TRANSACTION_VALUE
    - WIN_RATE (percent)
    """

    REQUIRED_COLUMNS = [METRIC_COLUMNS[m] for m in Metric]

    def __init__(self, config: Optional[TierConfig] = None):
        """
        Initialize scorer with configuration.

        Args:
            config: TierConfig instance. Uses DEFAULT_CONFIG if None.
        """
        self.config = config or DEFAULT_CONFIG
        self._init_components()

    def _init_components(self) -> None:
        """Initialize one point-table scorer per metric."""
        self.components = {
            metric: PointTableScorer(self.config.metric_config(metric))
            for metric in Metric
        }
        self.classifier = TierClassifier.from_config(self.config)

    def validate_input(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Validate required columns and value ranges.

        Raises:
            InvalidInputError: If columns are missing or the schema fails
        """
        missing = set(self.REQUIRED_COLUMNS) - set(df.columns)
        if missing:
            raise InvalidInputError(f"Missing required columns: {missing}")
        return validate_frame(TIER_INPUT_SCHEMA, df)

    def score(self, df: pd.DataFrame) -> ScoringResult:
        """
        Calculate tier scores for all customers.

        Args:
            df: DataFrame with required columns

        Returns:
            ScoringResult with scores, tiers and component breakdown

        Example:
            >>> scorer = TierScorer()
            >>> result = scorer.score(customer_df)
            >>> vips = result.get_tier_at_least(2)
        """
        result = self.validate_input(df).copy()
        logger.debug("Scoring %d customer rows", len(result))

        component_cols = []
        for metric, component in self.components.items():
            col_name = f"{metric.value}_SCORE"
            result[col_name] = component.score(result)
            component_cols.append(col_name)

        # Enabled metrics only; dash (NaN) contributes nothing
        total = pd.Series(0.0, index=result.index)
        weight_sum = pd.Series(0.0, index=result.index)
        for weight in self.config.enabled_weights():
            col = result[f"{weight.metric.value}_SCORE"]
            total = total + col.fillna(0.0) * weight.weight
            weight_sum = weight_sum + col.notna() * weight.weight
        if self.config.normalize_weights:
            total = pd.Series(
                np.where(weight_sum > 0, total / weight_sum.where(weight_sum > 0, 1.0), 0.0),
                index=result.index,
            )
        result["TOTAL_SCORE"] = total.round(SCORE_PRECISION)

        pw = self.config.potential_weights
        potential = (
            result["PF_SCORE"].fillna(0.0) * pw.pf
            + result["ATV_SCORE"].fillna(0.0) * pw.atv
            + result["WIN_RATE_SCORE"].fillna(0.0) * pw.win_rate
        )
        result["POTENTIAL_SCORE"] = potential.clip(0.0, 100.0).round(SCORE_PRECISION)

        tiers = self.classifier.classify_frame(result["TOTAL_SCORE"], result["POTENTIAL_SCORE"])
        for col in tiers.columns:
            result[col] = tiers[col]

        return ScoringResult(df=result, component_columns=component_cols)

    def score_single(self, customer: dict) -> dict:
        """
        Score a single customer without going through pandas.

        Args:
            customer: Dictionary with the required metric fields

        Returns:
            Dictionary with scores, tier labels and per-metric scores
            (None marks a dash)
        """
        missing = set(self.REQUIRED_COLUMNS) - set(customer)
        if missing:
            raise InvalidInputError(f"Missing required fields: {missing}")

        metric_scores = {
            metric: component.score_value(customer[component.column])
            for metric, component in self.components.items()
        }
        total = compute_total_score(
            metric_scores, self.config.weights, self.config.normalize_weights
        )
        potential = compute_potential_score(
            metric_scores[Metric.PF],
            metric_scores[Metric.ATV],
            metric_scores[Metric.WIN_RATE],
            self.config.potential_weights,
        )
        classification = self.classifier.classify(total, potential)
        return {
            "TOTAL_SCORE": total,
            "POTENTIAL_SCORE": potential,
            "TIER": classification.tier,
            "TIER_NAME": classification.tier_name,
            "TIER_GROUP": classification.tier_group,
            "POTENTIAL_TIER": classification.potential_tier,
            "components": {m.value: s for m, s in metric_scores.items()},
        }


def generate_sample_data(n_customers: int = 100, seed: int = 42) -> pd.DataFrame:
    """
    Generate realistic per-customer tier inputs for testing.

    Deposits are log-normal (a long tail of whales), withdrawals
    take back a random share of deposits and ~10% of customers have
    no deposits at all in the period.
    """
    rng = np.random.default_rng(seed)

    deposit_cases = rng.poisson(lam=5, size=n_customers)
    deposit_cases[rng.random(n_customers) < 0.10] = 0

    atv = np.round(rng.lognormal(mean=3.5, sigma=0.9, size=n_customers), 2)
    deposit_amount = np.where(deposit_cases > 0, np.round(deposit_cases * atv, 2), 0.0)
    withdraw_share = rng.uniform(0.0, 1.2, size=n_customers)
    ggr = np.round(deposit_amount * (1 - withdraw_share), 2)

    win_rate = np.where(deposit_amount > 0, ggr / np.where(deposit_amount > 0, deposit_amount, 1) * 100, 0.0)
    active_days = np.clip(rng.integers(1, 20, size=n_customers), 1, None)

    return pd.DataFrame(
        {
            "USERKEY": [f"USER_{i:05d}" for i in range(n_customers)],
            "LINE": rng.choice(["LINE_A", "LINE_B", "LINE_C"], size=n_customers),
            "DEPOSIT_AMOUNT": deposit_amount,
            "GGR": ggr,
            "DEPOSIT_CASES": deposit_cases,
            "PURCHASE_FREQUENCY": np.round(deposit_cases / active_days, 4),
            "AVG_TRANSACTION_VALUE": np.where(deposit_cases > 0, atv, 0.0),
            "WIN_RATE": np.round(win_rate, 4),
        }
    )
