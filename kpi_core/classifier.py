"""Map total and potential scores to tier labels."""

from dataclasses import dataclass
from typing import Sequence

import numpy as np
import pandas as pd

from .config import (
    DEFAULT_CONFIG,
    PotentialTierDefinition,
    TierConfig,
    TierDefinition,
)
from .errors import ConfigurationError


@dataclass(frozen=True)
class TierClassificationResult:
    tier: int
    tier_name: str
    tier_group: str
    potential_tier: str


class TierClassifier:
    """
    First-match classifier over descending score thresholds.

    Definitions are scanned from the highest ``min_score`` down and the
    first one with ``min_score <= score`` wins. The catch-all entry at 0
    makes every non-negative score land somewhere; scores below it
    (negative) fall back to the lowest definition.
    """

    def __init__(
        self,
        tiers: Sequence[TierDefinition],
        potential_tiers: Sequence[PotentialTierDefinition],
    ):
        if not tiers or not potential_tiers:
            raise ConfigurationError("Tier tables must not be empty")
        self.tiers = tuple(sorted(tiers, key=lambda t: t.min_score, reverse=True))
        self.potential_tiers = tuple(
            sorted(potential_tiers, key=lambda t: t.min_score, reverse=True)
        )

    @classmethod
    def from_config(cls, config: TierConfig) -> "TierClassifier":
        return cls(config.tiers, config.potential_tiers)

    def match_tier(self, total_score: float) -> TierDefinition:
        for definition in self.tiers:
            if total_score >= definition.min_score:
                return definition
        return self.tiers[-1]

    def match_potential(self, potential_score: float) -> PotentialTierDefinition:
        for definition in self.potential_tiers:
            if potential_score >= definition.min_score:
                return definition
        return self.potential_tiers[-1]

    def classify(self, total_score: float, potential_score: float) -> TierClassificationResult:
        """Classify one customer."""
        tier = self.match_tier(total_score)
        potential = self.match_potential(potential_score)
        return TierClassificationResult(
            tier=tier.tier,
            tier_name=tier.name,
            tier_group=tier.group,
            potential_tier=potential.name,
        )

    def classify_frame(
        self, total_scores: pd.Series, potential_scores: pd.Series
    ) -> pd.DataFrame:
        """
        Vectorized classification.

        Returns:
            DataFrame with TIER, TIER_NAME, TIER_GROUP, POTENTIAL_TIER
            aligned to the index of ``total_scores``
        """
        total = pd.to_numeric(total_scores, errors="coerce").fillna(0.0)
        potential = pd.to_numeric(potential_scores, errors="coerce").fillna(0.0)

        tier_conditions = [total >= d.min_score for d in self.tiers]
        lowest = self.tiers[-1]
        potential_conditions = [potential >= d.min_score for d in self.potential_tiers]

        return pd.DataFrame(
            {
                "TIER": np.select(
                    tier_conditions, [d.tier for d in self.tiers], default=lowest.tier
                ).astype(int),
                "TIER_NAME": np.select(
                    tier_conditions, [d.name for d in self.tiers], default=lowest.name
                ),
                "TIER_GROUP": np.select(
                    tier_conditions, [d.group for d in self.tiers], default=lowest.group
                ),
                "POTENTIAL_TIER": np.select(
                    potential_conditions,
                    [d.name for d in self.potential_tiers],
                    default=self.potential_tiers[-1].name,
                ),
            },
            index=total_scores.index,
        )


def classify(
    total_score: float,
    potential_score: float,
    config: TierConfig = DEFAULT_CONFIG,
) -> TierClassificationResult:
    """Classify a (total, potential) score pair with the given configuration."""
    return TierClassifier.from_config(config).classify(total_score, potential_score)
