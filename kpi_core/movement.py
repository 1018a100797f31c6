"""
Tier movement between two scoring periods.

Tier 1 is the best tier, so moving to a lower tier number is an
upgrade and TIER_CHANGE (from - to) is positive for upgrades.
"""

import logging
from typing import Dict, Sequence

import numpy as np
import pandas as pd

from .errors import InvalidInputError

logger = logging.getLogger(__name__)

MOVEMENT_TYPES = ["UPGRADE", "DOWNGRADE", "STABLE", "NEW", "CHURNED"]
RETAINED_TYPES = ["UPGRADE", "DOWNGRADE", "STABLE"]

_REQUIRED = ["TIER", "TOTAL_SCORE"]


def _check_columns(df: pd.DataFrame, keys: Sequence[str], label: str) -> None:
    missing = set(keys) | set(_REQUIRED)
    missing -= set(df.columns)
    if missing:
        raise InvalidInputError(f"{label} tiers missing columns: {missing}")


def calculate_tier_movement(
    current: pd.DataFrame,
    previous: pd.DataFrame,
    keys: Sequence[str] = ("USERKEY", "LINE"),
) -> pd.DataFrame:
    """
    Classify each customer's move between two scored periods.

    Args:
        current: Scored customers for the current period
        previous: Scored customers for the previous period
        keys: Columns identifying a customer

    Returns:
        One row per customer with FROM_TIER, TO_TIER, TIER_CHANGE,
        SCORE_CHANGE and MOVEMENT_TYPE. Tiers are NaN on the side a
        customer is absent from (NEW / CHURNED).
    """
    keys = list(keys)
    _check_columns(current, keys, "Current")
    _check_columns(previous, keys, "Previous")

    if current.duplicated(keys).any() or previous.duplicated(keys).any():
        raise InvalidInputError(f"Duplicate customers for keys {keys}")

    merged = previous[keys + _REQUIRED].merge(
        current[keys + _REQUIRED],
        on=keys,
        how="outer",
        suffixes=("_FROM", "_TO"),
    )
    merged = merged.rename(columns={"TIER_FROM": "FROM_TIER", "TIER_TO": "TO_TIER"})

    from_tier = merged["FROM_TIER"]
    to_tier = merged["TO_TIER"]
    merged["TIER_CHANGE"] = from_tier - to_tier
    merged["SCORE_CHANGE"] = (merged["TOTAL_SCORE_TO"] - merged["TOTAL_SCORE_FROM"]).round(4)

    merged["MOVEMENT_TYPE"] = np.select(
        [
            from_tier.isna(),
            to_tier.isna(),
            merged["TIER_CHANGE"] > 0,
            merged["TIER_CHANGE"] < 0,
        ],
        ["NEW", "CHURNED", "UPGRADE", "DOWNGRADE"],
        default="STABLE",
    )

    logger.info(
        "Tier movement: %s",
        merged["MOVEMENT_TYPE"].value_counts().to_dict(),
    )
    return merged[
        keys + ["FROM_TIER", "TO_TIER", "TIER_CHANGE", "SCORE_CHANGE", "MOVEMENT_TYPE"]
    ].sort_values(keys).reset_index(drop=True)


def movement_summary(movements: pd.DataFrame) -> Dict[str, float]:
    """
    Counts per movement type plus rates over retained customers.

    Rates are percentages rounded to 2 decimals; retained customers
    are those present in both periods.
    """
    counts = movements["MOVEMENT_TYPE"].value_counts()
    summary = {f"total_{kind.lower()}": int(counts.get(kind, 0)) for kind in MOVEMENT_TYPES}
    retained = sum(summary[f"total_{kind.lower()}"] for kind in RETAINED_TYPES)
    summary["total_retained"] = retained

    for kind in RETAINED_TYPES:
        count = summary[f"total_{kind.lower()}"]
        summary[f"{kind.lower()}_rate"] = round(count / retained * 100, 2) if retained else 0.0
    return summary


def movement_matrix(movements: pd.DataFrame) -> pd.DataFrame:
    """From-tier x to-tier counts for retained customers, with totals."""
    retained = movements[movements["MOVEMENT_TYPE"].isin(RETAINED_TYPES)]
    if retained.empty:
        return pd.DataFrame()
    return pd.crosstab(
        retained["FROM_TIER"].astype(int),
        retained["TO_TIER"].astype(int),
        rownames=["FROM_TIER"],
        colnames=["TO_TIER"],
        margins=True,
        margins_name="TOTAL",
    )
