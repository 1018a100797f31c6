"""
Month-over-month comparison of two KPI sets.

Both sides must be derived under the same currency/line filters;
picking the adjacent period is up to the caller (see ``periods``).
"""

import math
from dataclasses import asdict, dataclass, is_dataclass
from numbers import Number
from typing import Any, Dict, Mapping, Sequence

import numpy as np
import pandas as pd

from .errors import InvalidInputError
from .kpis import LABEL_FIELDS


@dataclass(frozen=True)
class ComparisonResult:
    absolute_diff: float
    percentage_change: float
    is_positive: bool


def percentage_change(current: float, prior: float) -> float:
    """
    Percent change from ``prior`` to ``current``.

    0 when both are 0, 100 when only ``prior`` is 0, otherwise
    (current - prior) / prior * 100. Not clamped.
    """
    if prior == 0:
        return 0.0 if current == 0 else 100.0
    return (current - prior) / prior * 100


def _is_numeric(value: Any) -> bool:
    return (
        isinstance(value, Number)
        and not isinstance(value, bool)
        and math.isfinite(float(value))
    )


def _numeric_fields(kpis: Any) -> Dict[str, float]:
    if kpis is None:
        return {}
    if is_dataclass(kpis):
        kpis = asdict(kpis)
    elif not isinstance(kpis, Mapping):
        raise InvalidInputError(f"Cannot compare object of type {type(kpis).__name__}")
    return {name: float(value) for name, value in kpis.items() if _is_numeric(value)}


def compare(current: Any, prior: Any) -> Dict[str, ComparisonResult]:
    """
    Compare every numeric field of two KPI sets.

    Args:
        current: DerivedKPISet (or any dataclass / mapping of numbers)
        prior: Same shape for the previous period

    Returns:
        ComparisonResult per field; a field missing on one side
        counts as 0 there
    """
    current_values = _numeric_fields(current)
    prior_values = _numeric_fields(prior)

    results = {}
    for name in list(current_values) + [n for n in prior_values if n not in current_values]:
        c = current_values.get(name, 0.0)
        p = prior_values.get(name, 0.0)
        diff = c - p
        results[name] = ComparisonResult(
            absolute_diff=diff,
            percentage_change=percentage_change(c, p),
            is_positive=diff > 0,
        )
    return results


def compare_frames(
    current: pd.DataFrame,
    prior: pd.DataFrame,
    keys: Sequence[str] = ("currency", "line"),
) -> pd.DataFrame:
    """
    Vectorized ``compare`` for one row per bucket.

    Buckets are matched on ``keys``; a bucket missing on one side
    compares against zeros. Period label columns (year,
    month) are left out.

    Returns:
        DataFrame with ``keys`` plus <field>_CURRENT, <field>_PRIOR,
        <field>_DIFF, <field>_PCT and <field>_POSITIVE per numeric field
    """
    keys = list(keys)
    missing = (set(keys) - set(current.columns)) | (set(keys) - set(prior.columns))
    if missing:
        raise InvalidInputError(f"Comparison keys missing from frames: {missing}")

    numeric = [
        col for col in current.select_dtypes("number").columns.union(
            prior.select_dtypes("number").columns, sort=False
        )
        if col not in keys and col not in LABEL_FIELDS
    ]
    columns = keys + numeric
    merged = current.reindex(columns=columns, fill_value=0.0).merge(
        prior.reindex(columns=columns, fill_value=0.0),
        on=keys,
        how="outer",
        suffixes=("_CURRENT", "_PRIOR"),
    )

    out = merged[keys].copy()
    for col in numeric:
        c = merged[f"{col}_CURRENT"].fillna(0.0).astype(float)
        p = merged[f"{col}_PRIOR"].fillna(0.0).astype(float)
        diff = c - p
        pct = np.where(
            p == 0,
            np.where(c == 0, 0.0, 100.0),
            diff / p.where(p != 0, 1.0) * 100,
        )
        out[f"{col}_CURRENT"] = c
        out[f"{col}_PRIOR"] = p
        out[f"{col}_DIFF"] = diff
        out[f"{col}_PCT"] = pct
        out[f"{col}_POSITIVE"] = diff > 0
    return out


def format_change(value: float, decimals: int = 1) -> str:
    """Signed percent for display, e.g. ``+12.5%`` / ``-3.0%``."""
    sign = "+" if value > 0 else ""
    return f"{sign}{value:.{decimals}f}%"
