"""Numeric guards shared by every derived ratio."""

import math

import numpy as np
import pandas as pd


def safe_divide(numerator, denominator, default: float = 0.0) -> float:
    """
    Divide, returning ``default`` instead of NaN or infinity.

    A zero, missing or non-finite denominator yields ``default``, as
    does a non-finite result.
    """
    try:
        numerator = float(numerator)
        denominator = float(denominator)
    except (TypeError, ValueError):
        return default
    if denominator == 0 or not math.isfinite(denominator) or not math.isfinite(numerator):
        return default
    result = numerator / denominator
    return result if math.isfinite(result) else default


def safe_divide_series(numerator: pd.Series, denominator: pd.Series, default: float = 0.0) -> pd.Series:
    """Vectorized ``safe_divide``."""
    num = pd.to_numeric(numerator, errors="coerce").astype(float)
    den = pd.to_numeric(denominator, errors="coerce").astype(float)
    valid = (den != 0) & np.isfinite(den) & np.isfinite(num)
    result = num / den.where(valid, 1.0)
    result = result.where(valid & np.isfinite(result), default)
    return result


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
