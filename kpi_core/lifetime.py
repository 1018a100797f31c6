"""
Lifetime aggregates: CLV, average lifespan and maturity index.

Unlike the period KPIs these need every customer's full, unfiltered
monthly history. The caller supplies that history as rows with at
least USERKEY, YEAR, MONTH, DEPOSIT_AMOUNT, WITHDRAW_AMOUNT and
DEPOSIT_CASES (ADD_TRANSACTION / DEDUCT_TRANSACTION are optional).

A month counts as active for a customer when they made at least one
deposit in it.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .errors import InvalidInputError

logger = logging.getLogger(__name__)

HISTORY_COLUMNS = [
    "USERKEY",
    "YEAR",
    "MONTH",
    "DEPOSIT_AMOUNT",
    "WITHDRAW_AMOUNT",
    "DEPOSIT_CASES",
]

# Active months after which lifespan stops adding to maturity
DEFAULT_MATURITY_HORIZON = 12


@dataclass(frozen=True)
class LifetimeAggregate:
    """Customer-base lifetime metrics."""

    customer_count: int = 0
    customer_lifetime_value: float = 0.0
    avg_customer_lifespan: float = 0.0
    customer_maturity_index: float = 0.0


def _period_index(year: pd.Series, month: pd.Series) -> pd.Series:
    return year.astype(int) * 12 + (month.astype(int) - 1)


def customer_lifetime_frame(
    history: pd.DataFrame,
    as_of: Optional[Tuple[int, int]] = None,
    maturity_horizon: int = DEFAULT_MATURITY_HORIZON,
    keys: Sequence[str] = ("USERKEY",),
) -> pd.DataFrame:
    """
    Per-customer lifetime table.

    Args:
        history: Full monthly history rows
        as_of: (year, month) closing the observation window; defaults
            to the latest month present in ``history``
        maturity_horizon: Active months at which lifespan saturates
        keys: Columns identifying a customer

    Returns:
        DataFrame indexed by ``keys`` with NET_PROFIT, ACTIVE_PERIODS,
        FIRST_PERIOD, ELAPSED_PERIODS, CONSISTENCY and MATURITY.
        Customers without any deposit month are left out.
    """
    missing = (set(HISTORY_COLUMNS) | set(keys)) - set(history.columns)
    if missing:
        raise InvalidInputError(f"Lifetime history missing columns: {missing}")
    if maturity_horizon <= 0:
        raise InvalidInputError(f"maturity_horizon must be positive: {maturity_horizon}")

    keys = list(keys)
    df = history.copy()
    df["_PERIOD"] = _period_index(df["YEAR"], df["MONTH"])
    df["_NET"] = (
        df["DEPOSIT_AMOUNT"].fillna(0)
        + df.get("ADD_TRANSACTION", pd.Series(0.0, index=df.index)).fillna(0)
        - df["WITHDRAW_AMOUNT"].fillna(0)
        - df.get("DEDUCT_TRANSACTION", pd.Series(0.0, index=df.index)).fillna(0)
    )

    if as_of is None:
        end_period = int(df["_PERIOD"].max()) if len(df) else 0
    else:
        end_period = int(as_of[0]) * 12 + (int(as_of[1]) - 1)
        df = df[df["_PERIOD"] <= end_period]

    active = df[df["DEPOSIT_CASES"].fillna(0) > 0]
    per_customer = active.groupby(keys).agg(
        ACTIVE_PERIODS=("_PERIOD", "nunique"),
        FIRST_PERIOD=("_PERIOD", "min"),
    )
    net = df.groupby(keys)["_NET"].sum().rename("NET_PROFIT")
    per_customer = per_customer.join(net, how="left")

    elapsed = (end_period - per_customer["FIRST_PERIOD"] + 1).clip(lower=1)
    per_customer["ELAPSED_PERIODS"] = elapsed
    per_customer["CONSISTENCY"] = (per_customer["ACTIVE_PERIODS"] / elapsed).clip(upper=1.0)
    lifespan_ratio = (per_customer["ACTIVE_PERIODS"] / maturity_horizon).clip(upper=1.0)
    per_customer["MATURITY"] = 0.5 * lifespan_ratio + 0.5 * per_customer["CONSISTENCY"]

    return per_customer[
        ["NET_PROFIT", "ACTIVE_PERIODS", "FIRST_PERIOD", "ELAPSED_PERIODS", "CONSISTENCY", "MATURITY"]
    ]


def summarize_lifetime(
    history: pd.DataFrame,
    as_of: Optional[Tuple[int, int]] = None,
    maturity_horizon: int = DEFAULT_MATURITY_HORIZON,
    keys: Sequence[str] = ("USERKEY",),
) -> LifetimeAggregate:
    """
    Reduce full customer history to lifetime metrics.

    - CLV: mean cumulative net profit per customer
    - Avg lifespan: mean number of distinct active months
    - Maturity index: 100 x mean of
      0.5 * min(active / horizon, 1) + 0.5 * active / elapsed

    An empty history (or one without any deposits) yields zeros.
    """
    per_customer = customer_lifetime_frame(history, as_of, maturity_horizon, keys)
    if per_customer.empty:
        logger.warning("Lifetime history has no depositing customers; returning zeros")
        return LifetimeAggregate()

    logger.debug("Lifetime aggregate over %d customers", len(per_customer))
    clv = float(per_customer["NET_PROFIT"].mean())
    lifespan = float(per_customer["ACTIVE_PERIODS"].mean())
    maturity = float(per_customer["MATURITY"].mean()) * 100

    return LifetimeAggregate(
        customer_count=int(len(per_customer)),
        customer_lifetime_value=clv if np.isfinite(clv) else 0.0,
        avg_customer_lifespan=lifespan if np.isfinite(lifespan) else 0.0,
        customer_maturity_index=maturity if np.isfinite(maturity) else 0.0,
    )
