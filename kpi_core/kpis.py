"""
KPI derivation from raw period aggregates.

All formulas live in this module. Every ratio goes through
``safe_divide`` so no derived field is ever NaN or infinite; an
undefined ratio resolves to 0.

Formulas (per currency / line / period bucket):
- GGR            = deposit_amount - withdraw_amount
- Net profit     = GGR + add_transaction - deduct_transaction
- ATV            = deposit_amount / deposit_cases
- PF             = deposit_cases / active_member
- Winrate        = GGR / deposit_amount                  (fraction)
- Retention rate = retained_member / prior_active_member (fraction)
- Churn rate     = 1 - retention rate, within [0, 1]
- Growth rate    = (active - prior_active) / prior_active

Daily averages divide the additive totals by the active days of the
month; ratios are unchanged since numerator and denominator scale alike.
"""

import logging
import math
from dataclasses import asdict, dataclass, fields, replace
from datetime import date
from typing import Dict, List, Optional

import pandas as pd

from .config import customer_value_threshold
from .errors import InvalidInputError
from .guards import clamp, safe_divide, safe_divide_series
from .lifetime import LifetimeAggregate
from .periods import active_days
from .schemas import TRANSACTION_ROWS_SCHEMA, validate_frame

logger = logging.getLogger(__name__)

BUCKET_KEYS = ["CURRENCY", "LINE", "YEAR", "MONTH"]

LABEL_FIELDS = ("currency", "line", "year", "month", "start_date", "end_date")

# Additive totals that ``daily_average`` spreads over the active days
DAILY_FIELDS = (
    "deposit_amount", "deposit_cases", "withdraw_amount", "withdraw_cases",
    "active_member", "ggr", "net_profit", "churn_member", "pure_member",
)


@dataclass(frozen=True)
class RawPeriodAggregate:
    """
    Totals for one (currency, line, period) bucket.

    ``prior_active_member`` and ``retained_member`` describe the
    previous period (same filters) and are needed for retention,
    churn and growth. The adjustment fields default to 0, in which
    case net profit equals GGR.
    """

    currency: Optional[str] = None
    line: Optional[str] = None
    year: Optional[int] = None
    month: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    deposit_amount: float = 0.0
    deposit_cases: int = 0
    withdraw_amount: float = 0.0
    withdraw_cases: int = 0
    active_member: int = 0
    unique_customers: int = 0
    prior_active_member: int = 0
    retained_member: int = 0
    add_transaction: float = 0.0
    deduct_transaction: float = 0.0
    valid_bet_amount: float = 0.0
    new_depositor: int = 0
    new_register: int = 0

    def __post_init__(self) -> None:
        for name in (
            "deposit_amount", "deposit_cases", "withdraw_amount", "withdraw_cases",
            "active_member", "unique_customers", "prior_active_member",
            "retained_member", "valid_bet_amount", "new_depositor", "new_register",
        ):
            value = getattr(self, name)
            if value is None or not math.isfinite(value) or value < 0:
                raise InvalidInputError(f"{name} must be a finite non-negative number, got {value!r}")
        for name in ("add_transaction", "deduct_transaction"):
            value = getattr(self, name)
            if value is None or not math.isfinite(value):
                raise InvalidInputError(f"{name} must be a finite number, got {value!r}")
        if self.retained_member > self.prior_active_member:
            raise InvalidInputError(
                f"retained_member ({self.retained_member}) cannot exceed "
                f"prior_active_member ({self.prior_active_member})"
            )


@dataclass(frozen=True)
class DerivedKPISet:
    """Derived metrics for one bucket. Rates are fractions, not percent."""

    deposit_amount: float
    deposit_cases: int
    withdraw_amount: float
    withdraw_cases: int
    active_member: int
    ggr: float
    net_profit: float
    avg_transaction_value: float
    purchase_frequency: float
    winrate: float
    retention_rate: float
    churn_rate: float
    growth_rate: float
    churn_member: int
    customer_lifetime_value: float
    avg_customer_lifespan: float
    customer_maturity_index: float
    ggr_per_user: float
    deposit_amount_per_user: float
    pure_member: int
    ggr_per_pure_user: float
    conversion_rate: float
    hold_percentage: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def derive(
    raw: RawPeriodAggregate,
    lifetime: Optional[LifetimeAggregate] = None,
) -> DerivedKPISet:
    """
    Derive every KPI for one bucket.

    Args:
        raw: Period totals (already filtered by the caller)
        lifetime: Full-history aggregate for CLV, lifespan and maturity;
            those three are 0 when omitted

    Returns:
        A new DerivedKPISet
    """
    lifetime = lifetime or LifetimeAggregate()

    ggr = raw.deposit_amount - raw.withdraw_amount
    net_profit = ggr + raw.add_transaction - raw.deduct_transaction
    retention = clamp(safe_divide(raw.retained_member, raw.prior_active_member), 0.0, 1.0)
    # No prior actives: churn is undefined, so 0 rather than 1 - retention
    churn = clamp(1.0 - retention, 0.0, 1.0) if raw.prior_active_member > 0 else 0.0
    pure_member = max(raw.active_member - raw.new_depositor, 0)

    return DerivedKPISet(
        deposit_amount=raw.deposit_amount,
        deposit_cases=raw.deposit_cases,
        withdraw_amount=raw.withdraw_amount,
        withdraw_cases=raw.withdraw_cases,
        active_member=raw.active_member,
        ggr=ggr,
        net_profit=net_profit,
        avg_transaction_value=safe_divide(raw.deposit_amount, raw.deposit_cases),
        purchase_frequency=safe_divide(raw.deposit_cases, raw.active_member),
        winrate=safe_divide(ggr, raw.deposit_amount),
        retention_rate=retention,
        churn_rate=churn,
        growth_rate=safe_divide(
            raw.active_member - raw.prior_active_member, raw.prior_active_member
        ),
        churn_member=raw.prior_active_member - raw.retained_member,
        customer_lifetime_value=lifetime.customer_lifetime_value,
        avg_customer_lifespan=lifetime.avg_customer_lifespan,
        customer_maturity_index=lifetime.customer_maturity_index,
        ggr_per_user=safe_divide(net_profit, raw.active_member),
        deposit_amount_per_user=safe_divide(raw.deposit_amount, raw.active_member),
        pure_member=pure_member,
        ggr_per_pure_user=safe_divide(ggr, pure_member),
        conversion_rate=safe_divide(raw.new_depositor, raw.new_register),
        hold_percentage=safe_divide(ggr, raw.valid_bet_amount),
    )


def daily_average(
    kpis: DerivedKPISet,
    year: int,
    month: int,
    last_data_date: Optional[date] = None,
    today: Optional[date] = None,
) -> DerivedKPISet:
    """
    Per-day view of a monthly KPI set.

    A completed month is spread over all its days; the ongoing month
    over the days elapsed up to ``last_data_date`` (see
    ``periods.active_days``).
    """
    days = active_days(year, month, last_data_date, today)
    logger.debug("Daily average for %d-%02d over %d days", year, month, days)
    return replace(kpis, **{name: getattr(kpis, name) / days for name in DAILY_FIELDS})


def _active_members(rows: pd.DataFrame) -> set:
    return set(rows.loc[rows["DEPOSIT_CASES"] > 0, "USERKEY"].astype(str))


def _column_sum(rows: pd.DataFrame, column: str) -> float:
    if column not in rows.columns:
        return 0.0
    return float(pd.to_numeric(rows[column], errors="coerce").fillna(0).sum())


def aggregate_period(
    rows: pd.DataFrame,
    prior_rows: Optional[pd.DataFrame] = None,
    new_depositor: int = 0,
    new_register: int = 0,
    validate: bool = True,
) -> RawPeriodAggregate:
    """
    Collapse raw rows of one bucket into a RawPeriodAggregate.

    An active member is a distinct USERKEY with at least one deposit
    case. Retained members are those active in both ``rows`` and
    ``prior_rows``.

    Args:
        rows: Current-period rows, already filtered to one bucket
        prior_rows: Previous-period rows with the same filters
        new_depositor: First-time depositors (from the data source)
        new_register: New registrations (from the data source)
        validate: Run schema validation on the rows

    Returns:
        RawPeriodAggregate; currency/line/year/month are filled when
        the rows hold a single value for them
    """
    if validate:
        rows = validate_frame(TRANSACTION_ROWS_SCHEMA, rows)
        if prior_rows is not None:
            prior_rows = validate_frame(TRANSACTION_ROWS_SCHEMA, prior_rows)

    current_active = _active_members(rows)
    prior_active = _active_members(prior_rows) if prior_rows is not None else set()

    def single(column: str):
        if column not in rows.columns:
            return None
        values = rows[column].dropna().unique().tolist()
        return values[0] if len(values) == 1 else None

    aggregate = RawPeriodAggregate(
        currency=single("CURRENCY"),
        line=single("LINE"),
        year=single("YEAR"),
        month=single("MONTH"),
        deposit_amount=_column_sum(rows, "DEPOSIT_AMOUNT"),
        deposit_cases=int(_column_sum(rows, "DEPOSIT_CASES")),
        withdraw_amount=_column_sum(rows, "WITHDRAW_AMOUNT"),
        withdraw_cases=int(_column_sum(rows, "WITHDRAW_CASES")),
        active_member=len(current_active),
        unique_customers=int(rows["USERKEY"].nunique()) if "USERKEY" in rows.columns else 0,
        prior_active_member=len(prior_active),
        retained_member=len(current_active & prior_active),
        add_transaction=_column_sum(rows, "ADD_TRANSACTION"),
        deduct_transaction=_column_sum(rows, "DEDUCT_TRANSACTION"),
        valid_bet_amount=_column_sum(rows, "VALID_BET_AMOUNT"),
        new_depositor=new_depositor,
        new_register=new_register,
    )
    logger.debug(
        "Aggregated %d rows: %d active, %d prior active, %d retained",
        len(rows), aggregate.active_member, aggregate.prior_active_member,
        aggregate.retained_member,
    )
    return aggregate


def aggregate_by_bucket(
    rows: pd.DataFrame,
    prior_rows: Optional[pd.DataFrame] = None,
) -> List[RawPeriodAggregate]:
    """
    One aggregate per (CURRENCY, LINE, YEAR, MONTH) bucket in ``rows``.

    Prior-period rows are matched to a bucket on CURRENCY and LINE.
    """
    rows = validate_frame(TRANSACTION_ROWS_SCHEMA, rows)
    if prior_rows is not None:
        prior_rows = validate_frame(TRANSACTION_ROWS_SCHEMA, prior_rows)

    aggregates = []
    for (currency, line, _, _), bucket in rows.groupby(BUCKET_KEYS, sort=True):
        prior_bucket = None
        if prior_rows is not None:
            prior_bucket = prior_rows[
                (prior_rows["CURRENCY"] == currency) & (prior_rows["LINE"] == line)
            ]
        aggregates.append(aggregate_period(bucket, prior_bucket, validate=False))
    return aggregates


def derive_frame(aggregates: pd.DataFrame) -> pd.DataFrame:
    """
    Vectorized ``derive`` over a frame of bucket totals.

    Expects lower-case columns named like RawPeriodAggregate fields
    (deposit_amount, deposit_cases, withdraw_amount, active_member,
    ...). Missing optional columns count as 0.

    Returns:
        Copy of ``aggregates`` with the derived columns added
    """
    required = {"deposit_amount", "deposit_cases", "withdraw_amount", "active_member"}
    missing = required - set(aggregates.columns)
    if missing:
        raise InvalidInputError(f"Missing required columns: {missing}")

    df = aggregates.copy()
    for name in (f.name for f in fields(RawPeriodAggregate)):
        if name not in df.columns and name not in LABEL_FIELDS:
            df[name] = 0.0

    df["ggr"] = df["deposit_amount"] - df["withdraw_amount"]
    df["net_profit"] = df["ggr"] + df["add_transaction"] - df["deduct_transaction"]
    df["avg_transaction_value"] = safe_divide_series(df["deposit_amount"], df["deposit_cases"])
    df["purchase_frequency"] = safe_divide_series(df["deposit_cases"], df["active_member"])
    df["winrate"] = safe_divide_series(df["ggr"], df["deposit_amount"])
    df["retention_rate"] = safe_divide_series(
        df["retained_member"], df["prior_active_member"]
    ).clip(0.0, 1.0)
    df["churn_rate"] = (1.0 - df["retention_rate"]).where(df["prior_active_member"] > 0, 0.0)
    df["growth_rate"] = safe_divide_series(
        df["active_member"] - df["prior_active_member"], df["prior_active_member"]
    )
    df["churn_member"] = df["prior_active_member"] - df["retained_member"]
    df["ggr_per_user"] = safe_divide_series(df["net_profit"], df["active_member"])
    df["deposit_amount_per_user"] = safe_divide_series(df["deposit_amount"], df["active_member"])
    df["pure_member"] = (df["active_member"] - df["new_depositor"]).clip(lower=0)
    df["ggr_per_pure_user"] = safe_divide_series(df["ggr"], df["pure_member"])
    df["conversion_rate"] = safe_divide_series(df["new_depositor"], df["new_register"])
    df["hold_percentage"] = safe_divide_series(df["ggr"], df["valid_bet_amount"])
    return df


def aggregates_to_frame(aggregates: List[RawPeriodAggregate]) -> pd.DataFrame:
    """Stack aggregates into a frame suitable for ``derive_frame``."""
    return pd.DataFrame([asdict(a) for a in aggregates])


def classify_customer_value(deposit_amount: float, currency: Optional[str]) -> str:
    """
    "High Value" when the deposit amount reaches the currency threshold.

    MYR 2,000 / SGD 700 / USC 500; other currencies use the MYR threshold.
    """
    if deposit_amount is not None and deposit_amount >= customer_value_threshold(currency):
        return "High Value"
    return "Low Value"
