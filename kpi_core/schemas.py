"""
Data schema definitions for the KPI engine.

Uses Pandera for runtime validation of input DataFrames so malformed
rows are rejected at the boundary, before any derivation or scoring.
"""

import pandera as pa
from pandera import Check, Column, DataFrameSchema

from .errors import InvalidInputError

MONTHS = list(range(1, 13))


# Raw per-customer transaction rows (daily or monthly grain)
TRANSACTION_ROWS_SCHEMA = DataFrameSchema(
    {
        "USERKEY": Column(
            str,
            nullable=False,
            description="Customer identifier within a brand/line",
        ),
        "CURRENCY": Column(str, nullable=False, description="Currency code (MYR, SGD, USC, ...)"),
        "LINE": Column(str, nullable=False, description="Brand / line"),
        "YEAR": Column(
            int,
            nullable=False,
            checks=Check.in_range(2000, 2100),
        ),
        "MONTH": Column(
            int,
            nullable=False,
            checks=Check.isin(MONTHS),
            description="Calendar month number (1-12)",
        ),
        "DEPOSIT_AMOUNT": Column(
            float,
            nullable=False,
            checks=Check.greater_than_or_equal_to(0),
        ),
        "DEPOSIT_CASES": Column(
            int,
            nullable=False,
            checks=Check.greater_than_or_equal_to(0),
        ),
        "WITHDRAW_AMOUNT": Column(
            float,
            nullable=False,
            checks=Check.greater_than_or_equal_to(0),
        ),
        "WITHDRAW_CASES": Column(
            int,
            nullable=False,
            checks=Check.greater_than_or_equal_to(0),
        ),
        "ADD_TRANSACTION": Column(float, nullable=True, required=False),
        "DEDUCT_TRANSACTION": Column(float, nullable=True, required=False),
        "VALID_BET_AMOUNT": Column(
            float,
            nullable=True,
            required=False,
            checks=Check.greater_than_or_equal_to(0),
        ),
    },
    strict=False,  # Allow extra columns (date, unique code, ...)
    coerce=True,
    description="Raw deposit/withdraw rows per customer",
)


# Per-customer metrics fed to the tier scorer. No range checks: negative
# values score as zero, the same as TierScorer.score_single.
TIER_INPUT_SCHEMA = DataFrameSchema(
    {
        "DEPOSIT_AMOUNT": Column(
            float,
            nullable=True,
            description="Deposit amount in the period",
        ),
        "GGR": Column(
            float,
            nullable=True,  # may be negative (customer won)
            description="Deposits minus withdrawals",
        ),
        "PURCHASE_FREQUENCY": Column(
            float,
            nullable=True,
        ),
        "AVG_TRANSACTION_VALUE": Column(
            float,
            nullable=True,
        ),
        "WIN_RATE": Column(
            float,
            nullable=True,
            description="GGR / deposit amount, in percent (may be negative)",
        ),
    },
    strict=False,
    coerce=True,
    description="Schema for tier scoring input data",
)


# Classified output
TIER_OUTPUT_SCHEMA = DataFrameSchema(
    {
        "TOTAL_SCORE": Column(
            float,
            nullable=False,
            checks=Check.greater_than_or_equal_to(0),
        ),
        "POTENTIAL_SCORE": Column(
            float,
            nullable=False,
            checks=Check.in_range(0, 100),
        ),
        "TIER": Column(int, nullable=False, checks=Check.greater_than_or_equal_to(1)),
        "TIER_NAME": Column(str, nullable=False),
        "TIER_GROUP": Column(str, nullable=False),
        "POTENTIAL_TIER": Column(str, nullable=False),
    },
    strict=False,
    description="Schema for tier scoring output data",
)


def validate_frame(schema: DataFrameSchema, df):
    """Validate ``df`` against ``schema``, raising InvalidInputError on failure."""
    try:
        return schema.validate(df)
    except pa.errors.SchemaError as exc:
        raise InvalidInputError(f"{schema.description or 'Input'} failed validation: {exc}") from exc
