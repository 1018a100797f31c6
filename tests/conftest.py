"""
Pytest fixtures for KPI engine tests.
"""

import pandas as pd
import pytest

# Add packages to path
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from kpi_core.config import TierConfig
from kpi_core.scorer import TierScorer, generate_sample_data


@pytest.fixture
def default_config():
    """Default tier configuration."""
    return TierConfig()


@pytest.fixture
def scorer(default_config):
    """TierScorer with default config."""
    return TierScorer(default_config)


@pytest.fixture
def sample_data():
    """100 sample customers with realistic distributions."""
    return generate_sample_data(n_customers=100, seed=42)


@pytest.fixture
def edge_cases():
    """Tier inputs at the interesting boundaries."""
    return pd.DataFrame([
        # Whale: tops every table
        {
            "USERKEY": "EDGE_WHALE",
            "LINE": "LINE_A",
            "DEPOSIT_AMOUNT": 150000.0,
            "GGR": 25000.0,
            "PURCHASE_FREQUENCY": 15.0,
            "AVG_TRANSACTION_VALUE": 500.0,
            "WIN_RATE": 16.7,
        },
        # No activity: dash on DA/PF/ATV, zero on GGR
        {
            "USERKEY": "EDGE_INACTIVE",
            "LINE": "LINE_A",
            "DEPOSIT_AMOUNT": 0.0,
            "GGR": 0.0,
            "PURCHASE_FREQUENCY": 0.0,
            "AVG_TRANSACTION_VALUE": 0.0,
            "WIN_RATE": 0.0,
        },
        # Exactly on the first thresholds
        {
            "USERKEY": "EDGE_BOUNDARY",
            "LINE": "LINE_B",
            "DEPOSIT_AMOUNT": 65.0,
            "GGR": 30.0,
            "PURCHASE_FREQUENCY": 3.0,
            "AVG_TRANSACTION_VALUE": 20.0,
            "WIN_RATE": 15.0,
        },
        # Customer won: negative GGR and win rate
        {
            "USERKEY": "EDGE_WINNER",
            "LINE": "LINE_B",
            "DEPOSIT_AMOUNT": 800.0,
            "GGR": -400.0,
            "PURCHASE_FREQUENCY": 4.0,
            "AVG_TRANSACTION_VALUE": 200.0,
            "WIN_RATE": -50.0,
        },
        # Missing values
        {
            "USERKEY": "EDGE_MISSING",
            "LINE": "LINE_C",
            "DEPOSIT_AMOUNT": None,
            "GGR": None,
            "PURCHASE_FREQUENCY": None,
            "AVG_TRANSACTION_VALUE": None,
            "WIN_RATE": None,
        },
    ])


@pytest.fixture
def single_customer():
    """Single customer for simple tests."""
    return {
        "USERKEY": "TEST_001",
        "LINE": "LINE_A",
        "DEPOSIT_AMOUNT": 7000.0,
        "GGR": 17000.0,
        "PURCHASE_FREQUENCY": 12.0,
        "AVG_TRANSACTION_VALUE": 60.0,
        "WIN_RATE": 0.0,
    }


def _row(userkey, currency, year, month, deposit, cases, withdraw, withdraw_cases, line="LINE_A"):
    return {
        "USERKEY": userkey,
        "CURRENCY": currency,
        "LINE": line,
        "YEAR": year,
        "MONTH": month,
        "DEPOSIT_AMOUNT": deposit,
        "DEPOSIT_CASES": cases,
        "WITHDRAW_AMOUNT": withdraw,
        "WITHDRAW_CASES": withdraw_cases,
    }


@pytest.fixture
def prior_rows():
    """February 2025, MYR: U1 and U2 deposit, U3 only withdraws."""
    return pd.DataFrame([
        _row("U1", "MYR", 2025, 2, 100.0, 2, 20.0, 1),
        _row("U2", "MYR", 2025, 2, 50.0, 1, 0.0, 0),
        _row("U3", "MYR", 2025, 2, 0.0, 0, 10.0, 1),
    ])


@pytest.fixture
def current_rows():
    """
    March 2025, MYR: U1 and U3 deposit, U4 is registered but idle.

    Totals: DA 500 over 5 cases, WA 150, 2 active (U1 retained).
    """
    return pd.DataFrame([
        _row("U1", "MYR", 2025, 3, 300.0, 3, 100.0, 1),
        _row("U3", "MYR", 2025, 3, 200.0, 2, 50.0, 1),
        _row("U4", "MYR", 2025, 3, 0.0, 0, 0.0, 0),
    ])


@pytest.fixture
def sgd_rows():
    """March 2025, SGD: a single depositor."""
    return pd.DataFrame([_row("U9", "SGD", 2025, 3, 80.0, 1, 0.0, 0)])


@pytest.fixture
def history():
    """
    Full monthly history up to March 2025.

    U1: active Jan-Mar, net 200
    U2: active Feb only, net 200
    U3: never deposited (excluded)
    """
    return pd.DataFrame([
        _row("U1", "MYR", 2025, 1, 100.0, 1, 0.0, 0),
        _row("U1", "MYR", 2025, 2, 100.0, 1, 50.0, 1),
        _row("U1", "MYR", 2025, 3, 100.0, 1, 50.0, 1),
        _row("U2", "MYR", 2025, 2, 200.0, 2, 0.0, 0),
        _row("U3", "MYR", 2025, 3, 0.0, 0, 30.0, 1),
    ])
