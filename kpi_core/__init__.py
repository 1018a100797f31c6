"""
KPI Core Package

Period KPI derivation, month-over-month comparison and rule-based
customer tier classification.
"""

from .classifier import TierClassifier, classify
from .comparison import ComparisonResult, compare, percentage_change
from .components import score
from .config import DEFAULT_CONFIG, Metric, TierConfig
from .errors import ConfigurationError, InvalidInputError, KPIEngineError
from .kpis import DerivedKPISet, RawPeriodAggregate, daily_average, derive
from .lifetime import LifetimeAggregate, summarize_lifetime
from .scorer import TierScorer

__all__ = [
    "TierScorer",
    "TierConfig",
    "TierClassifier",
    "DEFAULT_CONFIG",
    "Metric",
    "score",
    "classify",
    "RawPeriodAggregate",
    "DerivedKPISet",
    "derive",
    "daily_average",
    "LifetimeAggregate",
    "summarize_lifetime",
    "ComparisonResult",
    "compare",
    "percentage_change",
    "KPIEngineError",
    "ConfigurationError",
    "InvalidInputError",
]
__version__ = "1.0.0"
