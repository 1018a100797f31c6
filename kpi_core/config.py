"""
Static configuration for customer tier scoring.

All point tables, weights and tier thresholds live here as data so they
can be swapped (or loaded from YAML) without touching the scoring code.
Values mirror the scoring workbook:
- 5 scorable metrics (DA, GGR, PF, ATV, WIN_RATE)
- 7 value tiers from Super VIP down to Regular
- 3 potential tiers (P2, P1, ND_P)
"""

import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


class Metric(str, Enum):
    """Metrics that can be scored against a point table."""

    DA = "DA"
    GGR = "GGR"
    PF = "PF"
    ATV = "ATV"
    WIN_RATE = "WIN_RATE"

    @classmethod
    def parse(cls, value: "Metric | str") -> "Metric":
        """Resolve a metric from its enum member or name."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            raise ConfigurationError(f"Unknown metric: {value!r}") from None


class ZeroFallback(str, Enum):
    """What a metric scores when its value is below every threshold."""

    DASH = "dash"  # no score; excluded from weighted sums
    ZERO = "zero"


@dataclass(frozen=True)
class MetricPoint:
    """One knot of a step-wise scoring curve."""

    value: float
    score: float


@dataclass(frozen=True)
class MetricConfig:
    metric: Metric
    label: str
    points: Tuple[MetricPoint, ...]
    zero_fallback: ZeroFallback = ZeroFallback.DASH

    def validate(self) -> None:
        if not self.points:
            raise ConfigurationError(f"{self.metric.value}: point table is empty")
        for prev, curr in zip(self.points, self.points[1:]):
            if curr.value <= prev.value:
                raise ConfigurationError(
                    f"{self.metric.value}: point values must strictly increase "
                    f"({prev.value} -> {curr.value})"
                )
            if curr.score < prev.score:
                raise ConfigurationError(
                    f"{self.metric.value}: point scores must not decrease "
                    f"({prev.score} -> {curr.score})"
                )


@dataclass(frozen=True)
class ModuleWeight:
    metric: Metric
    weight: float
    enabled: bool = True


@dataclass(frozen=True)
class PotentialWeights:
    """Fixed weights for the secondary potential score."""

    pf: float = 0.25
    atv: float = 0.65
    win_rate: float = 0.10


@dataclass(frozen=True)
class TierDefinition:
    tier: int
    name: str
    group: str
    min_score: float


@dataclass(frozen=True)
class PotentialTierDefinition:
    name: str
    min_score: float


def _points(*pairs: Tuple[float, float]) -> Tuple[MetricPoint, ...]:
    return tuple(MetricPoint(value=v, score=s) for v, s in pairs)


DEFAULT_METRIC_CONFIGS: Tuple[MetricConfig, ...] = (
    MetricConfig(
        Metric.DA,
        "DA (Deposit Amount)",
        _points((65, 5), (200, 10), (700, 25), (1500, 35), (6000, 50),
                (15000, 65), (30000, 80), (100000, 100)),
        ZeroFallback.DASH,
    ),
    MetricConfig(
        Metric.GGR,
        "GGR (Gross Gaming Revenue)",
        _points((30, 5), (100, 10), (250, 25), (1000, 35), (4000, 50),
                (6500, 65), (16500, 80), (20000, 100)),
        ZeroFallback.ZERO,
    ),
    MetricConfig(
        Metric.PF,
        "PF (Purchase Frequency)",
        _points((3, 15), (6, 50), (12, 100)),
        ZeroFallback.DASH,
    ),
    MetricConfig(
        Metric.ATV,
        "ATV (Average Transaction Value)",
        _points((20, 15), (50, 50), (100, 100)),
        ZeroFallback.DASH,
    ),
    # Win rate is scored in percent (GGR / DA * 100)
    MetricConfig(
        Metric.WIN_RATE,
        "Win Rate",
        _points((15, 15), (30, 50), (50, 100)),
        ZeroFallback.ZERO,
    ),
)

DEFAULT_MODULE_WEIGHTS: Tuple[ModuleWeight, ...] = (
    ModuleWeight(Metric.DA, 0.30),
    ModuleWeight(Metric.GGR, 0.40),
    ModuleWeight(Metric.PF, 0.15),
    ModuleWeight(Metric.ATV, 0.15),
    ModuleWeight(Metric.WIN_RATE, 0.0, enabled=False),
)

DEFAULT_TIER_DEFINITIONS: Tuple[TierDefinition, ...] = (
    TierDefinition(1, "Super VIP", "High Value", 95),
    TierDefinition(2, "Tier 5", "High Value", 75),
    TierDefinition(3, "Tier 4", "Medium Value", 65),
    TierDefinition(4, "Tier 3", "Medium Value", 40),
    TierDefinition(5, "Tier 2", "Medium Value", 25),
    TierDefinition(6, "Tier 1", "Low Value", 15),
    TierDefinition(7, "Regular", "Low Value", 0),
)

DEFAULT_POTENTIAL_TIER_DEFINITIONS: Tuple[PotentialTierDefinition, ...] = (
    PotentialTierDefinition("P2", 50),
    PotentialTierDefinition("P1", 30),
    PotentialTierDefinition("ND_P", 0),
)

# Deposit amount at or above which a customer counts as "High Value"
CUSTOMER_VALUE_THRESHOLDS: Dict[str, float] = {
    "MYR": 2000,
    "SGD": 700,
    "USC": 500,
}
CUSTOMER_VALUE_DEFAULT_THRESHOLD: float = 2000


@dataclass(frozen=True)
class TierConfig:
    """
    Complete set of tier scoring tables.

    Tier tables are kept sorted by descending ``min_score`` so the
    classifier can take the first match. Construction validates the
    tables; a malformed table raises ConfigurationError here rather
    than at classification time.
    """

    metrics: Tuple[MetricConfig, ...] = DEFAULT_METRIC_CONFIGS
    weights: Tuple[ModuleWeight, ...] = DEFAULT_MODULE_WEIGHTS
    potential_weights: PotentialWeights = field(default_factory=PotentialWeights)
    tiers: Tuple[TierDefinition, ...] = DEFAULT_TIER_DEFINITIONS
    potential_tiers: Tuple[PotentialTierDefinition, ...] = DEFAULT_POTENTIAL_TIER_DEFINITIONS
    normalize_weights: bool = False
    version: str = "1.0.0"

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "tiers",
            tuple(sorted(self.tiers, key=lambda t: t.min_score, reverse=True)),
        )
        object.__setattr__(
            self, "potential_tiers",
            tuple(sorted(self.potential_tiers, key=lambda t: t.min_score, reverse=True)),
        )
        self.validate()

    def validate(self) -> None:
        """Raise ConfigurationError if any table is unusable."""
        seen = set()
        for metric_config in self.metrics:
            if metric_config.metric in seen:
                raise ConfigurationError(
                    f"Metric configured twice: {metric_config.metric.value}"
                )
            seen.add(metric_config.metric)
            metric_config.validate()
        missing = set(Metric) - seen
        if missing:
            names = sorted(m.value for m in missing)
            raise ConfigurationError(f"Missing point tables for: {names}")

        weighted = set()
        for weight in self.weights:
            if weight.metric in weighted:
                raise ConfigurationError(
                    f"Weight configured twice: {weight.metric.value}"
                )
            weighted.add(weight.metric)
            if weight.weight < 0:
                raise ConfigurationError(
                    f"Negative weight for {weight.metric.value}: {weight.weight}"
                )

        pw = self.potential_weights
        if min(pw.pf, pw.atv, pw.win_rate) < 0:
            raise ConfigurationError("Potential weights must be non-negative")

        if not self.tiers:
            raise ConfigurationError("Tier table is empty")
        if self.tiers[-1].min_score != 0:
            raise ConfigurationError("Tier table needs a catch-all with min_score 0")
        tier_numbers = [t.tier for t in self.tiers]
        if len(set(tier_numbers)) != len(tier_numbers):
            raise ConfigurationError(f"Duplicate tier numbers: {tier_numbers}")

        if not self.potential_tiers:
            raise ConfigurationError("Potential tier table is empty")
        if self.potential_tiers[-1].min_score != 0:
            raise ConfigurationError(
                "Potential tier table needs a catch-all with min_score 0"
            )

    def metric_config(self, metric: "Metric | str") -> MetricConfig:
        """Look up the point table for a metric."""
        metric = Metric.parse(metric)
        for metric_config in self.metrics:
            if metric_config.metric is metric:
                return metric_config
        raise ConfigurationError(f"No point table for {metric.value}")

    def enabled_weights(self) -> Tuple[ModuleWeight, ...]:
        return tuple(w for w in self.weights if w.enabled)

    # --- (de)serialisation -------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TierConfig":
        """
        Build a config from plain data (e.g. parsed YAML).

        Sections that are absent fall back to the defaults.
        """
        try:
            kwargs: Dict[str, Any] = {}
            if "metrics" in data:
                kwargs["metrics"] = tuple(
                    MetricConfig(
                        metric=Metric.parse(m["metric"]),
                        label=m.get("label", str(m["metric"])),
                        points=tuple(
                            MetricPoint(float(p["value"]), float(p["score"]))
                            for p in m["points"]
                        ),
                        zero_fallback=ZeroFallback(m.get("zero_fallback", "dash")),
                    )
                    for m in data["metrics"]
                )
            if "weights" in data:
                kwargs["weights"] = tuple(
                    ModuleWeight(
                        metric=Metric.parse(w["metric"]),
                        weight=float(w["weight"]),
                        enabled=bool(w.get("enabled", True)),
                    )
                    for w in data["weights"]
                )
            if "potential_weights" in data:
                kwargs["potential_weights"] = PotentialWeights(
                    **{k: float(v) for k, v in data["potential_weights"].items()}
                )
            if "tiers" in data:
                kwargs["tiers"] = tuple(
                    TierDefinition(
                        tier=int(t["tier"]),
                        name=t["name"],
                        group=t["group"],
                        min_score=float(t["min_score"]),
                    )
                    for t in data["tiers"]
                )
            if "potential_tiers" in data:
                kwargs["potential_tiers"] = tuple(
                    PotentialTierDefinition(p["name"], float(p["min_score"]))
                    for p in data["potential_tiers"]
                )
            for key in ("normalize_weights", "version"):
                if key in data:
                    kwargs[key] = data[key]
        except ConfigurationError:
            raise
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError(f"Malformed tier configuration: {exc}") from exc
        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, path: "Path | str") -> "TierConfig":
        """Load configuration from YAML file."""
        path = Path(path)
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        logger.debug("Loaded tier configuration from %s", path)
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        """Plain-data form, the inverse of from_dict."""
        return {
            "version": self.version,
            "normalize_weights": self.normalize_weights,
            "metrics": [
                {
                    "metric": m.metric.value,
                    "label": m.label,
                    "zero_fallback": m.zero_fallback.value,
                    "points": [asdict(p) for p in m.points],
                }
                for m in self.metrics
            ],
            "weights": [
                {"metric": w.metric.value, "weight": w.weight, "enabled": w.enabled}
                for w in self.weights
            ],
            "potential_weights": asdict(self.potential_weights),
            "tiers": [asdict(t) for t in self.tiers],
            "potential_tiers": [asdict(p) for p in self.potential_tiers],
        }

    def to_yaml(self, path: "Path | str") -> None:
        """Save configuration to YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)


def customer_value_threshold(currency: Optional[str]) -> float:
    return CUSTOMER_VALUE_THRESHOLDS.get(
        (currency or "").upper(), CUSTOMER_VALUE_DEFAULT_THRESHOLD
    )


# Default configuration instance
DEFAULT_CONFIG = TierConfig()
