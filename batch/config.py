"""
Run configuration for the KPI batch pipeline.

Defines the RunConfig dataclass for YAML-driven runs.
"""

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

import yaml

from kpi_core.errors import ConfigurationError
from kpi_core.periods import month_number


@dataclass
class RunConfig:
    """
    Configuration for a single batch run.

    Load from YAML:
        config = RunConfig.from_yaml("batch/configs/myr_monthly.yaml")

    Create programmatically:
        config = RunConfig(
            name="myr_march",
            currency="MYR",
            year=2025,
            month=3,
            rows_path="data/rows.csv",
        )

    Data paths are resolved against the runner's base path.
    """

    # Metadata
    name: str
    description: str = ""

    # Filters ("All" or None means no filter)
    currency: Optional[str] = None
    line: Optional[str] = None
    year: Optional[int] = None
    month: Optional[int] = None

    # Derive the previous month too and compare against it
    compare_previous: bool = True
    # Also report per-day averages (ongoing month: days with data so far)
    daily_average: bool = False

    # Raw transaction rows (KPI derivation)
    rows_path: Optional[str] = None
    # Full monthly history (CLV / lifespan / maturity)
    history_path: Optional[str] = None

    # Per-customer tier inputs and optional tier table overrides
    tier_inputs_path: Optional[str] = None
    tier_config_path: Optional[str] = None
    # Previous period tiers (scored or raw inputs) for tier movement
    previous_tiers_path: Optional[str] = None

    def __post_init__(self):
        if not self.rows_path and not self.tier_inputs_path:
            raise ConfigurationError(
                f"Run '{self.name}' needs rows_path and/or tier_inputs_path"
            )
        if self.rows_path and (self.year is None or self.month is None):
            raise ConfigurationError(f"Run '{self.name}' needs year and month to derive KPIs")
        if self.month is not None:
            self.month = month_number(self.month)
        if self.currency == "All":
            self.currency = None
        if self.line == "All":
            self.line = None

    @classmethod
    def from_yaml(cls, path: Path | str) -> "RunConfig":
        """Load configuration from YAML file."""
        path = Path(path)
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        try:
            return cls(**data)
        except TypeError as exc:
            raise ConfigurationError(f"Invalid run config {path}: {exc}") from exc

    def to_yaml(self, path: Path | str) -> None:
        """Save configuration to YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.safe_dump(asdict(self), f, default_flow_style=False, sort_keys=False)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)
