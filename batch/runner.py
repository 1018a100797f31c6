"""
Batch runner for the KPI pipeline.

Single entry point for deriving period KPIs, comparing them with the
previous month and scoring customer tiers from CSV inputs.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Optional

import pandas as pd

from kpi_core.comparison import ComparisonResult, compare, format_change
from kpi_core.config import TierConfig
from kpi_core.errors import InvalidInputError
from kpi_core.kpis import DerivedKPISet, aggregate_period, daily_average, derive
from kpi_core.lifetime import LifetimeAggregate, summarize_lifetime
from kpi_core.movement import calculate_tier_movement, movement_summary
from kpi_core.periods import previous_month
from kpi_core.scorer import ScoringResult, TierScorer

from .config import RunConfig
from .logger import RunLogger

logger = logging.getLogger(__name__)

# Figures printed by RunResult.summary()
SUMMARY_KPIS = [
    "active_member",
    "deposit_amount",
    "ggr",
    "net_profit",
    "avg_transaction_value",
    "retention_rate",
    "churn_rate",
]


@dataclass
class RunResult:
    """Container for run results."""

    run_id: str
    config: RunConfig
    timestamp: datetime
    duration_seconds: float
    kpis: Optional[DerivedKPISet] = None
    previous_kpis: Optional[DerivedKPISet] = None
    comparison: dict[str, ComparisonResult] = field(default_factory=dict)
    daily_kpis: Optional[DerivedKPISet] = None
    daily_comparison: dict[str, ComparisonResult] = field(default_factory=dict)
    tiers: Optional[ScoringResult] = None
    movement: Optional[dict] = None

    def tier_counts(self) -> dict:
        if self.tiers is None:
            return {}
        return {str(k): int(v) for k, v in self.tiers.df["TIER_NAME"].value_counts().items()}

    def summary(self) -> str:
        """Human-readable summary."""
        period = (
            f"{self.config.year}-{self.config.month:02d}"
            if self.config.year is not None and self.config.month is not None
            else "n/a"
        )
        lines = [
            f"[{self.run_id}] {self.config.name} ({period}, "
            f"{self.config.currency or 'All'}/{self.config.line or 'All'})"
        ]

        if self.kpis is not None:
            values = self.kpis.to_dict()
            for name in SUMMARY_KPIS:
                line = f"  {name:<24}{values[name]:>16,.4f}"
                if name in self.comparison:
                    line += f"  {format_change(self.comparison[name].percentage_change)}"
                lines.append(line)

        counts = self.tier_counts()
        if counts:
            lines.append("  Tiers: " + ", ".join(f"{k}={v}" for k, v in counts.items()))
        if self.movement:
            lines.append(
                "  Movement: "
                f"up={self.movement['total_upgrade']} "
                f"down={self.movement['total_downgrade']} "
                f"stable={self.movement['total_stable']} "
                f"new={self.movement['total_new']} "
                f"churned={self.movement['total_churned']}"
            )
        return "\n".join(lines)


class BatchRunner:
    """
    Single entry point for batch runs.

    Usage:
        runner = BatchRunner()

        # From YAML config
        result = runner.run_from_yaml("batch/configs/myr_monthly.yaml")

        # From RunConfig object
        config = RunConfig(name="custom", ...)
        result = runner.run(config)

        # Batch run
        results = runner.run_batch(["batch/configs/myr_monthly.yaml", "batch/configs/sgd_monthly.yaml"])
    """

    def __init__(
        self,
        base_path: Optional[Path] = None,
        logs_dir: str = "logs",
    ):
        """
        Initialize runner.

        Args:
            base_path: Base path for data files and logs (default: cwd)
            logs_dir: Subdirectory for logs
        """
        self.base_path = Path(base_path) if base_path else Path.cwd()
        self.logs_dir = self.base_path / logs_dir
        self.run_logger = RunLogger(self.logs_dir)

    def generate_run_id(self) -> str:
        """Generate unique run ID: run_YYYYMMDD_XXXX"""
        date_str = datetime.now().strftime("%Y%m%d")
        short_uuid = uuid.uuid4().hex[:4]
        return f"run_{date_str}_{short_uuid}"

    def _resolve(self, path: str) -> Path:
        resolved = Path(path)
        if not resolved.is_absolute():
            resolved = self.base_path / resolved
        if not resolved.exists():
            raise FileNotFoundError(f"Input file not found: {resolved}")
        return resolved

    def _read_csv(self, path: str) -> pd.DataFrame:
        return pd.read_csv(self._resolve(path))

    @staticmethod
    def _filter(df: pd.DataFrame, config: RunConfig, optional: bool = False) -> pd.DataFrame:
        """Currency and line filters; with ``optional`` a column the frame lacks is skipped."""
        mask = pd.Series(True, index=df.index)
        for column, value in (("CURRENCY", config.currency), ("LINE", config.line)):
            if value is None or (optional and column not in df.columns):
                continue
            mask &= df[column] == value
        return df[mask]

    @staticmethod
    def _month(df: pd.DataFrame, year: int, month: int) -> pd.DataFrame:
        return df[(df["YEAR"] == year) & (df["MONTH"] == month)]

    def _derive_kpis(
        self, config: RunConfig
    ) -> tuple[DerivedKPISet, Optional[DerivedKPISet], Optional[date]]:
        rows = self._read_csv(config.rows_path)
        missing = {"CURRENCY", "LINE", "YEAR", "MONTH"} - set(rows.columns)
        if missing:
            raise InvalidInputError(f"Rows file missing columns: {missing}")
        rows = self._filter(rows, config)

        history = self._history(config)

        year, month = config.year, config.month
        prev_year, prev_month = previous_month(year, month)
        current = self._month(rows, year, month)
        prior = self._month(rows, prev_year, prev_month)
        logger.info(
            "%s: %d rows in %d-%02d, %d rows in %d-%02d",
            config.name, len(current), year, month, len(prior), prev_year, prev_month,
        )
        kpis = derive(aggregate_period(current, prior), self._lifetime(history, year, month))

        previous_kpis = None
        if config.compare_previous:
            before = self._month(rows, *previous_month(prev_year, prev_month))
            previous_kpis = derive(
                aggregate_period(prior, before),
                self._lifetime(history, prev_year, prev_month),
            )
        return kpis, previous_kpis, self._last_data_date(current)

    @staticmethod
    def _last_data_date(rows: pd.DataFrame) -> Optional[date]:
        """Latest DATE in daily-grain rows; None for monthly rows."""
        if "DATE" not in rows.columns or rows["DATE"].isna().all():
            return None
        return pd.to_datetime(rows["DATE"]).max().date()

    def _history(self, config: RunConfig) -> Optional[pd.DataFrame]:
        if not config.history_path:
            return None
        return self._filter(self._read_csv(config.history_path), config)

    @staticmethod
    def _lifetime(
        history: Optional[pd.DataFrame], year: int, month: int
    ) -> LifetimeAggregate:
        """Lifetime metrics over the history up to and including year-month."""
        if history is None:
            return LifetimeAggregate()
        return summarize_lifetime(history, as_of=(year, month))

    def _score_tiers(self, config: RunConfig) -> tuple[ScoringResult, Optional[dict]]:
        tier_config = (
            TierConfig.from_yaml(self._resolve(config.tier_config_path))
            if config.tier_config_path
            else None
        )
        scorer = TierScorer(tier_config)
        inputs = self._filter(self._read_csv(config.tier_inputs_path), config, optional=True)
        tiers = scorer.score(inputs)

        movement = None
        if config.previous_tiers_path:
            previous = self._filter(self._read_csv(config.previous_tiers_path), config, optional=True)
            if "TIER" not in previous.columns:
                previous = scorer.score(previous).df
            keys = ["USERKEY", "LINE"] if {"LINE"} <= set(previous.columns) & set(tiers.df.columns) else ["USERKEY"]
            movements = calculate_tier_movement(tiers.df, previous, keys=keys)
            movement = movement_summary(movements)
        return tiers, movement

    def run(self, config: RunConfig) -> RunResult:
        """
        Run a single batch job.

        Args:
            config: RunConfig to run

        Returns:
            RunResult with KPIs, comparison and tier results
        """
        run_id = self.generate_run_id()
        start_time = datetime.now()

        try:
            kpis = previous_kpis = daily_kpis = None
            comparison = {}
            daily_comparison = {}
            if config.rows_path:
                kpis, previous_kpis, last_data_date = self._derive_kpis(config)
                if previous_kpis is not None:
                    comparison = compare(kpis, previous_kpis)
                if config.daily_average:
                    daily_kpis = daily_average(kpis, config.year, config.month, last_data_date)
                    if previous_kpis is not None:
                        prev_year, prev_month = previous_month(config.year, config.month)
                        daily_comparison = compare(
                            daily_kpis, daily_average(previous_kpis, prev_year, prev_month)
                        )

            tiers = movement = None
            if config.tier_inputs_path:
                tiers, movement = self._score_tiers(config)

            result = RunResult(
                run_id=run_id,
                config=config,
                timestamp=start_time,
                duration_seconds=(datetime.now() - start_time).total_seconds(),
                kpis=kpis,
                previous_kpis=previous_kpis,
                comparison=comparison,
                daily_kpis=daily_kpis,
                daily_comparison=daily_comparison,
                tiers=tiers,
                movement=movement,
            )
            self.run_logger.log_run(result)
            return result

        except Exception as e:
            logger.error("Run %s (%s) failed: %s", run_id, config.name, e)
            self.run_logger.log_failure(run_id, config, str(e))
            raise

    def run_from_yaml(self, config_path: str | Path) -> RunResult:
        """
        Load config from YAML and run.

        Args:
            config_path: Path to YAML config (relative to base_path or absolute)
        """
        path = Path(config_path)
        if not path.is_absolute() and (self.base_path / path).exists():
            path = self.base_path / path
        return self.run(RunConfig.from_yaml(path))

    def run_batch(
        self,
        config_paths: list[str | Path],
        stop_on_failure: bool = False,
    ) -> list[RunResult]:
        """
        Run multiple configs in sequence.

        Args:
            config_paths: List of paths to YAML configs
            stop_on_failure: Whether to stop if a run errors

        Returns:
            List of successful RunResults
        """
        results = []
        for path in config_paths:
            try:
                result = self.run_from_yaml(path)
                results.append(result)
                logger.info("\n%s", result.summary())
            except Exception as e:
                logger.error("%s - %s", path, e)
                if stop_on_failure:
                    raise
        return results

    def list_runs(self) -> pd.DataFrame:
        """History of past runs."""
        return self.run_logger.get_summary_dataframe()
