"""
Run logging for the KPI batch pipeline.

Each run leaves one JSON file in the logs directory, written whether
the run finished or errored. The summary frame reads them back as a run
history: period and filters, headline KPIs, the month-over-month
direction of each headline KPI, and tier movement totals.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import pandas as pd

if TYPE_CHECKING:
    from .config import RunConfig
    from .runner import RunResult

# KPIs carried into the run history, with their MoM direction
HEADLINE_KPIS = ["active_member", "ggr", "net_profit", "churn_rate"]


def _scope(config: "RunConfig") -> dict:
    """Period and filters a run was made for."""
    return {
        "name": config.name,
        "currency": config.currency or "All",
        "line": config.line or "All",
        "period": (
            f"{config.year}-{config.month:02d}"
            if config.year is not None and config.month is not None
            else None
        ),
    }


def _direction(change: Optional[dict]) -> Optional[str]:
    if not change:
        return None
    if change["absolute_diff"] > 0:
        return "up"
    if change["absolute_diff"] < 0:
        return "down"
    return "flat"


class RunLogger:
    """One JSON file per batch run, plus a tabular run history."""

    def __init__(self, logs_dir: Path):
        self.logs_dir = Path(logs_dir)
        self.logs_dir.mkdir(parents=True, exist_ok=True)

    def _write(self, run_id: str, entry: dict) -> Path:
        log_path = self.logs_dir / f"{run_id}.json"
        log_path.write_text(json.dumps(entry, indent=2, default=str))
        return log_path

    def log_run(self, result: "RunResult") -> Path:
        """
        Write the log of a finished run.

        Args:
            result: RunResult from the runner

        Returns:
            Path to the log file
        """
        comparison = {
            name: {
                "absolute_diff": change.absolute_diff,
                "percentage_change": change.percentage_change,
                "is_positive": change.is_positive,
            }
            for name, change in result.comparison.items()
        }
        return self._write(result.run_id, {
            "run_id": result.run_id,
            "status": "OK",
            "timestamp": result.timestamp.isoformat(),
            "duration_seconds": result.duration_seconds,
            "scope": _scope(result.config),
            "config": result.config.to_dict(),
            "results": {
                "kpis": result.kpis.to_dict() if result.kpis else None,
                "previous_kpis": (
                    result.previous_kpis.to_dict() if result.previous_kpis else None
                ),
                "daily_kpis": result.daily_kpis.to_dict() if result.daily_kpis else None,
                "comparison": comparison,
                "tier_counts": result.tier_counts(),
                "movement": result.movement,
            },
        })

    def log_failure(self, run_id: str, config: "RunConfig", error: str) -> Path:
        """Write the log of a run that raised; ``error`` is the message."""
        return self._write(run_id, {
            "run_id": run_id,
            "status": "ERROR",
            "timestamp": datetime.now().isoformat(),
            "scope": _scope(config),
            "config": config.to_dict(),
            "error": error,
        })

    def get_all_logs(self, status: Optional[str] = None) -> list[dict]:
        """
        Load run logs, oldest file name first.

        Args:
            status: Keep only runs with this status ("OK" or "ERROR")
        """
        logs = [
            json.loads(path.read_text())
            for path in sorted(self.logs_dir.glob("run_*.json"))
        ]
        if status is not None:
            logs = [log for log in logs if log["status"] == status]
        return logs

    def get_summary_dataframe(self) -> pd.DataFrame:
        """
        Run history as a DataFrame, newest first.

        One row per run with its scope, the headline KPIs and their
        direction against the previous month (<kpi>_MOM: up, down or
        flat), the number of customers per tier (TIER_<name>) and the
        tier movement totals. Errored runs keep only scope and error.
        """
        logs = self.get_all_logs()
        if not logs:
            return pd.DataFrame()

        rows = []
        for log in logs:
            row = {
                "run_id": log["run_id"],
                "timestamp": log["timestamp"],
                "status": log["status"],
                **log["scope"],
                "error": log.get("error"),
            }
            results = log.get("results") or {}
            kpis = results.get("kpis") or {}
            comparison = results.get("comparison") or {}
            for name in HEADLINE_KPIS:
                row[name] = kpis.get(name)
                row[f"{name}_MOM"] = _direction(comparison.get(name))
            for tier_name, count in (results.get("tier_counts") or {}).items():
                row[f"TIER_{tier_name}"] = count
            movement = results.get("movement") or {}
            for kind in ("upgrade", "downgrade", "new", "churned"):
                row[f"total_{kind}"] = movement.get(f"total_{kind}")
            rows.append(row)

        return pd.DataFrame(rows).sort_values("timestamp", ascending=False, ignore_index=True)
