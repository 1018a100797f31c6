"""
Batch pipeline for KPI derivation and tier scoring.

Usage:
    from batch import BatchRunner, RunConfig

    # Run from YAML
    runner = BatchRunner()
    result = runner.run_from_yaml("batch/configs/myr_monthly.yaml")
    print(result.summary())

    # Run programmatically
    config = RunConfig(
        name="myr_march",
        currency="MYR",
        year=2025,
        month=3,
        rows_path="data/rows.csv",
    )
    result = runner.run(config)

CLI:
    python -m batch.run batch/configs/myr_monthly.yaml
    python -m batch.run --list
"""

from .config import RunConfig
from .logger import RunLogger
from .runner import BatchRunner, RunResult

__all__ = [
    "RunConfig",
    "BatchRunner",
    "RunResult",
    "RunLogger",
]
