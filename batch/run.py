#!/usr/bin/env python3
"""
CLI entry point for the KPI batch pipeline.

Usage:
    # Run single config
    python -m batch.run batch/configs/myr_monthly.yaml

    # Run multiple configs
    python -m batch.run batch/configs/myr_monthly.yaml batch/configs/sgd_monthly.yaml

    # List past runs
    python -m batch.run --list
"""

import argparse
import logging
import sys
from pathlib import Path

from .runner import BatchRunner

logger = logging.getLogger(__name__)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="KPI derivation and customer tier batch pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m batch.run batch/configs/myr_monthly.yaml
  python -m batch.run batch/configs/myr_monthly.yaml batch/configs/sgd_monthly.yaml --stop-on-failure
  python -m batch.run --list
        """,
    )

    parser.add_argument(
        "configs",
        nargs="*",
        help="Path(s) to YAML config file(s)",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List all past runs",
    )
    parser.add_argument(
        "--stop-on-failure",
        action="store_true",
        help="Stop batch run if any config errors",
    )
    parser.add_argument(
        "--base-path",
        default=None,
        help="Directory data paths and logs are resolved against (default: cwd)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Debug logging",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    runner = BatchRunner(base_path=Path(args.base_path) if args.base_path else None)

    # List runs
    if args.list:
        df = runner.list_runs()
        if df.empty:
            print("No runs found.")
        else:
            print(df.to_string(index=False))
        return 0

    if not args.configs:
        parser.print_help()
        return 1

    results = []
    for config_path in args.configs:
        path = Path(config_path)
        if not path.exists() and not (runner.base_path / path).exists():
            logger.error("Config not found: %s", config_path)
            if args.stop_on_failure:
                return 1
            continue

        try:
            print(f"\n{'=' * 60}")
            print(f"Running: {path.name}")
            print("=" * 60)

            result = runner.run_from_yaml(path)
            results.append(result)
            print(result.summary())

        except Exception as e:
            logger.error("%s: %s", path.name, e)
            if args.stop_on_failure:
                return 1

    # Summary
    if len(args.configs) > 1:
        print(f"\n{'=' * 60}")
        print("BATCH SUMMARY")
        print("=" * 60)
        print(f"Total: {len(args.configs)}, Succeeded: {len(results)}, "
              f"Failed: {len(args.configs) - len(results)}")

    return 0 if len(results) == len(args.configs) else 1


if __name__ == "__main__":
    sys.exit(main())
