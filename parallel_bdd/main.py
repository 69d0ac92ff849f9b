"""Entry point for the parallel scenario executor.

Loads parsed features and the run configuration, executes every scenario on
a pool of worker processes, and optionally writes a YAML or JSON report.
"""

from __future__ import annotations

import argparse
import datetime
import json
import sys
from pathlib import Path

import yaml

from parallel_bdd.config import RunConfig
from parallel_bdd.execution.executor import ParallelExecutor
from parallel_bdd.execution.pool import PoolStartError
from parallel_bdd.execution.results import ScenarioResult
from parallel_bdd.execution.runners import DRY_RUN
from parallel_bdd.features.data_provider import DataProvider
from parallel_bdd.features.model import load_features
from parallel_bdd.reporting.reporter import Reporter


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Parallel BDD executor - runs scenarios on isolated workers"
    )
    parser.add_argument(
        "--features",
        required=True,
        type=Path,
        help="Path to the parsed features document (JSON or YAML)",
    )
    parser.add_argument(
        "--runner",
        type=str,
        default=None,
        help="Scenario runner as module:callable (default: from config, else dry run)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Maximum number of workers (default: PARALLEL_WORKERS, config, CPU count)",
    )
    parser.add_argument(
        "--config-file",
        type=Path,
        default=None,
        help="Path to the JSON run configuration file",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Path to write the report (.yaml/.yml for YAML, otherwise JSON)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Overall run deadline in seconds (default: from config)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        default=False,
        help="Print worker assignments and worker log messages",
    )
    return parser.parse_args(argv)


def _build_config(args: argparse.Namespace) -> RunConfig:
    config = RunConfig(args.config_file)
    overrides = {}
    if args.runner:
        overrides["runner"] = args.runner
    elif not config.runner:
        print("No scenario runner configured, using dry run")
        overrides["runner"] = DRY_RUN
    if args.timeout is not None:
        overrides["run_timeout"] = args.timeout
    if args.verbose:
        overrides["verbose"] = True
    if not overrides:
        return config
    return RunConfig(args.config_file, **overrides)


def _print_summary(results: dict[str, ScenarioResult]) -> None:
    passed = sum(1 for r in results.values() if r.status == "passed")
    failed = sum(1 for r in results.values() if r.status == "failed")
    skipped = sum(1 for r in results.values() if r.status == "skipped")
    degraded = sum(1 for r in results.values() if r.degraded)

    print()
    print(f"Work items: {len(results)}  passed: {passed}  failed: {failed}  skipped: {skipped}")
    if degraded:
        print(f"Without a worker result: {degraded}")
    for result in results.values():
        if result.status == "failed":
            print(f"  FAILED {result.feature_name} :: {result.scenario_name}")
            if result.error:
                for line in result.error.strip().splitlines()[:5]:
                    print(f"    {line}")


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    config = _build_config(args)

    try:
        features = load_features(args.features)
    except FileNotFoundError:
        print(f"Error: Features file not found: {args.features}", file=sys.stderr)
        return 1
    except (json.JSONDecodeError, yaml.YAMLError, ValueError) as e:
        print(f"Error: Invalid features document: {e}", file=sys.stderr)
        return 1

    reporter = Reporter()
    reporter.set_run_name(
        f"Parallel Run - {datetime.datetime.now(tz=datetime.timezone.utc).isoformat()}"
    )
    executor = ParallelExecutor(
        config,
        max_workers=args.workers,
        publisher=reporter,
        data_provider=DataProvider(args.features.parent),
    )

    try:
        results = executor.execute(features)
    except PoolStartError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    _print_summary(results)

    if args.output:
        reporter.write_report(args.output)
        print(f"Report written to {args.output}")

    has_failure = any(r.status == "failed" for r in results.values())
    return 1 if has_failure else 0


if __name__ == "__main__":
    sys.exit(main())
