"""CLI entry point for the parallel NUnit runner."""

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from nunit_runner.aggregator import ReportAggregator, group_report_paths
from nunit_runner.config_loader import load_run_configuration
from nunit_runner.dispatcher import Dispatcher
from nunit_runner.executors.base import TestExecutor
from nunit_runner.executors.nunit_console import ConsoleConfig, NUnitConsoleExecutor
from nunit_runner.models.configuration import WorkItem, normalize_max_parallel
from nunit_runner.models.result import CaseOutcome, RunOutcome, RunResult
from nunit_runner.retry import RetryCoordinator, collect_failed_cases

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILE_NAME = "nunit-runner.log"

STATUS_SYMBOLS = {
    True: "✓",
    False: "✗",
}


def log_results_summary(log: logging.Logger, outcomes: Sequence[RunOutcome]) -> None:
    """Log a formatted summary of every console run."""
    log.info("=" * 80)
    log.info("Test Run Summary:")
    log.info("=" * 80)

    for outcome in outcomes:
        failed = len(outcome.failed_cases)
        log.info(
            "%s %s: %s (%.2fs, %d case(s), %d failed)",
            STATUS_SYMBOLS[outcome.succeeded],
            outcome.item.output_name,
            "success" if outcome.succeeded else "failure",
            outcome.duration,
            len(outcome.cases),
            failed,
        )
        if outcome.item.category:
            log.info("  Category: %s", outcome.item.category)


def log_overall_status(log: logging.Logger, result: RunResult) -> None:
    """Log whether all, some or none of the runs succeeded."""
    match result.status:
        case "all_failed":
            log.error("All tests have failed.")
        case "some_failed":
            log.warning("Some tests were not successful.")
        case "all_succeeded":
            log.info("All tests succeeded.")


def format_output(
    result: RunResult,
    retried_cases: Sequence[CaseOutcome] = (),
    merged_reports: Sequence[Path] = (),
) -> dict[str, Any]:
    """Format the run result for JSON output."""
    runs: list[dict[str, Any]] = [
        {
            "name": outcome.item.name,
            "output": outcome.item.output_name,
            "category": outcome.item.category,
            "succeeded": outcome.succeeded,
            "duration": round(outcome.duration, 3),
            "cases": len(outcome.cases),
            "failed_cases": len(outcome.failed_cases),
        }
        for outcome in result.outcomes
    ]

    return {
        "total": len(runs),
        "succeeded": sum(1 for r in runs if r["succeeded"]),
        "failed": sum(1 for r in runs if not r["succeeded"]),
        "status": result.status,
        "duration": round(result.duration, 3),
        "retried_cases": len(retried_cases),
        "merged_reports": [str(p) for p in merged_reports],
        "results": runs,
    }


def validate_paths(
    log: logging.Logger,
    assembly: Path,
    nunit_console: Path,
    config_path: Path,
    output_dir: Path,
) -> bool:
    """Check that all input files and the output directory exist."""
    checks = [
        (assembly.is_file(), "Supplied assembly file does not exist: %s", assembly),
        (
            nunit_console.is_file(),
            "Supplied NUnit console executable does not exist: %s",
            nunit_console,
        ),
        (
            config_path.is_file(),
            "Supplied configuration file does not exist: %s",
            config_path,
        ),
        (
            output_dir.is_dir(),
            "Supplied output directory does not exist: %s",
            output_dir,
        ),
    ]
    valid = True
    for ok, message, path in checks:
        if not ok:
            log.error(message, path)
            valid = False
    return valid


async def merge_split_reports(
    log: logging.Logger, items: Sequence[WorkItem], output_dir: Path
) -> Sequence[Path]:
    """Merge the reports of every test that was split into several runs."""
    groups = group_report_paths(items, output_dir)
    if not groups:
        return []

    log.info(
        "There are %d files to combine into %d files. (%s)",
        sum(len(paths) for paths in groups.values()),
        len(groups),
        ", ".join(groups),
    )

    aggregator = ReportAggregator()
    merged: list[Path] = []
    for name, paths in groups.items():
        written = await aggregator.merge(paths, output_dir / f"{name}.xml")
        if written is not None:
            merged.append(written)
    return merged


async def run(
    assembly: Path,
    nunit_console: Path,
    config_path: Path,
    output_dir: Path,
    max_parallel: int | None = None,
    retry_failed: bool | None = None,
    executor: TestExecutor | None = None,
) -> int:
    """Run all configured tests, retry failures, merge split reports.

    Returns:
        Exit code: 1 for invalid input, otherwise 0

    """
    log = logging.getLogger("nunit_runner")

    if not validate_paths(log, assembly, nunit_console, config_path, output_dir):
        return 1

    try:
        configuration = await load_run_configuration(config_path)
    except (FileNotFoundError, ValueError) as e:
        log.error("Could not load configuration: %s", e)
        return 1

    items = configuration.to_work_items()
    if not items:
        log.info("No tests configured")
        print(json.dumps(format_output(RunResult(duration=0.0, outcomes=[]))))
        return 0

    if max_parallel is None:
        max_parallel = configuration.max_parallel_runs
    try:
        max_parallel = normalize_max_parallel(max_parallel)
    except ValueError as e:
        log.error("Invalid parallelism: %s", e)
        return 1
    if retry_failed is None:
        retry_failed = configuration.retry_failed_tests

    if executor is None:
        executor = NUnitConsoleExecutor(
            config=ConsoleConfig(
                nunit_executable=nunit_console,
                assembly=assembly,
                output_directory=output_dir,
            )
        )

    dispatcher = Dispatcher(executor=executor, output_directory=output_dir)
    result = await dispatcher.run_all(items, max_parallel)

    log_results_summary(log, result.outcomes)
    log_overall_status(log, result)

    retried: Sequence[CaseOutcome] = []
    if retry_failed and (failed_cases := collect_failed_cases(result.outcomes)):
        coordinator = RetryCoordinator(executor=executor, output_directory=output_dir)
        retried = await coordinator.retry(failed_cases)

    merged = await merge_split_reports(log, items, output_dir)

    print(json.dumps(format_output(result, retried, merged), indent=2))
    log.info("Completed")
    return 0


def configure_logging(output_dir: Path | None) -> None:
    """Log to stderr and, when the output directory exists, to a log file."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if output_dir is not None and output_dir.is_dir():
        handlers.append(
            logging.FileHandler(output_dir / LOG_FILE_NAME, encoding="utf-8")
        )
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, handlers=handlers)


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Run NUnit tests in parallel and merge their reports"
    )
    parser.add_argument(
        "--assembly",
        type=Path,
        required=True,
        help="Path to the NUnit test assembly",
    )
    parser.add_argument(
        "--nunit-console",
        type=Path,
        required=True,
        help="Path to the NUnit console executable",
    )
    parser.add_argument(
        "--config",
        type=Path,
        required=True,
        help="Run configuration file (YAML, or legacy XML)",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        required=True,
        help="Existing directory for reports and logs",
    )
    parser.add_argument(
        "--max-parallel",
        type=int,
        default=None,
        help="Override max_parallel_runs (-1 for unbounded)",
    )
    parser.add_argument(
        "--retry-failed",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Override retry_failed_tests",
    )

    args = parser.parse_args()

    configure_logging(args.output_dir)

    exit_code = asyncio.run(
        run(
            assembly=args.assembly,
            nunit_console=args.nunit_console,
            config_path=args.config,
            output_dir=args.output_dir,
            max_parallel=args.max_parallel,
            retry_failed=args.retry_failed,
        )
    )
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
