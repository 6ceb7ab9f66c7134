"""Bounded-concurrency dispatch of work items to a test executor."""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from nunit_runner.executors.base import ExecutionRequest, TestExecutor
from nunit_runner.models.configuration import (
    UNBOUNDED,
    WorkItem,
    normalize_max_parallel,
)
from nunit_runner.models.result import CaseOutcome, RunOutcome, RunResult
from nunit_runner.report.document import MalformedReportError, ReportDocument

log = logging.getLogger(__name__)


def format_elapsed(seconds: float) -> str:
    """Render a duration as e.g. ``1 minute(s) 5 second(s) 20 millisecond(s)``."""
    total_ms = int(round(seconds * 1000))
    hours, rest = divmod(total_ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    secs, millis = divmod(rest, 1000)
    parts = [
        f"{value} {unit}(s)"
        for value, unit in (
            (hours, "hour"),
            (minutes, "minute"),
            (secs, "second"),
            (millis, "millisecond"),
        )
        if value > 0
    ]
    return " ".join(parts) or "0 millisecond(s)"


class InFlightRegistry:
    """Work items currently being executed, keyed by id."""

    def __init__(self) -> None:
        self._items: dict[int, WorkItem] = {}
        self._lock = asyncio.Lock()

    @property
    def count(self) -> int:
        return len(self._items)

    @property
    def ids(self) -> frozenset[int]:
        return frozenset(self._items)

    async def add(self, item: WorkItem) -> int:
        async with self._lock:
            self._items[item.id] = item
            log.info(
                "Starting test %s. Currently %d tests are running.",
                item.output_name,
                len(self._items),
            )
            return len(self._items)

    async def remove(self, item: WorkItem) -> int:
        async with self._lock:
            self._items.pop(item.id, None)
            log.info(
                "Finished test %s. Currently %d tests are running.",
                item.output_name,
                len(self._items),
            )
            return len(self._items)


class ResultCollection:
    """Run outcomes in the order they completed."""

    def __init__(self) -> None:
        self._outcomes: list[RunOutcome] = []
        self._lock = asyncio.Lock()

    async def append(self, outcome: RunOutcome) -> None:
        async with self._lock:
            log.info(
                "Test %s is completed in %s.",
                outcome.item.output_name,
                format_elapsed(outcome.duration),
            )
            self._outcomes.append(outcome)

    def snapshot(self) -> Sequence[RunOutcome]:
        return list(self._outcomes)


@dataclass(frozen=True, kw_only=True)
class Dispatcher:
    """Runs work items concurrently and collects one outcome per item."""

    executor: TestExecutor
    output_directory: Path
    registry: InFlightRegistry = field(default_factory=InFlightRegistry)

    async def run_all(
        self, items: Sequence[WorkItem], max_parallel: int = 1
    ) -> RunResult:
        """Run every item and wait until all of them have an outcome.

        Args:
            items: Work items in submission order
            max_parallel: Concurrent executions; -1 is unbounded, 0 means 1

        Returns:
            Run result whose outcomes are in completion order

        """
        loop = asyncio.get_running_loop()
        started = loop.time()

        limit = normalize_max_parallel(max_parallel)
        if limit == UNBOUNDED:
            limit = max(len(items), 1)
        semaphore = asyncio.Semaphore(limit)
        collected = ResultCollection()

        log.info(
            "Dispatching %d test run(s) with up to %d in parallel...",
            len(items),
            limit,
        )
        tasks = [
            asyncio.create_task(self._run_bounded(item, semaphore)) for item in items
        ]

        for next_done in asyncio.as_completed(tasks):
            await collected.append(await next_done)

        return RunResult(
            duration=loop.time() - started, outcomes=collected.snapshot()
        )

    async def _run_bounded(
        self, item: WorkItem, semaphore: asyncio.Semaphore
    ) -> RunOutcome:
        async with semaphore:
            await self.registry.add(item)
            loop = asyncio.get_running_loop()
            started = loop.time()
            try:
                return await self.run_item(item)
            except Exception as e:
                log.error(
                    "Test %s failed unexpectedly: %s", item.output_name, e, exc_info=e
                )
                return RunOutcome(
                    item=item, duration=loop.time() - started, succeeded=False
                )
            finally:
                await self.registry.remove(item)

    async def run_item(self, item: WorkItem) -> RunOutcome:
        """Execute one item and parse its report.

        Failures are isolated to the item: they produce an unsuccessful
        outcome instead of propagating.
        """
        loop = asyncio.get_running_loop()
        started = loop.time()
        request = ExecutionRequest.for_work_item(item, self.output_directory)

        try:
            result = await self.executor.execute(request)
        except Exception as e:
            log.error("Test %s could not be run: %s", item.output_name, e, exc_info=e)
            return RunOutcome(
                item=item,
                duration=loop.time() - started,
                succeeded=False,
            )

        cases = await asyncio.to_thread(read_case_outcomes, result.report_path, item)
        return RunOutcome(
            item=item,
            duration=loop.time() - started,
            succeeded=result.succeeded,
            cases=cases,
        )


def read_case_outcomes(report_path: Path, item: WorkItem) -> Sequence[CaseOutcome]:
    """Parse case outcomes from a report; unreadable reports yield none."""
    try:
        document = ReportDocument.load(report_path)
    except (OSError, MalformedReportError) as e:
        log.warning("No test cases read for %s: %s", item.output_name, e)
        return []
    return document.case_outcomes(run_name=item.name, output_name=item.output_name)
