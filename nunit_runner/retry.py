"""Rerun of failed test cases and patching of the reports they came from."""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from nunit_runner.executors.base import ExecutionRequest, TestExecutor
from nunit_runner.models.result import CaseOutcome, RunOutcome
from nunit_runner.report.document import CaseNode, MalformedReportError, ReportDocument

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class RerunUpdate:
    """A case outcome that received a rerun result."""

    case: CaseOutcome
    rerun_duration: float


def collect_failed_cases(outcomes: Sequence[RunOutcome]) -> Sequence[CaseOutcome]:
    """Failed or errored cases across all outcomes, in outcome order."""
    return [case for outcome in outcomes for case in outcome.failed_cases]


def apply_rerun_to_report(
    document: ReportDocument, case: CaseOutcome, rerun_duration: float
) -> bool:
    """Fold one rerun case result into ``document`` in memory.

    Returns:
        False if the document has no case with that name

    """
    node = document.find_case(case.name)
    if node is None:
        return False

    previous = node.result
    if case.result == "Success" and previous != case.result:
        node.remove_failure()
        document.decrement_counter("errors" if previous == "Error" else "failures")

    node.result = case.result
    node.executed = case.executed

    # Ignored cases carry neither success nor time unless already present
    if node.success is not None or case.result != "Ignored":
        node.success = case.success

    stored = node.duration
    if stored is not None or case.result != "Ignored":
        node.duration = round((stored or 0.0) + rerun_duration, 3)

    document.add_suite_duration(rerun_duration)
    document.restore_success()
    return True


@dataclass(frozen=True, kw_only=True)
class RetryCoordinator:
    """Reruns failed cases once and updates outcomes and reports."""

    executor: TestExecutor
    output_directory: Path

    async def retry(
        self, failed_cases: Sequence[CaseOutcome]
    ) -> Sequence[CaseOutcome]:
        """Rerun ``failed_cases`` in a single serial console invocation.

        The given outcomes are updated in place and every owning report
        document is patched on disk. The rerun report is deleted afterwards.

        Returns:
            The outcomes that were found in the rerun report

        """
        if not failed_cases:
            log.info("No failed test cases to retry")
            return []

        case_names = list(dict.fromkeys(case.name for case in failed_cases))
        request = ExecutionRequest.for_rerun(case_names, self.output_directory)
        log.info("Retrying %d failed test case(s)...", len(case_names))

        try:
            result = await self.executor.execute(request)
        except Exception as e:
            log.error("Failed test cases could not be rerun: %s", e, exc_info=e)
            return []

        try:
            updates = await asyncio.to_thread(
                self._fold_rerun, failed_cases, result.report_path
            )
        finally:
            result.report_path.unlink(missing_ok=True)

        await asyncio.to_thread(self._patch_reports, updates)

        recovered = sum(1 for u in updates if u.case.result == "Success")
        log.info(
            "Retry completed: %d of %d test case(s) passed on rerun",
            recovered,
            len(failed_cases),
        )
        return [update.case for update in updates]

    def _fold_rerun(
        self, failed_cases: Sequence[CaseOutcome], report_path: Path
    ) -> Sequence[RerunUpdate]:
        try:
            rerun = ReportDocument.load(report_path)
        except (OSError, MalformedReportError) as e:
            log.error("Rerun report could not be read: %s", e)
            return []

        rerun_cases: dict[str, CaseNode] = {}
        for node in rerun.cases:
            rerun_cases.setdefault(node.name, node)

        updates: list[RerunUpdate] = []
        for case in failed_cases:
            if (node := rerun_cases.get(case.name)) is None:
                log.warning("Test case %s missing from rerun report", case.name)
                continue

            rerun_duration = node.duration or 0.0
            updates.append(RerunUpdate(case=case, rerun_duration=rerun_duration))
            before = case.result
            case.duration = round(case.duration + rerun_duration, 3)
            case.result = node.result
            case.success = node.success is True
            case.executed = node.executed
            log.info("Retried %s: %s -> %s", case.name, before, case.result)
        return updates

    def _patch_reports(self, updates: Sequence[RerunUpdate]) -> None:
        by_report: dict[str, list[RerunUpdate]] = {}
        for update in updates:
            if update.case.output_name is None:
                continue
            by_report.setdefault(update.case.output_name, []).append(update)

        for output_name, report_updates in by_report.items():
            path = self.output_directory / f"{output_name}.xml"
            try:
                document = ReportDocument.load(path)
            except (OSError, MalformedReportError) as e:
                log.warning("Report %s not patched: %s", path, e)
                continue

            for update in report_updates:
                if not apply_rerun_to_report(
                    document, update.case, update.rerun_duration
                ):
                    log.debug("Test case %s not found in %s", update.case.name, path)

            try:
                document.save()
            except OSError as e:
                log.error("Report %s could not be saved: %s", path, e)
            else:
                log.info(
                    "Updated report %s with %d rerun(s)", path, len(report_updates)
                )
