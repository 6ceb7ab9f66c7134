"""Merge reports of category-split runs into one report per logical test."""

import asyncio
import logging
import xml.etree.ElementTree as ET
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path

from nunit_runner.models.configuration import WorkItem
from nunit_runner.models.result import ResultKind
from nunit_runner.report.document import (
    MalformedReportError,
    ReportCounters,
    ReportDocument,
    format_bool,
    format_duration,
)

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class AggregateMember:
    """Statistics and case nodes of one report taking part in a merge."""

    path: Path
    start_time: datetime
    finish_time: datetime
    counters: ReportCounters
    asserts: int
    result: ResultKind
    success: bool
    fixture_name: str
    categories: Sequence[str]
    case_nodes: Sequence[ET.Element]


@dataclass(frozen=True, kw_only=True)
class AggregateOverview:
    """Reduced statistics of all members of a merge."""

    template_path: Path
    start_time: datetime
    finish_time: datetime
    counters: ReportCounters
    asserts: int
    result: ResultKind
    success: bool
    case_nodes: Sequence[ET.Element]

    @property
    def duration(self) -> float:
        return (self.finish_time - self.start_time).total_seconds()


def group_report_paths(
    items: Sequence[WorkItem], output_directory: Path
) -> Mapping[str, Sequence[Path]]:
    """Report paths per logical test name, for names with several items."""
    groups: dict[str, list[Path]] = {}
    for item in items:
        groups.setdefault(item.name, []).append(
            output_directory / f"{item.output_name}.xml"
        )
    return {name: paths for name, paths in groups.items() if len(paths) > 1}


def parse_member(path: Path) -> AggregateMember:
    """Read one report and propagate fixture categories onto its cases.

    Raises:
        FileNotFoundError: If the report does not exist
        MalformedReportError: If the report cannot be parsed

    """
    document = ReportDocument.load(path)
    top = document.top_suite
    finish_time = document.finish_time

    fixture = document.fixture
    if fixture is None:
        raise MalformedReportError(f"No TestFixture suite found in {path}")
    categories = list(fixture.categories)

    cases = document.cases
    for case in cases:
        for category in categories:
            case.add_category(category)

    return AggregateMember(
        path=path,
        start_time=finish_time - timedelta(seconds=top.duration),
        finish_time=finish_time,
        counters=document.counters,
        asserts=sum(case.asserts for case in cases),
        result="Failure" if top.result == "Failure" else "Success",
        success=top.success,
        fixture_name=fixture.name,
        categories=categories,
        case_nodes=[case.element for case in cases],
    )


def reduce_members(members: Sequence[AggregateMember]) -> AggregateOverview:
    """Combine members; the shortest fixture name (first on ties) is the template."""
    template = min(members, key=lambda m: len(m.fixture_name))
    return AggregateOverview(
        template_path=template.path,
        start_time=min(m.start_time for m in members),
        finish_time=max(m.finish_time for m in members),
        counters=ReportCounters.combine([m.counters for m in members]),
        asserts=sum(m.asserts for m in members),
        result="Failure" if any(m.result == "Failure" for m in members) else "Success",
        success=all(m.success for m in members),
        case_nodes=[node for m in members for node in m.case_nodes],
    )


def write_aggregate(overview: AggregateOverview, output_path: Path) -> Path:
    """Write ``overview`` onto a fresh copy of the template report."""
    document = ReportDocument.load(overview.template_path)
    document.counters = overview.counters
    document.finish_time = overview.finish_time

    duration = format_duration(overview.duration)
    for suite in document.suites:
        suite.update_attribute("time", duration)
        suite.update_attribute("result", overview.result)
        suite.update_attribute("success", format_bool(overview.success))

    fixture = document.fixture
    if fixture is None:
        raise MalformedReportError(
            f"No TestFixture suite found in {overview.template_path}"
        )
    fixture.remove_categories()
    fixture.replace_cases(overview.case_nodes)
    fixture.element.set("asserts", str(overview.asserts))

    return document.save(output_path)


class ReportAggregator:
    """Merges the reports of one logical test into a single report."""

    async def merge(self, paths: Sequence[Path], output_path: Path) -> Path | None:
        """Merge ``paths`` into ``output_path`` and delete the inputs.

        Inputs that do not exist are skipped. Members are combined in the
        order of ``paths``.

        Returns:
            The written report, or None if no input could be read

        """
        existing = [Path(p) for p in paths if Path(p).exists()]
        parsed = await asyncio.gather(
            *(asyncio.to_thread(parse_member, path) for path in existing),
            return_exceptions=True,
        )

        members: list[AggregateMember] = []
        for path, member in zip(existing, parsed, strict=True):
            if isinstance(member, AggregateMember):
                members.append(member)
            elif isinstance(member, (FileNotFoundError, MalformedReportError)):
                log.warning("Skipping report %s: %s", path, member)
            else:
                raise member

        if not members:
            log.warning("No readable reports to merge into %s", output_path)
            return None

        overview = reduce_members(members)
        written = await asyncio.to_thread(write_aggregate, overview, output_path)
        log.info("Merged %d report(s) into %s", len(members), written)

        output = Path(output_path).resolve()
        for path in paths:
            if Path(path).resolve() != output:
                Path(path).unlink(missing_ok=True)

        return written
