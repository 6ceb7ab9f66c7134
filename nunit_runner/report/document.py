"""Typed model of an NUnit 2 style XML result document.

The document is loaded strictly: required attributes must be present and
parseable or :class:`MalformedReportError` is raised. Edits go through the
typed accessors and are written back with :meth:`ReportDocument.save`.
"""

import xml.etree.ElementTree as ET
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, fields
from datetime import datetime
from pathlib import Path
from typing import Self

from nunit_runner.models.result import CaseOutcome, ResultKind, parse_result_kind

FIXTURE_SUITE_TYPE = "TestFixture"
DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M:%S"

# Field name -> attribute name on the test-results root
COUNTER_ATTRIBUTES: Mapping[str, str] = {
    "total": "total",
    "errors": "errors",
    "failures": "failures",
    "not_run": "not-run",
    "inconclusive": "inconclusive",
    "ignored": "ignored",
    "skipped": "skipped",
    "invalid": "invalid",
}


class MalformedReportError(ValueError):
    """Raised when a report document lacks required structure."""


def format_bool(value: bool) -> str:
    return "True" if value else "False"


def format_duration(seconds: float) -> str:
    return f"{seconds:.3f}"


def _required(element: ET.Element, attribute: str) -> str:
    value = element.get(attribute)
    if value is None:
        raise MalformedReportError(
            f"<{element.tag}> is missing required attribute '{attribute}'"
        )
    return value


def _parse_int(element: ET.Element, attribute: str) -> int:
    value = _required(element, attribute)
    try:
        return int(value)
    except ValueError as e:
        raise MalformedReportError(
            f"<{element.tag}> attribute '{attribute}' is not an integer: {value!r}"
        ) from e


def _parse_float(element: ET.Element, attribute: str) -> float:
    value = _required(element, attribute)
    try:
        return float(value)
    except ValueError as e:
        raise MalformedReportError(
            f"<{element.tag}> attribute '{attribute}' is not a number: {value!r}"
        ) from e


@dataclass(frozen=True, kw_only=True)
class ReportCounters:
    """Summary counters of the test-results root."""

    total: int = 0
    errors: int = 0
    failures: int = 0
    not_run: int = 0
    inconclusive: int = 0
    ignored: int = 0
    skipped: int = 0
    invalid: int = 0

    @classmethod
    def combine(cls, counters: Sequence["ReportCounters"]) -> "ReportCounters":
        """Sum every counter across ``counters``."""
        return cls(
            **{
                f.name: sum(getattr(c, f.name) for c in counters)
                for f in fields(cls)
            }
        )


class CaseNode:
    """A ``test-case`` element."""

    def __init__(self, element: ET.Element) -> None:
        self.element = element
        _required(element, "name")
        _required(element, "executed")
        _required(element, "result")

    @property
    def name(self) -> str:
        return self.element.get("name", "")

    @property
    def executed(self) -> bool:
        return self.element.get("executed") == "True"

    @executed.setter
    def executed(self, value: bool) -> None:
        self.element.set("executed", format_bool(value))

    @property
    def result(self) -> ResultKind:
        return parse_result_kind(self.element.get("result", ""))

    @result.setter
    def result(self, value: ResultKind) -> None:
        self.element.set("result", value)

    @property
    def success(self) -> bool | None:
        value = self.element.get("success")
        return None if value is None else value == "True"

    @success.setter
    def success(self, value: bool) -> None:
        self.element.set("success", format_bool(value))

    @property
    def duration(self) -> float | None:
        if self.element.get("time") is None:
            return None
        return _parse_float(self.element, "time")

    @duration.setter
    def duration(self, value: float) -> None:
        self.element.set("time", format_duration(value))

    @property
    def asserts(self) -> int:
        if self.element.get("asserts") is None:
            return 0
        return _parse_int(self.element, "asserts")

    @property
    def categories(self) -> Sequence[str]:
        node = self.element.find("categories")
        if node is None:
            return []
        return [c.get("name", "") for c in node.findall("category")]

    def add_category(self, name: str) -> None:
        node = self.element.find("categories")
        if node is None:
            node = ET.Element("categories")
            # categories precede results/failure children in NUnit output
            self.element.insert(0, node)
        ET.SubElement(node, "category", name=name)

    def remove_failure(self) -> None:
        for failure in self.element.findall("failure"):
            self.element.remove(failure)


class SuiteNode:
    """A ``test-suite`` element."""

    def __init__(self, element: ET.Element) -> None:
        self.element = element

    @property
    def type(self) -> str:
        return self.element.get("type", "")

    @property
    def name(self) -> str:
        return self.element.get("name", "")

    @property
    def result(self) -> ResultKind:
        return parse_result_kind(_required(self.element, "result"))

    @property
    def success(self) -> bool:
        return _required(self.element, "success") == "True"

    @property
    def duration(self) -> float:
        return _parse_float(self.element, "time")

    @property
    def categories(self) -> Sequence[str]:
        node = self.element.find("categories")
        if node is None:
            return []
        return [c.get("name", "") for c in node.iter("category")]

    def update_attribute(self, attribute: str, value: str) -> None:
        """Overwrite ``attribute`` if the suite carries it."""
        if self.element.get(attribute) is not None:
            self.element.set(attribute, value)

    def remove_categories(self) -> None:
        for node in self.element.findall("categories"):
            self.element.remove(node)

    def replace_cases(self, case_elements: Sequence[ET.Element]) -> None:
        """Drop every case below this suite and append ``case_elements``."""
        results = self.element.find("results")
        if results is None:
            results = ET.SubElement(self.element, "results")
        for parent in list(self.element.iter()):
            for child in list(parent):
                if child.tag == "test-case":
                    parent.remove(child)
        results.extend(case_elements)


class ReportDocument:
    """A loaded report document bound to its storage path."""

    def __init__(self, tree: ET.ElementTree, path: Path) -> None:
        self.tree = tree
        self.path = path
        self.root = tree.getroot()
        self._validate()

    @classmethod
    def load(cls, path: Path) -> Self:
        """Parse the report at ``path``.

        Raises:
            FileNotFoundError: If the file does not exist
            MalformedReportError: If the XML is invalid or incomplete

        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Report file not found: {path}")
        try:
            tree = ET.parse(path)
        except ET.ParseError as e:
            raise MalformedReportError(f"Invalid XML in {path}: {e}") from e
        return cls(tree, path)

    def _validate(self) -> None:
        if self.root.tag != "test-results":
            raise MalformedReportError(
                f"Expected <test-results> root in {self.path}, got <{self.root.tag}>"
            )
        _ = self.counters
        _ = self.finish_time
        top = self.top_suite
        _ = top.result, top.success, top.duration
        for suite in self.iter_suite_attribute("time"):
            _ = suite.duration
        for case in self.cases:
            _ = case.duration, case.asserts

    @property
    def counters(self) -> ReportCounters:
        return ReportCounters(
            **{
                field_name: _parse_int(self.root, attribute)
                for field_name, attribute in COUNTER_ATTRIBUTES.items()
            }
        )

    @counters.setter
    def counters(self, value: ReportCounters) -> None:
        for field_name, attribute in COUNTER_ATTRIBUTES.items():
            self.root.set(attribute, str(getattr(value, field_name)))

    def decrement_counter(self, field_name: str) -> None:
        """Decrease a summary counter by one, never below zero."""
        attribute = COUNTER_ATTRIBUTES[field_name]
        current = _parse_int(self.root, attribute)
        if current > 0:
            self.root.set(attribute, str(current - 1))

    @property
    def finish_time(self) -> datetime:
        """Local timestamp from the root ``date`` and ``time`` attributes."""
        stamp = f"{_required(self.root, 'date')} {_required(self.root, 'time')}"
        try:
            return datetime.strptime(stamp, f"{DATE_FORMAT} {TIME_FORMAT}")
        except ValueError as e:
            raise MalformedReportError(
                f"Invalid date/time in {self.path}: {stamp!r}"
            ) from e

    @finish_time.setter
    def finish_time(self, value: datetime) -> None:
        self.root.set("date", value.strftime(DATE_FORMAT))
        self.root.set("time", value.strftime(TIME_FORMAT))

    @property
    def top_suite(self) -> SuiteNode:
        element = self.root.find("test-suite")
        if element is None:
            raise MalformedReportError(f"No <test-suite> found in {self.path}")
        return SuiteNode(element)

    @property
    def suites(self) -> Sequence[SuiteNode]:
        return [SuiteNode(e) for e in self.root.iter("test-suite")]

    @property
    def fixture(self) -> SuiteNode | None:
        """First suite of fixture type, if any."""
        return next(
            (s for s in self.suites if s.type == FIXTURE_SUITE_TYPE),
            None,
        )

    @property
    def cases(self) -> Sequence[CaseNode]:
        return [CaseNode(e) for e in self.root.iter("test-case")]

    def find_case(self, name: str) -> CaseNode | None:
        return next((c for c in self.cases if c.name == name), None)

    def iter_suite_attribute(self, attribute: str) -> Iterator[SuiteNode]:
        """Suites that carry ``attribute``."""
        return (s for s in self.suites if s.element.get(attribute) is not None)

    def add_suite_duration(self, seconds: float) -> None:
        for suite in self.iter_suite_attribute("time"):
            suite.element.set("time", format_duration(suite.duration + seconds))

    def restore_success(self) -> None:
        """Mark every suite successful once no failure or error is left."""
        counters = self.counters
        if counters.failures == 0 and counters.errors == 0:
            for suite in self.suites:
                suite.update_attribute("result", "Success")
                suite.update_attribute("success", format_bool(True))

    def case_outcomes(
        self, *, run_name: str | None = None, output_name: str | None = None
    ) -> Sequence[CaseOutcome]:
        """Case outcomes in document order."""
        return [
            CaseOutcome(
                name=case.name,
                executed=case.executed,
                result=case.result,
                success=case.success is True,
                duration=case.duration or 0.0,
                run_name=run_name,
                output_name=output_name,
            )
            for case in self.cases
        ]

    def save(self, path: Path | None = None) -> Path:
        """Write the document to ``path`` (default: where it was loaded)."""
        target = Path(path) if path is not None else self.path
        target.parent.mkdir(parents=True, exist_ok=True)
        self.tree.write(target, encoding="utf-8", xml_declaration=True)
        return target
