"""Models for console run and test case outcomes."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal, get_args

from nunit_runner.models.configuration import WorkItem

ResultKind = Literal[
    "Success",
    "Failure",
    "Error",
    "Ignored",
    "Inconclusive",
    "NotRunnable",
    "Skipped",
    "Cancelled",
    "Unknown",
]

RunStatus = Literal["all_succeeded", "some_failed", "all_failed"]

RESULT_KINDS: frozenset[str] = frozenset(get_args(ResultKind))
FAILED_RESULTS: frozenset[ResultKind] = frozenset({"Failure", "Error"})


def parse_result_kind(value: str) -> ResultKind:
    """Map a result attribute value to a known result kind."""
    if value in RESULT_KINDS:
        return value  # type: ignore[return-value]
    return "Unknown"


@dataclass(kw_only=True)
class CaseOutcome:
    """Outcome of one test case read from a report document.

    Mutated only when a rerun result is folded back in.
    """

    name: str
    executed: bool
    result: ResultKind
    success: bool
    duration: float = 0.0
    run_name: str | None = None
    output_name: str | None = None

    @property
    def failed(self) -> bool:
        """True when the case ran and ended in a failure or an error."""
        return self.executed and self.result in FAILED_RESULTS


@dataclass(frozen=True, kw_only=True)
class RunOutcome:
    """Result of dispatching one work item."""

    item: WorkItem
    duration: float
    succeeded: bool
    cases: Sequence[CaseOutcome] = field(default_factory=list)

    @property
    def failed_cases(self) -> Sequence[CaseOutcome]:
        return [case for case in self.cases if case.failed]


@dataclass(frozen=True, kw_only=True)
class RunResult:
    """All run outcomes of one dispatch, in completion order."""

    duration: float
    outcomes: Sequence[RunOutcome]

    @property
    def status(self) -> RunStatus:
        """Overall status; an empty run counts as succeeded."""
        if not self.outcomes or all(o.succeeded for o in self.outcomes):
            return "all_succeeded"
        if any(o.succeeded for o in self.outcomes):
            return "some_failed"
        return "all_failed"
