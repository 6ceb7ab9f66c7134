"""Tests for run and case outcome models."""

import pytest

from nunit_runner.models.result import RunOutcome, RunResult, parse_result_kind
from nunit_runner.testing.factories import CaseOutcomeFactory, WorkItemFactory


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("Success", "Success"),
        ("Failure", "Failure"),
        ("Error", "Error"),
        ("Ignored", "Ignored"),
        ("NotRunnable", "NotRunnable"),
        ("Passed", "Unknown"),
        ("", "Unknown"),
    ],
)
def test_parse_result_kind(value: str, expected: str) -> None:
    """Maps known result values and falls back to Unknown."""
    assert parse_result_kind(value) == expected


@pytest.mark.parametrize(
    ("executed", "result", "failed"),
    [
        (True, "Failure", True),
        (True, "Error", True),
        (True, "Success", False),
        (True, "Inconclusive", False),
        (False, "Failure", False),
        (False, "Ignored", False),
    ],
)
def test_case_failed(executed: bool, result: str, failed: bool) -> None:
    """Only executed failures and errors count as failed."""
    case = CaseOutcomeFactory.build(executed=executed, result=result)

    assert case.failed is failed


def test_run_outcome_failed_cases() -> None:
    """Lists only the failed cases of a run."""
    failing = CaseOutcomeFactory.build(name="B", result="Failure")
    outcome = RunOutcome(
        item=WorkItemFactory.build(),
        duration=1.0,
        succeeded=False,
        cases=[
            CaseOutcomeFactory.build(name="A", result="Success", success=True),
            failing,
        ],
    )

    assert outcome.failed_cases == [failing]


def _outcome(succeeded: bool) -> RunOutcome:
    return RunOutcome(item=WorkItemFactory.build(), duration=0.0, succeeded=succeeded)


@pytest.mark.parametrize(
    ("succeeded", "status"),
    [
        ([True, True], "all_succeeded"),
        ([True, False], "some_failed"),
        ([False, False], "all_failed"),
        ([], "all_succeeded"),
    ],
)
def test_run_result_status(succeeded: list[bool], status: str) -> None:
    """Derives the overall status from the run outcomes."""
    result = RunResult(duration=1.0, outcomes=[_outcome(s) for s in succeeded])

    assert result.status == status
