"""Fixtures for integration tests."""

import json
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol

import pytest

from nunit_runner.testing.reports import CaseSpec, build_report

STUB_CONSOLE = """#!{python}
import json
import sys
from pathlib import Path

responses = json.loads(Path({responses!r}).read_text())
args = dict(a[1:].split(":", 1) for a in sys.argv[2:] if ":" in a)
key = "rerun" if "run" in args else args.get("include", "")
response = responses[key]
Path(args["xml"]).write_text(response["report"])
print("Tests run: %d" % response["cases"])
sys.exit(response["exit_code"])
"""


class CreateConsoleFn(Protocol):
    """Protocol for stub console creation function."""

    def __call__(self, failing_categories: set[str]) -> Path:
        """Create a stub console and return its path."""


def category_cases(category: str) -> list[CaseSpec]:
    """Cases the stub console reports for a category filter."""
    prefix = f"Shop.Tests.{category or 'All'}"
    return [CaseSpec(name=f"{prefix}.Pays"), CaseSpec(name=f"{prefix}.Refunds")]


@pytest.fixture
def create_console(tmp_path: Path) -> CreateConsoleFn:
    """Return a function creating an executable stub of the NUnit console.

    The stub answers each category filter with a canned report and every
    rerun with all requested cases passing.
    """

    def _create(failing_categories: set[str]) -> Path:
        responses: dict[str, Mapping[str, object]] = {}
        for category in ("", "Fast", "Slow"):
            failing = category in failing_categories
            pays, refunds = category_cases(category)
            if failing:
                refunds = CaseSpec(name=refunds.name, result="Failure")
            cases = [pays, refunds]
            responses[category] = {
                "report": build_report(cases),
                "cases": len(cases),
                "exit_code": 1 if failing else 0,
            }

        rerun_cases = [
            CaseSpec(name=f"Shop.Tests.{category}.Refunds", time=0.3)
            for category in sorted(failing_categories)
        ]
        responses["rerun"] = {
            "report": build_report(rerun_cases),
            "cases": len(rerun_cases),
            "exit_code": 0,
        }

        responses_path = tmp_path / "responses.json"
        responses_path.write_text(json.dumps(responses))

        console = tmp_path / "nunit-console"
        console.write_text(
            STUB_CONSOLE.format(
                python=sys.executable, responses=str(responses_path)
            )
        )
        console.chmod(0o755)
        return console

    return _create
