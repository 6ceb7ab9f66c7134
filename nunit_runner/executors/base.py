"""Abstract base class for test console executors."""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from nunit_runner.models.configuration import WorkItem

RERUN_OUTPUT_NAME = "RetryFailedTests"


@dataclass(frozen=True, kw_only=True)
class ExecutionRequest:
    """Everything an executor needs for one console invocation."""

    output_name: str
    report_path: Path
    log_path: Path
    trace_path: Path
    category: str | None = None
    fixture: str | None = None
    case_names: Sequence[str] = ()

    @classmethod
    def create(
        cls,
        output_directory: Path,
        output_name: str,
        *,
        category: str | None = None,
        fixture: str | None = None,
        case_names: Sequence[str] = (),
    ) -> "ExecutionRequest":
        """Build a request whose artifacts are named after ``output_name``."""
        return cls(
            output_name=output_name,
            report_path=output_directory / f"{output_name}.xml",
            log_path=output_directory / f"TestOutput_{output_name}.log",
            trace_path=output_directory / f"NUnitTrace_{output_name}.log",
            category=category,
            fixture=fixture,
            case_names=case_names,
        )

    @classmethod
    def for_work_item(
        cls, item: WorkItem, output_directory: Path
    ) -> "ExecutionRequest":
        return cls.create(
            output_directory,
            item.output_name,
            category=item.category,
            fixture=item.fixture,
        )

    @classmethod
    def for_rerun(
        cls, case_names: Sequence[str], output_directory: Path
    ) -> "ExecutionRequest":
        return cls.create(
            output_directory, RERUN_OUTPUT_NAME, case_names=tuple(case_names)
        )


@dataclass(frozen=True, kw_only=True)
class ExecutionResult:
    """Outcome of one console invocation."""

    exit_code: int
    report_path: Path
    stdout: str = ""

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


class TestExecutor(ABC):
    """Runs the external test console for a single request."""

    __test__ = False

    @abstractmethod
    async def execute(self, request: ExecutionRequest) -> ExecutionResult:
        """Run the console and wait for it to exit.

        A non-zero exit code is reported, not raised; the report may still
        have been written.

        Args:
            request: Invocation arguments and artifact paths

        Returns:
            Exit code, report path and captured standard output

        Raises:
            OSError: If the console process cannot be started

        """
