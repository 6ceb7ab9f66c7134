"""Test console executors."""

from nunit_runner.executors.base import ExecutionRequest, ExecutionResult, TestExecutor
from nunit_runner.executors.nunit_console import ConsoleConfig, NUnitConsoleExecutor

__all__ = [
    "ConsoleConfig",
    "ExecutionRequest",
    "ExecutionResult",
    "NUnitConsoleExecutor",
    "TestExecutor",
]
