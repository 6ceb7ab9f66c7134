"""NUnit 2 console executor."""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, Field

from nunit_runner.executors.base import ExecutionRequest, ExecutionResult, TestExecutor

log = logging.getLogger(__name__)

DEFAULT_CONSOLE_ARGS: Sequence[str] = (
    "/labels",
    "/trace=Error",
    "/noshadow",
    "/nologo",
)


class ConsoleConfig(BaseModel):
    """Configuration for the NUnit console executor."""

    nunit_executable: Path
    assembly: Path
    output_directory: Path
    extra_args: Sequence[str] = Field(default=DEFAULT_CONSOLE_ARGS)


@dataclass(frozen=True, kw_only=True)
class NUnitConsoleExecutor(TestExecutor):
    """Runs ``nunit-console`` as a subprocess."""

    config: ConsoleConfig

    def build_command(self, request: ExecutionRequest) -> Sequence[str]:
        """Build the console command line for ``request``."""
        command = [
            str(self.config.nunit_executable),
            str(self.config.assembly),
            f"/xml:{request.report_path}",
            f"/output:{request.log_path}",
            *self.config.extra_args,
        ]
        if request.category:
            command.append(f"/include:{request.category}")
        if request.fixture:
            command.append(f"/fixture:{request.fixture}")
        if request.case_names:
            command.append(f"/run:{','.join(request.case_names)}")
        return command

    async def execute(self, request: ExecutionRequest) -> ExecutionResult:
        """Run the console and store its standard output as a trace file."""
        command = self.build_command(request)
        log.debug("Running: %s", " ".join(command))

        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        stdout, _ = await process.communicate()
        output = stdout.decode(errors="replace")

        request.trace_path.parent.mkdir(parents=True, exist_ok=True)
        request.trace_path.write_text(output, encoding="utf-8")

        exit_code = process.returncode if process.returncode is not None else -1
        if exit_code != 0:
            log.warning(
                "Console exited with code %d for %s", exit_code, request.output_name
            )

        return ExecutionResult(
            exit_code=exit_code,
            report_path=request.report_path,
            stdout=output,
        )
