"""Abstract base class for subject tools."""

import asyncio
import logging
import os
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from diag_snapshot.models.test_case import TestCase
from diag_snapshot.models.verdict import CapturedOutput

log = logging.getLogger(__name__)


class ToolNotFoundError(Exception):
    """Raised when the subject tool cannot be executed."""


@dataclass(frozen=True, kw_only=True)
class SubjectTool(ABC):
    """A tool invoked on one test source per execution.

    Subclasses decide the command line; invocation, output capture and the
    timeout are shared.
    """

    @abstractmethod
    def build_command(self, test: TestCase, revision: str | None) -> Sequence[str]:
        """Return the argv running the tool on a test under a revision.

        Args:
            test: Test case being executed
            revision: Active revision, ``None`` for the default configuration

        Returns:
            Command line, program first

        """

    def environment(self) -> Mapping[str, str]:
        """Extra environment variables for the tool."""
        return {}

    async def prepare(self, test: TestCase, revision: str | None) -> None:
        """Create whatever the command line refers to before it runs."""

    async def invoke(
        self,
        test: TestCase,
        revision: str | None,
        *,
        cwd: Path,
        timeout: float,
    ) -> CapturedOutput:
        """Run the tool and capture its streams and exit status.

        A run exceeding ``timeout`` seconds is killed and reported with state
        ``timed_out``; a run ended by a signal is reported as ``crashed``.

        Raises:
            ToolNotFoundError: If the program cannot be executed

        """
        await self.prepare(test, revision)
        argv = list(self.build_command(test, revision))
        log.debug("Running %s", " ".join(argv))

        start = time.monotonic()
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=cwd,
                env={**os.environ, **self.environment()},
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError) as e:
            raise ToolNotFoundError(f"Cannot execute {argv[0]!r}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout)
        except TimeoutError:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()
            log.warning(
                "%s timed out after %.1fs", test.display_name(revision), timeout
            )
            return CapturedOutput(
                stdout="",
                stderr="",
                exit_code=None,
                duration=time.monotonic() - start,
                state="timed_out",
            )

        exit_code = process.returncode
        return CapturedOutput(
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            exit_code=exit_code,
            duration=time.monotonic() - start,
            state="crashed" if exit_code is not None and exit_code < 0 else "completed",
        )
