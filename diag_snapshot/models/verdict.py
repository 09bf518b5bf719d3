"""Models for execution outcomes."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal

type VerdictStatus = Literal["pass", "fail", "blessed", "error"]
type ExecutionState = Literal["completed", "timed_out", "crashed"]


@dataclass(frozen=True, kw_only=True)
class CapturedOutput:
    """What one invocation of the subject tool produced."""

    stdout: str
    stderr: str
    exit_code: int | None
    duration: float
    state: ExecutionState


@dataclass(frozen=True, kw_only=True)
class Verdict:
    """Result of one (test case, revision) execution.

    ``diff`` holds the rendered report for failures, ``message`` the short
    reason for failures and errors.
    """

    test_name: str
    revision: str | None = None
    status: VerdictStatus
    duration: float = 0.0
    message: str | None = None
    diff: str | None = None
    error_codes: Sequence[str] = field(default_factory=tuple)

    @property
    def display_name(self) -> str:
        """Name of the execution, revision included."""
        if self.revision is None:
            return self.test_name
        return f"{self.test_name}#{self.revision}"
