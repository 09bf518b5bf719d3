"""Generic command subject implementation."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from diag_snapshot.models.test_case import TestCase
from diag_snapshot.subjects.base import SubjectTool
from diag_snapshot.subjects.command.config import CommandConfig


@dataclass(frozen=True, kw_only=True)
class CommandSubject(SubjectTool):
    """Runs ``program [args] [directive flags] [revision args] SOURCE``."""

    config: CommandConfig

    @classmethod
    def from_config(cls, config: CommandConfig) -> "CommandSubject":
        """Create subject from its validated configuration."""
        return cls(config=config)

    def build_command(self, test: TestCase, revision: str | None) -> Sequence[str]:
        """Build the command line for one execution."""
        revision_args = (
            [arg.format(revision=revision) for arg in self.config.revision_args]
            if revision is not None
            else []
        )
        return [
            *self.config.program,
            *self.config.args,
            *test.directives.flags_for(revision),
            *revision_args,
            str(test.path),
        ]

    def environment(self) -> Mapping[str, str]:
        """Environment overrides from the configuration."""
        return self.config.env
