"""rustc subject implementation."""

import asyncio
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from diag_snapshot.models.test_case import TestCase
from diag_snapshot.subjects.base import SubjectTool
from diag_snapshot.subjects.rustc.config import RustcConfig


@dataclass(frozen=True, kw_only=True)
class RustcSubject(SubjectTool):
    """Compiles a test with rustc.

    ``check-*`` tests stop after metadata emission; ``build-*`` tests run the
    whole pipeline. Each execution writes into its own output directory.
    """

    config: RustcConfig

    @classmethod
    def from_config(cls, config: RustcConfig) -> "RustcSubject":
        """Create subject from its validated configuration."""
        return cls(config=config)

    def out_dir(self, test: TestCase, revision: str | None) -> Path:
        """Output directory of one execution."""
        out = self.config.build_root.absolute() / test.name
        return out if revision is None else out / revision

    async def prepare(self, test: TestCase, revision: str | None) -> None:
        """Create the output directory."""
        await asyncio.to_thread(
            self.out_dir(test, revision).mkdir, parents=True, exist_ok=True
        )

    def build_command(self, test: TestCase, revision: str | None) -> Sequence[str]:
        """Build the rustc command line for one execution."""
        command = [
            self.config.rustc,
            str(test.path),
            "--edition",
            self.config.edition,
            "--error-format=human",
            "--out-dir",
            str(self.out_dir(test, revision)),
        ]
        if self.config.ui_testing:
            command.append("-Zui-testing")
        if test.directives.expect_for(revision).startswith("check-"):
            command.append("--emit=metadata")
        if revision is not None:
            command.extend(["--cfg", revision])
        command.extend(self.config.args)
        command.extend(test.directives.flags_for(revision))
        return command

    def environment(self) -> Mapping[str, str]:
        """Allow unstable flags when UI testing output is requested."""
        return {"RUSTC_BOOTSTRAP": "1"} if self.config.ui_testing else {}
