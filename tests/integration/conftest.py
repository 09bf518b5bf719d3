"""Fixtures for integration tests."""

import sys
import textwrap
from pathlib import Path
from typing import Protocol

import pytest

from diag_snapshot.expectations import ExpectationStore
from diag_snapshot.runner import TestRunner
from diag_snapshot.subjects.command import CommandConfig, CommandSubject

# Stand-in compiler driven by comments in the test source:
#   // emit: TEXT        stderr line, "{path}" expands to the source path
#   // emit[REV]: TEXT   stderr line for one revision only
#   // stdout: TEXT      stdout line
#   // exit: N           exit code (default 1 if anything was emitted, else 0)
#   // hang              never finish
FAKE_COMPILER = textwrap.dedent(
    """
    import re
    import sys
    import time

    args = sys.argv[1:]
    path = args[-1]
    revision = args[args.index("--cfg") + 1] if "--cfg" in args else None
    directive = re.compile(r"^// (emit|stdout|exit)(?:\\[([\\w-]+)\\])?: ?(.*)$")

    stderr, stdout, exit_code = [], [], None
    with open(path, encoding="utf-8") as source:
        for line in source.read().splitlines():
            if line.strip() == "// hang":
                time.sleep(3600)
            match = directive.match(line)
            if not match:
                continue
            kind, scope, text = match.groups()
            if scope is not None and scope != revision:
                continue
            text = text.replace("{path}", path)
            if kind == "emit":
                stderr.append(text)
            elif kind == "stdout":
                stdout.append(text)
            else:
                exit_code = int(text)

    for text in stdout:
        print(text)
    for text in stderr:
        print(text, file=sys.stderr)
    if exit_code is None:
        exit_code = 1 if stderr else 0
    sys.exit(exit_code)
    """
)


class WriteTestFn(Protocol):
    """Protocol for test source creation function."""

    def __call__(self, name: str, body: str) -> Path:
        """Write a test source below the corpus and return its path."""


class RunnerFactoryFn(Protocol):
    """Protocol for runner creation function."""

    def __call__(
        self, *, bless: bool = False, workers: int = 2, timeout: float = 30.0
    ) -> TestRunner:
        """Create a runner over the corpus using the fake compiler."""


@pytest.fixture(scope="session")
def fake_compiler(tmp_path_factory: pytest.TempPathFactory) -> Path:
    """Write the fake compiler script."""
    script = tmp_path_factory.mktemp("bin") / "fakecc.py"
    script.write_text(FAKE_COMPILER, encoding="utf-8")
    return script


@pytest.fixture
def corpus(tmp_path: Path) -> Path:
    """Create an empty corpus root."""
    root = tmp_path / "ui"
    root.mkdir()
    return root


@pytest.fixture
def write_test(corpus: Path) -> WriteTestFn:
    """Return a function to write test sources."""

    def _write(name: str, body: str) -> Path:
        path = corpus / f"{name}.rs"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(body).lstrip(), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def command_subject(fake_compiler: Path) -> CommandSubject:
    """Command subject running the fake compiler."""
    return CommandSubject(
        config=CommandConfig(program=[sys.executable, str(fake_compiler)])
    )


@pytest.fixture
def make_runner(corpus: Path, command_subject: CommandSubject) -> RunnerFactoryFn:
    """Return a function to create runners sharing one expectation store."""
    store = ExpectationStore()

    def _make(
        *, bless: bool = False, workers: int = 2, timeout: float = 30.0
    ) -> TestRunner:
        return TestRunner(
            subject=command_subject,
            store=store,
            corpus_root=corpus,
            bless=bless,
            workers=workers,
            timeout=timeout,
            platform=sys.platform,
        )

    return _make
