"""Compare normalized output with golden expectations."""

import difflib
import logging
from dataclasses import dataclass
from typing import Literal

from diag_snapshot.expectations import (
    Absent,
    Expectation,
    ExpectationStore,
    Stream,
)
from diag_snapshot.models.test_case import TestCase

log = logging.getLogger(__name__)

CONTEXT_LINES = 3


@dataclass(frozen=True, kw_only=True)
class Comparison:
    """Outcome of comparing one stream."""

    status: Literal["match", "mismatch", "blessed"]
    report: str | None = None

    @property
    def ok(self) -> bool:
        """Whether the stream needs no attention."""
        return self.status != "mismatch"


def render_unexpected(actual: str, label: str = "actual") -> str:
    """Render output that has no golden file yet."""
    lines = [f"+++ {label} (unexpected new output, no golden file)"]
    lines.extend(f"+{line}" for line in actual.splitlines())
    return "\n".join(lines)


def render_diff(
    expected: str, actual: str, *, fromfile: str = "expected", tofile: str = "actual"
) -> str:
    """Render a unified diff from ``expected`` to ``actual``."""
    diff = difflib.unified_diff(
        expected.splitlines(),
        actual.splitlines(),
        fromfile=fromfile,
        tofile=tofile,
        n=CONTEXT_LINES,
        lineterm="",
    )
    return "\n".join(diff)


def compare(actual: str, expected: Expectation | Absent) -> Comparison:
    """Compare normalized output with its expectation.

    Absent expectations match only empty output. Present expectations must be
    textually identical to the normalized output.
    """
    if isinstance(expected, Absent):
        if not actual:
            return Comparison(status="match")
        return Comparison(status="mismatch", report=render_unexpected(actual))

    if actual == expected.text:
        return Comparison(status="match")

    return Comparison(
        status="mismatch",
        report=render_diff(
            expected.text, actual, fromfile=str(expected.path), tofile="actual"
        ),
    )


@dataclass(frozen=True, kw_only=True)
class DiffEngine:
    """Checks streams against the store, or rewrites them in bless mode."""

    store: ExpectationStore
    bless: bool = False

    async def check(
        self,
        test: TestCase,
        revision: str | None,
        stream: Stream,
        actual: str,
    ) -> Comparison:
        """Compare one stream, or save it when blessing.

        Raises:
            ExpectationCorruptError: If the golden file cannot be read

        """
        if self.bless:
            await self.store.save(test, revision, stream, actual)
            return Comparison(status="blessed")

        expectation = await self.store.load(test, revision, stream)
        comparison = compare(actual, expectation)
        if not comparison.ok:
            log.debug(
                "Mismatch in %s for %s", stream, test.display_name(revision)
            )
        return comparison
