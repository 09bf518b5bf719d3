"""Aggregate verdicts into a run summary and exit status."""

import logging
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from diag_snapshot.models.verdict import Verdict

STATUS_SYMBOLS = {
    "pass": "✓",
    "fail": "✗",
    "blessed": "★",
    "error": "!",
}


@dataclass(frozen=True, kw_only=True)
class RunSummary:
    """Counts of a run and the resulting process exit code."""

    total: int
    passed: int
    failed: int
    blessed: int
    errors: int

    @property
    def exit_code(self) -> int:
        """Zero only when nothing failed or errored; blessing never fails a run."""
        return 1 if self.failed or self.errors else 0

    @property
    def line(self) -> str:
        """One-line summary."""
        return (
            f"{self.total} execution(s): {self.passed} passed, {self.failed} failed, "
            f"{self.blessed} blessed, {self.errors} error(s)"
        )


def summarize(verdicts: Sequence[Verdict]) -> RunSummary:
    """Count verdicts by status."""
    counts = Counter(verdict.status for verdict in verdicts)
    return RunSummary(
        total=len(verdicts),
        passed=counts["pass"],
        failed=counts["fail"],
        blessed=counts["blessed"],
        errors=counts["error"],
    )


def log_results_summary(log: logging.Logger, verdicts: Sequence[Verdict]) -> None:
    """Log one line per verdict, the diff of each failure and each error reason."""
    log.info("=" * 80)
    log.info("Test Results Summary:")
    log.info("=" * 80)

    for verdict in verdicts:
        symbol = STATUS_SYMBOLS.get(verdict.status, "?")
        log.info(
            "%s %s: %s (%.2fs)",
            symbol,
            verdict.display_name,
            verdict.status,
            verdict.duration,
        )
        if verdict.message:
            log.info("  Reason: %s", verdict.message)
        if verdict.diff:
            for line in verdict.diff.splitlines():
                log.info("  %s", line)

    log.info("=" * 80)
    log.info(summarize(verdicts).line)


def format_output(verdicts: Sequence[Verdict]) -> dict[str, Any]:
    """Format verdicts for JSON output."""
    summary = summarize(verdicts)
    return {
        "total": summary.total,
        "passed": summary.passed,
        "failed": summary.failed,
        "blessed": summary.blessed,
        "errors": summary.errors,
        "results": [
            {
                "test": verdict.test_name,
                "revision": verdict.revision,
                "status": verdict.status,
                "duration": verdict.duration,
                "message": verdict.message,
                "diff": verdict.diff,
                "error_codes": list(verdict.error_codes),
            }
            for verdict in verdicts
        ],
    }
