"""Tests for the reporter."""

import logging

import pytest

from diag_snapshot.models.verdict import Verdict
from diag_snapshot.reporter import format_output, log_results_summary, summarize
from diag_snapshot.testing.factories import VerdictFactory


def test_log_results_summary_pass(caplog: pytest.LogCaptureFixture) -> None:
    """Logs passing executions with checkmark symbol."""
    verdicts = [VerdictFactory.build(test_name="borrowck/rc-move", duration=0.25)]

    with caplog.at_level(logging.INFO):
        log_results_summary(logging.getLogger(), verdicts)

    assert "Test Results Summary:" in caplog.text
    assert "✓ borrowck/rc-move: pass (0.25s)" in caplog.text
    assert "1 execution(s): 1 passed, 0 failed, 0 blessed, 0 error(s)" in caplog.text


def test_log_results_summary_failure_shows_diff(
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Logs the reason and every diff line of a failure."""
    verdicts = [
        VerdictFactory.build(
            test_name="t",
            revision="a",
            status="fail",
            duration=1.0,
            message="stderr differ from golden output",
            diff="[stderr]\n-old\n+new",
        )
    ]

    with caplog.at_level(logging.INFO):
        log_results_summary(logging.getLogger(), verdicts)

    assert "✗ t#a: fail (1.00s)" in caplog.text
    assert "Reason: stderr differ from golden output" in caplog.text
    assert "  -old" in caplog.text
    assert "  +new" in caplog.text


def test_log_results_summary_error_and_blessed(
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Errors and blessed executions have their own symbols."""
    verdicts = [
        VerdictFactory.build(
            test_name="slow", status="error", duration=5.0, message="timeout after 5s"
        ),
        VerdictFactory.build(test_name="new", status="blessed", duration=0.5),
    ]

    with caplog.at_level(logging.INFO):
        log_results_summary(logging.getLogger(), verdicts)

    assert "! slow: error (5.00s)" in caplog.text
    assert "Reason: timeout after 5s" in caplog.text
    assert "★ new: blessed (0.50s)" in caplog.text


def test_format_output_empty() -> None:
    """Returns empty totals when no verdicts."""
    assert format_output([]) == {
        "total": 0,
        "passed": 0,
        "failed": 0,
        "blessed": 0,
        "errors": 0,
        "results": [],
    }


def test_format_output_entries() -> None:
    """Each verdict becomes one JSON-serializable entry."""
    verdict = Verdict(
        test_name="borrowck/rc-move",
        revision="a",
        status="fail",
        duration=0.5,
        message="stderr differ from golden output",
        diff="[stderr]\n-x\n+y",
        error_codes=("E0507",),
    )

    output = format_output([verdict])

    assert output["results"] == [
        {
            "test": "borrowck/rc-move",
            "revision": "a",
            "status": "fail",
            "duration": 0.5,
            "message": "stderr differ from golden output",
            "diff": "[stderr]\n-x\n+y",
            "error_codes": ["E0507"],
        }
    ]


def test_summary_counts_and_exit_code() -> None:
    """Failures and errors make the run fail, blessing does not."""
    verdicts = [
        VerdictFactory.build(status="pass"),
        VerdictFactory.build(status="blessed"),
        VerdictFactory.build(status="fail"),
        VerdictFactory.build(status="error"),
        VerdictFactory.build(status="error"),
    ]

    summary = summarize(verdicts)

    assert summary.total == 5
    assert (summary.passed, summary.failed, summary.blessed, summary.errors) == (1, 1, 1, 2)
    assert summary.exit_code == 1


@pytest.mark.parametrize(
    ("statuses", "exit_code"),
    [
        ([], 0),
        (["pass", "pass"], 0),
        (["pass", "blessed"], 0),
        (["pass", "fail"], 1),
        (["error"], 1),
    ],
)
def test_exit_code(statuses: list[str], exit_code: int) -> None:
    """Exit code is 0 only when nothing failed or errored."""
    verdicts = [VerdictFactory.build(status=status) for status in statuses]

    assert summarize(verdicts).exit_code == exit_code
