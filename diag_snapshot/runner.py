"""Schedule executions of test cases on a bounded worker pool."""

import asyncio
import logging
import sys
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from diag_snapshot.config import HarnessConfig
from diag_snapshot.diagnostic_parser import error_codes, parse
from diag_snapshot.diff_engine import Comparison, DiffEngine
from diag_snapshot.discovery import DiscoveryFailure
from diag_snapshot.expectations import (
    STREAMS,
    ExpectationCorruptError,
    ExpectationStore,
    Stream,
)
from diag_snapshot.models.test_case import ExitClass, NormalizeDirective, TestCase
from diag_snapshot.models.verdict import CapturedOutput, Verdict
from diag_snapshot.normalizer import (
    NormalizationContext,
    NormalizationRule,
    custom_rules,
    normalize,
)
from diag_snapshot.subjects.base import SubjectTool, ToolNotFoundError

log = logging.getLogger(__name__)

type Execution = tuple[TestCase, str | None]


def observed_exit_class(test: TestCase, exit_code: int | None) -> ExitClass | None:
    """Classify an exit code; ``None`` means the tool crashed."""
    if exit_code == 0:
        return "success"
    if exit_code == test.directives.failure_status:
        return "failure"
    return None


def _directive_rules(
    directives: Sequence[NormalizeDirective],
) -> Sequence[NormalizationRule]:
    return custom_rules([(d.pattern, d.replacement) for d in directives])


def failure_verdicts(failures: Sequence[DiscoveryFailure]) -> Sequence[Verdict]:
    """Turn rejected sources into error verdicts."""
    return [
        Verdict(test_name=failure.name, status="error", message=failure.message)
        for failure in failures
    ]


@dataclass(frozen=True, kw_only=True)
class TestRunner:
    """Runs every (test case, revision) execution and produces verdicts.

    At most ``workers`` executions run at once. Setting ``cancel_event`` stops
    dispatching: executions that have not started are reported as cancelled,
    running ones complete normally.
    """

    __test__ = False

    subject: SubjectTool
    store: ExpectationStore
    corpus_root: Path
    bless: bool = False
    workers: int = 1
    timeout: float = 60.0
    platform: str = sys.platform
    external_roots: Sequence[str] = ()
    normalize_addresses: bool = True
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)

    @classmethod
    def from_config(
        cls,
        config: HarnessConfig,
        subject: SubjectTool,
        cancel_event: asyncio.Event | None = None,
    ) -> "TestRunner":
        """Create a runner from the harness configuration."""
        return cls(
            subject=subject,
            store=ExpectationStore(expectations_root=config.expectations_root),
            corpus_root=config.corpus_root,
            bless=config.bless,
            workers=config.workers,
            timeout=config.timeout,
            platform=config.platform,
            external_roots=tuple(config.external_roots),
            normalize_addresses=config.normalize_addresses,
            cancel_event=cancel_event or asyncio.Event(),
        )

    @property
    def engine(self) -> DiffEngine:
        """Diff engine bound to the store and bless mode."""
        return DiffEngine(store=self.store, bless=self.bless)

    async def run_tests(self, test_cases: Sequence[TestCase]) -> Sequence[Verdict]:
        """Run all executions of the given test cases.

        Args:
            test_cases: Discovered test cases

        Returns:
            One verdict per execution, in execution order

        """
        executions: list[Execution] = [
            (test, revision) for test in test_cases for revision in test.executions()
        ]
        if not executions:
            log.info("No executions to run")
            return []

        log.info(
            "Dispatching %d execution(s) of %d test case(s) on %d worker(s)...",
            len(executions),
            len(test_cases),
            self.workers,
        )
        semaphore = asyncio.Semaphore(self.workers)
        results = await asyncio.gather(
            *(self._run_slot(semaphore, test, rev) for test, rev in executions),
            return_exceptions=True,
        )
        log.info("Test execution completed")

        return self._process_results(executions, results)

    def _process_results(
        self,
        executions: Sequence[Execution],
        results: Sequence[Verdict | BaseException],
    ) -> Sequence[Verdict]:
        """Process results of the executions, handling exceptions."""
        verdicts: list[Verdict] = []

        for (test, revision), result in zip(executions, results, strict=True):
            if isinstance(result, Verdict):
                log.debug(
                    "Execution completed: test=%s status=%s duration=%.2fs",
                    result.display_name,
                    result.status,
                    result.duration,
                )
                verdicts.append(result)
            elif isinstance(result, Exception):
                log.error(
                    "Execution of %s failed: %s",
                    test.display_name(revision),
                    result,
                    exc_info=result,
                )
                verdicts.append(
                    Verdict(
                        test_name=test.name,
                        revision=revision,
                        status="error",
                        message=str(result) or type(result).__name__,
                    )
                )
            else:
                raise result

        return verdicts

    async def _run_slot(
        self, semaphore: asyncio.Semaphore, test: TestCase, revision: str | None
    ) -> Verdict:
        async with semaphore:
            if self.cancel_event.is_set():
                return Verdict(
                    test_name=test.name,
                    revision=revision,
                    status="error",
                    message="cancelled before dispatch",
                )
            return await self.execute(test, revision)

    async def execute(self, test: TestCase, revision: str | None) -> Verdict:
        """Run one execution through invoke, normalize, parse and compare."""
        name = test.display_name(revision)
        log.debug("%s: running", name)

        if missing := self._missing_aux_files(test):
            return self._error(
                test, revision, f"missing auxiliary file(s): {', '.join(missing)}"
            )

        try:
            output = await self.subject.invoke(
                test, revision, cwd=self.corpus_root, timeout=self.timeout
            )
        except ToolNotFoundError as e:
            return self._error(test, revision, str(e))

        log.debug("%s: %s (exit code %s)", name, output.state, output.exit_code)

        if output.state == "timed_out":
            return self._error(
                test, revision, f"timeout after {self.timeout:g}s", output.duration
            )
        observed = observed_exit_class(test, output.exit_code)
        if output.state == "crashed" or observed is None:
            return self._error(
                test, revision, self._crash_reason(output), output.duration
            )

        normalized = self._normalize(test, output)
        codes = error_codes(parse(normalized["stderr"]))

        try:
            comparisons: dict[Stream, Comparison] = {}
            for stream in STREAMS:
                comparisons[stream] = await self.engine.check(
                    test, revision, stream, normalized[stream]
                )
        except ExpectationCorruptError as e:
            return self._error(test, revision, str(e), output.duration)

        problems: list[str] = []
        expected = test.directives.expected_exit_class(revision)
        if observed != expected:
            problems.append(
                f"expected {test.directives.expect_for(revision)} ({expected}) "
                f"but tool exited with code {output.exit_code} ({observed})"
            )

        mismatched = [stream for stream, c in comparisons.items() if not c.ok]
        if mismatched:
            problems.append(f"{' and '.join(mismatched)} differ from golden output")

        report = "\n".join(
            f"[{stream}]\n{comparisons[stream].report}" for stream in mismatched
        )

        if problems:
            status = "fail"
        elif self.bless:
            status = "blessed"
        else:
            status = "pass"

        return Verdict(
            test_name=test.name,
            revision=revision,
            status=status,
            duration=output.duration,
            message="; ".join(problems) or None,
            diff=report or None,
            error_codes=tuple(codes),
        )

    def _normalize(self, test: TestCase, output: CapturedOutput) -> dict[Stream, str]:
        context = NormalizationContext(
            root_path=str(self.corpus_root),
            platform=self.platform,
            test_dir=str(test.source_dir),
            external_roots=self.external_roots,
            normalize_addresses=self.normalize_addresses,
        )
        directives = test.directives
        return {
            "stderr": normalize(
                output.stderr, context, _directive_rules(directives.normalize_stderr)
            ),
            "stdout": normalize(
                output.stdout, context, _directive_rules(directives.normalize_stdout)
            ),
        }

    def _missing_aux_files(self, test: TestCase) -> Sequence[str]:
        aux_dir = test.source_dir / "auxiliary"
        return [
            name
            for name in test.directives.aux_files
            if not (aux_dir / name).is_file()
        ]

    @staticmethod
    def _crash_reason(output: CapturedOutput) -> str:
        if output.exit_code is not None and output.exit_code < 0:
            return f"tool killed by signal {-output.exit_code}"
        return f"tool crashed with exit code {output.exit_code}"

    @staticmethod
    def _error(
        test: TestCase, revision: str | None, message: str, duration: float = 0.0
    ) -> Verdict:
        log.warning("%s: %s", test.display_name(revision), message)
        return Verdict(
            test_name=test.name,
            revision=revision,
            status="error",
            duration=duration,
            message=message,
        )
