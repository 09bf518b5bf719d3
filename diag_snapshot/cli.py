"""CLI entry point for the diagnostic snapshot harness."""

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Any

from diag_snapshot.config import HarnessConfig
from diag_snapshot.config_loader import load_harness_config
from diag_snapshot.discovery import discover
from diag_snapshot.reporter import format_output, log_results_summary, summarize
from diag_snapshot.runner import TestRunner, failure_verdicts
from diag_snapshot.subjects.loading import load_subject_manifest


def apply_overrides(
    config: HarnessConfig,
    *,
    bless: bool = False,
    workers: int | None = None,
    timeout: float | None = None,
    name_filter: str | None = None,
) -> HarnessConfig:
    """Return the configuration with command line overrides applied."""
    updates: dict[str, Any] = {}
    if bless:
        updates["bless"] = True
    if workers is not None:
        updates["workers"] = workers
    if timeout is not None:
        updates["timeout"] = timeout
    if name_filter is not None:
        updates["name_filter"] = name_filter
    if not updates:
        return config
    return HarnessConfig.model_validate({**config.model_dump(), **updates})


def install_cancellation(cancel_event: asyncio.Event) -> None:
    """Stop dispatching new executions on SIGINT or SIGTERM."""
    log = logging.getLogger("diag_snapshot")
    loop = asyncio.get_running_loop()

    def _cancel(signame: str) -> None:
        if not cancel_event.is_set():
            log.warning("%s received, waiting for running executions", signame)
        cancel_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _cancel, sig.name)
        except (NotImplementedError, RuntimeError):
            # Not available on every platform; Ctrl+C then aborts the run.
            pass


async def run(config: HarnessConfig) -> int:
    """Run the corpus and return exit code."""
    log = logging.getLogger("diag_snapshot")

    log.info("Loading subject: %s", config.subject)
    manifest = load_subject_manifest(config.subject)
    subject = manifest.subject_factory(
        manifest.config_cls(**config.subject_config)
    )

    log.info("Discovering tests under %s", config.corpus_root)
    discovery = discover(
        config.corpus_root,
        extensions=config.extensions,
        name_filter=config.name_filter,
        directive_prefix=config.directive_prefix,
    )

    cancel_event = asyncio.Event()
    install_cancellation(cancel_event)

    runner = TestRunner.from_config(config, subject, cancel_event=cancel_event)
    if config.bless:
        log.info("Bless mode: golden files will be rewritten")

    verdicts = [
        *failure_verdicts(discovery.failures),
        *await runner.run_tests(discovery.test_cases),
    ]

    log_results_summary(log, verdicts)
    print(json.dumps(format_output(verdicts), indent=2))

    return summarize(verdicts).exit_code


async def load_and_run(
    config_path: Path,
    *,
    bless: bool = False,
    workers: int | None = None,
    timeout: float | None = None,
    name_filter: str | None = None,
) -> int:
    """Load the configuration file, apply overrides and run."""
    config = await load_harness_config(config_path)
    config = apply_overrides(
        config,
        bless=bless,
        workers=workers,
        timeout=timeout,
        name_filter=name_filter,
    )
    return await run(config)


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Compare compiler diagnostics with golden expectation files"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("diag-snapshot.yaml"),
        help="Path to the harness configuration file",
    )
    parser.add_argument(
        "--bless",
        action="store_true",
        help="Rewrite golden files with the current output",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of executions run in parallel (default: CPU count)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds before an execution is killed",
    )
    parser.add_argument(
        "--filter",
        dest="name_filter",
        default=None,
        help="Only run tests whose name contains this text or matches this glob",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log every execution step",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    exit_code = asyncio.run(
        load_and_run(
            args.config,
            bless=args.bless,
            workers=args.workers,
            timeout=args.timeout,
            name_filter=args.name_filter,
        )
    )
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
