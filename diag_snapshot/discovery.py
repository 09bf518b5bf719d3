"""Discover test cases in the corpus."""

import fnmatch
import logging
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from diag_snapshot.directives import DEFAULT_PREFIX, DirectiveError, read_directives
from diag_snapshot.models.test_case import TestCase

log = logging.getLogger(__name__)

AUXILIARY_DIR = "auxiliary"


@dataclass(frozen=True, kw_only=True)
class DiscoveryFailure:
    """A source file that could not be turned into a test case."""

    name: str
    path: Path
    message: str


@dataclass(frozen=True, kw_only=True)
class DiscoveryResult:
    """Test cases found in the corpus and the files that were rejected."""

    test_cases: Sequence[TestCase] = field(default_factory=tuple)
    failures: Sequence[DiscoveryFailure] = field(default_factory=tuple)


def logical_name(corpus_root: Path, path: Path) -> str:
    """Logical name of a source: corpus-relative POSIX path without suffix."""
    return path.relative_to(corpus_root).with_suffix("").as_posix()


def matches_filter(name: str, name_filter: str | None) -> bool:
    """Check a test name against a substring or glob filter."""
    if not name_filter:
        return True
    if any(ch in name_filter for ch in "*?["):
        return fnmatch.fnmatchcase(name, name_filter)
    return name_filter in name


def iter_sources(corpus_root: Path, extensions: Sequence[str]) -> Sequence[Path]:
    """List test sources, skipping auxiliary directories."""
    sources = [
        path
        for path in corpus_root.rglob("*")
        if path.is_file()
        and path.suffix in extensions
        and AUXILIARY_DIR not in path.relative_to(corpus_root).parts[:-1]
    ]
    return sorted(sources)


def golden_collisions(test_cases: Sequence[TestCase]) -> dict[Path, list[str]]:
    """Find test sources whose executions would share golden files.

    Returns:
        For each colliding source, the executions of other sources it
        collides with

    """
    claims: defaultdict[str, list[tuple[TestCase, str | None]]] = defaultdict(list)
    for test in test_cases:
        for revision in test.executions():
            claims[test.golden_stem(revision)].append((test, revision))

    collisions: defaultdict[Path, list[str]] = defaultdict(list)
    for owners in claims.values():
        for test, _ in owners:
            collisions[test.path].extend(
                other.display_name(revision)
                for other, revision in owners
                if other.path != test.path
            )
    return {path: names for path, names in collisions.items() if names}


def discover(
    corpus_root: Path,
    *,
    extensions: Sequence[str] = (".rs",),
    name_filter: str | None = None,
    directive_prefix: str = DEFAULT_PREFIX,
) -> DiscoveryResult:
    """Enumerate the test cases of a corpus.

    Args:
        corpus_root: Directory holding the test sources
        extensions: Suffixes identifying test sources
        name_filter: Optional substring or glob on the logical test name
        directive_prefix: Comment prefix introducing directives

    Returns:
        Test cases sorted by name, plus sources whose directives are invalid
        or whose golden files would collide with another source's

    """
    if not corpus_root.is_dir():
        raise FileNotFoundError(f"Corpus root not found: {corpus_root}")

    candidates: list[TestCase] = []
    test_cases: list[TestCase] = []
    failures: list[DiscoveryFailure] = []

    # Sources outside the filter still claim golden files.
    for path in iter_sources(corpus_root, extensions):
        name = logical_name(corpus_root, path)
        selected = matches_filter(name, name_filter)

        try:
            directives = read_directives(path, directive_prefix)
        except DirectiveError as e:
            if selected:
                log.warning("Invalid directives in %s: %s", path, e)
                failures.append(
                    DiscoveryFailure(name=name, path=path, message=str(e))
                )
            continue

        if directives.ignore:
            if selected:
                log.info("Ignoring %s", name)
            continue

        candidates.append(TestCase(name=name, path=path, directives=directives))

    collisions = golden_collisions(candidates)
    for test in candidates:
        if not matches_filter(test.name, name_filter):
            continue
        if others := collisions.get(test.path):
            message = f"golden files collide with {', '.join(others)}"
            log.warning("Golden files of %s collide with %s", test.name, others)
            failures.append(
                DiscoveryFailure(name=test.name, path=test.path, message=message)
            )
            continue
        test_cases.append(test)

    log.info(
        "Discovered %d test case(s) under %s", len(test_cases), corpus_root
    )
    return DiscoveryResult(test_cases=test_cases, failures=failures)
