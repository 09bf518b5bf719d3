"""Golden expectation files keyed by (test case, revision, stream)."""

import asyncio
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final, Literal

from diag_snapshot.models.test_case import TestCase

log = logging.getLogger(__name__)

type Stream = Literal["stderr", "stdout"]

STREAMS: Final[tuple[Stream, ...]] = ("stderr", "stdout")


class ExpectationCorruptError(Exception):
    """Raised when a golden file exists but cannot be read as UTF-8 text."""


class Absent:
    """No golden file has ever been recorded for the key."""

    _instance: "Absent | None" = None

    def __new__(cls) -> "Absent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT: Final = Absent()


@dataclass(frozen=True, kw_only=True)
class Expectation:
    """Content of a golden file; empty text means no output is expected."""

    text: str
    path: Path


@dataclass(frozen=True, kw_only=True)
class ExpectationStore:
    """Loads and saves golden files.

    Files live next to the test source unless ``expectations_root`` is set, in
    which case they mirror the corpus layout below it. Writes to one golden
    file are serialized; writes to distinct files proceed independently.
    """

    expectations_root: Path | None = None
    _locks: dict[Path, asyncio.Lock] = field(
        default_factory=dict, repr=False, compare=False
    )

    def path_for(self, test: TestCase, revision: str | None, stream: Stream) -> Path:
        """Return the golden file path of a key."""
        filename = f"{Path(test.golden_stem(revision)).name}.{stream}"
        if self.expectations_root is None:
            return test.source_dir / filename
        return self.expectations_root / Path(test.name).parent / filename

    async def load(
        self, test: TestCase, revision: str | None, stream: Stream
    ) -> Expectation | Absent:
        """Return the golden text for a key, or ``ABSENT`` when none exists.

        Raises:
            ExpectationCorruptError: If the file exists but is unreadable

        """
        path = self.path_for(test, revision, stream)
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError:
            return ABSENT
        except OSError as e:
            raise ExpectationCorruptError(f"Cannot read {path}: {e}") from e

        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ExpectationCorruptError(f"{path} is not valid UTF-8: {e}") from e

        return Expectation(text=text.replace("\r\n", "\n"), path=path)

    async def save(
        self, test: TestCase, revision: str | None, stream: Stream, text: str
    ) -> Path:
        """Record ``text`` as the golden output of a key.

        Empty text removes the golden file, recording that no output is
        expected.
        """
        path = self.path_for(test, revision, stream)
        lock = self._locks.setdefault(path, asyncio.Lock())

        async with lock:
            if text:
                await asyncio.to_thread(_write_atomically, path, text)
                log.info("Blessed %s", path)
            else:
                await asyncio.to_thread(path.unlink, missing_ok=True)
                log.debug("No output for %s, golden file removed", path)

        return path


def _write_atomically(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as tmp:
            tmp.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
