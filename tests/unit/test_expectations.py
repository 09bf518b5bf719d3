"""Tests for the expectation store."""

import asyncio
from pathlib import Path

import pytest

from diag_snapshot.expectations import (
    ABSENT,
    Absent,
    Expectation,
    ExpectationCorruptError,
    ExpectationStore,
)
from diag_snapshot.models.test_case import TestCase


@pytest.fixture
def test_case(tmp_path: Path) -> TestCase:
    """Test case living in tmp_path/ui/borrowck."""
    source_dir = tmp_path / "ui" / "borrowck"
    source_dir.mkdir(parents=True)
    return TestCase(name="borrowck/rc-move", path=source_dir / "rc-move.rs")


@pytest.fixture
def store() -> ExpectationStore:
    """Store keeping golden files beside the sources."""
    return ExpectationStore()


class TestPathFor:
    """Tests for golden file naming."""

    def test_default_revision_beside_source(
        self, store: ExpectationStore, test_case: TestCase
    ) -> None:
        """The default revision maps to <stem>.<stream>."""
        path = store.path_for(test_case, None, "stderr")

        assert path == test_case.source_dir / "rc-move.stderr"

    def test_named_revision(self, store: ExpectationStore, test_case: TestCase) -> None:
        """A named revision maps to <stem>.<revision>.<stream>."""
        path = store.path_for(test_case, "nll", "stdout")

        assert path == test_case.source_dir / "rc-move.nll.stdout"

    def test_dotted_name_shares_revision_path(
        self, store: ExpectationStore, test_case: TestCase
    ) -> None:
        """Paths follow the golden stem, which discovery keeps unique."""
        dotted = TestCase(
            name="borrowck/rc-move.nll", path=test_case.source_dir / "rc-move.nll.rs"
        )

        assert store.path_for(dotted, None, "stderr") == store.path_for(
            test_case, "nll", "stderr"
        )

    def test_mirrored_root(self, tmp_path: Path, test_case: TestCase) -> None:
        """A configured expectations root mirrors the corpus layout."""
        store = ExpectationStore(expectations_root=tmp_path / "golden")

        path = store.path_for(test_case, None, "stderr")

        assert path == tmp_path / "golden" / "borrowck" / "rc-move.stderr"


class TestLoad:
    """Tests for ExpectationStore.load."""

    async def test_missing_file_is_absent(
        self, store: ExpectationStore, test_case: TestCase
    ) -> None:
        """No golden file loads as ABSENT."""
        assert await store.load(test_case, None, "stderr") is ABSENT

    async def test_empty_file_is_not_absent(
        self, store: ExpectationStore, test_case: TestCase
    ) -> None:
        """An empty golden file is an expectation of no output."""
        path = test_case.source_dir / "rc-move.stderr"
        path.write_text("")

        expectation = await store.load(test_case, None, "stderr")

        assert expectation == Expectation(text="", path=path)

    async def test_loads_text(self, store: ExpectationStore, test_case: TestCase) -> None:
        """Content is returned with CRLF translated to LF."""
        path = test_case.source_dir / "rc-move.stderr"
        path.write_bytes(b"error: x\r\n")

        expectation = await store.load(test_case, None, "stderr")

        assert isinstance(expectation, Expectation)
        assert expectation.text == "error: x\n"

    async def test_invalid_utf8_is_corrupt(
        self, store: ExpectationStore, test_case: TestCase
    ) -> None:
        """Undecodable golden files raise instead of reading as absent."""
        (test_case.source_dir / "rc-move.stderr").write_bytes(b"\xff\xfe\x00broken")

        with pytest.raises(ExpectationCorruptError, match="not valid UTF-8"):
            await store.load(test_case, None, "stderr")

    async def test_unreadable_path_is_corrupt(
        self, store: ExpectationStore, test_case: TestCase
    ) -> None:
        """A directory in place of the golden file is reported as corrupt."""
        (test_case.source_dir / "rc-move.stderr").mkdir()

        with pytest.raises(ExpectationCorruptError, match="Cannot read"):
            await store.load(test_case, None, "stderr")


class TestSave:
    """Tests for ExpectationStore.save."""

    async def test_saved_text_loads_back(
        self, store: ExpectationStore, test_case: TestCase
    ) -> None:
        """Saved text is what a later load returns."""
        await store.save(test_case, None, "stderr", "error: x\n")

        expectation = await store.load(test_case, None, "stderr")

        assert isinstance(expectation, Expectation)
        assert expectation.text == "error: x\n"

    async def test_saving_empty_text_removes_file(
        self, store: ExpectationStore, test_case: TestCase
    ) -> None:
        """Blessing empty output leaves no golden file behind."""
        await store.save(test_case, None, "stderr", "error: x\n")
        await store.save(test_case, None, "stderr", "")

        assert await store.load(test_case, None, "stderr") is ABSENT

    async def test_creates_mirrored_directories(
        self, tmp_path: Path, test_case: TestCase
    ) -> None:
        """Parent directories under the expectations root are created."""
        store = ExpectationStore(expectations_root=tmp_path / "golden")

        path = await store.save(test_case, "a", "stderr", "warning: y\n")

        assert path.read_text() == "warning: y\n"

    async def test_revisions_are_isolated(
        self, store: ExpectationStore, test_case: TestCase
    ) -> None:
        """Saving one revision does not touch another."""
        await store.save(test_case, "a", "stderr", "from a\n")
        await store.save(test_case, "b", "stderr", "from b\n")
        await store.save(test_case, "a", "stderr", "from a again\n")

        b = await store.load(test_case, "b", "stderr")
        assert isinstance(b, Expectation)
        assert b.text == "from b\n"

    async def test_concurrent_saves_of_one_key(
        self, store: ExpectationStore, test_case: TestCase
    ) -> None:
        """Concurrent writes of one key leave one complete file, no temp files."""
        texts = [f"line {i}\n" * (i + 1) for i in range(20)]

        await asyncio.gather(
            *(store.save(test_case, None, "stderr", text) for text in texts)
        )

        expectation = await store.load(test_case, None, "stderr")
        assert isinstance(expectation, Expectation)
        assert expectation.text in texts
        assert sorted(p.name for p in test_case.source_dir.iterdir()) == [
            "rc-move.stderr"
        ]

    async def test_concurrent_saves_of_distinct_keys(
        self, store: ExpectationStore, test_case: TestCase
    ) -> None:
        """Distinct keys are all written."""
        revisions = [f"r{i}" for i in range(8)]

        await asyncio.gather(
            *(store.save(test_case, r, "stderr", f"{r}\n") for r in revisions)
        )

        for revision in revisions:
            expectation = await store.load(test_case, revision, "stderr")
            assert isinstance(expectation, Expectation)
            assert expectation.text == f"{revision}\n"


def test_absent_is_a_singleton() -> None:
    """Absent() always returns the ABSENT sentinel."""
    assert Absent() is ABSENT
    assert repr(ABSENT) == "ABSENT"
