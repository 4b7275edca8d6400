"""Tests for the sidecar ConfigStore."""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path

import pytest

from areader.models import DocumentConfig
from areader.notify import CollectingNotifier
from areader.store.sidecar import ConfigStore


@pytest.fixture
def notifier() -> CollectingNotifier:
    return CollectingNotifier()


@pytest.fixture
def store(notifier: CollectingNotifier) -> ConfigStore:
    return ConfigStore(notifier=notifier)


def _book(tmp_path: Path, name: str = "novel.txt", text: str = "line\n") -> Path:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


class TestDerivePath:
    """Sidecar path derivation."""

    def test_same_directory_same_base_name(self, store: ConfigStore) -> None:
        assert store.derive_path(Path("/books/novel.txt")) == Path("/books/novel.json")

    def test_is_deterministic(self, store: ConfigStore) -> None:
        source = Path("/books/a/novel.txt")
        assert store.derive_path(source) == store.derive_path(source)

    def test_same_name_different_directories_do_not_collide(self, store: ConfigStore) -> None:
        assert store.derive_path(Path("/a/novel.txt")) != store.derive_path(Path("/b/novel.txt"))

    def test_different_base_names_do_not_collide(self, store: ConfigStore) -> None:
        assert store.derive_path(Path("/a/one.txt")) != store.derive_path(Path("/a/two.txt"))

    def test_different_extensions_same_base_name_collide(self, store: ConfigStore) -> None:
        """One sidecar per logical book."""
        assert store.derive_path(Path("/a/novel.txt")) == store.derive_path(Path("/a/novel.md"))

    def test_source_without_suffix(self, store: ConfigStore) -> None:
        assert store.derive_path(Path("/a/README")) == Path("/a/README.json")

    def test_source_with_sidecar_suffix_is_not_overwritten(self, store: ConfigStore) -> None:
        assert store.derive_path(Path("/a/data.json")) == Path("/a/data.json.json")

    def test_custom_suffix(self) -> None:
        store = ConfigStore(sidecar_suffix=".reading")
        assert store.derive_path(Path("/a/novel.txt")) == Path("/a/novel.reading")


class TestLoadSave:
    """Round-tripping and soft failures."""

    def test_save_then_load_round_trip(self, store: ConfigStore, tmp_path: Path) -> None:
        source = _book(tmp_path)
        config = DocumentConfig(
            source_path=source,
            display_name="novel.txt",
            progress=42,
            total_lines=100,
            last_read_time="2024-05-01T08:30:00.000Z",
            chapter_pattern=r"^Chapter \d+",
            bookmarks=[3, 10],
        )

        assert asyncio.run(store.save(config)) is True
        loaded = asyncio.run(store.load(source))

        assert loaded == config
        assert loaded.last_read_time == "2024-05-01T08:30:00.000Z"

    def test_save_writes_pretty_json_in_stable_order(self, store: ConfigStore, tmp_path: Path) -> None:
        source = _book(tmp_path)
        config = DocumentConfig(
            source_path=source,
            display_name="novel.txt",
            progress=1,
            total_lines=2,
            last_read_time="2024-05-01T08:30:00.000Z",
        )

        asyncio.run(store.save(config))
        text = store.derive_path(source).read_text(encoding="utf-8")

        assert list(json.loads(text)) == [
            "sourcePath",
            "displayName",
            "progress",
            "totalLines",
            "lastReadTime",
        ]
        assert '\n  "progress": 1,' in text

    def test_non_ascii_is_written_verbatim(self, store: ConfigStore, tmp_path: Path) -> None:
        source = _book(tmp_path, "小说.txt")
        config = DocumentConfig.default_for(source)
        config.chapter_pattern = "^第.+章"

        asyncio.run(store.save(config))

        assert "^第.+章" in store.derive_path(source).read_text(encoding="utf-8")

    def test_load_missing_returns_none(self, store: ConfigStore, tmp_path: Path) -> None:
        assert asyncio.run(store.load(tmp_path / "missing.txt")) is None

    def test_load_corrupt_returns_none(self, store: ConfigStore, tmp_path: Path) -> None:
        source = _book(tmp_path)
        store.derive_path(source).write_text("{not json", encoding="utf-8")

        assert asyncio.run(store.load(source)) is None

    def test_load_non_object_returns_none(self, store: ConfigStore, tmp_path: Path) -> None:
        source = _book(tmp_path)
        store.derive_path(source).write_text("[1, 2, 3]", encoding="utf-8")

        assert asyncio.run(store.load(source)) is None

    def test_load_legacy_keys(self, store: ConfigStore, tmp_path: Path) -> None:
        source = _book(tmp_path)
        store.derive_path(source).write_text(
            json.dumps(
                {
                    "filePath": str(source),
                    "fileName": "novel.txt",
                    "progress": 7,
                    "totalLines": 9,
                    "lastReadTime": "2023-01-02T03:04:05.000Z",
                }
            ),
            encoding="utf-8",
        )

        loaded = asyncio.run(store.load(source))

        assert loaded is not None
        assert loaded.source_path == source
        assert loaded.display_name == "novel.txt"
        assert loaded.progress == 7

    def test_save_failure_reports_and_returns_false(
        self, store: ConfigStore, notifier: CollectingNotifier, tmp_path: Path
    ) -> None:
        source = tmp_path / "missing_dir" / "novel.txt"
        config = DocumentConfig.default_for(source)

        assert asyncio.run(store.save(config)) is False
        assert [notice.level for notice in notifier.notices] == ["error"]
        assert "Failed to save reading state" in notifier.notices[0].message


class TestUpdates:
    """Read-modify-write updates."""

    def test_update_progress_creates_default(self, store: ConfigStore, tmp_path: Path) -> None:
        source = _book(tmp_path)

        assert asyncio.run(store.update_progress(source, 5, 50)) is True
        loaded = asyncio.run(store.load(source))

        assert loaded.progress == 5
        assert loaded.total_lines == 50
        assert loaded.display_name == "novel.txt"
        assert loaded.last_read_time.endswith("Z")

    def test_update_progress_keeps_other_fields(self, store: ConfigStore, tmp_path: Path) -> None:
        source = _book(tmp_path)
        config = DocumentConfig.default_for(source)
        config.chapter_pattern = "^CH"
        config.bookmarks = [1]
        config.last_read_time = "2000-01-01T00:00:00.000Z"
        asyncio.run(store.save(config))

        asyncio.run(store.update_progress(source, 9, 20))
        loaded = asyncio.run(store.load(source))

        assert loaded.chapter_pattern == "^CH"
        assert loaded.bookmarks == [1]
        assert loaded.last_read_time != "2000-01-01T00:00:00.000Z"

    def test_update_chapter_pattern_creates_default(self, store: ConfigStore, tmp_path: Path) -> None:
        source = _book(tmp_path)

        asyncio.run(store.update_chapter_pattern(source, "^Part"))
        loaded = asyncio.run(store.load(source))

        assert loaded.chapter_pattern == "^Part"
        assert loaded.progress == 0
        assert loaded.total_lines == 0

    def test_update_chapter_pattern_uses_known_line_count(
        self, store: ConfigStore, tmp_path: Path
    ) -> None:
        source = _book(tmp_path)

        asyncio.run(store.update_chapter_pattern(source, "^Part", total_lines=12))

        assert asyncio.run(store.load(source)).total_lines == 12

    def test_update_chapter_pattern_keeps_progress(self, store: ConfigStore, tmp_path: Path) -> None:
        source = _book(tmp_path)
        asyncio.run(store.update_progress(source, 30, 60))

        asyncio.run(store.update_chapter_pattern(source, "^Part", total_lines=99))
        loaded = asyncio.run(store.load(source))

        assert loaded.progress == 30
        assert loaded.total_lines == 60

    def test_concurrent_updates_are_serialized(self, store: ConfigStore, tmp_path: Path) -> None:
        """A progress and a pattern update issued together both survive."""
        source = _book(tmp_path)

        async def run() -> None:
            await asyncio.gather(
                store.update_progress(source, 11, 40),
                store.update_chapter_pattern(source, "^Book"),
            )

        asyncio.run(run())
        loaded = asyncio.run(store.load(source))

        assert loaded.progress == 11
        assert loaded.chapter_pattern == "^Book"

    def test_update_locks_released_after_use(self, store: ConfigStore, tmp_path: Path) -> None:
        """Per-path locks do not accumulate once their updates finish."""
        sources = [_book(tmp_path, f"book{index}.txt") for index in range(3)]

        async def run() -> int:
            await asyncio.gather(
                *(store.update_progress(source, 1, 2) for source in sources),
                store.update_chapter_pattern(sources[0], "^Book"),
            )
            return len(store._locks)

        assert asyncio.run(run()) == 0


class TestListDirectory:
    """Library enumeration."""

    def test_suffix_match_is_case_sensitive(self, store: ConfigStore, tmp_path: Path) -> None:
        for name in ("a.txt", "b.md", "c.TXT"):
            (tmp_path / name).write_text("x", encoding="utf-8")

        books = asyncio.run(store.list_directory(tmp_path))

        assert [book.display_name for book in books] == ["a.txt"]

    def test_sorted_by_last_read_descending(self, store: ConfigStore, tmp_path: Path) -> None:
        old = _book(tmp_path, "old.txt")
        new = _book(tmp_path, "new.txt")
        fresh = _book(tmp_path, "fresh.txt")
        os.utime(fresh, (1_000_000_000, 1_000_000_000))
        for path, stamp in ((old, "2020-01-01T00:00:00.000Z"), (new, "2024-01-01T00:00:00.000Z")):
            config = DocumentConfig.default_for(path)
            config.last_read_time = stamp
            asyncio.run(store.save(config))

        books = asyncio.run(store.list_directory(tmp_path))

        assert [book.display_name for book in books] == ["new.txt", "old.txt", "fresh.txt"]

    def test_synthesizes_default_from_mtime(self, store: ConfigStore, tmp_path: Path) -> None:
        path = _book(tmp_path)
        os.utime(path, (1_700_000_000, 1_700_000_000))

        books = asyncio.run(store.list_directory(tmp_path))

        assert len(books) == 1
        assert books[0].progress == 0
        assert books[0].last_read_time == "2023-11-14T22:13:20.000Z"
        assert not store.derive_path(path).exists()

    def test_ignores_directories_and_sidecars(self, store: ConfigStore, tmp_path: Path) -> None:
        (tmp_path / "folder.txt").mkdir()
        source = _book(tmp_path)
        asyncio.run(store.update_progress(source, 1, 2))

        books = asyncio.run(store.list_directory(tmp_path))

        assert [book.source_path for book in books] == [source]

    def test_missing_directory_returns_empty(self, store: ConfigStore, tmp_path: Path) -> None:
        assert asyncio.run(store.list_directory(tmp_path / "nope")) == []

    def test_file_instead_of_directory_returns_empty(self, store: ConfigStore, tmp_path: Path) -> None:
        path = _book(tmp_path)
        assert asyncio.run(store.list_directory(path)) == []
