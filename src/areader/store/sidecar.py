"""Sidecar JSON persistence for per-document reading state."""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator, Dict, List

from areader.models import DocumentConfig
from areader.notify import Notifier
from areader.utils.files import iter_document_paths
from areader.utils.text import parse_timestamp

LOGGER = logging.getLogger(__name__)

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(slots=True)
class _PathLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class ConfigStore:
    """Maps source documents to the sidecar file holding their reading state.

    Every document gets one JSON file next to it sharing its base name. Reads
    fail soft (a broken or missing sidecar is treated as absent); writes report
    failures through the notifier and are never retried.
    """

    def __init__(
        self,
        *,
        notifier: Notifier | None = None,
        document_suffix: str = ".txt",
        sidecar_suffix: str = ".json",
    ) -> None:
        self.notifier = notifier or Notifier()
        self.document_suffix = document_suffix
        self.sidecar_suffix = sidecar_suffix
        self._locks: Dict[Path, _PathLock] = {}
        self._locks_loop: asyncio.AbstractEventLoop | None = None

    def derive_path(self, source_path: Path) -> Path:
        source = Path(source_path)
        if source.suffix == self.sidecar_suffix:
            return source.with_name(source.name + self.sidecar_suffix)
        return source.with_suffix(self.sidecar_suffix)

    @asynccontextmanager
    async def _locked(self, source_path: Path) -> AsyncIterator[None]:
        """Serialize updates to one sidecar; the entry is dropped once unused."""
        loop = asyncio.get_running_loop()
        if loop is not self._locks_loop:
            self._locks = {}
            self._locks_loop = loop
        key = Path(source_path)
        entry = self._locks.get(key)
        if entry is None:
            entry = self._locks[key] = _PathLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0 and self._locks.get(key) is entry:
                del self._locks[key]

    async def load(self, source_path: Path) -> DocumentConfig | None:
        sidecar = self.derive_path(source_path)
        try:
            raw = await asyncio.to_thread(sidecar.read_text, encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            LOGGER.warning("Unable to read sidecar %s: %s", sidecar, exc)
            return None
        try:
            return DocumentConfig.from_payload(json.loads(raw))
        except ValueError as exc:
            LOGGER.warning("Ignoring malformed sidecar %s: %s", sidecar, exc)
            return None

    async def save(self, config: DocumentConfig) -> bool:
        sidecar = self.derive_path(config.source_path)
        content = json.dumps(config.as_payload(), indent=2, ensure_ascii=False) + "\n"
        try:
            await asyncio.to_thread(sidecar.write_text, content, encoding="utf-8")
        except OSError as exc:
            LOGGER.exception("Failed to save sidecar %s", sidecar)
            self.notifier.error(f"Failed to save reading state: {exc}")
            return False
        LOGGER.debug("Saved sidecar %s", sidecar)
        return True

    async def update_progress(self, source_path: Path, progress: int, total_lines: int) -> bool:
        """Record the reading position; the only way progress is mutated."""
        async with self._locked(source_path):
            config = await self.load(source_path)
            if config is None:
                config = DocumentConfig.default_for(source_path, total_lines=total_lines)
            config.progress = progress
            config.total_lines = total_lines
            config.touch()
            return await self.save(config)

    async def update_chapter_pattern(
        self, source_path: Path, pattern: str, *, total_lines: int | None = None
    ) -> bool:
        """Store a per-document chapter pattern.

        ``total_lines`` is only used when no sidecar exists yet; without it
        the synthesized record keeps ``totalLines`` at 0 like older sidecars.
        """
        async with self._locked(source_path):
            config = await self.load(source_path)
            if config is None:
                config = DocumentConfig.default_for(source_path, total_lines=total_lines or 0)
            config.chapter_pattern = pattern
            return await self.save(config)

    async def list_directory(self, dir_path: Path) -> List[DocumentConfig]:
        """Return reading state for every document in ``dir_path``, most recent first."""
        directory = Path(dir_path)
        try:
            paths = await asyncio.to_thread(
                lambda: list(iter_document_paths(directory, self.document_suffix))
            )
        except OSError as exc:
            LOGGER.warning("Unable to list library directory %s: %s", directory, exc)
            return []

        books: List[DocumentConfig] = []
        for path in paths:
            config = await self.load(path)
            if config is None:
                try:
                    stat = await asyncio.to_thread(path.stat)
                except OSError as exc:
                    LOGGER.warning("Skipping %s: %s", path, exc)
                    continue
                modified = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
                config = DocumentConfig.default_for(path, last_read=modified)
            elif config.source_path != path:
                LOGGER.debug("Sidecar for %s points at %s", path, config.source_path)
                config.source_path = path
            books.append(config)

        books.sort(key=lambda book: parse_timestamp(book.last_read_time) or _OLDEST, reverse=True)
        return books
