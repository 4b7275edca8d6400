"""Navigable, searchable, chapter-indexed view over one document."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Sequence

from areader.config import AppConfig
from areader.models import Chapter, DocumentConfig, SearchResult
from areader.notify import Notifier
from areader.reader.chapters import (
    ChapterPatternError,
    compile_chapter_pattern,
    resolve_chapter_pattern,
    scan_chapters,
)
from areader.reader.decoding import read_document
from areader.reader.progress import ProgressTracker, Scheduler
from areader.reader.search import search_lines
from areader.store.sidecar import ConfigStore
from areader.utils.text import split_lines

LOGGER = logging.getLogger(__name__)


class DocumentOpenError(OSError):
    """Raised when the source document cannot be read."""


class DocumentSession:
    """State of one open document.

    Sessions are created with :meth:`open` and must be closed with
    :meth:`close`, which flushes the reading position to the sidecar.
    """

    def __init__(
        self,
        source_path: Path,
        lines: Sequence[str],
        *,
        store: ConfigStore,
        config: AppConfig,
        notifier: Notifier | None = None,
        document_config: DocumentConfig | None = None,
        scheduler: Scheduler | None = None,
        encoding: str = "utf-8",
    ) -> None:
        self.source_path = Path(source_path)
        self.lines: tuple[str, ...] = tuple(lines) or ("",)
        self.store = store
        self.config = config
        self.notifier = notifier or store.notifier
        self.document_config = document_config
        self.encoding = encoding
        self.current_line = document_config.progress if document_config else 0
        self.chapters: List[Chapter] = []
        self.closed = False
        self._tracker = ProgressTracker(
            self._write_progress,
            delay=config.progress_save_delay,
            scheduler=scheduler,
        )

    @classmethod
    async def open(
        cls,
        path: Path,
        *,
        store: ConfigStore,
        config: AppConfig,
        notifier: Notifier | None = None,
        scheduler: Scheduler | None = None,
    ) -> "DocumentSession":
        source_path = Path(path).expanduser().absolute()
        try:
            decoded = await asyncio.to_thread(read_document, source_path, config.legacy_encoding)
        except OSError as exc:
            raise DocumentOpenError(f"Unable to read document {source_path}: {exc}") from exc
        document_config = await store.load(source_path)
        session = cls(
            source_path,
            split_lines(decoded.text),
            store=store,
            config=config,
            notifier=notifier,
            document_config=document_config,
            scheduler=scheduler,
            encoding=decoded.encoding,
        )
        session.rescan_chapters()
        LOGGER.info(
            "Opened %s (%d lines, %s, %d chapters, resume at %d)",
            source_path,
            session.total_lines,
            decoded.encoding,
            len(session.chapters),
            session.current_line,
        )
        return session

    @property
    def total_lines(self) -> int:
        return len(self.lines)

    @property
    def title(self) -> str:
        return self.source_path.name

    @property
    def chapter_pattern(self) -> str:
        override = self.document_config.chapter_pattern if self.document_config else None
        return resolve_chapter_pattern(override, self.config.default_chapter_pattern)

    @property
    def progress_pending(self) -> bool:
        return self._tracker.pending

    def rescan_chapters(self) -> List[Chapter]:
        """Rebuild the chapter index from scratch with the active pattern."""
        self.chapters = []
        try:
            pattern = compile_chapter_pattern(self.chapter_pattern)
        except ChapterPatternError as exc:
            LOGGER.warning("Chapter scan skipped for %s: %s", self.source_path, exc)
            self.notifier.error(f"Invalid chapter pattern: {exc}")
            return self.chapters
        self.chapters = scan_chapters(self.lines, pattern)
        return self.chapters

    async def reconfigure_chapter_pattern(self, pattern: str) -> bool:
        saved = await self.store.update_chapter_pattern(
            self.source_path, pattern, total_lines=self.total_lines
        )
        if self.document_config is None:
            self.document_config = DocumentConfig.default_for(
                self.source_path, total_lines=self.total_lines
            )
        self.document_config.chapter_pattern = pattern
        self.rescan_chapters()
        self.notifier.info(f"Detected {len(self.chapters)} chapters")
        return saved

    def request_chapters(self) -> List[Chapter]:
        if not self.chapters:
            self.notifier.info("No chapters detected, configure a chapter pattern")
        return self.chapters

    def _clamp(self, line: int) -> int:
        return min(max(0, line), self.total_lines - 1)

    def scroll_up(self) -> int:
        self.current_line = self._clamp(self.current_line - self.config.scroll_step)
        return self.current_line

    def scroll_down(self) -> int:
        self.current_line = self._clamp(self.current_line + self.config.scroll_step)
        return self.current_line

    def jump_to_line(self, line: int) -> bool:
        if 0 <= line < self.total_lines:
            self.current_line = line
            return True
        LOGGER.debug("Ignoring jump to line %s of %s", line, self.total_lines)
        return False

    def search(self, term: str) -> List[SearchResult]:
        results = search_lines(self.lines, term)
        if results:
            self.notifier.info(f"Found {len(results)} matches")
        else:
            self.notifier.info(f'No matches for "{term}"')
        return results

    def report_progress(self, line: int) -> int:
        """Move the cursor to ``line``, saturated to the document, and schedule a save."""
        self.current_line = self._clamp(line)
        self._tracker.schedule(self.current_line)
        return self.current_line

    async def close(self) -> bool:
        """Cancel the pending write and flush the current position once."""
        if self.closed:
            return True
        self.closed = True
        saved = await self._tracker.flush_now(self.current_line)
        LOGGER.info("Closed %s at line %d", self.source_path, self.current_line)
        return bool(saved)

    async def _write_progress(self, line: int) -> bool:
        return await self.store.update_progress(self.source_path, line, self.total_lines)

    def initial_payload(self) -> Dict[str, Any]:
        return {
            "command": "initContent",
            "title": self.title,
            "allLines": list(self.lines),
            "currentLine": self.current_line,
            "totalLines": self.total_lines,
            "chapters": [chapter.as_payload() for chapter in self.chapters],
        }

    def scroll_payload(self) -> Dict[str, Any]:
        return {"command": "updateScroll", "currentLine": self.current_line}

    def chapters_payload(self) -> Dict[str, Any]:
        return {
            "command": "updateChapters",
            "chapters": [chapter.as_payload() for chapter in self.chapters],
        }

    @staticmethod
    def search_payload(term: str, results: Sequence[SearchResult]) -> Dict[str, Any]:
        return {
            "command": "searchResults",
            "searchTerm": term,
            "results": [result.as_payload() for result in results],
            "count": len(results),
        }
