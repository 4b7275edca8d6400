"""Single dispatch point between presentation collaborators and the core.

Collaborators send messages shaped like ``{"command": "scrollDown"}`` and get
back a structured payload to render. Handlers run one at a time, each to
completion, even when they await file I/O.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Mapping

from areader.config import AppConfig
from areader.models import format_last_read_time, progress_percentage
from areader.notify import CollectingNotifier
from areader.reader.progress import Scheduler
from areader.reader.session import DocumentSession
from areader.store.sidecar import ConfigStore

LOGGER = logging.getLogger(__name__)

Payload = Dict[str, Any]
Handler = Callable[[Mapping[str, Any]], Awaitable[Payload]]


class DispatchError(Exception):
    """Base class for messages the core cannot act on."""


class UnknownCommandError(DispatchError):
    pass


class NoDocumentOpenError(DispatchError):
    pass


class InvalidMessageError(DispatchError):
    pass


def _require_int(message: Mapping[str, Any], key: str) -> int:
    value = message.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidMessageError(f"'{key}' must be an integer")
    return value


def _require_str(message: Mapping[str, Any], key: str) -> str:
    value = message.get(key)
    if not isinstance(value, str):
        raise InvalidMessageError(f"'{key}' must be a string")
    return value


class ReaderService:
    """Owns the open session and routes collaborator messages to it."""

    def __init__(
        self,
        config: AppConfig,
        *,
        store: ConfigStore | None = None,
        notifier: CollectingNotifier | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self.config = config
        self.notifier = notifier or CollectingNotifier()
        self.store = store or ConfigStore(
            notifier=self.notifier,
            document_suffix=config.document_suffix,
            sidecar_suffix=config.sidecar_suffix,
        )
        self.scheduler = scheduler
        self.session: DocumentSession | None = None
        self._lock = asyncio.Lock()
        self._handlers: Dict[str, Handler] = {
            "openDocument": self._open_document,
            "requestInitialContent": self._initial_content,
            "scrollUp": self._scroll_up,
            "scrollDown": self._scroll_down,
            "jumpToLine": self._jump_to_line,
            "jumpToChapter": self._jump_to_line,
            "search": self._search,
            "requestChapters": self._request_chapters,
            "reportProgress": self._report_progress,
            "updateProgress": self._report_progress,
            "reconfigureChapterPattern": self._reconfigure_chapter_pattern,
            "closeDocument": self._close_document,
            "listLibrary": self._list_library,
        }

    @property
    def commands(self) -> list[str]:
        return sorted(self._handlers)

    async def dispatch(self, message: Mapping[str, Any]) -> Payload:
        command = message.get("command")
        handler = self._handlers.get(command) if isinstance(command, str) else None
        if handler is None:
            raise UnknownCommandError(f"Unknown command: {command!r}")
        async with self._lock:
            try:
                payload = await handler(message)
            finally:
                notices = self.notifier.drain()
        payload["messages"] = [notice.as_payload() for notice in notices]
        return payload

    async def shutdown(self) -> None:
        async with self._lock:
            await self._close_session()

    def _require_session(self) -> DocumentSession:
        if self.session is None:
            raise NoDocumentOpenError("No document is open")
        return self.session

    async def _close_session(self) -> bool:
        session, self.session = self.session, None
        if session is None:
            return False
        return await session.close()

    async def _open_document(self, message: Mapping[str, Any]) -> Payload:
        path = Path(_require_str(message, "path"))
        await self._close_session()
        self.session = await DocumentSession.open(
            path,
            store=self.store,
            config=self.config,
            notifier=self.notifier,
            scheduler=self.scheduler,
        )
        return self.session.initial_payload()

    async def _initial_content(self, message: Mapping[str, Any]) -> Payload:
        return self._require_session().initial_payload()

    async def _scroll_up(self, message: Mapping[str, Any]) -> Payload:
        session = self._require_session()
        session.scroll_up()
        return session.scroll_payload()

    async def _scroll_down(self, message: Mapping[str, Any]) -> Payload:
        session = self._require_session()
        session.scroll_down()
        return session.scroll_payload()

    async def _jump_to_line(self, message: Mapping[str, Any]) -> Payload:
        session = self._require_session()
        moved = session.jump_to_line(_require_int(message, "line"))
        payload = session.scroll_payload()
        payload["moved"] = moved
        return payload

    async def _search(self, message: Mapping[str, Any]) -> Payload:
        session = self._require_session()
        term = _require_str(message, "text")
        return session.search_payload(term, session.search(term))

    async def _request_chapters(self, message: Mapping[str, Any]) -> Payload:
        session = self._require_session()
        session.request_chapters()
        return session.chapters_payload()

    async def _report_progress(self, message: Mapping[str, Any]) -> Payload:
        session = self._require_session()
        session.report_progress(_require_int(message, "line"))
        return session.scroll_payload()

    async def _reconfigure_chapter_pattern(self, message: Mapping[str, Any]) -> Payload:
        pattern = _require_str(message, "pattern")
        raw_path = message.get("path")
        session = self.session
        if raw_path is None and session is not None:
            target = session.source_path
        elif isinstance(raw_path, str):
            target = Path(raw_path).expanduser().absolute()
        else:
            raise InvalidMessageError("'path' must be a string")

        if session is not None and session.source_path == target:
            saved = await session.reconfigure_chapter_pattern(pattern)
            payload = session.chapters_payload()
        else:
            saved = await self.store.update_chapter_pattern(target, pattern)
            if saved:
                self.notifier.info("Chapter pattern updated")
            payload = {"command": "patternUpdated", "path": str(target)}
        payload["saved"] = saved
        return payload

    async def _close_document(self, message: Mapping[str, Any]) -> Payload:
        saved = await self._close_session()
        return {"command": "closed", "saved": saved}

    async def _list_library(self, message: Mapping[str, Any]) -> Payload:
        raw_directory = message.get("directory")
        if raw_directory is not None and not isinstance(raw_directory, str):
            raise InvalidMessageError("'directory' must be a string")
        directory = Path(raw_directory) if raw_directory else self.config.resolve_library_dir()
        if directory is None:
            return {"command": "updateBooks", "books": [], "hasDirectory": False}
        books = await self.store.list_directory(directory)
        return {
            "command": "updateBooks",
            "books": [
                {
                    **book.as_payload(),
                    "percentage": progress_percentage(book),
                    "lastReadLabel": format_last_read_time(book.last_read_time),
                }
                for book in books
            ],
            "hasDirectory": True,
            "directory": str(directory),
        }
