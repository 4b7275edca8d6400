"""Core A-Reader data models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Mapping

from areader.utils.text import format_timestamp, parse_timestamp, utc_now


def _coerce_int(value: object, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return default


@dataclass(slots=True)
class DocumentConfig:
    """Persisted reading state for one source document."""

    source_path: Path
    display_name: str
    progress: int = 0
    total_lines: int = 0
    last_read_time: str = ""
    chapter_pattern: str | None = None
    bookmarks: list[int] | None = None

    @classmethod
    def default_for(
        cls,
        source_path: Path,
        *,
        total_lines: int = 0,
        last_read: datetime | None = None,
    ) -> "DocumentConfig":
        path = Path(source_path)
        return cls(
            source_path=path,
            display_name=path.name,
            progress=0,
            total_lines=total_lines,
            last_read_time=format_timestamp(last_read or utc_now()),
        )

    def touch(self) -> None:
        self.last_read_time = format_timestamp(utc_now())

    def as_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "sourcePath": str(self.source_path),
            "displayName": self.display_name,
            "progress": self.progress,
            "totalLines": self.total_lines,
            "lastReadTime": self.last_read_time,
        }
        if self.chapter_pattern is not None:
            payload["chapterPattern"] = self.chapter_pattern
        if self.bookmarks is not None:
            payload["bookmarks"] = list(self.bookmarks)
        return payload

    @classmethod
    def from_payload(cls, payload: object) -> "DocumentConfig":
        """Build a config from decoded JSON.

        Accepts the ``filePath``/``fileName`` keys written by older sidecar
        files. Raises ``ValueError`` when the payload is unusable.
        """
        if not isinstance(payload, Mapping):
            raise ValueError("Sidecar payload is not a JSON object")
        raw_path = payload.get("sourcePath", payload.get("filePath"))
        if not isinstance(raw_path, str) or not raw_path:
            raise ValueError("Sidecar payload has no source path")
        source_path = Path(raw_path)
        display_name = payload.get("displayName", payload.get("fileName"))
        if not isinstance(display_name, str):
            display_name = source_path.name
        last_read_time = payload.get("lastReadTime")
        if not isinstance(last_read_time, str):
            last_read_time = ""
        chapter_pattern = payload.get("chapterPattern")
        if not isinstance(chapter_pattern, str):
            chapter_pattern = None
        raw_bookmarks = payload.get("bookmarks")
        bookmarks: list[int] | None = None
        if isinstance(raw_bookmarks, list):
            bookmarks = [
                item for item in raw_bookmarks if isinstance(item, int) and not isinstance(item, bool)
            ]
        return cls(
            source_path=source_path,
            display_name=display_name,
            progress=max(_coerce_int(payload.get("progress")), 0),
            total_lines=max(_coerce_int(payload.get("totalLines")), 0),
            last_read_time=last_read_time,
            chapter_pattern=chapter_pattern,
            bookmarks=bookmarks,
        )


@dataclass(slots=True)
class Chapter:
    """Chapter heading detected in a document."""

    name: str
    line: int

    def as_payload(self) -> Dict[str, Any]:
        return {"name": self.name, "line": self.line}


@dataclass(slots=True)
class SearchResult:
    """Line matching a search term."""

    line: int
    content: str

    def as_payload(self) -> Dict[str, Any]:
        return {"line": self.line, "content": self.content}


def progress_percentage(config: DocumentConfig) -> int:
    """Return reading progress as a whole percentage."""
    if config.total_lines <= 0:
        return 0
    return int(round(config.progress / config.total_lines * 100))


def format_last_read_time(value: str, now: datetime | None = None) -> str:
    """Render a stored timestamp relative to ``now`` for library listings."""
    moment = parse_timestamp(value)
    if moment is None:
        return value
    current = now or utc_now()
    if current.tzinfo is None:
        current = current.replace(tzinfo=moment.tzinfo)
    elapsed = (current - moment).total_seconds()
    minutes = int(elapsed // 60)
    hours = int(elapsed // 3600)
    days = int(elapsed // 86400)
    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes} minute{'s' if minutes != 1 else ''} ago"
    if hours < 24:
        return f"{hours} hour{'s' if hours != 1 else ''} ago"
    if days < 7:
        return f"{days} day{'s' if days != 1 else ''} ago"
    return moment.astimezone().strftime("%Y-%m-%d")
