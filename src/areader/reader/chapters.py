"""Chapter detection over document lines."""

from __future__ import annotations

import re
from typing import List, Sequence

from areader.models import Chapter


class ChapterPatternError(ValueError):
    """Raised when a chapter pattern is not a valid regular expression."""

    def __init__(self, pattern: str, reason: str) -> None:
        super().__init__(f"{reason} (pattern: {pattern!r})")
        self.pattern = pattern
        self.reason = reason


def resolve_chapter_pattern(override: str | None, default: str) -> str:
    """Per-document override wins when set and non-empty."""
    if override:
        return override
    return default


def compile_chapter_pattern(pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ChapterPatternError(pattern, str(exc)) from exc


def scan_chapters(lines: Sequence[str], pattern: re.Pattern[str]) -> List[Chapter]:
    """Return every line whose trimmed text matches ``pattern``, in document order.

    The pattern is searched, not anchored: only anchors written into the
    pattern itself constrain the match.
    """
    chapters: List[Chapter] = []
    for index, raw in enumerate(lines):
        text = raw.strip()
        if pattern.search(text):
            chapters.append(Chapter(name=text, line=index))
    return chapters
