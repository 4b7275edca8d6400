"""Literal substring search over document lines."""

from __future__ import annotations

from typing import List, Sequence

from areader.models import SearchResult


def search_lines(lines: Sequence[str], term: str) -> List[SearchResult]:
    """Case-sensitive, non-regex containment test against each raw line."""
    return [
        SearchResult(line=index, content=line.strip())
        for index, line in enumerate(lines)
        if term in line
    ]
