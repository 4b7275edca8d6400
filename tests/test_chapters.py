"""Tests for chapter pattern handling and scanning."""

from __future__ import annotations

import pytest

from areader.config import DEFAULT_CHAPTER_PATTERN
from areader.models import Chapter
from areader.reader.chapters import (
    ChapterPatternError,
    compile_chapter_pattern,
    resolve_chapter_pattern,
    scan_chapters,
)


class TestResolveChapterPattern:
    def test_override_wins(self) -> None:
        assert resolve_chapter_pattern("^Part", DEFAULT_CHAPTER_PATTERN) == "^Part"

    def test_falls_back_to_default(self) -> None:
        assert resolve_chapter_pattern(None, DEFAULT_CHAPTER_PATTERN) == DEFAULT_CHAPTER_PATTERN

    def test_empty_override_uses_default(self) -> None:
        assert resolve_chapter_pattern("", "^X") == "^X"


class TestCompileChapterPattern:
    def test_valid_pattern(self) -> None:
        assert compile_chapter_pattern(r"^\d+").search("12 title")

    def test_invalid_pattern_raises(self) -> None:
        with pytest.raises(ChapterPatternError) as excinfo:
            compile_chapter_pattern("([unclosed")

        assert excinfo.value.pattern == "([unclosed"
        assert isinstance(excinfo.value, ValueError)


class TestScanChapters:
    """Forward scan over trimmed lines."""

    def test_default_pattern_on_chinese_headings(self) -> None:
        lines = ["第一章 标题", "正文", "第二章 标题2"]

        chapters = scan_chapters(lines, compile_chapter_pattern(DEFAULT_CHAPTER_PATTERN))

        assert chapters == [Chapter(name="第一章 标题", line=0), Chapter(name="第二章 标题2", line=2)]

    def test_lines_are_trimmed_before_matching(self) -> None:
        lines = ["  第十章 归来  \r", "text"]

        chapters = scan_chapters(lines, compile_chapter_pattern(DEFAULT_CHAPTER_PATTERN))

        assert chapters == [Chapter(name="第十章 归来", line=0)]

    def test_full_width_space_separates_heading(self) -> None:
        chapters = scan_chapters(["第3节　风起"], compile_chapter_pattern(DEFAULT_CHAPTER_PATTERN))

        assert [chapter.line for chapter in chapters] == [0]

    def test_heading_without_title_does_not_match(self) -> None:
        chapters = scan_chapters(["第一章"], compile_chapter_pattern(DEFAULT_CHAPTER_PATTERN))

        assert chapters == []

    def test_unanchored_pattern_matches_anywhere(self) -> None:
        lines = ["Prologue", "The Chapter begins", "chapter lower"]

        chapters = scan_chapters(lines, compile_chapter_pattern("Chapter"))

        assert [chapter.line for chapter in chapters] == [1]

    def test_ascending_order_and_bounds(self) -> None:
        lines = [f"CH {i}" if i % 3 == 0 else "body" for i in range(10)]

        chapters = scan_chapters(lines, compile_chapter_pattern("^CH"))

        indices = [chapter.line for chapter in chapters]
        assert indices == sorted(indices) == [0, 3, 6, 9]
        assert all(0 <= index < len(lines) for index in indices)
