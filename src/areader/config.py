"""Application configuration defaults."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

DEFAULT_CHAPTER_PATTERN = r"^第[0-9一二三四五六七八九十百千]+[章节]\s+.+$"


@dataclass(slots=True)
class AppConfig:
    default_chapter_pattern: str = DEFAULT_CHAPTER_PATTERN
    scroll_step: int = 3
    library_dir: Path | None = None
    progress_save_delay: float = 2.0
    document_suffix: str = ".txt"
    sidecar_suffix: str = ".json"
    legacy_encoding: str = "gbk"
    font_size: int = 16
    line_height: float = 1.8

    def __post_init__(self) -> None:
        if self.scroll_step < 1:
            self.scroll_step = 1
        if self.library_dir is not None:
            self.library_dir = Path(self.library_dir)

    def resolve_library_dir(self, base_dir: Path | None = None) -> Path | None:
        if self.library_dir is None:
            return None
        library = Path(self.library_dir).expanduser()
        if library.is_absolute() or base_dir is None:
            return library
        return base_dir / library
