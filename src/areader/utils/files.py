"""Utility helpers for working with files."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator


def iter_document_paths(directory: Path, suffix: str) -> Iterator[Path]:
    """Yield regular files in ``directory`` whose name ends with ``suffix``.

    The match is case-sensitive and does not descend into subdirectories.
    Raises ``OSError`` when the directory itself cannot be listed.
    """
    for entry in sorted(directory.iterdir()):
        if not entry.name.endswith(suffix):
            continue
        if entry.is_file():
            yield entry
