"""Helpers for cooperative cancellation and stable path keys during scans."""

from __future__ import annotations

import os
import threading
import unicodedata
from pathlib import Path
from typing import Iterator, Sequence


class CancellationToken:
    def __init__(self) -> None:
        self._evt = threading.Event()

    def set(self) -> None:
        self._evt.set()

    def is_set(self) -> bool:
        return self._evt.is_set()

    def wait(self, timeout: float) -> bool:
        return self._evt.wait(timeout)


def normalize_path(path: str) -> str:
    return unicodedata.normalize("NFC", path)


def absolute_key(path: str | os.PathLike[str]) -> str:
    """Return the absolute, NFC-normalised form used as a file's identity."""

    return normalize_path(os.path.abspath(os.fspath(path)))


def iter_files_with_suffix(root: Path, suffixes: Sequence[str]) -> Iterator[Path]:
    """Yield files below *root* whose extension matches *suffixes* case-insensitively.

    Directories that cannot be listed are skipped.
    """

    wanted = {"." + str(suffix).lower().lstrip(".") for suffix in suffixes}
    for dirpath, dirnames, filenames in os.walk(root, onerror=None):
        dirnames.sort()
        for filename in sorted(filenames):
            if os.path.splitext(filename)[1].lower() in wanted:
                yield Path(dirpath) / filename


__all__ = [
    "CancellationToken",
    "absolute_key",
    "iter_files_with_suffix",
    "normalize_path",
]
