"""Streaming SHA-256 of movie files."""
from __future__ import annotations

import hashlib
import time
from typing import Callable, Optional

DEFAULT_CHUNK = 1024 * 1024


def compute_sha256(
    file_path: str,
    chunk: int = DEFAULT_CHUNK,
    *,
    on_chunk: Optional[Callable[[int, float], None]] = None,
) -> str:
    h = hashlib.sha256()
    with open(file_path, "rb") as f:
        while True:
            start = time.perf_counter()
            b = f.read(max(1, int(chunk)))
            elapsed = time.perf_counter() - start
            if not b:
                break
            h.update(b)
            if on_chunk is not None:
                on_chunk(len(b), elapsed)
    return h.hexdigest()


__all__ = ["DEFAULT_CHUNK", "compute_sha256"]
