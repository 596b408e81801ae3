"""Thread-safe counters and messages collected during one import run."""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

LOGGER = logging.getLogger("movieimport.reporter")

ProgressCallback = Callable[[Dict[str, object]], None]

COUNTERS: Tuple[str, ...] = (
    "total",
    "processed",
    "imported",
    "skipped",
    "already_present",
    "failed",
    "downloads",
    "checksums",
    "updates_applied",
    "updates_failed",
)


@dataclass(frozen=True, slots=True)
class ImportSummary:
    total: int = 0
    processed: int = 0
    imported: int = 0
    skipped: int = 0
    already_present: int = 0
    failed: int = 0
    downloads: int = 0
    checksums: int = 0
    updates_applied: int = 0
    updates_failed: int = 0
    elapsed_s: float = 0.0
    cancelled: bool = False
    warnings: Tuple[str, ...] = field(default_factory=tuple)
    errors: Tuple[str, ...] = field(default_factory=tuple)


class ImportReporter:
    """Progress context shared by the importer, the pool jobs and the writer."""

    def __init__(self, progress_callback: Optional[ProgressCallback] = None) -> None:
        self.progress_callback = progress_callback
        self._lock = threading.Lock()
        self._counts: Dict[str, int] = {name: 0 for name in COUNTERS}
        self._warnings: List[str] = []
        self._errors: List[str] = []
        self._start = time.perf_counter()
        self._cancelled = False

    def increment(self, name: str, amount: int = 1) -> int:
        if name not in self._counts:
            raise KeyError(name)
        with self._lock:
            self._counts[name] += amount
            return self._counts[name]

    def set_total(self, total: int) -> None:
        with self._lock:
            self._counts["total"] = max(0, int(total))

    def count(self, name: str) -> int:
        with self._lock:
            return self._counts[name]

    def warning(self, message: str) -> None:
        with self._lock:
            self._warnings.append(message)

    def error(self, message: str) -> None:
        with self._lock:
            self._errors.append(message)

    def mark_cancelled(self) -> None:
        with self._lock:
            self._cancelled = True

    def summary(self) -> ImportSummary:
        with self._lock:
            return ImportSummary(
                **self._counts,
                elapsed_s=time.perf_counter() - self._start,
                cancelled=self._cancelled,
                warnings=tuple(self._warnings),
                errors=tuple(self._errors),
            )

    def emit(self, **payload: object) -> None:
        if self.progress_callback is None:
            return
        with self._lock:
            data: Dict[str, object] = {"type": "movie_import", **self._counts}
        data.update(payload)
        try:
            self.progress_callback(data)
        except Exception:
            LOGGER.debug("Progress callback failed", exc_info=True)


__all__ = ["COUNTERS", "ImportReporter", "ImportSummary", "ProgressCallback"]
