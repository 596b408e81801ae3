"""Background job pool and the single database writer it feeds.

Pool workers never touch the database. Download and checksum jobs finish by
pushing an :class:`UpdateJob` onto the :class:`UpdateQueue`, whose one thread
applies them in FIFO order.
"""
from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

LOGGER = logging.getLogger("movieimport.workers")

Job = Callable[[], None]


class PoolClosedError(RuntimeError):
    """Raised when submitting to a pool that is shutting down."""


@dataclass(frozen=True, slots=True)
class UpdateJob:
    table: str
    row_id: int
    values: Mapping[str, Any] = field(default_factory=dict)


class BackgroundPool:
    """Fixed number of worker threads over a bounded job queue.

    When the queue is full the submitting thread runs the job itself, which
    throttles a fast producer to the pool's pace without dropping work.
    """

    def __init__(self, max_workers: int = 5, max_queue: int = 10, *, name: str = "bg-worker") -> None:
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=max(1, int(max_queue)))
        self._sentinel = object()
        self._threads: List[threading.Thread] = []
        self._lock = threading.Lock()
        self._closed = False
        self._stats = {"submitted": 0, "caller_ran": 0, "completed": 0, "failed": 0}
        for idx in range(max(1, int(max_workers))):
            thread = threading.Thread(target=self._worker, name=f"{name}-{idx+1}")
            thread.daemon = True
            thread.start()
            self._threads.append(thread)

    @property
    def stats(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._stats)

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def submit(self, job: Job) -> bool:
        """Queue *job*; run it inline when the queue is full.

        Returns True when the job was queued and False when it ran on the
        calling thread.
        """

        with self._lock:
            if self._closed:
                raise PoolClosedError("background pool is shut down")
            self._stats["submitted"] += 1
        try:
            self._queue.put_nowait(job)
            return True
        except queue.Full:
            pass
        with self._lock:
            self._stats["caller_ran"] += 1
        self._run(job)
        return False

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        """Reject new jobs, let queued ones finish and join the workers.

        Returns False if some worker was still busy when *timeout* expired.
        """

        with self._lock:
            if self._closed:
                return all(not thread.is_alive() for thread in self._threads)
            self._closed = True
        deadline = None if timeout is None else time.monotonic() + max(0.0, float(timeout))
        for _ in self._threads:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            try:
                self._queue.put(self._sentinel, timeout=remaining)
            except queue.Full:
                break
        for thread in self._threads:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            thread.join(remaining)
        alive = [thread.name for thread in self._threads if thread.is_alive()]
        if alive:
            LOGGER.warning("Background pool shutdown timed out; still running: %s", ", ".join(alive))
            return False
        return True

    def _worker(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is self._sentinel:
                    return
                self._run(item)  # type: ignore[arg-type]
            finally:
                self._queue.task_done()

    def _run(self, job: Job) -> None:
        try:
            job()
        except Exception:
            LOGGER.exception("Background job failed")
            with self._lock:
                self._stats["failed"] += 1
            return
        with self._lock:
            self._stats["completed"] += 1


class UpdateQueue:
    """Unbounded FIFO drained by exactly one writer thread.

    ``apply`` receives each :class:`UpdateJob` and returns True on success.
    A failing job is logged and counted; the writer keeps draining.
    """

    def __init__(
        self,
        apply: Callable[[UpdateJob], bool],
        *,
        on_stop: Optional[Callable[[], None]] = None,
        name: str = "db-writer",
    ) -> None:
        self._apply = apply
        self._on_stop = on_stop
        self._queue: "queue.Queue[object]" = queue.Queue()
        self._sentinel = object()
        self._lock = threading.Lock()
        self._closed = False
        self.applied = 0
        self.failed = 0
        self._thread = threading.Thread(target=self._writer, name=name)
        self._thread.daemon = True
        self._thread.start()

    def put(self, job: UpdateJob) -> None:
        with self._lock:
            if self._closed:
                LOGGER.warning("Update queue closed; dropping update for %s#%s", job.table, job.row_id)
                return
            self._queue.put(job)

    def close(self) -> None:
        """Signal the writer to exit once everything queued so far is applied."""

        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(self._sentinel)

    def join(self, timeout: Optional[float] = None) -> bool:
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def _writer(self) -> None:
        try:
            while True:
                item = self._queue.get()
                if item is self._sentinel:
                    return
                self._apply_one(item)  # type: ignore[arg-type]
        finally:
            if self._on_stop is not None:
                try:
                    self._on_stop()
                except Exception:
                    LOGGER.exception("Update writer cleanup failed")

    def _apply_one(self, job: UpdateJob) -> None:
        try:
            ok = bool(self._apply(job))
        except Exception:
            LOGGER.exception("Update failed for %s#%s", job.table, job.row_id)
            ok = False
        with self._lock:
            if ok:
                self.applied += 1
            else:
                self.failed += 1


__all__ = ["BackgroundPool", "PoolClosedError", "UpdateJob", "UpdateQueue"]
