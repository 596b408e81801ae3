"""Orchestration for importing a directory of movie files or series folders.

Files are handled one at a time on the calling thread so TMDb sees a steady
request rate. Once a movie and its file are stored, image downloads and the
checksum run on the background pool and report back through the single
writer queue.
"""
from __future__ import annotations

import functools
import logging
import os
import sqlite3
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from core.db import connect, transaction
from robust import CancellationToken, absolute_key, iter_files_with_suffix

from .checksum import compute_sha256
from .config import ImportConfig
from .errors import (
    KIND_NETWORK,
    KIND_NOT_FOUND,
    KIND_RATE_LIMITED,
    FilenameParseError,
    MovieImportError,
    NotFoundError,
    PersistenceError,
    RateLimitedError,
    ToolInvocationError,
    TransientNetworkError,
)
from .filename import ParsedName, ParsedSeries, parse_movie_filename, parse_series_dirname
from .mediainfo import ProbeResult, TechnicalInfo, mediainfo_available, run_mediainfo
from .reporter import ImportReporter, ImportSummary, ProgressCallback
from .store import CatalogStore
from .tmdb import FetchResult, TMDbClient, pick_best_image
from .workers import BackgroundPool, PoolClosedError, UpdateJob, UpdateQueue

LOGGER = logging.getLogger("movieimport.run")

Prober = Callable[[str], ProbeResult]
Chooser = Callable[[List[Dict[str, Any]], ParsedName], Optional[Dict[str, Any]]]

# (images block, column, file name under media/<table>/<id>/)
MOVIE_IMAGES = (
    ("posters", "poster_path", "poster.jpg"),
    ("backdrops", "backdrop_path", "backdrop.jpg"),
    ("logos", "logo_path", "logo.png"),
)
SERIES_IMAGES = (
    ("posters", "poster_path", "poster.jpg"),
    ("backdrops", "backdrop_path", "backdrop.jpg"),
)

OUTCOME_IMPORTED = "imported"
OUTCOME_SKIPPED = "skipped"
OUTCOME_FAILED = "failed"


def _release_year(candidate: Mapping[str, Any]) -> Optional[int]:
    value = str(candidate.get("release_date") or "")
    if len(value) >= 4 and value[:4].isdigit():
        return int(value[:4])
    return None


def default_chooser(candidates: List[Dict[str, Any]], parsed: ParsedName) -> Optional[Dict[str, Any]]:
    """Pick the first result released in the parsed year, else the first result."""

    for candidate in candidates:
        if _release_year(candidate) == parsed.year:
            return candidate
    return candidates[0] if candidates else None


def _fetch_error(result: FetchResult, what: str, path: str) -> MovieImportError:
    detail = result.error or result.reason or "unknown error"
    if result.reason == KIND_NOT_FOUND:
        return NotFoundError(f"{what}: not found", path=path)
    if result.reason == KIND_NETWORK:
        return TransientNetworkError(f"{what}: {detail}", path=path)
    if result.reason == KIND_RATE_LIMITED:
        return RateLimitedError(f"{what}: {detail}", path=path)
    return MovieImportError(f"{what}: {detail}", path=path)


class MovieImporter:
    def __init__(
        self,
        config: ImportConfig,
        *,
        client: Optional[TMDbClient] = None,
        prober: Optional[Prober] = None,
        chooser: Optional[Chooser] = None,
        reporter: Optional[ImportReporter] = None,
        progress_callback: Optional[ProgressCallback] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> None:
        self.config = config
        self.cancellation = cancellation or CancellationToken()
        self.reporter = reporter or ImportReporter(progress_callback)
        self.chooser = chooser or default_chooser
        if prober is None:
            if not mediainfo_available(config.mediainfo_binary):
                LOGGER.warning("%s not found; technical data will be skipped", config.mediainfo_binary)
            prober = functools.partial(
                run_mediainfo,
                binary=config.mediainfo_binary,
                timeout=config.mediainfo_timeout_s,
            )
        self.prober = prober
        self._owns_client = client is None
        self.client = client or TMDbClient(
            config.tmdb, media_dir=config.media_dir, cancellation=self.cancellation
        )

        self.conn = connect(config.db_path)
        self.store = CatalogStore(self.conn)
        self._writer_conn = connect(config.db_path)
        self._writer_store = CatalogStore(self._writer_conn)
        self.updates = UpdateQueue(self._apply_update, on_stop=self._writer_conn.close)
        self.pool = BackgroundPool(config.max_bg_threads, config.max_queue)

        self._shutdown_lock = threading.Lock()
        self._closed = False

    def __enter__(self) -> "MovieImporter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    # ------------------------------------------------------------------
    def request_stop(self) -> None:
        self.cancellation.set()

    def scan(self, root: Path) -> List[str]:
        """Absolute keys of every candidate movie file below *root*."""

        return [absolute_key(path) for path in iter_files_with_suffix(Path(root), self.config.extensions)]

    def import_from_directory(self, root: Path) -> ImportSummary:
        root = Path(root)
        if not root.is_dir():
            raise NotADirectoryError(f"Not a directory: {root}")
        existing = self.store.existing_file_paths()
        candidates = self.scan(root)
        work = [path for path in candidates if path not in existing]
        self.reporter.increment("already_present", len(candidates) - len(work))
        self.reporter.set_total(len(work))
        LOGGER.info(
            "Found %d movie files under %s (%d new, %d already imported)",
            len(candidates),
            root,
            len(work),
            len(candidates) - len(work),
        )
        self.reporter.emit(root=str(root))

        pause = self.config.file_pause_s
        for index, path in enumerate(work, start=1):
            if self.cancellation.is_set():
                LOGGER.info("Import cancelled after %d of %d files", index - 1, len(work))
                self.reporter.mark_cancelled()
                break
            outcome = self.process_file(path)
            self.reporter.emit(path=path, outcome=outcome, index=index)
            if pause and index < len(work):
                self.cancellation.wait(pause)
        self.reporter.emit(done=True)
        return self.reporter.summary()

    def import_series_from_directory(self, root: Path) -> ImportSummary:
        """Import every series folder directly below *root*, one per TMDb series."""

        root = Path(root)
        if not root.is_dir():
            raise NotADirectoryError(f"Not a directory: {root}")
        folders = self.scan_series(root)
        self.reporter.set_total(len(folders))
        LOGGER.info("Found %d series folders under %s", len(folders), root)
        self.reporter.emit(root=str(root))

        pause = self.config.file_pause_s
        for index, path in enumerate(folders, start=1):
            if self.cancellation.is_set():
                LOGGER.info("Import cancelled after %d of %d series", index - 1, len(folders))
                self.reporter.mark_cancelled()
                break
            outcome = self.process_series_dir(path)
            self.reporter.emit(path=path, outcome=outcome, index=index)
            if pause and index < len(folders):
                self.cancellation.wait(pause)
        self.reporter.emit(done=True)
        return self.reporter.summary()

    def scan_series(self, root: Path) -> List[str]:
        entries = sorted(Path(root).iterdir(), key=lambda entry: entry.name)
        return [absolute_key(entry) for entry in entries if entry.is_dir() and not entry.name.startswith(".")]

    def process_file(self, path: str) -> str:
        """Import one file; never raises for per-file failures."""

        key = absolute_key(path)
        return self._guarded(key, self._import_file)

    def process_series_dir(self, path: str) -> str:
        """Import one series folder; never raises for per-folder failures."""

        key = absolute_key(path)
        return self._guarded(key, self._import_series)

    def _guarded(self, key: str, work: Callable[[str], None]) -> str:
        name = os.path.basename(key)
        try:
            work(key)
        except (FilenameParseError, NotFoundError) as exc:
            LOGGER.error("Skipping %s: %s", name, exc)
            self.reporter.increment("skipped")
            self.reporter.error(f"{name}: {exc}")
            outcome = OUTCOME_SKIPPED
        except MovieImportError as exc:
            LOGGER.error("Failed to import %s [%s]: %s", name, exc.kind, exc)
            self.reporter.increment("failed")
            self.reporter.error(f"{name}: {exc}")
            outcome = OUTCOME_FAILED
        except Exception as exc:
            LOGGER.exception("Unexpected error importing %s", name)
            self.reporter.increment("failed")
            self.reporter.error(f"{name}: {type(exc).__name__}: {exc}")
            outcome = OUTCOME_FAILED
        else:
            self.reporter.increment("imported")
            outcome = OUTCOME_IMPORTED
        self.reporter.increment("processed")
        return outcome

    def shutdown(self) -> ImportSummary:
        """Drain background work and release resources; later calls do nothing."""

        with self._shutdown_lock:
            if self._closed:
                return self.reporter.summary()
            self._closed = True
        timeout = self.config.shutdown_timeout_s
        LOGGER.info("Waiting up to %.0fs for background jobs", timeout)
        if not self.pool.shutdown(timeout=timeout):
            self.reporter.warning("Background jobs still running at shutdown")
        self.updates.close()
        if not self.updates.join(timeout=timeout):
            LOGGER.warning("Update writer did not finish within %.0fs", timeout)
            self.reporter.warning("Pending database updates were not applied")
        if self._owns_client:
            self.client.close()
        self.conn.close()
        summary = self.reporter.summary()
        LOGGER.info(
            "Import finished: %d imported, %d skipped, %d failed, %d already present",
            summary.imported,
            summary.skipped,
            summary.failed,
            summary.already_present,
        )
        return summary

    # ------------------------------------------------------------------
    def _import_file(self, key: str) -> None:
        name = os.path.basename(key)
        parsed = parse_movie_filename(name)
        if parsed is None:
            raise FilenameParseError(f"unrecognised file name {name!r}", path=key)

        tmdb_id = parsed.tmdb_id
        if tmdb_id is None:
            tmdb_id = self._resolve_tmdb_id(parsed, key)
        details_result = self.client.fetch_details(tmdb_id)
        if not details_result.ok:
            raise _fetch_error(details_result, f"details for TMDb #{tmdb_id}", key)
        details: Dict[str, Any] = details_result.data

        try:
            with transaction(self.conn):
                movie_id = self.store.upsert_movie(details)
                associations = self.store.import_associations(
                    movie_id, details, cast_limit=self.config.cast_limit
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"storing TMDb #{tmdb_id} failed: {exc}", path=key) from exc
        LOGGER.info("Stored %s as movie #%s (TMDb #%s)", name, movie_id, tmdb_id)

        try:
            technical: Optional[TechnicalInfo] = self._technical_info(key)
        except ToolInvocationError as exc:
            LOGGER.warning("No technical data for %s: %s", name, exc)
            self.reporter.warning(f"{name}: technical data unavailable ({exc.reason})")
            technical = None

        try:
            with transaction(self.conn):
                file_id = self.store.insert_movie_file(movie_id, key, technical)
        except sqlite3.Error as exc:
            raise PersistenceError(f"storing file row failed: {exc}", path=key) from exc

        self._enqueue_images("movies", movie_id, details, MOVIE_IMAGES)
        self._enqueue_headshots(associations.profiles)
        if file_id is not None:
            self._submit(self._checksum_job(file_id, key))

    def _technical_info(self, key: str) -> TechnicalInfo:
        result = self.prober(key)
        if not result.ok or result.data is None:
            raise ToolInvocationError(
                result.error or "mediainfo returned no data",
                path=key,
                reason=result.reason or "error",
            )
        return result.data

    def _import_series(self, key: str) -> None:
        name = os.path.basename(key)
        parsed = parse_series_dirname(name)
        if parsed is None:
            raise FilenameParseError(f"unrecognised series folder {name!r}", path=key)

        tmdb_id = parsed.tmdb_id
        if tmdb_id is None:
            tmdb_id = self._resolve_series_id(parsed, key)
        details_result = self.client.fetch_series_details(tmdb_id)
        if not details_result.ok:
            raise _fetch_error(details_result, f"series details for TMDb #{tmdb_id}", key)
        details: Dict[str, Any] = details_result.data

        try:
            with transaction(self.conn):
                series_id = self.store.upsert_series(details)
                associations = self.store.import_series_associations(
                    series_id, details, cast_limit=self.config.cast_limit
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"storing series TMDb #{tmdb_id} failed: {exc}", path=key) from exc
        LOGGER.info("Stored %s as series #%s (TMDb #%s)", name, series_id, tmdb_id)

        self._enqueue_images("series", series_id, details, SERIES_IMAGES)
        self._enqueue_headshots(associations.profiles)

    def _resolve_series_id(self, parsed: ParsedSeries, key: str) -> int:
        result = self.client.search_series(parsed.name, parsed.year)
        if not result.ok:
            raise _fetch_error(result, f"series search for {parsed.name}", key)
        if not result.data or result.data[0].get("id") is None:
            raise NotFoundError(f"no TMDb series results for {parsed.name}", path=key)
        return int(result.data[0]["id"])

    def _resolve_tmdb_id(self, parsed: ParsedName, key: str) -> int:
        label = f"{parsed.title} ({parsed.year})"
        result = self.client.search(parsed.title, parsed.year)
        if not result.ok:
            raise _fetch_error(result, f"search for {label}", key)
        if not result.data:
            raise NotFoundError(f"no TMDb results for {label}", path=key)
        choice = self.chooser(result.data, parsed)
        if choice is None or choice.get("id") is None:
            raise NotFoundError(f"no candidate selected for {label}", path=key)
        return int(choice["id"])

    def _enqueue_images(
        self, table: str, row_id: int, details: Mapping[str, Any], blocks: Sequence[Tuple[str, str, str]]
    ) -> None:
        images = details.get("images") if isinstance(details.get("images"), Mapping) else {}
        language = details.get("original_language")
        for block, column, filename in blocks:
            best = pick_best_image(images.get(block), language)
            api_path = best.get("file_path") if best else details.get(column)
            if not api_path:
                continue
            self._submit(self._download_job(table, row_id, column, api_path, f"{table}/{row_id}/{filename}"))

    def _enqueue_headshots(self, profiles: Mapping[int, str]) -> None:
        if not self.config.download_headshots:
            return
        for person_id, profile_path in profiles.items():
            self._submit(
                self._download_job("people", person_id, "headshot_path", profile_path, f"people/{person_id}.jpg")
            )

    def _download_job(self, table: str, row_id: int, column: str, api_path: str, relative: str) -> Callable[[], None]:
        def job() -> None:
            saved = self.client.fetch_image(api_path, relative)
            if saved is None:
                self.reporter.warning(f"image {api_path} for {table}#{row_id} not downloaded")
                return
            self.reporter.increment("downloads")
            self.updates.put(UpdateJob(table, row_id, {column: os.path.basename(saved)}))

        return job

    def _checksum_job(self, file_id: int, path: str) -> Callable[[], None]:
        def job() -> None:
            try:
                digest = compute_sha256(path, self.config.checksum_chunk_bytes)
            except OSError as exc:
                LOGGER.warning("Checksum failed for %s: %s", path, exc)
                self.reporter.warning(f"checksum failed for {os.path.basename(path)}: {exc}")
                return
            self.reporter.increment("checksums")
            self.updates.put(UpdateJob("movie_files", file_id, {"checksum_sha256": digest}))

        return job

    def _submit(self, job: Callable[[], None]) -> None:
        try:
            self.pool.submit(job)
        except PoolClosedError:
            LOGGER.warning("Background pool closed; job dropped")

    def _apply_update(self, job: UpdateJob) -> bool:
        ok = self._writer_store.update_record(job.table, job.row_id, job.values)
        self.reporter.increment("updates_applied" if ok else "updates_failed")
        return ok


def import_directory(
    root: Path,
    config: ImportConfig,
    *,
    chooser: Optional[Chooser] = None,
    progress_callback: Optional[ProgressCallback] = None,
    cancellation: Optional[CancellationToken] = None,
) -> ImportSummary:
    with MovieImporter(
        config,
        chooser=chooser,
        progress_callback=progress_callback,
        cancellation=cancellation,
    ) as importer:
        importer.import_from_directory(root)
    return importer.reporter.summary()


__all__ = [
    "Chooser",
    "MovieImporter",
    "Prober",
    "default_chooser",
    "import_directory",
]
