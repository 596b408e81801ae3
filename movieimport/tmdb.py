"""Blocking TMDb v3 client with bounded retries and Retry-After handling.

Every call returns a :class:`FetchResult` instead of raising. Timeouts and
dropped connections are retried up to ``max_attempts`` times with a linear
backoff (``backoff_s * attempt``). HTTP 429 responses are handled
separately: the client sleeps for the server's ``Retry-After`` delay and
repeats the same request. Those waits are not counted against the retry
budget, so a request can be delayed indefinitely by rate limiting. It is
abandoned only when the importer's cancellation token is set, in which case
the result carries the ``rate_limited`` reason.
"""
from __future__ import annotations

import logging
import os
import tempfile
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import requests

from robust import CancellationToken

from .config import TMDbConfig
from .errors import KIND_HTTP, KIND_INVALID, KIND_NETWORK, KIND_NOT_FOUND, KIND_RATE_LIMITED

LOGGER = logging.getLogger("movieimport.tmdb")

DETAILS_APPEND = "credits,release_dates,images"
SERIES_APPEND = "aggregate_credits,external_ids,images"
_STREAM_CHUNK = 64 * 1024

_RETRYABLE = (
    requests.Timeout,
    requests.ConnectionError,
    requests.exceptions.ChunkedEncodingError,
)

_OK = "ok"
_RETRY = "retry"
_RATE_LIMITED = "rate_limited"
_TERMINAL = "terminal"


@dataclass(slots=True)
class FetchResult:
    ok: bool
    data: Any = None
    status: Optional[int] = None
    reason: Optional[str] = None
    error: Optional[str] = None
    attempts: int = 0


@dataclass(slots=True)
class _Attempt:
    outcome: str
    value: Any = None
    status: Optional[int] = None
    reason: Optional[str] = None
    error: Optional[str] = None
    retry_after: float = 0.0


def parse_retry_after(value: Optional[str], default: float) -> float:
    """Return the delay in seconds announced by a ``Retry-After`` header."""

    if value is None:
        return default
    text = str(value).strip()
    if not text:
        return default
    try:
        return max(0.0, float(text))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(text)
    except (TypeError, ValueError):
        return default
    if when is None:
        return default
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


class TMDbClient:
    """Search, detail and image calls against The Movie Database."""

    def __init__(
        self,
        config: TMDbConfig,
        *,
        media_dir: Path,
        session: Optional[requests.Session] = None,
        sleep: Optional[Callable[[float], Any]] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> None:
        self.config = config
        self.media_dir = Path(media_dir)
        self._owns_session = session is None
        self._session = session if session is not None else requests.Session()
        self.cancellation = cancellation
        if sleep is None:
            sleep = cancellation.wait if cancellation is not None else time.sleep
        self._sleep = sleep
        self._timeout = (config.connect_timeout_s, config.read_timeout_s)
        self._headers = {"Accept": "application/json", "User-Agent": "movieimport/1.0"}

    # ------------------------------------------------------------------
    def search(self, title: str, year: Optional[int] = None) -> FetchResult:
        """Search movies by title; ``data`` is the list of candidate dicts."""

        params: Dict[str, Any] = {"query": title}
        if year is not None:
            params["year"] = int(year)
        result = self._get_json("/search/movie", params)
        if result.ok:
            results = result.data.get("results") if isinstance(result.data, dict) else None
            result.data = [item for item in results or [] if isinstance(item, dict)]
        return result

    def fetch_details(self, tmdb_id: int) -> FetchResult:
        result = self._get_json(f"/movie/{int(tmdb_id)}", {"append_to_response": DETAILS_APPEND})
        if result.ok and not isinstance(result.data, dict):
            return FetchResult(
                ok=False,
                status=result.status,
                reason=KIND_INVALID,
                error="details payload is not an object",
                attempts=result.attempts,
            )
        return result

    def search_series(self, name: str, year: Optional[int] = None) -> FetchResult:
        params: Dict[str, Any] = {"query": name}
        if year is not None:
            params["first_air_date_year"] = int(year)
        result = self._get_json("/search/tv", params)
        if result.ok:
            results = result.data.get("results") if isinstance(result.data, dict) else None
            result.data = [item for item in results or [] if isinstance(item, dict)]
        return result

    def fetch_series_details(self, tmdb_id: int) -> FetchResult:
        result = self._get_json(f"/tv/{int(tmdb_id)}", {"append_to_response": SERIES_APPEND})
        if result.ok and not isinstance(result.data, dict):
            return FetchResult(
                ok=False,
                status=result.status,
                reason=KIND_INVALID,
                error="series payload is not an object",
                attempts=result.attempts,
            )
        return result

    def fetch_image(self, api_path: Optional[str], relative_save_path: str) -> Optional[str]:
        """Download ``api_path`` below the media dir; return the relative path or ``None``.

        An existing destination file is reused without touching the network.
        """

        if not api_path or not str(api_path).strip():
            return None
        destination = self.media_dir / relative_save_path
        if destination.exists():
            return relative_save_path
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            LOGGER.warning("Cannot create %s: %s", destination.parent, exc)
            return None
        url = f"{self.config.image_base_url}/{str(api_path).lstrip('/')}"
        LOGGER.info("Downloading image %s -> %s", api_path, relative_save_path)
        result = self._execute(
            url,
            None,
            lambda response: _write_stream(response, destination),
            stream=True,
        )
        if not result.ok:
            LOGGER.warning(
                "Failed to download image %s: %s",
                api_path,
                result.error or result.reason,
            )
            return None
        return relative_save_path

    def close(self) -> None:
        if self._owns_session:
            self._session.close()

    # ------------------------------------------------------------------
    def _get_json(self, path: str, params: Dict[str, Any]) -> FetchResult:
        query = dict(params)
        query["api_key"] = self.config.api_key
        if self.config.language:
            query.setdefault("language", self.config.language)
        url = f"{self.config.api_base_url}{path}"
        return self._execute(url, query, lambda response: response.json())

    def _execute(
        self,
        url: str,
        params: Optional[Dict[str, Any]],
        consume: Callable[[requests.Response], Any],
        *,
        stream: bool = False,
    ) -> FetchResult:
        failures = 0
        attempts = 0
        while True:
            attempts += 1
            attempt = self._attempt(url, params, consume, stream=stream)
            if attempt.outcome == _OK:
                return FetchResult(ok=True, data=attempt.value, status=attempt.status, attempts=attempts)
            if attempt.outcome == _RATE_LIMITED:
                if self.cancellation is not None and self.cancellation.is_set():
                    LOGGER.info("Stop requested while rate limited; giving up on %s", url)
                    return FetchResult(
                        ok=False,
                        status=attempt.status,
                        reason=KIND_RATE_LIMITED,
                        error="stopped while rate limited",
                        attempts=attempts,
                    )
                LOGGER.warning(
                    "Rate limited by TMDb; waiting %.1fs before retrying %s",
                    attempt.retry_after,
                    url,
                )
                self._sleep(attempt.retry_after)
                continue
            if attempt.outcome == _RETRY:
                failures += 1
                if failures < self.config.max_attempts:
                    delay = self.config.backoff_s * failures
                    LOGGER.debug(
                        "Retry %d/%d for %s after %s; sleeping %.1fs",
                        failures,
                        self.config.max_attempts,
                        url,
                        attempt.error,
                        delay,
                    )
                    self._sleep(delay)
                    continue
                LOGGER.warning("Request to %s failed after %d attempts: %s", url, failures, attempt.error)
            return FetchResult(
                ok=False,
                status=attempt.status,
                reason=attempt.reason,
                error=attempt.error,
                attempts=attempts,
            )

    def _attempt(
        self,
        url: str,
        params: Optional[Dict[str, Any]],
        consume: Callable[[requests.Response], Any],
        *,
        stream: bool,
    ) -> _Attempt:
        try:
            response = self._session.get(
                url,
                params=params,
                headers=self._headers,
                timeout=self._timeout,
                stream=stream,
            )
        except _RETRYABLE as exc:
            return _Attempt(_RETRY, reason=KIND_NETWORK, error=f"{type(exc).__name__}: {exc}")
        except requests.RequestException as exc:
            return _Attempt(_TERMINAL, reason=KIND_HTTP, error=str(exc))

        try:
            status = int(response.status_code)
            if status == 429:
                retry_after = parse_retry_after(
                    response.headers.get("Retry-After"),
                    self.config.default_retry_after_s,
                )
                return _Attempt(_RATE_LIMITED, status=status, retry_after=retry_after)
            if status == 404:
                return _Attempt(_TERMINAL, status=status, reason=KIND_NOT_FOUND, error=f"HTTP 404 for {url}")
            if status >= 400:
                return _Attempt(_TERMINAL, status=status, reason=KIND_HTTP, error=f"HTTP {status} for {url}")
            try:
                value = consume(response)
            except _RETRYABLE as exc:
                return _Attempt(_RETRY, status=status, reason=KIND_NETWORK, error=f"{type(exc).__name__}: {exc}")
            except ValueError as exc:
                return _Attempt(_TERMINAL, status=status, reason=KIND_INVALID, error=f"invalid JSON: {exc}")
            except requests.RequestException as exc:
                return _Attempt(_TERMINAL, status=status, reason=KIND_HTTP, error=str(exc))
            except OSError as exc:
                return _Attempt(_TERMINAL, status=status, reason=KIND_INVALID, error=f"write failed: {exc}")
            return _Attempt(_OK, value=value, status=status)
        finally:
            response.close()


def _write_stream(response: requests.Response, destination: Path) -> Path:
    # One temp file per writer; concurrent downloads of the same image each
    # replace the destination atomically with a complete file.
    fd, partial = tempfile.mkstemp(
        dir=str(destination.parent),
        prefix=destination.name + ".",
        suffix=".part",
    )
    try:
        with os.fdopen(fd, "wb") as handle:
            for chunk in response.iter_content(chunk_size=_STREAM_CHUNK):
                if chunk:
                    handle.write(chunk)
        os.replace(partial, destination)
    except BaseException:
        Path(partial).unlink(missing_ok=True)
        raise
    return destination


def pick_best_image(images: Optional[List[Dict[str, Any]]], language: Optional[str]) -> Optional[Dict[str, Any]]:
    """Prefer the movie's language, then English, then language-neutral art."""

    if not images:
        return None
    candidates = [image for image in images if isinstance(image, dict) and image.get("file_path")]
    if not candidates:
        return None
    for wanted in (language, "en"):
        if not wanted:
            continue
        for image in candidates:
            if image.get("iso_639_1") == wanted:
                return image
    for image in candidates:
        if image.get("iso_639_1") is None:
            return image
    return candidates[0]


__all__ = [
    "DETAILS_APPEND",
    "FetchResult",
    "SERIES_APPEND",
    "TMDbClient",
    "parse_retry_after",
    "pick_best_image",
]
