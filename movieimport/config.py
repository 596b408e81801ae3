"""Immutable importer configuration built once from the JSON settings."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from core.paths import get_database_path, get_media_dir

from .errors import ConfigError

DEFAULT_API_BASE_URL = "https://api.themoviedb.org/3"
DEFAULT_IMAGE_BASE_URL = "https://image.tmdb.org/t/p/original"
DEFAULT_EXTENSIONS: Tuple[str, ...] = ("mkv", "mp4", "mov", "avi", "m2ts")


def _section(settings: Mapping[str, Any], key: str) -> Dict[str, Any]:
    value = settings.get(key)
    return dict(value) if isinstance(value, dict) else {}


@dataclass(frozen=True, slots=True)
class TMDbConfig:
    api_key: str
    api_base_url: str = DEFAULT_API_BASE_URL
    image_base_url: str = DEFAULT_IMAGE_BASE_URL
    language: Optional[str] = None
    connect_timeout_s: float = 10.0
    read_timeout_s: float = 30.0
    max_attempts: int = 3
    backoff_s: float = 2.0
    default_retry_after_s: float = 10.0

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any] | None) -> "TMDbConfig":
        data = dict(mapping or {})
        api_key = os.environ.get("TMDB_API_KEY") or data.get("api_key")
        if not api_key:
            raise ConfigError(
                "TMDb API key missing: set TMDB_API_KEY or tmdb.api_key in settings.json"
            )
        return cls(
            api_key=str(api_key),
            api_base_url=str(data.get("api_base_url") or DEFAULT_API_BASE_URL).rstrip("/"),
            image_base_url=str(data.get("image_base_url") or DEFAULT_IMAGE_BASE_URL).rstrip("/"),
            language=data.get("language") or None,
            connect_timeout_s=float(data.get("connect_timeout_s", 10) or 10),
            read_timeout_s=float(data.get("read_timeout_s", 30) or 30),
            max_attempts=max(1, int(data.get("max_attempts", 3) or 3)),
            backoff_s=max(0.0, float(data.get("backoff_s", 2) or 0)),
            default_retry_after_s=max(0.0, float(data.get("default_retry_after_s", 10) or 0)),
        )


@dataclass(frozen=True, slots=True)
class ImportConfig:
    tmdb: TMDbConfig
    db_path: Path
    media_dir: Path
    extensions: Tuple[str, ...] = DEFAULT_EXTENSIONS
    max_bg_threads: int = 5
    queue_factor: int = 2
    cast_limit: int = 50
    shutdown_timeout_s: float = 600.0
    file_pause_s: float = 0.1
    checksum_chunk_bytes: int = 1024 * 1024
    download_headshots: bool = True
    mediainfo_binary: str = "mediainfo"
    mediainfo_timeout_s: float = 60.0

    @property
    def max_queue(self) -> int:
        return max(1, self.max_bg_threads * self.queue_factor)

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any], working_dir: Path) -> "ImportConfig":
        importer = _section(settings, "importer")
        mediainfo = _section(settings, "mediainfo")
        tmdb = TMDbConfig.from_mapping(_section(settings, "tmdb"))

        db_path = importer.get("db_path")
        media_dir = importer.get("media_dir")
        threads = os.environ.get("MAX_BG_THREADS") or importer.get("max_bg_threads", 5)
        extensions = importer.get("extensions") or DEFAULT_EXTENSIONS
        return cls(
            tmdb=tmdb,
            db_path=Path(db_path).expanduser() if db_path else get_database_path(working_dir),
            media_dir=Path(media_dir).expanduser() if media_dir else get_media_dir(working_dir),
            extensions=tuple(str(ext).lower().lstrip(".") for ext in extensions),
            max_bg_threads=max(1, int(threads or 5)),
            queue_factor=max(1, int(importer.get("queue_factor", 2) or 2)),
            cast_limit=max(0, int(importer.get("cast_limit", 50))),
            shutdown_timeout_s=max(1.0, float(importer.get("shutdown_timeout_s", 600) or 600)),
            file_pause_s=max(0, int(importer.get("file_pause_ms", 100) or 0)) / 1000.0,
            checksum_chunk_bytes=max(4, int(importer.get("checksum_chunk_kib", 1024) or 1024)) * 1024,
            download_headshots=bool(importer.get("download_headshots", True)),
            mediainfo_binary=str(mediainfo.get("binary") or "mediainfo"),
            mediainfo_timeout_s=max(1.0, float(mediainfo.get("timeout_s", 60) or 60)),
        )

    def with_overrides(self, **kwargs: Any) -> "ImportConfig":
        return replace(self, **kwargs)


__all__ = ["ImportConfig", "TMDbConfig"]
