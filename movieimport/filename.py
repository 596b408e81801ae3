"""Extract title, year and optional TMDb id from movie file and series folder names."""
from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Optional

# "Title (2010) (tmdbid-27205)" -- the id form is tried first.
TAGGED_RE = re.compile(
    r"^(?P<title>.+?)\s\((?P<year>\d{4})\)\s\((?:tmdbid|extid)-(?P<tmdb_id>\d+)\)$",
    re.IGNORECASE,
)
TITLE_YEAR_RE = re.compile(r"^(?P<title>.+?)\s*\((?P<year>\d{4})\)")
SERIES_TAGGED_RE = re.compile(r"^(?P<name>.+?)\s\((?:tmdbid|extid)-(?P<tmdb_id>\d+)\)$", re.IGNORECASE)
SERIES_YEAR_RE = re.compile(r"^(?P<name>.+?)\s*\((?P<year>\d{4})\)$")


@dataclass(frozen=True, slots=True)
class ParsedName:
    title: str
    year: int
    tmdb_id: Optional[int] = None


@dataclass(frozen=True, slots=True)
class ParsedSeries:
    name: str
    year: Optional[int] = None
    tmdb_id: Optional[int] = None


def strip_extension(name: str) -> str:
    base = os.path.basename(name)
    stem, _ = os.path.splitext(base)
    return stem or base


def parse_movie_filename(name: str) -> Optional[ParsedName]:
    """Return the parsed name, or ``None`` when neither convention matches."""

    base = strip_extension(name)
    match = TAGGED_RE.match(base)
    if match:
        title = match.group("title").strip()
        if title:
            return ParsedName(
                title=title,
                year=int(match.group("year")),
                tmdb_id=int(match.group("tmdb_id")),
            )
    match = TITLE_YEAR_RE.match(base)
    if match:
        title = match.group("title").replace(".", " ").strip()
        if title:
            return ParsedName(title=title, year=int(match.group("year")))
    return None


def parse_series_dirname(name: str) -> Optional[ParsedSeries]:
    """Parse a series folder name: ``Name (tmdbid-N)``, ``Name (Year)`` or a dotted ``Name``."""

    base = os.path.basename(str(name).rstrip("/\\")).strip()
    tmdb_id: Optional[int] = None
    match = SERIES_TAGGED_RE.match(base)
    if match:
        base = match.group("name").strip()
        tmdb_id = int(match.group("tmdb_id"))
    year: Optional[int] = None
    match = SERIES_YEAR_RE.match(base)
    if match:
        base = match.group("name")
        year = int(match.group("year"))
    series_name = base.replace(".", " ").strip()
    if not series_name:
        return None
    return ParsedSeries(name=series_name, year=year, tmdb_id=tmdb_id)


__all__ = ["ParsedName", "ParsedSeries", "parse_movie_filename", "parse_series_dirname", "strip_extension"]
