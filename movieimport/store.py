"""SQLite persistence for imported movies, their credits and their files.

Lookup rows (genres, countries, languages, people, ...) are created with one
set-based ``INSERT ... ON CONFLICT DO NOTHING`` followed by one ``SELECT ...
IN (...)`` per batch, never one query per item. Link tables are sets keyed on
``(movie_id, other_id)`` so re-linking the same pair is a no-op.

Callers own transactions: the connection runs in autocommit mode and the
importer wraps multi-statement work in :func:`core.db.transaction`.
"""
from __future__ import annotations

import logging
import os
import re
import sqlite3
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Set, Tuple

from .mediainfo import TechnicalInfo

LOGGER = logging.getLogger("movieimport.store")

# Keep statements well below SQLITE_MAX_VARIABLE_NUMBER on old builds.
MAX_VARIABLES = 900

DIRECTOR_JOBS = frozenset({"Director"})
WRITER_JOBS = frozenset({"Screenplay", "Writer", "Story"})
CREATOR_JOBS = frozenset({"Creator"})

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS franchises (
        franchise_id INTEGER PRIMARY KEY,
        franchise_name TEXT NOT NULL UNIQUE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS movies (
        movie_id INTEGER PRIMARY KEY,
        movie_name TEXT NOT NULL,
        original_title TEXT,
        release_date TEXT,
        description TEXT,
        runtime_minutes INTEGER,
        imdb_id TEXT,
        tmdb_id INTEGER NOT NULL UNIQUE,
        rating REAL,
        franchise_id INTEGER REFERENCES franchises(franchise_id),
        poster_path TEXT,
        backdrop_path TEXT,
        logo_path TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS people (
        person_id INTEGER PRIMARY KEY,
        tmdb_id INTEGER NOT NULL UNIQUE,
        full_name TEXT NOT NULL,
        headshot_path TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS genres (
        genre_id INTEGER PRIMARY KEY,
        genre_name TEXT NOT NULL UNIQUE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS production_countries (
        country_id INTEGER PRIMARY KEY,
        iso_3166_1_code TEXT NOT NULL UNIQUE,
        country_name TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS languages (
        language_id INTEGER PRIMARY KEY,
        iso_639_1_code TEXT NOT NULL UNIQUE,
        language_name TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS video_resolutions (
        resolution_id INTEGER PRIMARY KEY,
        resolution_name TEXT NOT NULL,
        width_pixels INTEGER NOT NULL,
        height_pixels INTEGER NOT NULL,
        UNIQUE (width_pixels, height_pixels)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS video_codecs (
        codec_id INTEGER PRIMARY KEY,
        codec_name TEXT NOT NULL UNIQUE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS source_media_types (
        source_type_id INTEGER PRIMARY KEY,
        source_type_name TEXT NOT NULL UNIQUE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS movie_files (
        file_id INTEGER PRIMARY KEY,
        movie_id INTEGER NOT NULL REFERENCES movies(movie_id),
        file_name TEXT NOT NULL,
        file_path TEXT NOT NULL UNIQUE,
        file_format TEXT,
        file_size_mb INTEGER,
        resolution_id INTEGER REFERENCES video_resolutions(resolution_id),
        video_bitrate_kbps INTEGER,
        video_codec_id INTEGER REFERENCES video_codecs(codec_id),
        frame_rate_fps REAL,
        aspect_ratio TEXT,
        duration_minutes INTEGER,
        source_media_type_id INTEGER REFERENCES source_media_types(source_type_id),
        checksum_sha256 TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS movie_genres (
        movie_id INTEGER NOT NULL REFERENCES movies(movie_id),
        genre_id INTEGER NOT NULL REFERENCES genres(genre_id),
        PRIMARY KEY (movie_id, genre_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS movie_countries (
        movie_id INTEGER NOT NULL REFERENCES movies(movie_id),
        country_id INTEGER NOT NULL REFERENCES production_countries(country_id),
        PRIMARY KEY (movie_id, country_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS movie_languages (
        movie_id INTEGER NOT NULL REFERENCES movies(movie_id),
        language_id INTEGER NOT NULL REFERENCES languages(language_id),
        PRIMARY KEY (movie_id, language_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS movie_directors (
        movie_id INTEGER NOT NULL REFERENCES movies(movie_id),
        person_id INTEGER NOT NULL REFERENCES people(person_id),
        PRIMARY KEY (movie_id, person_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS movie_writers (
        movie_id INTEGER NOT NULL REFERENCES movies(movie_id),
        person_id INTEGER NOT NULL REFERENCES people(person_id),
        PRIMARY KEY (movie_id, person_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS movie_cast (
        movie_id INTEGER NOT NULL REFERENCES movies(movie_id),
        person_id INTEGER NOT NULL REFERENCES people(person_id),
        character_name TEXT NOT NULL,
        billing_order INTEGER,
        PRIMARY KEY (movie_id, person_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS series (
        series_id INTEGER PRIMARY KEY,
        series_name TEXT NOT NULL,
        original_name TEXT,
        first_air_date TEXT,
        last_air_date TEXT,
        status TEXT,
        description TEXT,
        imdb_id TEXT,
        tmdb_id INTEGER NOT NULL UNIQUE,
        franchise_id INTEGER REFERENCES franchises(franchise_id),
        poster_path TEXT,
        backdrop_path TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS series_genres (
        series_id INTEGER NOT NULL REFERENCES series(series_id),
        genre_id INTEGER NOT NULL REFERENCES genres(genre_id),
        PRIMARY KEY (series_id, genre_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS series_creators (
        series_id INTEGER NOT NULL REFERENCES series(series_id),
        person_id INTEGER NOT NULL REFERENCES people(person_id),
        PRIMARY KEY (series_id, person_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS series_cast (
        series_id INTEGER NOT NULL REFERENCES series(series_id),
        person_id INTEGER NOT NULL REFERENCES people(person_id),
        character_name TEXT NOT NULL,
        billing_order INTEGER,
        PRIMARY KEY (series_id, person_id)
    )
    """,
)

# Columns the background writer may touch, keyed by table -> (id column, columns).
UPDATABLE_COLUMNS: Dict[str, Tuple[str, frozenset]] = {
    "movies": ("movie_id", frozenset({"poster_path", "backdrop_path", "logo_path"})),
    "people": ("person_id", frozenset({"headshot_path"})),
    "movie_files": ("file_id", frozenset({"checksum_sha256"})),
    "series": ("series_id", frozenset({"poster_path", "backdrop_path"})),
}

_SOURCE_TYPE_RULES: Tuple[Tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"4k[\s\-.]?(?:uhd|blu-?ray)", re.IGNORECASE), "4K Blu-ray"),
    (re.compile(r"blu-?ray|bdremux|bdmux", re.IGNORECASE), "Blu-ray"),
    (re.compile(r"dvd", re.IGNORECASE), "DVD"),
    (re.compile(r"web-?dl", re.IGNORECASE), "Web-DL"),
    (re.compile(r"web-?rip", re.IGNORECASE), "WEB-Rip"),
)


def ensure_tables(conn: sqlite3.Connection) -> None:
    for statement in _SCHEMA:
        conn.execute(statement)


def guess_source_media_type(file_path: str) -> str:
    basename = os.path.basename(file_path)
    for pattern, label in _SOURCE_TYPE_RULES:
        if pattern.search(basename):
            return label
    return "Digital"


def resolution_name(width: int, height: int) -> str:
    if height >= 2160:
        return "4K"
    return f"{height}p"


def _chunks(items: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    step = max(1, int(size))
    for start in range(0, len(items), step):
        yield items[start : start + step]


def _unique(values: Iterable[Any]) -> List[Any]:
    seen: Dict[Any, None] = {}
    for value in values:
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        seen.setdefault(value, None)
    return list(seen)


@dataclass(slots=True)
class AssociationResult:
    """Internal ids created or resolved while linking one movie."""

    people: Dict[int, int]
    genre_ids: List[int]
    country_ids: List[int]
    language_ids: List[int]
    director_ids: List[int]
    writer_ids: List[int]
    cast_links: int
    profiles: Dict[int, str]


@dataclass(slots=True)
class SeriesAssociationResult:
    people: Dict[int, int]
    genre_ids: List[int]
    creator_ids: List[int]
    cast_links: int
    profiles: Dict[int, str]


class CatalogStore:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        ensure_tables(self.conn)

    # ------------------------------------------------------------------
    # Bulk get-or-create
    def get_or_create_names(self, table: str, name_col: str, id_col: str, names: Iterable[Optional[str]]) -> List[int]:
        """Return one id per distinct name, inserting the missing ones.

        Duplicates in *names* collapse to one id; the result follows the
        first-seen order of the input.
        """

        wanted = _unique(names)
        if not wanted:
            return []
        for chunk in _chunks(wanted, MAX_VARIABLES):
            placeholders = ",".join("(?)" for _ in chunk)
            self.conn.execute(
                f"INSERT INTO {table} ({name_col}) VALUES {placeholders} "
                f"ON CONFLICT({name_col}) DO NOTHING",
                list(chunk),
            )
        found = self._select_ids(table, name_col, id_col, wanted)
        return [found[name] for name in wanted if name in found]

    def get_or_create_code_names(
        self,
        table: str,
        code_col: str,
        name_col: str,
        id_col: str,
        items: Iterable[Tuple[Optional[str], Optional[str]]],
    ) -> List[int]:
        """Like :meth:`get_or_create_names` for ``(code, name)`` pairs keyed on the code."""

        by_code: Dict[str, Optional[str]] = {}
        for code, name in items:
            if not code or not str(code).strip():
                continue
            by_code.setdefault(str(code), name)
        if not by_code:
            return []
        codes = list(by_code)
        for chunk in _chunks(codes, MAX_VARIABLES // 2):
            placeholders = ",".join("(?, ?)" for _ in chunk)
            params: List[Any] = []
            for code in chunk:
                params.extend((code, by_code[code]))
            self.conn.execute(
                f"INSERT INTO {table} ({code_col}, {name_col}) VALUES {placeholders} "
                f"ON CONFLICT({code_col}) DO NOTHING",
                params,
            )
        found = self._select_ids(table, code_col, id_col, codes)
        return [found[code] for code in codes if code in found]

    def get_or_create_people(self, people: Iterable[Mapping[str, Any]]) -> Dict[int, int]:
        """Upsert people keyed by TMDb id; return ``{tmdb_id: person_id}``."""

        by_tmdb: Dict[int, str] = {}
        for person in people:
            tmdb_id = person.get("id")
            name = person.get("name")
            if tmdb_id is None or not name:
                continue
            by_tmdb.setdefault(int(tmdb_id), str(name))
        if not by_tmdb:
            return {}
        tmdb_ids = list(by_tmdb)
        for chunk in _chunks(tmdb_ids, MAX_VARIABLES // 2):
            placeholders = ",".join("(?, ?)" for _ in chunk)
            params: List[Any] = []
            for tmdb_id in chunk:
                params.extend((tmdb_id, by_tmdb[tmdb_id]))
            self.conn.execute(
                f"INSERT INTO people (tmdb_id, full_name) VALUES {placeholders} "
                "ON CONFLICT(tmdb_id) DO NOTHING",
                params,
            )
        found = self._select_ids("people", "tmdb_id", "person_id", tmdb_ids)
        return {int(key): int(value) for key, value in found.items()}

    def _select_ids(self, table: str, key_col: str, id_col: str, keys: Sequence[Any]) -> Dict[Any, int]:
        found: Dict[Any, int] = {}
        for chunk in _chunks(keys, MAX_VARIABLES):
            placeholders = ",".join("?" for _ in chunk)
            cursor = self.conn.execute(
                f"SELECT {key_col}, {id_col} FROM {table} WHERE {key_col} IN ({placeholders})",
                list(chunk),
            )
            for row in cursor.fetchall():
                found[row[0]] = int(row[1])
        return found

    # ------------------------------------------------------------------
    # Links
    def link_bulk(self, link_table: str, movie_col: str, other_col: str, movie_id: int, other_ids: Iterable[int]) -> int:
        pairs = [(movie_id, other_id) for other_id in _unique(other_ids)]
        if not pairs:
            return 0
        inserted = 0
        try:
            for chunk in _chunks(pairs, MAX_VARIABLES // 2):
                placeholders = ",".join("(?, ?)" for _ in chunk)
                params = [value for pair in chunk for value in pair]
                cursor = self.conn.execute(
                    f"INSERT INTO {link_table} ({movie_col}, {other_col}) VALUES {placeholders} "
                    "ON CONFLICT DO NOTHING",
                    params,
                )
                inserted += max(0, cursor.rowcount)
        except sqlite3.IntegrityError as exc:
            LOGGER.debug("Links for %s and movie #%s may already exist: %s", link_table, movie_id, exc)
        return inserted

    def link_cast_bulk(
        self,
        owner_id: int,
        cast: Sequence[Mapping[str, Any]],
        people_map: Mapping[int, int],
        *,
        table: str = "movie_cast",
        owner_col: str = "movie_id",
    ) -> int:
        """Link cast members with character and 1-based billing order.

        Members without a character at all are skipped; an empty character
        name is stored as ``""``.
        """

        rows: List[Tuple[int, int, str, Optional[int]]] = []
        seen: Set[int] = set()
        for member in cast:
            tmdb_id = member.get("id")
            person_id = people_map.get(int(tmdb_id)) if tmdb_id is not None else None
            character = _character(member)
            if person_id is None or character is None or person_id in seen:
                continue
            seen.add(person_id)
            order = member.get("order")
            billing = int(order) + 1 if isinstance(order, int) else None
            rows.append((owner_id, person_id, character, billing))
        if not rows:
            return 0
        inserted = 0
        try:
            for chunk in _chunks(rows, MAX_VARIABLES // 4):
                placeholders = ",".join("(?, ?, ?, ?)" for _ in chunk)
                params = [value for row in chunk for value in row]
                cursor = self.conn.execute(
                    f"INSERT INTO {table} ({owner_col}, person_id, character_name, billing_order) "
                    f"VALUES {placeholders} ON CONFLICT DO NOTHING",
                    params,
                )
                inserted += max(0, cursor.rowcount)
        except sqlite3.IntegrityError as exc:
            LOGGER.debug("Cast for %s #%s already linked: %s", owner_col, owner_id, exc)
        return inserted

    def link_crew_bulk(self, movie_id: int, crew: Sequence[Mapping[str, Any]], people_map: Mapping[int, int]) -> Tuple[List[int], List[int]]:
        directors, writers = split_crew(crew)
        director_ids = _unique(people_map.get(int(member["id"])) for member in directors)
        writer_ids = _unique(people_map.get(int(member["id"])) for member in writers)
        self.link_bulk("movie_directors", "movie_id", "person_id", movie_id, director_ids)
        self.link_bulk("movie_writers", "movie_id", "person_id", movie_id, writer_ids)
        return director_ids, writer_ids

    # ------------------------------------------------------------------
    # Movies and files
    def upsert_movie(self, details: Mapping[str, Any]) -> int:
        """Insert or refresh a movie keyed by TMDb id and return its ``movie_id``.

        On conflict only descriptive columns change; the franchise link and
        downloaded asset columns are left as they are.
        """

        franchise_id = self.get_or_create_franchise(details.get("belongs_to_collection"))
        rating = details.get("vote_average")
        self.conn.execute(
            """
            INSERT INTO movies (
                movie_name, original_title, release_date, description, runtime_minutes,
                imdb_id, tmdb_id, rating, franchise_id
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(tmdb_id) DO UPDATE SET
                movie_name=excluded.movie_name,
                original_title=excluded.original_title,
                release_date=excluded.release_date,
                description=excluded.description,
                runtime_minutes=excluded.runtime_minutes,
                imdb_id=excluded.imdb_id,
                rating=excluded.rating
            """,
            (
                details.get("title") or details.get("original_title"),
                details.get("original_title"),
                details.get("release_date") or None,
                details.get("overview"),
                details.get("runtime"),
                details.get("imdb_id"),
                int(details["id"]),
                round(float(rating), 1) if isinstance(rating, (int, float)) else None,
                franchise_id,
            ),
        )
        row = self.conn.execute("SELECT movie_id FROM movies WHERE tmdb_id=?", (int(details["id"]),)).fetchone()
        return int(row[0])

    def get_or_create_franchise(self, collection: Any) -> Optional[int]:
        if not isinstance(collection, Mapping) or not collection.get("name"):
            return None
        ids = self.get_or_create_names("franchises", "franchise_name", "franchise_id", [collection["name"]])
        return ids[0] if ids else None

    def import_associations(self, movie_id: int, details: Mapping[str, Any], *, cast_limit: int = 50) -> AssociationResult:
        credits = details.get("credits") if isinstance(details.get("credits"), Mapping) else {}
        cast = [m for m in (credits.get("cast") or []) if isinstance(m, Mapping)][: max(0, cast_limit)]
        crew = [m for m in (credits.get("crew") or []) if isinstance(m, Mapping)]
        directors, writers = split_crew(crew)
        people_map = self.get_or_create_people([*cast, *directors, *writers])
        cast_links = self.link_cast_bulk(movie_id, cast, people_map)
        director_ids, writer_ids = self.link_crew_bulk(movie_id, crew, people_map)

        genre_names = [g.get("name") for g in details.get("genres") or [] if isinstance(g, Mapping)]
        genre_ids = self.get_or_create_names("genres", "genre_name", "genre_id", genre_names)
        self.link_bulk("movie_genres", "movie_id", "genre_id", movie_id, genre_ids)

        countries = [
            (c.get("iso_3166_1"), c.get("name"))
            for c in details.get("production_countries") or []
            if isinstance(c, Mapping)
        ]
        country_ids = self.get_or_create_code_names(
            "production_countries", "iso_3166_1_code", "country_name", "country_id", countries
        )
        self.link_bulk("movie_countries", "movie_id", "country_id", movie_id, country_ids)

        languages = [
            (l.get("iso_639_1"), l.get("english_name") or l.get("name"))
            for l in details.get("spoken_languages") or []
            if isinstance(l, Mapping)
        ]
        language_ids = self.get_or_create_code_names(
            "languages", "iso_639_1_code", "language_name", "language_id", languages
        )
        self.link_bulk("movie_languages", "movie_id", "language_id", movie_id, language_ids)

        return AssociationResult(
            people=people_map,
            genre_ids=genre_ids,
            country_ids=country_ids,
            language_ids=language_ids,
            director_ids=director_ids,
            writer_ids=writer_ids,
            cast_links=cast_links,
            profiles=_profiles([*cast, *directors, *writers], people_map),
        )

    # ------------------------------------------------------------------
    # Series
    def upsert_series(self, details: Mapping[str, Any]) -> int:
        """Insert or refresh a series keyed by TMDb id and return its ``series_id``."""

        external = details.get("external_ids") if isinstance(details.get("external_ids"), Mapping) else {}
        self.conn.execute(
            """
            INSERT INTO series (
                series_name, original_name, first_air_date, last_air_date, status,
                description, imdb_id, tmdb_id
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(tmdb_id) DO UPDATE SET
                series_name=excluded.series_name,
                original_name=excluded.original_name,
                first_air_date=excluded.first_air_date,
                last_air_date=excluded.last_air_date,
                status=excluded.status,
                description=excluded.description,
                imdb_id=excluded.imdb_id
            """,
            (
                details.get("name") or details.get("original_name"),
                details.get("original_name"),
                details.get("first_air_date") or None,
                details.get("last_air_date") or None,
                details.get("status"),
                details.get("overview"),
                external.get("imdb_id") or None,
                int(details["id"]),
            ),
        )
        row = self.conn.execute("SELECT series_id FROM series WHERE tmdb_id=?", (int(details["id"]),)).fetchone()
        return int(row[0])

    def import_series_associations(
        self, series_id: int, details: Mapping[str, Any], *, cast_limit: int = 50
    ) -> SeriesAssociationResult:
        credits = details.get("aggregate_credits") if isinstance(details.get("aggregate_credits"), Mapping) else {}
        cast = [m for m in (credits.get("cast") or []) if isinstance(m, Mapping)][: max(0, cast_limit)]
        crew = [m for m in (credits.get("crew") or []) if isinstance(m, Mapping)]
        creators = [m for m in details.get("created_by") or [] if isinstance(m, Mapping) and m.get("id") is not None]
        creators.extend(m for m in crew if m.get("id") is not None and _jobs(m) & CREATOR_JOBS)
        people_map = self.get_or_create_people([*cast, *creators])
        cast_links = self.link_cast_bulk(
            series_id, cast, people_map, table="series_cast", owner_col="series_id"
        )
        creator_ids = _unique(people_map.get(int(member["id"])) for member in creators)
        self.link_bulk("series_creators", "series_id", "person_id", series_id, creator_ids)

        genre_names = [g.get("name") for g in details.get("genres") or [] if isinstance(g, Mapping)]
        genre_ids = self.get_or_create_names("genres", "genre_name", "genre_id", genre_names)
        self.link_bulk("series_genres", "series_id", "genre_id", series_id, genre_ids)

        return SeriesAssociationResult(
            people=people_map,
            genre_ids=genre_ids,
            creator_ids=creator_ids,
            cast_links=cast_links,
            profiles=_profiles([*cast, *creators], people_map),
        )

    def get_or_create_resolution(self, width: Optional[int], height: Optional[int]) -> Optional[int]:
        if not width or not height or width <= 0 or height <= 0:
            return None
        self.conn.execute(
            """
            INSERT INTO video_resolutions (resolution_name, width_pixels, height_pixels)
            VALUES (?, ?, ?)
            ON CONFLICT(width_pixels, height_pixels) DO NOTHING
            """,
            (resolution_name(width, height), width, height),
        )
        row = self.conn.execute(
            "SELECT resolution_id FROM video_resolutions WHERE width_pixels=? AND height_pixels=?",
            (width, height),
        ).fetchone()
        return int(row[0]) if row else None

    def insert_movie_file(
        self,
        movie_id: int,
        file_path: str,
        technical: Optional[TechnicalInfo],
    ) -> Optional[int]:
        """Record a file for *movie_id*; return its id, or ``None`` if the path already existed."""

        codec_ids = self.get_or_create_names(
            "video_codecs", "codec_name", "codec_id", [technical.video_codec if technical else None]
        )
        source_ids = self.get_or_create_names(
            "source_media_types",
            "source_type_name",
            "source_type_id",
            [guess_source_media_type(file_path)],
        )
        resolution_id = self.get_or_create_resolution(
            technical.width if technical else None,
            technical.height if technical else None,
        )
        cursor = self.conn.execute(
            """
            INSERT INTO movie_files (
                movie_id, file_name, file_path, file_format, file_size_mb, resolution_id,
                video_bitrate_kbps, video_codec_id, frame_rate_fps, aspect_ratio,
                duration_minutes, source_media_type_id
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(file_path) DO NOTHING
            """,
            (
                movie_id,
                os.path.basename(file_path),
                file_path,
                technical.file_format if technical else None,
                technical.file_size_mb if technical else None,
                resolution_id,
                technical.video_bitrate_kbps if technical else None,
                codec_ids[0] if codec_ids else None,
                technical.frame_rate if technical else None,
                technical.aspect_ratio if technical else None,
                technical.duration_minutes if technical else None,
                source_ids[0] if source_ids else None,
            ),
        )
        if cursor.rowcount == 0:
            return None
        return int(cursor.lastrowid)

    def existing_file_paths(self) -> Set[str]:
        return {str(row[0]) for row in self.conn.execute("SELECT file_path FROM movie_files")}

    # ------------------------------------------------------------------
    # Background writer
    def update_record(self, table: str, row_id: int, values: Mapping[str, Any]) -> bool:
        """Apply ``UPDATE table SET ... WHERE id = row_id``; log and return False on failure."""

        target = UPDATABLE_COLUMNS.get(table)
        if target is None:
            LOGGER.error("Refusing update for unknown table %s", table)
            return False
        id_col, allowed = target
        columns = [column for column in values if column in allowed]
        rejected = sorted(set(values) - set(columns))
        if rejected:
            LOGGER.error("Refusing update of %s.%s", table, ",".join(rejected))
        if not columns:
            return False
        assignments = ", ".join(f"{column}=?" for column in columns)
        params = [values[column] for column in columns]
        params.append(int(row_id))
        try:
            self.conn.execute(f"UPDATE {table} SET {assignments} WHERE {id_col}=?", params)
        except sqlite3.Error as exc:
            LOGGER.error("DB update failed for %s#%s: %s", table, row_id, exc)
            return False
        LOGGER.debug("DB updated for %s#%s", table, row_id)
        return True


def _profiles(members: Iterable[Mapping[str, Any]], people_map: Mapping[int, int]) -> Dict[int, str]:
    profiles: Dict[int, str] = {}
    for member in members:
        tmdb_id = member.get("id")
        profile = member.get("profile_path")
        if tmdb_id is None or not profile:
            continue
        person_id = people_map.get(int(tmdb_id))
        if person_id is not None:
            profiles.setdefault(person_id, str(profile))
    return profiles


def _character(member: Mapping[str, Any]) -> Optional[str]:
    character = member.get("character")
    if character is None:
        # Aggregate (series) credits list characters per role.
        roles = member.get("roles")
        if isinstance(roles, list) and roles and isinstance(roles[0], Mapping):
            character = roles[0].get("character")
    return None if character is None else str(character)


def _jobs(member: Mapping[str, Any]) -> Set[str]:
    jobs = {str(member["job"])} if member.get("job") else set()
    for entry in member.get("jobs") or []:
        if isinstance(entry, Mapping) and entry.get("job"):
            jobs.add(str(entry["job"]))
    return jobs


def split_crew(crew: Iterable[Mapping[str, Any]]) -> Tuple[List[Mapping[str, Any]], List[Mapping[str, Any]]]:
    """Split crew credits into (directors, writers) by job title."""

    directors: List[Mapping[str, Any]] = []
    writers: List[Mapping[str, Any]] = []
    for member in crew:
        if member.get("id") is None:
            continue
        job = member.get("job")
        if job in DIRECTOR_JOBS:
            directors.append(member)
        elif job in WRITER_JOBS:
            writers.append(member)
    return directors, writers


__all__ = [
    "AssociationResult",
    "CREATOR_JOBS",
    "CatalogStore",
    "DIRECTOR_JOBS",
    "UPDATABLE_COLUMNS",
    "WRITER_JOBS",
    "SeriesAssociationResult",
    "ensure_tables",
    "guess_source_media_type",
    "resolution_name",
    "split_crew",
]
