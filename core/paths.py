from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

__all__ = [
    "ensure_working_dir_structure",
    "get_data_dir",
    "get_database_path",
    "get_default_settings_paths",
    "get_logs_dir",
    "get_media_dir",
    "resolve_working_dir",
]

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_HOME_ENV = "MOVIEIMPORT_HOME"


def _expand_path(value: str) -> Path:
    expanded = os.path.expandvars(os.path.expanduser(value))
    return Path(expanded).resolve()


def _ensure_writable_dir(path: Path) -> bool:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError:
        return False
    return os.access(path, os.W_OK)


def resolve_working_dir(override: Optional[str | os.PathLike[str]] = None) -> Path:
    """Resolve the importer working directory, creating it if required.

    Order: explicit *override*, ``$MOVIEIMPORT_HOME``, ``~/.movieimport``.
    """

    candidates = []
    if override:
        candidates.append(_expand_path(str(override)))
    env_home = os.environ.get(_HOME_ENV)
    if env_home:
        candidates.append(_expand_path(env_home))
    candidates.append(Path.home() / ".movieimport")

    for candidate in candidates:
        if _ensure_writable_dir(candidate):
            ensure_working_dir_structure(candidate)
            return candidate
    raise OSError(f"No writable working directory among: {', '.join(map(str, candidates))}")


def get_data_dir(working_dir: Path) -> Path:
    return working_dir / "data"


def get_database_path(working_dir: Path) -> Path:
    return get_data_dir(working_dir) / "movies.db"


def get_logs_dir(working_dir: Path) -> Path:
    return working_dir / "logs"


def get_media_dir(working_dir: Path) -> Path:
    return working_dir / "media"


def ensure_working_dir_structure(working_dir: Path) -> None:
    for directory in (
        working_dir,
        get_data_dir(working_dir),
        get_logs_dir(working_dir),
        get_media_dir(working_dir),
    ):
        directory.mkdir(parents=True, exist_ok=True)


def get_default_settings_paths(working_dir: Path) -> list[Path]:
    """Return the search order for settings.json files."""

    return [working_dir / "settings.json", _PROJECT_ROOT / "settings.json"]
