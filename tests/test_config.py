from pathlib import Path

import pytest

from core.settings import merge_defaults
from movieimport.config import ImportConfig, TMDbConfig
from movieimport.errors import ConfigError


def test_from_settings_uses_working_dir_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("MAX_BG_THREADS", raising=False)
    monkeypatch.delenv("TMDB_API_KEY", raising=False)
    settings = merge_defaults({"tmdb": {"api_key": "abc"}})

    config = ImportConfig.from_settings(settings, tmp_path)

    assert config.tmdb.api_key == "abc"
    assert config.db_path == tmp_path / "data" / "movies.db"
    assert config.media_dir == tmp_path / "media"
    assert config.extensions == ("mkv", "mp4", "mov", "avi", "m2ts")
    assert config.max_bg_threads == 5
    assert config.max_queue == 10
    assert config.file_pause_s == pytest.approx(0.1)
    assert config.checksum_chunk_bytes == 1024 * 1024


def test_environment_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("TMDB_API_KEY", "from-env")
    monkeypatch.setenv("MAX_BG_THREADS", "3")
    settings = merge_defaults({"importer": {"db_path": str(tmp_path / "x.db"), "extensions": [".MKV"]}})

    config = ImportConfig.from_settings(settings, tmp_path)

    assert config.tmdb.api_key == "from-env"
    assert config.max_bg_threads == 3
    assert config.max_queue == 6
    assert config.db_path == Path(tmp_path / "x.db")
    assert config.extensions == ("mkv",)


def test_environment_api_key_beats_settings_file(tmp_path, monkeypatch):
    monkeypatch.setenv("TMDB_API_KEY", "from-env")
    settings = merge_defaults({"tmdb": {"api_key": "from-file"}})

    config = ImportConfig.from_settings(settings, tmp_path)

    assert config.tmdb.api_key == "from-env"


def test_settings_api_key_used_when_environment_is_empty(tmp_path, monkeypatch):
    monkeypatch.setenv("TMDB_API_KEY", "")
    config = ImportConfig.from_settings(merge_defaults({"tmdb": {"api_key": "from-file"}}), tmp_path)
    assert config.tmdb.api_key == "from-file"


def test_missing_api_key_is_fatal(tmp_path, monkeypatch):
    monkeypatch.delenv("TMDB_API_KEY", raising=False)
    with pytest.raises(ConfigError):
        ImportConfig.from_settings(merge_defaults({}), tmp_path)


def test_with_overrides_returns_new_config(tmp_path, monkeypatch):
    monkeypatch.delenv("TMDB_API_KEY", raising=False)
    config = ImportConfig(tmdb=TMDbConfig(api_key="k"), db_path=tmp_path / "a.db", media_dir=tmp_path)
    changed = config.with_overrides(max_bg_threads=8)
    assert changed.max_bg_threads == 8
    assert config.max_bg_threads == 5
    assert TMDbConfig.from_mapping({"api_key": "k", "api_base_url": "http://local/3/"}).api_base_url == "http://local/3"
