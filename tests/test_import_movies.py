import logging
import signal

import pytest

import import_movies
from movieimport.reporter import ImportReporter


@pytest.fixture(autouse=True)
def restore_process_state():
    handlers = {sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGTERM)}
    logger = logging.getLogger("movieimport")
    existing = list(logger.handlers)
    level = logger.level
    yield
    for sig, handler in handlers.items():
        signal.signal(sig, handler)
    for handler in list(logger.handlers):
        if handler not in existing:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)


@pytest.fixture
def api_key(monkeypatch):
    monkeypatch.setenv("TMDB_API_KEY", "cli-test-key")


@pytest.fixture
def fake_importer(monkeypatch):
    class FakeImporter:
        instances = []
        during_import = None

        def __init__(self, config, *, chooser=None, cancellation=None):
            self.config = config
            self.chooser = chooser
            self.cancellation = cancellation
            self.reporter = ImportReporter()
            self.imported = []
            self.shut_down = False
            FakeImporter.instances.append(self)

        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc, tb):
            self.shutdown()

        def shutdown(self):
            self.shut_down = True
            return self.reporter.summary()

        def import_from_directory(self, root):
            self._run("movies", root)

        def import_series_from_directory(self, root):
            self._run("series", root)

        def _run(self, kind, root):
            self.imported.append((kind, root))
            if FakeImporter.during_import is not None:
                FakeImporter.during_import()

    monkeypatch.setattr(import_movies, "MovieImporter", FakeImporter)
    return FakeImporter


def _argv(tmp_path, *extra):
    library = tmp_path / "library"
    library.mkdir(exist_ok=True)
    return [str(library), "--working-dir", str(tmp_path / "home"), *extra]


def test_missing_api_key_exits_with_error(tmp_path, monkeypatch, fake_importer):
    monkeypatch.delenv("TMDB_API_KEY", raising=False)

    assert import_movies.main(_argv(tmp_path)) == import_movies.EXIT_ERROR == 1
    assert fake_importer.instances == []


def test_signal_mid_run_exits_interrupted_after_shutdown(tmp_path, api_key, fake_importer):
    fake_importer.during_import = lambda: signal.getsignal(signal.SIGTERM)(signal.SIGTERM, None)

    code = import_movies.main(_argv(tmp_path))

    assert code == import_movies.EXIT_INTERRUPTED == 130
    (importer,) = fake_importer.instances
    assert importer.cancellation.is_set()
    assert importer.shut_down


def test_clean_run_exits_ok(tmp_path, api_key, fake_importer):
    code = import_movies.main(_argv(tmp_path, "--threads", "3"))

    assert code == import_movies.EXIT_OK == 0
    (importer,) = fake_importer.instances
    assert importer.shut_down
    assert importer.config.max_bg_threads == 3
    assert importer.config.tmdb.api_key == "cli-test-key"
    assert importer.chooser is None
    assert importer.imported == [("movies", tmp_path / "library")]


def test_series_flag_and_interactive_chooser(tmp_path, api_key, fake_importer):
    assert import_movies.main(_argv(tmp_path, "--series", "--interactive")) == 0
    (importer,) = fake_importer.instances
    assert importer.imported == [("series", tmp_path / "library")]
    assert importer.chooser is import_movies.prompt_chooser


def test_real_importer_on_empty_directory(tmp_path, api_key, capsys):
    assert import_movies.main(_argv(tmp_path)) == 0
    assert "Imported: 0" in capsys.readouterr().out
    assert (tmp_path / "home" / "data" / "movies.db").exists()


def test_missing_library_is_fatal(tmp_path, api_key):
    argv = [str(tmp_path / "nowhere"), "--working-dir", str(tmp_path / "home")]
    assert import_movies.main(argv) == 1
