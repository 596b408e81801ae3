import sys
import unittest
from pathlib import Path
from tempfile import TemporaryDirectory
from unittest import mock

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core import paths as core_paths


class CorePathsTests(unittest.TestCase):
    def test_override_wins_and_structure_is_created(self) -> None:
        with TemporaryDirectory() as tmp:
            target = Path(tmp) / "home"
            with mock.patch.dict("os.environ", {"MOVIEIMPORT_HOME": str(Path(tmp) / "env")}):
                resolved = core_paths.resolve_working_dir(target)
            self.assertEqual(resolved, target.resolve())
            for child in ("data", "logs", "media"):
                self.assertTrue((resolved / child).is_dir())

    def test_environment_variable_used_without_override(self) -> None:
        with TemporaryDirectory() as tmp:
            env_home = Path(tmp) / "env"
            with mock.patch.dict("os.environ", {"MOVIEIMPORT_HOME": str(env_home)}):
                resolved = core_paths.resolve_working_dir()
            self.assertEqual(resolved, env_home.resolve())

    def test_database_path_lives_in_data_dir(self) -> None:
        working = Path("/tmp/movieimport-home")
        self.assertEqual(core_paths.get_database_path(working), working / "data" / "movies.db")
        self.assertEqual(core_paths.get_media_dir(working), working / "media")


if __name__ == "__main__":
    unittest.main()
