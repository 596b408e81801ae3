"""Movie import pipeline: parse file names, fetch TMDb metadata, store in SQLite."""

from .config import ImportConfig, TMDbConfig
from .reporter import ImportReporter, ImportSummary
from .run import MovieImporter, default_chooser, import_directory

__all__ = [
    "ImportConfig",
    "ImportReporter",
    "ImportSummary",
    "MovieImporter",
    "TMDbConfig",
    "default_chooser",
    "import_directory",
]
