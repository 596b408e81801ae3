"""Import a directory of movie files, or of series folders, into the local catalog."""
from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.logging_utils import configure_json_logging, redact_secret
from core.paths import resolve_working_dir
from core.settings import load_settings
from movieimport import ImportConfig, MovieImporter
from movieimport.errors import ConfigError
from movieimport.filename import ParsedName
from robust import CancellationToken

LOGGER = logging.getLogger("movieimport.cli")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Scan a directory and import its movies with TMDb metadata."
    )
    parser.add_argument("directory", help="Root directory containing movie files.")
    parser.add_argument(
        "--working-dir",
        help="Directory holding settings.json, data/, logs/ and media/.",
    )
    parser.add_argument(
        "--threads",
        type=int,
        help="Number of background download/checksum workers.",
    )
    parser.add_argument(
        "--interactive",
        action="store_true",
        help="Ask which search result to use when TMDb returns several.",
    )
    parser.add_argument(
        "--series",
        action="store_true",
        help="Treat each subdirectory as one TV series instead of scanning for movie files.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


def prompt_chooser(candidates: List[Dict[str, Any]], parsed: ParsedName) -> Optional[Dict[str, Any]]:
    if len(candidates) == 1:
        return candidates[0]
    print(f"\nMultiple matches for {parsed.title} ({parsed.year}):")
    for index, candidate in enumerate(candidates, start=1):
        release = candidate.get("release_date") or "unknown date"
        print(f"  {index}. {candidate.get('title')} ({release}) [TMDb #{candidate.get('id')}]")
    while True:
        answer = input("Choose a number (0 to skip): ").strip()
        if answer.isdigit():
            choice = int(answer)
            if choice == 0:
                return None
            if 1 <= choice <= len(candidates):
                return candidates[choice - 1]
        print("Invalid choice.")


def _install_signal_handlers(token: CancellationToken) -> None:
    def _handler(signum: int, _frame: object) -> None:
        LOGGER.warning("Received signal %s; finishing current file", signum)
        token.set()

    for name in ("SIGINT", "SIGTERM"):
        sig = getattr(signal, name, None)
        if sig is not None:
            signal.signal(sig, _handler)


def main(argv: Optional[list[str]] = None) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    try:
        working_dir = resolve_working_dir(args.working_dir)
        configure_json_logging(working_dir, level=logging.DEBUG if args.verbose else logging.INFO)
        config = ImportConfig.from_settings(load_settings(working_dir), working_dir)
    except (ConfigError, OSError) as exc:
        LOGGER.error("%s", exc)
        return EXIT_ERROR
    if args.threads:
        config = config.with_overrides(max_bg_threads=max(1, args.threads))

    LOGGER.info(
        "Working directory: %s | database: %s | TMDb key: %s",
        working_dir,
        config.db_path,
        redact_secret(config.tmdb.api_key),
    )

    token = CancellationToken()
    _install_signal_handlers(token)
    try:
        with MovieImporter(
            config,
            chooser=prompt_chooser if args.interactive else None,
            cancellation=token,
        ) as importer:
            root = Path(args.directory).expanduser()
            if args.series:
                importer.import_series_from_directory(root)
            else:
                importer.import_from_directory(root)
    except Exception as exc:
        LOGGER.exception("Import aborted: %s", exc)
        return EXIT_ERROR

    summary = importer.reporter.summary()
    print(
        f"Imported: {summary.imported} | skipped: {summary.skipped} | failed: {summary.failed} | "
        f"already present: {summary.already_present} | images: {summary.downloads} | "
        f"checksums: {summary.checksums}"
    )
    for message in summary.warnings:
        print(f"WARNING: {message}")
    for message in summary.errors:
        print(f"ERROR: {message}")
    if token.is_set() or summary.cancelled:
        return EXIT_INTERRUPTED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
