"""Failure taxonomy for the movie import pipeline."""
from __future__ import annotations

from typing import Optional

KIND_PARSE = "parse"
KIND_NOT_FOUND = "not_found"
KIND_RATE_LIMITED = "rate_limited"
KIND_NETWORK = "network"
KIND_HTTP = "http_error"
KIND_INVALID = "invalid_response"
KIND_TOOL = "tool"
KIND_PERSISTENCE = "persistence"
KIND_UNEXPECTED = "unexpected"


class MovieImportError(Exception):
    """Base class for per-file failures; ``kind`` names the category."""

    kind = KIND_UNEXPECTED

    def __init__(self, message: str, *, path: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.path = path


class FilenameParseError(MovieImportError):
    kind = KIND_PARSE


class NotFoundError(MovieImportError):
    kind = KIND_NOT_FOUND


class RateLimitedError(MovieImportError):
    kind = KIND_RATE_LIMITED


class TransientNetworkError(MovieImportError):
    kind = KIND_NETWORK


class ToolInvocationError(MovieImportError):
    """An external tool such as mediainfo failed; ``reason`` is its failure code."""

    kind = KIND_TOOL

    def __init__(self, message: str, *, path: Optional[str] = None, reason: str = "error") -> None:
        super().__init__(message, path=path)
        self.reason = reason


class PersistenceError(MovieImportError):
    kind = KIND_PERSISTENCE


class ConfigError(RuntimeError):
    """Raised at startup when the importer cannot be configured."""


__all__ = [
    "ConfigError",
    "FilenameParseError",
    "KIND_HTTP",
    "KIND_INVALID",
    "KIND_NETWORK",
    "KIND_NOT_FOUND",
    "KIND_PARSE",
    "KIND_PERSISTENCE",
    "KIND_RATE_LIMITED",
    "KIND_TOOL",
    "KIND_UNEXPECTED",
    "MovieImportError",
    "NotFoundError",
    "PersistenceError",
    "RateLimitedError",
    "ToolInvocationError",
    "TransientNetworkError",
]
