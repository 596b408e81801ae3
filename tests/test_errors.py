from movieimport import errors


def test_every_error_carries_its_kind():
    expected = {
        errors.FilenameParseError: errors.KIND_PARSE,
        errors.NotFoundError: errors.KIND_NOT_FOUND,
        errors.RateLimitedError: errors.KIND_RATE_LIMITED,
        errors.TransientNetworkError: errors.KIND_NETWORK,
        errors.ToolInvocationError: errors.KIND_TOOL,
        errors.PersistenceError: errors.KIND_PERSISTENCE,
        errors.MovieImportError: errors.KIND_UNEXPECTED,
    }
    for cls, kind in expected.items():
        exc = cls("failed", path="/movies/a.mkv")
        assert isinstance(exc, errors.MovieImportError)
        assert exc.kind == kind
        assert exc.path == "/movies/a.mkv"
        assert str(exc) == "failed"


def test_tool_error_keeps_the_tool_reason():
    exc = errors.ToolInvocationError("mediainfo timed out", path="/movies/a.mkv", reason="timeout")
    assert exc.reason == "timeout"
    assert errors.ToolInvocationError("failed").reason == "error"
