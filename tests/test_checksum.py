import hashlib

import pytest

from movieimport.checksum import compute_sha256


def test_compute_sha256_matches_hashlib(tmp_path):
    payload = b"movie-bytes" * 50_000
    target = tmp_path / "movie.mkv"
    target.write_bytes(payload)
    chunks = []

    digest = compute_sha256(str(target), chunk=64 * 1024, on_chunk=lambda size, _elapsed: chunks.append(size))

    assert digest == hashlib.sha256(payload).hexdigest()
    assert sum(chunks) == len(payload)
    assert len(chunks) > 1


def test_compute_sha256_missing_file(tmp_path):
    with pytest.raises(OSError):
        compute_sha256(str(tmp_path / "missing.mkv"))
