import json
import subprocess
from types import SimpleNamespace
from unittest import mock

from movieimport import mediainfo
from movieimport.mediainfo import (
    UNKNOWN_ASPECT_RATIO,
    normalize_aspect_ratio,
    parse_mediainfo_output,
    run_mediainfo,
)


def _payload(**video_overrides):
    video = {
        "@type": "Video",
        "Format": "HEVC",
        "BitRate": "15432000",
        "FrameRate": "23.976024",
        "Width": "3840",
        "Height": "2160",
        "DisplayAspectRatio": "1.778",
        "DisplayAspectRatio_String": "16:9",
    }
    video.update(video_overrides)
    return json.dumps(
        {
            "media": {
                "track": [
                    {
                        "@type": "General",
                        "Format": "Matroska",
                        "Duration": "8880.512",
                        "FileSize": "4294967296",
                    },
                    video,
                    {"@type": "Audio", "Format": "DTS"},
                ]
            }
        }
    )


def test_aspect_ratio_table():
    assert normalize_aspect_ratio("2.40:1") == "2.39"
    assert normalize_aspect_ratio("16:9") == "1.78"
    assert normalize_aspect_ratio("4:3") == "1.33"
    assert normalize_aspect_ratio("3.1:1") == UNKNOWN_ASPECT_RATIO
    assert normalize_aspect_ratio(None) == UNKNOWN_ASPECT_RATIO


def test_parse_output_normalises_fields():
    info = parse_mediainfo_output(_payload())
    assert info is not None
    assert info.file_format == "Matroska"
    assert info.duration_minutes == 148
    assert info.file_size_mb == 4096
    assert info.video_codec == "HEVC"
    assert info.video_bitrate_kbps == 15432
    assert info.frame_rate == 23.976
    assert info.aspect_ratio == "1.78"
    assert (info.width, info.height) == (3840, 2160)


def test_unknown_ratio_string():
    info = parse_mediainfo_output(_payload(DisplayAspectRatio_String="1.9:1", DisplayAspectRatio="1.900"))
    assert info is not None
    assert info.aspect_ratio == UNKNOWN_ASPECT_RATIO


def test_parse_output_rejects_missing_tracks():
    assert parse_mediainfo_output("not json") is None
    assert parse_mediainfo_output(json.dumps({"media": {"track": [{"@type": "General"}]}})) is None
    assert parse_mediainfo_output(json.dumps([1, 2])) is None


def test_run_mediainfo_missing_tool():
    with mock.patch.object(mediainfo.shutil, "which", return_value=None):
        result = run_mediainfo("/movies/a.mkv")
    assert not result.ok
    assert result.reason == mediainfo.REASON_MISSING_TOOL


def test_run_mediainfo_success_and_failure():
    completed = SimpleNamespace(returncode=0, stdout=_payload(), stderr="")
    with mock.patch.object(mediainfo.shutil, "which", return_value="/usr/bin/mediainfo"), mock.patch.object(
        mediainfo.subprocess, "run", return_value=completed
    ) as run:
        result = run_mediainfo("/movies/a.mkv", timeout=5)
    assert result.ok
    assert result.data.height == 2160
    assert run.call_args[0][0] == ["/usr/bin/mediainfo", "--Output=JSON", "-f", "/movies/a.mkv"]

    failed = SimpleNamespace(returncode=1, stdout="", stderr="boom")
    with mock.patch.object(mediainfo.shutil, "which", return_value="/usr/bin/mediainfo"), mock.patch.object(
        mediainfo.subprocess, "run", return_value=failed
    ):
        result = run_mediainfo("/movies/a.mkv")
    assert not result.ok
    assert result.error == "boom"


def test_run_mediainfo_timeout():
    with mock.patch.object(mediainfo.shutil, "which", return_value="/usr/bin/mediainfo"), mock.patch.object(
        mediainfo.subprocess, "run", side_effect=subprocess.TimeoutExpired(cmd="mediainfo", timeout=1)
    ):
        result = run_mediainfo("/movies/a.mkv")
    assert not result.ok
    assert result.reason == mediainfo.REASON_TIMEOUT
