"""Minimal mediainfo wrapper used to read a movie file's technical data."""
from __future__ import annotations

import json
import shutil
import subprocess
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

REASON_MISSING_TOOL = "missing_tool"
REASON_TIMEOUT = "probe_timeout"
REASON_ERROR = "probe_error"
REASON_INVALID = "invalid_output"

UNKNOWN_ASPECT_RATIO = "unknown"

ASPECT_RATIO_MAP: Dict[str, str] = {
    "1.33:1": "1.33",
    "4:3": "1.33",
    "1.37:1": "1.33",
    "1.66:1": "1.66",
    "1.78:1": "1.78",
    "16:9": "1.78",
    "1.85:1": "1.85",
    "2.00:1": "2.00",
    "2.20:1": "2.20",
    "2.35:1": "2.35",
    "2.39:1": "2.39",
    "2.40:1": "2.39",
}


@dataclass(slots=True)
class TechnicalInfo:
    file_format: Optional[str]
    duration_minutes: Optional[int]
    file_size_mb: Optional[int]
    video_codec: Optional[str]
    video_bitrate_kbps: Optional[int]
    frame_rate: Optional[float]
    aspect_ratio: str
    width: Optional[int]
    height: Optional[int]


@dataclass(slots=True)
class ProbeResult:
    ok: bool
    data: Optional[TechnicalInfo] = None
    error: Optional[str] = None
    reason: Optional[str] = None


def mediainfo_available(binary: str = "mediainfo") -> bool:
    """Return True when the mediainfo CLI is available on PATH."""

    return shutil.which(binary) is not None


def normalize_aspect_ratio(value: Optional[str]) -> str:
    if value is None:
        return UNKNOWN_ASPECT_RATIO
    return ASPECT_RATIO_MAP.get(str(value).strip(), UNKNOWN_ASPECT_RATIO)


def _safe_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _safe_int(value: Any) -> Optional[int]:
    number = _safe_float(value)
    return int(number) if number is not None else None


def _rounded(value: Any, divisor: float) -> Optional[int]:
    number = _safe_float(value)
    if number is None:
        return None
    return int(round(number / divisor))


def _track(tracks: List[Any], kind: str) -> Optional[Mapping[str, Any]]:
    for track in tracks:
        if isinstance(track, dict) and track.get("@type") == kind:
            return track
    return None


def _aspect_ratio(video: Mapping[str, Any]) -> str:
    # "-f" output carries both the numeric ratio and a display string.
    for key in ("DisplayAspectRatio_String", "DisplayAspectRatio"):
        normalized = normalize_aspect_ratio(video.get(key))
        if normalized != UNKNOWN_ASPECT_RATIO:
            return normalized
    return UNKNOWN_ASPECT_RATIO


def parse_mediainfo_output(text: str) -> Optional[TechnicalInfo]:
    """Parse ``mediainfo --Output=JSON`` text; ``None`` if it lacks the expected tracks."""

    try:
        parsed = json.loads(text or "")
    except json.JSONDecodeError:
        return None
    media = parsed.get("media") if isinstance(parsed, dict) else None
    if not isinstance(media, dict):
        return None
    tracks = media.get("track") if isinstance(media.get("track"), list) else []
    general = _track(tracks, "General")
    video = _track(tracks, "Video")
    if general is None or video is None:
        return None

    frame_rate = _safe_float(video.get("FrameRate"))
    return TechnicalInfo(
        file_format=str(general["Format"]) if general.get("Format") else None,
        duration_minutes=_rounded(general.get("Duration"), 60.0),
        file_size_mb=_rounded(general.get("FileSize"), 1024.0 * 1024.0),
        video_codec=str(video["Format"]) if video.get("Format") else None,
        video_bitrate_kbps=_rounded(video.get("BitRate"), 1000.0),
        frame_rate=round(frame_rate, 3) if frame_rate is not None else None,
        aspect_ratio=_aspect_ratio(video),
        width=_safe_int(video.get("Width")),
        height=_safe_int(video.get("Height")),
    )


def run_mediainfo(path: str, *, binary: str = "mediainfo", timeout: float = 60.0) -> ProbeResult:
    """Execute mediainfo for *path* and return its normalised technical data."""

    mediainfo_path = shutil.which(binary)
    if not mediainfo_path:
        return ProbeResult(ok=False, error=f"{binary} not found", reason=REASON_MISSING_TOOL)

    cmd = [mediainfo_path, "--Output=JSON", "-f", path]
    try:
        proc = subprocess.run(
            cmd,
            check=False,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            timeout=max(1.0, float(timeout)),
        )
    except subprocess.TimeoutExpired:
        return ProbeResult(ok=False, error="mediainfo timeout", reason=REASON_TIMEOUT)
    except FileNotFoundError:
        return ProbeResult(ok=False, error=f"{binary} not found", reason=REASON_MISSING_TOOL)
    except OSError as exc:
        return ProbeResult(ok=False, error=f"mediainfo failed: {exc}", reason=REASON_ERROR)

    if proc.returncode != 0:
        error_msg = proc.stderr.strip() or proc.stdout.strip() or "mediainfo error"
        return ProbeResult(ok=False, error=error_msg, reason=REASON_ERROR)

    data = parse_mediainfo_output(proc.stdout)
    if data is None:
        return ProbeResult(ok=False, error="unexpected mediainfo output", reason=REASON_INVALID)
    return ProbeResult(ok=True, data=data)


__all__ = [
    "ASPECT_RATIO_MAP",
    "ProbeResult",
    "TechnicalInfo",
    "UNKNOWN_ASPECT_RATIO",
    "mediainfo_available",
    "normalize_aspect_ratio",
    "parse_mediainfo_output",
    "run_mediainfo",
]
