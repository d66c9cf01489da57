"""Video metadata extraction via ffprobe."""

from __future__ import annotations

import json
import logging
import math
import subprocess
from fractions import Fraction
from pathlib import Path

from loopmaker.errors import ProbeError
from loopmaker.model.asset import VideoAsset

logger = logging.getLogger(__name__)


def probe(video_path: str, ffprobe: str = "ffprobe", timeout: float = 10) -> dict:
    """Run ffprobe and return parsed JSON output for all streams and the format.

    Raises:
        FileNotFoundError: If video_path does not exist.
        ProbeError: If ffprobe is missing, fails, or returns invalid JSON.
    """
    path = Path(video_path)
    if not path.exists():
        raise FileNotFoundError(f"Video file not found: {video_path}")

    cmd = [
        ffprobe,
        "-v", "error",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(path),
    ]
    logger.debug("Running: %s", " ".join(cmd))
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except FileNotFoundError:
        raise ProbeError(
            "ffprobe not found. Install FFmpeg: brew install ffmpeg (macOS) "
            "or sudo apt install ffmpeg (Linux)"
        )
    except subprocess.TimeoutExpired:
        raise ProbeError(f"ffprobe timed out after {timeout}s on {video_path}")

    if result.returncode != 0:
        raise ProbeError("ffprobe failed", result.stderr.strip())

    try:
        return json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise ProbeError(f"ffprobe returned invalid JSON: {e}")


def get_video_stream(data: dict) -> dict:
    """Extract the first video stream from ffprobe data.

    Raises:
        ProbeError: If no video stream found.
    """
    for stream in data.get("streams", []):
        if stream.get("codec_type") == "video":
            return stream
    raise ProbeError("No video stream found in file")


def parse_frame_rate(value) -> float:
    """Convert an ffprobe rate ("30000/1001", "25", 24.0) to a decimal.

    Raises:
        ProbeError: If the value is absent, malformed, zero or not finite.
    """
    if value is None or value == "":
        raise ProbeError("Frame rate missing from video stream")
    try:
        rate = float(Fraction(str(value).strip()))
    except (ValueError, ZeroDivisionError):
        raise ProbeError(f"Unparseable frame rate: {value!r}")
    if not math.isfinite(rate) or rate <= 0:
        raise ProbeError(f"Invalid frame rate: {value!r}")
    return rate


def _positive_float(raw) -> float | None:
    try:
        value = float(raw)
    except (ValueError, TypeError):
        return None
    if math.isfinite(value) and value > 0:
        return value
    return None


def _parse_tag_duration(tag: str) -> float | None:
    # "HH:MM:SS.microseconds", common in MKV/MTS containers
    try:
        hours, minutes, seconds = tag.split(":")
        return _positive_float(float(hours) * 3600 + float(minutes) * 60 + float(seconds))
    except ValueError:
        return None


def stream_frame_rate(stream: dict) -> float:
    """Frame rate of a video stream: r_frame_rate, then avg_frame_rate."""
    try:
        return parse_frame_rate(stream.get("r_frame_rate"))
    except ProbeError as first:
        avg = stream.get("avg_frame_rate")
        if avg is None:
            raise first
        return parse_frame_rate(avg)


def stream_duration(data: dict, stream: dict, frame_rate: float | None = None) -> float:
    """Duration in seconds from the first metadata field that holds one.

    Raises:
        ProbeError: If no field yields a finite positive number.
    """
    fmt = data.get("format", {})
    for source in (fmt, stream):
        duration = _positive_float(source.get("duration"))
        if duration is not None:
            return duration

    if frame_rate:
        nb_frames = _positive_float(stream.get("nb_frames"))
        if nb_frames is not None:
            return nb_frames / frame_rate

    for source in (stream, fmt):
        tag = source.get("tags", {}).get("DURATION")
        if tag:
            duration = _parse_tag_duration(tag)
            if duration is not None:
                return duration

    raise ProbeError("Could not determine video duration")


def extract_metadata(
    video_path: str,
    ffprobe: str = "ffprobe",
    timeout: float = 10,
) -> VideoAsset:
    """Probe a video and return a populated VideoAsset.

    Both duration and frame rate are required; failure to read either
    raises ProbeError rather than guessing a value.
    """
    data = probe(video_path, ffprobe=ffprobe, timeout=timeout)
    stream = get_video_stream(data)
    frame_rate = stream_frame_rate(stream)
    duration = stream_duration(data, stream, frame_rate)

    asset = VideoAsset(
        path=video_path,
        duration=duration,
        frame_rate=frame_rate,
        width=int(stream.get("width", 0)),
        height=int(stream.get("height", 0)),
        codec=stream.get("codec_name", ""),
        pixel_format=stream.get("pix_fmt", ""),
    )
    logger.info(
        "Probed %s: %.3fs @ %.3f fps, %dx%d %s",
        video_path, asset.duration, asset.frame_rate, asset.width, asset.height, asset.codec,
    )
    return asset
