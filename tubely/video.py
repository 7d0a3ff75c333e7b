"""Inspecting and preparing video files with ffprobe and ffmpeg."""

from __future__ import annotations

import json
import subprocess

LANDSCAPE = "16:9"
PORTRAIT = "9:16"
OTHER = "other"


class VideoProcessingError(Exception):
    """An external video tool failed or produced output that cannot be used."""


def is_horizontal_ratio(value: float) -> bool:
    """Tell whether width/height is close to 16/9."""
    return 1.77 < value < 1.78


def is_vertical_ratio(value: float) -> bool:
    """Tell whether width/height is close to 9/16."""
    return 0.562 < value < 0.564


def aspect_ratio_from_probe(probe_output: str | bytes) -> str:
    """Classify the first stream of ffprobe JSON output as 16:9, 9:16 or other."""
    try:
        data = json.loads(probe_output)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise VideoProcessingError(f"could not parse ffprobe output: {exc}") from exc

    streams = data.get("streams") if isinstance(data, dict) else None
    if not streams:
        raise VideoProcessingError("no video streams found")

    first = streams[0]
    width = first.get("width") or 0
    height = first.get("height") or 0
    if height == 0:
        return OTHER

    ratio = width / height
    if is_horizontal_ratio(ratio):
        return LANDSCAPE
    if is_vertical_ratio(ratio):
        return PORTRAIT
    return OTHER


def get_video_aspect_ratio(file_path: str) -> str:
    """Probe a video file and classify its aspect ratio."""
    cmd = [
        "ffprobe",
        "-v", "error",
        "-print_format", "json",
        "-show_streams",
        file_path,
    ]
    try:
        result = subprocess.run(cmd, check=True, stdout=subprocess.PIPE)
    except (OSError, subprocess.CalledProcessError) as exc:
        raise VideoProcessingError(f"ffprobe error: {exc}") from exc
    return aspect_ratio_from_probe(result.stdout)


def process_video_for_fast_start(file_path: str) -> str:
    """Rewrite the file with its index up front; return the new file's path."""
    out = file_path + ".processing"
    cmd = [
        "ffmpeg",
        "-i", file_path,
        "-c", "copy",
        "-movflags", "faststart",
        "-f", "mp4", out,
    ]
    try:
        subprocess.run(cmd, check=True)
    except (OSError, subprocess.CalledProcessError) as exc:
        raise VideoProcessingError(f"ffmpeg error: {exc}") from exc
    return out