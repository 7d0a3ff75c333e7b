import json
import subprocess
from unittest.mock import patch

import pytest

from tubely.video import (
    VideoProcessingError,
    aspect_ratio_from_probe,
    get_video_aspect_ratio,
    is_horizontal_ratio,
    is_vertical_ratio,
    process_video_for_fast_start,
)


def _probe(width, height):
    return json.dumps({"streams": [{"width": width, "height": height}]})


def test_horizontal_ratio_bounds():
    assert is_horizontal_ratio(16 / 9)
    assert not is_horizontal_ratio(1.77)
    assert not is_horizontal_ratio(1.78)


def test_vertical_ratio_bounds():
    assert is_vertical_ratio(9 / 16)
    assert not is_vertical_ratio(0.562)
    assert not is_vertical_ratio(0.564)


@pytest.mark.parametrize(
    "width, height, expected",
    [
        (1920, 1080, "16:9"),
        (1080, 1920, "9:16"),
        (1000, 1000, "other"),
        (640, 0, "other"),
    ],
)
def test_aspect_ratio_from_probe(width, height, expected):
    assert aspect_ratio_from_probe(_probe(width, height)) == expected


def test_aspect_ratio_uses_first_stream_only():
    output = json.dumps(
        {"streams": [{"width": 1080, "height": 1920}, {"width": 1920, "height": 1080}]}
    )
    assert aspect_ratio_from_probe(output.encode()) == "9:16"


def test_aspect_ratio_no_streams():
    with pytest.raises(VideoProcessingError, match="no video streams found"):
        aspect_ratio_from_probe(json.dumps({"streams": []}))


def test_aspect_ratio_bad_json():
    with pytest.raises(VideoProcessingError, match="could not parse ffprobe output"):
        aspect_ratio_from_probe("not json")


@patch("tubely.video.subprocess.run")
def test_get_video_aspect_ratio_runs_ffprobe(mock_run):
    mock_run.return_value = subprocess.CompletedProcess(
        args=[], returncode=0, stdout=_probe(1920, 1080).encode()
    )
    assert get_video_aspect_ratio("clip.mp4") == "16:9"
    cmd = mock_run.call_args.args[0]
    assert cmd[0] == "ffprobe"
    assert cmd[-1] == "clip.mp4"


@patch("tubely.video.subprocess.run")
def test_get_video_aspect_ratio_failure(mock_run):
    mock_run.side_effect = subprocess.CalledProcessError(1, ["ffprobe"])
    with pytest.raises(VideoProcessingError, match="ffprobe error"):
        get_video_aspect_ratio("clip.mp4")


@patch("tubely.video.subprocess.run")
def test_process_video_for_fast_start(mock_run):
    mock_run.return_value = subprocess.CompletedProcess(args=[], returncode=0)
    out = process_video_for_fast_start("/tmp/clip.mp4")
    assert out == "/tmp/clip.mp4.processing"
    cmd = mock_run.call_args.args[0]
    assert cmd[0] == "ffmpeg"
    assert "faststart" in cmd
    assert cmd[-1] == out


@patch("tubely.video.subprocess.run")
def test_process_video_for_fast_start_failure(mock_run):
    mock_run.side_effect = FileNotFoundError("ffmpeg")
    with pytest.raises(VideoProcessingError, match="ffmpeg error"):
        process_video_for_fast_start("/tmp/clip.mp4")