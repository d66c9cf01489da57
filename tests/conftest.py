"""Shared test fixtures: synthetic videos and a skip marker for ffmpeg-backed tests."""

import os
import shutil
import tempfile

import numpy as np
import pytest

requires_ffmpeg = pytest.mark.skipif(
    shutil.which("ffmpeg") is None or shutil.which("ffprobe") is None,
    reason="ffmpeg/ffprobe not installed",
)


@pytest.fixture(scope="session")
def tmp_video_dir():
    """Session-scoped temp directory for synthetic test videos."""
    with tempfile.TemporaryDirectory(prefix="loopmaker_test_") as d:
        yield d


def _make_video(path: str, duration: float, fps: float, size: tuple[int, int], make_frame, gop: int = 12):
    """Helper to create a synthetic video using MoviePy.

    A short GOP keeps keyframes every half second so stream-copy cuts land
    where the tests expect them.
    """
    from moviepy import VideoClip

    clip = VideoClip(make_frame, duration=duration).with_fps(fps)
    clip = clip.resized(size)
    clip.write_videofile(
        path,
        codec="libx264",
        audio=False,
        ffmpeg_params=["-g", str(gop)],
        logger=None,
    )
    clip.close()


@pytest.fixture(scope="session")
def gradient_video(tmp_video_dir):
    """Brightness ramps from dark to light over 4s @ 24fps, 160x120.

    Every frame differs from its neighbours, so reversed and blended
    clips are distinguishable from the source.
    """
    path = os.path.join(tmp_video_dir, "gradient.mp4")

    def make_frame(t):
        level = int(20 + (t / 4.0) * 200)
        frame = np.zeros((120, 160, 3), dtype=np.uint8)
        frame[:, :] = [level, 255 - level, 120]
        return frame

    _make_video(path, duration=4.0, fps=24, size=(160, 120), make_frame=make_frame)
    return path


@pytest.fixture(scope="session")
def short_video(tmp_video_dir):
    """Uniform green video. 2s @ 24fps, 160x120."""
    path = os.path.join(tmp_video_dir, "short.mp4")

    def make_frame(t):
        frame = np.zeros((120, 160, 3), dtype=np.uint8)
        frame[:, :] = [40, 200, 40]
        return frame

    _make_video(path, duration=2.0, fps=24, size=(160, 120), make_frame=make_frame)
    return path


@pytest.fixture
def not_a_video(tmp_path):
    path = tmp_path / "not_a_video.mp4"
    path.write_text("this is not a video")
    return str(path)
