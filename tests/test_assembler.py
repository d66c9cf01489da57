"""Tests for loop assembly and its copy -> re-encode fallback."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from loopmaker.assembler import assemble_clips
from loopmaker.errors import AssemblyError, CancelledError, ConcatenationError
from loopmaker.media.ffprobe import extract_metadata
from loopmaker.media.transcoder import ConcatMode, FFmpegTranscoder
from tests.conftest import requires_ffmpeg


def _transcoder(outcomes):
    """Mock transcoder whose concatenate() follows *outcomes* per call.

    Each outcome is "ok" (writes a non-empty file), "empty" (writes an
    empty file) or an exception instance to raise.
    """
    transcoder = MagicMock()
    remaining = list(outcomes)

    def concatenate(clips, output, mode=ConcatMode.COPY, cancel_flag=None):
        outcome = remaining.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        Path(output).write_bytes(b"" if outcome == "empty" else b"video")
        return output

    transcoder.concatenate.side_effect = concatenate
    return transcoder


def _modes(transcoder):
    return [c.kwargs["mode"] for c in transcoder.concatenate.call_args_list]


class TestAssembleClipsFallback:
    def test_fast_path_only_when_copy_succeeds(self, tmp_path):
        t = _transcoder(["ok"])
        out = str(tmp_path / "loop.mp4")
        assert assemble_clips(["a.mp4", "b.mp4"], out, t) == out
        assert _modes(t) == [ConcatMode.COPY]

    def test_copy_failure_retries_reencode_once(self, tmp_path):
        t = _transcoder([ConcatenationError("copy failed", "codec mismatch"), "ok"])
        out = str(tmp_path / "loop.mp4")
        assert assemble_clips(["a.mp4", "b.mp4"], out, t) == out
        assert _modes(t) == [ConcatMode.COPY, ConcatMode.REENCODE]

    def test_empty_copy_output_retries_reencode(self, tmp_path):
        t = _transcoder(["empty", "ok"])
        assemble_clips(["a.mp4"], str(tmp_path / "loop.mp4"), t)
        assert _modes(t) == [ConcatMode.COPY, ConcatMode.REENCODE]

    def test_both_attempts_failing_raises_assembly_error(self, tmp_path):
        t = _transcoder([
            ConcatenationError("copy failed"),
            ConcatenationError("reencode failed", "Invalid data found"),
        ])
        with pytest.raises(AssemblyError) as exc_info:
            assemble_clips(["a.mp4", "b.mp4"], str(tmp_path / "loop.mp4"), t)
        assert "Invalid data found" in exc_info.value.detail
        assert t.concatenate.call_count == 2

    def test_reencode_only(self, tmp_path):
        t = _transcoder([ConcatenationError("reencode failed")])
        with pytest.raises(AssemblyError):
            assemble_clips(["a.mp4"], str(tmp_path / "loop.mp4"), t, copy_first=False)
        assert _modes(t) == [ConcatMode.REENCODE]

    def test_cancellation_is_not_retried(self, tmp_path):
        t = _transcoder([CancelledError("stop")])
        with pytest.raises(CancelledError):
            assemble_clips(["a.mp4"], str(tmp_path / "loop.mp4"), t)
        assert t.concatenate.call_count == 1

    def test_no_clips_raises(self, tmp_path):
        with pytest.raises(AssemblyError, match="No clips"):
            assemble_clips([], str(tmp_path / "loop.mp4"), MagicMock())


@requires_ffmpeg
class TestAssembleRealClips:
    def test_compatible_clips_assemble(self, gradient_video, tmp_path):
        t = FFmpegTranscoder()
        a = t.extract(gradient_video, str(tmp_path / "a.mp4"), 0.0, 1.0, frame_rate=24.0)
        b = t.extract(gradient_video, str(tmp_path / "b.mp4"), 1.0, 1.0, frame_rate=24.0)
        out = assemble_clips([a, b], str(tmp_path / "loop.mp4"), t)
        meta = extract_metadata(out)
        assert meta.codec == "h264"
        assert meta.duration == pytest.approx(2.0, abs=0.2)
