"""Tests for ffprobe metadata extraction."""

import pytest

from loopmaker.errors import ProbeError
from loopmaker.media.ffprobe import (
    extract_metadata,
    get_video_stream,
    parse_frame_rate,
    probe,
    stream_duration,
    stream_frame_rate,
)
from tests.conftest import requires_ffmpeg


class TestParseFrameRate:
    def test_ntsc_rational(self):
        assert parse_frame_rate("30000/1001") == pytest.approx(29.97, abs=0.001)

    def test_integer_rational(self):
        assert parse_frame_rate("24/1") == 24.0

    def test_plain_number(self):
        assert parse_frame_rate("25") == 25.0
        assert parse_frame_rate(23.976) == pytest.approx(23.976)

    @pytest.mark.parametrize("value", ["0/0", "30/0", "0/1", "abc", "", None, "-24/1"])
    def test_unusable_raises(self, value):
        with pytest.raises(ProbeError):
            parse_frame_rate(value)


class TestStreamFrameRate:
    def test_prefers_r_frame_rate(self):
        assert stream_frame_rate({"r_frame_rate": "24/1", "avg_frame_rate": "25/1"}) == 24.0

    def test_falls_back_to_avg_frame_rate(self):
        assert stream_frame_rate({"r_frame_rate": "0/0", "avg_frame_rate": "25/1"}) == 25.0

    def test_missing_raises(self):
        with pytest.raises(ProbeError, match="missing"):
            stream_frame_rate({})


class TestStreamDuration:
    def test_format_duration(self):
        assert stream_duration({"format": {"duration": "10.5"}}, {}) == 10.5

    def test_stream_duration_when_format_missing(self):
        assert stream_duration({"format": {}}, {"duration": "3.25"}) == 3.25

    def test_nb_frames_fallback(self):
        assert stream_duration({}, {"nb_frames": "48"}, frame_rate=24.0) == 2.0

    def test_tag_duration_fallback(self):
        stream = {"tags": {"DURATION": "00:01:02.500000000"}}
        assert stream_duration({}, stream) == pytest.approx(62.5)

    def test_skips_non_positive_values(self):
        data = {"format": {"duration": "0"}}
        assert stream_duration(data, {"duration": "N/A", "nb_frames": "24"}, 24.0) == 1.0

    def test_nothing_usable_raises(self):
        with pytest.raises(ProbeError, match="duration"):
            stream_duration({"format": {"duration": "nan"}}, {})


class TestGetVideoStream:
    def test_no_video_stream_raises(self):
        with pytest.raises(ProbeError, match="No video stream"):
            get_video_stream({"streams": [{"codec_type": "audio"}]})

    def test_empty_streams_raises(self):
        with pytest.raises(ProbeError, match="No video stream"):
            get_video_stream({"streams": []})

    def test_first_video_stream(self):
        data = {"streams": [{"codec_type": "audio"}, {"codec_type": "video", "index": 1}]}
        assert get_video_stream(data)["index"] == 1


class TestProbe:
    def test_file_not_found(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="not found"):
            probe(str(tmp_path / "nonexistent.mp4"))

    def test_missing_ffprobe_binary(self, not_a_video):
        with pytest.raises(ProbeError, match="ffprobe not found"):
            probe(not_a_video, ffprobe="/nonexistent/ffprobe")

    @requires_ffmpeg
    def test_invalid_file(self, not_a_video):
        with pytest.raises(ProbeError):
            probe(not_a_video)

    @requires_ffmpeg
    def test_probe_returns_dict(self, short_video):
        data = probe(short_video)
        assert "streams" in data
        assert "format" in data


@requires_ffmpeg
class TestExtractMetadata:
    def test_synthetic_video(self, gradient_video):
        asset = extract_metadata(gradient_video)
        assert asset.path == gradient_video
        assert asset.duration == pytest.approx(4.0, abs=0.2)
        assert asset.frame_rate == pytest.approx(24.0, abs=0.01)
        assert asset.width == 160
        assert asset.height == 120
        assert asset.codec == "h264"
        assert asset.pixel_format == "yuv420p"

    def test_invalid_file_raises_probe_error(self, not_a_video):
        with pytest.raises(ProbeError):
            extract_metadata(not_a_video)
