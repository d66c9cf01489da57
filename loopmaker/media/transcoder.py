"""ffmpeg-backed clip operations: reverse, extract, blend, concatenate."""

from __future__ import annotations

import logging
import subprocess
import time
from enum import Enum
from fractions import Fraction
from pathlib import Path

from loopmaker.config import Settings
from loopmaker.errors import (
    BlendError,
    CancelledError,
    ConcatenationError,
    ExtractionError,
    TranscodeError,
)
from loopmaker.media.ffprobe import extract_metadata
from loopmaker.model.asset import VideoAsset

logger = logging.getLogger(__name__)

INSTALL_HINT = "Install FFmpeg: brew install ffmpeg (macOS) or sudo apt install ffmpeg (Linux)"
STDERR_TAIL_CHARS = 2000


class ConcatMode(str, Enum):
    COPY = "copy"
    REENCODE = "reencode"


def format_seconds(value: float) -> str:
    """Render seconds for an ffmpeg argument without float noise (5.0 -> "5")."""
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    return text or "0"


def format_rate(rate: float) -> str:
    """Render a frame rate as an exact rational (29.97002997 -> "30000/1001")."""
    frac = Fraction(rate).limit_denominator(1001)
    if frac.denominator == 1:
        return str(frac.numerator)
    return f"{frac.numerator}/{frac.denominator}"


def _escape_concat_path(path: str) -> str:
    return path.replace("'", "'\\''")


class FFmpegTranscoder:
    """Runs ffmpeg/ffprobe as blocking subprocesses.

    Every operation writes to an explicit output path and returns it.
    Long-running calls poll *cancel_flag* and terminate ffmpeg when it
    returns True.
    """

    def __init__(
        self,
        ffmpeg: str = "ffmpeg",
        ffprobe: str = "ffprobe",
        encoder_args: list[str] | None = None,
        timeout: float | None = None,
        probe_timeout: float = 10,
        poll_interval: float = 0.1,
    ):
        self.ffmpeg = ffmpeg
        self.ffprobe = ffprobe
        self.encoder_args = encoder_args or Settings().encoder_args
        self.timeout = timeout
        self.probe_timeout = probe_timeout
        self.poll_interval = poll_interval

    @classmethod
    def from_settings(cls, settings: Settings) -> "FFmpegTranscoder":
        return cls(
            ffmpeg=settings.resolved_ffmpeg,
            ffprobe=settings.resolved_ffprobe,
            encoder_args=settings.encoder_args,
            timeout=settings.resolved_transcode_timeout,
            probe_timeout=settings.probe_timeout_sec,
        )

    # ---- process handling ----

    def _base_cmd(self) -> list[str]:
        return [self.ffmpeg, "-hide_banner", "-nostdin", "-loglevel", "error", "-y"]

    @staticmethod
    def _terminate(proc: subprocess.Popen) -> None:
        proc.terminate()
        try:
            proc.communicate(timeout=5)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.communicate()

    def run(
        self,
        cmd: list[str],
        error_cls: type[TranscodeError],
        message: str,
        cancel_flag: callable | None = None,
    ) -> str:
        """Run *cmd* to completion and return its stdout.

        Raises:
            error_cls: If the binary is missing, exits non-zero or times out.
            CancelledError: If cancel_flag() turned True while it ran.
        """
        if cancel_flag and cancel_flag():
            raise CancelledError(f"Cancelled before: {message}")

        logger.debug("Running: %s", " ".join(cmd))
        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
        except FileNotFoundError:
            raise error_cls(f"{message}: {cmd[0]} not found. {INSTALL_HINT}", command=cmd)

        deadline = time.monotonic() + self.timeout if self.timeout else None
        while True:
            try:
                stdout, stderr = proc.communicate(timeout=self.poll_interval)
                break
            except subprocess.TimeoutExpired:
                if cancel_flag and cancel_flag():
                    logger.info("Cancelling: %s", message)
                    self._terminate(proc)
                    raise CancelledError(f"Cancelled during: {message}")
                if deadline is not None and time.monotonic() > deadline:
                    self._terminate(proc)
                    raise error_cls(f"{message}: timed out after {self.timeout}s", command=cmd)

        if proc.returncode != 0:
            detail = (stderr or "").strip()[-STDERR_TAIL_CHARS:] or f"exit code {proc.returncode}"
            raise error_cls(message, detail, command=cmd)
        return stdout

    # ---- primitives ----

    def probe(self, path: str) -> VideoAsset:
        return extract_metadata(path, ffprobe=self.ffprobe, timeout=self.probe_timeout)

    def reverse(self, source: str, output: str, cancel_flag: callable | None = None) -> str:
        """Write *source* played backwards (video only, re-encoded)."""
        cmd = self._base_cmd() + [
            "-i", source,
            "-vf", "reverse",
            "-an",
            *self.encoder_args,
            output,
        ]
        self.run(cmd, ExtractionError, "Reversing clip failed", cancel_flag)
        return output

    def extract(
        self,
        source: str,
        output: str,
        start: float,
        duration: float,
        frame_rate: float | None = None,
        reencode: bool = True,
        cancel_flag: callable | None = None,
    ) -> str:
        """Cut [start, start + duration) out of *source*.

        Re-encoded cuts are frame accurate and normalized to the shared
        encoder settings; stream-copied cuts snap to keyframes.
        """
        # anything that renders as "0" would reach ffmpeg as -t 0
        if duration <= 0 or format_seconds(duration) == "0":
            raise ExtractionError(f"Refusing to extract empty range ({duration}s at {start}s)")

        cmd = self._base_cmd() + [
            "-ss", format_seconds(start),
            "-i", source,
            "-t", format_seconds(duration),
            "-an",
        ]
        if reencode:
            if frame_rate:
                cmd += ["-r", format_rate(frame_rate)]
            cmd += self.encoder_args
        else:
            cmd += ["-c", "copy", "-avoid_negative_ts", "make_zero"]
        cmd.append(output)

        self.run(
            cmd,
            ExtractionError,
            f"Extracting {format_seconds(duration)}s at {format_seconds(start)}s failed",
            cancel_flag,
        )
        return output

    def blend(
        self,
        clip_a: str,
        clip_b: str,
        output: str,
        fade_duration: float,
        frame_rate: float,
        transition: str = "fade",
        cancel_flag: callable | None = None,
    ) -> str:
        """Fade *clip_a* into *clip_b* over *fade_duration*, starting at offset 0."""
        pix_fmt = self._pixel_format()
        rate = format_rate(frame_rate)
        graph = (
            f"[0:v]format={pix_fmt},fps={rate}[v0];"
            f"[1:v]format={pix_fmt},fps={rate}[v1];"
            f"[v0][v1]xfade=transition={transition}"
            f":duration={format_seconds(fade_duration)}:offset=0[out]"
        )
        cmd = self._base_cmd() + [
            "-i", clip_a,
            "-i", clip_b,
            "-filter_complex", graph,
            "-map", "[out]",
            "-an",
            "-r", rate,
            *self.encoder_args,
            output,
        ]
        self.run(cmd, BlendError, "Crossfade blend failed", cancel_flag)
        return output

    def concatenate(
        self,
        clips: list[str],
        output: str,
        mode: ConcatMode = ConcatMode.COPY,
        cancel_flag: callable | None = None,
    ) -> str:
        """Join *clips* in order.

        COPY uses the concat demuxer with stream copy and needs identical
        codec parameters; REENCODE uses the concat filter.
        """
        if not clips:
            raise ConcatenationError("No clips to concatenate")

        if mode == ConcatMode.COPY:
            list_file = Path(output).with_suffix(".concat.txt")
            list_file.write_text(
                "".join(f"file '{_escape_concat_path(str(Path(c).resolve()))}'\n" for c in clips)
            )
            cmd = self._base_cmd() + [
                "-f", "concat",
                "-safe", "0",
                "-i", str(list_file),
                "-an",
                "-c", "copy",
                output,
            ]
        else:
            cmd = self._base_cmd()
            for clip in clips:
                cmd += ["-i", clip]
            inputs = "".join(f"[{i}:v]" for i in range(len(clips)))
            cmd += [
                "-filter_complex", f"{inputs}concat=n={len(clips)}:v=1:a=0[out]",
                "-map", "[out]",
                "-an",
                *self.encoder_args,
                output,
            ]

        self.run(cmd, ConcatenationError, f"Concatenation ({mode.value}) failed", cancel_flag)
        return output

    def _pixel_format(self) -> str:
        args = self.encoder_args
        if "-pix_fmt" in args:
            return args[args.index("-pix_fmt") + 1]
        return "yuv420p"
