"""Settings dataclass with JSON persistence."""

import json
import os
from dataclasses import asdict, dataclass
from pathlib import Path

DEFAULT_CONFIG_DIR = Path.home() / ".loopmaker"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "settings.json"

FFMPEG_ENV = "LOOPMAKER_FFMPEG"
FFPROBE_ENV = "LOOPMAKER_FFPROBE"


@dataclass
class Settings:
    # External tools
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    probe_timeout_sec: float = 10.0
    transcode_timeout_sec: float = 0.0  # 0 = no limit

    # Re-encoded intermediates and fallback output
    video_codec: str = "libx264"
    preset: str = "fast"
    crf: int = 22
    pixel_format: str = "yuv420p"

    # Workspace
    workspace_dir: str | None = None  # None = system temp dir
    parallel_extraction: bool = False

    # Request defaults
    default_technique: str = "reverse"
    default_fade_duration: float = 0.5
    default_start_second: float = 0.0

    def save(self, path: Path | None = None) -> None:
        path = path or DEFAULT_CONFIG_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(asdict(self), indent=2))

    @classmethod
    def load(cls, path: Path | None = None) -> "Settings":
        path = path or DEFAULT_CONFIG_PATH
        if not path.exists():
            return cls()
        try:
            data = json.loads(path.read_text())
            return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})
        except (json.JSONDecodeError, TypeError):
            return cls()

    @property
    def resolved_ffmpeg(self) -> str:
        return os.environ.get(FFMPEG_ENV) or self.ffmpeg_path

    @property
    def resolved_ffprobe(self) -> str:
        return os.environ.get(FFPROBE_ENV) or self.ffprobe_path

    @property
    def resolved_transcode_timeout(self) -> float | None:
        if self.transcode_timeout_sec > 0:
            return self.transcode_timeout_sec
        return None

    @property
    def encoder_args(self) -> list[str]:
        """ffmpeg output options shared by every re-encoded clip."""
        return [
            "-c:v", self.video_codec,
            "-preset", self.preset,
            "-crf", str(self.crf),
            "-pix_fmt", self.pixel_format,
        ]
