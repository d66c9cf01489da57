"""YAML job configuration for batch/CLI usage."""

from __future__ import annotations

import glob
import warnings
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from loopmaker.config import Settings

KNOWN_TOP_KEYS = {"inputs", "output", "loop", "encoding", "ffmpeg", "workspace"}
KNOWN_LOOP_KEYS = {"technique", "fade_duration", "start_second"}
KNOWN_ENCODING_KEYS = {"codec", "preset", "crf", "pixel_format"}
KNOWN_FFMPEG_KEYS = {"ffmpeg_path", "ffprobe_path", "timeout"}
KNOWN_WORKSPACE_KEYS = {"dir", "parallel"}


@dataclass
class JobConfig:
    """All fields are None by default; unset means 'use the default'."""

    inputs: list[str] = field(default_factory=list)
    output_path: str | None = None

    # Loop request
    technique: str | None = None
    fade_duration: float | None = None
    start_second: float | None = None

    # Encoding
    video_codec: str | None = None
    preset: str | None = None
    crf: int | None = None
    pixel_format: str | None = None

    # Tools
    ffmpeg_path: str | None = None
    ffprobe_path: str | None = None
    transcode_timeout: float | None = None

    # Workspace
    workspace_dir: str | None = None
    parallel_extraction: bool | None = None


def _expand_globs(patterns: list[str], base_dir: Path) -> list[str]:
    """Expand glob patterns relative to *base_dir*, returning unique absolute paths."""
    seen: set[str] = set()
    results: list[str] = []
    for pattern in patterns:
        if not Path(pattern).is_absolute():
            pattern = str(base_dir / pattern)
        for m in sorted(glob.glob(pattern)):
            resolved = str(Path(m).resolve())
            if resolved not in seen:
                seen.add(resolved)
                results.append(resolved)
    return results


def _warn_unknown_keys(keys: set[str], known: set[str], section: str) -> None:
    unknown = keys - known
    for key in sorted(unknown):
        warnings.warn(f"Unknown key '{key}' in {section} section of job config", stacklevel=3)


def _number(section: dict, section_name: str, key: str, kind=float):
    try:
        return kind(section[key])
    except (TypeError, ValueError):
        raise ValueError(f"'{section_name}.{key}' must be a number") from None


def _section(raw: dict, name: str, known: set[str]) -> dict | None:
    if name not in raw:
        return None
    value = raw[name]
    if not isinstance(value, dict):
        raise ValueError(f"'{name}' must be a mapping")
    _warn_unknown_keys(set(value.keys()), known, name)
    return value


def load_job_config(path: str | Path) -> JobConfig:
    """Load a YAML job file and return a JobConfig."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    raw = yaml.safe_load(path.read_text())
    if raw is None:
        return JobConfig()
    if not isinstance(raw, dict):
        raise ValueError(f"Job config must be a YAML mapping, got {type(raw).__name__}")

    _warn_unknown_keys(set(raw.keys()), KNOWN_TOP_KEYS, "top-level")

    base_dir = path.resolve().parent
    cfg = JobConfig()

    if "inputs" in raw:
        patterns = raw["inputs"]
        if isinstance(patterns, str):
            patterns = [patterns]
        if not isinstance(patterns, list):
            raise ValueError("'inputs' must be a string or list of strings")
        cfg.inputs = _expand_globs(patterns, base_dir)

    if "output" in raw:
        if not isinstance(raw["output"], str):
            raise ValueError("'output' must be a string")
        cfg.output_path = raw["output"]

    loop = _section(raw, "loop", KNOWN_LOOP_KEYS)
    if loop is not None:
        if "technique" in loop:
            cfg.technique = str(loop["technique"])
        if "fade_duration" in loop:
            cfg.fade_duration = _number(loop, "loop", "fade_duration")
        if "start_second" in loop:
            cfg.start_second = _number(loop, "loop", "start_second")

    enc = _section(raw, "encoding", KNOWN_ENCODING_KEYS)
    if enc is not None:
        cfg.video_codec = enc.get("codec")
        cfg.preset = enc.get("preset")
        if "crf" in enc:
            cfg.crf = _number(enc, "encoding", "crf", int)
        cfg.pixel_format = enc.get("pixel_format")

    tools = _section(raw, "ffmpeg", KNOWN_FFMPEG_KEYS)
    if tools is not None:
        cfg.ffmpeg_path = tools.get("ffmpeg_path")
        cfg.ffprobe_path = tools.get("ffprobe_path")
        if "timeout" in tools:
            cfg.transcode_timeout = _number(tools, "ffmpeg", "timeout")

    ws = _section(raw, "workspace", KNOWN_WORKSPACE_KEYS)
    if ws is not None:
        cfg.workspace_dir = ws.get("dir")
        if "parallel" in ws:
            cfg.parallel_extraction = bool(ws["parallel"])

    return cfg


def apply_config_to_settings(config: JobConfig, settings: Settings | None = None) -> Settings:
    """Overlay non-None JobConfig fields onto a Settings instance."""
    if settings is None:
        settings = Settings()

    field_map = {
        "technique": "default_technique",
        "fade_duration": "default_fade_duration",
        "start_second": "default_start_second",
        "video_codec": "video_codec",
        "preset": "preset",
        "crf": "crf",
        "pixel_format": "pixel_format",
        "ffmpeg_path": "ffmpeg_path",
        "ffprobe_path": "ffprobe_path",
        "transcode_timeout": "transcode_timeout_sec",
        "workspace_dir": "workspace_dir",
        "parallel_extraction": "parallel_extraction",
    }

    for config_field, settings_field in field_map.items():
        value = getattr(config, config_field)
        if value is not None:
            setattr(settings, settings_field, value)

    return settings
