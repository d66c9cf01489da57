"""VideoAsset data model."""

from dataclasses import dataclass


@dataclass
class VideoAsset:
    path: str
    duration: float = 0.0
    frame_rate: float = 0.0
    width: int = 0
    height: int = 0
    codec: str = ""
    pixel_format: str = ""
