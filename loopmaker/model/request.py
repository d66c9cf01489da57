"""Technique and LoopRequest data models."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

from loopmaker.errors import ValidationError


class Technique(str, Enum):
    REVERSE = "reverse"
    CROSSFADE = "crossfade"

    @classmethod
    def parse(cls, value: "Technique | str | None") -> "Technique":
        """Return the matching technique, falling back to REVERSE for anything unknown."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            for member in cls:
                if member.value == normalized:
                    return member
        return cls.REVERSE


def _non_negative(name: str, value) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(number) or number < 0:
        raise ValidationError(f"{name} must be a finite number >= 0, got {value!r}")
    return number


@dataclass
class LoopRequest:
    technique: Technique = Technique.REVERSE
    fade_duration: float = 0.5
    start_second: float = 0.0

    def __post_init__(self) -> None:
        self.technique = Technique.parse(self.technique)
        self.fade_duration = _non_negative("fade_duration", self.fade_duration)
        self.start_second = _non_negative("start_second", self.start_second)

    @classmethod
    def from_mapping(cls, data: dict) -> "LoopRequest":
        """Build a request from loosely typed form/CLI values (strings allowed)."""
        kwargs = {}
        if data.get("technique") is not None:
            kwargs["technique"] = data["technique"]
        if data.get("fade_duration") is not None:
            kwargs["fade_duration"] = data["fade_duration"]
        if data.get("start_second") is not None:
            kwargs["start_second"] = data["start_second"]
        return cls(**kwargs)
