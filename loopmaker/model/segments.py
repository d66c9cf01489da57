"""SegmentSpec and SegmentPlan data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class SegmentRole(str, Enum):
    MAIN_BODY = "main_body"
    SEGMENT_BEFORE_START = "segment_before_start"
    SEGMENT_AFTER_START = "segment_after_start"
    CROSSFADE_BLEND = "crossfade_blend"
    FULL_COPY = "full_copy"


@dataclass(frozen=True)
class SegmentSpec:
    """One clip of the final loop, in source-time coordinates.

    For CROSSFADE_BLEND, source_start/source_duration describe the head
    boundary clip; the tail clip starts at ``duration - fade``.
    """

    role: SegmentRole
    source_start: float
    source_duration: float
    requires_reencode: bool

    @property
    def source_end(self) -> float:
        return self.source_start + self.source_duration


@dataclass
class SegmentPlan:
    """Segments in playback order."""

    segments: list[SegmentSpec] = field(default_factory=list)
    fade_duration: float = 0.0

    def __iter__(self):
        return iter(self.segments)

    def __len__(self) -> int:
        return len(self.segments)

    @property
    def roles(self) -> list[SegmentRole]:
        return [s.role for s in self.segments]

    @property
    def output_duration(self) -> float:
        """Expected duration of the assembled loop."""
        return sum(s.source_duration for s in self.segments)

    def append(self, segment: SegmentSpec) -> None:
        if segment.source_duration <= 0:
            raise ValueError(f"Segment {segment.role.value} has non-positive duration")
        self.segments.append(segment)
