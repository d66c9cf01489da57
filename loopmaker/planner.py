"""Segment planning for the crossfade technique.

All arithmetic is in source seconds. The plan lists the clips of the
final loop in playback order:

    fade == 0, start == 0   [FULL_COPY]
    fade == 0, start > 0    [AFTER_START, BEFORE_START]          stream copy
    fade > 0,  start == 0   [MAIN_BODY?, CROSSFADE_BLEND]        re-encoded
    fade > 0,  start > 0    [AFTER_START?, CROSSFADE_BLEND, BEFORE_START?]

The blend always fades the last ``fade`` seconds into the first ``fade``
seconds, so it sits exactly on the loop boundary whatever the start point.
"""

from __future__ import annotations

import math

from loopmaker.errors import ValidationError
from loopmaker.model.segments import SegmentPlan, SegmentRole, SegmentSpec

# Segments at or below this length are float noise and are omitted.
EPSILON = 1e-6


def validate(duration: float, fade_duration: float, start_second: float) -> None:
    """Reject parameter combinations that cannot produce a loop.

    Raises:
        ValidationError: For a non-positive duration, negative values, a
            fade of half the clip or more, or a start outside [0, duration).
    """
    for name, value in (
        ("duration", duration),
        ("fade_duration", fade_duration),
        ("start_second", start_second),
    ):
        if not math.isfinite(value):
            raise ValidationError(f"{name} must be finite, got {value}")
    if duration <= 0:
        raise ValidationError(f"Video duration must be positive, got {duration}")
    if fade_duration < 0:
        raise ValidationError(f"Fade duration must be >= 0, got {fade_duration}")
    if fade_duration > 0 and fade_duration >= duration / 2:
        raise ValidationError(
            f"Fade duration ({fade_duration}) must be less than half the video "
            f"duration ({duration / 2})"
        )
    if start_second < 0 or start_second >= duration:
        raise ValidationError(
            f"Start second ({start_second}) must be within [0, {duration})"
        )


def _segment(role: SegmentRole, start: float, end: float, reencode: bool) -> SegmentSpec | None:
    length = end - start
    if length <= EPSILON:
        return None
    return SegmentSpec(role=role, source_start=start, source_duration=length, requires_reencode=reencode)


def blend_tail_start(duration: float, fade_duration: float) -> float:
    """Source time where the tail boundary clip of the blend begins."""
    return duration - fade_duration


def plan(duration: float, fade_duration: float, start_second: float = 0.0) -> SegmentPlan:
    """Compute the ordered crossfade plan for a clip of *duration* seconds."""
    validate(duration, fade_duration, start_second)
    result = SegmentPlan(fade_duration=fade_duration)

    if fade_duration == 0:
        if start_second == 0:
            result.append(SegmentSpec(SegmentRole.FULL_COPY, 0.0, duration, False))
            return result
        for seg in (
            _segment(SegmentRole.SEGMENT_AFTER_START, start_second, duration, False),
            _segment(SegmentRole.SEGMENT_BEFORE_START, 0.0, start_second, False),
        ):
            if seg is not None:
                result.append(seg)
        return result

    tail_start = blend_tail_start(duration, fade_duration)
    blend = SegmentSpec(SegmentRole.CROSSFADE_BLEND, 0.0, fade_duration, True)

    if start_second == 0:
        main_body = _segment(SegmentRole.MAIN_BODY, fade_duration, tail_start, True)
        if main_body is not None:
            result.append(main_body)
        result.append(blend)
        return result

    after = _segment(SegmentRole.SEGMENT_AFTER_START, start_second, tail_start, True)
    before = _segment(SegmentRole.SEGMENT_BEFORE_START, fade_duration, start_second, True)
    if after is not None:
        result.append(after)
    result.append(blend)
    if before is not None:
        result.append(before)
    return result
