"""Final loop assembly: stream-copy concatenation with a re-encode fallback."""

from __future__ import annotations

import logging
import os

from loopmaker.errors import AssemblyError, ConcatenationError
from loopmaker.media.transcoder import ConcatMode, FFmpegTranscoder

logger = logging.getLogger(__name__)


def _non_empty(path: str) -> bool:
    return os.path.isfile(path) and os.path.getsize(path) > 0


def assemble_clips(
    clips: list[str],
    output_path: str,
    transcoder: FFmpegTranscoder,
    copy_first: bool = True,
    cancel_flag: callable | None = None,
) -> str:
    """Concatenate clips in playback order into *output_path*.

    Tries a stream copy first; if that fails or leaves an empty file,
    retries exactly once with a full re-encode.

    Args:
        clips: Ordered clip paths.
        output_path: Where the single output file is written.
        transcoder: Transcoder used for both attempts.
        copy_first: Set False to go straight to the re-encode attempt.
        cancel_flag: Optional callable() -> bool for cancellation.

    Returns:
        The output_path on success.

    Raises:
        AssemblyError: If no clips were given or every attempt failed.
    """
    if not clips:
        raise AssemblyError("No clips to assemble")

    modes = [ConcatMode.COPY, ConcatMode.REENCODE] if copy_first else [ConcatMode.REENCODE]
    last_error: ConcatenationError | None = None

    for mode in modes:
        try:
            transcoder.concatenate(clips, output_path, mode=mode, cancel_flag=cancel_flag)
        except ConcatenationError as e:
            last_error = e
        else:
            if _non_empty(output_path):
                logger.info("Assembled %d clip(s) into %s (%s)", len(clips), output_path, mode.value)
                return output_path
            last_error = ConcatenationError(f"Concatenation ({mode.value}) produced an empty file")

        if mode == ConcatMode.COPY and len(modes) > 1:
            logger.warning("Fast concatenation failed, retrying with re-encoding: %s", last_error)

    raise AssemblyError(
        f"Could not assemble {len(clips)} clip(s)",
        detail=str(last_error) if last_error else "",
    )
