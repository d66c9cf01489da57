"""Error types raised by the loop synthesis engine."""

from __future__ import annotations


class LoopMakerError(Exception):
    """Base class for every error the engine lets escape.

    Attributes:
        detail: Diagnostic text from the failing step (usually ffmpeg stderr).
    """

    def __init__(self, message: str, detail: str = ""):
        super().__init__(message)
        self.detail = detail

    def __str__(self) -> str:
        message = super().__str__()
        if self.detail:
            return f"{message}: {self.detail}"
        return message


class ValidationError(LoopMakerError):
    """Request parameters cannot produce a loop."""


class ProbeError(LoopMakerError):
    """Source metadata is missing or unreadable."""


class TranscodeError(LoopMakerError):
    """An external transcoding step failed."""

    def __init__(self, message: str, detail: str = "", command: list[str] | None = None):
        super().__init__(message, detail)
        self.command = command or []


class ExtractionError(TranscodeError):
    """Cutting or reversing a clip failed."""


class BlendError(TranscodeError):
    """The crossfade blend failed."""


class ConcatenationError(TranscodeError):
    """A single concatenation attempt failed."""


class AssemblyError(LoopMakerError):
    """Every concatenation attempt failed."""


class ResourceError(LoopMakerError):
    """The workspace could not be created, used or removed."""


class CancelledError(LoopMakerError):
    """The caller cancelled the invocation."""
