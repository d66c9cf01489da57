"""Per-invocation scratch directory for intermediate clips."""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path

from loopmaker.errors import ResourceError

logger = logging.getLogger(__name__)


class Workspace:
    """Owns a unique temporary directory and every file created inside it.

    Use as a context manager; the directory and its contents are removed
    on exit whether the block succeeded or raised.
    """

    def __init__(self, parent_dir: str | None = None, prefix: str = "loop_"):
        self.parent_dir = parent_dir
        self.prefix = prefix
        self.path: Path | None = None

    def __enter__(self) -> "Workspace":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close(raise_errors=exc_type is None)

    def open(self) -> Path:
        if self.path is not None:
            raise ResourceError(f"Workspace already open at {self.path}")
        try:
            if self.parent_dir:
                Path(self.parent_dir).mkdir(parents=True, exist_ok=True)
            self.path = Path(tempfile.mkdtemp(prefix=self.prefix, dir=self.parent_dir)).resolve()
        except OSError as e:
            raise ResourceError("Could not create workspace", str(e))
        logger.debug("Opened workspace %s", self.path)
        return self.path

    def close(self, raise_errors: bool = True) -> None:
        """Remove the directory.

        When *raise_errors* is False a removal failure is logged instead of
        raised so it does not mask the exception already propagating.
        """
        if self.path is None:
            return
        path, self.path = self.path, None
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            if raise_errors:
                raise ResourceError(f"Could not remove workspace {path}", str(e))
            logger.error("Could not remove workspace %s: %s", path, e)
            return
        logger.debug("Removed workspace %s", path)

    def file(self, name: str) -> str:
        """Absolute path for a new file inside the workspace."""
        if self.path is None:
            raise ResourceError("Workspace is not open")
        return str(self.path / name)
