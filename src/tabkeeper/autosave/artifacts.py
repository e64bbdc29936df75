"""
Transient on-disk handles for finished archives.

Local delivery needs a URL it can read the artifact from; the handle is
owned by one save and released when that save ends.
"""

import os
import tempfile
from pathlib import Path
from typing import Optional

from tabkeeper.logger import get_logger

logger = get_logger(__name__)


class TransientArtifact:
    def __init__(self, directory: Optional[Path] = None):
        self.directory = directory
        self.path: Optional[Path] = None

    def hold(self, data: bytes, suffix: str = "") -> str:
        """Write ``data`` to a temporary file and return its ``file://`` URL."""
        if self.path is not None:
            raise RuntimeError("Artifact handle already holds data")
        if self.directory is not None:
            self.directory.mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(
            prefix="tabkeeper-", suffix=suffix, dir=self.directory
        )
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        self.path = Path(name)
        return self.path.as_uri()

    def release(self) -> None:
        if self.path is None:
            return
        try:
            self.path.unlink(missing_ok=True)
        finally:
            logger.debug(f"Released artifact {self.path}")
            self.path = None
