"""Scratch directory: a fresh, uniquely named working directory.

Created with tempfile.mkdtemp (mode 0o700, never reused) and entered
immediately. Removal is explicit and reports failure instead of
ignoring it; nothing is retried.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path

from playspace._logging import get_logger
from playspace.constants import DEFAULT_DIR_PREFIX
from playspace.exceptions import ScratchRemovalError
from playspace.platform_utils import detect_host_os, open_files_under

logger = get_logger(__name__)


class ScratchDirectory:
    """A private temporary directory owned by one playspace.

    Attributes:
        path: Canonical absolute path of the directory.
        removed: Whether remove() has completed successfully.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self.removed = False

    def __repr__(self) -> str:
        return f"<ScratchDirectory {str(self.path)!r} removed={self.removed}>"

    @classmethod
    def create(cls, root: Path | None = None, prefix: str = DEFAULT_DIR_PREFIX) -> ScratchDirectory:
        """Create an empty directory under *root* and make it the working directory.

        Args:
            root: Parent directory. Default: tempfile.gettempdir().
            prefix: Directory name prefix; a random suffix is appended.

        Raises:
            OSError: Directory creation or chdir failed. Nothing is left
                behind on disk in either case.
        """
        path = Path(tempfile.mkdtemp(prefix=prefix, dir=root)).resolve()
        try:
            os.chdir(path)
        except OSError:
            shutil.rmtree(path, ignore_errors=True)
            raise

        logger.debug("Scratch directory created", extra={"path": str(path)})
        return cls(path)

    def remove(self) -> None:
        """Recursively delete the directory.

        The process should already have left the directory; on Windows
        removal fails otherwise.

        Raises:
            ScratchRemovalError: The directory or part of it could not be removed.
        """
        if self.removed:
            return

        try:
            shutil.rmtree(self.path)
        except FileNotFoundError:
            # Deleted by the session itself
            pass
        except OSError as e:
            held_open = open_files_under(self.path)
            raise ScratchRemovalError(
                f"Cannot remove scratch directory {self.path}: {e.strerror or e}",
                path=self.path,
                context={
                    "errno": e.errno,
                    "failed_path": e.filename,
                    "open_files": [str(p) for p in held_open],
                    "host_os": detect_host_os().name,
                },
            ) from e

        self.removed = True
        logger.debug("Scratch directory removed", extra={"path": str(self.path)})
