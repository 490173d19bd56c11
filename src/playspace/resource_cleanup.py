"""Resource cleanup utilities for playspace teardown.

Each teardown step logs its failure and returns it instead of raising,
so the caller can run every step and release the lock unconditionally.
Also hosts the SIGTERM → SIGKILL cleanup for child processes the CLI
runs inside a playspace.
"""

import contextlib
import os
from pathlib import Path

from playspace._logging import get_logger
from playspace.constants import CHILD_KILL_TIMEOUT_SECONDS, CHILD_TERM_TIMEOUT_SECONDS
from playspace.exceptions import ScratchRemovalError, WorkingDirectoryRestoreError
from playspace.platform_utils import ProcessWrapper
from playspace.scratch import ScratchDirectory
from playspace.snapshot import restore_working_directory

logger = get_logger(__name__)


def restore_directory_step(saved: Path | None, scratch: ScratchDirectory) -> WorkingDirectoryRestoreError | None:
    """Return to the saved working directory.

    On failure the process is moved to the scratch directory's parent
    (best effort) so that the scratch directory is not the working
    directory when it is removed.

    Returns:
        The restore error, or None on success
    """
    try:
        restore_working_directory(saved)
    except WorkingDirectoryRestoreError as e:
        logger.error(
            "Working directory restore failed",
            extra={"path": str(saved) if saved is not None else None, "error": e.message},
        )
        with contextlib.suppress(OSError):
            os.chdir(scratch.path.parent)
        return e
    return None


def leave_scratch_step(scratch: ScratchDirectory) -> None:
    """Move out of the scratch directory without restoring a saved one.

    Used when the playspace is configured not to restore the working
    directory. Only acts when the working directory is inside scratch.
    """
    try:
        cwd = Path(os.getcwd())
    except OSError:
        return
    if cwd.is_relative_to(scratch.path):
        with contextlib.suppress(OSError):
            os.chdir(scratch.path.parent)


def remove_scratch_step(scratch: ScratchDirectory) -> ScratchRemovalError | None:
    """Delete the scratch directory.

    Returns:
        The removal error, or None on success
    """
    try:
        scratch.remove()
    except ScratchRemovalError as e:
        logger.error(
            "Scratch directory removal failed",
            extra={"path": str(scratch.path), "error": e.message, "open_files": e.context.get("open_files")},
        )
        return e
    return None


async def cleanup_process(
    proc: ProcessWrapper | None,
    name: str,
    term_timeout: float = CHILD_TERM_TIMEOUT_SECONDS,
    kill_timeout: float = CHILD_KILL_TIMEOUT_SECONDS,
) -> bool:
    """Force cleanup of a child process (SIGTERM → SIGKILL).

    Must finish before the playspace is torn down: a child still running
    in the scratch directory could recreate files in it or hold it open.

    Args:
        proc: ProcessWrapper to stop (None safe - returns immediately)
        name: Process name for logging
        term_timeout: Seconds to wait after SIGTERM before SIGKILL
        kill_timeout: Seconds to wait after SIGKILL before giving up

    Returns:
        True if the process is gone, False if it could not be stopped
    """
    if proc is None:
        return True

    try:
        if proc.returncode is not None:
            return True

        logger.debug(f"Sending SIGTERM to {name}", extra={"pid": proc.pid})
        await proc.terminate()
        try:
            await proc.wait_with_timeout(timeout=term_timeout)
            return True
        except TimeoutError:
            logger.warning(
                f"{name} didn't respond to SIGTERM, force killing",
                extra={"pid": proc.pid, "term_timeout": term_timeout},
            )

        await proc.kill()
        try:
            await proc.wait_with_timeout(timeout=kill_timeout)
            return True
        except TimeoutError:
            logger.error(
                f"{name} didn't respond to SIGKILL within timeout",
                extra={"pid": proc.pid, "kill_timeout": kill_timeout},
            )
            return False

    except ProcessLookupError:
        # Exited between the check and the signal
        return True

    except OSError as e:
        logger.error(
            f"{name} cleanup error",
            extra={"pid": proc.pid, "error": str(e), "error_type": type(e).__name__},
        )
        return False
