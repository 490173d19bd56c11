"""Snapshot and restore of ambient process state.

EnvironmentSnapshot records the whole environment table and later
reconciles the live table back to it. Working directory capture and
restore are separate helpers because restoring the directory can fail
and restoring the environment cannot.
"""

from __future__ import annotations

import os
from collections.abc import Iterator, Mapping
from pathlib import Path

from playspace._logging import get_logger
from playspace.exceptions import WorkingDirectoryRestoreError

logger = get_logger(__name__)


class EnvironmentSnapshot(Mapping[str, str]):
    """Immutable copy of the environment table at capture time.

    Behaves as a read-only mapping of variable name to value.

    Attributes:
        degraded: True when the environment could not be read at capture
            time. A degraded snapshot holds no variables and restore() is
            a no-op, since reconciling to an empty table would wipe the
            caller's environment.
    """

    def __init__(self, variables: Mapping[str, str], *, degraded: bool = False) -> None:
        self._variables = dict(variables)
        self.degraded = degraded

    @classmethod
    def capture(cls) -> EnvironmentSnapshot:
        """Read the full environment table. Never raises."""
        try:
            return cls(os.environ.copy())
        except Exception as e:  # noqa: BLE001
            logger.warning(
                "Failed to capture environment, restore will be skipped",
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            return cls({}, degraded=True)

    def __getitem__(self, name: str) -> str:
        return self._variables[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._variables)

    def __len__(self) -> int:
        return len(self._variables)

    def __repr__(self) -> str:
        return f"<EnvironmentSnapshot vars={len(self._variables)} degraded={self.degraded}>"

    def restore(self) -> None:
        """Reconcile the live environment table to this snapshot.

        Every variable set now is reset to its captured value or, if it
        was not captured, removed. Every captured variable no longer set
        is set again. The result is independent of the order in which the
        session changed things.
        """
        if self.degraded:
            logger.warning("Skipping environment restore for degraded snapshot")
            return

        changed = 0
        for name in list(os.environ):
            saved = self._variables.get(name)
            if saved is None:
                os.environ.pop(name, None)
                changed += 1
            elif os.environ.get(name) != saved:
                os.environ[name] = saved
                changed += 1
        for name, saved in self._variables.items():
            if name not in os.environ:
                os.environ[name] = saved
                changed += 1

        logger.debug("Environment restored", extra={"changed": changed, "vars": len(self._variables)})


def capture_working_directory() -> Path | None:
    """Return the absolute current working directory, or None if it is gone.

    A working directory deleted from under the process is a degraded but
    recoverable state at entry; it only becomes an error at teardown.
    """
    try:
        return Path(os.getcwd())
    except OSError as e:
        logger.warning(
            "Current working directory could not be resolved",
            extra={"error": str(e), "error_type": type(e).__name__},
        )
        return None


def restore_working_directory(path: Path | None) -> None:
    """Change back into a saved working directory.

    Raises:
        WorkingDirectoryRestoreError: No directory was saved, or it can no
            longer be entered.
    """
    if path is None:
        raise WorkingDirectoryRestoreError("No working directory was saved on entry", path=None)
    try:
        os.chdir(path)
    except OSError as e:
        raise WorkingDirectoryRestoreError(
            f"Cannot return to {path}: {e.strerror or e}",
            path=path,
            context={"errno": e.errno},
        ) from e
