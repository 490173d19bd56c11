"""Exception hierarchy for playspace.

All exceptions inherit from PlayspaceError base class. Plain OSError from
the operating system is never wrapped during setup or file writes; it
propagates as-is.

Hierarchy:
    PlayspaceError (base)
    ├── TransientError (retryable marker base)
    │   └── AlreadyInPlayspaceError    ← another playspace holds the lock
    ├── PermanentError (non-retryable marker base)
    │   └── PlayspaceClosedError       ← playspace already torn down
    ├── WriteError
    │   └── OutsidePlayspaceError      ← path escapes the scratch directory
    ├── TeardownError
    │   ├── WorkingDirectoryRestoreError ← previous cwd gone or unenterable
    │   └── ScratchRemovalError        ← scratch directory could not be removed
    └── ExitError                      ← aggregate of TeardownErrors
"""

from __future__ import annotations

from pathlib import Path
from typing import Any


class PlayspaceError(Exception):
    """Base exception for all playspace errors with structured context.

    Attributes:
        message: Human-readable error message
        context: Dictionary of structured error context for logging/debugging
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


# =============================================================================
# Transient vs Permanent Error Base Classes
# =============================================================================


class TransientError(PlayspaceError):
    """Base for transient errors that may succeed on retry.

    Playspace itself never retries; callers decide whether to wait.
    """


class PermanentError(PlayspaceError):
    """Base for permanent errors that won't succeed on retry."""


class AlreadyInPlayspaceError(TransientError):
    """Another playspace currently holds the exclusion domain.

    Raised by the non-blocking entry points (try_enter, try_with_envs).
    No process state (directory, environment) has been touched.
    """

    def __init__(self, message: str = "Already in a playspace", context: dict[str, Any] | None = None):
        super().__init__(message, context)


class PlayspaceClosedError(PermanentError):
    """Raised when using a playspace after it has been torn down.

    Teardown is terminal: a second exit() and any accessor call after
    exit() raise this exception.
    """


# =============================================================================
# Write Errors
# =============================================================================


class WriteError(PlayspaceError):
    """Base for errors raised by the playspace file helpers."""


class OutsidePlayspaceError(WriteError):
    """Attempt to write outside the scratch directory.

    The filesystem is not touched when this is raised.

    Attributes:
        path: The path as originally requested by the caller
    """

    def __init__(self, path: str | Path, context: dict[str, Any] | None = None):
        ctx = context or {}
        ctx.setdefault("path", str(path))
        super().__init__(f"Attempt to write outside playspace: {path}", ctx)
        self.path = Path(path)


# =============================================================================
# Teardown Errors
# =============================================================================


class TeardownError(PlayspaceError):
    """Base for failures of an individual teardown step.

    Teardown never stops at a failing step; these are collected into an
    ExitError once every step has run and the lock has been released.
    """


class WorkingDirectoryRestoreError(TeardownError):
    """Previous working directory could not be restored.

    Attributes:
        path: Saved working directory, or None if none could be captured
            when the playspace was entered
    """

    def __init__(self, message: str, path: Path | None, context: dict[str, Any] | None = None):
        ctx = context or {}
        ctx.setdefault("path", str(path) if path is not None else None)
        super().__init__(message, ctx)
        self.path = path


class ScratchRemovalError(TeardownError):
    """Scratch directory could not be removed.

    Typically a permission problem or, on some platforms, files still
    held open inside the directory. Never retried automatically.

    Attributes:
        path: The scratch directory that was left behind
    """

    def __init__(self, message: str, path: Path, context: dict[str, Any] | None = None):
        ctx = context or {}
        ctx.setdefault("path", str(path))
        super().__init__(message, ctx)
        self.path = path


class ExitError(PlayspaceError):
    """One or more teardown steps failed.

    The teardown still completed: the environment was restored and the
    exclusion lock was released. Every step failure is kept, in the
    order the steps ran; none takes priority over another.

    Attributes:
        errors: The individual TeardownError instances
        result: Return value of the scoped work, when raised from scoped()
    """

    def __init__(self, errors: list[TeardownError], result: Any = None):
        summary = "; ".join(e.message for e in errors)
        super().__init__(
            f"Playspace teardown failed: {summary}",
            context={"errors": [type(e).__name__ for e in errors]},
        )
        self.errors = errors
        self.result = result

    @property
    def directory_error(self) -> WorkingDirectoryRestoreError | None:
        """The working directory restore failure, if any."""
        return next((e for e in self.errors if isinstance(e, WorkingDirectoryRestoreError)), None)

    @property
    def removal_error(self) -> ScratchRemovalError | None:
        """The scratch directory removal failure, if any."""
        return next((e for e in self.errors if isinstance(e, ScratchRemovalError)), None)
