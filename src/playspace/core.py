"""Playspace core - the guarded session shared by Playspace and AsyncPlayspace.

A session owns, in teardown order:
    1. the environment snapshot      (restored first, cannot fail)
    2. the saved working directory   (restored second, may fail)
    3. the scratch directory         (removed third, may fail)
    4. the exclusion token           (released last, always)

Lifecycle:
    - SpaceCore.open() runs with a token already acquired; if entry fails
      the token is released before the error propagates
    - teardown() runs every step whatever fails and returns the failures
    - a handle abandoned without exit() is torn down by weakref.finalize,
      errors discarded (logged at debug)
"""

from __future__ import annotations

import os
import weakref
from collections.abc import Iterable, Mapping
from enum import Enum
from pathlib import Path
from typing import Any

from playspace._logging import get_logger
from playspace.config import PlayspaceConfig
from playspace.containment import resolve_in_scratch
from playspace.exceptions import ExitError, PlayspaceClosedError, TeardownError
from playspace.mutex import ExclusionToken
from playspace.resource_cleanup import leave_scratch_step, remove_scratch_step, restore_directory_step
from playspace.scratch import ScratchDirectory
from playspace.snapshot import EnvironmentSnapshot, capture_working_directory

logger = get_logger(__name__)

EnvOverrides = Mapping[str, str | None] | Iterable[tuple[str, str | None]]
"""Variable overrides: a mapping or pairs of (name, value); None unsets."""


class SessionState(Enum):
    """Playspace lifecycle states, in transition order.

    UNINITIALIZED names the entry sequence before the scratch directory
    exists. Entry either completes or raises, so no handle is ever
    returned in that state; handles start ACTIVE.
    """

    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    TORN_DOWN = "torn_down"


def apply_env_overrides(overrides: EnvOverrides) -> None:
    """Set or unset environment variables in order.

    Args:
        overrides: Mapping or iterable of (name, value) pairs. A value of
            None removes the variable; removing an unset one is a no-op.
    """
    pairs = overrides.items() if isinstance(overrides, Mapping) else overrides
    for name, value in pairs:
        if value is None:
            os.environ.pop(name, None)
        else:
            os.environ[name] = value


class SpaceCore:
    """Process state held by one active playspace.

    Not used directly: Playspace and AsyncPlayspace wrap it and decide
    how the exclusion token is acquired.
    """

    def __init__(
        self,
        token: ExclusionToken,
        config: PlayspaceConfig,
        saved_environment: EnvironmentSnapshot,
        saved_directory: Path | None,
        scratch: ScratchDirectory,
    ) -> None:
        self._token = token
        self._config = config
        self.saved_environment = saved_environment
        self.saved_directory = saved_directory
        self.scratch = scratch
        self.state = SessionState.ACTIVE

    @classmethod
    def open(cls, token: ExclusionToken, config: PlayspaceConfig) -> SpaceCore:
        """Snapshot process state and move into a new scratch directory.

        Args:
            token: Freshly acquired token; ownership passes to the core.
            config: Scratch directory location and naming.

        Raises:
            OSError: Temp root missing, or directory creation/chdir failed.
                The token has been released and no state was changed.
        """
        try:
            saved_environment = EnvironmentSnapshot.capture()
            saved_directory = capture_working_directory()
            scratch = ScratchDirectory.create(config.get_temp_root(), config.prefix)
        except BaseException as e:
            token.release()
            logger.warning(
                "Playspace setup failed, lock released",
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            raise

        logger.info(
            "Entered playspace",
            extra={
                "directory": str(scratch.path),
                "saved_directory": str(saved_directory) if saved_directory else None,
                "domain": token.domain.name,
            },
        )
        return cls(token, config, saved_environment, saved_directory, scratch)

    @property
    def directory(self) -> Path:
        return self.scratch.path

    def check_active(self) -> None:
        if self.state is not SessionState.ACTIVE:
            raise PlayspaceClosedError("Playspace has been torn down", context={"directory": str(self.directory)})

    def resolve(self, path: str | os.PathLike[str]) -> Path:
        self.check_active()
        return resolve_in_scratch(self.scratch.path, path)

    def teardown(self) -> list[TeardownError]:
        """Restore process state and release the lock.

        Every step runs even if an earlier one fails; the token is
        released last, in all cases.

        Returns:
            Step failures in the order the steps ran (empty on success)

        Raises:
            PlayspaceClosedError: Already torn down.
        """
        self.check_active()
        self.state = SessionState.TORN_DOWN

        errors: list[TeardownError] = []
        try:
            self.saved_environment.restore()

            if self._config.restore_working_directory:
                if (dir_error := restore_directory_step(self.saved_directory, self.scratch)) is not None:
                    errors.append(dir_error)
            else:
                leave_scratch_step(self.scratch)

            if (removal_error := remove_scratch_step(self.scratch)) is not None:
                errors.append(removal_error)
        finally:
            self._token.release()

        logger.info(
            "Left playspace",
            extra={"directory": str(self.scratch.path), "errors": len(errors)},
        )
        return errors

    def close(self, body_error: BaseException | None = None, result: Any = None) -> None:
        """Tear down and report failures to an explicit caller.

        Args:
            body_error: Exception raised by the work done in the playspace,
                if any. Teardown failures are then attached to it as a
                note rather than replacing it.
            result: Work result, carried on ExitError for scoped callers.

        Raises:
            ExitError: Teardown failed and no body_error is propagating.
            PlayspaceClosedError: Already torn down.
        """
        errors = self.teardown()
        if not errors:
            return
        exit_error = ExitError(errors, result=result)
        if body_error is None:
            raise exit_error
        body_error.add_note(f"playspace teardown also failed: {exit_error.message}")


def _abandon(core: SpaceCore) -> None:
    """Finalizer for handles dropped without exit(); errors are discarded."""
    if core.state is not SessionState.ACTIVE:
        return
    try:
        errors = core.teardown()
    except Exception as e:  # noqa: BLE001
        logger.debug("Abandoned playspace teardown raised", extra={"error": str(e)})
        return
    logger.debug(
        "Abandoned playspace torn down",
        extra={"directory": str(core.directory), "discarded_errors": [e.message for e in errors]},
    )


class PlayspaceHandle:
    """State and accessors shared by Playspace and AsyncPlayspace.

    Holds the core and registers a finalizer so that a handle dropped
    without exit() still restores the process and releases the lock.
    """

    def __init__(self, core: SpaceCore) -> None:
        self._core = core
        self._finalizer = weakref.finalize(self, _abandon, core)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {str(self.directory)!r} state={self.state.value}>"

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def directory(self) -> Path:
        """Scratch directory root (canonical absolute path)."""
        return self._core.directory

    @property
    def state(self) -> SessionState:
        """Current lifecycle state."""
        return self._core.state

    @property
    def active(self) -> bool:
        """Whether the playspace has not been torn down yet."""
        return self._core.state is SessionState.ACTIVE

    @property
    def saved_directory(self) -> Path | None:
        """Working directory to return to on teardown (None if unknown)."""
        return self._core.saved_directory

    # -------------------------------------------------------------------------
    # Environment and paths
    # -------------------------------------------------------------------------

    def set_envs(self, overrides: EnvOverrides) -> None:
        """Set or unset environment variables.

        Args:
            overrides: Mapping or (name, value) pairs; None unsets.

        Raises:
            PlayspaceClosedError: Playspace has been torn down.
        """
        self._core.check_active()
        apply_env_overrides(overrides)

    def resolve(self, path: str | os.PathLike[str]) -> Path:
        """Map *path* into the scratch directory.

        Raises:
            OutsidePlayspaceError: Path escapes the scratch directory.
            PlayspaceClosedError: Playspace has been torn down.
        """
        return self._core.resolve(path)

    # -------------------------------------------------------------------------
    # Teardown
    # -------------------------------------------------------------------------

    def _apply_initial_envs(self, overrides: EnvOverrides) -> None:
        """set_envs() for the with_envs constructors: a bad override tears the playspace down."""
        try:
            self.set_envs(overrides)
        except BaseException as e:
            self._close(body_error=e)
            raise

    def _close(self, body_error: BaseException | None = None, result: Any = None) -> None:
        self._finalizer.detach()
        self._core.close(body_error, result)
