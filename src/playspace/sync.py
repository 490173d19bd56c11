"""Playspace - guarded scratch environment for synchronous code.

Example:
    ```python
    from playspace import Playspace

    with Playspace.enter() as space:
        space.set_envs({"APP_OPTION": "some-value", "HOME": None})
        space.write_file("app-config.toml", "[table]\\noption = 1\\n")
        # run code that needs these resources...

    # environment, working directory and files are back where they were
    ```

Entry points:
    - enter() / with_envs(): wait for any other playspace to finish
    - try_enter() / try_with_envs(): raise AlreadyInPlayspaceError instead
    - scoped(fn): enter, run fn(space), tear down, return fn's result
"""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path
from typing import BinaryIO, Self, TypeVar

from playspace.config import PlayspaceConfig
from playspace.core import EnvOverrides, PlayspaceHandle, SpaceCore
from playspace.mutex import GLOBAL_DOMAIN, ExclusionDomain, ExclusionToken

R = TypeVar("R")


class Playspace(PlayspaceHandle):
    """Exclusive scratch directory plus environment snapshot.

    While a Playspace is active the process working directory is a fresh
    temporary directory, and every environment variable change is undone
    on teardown. Only one playspace (sync or async) can be active per
    exclusion domain at a time.

    Teardown happens on exit(), at the end of a with block, or, if the
    object is simply dropped, when it is garbage collected. In the last
    case teardown errors are discarded.
    """

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def _from_token(cls, token: ExclusionToken, config: PlayspaceConfig | None) -> Self:
        return cls(SpaceCore.open(token, config or PlayspaceConfig()))

    @classmethod
    def enter(cls, *, config: PlayspaceConfig | None = None, domain: ExclusionDomain | None = None) -> Self:
        """Enter a playspace, blocking until no other one is active.

        Never call this while the current thread is already inside a
        playspace of the same domain: it would wait forever.

        Raises:
            OSError: Scratch directory could not be created or entered.
        """
        token = (domain or GLOBAL_DOMAIN).acquire_blocking()
        return cls._from_token(token, config)

    @classmethod
    def try_enter(cls, *, config: PlayspaceConfig | None = None, domain: ExclusionDomain | None = None) -> Self:
        """Enter a playspace, failing immediately if another one is active.

        Raises:
            AlreadyInPlayspaceError: Another playspace is active.
            OSError: Scratch directory could not be created or entered.
        """
        token = (domain or GLOBAL_DOMAIN).try_acquire()
        return cls._from_token(token, config)

    @classmethod
    def with_envs(
        cls,
        overrides: EnvOverrides,
        *,
        config: PlayspaceConfig | None = None,
        domain: ExclusionDomain | None = None,
    ) -> Self:
        """enter(), then apply environment overrides."""
        space = cls.enter(config=config, domain=domain)
        space._apply_initial_envs(overrides)
        return space

    @classmethod
    def try_with_envs(
        cls,
        overrides: EnvOverrides,
        *,
        config: PlayspaceConfig | None = None,
        domain: ExclusionDomain | None = None,
    ) -> Self:
        """try_enter(), then apply environment overrides."""
        space = cls.try_enter(config=config, domain=domain)
        space._apply_initial_envs(overrides)
        return space

    @classmethod
    def scoped(
        cls,
        fn: Callable[[Self], R],
        *,
        config: PlayspaceConfig | None = None,
        domain: ExclusionDomain | None = None,
    ) -> R:
        """Run fn inside a playspace and return its result.

        Teardown always runs. If fn raises, its exception propagates
        (with any teardown failure added as a note).

        Raises:
            ExitError: Teardown failed; fn's return value is on .result.
        """
        space = cls.enter(config=config, domain=domain)
        try:
            result = fn(space)
        except BaseException as e:
            space._close(body_error=e)
            raise
        space._close(result=result)
        return result

    # -------------------------------------------------------------------------
    # File helpers
    # -------------------------------------------------------------------------

    def write_file(self, path: str | os.PathLike[str], contents: bytes | str) -> None:
        """Write a file inside the scratch directory, replacing it if present.

        Args:
            path: Relative (to the scratch root) or absolute path inside it.
            contents: bytes, or str encoded as UTF-8.

        Raises:
            OutsidePlayspaceError: Path escapes the scratch directory.
            OSError: The write itself failed.
        """
        target = self.resolve(path)
        data = contents.encode() if isinstance(contents, str) else contents
        target.write_bytes(data)

    def create_file(self, path: str | os.PathLike[str]) -> BinaryIO:
        """Create (or truncate) a file inside the scratch directory.

        Returns:
            Binary file object opened for writing; the caller closes it.

        Raises:
            OutsidePlayspaceError: Path escapes the scratch directory.
            OSError: The file could not be created.
        """
        target = self.resolve(path)
        return target.open("wb")

    def create_dir_all(self, path: str | os.PathLike[str]) -> Path:
        """Create a directory and any missing parents inside the scratch directory.

        Returns:
            The absolute directory path.

        Raises:
            OutsidePlayspaceError: Path escapes the scratch directory.
            OSError: A directory could not be created.
        """
        target = self.resolve(path)
        target.mkdir(parents=True, exist_ok=True)
        return target

    # -------------------------------------------------------------------------
    # Teardown
    # -------------------------------------------------------------------------

    def exit(self) -> None:
        """Tear down: restore environment and directory, remove scratch, release lock.

        Raises:
            ExitError: Directory restore and/or scratch removal failed.
                Teardown still completed and the lock is released.
            PlayspaceClosedError: Already torn down.
        """
        self._close()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        _exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        _exc_tb: object,
    ) -> None:
        """Tear down; ExitError is raised only if the block itself did not raise."""
        if self.active:
            self._close(body_error=exc_val)
