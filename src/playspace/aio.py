"""AsyncPlayspace - guarded scratch environment for asyncio code.

Same semantics as Playspace, but waiting for the exclusion domain only
suspends the calling task, and the file helpers use aiofiles.

Example:
    ```python
    from playspace import AsyncPlayspace

    async with await AsyncPlayspace.enter() as space:
        space.set_envs({"APP_OPTION": "some-value"})
        await space.write_file("input.csv", b"a,b\\n1,2\\n")
        async with space.create_file("log.txt") as f:
            await f.write(b"started\\n")
    ```

Teardown contains no await points: environment, working directory,
scratch removal and lock release happen in one synchronous step, so a
cancelled task can never leave the process half restored.
"""

from __future__ import annotations

import os
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any, Self, TypeVar

import aiofiles
import aiofiles.os

from playspace.config import PlayspaceConfig
from playspace.core import EnvOverrides, PlayspaceHandle, SpaceCore
from playspace.mutex import GLOBAL_DOMAIN, ExclusionDomain, ExclusionToken

if TYPE_CHECKING:
    from aiofiles.base import AiofilesContextManager

R = TypeVar("R")


class AsyncPlayspace(PlayspaceHandle):
    """Exclusive scratch directory plus environment snapshot, for asyncio.

    Shares its exclusion domain with Playspace: an active Playspace blocks
    AsyncPlayspace.enter() and vice versa.

    The working directory and environment are process-wide, so every
    task on the loop (and every thread) sees the playspace while it is
    active.
    """

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def _from_token(cls, token: ExclusionToken, config: PlayspaceConfig | None) -> Self:
        return cls(SpaceCore.open(token, config or PlayspaceConfig()))

    @classmethod
    async def enter(cls, *, config: PlayspaceConfig | None = None, domain: ExclusionDomain | None = None) -> Self:
        """Enter a playspace, suspending this task until no other one is active.

        Cancelling the task while it waits leaves the domain untouched.

        Raises:
            OSError: Scratch directory could not be created or entered.
        """
        token = await (domain or GLOBAL_DOMAIN).acquire_async()
        # No await between acquiring and handing the token to the core
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
    async def with_envs(
        cls,
        overrides: EnvOverrides,
        *,
        config: PlayspaceConfig | None = None,
        domain: ExclusionDomain | None = None,
    ) -> Self:
        """enter(), then apply environment overrides."""
        space = await cls.enter(config=config, domain=domain)
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
    async def scoped(
        cls,
        fn: Callable[[Self], Awaitable[R]],
        *,
        config: PlayspaceConfig | None = None,
        domain: ExclusionDomain | None = None,
    ) -> R:
        """Await fn(space) inside a playspace and return its result.

        Teardown always runs, including when the task is cancelled.

        Raises:
            ExitError: Teardown failed; fn's return value is on .result.
        """
        space = await cls.enter(config=config, domain=domain)
        try:
            result = await fn(space)
        except BaseException as e:
            space._close(body_error=e)
            raise
        space._close(result=result)
        return result

    # -------------------------------------------------------------------------
    # File helpers
    # -------------------------------------------------------------------------

    async def write_file(self, path: str | os.PathLike[str], contents: bytes | str) -> None:
        """Write a file inside the scratch directory, replacing it if present.

        Raises:
            OutsidePlayspaceError: Path escapes the scratch directory.
            OSError: The write itself failed.
        """
        target = self.resolve(path)
        data = contents.encode() if isinstance(contents, str) else contents
        async with aiofiles.open(target, "wb") as f:
            await f.write(data)

    def create_file(self, path: str | os.PathLike[str]) -> AiofilesContextManager[Any]:
        """Create (or truncate) a file inside the scratch directory.

        The containment check runs immediately; the file is opened when
        the returned object is awaited or entered with ``async with``.

        Returns:
            aiofiles context manager yielding a binary async file.

        Raises:
            OutsidePlayspaceError: Path escapes the scratch directory.
        """
        target = self.resolve(path)
        return aiofiles.open(target, "wb")

    async def create_dir_all(self, path: str | os.PathLike[str]) -> Path:
        """Create a directory and any missing parents inside the scratch directory.

        Raises:
            OutsidePlayspaceError: Path escapes the scratch directory.
            OSError: A directory could not be created.
        """
        target = self.resolve(path)
        await aiofiles.os.makedirs(target, exist_ok=True)
        return target

    # -------------------------------------------------------------------------
    # Teardown
    # -------------------------------------------------------------------------

    async def exit(self) -> None:
        """Tear down: restore environment and directory, remove scratch, release lock.

        Raises:
            ExitError: Directory restore and/or scratch removal failed.
                Teardown still completed and the lock is released.
            PlayspaceClosedError: Already torn down.
        """
        self._close()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        _exc_tb: object,
    ) -> None:
        """Tear down; ExitError is raised only if the block itself did not raise."""
        if self.active:
            self._close(body_error=exc_val)
