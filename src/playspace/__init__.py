"""playspace: Simple pseudo-sandbox for tests that touch process state.

A playspace gives the code inside it a new, empty temporary working
directory and a snapshot of every environment variable. On the way out
the environment and working directory are restored and the directory is
removed. Only one playspace is active per process at a time; others wait
(or fail fast) until it is torn down.

Scoped (callable):
    ```python
    from playspace import Playspace

    def work(space):
        space.set_envs([("APP_SPECIFIC_OPTION", "some-value"), ("CARGO_MANIFEST_DIR", None)])
        space.write_file("app-config.toml", "[table]\\noption1 = 1\\n")
        return run_the_thing()

    result = Playspace.scoped(work)
    ```

Context manager:
    ```python
    with Playspace.enter() as space:
        ...
    ```

Async:
    ```python
    from playspace import AsyncPlayspace

    async with await AsyncPlayspace.enter() as space:
        await space.write_file("notes.txt", "hello")
    ```

What a playspace does NOT provide:
    - Actual sandboxing of any kind (no namespaces, no seccomp)
    - Protection against code that changes directory, environment or
      files outside the provided helpers
    - More than one active playspace per process

Requirements:
    - Python 3.12+
"""

from playspace.aio import AsyncPlayspace
from playspace.config import PlayspaceConfig
from playspace.core import SessionState
from playspace.exceptions import (
    AlreadyInPlayspaceError,
    ExitError,
    OutsidePlayspaceError,
    PermanentError,
    PlayspaceClosedError,
    PlayspaceError,
    ScratchRemovalError,
    TeardownError,
    TransientError,
    WorkingDirectoryRestoreError,
    WriteError,
)
from playspace.mutex import GLOBAL_DOMAIN, ExclusionDomain, ExclusionToken
from playspace.sync import Playspace

__all__ = [
    "GLOBAL_DOMAIN",
    "AlreadyInPlayspaceError",
    "AsyncPlayspace",
    "ExclusionDomain",
    "ExclusionToken",
    "ExitError",
    "OutsidePlayspaceError",
    "PermanentError",
    "Playspace",
    "PlayspaceClosedError",
    "PlayspaceConfig",
    "PlayspaceError",
    "ScratchRemovalError",
    "SessionState",
    "TeardownError",
    "TransientError",
    "WorkingDirectoryRestoreError",
    "WriteError",
]

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("playspace")
except PackageNotFoundError:
    __version__ = "0.0.0.dev0"
