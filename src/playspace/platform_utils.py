"""Cross-platform OS detection and process utilities.

Uses psutil's built-in OS detection constants for platform identification,
lists files held open inside a directory (the usual reason a scratch
directory cannot be removed on Windows), and provides a PID-reuse safe
wrapper for the child processes started by the CLI.
"""

import asyncio
import contextlib
from enum import Enum, auto
from functools import cache
from pathlib import Path

import psutil


class HostOS(Enum):
    """Host operating systems with distinct filesystem semantics."""

    LINUX = auto()
    """Linux: an in-use directory can be removed."""

    MACOS = auto()
    """macOS: an in-use directory can be removed."""

    WINDOWS = auto()
    """Windows: open handles and the working directory block removal."""

    UNKNOWN = auto()
    """Unrecognized OS, treated like POSIX."""


@cache
def detect_host_os() -> HostOS:
    """Detect current host operating system using psutil constants."""
    if psutil.LINUX:
        return HostOS.LINUX
    if psutil.MACOS:
        return HostOS.MACOS
    if psutil.WINDOWS:
        return HostOS.WINDOWS
    return HostOS.UNKNOWN


def open_files_under(directory: Path) -> list[Path]:
    """List files this process holds open inside *directory*.

    Diagnostic only: returns an empty list when psutil cannot inspect the
    process (permissions, unsupported platform).
    """
    try:
        open_files = psutil.Process().open_files()
    except (psutil.Error, NotImplementedError):
        return []

    found: list[Path] = []
    for entry in open_files:
        path = Path(entry.path)
        if path.is_relative_to(directory):
            found.append(path)
    return found


class ProcessWrapper:
    """PID-reuse safe process wrapper using psutil.

    Wraps asyncio.subprocess.Process with psutil.Process so that signals
    are never delivered to a recycled PID.
    """

    def __init__(self, async_proc: asyncio.subprocess.Process) -> None:
        self.async_proc = async_proc
        self.psutil_proc: psutil.Process | None = None

        if async_proc.pid:
            with contextlib.suppress(psutil.NoSuchProcess, psutil.AccessDenied):
                self.psutil_proc = psutil.Process(async_proc.pid)

    async def is_running(self) -> bool:
        """Check if process is still running (PID-reuse safe)."""
        if not self.psutil_proc:
            return self.async_proc.returncode is None

        try:
            return await asyncio.to_thread(self.psutil_proc.is_running)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            return False

    @property
    def pid(self) -> int | None:
        """Process ID."""
        return self.async_proc.pid

    @property
    def returncode(self) -> int | None:
        """Process return code (None if still running)."""
        return self.async_proc.returncode

    async def wait(self) -> int:
        """Wait for process to complete."""
        return await self.async_proc.wait()

    async def terminate(self) -> None:
        """Terminate process (SIGTERM)."""
        if self.psutil_proc and await self.is_running():
            with contextlib.suppress(psutil.NoSuchProcess, psutil.AccessDenied):
                await asyncio.to_thread(self.psutil_proc.terminate)
        else:
            with contextlib.suppress(ProcessLookupError):
                self.async_proc.terminate()

    async def kill(self) -> None:
        """Kill process (SIGKILL)."""
        if self.psutil_proc and await self.is_running():
            with contextlib.suppress(psutil.NoSuchProcess, psutil.AccessDenied):
                await asyncio.to_thread(self.psutil_proc.kill)
        else:
            with contextlib.suppress(ProcessLookupError):
                self.async_proc.kill()

    async def wait_with_timeout(self, timeout: float) -> int:
        """Wait for process exit.

        Raises:
            TimeoutError: If process doesn't exit within timeout
        """
        return await asyncio.wait_for(self.wait(), timeout=timeout)
