"""Process-wide exclusion domain with blocking, non-blocking and asyncio entry.

One ExclusionDomain is one lock. Its three acquisition entry points are
different ways of waiting for the same lock, so a thread blocked in
acquire_blocking() and a task awaiting acquire_async() always exclude
each other:

    - acquire_blocking(): parks the calling OS thread until the lock is free
    - try_acquire(): never waits, raises AlreadyInPlayspaceError if held
    - acquire_async(): parks only the calling asyncio task

The lock itself is a threading.Lock. Async waiters register a future on
their own event loop; every release wakes all registered futures through
loop.call_soon_threadsafe() and each woken task races a non-blocking
acquire, re-registering if it lost. A waiter registers before its final
non-blocking attempt, so a release between the two can't be missed.

Holding the lock is represented by an ExclusionToken. Tokens can only be
issued by this module, cannot be copied, and release the lock exactly once.

Hazard: acquiring twice from the same thread (or blocking on the event
loop thread while a task on that loop holds the token) deadlocks.
"""

from __future__ import annotations

import asyncio
import contextlib
import threading
from typing import NoReturn

from playspace._logging import get_logger
from playspace.exceptions import AlreadyInPlayspaceError

logger = get_logger(__name__)

_ISSUE_KEY = object()


class ExclusionToken:
    """Proof that the holder owns an ExclusionDomain's lock.

    Only ExclusionDomain can construct tokens. A token releases its lock
    exactly once; a second release() raises RuntimeError.
    """

    __slots__ = ("_domain", "_released")

    def __init__(self, domain: ExclusionDomain, key: object) -> None:
        if key is not _ISSUE_KEY:
            raise TypeError("ExclusionToken can only be issued by an ExclusionDomain")
        self._domain = domain
        self._released = False

    @property
    def domain(self) -> ExclusionDomain:
        """Domain whose lock this token holds."""
        return self._domain

    @property
    def released(self) -> bool:
        """Whether the lock has already been given back."""
        return self._released

    def release(self) -> None:
        """Release the domain lock and wake async waiters."""
        if self._released:
            raise RuntimeError("ExclusionToken already released")
        self._released = True
        self._domain._release()

    def __copy__(self) -> NoReturn:
        raise TypeError("ExclusionToken cannot be copied")

    def __deepcopy__(self, memo: dict[int, object]) -> NoReturn:
        raise TypeError("ExclusionToken cannot be copied")

    def __reduce__(self) -> NoReturn:
        raise TypeError("ExclusionToken cannot be pickled")

    def __repr__(self) -> str:
        state = "released" if self._released else "held"
        return f"<ExclusionToken {state} domain={self._domain.name!r}>"


class ExclusionDomain:
    """A single mutual-exclusion lock with three acquisition modes.

    Thread-safety: all methods may be called from any thread. Async
    waiters may live on different event loops.

    Attributes:
        name: Label used in logs and reprs.
    """

    def __init__(self, name: str = "playspace") -> None:
        self.name = name
        self._lock = threading.Lock()
        # Guards _waiters only, never held while waiting
        self._waiters_lock = threading.Lock()
        self._waiters: list[tuple[asyncio.AbstractEventLoop, asyncio.Future[None]]] = []

    def __repr__(self) -> str:
        return f"<ExclusionDomain {self.name!r} locked={self.locked()}>"

    def locked(self) -> bool:
        """Whether a token is currently outstanding."""
        return self._lock.locked()

    # -------------------------------------------------------------------------
    # Acquisition
    # -------------------------------------------------------------------------

    def acquire_blocking(self) -> ExclusionToken:
        """Block the calling thread until the lock is free, then take it.

        There is no timeout. Never raises for contention.
        """
        if not self._lock.acquire(blocking=False):
            logger.debug("Waiting for exclusion domain (blocking)", extra={"domain": self.name})
            self._lock.acquire()
        return ExclusionToken(self, _ISSUE_KEY)

    def try_acquire(self) -> ExclusionToken:
        """Take the lock if free, without waiting.

        Raises:
            AlreadyInPlayspaceError: Another token is outstanding.
        """
        if not self._lock.acquire(blocking=False):
            raise AlreadyInPlayspaceError(context={"domain": self.name})
        return ExclusionToken(self, _ISSUE_KEY)

    async def acquire_async(self) -> ExclusionToken:
        """Suspend the calling task until the lock is free, then take it.

        Other tasks on the same loop keep running while this one waits.
        Cancelling the awaiting task abandons the wait; the lock is never
        taken on behalf of a cancelled waiter.
        """
        loop = asyncio.get_running_loop()
        while True:
            if self._lock.acquire(blocking=False):
                return ExclusionToken(self, _ISSUE_KEY)

            waiter: asyncio.Future[None] = loop.create_future()
            entry = (loop, waiter)
            with self._waiters_lock:
                self._waiters.append(entry)
            try:
                # Re-check after registering: a release in between would
                # otherwise have found no waiter to wake.
                if self._lock.acquire(blocking=False):
                    return ExclusionToken(self, _ISSUE_KEY)
                logger.debug("Waiting for exclusion domain (async)", extra={"domain": self.name})
                await waiter
            finally:
                with self._waiters_lock, contextlib.suppress(ValueError):
                    self._waiters.remove(entry)

    # -------------------------------------------------------------------------
    # Release
    # -------------------------------------------------------------------------

    def _release(self) -> None:
        """Release the lock, then wake every registered async waiter."""
        self._lock.release()
        with self._waiters_lock:
            waiters = list(self._waiters)
        for loop, waiter in waiters:
            # Loop may already be closed if its owner abandoned the wait
            with contextlib.suppress(RuntimeError):
                loop.call_soon_threadsafe(_wake, waiter)


def _wake(waiter: asyncio.Future[None]) -> None:
    if not waiter.done():
        waiter.set_result(None)


GLOBAL_DOMAIN = ExclusionDomain()
"""The process-wide exclusion domain used by default by every playspace."""
