"""Tests for ExclusionDomain and ExclusionToken.

Covers the three acquisition modes (blocking, non-blocking, async), their
mutual exclusion across threads and tasks, cancellation of async waiters,
and the token's single-release / no-copy guarantees.
"""

from __future__ import annotations

import asyncio
import copy
import pickle
import threading

import pytest

from playspace.exceptions import AlreadyInPlayspaceError
from playspace.mutex import GLOBAL_DOMAIN, ExclusionDomain, ExclusionToken

# ============================================================================
# Tokens
# ============================================================================


class TestExclusionToken:
    def test_only_domain_can_issue(self, domain: ExclusionDomain) -> None:
        with pytest.raises(TypeError):
            ExclusionToken(domain, object())

    def test_release_twice_raises(self, domain: ExclusionDomain) -> None:
        token = domain.try_acquire()
        token.release()
        assert token.released
        with pytest.raises(RuntimeError, match="already released"):
            token.release()
        # The failed second release must not have unlocked someone else's hold
        other = domain.try_acquire()
        with pytest.raises(RuntimeError):
            token.release()
        assert domain.locked()
        other.release()

    @pytest.mark.parametrize("duplicate", [copy.copy, copy.deepcopy, pickle.dumps])
    def test_cannot_be_duplicated(self, domain: ExclusionDomain, duplicate) -> None:
        token = domain.try_acquire()
        try:
            with pytest.raises(TypeError):
                duplicate(token)
        finally:
            token.release()

    def test_repr_and_domain(self, domain: ExclusionDomain) -> None:
        token = domain.try_acquire()
        assert token.domain is domain
        assert "held" in repr(token)
        token.release()
        assert "released" in repr(token)


# ============================================================================
# Non-blocking Acquisition
# ============================================================================


class TestTryAcquire:
    def test_contention_raises(self, domain: ExclusionDomain) -> None:
        token = domain.try_acquire()
        assert domain.locked()

        with pytest.raises(AlreadyInPlayspaceError) as exc_info:
            domain.try_acquire()
        assert exc_info.value.context["domain"] == "test"

        token.release()
        assert not domain.locked()
        domain.try_acquire().release()

    def test_domains_are_independent(self, domain: ExclusionDomain) -> None:
        other = ExclusionDomain("other")
        a = domain.try_acquire()
        b = other.try_acquire()
        a.release()
        b.release()

    def test_global_domain_exists(self) -> None:
        assert isinstance(GLOBAL_DOMAIN, ExclusionDomain)
        assert GLOBAL_DOMAIN.name == "playspace"


# ============================================================================
# Blocking Acquisition
# ============================================================================


class TestAcquireBlocking:
    def test_uncontended(self, domain: ExclusionDomain) -> None:
        token = domain.acquire_blocking()
        assert domain.locked()
        token.release()

    def test_waits_for_release_from_other_thread(self, domain: ExclusionDomain) -> None:
        held = domain.try_acquire()
        acquired = threading.Event()
        tokens: list[ExclusionToken] = []

        def waiter() -> None:
            tokens.append(domain.acquire_blocking())
            acquired.set()

        thread = threading.Thread(target=waiter)
        thread.start()
        assert not acquired.wait(timeout=0.1)

        held.release()
        thread.join(timeout=5)
        assert acquired.is_set()
        assert domain.locked()
        tokens[0].release()
        assert not domain.locked()


# ============================================================================
# Async Acquisition
# ============================================================================


class TestAcquireAsync:
    async def test_uncontended(self, domain: ExclusionDomain) -> None:
        token = await domain.acquire_async()
        assert domain.locked()
        token.release()

    async def test_woken_by_release(self, domain: ExclusionDomain) -> None:
        held = domain.try_acquire()
        task = asyncio.create_task(domain.acquire_async())
        await asyncio.sleep(0.05)
        assert not task.done()

        held.release()
        token = await asyncio.wait_for(task, timeout=5)
        assert domain.locked()
        token.release()

    async def test_woken_by_release_from_other_thread(self, domain: ExclusionDomain) -> None:
        held = domain.try_acquire()
        timer = threading.Timer(0.05, held.release)
        timer.start()
        try:
            token = await asyncio.wait_for(domain.acquire_async(), timeout=5)
        finally:
            timer.join()
        token.release()

    async def test_other_tasks_keep_running_while_waiting(self, domain: ExclusionDomain) -> None:
        held = domain.try_acquire()
        waiter = asyncio.create_task(domain.acquire_async())

        ticks = 0
        for _ in range(5):
            await asyncio.sleep(0.01)
            ticks += 1
        assert ticks == 5
        assert not waiter.done()

        held.release()
        (await waiter).release()

    async def test_cancelled_waiter_leaves_domain_untouched(self, domain: ExclusionDomain) -> None:
        held = domain.try_acquire()
        task = asyncio.create_task(domain.acquire_async())
        await asyncio.sleep(0.05)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert domain._waiters == []
        assert domain.locked()
        held.release()
        assert not domain.locked()
        domain.try_acquire().release()

    async def test_waiters_are_mutually_exclusive(self, domain: ExclusionDomain) -> None:
        inside = 0
        max_inside = 0

        async def worker() -> None:
            nonlocal inside, max_inside
            token = await domain.acquire_async()
            inside += 1
            max_inside = max(max_inside, inside)
            await asyncio.sleep(0.005)
            inside -= 1
            token.release()

        await asyncio.wait_for(asyncio.gather(*(worker() for _ in range(8))), timeout=10)
        assert max_inside == 1
        assert not domain.locked()

    async def test_excludes_blocking_thread(self, domain: ExclusionDomain) -> None:
        token = await domain.acquire_async()
        blocked = asyncio.create_task(asyncio.to_thread(domain.acquire_blocking))
        await asyncio.sleep(0.1)
        assert not blocked.done()

        token.release()
        other = await asyncio.wait_for(blocked, timeout=5)
        other.release()
