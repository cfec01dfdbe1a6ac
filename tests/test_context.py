"""
Context: cancellation scopes and value chains.
"""

import asyncio
import threading

import pytest

from colony.context import Context
from colony.faults import ContextCancelled, DeadlineExceeded


class TestValues:

    def test_lookup_walks_ancestors(self):
        root = Context.background().with_value("tenant", "acme")
        child = root.child().with_value("user", "ada")
        assert child.value("tenant") == "acme"
        assert child.value("user") == "ada"
        assert root.value("user") is None

    def test_nearest_value_wins(self):
        ctx = Context.background().with_value("k", 1).with_value("k", 2)
        assert ctx.value("k") == 2

    def test_default(self):
        assert Context.background().value("missing", "fallback") == "fallback"

    def test_none_is_a_value(self):
        ctx = Context.background().with_value("k", None)
        assert ctx.value("k", "fallback") is None


class TestCancellation:

    def test_starts_active(self):
        ctx = Context.background()
        assert not ctx.cancelled
        assert ctx.cause is None

    def test_cancel_cascades_to_descendants(self):
        root = Context.background()
        child = root.child()
        grandchild = child.with_value("k", "v")
        root.cancel()
        assert child.cancelled
        assert grandchild.cancelled
        assert isinstance(grandchild.cause, ContextCancelled)

    def test_cancel_does_not_reach_parent(self):
        root = Context.background()
        child = root.child()
        child.cancel()
        assert child.cancelled
        assert not root.cancelled

    def test_child_of_cancelled_is_cancelled(self):
        root = Context.background()
        root.cancel(ContextCancelled("bye"))
        child = root.child()
        assert child.cancelled
        assert str(child.cause) == "[CONTEXT_CANCELLED] bye"

    def test_cancel_is_idempotent(self):
        ctx = Context.background()
        first = ContextCancelled("first")
        ctx.cancel(first)
        ctx.cancel(ContextCancelled("second"))
        assert ctx.cause is first

    @pytest.mark.asyncio
    async def test_wait_returns_after_cancel(self):
        ctx = Context.background()
        waiter = asyncio.create_task(ctx.wait())
        await asyncio.sleep(0)
        assert not waiter.done()
        ctx.cancel()
        await asyncio.wait_for(waiter, 1)

    @pytest.mark.asyncio
    async def test_cancel_from_another_thread_wakes_waiters(self):
        root = Context.background()
        child = root.child()
        waiters = [asyncio.create_task(root.wait()), asyncio.create_task(child.wait())]
        await asyncio.sleep(0)

        thread = threading.Thread(target=root.cancel, args=(ContextCancelled("from worker"),))
        thread.start()
        await asyncio.wait_for(asyncio.gather(*waiters), 1)
        thread.join()
        assert child.cause.message == "from worker"

    @pytest.mark.asyncio
    async def test_wait_on_cancelled_returns_immediately(self):
        ctx = Context.background()
        ctx.cancel()
        await asyncio.wait_for(ctx.wait(), 0.1)

    @pytest.mark.asyncio
    async def test_with_timeout(self):
        ctx = Context.background().with_timeout(0.01)
        await asyncio.wait_for(ctx.wait(), 1)
        assert isinstance(ctx.cause, DeadlineExceeded)
        assert ctx.cause.timeout == 0.01

    @pytest.mark.asyncio
    async def test_timeout_cleared_by_explicit_cancel(self):
        ctx = Context.background().with_timeout(0.01)
        ctx.cancel()
        await asyncio.sleep(0.03)
        assert type(ctx.cause) is ContextCancelled
