"""
Readiness probing while the app runs in the background.
"""

import asyncio

import pytest

from colony import (
    App,
    AppPhase,
    Context,
    ContextCancelled,
    InitializerFailure,
    ReadinessTimeout,
)

from tests.conftest import WaitingRunnable


class Warmup(WaitingRunnable):
    """Ready after a few probes."""

    def __init__(self, probes_needed: int = 3):
        super().__init__()
        self.probes = 0
        self.probes_needed = probes_needed

    def is_ready(self, ctx):
        self.probes += 1
        return self.probes >= self.probes_needed


class NeverReady(WaitingRunnable):
    async def is_ready(self, ctx):
        return False


class Unhealthy(WaitingRunnable):
    def is_ready(self, ctx):
        raise ConnectionError("upstream down")


class SlowCheck(WaitingRunnable):
    """Answers long after any reasonable readiness deadline."""

    def __init__(self):
        super().__init__()
        self.seen_ctx = None

    async def is_ready(self, ctx):
        self.seen_ctx = ctx
        await asyncio.sleep(3)
        return True


class ExitsImmediately:
    async def run(self, ctx):
        return None

    def is_ready(self, ctx):
        return False


class Unreachable:
    async def initialize(self, ctx):
        raise RuntimeError("cannot reach db")


class TestReadiness:

    @pytest.mark.asyncio
    async def test_ready_once_run_entered(self):
        ctx = Context.background()
        app = App().host(WaitingRunnable(), WaitingRunnable())
        shutdown = app.run_async(ctx)

        await app.wait_for_readiness(ctx, 1)
        assert app.phase is AppPhase.RUNNING

        ctx.cancel()
        assert await asyncio.wait_for(shutdown, 1) is None

    @pytest.mark.asyncio
    async def test_waits_for_probe(self):
        ctx = Context.background()
        warmup = Warmup()
        app = App().host(warmup)
        shutdown = app.run_async(ctx)

        await app.wait_for_readiness(ctx, 2)
        assert warmup.probes == 3

        ctx.cancel()
        await shutdown

    @pytest.mark.asyncio
    async def test_timeout_names_component(self):
        ctx = Context.background()
        app = App().host(WaitingRunnable(), NeverReady())
        shutdown = app.run_async(ctx)

        with pytest.raises(ReadinessTimeout) as exc_info:
            await app.wait_for_readiness(ctx, 0.2)
        fault = exc_info.value
        assert fault.component == "tests.test_readiness.NeverReady"
        assert "returned False" in fault.reason
        # A failed readiness check leaves the app running.
        assert app.phase is AppPhase.RUNNING

        ctx.cancel()
        await shutdown

    @pytest.mark.asyncio
    async def test_slow_readiness_check_cannot_outlive_timeout(self):
        ctx = Context.background()
        slow = SlowCheck()
        app = App().host(slow)
        shutdown = app.run_async(ctx)

        with pytest.raises(ReadinessTimeout) as exc_info:
            await asyncio.wait_for(app.wait_for_readiness(ctx, 0.2), 1)
        assert exc_info.value.component == "tests.test_readiness.SlowCheck"
        assert "did not answer" in exc_info.value.reason
        assert slow.seen_ctx.cancelled
        assert not ctx.cancelled

        ctx.cancel()
        await shutdown

    @pytest.mark.asyncio
    async def test_probe_exception_becomes_reason(self):
        ctx = Context.background()
        app = App().host(Unhealthy())
        shutdown = app.run_async(ctx)

        with pytest.raises(ReadinessTimeout) as exc_info:
            await app.wait_for_readiness(ctx, 0.15)
        assert exc_info.value.reason == "upstream down"
        assert isinstance(exc_info.value.__cause__, ConnectionError)

        ctx.cancel()
        await shutdown

    @pytest.mark.asyncio
    async def test_startup_failure_is_raised(self):
        ctx = Context.background()
        app = App().initialize(Unreachable()).host(WaitingRunnable())
        shutdown = app.run_async(ctx)

        with pytest.raises(InitializerFailure):
            await app.wait_for_readiness(ctx, 2)
        assert isinstance(await shutdown, InitializerFailure)

    @pytest.mark.asyncio
    async def test_clean_exit_before_ready(self):
        ctx = Context.background()
        app = App().host(ExitsImmediately())
        shutdown = app.run_async(ctx)

        with pytest.raises(ReadinessTimeout) as exc_info:
            await app.wait_for_readiness(ctx, 5)
        assert "terminated" in exc_info.value.reason
        assert await shutdown is None

    @pytest.mark.asyncio
    async def test_cancelled_wait_context(self):
        run_ctx = Context.background()
        wait_ctx = Context.background()
        wait_ctx.cancel(ContextCancelled("caller gave up"))
        app = App().host(NeverReady())
        shutdown = app.run_async(run_ctx)

        with pytest.raises(ContextCancelled) as exc_info:
            await app.wait_for_readiness(wait_ctx, 5)
        assert exc_info.value.message == "caller gave up"

        run_ctx.cancel()
        await shutdown

    @pytest.mark.asyncio
    async def test_no_runnables_is_ready(self):
        await App().wait_for_readiness(Context.background(), 0.01)
