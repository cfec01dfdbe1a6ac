"""
Supervisor - runs hosted runnables concurrently under one shared scope.

All runnables start together, each on its own asyncio task, with a child of
the run context. The first runnable to return (cleanly or not) cancels that
scope, asking the rest to wind down; so does cancellation of the run
context itself. The supervisor then waits for every task to finish on its
own. Tasks are only cancelled forcibly when the supervising task is itself
cancelled.

Only the first failure is reported, wrapped in
:class:`~colony.faults.RunnableFailure`; later ones are logged.
A runnable that ends with a ``CancelledError`` the supervisor did not cause
counts as failed.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, List, Optional, Sequence, Tuple

from .context import Context
from .faults import RunnableFailure
from .introspection.recorder import caller_of, type_name
from .introspection.report import ComponentInfo
from .protocols import call_inline, invoke

logger = logging.getLogger("colony.supervisor")

# Seconds between two readiness probes.
READINESS_POLL_INTERVAL = 0.05


class NotReady(Exception):
    """A readiness probe reported ``False`` or the runnable has not started."""


class RunnableSpec:
    """
    A hosted runnable plus its bookkeeping.

    Runnables without an ``is_ready`` probe count as ready as soon as their
    ``run`` has been entered.
    """

    __slots__ = ("component", "name", "started")

    def __init__(self, component: Any):
        if not callable(getattr(component, "run", None)):
            raise TypeError(f"{type_name(type(component))} has no run() method")
        self.component = component
        self.name = type_name(type(component))
        self.started = False

    @property
    def info(self) -> ComponentInfo:
        return ComponentInfo(type=self.name, component=type(self.component))

    async def probe(self, ctx: Context, timeout: Optional[float] = None) -> Optional[BaseException]:
        """
        ``None`` when ready, otherwise the reason it is not.

        With a ``timeout``, ``is_ready`` gets a context that expires after
        that many seconds and an answer arriving later counts as not ready.
        """
        checker = getattr(self.component, "is_ready", None)
        if checker is None:
            return None if self.started else NotReady("run() not entered yet")
        check_ctx = ctx if timeout is None else ctx.with_timeout(timeout)
        try:
            result = await asyncio.wait_for(call_inline(checker, check_ctx), timeout)
        except asyncio.TimeoutError as exc:
            if timeout is None:
                return exc
            return NotReady(f"is_ready() did not answer within {timeout:g}s")
        except Exception as exc:
            return exc
        finally:
            if check_ctx is not ctx:
                check_ctx.cancel()
        if result is False:
            return NotReady("is_ready() returned False")
        return None

    def __repr__(self) -> str:
        return f"<RunnableSpec {self.name} started={self.started}>"


class Supervisor:
    """
    Spawns runnables and collects their outcome.

    Args:
        specs: Runnables in registration order
    """

    def __init__(self, specs: Sequence[RunnableSpec]):
        self.specs = list(specs)
        self.scope: Optional[Context] = None
        self.drain_reason = ""
        self._failure: Optional[RunnableFailure] = None

    async def supervise(
        self,
        ctx: Context,
        on_drain: Optional[Callable[[str], None]] = None,
    ) -> Optional[RunnableFailure]:
        """
        Run every spec until all of them returned.

        Args:
            ctx: Parent of the shared run scope
            on_drain: Called once, with a reason, when the scope is cancelled

        Returns:
            The first runnable failure, or ``None``.
        """
        self.scope = scope = ctx.child()
        self._failure = None
        self.drain_reason = ""

        if not self.specs:
            self.drain_reason = "no runnables hosted"
            if on_drain is not None:
                on_drain(self.drain_reason)
            return None

        tasks = [
            asyncio.create_task(self._run_one(spec, scope), name=f"colony:{spec.name}")
            for spec in self.specs
        ]
        logger.info(f"Started {len(tasks)} runnable(s)")

        try:
            await scope.wait()
            if not self.drain_reason:
                self.drain_reason = f"context cancelled: {scope.cause}"
            logger.info(f"Draining: {self.drain_reason}")
            if on_drain is not None:
                on_drain(self.drain_reason)
            await asyncio.wait(tasks)
        except asyncio.CancelledError:
            scope.cancel()
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        return self._failure

    async def _run_one(self, spec: RunnableSpec, scope: Context) -> None:
        spec.started = True
        reason = f"{spec.name} was cancelled"
        try:
            await invoke(spec.component.run, scope)
        except asyncio.CancelledError as exc:
            # Forced cancellation always follows scope.cancel(); otherwise
            # the runnable cancelled itself.
            if scope.cancelled:
                raise
            self._fail(spec, exc)
            reason = f"{spec.name} failed"
        except Exception as exc:
            self._fail(spec, exc)
            reason = f"{spec.name} failed"
        else:
            logger.info(f"{spec.name} exited")
            reason = f"{spec.name} exited"
        finally:
            spec.started = False
            if not scope.cancelled:
                self.drain_reason = reason
                scope.cancel()

    def _fail(self, spec: RunnableSpec, exc: BaseException) -> None:
        failure = RunnableFailure(exc, component=spec.name, caller=caller_of(spec.component.run))
        if self._failure is None:
            self._failure = failure
            logger.error(f"{failure}")
        else:
            logger.error(f"Additional runnable failure: {failure}")

    async def probe(
        self,
        ctx: Context,
        timeout: Optional[float] = None,
    ) -> Tuple[Optional[str], Optional[BaseException]]:
        """
        Check every runnable in order, stopping at the first one not ready.

        ``timeout`` bounds the whole round; runnables whose turn comes
        after it ran out are reported as not ready.

        Returns:
            ``(None, None)`` when all are ready, else the failing component
            name and the reason.
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        for spec in self.specs:
            budget = None if deadline is None else max(deadline - loop.time(), 0.0)
            reason = await spec.probe(ctx, budget)
            if reason is not None:
                return spec.name, reason
        return None, None


__all__ = [
    "READINESS_POLL_INTERVAL",
    "NotReady",
    "RunnableSpec",
    "Supervisor",
]
