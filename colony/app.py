"""
App - composition root.

Collects initializers, runnables, an optional introspector and optional
configuration providers, then drives one run::

    CONFIGURED -> INITIALIZING -> RUNNING -> DRAINING -> TERMINATED

Usage::

    app = (
        App("billing")
        .configure(EnvProvider(), DotEnvProvider(".env"))
        .initialize(Database(), Clients())
        .host(InvoiceWorker(), HttpServer())
        .introspect(JsonReportWriter("report.json"))
    )
    app.run()   # blocks until SIGINT/SIGTERM or a runnable exits

Startup is strictly ordered: each initializer is wired and then
initialized before the next one starts, then every runnable is wired, then
the introspector is wired and handed the report, and only then do the
runnables start. Any failure along the way aborts startup; components that
were already set up are closed in reverse order.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Any, Callable, Generator, List, Optional, Tuple

from .config.access import get_provider, set_provider
from .config.providers import CompositeProvider, ConfigProvider
from .context import Context
from .faults import (
    ContextCancelled,
    InitializerFailure,
    IntrospectorFailure,
    InvalidTransition,
    ReadinessTimeout,
)
from .introspection.recorder import caller_of, get_recorder, type_name
from .introspection.report import ComponentInfo, Report
from .lifecycle import AppPhase, EventHandler, LifecycleCoordinator
from .protocols import call_inline, invoke
from .supervisor import READINESS_POLL_INTERVAL, RunnableSpec, Supervisor
from .wiring import Wirer

logger = logging.getLogger("colony.app")

_BUSY = frozenset({AppPhase.INITIALIZING, AppPhase.RUNNING, AppPhase.DRAINING, AppPhase.FAILED})


class Shutdown:
    """
    Handle on a background run started with :meth:`App.run_async`.

    Awaiting it yields the final error of the run, or ``None`` on a clean
    shutdown. Awaiting does not cancel the run.
    """

    __slots__ = ("_task",)

    def __init__(self, task: "asyncio.Task[Optional[BaseException]]"):
        self._task = task

    def __await__(self) -> Generator[Any, None, Optional[BaseException]]:
        return asyncio.shield(self._task).__await__()

    def done(self) -> bool:
        return self._task.done()

    @property
    def error(self) -> Optional[BaseException]:
        """Final error once done; ``None`` while running or on success."""
        if not self._task.done() or self._task.cancelled():
            return None
        exc = self._task.exception()
        return exc if exc is not None else self._task.result()

    def result(self) -> None:
        """
        Raise the final error, if any.

        Raises:
            asyncio.InvalidStateError: If the run has not finished yet
        """
        error = self._task.result()
        if error is not None:
            raise error

    def cancel(self) -> bool:
        """Cancel the run task; runnables are cancelled forcibly."""
        return self._task.cancel()

    def __repr__(self) -> str:
        state = "done" if self._task.done() else "running"
        return f"<Shutdown {state}>"


class App:
    """
    Application builder and runner.

    Args:
        name: Used in logs, lifecycle events and the graph page title
    """

    def __init__(self, name: str = "colony"):
        self.name = name
        self._initializers: List[Any] = []
        self._runnables: List[RunnableSpec] = []
        self._introspector: Any = None
        self._providers: List[ConfigProvider] = []
        self._lifecycle = LifecycleCoordinator(name)
        self._supervisor: Optional[Supervisor] = None
        self._report: Optional[Report] = None
        self._finished: Optional[asyncio.Event] = None
        self._final_error: Optional[BaseException] = None

    # ── Builder ──────────────────────────────────────────────────────

    def initialize(self, *initializers: Any) -> "App":
        """Add initializers; they run in the order given."""
        for init in initializers:
            if not callable(getattr(init, "initialize", None)):
                raise TypeError(f"{type_name(type(init))} has no initialize() method")
            self._initializers.append(init)
        return self

    def host(self, *runnables: Any) -> "App":
        """Add runnables; they all start together."""
        self._runnables.extend(RunnableSpec(r) for r in runnables)
        return self

    def introspect(self, introspector: Any) -> "App":
        """Set the introspector that receives the startup report."""
        if not callable(getattr(introspector, "introspect", None)):
            raise TypeError(f"{type_name(type(introspector))} has no introspect() method")
        self._introspector = introspector
        return self

    def configure(self, *providers: ConfigProvider) -> "App":
        """
        Use these providers (first match wins) instead of the process-wide
        one while this app runs.
        """
        self._providers.extend(providers)
        return self

    def on_event(self, handler: EventHandler) -> "App":
        """Subscribe to lifecycle events."""
        self._lifecycle.on_event(handler)
        return self

    # ── State ────────────────────────────────────────────────────────

    @property
    def phase(self) -> AppPhase:
        return self._lifecycle.phase

    @property
    def report(self) -> Optional[Report]:
        """Report produced right before runnables started in the last run."""
        return self._report

    @property
    def initializers(self) -> Tuple[Any, ...]:
        return tuple(self._initializers)

    @property
    def runnables(self) -> Tuple[Any, ...]:
        return tuple(spec.component for spec in self._runnables)

    # ── Running ──────────────────────────────────────────────────────

    def run(self) -> None:
        """
        Run until interrupted (SIGINT/SIGTERM) or until a runnable exits.

        Raises:
            Fault: The first startup or runnable failure
        """
        asyncio.run(self._run_main())

    async def _run_main(self) -> None:
        ctx = Context.background()
        loop = asyncio.get_running_loop()
        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._on_signal, ctx, sig)
                installed.append(sig)
            except (NotImplementedError, RuntimeError, ValueError):
                logger.debug(f"Signal handler for {sig.name} not supported here")
        try:
            await self.run_with_context(ctx)
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)

    def _on_signal(self, ctx: Context, sig: signal.Signals) -> None:
        logger.info(f"[{self.name}] Received {sig.name}, shutting down")
        ctx.cancel(ContextCancelled(f"received {sig.name}"))

    async def run_with_context(self, ctx: Context) -> None:
        """
        Run under ``ctx``; cancelling it starts a graceful shutdown.

        Raises:
            Fault: The first startup or runnable failure
        """
        self._begin()
        error = await self._execute(ctx)
        if error is not None:
            raise error

    def run_async(self, ctx: Context) -> Shutdown:
        """
        Start the run in the background and return immediately.

        Must be called with a running event loop.
        """
        loop = asyncio.get_running_loop()
        self._begin()
        task = loop.create_task(self._execute(ctx), name=f"colony:{self.name}")
        return Shutdown(task)

    def _begin(self) -> None:
        if self.phase in _BUSY:
            raise InvalidTransition(self.phase.value, AppPhase.INITIALIZING.value)
        self._finished = asyncio.Event()
        self._final_error = None
        self._report = None
        self._supervisor = Supervisor(self._runnables)
        get_recorder().reset(
            runners=[spec.info for spec in self._runnables],
            initializers=[ComponentInfo(type=type_name(type(i)), component=type(i)) for i in self._initializers],
        )
        self._lifecycle.transition(AppPhase.INITIALIZING, "starting")

    async def _execute(self, ctx: Context) -> Optional[BaseException]:
        root = ctx.child()
        closers: List[Tuple[str, Callable[[], Any]]] = []
        error: Optional[BaseException] = None
        previous_provider = get_provider()
        if self._providers:
            set_provider(CompositeProvider(*self._providers))

        try:
            try:
                run_ctx = await self._start(root, closers)
            except Exception as exc:
                error = exc
                self._lifecycle.transition(
                    AppPhase.FAILED,
                    "startup failed",
                    component=getattr(exc, "component", None) or None,
                    error=exc,
                )
            else:
                self._lifecycle.transition(AppPhase.RUNNING, f"{len(self._runnables)} runnable(s) starting")
                error = await self._supervisor.supervise(run_ctx, on_drain=self._on_drain)
        finally:
            await self._close_all(closers)
            root.cancel()
            if self._providers:
                set_provider(previous_provider)
            self._terminate(error)
        return error

    async def _start(self, root: Context, closers: List[Tuple[str, Callable[[], Any]]]) -> Context:
        wirer = Wirer()
        ctx = root

        for init in self._initializers:
            name = type_name(type(init))
            wirer.wire(init)
            try:
                derived = await invoke(init.initialize, ctx)
            except Exception as exc:
                raise InitializerFailure(exc, component=name, caller=caller_of(init.initialize))
            if derived is not None:
                if not isinstance(derived, Context):
                    raise InitializerFailure(
                        TypeError(f"initialize() returned {type(derived).__name__}, expected Context or None"),
                        component=name,
                        caller=caller_of(init.initialize),
                    )
                ctx = derived
            if callable(getattr(init, "close", None)):
                closers.append((name, init.close))
            self._lifecycle.notify(f"{name} initialized", component=name)

        for spec in self._runnables:
            wirer.wire(spec.component)
            if callable(getattr(spec.component, "close", None)):
                closers.append((spec.name, spec.component.close))

        if self._introspector is None:
            self._report = get_recorder().snapshot()
            return ctx

        name = type_name(type(self._introspector))
        wirer.wire(self._introspector)
        self._report = get_recorder().snapshot()
        try:
            await invoke(self._introspector.introspect, ctx, self._report)
        except Exception as exc:
            raise IntrospectorFailure(exc, component=name, caller=caller_of(self._introspector.introspect))
        return ctx

    def _on_drain(self, reason: str) -> None:
        self._lifecycle.transition(AppPhase.DRAINING, reason)

    async def _close_all(self, closers: List[Tuple[str, Callable[[], Any]]]) -> None:
        for name, close in reversed(closers):
            try:
                await call_inline(close)
                logger.debug(f"Closed {name}")
            except Exception as exc:
                logger.error(f"Error closing {name}: {exc}")
                self._lifecycle.notify(f"{name} close failed", component=name, error=exc)

    def _terminate(self, error: Optional[BaseException]) -> None:
        phase = self.phase
        if phase is AppPhase.INITIALIZING:
            self._lifecycle.transition(AppPhase.FAILED, "startup interrupted")
        elif phase is AppPhase.RUNNING:
            self._lifecycle.transition(AppPhase.DRAINING, "run interrupted")
        self._final_error = error
        self._lifecycle.transition(
            AppPhase.TERMINATED,
            "stopped with error" if error is not None else "stopped",
            error=error,
        )
        if self._finished is not None:
            self._finished.set()

    # ── Readiness ────────────────────────────────────────────────────

    async def wait_for_readiness(self, ctx: Context, timeout: float) -> None:
        """
        Block until every runnable reports ready.

        Does not stop the application on failure.

        Raises:
            ReadinessTimeout: Not ready within ``timeout`` seconds, or the
                run ended cleanly before becoming ready
            ContextCancelled: ``ctx`` was cancelled first
            Fault: The run ended with this error before becoming ready
        """
        if not self._runnables:
            return

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        failing: Optional[str] = None
        last_error: Optional[BaseException] = None

        while True:
            remaining = deadline - loop.time()
            if remaining > 0 and self.phase is AppPhase.RUNNING and self._supervisor is not None:
                failing, last_error = await self._supervisor.probe(ctx, remaining)
                if failing is None:
                    return

            if self._finished is not None and self._finished.is_set():
                if self._final_error is not None:
                    raise self._final_error
                raise ReadinessTimeout(timeout, reason="application terminated before becoming ready")

            if ctx.cancelled:
                cause = ctx.cause
                raise cause if isinstance(cause, ContextCancelled) else ContextCancelled()

            remaining = deadline - loop.time()
            if remaining <= 0:
                raise ReadinessTimeout(
                    timeout,
                    component=failing or "",
                    reason=str(last_error) if last_error is not None else f"application is {self.phase.value}",
                ) from last_error

            await asyncio.sleep(min(READINESS_POLL_INTERVAL, remaining))

    def __repr__(self) -> str:
        return (
            f"<App {self.name!r} phase={self.phase.value} "
            f"initializers={len(self._initializers)} runnables={len(self._runnables)}>"
        )


__all__ = ["App", "Shutdown"]
