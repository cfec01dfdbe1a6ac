"""
Context - cancellation scope threaded through every component hook.

A :class:`Context` is passed as the first argument of ``initialize``,
``run``, ``is_ready`` and ``introspect``. It carries two things:

- a cancellation signal that cascades from parent to children, and
- an immutable chain of key/value pairs that initializers may enrich.

Usage::

    root = Context.background()
    scope = root.child()
    enriched = scope.with_value("tenant", "acme")

    async def run(self, ctx: Context) -> None:
        await ctx.wait()          # returns once the scope is cancelled

    scope.cancel()                # cancels ``scope`` and ``enriched``

:meth:`Context.cancel` may be called from any thread, including the worker
threads that run plain-function hooks; waiters are woken on the event loop
they are blocked in.
"""

from __future__ import annotations

import asyncio
import weakref
from typing import Any, Optional

from .faults import ContextCancelled, DeadlineExceeded

__all__ = ["Context"]

_MISSING = object()


class Context:
    """
    Cancellation scope plus value chain.

    Cancelling a context cancels every descendant; cancelling a child
    never reaches its parent.
    """

    __slots__ = (
        "_parent",
        "_values",
        "_event",
        "_cause",
        "_children",
        "_timer",
        "_loop",
        "__weakref__",
    )

    def __init__(self, parent: Optional["Context"] = None, values: Optional[dict] = None):
        self._parent = parent
        self._values: dict[Any, Any] = dict(values or {})
        self._event = asyncio.Event()
        self._cause: Optional[BaseException] = None
        self._children: "weakref.WeakSet[Context]" = weakref.WeakSet()
        self._timer: Optional[asyncio.TimerHandle] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

        if parent is not None:
            if parent._cause is not None:
                self._cancel(parent._cause)
            else:
                parent._children.add(self)

    @classmethod
    def background(cls) -> "Context":
        """Fresh root context that is only cancelled explicitly."""
        return cls()

    # ── Derivation ───────────────────────────────────────────────────

    def child(self) -> "Context":
        """Cancellable child scope."""
        return Context(self)

    def with_value(self, key: Any, value: Any) -> "Context":
        """Child scope carrying ``key`` -> ``value``."""
        return Context(self, {key: value})

    def with_timeout(self, seconds: float) -> "Context":
        """
        Child scope cancelled with :class:`DeadlineExceeded` after ``seconds``.

        Requires a running event loop.
        """
        ctx = Context(self)
        if ctx._cause is None:
            loop = asyncio.get_running_loop()
            ctx._loop = loop
            ctx._timer = loop.call_later(seconds, ctx.cancel, DeadlineExceeded(seconds))
        return ctx

    # ── Values ───────────────────────────────────────────────────────

    def value(self, key: Any, default: Any = None) -> Any:
        """Look ``key`` up through this context and its ancestors."""
        ctx: Optional[Context] = self
        while ctx is not None:
            found = ctx._values.get(key, _MISSING)
            if found is not _MISSING:
                return found
            ctx = ctx._parent
        return default

    # ── Cancellation ─────────────────────────────────────────────────

    @property
    def cancelled(self) -> bool:
        return self._cause is not None

    @property
    def cause(self) -> Optional[BaseException]:
        """Why the context was cancelled, ``None`` while active."""
        return self._cause

    def cancel(self, cause: Optional[BaseException] = None) -> None:
        """Cancel this scope and all descendants. Idempotent."""
        if self._cause is not None:
            return
        self._cancel(cause or ContextCancelled())

    def _cancel(self, cause: BaseException) -> None:
        if self._cause is not None:
            return
        self._cause = cause
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._wake()
        for child in list(self._children):
            child._cancel(cause)
        self._children.clear()
        if self._parent is not None:
            self._parent._children.discard(self)

    def _wake(self) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            self._event.set()
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._event.set()
        else:
            loop.call_soon_threadsafe(self._event.set)

    async def wait(self) -> None:
        """Block until the context is cancelled."""
        self._loop = asyncio.get_running_loop()
        if self._cause is not None:
            return
        await self._event.wait()

    def __repr__(self) -> str:
        state = f"cancelled={self._cause!r}" if self._cause is not None else "active"
        return f"Context({state}, values={list(self._values)})"
