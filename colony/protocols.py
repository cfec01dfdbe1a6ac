"""
Component protocols and hook invocation.

Components are duck-typed: any object with the right method takes part.
Hooks may be coroutine functions or plain functions. ``initialize``,
``run`` and ``introspect`` run plain functions in a worker thread so they
cannot stall the event loop; ``is_ready`` and ``close`` are expected to be
quick and are called inline. A hook running in a worker thread may still
call ``ctx.cancel()``.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .context import Context
    from .introspection.report import Report


@runtime_checkable
class Initializer(Protocol):
    """Runs once, in declaration order, before any runnable starts."""

    def initialize(self, ctx: "Context") -> Optional["Context"]:
        """
        Prepare shared state (typically: register dependencies).

        Returning a context makes it the parent of every later initializer
        and of all runnables; returning ``None`` keeps the current one.
        """
        ...


@runtime_checkable
class Runnable(Protocol):
    """Long-lived worker; ``run`` blocks for the worker's lifetime."""

    def run(self, ctx: "Context") -> Any:
        ...


@runtime_checkable
class ReadyChecker(Protocol):
    """Readiness probe. Raise or return ``False`` when not ready."""

    def is_ready(self, ctx: "Context") -> Any:
        ...


@runtime_checkable
class Closer(Protocol):
    """Released after every runnable exited, in reverse registration order."""

    def close(self) -> Any:
        ...


@runtime_checkable
class Introspector(Protocol):
    """Receives the startup report once, right before runnables start."""

    def introspect(self, ctx: "Context", report: "Report") -> Any:
        ...


async def invoke(hook: Callable[..., Any], *args: Any) -> Any:
    """Await an async hook, or run a sync one in a worker thread."""
    if inspect.iscoroutinefunction(hook):
        return await hook(*args)
    result = await asyncio.to_thread(hook, *args)
    if inspect.isawaitable(result):
        return await result
    return result


async def call_inline(hook: Callable[..., Any], *args: Any) -> Any:
    """Call a hook on the loop thread, awaiting it if it is async."""
    result = hook(*args)
    if inspect.isawaitable(result):
        return await result
    return result


__all__ = [
    "Initializer",
    "Runnable",
    "ReadyChecker",
    "Closer",
    "Introspector",
    "invoke",
    "call_inline",
]
