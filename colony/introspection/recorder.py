"""
Recorder - append-only, thread-safe event log for introspection.

Every container registration and resolution and every configuration access
is appended here with a caller location and a stamp from one monotonic
counter shared by all event kinds.

Caller attribution walks the stack: it starts ``CALLER_SKIP`` frames above
:func:`capture_caller` (skipping the helper itself and the recording entry
point that invoked it) and then keeps unwinding until it reaches the first
frame whose source file lives outside the ``colony`` package directory.
Thin adapters inside the package therefore never show up as callers, no
matter how many of them sit between user code and the recorder.
"""

from __future__ import annotations

import inspect
import logging
import os
import sys
import threading
from types import FrameType
from typing import Any, Iterable, List, Optional

from .report import Caller, ComponentInfo, ConfigAccess, DepEvent, DepEventKind, Report

__all__ = [
    "CALLER_SKIP",
    "Recorder",
    "get_recorder",
    "capture_caller",
    "caller_of",
    "type_name",
]

logger = logging.getLogger("colony.introspection")

# Frames skipped before the package-boundary walk starts:
# capture_caller itself and the recording entry point calling it.
CALLER_SKIP = 2

_PACKAGE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

_UNKNOWN = Caller(func="unknown", file="unknown", line=0)


def _is_internal(filename: str) -> bool:
    return os.path.abspath(filename).startswith(_PACKAGE_DIR + os.sep)


def _format_file(path: str) -> str:
    """``/a/b/pkg/mod.py`` -> ``pkg/mod.py``."""
    head, name = os.path.split(path)
    parent = os.path.basename(head)
    return f"{parent}/{name}" if parent else name


def _frame_caller(frame: FrameType) -> Caller:
    code = frame.f_code
    qualname = getattr(code, "co_qualname", code.co_name)
    module = frame.f_globals.get("__name__", "")
    func = f"{module}.{qualname}" if module else qualname
    return Caller(func=func, file=_format_file(code.co_filename), line=frame.f_lineno)


def capture_caller(skip: int = CALLER_SKIP) -> Caller:
    """
    Locate the first frame outside the framework.

    Args:
        skip: Frames to drop before the boundary walk; 0 is this function.
    """
    try:
        frame: Optional[FrameType] = sys._getframe(skip)
    except ValueError:
        frame = sys._getframe(0)
    try:
        while frame is not None and _is_internal(frame.f_code.co_filename):
            frame = frame.f_back
        if frame is None:
            return _UNKNOWN
        return _frame_caller(frame)
    finally:
        del frame


def caller_of(obj: Any) -> Caller:
    """Definition site of a class, function or bound method."""
    if inspect.ismethod(obj):
        obj = obj.__func__
    obj = inspect.unwrap(obj) if callable(obj) and not isinstance(obj, type) else obj

    if isinstance(obj, type):
        func = type_name(obj)
        try:
            path = inspect.getsourcefile(obj) or ""
            line = inspect.getsourcelines(obj)[1]
        except (OSError, TypeError):
            module = sys.modules.get(obj.__module__)
            path = getattr(module, "__file__", "") or ""
            line = 0
        return Caller(func=func, file=_format_file(path) if path else "", line=line)

    code = getattr(obj, "__code__", None)
    if code is None:
        return caller_of(type(obj))
    module = getattr(obj, "__module__", "") or ""
    qualname = getattr(obj, "__qualname__", code.co_name)
    return Caller(
        func=f"{module}.{qualname}" if module else qualname,
        file=_format_file(code.co_filename),
        line=code.co_firstlineno,
    )


def type_name(tp: Any) -> str:
    """``module.QualName`` for classes; ``repr`` for typing constructs."""
    if isinstance(tp, type):
        if tp.__module__ == "builtins":
            return tp.__qualname__
        return f"{tp.__module__}.{tp.__qualname__}"
    return repr(tp)


class Recorder:
    """
    Chronological log of dependency and configuration events.

    One instance lives per process (:func:`get_recorder`); each application
    run calls :meth:`reset` so reports only describe that run.
    """

    __slots__ = ("_lock", "_order", "_configs", "_deps", "_runners", "_initializers")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._order = 0
        self._configs: List[ConfigAccess] = []
        self._deps: List[DepEvent] = []
        self._runners: List[ComponentInfo] = []
        self._initializers: List[ComponentInfo] = []

    def reset(
        self,
        *,
        runners: Iterable[ComponentInfo] = (),
        initializers: Iterable[ComponentInfo] = (),
    ) -> None:
        """Drop every event and restart the order counter."""
        with self._lock:
            self._order = 0
            self._configs.clear()
            self._deps.clear()
            self._runners[:] = list(runners)
            self._initializers[:] = list(initializers)

    def record_dep(
        self,
        kind: DepEventKind,
        abstract: str,
        name: str,
        impl: str,
        caller: Caller,
        component: str = "",
    ) -> DepEvent:
        with self._lock:
            self._order += 1
            event = DepEvent(
                kind=kind,
                type=abstract,
                name=name,
                impl=impl,
                caller=caller,
                component=component,
                order=self._order,
            )
            self._deps.append(event)
        logger.debug(
            f"#{event.order} {kind.value} {abstract}"
            f"{f' (name={name})' if name else ''} -> {impl} by {caller}"
        )
        return event

    def record_config(
        self,
        key: str,
        provider: str,
        used_default: bool,
        caller: Caller,
        component: str = "",
    ) -> ConfigAccess:
        with self._lock:
            self._order += 1
            access = ConfigAccess(
                key=key,
                provider="" if used_default else provider,
                used_default=used_default,
                caller=caller,
                component=component,
                order=self._order,
            )
            self._configs.append(access)
        logger.debug(
            f"#{access.order} config {key} from "
            f"{'default' if used_default else provider} by {caller}"
        )
        return access

    @property
    def last_order(self) -> int:
        with self._lock:
            return self._order

    def snapshot(self) -> Report:
        """Immutable report of everything recorded so far."""
        with self._lock:
            return Report(
                configs=tuple(self._configs),
                deps=tuple(self._deps),
                runners=tuple(self._runners),
                initializers=tuple(self._initializers),
            )


_recorder = Recorder()


def get_recorder() -> Recorder:
    """Process-wide recorder."""
    return _recorder
