"""
Lifecycle - application phase tracking and event delivery.

An application moves through::

    CONFIGURED -> INITIALIZING -> RUNNING -> DRAINING -> TERMINATED
                       |                                    ^
                       +--------------> FAILED -------------+

Every transition is logged and delivered to the registered handlers as a
:class:`LifecycleEvent`. Handlers must not break the application: their
errors are logged and swallowed.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Optional

from .faults import InvalidTransition

logger = logging.getLogger("colony.app")


class AppPhase(Enum):
    """Lifecycle phases."""
    CONFIGURED = "configured"
    INITIALIZING = "initializing"
    FAILED = "failed"
    RUNNING = "running"
    DRAINING = "draining"
    TERMINATED = "terminated"


_TRANSITIONS: Dict[AppPhase, FrozenSet[AppPhase]] = {
    AppPhase.CONFIGURED: frozenset({AppPhase.INITIALIZING}),
    AppPhase.INITIALIZING: frozenset({AppPhase.FAILED, AppPhase.RUNNING}),
    AppPhase.FAILED: frozenset({AppPhase.TERMINATED}),
    AppPhase.RUNNING: frozenset({AppPhase.DRAINING}),
    AppPhase.DRAINING: frozenset({AppPhase.TERMINATED}),
    # A terminated app may be run again.
    AppPhase.TERMINATED: frozenset({AppPhase.INITIALIZING}),
}


@dataclass
class LifecycleEvent:
    """Event emitted during lifecycle transitions."""
    phase: AppPhase
    component: Optional[str] = None
    message: Optional[str] = None
    error: Optional[BaseException] = None


EventHandler = Callable[[LifecycleEvent], None]


class LifecycleCoordinator:
    """
    Holds the current phase and fans events out to handlers.

    The phase is readable from any thread.
    """

    def __init__(self, app_name: str = "colony"):
        self.app_name = app_name
        self._phase = AppPhase.CONFIGURED
        self._lock = threading.Lock()
        self.event_handlers: List[EventHandler] = []
        self.logger = logger

    @property
    def phase(self) -> AppPhase:
        with self._lock:
            return self._phase

    def on_event(self, handler: EventHandler) -> None:
        """
        Register event handler.

        Args:
            handler: Callable that receives LifecycleEvent
        """
        self.event_handlers.append(handler)

    def transition(
        self,
        phase: AppPhase,
        message: Optional[str] = None,
        *,
        component: Optional[str] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        """
        Move to ``phase`` and emit the matching event.

        Raises:
            InvalidTransition: If ``phase`` is not reachable from the current one
        """
        with self._lock:
            current = self._phase
            if phase not in _TRANSITIONS[current]:
                raise InvalidTransition(current.value, phase.value)
            self._phase = phase

        text = message or phase.value
        if error is not None:
            self.logger.error(f"[{self.app_name}] {current.value} -> {phase.value}: {text}: {error}")
        else:
            self.logger.info(f"[{self.app_name}] {current.value} -> {phase.value}: {text}")
        self._emit_event(LifecycleEvent(phase, component=component, message=text, error=error))

    def notify(
        self,
        message: str,
        *,
        component: Optional[str] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        """Emit an event for the current phase without changing it."""
        self._emit_event(LifecycleEvent(self.phase, component=component, message=message, error=error))

    def _emit_event(self, event: LifecycleEvent) -> None:
        """Emit lifecycle event to all handlers."""
        for handler in self.event_handlers:
            try:
                handler(event)
            except Exception as e:
                self.logger.error(f"Event handler error: {e}")


__all__ = [
    "AppPhase",
    "LifecycleEvent",
    "EventHandler",
    "LifecycleCoordinator",
]
