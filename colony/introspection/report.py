"""
Introspection report - what was registered, resolved and configured.

A :class:`Report` is an immutable snapshot assembled from the recorder right
before runnables start. Events from every subsystem share one monotonic
``order`` counter, so configs and deps can be merged back into a single
timeline by sorting on it.

JSON form::

    {
      "configs": [{"key", "provider", "used_default", "caller", "component", "order"}],
      "deps": [{"kind": "register" | "resolve", "type", "name", "impl",
                "caller", "component", "order"}],
      "runners": [{"type"}],
      "initializers": [{"type"}]
    }
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

__all__ = [
    "Caller",
    "ConfigAccess",
    "DepEventKind",
    "DepEvent",
    "ComponentInfo",
    "Report",
]


@dataclass(frozen=True, slots=True)
class Caller:
    """Code location that produced an event."""

    func: str = ""
    file: str = ""
    line: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"func": self.func, "file": self.file, "line": self.line}

    def __str__(self) -> str:
        if not self.file:
            return self.func or "unknown"
        return f"{self.func} ({self.file}:{self.line})"


@dataclass(frozen=True, slots=True)
class ConfigAccess:
    """A single configuration key access."""

    key: str
    provider: str  # empty when a default was used
    used_default: bool
    caller: Caller
    component: str = ""
    order: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "provider": self.provider,
            "used_default": self.used_default,
            "caller": self.caller.to_dict(),
            "component": self.component,
            "order": self.order,
        }


class DepEventKind(str, Enum):
    REGISTER = "register"
    RESOLVE = "resolve"


@dataclass(frozen=True, slots=True)
class DepEvent:
    """A dependency registration or resolution."""

    kind: DepEventKind
    type: str  # abstraction name
    name: str  # binding name, "" for the default binding
    impl: str  # concrete implementation type name
    caller: Caller
    component: str = ""
    order: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "type": self.type,
            "name": self.name,
            "impl": self.impl,
            "caller": self.caller.to_dict(),
            "component": self.component,
            "order": self.order,
        }


@dataclass(frozen=True, slots=True)
class ComponentInfo:
    """Descriptor of a registered runnable or initializer."""

    type: str
    component: Optional[type] = field(default=None, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type}


@dataclass(frozen=True, slots=True)
class Report:
    """Ordered snapshot of configs, dependency events and components."""

    configs: Tuple[ConfigAccess, ...] = ()
    deps: Tuple[DepEvent, ...] = ()
    runners: Tuple[ComponentInfo, ...] = ()
    initializers: Tuple[ComponentInfo, ...] = ()

    def timeline(self) -> List[Union[ConfigAccess, DepEvent]]:
        """Configs and deps merged in global order."""
        return sorted([*self.configs, *self.deps], key=lambda e: e.order)

    def registrations(self) -> List[DepEvent]:
        return [e for e in self.deps if e.kind is DepEventKind.REGISTER]

    def resolutions(self) -> List[DepEvent]:
        return [e for e in self.deps if e.kind is DepEventKind.RESOLVE]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "configs": [c.to_dict() for c in self.configs],
            "deps": [d.to_dict() for d in self.deps],
            "runners": [r.to_dict() for r in self.runners],
            "initializers": [i.to_dict() for i in self.initializers],
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)
