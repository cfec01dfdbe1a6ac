"""
String coercion for configuration values.

Configuration always arrives as text; the wirer converts it to the field's
declared type through this registry. Built-in parsers cover ``str``,
``bool``, ``int``, ``float`` and ``datetime.timedelta``; applications add
their own with :func:`register_parser`.

Durations use the compact ``<number><unit>`` notation, units being
``ns``, ``us`` (or ``µs``), ``ms``, ``s``, ``m`` and ``h``. Segments can be
combined (``1h30m``, ``1.5s``, ``-250ms``); a bare ``0`` is zero.
"""

from __future__ import annotations

import re
import threading
from datetime import timedelta
from typing import Any, Callable, Dict, Optional, Type, TypeVar

from ..faults import ConfigParseError
from ..introspection.recorder import type_name

T = TypeVar("T")

Parser = Callable[[str], Any]

_TRUE = frozenset(("1", "t", "true"))
_FALSE = frozenset(("0", "f", "false"))

# Unit -> microseconds. Nanoseconds are truncated to timedelta resolution.
_UNITS: Dict[str, float] = {
    "ns": 0.001,
    "us": 1.0,
    "µs": 1.0,  # U+00B5 micro sign
    "μs": 1.0,  # U+03BC greek mu
    "ms": 1_000.0,
    "s": 1_000_000.0,
    "m": 60_000_000.0,
    "h": 3_600_000_000.0,
}

_SEGMENT = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"invalid boolean {value!r}")


def parse_duration(value: str) -> timedelta:
    """
    Parse a duration such as ``300ms``, ``2s`` or ``1h30m``.

    Raises:
        ValueError: On an empty string, missing unit, unknown unit or a
            duration too large for :class:`~datetime.timedelta`.
    """
    text = value.strip()
    sign = 1
    if text[:1] in ("+", "-"):
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if text == "0":
        return timedelta(0)
    if not text:
        raise ValueError(f"invalid duration {value!r}")

    micros = 0.0
    pos = 0
    while pos < len(text):
        match = _SEGMENT.match(text, pos)
        if match is None:
            raise ValueError(f"invalid duration {value!r}")
        number, unit = match.groups()
        micros += float(number) * _UNITS[unit]
        pos = match.end()
    try:
        return timedelta(microseconds=sign * micros)
    except OverflowError as exc:
        raise ValueError(f"duration {value!r} out of range") from exc


def _parse_int(value: str) -> int:
    return int(value.strip(), 10)


def _parse_float(value: str) -> float:
    return float(value.strip())


def _parse_str(value: str) -> str:
    return value


_BUILTIN: Dict[Any, Parser] = {
    str: _parse_str,
    bool: parse_bool,
    int: _parse_int,
    float: _parse_float,
    timedelta: parse_duration,
}

_registry: Dict[Any, Parser] = dict(_BUILTIN)
_lock = threading.Lock()


def register_parser(target: Type[T], parser: Callable[[str], T]) -> None:
    """
    Install (or replace) the parser used for fields of type ``target``.

    Example::

        register_parser(Path, Path)
        register_parser(LogLevel, lambda s: LogLevel[s.upper()])
    """
    with _lock:
        _registry[target] = parser


def get_parser(target: Any) -> Optional[Parser]:
    with _lock:
        return _registry.get(target)


def parse_value(key: str, value: str, target: Any) -> Any:
    """
    Coerce ``value`` to ``target``.

    Raises:
        ConfigParseError: When no parser is registered for ``target`` or the
            parser rejects the value.
    """
    parser = get_parser(target)
    if parser is None:
        raise ConfigParseError(key, value, type_name(target), "no parser registered for this type")
    try:
        return parser(value)
    except (ValueError, TypeError, KeyError, OverflowError) as exc:
        raise ConfigParseError(key, value, type_name(target), str(exc)) from exc


def reset_parsers() -> None:
    """Restore the built-in parser set."""
    with _lock:
        _registry.clear()
        _registry.update(_BUILTIN)


__all__ = [
    "register_parser",
    "get_parser",
    "parse_value",
    "parse_bool",
    "parse_duration",
    "reset_parsers",
]
