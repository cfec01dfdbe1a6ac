"""
Container - process-wide typed registry.

Values are stored under ``(abstract, name)``: the abstract type object
(compared by identity) plus an optional binding name, ``""`` being the
default binding. There is no instantiation, scoping or cycle detection;
the container hands back exactly the value that was registered.

Every successful registration and resolution is reported to the
introspection recorder together with the code location that asked for it.
"""

from __future__ import annotations

import inspect
import logging
import threading
from contextlib import contextmanager
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple, Type, TypeVar

from ..faults import DependencyNotFound, DuplicateBinding, InvalidBinding
from ..introspection.recorder import capture_caller, get_recorder, type_name
from ..introspection.report import Caller, DepEventKind

logger = logging.getLogger("colony.di")

T = TypeVar("T")

Key = Tuple[Any, str]


class _ReadWriteLock:
    """Many readers or one writer."""

    __slots__ = ("_cond", "_readers", "_writer")

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


def _protocol_members(proto: type) -> Tuple[str, ...]:
    """Public attributes and methods declared across a protocol's bases."""
    members: Dict[str, None] = {}
    for base in reversed(proto.__mro__):
        if base is object or not getattr(base, "_is_protocol", False):
            continue
        names = list(base.__dict__) + list(inspect.get_annotations(base))
        for attr in names:
            if not attr.startswith("_"):
                members[attr] = None
    return tuple(members)


def check_binding(abstract: Any, value: Any, name: str = "") -> None:
    """
    Verify that ``value`` satisfies ``abstract``.

    Classes, ABCs and runtime-checkable protocols use ``isinstance``;
    plain protocols are checked member by member.

    Raises:
        InvalidBinding: If the check fails.
    """
    if not isinstance(abstract, type):
        return

    if getattr(abstract, "_is_protocol", False) and not getattr(abstract, "_is_runtime_protocol", False):
        missing = tuple(m for m in _protocol_members(abstract) if not hasattr(value, m))
        if missing:
            raise InvalidBinding(type_name(abstract), type_name(type(value)), name, missing)
        return

    try:
        ok = isinstance(value, abstract)
    except TypeError:
        # Parameterised generics cannot be checked at runtime.
        return
    if not ok:
        raise InvalidBinding(type_name(abstract), type_name(type(value)), name)


class Container:
    """
    Typed registry keyed by ``(abstract type, name)``.

    Reads run in parallel; writes are exclusive. Recorder events are
    emitted inside the critical section so their order matches the order
    in which the container state changed.
    """

    __slots__ = ("_entries", "_lock")

    def __init__(self) -> None:
        self._entries: Dict[Key, Any] = {}
        self._lock = _ReadWriteLock()

    def register(
        self,
        abstract: Type[T],
        value: T,
        name: str = "",
        *,
        caller: Optional[Caller] = None,
        component: str = "",
    ) -> None:
        """
        Bind ``value`` to ``(abstract, name)``, replacing any prior binding.

        Args:
            abstract: Abstract type (class, ABC or protocol)
            value: Concrete value satisfying ``abstract``
            name: Binding name, ``""`` for the default binding

        Raises:
            InvalidBinding: If ``value`` does not satisfy ``abstract``
        """
        self._store(abstract, value, name, replace=True, caller=caller or capture_caller(), component=component)

    def register_once(
        self,
        abstract: Type[T],
        value: T,
        name: str = "",
        *,
        caller: Optional[Caller] = None,
        component: str = "",
    ) -> None:
        """
        Like :meth:`register`, but refuse to replace an existing binding.

        Raises:
            DuplicateBinding: If ``(abstract, name)`` is already bound
            InvalidBinding: If ``value`` does not satisfy ``abstract``
        """
        self._store(abstract, value, name, replace=False, caller=caller or capture_caller(), component=component)

    def _store(
        self,
        abstract: Any,
        value: Any,
        name: str,
        *,
        replace: bool,
        caller: Caller,
        component: str,
    ) -> None:
        check_binding(abstract, value, name)

        key = (abstract, name)
        abstract_name = type_name(abstract)
        with self._lock.write():
            if not replace and key in self._entries:
                raise DuplicateBinding(abstract_name, name)
            if key in self._entries:
                logger.debug(f"Replacing binding for {abstract_name} (name={name!r})")
            self._entries[key] = value
            get_recorder().record_dep(
                DepEventKind.REGISTER,
                abstract_name,
                name,
                type_name(type(value)),
                caller,
                component,
            )

    def resolve(
        self,
        abstract: Type[T],
        name: str = "",
        *,
        caller: Optional[Caller] = None,
        component: str = "",
    ) -> T:
        """
        Look up the value bound to ``(abstract, name)``.

        Raises:
            DependencyNotFound: If nothing is bound under the key
        """
        caller = caller or capture_caller()
        abstract_name = type_name(abstract)
        with self._lock.read():
            try:
                value = self._entries[(abstract, name)]
            except KeyError:
                raise DependencyNotFound(abstract_name, name) from None
            get_recorder().record_dep(
                DepEventKind.RESOLVE,
                abstract_name,
                name,
                type_name(type(value)),
                caller,
                component,
            )
        return value

    def is_registered(self, abstract: Any, name: str = "") -> bool:
        with self._lock.read():
            return (abstract, name) in self._entries

    def snapshot(self) -> Mapping[Key, Any]:
        """Read-only copy of every binding."""
        with self._lock.read():
            return MappingProxyType(dict(self._entries))

    def clear(self) -> None:
        """Drop every binding."""
        with self._lock.write():
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._entries)

    def __repr__(self) -> str:
        return f"<Container bindings={len(self)}>"


_container = Container()


def get_container() -> Container:
    """Process-wide container."""
    return _container


def register(abstract: Type[T], value: T, name: str = "") -> None:
    """Bind ``value`` in the process-wide container."""
    _container.register(abstract, value, name)


def register_once(abstract: Type[T], value: T, name: str = "") -> None:
    """Bind ``value`` in the process-wide container unless already bound."""
    _container.register_once(abstract, value, name)


def resolve(abstract: Type[T], name: str = "") -> T:
    """Resolve ``(abstract, name)`` from the process-wide container."""
    return _container.resolve(abstract, name)


__all__ = [
    "Container",
    "check_binding",
    "get_container",
    "register",
    "register_once",
    "resolve",
]
