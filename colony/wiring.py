"""
Wiring - populate component fields from the container and configuration.

The wirer reads the class annotations of a component (base classes first)
and fills every field marked with :class:`~colony.di.Resolve` or
:class:`~colony.config.Config`. Unmarked fields are left alone.

Wiring is all-or-nothing: every value is computed before the first
assignment, so a component that fails to wire is left exactly as it was.

Events recorded while wiring are attributed to the component's class
definition site rather than to the framework frame that performed them.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, TypeVar

from .config.access import Config, lookup
from .config.providers import ConfigProvider
from .di.container import Container, get_container
from .di.markers import Resolve, annotated_fields
from .faults import DependencyNotFound, UnsatisfiedDependency, WiringError
from .introspection.recorder import caller_of, type_name

logger = logging.getLogger("colony.di")

T = TypeVar("T")

_UNSET = object()


class Wirer:
    """
    Field injector.

    Args:
        container: Source of ``Resolve`` fields (process container by default)
        provider: Source of ``Config`` fields (process provider by default)
    """

    __slots__ = ("container", "provider")

    def __init__(
        self,
        container: Optional[Container] = None,
        provider: Optional[ConfigProvider] = None,
    ):
        self.container = container if container is not None else get_container()
        self.provider = provider

    def wire(self, target: T) -> T:
        """
        Populate every marked field of ``target``.

        Raises:
            WiringError: ``target`` is not an instance, has unresolvable
                annotations, or rejects an assignment
            UnsatisfiedDependency: A ``Resolve`` field has no binding
            MissingConfig: A required ``Config`` field has no value
            ConfigParseError: A ``Config`` value cannot be coerced
        """
        if target is None or isinstance(target, type):
            raise WiringError(type_name(target) if target is not None else "None", "expected an object instance")

        cls = type(target)
        component = type_name(cls)
        try:
            fields = annotated_fields(cls, (Resolve, Config))
        except NameError as exc:
            raise WiringError(component, f"unresolvable annotation: {exc}") from exc

        if not fields:
            return target

        caller = caller_of(cls)
        values: Dict[str, Any] = {}
        for field_name, base_type, marker in fields:
            if isinstance(marker, Resolve):
                try:
                    values[field_name] = self.container.resolve(
                        base_type,
                        marker.name,
                        caller=caller,
                        component=component,
                    )
                except DependencyNotFound as exc:
                    raise UnsatisfiedDependency(
                        exc.abstract,
                        marker.name,
                        component=component,
                        field=field_name,
                        caller=caller,
                    ) from exc
            else:
                values[field_name] = lookup(
                    marker.key,
                    base_type,
                    default=marker.default,
                    provider=self.provider,
                    caller=caller,
                    component=component,
                    field=field_name,
                )

        self._assign(target, values, component)
        logger.debug(f"Wired {component}: {', '.join(values)}")
        return target

    @staticmethod
    def _assign(target: Any, values: Dict[str, Any], component: str) -> None:
        done = []
        try:
            for field_name, value in values.items():
                previous = getattr(target, field_name, _UNSET)
                setattr(target, field_name, value)
                done.append((field_name, previous))
        except (AttributeError, TypeError) as exc:
            for field_name, previous in reversed(done):
                if previous is _UNSET:
                    delattr(target, field_name)
                else:
                    setattr(target, field_name, previous)
            raise WiringError(component, f"cannot assign field: {exc}") from exc


def wire(
    target: T,
    *,
    container: Optional[Container] = None,
    provider: Optional[ConfigProvider] = None,
) -> T:
    """Wire ``target`` with a one-off :class:`Wirer`."""
    return Wirer(container, provider).wire(target)


__all__ = ["Wirer", "wire"]
