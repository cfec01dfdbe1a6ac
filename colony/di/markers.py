"""
Resolve - field marker for container-injected dependencies.

Components declare what they need through ``typing.Annotated``; the wirer
fills the field from the process-wide container before the component runs.

Usage::

    from typing import Annotated
    from colony.di import Resolve

    class Worker:
        logger: Annotated[Logger, Resolve()]            # default binding
        audit: Annotated[Logger, Resolve("audit")]      # named binding

        async def run(self, ctx):
            self.logger.info("started")
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any, List, Optional, Tuple, get_args, get_origin, get_type_hints


@dataclass(frozen=True, slots=True)
class Resolve:
    """Dependency descriptor for Annotated[]-based field injection.

    Attributes:
        name: Binding name; ``""`` selects the default binding.
    """

    name: str = ""

    def __repr__(self) -> str:
        return f"Resolve({self.name!r})" if self.name else "Resolve()"


# ── Annotation Helpers ───────────────────────────────────────────────

def unpack_annotation(annotation: Any, marker_types: Tuple[type, ...] = (Resolve,)) -> Tuple[Any, Optional[Any]]:
    """Unpack Annotated[T, marker] -> (T, marker).

    The first metadata item that is an instance of ``marker_types`` wins.
    Plain annotations, and Annotated[] without a known marker, return
    ``(base, None)``.
    """
    if get_origin(annotation) is not Annotated:
        return (annotation, None)

    args = get_args(annotation)
    base_type = args[0]
    for meta in args[1:]:
        if isinstance(meta, marker_types):
            return (base_type, meta)
    return (base_type, None)


def annotated_fields(cls: type, marker_types: Tuple[type, ...]) -> List[Tuple[str, Any, Any]]:
    """
    Collect ``(field, base type, marker)`` for every marked class attribute.

    Base classes come first, then declaration order.

    Raises:
        NameError: If an annotation refers to a name that cannot be evaluated.
    """
    hints = get_type_hints(cls, include_extras=True)
    fields = []
    for field_name, annotation in hints.items():
        base_type, marker = unpack_annotation(annotation, marker_types)
        if marker is not None:
            fields.append((field_name, base_type, marker))
    return fields


__all__ = ["Resolve", "unpack_annotation", "annotated_fields"]
