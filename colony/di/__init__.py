"""
Colony Dependency Container

One process-wide registry keyed by abstract type plus an optional name,
filled by initializers and read by the wirer through ``Resolve`` markers.

Key Features:
- Nominal keys: the abstract type object itself, never its string name
- Named bindings alongside the default binding
- Protocol satisfaction checked at registration
- Every registration and resolution recorded with its caller
"""

from .container import (
    Container,
    check_binding,
    get_container,
    register,
    register_once,
    resolve,
)

from .markers import (
    Resolve,
    annotated_fields,
    unpack_annotation,
)

__all__ = [
    # Container
    "Container",
    "check_binding",
    "get_container",
    "register",
    "register_once",
    "resolve",
    # Markers
    "Resolve",
    "annotated_fields",
    "unpack_annotation",
]
