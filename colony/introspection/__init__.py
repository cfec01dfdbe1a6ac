"""
Colony Introspection

Records every dependency registration and resolution and every
configuration access, with the code location that caused it, and turns the
log into a report: JSON, a Mermaid graph, or an HTML page.
"""

from .report import (
    Caller,
    ConfigAccess,
    DepEventKind,
    DepEvent,
    ComponentInfo,
    Report,
)

from .recorder import (
    CALLER_SKIP,
    Recorder,
    get_recorder,
    capture_caller,
    caller_of,
    type_name,
)

from .mermaid import generate_graph
from .page import render_graph_page

from .introspectors import (
    LoggingIntrospector,
    JsonReportWriter,
    GraphPageWriter,
    IntrospectorChain,
)

__all__ = [
    # Report
    "Caller",
    "ConfigAccess",
    "DepEventKind",
    "DepEvent",
    "ComponentInfo",
    "Report",
    # Recorder
    "CALLER_SKIP",
    "Recorder",
    "get_recorder",
    "capture_caller",
    "caller_of",
    "type_name",
    # Rendering
    "generate_graph",
    "render_graph_page",
    # Introspectors
    "LoggingIntrospector",
    "JsonReportWriter",
    "GraphPageWriter",
    "IntrospectorChain",
]
