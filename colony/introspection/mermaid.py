"""
Mermaid rendering of an introspection report.

:func:`generate_graph` turns a :class:`~colony.introspection.report.Report`
into a top-down Mermaid flowchart::

    config  -.->  consumer          key read by a component or function
    caller  --o   dependency        dependency registered by ...
    dep     -.->  consumer          ... and resolved by ...
    runnable ---  app               runnable hosted by the app

Dependencies that were registered but never resolved are styled in red.
Node ids are derived from names and sanitized, and edges are emitted in
sorted order, so the same report always renders to the same text.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from .report import ConfigAccess, DepEvent, DepEventKind, Report

__all__ = [
    "NodeType",
    "Style",
    "Node",
    "Edge",
    "Graph",
    "LabelBuilder",
    "subline",
    "sanitize_id",
    "dependency_node_id",
    "config_node_id",
    "generate_graph",
    "APP_NODE_ID",
]

APP_NODE_ID = "ColonyApp"

EMOJI_CODE_LOCATION = "📍"
EMOJI_INTERFACE = "🧩"
EMOJI_DEP = "💉"
EMOJI_CALLER = "🏗️"
EMOJI_CONFIG = "🔑"
EMOJI_CONFIG_PROVIDER = "🫴🏽"
EMOJI_RUNNABLE = "⚙️"
EMOJI_INITIALIZER = "📦"
EMOJI_APP = "🚀"


class NodeType(Enum):
    DEPENDENCY = "dependency"
    CONFIG = "config"
    APP = "app"
    RUNNABLE = "runnable"
    INITIALIZER = "initializer"
    CALLER = "caller"


@dataclass(frozen=True)
class Style:
    """Node or inline text style."""

    fill: str = ""
    stroke: str = ""
    stroke_width: str = ""
    color: str = ""
    font_weight: str = ""
    font_size: str = ""
    is_html: bool = False

    def to_css(self) -> str:
        parts = [
            f"{name}:{value}"
            for name, value in (
                ("fill", self.fill),
                ("stroke", self.stroke),
                ("stroke-width", self.stroke_width),
                ("color", self.color),
                ("font-weight", self.font_weight),
                ("font-size", self.font_size),
            )
            if value
        ]
        if not parts:
            return ""
        if self.is_html:
            return ";".join(parts) + ";"
        return ",".join(parts)


# Node styles
STYLE_DEP_USED = Style(fill="#d6fff9", stroke="#2ec4b6", stroke_width="2px", color="#222222")
STYLE_DEP_UNUSED = Style(fill="#fce1e1", stroke="#a60202", stroke_width="2px", color="#b26a00")
STYLE_CONFIG = Style(fill="#f1f7d2", stroke="#a7c957", stroke_width="2px", color="#222222")
STYLE_CALLER = Style(fill="#fff3e0", stroke="#f57c00", stroke_width="2px", color="#222222")
STYLE_RUNNABLE = Style(fill="#f1e8ff", stroke="#7b2cbf", stroke_width="2px", color="#222222")
STYLE_APP = Style(fill="#0f56c4", stroke="#68a4eb", stroke_width="6px", color="#ffffff", font_weight="bold")
STYLE_INITIALIZER = Style(fill="#f0f0f0", stroke="#373636", stroke_width="1px", color="#222222", font_weight="bold")

# Subline styles
STYLE_NAME = Style(color="#b26a00", font_size="12px", is_html=True)
STYLE_DEP_IMPL = Style(color="darkgray", font_size="11px", is_html=True)
STYLE_DEP_WIRING = Style(color="darkblue", font_size="11px", is_html=True)
STYLE_CODE_LOC = Style(color="gray", font_size="11px", is_html=True)
STYLE_CONFIG_PROVIDER = Style(color="green", font_size="11px", is_html=True)
STYLE_CONFIG_DEFAULT = Style(color="green", font_size="11px", is_html=True)
STYLE_TYPE_NAME = Style(color="green", font_size="11px", is_html=True)

_NODE_STYLES = {
    NodeType.CONFIG: STYLE_CONFIG,
    NodeType.CALLER: STYLE_CALLER,
    NodeType.RUNNABLE: STYLE_RUNNABLE,
    NodeType.APP: STYLE_APP,
    NodeType.INITIALIZER: STYLE_INITIALIZER,
}

# Render layers, top to bottom.
_LAYERS = (
    (NodeType.DEPENDENCY, NodeType.CONFIG),
    (NodeType.CALLER, NodeType.INITIALIZER),
    (NodeType.RUNNABLE,),
    (NodeType.APP,),
)

_UNSAFE_ID = re.compile(r"[^0-9A-Za-z_]")


def sanitize_id(value: str) -> str:
    """Make ``value`` usable as a Mermaid node id."""
    return _UNSAFE_ID.sub("_", value.replace("*", "ptr_"))


def _text(value: str) -> str:
    # Label text sits inside a double-quoted Mermaid string.
    return html.escape(value, quote=False).replace('"', "#quot;")


@dataclass
class Node:
    id: str
    label: str
    type: NodeType
    style: Optional[Style] = None


@dataclass(frozen=True)
class Edge:
    source: str
    target: str
    arrow: str = "-->"


@dataclass
class LabelBuilder:
    """Builds the HTML label of a node."""

    label: str
    font_size: int = 0
    font_color: str = ""
    bold: bool = False
    sublines: List[str] = field(default_factory=list)

    def to_html(self) -> str:
        styles = []
        if self.font_size > 0:
            styles.append(f"font-size:{self.font_size}px")
        if self.font_color:
            styles.append(f"color:{self.font_color}")
        style_attr = f" style='{';'.join(styles)}'" if styles else ""

        main = f"<span{style_attr}>{_text(self.label)}</span>"
        if self.bold:
            main = f"<b>{main}</b>"
        if self.sublines:
            return main + "<br/>" + "<br/>".join(self.sublines)
        return main


def subline(style: Style, content: str) -> str:
    """Secondary label line. ``content`` is trusted markup."""
    css = style.to_css()
    if css:
        return f"<span style='{css}'>{content}</span>"
    return f"<span>{content}</span>"


class Graph:
    """Nodes plus edges, rendered as ``graph TD``."""

    def __init__(self, nodes: Optional[List[Node]] = None, edges: Optional[List[Edge]] = None):
        self.nodes: List[Node] = list(nodes or [])
        self.edges: List[Edge] = list(edges or [])

    def render_td(self) -> str:
        lines = ["graph TD"]

        for layer in _LAYERS:
            for node in self.nodes:
                if node.type in layer:
                    lines.append(f'\t{sanitize_id(node.id)}["{node.label}"]')

        for edge in sorted(set(self.edges), key=lambda e: (e.source, e.target, e.arrow)):
            lines.append(f"    {sanitize_id(edge.source)} {edge.arrow} {sanitize_id(edge.target)}")

        for node in self.nodes:
            css = node.style.to_css() if node.style is not None else ""
            if css:
                lines.append(f"    style {sanitize_id(node.id)} {css}")

        return "\n".join(lines) + "\n"


# ── Report -> Graph ──────────────────────────────────────────────────

def _code_location(file: str, line: int) -> str:
    return subline(STYLE_CODE_LOC, f"{EMOJI_CODE_LOCATION}({_text(file)}:{line})")


def dependency_node_id(event: DepEvent) -> str:
    return f"dep:{event.type}:{event.name}:{event.impl}"


def config_node_id(access: ConfigAccess) -> str:
    return f"config:{access.key}"


class _GraphBuilder:
    def __init__(self, report: Report, app_name: str):
        self.report = report
        self.app_name = app_name
        self.nodes: Dict[str, Node] = {}
        self.edges: List[Edge] = []
        self.resolved: Set[str] = set()
        self.components: Dict[str, NodeType] = {}
        for info in report.initializers:
            self.components[info.type] = NodeType.INITIALIZER
        for info in report.runners:
            self.components.setdefault(info.type, NodeType.RUNNABLE)

    def build(self) -> Graph:
        self._app()
        self._components()
        for access in self.report.configs:
            self._config(access)
        for event in self.report.deps:
            if event.kind is DepEventKind.REGISTER:
                self._registration(event)
            else:
                self._resolution(event)
        self._apply_styles()
        return Graph(list(self.nodes.values()), self.edges)

    def _app(self) -> None:
        label = LabelBuilder(f"{EMOJI_APP} {self.app_name}", font_size=20, font_color="white", bold=True)
        self.nodes[APP_NODE_ID] = Node(APP_NODE_ID, label.to_html(), NodeType.APP)

    def _components(self) -> None:
        for info in self.report.initializers:
            if info.type in self.nodes:
                continue
            label = LabelBuilder(
                info.type,
                font_size=16,
                bold=True,
                sublines=[subline(STYLE_TYPE_NAME, f"{EMOJI_INITIALIZER} <b>Initializer</b>")],
            )
            self.nodes[info.type] = Node(info.type, label.to_html(), NodeType.INITIALIZER)

        for info in self.report.runners:
            if info.type not in self.nodes:
                label = LabelBuilder(
                    info.type,
                    font_size=16,
                    bold=True,
                    sublines=[subline(STYLE_TYPE_NAME, f"{EMOJI_RUNNABLE} <b>Runnable</b>")],
                )
                self.nodes[info.type] = Node(info.type, label.to_html(), NodeType.RUNNABLE)
            self.edges.append(Edge(info.type, APP_NODE_ID, "---"))

    def _canonical(self, func: str, component: str = "") -> Tuple[str, NodeType]:
        """Map a caller to a known component node when it belongs to one."""
        for candidate in (func, component):
            if not candidate:
                continue
            for name, kind in self.components.items():
                if candidate == name or candidate.startswith(name + "."):
                    return name, kind
        if func:
            return func, NodeType.CALLER
        if component:
            return component, NodeType.CALLER
        return "unknown caller", NodeType.CALLER

    def _consumer(self, func: str, component: str, file: str, line: int) -> str:
        node_id, kind = self._canonical(func, component)
        if node_id not in self.nodes:
            label = LabelBuilder(node_id, font_size=15, bold=True, sublines=[_code_location(file, line)])
            self.nodes[node_id] = Node(node_id, label.to_html(), kind)
        return node_id

    def _config(self, access: ConfigAccess) -> None:
        node_id = config_node_id(access)
        if node_id not in self.nodes:
            sublines = []
            if access.provider:
                sublines.append(subline(STYLE_CONFIG_PROVIDER, f"{EMOJI_CONFIG_PROVIDER} {_text(access.provider)}"))
            if access.used_default:
                sublines.append(subline(STYLE_CONFIG_DEFAULT, "default"))
            sublines.append(subline(STYLE_TYPE_NAME, f"{EMOJI_CONFIG} <b>Config</b>"))
            label = LabelBuilder(access.key, font_size=16, bold=True, sublines=sublines)
            self.nodes[node_id] = Node(node_id, label.to_html(), NodeType.CONFIG)

        consumer = self._consumer(access.caller.func, access.component, access.caller.file, access.caller.line)
        self.edges.append(Edge(node_id, consumer, "-.->"))

    def _dependency_label(self, event: DepEvent, detailed: bool) -> str:
        sublines = []
        if event.name:
            sublines.append(subline(STYLE_NAME, f"name: {_text(event.name)}"))
        if event.type != event.impl:
            sublines.append(subline(STYLE_DEP_IMPL, f"{EMOJI_INTERFACE} {_text(event.impl)}"))
        if detailed:
            sublines.append(subline(STYLE_DEP_WIRING, f"{EMOJI_CALLER} {_text(event.caller.func)}"))
            sublines.append(_code_location(event.caller.file, event.caller.line))
            sublines.append(subline(STYLE_TYPE_NAME, f"{EMOJI_DEP} <b>Dependency</b>"))
        return LabelBuilder(event.type, font_size=16, bold=True, sublines=sublines).to_html()

    def _registration(self, event: DepEvent) -> None:
        node_id = dependency_node_id(event)
        # The latest registration describes the binding.
        self.nodes[node_id] = Node(node_id, self._dependency_label(event, True), NodeType.DEPENDENCY)
        if event.caller.func or event.component:
            owner = self._consumer(event.caller.func, event.component, event.caller.file, event.caller.line)
            self.edges.append(Edge(owner, node_id, "--o"))

    def _resolution(self, event: DepEvent) -> None:
        node_id = dependency_node_id(event)
        if node_id not in self.nodes:
            self.nodes[node_id] = Node(node_id, self._dependency_label(event, False), NodeType.DEPENDENCY)
        consumer = self._consumer(event.caller.func, event.component, event.caller.file, event.caller.line)
        self.edges.append(Edge(node_id, consumer, "-.->"))
        self.resolved.add(node_id)

    def _apply_styles(self) -> None:
        for node_id, node in self.nodes.items():
            if node.type is NodeType.DEPENDENCY:
                node.style = STYLE_DEP_USED if node_id in self.resolved else STYLE_DEP_UNUSED
            else:
                node.style = _NODE_STYLES[node.type]


def generate_graph(report: Report, app_name: str = "colony") -> str:
    """Render ``report`` as Mermaid ``graph TD`` source."""
    return _GraphBuilder(report, app_name).build().render_td()
