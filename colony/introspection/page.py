"""
Standalone HTML page showing the introspection graph.

The page is a Jinja2 template that embeds the Mermaid source as a JSON
string and renders it client-side with the Mermaid ESM bundle.
"""

from __future__ import annotations

from functools import lru_cache

from jinja2 import Environment, PackageLoader, select_autoescape

from .mermaid import generate_graph
from .report import Report

__all__ = ["DEFAULT_MAX_TEXT_SIZE", "MERMAID_URL", "render_graph_page"]

DEFAULT_MAX_TEXT_SIZE = 100000

MERMAID_URL = "https://cdn.jsdelivr.net/npm/mermaid@11/dist/mermaid.esm.min.mjs"


@lru_cache(maxsize=1)
def _environment() -> Environment:
    return Environment(
        loader=PackageLoader("colony.introspection", "templates"),
        autoescape=select_autoescape(
            enabled_extensions=["html", "htm", "xml"],
            default_for_string=True,
        ),
    )


def render_graph_page(
    app_name: str,
    report: Report,
    max_text_size: int = DEFAULT_MAX_TEXT_SIZE,
    mermaid_url: str = MERMAID_URL,
) -> str:
    """
    Render the graph page for ``report``.

    Args:
        app_name: Shown in the page title
        report: Report to draw
        max_text_size: Mermaid ``maxTextSize``; values <= 0 fall back to
            the default
        mermaid_url: Where the browser loads Mermaid from
    """
    if max_text_size <= 0:
        max_text_size = DEFAULT_MAX_TEXT_SIZE
    template = _environment().get_template("graph.html")
    return template.render(
        title=f"{app_name} Introspection Graph",
        graph=generate_graph(report, app_name),
        max_text_size=max_text_size,
        mermaid_url=mermaid_url,
    )
