"""
Ready-made introspectors.

Pass one to :meth:`colony.App.introspect`; combine several with
:class:`IntrospectorChain`::

    app.introspect(IntrospectorChain(
        LoggingIntrospector(),
        JsonReportWriter("build/report.json"),
        GraphPageWriter("build/graph.html", app_name="billing"),
    ))
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional, Union

from ..context import Context
from ..protocols import invoke
from .page import DEFAULT_MAX_TEXT_SIZE, render_graph_page
from .report import Report

__all__ = [
    "LoggingIntrospector",
    "JsonReportWriter",
    "GraphPageWriter",
    "IntrospectorChain",
]

logger = logging.getLogger("colony.introspection")


def _write_text(path: Path, text: str) -> None:
    """Atomic write (write-to-tmp then rename)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(text, encoding="utf-8")
    tmp.replace(path)


class LoggingIntrospector:
    """Logs a one-line summary, then the full JSON report at DEBUG."""

    def __init__(self, log: Optional[logging.Logger] = None, level: int = logging.INFO):
        self.log = log or logger
        self.level = level

    def introspect(self, ctx: Context, report: Report) -> None:
        self.log.log(
            self.level,
            f"Introspection: {len(report.configs)} config access(es), "
            f"{len(report.registrations())} registration(s), "
            f"{len(report.resolutions())} resolution(s), "
            f"{len(report.initializers)} initializer(s), "
            f"{len(report.runners)} runnable(s)",
        )
        for access in report.configs:
            source = "default" if access.used_default else access.provider
            self.log.log(self.level, f"  config {access.key} <- {source} ({access.caller})")
        if self.log.isEnabledFor(logging.DEBUG):
            self.log.debug(report.to_json())


class JsonReportWriter:
    """Writes ``report.to_json()`` to ``path``."""

    def __init__(self, path: Union[str, Path], indent: Optional[int] = 2):
        self.path = Path(path)
        self.indent = indent

    def introspect(self, ctx: Context, report: Report) -> None:
        _write_text(self.path, report.to_json(indent=self.indent))
        logger.info(f"Introspection report written to {self.path}")


class GraphPageWriter:
    """Writes the Mermaid graph page to ``path``."""

    def __init__(
        self,
        path: Union[str, Path],
        app_name: str = "colony",
        max_text_size: int = DEFAULT_MAX_TEXT_SIZE,
    ):
        self.path = Path(path)
        self.app_name = app_name
        self.max_text_size = max_text_size

    def introspect(self, ctx: Context, report: Report) -> None:
        _write_text(self.path, render_graph_page(self.app_name, report, self.max_text_size))
        logger.info(f"Introspection graph written to {self.path}")


class IntrospectorChain:
    """Runs several introspectors in order; the first failure stops the chain."""

    def __init__(self, *introspectors: Any):
        self.introspectors = introspectors

    async def introspect(self, ctx: Context, report: Report) -> None:
        for introspector in self.introspectors:
            await invoke(introspector.introspect, ctx, report)
