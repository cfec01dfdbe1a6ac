"""
Colony Testing - isolation helpers and pytest fixtures.

The container, the recorder, the configuration provider and the parser
registry are process-wide. Tests that touch them should start from a clean
slate and leave one behind.

Usage in conftest.py::

    from colony.testing import colony_state, static_config  # noqa: F401

Or directly::

    with isolated_state():
        register(Clock, FakeClock())
        ...
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Mapping, Optional

import pytest

from .config.access import get_provider, reset_provider, set_provider
from .config.parsers import reset_parsers
from .config.providers import MappingProvider
from .di.container import get_container
from .introspection.recorder import get_recorder


def reset_state() -> None:
    """Clear every process-wide registry."""
    get_container().clear()
    get_recorder().reset()
    reset_provider()
    reset_parsers()


@contextmanager
def isolated_state(config: Optional[Mapping[str, object]] = None) -> Iterator[None]:
    """
    Run a block against empty process-wide state.

    Args:
        config: When given, the process-wide provider is a
            :class:`MappingProvider` over these values for the block.
    """
    previous = get_provider()
    reset_state()
    if config is not None:
        set_provider(MappingProvider(config, name="test"))
    try:
        yield
    finally:
        reset_state()
        set_provider(previous)


# -----------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------

@pytest.fixture
def colony_state():
    """Empty container, recorder, provider and parsers for one test."""
    with isolated_state():
        yield


@pytest.fixture
def static_config():
    """
    Factory fixture - install in-memory configuration for the test.

    Usage::

        def test_port(static_config):
            static_config({"PORT": "8080"})
    """
    previous = get_provider()

    def install(values: Mapping[str, object], name: str = "test") -> MappingProvider:
        provider = MappingProvider(values, name=name)
        set_provider(provider)
        return provider

    yield install
    set_provider(previous)


__all__ = ["reset_state", "isolated_state", "colony_state", "static_config"]
