"""
Shared test fixtures and helpers for the Colony test suite.
"""

import asyncio
from typing import Any, List, Optional, Protocol

import pytest

from colony.testing import isolated_state

# Import fixtures so pytest can discover them
from colony.testing import static_config  # noqa: F401


@pytest.fixture(autouse=True)
def _clean_state():
    """Every test starts with an empty container, recorder and configuration."""
    with isolated_state(config={}):
        yield


# ============================================================================
# Shared component doubles
# ============================================================================


class Greeter(Protocol):
    def greet(self, name: str) -> str: ...


class EnglishGreeter:
    def greet(self, name: str) -> str:
        return f"hello {name}"


class FrenchGreeter:
    def greet(self, name: str) -> str:
        return f"bonjour {name}"


class CallLog:
    """Collects hook calls from several components in order."""

    def __init__(self):
        self.calls: List[str] = []

    def __call__(self, entry: str) -> None:
        self.calls.append(entry)


class WaitingRunnable:
    """Runs until its context is cancelled."""

    def __init__(self, log: Optional[CallLog] = None, name: str = "waiter"):
        self.log = log
        self.name = name
        self.entered = asyncio.Event()
        self.ctx: Any = None

    async def run(self, ctx):
        self.ctx = ctx
        if self.log is not None:
            self.log(f"run:{self.name}")
        self.entered.set()
        await ctx.wait()
        if self.log is not None:
            self.log(f"stop:{self.name}")


@pytest.fixture
def calls():
    return CallLog()
