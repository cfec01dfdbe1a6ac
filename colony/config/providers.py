"""
Configuration providers - key/value sources queried by the wirer.

A provider answers ``get(key)`` with a :class:`ConfigValue` (the raw string
plus the id of the provider that produced it) or ``None`` when it does not
know the key. ``None`` is the not-found sentinel; providers never raise for
absent keys.

Usage::

    provider = CompositeProvider(
        EnvProvider(),
        DotEnvProvider(".env"),
        MappingProvider({"POLL_INTERVAL": "5s"}),
    )
    provider.get("POLL_INTERVAL")   # ConfigValue("5s", "static") unless set in env
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional, Protocol, Tuple, Union, runtime_checkable

from dotenv import dotenv_values

logger = logging.getLogger("colony.config")


@dataclass(frozen=True, slots=True)
class ConfigValue:
    """Raw configuration string and the id of the provider that supplied it."""

    value: str
    provider: str


@runtime_checkable
class ConfigProvider(Protocol):
    """Source of configuration values."""

    def get(self, key: str) -> Optional[ConfigValue]:
        """Return the value for ``key``, or ``None`` when unknown."""
        ...


class EnvProvider:
    """
    Process environment.

    Args:
        prefix: Prepended to every key before lookup (``"APP_"`` turns
            ``PORT`` into ``APP_PORT``).
    """

    __slots__ = ("prefix",)

    def __init__(self, prefix: str = ""):
        self.prefix = prefix

    @property
    def id(self) -> str:
        return "env"

    def get(self, key: str) -> Optional[ConfigValue]:
        value = os.environ.get(f"{self.prefix}{key}")
        if value is None:
            return None
        return ConfigValue(value, self.id)

    def __repr__(self) -> str:
        return f"EnvProvider(prefix={self.prefix!r})"


class DotEnvProvider:
    """
    Values parsed from a ``.env`` file with python-dotenv.

    The file is read once, on construction. A missing file yields an empty
    provider; keys declared without a value (``KEY`` alone on a line) are
    treated as absent.
    """

    __slots__ = ("path", "_values")

    def __init__(self, path: Union[str, Path] = ".env"):
        self.path = Path(path)
        self._values: Dict[str, str] = {}
        if self.path.is_file():
            self._values = {k: v for k, v in dotenv_values(self.path).items() if v is not None}
            logger.debug(f"Loaded {len(self._values)} keys from {self.path}")
        else:
            logger.debug(f"Dotenv file {self.path} not found, provider is empty")

    @property
    def id(self) -> str:
        return f"dotenv/{self.path}"

    def get(self, key: str) -> Optional[ConfigValue]:
        value = self._values.get(key)
        if value is None:
            return None
        return ConfigValue(value, self.id)

    def __repr__(self) -> str:
        return f"DotEnvProvider({str(self.path)!r})"


class MappingProvider:
    """In-memory values, handy for defaults bundled with an app and for tests."""

    __slots__ = ("name", "_values")

    def __init__(self, values: Optional[Mapping[str, object]] = None, name: str = "static"):
        self.name = name
        self._values: Dict[str, str] = {k: str(v) for k, v in (values or {}).items()}

    @property
    def id(self) -> str:
        return self.name

    def get(self, key: str) -> Optional[ConfigValue]:
        value = self._values.get(key)
        if value is None:
            return None
        return ConfigValue(value, self.id)

    def __repr__(self) -> str:
        return f"MappingProvider(name={self.name!r}, keys={sorted(self._values)})"


class CompositeProvider:
    """
    Ordered chain of providers; the first one that knows a key wins.

    The returned :class:`ConfigValue` carries the id of the provider that
    answered, so introspection can tell where each value came from.
    """

    __slots__ = ("providers",)

    def __init__(self, *providers: ConfigProvider):
        self.providers: Tuple[ConfigProvider, ...] = providers

    @property
    def id(self) -> str:
        return "composite"

    def get(self, key: str) -> Optional[ConfigValue]:
        for provider in self.providers:
            found = provider.get(key)
            if found is not None:
                return found
        return None

    def __repr__(self) -> str:
        return f"CompositeProvider({', '.join(repr(p) for p in self.providers)})"


__all__ = [
    "ConfigValue",
    "ConfigProvider",
    "EnvProvider",
    "DotEnvProvider",
    "MappingProvider",
    "CompositeProvider",
]
