"""
Config - field marker and process-wide configuration access.

Fields marked with :class:`Config` are filled from the active provider by
the wirer. The same lookup is available imperatively through
:func:`get_config`, :func:`get_config_or_default` and :func:`load_config`;
every access is recorded for introspection.

Usage::

    from datetime import timedelta
    from typing import Annotated
    from colony.config import Config

    class Poller:
        interval: Annotated[timedelta, Config("POLL_INTERVAL", default="2s")]
        endpoint: Annotated[str, Config("POLL_ENDPOINT")]   # required
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Optional, Type, TypeVar

from ..di.markers import annotated_fields
from ..faults import ConfigParseError, MissingConfig, WiringError
from ..introspection.recorder import capture_caller, get_recorder, type_name
from ..introspection.report import Caller
from .parsers import parse_value
from .providers import ConfigProvider, EnvProvider

logger = logging.getLogger("colony.config")

T = TypeVar("T")

MISSING: Any = object()


@dataclass(frozen=True, slots=True)
class Config:
    """Configuration descriptor for Annotated[]-based field injection.

    Attributes:
        key: Configuration key looked up in the provider.
        default: Fallback used when no provider knows ``key``. Strings are
            parsed like provider values; other objects are used as-is.
            Leave unset to make the key required.
    """

    key: str
    default: Any = MISSING

    @property
    def required(self) -> bool:
        return self.default is MISSING

    def __repr__(self) -> str:
        if self.required:
            return f"Config({self.key!r})"
        return f"Config({self.key!r}, default={self.default!r})"


# ── Process-wide provider ────────────────────────────────────────────

_provider: ConfigProvider = EnvProvider()
_lock = threading.Lock()


def set_provider(provider: ConfigProvider) -> None:
    """Replace the process-wide provider."""
    global _provider
    with _lock:
        _provider = provider
    logger.debug(f"Config provider set to {provider!r}")


def get_provider() -> ConfigProvider:
    with _lock:
        return _provider


def reset_provider() -> None:
    """Back to the default environment provider."""
    set_provider(EnvProvider())


# ── Lookup ───────────────────────────────────────────────────────────

def lookup(
    key: str,
    target: Any = str,
    *,
    default: Any = MISSING,
    provider: Optional[ConfigProvider] = None,
    caller: Optional[Caller] = None,
    component: str = "",
    field: str = "",
) -> Any:
    """
    Fetch ``key``, coerce it to ``target`` and record the access.

    Provider values win over ``default``. The access is recorded once the
    value has been produced.

    Raises:
        MissingConfig: Neither a provider value nor a default exists
        ConfigParseError: The value cannot be coerced to ``target``
    """
    provider = provider if provider is not None else get_provider()
    caller = caller or capture_caller()

    found = provider.get(key)
    if found is not None:
        value = parse_value(key, found.value, target)
        get_recorder().record_config(key, found.provider, False, caller, component)
        return value

    if default is MISSING:
        raise MissingConfig(key, component=component, field=field, caller=caller)

    value = parse_value(key, default, target) if isinstance(default, str) else default
    get_recorder().record_config(key, "", True, caller, component)
    return value


def get_config(key: str, target: Type[T] = str, *, provider: Optional[ConfigProvider] = None) -> T:
    """
    Required configuration value.

    Raises:
        MissingConfig: No provider knows ``key``
        ConfigParseError: The value cannot be coerced to ``target``
    """
    return lookup(key, target, provider=provider, caller=capture_caller())


def get_config_or_default(
    key: str,
    default: T,
    target: Optional[Type[T]] = None,
    *,
    provider: Optional[ConfigProvider] = None,
) -> T:
    """
    Configuration value, or ``default`` when the key is absent or unparsable.

    ``target`` defaults to ``type(default)``.
    """
    caller = capture_caller()
    target = target or type(default)
    try:
        return lookup(key, target, provider=provider, caller=caller)
    except MissingConfig:
        pass
    except ConfigParseError as exc:
        logger.warning(f"Ignoring invalid value for '{key}', using default: {exc}")
    get_recorder().record_config(key, "", True, caller)
    return default


def load_config(target: Any, *, provider: Optional[ConfigProvider] = None) -> Any:
    """
    Populate every :class:`Config` field of ``target`` in place.

    Nothing is assigned unless every field resolved.

    Returns:
        ``target``, for chaining.
    """
    cls = type(target)
    component = type_name(cls)
    try:
        fields = annotated_fields(cls, (Config,))
    except NameError as exc:
        raise WiringError(component, f"unresolvable annotation: {exc}") from exc

    caller = capture_caller()
    values = {}
    for field_name, base_type, marker in fields:
        values[field_name] = lookup(
            marker.key,
            base_type,
            default=marker.default,
            provider=provider,
            caller=caller,
            component=component,
            field=field_name,
        )

    for field_name, value in values.items():
        setattr(target, field_name, value)
    return target


__all__ = [
    "Config",
    "MISSING",
    "set_provider",
    "get_provider",
    "reset_provider",
    "lookup",
    "get_config",
    "get_config_or_default",
    "load_config",
]
