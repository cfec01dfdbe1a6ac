"""
Colony Configuration

Text key/value configuration from composable providers, coerced to typed
component fields.

Key Features:
- Environment, ``.env`` file and in-memory providers
- First-match composition that remembers which provider answered
- Typed coercion (bool, int, float, str, durations) with a pluggable registry
- Every access recorded for introspection, defaults included
"""

from .providers import (
    ConfigValue,
    ConfigProvider,
    EnvProvider,
    DotEnvProvider,
    MappingProvider,
    CompositeProvider,
)

from .parsers import (
    register_parser,
    get_parser,
    parse_value,
    parse_bool,
    parse_duration,
    reset_parsers,
)

from .access import (
    Config,
    MISSING,
    set_provider,
    get_provider,
    reset_provider,
    lookup,
    get_config,
    get_config_or_default,
    load_config,
)

__all__ = [
    # Providers
    "ConfigValue",
    "ConfigProvider",
    "EnvProvider",
    "DotEnvProvider",
    "MappingProvider",
    "CompositeProvider",
    # Parsers
    "register_parser",
    "get_parser",
    "parse_value",
    "parse_bool",
    "parse_duration",
    "reset_parsers",
    # Access
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
