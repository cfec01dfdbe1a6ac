"""
Colony - application composition runtime.

Assemble a process from small components: initializers fill a typed
dependency container, runnables are wired from it and from configuration,
and the app supervises them until a signal or the first exit.

Key Features:
- Typed container keyed by abstract type and binding name
- ``Resolve`` / ``Config`` field markers filled by reflection
- Ordered startup, concurrent runnables, graceful drain and reverse close
- Readiness probing
- Introspection report, Mermaid graph and HTML page of who wired what

Example::

    from typing import Annotated
    from colony import App, Config, Resolve, register

    class Clock(Protocol):
        def now(self) -> float: ...

    class ClockInit:
        async def initialize(self, ctx):
            register(Clock, SystemClock())

    class Ticker:
        clock: Annotated[Clock, Resolve()]
        period: Annotated[timedelta, Config("TICK", default="1s")]

        async def run(self, ctx):
            while not ctx.cancelled:
                print(self.clock.now())
                await asyncio.sleep(self.period.total_seconds())

    App("ticker").initialize(ClockInit()).host(Ticker()).run()
"""

__version__ = "0.1.0"

from .app import App, Shutdown
from .context import Context
from .lifecycle import AppPhase, LifecycleEvent
from .protocols import Initializer, Runnable, ReadyChecker, Closer, Introspector
from .wiring import Wirer, wire

from .di import (
    Container,
    Resolve,
    get_container,
    register,
    register_once,
    resolve,
)

from .config import (
    Config,
    ConfigValue,
    ConfigProvider,
    EnvProvider,
    DotEnvProvider,
    MappingProvider,
    CompositeProvider,
    register_parser,
    set_provider,
    get_provider,
    get_config,
    get_config_or_default,
    load_config,
)

from .introspection import (
    Report,
    LoggingIntrospector,
    JsonReportWriter,
    GraphPageWriter,
    IntrospectorChain,
    generate_graph,
    render_graph_page,
)

from .faults import (
    Fault,
    FaultDomain,
    Severity,
    DependencyNotFound,
    InvalidBinding,
    DuplicateBinding,
    UnsatisfiedDependency,
    MissingConfig,
    ConfigParseError,
    WiringError,
    ComponentFailure,
    InitializerFailure,
    IntrospectorFailure,
    RunnableFailure,
    ReadinessTimeout,
    InvalidTransition,
    ContextCancelled,
    DeadlineExceeded,
)

__all__ = [
    "__version__",
    # App
    "App",
    "Shutdown",
    "Context",
    "AppPhase",
    "LifecycleEvent",
    # Protocols
    "Initializer",
    "Runnable",
    "ReadyChecker",
    "Closer",
    "Introspector",
    # Wiring
    "Wirer",
    "wire",
    # DI
    "Container",
    "Resolve",
    "get_container",
    "register",
    "register_once",
    "resolve",
    # Config
    "Config",
    "ConfigValue",
    "ConfigProvider",
    "EnvProvider",
    "DotEnvProvider",
    "MappingProvider",
    "CompositeProvider",
    "register_parser",
    "set_provider",
    "get_provider",
    "get_config",
    "get_config_or_default",
    "load_config",
    # Introspection
    "Report",
    "LoggingIntrospector",
    "JsonReportWriter",
    "GraphPageWriter",
    "IntrospectorChain",
    "generate_graph",
    "render_graph_page",
    # Faults
    "Fault",
    "FaultDomain",
    "Severity",
    "DependencyNotFound",
    "InvalidBinding",
    "DuplicateBinding",
    "UnsatisfiedDependency",
    "MissingConfig",
    "ConfigParseError",
    "WiringError",
    "ComponentFailure",
    "InitializerFailure",
    "IntrospectorFailure",
    "RunnableFailure",
    "ReadinessTimeout",
    "InvalidTransition",
    "ContextCancelled",
    "DeadlineExceeded",
]
