"""
Colony Faults - Core types and fault taxonomy.

Every error the runtime raises is a :class:`Fault`: a structured exception
with a stable machine-readable ``code``, a ``domain``, a ``severity`` and the
lifecycle ``phase`` it surfaced in. The taxonomy is a flat family of tagged
variants; callers should branch on ``code`` (or the concrete class) rather
than on inheritance depth.

Wrapping faults (initializer, runnable and introspector failures) keep the
original exception on ``__cause__`` so tracebacks stay intact.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .introspection.report import Caller


# ============================================================================
# Severity & Domain
# ============================================================================

class Severity(str, Enum):
    """
    Fault severity levels.

    Determines the logging level used when the supervisor reports a fault.
    """
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"


class FaultDomain:
    """
    Functional area where a fault occurred.
    """

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.value = name
        self.description = description

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"FaultDomain(name='{self.name}')"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, FaultDomain):
            return self.name == other.name
        return str(self) == str(other)

    def __hash__(self) -> int:
        return hash(self.name)


FaultDomain.DI = FaultDomain("di", "Dependency container and wiring errors")
FaultDomain.CONFIG = FaultDomain("config", "Configuration errors")
FaultDomain.LIFECYCLE = FaultDomain("lifecycle", "Application lifecycle errors")


DOMAIN_DEFAULTS = {
    FaultDomain.DI: Severity.FATAL,
    FaultDomain.CONFIG: Severity.FATAL,
    FaultDomain.LIFECYCLE: Severity.ERROR,
}


# ============================================================================
# Fault - Base Class
# ============================================================================

class Fault(Exception):
    """
    Base fault class - structured, typed fault object.

    Attributes:
        code: Stable machine-readable identifier (e.g. ``"CONFIG_MISSING"``)
        message: Human-readable summary
        domain: Fault domain (DI, CONFIG, LIFECYCLE)
        severity: Fault severity
        phase: Lifecycle phase the fault surfaced in (``"wire"``,
            ``"initialize"``, ``"introspect"``, ``"run"``, ...)
        metadata: Additional context data
    """

    code: str = "FAULT"
    domain: FaultDomain = FaultDomain.LIFECYCLE
    phase: str = ""

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        domain: Optional[FaultDomain] = None,
        severity: Optional[Severity] = None,
        phase: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ):
        if code is not None:
            self.code = code
        if domain is not None:
            self.domain = domain
        if phase is not None:
            self.phase = phase
        self.message = message
        self.severity = severity or DOMAIN_DEFAULTS.get(self.domain, Severity.ERROR)
        self.metadata = metadata or {}
        super().__init__(message)

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, domain={self.domain.value}, "
            f"phase={self.phase!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """
        Serialize fault to dictionary.

        Returns:
            Dictionary representation suitable for logging/serialization
        """
        cause = self.__cause__
        return {
            "code": self.code,
            "message": self.message,
            "domain": self.domain.value,
            "severity": self.severity.value,
            "phase": self.phase,
            "metadata": {k: _jsonable(v) for k, v in self.metadata.items()},
            "cause": repr(cause) if cause is not None else None,
        }


def _jsonable(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def _where(caller: Optional["Caller"]) -> str:
    if caller is None or not caller.file:
        return ""
    return f" (at {caller})"


# ============================================================================
# Container faults
# ============================================================================

class DependencyNotFound(Fault):
    """No binding registered for ``(abstract, name)``."""

    code = "DEPENDENCY_NOT_FOUND"
    domain = FaultDomain.DI
    phase = "resolve"

    def __init__(self, abstract: str, name: str = ""):
        self.abstract = abstract
        self.name = name
        if name:
            msg = f"the dependency '{name}' of type '{abstract}' was not registered"
        else:
            msg = f"the dependency type '{abstract}' was not registered"
        super().__init__(msg, metadata={"abstract": abstract, "name": name})


class InvalidBinding(Fault):
    """Registered value does not satisfy the declared abstraction."""

    code = "INVALID_BINDING"
    domain = FaultDomain.DI
    phase = "register"

    def __init__(self, abstract: str, impl: str, name: str = "", missing: tuple[str, ...] = ()):
        self.abstract = abstract
        self.impl = impl
        self.name = name
        self.missing = missing
        msg = f"'{impl}' does not satisfy '{abstract}'"
        if name:
            msg += f" (name={name!r})"
        if missing:
            msg += f"; missing members: {', '.join(missing)}"
        super().__init__(
            msg,
            metadata={"abstract": abstract, "impl": impl, "name": name, "missing": list(missing)},
        )


class DuplicateBinding(Fault):
    """``register_once`` found an existing binding for the key."""

    code = "DUPLICATE_BINDING"
    domain = FaultDomain.DI
    phase = "register"

    def __init__(self, abstract: str, name: str = ""):
        self.abstract = abstract
        self.name = name
        msg = f"dependency already registered for type '{abstract}'"
        if name:
            msg += f" and name {name!r}"
        super().__init__(msg, metadata={"abstract": abstract, "name": name})


# ============================================================================
# Wiring faults
# ============================================================================

class UnsatisfiedDependency(Fault):
    """A dependency field of a component could not be resolved."""

    code = "UNSATISFIED_DEPENDENCY"
    domain = FaultDomain.DI
    phase = "wire"

    def __init__(
        self,
        abstract: str,
        name: str = "",
        *,
        component: str = "",
        field: str = "",
        caller: Optional["Caller"] = None,
    ):
        self.abstract = abstract
        self.name = name
        self.component = component
        self.field = field
        self.caller = caller
        target = f"'{abstract}'" + (f" (name={name!r})" if name else "")
        msg = f"cannot resolve {target} for field '{field}' of '{component}'{_where(caller)}"
        super().__init__(
            msg,
            metadata={
                "abstract": abstract,
                "name": name,
                "component": component,
                "field": field,
                "caller": caller,
            },
        )


class MissingConfig(Fault):
    """Required configuration key has no value and no default."""

    code = "CONFIG_MISSING"
    domain = FaultDomain.CONFIG
    phase = "wire"

    def __init__(
        self,
        key: str,
        *,
        component: str = "",
        field: str = "",
        caller: Optional["Caller"] = None,
    ):
        self.key = key
        self.component = component
        self.field = field
        self.caller = caller
        msg = f"required configuration key '{key}' is missing"
        if component:
            msg += f" for field '{field}' of '{component}'"
        msg += _where(caller)
        super().__init__(
            msg,
            metadata={"key": key, "component": component, "field": field, "caller": caller},
        )


class ConfigParseError(Fault):
    """A configuration string could not be coerced to the target type."""

    code = "CONFIG_PARSE_ERROR"
    domain = FaultDomain.CONFIG
    phase = "wire"

    def __init__(self, key: str, value: str, target: str, reason: str = ""):
        self.key = key
        self.value = value
        self.target = target
        self.reason = reason
        msg = f"cannot parse {value!r} for key '{key}' as {target}"
        if reason:
            msg += f": {reason}"
        super().__init__(
            msg,
            metadata={"key": key, "value": value, "target": target, "reason": reason},
        )


class WiringError(Fault):
    """The target itself cannot be wired."""

    code = "WIRING_ERROR"
    domain = FaultDomain.LIFECYCLE
    phase = "wire"

    def __init__(self, component: str, reason: str):
        self.component = component
        self.reason = reason
        super().__init__(
            f"cannot wire '{component}': {reason}",
            metadata={"component": component, "reason": reason},
        )


# ============================================================================
# Lifecycle faults
# ============================================================================

class ComponentFailure(Fault):
    """
    A component hook raised.

    Wraps the original exception (available as ``__cause__`` and ``error``)
    with the failing component type and the hook's definition site.
    """

    code = "COMPONENT_FAILED"
    domain = FaultDomain.LIFECYCLE
    hook = ""

    def __init__(
        self,
        error: BaseException,
        *,
        component: str,
        caller: Optional["Caller"] = None,
    ):
        self.error = error
        self.component = component
        self.caller = caller
        msg = f"{self.hook or self.phase} failed for '{component}'{_where(caller)}: {error}"
        super().__init__(
            msg,
            metadata={"component": component, "caller": caller, "error": repr(error)},
        )
        self.__cause__ = error


class InitializerFailure(ComponentFailure):
    """An initializer raised from ``initialize``."""

    code = "INITIALIZER_FAILED"
    phase = "initialize"
    hook = "initialize"


class IntrospectorFailure(ComponentFailure):
    """The introspector raised from ``introspect``."""

    code = "INTROSPECTOR_FAILED"
    phase = "introspect"
    hook = "introspect"


class RunnableFailure(ComponentFailure):
    """A runnable raised from ``run``."""

    code = "RUNNABLE_FAILED"
    phase = "run"
    hook = "run"


class ReadinessTimeout(Fault):
    """Readiness was not reached before the deadline."""

    code = "READINESS_TIMEOUT"
    domain = FaultDomain.LIFECYCLE
    phase = "readiness"

    def __init__(self, timeout: float, *, component: str = "", reason: str = ""):
        self.timeout = timeout
        self.component = component
        self.reason = reason
        msg = f"application not ready after {timeout:g}s"
        if component:
            msg += f"; '{component}' not ready"
        if reason:
            msg += f": {reason}"
        super().__init__(
            msg,
            metadata={"timeout": timeout, "component": component, "reason": reason},
        )


class InvalidTransition(Fault):
    """The application was asked to move to a phase it cannot reach."""

    code = "INVALID_TRANSITION"
    domain = FaultDomain.LIFECYCLE

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(
            f"cannot move from phase '{current}' to '{target}'",
            metadata={"current": current, "target": target},
        )


class ContextCancelled(Fault):
    """Default cancellation cause of a :class:`~colony.context.Context`."""

    code = "CONTEXT_CANCELLED"
    domain = FaultDomain.LIFECYCLE

    def __init__(self, message: str = "context cancelled"):
        super().__init__(message, severity=Severity.INFO)


class DeadlineExceeded(ContextCancelled):
    """Cancellation cause of a context created with ``with_timeout``."""

    code = "DEADLINE_EXCEEDED"

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"context deadline exceeded after {timeout:g}s")


__all__ = [
    "Severity",
    "FaultDomain",
    "Fault",
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
