"""
Fault taxonomy: codes, domains, severities and serialization.
"""

import json

import pytest

from colony.faults import (
    ConfigParseError,
    ContextCancelled,
    DeadlineExceeded,
    DependencyNotFound,
    DuplicateBinding,
    Fault,
    FaultDomain,
    InitializerFailure,
    IntrospectorFailure,
    InvalidBinding,
    InvalidTransition,
    MissingConfig,
    ReadinessTimeout,
    RunnableFailure,
    Severity,
    UnsatisfiedDependency,
    WiringError,
)
from colony.introspection import Caller


class TestFaultBase:

    def test_defaults_follow_domain(self):
        fault = Fault("oops", domain=FaultDomain.CONFIG)
        assert fault.severity is Severity.FATAL
        assert fault.code == "FAULT"
        assert str(fault) == "[FAULT] oops"

    def test_overrides(self):
        fault = Fault("oops", code="X", severity=Severity.WARN, phase="run", metadata={"a": 1})
        assert (fault.code, fault.severity, fault.phase, fault.metadata) == ("X", Severity.WARN, "run", {"a": 1})

    def test_to_dict_is_json_serializable(self):
        caller = Caller("app.Worker", "app/worker.py", 3)
        fault = UnsatisfiedDependency("app.Store", "main", component="app.Worker", field="store", caller=caller)
        data = fault.to_dict()
        json.dumps(data)
        assert data["code"] == "UNSATISFIED_DEPENDENCY"
        assert data["domain"] == "di"
        assert data["severity"] == "fatal"
        assert data["phase"] == "wire"
        assert data["metadata"]["caller"] == caller.to_dict()
        assert data["cause"] is None

    def test_domain_equality(self):
        assert FaultDomain.DI == FaultDomain("di")
        assert FaultDomain.DI == "di"
        assert hash(FaultDomain.DI) == hash(FaultDomain("di"))


class TestContainerFaults:

    def test_dependency_not_found_messages(self):
        assert DependencyNotFound("app.Store").message == "the dependency type 'app.Store' was not registered"
        assert DependencyNotFound("app.Store", "main").message == (
            "the dependency 'main' of type 'app.Store' was not registered"
        )

    def test_invalid_binding_lists_missing_members(self):
        fault = InvalidBinding("app.Greeter", "app.Mute", missing=("greet", "name"))
        assert "missing members: greet, name" in fault.message
        assert fault.metadata["missing"] == ["greet", "name"]

    def test_duplicate_binding(self):
        assert DuplicateBinding("app.Store", "x").code == "DUPLICATE_BINDING"


class TestWiringFaults:

    def test_unsatisfied_dependency_mentions_location(self):
        fault = UnsatisfiedDependency(
            "app.Store", component="app.Worker", field="store", caller=Caller("app.Worker", "app/worker.py", 3),
        )
        assert "field 'store' of 'app.Worker'" in fault.message
        assert "app/worker.py:3" in fault.message

    def test_missing_config(self):
        fault = MissingConfig("PORT", component="app.Worker", field="port")
        assert fault.code == "CONFIG_MISSING"
        assert fault.domain == FaultDomain.CONFIG
        assert "'PORT'" in fault.message

    def test_parse_error(self):
        fault = ConfigParseError("PORT", "x", "int", "bad")
        assert fault.message == "cannot parse 'x' for key 'PORT' as int: bad"

    def test_wiring_error(self):
        assert WiringError("app.X", "nope").message == "cannot wire 'app.X': nope"


class TestLifecycleFaults:

    @pytest.mark.parametrize("cls,code,phase", [
        (InitializerFailure, "INITIALIZER_FAILED", "initialize"),
        (IntrospectorFailure, "INTROSPECTOR_FAILED", "introspect"),
        (RunnableFailure, "RUNNABLE_FAILED", "run"),
    ])
    def test_component_failures_wrap_cause(self, cls, code, phase):
        cause = ValueError("db down")
        fault = cls(cause, component="app.Db")
        assert fault.code == code
        assert fault.phase == phase
        assert fault.error is cause
        assert fault.__cause__ is cause
        assert fault.message == f"{phase} failed for 'app.Db': db down"
        assert fault.to_dict()["cause"] == repr(cause)

    def test_readiness_timeout(self):
        fault = ReadinessTimeout(0.5, component="app.Web", reason="warming up")
        assert fault.message == "application not ready after 0.5s; 'app.Web' not ready: warming up"

    def test_invalid_transition(self):
        fault = InvalidTransition("running", "initializing")
        assert fault.code == "INVALID_TRANSITION"
        assert fault.metadata == {"current": "running", "target": "initializing"}

    def test_cancellation_is_informational(self):
        assert ContextCancelled().severity is Severity.INFO
        deadline = DeadlineExceeded(2)
        assert isinstance(deadline, ContextCancelled)
        assert deadline.code == "DEADLINE_EXCEEDED"
        assert "2s" in deadline.message
