"""
Wiring: Resolve and Config field injection.
"""

from datetime import timedelta
from typing import Annotated

import pytest

from colony import Config, Resolve, register, wire
from colony.di import Container
from colony.config import MappingProvider
from colony.faults import ConfigParseError, MissingConfig, UnsatisfiedDependency, WiringError
from colony.introspection import DepEventKind, get_recorder
from colony.wiring import Wirer

from tests.conftest import EnglishGreeter, FrenchGreeter, Greeter


class Base:
    greeter: Annotated[Greeter, Resolve()]


class Service(Base):
    french: Annotated[Greeter, Resolve("fr")]
    interval: Annotated[timedelta, Config("INTERVAL", default="2s")]
    plain: int = 3


class NeedsHost:
    host: Annotated[str, Config("HOST")]


class Slotted:
    __slots__ = ("greeter",)
    greeter: Annotated[Greeter, Resolve()]


class Frozen:
    greeter: Annotated[Greeter, Resolve()]
    port: Annotated[int, Config("PORT", default=80)]

    def __setattr__(self, name, value):
        if name == "port":
            raise AttributeError("read-only")
        object.__setattr__(self, name, value)


class TestWire:

    def test_fills_marked_fields_including_inherited(self):
        en, fr = EnglishGreeter(), FrenchGreeter()
        register(Greeter, en)
        register(Greeter, fr, "fr")
        service = wire(Service())
        assert service.greeter is en
        assert service.french is fr
        assert service.interval == timedelta(seconds=2)
        assert service.plain == 3

    def test_config_provider_value(self, static_config):
        static_config({"INTERVAL": "500ms"})
        register(Greeter, EnglishGreeter())
        register(Greeter, FrenchGreeter(), "fr")
        assert wire(Service()).interval == timedelta(milliseconds=500)

    def test_unmarked_object_is_returned_untouched(self):
        obj = object()
        assert wire(obj) is obj

    def test_slots_are_supported(self):
        en = EnglishGreeter()
        register(Greeter, en)
        assert wire(Slotted()).greeter is en

    def test_explicit_container_and_provider(self):
        container = Container()
        en = EnglishGreeter()
        container.register(Greeter, en)
        wirer = Wirer(container, MappingProvider({"HOST": "db"}))
        assert wirer.wire(Base()).greeter is en
        assert wirer.wire(NeedsHost()).host == "db"


class TestWireErrors:

    def test_missing_dependency_names_field_and_component(self):
        with pytest.raises(UnsatisfiedDependency) as exc_info:
            wire(Base())
        fault = exc_info.value
        assert fault.component == "tests.test_wiring.Base"
        assert fault.field == "greeter"
        assert fault.abstract == "tests.conftest.Greeter"
        assert fault.caller.file == "tests/test_wiring.py"
        assert isinstance(fault.__cause__, Exception)

    def test_missing_named_dependency(self):
        register(Greeter, EnglishGreeter())
        with pytest.raises(UnsatisfiedDependency) as exc_info:
            wire(Service())
        assert exc_info.value.name == "fr"
        assert exc_info.value.field == "french"

    def test_missing_config(self, static_config):
        static_config({})
        with pytest.raises(MissingConfig) as exc_info:
            wire(NeedsHost())
        assert exc_info.value.component == "tests.test_wiring.NeedsHost"
        assert exc_info.value.field == "host"

    def test_bad_config_value(self, static_config):
        static_config({"INTERVAL": "soon"})
        register(Greeter, EnglishGreeter())
        register(Greeter, FrenchGreeter(), "fr")
        with pytest.raises(ConfigParseError):
            wire(Service())

    def test_duration_out_of_range(self):
        class Poller:
            interval: Annotated[timedelta, Config("POLL_INTERVAL")]

        poller = Poller()
        with pytest.raises(ConfigParseError) as exc_info:
            wire(poller, provider=MappingProvider({"POLL_INTERVAL": "99999999999h"}))
        assert exc_info.value.key == "POLL_INTERVAL"
        assert exc_info.value.target == "datetime.timedelta"
        assert not hasattr(poller, "interval")

    def test_no_partial_assignment(self):
        register(Greeter, EnglishGreeter())
        service = Service()
        with pytest.raises(UnsatisfiedDependency):
            wire(service)
        assert "greeter" not in vars(service)

    def test_assignment_failure_rolls_back(self):
        register(Greeter, EnglishGreeter())
        frozen = Frozen()
        with pytest.raises(WiringError):
            wire(frozen)
        assert "greeter" not in vars(frozen)

    @pytest.mark.parametrize("target", [None, Service])
    def test_rejects_non_instances(self, target):
        with pytest.raises(WiringError):
            wire(target)


class TestWireRecording:

    def test_events_point_at_class_definition(self):
        register(Greeter, EnglishGreeter())
        register(Greeter, FrenchGreeter(), "fr")
        wire(Service())
        report = get_recorder().snapshot()
        resolves = report.resolutions()
        assert [e.name for e in resolves] == ["", "fr"]
        for event in resolves:
            assert event.kind is DepEventKind.RESOLVE
            assert event.component == "tests.test_wiring.Service"
            assert event.caller.func == "tests.test_wiring.Service"
            assert event.caller.file == "tests/test_wiring.py"
        (access,) = report.configs
        assert access.component == "tests.test_wiring.Service"
        assert access.used_default is True
