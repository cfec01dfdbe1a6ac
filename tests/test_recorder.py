"""
Introspection recorder and report.
"""

import json
import threading
from typing import Annotated, List, Optional

from hypothesis import HealthCheck, given, settings, strategies as st

from colony import (
    Config,
    MappingProvider,
    Resolve,
    Wirer,
    get_config,
    get_config_or_default,
    get_container,
    load_config,
    register,
    register_once,
    resolve,
)
from colony.config import lookup
from colony.introspection import (
    Caller,
    ComponentInfo,
    DepEventKind,
    Recorder,
    Report,
    caller_of,
    capture_caller,
    get_recorder,
    type_name,
)

HERE = "tests/test_recorder.py"


def helper_that_captures() -> Caller:
    return capture_caller(skip=1)


class Widget:
    def method(self):
        pass


class Knobs:
    widget: Annotated[Widget, Resolve("seed")]
    level: Annotated[int, Config("LEVEL", default="1")]


ENTRY_POINTS = [
    "register",
    "register_once",
    "container.register",
    "container.register_once",
    "resolve",
    "container.resolve",
    "lookup",
    "get_config",
    "get_config_or_default",
    "load_config",
    "wire",
]


# ============================================================================
# Caller attribution
# ============================================================================

class TestCallers:

    def test_capture_caller_points_at_user_code(self):
        caller = helper_that_captures()
        assert caller.file == HERE
        assert caller.func == "tests.test_recorder.helper_that_captures"

    def test_caller_of_class(self):
        caller = caller_of(Widget)
        assert caller.func == "tests.test_recorder.Widget"
        assert caller.file == HERE
        assert caller.line > 0

    def test_caller_of_bound_method(self):
        caller = caller_of(Widget().method)
        assert caller.func == "tests.test_recorder.Widget.method"
        assert caller.file == HERE

    def test_caller_of_instance_uses_class(self):
        assert caller_of(Widget()).func == "tests.test_recorder.Widget"

    def test_str(self):
        assert str(Caller("f", "a/b.py", 3)) == "f (a/b.py:3)"
        assert str(Caller()) == "unknown"


class TestCallerAttribution:
    """Whatever path a call takes through the package, user code is blamed."""

    @settings(max_examples=30, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(st.lists(st.sampled_from(ENTRY_POINTS), min_size=1, max_size=12))
    def test_internal_frames_are_never_reported(self, entry_points):
        container = get_container()
        container.clear()
        recorder = get_recorder()
        recorder.reset()
        provider = MappingProvider({"LEVEL": "3"})
        register(Widget, Widget(), "seed")

        for index, call in enumerate(entry_points):
            seen = len(recorder.snapshot().timeline())
            if call == "register":
                register(Widget, Widget(), f"r{index}")
            elif call == "register_once":
                register_once(Widget, Widget(), f"o{index}")
            elif call == "container.register":
                container.register(Widget, Widget())
            elif call == "container.register_once":
                container.register_once(Widget, Widget(), f"co{index}")
            elif call == "resolve":
                resolve(Widget, "seed")
            elif call == "container.resolve":
                container.resolve(Widget, "seed")
            elif call == "lookup":
                lookup("LEVEL", int, provider=provider)
            elif call == "get_config":
                get_config("LEVEL", int, provider=provider)
            elif call == "get_config_or_default":
                get_config_or_default("ABSENT", 7, provider=provider)
            elif call == "load_config":
                load_config(Knobs(), provider=provider)
            else:
                Wirer(container, provider).wire(Knobs())

            events = recorder.snapshot().timeline()[seen:]
            assert events, call
            for event in events:
                assert event.caller.file == HERE
                assert event.caller.line > 0
                if call == "wire":
                    # Wiring blames the class whose fields were injected.
                    assert event.caller.func == "tests.test_recorder.Knobs"
                else:
                    assert event.caller.func.startswith("tests.test_recorder.")
                    assert event.caller.func.endswith("test_internal_frames_are_never_reported")


class TestTypeName:

    def test_builtins_are_short(self):
        assert type_name(int) == "int"
        assert type_name(str) == "str"

    def test_user_types_are_qualified(self):
        assert type_name(Widget) == "tests.test_recorder.Widget"

    def test_typing_constructs_use_repr(self):
        assert type_name(List[int]) == "typing.List[int]"
        assert type_name(Optional[int]) == repr(Optional[int])


# ============================================================================
# Recorder
# ============================================================================

class TestRecorder:

    def test_shared_counter_across_event_kinds(self):
        recorder = Recorder()
        caller = Caller("f", "a.py", 1)
        recorder.record_config("A", "env", False, caller)
        recorder.record_dep(DepEventKind.REGISTER, "T", "", "Impl", caller)
        recorder.record_config("B", "env", True, caller)

        report = recorder.snapshot()
        assert [c.order for c in report.configs] == [1, 3]
        assert [d.order for d in report.deps] == [2]
        assert [getattr(e, "key", None) or e.type for e in report.timeline()] == ["A", "T", "B"]
        assert recorder.last_order == 3

    def test_default_clears_provider(self):
        recorder = Recorder()
        access = recorder.record_config("A", "env", True, Caller())
        assert access.provider == ""

    def test_reset(self):
        recorder = Recorder()
        recorder.record_config("A", "env", False, Caller())
        recorder.reset(runners=[ComponentInfo("R")], initializers=[ComponentInfo("I")])
        report = recorder.snapshot()
        assert report.configs == ()
        assert report.runners == (ComponentInfo("R"),)
        assert report.initializers == (ComponentInfo("I"),)
        assert recorder.last_order == 0

    def test_snapshot_is_frozen(self):
        recorder = Recorder()
        report = recorder.snapshot()
        recorder.record_config("A", "env", False, Caller())
        assert report.configs == ()

    @settings(max_examples=25, suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(st.lists(st.sampled_from(["config", "register", "resolve"]), min_size=1, max_size=40))
    def test_orders_are_unique_and_dense(self, kinds):
        recorder = Recorder()
        caller = Caller()
        for i, kind in enumerate(kinds):
            if kind == "config":
                recorder.record_config(f"K{i}", "env", False, caller)
            else:
                recorder.record_dep(DepEventKind(kind), "T", str(i), "Impl", caller)
        orders = [e.order for e in recorder.snapshot().timeline()]
        assert orders == list(range(1, len(kinds) + 1))

    @settings(max_examples=10, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(st.integers(min_value=2, max_value=8), st.integers(min_value=1, max_value=30))
    def test_concurrent_recording_keeps_orders_unique(self, threads, per_thread):
        recorder = Recorder()

        def work(n):
            for i in range(per_thread):
                if i % 2:
                    recorder.record_config(f"{n}-{i}", "env", False, Caller())
                else:
                    recorder.record_dep(DepEventKind.RESOLVE, "T", "", "Impl", Caller())

        workers = [threading.Thread(target=work, args=(n,)) for n in range(threads)]
        for w in workers:
            w.start()
        for w in workers:
            w.join()

        orders = sorted(e.order for e in recorder.snapshot().timeline())
        assert orders == list(range(1, threads * per_thread + 1))


# ============================================================================
# Report serialization
# ============================================================================

class TestReport:

    def test_json_shape(self):
        recorder = Recorder()
        recorder.reset(runners=[ComponentInfo("app.Worker")], initializers=[ComponentInfo("app.Init")])
        recorder.record_dep(DepEventKind.REGISTER, "app.Store", "main", "app.Memory", Caller("app.Init.initialize", "app/init.py", 7))
        recorder.record_config("PORT", "env", False, Caller("app.Worker", "app/worker.py", 3), "app.Worker")

        data = json.loads(recorder.snapshot().to_json())
        assert data["runners"] == [{"type": "app.Worker"}]
        assert data["initializers"] == [{"type": "app.Init"}]
        assert data["deps"] == [{
            "kind": "register",
            "type": "app.Store",
            "name": "main",
            "impl": "app.Memory",
            "caller": {"func": "app.Init.initialize", "file": "app/init.py", "line": 7},
            "component": "",
            "order": 1,
        }]
        assert data["configs"][0]["key"] == "PORT"
        assert data["configs"][0]["used_default"] is False
        assert data["configs"][0]["component"] == "app.Worker"

    def test_empty_report(self):
        assert Report().to_dict() == {"configs": [], "deps": [], "runners": [], "initializers": []}

    def test_registrations_and_resolutions(self):
        recorder = Recorder()
        recorder.record_dep(DepEventKind.REGISTER, "T", "", "I", Caller())
        recorder.record_dep(DepEventKind.RESOLVE, "T", "", "I", Caller())
        recorder.record_dep(DepEventKind.RESOLVE, "T", "", "I", Caller())
        report = recorder.snapshot()
        assert len(report.registrations()) == 1
        assert len(report.resolutions()) == 2
