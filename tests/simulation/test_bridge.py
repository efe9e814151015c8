"""Tests for the lifecycle bridge.

Covers the per-event actions, run numbering, the two-phase close,
iteration substitution and failure propagation.
Functions under test in microsim/simulation/bridge.py.
"""

import pandas as pd
import pytest

from microsim.core.errors import EngineEvaluationError, SnapshotError
from microsim.core.models import BridgeCommands, LifecycleEvent, LifecycleSignal
from microsim.simulation import LifecycleBridge, snapshot_key, substitute_iteration


class FakeEngine:
    """Records every engine interaction in order."""

    def __init__(self, fail_on=None):
        self.calls = []
        self.values = {}
        self.fail_on = fail_on

    def evaluate(self, expression):
        self.calls.append(("evaluate", expression))

    def evaluate_logged(self, command, run_number):
        self.calls.append(("command", command, run_number))
        if command == self.fail_on:
            raise EngineEvaluationError(command, "boom")

    def assign(self, name, value):
        self.calls.append(("assign", name))
        self.values[name] = self.values[value]

    def assign_value(self, name, value):
        self.calls.append(("assign", name))
        self.values[name] = value

    def echo(self, text):
        self.calls.append(("echo", text))

    def print_prompt(self):
        self.calls.append(("prompt",))

    def build_tabular(self, result, name):
        raise NotImplementedError

    def scale(self, container, factor):
        raise NotImplementedError

    def commands(self):
        return [call[1] for call in self.calls if call[0] == "command"]


class FakeHost:
    """Host with a settable iteration and a one-row population."""

    def __init__(self, fail=False):
        self.current_iteration = 0
        self.fail = fail
        self.snapshots = []

    def snapshot(self, run_number):
        if self.fail:
            raise RuntimeError("population unavailable")
        self.snapshots.append(run_number)
        return pd.DataFrame({"run": [run_number], "iteration": [self.current_iteration]})


def _signal(kind, iteration=0):
    return LifecycleSignal(kind=kind, iteration=iteration)


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def host():
    return FakeHost()


@pytest.fixture
def commands():
    return BridgeCommands(
        iteration_end="f(ITERATION_NBR)",
        run_begin="begin()",
        run_end="end()",
        sim_end="finish()",
    )


class TestSubstitution:
    def test_iteration_token(self):
        assert substitute_iteration("f(ITERATION_NBR)", 7) == "f(7)"

    def test_every_occurrence(self):
        assert substitute_iteration("ITERATION_NBR + ITERATION_NBR", 2) == "2 + 2"

    def test_no_token(self):
        assert substitute_iteration("summary()", 3) == "summary()"

    def test_snapshot_key(self):
        assert snapshot_key("people", 2) == "people_run2"


class TestRunStarted:
    def test_run_number_increments(self, engine, host):
        bridge = LifecycleBridge(engine, host)
        bridge.run_started(_signal(LifecycleEvent.RUN_STARTED))
        bridge.run_started(_signal(LifecycleEvent.RUN_STARTED))
        assert bridge.run_number == 2
        assert host.snapshots == [1, 2]

    def test_blank_line_only_before_first_run(self, engine, host):
        bridge = LifecycleBridge(engine, host)
        for _ in range(3):
            bridge.run_started(_signal(LifecycleEvent.RUN_STARTED))
        assert engine.calls.count(("echo", "")) == 1
        assert engine.calls[0] == ("echo", "")

    def test_snapshot_then_command(self, engine, host, commands):
        bridge = LifecycleBridge(engine, host, commands)
        bridge.run_started(_signal(LifecycleEvent.RUN_STARTED))

        assert engine.calls[1:] == [
            ("assign", "people"),
            ("assign", "people_run1"),
            ("command", "begin()", 1),
        ]
        assert engine.values["people"] is engine.values["people_run1"]

    def test_snapshot_without_command(self, engine, host):
        bridge = LifecycleBridge(engine, host, snapshot_name="kids")
        bridge.run_started(_signal(LifecycleEvent.RUN_STARTED))
        assert "kids" in engine.values
        assert engine.commands() == []


class TestIterationEnded:
    def test_substitutes_host_iteration(self, engine, host, commands):
        bridge = LifecycleBridge(engine, host, commands)
        bridge.run_started(_signal(LifecycleEvent.RUN_STARTED))
        host.current_iteration = 7

        bridge.iteration_ended(_signal(LifecycleEvent.ITERATION_ENDED, 7))

        assert engine.commands()[-1] == "f(7)"
        assert bridge.history[-1].iteration == 7

    def test_no_template_does_nothing(self, engine, host):
        bridge = LifecycleBridge(engine, host, BridgeCommands(run_end="end()"))
        bridge.run_started(_signal(LifecycleEvent.RUN_STARTED))
        calls_before = list(engine.calls)

        bridge.iteration_ended(_signal(LifecycleEvent.ITERATION_ENDED, 1))

        assert engine.calls == calls_before
        assert host.snapshots == [1]


class TestRunStopped:
    def test_snapshot_then_command(self, engine, host, commands):
        bridge = LifecycleBridge(engine, host, commands)
        bridge.run_started(_signal(LifecycleEvent.RUN_STARTED))
        bridge.run_stopped(_signal(LifecycleEvent.RUN_STOPPED))

        assert engine.calls[-3:] == [
            ("assign", "people"),
            ("assign", "people_run1"),
            ("command", "end()", 1),
        ]

    def test_snapshot_without_command(self, engine, host):
        bridge = LifecycleBridge(engine, host)
        bridge.run_started(_signal(LifecycleEvent.RUN_STARTED))
        bridge.run_stopped(_signal(LifecycleEvent.RUN_STOPPED))
        assert host.snapshots == [1, 1]


class TestClosing:
    def test_first_delivery_does_nothing(self, engine, host, commands):
        bridge = LifecycleBridge(engine, host, commands)
        bridge.closing(_signal(LifecycleEvent.CLOSING))

        assert engine.calls == []
        assert bridge.state.first_close_executed

    def test_second_delivery_runs_sim_end(self, engine, host, commands):
        bridge = LifecycleBridge(engine, host, commands)
        bridge.closing(_signal(LifecycleEvent.CLOSING))
        bridge.closing(_signal(LifecycleEvent.CLOSING))

        assert engine.calls == [("command", "finish()", 0), ("prompt",)]

    def test_second_delivery_without_template_prompts(self, engine, host):
        bridge = LifecycleBridge(engine, host)
        bridge.closing(_signal(LifecycleEvent.CLOSING))
        bridge.closing(_signal(LifecycleEvent.CLOSING))
        assert engine.calls == [("prompt",)]


class TestDispatch:
    def test_full_session_order(self, engine, host, commands):
        bridge = LifecycleBridge(engine, host, commands)
        events = [LifecycleEvent.RUN_STARTED]
        events += [LifecycleEvent.ITERATION_ENDED] * 2
        events += [LifecycleEvent.RUN_STOPPED, LifecycleEvent.CLOSING, LifecycleEvent.CLOSING]

        for i, kind in enumerate(events):
            host.current_iteration = i
            bridge.dispatch(_signal(kind))

        assert engine.commands() == ["begin()", "f(1)", "f(2)", "end()", "finish()"]
        assert [r.event for r in bridge.history] == [
            LifecycleEvent.RUN_STARTED,
            LifecycleEvent.ITERATION_ENDED,
            LifecycleEvent.ITERATION_ENDED,
            LifecycleEvent.RUN_STOPPED,
            LifecycleEvent.CLOSING,
        ]


    def test_history_keeps_latest_commands(self, engine, host, commands):
        bridge = LifecycleBridge(engine, host, commands, history_limit=2)
        bridge.run_started(_signal(LifecycleEvent.RUN_STARTED))
        for i in range(1, 4):
            host.current_iteration = i
            bridge.iteration_ended(_signal(LifecycleEvent.ITERATION_ENDED, i))

        assert [r.command for r in bridge.history] == ["f(2)", "f(3)"]
        assert bridge.commands_executed == 4
        assert len(engine.commands()) == 4

    def test_unbounded_history(self, engine, host, commands):
        bridge = LifecycleBridge(engine, host, commands, history_limit=None)
        bridge.run_started(_signal(LifecycleEvent.RUN_STARTED))
        for i in range(1, 1101):
            host.current_iteration = i
            bridge.iteration_ended(_signal(LifecycleEvent.ITERATION_ENDED, i))
        assert len(bridge.history) == 1101


class TestFailures:
    def test_snapshot_failure_is_wrapped(self, engine):
        bridge = LifecycleBridge(engine, FakeHost(fail=True))

        with pytest.raises(SnapshotError, match="Snapshot of run 1 failed") as exc_info:
            bridge.run_started(_signal(LifecycleEvent.RUN_STARTED))

        assert exc_info.value.run_number == 1
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert isinstance(exc_info.value, RuntimeError)

    def test_engine_failure_propagates(self, host, commands):
        engine = FakeEngine(fail_on="end()")
        bridge = LifecycleBridge(engine, host, commands)
        bridge.run_started(_signal(LifecycleEvent.RUN_STARTED))

        with pytest.raises(EngineEvaluationError):
            bridge.run_stopped(_signal(LifecycleEvent.RUN_STOPPED))
