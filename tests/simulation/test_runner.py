"""Tests for the simulation runner and its integration with the bridge.

Functions under test in microsim/simulation/runner.py.
"""

import io

import pandas as pd
import pytest
from rich.console import Console

from microsim.core.errors import SnapshotError
from microsim.core.models import BridgeCommands, LifecycleEvent
from microsim.engine import PandasEngine
from microsim.simulation import LifecycleBridge, SimulationListener, SimulationRunner
from microsim.weights import SingleVarWeightCalc


class RecordingListener(SimulationListener):
    """Records (event, iteration) for every dispatched signal."""

    def __init__(self):
        self.events = []

    def dispatch(self, signal):
        self.events.append((signal.kind, signal.iteration))


@pytest.fixture
def population():
    return pd.DataFrame({"sex": ["M", "F", "F", "F"], "age": [10, 20, 30, 40]})


def _age_step(population, iteration):
    population["age"] = population["age"] + 1


class TestSimulationRunner:
    def test_event_order(self, population):
        runner = SimulationRunner(population, iterations=2)
        listener = RecordingListener()
        runner.add_listener(listener)

        runner.run()
        runner.close()

        assert listener.events == [
            (LifecycleEvent.RUN_STARTED, 0),
            (LifecycleEvent.ITERATION_ENDED, 1),
            (LifecycleEvent.ITERATION_ENDED, 2),
            (LifecycleEvent.RUN_STOPPED, 2),
            (LifecycleEvent.CLOSING, 2),
            (LifecycleEvent.CLOSING, 2),
        ]

    def test_listener_added_once(self, population):
        runner = SimulationRunner(population)
        listener = RecordingListener()
        runner.add_listener(listener)
        runner.add_listener(listener)
        runner.run()
        assert len(listener.events) == 3

    def test_removed_listener(self, population):
        runner = SimulationRunner(population)
        listener = RecordingListener()
        runner.add_listener(listener)
        runner.remove_listener(listener)
        runner.run()
        assert listener.events == []

    def test_each_run_starts_from_initial_population(self, population):
        runner = SimulationRunner(population, iterations=3, step=_age_step)

        runner.run()
        assert runner.population["age"].tolist() == [13, 23, 33, 43]
        runner.run()
        assert runner.population["age"].tolist() == [13, 23, 33, 43]
        assert population["age"].tolist() == [10, 20, 30, 40]

    def test_step_may_return_new_population(self, population):
        runner = SimulationRunner(
            population, step=lambda pop, i: pop[pop["sex"] == "F"].copy()
        )
        runner.run()
        assert len(runner.population) == 3

    def test_close_is_idempotent(self, population):
        runner = SimulationRunner(population)
        listener = RecordingListener()
        runner.add_listener(listener)
        runner.close()
        runner.close()
        assert len(listener.events) == 2

    def test_run_after_close(self, population):
        runner = SimulationRunner(population)
        runner.close()
        with pytest.raises(RuntimeError, match="closed"):
            runner.run()

    def test_invalid_iterations(self, population):
        with pytest.raises(ValueError):
            SimulationRunner(population, iterations=0)

    def test_snapshot_columns(self, population):
        runner = SimulationRunner(population, iterations=2)
        runner.run()
        frame = runner.snapshot(5)
        assert frame["run"].unique().tolist() == [5]
        assert frame["iteration"].unique().tolist() == [2]
        assert "weight" not in frame.columns


class TestBridgedSession:
    """Runner, bridge and pandas engine together."""

    @pytest.fixture
    def engine(self):
        return PandasEngine(console=Console(file=io.StringIO(), width=120))

    def test_commands_fire_once_per_event(self, population, engine):
        commands = BridgeCommands(
            iteration_end="last_iter = ITERATION_NBR",
            run_begin="begin_run = run_number",
            run_end="mean_age = mean(people.age)",
            sim_end="n = nrow(people_run2)",
        )
        runner = SimulationRunner(population, iterations=3, step=_age_step)
        bridge = LifecycleBridge(engine, runner, commands)
        runner.add_listener(bridge)

        runner.run_many(2)
        runner.close()

        events = [r.event for r in bridge.history]
        assert events.count(LifecycleEvent.RUN_STARTED) == 2
        assert events.count(LifecycleEvent.ITERATION_ENDED) == 6
        assert events.count(LifecycleEvent.RUN_STOPPED) == 2
        assert events.count(LifecycleEvent.CLOSING) == 1

        assert engine.get("begin_run") == 2
        assert engine.get("last_iter") == 3
        assert engine.get("mean_age") == 28.0
        assert engine.get("n") == 4
        assert engine.get("people_run1")["run"].unique().tolist() == [1]
        assert engine.transcript[0] == ""
        assert engine.transcript[-1] == engine.prompt

    def test_weight_column(self, population, engine):
        engine.assign_value("people", population)
        sex = SingleVarWeightCalc(engine, "people.sex", "sex")
        runner = SimulationRunner(population, weights=[sex])
        bridge = LifecycleBridge(engine, runner)
        runner.add_listener(bridge)

        runner.run()

        weights = engine.get("people.weight").tolist()
        assert weights == pytest.approx([0.25, 0.75, 0.75, 0.75])

    def test_weight_column_uses_published_proportions(self, population, engine):
        engine.assign_value("people", population)
        sex = SingleVarWeightCalc(engine, "people.sex", "sex")
        runner = SimulationRunner(population, weights=[sex])
        runner.run()

        defaults = runner.snapshot(1)["weight"].tolist()
        assert defaults == pytest.approx([0.25, 0.75, 0.75, 0.75])
        assert sex.table.get_value_at(0, "ratio") == pytest.approx(1.0)

        sex.set_numerator("M", 0.5)
        assert sex.update() is False
        assert runner.snapshot(1)["weight"].tolist() == pytest.approx(defaults)

    def test_snapshot_failure_aborts_run(self, engine):
        population = pd.DataFrame({"sex": ["M", "F"]})
        engine.assign_value("people", population)
        sex = SingleVarWeightCalc(engine, "people.sex", "sex")
        runner = SimulationRunner(
            population,
            step=lambda pop, i: pd.DataFrame({"sex": ["X"]}),
            weights=[sex],
        )
        bridge = LifecycleBridge(engine, runner, BridgeCommands(iteration_end="1"))
        runner.add_listener(bridge)

        with pytest.raises(SnapshotError):
            runner.run()
        assert runner.runs_completed == 0
