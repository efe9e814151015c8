"""Tests for pydantic models: lifecycle state, weight entries and session specs."""

import pytest
import yaml
from pydantic import ValidationError

from microsim.core.models import (
    AdjustmentSpec,
    BridgeCommands,
    CloseState,
    LifecycleSignal,
    LifecycleState,
    SessionSpec,
    WeightEntry,
    load_adjustment_specs,
)


class TestBridgeCommands:
    def test_blank_is_absent(self):
        commands = BridgeCommands(iteration_end="  ", run_end="print(1)")
        assert commands.iteration_end is None
        assert commands.run_end == "print(1)"

    def test_frozen(self):
        commands = BridgeCommands()
        with pytest.raises(ValidationError):
            commands.run_end = "x"


class TestLifecycleState:
    def test_close_is_two_phase(self):
        state = LifecycleState()
        assert state.close_state is CloseState.AWAITING_FIRST_CLOSE
        assert state.receive_close() is False
        assert state.first_close_executed
        assert state.receive_close() is True
        assert state.receive_close() is True

    def test_start_run(self):
        state = LifecycleState()
        assert state.start_run() == 1
        assert state.start_run() == 2
        assert state.run_number == 2

    def test_negative_iteration_rejected(self):
        with pytest.raises(ValidationError):
            LifecycleSignal(kind="run_started", iteration=-1)


class TestWeightEntry:
    def test_fraction_and_ratio(self):
        entry = WeightEntry(label="A", numerator=0.5, denominator=0.25)
        assert entry.fraction == 0.5
        assert entry.ratio == 2.0

    def test_reset(self):
        entry = WeightEntry(label="A", numerator=0.5, denominator=0.25)
        entry.reset()
        assert entry.numerator == 0.25
        assert entry.ratio == 1.0

    def test_zero_denominator_rejected(self):
        with pytest.raises(ValidationError):
            WeightEntry(label="A", numerator=0.0, denominator=0.0)


class TestAdjustmentSpec:
    def test_aliases_and_names(self):
        by_alias = AdjustmentSpec.model_validate(
            {"rMatrixVarname": "m", "rVariable": "v", "displayAdjFactor": 100}
        )
        by_name = AdjustmentSpec(matrix_varname="m", variable="v", display_adj_factor=1)
        assert by_alias.display_adj_factor == 100.0
        assert by_name.display_adj_factor == 1.0

    def test_display_factor_required(self):
        with pytest.raises(ValidationError, match="displayAdjFactor"):
            AdjustmentSpec.model_validate({"rMatrixVarname": "m", "rVariable": "v"})

    def test_display_factor_must_be_finite(self):
        with pytest.raises(ValidationError):
            AdjustmentSpec(matrix_varname="m", variable="v", display_adj_factor=float("nan"))
        with pytest.raises(ValidationError):
            AdjustmentSpec(matrix_varname="m", variable="v", display_adj_factor=float("inf"))

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "adj.yaml"
        path.write_text(
            yaml.dump(
                [
                    {"rMatrixVarname": "a", "rVariable": "x", "displayAdjFactor": 1},
                    {"rMatrixVarname": "b", "rVariable": "y", "displayAdjFactor": 100},
                ]
            )
        )
        specs = load_adjustment_specs(path)
        assert [s.matrix_varname for s in specs] == ["a", "b"]

    def test_load_yaml_not_a_list(self, tmp_path):
        path = tmp_path / "adj.yaml"
        path.write_text("a: 1\n")
        with pytest.raises(ValueError):
            load_adjustment_specs(path)


class TestSessionSpec:
    def test_yaml_round_trip(self, tmp_path):
        spec = SessionSpec(
            population=tmp_path / "people.csv",
            runs=2,
            commands=BridgeCommands(run_end="print(mean(people.age))"),
            adjustments=[AdjustmentSpec(matrix_varname="m", variable="v", display_adj_factor=100)],
        )
        path = tmp_path / "session.yaml"
        spec.to_yaml(path)

        loaded = SessionSpec.from_yaml(path)

        assert loaded.runs == 2
        assert loaded.commands.run_end == "print(mean(people.age))"
        assert loaded.adjustments[0].matrix_varname == "m"
        assert "rMatrixVarname" in path.read_text()

    def test_relative_population(self, tmp_path):
        path = tmp_path / "session.yaml"
        path.write_text("population: people.csv\n")
        assert SessionSpec.from_yaml(path).population == tmp_path / "people.csv"

    def test_not_an_object(self, tmp_path):
        path = tmp_path / "session.yaml"
        path.write_text("- 1\n")
        with pytest.raises(ValueError, match="must parse to an object"):
            SessionSpec.from_yaml(path)
