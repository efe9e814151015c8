"""Weights command: inspect and edit single-variable weightings."""

from pathlib import Path

import pandas as pd
import typer

from ...config import get_config
from ...core.errors import EngineError, UnknownFactorLevelError, WeightConstructionError
from ...engine import PandasEngine
from ...storage import open_prefs
from ...weights import SingleVarWeightCalc
from ..app import app, console, get_json_mode
from ..utils import ExitCode, Output


def parse_assignment(text: str) -> tuple[str, float]:
    """Parse LEVEL=VALUE."""
    level, sep, value = text.partition("=")
    if not sep or not level.strip():
        raise ValueError(f"Expected LEVEL=VALUE, got '{text}'")
    return level.strip(), float(value)


@app.command("weights")
def weights_command(
    population: Path = typer.Argument(..., help="Population CSV file"),
    variable: str = typer.Argument(..., help="Column to weight by"),
    set_values: list[str] = typer.Option(
        [], "--set", "-s", help="Set a level's proportion, LEVEL=VALUE (repeatable)"
    ),
    reset: bool = typer.Option(False, "--reset", help="Restore source proportions"),
    csv_dir: Path | None = typer.Option(
        None, "--csv", help="Write the weight table to this directory"
    ),
    save: bool = typer.Option(False, "--save", help="Persist valid weights to preferences"),
    load: bool = typer.Option(False, "--load", help="Start from persisted weights"),
):
    """Show the weight of each level of VARIABLE, optionally editing them.

    Example:
        microsim weights people.csv sex --set M=0.5 --set F=0.5
    """
    out = Output(console=console, json_mode=get_json_mode())
    config = get_config()

    if not population.exists():
        out.error(f"File not found: {population}", exit_code=ExitCode.FILE_NOT_FOUND)
        raise typer.Exit(out.finish())

    frame = pd.read_csv(population)
    if variable not in frame.columns:
        out.error(f"Unknown column: {variable}")
        raise typer.Exit(out.finish())

    engine = PandasEngine(console=console, echo=False)
    engine.assign_value("population", frame)

    try:
        calc = SingleVarWeightCalc(
            engine,
            f"population[{variable!r}]",
            variable,
            variable,
            display=out,
            tolerance=config.weights.tolerance,
        )
    except (EngineError, WeightConstructionError) as e:
        out.error(str(e), exit_code=ExitCode.ENGINE_ERROR)
        raise typer.Exit(out.finish())

    if load:
        with open_prefs(config.prefs_path_resolved) as prefs:
            calc.load_state(prefs)

    try:
        for item in set_values:
            level, value = parse_assignment(item)
            calc.set_numerator(level, value)
    except (ValueError, UnknownFactorLevelError) as e:
        out.error(str(e))
        raise typer.Exit(out.finish())

    if reset:
        calc.reset_defaults()
        valid = True
    else:
        valid = calc.update()

    out.frame(calc.name, calc.table.to_frame(), data_key="weights")

    if csv_dir is not None:
        path = calc.save_to_csv(csv_dir)
        out.success(f"Saved table to {path}", csv=str(path))

    if not valid:
        out.error("Weights were not applied")
        raise typer.Exit(out.finish())

    if save:
        with open_prefs(config.prefs_path_resolved) as prefs:
            calc.save_state(prefs)
        out.success(f"Saved weights to {config.defaults.prefs_path}")

    raise typer.Exit(out.finish())
