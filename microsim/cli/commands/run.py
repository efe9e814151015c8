"""Run command: execute a session with the lifecycle bridge attached."""

import time
from pathlib import Path

import pandas as pd
import typer
from pydantic import ValidationError

from ...config import get_config
from ...core.errors import EngineError, MicrosimError, SnapshotError
from ...core.models import BridgeCommands, SessionSpec
from ...engine import PandasEngine
from ...simulation import LifecycleBridge, SimulationRunner
from ...storage import open_prefs
from ...weights import SingleVarWeightCalc, build_adjustments
from ..app import app, console, get_json_mode
from ..utils import ExitCode, Output, format_elapsed, setup_logging


def _merge_commands(session: BridgeCommands, fallback: BridgeCommands) -> BridgeCommands:
    """Session commands win; config commands fill the gaps."""
    return BridgeCommands(
        iteration_end=session.iteration_end or fallback.iteration_end,
        run_begin=session.run_begin or fallback.run_begin,
        run_end=session.run_end or fallback.run_end,
        sim_end=session.sim_end or fallback.sim_end,
    )


@app.command("run")
def run_command(
    session: Path = typer.Argument(..., help="Session YAML file"),
    runs: int | None = typer.Option(None, "--runs", "-r", help="Override number of runs"),
    iterations: int | None = typer.Option(
        None, "--iterations", "-i", help="Override iterations per run"
    ),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Do not echo engine commands"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show progress logs"),
    debug: bool = typer.Option(False, "--debug", help="Show debug logs"),
):
    """Run a simulation session, executing engine commands at lifecycle events.

    Example:
        microsim run session.yaml --runs 3
    """
    setup_logging(console, verbose=verbose, debug=debug)
    out = Output(console=console, json_mode=get_json_mode())
    config = get_config()

    if not session.exists():
        out.error(f"Session file not found: {session}", exit_code=ExitCode.FILE_NOT_FOUND)
        raise typer.Exit(out.finish())

    try:
        spec = SessionSpec.from_yaml(session)
    except (ValueError, ValidationError) as e:
        out.error(f"Invalid session spec: {e}", exit_code=ExitCode.SPEC_ERROR)
        raise typer.Exit(out.finish())

    if not spec.population.exists():
        out.error(
            f"Population file not found: {spec.population}",
            exit_code=ExitCode.FILE_NOT_FOUND,
        )
        raise typer.Exit(out.finish())

    population = pd.read_csv(spec.population)
    engine = PandasEngine(
        console=console,
        prompt=config.engine.prompt,
        echo=config.engine.echo and not quiet and not out.json_mode,
    )
    snapshot_name = spec.snapshot_name or config.bridge.snapshot_name
    engine.assign_value(snapshot_name, population)

    start = time.time()
    try:
        for command in spec.setup:
            engine.evaluate(command)

        weights = [
            SingleVarWeightCalc(
                engine,
                w.variable,
                w.name,
                w.description,
                display=out,
                tolerance=config.weights.tolerance,
            )
            for w in spec.weights
        ]
        with open_prefs(config.prefs_path_resolved) as prefs:
            for calc in weights:
                calc.load_state(prefs)

        adjustments = build_adjustments(
            engine,
            spec.adjustments,
            display=out,
            intermediate_var=config.engine.intermediate_var,
        )

        runner = SimulationRunner(
            population, iterations=iterations or spec.iterations, weights=weights
        )
        bridge = LifecycleBridge(
            engine,
            runner,
            _merge_commands(spec.commands, config.bridge.commands()),
            snapshot_name=snapshot_name,
        )
        runner.add_listener(bridge)

        runner.run_many(runs or spec.runs)
        runner.close()
    except SnapshotError as e:
        out.error(str(e), exit_code=ExitCode.ENGINE_ERROR)
        raise typer.Exit(out.finish())
    except EngineError as e:
        out.error(f"Engine error: {e}", exit_code=ExitCode.ENGINE_ERROR)
        raise typer.Exit(out.finish())
    except (MicrosimError, ValueError) as e:
        out.error(str(e), exit_code=ExitCode.VALIDATION_ERROR)
        raise typer.Exit(out.finish())

    for calc in weights:
        out.frame(calc.name, calc.table.to_frame())
    for adjustment in adjustments:
        out.frame(adjustment.name, adjustment.table.to_frame())

    out.success(
        f"{runner.runs_completed} run(s) completed, "
        f"{bridge.commands_executed} command(s) executed "
        f"in {format_elapsed(time.time() - start)}",
        runs=runner.runs_completed,
        commands=[record.model_dump(mode="json") for record in bridge.history],
    )
    raise typer.Exit(out.finish())
