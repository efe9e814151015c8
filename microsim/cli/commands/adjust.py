"""Adjust command: edit a categorical adjustment matrix in display units."""

from pathlib import Path
from typing import Any

import pandas as pd
import typer
from pandas.api import types as ptypes

from ...core.errors import EngineError, WeightConstructionError
from ...engine import PandasEngine
from ...weights import CategoricalVarAdjustment
from ..app import app, console, get_json_mode
from ..utils import ExitCode, Output

MATRIX_PATH = "adjustments.matrix"


def _find_label(labels: list[Any], text: str) -> Any:
    for label in labels:
        if str(label) == text:
            return label
    raise KeyError(text)


def parse_cell(text: str) -> tuple[str, str, float]:
    """Parse ROW,COL=VALUE."""
    cell, sep, value = text.partition("=")
    row, comma, col = cell.partition(",")
    if not sep or not comma:
        raise ValueError(f"Expected ROW,COL=VALUE, got '{text}'")
    return row.strip(), col.strip(), float(value)


@app.command("adjust")
def adjust_command(
    matrix: Path = typer.Argument(..., help="Matrix CSV, first column holds row labels"),
    factor: float = typer.Option(
        1.0, "--factor", "-f", help="Display factor, e.g. 100 to edit percentages"
    ),
    set_cells: list[str] = typer.Option(
        [], "--set", "-s", help="Set a cell in display units, ROW,COL=VALUE (repeatable)"
    ),
    reset: bool = typer.Option(False, "--reset", help="Set every cell to missing"),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Write the assigned matrix to this CSV"
    ),
):
    """Edit an adjustment matrix and assign it back in engine units.

    Example:
        microsim adjust fsmoke.csv --factor 100 --set 1,2=35
    """
    out = Output(console=console, json_mode=get_json_mode())

    if not matrix.exists():
        out.error(f"File not found: {matrix}", exit_code=ExitCode.FILE_NOT_FOUND)
        raise typer.Exit(out.finish())

    # Counts in a CSV read as integers; edits are proportions
    frame = pd.read_csv(matrix, index_col=0)
    frame = frame.astype(
        {col: float for col in frame.columns if ptypes.is_integer_dtype(frame[col])}
    )

    engine = PandasEngine(console=console, echo=not out.json_mode)
    engine.assign_value("adjustments", {"matrix": frame})

    try:
        adjustment = CategoricalVarAdjustment(engine, MATRIX_PATH, matrix.stem, factor)
    except (EngineError, WeightConstructionError, ValueError) as e:
        out.error(str(e), exit_code=ExitCode.ENGINE_ERROR)
        raise typer.Exit(out.finish())

    table = adjustment.table
    try:
        for item in set_cells:
            row, col, value = parse_cell(item)
            table.set_value_at(
                _find_label(table.container.rows, row),
                _find_label(table.container.columns, col),
                value,
            )
    except KeyError as e:
        out.error(f"Unknown row or column: {e}")
        raise typer.Exit(out.finish())
    except ValueError as e:
        out.error(str(e))
        raise typer.Exit(out.finish())

    try:
        if reset:
            adjustment.reset_defaults()
        else:
            adjustment.assign_matrix()
    except (EngineError, ValueError) as e:
        out.error(str(e), exit_code=ExitCode.ENGINE_ERROR)
        raise typer.Exit(out.finish())

    out.frame(f"{adjustment.name} (x{factor:g})", table.to_frame(), data_key="display")
    assigned = engine.get(MATRIX_PATH)
    out.frame(f"{adjustment.name} assigned", assigned, data_key="assigned")

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        assigned.to_csv(output)
        out.success(f"Wrote {output}", output=str(output))

    raise typer.Exit(out.finish())
