"""CLI utilities for dual-mode output (human-friendly + machine-readable).

Commands print through an Output, which uses Rich formatting by default and
collects structured data for a single JSON document in --json mode.

Example:
    out = Output(console=console, json_mode=get_json_mode())
    out.success("Loaded population", rows=500)
    out.frame("Weightings - sex", calc.table.to_frame())
    return out.finish()
"""

from __future__ import annotations

import json
import logging
from typing import Any

import pandas as pd
from pydantic import BaseModel, ConfigDict, PrivateAttr
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table


class ExitCode:
    """Standardized exit codes for CLI commands.

        0 = Success
        1 = Validation error (weights do not sum to 1, bad edit)
        3 = File not found
        6 = Engine error (evaluation, snapshot or malformed result)
        7 = Session spec error
    """

    SUCCESS = 0
    VALIDATION_ERROR = 1
    FILE_NOT_FOUND = 3
    ENGINE_ERROR = 6
    SPEC_ERROR = 7


class Output(BaseModel):
    """Dual-mode output handler for CLI commands.

    Also serves as the message display of weighting strategies, so
    validation problems appear as warnings.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    console: Console
    json_mode: bool = False

    _data: dict[str, Any] = PrivateAttr()
    _exit_code: int = PrivateAttr(default=ExitCode.SUCCESS)

    def model_post_init(self, __context: Any) -> None:
        self._data = {
            "status": "success",
            "warnings": [],
            "errors": [],
        }

    @property
    def exit_code(self) -> int:
        return self._exit_code

    def success(self, message: str, **data: Any) -> None:
        """Output a success message with optional data."""
        if self.json_mode:
            self._data.update(data)
        else:
            self.console.print(f"[green]✓[/green] {message}")

    def warning(self, message: str) -> None:
        if self.json_mode:
            self._data["warnings"].append({"message": message})
        else:
            self.console.print(f"[yellow]⚠[/yellow] {message}")

    def error(self, message: str, exit_code: int = ExitCode.VALIDATION_ERROR) -> None:
        """Output an error message and set exit code."""
        self._exit_code = exit_code
        self._data["status"] = "error"

        if self.json_mode:
            self._data["errors"].append({"message": message})
        else:
            self.console.print(f"[red]✗[/red] {message}")

    def show_message(self, message: str) -> None:
        self.warning(message)

    def text(self, message: str) -> None:
        """Output plain text (human mode only)."""
        if not self.json_mode:
            self.console.print(message)

    def frame(self, title: str, frame: pd.DataFrame, data_key: str | None = None) -> None:
        """Output a dataframe as a table, index first."""
        key = data_key or title.lower().replace(" ", "_")

        if self.json_mode:
            records = frame.reset_index().to_dict(orient="records")
            self._data[key] = json.loads(json.dumps(records, default=str))
            return

        table = Table(title=title, show_header=True, header_style="bold")
        table.add_column(str(frame.index.name or ""), justify="left")
        for col in frame.columns:
            table.add_column(str(col), justify="right")
        for label, row in frame.iterrows():
            table.add_row(str(label), *[_format_cell(v) for v in row.tolist()])
        self.console.print(table)

    def set_data(self, key: str, value: Any) -> None:
        """Set arbitrary data in JSON output."""
        self._data[key] = value

    def finish(self) -> int:
        """Print collected JSON (in JSON mode) and return the exit code."""
        if self.json_mode:
            print(json.dumps(self._data, indent=2, default=str))
        return self._exit_code


def _format_cell(value: Any) -> str:
    if isinstance(value, float):
        return "NA" if value != value else f"{value:.4g}"
    return str(value)


def format_elapsed(seconds: float) -> str:
    """Format elapsed seconds as Xm Ys or Xs."""
    if seconds >= 60:
        mins = int(seconds // 60)
        secs = int(seconds % 60)
        return f"{mins}m {secs}s"
    return f"{seconds:.0f}s"


def setup_logging(console: Console, verbose: bool = False, debug: bool = False) -> None:
    """Configure logging for CLI commands."""
    level = logging.WARNING
    if verbose:
        level = logging.INFO
    if debug:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, markup=False)],
        force=True,
    )

    for name in ["microsim.simulation", "microsim.engine", "microsim.weights"]:
        logging.getLogger(name).setLevel(level)
