"""In-process statistics engine backed by pandas.

Holds a namespace of variables (dataframes, series, arrays, scalars and
nested dict containers) and evaluates restricted command strings against
it. Command echo goes to a rich console, like an interactive session.
"""

import copy
import logging
from collections.abc import Mapping, MutableMapping
from typing import Any, Callable

import numpy as np
import pandas as pd
from rich.console import Console

from ..core.errors import EngineEvaluationError
from ..utils.expressions import ExpressionError, exec_safe, get_element
from .base import RUN_NUMBER_VAR
from .tabular import TabularContainer, scale as scale_container

logger = logging.getLogger(__name__)


# =============================================================================
# Statistics functions available to commands
# =============================================================================


def _as_series(x: Any) -> pd.Series:
    if isinstance(x, pd.Series):
        return x
    return pd.Series(np.asarray(x))


def table(x: Any) -> pd.Series:
    """Count of each distinct value, ordered by value. Missing values are dropped."""
    counts = _as_series(x).value_counts(sort=False, dropna=True).sort_index()
    counts.name = None
    counts.index.name = None
    return counts


def prop_table(x: Any) -> pd.Series | pd.DataFrame:
    """Proportion of the total in each cell, keeping names."""
    if isinstance(x, pd.DataFrame):
        return x / x.to_numpy(dtype=float).sum()
    counts = _as_series(x).astype(float)
    return counts / counts.sum()


def crosstab(rows: Any, cols: Any) -> pd.DataFrame:
    """Two-way count table of two variables."""
    frame = pd.crosstab(_as_series(rows), _as_series(cols))
    frame.index.name = None
    frame.columns.name = None
    frame.columns = [str(c) for c in frame.columns]
    return frame


def mean(x: Any) -> float:
    return float(_as_series(x).mean())


def weighted_mean(x: Any, w: Any) -> float:
    return float(np.average(np.asarray(x, dtype=float), weights=np.asarray(w, dtype=float)))


def total(x: Any) -> float:
    if isinstance(x, pd.DataFrame):
        return float(x.to_numpy(dtype=float).sum())
    return float(np.nansum(np.asarray(x, dtype=float)))


def nrow(x: Any) -> int:
    return int(np.shape(x)[0])


def ncol(x: Any) -> int:
    shape = np.shape(x)
    return int(shape[1]) if len(shape) > 1 else 1


def colnames(x: pd.DataFrame) -> list[str]:
    return [str(c) for c in x.columns]


def data_frame(**columns: Any) -> pd.DataFrame:
    return pd.DataFrame(columns)


def scale_values(x: Any, factor: float) -> Any:
    return x * factor


STATS_FUNCTIONS: dict[str, Callable] = {
    "table": table,
    "prop_table": prop_table,
    "crosstab": crosstab,
    "mean": mean,
    "weighted_mean": weighted_mean,
    "total": total,
    "nrow": nrow,
    "ncol": ncol,
    "colnames": colnames,
    "data_frame": data_frame,
    "scale": scale_values,
}


def render(value: Any) -> str:
    """Render a result for the console."""
    if value is None:
        return ""
    if isinstance(value, (pd.DataFrame, pd.Series)):
        return value.to_string()
    return str(value)


# =============================================================================
# Engine
# =============================================================================


class PandasEngine:
    """Statistics engine evaluating commands against a pandas namespace.

    Example:
        engine = PandasEngine()
        engine.assign_value("people", df)
        engine.evaluate("props = prop_table(table(people.sex))")
    """

    def __init__(
        self,
        console: Console | None = None,
        prompt: str = "> ",
        echo: bool = True,
        variables: Mapping[str, Any] | None = None,
    ):
        self.console = console or Console()
        self.prompt = prompt
        self.echo_enabled = echo
        self.variables: dict[str, Any] = dict(variables or {})
        self.transcript: list[str] = []
        self.functions: dict[str, Callable] = dict(STATS_FUNCTIONS)
        self.functions["print"] = self._print

    def _print(self, value: Any) -> None:
        self.echo(render(value))

    # ── Evaluation ──

    def evaluate(self, expression: str) -> Any:
        """Evaluate a command and return the value of its last statement.

        Raises:
            EngineEvaluationError: If the command fails in the engine
        """
        try:
            return exec_safe(
                expression, self.variables, self._assign_path, self.functions
            )
        except ExpressionError as e:
            raise EngineEvaluationError(expression, str(e)) from e

    def evaluate_logged(self, command: str, run_number: int) -> Any:
        """Evaluate a command, echoing it and its result to the console.

        The run number is exposed to the command as ``run_number``.
        """
        self.assign_value(RUN_NUMBER_VAR, run_number)
        self.echo(f"{self.prompt}{command}")
        logger.debug("[run %d] evaluating: %s", run_number, command)

        result = self.evaluate(command)

        text = render(result)
        if text:
            self.echo(text)
        logger.debug("[run %d] result: %s", run_number, text or "<none>")
        return result

    def get(self, name: str) -> Any:
        """Return the value at a (possibly dotted) variable path."""
        try:
            parts = self._split_path(name)
            if parts[0] not in self.variables:
                raise ExpressionError(f"object '{parts[0]}' not found")
            value = self.variables[parts[0]]
            for part in parts[1:]:
                value = get_element(value, part)
        except ExpressionError as e:
            raise EngineEvaluationError(name, str(e)) from e
        return value

    def exists(self, name: str) -> bool:
        try:
            self.get(name)
        except EngineEvaluationError:
            return False
        return True

    # ── Assignment ──

    def assign(self, name: str, value: Any) -> None:
        """Assign to ``name``. A string value is a reference to another variable."""
        if isinstance(value, str):
            value = copy.deepcopy(self.get(value))
        self.assign_value(name, value)

    def assign_value(self, name: str, value: Any) -> None:
        """Assign a literal value to ``name`` (dotted paths write into containers)."""
        try:
            self._assign_path(name, value)
        except (ExpressionError, KeyError, TypeError, ValueError) as e:
            raise EngineEvaluationError(f"{name} = <value>", str(e)) from e
        logger.debug("Assigned %s (%s)", name, type(value).__name__)

    def _assign_path(self, path: str, value: Any) -> None:
        parts = self._split_path(path)
        if len(parts) == 1:
            self.variables[parts[0]] = value
            return

        if parts[0] not in self.variables:
            raise ExpressionError(f"object '{parts[0]}' not found")
        container = self.variables[parts[0]]
        for part in parts[1:-1]:
            container = get_element(container, part)

        last = parts[-1]
        if isinstance(container, (MutableMapping, pd.DataFrame)):
            container[last] = value
        else:
            raise ExpressionError(
                f"Cannot assign '{last}' into value of type {type(container).__name__}"
            )

    @staticmethod
    def _split_path(path: str) -> list[str]:
        parts = path.split(".")
        for part in parts:
            if not part:
                raise ExpressionError(f"Invalid variable path '{path}'")
            if part.startswith("__"):
                raise ExpressionError("dunder names are not allowed")
        return parts

    # ── Console ──

    def echo(self, text: str) -> None:
        self.transcript.append(text)
        if self.echo_enabled:
            self.console.print(text, markup=False, highlight=False)

    def print_prompt(self) -> None:
        self.transcript.append(self.prompt)
        if self.echo_enabled:
            self.console.print(self.prompt, end="", markup=False, highlight=False)

    # ── Tabular ──

    def build_tabular(self, result: Any, name: str) -> TabularContainer:
        return TabularContainer.from_result(result, name)

    def scale(self, container: TabularContainer, factor: float) -> TabularContainer:
        return scale_container(container, factor)
