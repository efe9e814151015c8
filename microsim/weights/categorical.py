"""Adjustments to the levels of a categorical variable.

Displays an existing engine matrix (rows and columns of levels, possibly
across iterations) so users can specify a proportion for each cell, and
writes the edits back. Values are shown multiplied by a display factor
(e.g. 100 for percentages) and divided by it again on the way back.

Validation of the matrix contents is left to the engine.
"""

import logging
from typing import Any, Callable, Iterable, Mapping

import numpy as np
import pandas as pd
from pydantic import ValidationError

from ..core.errors import ResultShapeError, WeightConstructionError
from ..core.models import AdjustmentSpec
from ..engine.base import StatsEngine
from ..engine.tabular import TabularContainer, widen_bytes
from ..storage.prefs import PreferenceStore
from ..utils.callbacks import MessageDisplay
from .base import WeightCalculator
from .table import AdjustmentTable

logger = logging.getLogger(__name__)

# Engine variable used to stage a matrix before assigning it to its target,
# which may be an element inside a larger container
INTERMEDIATE_VAR = "_catadj"


class CategoricalVarAdjustment(WeightCalculator):
    """Editable view of an engine matrix of categorical level adjustments."""

    def __init__(
        self,
        engine: StatsEngine,
        matrix_varname: str,
        variable: str,
        display_adj_factor: float = 1.0,
        describe: Callable[[str], str] | None = None,
        display: MessageDisplay | None = None,
        intermediate_var: str = INTERMEDIATE_VAR,
    ):
        """Construct an editable table of ``matrix_varname``.

        Args:
            engine: Statistics engine holding the matrix
            matrix_varname: Existing engine matrix that holds the values,
                e.g. ``scenario.catadjs.fsmoke``
            variable: Name of the variable, used to look up its description
            display_adj_factor: Multiplier applied for display, 1 for none
            describe: Data dictionary lookup from variable name to description
            display: Where problems are shown
            intermediate_var: Engine variable used to stage assignments

        Raises:
            WeightConstructionError: If the matrix cannot be read as tabular data
            EngineEvaluationError: If the engine cannot evaluate ``matrix_varname``
        """
        if display_adj_factor == 0:
            raise ValueError("display_adj_factor must be non-zero")

        super().__init__(display)
        self.engine = engine
        self.matrix_varname = matrix_varname
        self.variable = variable
        self.display_adj_factor = float(display_adj_factor)
        self.variable_desc = describe(variable) if describe else variable
        self.intermediate_var = intermediate_var

        self._table = self.reload()

    def load_adj_matrix(self) -> TabularContainer:
        """Load the matrix from the engine, scaled for display.

        Byte columns are shown as floats and narrowed back on assignment.
        """
        result = self.engine.evaluate(self.matrix_varname)

        try:
            container = self.engine.build_tabular(result, self.matrix_varname)
            return self.engine.scale(widen_bytes(container), self.display_adj_factor)
        except (ResultShapeError, ValueError) as e:
            raise WeightConstructionError(str(e)) from e

    def reload(self) -> AdjustmentTable:
        """Re-read the matrix from the engine, discarding unassigned edits."""
        self._table = AdjustmentTable(self.load_adj_matrix(), self.display_adj_factor)
        return self._table

    @property
    def name(self) -> str:
        return self.variable_desc

    @property
    def table(self) -> AdjustmentTable:
        return self._table

    # ── Engine assignment ──

    def assign_matrix(self) -> None:
        """Set the engine matrix to the table values, in engine units.

        The matrix is written back in the form it was read: an array stays
        an array and columns keep their original dtypes.

        Raises:
            ValueError: If an edited byte cell no longer fits in a byte
        """
        container = self.engine.scale(
            self._table.container, 1.0 / self.display_adj_factor
        )
        self._assign(container)

    def _assign(self, container: TabularContainer) -> None:
        # Stage in an intermediate variable then assign into the target,
        # because the target may be a container element
        self.engine.assign_value(self.intermediate_var, container.to_source())
        self.engine.assign(self.matrix_varname, self.intermediate_var)

        self.engine.echo(f"Assigned adjustments to {self.matrix_varname}")
        logger.info("Assigned adjustments to %s", self.matrix_varname)

    # ── ParameterSet ──

    def update(self) -> bool:
        self.notify_observers()
        return True

    def reset_defaults(self) -> None:
        """Set every cell to missing and write the matrix back."""
        container = self._table.container
        container.reset_to_missing()

        self._table.fire_table_data_changed()
        self._assign(container)

    def load_state(self, prefs: PreferenceStore) -> None:
        # The engine matrix is the state
        pass

    def save_state(self, prefs: PreferenceStore) -> None:
        pass

    # ── Unsupported weight calculations ──

    def get_weight(self, vars: Mapping[str, Any]) -> float:
        raise NotImplementedError("get_weight not implemented.")

    def get_level_weight(self, vars: Mapping[str, Any]) -> float:
        raise NotImplementedError("get_level_weight not implemented.")

    def get_all_level_props(self) -> np.ndarray:
        raise NotImplementedError("get_all_level_props not implemented.")


# =============================================================================
# Batch construction
# =============================================================================


def build_adjustments(
    engine: StatsEngine,
    specs: Iterable[AdjustmentSpec],
    describe: Callable[[str], str] | None = None,
    display: MessageDisplay | None = None,
    intermediate_var: str = INTERMEDIATE_VAR,
) -> list[CategoricalVarAdjustment]:
    """Create one adjustment per spec, in order."""
    return [
        CategoricalVarAdjustment(
            engine,
            spec.matrix_varname,
            spec.variable,
            spec.display_adj_factor,
            describe=describe,
            display=display,
            intermediate_var=intermediate_var,
        )
        for spec in specs
    ]


def create_adjustments(
    engine: StatsEngine,
    spec: pd.DataFrame | str,
    describe: Callable[[str], str] | None = None,
    display: MessageDisplay | None = None,
) -> list[CategoricalVarAdjustment]:
    """Create adjustments from a dataframe with one row per adjustment.

    Columns are ``rMatrixVarname``, ``rVariable`` and ``displayAdjFactor``
    (or ``matrix_varname``, ``variable`` and ``display_adj_factor``).

    Args:
        engine: Statistics engine
        spec: The dataframe, or the name of an engine variable holding it

    Raises:
        ValueError: If the spec is not a dataframe; nothing is constructed
        WeightConstructionError: If a row cannot be coerced
    """
    if isinstance(spec, str):
        spec = engine.evaluate(spec)

    if not isinstance(spec, pd.DataFrame):
        raise ValueError(f"Cannot build list from value of type {type(spec).__name__}")

    rows: list[AdjustmentSpec] = []
    for i, record in enumerate(spec.to_dict(orient="records")):
        try:
            rows.append(AdjustmentSpec.model_validate(record))
        except ValidationError as e:
            raise WeightConstructionError(f"Row {i + 1} of adjustment spec: {e}") from e

    return build_adjustments(engine, rows, describe=describe, display=display)
