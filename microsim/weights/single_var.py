"""Weights for each factor level of a single variable.

The source distribution is the proportion table of the variable, as
computed by the statistics engine. Each level starts with its source
proportion; users move proportions between levels and the set is only
published to observers while the proportions still sum to 1.
"""

import logging
from typing import Any, Mapping

import numpy as np
import pandas as pd
from pandas.api import types as ptypes

from ..core.errors import (
    InvalidWeightsError,
    UnknownFactorLevelError,
    WeightConstructionError,
)
from ..core.models import WeightEntry
from ..engine.base import StatsEngine
from ..storage.prefs import PreferenceStore
from ..utils.callbacks import MessageDisplay
from .base import WeightCalculator
from .table import WeightTable

logger = logging.getLogger(__name__)

PROP_TABLE_CMD = "prop_table(table({variable}))"

# Tolerance per entry when checking the proportions sum to 1
DEFAULT_TOLERANCE = 1e-9

LevelKey = float | str


def level_key(value: Any) -> LevelKey:
    """Key a factor level so that 1, 1.0 and "1" match the same entry."""
    if isinstance(value, (bool, np.bool_)):
        return str(value)
    if isinstance(value, (int, float, np.integer, np.floating)):
        return float(value)
    text = str(value)
    try:
        return float(text)
    except ValueError:
        return text


def get_factor_levels_with_prop(
    engine: StatsEngine, variable: str
) -> dict[LevelKey, WeightEntry]:
    """Get the factor levels of ``variable`` with the proportion at each level.

    Args:
        engine: Statistics engine
        variable: Engine expression for the variable, e.g. ``people.sol1``

    Returns:
        Entries keyed by factor level, in the order the engine returned them,
        with numerator and denominator both set to the level's proportion.

    Raises:
        WeightConstructionError: If the result is not a named numeric vector
        EngineEvaluationError: If the engine fails to evaluate the query
    """
    cmd = PROP_TABLE_CMD.format(variable=variable)
    result = engine.evaluate(cmd)

    if isinstance(result, np.ndarray) and result.ndim == 1:
        raise WeightConstructionError(f"Result of {cmd} does not supply names.")
    if not isinstance(result, pd.Series):
        raise WeightConstructionError(f"{cmd} returned {type(result).__name__}")
    if not ptypes.is_numeric_dtype(result.dtype) or ptypes.is_bool_dtype(result.dtype):
        raise WeightConstructionError(f"{cmd} returned values of type {result.dtype}")
    if isinstance(result.index, pd.RangeIndex):
        raise WeightConstructionError(f"Result of {cmd} does not supply names.")

    levels: dict[LevelKey, WeightEntry] = {}
    for name, value in result.items():
        key = level_key(name)
        if key in levels:
            raise WeightConstructionError(f"Duplicate factor level '{name}' in {cmd}")
        levels[key] = WeightEntry(
            label=str(name), numerator=float(value), denominator=float(value)
        )
    return levels


class SingleVarWeightCalc(WeightCalculator):
    """Calculates weights for each factor level of a single variable."""

    def __init__(
        self,
        engine: StatsEngine,
        variable: str,
        variable_name: str,
        variable_desc: str = "",
        display: MessageDisplay | None = None,
        tolerance: float = DEFAULT_TOLERANCE,
    ):
        """Construct a set of weightings at each factor level of ``variable``.

        Args:
            engine: Statistics engine the proportion table is read from
            variable: Engine expression used as the basis for weighting,
                e.g. ``children.sol1``
            variable_name: Name looked up in each agent's variables, e.g. ``sol1``
            variable_desc: Description of the variable, for display
            display: Where validation problems are shown
            tolerance: Allowed drift of the sum from 1, per entry

        Raises:
            WeightConstructionError: If the proportion table is malformed
            InvalidWeightsError: If the proportions do not sum to 1
        """
        super().__init__(display)
        self.variable = variable
        self.variable_name = variable_name
        self.variable_desc = variable_desc or variable_name
        self.tolerance = tolerance

        self.factor_level_weights = get_factor_levels_with_prop(engine, variable)
        self.weights = list(self.factor_level_weights.values())
        self._table = WeightTable(self.weights)

        self.validate()
        self._published = self._current_fractions()

    @property
    def name(self) -> str:
        return f"Weightings - {self.variable_desc}"

    @property
    def table(self) -> WeightTable:
        return self._table

    @property
    def levels(self) -> list[str]:
        return [entry.label for entry in self.weights]

    # ── Weights ──

    def _entry(self, level: Any) -> WeightEntry:
        entry = None if level is None else self.factor_level_weights.get(level_key(level))
        if entry is None:
            raise UnknownFactorLevelError(
                f"Cannot find reweighting value for {self.variable_name} "
                f"with value = {level}"
            )
        return entry

    def get_weight(self, vars: Mapping[str, Any]) -> float:
        """Return the weight for the value of the variable in ``vars``.

        Raises:
            UnknownFactorLevelError: If the value is not a level of the source distribution
        """
        level = vars.get(self.variable_name)
        self._entry(level)
        return self._published[level_key(level)]

    def get_level_weight(self, vars: Mapping[str, Any]) -> float:
        return self.get_weight(vars)

    def get_all_level_props(self) -> np.ndarray:
        return np.array(list(self._published.values()))

    def _current_fractions(self) -> dict[LevelKey, float]:
        return {key: entry.fraction for key, entry in self.factor_level_weights.items()}

    def set_numerator(self, level: Any, value: float) -> None:
        """Edit the proportion of one level.

        The edit shows in the table straight away, but get_weight() keeps
        returning the last published value until update() succeeds.
        """
        entry = self._entry(level)
        entry.numerator = float(value)
        self._table.fire_table_data_changed()

    # ── Validation and notification ──

    def effective_tolerance(self) -> float:
        return self.tolerance * max(1, len(self.weights))

    def validate(self) -> None:
        """Check the weightings sum to 1.

        Raises:
            InvalidWeightsError: If they do not, with the computed total
        """
        total = float(sum(entry.fraction for entry in self.weights))

        if abs(total - 1.0) > self.effective_tolerance():
            raise InvalidWeightsError(
                f"{self.variable_desc} reweights ({total}) must add to 1", total=total
            )

    def validate_with_prompt(self) -> bool:
        """Validate, and show a message if validation fails.

        Returns:
            True if validation succeeds
        """
        try:
            self.validate()
        except InvalidWeightsError as e:
            self.display.show_message(str(e))
            return False
        return True

    def update(self) -> bool:
        """Process a change to the weights.

        Notifies observers once when the weights are valid; otherwise shows
        the validation message and notifies nobody.
        """
        if not self.validate_with_prompt():
            return False
        self._published = self._current_fractions()
        self.notify_observers()
        return True

    def reset_defaults(self) -> None:
        for entry in self.weights:
            entry.reset()

        self._table.fire_table_data_changed()
        self.update()

    # ── Preferences ──

    @property
    def prefs_namespace(self) -> str:
        return f"weights.{self.variable_name}"

    def save_state(self, prefs: PreferenceStore) -> None:
        for entry in self.weights:
            prefs.put(self.prefs_namespace, entry.label, entry.numerator)

    def load_state(self, prefs: PreferenceStore) -> None:
        """Restore saved proportions for levels still present, then update()."""
        stored = prefs.items(self.prefs_namespace)
        if not stored:
            return

        for label, numerator in stored.items():
            entry = self.factor_level_weights.get(level_key(label))
            if entry is None:
                logger.info(
                    "Ignoring saved weight for unknown level %s of %s",
                    label,
                    self.variable_name,
                )
                continue
            entry.numerator = float(numerator)

        self._table.fire_table_data_changed()
        self.update()
