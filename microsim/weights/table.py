"""Tabular views over weighting parameters.

Views are what display code renders and edits. They tell their listeners
when the underlying data changed so renderers can refresh.
"""

from typing import Any, Sequence

import pandas as pd

from ..core.models import WeightEntry
from ..engine.tabular import TabularContainer
from ..utils.callbacks import TableListener


class TableView:
    """Base tabular view with data-change listeners."""

    def __init__(self):
        self._listeners: list[TableListener] = []

    def add_listener(self, listener: TableListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: TableListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def fire_table_data_changed(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def to_frame(self) -> pd.DataFrame:
        raise NotImplementedError


class WeightTable(TableView):
    """One row per factor level with numerator, denominator, fraction and ratio.

    Only the numerator column is editable.
    """

    COLUMNS = ("numerator", "denominator", "fraction", "ratio")

    def __init__(self, entries: Sequence[WeightEntry]):
        super().__init__()
        self.entries = list(entries)

    @property
    def row_count(self) -> int:
        return len(self.entries)

    @property
    def column_count(self) -> int:
        return len(self.COLUMNS)

    def get_value_at(self, row: int, column: str) -> float:
        entry = self.entries[row]
        if column == "numerator":
            return entry.numerator
        if column == "denominator":
            return entry.denominator
        if column == "fraction":
            return entry.fraction
        if column == "ratio":
            return entry.ratio
        raise KeyError(column)

    def is_cell_editable(self, row: int, column: str) -> bool:
        return column == "numerator"

    def set_value_at(self, row: int, column: str, value: float) -> None:
        if not self.is_cell_editable(row, column):
            raise ValueError(f"Column '{column}' is not editable")
        self.entries[row].numerator = float(value)
        self.fire_table_data_changed()

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "numerator": [e.numerator for e in self.entries],
                "denominator": [e.denominator for e in self.entries],
                "fraction": [e.fraction for e in self.entries],
                "ratio": [e.ratio for e in self.entries],
            },
            index=pd.Index([e.label for e in self.entries], name="level"),
        )


class AdjustmentTable(TableView):
    """Editable view over a matrix, in display units."""

    def __init__(self, container: TabularContainer, display_adj_factor: float):
        super().__init__()
        self.container = container
        self.display_adj_factor = display_adj_factor

    @property
    def row_count(self) -> int:
        return len(self.container)

    @property
    def column_count(self) -> int:
        return len(self.container.columns)

    def get_value_at(self, row: Any, column: Any) -> Any:
        return self.container.get_value(row, column)

    def is_cell_editable(self, row: Any, column: Any) -> bool:
        return self.container.kinds[column].is_numeric

    def set_value_at(self, row: Any, column: Any, value: Any) -> None:
        if not self.is_cell_editable(row, column):
            raise ValueError(f"Column '{column}' is not editable")
        self.container.set_value(row, column, value)
        self.fire_table_data_changed()

    def to_frame(self) -> pd.DataFrame:
        return self.container.to_frame()
