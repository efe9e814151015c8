"""Observable parameter sets and the weight calculator abstraction.

A ParameterSet holds user-adjustable values behind a tabular view and
notifies its observers once per validated change. A WeightCalculator is
a ParameterSet that turns an agent's variables into a weight.
"""

import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterable, Mapping

import numpy as np

from ..storage.prefs import PreferenceStore
from ..utils.callbacks import MessageDisplay, ParameterSetObserver
from .table import TableView

logger = logging.getLogger(__name__)

# Starting value when weights of several calculators are multiplied
WEIGHT_BASE = 1.0


class LoggingDisplay:
    """Default message display: logs the message."""

    def show_message(self, message: str) -> None:
        logger.warning(message)


def _slug(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9]+", "_", name).strip("_").lower() or "parameters"


class ParameterSet(ABC):
    """A set of user-adjustable parameters with change notification."""

    def __init__(self, display: MessageDisplay | None = None):
        self.display: MessageDisplay = display or LoggingDisplay()
        self._observers: list[ParameterSetObserver] = []

    # ── Observers ──

    def add_observer(self, observer: ParameterSetObserver) -> None:
        """Register an observer, unless it is already registered."""
        if observer not in self._observers:
            self._observers.append(observer)

    def remove_observer(self, observer: ParameterSetObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def count_observers(self) -> int:
        return len(self._observers)

    def notify_observers(self) -> None:
        for observer in list(self._observers):
            observer(self)

    # ── Parameters ──

    @property
    @abstractmethod
    def name(self) -> str:
        """Display name."""

    @property
    @abstractmethod
    def table(self) -> TableView:
        """Tabular view of the parameters."""

    @abstractmethod
    def update(self) -> bool:
        """Process a change to the parameters and notify observers if valid."""

    @abstractmethod
    def reset_defaults(self) -> None:
        """Restore default parameter values."""

    @abstractmethod
    def load_state(self, prefs: PreferenceStore) -> None:
        """Restore parameter values from a preference store."""

    @abstractmethod
    def save_state(self, prefs: PreferenceStore) -> None:
        """Persist parameter values to a preference store."""

    def save_to_csv(self, directory: Path | str) -> Path:
        """Write the tabular view to ``<directory>/<name>.csv``."""
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{_slug(self.name)}.csv"
        self.table.to_frame().to_csv(path)
        logger.info("Saved %s to %s", self.name, path)
        return path


class WeightCalculator(ParameterSet):
    """A ParameterSet that calculates a weight from an agent's variables."""

    @property
    def weight_base(self) -> float:
        return WEIGHT_BASE

    @abstractmethod
    def get_weight(self, vars: Mapping[str, Any]) -> float:
        """Return the weight for the values in ``vars``."""

    @abstractmethod
    def get_level_weight(self, vars: Mapping[str, Any]) -> float:
        """Return the weight of the factor level ``vars`` falls in."""

    @abstractmethod
    def get_all_level_props(self) -> np.ndarray:
        """Return the weighted proportion of every factor level."""


def combined_weight(
    calculators: Iterable[WeightCalculator], vars: Mapping[str, Any]
) -> float:
    """Multiply the weights of several calculators for one agent."""
    weight = WEIGHT_BASE
    for calculator in calculators:
        weight *= calculator.get_weight(vars)
    return weight
