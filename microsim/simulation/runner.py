"""Minimal host simulation that fires lifecycle events.

The runner owns a population dataframe and dispatches strictly ordered
lifecycle events to its listeners:

    run_started -> (step, iteration_ended) x iterations -> run_stopped

``close()`` delivers the closing event twice, as hosts do at session end.
Each listener handler completes before the next event is dispatched.
"""

import logging
from typing import Callable, Sequence

import pandas as pd

from ..core.models import LifecycleEvent, LifecycleSignal
from ..weights.base import WeightCalculator, combined_weight
from .listener import SimulationListener

logger = logging.getLogger(__name__)

# step(population, iteration) -> new population, or None after mutating in place
StepFunction = Callable[[pd.DataFrame, int], pd.DataFrame | None]

_CLOSE_DELIVERIES = 2


class SimulationRunner:
    """Runs a population through iterations and notifies listeners."""

    def __init__(
        self,
        population: pd.DataFrame,
        iterations: int = 1,
        step: StepFunction | None = None,
        weights: Sequence[WeightCalculator] = (),
    ):
        """Initialize the runner.

        Args:
            population: One row per agent; copied at the start of every run
            iterations: Iterations per run
            step: Optional behaviour applied to the population each iteration
            weights: Weight calculators combined into the snapshot's weight column
        """
        if iterations < 1:
            raise ValueError("iterations must be at least 1")
        self.initial_population = population.copy()
        self.population = population.copy()
        self.iterations = iterations
        self.step = step
        self.weights = list(weights)
        self.listeners: list[SimulationListener] = []
        self.runs_completed = 0
        self.closed = False
        self._iteration = 0

    @property
    def current_iteration(self) -> int:
        return self._iteration

    def add_listener(self, listener: SimulationListener) -> None:
        if listener not in self.listeners:
            self.listeners.append(listener)

    def remove_listener(self, listener: SimulationListener) -> None:
        if listener in self.listeners:
            self.listeners.remove(listener)

    def _fire(self, kind: LifecycleEvent) -> None:
        signal = LifecycleSignal(kind=kind, iteration=self._iteration)
        for listener in list(self.listeners):
            listener.dispatch(signal)

    # ── Execution ──

    def run(self) -> int:
        """Execute one run.

        Returns:
            Number of runs completed so far
        """
        if self.closed:
            raise RuntimeError("Simulation has been closed")

        self.population = self.initial_population.copy()
        self._iteration = 0
        self._fire(LifecycleEvent.RUN_STARTED)

        for iteration in range(1, self.iterations + 1):
            self._iteration = iteration
            if self.step is not None:
                result = self.step(self.population, iteration)
                if result is not None:
                    self.population = result
            self._fire(LifecycleEvent.ITERATION_ENDED)

        self._fire(LifecycleEvent.RUN_STOPPED)
        self.runs_completed += 1
        logger.info(
            "Run %d completed (%d iterations)", self.runs_completed, self.iterations
        )
        return self.runs_completed

    def run_many(self, runs: int) -> int:
        for _ in range(runs):
            self.run()
        return self.runs_completed

    def close(self) -> None:
        """End the session, delivering the closing event twice."""
        if self.closed:
            return
        for _ in range(_CLOSE_DELIVERIES):
            self._fire(LifecycleEvent.CLOSING)
        self.closed = True

    # ── Snapshot ──

    def agent_weight(self, agent: dict) -> float:
        """Combined weight of one agent across the attached calculators."""
        return combined_weight(self.weights, agent)

    def snapshot(self, run_number: int) -> pd.DataFrame:
        """Render the population as a dataframe tagged with run and iteration.

        With weight calculators attached a ``weight`` column holds each
        agent's combined weight: the product of the published level
        proportions (``WeightEntry.fraction``). At the source defaults these
        are the level proportions themselves, not 1, so the column is not a
        reweighting ratio. The ratio against the source distribution is
        ``WeightEntry.ratio``.
        """
        frame = self.population.copy()
        frame["run"] = run_number
        frame["iteration"] = self._iteration
        if self.weights:
            frame["weight"] = [
                self.agent_weight(agent)
                for agent in self.population.to_dict(orient="records")
            ]
        return frame
