"""Listener and host interfaces for simulation lifecycle events."""

from typing import Protocol

import pandas as pd

from ..core.models import LifecycleEvent, LifecycleSignal


class SimulationHost(Protocol):
    """What a listener may ask of the simulation that fires events."""

    @property
    def current_iteration(self) -> int: ...

    def snapshot(self, run_number: int) -> pd.DataFrame:
        """Render the current population as a dataframe tagged with ``run_number``."""
        ...


class SimulationListener:
    """Base listener with no-op handlers for every lifecycle event."""

    name = "listener"

    def run_started(self, signal: LifecycleSignal) -> None:
        pass

    def iteration_ended(self, signal: LifecycleSignal) -> None:
        pass

    def run_stopped(self, signal: LifecycleSignal) -> None:
        pass

    def closing(self, signal: LifecycleSignal) -> None:
        pass

    def dispatch(self, signal: LifecycleSignal) -> None:
        """Route a signal to its handler."""
        if signal.kind is LifecycleEvent.RUN_STARTED:
            self.run_started(signal)
        elif signal.kind is LifecycleEvent.ITERATION_ENDED:
            self.iteration_ended(signal)
        elif signal.kind is LifecycleEvent.RUN_STOPPED:
            self.run_stopped(signal)
        elif signal.kind is LifecycleEvent.CLOSING:
            self.closing(signal)
        else:
            raise ValueError(f"Unhandled lifecycle event: {signal.kind!r}")
