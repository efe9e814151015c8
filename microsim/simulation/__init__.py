"""Simulation lifecycle: listeners, the engine bridge and a minimal runner."""

from .bridge import (
    ITER_REPLACEMENT_STR,
    LifecycleBridge,
    snapshot_key,
    substitute_iteration,
)
from .listener import SimulationHost, SimulationListener
from .runner import SimulationRunner

__all__ = [
    "ITER_REPLACEMENT_STR",
    "LifecycleBridge",
    "snapshot_key",
    "substitute_iteration",
    "SimulationHost",
    "SimulationListener",
    "SimulationRunner",
]
