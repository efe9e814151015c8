"""Pydantic models for microsim, organized by domain.

- lifecycle.py: lifecycle events, command templates and bridge state
- weights.py: weight entries and categorical adjustment specs
- session.py: CLI session specs
"""

from .lifecycle import (
    BridgeCommands,
    CloseState,
    CommandRecord,
    LifecycleEvent,
    LifecycleSignal,
    LifecycleState,
)
from .weights import AdjustmentSpec, WeightEntry, load_adjustment_specs
from .session import SessionSpec, WeightSpec

__all__ = [
    "BridgeCommands",
    "CloseState",
    "CommandRecord",
    "LifecycleEvent",
    "LifecycleSignal",
    "LifecycleState",
    "AdjustmentSpec",
    "WeightEntry",
    "load_adjustment_specs",
    "SessionSpec",
    "WeightSpec",
]
