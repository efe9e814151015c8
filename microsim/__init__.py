"""Microsim: simulation lifecycle bridge and population reweighting.

Drives an external statistics engine from simulation lifecycle events and
maintains validated per-factor-level weights that the simulation consumes.
"""

__version__ = "0.3.0"

from .config import MicrosimConfig, configure, get_config
from .engine import PandasEngine, StatsEngine
from .simulation import LifecycleBridge, SimulationRunner
from .weights import CategoricalVarAdjustment, SingleVarWeightCalc, create_adjustments

__all__ = [
    "__version__",
    "MicrosimConfig",
    "configure",
    "get_config",
    "PandasEngine",
    "StatsEngine",
    "LifecycleBridge",
    "SimulationRunner",
    "SingleVarWeightCalc",
    "CategoricalVarAdjustment",
    "create_adjustments",
]
