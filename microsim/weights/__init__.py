"""Weighting strategies: single-variable weights and categorical adjustments."""

from .base import (
    WEIGHT_BASE,
    LoggingDisplay,
    ParameterSet,
    WeightCalculator,
    combined_weight,
)
from .categorical import (
    CategoricalVarAdjustment,
    build_adjustments,
    create_adjustments,
)
from .single_var import SingleVarWeightCalc, get_factor_levels_with_prop, level_key
from .table import AdjustmentTable, TableView, WeightTable

__all__ = [
    "WEIGHT_BASE",
    "LoggingDisplay",
    "ParameterSet",
    "WeightCalculator",
    "combined_weight",
    "CategoricalVarAdjustment",
    "build_adjustments",
    "create_adjustments",
    "SingleVarWeightCalc",
    "get_factor_levels_with_prop",
    "level_key",
    "AdjustmentTable",
    "TableView",
    "WeightTable",
]
