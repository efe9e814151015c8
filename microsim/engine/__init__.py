"""Statistics engine interface, in-process implementation and tabular containers."""

from .base import RUN_NUMBER_VAR, StatsEngine
from .pandas_engine import PandasEngine, prop_table, table
from .tabular import (
    ColumnKind,
    TabularContainer,
    infer_kind,
    is_missing,
    missing_sentinel,
    narrow_bytes,
    scale,
    widen_bytes,
)

__all__ = [
    "RUN_NUMBER_VAR",
    "StatsEngine",
    "PandasEngine",
    "prop_table",
    "table",
    "ColumnKind",
    "TabularContainer",
    "infer_kind",
    "is_missing",
    "missing_sentinel",
    "narrow_bytes",
    "scale",
    "widen_bytes",
]
