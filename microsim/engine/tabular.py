"""Tabular containers built from engine results.

A TabularContainer is a named, owned copy of a dataframe together with the
declared kind of every column. The kind decides which missing-value
sentinel a column takes and how scaling treats its cells.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd
from pandas.api import types as ptypes

from ..core.errors import ResultShapeError

logger = logging.getLogger(__name__)

_INT_MISSING = -2147483648
_BYTE_MISSING = -128
_BYTE_MIN = -127
_BYTE_MAX = 127


class ColumnKind(str, Enum):
    """Declared type of a tabular column."""

    FLOAT = "float"
    INT = "int"
    BYTE = "byte"
    LABEL = "label"

    @property
    def sentinel(self) -> Any:
        """The missing-value sentinel for this kind."""
        if self is ColumnKind.FLOAT:
            return float("nan")
        if self is ColumnKind.INT:
            return _INT_MISSING
        if self is ColumnKind.BYTE:
            return _BYTE_MISSING
        if self is ColumnKind.LABEL:
            return None
        raise ValueError(f"Unhandled column kind: {self!r}")

    @property
    def dtype(self) -> Any:
        if self is ColumnKind.FLOAT:
            return np.float64
        if self is ColumnKind.INT:
            return np.int64
        if self is ColumnKind.BYTE:
            return np.int8
        if self is ColumnKind.LABEL:
            return object
        raise ValueError(f"Unhandled column kind: {self!r}")

    @property
    def is_numeric(self) -> bool:
        return self is not ColumnKind.LABEL


def missing_sentinel(kind: ColumnKind) -> Any:
    """Return the missing-value sentinel for a column kind."""
    return kind.sentinel


def is_missing(kind: ColumnKind, value: Any) -> bool:
    """Check whether ``value`` is the missing sentinel for ``kind``."""
    if kind is ColumnKind.FLOAT:
        return value is None or bool(np.isnan(value))
    if kind is ColumnKind.LABEL:
        return value is None
    return int(value) == kind.sentinel


def infer_kind(column: pd.Series) -> ColumnKind:
    """Infer the declared kind of a column from its dtype.

    Raises:
        ResultShapeError: If the dtype has no corresponding kind
    """
    dtype = column.dtype
    if ptypes.is_bool_dtype(dtype):
        raise ResultShapeError(f"Unsupported column type {dtype} for '{column.name}'")
    if ptypes.is_float_dtype(dtype):
        return ColumnKind.FLOAT
    if ptypes.is_integer_dtype(dtype):
        if dtype == np.int8:
            return ColumnKind.BYTE
        return ColumnKind.INT
    if (
        ptypes.is_object_dtype(dtype)
        or ptypes.is_string_dtype(dtype)
        or isinstance(dtype, pd.CategoricalDtype)
    ):
        return ColumnKind.LABEL
    raise ResultShapeError(f"Unsupported column type {dtype} for '{column.name}'")


class TabularContainer:
    """Named tabular data with a declared kind per column.

    The container remembers the form the data came from (a dataframe, a
    2-D array or a series) and the original column dtypes, so that
    ``to_source`` can hand the engine back a value of the same shape.
    """

    def __init__(
        self,
        name: str,
        frame: pd.DataFrame,
        kinds: dict[Any, ColumnKind] | None = None,
        source_form: str = "frame",
        source_dtypes: dict[Any, Any] | None = None,
        source_kinds: dict[Any, ColumnKind] | None = None,
        source_name: Any = None,
    ):
        self.name = name
        if kinds is None:
            kinds = {col: infer_kind(frame[col]) for col in frame.columns}
        missing = [col for col in frame.columns if col not in kinds]
        if missing:
            raise ResultShapeError(f"No declared kind for columns {missing}")
        self.kinds = {col: kinds[col] for col in frame.columns}

        self.source_form = source_form
        self.source_dtypes = source_dtypes or frame.dtypes.to_dict()
        self.source_kinds = source_kinds or dict(self.kinds)
        self.source_name = source_name

        self.frame = frame.astype(
            {col: kind.dtype for col, kind in self.kinds.items()}
        )

    @classmethod
    def from_result(cls, result: Any, name: str) -> "TabularContainer":
        """Build a container from an evaluated engine result.

        Accepts a dataframe, a 2-D numpy array or a series (one column).

        Raises:
            ResultShapeError: If the result is not tabular
        """
        if isinstance(result, pd.DataFrame):
            return cls(name, result.copy())
        if isinstance(result, np.ndarray) and result.ndim == 2:
            frame = pd.DataFrame(
                result, columns=[str(i) for i in range(result.shape[1])]
            )
            return cls(name, frame, source_form="array")
        if isinstance(result, pd.Series):
            return cls(
                name,
                result.to_frame(name=result.name or name),
                source_form="series",
                source_name=result.name,
            )
        raise ResultShapeError(
            f"Cannot build tabular data from '{name}' of type {type(result).__name__}"
        )

    def derive(
        self, frame: pd.DataFrame, kinds: dict[Any, ColumnKind] | None = None
    ) -> "TabularContainer":
        """Return a new container for ``frame`` with this container's source."""
        return TabularContainer(
            self.name,
            frame,
            kinds or self.kinds,
            source_form=self.source_form,
            source_dtypes=self.source_dtypes,
            source_kinds=self.source_kinds,
            source_name=self.source_name,
        )

    @property
    def columns(self) -> list[Any]:
        return list(self.frame.columns)

    @property
    def rows(self) -> list[Any]:
        return list(self.frame.index)

    def __len__(self) -> int:
        return len(self.frame)

    def copy(self) -> "TabularContainer":
        return self.derive(self.frame.copy())

    def get_value(self, row: Any, column: Any) -> Any:
        return self.frame.at[row, column]

    def set_value(self, row: Any, column: Any, value: Any) -> None:
        """Set one cell, coercing ``value`` to the column's declared kind."""
        kind = self.kinds[column]
        if kind is ColumnKind.FLOAT:
            coerced: Any = float(value)
        elif kind is ColumnKind.INT:
            coerced = int(round(float(value)))
        elif kind is ColumnKind.BYTE:
            coerced = int(round(float(value)))
            if coerced != _BYTE_MISSING and not _BYTE_MIN <= coerced <= _BYTE_MAX:
                raise ValueError(f"Value {value} out of range for byte column '{column}'")
        elif kind is ColumnKind.LABEL:
            coerced = None if value is None else str(value)
        else:
            raise ValueError(f"Unhandled column kind: {kind!r}")
        self.frame.at[row, column] = coerced

    def reset_to_missing(self) -> None:
        """Replace every adjustable cell with its column kind's missing sentinel."""
        n = len(self.frame)
        for col, kind in self.kinds.items():
            if kind is ColumnKind.LABEL:
                # labels identify rows, they are not adjustable
                continue
            if kind in (ColumnKind.FLOAT, ColumnKind.INT, ColumnKind.BYTE):
                self.frame[col] = np.full(n, kind.sentinel, dtype=kind.dtype)
            else:
                raise ValueError(f"Unhandled column kind: {kind!r}")

    def to_frame(self) -> pd.DataFrame:
        """Return a copy of the underlying dataframe."""
        return self.frame.copy()

    def to_source(self) -> Any:
        """Rebuild the value in the form and dtypes it was read from.

        Widened byte columns are narrowed back to bytes first.

        Raises:
            ValueError: If a widened byte cell no longer fits in a byte
        """
        frame = narrow_bytes(self).frame
        for col in frame.columns:
            frame[col] = _restore_dtype(frame[col], self.source_dtypes.get(col))

        if self.source_form == "array":
            return frame.to_numpy()
        if self.source_form == "series":
            return frame.iloc[:, 0].rename(self.source_name)
        return frame

    def to_csv(self, path: Path | str) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.frame.to_csv(path)
        return path


def _restore_dtype(values: pd.Series, dtype: Any) -> pd.Series:
    if dtype is None or values.dtype == dtype:
        return values
    if ptypes.is_integer_dtype(dtype) and len(values):
        # keep the wider type when a sentinel does not fit the original
        info = np.iinfo(dtype)
        if values.min() < info.min or values.max() > info.max:
            return values
    return values.astype(dtype)


def widen_bytes(container: TabularContainer) -> TabularContainer:
    """Return a container with byte columns held as floats.

    The byte missing sentinel becomes NaN. Use before scaling a byte matrix
    for display, where scaled values leave the byte range.
    """
    frame = container.frame.copy()
    kinds = dict(container.kinds)
    for col, kind in container.kinds.items():
        if kind is ColumnKind.BYTE:
            values = frame[col].to_numpy(dtype=np.float64)
            values[values == _BYTE_MISSING] = np.nan
            frame[col] = values
            kinds[col] = ColumnKind.FLOAT
    return container.derive(frame, kinds)


def narrow_bytes(container: TabularContainer) -> TabularContainer:
    """Undo ``widen_bytes``: round widened columns back to bytes.

    Raises:
        ValueError: If a present cell does not fit in a byte
    """
    frame = container.frame.copy()
    kinds = dict(container.kinds)
    for col, kind in container.kinds.items():
        if container.source_kinds.get(col) is not ColumnKind.BYTE:
            continue
        if kind is not ColumnKind.FLOAT:
            continue
        values = np.rint(frame[col].to_numpy(dtype=np.float64))
        missing = np.isnan(values)
        present = values[~missing]
        if ((present < _BYTE_MIN) | (present > _BYTE_MAX)).any():
            raise ValueError(f"Column '{col}' of '{container.name}' leaves the byte range")
        values[missing] = _BYTE_MISSING
        frame[col] = values.astype(np.int8)
        kinds[col] = ColumnKind.BYTE
    return container.derive(frame, kinds)


def scale(container: TabularContainer, factor: float) -> TabularContainer:
    """Return a new container with every numeric cell multiplied by ``factor``.

    Integer and byte cells are rounded back to integers after scaling.
    Missing sentinels are carried over unscaled. Label columns are copied.

    Raises:
        ValueError: If factor is zero or a byte cell leaves the byte range
    """
    if factor == 0:
        raise ValueError("Scale factor must be non-zero")

    frame = container.frame.copy()
    for col, kind in container.kinds.items():
        if kind is ColumnKind.FLOAT:
            frame[col] = frame[col] * factor
        elif kind in (ColumnKind.INT, ColumnKind.BYTE):
            values = frame[col].to_numpy(dtype=np.int64)
            missing = values == kind.sentinel
            scaled = np.rint(values.astype(np.float64) * factor)
            if kind is ColumnKind.BYTE:
                present = scaled[~missing]
                if ((present < _BYTE_MIN) | (present > _BYTE_MAX)).any():
                    raise ValueError(
                        f"Scaling byte column '{col}' by {factor} leaves the byte range"
                    )
            scaled[missing] = kind.sentinel
            frame[col] = scaled.astype(kind.dtype)
        elif kind is ColumnKind.LABEL:
            continue
        else:
            raise ValueError(f"Unhandled column kind: {kind!r}")

    logger.debug("Scaled '%s' by %s", container.name, factor)
    return container.derive(frame)
