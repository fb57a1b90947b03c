"""
Data type definitions for per-region signal matrices.

A SignalMatrix holds one row per genomic region and one column per
position along the aligned interval. Rows are reordered in place by the
clustering code; every per-row array is permuted together so the row
handles, value vectors, labels and names always agree.
"""

from dataclasses import dataclass, field
from typing import Optional, List, Sequence, Dict, Tuple, Any
import numpy as np
import pandas as pd

from sigcluster.exceptions import PreconditionViolation

# Label carried by rows that contain missing values
MISSING_LABEL = -1


def is_missing(values) -> np.ndarray:
    """Element-wise missing-value predicate (NaN or infinite)."""
    return ~np.isfinite(values)


@dataclass(eq=False)
class Row:
    """Handle onto the ``index``-th row of a SignalMatrix.

    Handles are positional: after the matrix is permuted, the handle at
    position i refers to whatever row now sits at position i.
    """
    matrix: 'SignalMatrix'
    index: int

    @property
    def values(self) -> np.ndarray:
        return self.matrix.values[self.index]

    @property
    def label(self) -> int:
        return int(self.matrix.labels[self.index])

    @label.setter
    def label(self, value: int):
        self.matrix.labels[self.index] = value

    @property
    def name(self) -> Optional[str]:
        if self.matrix.names is None:
            return None
        return self.matrix.names[self.index]

    @property
    def has_missing(self) -> bool:
        return bool(is_missing(self.values).any())


@dataclass
class SignalMatrix:
    """
    Dense matrix of per-region signal profiles.

    ``values`` is used without copying when it already is a float64
    ndarray, so the caller's array observes every reordering. Read-only
    arrays (for example views handed out by pandas) are rejected with
    PreconditionViolation.
    """
    values: np.ndarray  # Shape: (n_rows, n_cols)
    labels: Optional[np.ndarray] = None  # Shape: (n_rows,)
    names: Optional[np.ndarray] = None  # Region names, e.g. "chr1:100-200"
    source_index: np.ndarray = field(default=None)  # Input position of each row
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.values = np.asarray(self.values, dtype=np.float64)
        if self.values.ndim != 2:
            raise PreconditionViolation(
                f"Signal matrix must be 2-D, got {self.values.ndim} dimension(s)"
            )

        n_rows = self.values.shape[0]

        if self.labels is None:
            self.labels = np.zeros(n_rows, dtype=np.int64)
        else:
            self.labels = np.asarray(self.labels, dtype=np.int64)
        if self.names is not None:
            self.names = np.asarray(self.names, dtype=object)
        if self.source_index is None:
            self.source_index = np.arange(n_rows)
        else:
            self.source_index = np.asarray(self.source_index, dtype=np.int64)

        for attr in ('labels', 'names', 'source_index'):
            array = getattr(self, attr)
            if array is not None and array.shape != (n_rows,):
                raise PreconditionViolation(
                    f"{attr} has shape {array.shape}, expected ({n_rows},)"
                )

        # Rows are reordered in place, so every per-row array must be writeable
        for attr in ('values', 'labels', 'names', 'source_index'):
            array = getattr(self, attr)
            if array is not None and not array.flags.writeable:
                raise PreconditionViolation(
                    f"{attr} is read-only; pass a writeable copy (e.g. array.copy())"
                )

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[float]],
                  names: Optional[Sequence[str]] = None) -> 'SignalMatrix':
        """Build a matrix from a list of equal-length rows."""
        if len(rows) == 0:
            return cls(np.empty((0, 0)), names=names)
        return cls(np.array(rows, dtype=np.float64), names=names)

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame,
                       label_column: Optional[str] = None) -> 'SignalMatrix':
        """Build a matrix from a DataFrame indexed by region name.

        Values and labels are copied out of the frame, so reordering the
        matrix never touches ``df``.

        Args:
            df: One row per region, one numeric column per position
            label_column: Optional column holding existing labels
        """
        labels = None
        if label_column is not None:
            labels = df[label_column].to_numpy(dtype=np.int64, copy=True)
            df = df.drop(columns=[label_column])
        return cls(
            df.to_numpy(dtype=np.float64, copy=True),
            labels=labels,
            names=np.array(df.index.astype(str), dtype=object),
            metadata={'columns': list(df.columns)}
        )

    @property
    def n_rows(self) -> int:
        return self.values.shape[0]

    @property
    def n_cols(self) -> int:
        return self.values.shape[1]

    @property
    def rows(self) -> List[Row]:
        """Row handles in current order."""
        return [Row(self, i) for i in range(self.n_rows)]

    @property
    def vectors(self) -> List[np.ndarray]:
        """Value-vector views in current order; vectors[i] is rows[i].values."""
        return list(self.values)

    def row(self, index: int) -> Row:
        if not -self.n_rows <= index < self.n_rows:
            raise IndexError(f"row {index} out of range for {self.n_rows} rows")
        return Row(self, index % self.n_rows)

    def missing_mask(self) -> np.ndarray:
        """Boolean mask of rows containing at least one missing value."""
        return is_missing(self.values).any(axis=1)

    def permute(self, order: np.ndarray):
        """Reorder all rows in place so that new row i is old row order[i]."""
        order = np.asarray(order, dtype=np.intp)
        if order.shape != (self.n_rows,):
            raise ValueError(f"order has shape {order.shape}, expected ({self.n_rows},)")

        self.values[...] = self.values[order]
        self.labels[...] = self.labels[order]
        self.source_index[...] = self.source_index[order]
        if self.names is not None:
            self.names[...] = self.names[order]

    def cluster_ranges(self) -> Dict[int, Tuple[int, int]]:
        """Half-open row range of each label, assuming rows are grouped by label."""
        ranges: Dict[int, Tuple[int, int]] = {}
        if self.n_rows == 0:
            return ranges

        boundaries = np.flatnonzero(np.diff(self.labels)) + 1
        starts = np.concatenate(([0], boundaries))
        stops = np.concatenate((boundaries, [self.n_rows]))
        for start, stop in zip(starts, stops):
            label = int(self.labels[start])
            if label in ranges:
                raise ValueError(f"rows with label {label} are not contiguous")
            ranges[label] = (int(start), int(stop))
        return ranges

    def to_dataframe(self) -> pd.DataFrame:
        """Export rows in current order with a ``label`` column."""
        columns = self.metadata.get('columns')
        if columns is None or len(columns) != self.n_cols:
            columns = list(range(self.n_cols))
        index = self.names if self.names is not None else self.source_index
        df = pd.DataFrame(self.values, columns=columns, index=pd.Index(index, name='region'))
        df['label'] = self.labels
        df['source_index'] = self.source_index
        return df
