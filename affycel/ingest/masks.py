"""Probe coordinate mapping and the missing-value conventions for masked cells.

Every backend places a probe at ``(x, y)`` into linear index
``x + chip_rows * y``; both the body readers and the mask application
below go through :func:`linear_index` so the two paths always agree.

Masked cells become an ordinary NaN. Outlier cells become ``NA_REAL``, a
NaN whose low word carries the payload 1954, so downstream code can tell
"masked" from "outlier" with :func:`is_na`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import numpy as np

from affycel.ingest.errors import DimensionMismatch
from affycel.models.header import MaskOutlierList

_NA_BITS = np.uint64(0x7FF80000000007A2)
NA_REAL = np.array([_NA_BITS], dtype=np.uint64).view(np.float64)[0]


def is_na(values: np.ndarray) -> np.ndarray:
    """Elementwise: True where a value is the NA sentinel (not a plain NaN)."""
    arr = np.ascontiguousarray(np.asarray(values, dtype=np.float64))
    bits = arr.view(np.uint64)
    return np.isnan(arr) & ((bits & np.uint64(0xFFFFFFFF)) == np.uint64(1954))


def linear_index(x, y, chip_rows: int) -> np.ndarray:
    return np.asarray(x, dtype=np.int64) + int(chip_rows) * np.asarray(y, dtype=np.int64)


def place_values(
    out: np.ndarray,
    x,
    y,
    values,
    chip_rows: int,
    *,
    path: Optional[Path] = None,
) -> None:
    """Write ``values`` at the linear indices of ``(x, y)``; out-of-range cells are a dimension error."""
    idx = linear_index(x, y, chip_rows)
    if idx.size == 0:
        return
    lo, hi = int(idx.min()), int(idx.max())
    if lo < 0 or hi >= out.size:
        raise DimensionMismatch(
            "probe coordinate outside the output array",
            path=path,
            expected=f"index < {out.size}",
            actual=hi if hi >= out.size else lo,
        )
    out[idx] = values


def mark_cells(
    out: np.ndarray,
    cells: Optional[MaskOutlierList],
    fill: float,
    chip_rows: int,
    *,
    path: Optional[Path] = None,
) -> int:
    """Set the listed cells to ``fill``; returns how many cells were marked."""
    if cells is None or len(cells) == 0:
        return 0
    place_values(out, cells.x, cells.y, fill, chip_rows, path=path)
    return len(cells)


def apply_mask_outlier_lists(
    out: np.ndarray,
    masks: Optional[MaskOutlierList],
    outliers: Optional[MaskOutlierList],
    chip_rows: int,
    *,
    path: Optional[Path] = None,
) -> None:
    """Masks first (NaN), then outliers (NA); a cell in both lists ends up NA."""
    mark_cells(out, masks, np.nan, chip_rows, path=path)
    mark_cells(out, outliers, NA_REAL, chip_rows, path=path)
