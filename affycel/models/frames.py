from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import numpy as np
import pandas as pd

from affycel.models.header import ChipGeometry, DetailedHeader, FormatKind, MaskOutlierList, ProbeField


@dataclass(frozen=True)
class ProbeRead:
    """
    Result of reading one probe field from one file.

    Notes
    - ``values`` is the (possibly caller-owned) float64 array that was filled.
    - A text body that ends early is not an error: ``n_read < n_expected`` and
      the reason is recorded in ``warnings``. Cells never reached keep the
      value they had before the read.
    """
    source_path: Path
    field: ProbeField
    values: np.ndarray
    n_read: int
    n_expected: int
    warnings: Tuple[str, ...] = ()

    @property
    def is_short(self) -> bool:
        return self.n_read < self.n_expected

    def raise_if_short(self) -> None:
        from affycel.ingest.errors import ShortBodyRead

        if self.is_short:
            raise ShortBodyRead(
                "fewer probe records than declared",
                path=self.source_path,
                expected=self.n_expected,
                actual=self.n_read,
                n_read=self.n_read,
            )


@dataclass(frozen=True)
class CelFile:
    """
    In-memory representation of the full contents of one CEL file.

    Arrays are indexed by the linear probe index ``x + rows * y``.
    """
    source_path: Path
    kind: FormatKind
    header: DetailedHeader
    intensities: np.ndarray
    stddev: np.ndarray
    npixels: np.ndarray
    masks: MaskOutlierList
    outliers: MaskOutlierList
    channel: int = 0
    warnings: Tuple[str, ...] = ()

    @property
    def geometry(self) -> ChipGeometry:
        return self.header.geometry

    def to_frame(self) -> pd.DataFrame:
        """One row per probe, with its (x, y) coordinate and the three measurements."""
        rows = int(self.header.rows)
        idx = np.arange(len(self.intensities), dtype=np.int64)
        return pd.DataFrame(
            {
                "x": idx % rows,
                "y": idx // rows,
                "intensity": self.intensities,
                "stddev": self.stddev,
                "npixels": self.npixels,
            }
        )


@dataclass(frozen=True)
class CelBatch:
    """
    One probe field for a batch of files, one column per file.

    ``n_read`` holds the number of body records read per file; a value below
    ``geometry.n_cells`` marks a short text body.
    """
    cdf_name: str
    geometry: ChipGeometry
    field: ProbeField
    values: np.ndarray
    file_names: Tuple[str, ...]
    n_read: Tuple[int, ...]
    warnings: Tuple[str, ...] = ()
    channel: Optional[int] = None

    @property
    def n_files(self) -> int:
        return len(self.file_names)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.values, columns=list(self.file_names))
