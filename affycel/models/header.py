from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Tuple

import numpy as np


class FormatKind(Enum):
    """Physical encoding of a CEL file, as decided by the sniffer."""

    TEXT = "text"
    GZ_TEXT = "gz_text"
    BINARY = "binary"
    GENERIC = "generic"
    GZ_GENERIC = "gz_generic"
    GENERIC_MULTI = "generic_multi"
    GZ_GENERIC_MULTI = "gz_generic_multi"
    UNRECOGNIZED = "unrecognized"

    @property
    def is_gzip(self) -> bool:
        return self in (FormatKind.GZ_TEXT, FormatKind.GZ_GENERIC, FormatKind.GZ_GENERIC_MULTI)

    @property
    def is_text(self) -> bool:
        return self in (FormatKind.TEXT, FormatKind.GZ_TEXT)

    @property
    def is_generic(self) -> bool:
        return self in (
            FormatKind.GENERIC,
            FormatKind.GZ_GENERIC,
            FormatKind.GENERIC_MULTI,
            FormatKind.GZ_GENERIC_MULTI,
        )

    @property
    def is_multichannel(self) -> bool:
        return self in (FormatKind.GENERIC_MULTI, FormatKind.GZ_GENERIC_MULTI)


class ProbeField(Enum):
    """Which per-probe measurement a body read extracts."""

    INTENSITY = "intensity"
    STDDEV = "stddev"
    NPIXELS = "npixels"

    @property
    def text_column(self) -> int:
        """Token position of this field on a text ``[INTENSITY]`` line."""
        return {"intensity": 2, "stddev": 3, "npixels": 4}[self.value]

    @property
    def generic_position(self) -> int:
        """Positional index of the data set holding this field in a generic data group."""
        return {"intensity": 0, "stddev": 1, "npixels": 2}[self.value]


@dataclass(frozen=True)
class ChipGeometry:
    """
    Grid dimensions of an array design.

    Within a batch the geometry of the first file is the reference; every
    other file must match it exactly.
    """
    cols: int
    rows: int

    @property
    def n_cells(self) -> int:
        return int(self.cols) * int(self.rows)


@dataclass(frozen=True)
class DetailedHeader:
    """
    Header information common to every CEL encoding.

    Grid corners are (x, y) pixel coordinates of the scanned grid.
    ``scan_date`` is empty when the file does not record one.
    """
    cdf_name: str
    cols: int
    rows: int
    grid_corner_ul: Tuple[int, int] = (0, 0)
    grid_corner_ur: Tuple[int, int] = (0, 0)
    grid_corner_lr: Tuple[int, int] = (0, 0)
    grid_corner_ll: Tuple[int, int] = (0, 0)
    dat_header: str = ""
    algorithm: str = ""
    algorithm_parameters: str = ""
    scan_date: str = ""

    @property
    def geometry(self) -> ChipGeometry:
        return ChipGeometry(cols=int(self.cols), rows=int(self.rows))


@dataclass(frozen=True)
class MaskOutlierList:
    """Parallel int16 coordinate arrays for masked or outlier cells."""
    x: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int16))
    y: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int16))

    def __post_init__(self) -> None:
        if len(self.x) != len(self.y):
            raise ValueError(f"x/y coordinate lists differ in length: {len(self.x)} != {len(self.y)}")

    def __len__(self) -> int:
        return int(len(self.x))

    @classmethod
    def from_pairs(cls, x, y) -> MaskOutlierList:
        return cls(x=np.asarray(x, dtype=np.int16), y=np.asarray(y, dtype=np.int16))
