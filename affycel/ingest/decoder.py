from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple
import logging

import numpy as np

from affycel.ingest.errors import ChannelOutOfRange, DimensionMismatch, UnsupportedCompression
from affycel.ingest.masks import apply_mask_outlier_lists
from affycel.models.header import ChipGeometry, DetailedHeader, FormatKind, MaskOutlierList, ProbeField
from affycel.models.frames import ProbeRead

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CelReaderConfig:
    """
    Options shared by every CEL decoder.

    allow_gzip:
      - True: gzip-compressed text and generic files are decompressed on the fly.
      - False: compressed files raise UnsupportedCompression.
    strict_text_body:
      - False: a text ``[INTENSITY]`` section with fewer records than declared is
        reported through ``ProbeRead.n_read`` and a warning.
      - True: the same condition raises ShortBodyRead.
    """
    allow_gzip: bool = True
    strict_text_body: bool = False


class CelDecoder:
    """
    Common interface of the per-encoding CEL decoders.

    A decoder is bound to one path and one sniffed encoding. Each call opens
    the file, reads what it needs and closes it again, so a decoder holds no
    open handle between calls.

    Subclasses implement ``read_header``, ``_read_values`` and
    ``_read_coordinates``; the rest is shared.
    """

    def __init__(self, path: str | Path, kind: FormatKind, config: Optional[CelReaderConfig] = None):
        self.path = Path(path).expanduser().resolve()
        self.kind = kind
        self.config = config or CelReaderConfig()
        if kind.is_gzip and not self.config.allow_gzip:
            raise UnsupportedCompression("gzip input disabled by configuration", path=self.path)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self.path)!r}, kind={self.kind.name})"

    # --- header --------------------------------------------------------------

    def read_header(self) -> DetailedHeader:
        raise NotImplementedError

    def read_header_summary(self) -> Tuple[str, ChipGeometry]:
        """Chip name and grid geometry only."""
        h = self.read_header()
        return h.cdf_name, h.geometry

    # --- channels ------------------------------------------------------------

    def channel_count(self) -> int:
        return 1

    def channel_name(self, channel: int = 0) -> str:
        self._check_channel(channel, self.channel_count())
        return ""

    def _check_channel(self, channel: int, n_channels: int) -> None:
        if not 0 <= int(channel) < n_channels:
            raise ChannelOutOfRange(
                "channel out of range",
                path=self.path,
                expected=f"0 <= channel < {n_channels}",
                actual=int(channel),
            )

    # --- body ----------------------------------------------------------------

    def read_values(
        self,
        field: ProbeField = ProbeField.INTENSITY,
        *,
        chip_rows: Optional[int] = None,
        out: Optional[np.ndarray] = None,
    ) -> ProbeRead:
        """
        Read one probe field into a float64 array indexed by ``x + chip_rows * y``.

        ``out`` may be a caller-owned float64 array (for example one column of a
        batch matrix); it must hold at least ``cols * rows`` cells. When omitted
        a fresh array filled with NaN is allocated.
        """
        h = self.read_header()
        n_cells = h.geometry.n_cells
        rows = int(h.rows if chip_rows is None else chip_rows)
        if out is None:
            out = np.full((n_cells,), np.nan, dtype=np.float64)
        elif out.size < n_cells:
            raise DimensionMismatch(
                "output array smaller than the chip",
                path=self.path,
                expected=n_cells,
                actual=int(out.size),
            )

        warnings: List[str] = []
        n_read = self._read_values(field, out, rows, h, warnings)
        pr = ProbeRead(
            source_path=self.path,
            field=field,
            values=out,
            n_read=int(n_read),
            n_expected=int(n_cells),
            warnings=tuple(warnings),
        )
        if pr.is_short:
            log.warning("%s: read %d of %d probe records", self.path.name, pr.n_read, pr.n_expected)
            if self.config.strict_text_body:
                pr.raise_if_short()
        return pr

    def _read_values(
        self,
        field: ProbeField,
        out: np.ndarray,
        chip_rows: int,
        header: DetailedHeader,
        warnings: List[str],
    ) -> int:
        raise NotImplementedError

    # --- masks / outliers ----------------------------------------------------

    def read_mask_outliers(self) -> Tuple[MaskOutlierList, MaskOutlierList]:
        masks, outliers = self._read_coordinates(want_masks=True, want_outliers=True)
        return masks, outliers

    def apply_masks(
        self,
        values: np.ndarray,
        *,
        chip_rows: Optional[int] = None,
        apply_mask: bool = True,
        apply_outlier: bool = True,
    ) -> np.ndarray:
        """
        Mark masked cells NaN and outlier cells NA in ``values`` (in place).

        Applying the same lists twice leaves the array unchanged.
        """
        if not (apply_mask or apply_outlier):
            return values
        if chip_rows is None:
            chip_rows = self.read_header().rows
        masks, outliers = self._read_coordinates(want_masks=apply_mask, want_outliers=apply_outlier)
        apply_mask_outlier_lists(
            values,
            masks if apply_mask else None,
            outliers if apply_outlier else None,
            int(chip_rows),
            path=self.path,
        )
        return values

    def _read_coordinates(
        self, *, want_masks: bool, want_outliers: bool
    ) -> Tuple[Optional[MaskOutlierList], Optional[MaskOutlierList]]:
        raise NotImplementedError
