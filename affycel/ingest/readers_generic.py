from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Optional, Tuple

import numpy as np

from affycel.ingest.compression import open_gzip
from affycel.ingest.decoder import CelDecoder, CelReaderConfig
from affycel.ingest.errors import ChannelOutOfRange, DimensionMismatch, NotACelFile
from affycel.ingest.generic_container import GenericContainer
from affycel.ingest.tokens import extract_scan_date
from affycel.models.generic import DataHeader, NameValueType
from affycel.models.header import ChipGeometry, DetailedHeader, FormatKind, MaskOutlierList, ProbeField

# Positions of the data sets within a channel's data group.
OUTLIER_POSITION = 3
MASK_POSITION = 4

INTENSITY_SET_NAME = "Intensity"

_PARAM_PREFIX = "affymetrix-algorithm-param-"


class GenericCelDecoder(CelDecoder):
    """
    Decoder for generic (Calvin) CEL files, single or multi-channel, plain or gzip.

    Each data group holding an ``Intensity`` data set is one channel; the
    decoder reads the group at position ``channel``.
    """

    def __init__(
        self,
        path: str | Path,
        kind: FormatKind,
        config: Optional[CelReaderConfig] = None,
        channel: int = 0,
    ):
        super().__init__(path, kind, config)
        self.channel = int(channel)

    @contextmanager
    def _container(self) -> Iterator[GenericContainer]:
        fh = open_gzip(self.path, "rb") if self.kind.is_gzip else open(self.path, "rb")
        with fh:
            yield GenericContainer(fh, self.path)

    # --- channels ------------------------------------------------------------

    def channel_count(self) -> int:
        n = 0
        with self._container() as c:
            for group in c.iter_groups():
                if c.find_data_set(group, INTENSITY_SET_NAME) is not None:
                    n += 1
        return n

    def channel_name(self, channel: Optional[int] = None) -> str:
        index = self.channel if channel is None else int(channel)
        self._check_channel(index, self.channel_count())
        with self._container() as c:
            return c.group_at(index).name

    # --- header --------------------------------------------------------------

    def _decode(self, nvt: NameValueType) -> Any:
        try:
            return nvt.value
        except ValueError as e:
            raise NotACelFile(
                f"parameter '{nvt.name}' cannot be decoded ({e})", path=self.path, actual=nvt.mime_type
            ) from e

    def _value(self, dh: DataHeader, name: str, default: Any = None, recursive: bool = False) -> Any:
        nvt = dh.find(name, recursive=recursive)
        return default if nvt is None else self._decode(nvt)

    def _int(self, dh: DataHeader, name: str, default: Any = None) -> Optional[int]:
        v = self._value(dh, name, default)
        if v is None:
            return None
        try:
            return int(v)
        except (TypeError, ValueError, OverflowError) as e:
            raise NotACelFile(f"parameter '{name}' is not a number", path=self.path, actual=v) from e

    def _geometry(self, dh: DataHeader) -> ChipGeometry:
        cols = self._int(dh, "affymetrix-cel-cols")
        rows = self._int(dh, "affymetrix-cel-rows")
        if cols is None or rows is None:
            raise NotACelFile("generic file does not declare affymetrix-cel-cols/rows", path=self.path)
        return ChipGeometry(cols=cols, rows=rows)

    def read_header_summary(self) -> Tuple[str, ChipGeometry]:
        with self._container() as c:
            dh = c.data_header
        return str(self._value(dh, "affymetrix-array-type", "")), self._geometry(dh)

    def read_header(self) -> DetailedHeader:
        with self._container() as c:
            dh = c.data_header
        geom = self._geometry(dh)

        params = "".join(
            f"{nvt.name[len(_PARAM_PREFIX):]}:{self._decode(nvt)};" for nvt in dh.with_prefix(_PARAM_PREFIX)
        )

        def corner(tag: str) -> Tuple[int, int]:
            x = self._int(dh, f"{_PARAM_PREFIX}Grid{tag}X", 0)
            y = self._int(dh, f"{_PARAM_PREFIX}Grid{tag}Y", 0)
            return x, y

        dat_header = self._value(dh, "affymetrix-dat-header")
        if dat_header is None:
            dat_header = self._value(dh, "affymetrix-partial-dat-header", "", recursive=True)
        scan_date = self._value(dh, "affymetrix-scan-date", "", recursive=True) or extract_scan_date(dat_header)

        return DetailedHeader(
            cdf_name=str(self._value(dh, "affymetrix-array-type", "")),
            cols=geom.cols,
            rows=geom.rows,
            grid_corner_ul=corner("UL"),
            grid_corner_ur=corner("UR"),
            grid_corner_lr=corner("LR"),
            grid_corner_ll=corner("LL"),
            dat_header=str(dat_header),
            algorithm=str(self._value(dh, "affymetrix-algorithm-name", "")),
            algorithm_parameters=params,
            scan_date=str(scan_date),
        )

    # --- body ----------------------------------------------------------------

    def _channel_group(self, c: GenericContainer):
        try:
            return c.group_at(self.channel)
        except ChannelOutOfRange as e:
            raise ChannelOutOfRange(
                "channel out of range", path=self.path, expected=e.expected, actual=self.channel
            ) from None

    def _read_values(
        self,
        field: ProbeField,
        out: np.ndarray,
        chip_rows: int,
        header: DetailedHeader,
        warnings: List[str],
    ) -> int:
        n_cells = header.geometry.n_cells
        with self._container() as c:
            group = self._channel_group(c)
            ds = c.data_set_at(group, field.generic_position)
            if int(ds.n_rows) != n_cells:
                raise DimensionMismatch(
                    f"data set '{ds.name}' row count disagrees with cols*rows",
                    path=self.path,
                    expected=n_cells,
                    actual=int(ds.n_rows),
                )
            col = c.read_column(ds, 0)
        # Rows are copied in stored order.
        out[:n_cells] = col.astype(np.float64)
        return n_cells

    def _read_pairs(self, c: GenericContainer, group, position: int) -> MaskOutlierList:
        ds = c.data_set_at(group, position)
        if int(ds.n_rows) == 0:
            return MaskOutlierList()
        rows = c.read_rows(ds)
        return MaskOutlierList.from_pairs(rows["c0"], rows["c1"])

    def _read_coordinates(
        self, *, want_masks: bool, want_outliers: bool
    ) -> Tuple[Optional[MaskOutlierList], Optional[MaskOutlierList]]:
        masks = outliers = None
        with self._container() as c:
            group = self._channel_group(c)
            if want_outliers:
                outliers = self._read_pairs(c, group, OUTLIER_POSITION)
            if want_masks:
                masks = self._read_pairs(c, group, MASK_POSITION)
        return masks, outliers
