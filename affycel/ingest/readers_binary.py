from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, List, Optional, Tuple
import struct

import numpy as np

from affycel.ingest.decoder import CelDecoder
from affycel.ingest.errors import CorruptBinaryRecord, DimensionMismatch, NotACelFile, TruncatedFile
from affycel.ingest.masks import place_values
from affycel.ingest.tokens import extract_scan_date, find_chip_name, parse_grid_corner, tokenize
from affycel.models.header import ChipGeometry, DetailedHeader, MaskOutlierList, ProbeField

BINARY_MAGIC = 64
BINARY_VERSION = 4

# One probe record: mean intensity, standard deviation, pixel count.
RECORD_DTYPE = np.dtype([("intensity", "<f4"), ("stddev", "<f4"), ("npixels", "<i2")])
COORD_DTYPE = np.dtype([("x", "<i2"), ("y", "<i2")])

_FIELD_NAMES = {
    ProbeField.INTENSITY: "intensity",
    ProbeField.STDDEV: "stddev",
    ProbeField.NPIXELS: "npixels",
}


@dataclass(frozen=True)
class BinaryHeader:
    """Fixed header of a version 4 binary CEL file.

    ``data_offset`` is the file position of the first probe record.
    """
    magic: int
    version: int
    cols: int
    rows: int
    n_cells: int
    header_text: str
    algorithm: str
    algorithm_parameters: str
    cell_margin: int
    n_outliers: int
    n_masks: int
    n_subgrids: int
    data_offset: int

    @property
    def geometry(self) -> ChipGeometry:
        return ChipGeometry(cols=self.cols, rows=self.rows)


class _LittleEndianReader:
    def __init__(self, fh: BinaryIO, path: Path):
        self._fh = fh
        self.path = path

    def read(self, n: int, what: str) -> bytes:
        buf = self._fh.read(n)
        if len(buf) != n:
            raise TruncatedFile(f"file ends inside header field '{what}'", path=self.path, expected=n, actual=len(buf))
        return buf

    def int32(self, what: str) -> int:
        return struct.unpack("<i", self.read(4, what))[0]

    def uint32(self, what: str) -> int:
        return struct.unpack("<I", self.read(4, what))[0]

    def string(self, what: str) -> str:
        n = self.int32(what + " length")
        if n < 0:
            raise TruncatedFile(f"negative length for '{what}'", path=self.path, actual=n)
        return self.read(n, what).decode("latin-1")


def read_binary_header(fh: BinaryIO, path: Path) -> BinaryHeader:
    r = _LittleEndianReader(fh, path)
    magic = r.int32("magic")
    if magic != BINARY_MAGIC:
        raise NotACelFile("bad binary CEL magic number", path=path, expected=BINARY_MAGIC, actual=magic)
    version = r.int32("version")
    if version != BINARY_VERSION:
        raise NotACelFile("unsupported binary CEL version", path=path, expected=BINARY_VERSION, actual=version)
    cols = r.int32("cols")
    rows = r.int32("rows")
    n_cells = r.int32("n_cells")
    if n_cells != cols * rows:
        raise DimensionMismatch("cell count disagrees with cols*rows", path=path, expected=cols * rows, actual=n_cells)

    header_text = r.string("header")
    algorithm = r.string("algorithm")
    params = r.string("algorithm parameters")
    cell_margin = r.int32("cell margin")
    n_outliers = r.uint32("n_outliers")
    n_masks = r.uint32("n_masks")
    n_subgrids = r.int32("n_subgrids")
    return BinaryHeader(
        magic=magic,
        version=version,
        cols=cols,
        rows=rows,
        n_cells=n_cells,
        header_text=header_text,
        algorithm=algorithm.rstrip("\x00"),
        algorithm_parameters=params.rstrip("\x00\r\n"),
        cell_margin=cell_margin,
        n_outliers=n_outliers,
        n_masks=n_masks,
        n_subgrids=n_subgrids,
        data_offset=fh.tell(),
    )


class BinaryCelDecoder(CelDecoder):
    """Decoder for little-endian version 4 binary CEL files."""

    def read_binary_header(self) -> BinaryHeader:
        with open(self.path, "rb") as fh:
            return read_binary_header(fh, self.path)

    def read_header_summary(self) -> Tuple[str, ChipGeometry]:
        bh = self.read_binary_header()
        return self._chip_name(bh), bh.geometry

    def _chip_name(self, bh: BinaryHeader) -> str:
        name = find_chip_name(bh.header_text)
        if name is None:
            raise NotACelFile("header names no .1sq chip type", path=self.path)
        return name

    def read_header(self) -> DetailedHeader:
        bh = self.read_binary_header()
        corners = {"UL": (0, 0), "UR": (0, 0), "LR": (0, 0), "LL": (0, 0)}
        dat_header = ""
        for line in tokenize(bh.header_text, "\n"):
            line = line.rstrip("\r")
            if line.startswith("GridCorner") and line[10:12] in corners:
                corners[line[10:12]] = parse_grid_corner(line)
            elif line.startswith("DatHeader="):
                dat_header = line[len("DatHeader="):]
        return DetailedHeader(
            cdf_name=self._chip_name(bh),
            cols=bh.cols,
            rows=bh.rows,
            grid_corner_ul=corners["UL"],
            grid_corner_ur=corners["UR"],
            grid_corner_lr=corners["LR"],
            grid_corner_ll=corners["LL"],
            dat_header=dat_header,
            algorithm=bh.algorithm,
            algorithm_parameters=bh.algorithm_parameters,
            scan_date=extract_scan_date(dat_header),
        )

    def _records(self, fh: BinaryIO, bh: BinaryHeader) -> np.ndarray:
        fh.seek(bh.data_offset)
        nbytes = bh.n_cells * RECORD_DTYPE.itemsize
        buf = fh.read(nbytes)
        if len(buf) != nbytes:
            raise CorruptBinaryRecord(
                "probe records cut short",
                path=self.path,
                expected=bh.n_cells,
                actual=len(buf) // RECORD_DTYPE.itemsize,
            )
        return np.frombuffer(buf, dtype=RECORD_DTYPE)

    def _read_values(
        self,
        field: ProbeField,
        out: np.ndarray,
        chip_rows: int,
        header: DetailedHeader,
        warnings: List[str],
    ) -> int:
        with open(self.path, "rb") as fh:
            bh = read_binary_header(fh, self.path)
            rec = self._records(fh, bh)
        # Records are stored row-major: record k is (x = k % cols, y = k // cols).
        k = np.arange(bh.n_cells, dtype=np.int64)
        place_values(
            out,
            k % bh.cols,
            k // bh.cols,
            rec[_FIELD_NAMES[field]].astype(np.float64),
            chip_rows,
            path=self.path,
        )
        return int(bh.n_cells)

    def _read_pairs(self, fh: BinaryIO, n: int, what: str) -> MaskOutlierList:
        nbytes = n * COORD_DTYPE.itemsize
        buf = fh.read(nbytes)
        if len(buf) != nbytes:
            raise CorruptBinaryRecord(
                f"{what} list cut short",
                path=self.path,
                expected=n,
                actual=len(buf) // COORD_DTYPE.itemsize,
            )
        pairs = np.frombuffer(buf, dtype=COORD_DTYPE)
        return MaskOutlierList(x=pairs["x"].astype(np.int16), y=pairs["y"].astype(np.int16))

    def _read_coordinates(
        self, *, want_masks: bool, want_outliers: bool
    ) -> Tuple[Optional[MaskOutlierList], Optional[MaskOutlierList]]:
        masks = outliers = None
        with open(self.path, "rb") as fh:
            bh = read_binary_header(fh, self.path)
            mask_offset = bh.data_offset + bh.n_cells * RECORD_DTYPE.itemsize
            fh.seek(mask_offset)
            if want_masks:
                masks = self._read_pairs(fh, bh.n_masks, "mask")
            if want_outliers:
                fh.seek(mask_offset + bh.n_masks * COORD_DTYPE.itemsize)
                outliers = self._read_pairs(fh, bh.n_outliers, "outlier")
        return masks, outliers
