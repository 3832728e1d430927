from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import IO, Iterator, List, Optional, Tuple

import numpy as np

from affycel.ingest.compression import STREAM_ERRORS, open_gzip
from affycel.ingest.decoder import CelDecoder
from affycel.ingest.errors import NotACelFile, TruncatedFile
from affycel.ingest.masks import place_values
from affycel.ingest.tokens import (
    extract_scan_date,
    find_chip_name,
    parse_grid_corner,
    parse_int,
    value_after_equals,
)
from affycel.models.header import ChipGeometry, DetailedHeader, MaskOutlierList, ProbeField

TEXT_MAGIC = "[CEL]"


class CelLineScanner:
    """
    Forward-only line reader over a text CEL stream.

    Lines keep their terminators. Running out of input while looking for a
    section or a key is a TruncatedFile error.
    """

    def __init__(self, stream: IO[str], path: Path):
        self._stream = stream
        self.path = path
        self.line_no = 0

    def read_line(self) -> Optional[str]:
        """Next line, or None at end of input."""
        try:
            line = self._stream.readline()
        except STREAM_ERRORS as e:
            raise TruncatedFile(f"read failed after line {self.line_no} ({e})", path=self.path) from e
        if line == "":
            return None
        self.line_no += 1
        return line

    def next_line(self) -> str:
        line = self.read_line()
        if line is None:
            raise TruncatedFile(f"unexpected end of file after line {self.line_no}", path=self.path)
        return line

    def find_line_starting_with(self, prefix: str) -> str:
        while True:
            line = self.read_line()
            if line is None:
                raise TruncatedFile(f"'{prefix}' not found", path=self.path)
            if line.startswith(prefix):
                return line

    def advance_to_section(self, marker: str) -> str:
        try:
            return self.find_line_starting_with(marker)
        except TruncatedFile:
            raise TruncatedFile(f"section {marker} not found", path=self.path) from None


class TextCelDecoder(CelDecoder):
    """
    Decoder for version 3 text CEL files, plain or gzip-compressed.

    The file is read as latin-1 with universal newlines, so ``\\r\\n``
    terminated files behave like ``\\n`` ones.
    """

    @contextmanager
    def _scanner(self) -> Iterator[CelLineScanner]:
        if self.kind.is_gzip:
            fh = open_gzip(self.path, "rt", encoding="latin-1", newline=None)
        else:
            fh = open(self.path, "r", encoding="latin-1", newline=None)
        with fh:
            scanner = CelLineScanner(fh, self.path)
            first = scanner.read_line()
            if first is None or not first.startswith(TEXT_MAGIC):
                raise NotACelFile("missing [CEL] marker", path=self.path, expected=TEXT_MAGIC, actual=(first or "")[:5])
            yield scanner

    def _read_geometry(self, scanner: CelLineScanner) -> ChipGeometry:
        scanner.advance_to_section("[HEADER]")
        cols = parse_int(value_after_equals(scanner.find_line_starting_with("Cols")))
        rows = parse_int(value_after_equals(scanner.find_line_starting_with("Rows")))
        return ChipGeometry(cols=cols, rows=rows)

    def _chip_name(self, dat_line: str) -> str:
        name = find_chip_name(dat_line)
        if name is None:
            raise NotACelFile("DatHeader names no .1sq chip type", path=self.path)
        return name

    def read_header_summary(self) -> Tuple[str, ChipGeometry]:
        with self._scanner() as sc:
            geom = self._read_geometry(sc)
            dat_line = sc.find_line_starting_with("DatHeader")
        return self._chip_name(dat_line), geom

    def read_header(self) -> DetailedHeader:
        with self._scanner() as sc:
            geom = self._read_geometry(sc)
            corners = [parse_grid_corner(sc.find_line_starting_with(f"GridCorner{c}")) for c in ("UL", "UR", "LR", "LL")]
            dat_line = sc.find_line_starting_with("DatHeader")
            algorithm = value_after_equals(sc.find_line_starting_with("Algorithm="))
            params = value_after_equals(sc.find_line_starting_with("AlgorithmParameters="))

        dat_header = value_after_equals(dat_line)
        return DetailedHeader(
            cdf_name=self._chip_name(dat_line),
            cols=geom.cols,
            rows=geom.rows,
            grid_corner_ul=corners[0],
            grid_corner_ur=corners[1],
            grid_corner_lr=corners[2],
            grid_corner_ll=corners[3],
            dat_header=dat_header,
            algorithm=algorithm,
            algorithm_parameters=params,
            scan_date=extract_scan_date(dat_header),
        )

    def _read_values(
        self,
        field: ProbeField,
        out: np.ndarray,
        chip_rows: int,
        header: DetailedHeader,
        warnings: List[str],
    ) -> int:
        col = field.text_column
        n_cells = header.geometry.n_cells
        xs: List[int] = []
        ys: List[int] = []
        vals: List[float] = []

        with self._scanner() as sc:
            sc.advance_to_section("[INTENSITY]")
            sc.find_line_starting_with("CellHeader=")
            for _ in range(n_cells):
                line = sc.read_line()
                if line is None:
                    warnings.append(f"body ended at end of file after {len(xs)} of {n_cells} records")
                    break
                toks = line.split()
                if len(toks) <= col:
                    # Blank or incomplete line ends the body.
                    warnings.append(f"body ended at line {sc.line_no} after {len(xs)} of {n_cells} records")
                    break
                try:
                    x, y, v = int(toks[0]), int(toks[1]), float(toks[col])
                except ValueError:
                    warnings.append(f"unparseable record at line {sc.line_no}; read stopped after {len(xs)} records")
                    break
                xs.append(x)
                ys.append(y)
                vals.append(v)

        place_values(out, xs, ys, np.asarray(vals, dtype=np.float64), chip_rows, path=self.path)
        return len(xs)

    def _read_cell_list(self, sc: CelLineScanner, marker: str) -> MaskOutlierList:
        sc.advance_to_section(marker)
        n = parse_int(value_after_equals(sc.find_line_starting_with("NumberCells=")))
        sc.find_line_starting_with("CellHeader=")
        x = np.zeros((n,), dtype=np.int16)
        y = np.zeros((n,), dtype=np.int16)
        for i in range(n):
            toks = sc.next_line().split()
            if len(toks) < 2:
                raise TruncatedFile(
                    f"{marker} entry {i} has no x/y pair",
                    path=self.path,
                    expected=n,
                    actual=i,
                )
            x[i] = int(toks[0])
            y[i] = int(toks[1])
        return MaskOutlierList(x=x, y=y)

    def _read_coordinates(
        self, *, want_masks: bool, want_outliers: bool
    ) -> Tuple[Optional[MaskOutlierList], Optional[MaskOutlierList]]:
        masks = outliers = None
        with self._scanner() as sc:
            # [MASKS] precedes [OUTLIERS]; skipping it is just scanning past it.
            if want_masks:
                masks = self._read_cell_list(sc, "[MASKS]")
            if want_outliers:
                outliers = self._read_cell_list(sc, "[OUTLIERS]")
        return masks, outliers
