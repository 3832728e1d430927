"""Walker for the generic ("Command Console" / Calvin) binary container.

Layout, all integers big-endian::

    FileHeader   uint8 magic (59), uint8 version (1), int32 n_groups, uint32 first group offset
    DataHeader   string type id, string file id, wstring timestamp, wstring locale,
                 int32 n_params, params, int32 n_parents, parent DataHeaders
    DataGroup    uint32 next group offset, uint32 first data set offset,
                 int32 n_data_sets, wstring name
    DataSet      uint32 first row offset, uint32 end offset, wstring name,
                 int32 n_params, params, uint32 n_cols, columns, uint32 n_rows, rows

A parameter is (wstring name, string value, wstring MIME type); a column is
(wstring name, int8 type code, int32 byte size). ``string`` is an int32
length followed by bytes, ``wstring`` an int32 length followed by that many
UTF-16BE code units.

Data sets are returned as descriptors; rows are read only by
:meth:`GenericContainer.read_rows`.
"""

from __future__ import annotations

from pathlib import Path
from typing import BinaryIO, Iterator, List, Optional, Tuple
import logging
import struct

import numpy as np

from affycel.ingest.compression import STREAM_ERRORS
from affycel.ingest.errors import ChannelOutOfRange, CorruptContainer, NotACelFile, TruncatedFile
from affycel.models.generic import (
    GENERIC_MAGIC,
    GENERIC_VERSION,
    ColumnSpec,
    DataGroup,
    DataHeader,
    DataSet,
    FileHeader,
    NameValueType,
)

log = logging.getLogger(__name__)

# Parent headers nest; real files go one or two levels deep.
_MAX_PARENT_DEPTH = 64


class GenericCursor:
    """Big-endian primitive reader over a seekable binary stream (plain or gzip)."""

    def __init__(self, fh: BinaryIO, path: Path):
        self._fh = fh
        self.path = path

    def tell(self) -> int:
        return int(self._fh.tell())

    def seek(self, pos: int) -> None:
        try:
            self._fh.seek(int(pos))
        except STREAM_ERRORS as e:
            raise TruncatedFile(f"seek to {pos} failed ({e})", path=self.path) from e

    def read(self, n: int) -> bytes:
        if n < 0:
            raise TruncatedFile("negative field length", path=self.path, actual=n)
        try:
            buf = self._fh.read(n)
        except STREAM_ERRORS as e:
            raise TruncatedFile(f"read failed at offset {self.tell()} ({e})", path=self.path) from e
        if len(buf) != n:
            raise TruncatedFile("unexpected end of file", path=self.path, expected=n, actual=len(buf))
        return buf

    def at_eof(self) -> bool:
        """Peek one byte; the stream position is undefined afterwards, so callers seek back."""
        try:
            return self._fh.read(1) == b""
        except STREAM_ERRORS as e:
            raise TruncatedFile(f"read failed at offset {self.tell()} ({e})", path=self.path) from e

    def uint8(self) -> int:
        return self.read(1)[0]

    def int8(self) -> int:
        return struct.unpack(">b", self.read(1))[0]

    def int32(self) -> int:
        return struct.unpack(">i", self.read(4))[0]

    def uint32(self) -> int:
        return struct.unpack(">I", self.read(4))[0]

    def raw_string(self) -> bytes:
        return self.read(self.int32())

    def string(self) -> str:
        return self.raw_string().decode("latin-1")

    def wstring(self) -> str:
        n = self.int32()
        return self.read(2 * n).decode("utf-16-be", errors="replace").rstrip("\x00")


def read_file_header(cur: GenericCursor) -> FileHeader:
    magic = cur.uint8()
    if magic != GENERIC_MAGIC:
        raise NotACelFile("bad generic file magic", path=cur.path, expected=GENERIC_MAGIC, actual=magic)
    version = cur.uint8()
    if version != GENERIC_VERSION:
        raise NotACelFile("unsupported generic file version", path=cur.path, expected=GENERIC_VERSION, actual=version)
    return FileHeader(
        magic=magic,
        version=version,
        n_data_groups=cur.int32(),
        first_group_offset=cur.uint32(),
    )


def _read_parameters(cur: GenericCursor, n: int) -> Tuple[NameValueType, ...]:
    out: List[NameValueType] = []
    for _ in range(n):
        name = cur.wstring()
        raw = cur.raw_string()
        mime = cur.wstring()
        out.append(NameValueType(name=name, raw_value=raw, mime_type=mime))
    return tuple(out)


def read_data_header(cur: GenericCursor, _depth: int = 0) -> DataHeader:
    if _depth > _MAX_PARENT_DEPTH:
        raise CorruptContainer("data header parents nest too deeply", path=cur.path, actual=_depth)
    data_type_id = cur.string()
    file_id = cur.string()
    timestamp = cur.wstring()
    locale = cur.wstring()
    params = _read_parameters(cur, cur.int32())
    n_parents = cur.int32()
    parents = tuple(read_data_header(cur, _depth + 1) for _ in range(n_parents))
    return DataHeader(
        data_type_id=data_type_id,
        file_id=file_id,
        timestamp=timestamp,
        locale=locale,
        parameters=params,
        parents=parents,
    )


def read_data_group(cur: GenericCursor) -> DataGroup:
    offset = cur.tell()
    return DataGroup(
        offset=offset,
        next_group_offset=cur.uint32(),
        first_data_set_offset=cur.uint32(),
        n_data_sets=cur.int32(),
        name=cur.wstring(),
    )


def read_data_set(cur: GenericCursor) -> DataSet:
    """Read a data set descriptor; the cursor is left at the first row."""
    offset = cur.tell()
    first_row = cur.uint32()
    end = cur.uint32()
    name = cur.wstring()
    params = _read_parameters(cur, cur.int32())
    n_cols = cur.uint32()
    cols = []
    for _ in range(n_cols):
        cname = cur.wstring()
        code = cur.int8()
        size = cur.int32()
        spec = ColumnSpec(name=cname, type_code=code, size=size)
        want = spec.expected_size
        if size < 0 or (want is not None and size != want):
            raise NotACelFile(
                f"column '{cname}' of data set '{name}' has a size that does not fit type code {code}",
                path=cur.path,
                expected=want,
                actual=size,
            )
        cols.append(spec)
    n_rows = cur.uint32()
    return DataSet(
        offset=offset,
        first_row_offset=first_row,
        end_offset=end,
        name=name,
        parameters=params,
        columns=tuple(cols),
        n_rows=n_rows,
    )


class GenericContainer:
    """
    Read-only view over an open generic container.

    The file and data headers are parsed on construction; groups and data
    sets are walked on demand.
    """

    def __init__(self, fh: BinaryIO, path: Path):
        self.cursor = GenericCursor(fh, path)
        self.path = path
        self.file_header = read_file_header(self.cursor)
        self.data_header = read_data_header(self.cursor)

    # --- groups --------------------------------------------------------------

    def iter_groups(self) -> Iterator[DataGroup]:
        """
        Yield data groups by following next-group offsets.

        The walk ends at offset 0 or at end of file. An offset that does not
        move forward is a CorruptContainer error.
        """
        pos = int(self.file_header.first_group_offset)
        if pos == 0:
            return
        while True:
            self.cursor.seek(pos)
            if self._eof_at(pos):
                return
            group = read_data_group(self.cursor)
            yield group
            nxt = int(group.next_group_offset)
            if nxt == 0:
                return
            if nxt <= group.offset:
                raise CorruptContainer(
                    "next data group offset does not advance",
                    path=self.path,
                    expected=f"> {group.offset}",
                    actual=nxt,
                )
            pos = nxt

    def _eof_at(self, pos: int) -> bool:
        eof = self.cursor.at_eof()
        self.cursor.seek(pos)
        return eof

    def group_at(self, index: int) -> DataGroup:
        n = 0
        for i, group in enumerate(self.iter_groups()):
            if i == index:
                return group
            n += 1
        raise ChannelOutOfRange(
            "data group not present",
            path=self.path,
            expected=f"0 <= index < {n}",
            actual=index,
        )

    # --- data sets -----------------------------------------------------------

    def iter_data_sets(self, group: DataGroup) -> Iterator[DataSet]:
        """Yield the group's data set descriptors in stored order, skipping row data."""
        pos = int(group.first_data_set_offset)
        for _ in range(int(group.n_data_sets)):
            self.cursor.seek(pos)
            ds = read_data_set(self.cursor)
            yield ds
            if ds.end_offset <= ds.offset:
                raise CorruptContainer(
                    f"data set '{ds.name}' ends before it starts",
                    path=self.path,
                    expected=f"> {ds.offset}",
                    actual=ds.end_offset,
                )
            pos = int(ds.end_offset)

    def data_set_at(self, group: DataGroup, position: int) -> DataSet:
        for i, ds in enumerate(self.iter_data_sets(group)):
            if i == position:
                return ds
            log.debug("%s: skipping data set '%s' in group '%s'", self.path.name, ds.name, group.name)
        raise TruncatedFile(
            f"data group '{group.name}' has no data set at position {position}",
            path=self.path,
            expected=position + 1,
            actual=group.n_data_sets,
        )

    def find_data_set(self, group: DataGroup, name: str) -> Optional[DataSet]:
        for ds in self.iter_data_sets(group):
            if ds.name == name:
                return ds
        return None

    def read_rows(self, ds: DataSet) -> np.ndarray:
        """Materialize all rows of ``ds`` as a structured array (fields ``c0..cN``)."""
        dt = ds.row_dtype
        self.cursor.seek(ds.first_row_offset)
        buf = self.cursor.read(int(ds.n_rows) * dt.itemsize)
        return np.frombuffer(buf, dtype=dt)

    def read_column(self, ds: DataSet, index: int = 0) -> np.ndarray:
        return self.read_rows(ds)[f"c{index}"]
