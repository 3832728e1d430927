"""Entities of the generic ("Command Console" / Calvin) container format.

All multi-byte values in this container are big-endian. The classes here are
plain descriptors: they record what a header says and where things live in
the file. Row data of a :class:`DataSet` is only read when a caller asks
for it (see ``affycel.ingest.generic_container``).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Tuple
import struct

import numpy as np


GENERIC_MAGIC = 59
GENERIC_VERSION = 1

INTENSITY_TYPE_ID = "affymetrix-calvin-intensity"
MULTI_INTENSITY_TYPE_ID = "affymetrix-calvin-multi-intensity"

# Column type codes -> big-endian numpy dtypes. Codes 7 and 8 are
# fixed-width ASCII / UTF-16 strings and are kept as raw bytes.
_COLUMN_DTYPES: Dict[int, str] = {
    0: ">i1",
    1: ">u1",
    2: ">i2",
    3: ">u2",
    4: ">i4",
    5: ">u4",
    6: ">f4",
}


@dataclass(frozen=True)
class FileHeader:
    magic: int
    version: int
    n_data_groups: int
    first_group_offset: int


@dataclass(frozen=True)
class NameValueType:
    """A parameter triplet: wide-string name, raw value bytes, MIME type."""
    name: str
    raw_value: bytes
    mime_type: str

    @property
    def value(self) -> Any:
        return decode_mime_value(self.raw_value, self.mime_type)


def decode_mime_value(raw: bytes, mime_type: str) -> Any:
    """
    Decode a parameter value according to its MIME type.

    Numeric values are stored as big-endian 32-bit words; the narrower
    integer types live in the low-order bytes of that word.
    """
    if mime_type == "text/ascii":
        return raw.split(b"\x00", 1)[0].decode("latin-1")
    if mime_type == "text/plain":
        return raw.decode("utf-16-be", errors="replace").split("\x00", 1)[0]
    if len(raw) < 4:
        raise ValueError(f"value too short ({len(raw)} bytes) for MIME type '{mime_type}'")
    if mime_type == "text/x-calvin-float":
        return struct.unpack(">f", raw[:4])[0]
    if mime_type == "text/x-calvin-integer-32":
        return struct.unpack(">i", raw[:4])[0]
    if mime_type == "text/x-calvin-integer-16":
        return struct.unpack(">h", raw[2:4])[0]
    if mime_type == "text/x-calvin-integer-8":
        return struct.unpack(">b", raw[3:4])[0]
    if mime_type == "text/x-calvin-unsigned-integer-32":
        return struct.unpack(">I", raw[:4])[0]
    if mime_type == "text/x-calvin-unsigned-integer-16":
        return struct.unpack(">H", raw[2:4])[0]
    if mime_type == "text/x-calvin-unsigned-integer-8":
        return struct.unpack(">B", raw[3:4])[0]
    raise ValueError(f"Unknown MIME type: '{mime_type}'")


@dataclass(frozen=True)
class DataHeader:
    data_type_id: str
    file_id: str
    timestamp: str
    locale: str
    parameters: Tuple[NameValueType, ...] = ()
    parents: Tuple["DataHeader", ...] = ()

    def find(self, name: str, recursive: bool = False) -> Optional[NameValueType]:
        """Return the first parameter called ``name``; parents are searched only if ``recursive``."""
        for nvt in self.parameters:
            if nvt.name == name:
                return nvt
        if recursive:
            for parent in self.parents:
                hit = parent.find(name, recursive=True)
                if hit is not None:
                    return hit
        return None

    def value(self, name: str, default: Any = None, recursive: bool = False) -> Any:
        nvt = self.find(name, recursive=recursive)
        return default if nvt is None else nvt.value

    def with_prefix(self, prefix: str) -> Iterator[NameValueType]:
        for nvt in self.parameters:
            if nvt.name.startswith(prefix):
                yield nvt


@dataclass(frozen=True)
class DataGroup:
    """
    A named collection of data sets.

    ``next_group_offset`` is the absolute file position of the next sibling
    group (0 when this is the last one).
    """
    offset: int
    next_group_offset: int
    first_data_set_offset: int
    n_data_sets: int
    name: str


@dataclass(frozen=True)
class ColumnSpec:
    name: str
    type_code: int
    size: int

    @property
    def expected_size(self) -> Optional[int]:
        """Byte size implied by the type code; None for the string codes."""
        code = _COLUMN_DTYPES.get(int(self.type_code))
        return None if code is None else np.dtype(code).itemsize

    @property
    def dtype(self) -> np.dtype:
        code = _COLUMN_DTYPES.get(int(self.type_code))
        if code is None:
            return np.dtype(f"V{int(self.size)}")
        dt = np.dtype(code)
        if dt.itemsize != int(self.size):
            raise ValueError(
                f"column '{self.name}': declared size {self.size} does not match type code {self.type_code}"
            )
        return dt


@dataclass(frozen=True)
class DataSet:
    """
    Descriptor of a typed table.

    ``first_row_offset`` is where row data starts, ``end_offset`` is the
    file position right after the last row; seeking there skips the set.
    """
    offset: int
    first_row_offset: int
    end_offset: int
    name: str
    parameters: Tuple[NameValueType, ...]
    columns: Tuple[ColumnSpec, ...]
    n_rows: int

    @property
    def row_dtype(self) -> np.dtype:
        return np.dtype([(f"c{i}", col.dtype) for i, col in enumerate(self.columns)])

    @property
    def row_size(self) -> int:
        return int(sum(int(c.size) for c in self.columns))

    @property
    def column_names(self) -> Tuple[str, ...]:
        return tuple(c.name for c in self.columns)
