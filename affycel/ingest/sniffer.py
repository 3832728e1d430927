"""Encoding detection for CEL files.

Each check opens its own handle and closes it before the next check runs;
a check that fails to open, hits a short read or a decompression error
simply answers "no".
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional
import logging
import struct

from affycel.ingest.compression import STREAM_ERRORS, gzip_available, has_gzip_magic, open_gzip
from affycel.ingest.errors import CelFileError, UnsupportedCompression
from affycel.ingest.generic_container import GenericCursor, read_data_header, read_file_header
from affycel.ingest.readers_binary import BINARY_MAGIC, BINARY_VERSION
from affycel.ingest.readers_text import TEXT_MAGIC
from affycel.models.generic import INTENSITY_TYPE_ID, MULTI_INTENSITY_TYPE_ID
from affycel.models.header import FormatKind

log = logging.getLogger(__name__)

_SNIFF_ERRORS = STREAM_ERRORS + (struct.error, UnicodeDecodeError, CelFileError)


def _first_line_is_cel(path: Path, compressed: bool) -> bool:
    try:
        if compressed:
            fh = open_gzip(path, "rb")
        else:
            fh = open(path, "rb")
        with fh:
            head = fh.read(len(TEXT_MAGIC))
    except _SNIFF_ERRORS as e:
        log.debug("%s: %s text check rejected (%s)", path.name, "gzip" if compressed else "plain", e)
        return False
    return head == TEXT_MAGIC.encode("ascii")


def _is_binary_v4(path: Path) -> bool:
    try:
        with open(path, "rb") as fh:
            head = fh.read(8)
        magic, version = struct.unpack("<ii", head)
    except _SNIFF_ERRORS as e:
        log.debug("%s: binary check rejected (%s)", path.name, e)
        return False
    return magic == BINARY_MAGIC and version == BINARY_VERSION


def _generic_type_id(path: Path, compressed: bool) -> Optional[str]:
    try:
        fh = open_gzip(path, "rb") if compressed else open(path, "rb")
        with fh:
            cur = GenericCursor(fh, path)
            read_file_header(cur)
            return read_data_header(cur).data_type_id
    except _SNIFF_ERRORS as e:
        log.debug("%s: %s generic check rejected (%s)", path.name, "gzip" if compressed else "plain", e)
        return None


def classify(path: str | Path) -> FormatKind:
    """
    Decide which CEL encoding ``path`` uses; UNRECOGNIZED when none matches.

    A gzip file read by an interpreter without zlib raises
    UnsupportedCompression rather than falling through to UNRECOGNIZED.
    """
    p = Path(path).expanduser().resolve()
    if not p.exists():
        raise FileNotFoundError(str(p))

    if not gzip_available() and has_gzip_magic(p):
        raise UnsupportedCompression("gzip decompression is not available in this Python build", path=p)

    if _first_line_is_cel(p, compressed=False):
        return FormatKind.TEXT
    if gzip_available() and _first_line_is_cel(p, compressed=True):
        return FormatKind.GZ_TEXT
    if _is_binary_v4(p):
        return FormatKind.BINARY

    for compressed in (False, True):
        if compressed and not gzip_available():
            break
        type_id = _generic_type_id(p, compressed)
        if type_id == MULTI_INTENSITY_TYPE_ID:
            return FormatKind.GZ_GENERIC_MULTI if compressed else FormatKind.GENERIC_MULTI
        if type_id == INTENSITY_TYPE_ID:
            return FormatKind.GZ_GENERIC if compressed else FormatKind.GENERIC

    log.debug("%s: no CEL encoding matched", p.name)
    return FormatKind.UNRECOGNIZED
