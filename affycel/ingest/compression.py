"""Access to gzip decompression.

Interpreters built without zlib have no usable ``gzip`` module; in that case
compressed CEL files are reported as :class:`UnsupportedCompression`.
"""

from __future__ import annotations

from pathlib import Path
from typing import IO, Tuple

from affycel.ingest.errors import UnsupportedCompression

try:
    import gzip
    import zlib
except ImportError:  # interpreter built without zlib
    gzip = None
    zlib = None


GZIP_MAGIC = b"\x1f\x8b"

# Errors a decompressing stream may raise part-way through a file.
STREAM_ERRORS: Tuple[type, ...] = (OSError, EOFError) + ((zlib.error,) if zlib is not None else ())


def gzip_available() -> bool:
    return gzip is not None


def has_gzip_magic(path: str | Path) -> bool:
    """True when the file starts with the two gzip member bytes."""
    with open(path, "rb") as fh:
        return fh.read(len(GZIP_MAGIC)) == GZIP_MAGIC


def open_gzip(path: str | Path, mode: str = "rb", **kwargs) -> IO:
    if gzip is None:
        raise UnsupportedCompression("gzip decompression is not available in this Python build", path=path)
    return gzip.open(path, mode, **kwargs)
