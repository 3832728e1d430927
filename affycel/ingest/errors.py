"""Exceptions raised while decoding CEL files.

Every error is a ``ValueError`` (bad file content) and carries the offending
path plus, where known, the expected and actual values.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional


class CelFileError(ValueError):
    def __init__(
        self,
        message: str,
        *,
        path: Optional[str | Path] = None,
        expected: Any = None,
        actual: Any = None,
    ) -> None:
        self.message = message
        self.path = None if path is None else Path(path)
        self.expected = expected
        self.actual = actual
        super().__init__(self._format())

    def _format(self) -> str:
        txt = self.message
        if self.path is not None:
            txt = f"{txt}: {self.path}"
        if self.expected is not None or self.actual is not None:
            txt = f"{txt} (expected {self.expected!r}, got {self.actual!r})"
        return txt


class NotACelFile(CelFileError):
    """Leading bytes, magic number or version do not describe a CEL file."""


class DimensionMismatch(CelFileError):
    """Cols/rows or cell counts disagree with the header or the reference chip."""


class ChipTypeMismatch(CelFileError):
    """The chip (CDF) name does not match the reference chip type."""


class TruncatedFile(CelFileError):
    """A structural field or section marker was never reached."""


class CorruptContainer(TruncatedFile):
    """The generic container's group chain does not advance through the file."""


class ShortBodyRead(CelFileError):
    """A text body holds fewer records than declared.

    Readers report this condition through ``ProbeRead.n_read``; the exception
    is only raised when a caller asks for strict bodies.
    """

    def __init__(self, message: str, *, n_read: int = 0, **kwargs: Any) -> None:
        self.n_read = int(n_read)
        super().__init__(message, **kwargs)


class CorruptBinaryRecord(CelFileError):
    """A fixed-size binary record could not be read in full."""


class UnsupportedCompression(CelFileError):
    """The file is gzip-compressed but decompression is unavailable or disabled."""


class UnrecognizedFormat(CelFileError):
    """None of the supported encodings matched."""


class ChannelOutOfRange(CelFileError, IndexError):
    """The requested channel (data group) does not exist in the file.

    Also an ``IndexError``, so callers indexing channels can catch it as one.
    """
