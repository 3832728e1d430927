"""Ingest package - CEL file readers.

This package handles:
- Sniffing the encoding of a CEL file (text, gzip text, binary v4, generic)
- Decoding headers, probe intensities and mask/outlier lists
- Checking files against a reference chip
- Reading batches of files into one probe x file matrix

Key classes:
- TextCelDecoder, BinaryCelDecoder, GenericCelDecoder: one per encoding
- CelBatchReader: validates a batch, then reads one probe field per file

Design principle:
- Probe (x, y) lands at index x + chip_rows * y in every encoding
- Masked cells are NaN, outlier cells the NA sentinel
"""

from .batch import CelBatchConfig, CelBatchReader, read_batch
from .celfile import (
    apply_masks,
    channel_count,
    channel_name,
    check_cel_file,
    open_decoder,
    read_arrays,
    read_cel_file,
    read_header,
    read_header_summary,
    read_mask_outliers,
)
from .decoder import CelDecoder, CelReaderConfig
from .masks import NA_REAL, is_na
from .sniffer import classify

__all__ = [
    "CelBatchConfig",
    "CelBatchReader",
    "CelDecoder",
    "CelReaderConfig",
    "NA_REAL",
    "apply_masks",
    "channel_count",
    "channel_name",
    "check_cel_file",
    "classify",
    "is_na",
    "open_decoder",
    "read_arrays",
    "read_batch",
    "read_cel_file",
    "read_header",
    "read_header_summary",
    "read_mask_outliers",
]
