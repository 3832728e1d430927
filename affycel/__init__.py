"""affycel -- readers for Affymetrix CEL probe-intensity files.

This package provides tools for:
- Detecting which of the CEL encodings a file uses (text v3, gzip text,
  binary v4, generic "Command Console" single and multi-channel, plain or gzip)
- Reading header metadata, per-probe intensities, standard deviations and
  pixel counts, and the masked / outlier cell lists
- Verifying that a batch of files shares one chip type and geometry
- Assembling a probe x file matrix for a batch, optionally blanking masked
  and outlier cells

Key principles:
- One linear index rule for every encoding: x + chip_rows * y
- A short text body is reported, not hidden: ProbeRead.n_read < n_expected
- Structural damage in binary and generic files is always an error

Main subpackages:
- ingest: Format sniffer, per-encoding decoders, consistency check, batch reader
- models: Data models (DetailedHeader, ProbeRead, CelFile, CelBatch, generic container entities)
"""

from affycel.ingest import (
    CelBatchConfig,
    CelBatchReader,
    CelReaderConfig,
    NA_REAL,
    apply_masks,
    channel_count,
    channel_name,
    check_cel_file,
    classify,
    is_na,
    open_decoder,
    read_arrays,
    read_batch,
    read_cel_file,
    read_header,
    read_header_summary,
    read_mask_outliers,
)
from affycel.models import ChipGeometry, DetailedHeader, FormatKind, ProbeField

__all__ = [
    "CelBatchConfig",
    "CelBatchReader",
    "CelReaderConfig",
    "ChipGeometry",
    "DetailedHeader",
    "FormatKind",
    "NA_REAL",
    "ProbeField",
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
