"""Caller-facing operations on single CEL files.

Every function accepts any supported encoding; the encoding is sniffed once
per call and dispatched to the matching decoder.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple

import numpy as np

from affycel.ingest.consistency import check_decoder
from affycel.ingest.decoder import CelDecoder, CelReaderConfig
from affycel.ingest.errors import UnrecognizedFormat
from affycel.ingest.readers_binary import BinaryCelDecoder
from affycel.ingest.readers_generic import GenericCelDecoder
from affycel.ingest.readers_text import TextCelDecoder
from affycel.ingest.sniffer import classify
from affycel.models.frames import CelFile, ProbeRead
from affycel.models.header import ChipGeometry, DetailedHeader, FormatKind, MaskOutlierList, ProbeField


def open_decoder(
    path: str | Path,
    kind: Optional[FormatKind] = None,
    channel: int = 0,
    config: Optional[CelReaderConfig] = None,
) -> CelDecoder:
    """
    Build the decoder for ``path``.

    ``kind`` skips sniffing when the caller already knows the encoding.
    ``channel`` selects the data group of a multi-channel generic file and
    must be 0 for every other encoding.
    """
    p = Path(path).expanduser().resolve()
    if kind is None:
        kind = classify(p)

    if kind.is_text:
        dec: CelDecoder = TextCelDecoder(p, kind, config)
    elif kind is FormatKind.BINARY:
        dec = BinaryCelDecoder(p, kind, config)
    elif kind.is_generic:
        return GenericCelDecoder(p, kind, config, channel=channel)
    else:
        raise UnrecognizedFormat("not a text, binary or generic CEL file", path=p)

    dec._check_channel(channel, 1)
    return dec


def read_header(path: str | Path, channel: int = 0) -> DetailedHeader:
    return open_decoder(path, channel=channel).read_header()


def read_header_summary(path: str | Path, channel: int = 0) -> Tuple[str, ChipGeometry]:
    return open_decoder(path, channel=channel).read_header_summary()


def read_arrays(
    path: str | Path,
    kind: ProbeField = ProbeField.INTENSITY,
    chip_rows: Optional[int] = None,
    out: Optional[np.ndarray] = None,
    channel: int = 0,
    config: Optional[CelReaderConfig] = None,
) -> ProbeRead:
    """Read one probe field (intensity, stddev or pixel count) of one file."""
    return open_decoder(path, channel=channel, config=config).read_values(kind, chip_rows=chip_rows, out=out)


def read_mask_outliers(path: str | Path, channel: int = 0) -> Tuple[MaskOutlierList, MaskOutlierList]:
    """Return ``(masks, outliers)``."""
    return open_decoder(path, channel=channel).read_mask_outliers()


def apply_masks(
    path: str | Path,
    array: np.ndarray,
    chip_rows: Optional[int] = None,
    apply_mask: bool = True,
    apply_outlier: bool = True,
    channel: int = 0,
) -> np.ndarray:
    return open_decoder(path, channel=channel).apply_masks(
        array, chip_rows=chip_rows, apply_mask=apply_mask, apply_outlier=apply_outlier
    )


def channel_count(path: str | Path) -> int:
    return open_decoder(path).channel_count()


def channel_name(path: str | Path, index: int = 0) -> str:
    return open_decoder(path).channel_name(index)


def check_cel_file(path: str | Path, cdf_name: str, geometry: ChipGeometry, channel: int = 0) -> None:
    """Raise DimensionMismatch or ChipTypeMismatch if ``path`` is not the reference chip."""
    check_decoder(open_decoder(path, channel=channel), cdf_name, geometry)


def read_cel_file(
    path: str | Path,
    channel: int = 0,
    config: Optional[CelReaderConfig] = None,
) -> CelFile:
    """Read header, all three probe fields and both coordinate lists of one file."""
    dec = open_decoder(path, channel=channel, config=config)
    header = dec.read_header()
    warnings: List[str] = []
    fields = {}
    for f in ProbeField:
        pr = dec.read_values(f)
        fields[f] = pr.values
        warnings.extend(f"{f.value}: {w}" for w in pr.warnings)
    masks, outliers = dec.read_mask_outliers()
    return CelFile(
        source_path=dec.path,
        kind=dec.kind,
        header=header,
        intensities=fields[ProbeField.INTENSITY],
        stddev=fields[ProbeField.STDDEV],
        npixels=fields[ProbeField.NPIXELS],
        masks=masks,
        outliers=outliers,
        channel=int(channel),
        warnings=tuple(warnings),
    )
