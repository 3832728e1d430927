from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import List, Optional, Sequence
import logging

import numpy as np

from affycel.ingest.celfile import open_decoder
from affycel.ingest.consistency import check_decoder
from affycel.ingest.decoder import CelDecoder, CelReaderConfig
from affycel.models.frames import CelBatch, ProbeRead
from affycel.models.header import ChipGeometry, ProbeField

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CelBatchConfig:
    """
    Options for reading many CEL files into one matrix.

    rm_mask / rm_outliers:
      Set masked cells to NaN / outlier cells to NA after each body read.
    rm_extra:
      Shorthand that turns on both of the above.
    strict_text_body:
      Raise ShortBodyRead instead of keeping a partial text body.
    max_workers:
      Number of threads used for body reads; 1 reads files in order.
    """
    rm_mask: bool = False
    rm_outliers: bool = False
    rm_extra: bool = False
    strict_text_body: bool = False
    max_workers: int = 1
    reader: CelReaderConfig = field(default_factory=CelReaderConfig)

    @property
    def remove_masks(self) -> bool:
        return self.rm_mask or self.rm_extra

    @property
    def remove_outliers(self) -> bool:
        return self.rm_outliers or self.rm_extra


class CelBatchReader:
    """
    Read one probe field from a batch of CEL files of the same chip type.

    Every file's header is checked against the reference chip before any body
    is read, so a mismatched file aborts the batch without partial work. The
    reference is the first file unless ``cdf_name``/``geometry`` are given.
    """

    def __init__(self, config: Optional[CelBatchConfig] = None):
        self.config = config or CelBatchConfig()

    def _reader_config(self) -> CelReaderConfig:
        rc = self.config.reader
        if self.config.strict_text_body and not rc.strict_text_body:
            rc = replace(rc, strict_text_body=True)
        return rc

    def read(
        self,
        paths: Sequence[str | Path],
        field: ProbeField = ProbeField.INTENSITY,
        cdf_name: Optional[str] = None,
        geometry: Optional[ChipGeometry] = None,
        channel: Optional[int] = None,
    ) -> CelBatch:
        if len(paths) == 0:
            raise ValueError("no CEL files given")

        rc = self._reader_config()
        decoders = [open_decoder(p, channel=channel or 0, config=rc) for p in paths]

        if cdf_name is None or geometry is None:
            ref_name, ref_geom = decoders[0].read_header_summary()
            cdf_name = ref_name if cdf_name is None else cdf_name
            geometry = ref_geom if geometry is None else geometry

        for dec in decoders:
            check_decoder(dec, cdf_name, geometry)

        n_cells = geometry.n_cells
        values = np.full((n_cells, len(decoders)), np.nan, dtype=np.float64, order="F")

        def read_one(j: int) -> ProbeRead:
            dec = decoders[j]
            log.info("Reading in: %s", dec.path)
            col = values[:, j]
            pr = dec.read_values(field, chip_rows=geometry.rows, out=col)
            self._remove_extra(dec, col, geometry)
            return pr

        workers = max(1, int(self.config.max_workers))
        if workers == 1 or len(decoders) == 1:
            reads = [read_one(j) for j in range(len(decoders))]
        else:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                reads = list(pool.map(read_one, range(len(decoders))))

        warnings: List[str] = []
        for pr in reads:
            warnings.extend(f"{pr.source_path.name}: {w}" for w in pr.warnings)

        return CelBatch(
            cdf_name=cdf_name,
            geometry=geometry,
            field=field,
            values=values,
            file_names=tuple(dec.path.name for dec in decoders),
            n_read=tuple(pr.n_read for pr in reads),
            warnings=tuple(warnings),
            channel=channel,
        )

    def _remove_extra(self, dec: CelDecoder, col: np.ndarray, geometry: ChipGeometry) -> None:
        cfg = self.config
        if cfg.remove_masks or cfg.remove_outliers:
            dec.apply_masks(
                col,
                chip_rows=geometry.rows,
                apply_mask=cfg.remove_masks,
                apply_outlier=cfg.remove_outliers,
            )


def read_batch(
    paths: Sequence[str | Path],
    field: ProbeField = ProbeField.INTENSITY,
    config: Optional[CelBatchConfig] = None,
    **kwargs,
) -> CelBatch:
    return CelBatchReader(config).read(paths, field=field, **kwargs)
