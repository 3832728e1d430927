from __future__ import annotations

from affycel.ingest.decoder import CelDecoder
from affycel.ingest.errors import ChipTypeMismatch, DimensionMismatch
from affycel.ingest.tokens import chip_name_matches
from affycel.models.header import ChipGeometry


def check_decoder(decoder: CelDecoder, cdf_name: str, geometry: ChipGeometry) -> None:
    """
    Verify a file against a reference chip using its header only.

    Geometry must match exactly. The chip name must start with ``cdf_name``,
    ignoring case, so a reference "HG_U95Av2" accepts "hg_u95av2".
    """
    name, geom = decoder.read_header_summary()
    if (int(geom.cols), int(geom.rows)) != (int(geometry.cols), int(geometry.rows)):
        raise DimensionMismatch(
            "chip dimensions differ from the reference",
            path=decoder.path,
            expected=(int(geometry.cols), int(geometry.rows)),
            actual=(int(geom.cols), int(geom.rows)),
        )
    if not chip_name_matches(name, cdf_name):
        raise ChipTypeMismatch("chip type differs from the reference", path=decoder.path, expected=cdf_name, actual=name)

