from .header import ChipGeometry, DetailedHeader, FormatKind, MaskOutlierList, ProbeField
from .frames import CelBatch, CelFile, ProbeRead

__all__ = [
    "ChipGeometry",
    "DetailedHeader",
    "FormatKind",
    "MaskOutlierList",
    "ProbeField",
    "CelBatch",
    "CelFile",
    "ProbeRead",
]
