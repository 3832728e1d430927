import unittest
import tempfile
import struct
from pathlib import Path

import numpy as np
import pytest

from affycel.ingest import (
    channel_count,
    channel_name,
    open_decoder,
    read_arrays,
    read_cel_file,
    read_header,
    read_mask_outliers,
)
from affycel.ingest.errors import (
    CelFileError,
    ChannelOutOfRange,
    CorruptContainer,
    DimensionMismatch,
    NotACelFile,
    TruncatedFile,
)
from affycel.ingest.generic_container import GenericContainer
from affycel.models.generic import ColumnSpec, decode_mime_value
from affycel.models.header import FormatKind, ProbeField
from affycel.tests.synthetic import (
    CHIP,
    DAT_HEADER,
    default_channel,
    write_generic_cel,
    write_text_cel,
)


class TestGenericHeader(unittest.TestCase):
    def test_header_fields(self):
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "g.CEL"
            write_generic_cel(p, 3, 3)
            h = read_header(p)
            self.assertEqual((h.cols, h.rows), (3, 3))
            self.assertEqual(h.cdf_name, CHIP)
            self.assertEqual(h.algorithm, "Percentile")
            self.assertTrue(h.algorithm_parameters.startswith("Percentile:75;CellMargin:2;"))
            self.assertEqual(h.grid_corner_ul, (218, 231))
            self.assertEqual(h.grid_corner_lr, (4511, 4515))
            # taken from the parent header
            self.assertEqual(h.dat_header, DAT_HEADER)
            self.assertEqual(h.scan_date, "2003-01-15T10:21:07Z")

    def test_geometry_matches_text(self):
        with tempfile.TemporaryDirectory() as d:
            g = Path(d) / "g.CEL"
            write_generic_cel(g, 3, 3)
            t = write_text_cel(Path(d) / "t.CEL", 3, 3)
            self.assertEqual(read_header(g).geometry, read_header(t).geometry)
            self.assertEqual(read_header(g).cdf_name, read_header(t).cdf_name)

    def test_container_walk(self):
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "g.CEL"
            layout = write_generic_cel(p, 3, 3)
            with open(p, "rb") as fh:
                c = GenericContainer(fh, p)
                self.assertEqual(c.file_header.n_data_groups, 1)
                self.assertEqual(c.data_header.data_type_id, "affymetrix-calvin-intensity")
                self.assertEqual(len(c.data_header.parents), 1)
                groups = list(c.iter_groups())
                self.assertEqual([g.offset for g in groups], layout.group_offsets)
                names = [ds.name for ds in c.iter_data_sets(groups[0])]
                self.assertEqual(names, ["Intensity", "StdDev", "Pixel", "Outlier", "Mask"])
                ds = c.data_set_at(groups[0], 2)
                self.assertEqual(ds.column_names, ("Pixel",))
                self.assertEqual(ds.row_size, 2)


class TestGenericBody(unittest.TestCase):
    def test_intensity_stored_order(self):
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "g.CEL"
            write_generic_cel(p, 3, 3)
            np.testing.assert_allclose(read_arrays(p).values, np.arange(1, 10, dtype=float))
            np.testing.assert_allclose(read_arrays(p, ProbeField.NPIXELS).values, np.full(9, 16.0))

    def test_gzip_matches_plain(self):
        with tempfile.TemporaryDirectory() as d:
            a, b = Path(d) / "g.CEL", Path(d) / "g.CEL.gz"
            write_generic_cel(a, 3, 3)
            write_generic_cel(b, 3, 3, gz=True)
            np.testing.assert_array_equal(read_arrays(a).values, read_arrays(b).values)
            self.assertEqual(read_header(a), read_header(b))

    def test_truncated_rows(self):
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "g.CEL"
            layout = write_generic_cel(p, 3, 3)
            _, first_row, _ = layout.data_sets[0][0]
            p.write_bytes(p.read_bytes()[: first_row + 10])
            with self.assertRaises(TruncatedFile):
                read_arrays(p)

    def test_truncated_gzip_rows(self):
        with tempfile.TemporaryDirectory() as d:
            full = Path(d) / "full.CEL.gz"
            write_generic_cel(full, 3, 3, channels=[default_channel(3, 3, masks=[(0, 0), (1, 1)])], gz=True)
            p = Path(d) / "cut.CEL.gz"
            raw = full.read_bytes()
            p.write_bytes(raw[: len(raw) // 2])
            dec = open_decoder(p, kind=FormatKind.GZ_GENERIC)
            with self.assertRaises(TruncatedFile):
                dec.read_mask_outliers()

    def test_row_count_must_match_geometry(self):
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "g.CEL"
            write_generic_cel(p, 3, 3, channels=[default_channel(2, 2)])
            with self.assertRaises(DimensionMismatch):
                read_arrays(p)

    def test_masks_and_outliers(self):
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "g.CEL"
            ch = default_channel(3, 3, outliers=[(1, 1)], masks=[(0, 2), (2, 0)])
            write_generic_cel(p, 3, 3, channels=[ch])
            masks, outliers = read_mask_outliers(p)
            np.testing.assert_array_equal(masks.x, [0, 2])
            np.testing.assert_array_equal(masks.y, [2, 0])
            np.testing.assert_array_equal(outliers.x, [1])
            np.testing.assert_array_equal(outliers.y, [1])


class TestMultiChannel(unittest.TestCase):
    def _write(self, p: Path, gz: bool = False):
        chans = [default_channel(3, 3, name=n, scale=s) for n, s in (("Cy3", 1.0), ("Cy5", 10.0), ("Cy7", 100.0))]
        return write_generic_cel(p, 3, 3, channels=chans, multi=True, gz=gz)

    def test_three_channels(self):
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "m.CEL"
            self._write(p)
            self.assertEqual(channel_count(p), 3)
            self.assertEqual([channel_name(p, i) for i in range(3)], ["Cy3", "Cy5", "Cy7"])

    def test_channel_selects_group(self):
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "m.CEL.gz"
            self._write(p, gz=True)
            np.testing.assert_allclose(read_arrays(p, channel=1).values, np.arange(1, 10) * 10.0)
            np.testing.assert_allclose(read_arrays(p, channel=2).values, np.arange(1, 10) * 100.0)
            self.assertEqual(open_decoder(p, channel=2).channel_name(), "Cy7")

    def test_channel_out_of_range(self):
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "m.CEL"
            self._write(p)
            with self.assertRaises(IndexError):
                read_arrays(p, channel=3)
            with self.assertRaises(IndexError):
                channel_name(p, 5)

    def test_non_generic_has_one_unnamed_channel(self):
        with tempfile.TemporaryDirectory() as d:
            p = write_text_cel(Path(d) / "t.CEL", 3, 3)
            self.assertEqual(channel_count(p), 1)
            self.assertEqual(channel_name(p, 0), "")
            with self.assertRaises(IndexError):
                open_decoder(p, channel=1)

    def test_channel_error_names_file(self):
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "m.CEL"
            self._write(p)
            with self.assertRaises(ChannelOutOfRange) as cm:
                read_arrays(p, channel=3)
            self.assertEqual(cm.exception.path, p.resolve())
            self.assertEqual(cm.exception.actual, 3)
            with self.assertRaises(ChannelOutOfRange) as cm:
                channel_name(p, 5)
            self.assertEqual(cm.exception.path, p.resolve())

            t = write_text_cel(Path(d) / "t.CEL", 3, 3)
            with self.assertRaises(ChannelOutOfRange) as cm:
                open_decoder(t, channel=1)
            self.assertEqual(cm.exception.path, t.resolve())
            self.assertIsInstance(cm.exception, IndexError)

    def test_non_advancing_group_offset(self):
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "m.CEL"
            chans = [default_channel(3, 3, name=n) for n in ("A", "B")]
            write_generic_cel(p, 3, 3, channels=chans, multi=True, self_loop=True)
            with self.assertRaises(CorruptContainer):
                channel_count(p)
            with self.assertRaises(TruncatedFile):
                channel_count(p)

    def test_read_cel_file_for_channel(self):
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "m.CEL"
            self._write(p)
            cel = read_cel_file(p, channel=1)
            self.assertEqual(cel.kind, FormatKind.GENERIC_MULTI)
            self.assertEqual(cel.channel, 1)
            np.testing.assert_allclose(cel.intensities, np.arange(1, 10) * 10.0)


# ---------------------------------------------------------------------------
# Parameter value decoding
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "raw, mime, expected",
    [
        (struct.pack(">i", -7), "text/x-calvin-integer-32", -7),
        (struct.pack(">I", 4000000000), "text/x-calvin-unsigned-integer-32", 4000000000),
        (b"\x00\x00" + struct.pack(">h", -3), "text/x-calvin-integer-16", -3),
        (b"\x00\x00\x00" + struct.pack(">B", 200), "text/x-calvin-unsigned-integer-8", 200),
        (struct.pack(">f", 1.5), "text/x-calvin-float", 1.5),
        ("HG_U95Av2".encode("utf-16-be") + b"\x00\x00\x00\x00", "text/plain", "HG_U95Av2"),
        (b"abc\x00\x00", "text/ascii", "abc"),
    ],
)
def test_decode_mime_value(raw: bytes, mime: str, expected) -> None:
    assert decode_mime_value(raw, mime) == expected


def test_unknown_mime_type() -> None:
    with pytest.raises(ValueError):
        decode_mime_value(b"\x00\x00\x00\x01", "application/x-unknown")


def test_column_spec_dtype() -> None:
    assert ColumnSpec("Intensity", 6, 4).dtype == np.dtype(">f4")
    assert ColumnSpec("Name", 7, 12).dtype.itemsize == 12
    with pytest.raises(ValueError):
        ColumnSpec("Bad", 2, 4).dtype


def test_bad_generic_magic(tmp_path: Path) -> None:
    p = tmp_path / "g.CEL"
    write_generic_cel(p, 3, 3)
    data = bytearray(p.read_bytes())
    data[0] = 60
    p.write_bytes(bytes(data))
    with open(p, "rb") as fh, pytest.raises(NotACelFile):
        GenericContainer(fh, p)


# ---------------------------------------------------------------------------
# Corrupt descriptors surface as CEL file errors
# ---------------------------------------------------------------------------


def _intensity_column(size: int) -> bytes:
    name = "Intensity"
    return struct.pack(">i", len(name)) + name.encode("utf-16-be") + struct.pack(">b", 6) + struct.pack(">i", size)


def test_column_size_disagreeing_with_type_code(tmp_path: Path) -> None:
    p = tmp_path / "g.CEL"
    write_generic_cel(p, 3, 3)
    data = p.read_bytes()
    assert data.count(_intensity_column(4)) == 1
    p.write_bytes(data.replace(_intensity_column(4), _intensity_column(2)))

    with pytest.raises(CelFileError) as ei:
        read_arrays(p)
    assert isinstance(ei.value, NotACelFile)
    assert ei.value.path == p.resolve()
    assert (ei.value.expected, ei.value.actual) == (4, 2)


def test_undecodable_header_parameter(tmp_path: Path) -> None:
    p = tmp_path / "g.CEL"
    write_generic_cel(p, 3, 3)
    old, new = "text/x-calvin-float", "text/x-calvin-fl0at"
    p.write_bytes(p.read_bytes().replace(old.encode("utf-16-be"), new.encode("utf-16-be")))

    with pytest.raises(NotACelFile) as ei:
        read_header(p)
    assert ei.value.path == p.resolve()
    assert ei.value.actual == new
