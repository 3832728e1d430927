import unittest
import tempfile
import gzip
from pathlib import Path

import pytest

from affycel.ingest import compression, read_header
from affycel.ingest.errors import UnsupportedCompression
from affycel.ingest.sniffer import classify
from affycel.models.header import FormatKind
from affycel.tests.synthetic import write_binary_cel, write_generic_cel, write_text_cel


class TestClassify(unittest.TestCase):
    def test_each_encoding(self):
        with tempfile.TemporaryDirectory() as d:
            d = Path(d)
            cases = {
                FormatKind.TEXT: write_text_cel(d / "a.CEL"),
                FormatKind.GZ_TEXT: write_text_cel(d / "b.CEL.gz", gz=True),
                FormatKind.BINARY: write_binary_cel(d / "c.CEL"),
            }
            write_generic_cel(d / "d.CEL")
            write_generic_cel(d / "e.CEL.gz", gz=True)
            write_generic_cel(d / "f.CEL", multi=True)
            write_generic_cel(d / "g.CEL.gz", multi=True, gz=True)
            cases[FormatKind.GENERIC] = d / "d.CEL"
            cases[FormatKind.GZ_GENERIC] = d / "e.CEL.gz"
            cases[FormatKind.GENERIC_MULTI] = d / "f.CEL"
            cases[FormatKind.GZ_GENERIC_MULTI] = d / "g.CEL.gz"

            for kind, p in cases.items():
                with self.subTest(kind=kind):
                    self.assertEqual(classify(p), kind)

    def test_garbage_is_unrecognized(self):
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "junk.bin"
            p.write_bytes(b"\x00\x01\x02 this is not a CEL file at all" * 4)
            self.assertEqual(classify(p), FormatKind.UNRECOGNIZED)

    def test_empty_file_is_unrecognized(self):
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "empty.CEL"
            p.write_bytes(b"")
            self.assertEqual(classify(p), FormatKind.UNRECOGNIZED)

    def test_gzip_of_something_else_is_unrecognized(self):
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "other.gz"
            with gzip.open(p, "wb") as fh:
                fh.write(b"hello world\n")
            self.assertEqual(classify(p), FormatKind.UNRECOGNIZED)

    def test_truncated_gzip_falls_through(self):
        with tempfile.TemporaryDirectory() as d:
            full = Path(d) / "full.gz"
            with gzip.open(full, "wb") as fh:
                fh.write(b"\x3b" + b"\x00" * 200)
            p = Path(d) / "cut.gz"
            p.write_bytes(full.read_bytes()[:12])
            self.assertEqual(classify(p), FormatKind.UNRECOGNIZED)

    def test_missing_file(self):
        with tempfile.TemporaryDirectory() as d:
            with self.assertRaises(FileNotFoundError):
                classify(Path(d) / "nope.CEL")


# ---------------------------------------------------------------------------
# Interpreter without zlib
# ---------------------------------------------------------------------------


def test_gzip_without_zlib_is_unsupported(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    text_gz = write_text_cel(tmp_path / "a.CEL.gz", gz=True)
    write_generic_cel(tmp_path / "g.CEL.gz", gz=True)
    monkeypatch.setattr(compression, "gzip", None)

    for p in (text_gz, tmp_path / "g.CEL.gz"):
        with pytest.raises(UnsupportedCompression) as ei:
            classify(p)
        assert ei.value.path == p.resolve()
    with pytest.raises(UnsupportedCompression):
        read_header(text_gz)


def test_plain_files_still_read_without_zlib(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    t = write_text_cel(tmp_path / "a.CEL")
    b = write_binary_cel(tmp_path / "b.CEL")
    monkeypatch.setattr(compression, "gzip", None)
    assert classify(t) is FormatKind.TEXT
    assert classify(b) is FormatKind.BINARY
    assert read_header(t).cols == 3


if __name__ == "__main__":
    unittest.main()
