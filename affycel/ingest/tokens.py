"""Tokenizing helpers shared by the text scanner and the binary header parser."""

from __future__ import annotations

from typing import List, Optional, Tuple
import re

CHIP_NAME_SUFFIX = ".1sq"

_SCAN_DATE = re.compile(r"\d{2}/\d{2}/\d{2,4}\s+\d{2}:\d{2}:\d{2}")


def tokenize(text: str, delimiters: str) -> List[str]:
    """
    Split ``text`` on any character of ``delimiters``.

    Runs of delimiters count as one separator and empty pieces are dropped,
    so ``tokenize("GridCornerUL=10 20", "= ")`` gives ``["GridCornerUL", "10", "20"]``.
    """
    if not delimiters:
        return [text] if text else []
    pattern = "[" + re.escape(delimiters) + "]+"
    return [tok for tok in re.split(pattern, text) if tok]


def token_ends_with(token: str, suffix: str) -> int:
    """
    Return the position where ``suffix`` starts in ``token``, or 0 if it does not end with it.

    At least one character must precede the suffix: a token equal to the
    suffix does not count.
    """
    if len(token) <= len(suffix):
        return 0
    start = len(token) - len(suffix)
    return start if token[start:] == suffix else 0


def find_chip_name(text: str) -> Optional[str]:
    """Chip (CDF) name: the first whitespace token ending in ``.1sq``, suffix removed."""
    for tok in tokenize(text, " \t\r\n"):
        end = token_ends_with(tok, CHIP_NAME_SUFFIX)
        if end > 0:
            return tok[:end]
    return None


def value_after_equals(line: str) -> str:
    """``"Key=value\\r\\n"`` -> ``"value"``; empty when the line has no ``=``."""
    _, sep, value = line.partition("=")
    return value.rstrip("\r\n") if sep else ""


def parse_int(text: str) -> int:
    """Integer parse that, like ``atoi``, reads the leading number and ignores trailing junk."""
    m = re.match(r"\s*([-+]?\d+)", text)
    return int(m.group(1)) if m else 0


def parse_grid_corner(line: str) -> Tuple[int, int]:
    """``"GridCornerUL=218 231"`` -> ``(218, 231)``."""
    toks = tokenize(line.rstrip("\r\n"), "= ")
    x = parse_int(toks[1]) if len(toks) > 1 else 0
    y = parse_int(toks[2]) if len(toks) > 2 else 0
    return x, y


def extract_scan_date(dat_header: str) -> str:
    """Date and time stamp embedded in a DatHeader (``MM/DD/YY hh:mm:ss``), or empty."""
    m = _SCAN_DATE.search(dat_header or "")
    return m.group(0) if m else ""


def chip_name_matches(candidate: str, reference: str) -> bool:
    """Case-insensitive prefix match on the reference name's length."""
    n = len(reference)
    return candidate[:n].lower() == reference.lower()
