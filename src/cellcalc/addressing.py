"""A1-style cell label helpers."""

from __future__ import annotations

import re

from cellcalc.errors import CellLabelError

# One to three upper-case column letters, then a row number starting at 1.
_LABEL_RE = re.compile(r"^([A-Z]{1,3})([1-9]\d*)$")


def is_valid_cell_label(label: str) -> bool:
    """True if *label* is a syntactically valid cell label (``A1``, ``AB12``)."""
    return bool(_LABEL_RE.match(label))


def col_letter_to_index(letters: str) -> int:
    """Convert column letter(s) to 0-based index.  A=0, B=1, ..., Z=25, AA=26."""
    idx = 0
    for ch in letters:
        idx = idx * 26 + (ord(ch) - ord("A") + 1)
    return idx - 1


def index_to_col_letter(idx: int) -> str:
    """Convert 0-based column index to letter(s).  0=A, 25=Z, 26=AA."""
    result = ""
    n = idx + 1
    while n > 0:
        n, rem = divmod(n - 1, 26)
        result = chr(65 + rem) + result
    return result


def parse_label(label: str) -> tuple[int, int]:
    """Parse 'A1' -> (row_0based, col_0based).

    Raises CellLabelError on bad label.
    """
    m = _LABEL_RE.match(label)
    if not m:
        raise CellLabelError(label)
    col = col_letter_to_index(m.group(1))
    row = int(m.group(2)) - 1
    return row, col


def make_label(row: int, col: int) -> str:
    """Build cell label from 0-based row/col."""
    return f"{index_to_col_letter(col)}{row + 1}"
