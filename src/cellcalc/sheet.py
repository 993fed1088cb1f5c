"""In-memory cell store backing formula evaluation."""

from __future__ import annotations

from typing import Iterator, Sequence

from cellcalc.addressing import is_valid_cell_label, make_label, parse_label
from cellcalc.errors import CellLabelError
from cellcalc.formulas.tokens import TokenKind, classify_token


class Cell:
    """One cell: its formula tokens, last computed value, and latched error."""

    def __init__(
        self,
        label: str,
        formula: Sequence[str] = (),
        value: float = 0.0,
        error: str = "",
    ) -> None:
        if not is_valid_cell_label(label):
            raise CellLabelError(label)
        self.label = label
        self.formula: list[str] = list(formula)
        self.value = value
        self.error = error

    @property
    def references(self) -> list[str]:
        """Cell labels mentioned by the formula, in order, without repeats."""
        seen: list[str] = []
        for token in self.formula:
            if classify_token(token) is TokenKind.cell_ref and token not in seen:
                seen.append(token)
        return seen

    def __repr__(self) -> str:
        return f"Cell({self.label!r}, formula={self.formula!r}, value={self.value!r}, error={self.error!r})"


class SheetMemory:
    """A bounded grid of cells addressed by A1-style labels.

    Cells are created on first access, so looking up any in-range label
    returns a blank cell (empty formula, value 0, no error).

    Parameters
    ----------
    n_rows : int
        Number of rows; writes beyond it are rejected.
    n_cols : int
        Number of columns.
    """

    def __init__(self, n_rows: int = 1000, n_cols: int = 26) -> None:
        self.n_rows = n_rows
        self.n_cols = n_cols
        self._cells: dict[str, Cell] = {}

    def in_grid(self, label: str) -> bool:
        """True if *label* addresses a cell inside the grid bounds."""
        row, col = parse_label(label)
        return row < self.n_rows and col < self.n_cols

    def get_cell_by_label(self, label: str) -> Cell:
        """Return the cell at *label*.

        Labels outside the grid read as a detached blank cell.

        Raises:
            CellLabelError: If *label* is malformed.
        """
        cell = self._cells.get(label)
        if cell is not None:
            return cell
        if not self.in_grid(label):
            return Cell(label)
        cell = self._cells[label] = Cell(label)
        return cell

    def _writable(self, label: str) -> Cell:
        if not self.in_grid(label):
            raise CellLabelError(label)
        return self.get_cell_by_label(label)

    def get_cell_by_coords(self, row: int, col: int) -> Cell:
        """Return the cell at 0-based *row*, *col*."""
        return self.get_cell_by_label(make_label(row, col))

    def set_formula(self, label: str, formula: Sequence[str]) -> Cell:
        """Replace the formula of *label*; value and error are left for recalculation."""
        cell = self._writable(label)
        cell.formula = list(formula)
        return cell

    def set_cell(self, label: str, formula: Sequence[str], value: float, error: str = "") -> Cell:
        """Set every field of *label* at once (used to seed computed cells)."""
        cell = self._writable(label)
        cell.formula = list(formula)
        cell.value = value
        cell.error = error
        return cell

    def labels(self) -> list[str]:
        """Labels of all cells that have a non-empty formula, row-major order."""
        populated = [lbl for lbl, c in self._cells.items() if c.formula]
        return sorted(populated, key=parse_label)

    def __contains__(self, label: object) -> bool:
        return label in self._cells and bool(self._cells[label].formula)

    def __iter__(self) -> Iterator[Cell]:
        for label in self.labels():
            yield self._cells[label]

    def __len__(self) -> int:
        return len(self.labels())
