"""Sheet recalculation driver.

Evaluates every cell formula of a :class:`SheetMemory`, visiting the cells
a formula references before the formula itself, and writes each value and
error back into its cell.  Circular references are not detected: a cell
that is already on the current path is read with whatever it holds.
"""

from __future__ import annotations

import math
import uuid

from cellcalc.formulas.errors import ErrorCatalog
from cellcalc.formulas.evaluator import FormulaEvaluator
from cellcalc.logging.events import (
    EventLevel,
    EventType,
    emit,
    make_recalc_event,
)
from cellcalc.sheet import SheetMemory


def format_value(value: float) -> str:
    """Format a cell value for display: integral floats lose their ``.0``."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == int(value):
        return str(int(value))
    return f"{value:.10g}"


class SheetCalculator:
    """Recalculates cells of a sheet in reference order.

    Usage::

        calc = SheetCalculator(sheet)
        values = calc.recalculate()
        calc.display_value("B1")
    """

    def __init__(self, memory: SheetMemory, catalog: ErrorCatalog | None = None) -> None:
        self._memory = memory
        self._evaluator = FormulaEvaluator(memory, catalog)
        self._done: set[str] = set()
        self._in_progress: set[str] = set()
        self._recalc_id = ""

    @property
    def catalog(self) -> ErrorCatalog:
        return self._evaluator.catalog

    def recalculate(self) -> dict[str, float]:
        """Recalculate every cell with a formula.

        Returns:
            Mapping of label to computed value, in row-major label order.
        """
        labels = self._memory.labels()
        self._begin(labels)
        for label in labels:
            self._visit(label)
        return self._finish(labels)

    def recalculate_cell(self, label: str) -> float:
        """Recalculate *label* and the cells it depends on."""
        self._begin([label])
        self._visit(label)
        self._finish([label])
        return self._memory.get_cell_by_label(label).value

    def display_value(self, label: str) -> str:
        """Error text if the cell has one, otherwise its formatted value."""
        cell = self._memory.get_cell_by_label(label)
        if cell.error:
            return cell.error
        return format_value(cell.value)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _begin(self, labels: list[str]) -> None:
        self._done.clear()
        self._in_progress.clear()
        self._recalc_id = uuid.uuid4().hex[:12]
        emit(
            make_recalc_event(
                EventType.recalc_started,
                EventLevel.info,
                f"Recalculating {len(labels)} cell(s)",
                recalc_id=self._recalc_id,
                extra={"labels": labels},
            ),
            recalc_id=self._recalc_id,
        )

    def _finish(self, labels: list[str]) -> dict[str, float]:
        values: dict[str, float] = {}
        n_errors = 0
        for label in labels:
            cell = self._memory.get_cell_by_label(label)
            values[label] = cell.value
            if cell.error:
                n_errors += 1
        emit(
            make_recalc_event(
                EventType.recalc_completed,
                EventLevel.warning if n_errors else EventLevel.info,
                f"Recalculated {len(self._done)} cell(s), {n_errors} with errors",
                recalc_id=self._recalc_id,
                extra={"n_cells": len(self._done), "n_errors": n_errors},
            ),
            recalc_id=self._recalc_id,
        )
        return values

    def _visit(self, label: str) -> None:
        if label in self._done or label in self._in_progress:
            return
        cell = self._memory.get_cell_by_label(label)
        if not cell.formula:
            cell.value = 0.0
            cell.error = self.catalog.empty_formula
            self._done.add(label)
            return

        self._in_progress.add(label)
        try:
            for ref in cell.references:
                if self._memory.in_grid(ref):
                    self._visit(ref)
            value = self._evaluator.evaluate(cell.formula)
        finally:
            self._in_progress.discard(label)

        cell.value = value
        cell.error = self._evaluator.error
        self._done.add(label)

        if cell.error:
            kind = self._evaluator.error_kind
            emit(
                make_recalc_event(
                    EventType.cell_error,
                    EventLevel.error,
                    f"{label}: {cell.error}",
                    recalc_id=self._recalc_id,
                    label=label,
                    error_code=kind.value if kind is not None else None,
                    extra={"formula": cell.formula},
                ),
                recalc_id=self._recalc_id,
            )
