"""Recursive-descent evaluator for tokenized cell formulas.

Grammar (lowest to highest binding)::

    expression := term ( ('+' | '-') term )*
    term       := factor ( ('*' | '/') factor )*
    factor     := NUMBER | CELL_REFERENCE | '(' expression ')'

Errors never raise.  Each production returns an :class:`Outcome` carrying
its value together with the most recent error latched while computing it.
A bad factor or a failing cell reference yields ``0`` and parsing goes on;
a zero divisor halts the whole evaluation with ``inf``.
"""

from __future__ import annotations

import math
from typing import NamedTuple, Protocol, Sequence

from pydantic import BaseModel

from cellcalc.formulas.errors import DEFAULT_CATALOG, ErrorCatalog, ErrorKind
from cellcalc.formulas.tokens import (
    ADDITIVE_OPERATORS,
    CLOSE_PAREN,
    MULTIPLICATIVE_OPERATORS,
    OPEN_PAREN,
    is_cell_reference,
    is_number,
    to_number,
)


# ---------------------------------------------------------------------------
# Cell store protocol
# ---------------------------------------------------------------------------


class CellLike(Protocol):
    """What the evaluator reads from a referenced cell."""

    @property
    def formula(self) -> Sequence[str]: ...

    @property
    def error(self) -> str: ...

    @property
    def value(self) -> float: ...


class CellLookup(Protocol):
    """Protocol for the cell store consulted on cell references."""

    def get_cell_by_label(self, label: str) -> CellLike:
        """Return the cell addressed by *label*."""
        ...


def get_cell_value(
    memory: CellLookup, label: str, catalog: ErrorCatalog = DEFAULT_CATALOG
) -> tuple[float, str]:
    """Read a referenced cell as a ``(value, error)`` pair.

    Returns:
        ``(0, error)`` if the cell carries an error other than the
        empty-formula sentinel, ``(0, invalid_cell)`` if its formula is
        empty, otherwise ``(value, "")``.
    """
    cell = memory.get_cell_by_label(label)
    error = cell.error

    if error != "" and error != catalog.empty_formula:
        return 0.0, error

    if len(cell.formula) == 0:
        return 0.0, catalog.invalid_cell

    return float(cell.value), ""


# ---------------------------------------------------------------------------
# Production results
# ---------------------------------------------------------------------------


class FormulaIssue(NamedTuple):
    """A latched error: its kind (``None`` for foreign text) and message."""

    kind: ErrorKind | None
    message: str


class Outcome(NamedTuple):
    """Value of one grammar production.

    Attributes:
        value: Computed value, with ``0`` substituted for failed factors.
        issue: Most recent error latched inside the production.
        failed: A bad factor, reference error or zero divisor was seen.
            An unmatched ``)`` latches an issue without setting this.
        halted: Division by zero; the value is ``inf`` and nothing more
            is evaluated.
    """

    value: float
    issue: FormulaIssue | None = None
    failed: bool = False
    halted: bool = False


def _then(first: Outcome, second: Outcome, value: float) -> Outcome:
    return Outcome(
        value,
        second.issue or first.issue,
        first.failed or second.failed,
    )


class _Session:
    """Cursor over one formula for the duration of one ``evaluate`` call."""

    def __init__(
        self, tokens: tuple[str, ...], memory: CellLookup, catalog: ErrorCatalog
    ) -> None:
        self.tokens = tokens
        self.pos = 0
        self.memory = memory
        self.catalog = catalog

    @property
    def current(self) -> str | None:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return None

    @property
    def at_end(self) -> bool:
        return self.pos >= len(self.tokens)

    def advance(self) -> None:
        self.pos += 1

    def issue(self, kind: ErrorKind) -> FormulaIssue:
        return FormulaIssue(kind, self.catalog.message(kind))

    def match(self, expected: str) -> FormulaIssue | None:
        """Consume *expected*, or report a mismatch without advancing."""
        if self.current == expected:
            self.advance()
            return None
        return self.issue(ErrorKind.invalid_formula)

    # -- grammar ------------------------------------------------------------

    def expression(self) -> Outcome:
        left = self.term()
        if left.halted:
            return left
        while self.current in ADDITIVE_OPERATORS:
            op = self.current
            self.advance()
            right = self.term()
            if right.halted:
                return right
            if op == "+":
                left = _then(left, right, left.value + right.value)
            else:
                left = _then(left, right, left.value - right.value)
        return left

    def term(self) -> Outcome:
        left = self.factor()
        if left.halted:
            return left
        while self.current in MULTIPLICATIVE_OPERATORS:
            op = self.current
            self.advance()
            right = self.factor()
            if right.halted:
                return right
            if op == "*":
                left = _then(left, right, left.value * right.value)
            elif right.value == 0:
                return Outcome(
                    math.inf,
                    self.issue(ErrorKind.divide_by_zero),
                    failed=True,
                    halted=True,
                )
            else:
                left = _then(left, right, left.value / right.value)
        return left

    def factor(self) -> Outcome:
        token = self.current

        # Numbers are tried before labels.
        if is_number(token):
            self.advance()
            return Outcome(to_number(token))

        if is_cell_reference(token):
            value, error = get_cell_value(self.memory, token, self.catalog)
            self.advance()
            if error:
                issue = FormulaIssue(self.catalog.kind_of(error), error)
                return Outcome(value, issue, failed=True)
            return Outcome(value)

        if token == OPEN_PAREN:
            self.advance()
            inner = self.expression()
            if inner.halted:
                return inner
            mismatch = self.match(CLOSE_PAREN)
            return Outcome(inner.value, mismatch or inner.issue, inner.failed)

        # Cursor stays put; the caller sees the same token next.
        return Outcome(0.0, self.issue(ErrorKind.invalid_formula), failed=True)


# ---------------------------------------------------------------------------
# Public evaluator
# ---------------------------------------------------------------------------


class FormulaEvaluator:
    """Evaluates token sequences against a cell store.

    The instance is reusable; all parse state is reset by each
    :meth:`evaluate` call.  Concurrent callers need their own instance.

    Usage::

        ev = FormulaEvaluator(sheet)
        ev.evaluate(["3", "+", "4", "*", "2"])   # 11.0
        ev.error                                  # ""
    """

    def __init__(self, memory: CellLookup, catalog: ErrorCatalog | None = None) -> None:
        self._memory = memory
        self._catalog = catalog or DEFAULT_CATALOG
        self._error = ""
        self._result = 0.0
        self._last_result = 0.0

    @property
    def catalog(self) -> ErrorCatalog:
        return self._catalog

    def evaluate(self, formula: Sequence[str]) -> float:
        """Evaluate *formula* and return its value.

        The latched error (``""`` if none) is available through
        :attr:`error` afterwards.
        """
        self._error = ""
        self._result = 0.0
        self._last_result = 0.0

        if len(formula) == 0:
            self._error = self._catalog.empty_formula
            return 0.0

        session = _Session(tuple(formula), self._memory, self._catalog)
        outcome = session.expression()

        if outcome.halted:
            self._error = outcome.issue.message
            self._result = math.inf
            self._last_result = math.inf
            return math.inf

        if not session.at_end and not outcome.failed:
            # Complete expression followed by leftover tokens.
            self._error = self._catalog.invalid_formula
            return 0.0

        self._result = outcome.value
        if outcome.issue is None:
            self._last_result = outcome.value
        else:
            self._error = outcome.issue.message
            self._last_result = math.nan
        return self._result

    @property
    def error(self) -> str:
        """Latched error message of the last evaluation, or ``""``."""
        return self._error

    @property
    def error_kind(self) -> ErrorKind | None:
        """Kind of the latched error; ``None`` if none or not a catalog message."""
        if not self._error:
            return None
        return self._catalog.kind_of(self._error)

    @property
    def result(self) -> float:
        return self._result

    @property
    def last_result(self) -> float:
        """``nan`` after a latched token or reference error, ``inf`` after a
        zero divisor, otherwise the same as :attr:`result`."""
        return self._last_result


# ---------------------------------------------------------------------------
# One-shot helper
# ---------------------------------------------------------------------------


class EvaluationResult(BaseModel):
    """Snapshot of a finished evaluation."""

    value: float
    result: float
    last_result: float
    error: str = ""
    error_kind: ErrorKind | None = None

    @property
    def ok(self) -> bool:
        return self.error == ""


def evaluate_formula(
    formula: Sequence[str],
    memory: CellLookup,
    catalog: ErrorCatalog | None = None,
) -> EvaluationResult:
    """Evaluate *formula* once and return value, result and error together.

    Args:
        formula: Token sequence, e.g. ``["A1", "*", "2"]``.
        memory: Cell store used for cell references.
        catalog: Error messages; defaults to :data:`DEFAULT_CATALOG`.
    """
    ev = FormulaEvaluator(memory, catalog)
    value = ev.evaluate(formula)
    return EvaluationResult(
        value=value,
        result=ev.result,
        last_result=ev.last_result,
        error=ev.error,
        error_kind=ev.error_kind,
    )
