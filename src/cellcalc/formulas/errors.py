"""Error kinds and the message catalog latched by the evaluator."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, model_validator


class ErrorKind(str, Enum):
    empty_formula = "empty_formula"
    invalid_formula = "invalid_formula"
    invalid_cell = "invalid_cell"
    divide_by_zero = "divide_by_zero"


class ErrorCatalog(BaseModel):
    """Human-readable messages latched into ``FormulaEvaluator.error``.

    The text may be localized, but the four messages must stay pairwise
    distinct so that a latched message maps back to exactly one kind.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    empty_formula: str = "#EMPTY!"
    invalid_formula: str = "#ERR"
    invalid_cell: str = "#REF!"
    divide_by_zero: str = "#DIV/0!"

    @model_validator(mode="after")
    def _check_distinct(self) -> "ErrorCatalog":
        messages = [self.message(kind) for kind in ErrorKind]
        if any(not m for m in messages):
            raise ValueError("error messages must be non-empty")
        if len(set(messages)) != len(messages):
            raise ValueError(f"error messages must be distinct: {messages}")
        return self

    def message(self, kind: ErrorKind) -> str:
        """Return the message text for *kind*."""
        return getattr(self, kind.value)

    def kind_of(self, message: str) -> ErrorKind | None:
        """Map a latched message back to its kind, or ``None`` if unknown."""
        for kind in ErrorKind:
            if self.message(kind) == message:
                return kind
        return None


DEFAULT_CATALOG = ErrorCatalog()
