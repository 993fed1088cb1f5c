"""Exception types raised outside the formula evaluator core.

The evaluator never raises for formula content; it latches a catalog
message instead (see ``cellcalc.formulas.errors``).
"""

from __future__ import annotations


class CellcalcError(Exception):
    """Base class for all cellcalc exceptions."""


class ConfigError(CellcalcError):
    """Invalid project configuration."""


class CellLabelError(CellcalcError):
    """A string that is not a valid cell label was used as one.

    Attributes:
        label: The rejected label.
    """

    def __init__(self, label: str) -> None:
        self.label = label
        super().__init__(f"Invalid cell label: {label!r}")


class SheetFileError(CellcalcError):
    """Malformed sheet definition file.

    Attributes:
        path: The offending file, if known.
    """

    def __init__(self, message: str, path: str | None = None) -> None:
        self.path = path
        full = message
        if path is not None:
            full = f"{path}: {message}"
        super().__init__(full)
