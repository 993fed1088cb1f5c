"""Evaluation of tokenized arithmetic cell formulas.

Public API::

    from cellcalc.formulas import FormulaEvaluator, evaluate_formula
"""

from cellcalc.formulas.errors import DEFAULT_CATALOG, ErrorCatalog, ErrorKind
from cellcalc.formulas.evaluator import (
    CellLookup,
    EvaluationResult,
    FormulaEvaluator,
    evaluate_formula,
    get_cell_value,
)
from cellcalc.formulas.tokens import TokenKind, classify_token, is_number

__all__ = [
    "DEFAULT_CATALOG",
    "CellLookup",
    "ErrorCatalog",
    "ErrorKind",
    "EvaluationResult",
    "FormulaEvaluator",
    "TokenKind",
    "classify_token",
    "evaluate_formula",
    "get_cell_value",
    "is_number",
]
