"""Token classification predicates.

Formulas arrive already split into string tokens; nothing here lexes text.
"""

from __future__ import annotations

import math
from enum import Enum

from cellcalc.addressing import is_valid_cell_label

OPERATORS = ("+", "-", "*", "/")
ADDITIVE_OPERATORS = ("+", "-")
MULTIPLICATIVE_OPERATORS = ("*", "/")
OPEN_PAREN = "("
CLOSE_PAREN = ")"


class TokenKind(str, Enum):
    number = "number"
    cell_ref = "cell_ref"
    operator = "operator"
    paren = "paren"
    unknown = "unknown"


def is_number(token: object) -> bool:
    """True if *token* converts to a finite-or-infinite decimal number.

    Conversion is locale independent (``float``): ``inf`` and ``Infinity``
    count as numbers, blank tokens do not.  ``NaN`` spellings and Python's
    digit-group underscores are rejected.
    """
    if not isinstance(token, str) or "_" in token:
        return False
    try:
        value = float(token)
    except ValueError:
        return False
    return not math.isnan(value)


def to_number(token: str) -> float:
    """Convert a token accepted by :func:`is_number`."""
    return float(token)


def is_operator(token: object) -> bool:
    return token in OPERATORS


def is_paren(token: object) -> bool:
    return token in (OPEN_PAREN, CLOSE_PAREN)


def is_cell_reference(token: object) -> bool:
    return isinstance(token, str) and is_valid_cell_label(token)


def classify_token(token: object) -> TokenKind:
    """Classify a token; numbers win over cell labels."""
    if is_number(token):
        return TokenKind.number
    if is_cell_reference(token):
        return TokenKind.cell_ref
    if is_operator(token):
        return TokenKind.operator
    if is_paren(token):
        return TokenKind.paren
    return TokenKind.unknown
