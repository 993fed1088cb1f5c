"""cellcalc -- recursive-descent evaluator for spreadsheet cell formulas."""

__version__ = "0.1.0"
