"""Project-level configuration and sheet file loading."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from cellcalc.errors import CellLabelError, ConfigError, SheetFileError
from cellcalc.formulas.errors import ErrorCatalog
from cellcalc.sheet import SheetMemory

CONFIG_FILENAME = "cellcalc.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "error_messages": {},
    "n_rows": 1000,
    "n_cols": 26,
    "logging_enabled": True,
    "logging_fsync": False,
    "logging_tail_bytes": 2_097_152,  # 2 MB
}


def load_config(project_dir: Path) -> dict[str, Any]:
    """Load project configuration from ``cellcalc.yaml``, with defaults.

    Args:
        project_dir: Root of the cellcalc project.

    Returns:
        Merged configuration dict.

    Raises:
        ConfigError: If the file is not a YAML mapping or a setting has
            the wrong type.
    """
    config = dict(DEFAULT_CONFIG)
    config_path = project_dir / CONFIG_FILENAME
    if config_path.exists():
        try:
            user_config = yaml.safe_load(config_path.read_text()) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"{config_path}: {exc}") from exc
        if not isinstance(user_config, dict):
            raise ConfigError(f"{config_path}: expected a mapping at top level")
        config.update(user_config)

        for key in ("logging_enabled", "logging_fsync"):
            if not isinstance(config[key], bool):
                raise ConfigError(f"{config_path}: {key} must be true or false")
        for key in ("n_rows", "n_cols", "logging_tail_bytes"):
            if not _is_positive_int(config[key]):
                raise ConfigError(f"{config_path}: {key} must be a positive integer")
    return config


def _is_positive_int(value: Any) -> bool:
    # YAML booleans are ints too.
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def load_error_catalog(config: dict[str, Any]) -> ErrorCatalog:
    """Build the error message catalog from the ``error_messages`` block.

    Raises:
        ConfigError: On unknown keys or messages that are empty or not distinct.
    """
    overrides = config.get("error_messages") or {}
    if not isinstance(overrides, dict):
        raise ConfigError("error_messages must be a mapping")
    try:
        return ErrorCatalog(**overrides)
    except ValidationError as exc:
        raise ConfigError(f"Invalid error_messages: {exc}") from exc


def load_sheet(path: Path, config: dict[str, Any] | None = None) -> SheetMemory:
    """Load a sheet file into a fresh :class:`SheetMemory`.

    The file holds a ``cells`` mapping from label to token list::

        cells:
          A1: ["3"]
          B1: ["A1", "*", "2"]

    Values and errors are left blank; run a recalculation to fill them.

    Raises:
        SheetFileError: If the file shape, a label, or a token list is invalid.
    """
    cfg = config or DEFAULT_CONFIG
    try:
        sheet_def = yaml.safe_load(path.read_text()) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise SheetFileError(str(exc), path=str(path)) from exc

    if not isinstance(sheet_def, dict) or not isinstance(sheet_def.get("cells", {}), dict):
        raise SheetFileError("expected a 'cells' mapping", path=str(path))

    n_rows = sheet_def.get("n_rows", cfg.get("n_rows", 1000))
    n_cols = sheet_def.get("n_cols", cfg.get("n_cols", 26))
    for key, value in (("n_rows", n_rows), ("n_cols", n_cols)):
        if not _is_positive_int(value):
            raise SheetFileError(f"{key} must be a positive integer", path=str(path))

    memory = SheetMemory(n_rows=n_rows, n_cols=n_cols)
    for label, tokens in (sheet_def.get("cells") or {}).items():
        if tokens is None:
            tokens = []
        if not isinstance(tokens, list):
            raise SheetFileError(f"cell {label}: tokens must be a list", path=str(path))
        # YAML reads bare 3 as int; tokens are strings.
        if any(isinstance(t, bool) or not isinstance(t, (str, int, float)) for t in tokens):
            raise SheetFileError(
                f"cell {label}: tokens must be strings or numbers", path=str(path)
            )
        formula = [str(t) for t in tokens]
        try:
            memory.set_formula(str(label), formula)
        except CellLabelError as exc:
            raise SheetFileError(str(exc), path=str(path)) from exc
    return memory


def dump_sheet(memory: SheetMemory) -> str:
    """Serialize the formulas of *memory* back to sheet-file YAML."""
    sheet_def = {
        "n_rows": memory.n_rows,
        "n_cols": memory.n_cols,
        "cells": {cell.label: list(cell.formula) for cell in memory},
    }
    return yaml.dump(sheet_def, sort_keys=False)
