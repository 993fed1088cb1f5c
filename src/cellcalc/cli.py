"""Command-line interface for cellcalc-core."""

from __future__ import annotations

import json
import math
from pathlib import Path

import click

from cellcalc import __version__
from cellcalc.errors import CellcalcError


def _json_number(value: float) -> float | str:
    return value if math.isfinite(value) else str(value)


def _parse_cells(items: tuple[str, ...]) -> dict[str, float]:
    cells: dict[str, float] = {}
    for item in items:
        if "=" not in item:
            raise click.ClickException(f"Invalid --cell format: {item!r}. Use LABEL=NUMBER.")
        label, raw = item.split("=", 1)
        try:
            cells[label.strip()] = float(raw)
        except ValueError:
            raise click.ClickException(f"Invalid --cell value for {label!r}: {raw!r}")
    return cells


def _load_project(project: str | None):
    """Load config and catalog; attach the event sink only for an explicit project."""
    from cellcalc.logging import EventType, emit_info, reset_sink, set_project_dir
    from cellcalc.project import DEFAULT_CONFIG, load_config, load_error_catalog

    if project is None:
        reset_sink()
        config = dict(DEFAULT_CONFIG)
        return config, load_error_catalog(config)

    project_dir = Path(project)
    try:
        config = load_config(project_dir)
        catalog = load_error_catalog(config)
        set_project_dir(project_dir)
    except CellcalcError as e:
        raise click.ClickException(str(e))
    emit_info(
        EventType.config_loaded,
        f"Loaded config from {project_dir}",
        {"error_messages": config.get("error_messages") or {}},
    )
    return config, catalog


@click.group()
@click.version_option(version=__version__, prog_name="cellcalc")
def main() -> None:
    """cellcalc -- spreadsheet cell formula evaluator."""


# ---------------------------------------------------------------------------
# eval
# ---------------------------------------------------------------------------


@main.command("eval", context_settings={"ignore_unknown_options": True})
@click.argument("tokens", nargs=-1, type=click.UNPROCESSED)
@click.option("--cell", "cells", multiple=True, help="Seed a cell as LABEL=NUMBER.")
@click.option("--project", default=None, type=click.Path(exists=True, file_okay=False), help="Project directory (enables config and event logging)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def eval_cmd(tokens: tuple[str, ...], cells: tuple[str, ...], project: str | None, as_json: bool) -> None:
    """Evaluate one formula given as separate TOKENS.

    Example: cellcalc eval --cell A1=4 -- 3 + A1 '*' 2
    """
    from cellcalc.formulas import evaluate_formula
    from cellcalc.logging import EventType, emit_error, emit_info
    from cellcalc.sheet import SheetMemory

    _, catalog = _load_project(project)

    memory = SheetMemory()
    try:
        for label, value in _parse_cells(cells).items():
            memory.set_cell(label, [repr(value)], value)
    except CellcalcError as e:
        raise click.ClickException(str(e))

    outcome = evaluate_formula(list(tokens), memory, catalog)
    context = {"formula": list(tokens), "error": outcome.error}
    if outcome.ok:
        emit_info(EventType.eval_completed, "Formula evaluated", context)
    else:
        emit_error(
            EventType.eval_error,
            f"Formula error: {outcome.error}",
            context,
            error_code=outcome.error_kind.value if outcome.error_kind else None,
        )

    if as_json:
        click.echo(json.dumps({
            "tokens": list(tokens),
            "value": _json_number(outcome.value),
            "last_result": _json_number(outcome.last_result),
            "error": outcome.error,
            "error_kind": outcome.error_kind.value if outcome.error_kind else None,
        }, indent=2))
        return

    from cellcalc.calculation import format_value

    if outcome.ok:
        click.echo(format_value(outcome.value))
    else:
        click.echo(f"{outcome.error} (value: {format_value(outcome.value)})")


# ---------------------------------------------------------------------------
# recalc
# ---------------------------------------------------------------------------


@main.command()
@click.argument("sheet_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--project", default=None, type=click.Path(exists=True, file_okay=False), help="Project directory (enables config and event logging)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def recalc(sheet_file: str, project: str | None, as_json: bool) -> None:
    """Recalculate every cell of SHEET_FILE and print the results."""
    from cellcalc.calculation import SheetCalculator
    from cellcalc.project import load_sheet

    config, catalog = _load_project(project)
    try:
        memory = load_sheet(Path(sheet_file), config)
    except CellcalcError as e:
        raise click.ClickException(str(e))

    calc = SheetCalculator(memory, catalog)
    calc.recalculate()

    if as_json:
        out = {
            cell.label: {
                "value": _json_number(cell.value),
                "error": cell.error,
                "display": calc.display_value(cell.label),
            }
            for cell in memory
        }
        click.echo(json.dumps(out, indent=2))
        return

    for cell in memory:
        click.echo(f"  {cell.label:8s} {calc.display_value(cell.label)}")


# ---------------------------------------------------------------------------
# events
# ---------------------------------------------------------------------------


@main.command()
@click.option("--project", default=".", type=click.Path(exists=True, file_okay=False), help="Project directory.")
@click.option("--level", default=None, type=click.Choice(["info", "warning", "error"]), help="Filter by level.")
@click.option("--type", "event_type", default=None, help="Filter by event type.")
@click.option("--label", default=None, help="Filter by cell label.")
@click.option("--limit", default=50, show_default=True, help="Maximum events to show.")
def events(project: str, level: str | None, event_type: str | None, label: str | None, limit: int) -> None:
    """Show recent events, most recent first, as JSON."""
    from cellcalc.logging import EventSink

    sink = EventSink(Path(project))
    rows = sink.read_global(level=level, event_type=event_type, label=label, limit=limit)
    click.echo(json.dumps(rows, indent=2))
