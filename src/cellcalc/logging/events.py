"""Unified event schema and module-level emit helpers.

All timestamps use UTC ISO-8601 with ``Z`` suffix.  The ``emit()``
family of functions is safe to call from any context -- failures are
swallowed and reported once on stderr.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

import click
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class EventLevel(str, Enum):
    info = "info"
    warning = "warning"
    error = "error"


class EventType(str, Enum):
    # Single formula evaluation
    eval_completed = "eval_completed"
    eval_error = "eval_error"

    # Sheet recalculation
    recalc_started = "recalc_started"
    recalc_completed = "recalc_completed"
    cell_error = "cell_error"

    # Project
    config_loaded = "config_loaded"


# ---------------------------------------------------------------------------
# Context sanitising
# ---------------------------------------------------------------------------

_MAX_VALUE_LEN = 256
_MAX_LIST_LEN = 64


def truncate_context(context: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of *context* with long strings and lists truncated.

    Formula token lists can be arbitrarily long; events keep the first
    64 items and strings keep their first 256 characters.
    """
    out: dict[str, Any] = {}
    for k, v in context.items():
        out[k] = _truncate_value(v)
    return out


def _truncate_value(v: Any) -> Any:
    if isinstance(v, dict):
        return truncate_context(v)
    if isinstance(v, (list, tuple)):
        items = [_truncate_value(item) for item in v[:_MAX_LIST_LEN]]
        if len(v) > _MAX_LIST_LEN:
            items.append("...[truncated]")
        return items
    if isinstance(v, str) and len(v) > _MAX_VALUE_LEN:
        return v[:_MAX_VALUE_LEN] + "...[truncated]"
    return v


# ---------------------------------------------------------------------------
# Event model
# ---------------------------------------------------------------------------


def _utc_now() -> str:
    """Return current UTC timestamp in ISO-8601 with Z suffix."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class CellcalcEvent(BaseModel):
    """A single structured log event."""

    schema_version: int = 1
    ts: str = Field(default_factory=_utc_now)
    level: EventLevel
    event_type: EventType
    context: dict[str, Any] = Field(default_factory=dict)
    message: str = ""
    error_code: str | None = None


def make_recalc_event(
    event_type: EventType,
    level: EventLevel,
    message: str,
    *,
    recalc_id: str,
    label: str | None = None,
    error_code: str | None = None,
    extra: dict[str, Any] | None = None,
) -> CellcalcEvent:
    """Build an event whose context carries the recalc id and cell label."""
    ctx: dict[str, Any] = {"recalc_id": recalc_id}
    if label is not None:
        ctx["label"] = label
    if extra:
        ctx.update(extra)
    return CellcalcEvent(
        level=level,
        event_type=event_type,
        message=message,
        context=ctx,
        error_code=error_code,
    )


# ---------------------------------------------------------------------------
# Module-level sink reference
# ---------------------------------------------------------------------------

# Set by ``set_project_dir``; ``None`` means events are discarded.
_sink: Any = None  # EventSink | None


def set_project_dir(project_dir: Any) -> None:
    """Configure the module-level event sink for a project directory.

    If it is never called, ``emit()`` silently discards events.  Reads
    ``logging_enabled``, ``logging_fsync`` and ``logging_tail_bytes`` from
    ``cellcalc.yaml``.

    Raises:
        ConfigError: If the project config is invalid.
    """
    global _sink
    from pathlib import Path

    from cellcalc.logging.sink import EventSink
    from cellcalc.project import load_config

    cfg = load_config(Path(project_dir))
    if not cfg["logging_enabled"]:
        _sink = None
        return
    _sink = EventSink(
        Path(project_dir),
        fsync=cfg["logging_fsync"],
        tail_bytes=cfg["logging_tail_bytes"],
    )


def reset_sink() -> None:
    """Detach the module-level sink so later events are discarded."""
    global _sink, _warned
    _sink = None
    _warned = False


def get_sink() -> Any:
    """Return the module-level sink, or None."""
    return _sink


# ---------------------------------------------------------------------------
# Safe emit helpers
# ---------------------------------------------------------------------------

# Only the first failed write per sink is reported.
_warned = False


def emit(event: CellcalcEvent, *, recalc_id: str | None = None) -> None:
    """Write an event to the global log and optionally to a per-recalc log.

    **Never raises.**  The first failure is reported on stderr.
    """
    global _warned
    try:
        sink = get_sink()
        if sink is None:
            return
        event = event.model_copy(update={"context": truncate_context(event.context)})
        sink.write(event, recalc_id=recalc_id)
    except Exception as exc:
        if not _warned:
            _warned = True
            click.echo(f"[cellcalc] event logging failed: {exc}", err=True)


def emit_info(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    recalc_id: str | None = None,
) -> None:
    """Convenience: emit an info-level event."""
    emit(
        CellcalcEvent(
            level=EventLevel.info,
            event_type=event_type,
            message=message,
            context=context or {},
        ),
        recalc_id=recalc_id,
    )


def emit_warning(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    error_code: str | None = None,
    recalc_id: str | None = None,
) -> None:
    """Convenience: emit a warning-level event."""
    emit(
        CellcalcEvent(
            level=EventLevel.warning,
            event_type=event_type,
            message=message,
            context=context or {},
            error_code=error_code,
        ),
        recalc_id=recalc_id,
    )


def emit_error(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    error_code: str | None = None,
    recalc_id: str | None = None,
) -> None:
    """Convenience: emit an error-level event."""
    emit(
        CellcalcEvent(
            level=EventLevel.error,
            event_type=event_type,
            message=message,
            context=context or {},
            error_code=error_code,
        ),
        recalc_id=recalc_id,
    )
