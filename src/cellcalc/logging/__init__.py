"""Structured event logging for cellcalc.

Provides a unified event schema, filesystem NDJSON sink, and safe
emit helpers that never raise uncaught exceptions.
"""

from cellcalc.logging.events import (
    CellcalcEvent,
    EventLevel,
    EventType,
    emit,
    emit_error,
    emit_info,
    emit_warning,
    get_sink,
    make_recalc_event,
    reset_sink,
    set_project_dir,
    truncate_context,
)
from cellcalc.logging.sink import EventSink

__all__ = [
    "CellcalcEvent",
    "EventLevel",
    "EventSink",
    "EventType",
    "emit",
    "emit_error",
    "emit_info",
    "emit_warning",
    "get_sink",
    "make_recalc_event",
    "reset_sink",
    "set_project_dir",
    "truncate_context",
]
