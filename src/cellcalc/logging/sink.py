"""Filesystem NDJSON event sink with concurrency-safe appends.

Events are appended as one JSON line per event.  Two log destinations:

- ``logs/events.ndjson``  -- global event log
- ``logs/recalc/<recalc_id>.ndjson``  -- per-recalculation log

Writes use ``json.dumps(sort_keys=True)`` for deterministic output.
Non-finite floats (``inf``, ``nan``) are written as strings so every
line stays valid JSON.

Concurrency safety:

- Each append acquires an exclusive ``fcntl.flock`` on the target file.
- Reads acquire a shared lock.
- On platforms without ``fcntl`` (Windows), locking is skipped.
"""

from __future__ import annotations

import json
import math
import os
import re
from pathlib import Path
from typing import Any

from cellcalc.logging.events import CellcalcEvent

try:
    import fcntl

    _HAS_FCNTL = True
except ImportError:
    _HAS_FCNTL = False

_SAFE_ID_RE = re.compile(r"^[A-Za-z0-9_\-]+$")

# Default tail-read size (2 MB)
_DEFAULT_TAIL_BYTES = 2 * 1024 * 1024


def _json_safe(v: Any) -> Any:
    if isinstance(v, float) and not math.isfinite(v):
        return str(v)
    if isinstance(v, dict):
        return {k: _json_safe(item) for k, item in v.items()}
    if isinstance(v, list):
        return [_json_safe(item) for item in v]
    return v


class EventSink:
    """Append-only NDJSON log writer with file locking.

    The ``logs`` directory is created on the first write, not before.
    """

    def __init__(self, project_dir: Path, *, fsync: bool = False, tail_bytes: int | None = None) -> None:
        self.logs_dir = project_dir / "logs"
        self._fsync = fsync
        self._tail_bytes = tail_bytes if tail_bytes is not None else _DEFAULT_TAIL_BYTES

    def write(self, event: CellcalcEvent, *, recalc_id: str | None = None) -> None:
        """Append *event* to the global log and optionally a per-recalc log."""
        payload = _json_safe(event.model_dump())
        line = json.dumps(payload, sort_keys=True, default=str) + "\n"

        self._append(self.logs_dir / "events.ndjson", line)

        if recalc_id and _SAFE_ID_RE.match(recalc_id):
            self._append(self.logs_dir / "recalc" / f"{recalc_id}.ndjson", line)

    # ------------------------------------------------------------------
    # Query helpers (used by the CLI)
    # ------------------------------------------------------------------

    def read_global(
        self,
        *,
        level: str | None = None,
        event_type: str | None = None,
        label: str | None = None,
        recalc_id: str | None = None,
        limit: int = 200,
    ) -> list[dict[str, Any]]:
        """Read events from the global log, most-recent-first, with filters."""
        limit = min(limit, 2000)

        events = self._read_ndjson(self.logs_dir / "events.ndjson")

        if level:
            events = [e for e in events if e.get("level") == level]
        if event_type:
            events = [e for e in events if e.get("event_type") == event_type]
        if label:
            events = [e for e in events if e.get("context", {}).get("label") == label]
        if recalc_id:
            events = [
                e for e in events
                if e.get("context", {}).get("recalc_id") == recalc_id
            ]

        events.reverse()
        return events[:limit]

    def read_recalc_log(self, recalc_id: str) -> list[dict[str, Any]]:
        """Read all events for a specific recalculation."""
        if not _SAFE_ID_RE.match(recalc_id):
            return []
        return self._read_ndjson(self.logs_dir / "recalc" / f"{recalc_id}.ndjson")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _append(self, path: Path, line: str) -> None:
        """Append a single line to *path* under an exclusive lock."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            _lock(f, exclusive=True)
            f.write(line)
            f.flush()
            if self._fsync:
                os.fsync(f.fileno())

    def _read_ndjson(self, path: Path) -> list[dict[str, Any]]:
        """Read the tail of an NDJSON file, skipping unparseable lines."""
        if not path.exists():
            return []

        with open(path, "rb") as f:
            _lock(f, exclusive=False)
            size = os.fstat(f.fileno()).st_size
            if size > self._tail_bytes:
                f.seek(size - self._tail_bytes)
                data = f.read()
                # Partial first line
                data = data[data.find(b"\n") + 1:]
            else:
                data = f.read()

        events: list[dict[str, Any]] = []
        for line in data.decode("utf-8", errors="replace").splitlines():
            line = line.strip()
            if not line:
                continue
            try:
                events.append(json.loads(line))
            except json.JSONDecodeError:
                continue
        return events


def _lock(f: Any, *, exclusive: bool) -> None:
    # Released when the file is closed.
    if _HAS_FCNTL:
        fcntl.flock(f.fileno(), fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)
