"""Presentation helpers for inspector front-ends (CLI, TUI, web)."""

from __future__ import annotations

import json
from datetime import UTC, datetime

from pysecurestorage.models.snapshot import StorageSnapshot


def is_json_value(value: str | None) -> bool:
    """True when *value* parses as a JSON object or array."""
    if not value:
        return False
    try:
        parsed = json.loads(value)
    except ValueError:
        return False
    return isinstance(parsed, (dict, list))


def format_value(value: str | None) -> str:
    """Pretty-print JSON object/array values; return anything else unchanged."""
    if value is None:
        return "null"
    if not is_json_value(value):
        return value
    return json.dumps(json.loads(value), indent=2, ensure_ascii=False)


def format_relative_time(ts: datetime, now: datetime | None = None) -> str:
    """``"12s ago"``, ``"5m ago"``, ``"3h ago"``, then ``"d/m H:MM"`` after a day."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    now = now or datetime.now(UTC)
    seconds = int((now - ts).total_seconds())
    if seconds < 60:
        return f"{max(seconds, 0)}s ago"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return f"{ts.day}/{ts.month} {ts.hour}:{ts.minute:02d}"


def visible_entries(snapshot: StorageSnapshot, hide_null_values: bool = False) -> list[tuple[str, str | None]]:
    """Entries sorted by key, optionally without ``None`` values."""
    return sorted(
        (key, value) for key, value in snapshot.entries.items() if not (hide_null_values and value is None)
    )
