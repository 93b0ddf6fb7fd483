"""Helpers for safe debug logging.

Everything that flows through the inspector comes out of a *secure* store,
so stored values are secrets by definition.  This module redacts them (and
the usual credential-looking keys) before DEBUG logs are emitted.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

_SENSITIVE_VALUE_KEYS: frozenset[str] = frozenset(
    {
        "password",
        "token",
        "accesstoken",
        "refreshtoken",
        "authorization",
        "cookie",
        "secret",
        # Stored values and whole snapshot maps
        "value",
        "storagedata",
        "entries",
    }
)


def redact_for_log(
    value: Any,
    *,
    max_string: int = 512,
    reveal_values: bool = False,
    _depth: int = 0,
) -> Any:
    """Return a redacted copy of *value* suitable for debug logs.

    Snapshot maps keep their keys but every stored value is masked, so a
    log still shows *which* entries changed.  ``reveal_values=True`` skips
    masking for local debugging sessions.
    """
    if _depth > 20:
        return "<max-depth>"

    if value is None:
        return None

    if isinstance(value, str):
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        return value

    if isinstance(value, (int, float, bool)):
        return value

    if isinstance(value, bytes):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        redacted: dict[str, Any] = {}
        for k, v in value.items():
            key = str(k)
            lowered = key.lower()
            if reveal_values or lowered not in _SENSITIVE_VALUE_KEYS:
                redacted[key] = redact_for_log(
                    v, max_string=max_string, reveal_values=reveal_values, _depth=_depth + 1
                )
            elif isinstance(v, Mapping) and lowered in {"storagedata", "entries"}:
                redacted[key] = {str(entry_key): "<redacted>" for entry_key in v}
            elif v is None:
                redacted[key] = None
            else:
                redacted[key] = "<redacted>"
        return redacted

    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return [
            redact_for_log(v, max_string=max_string, reveal_values=reveal_values, _depth=_depth + 1) for v in value
        ]

    # Fallback: represent unknown objects without dumping internals.
    return repr(value)
