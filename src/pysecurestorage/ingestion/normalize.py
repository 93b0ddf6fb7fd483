"""Normalization helpers.

Centralizes defensive decoding of debug channel payloads.
"""

from __future__ import annotations

import json
from enum import StrEnum
from typing import Any

from pysecurestorage._constants import SNAPSHOT_EVENT_ALIASES, UPDATE_EVENT_KIND


class EventKind(StrEnum):
    SNAPSHOT = "snapshot"
    UPDATE = "update"


def classify_event_kind(kind: str) -> EventKind | None:
    """Map a channel event kind to the model it carries, or ``None`` to ignore it."""
    if kind in SNAPSHOT_EVENT_ALIASES:
        return EventKind.SNAPSHOT
    if kind == UPDATE_EVENT_KIND:
        return EventKind.UPDATE
    return None


def decode_payload(data: Any) -> Any:
    """Return a JSON object for *data*.

    Dicts pass through.  ``str``/``bytes`` are JSON-decoded.  Anything that
    is not parseable JSON, or decodes to a non-object, becomes ``None`` so
    model validation falls through to the parse placeholder.
    """
    if isinstance(data, dict):
        return data
    if isinstance(data, (bytes, bytearray)):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError:
            return None
    if isinstance(data, str):
        try:
            decoded = json.loads(data)
        except ValueError:
            return None
        return decoded if isinstance(decoded, dict) else None
    return None
