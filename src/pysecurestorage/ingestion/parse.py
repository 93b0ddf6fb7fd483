"""Lenient parsing of snapshot and update events.

Neither entry point raises: malformed payloads become placeholder models
(``device_id == "error_parsing"``) so the reconciler always receives a
well-typed value.
"""

from __future__ import annotations

import logging
from typing import Any

from pysecurestorage.ingestion.normalize import EventKind, classify_event_kind, decode_payload
from pysecurestorage.models.snapshot import StorageSnapshot
from pysecurestorage.models.update import StorageUpdate

_logger = logging.getLogger(__name__)


def parse_snapshot(raw: Any) -> StorageSnapshot:
    """Parse a ``SecureStorage`` payload (dict, JSON text or bytes)."""
    return StorageSnapshot.from_event(decode_payload(raw))


def parse_update(raw: Any) -> StorageUpdate:
    """Parse a ``SecureStorageUpdate`` payload (dict, JSON text or bytes)."""
    return StorageUpdate.from_event(decode_payload(raw))


def parse_event(kind: str, raw: Any) -> StorageSnapshot | StorageUpdate | None:
    """Parse a channel event by kind.  Unrelated kinds return ``None``."""
    classified = classify_event_kind(kind)
    if classified is None:
        _logger.debug("Ignoring channel event kind=%s", kind)
        return None
    if classified == EventKind.SNAPSHOT:
        return parse_snapshot(raw)
    return parse_update(raw)
