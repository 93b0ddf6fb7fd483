"""Full-snapshot event model."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import Field, field_validator

from pysecurestorage._constants import (
    ERROR_DEVICE_ID,
    ERROR_DEVICE_NAME,
    UNKNOWN_DEVICE_ID,
    UNKNOWN_DEVICE_NAME,
)
from pysecurestorage.models._base import EventTimestamp, InspectorBaseModel, lenient_parse, utcnow

_logger = logging.getLogger(__name__)


class StorageSnapshot(InspectorBaseModel):
    """Complete contents of one device's secure store at a point in time."""

    entries: dict[str, str | None] = Field(default_factory=dict, alias="storageData")
    """Stored key/value pairs.  ``None`` values are kept as-is."""

    device_id: str = UNKNOWN_DEVICE_ID
    """Opaque identifier of the producing device."""

    device_name: str = UNKNOWN_DEVICE_NAME
    """Human-readable device label."""

    timestamp: EventTimestamp = Field(default_factory=utcnow)
    """When the snapshot was captured (or last patched)."""

    @field_validator("entries", mode="before")
    @classmethod
    def _coerce_entries(cls, value: Any) -> dict[str, str | None]:
        # A non-object storageData is treated as "no data", not a parse failure.
        if not isinstance(value, Mapping):
            return {}
        return {str(key): None if item is None else str(item) for key, item in value.items()}

    @property
    def is_error(self) -> bool:
        """Whether this is the placeholder produced for an unparseable payload."""
        return self.device_id == ERROR_DEVICE_ID

    @classmethod
    def error_placeholder(cls) -> StorageSnapshot:
        return cls(
            entries={"error": "Failed to parse storage data"},
            device_id=ERROR_DEVICE_ID,
            device_name=ERROR_DEVICE_NAME,
            timestamp=utcnow(),
        )

    @classmethod
    def from_event(cls, data: Any) -> StorageSnapshot:
        """Build a snapshot from a ``SecureStorage`` event payload.

        Never raises: malformed input yields :meth:`error_placeholder`.
        """
        return lenient_parse(
            cls,
            data,
            cls.error_placeholder,
            on_error=lambda exc: _logger.debug("Snapshot payload parse failure: %s", exc, exc_info=True),
        )
