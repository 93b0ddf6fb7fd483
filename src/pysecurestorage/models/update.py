"""Point-update event model."""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import Any

from pydantic import Field, field_validator

from pysecurestorage._constants import (
    ERROR_DEVICE_ID,
    ERROR_DEVICE_NAME,
    UNKNOWN_DEVICE_ID,
    UNKNOWN_DEVICE_NAME,
    UNKNOWN_KEY,
)
from pysecurestorage.models._base import EventTimestamp, InspectorBaseModel, lenient_parse, utcnow

_logger = logging.getLogger(__name__)


class StorageOperation(StrEnum):
    """Operation carried by a ``SecureStorageUpdate`` event.

    Strings without a mapped member resolve to ``UNKNOWN`` instead of
    raising, so a newer producer never breaks an older inspector.
    """

    SET = "set"
    DELETE = "delete"
    CLEAR = "clear"
    DELETE_ALL = "deleteAll"
    ERROR = "error"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value: object) -> StorageOperation:
        return cls.UNKNOWN

    @property
    def empties_store(self) -> bool:
        return self in (StorageOperation.CLEAR, StorageOperation.DELETE_ALL)

    @property
    def label(self) -> str:
        """Past-tense description used by inspector views."""
        return _OPERATION_LABELS.get(self, "Unknown operation")


_OPERATION_LABELS: dict[StorageOperation, str] = {
    StorageOperation.SET: "Updated",
    StorageOperation.DELETE: "Deleted",
    StorageOperation.CLEAR: "Cleared",
    StorageOperation.DELETE_ALL: "Deleted all",
}


class StorageUpdate(InspectorBaseModel):
    """A single change to one device's secure store."""

    key: str = UNKNOWN_KEY
    value: str | None = None
    operation: StorageOperation = StorageOperation.SET
    device_id: str = UNKNOWN_DEVICE_ID
    device_name: str = UNKNOWN_DEVICE_NAME
    timestamp: EventTimestamp = Field(default_factory=utcnow)

    @field_validator("operation", mode="before")
    @classmethod
    def _resolve_operation(cls, value: Any) -> Any:
        if isinstance(value, str):
            return StorageOperation(value)
        return value

    @property
    def is_error(self) -> bool:
        return self.operation == StorageOperation.ERROR

    @classmethod
    def error_placeholder(cls) -> StorageUpdate:
        return cls(
            key=ERROR_DEVICE_ID,
            value="Failed to parse update data",
            operation=StorageOperation.ERROR,
            device_id=ERROR_DEVICE_ID,
            device_name=ERROR_DEVICE_NAME,
            timestamp=utcnow(),
        )

    @classmethod
    def from_event(cls, data: Any) -> StorageUpdate:
        """Build an update from a ``SecureStorageUpdate`` event payload.

        Never raises: malformed input yields :meth:`error_placeholder`.
        """
        return lenient_parse(
            cls,
            data,
            cls.error_placeholder,
            on_error=lambda exc: _logger.debug("Update payload parse failure: %s", exc, exc_info=True),
        )
