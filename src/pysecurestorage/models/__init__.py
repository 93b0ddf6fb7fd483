"""Data models for debug channel payloads."""

from pysecurestorage.models._base import (
    EventTimestamp,
    InspectorBaseModel,
    parse_event_timestamp,
    to_epoch_millis,
)
from pysecurestorage.models.command import CommandOperation, StorageCommand
from pysecurestorage.models.settings import InspectorSettings
from pysecurestorage.models.snapshot import StorageSnapshot
from pysecurestorage.models.update import StorageOperation, StorageUpdate

__all__ = [
    "CommandOperation",
    "EventTimestamp",
    "InspectorBaseModel",
    "InspectorSettings",
    "StorageCommand",
    "StorageOperation",
    "StorageSnapshot",
    "StorageUpdate",
    "parse_event_timestamp",
    "to_epoch_millis",
]
