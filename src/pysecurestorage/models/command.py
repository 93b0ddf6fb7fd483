"""Outbound command messages sent from the inspector to the producer."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import model_validator

from pysecurestorage.models._base import InspectorBaseModel


class CommandOperation(StrEnum):
    EDIT = "edit"
    DELETE = "delete"
    DELETE_ALL = "deleteAll"


class StorageCommand(InspectorBaseModel):
    """A single storage mutation request.

    The transport cannot carry ``null``, so :meth:`to_message` omits
    ``value`` (and ``key`` for ``deleteAll``) rather than sending it empty.
    """

    operation: CommandOperation
    key: str | None = None
    value: str | None = None

    @model_validator(mode="after")
    def _require_key(self) -> StorageCommand:
        if self.operation != CommandOperation.DELETE_ALL and not self.key:
            raise ValueError(f"{self.operation.value} command requires a key")
        return self

    def to_message(self) -> dict[str, str]:
        """Wire form: ``{operation, key?, value?}``."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_message(cls, args: dict[str, Any]) -> StorageCommand:
        """Parse a received command.  Raises ``pydantic.ValidationError``."""
        return cls.model_validate(args)
