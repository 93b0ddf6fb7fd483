"""Inspector → producer command dispatch.

Every call is fire-and-forget: returning normally means the message was
handed to a producer endpoint, not that the producer applied it.  The
producer confirms by posting an update event, which reaches the
inspector through the normal reconciliation path.
"""

from __future__ import annotations

import logging
from typing import Any

from pysecurestorage._constants import COMMAND_EXTENSION, REFRESH_EXTENSION
from pysecurestorage._redact import redact_for_log
from pysecurestorage.channel import EndpointLocator
from pysecurestorage.exceptions import DispatchError, EndpointNotFoundError, PartialRenameError
from pysecurestorage.models.command import CommandOperation, StorageCommand

_logger = logging.getLogger(__name__)


class CommandDispatcher:
    """Translate user intents into outbound command messages.

    Failures raise :class:`DispatchError` to the caller and are never
    retried here; retry policy belongs to whoever initiated the action.
    """

    def __init__(self, locator: EndpointLocator, *, log_values: bool = False) -> None:
        self._locator = locator
        self._log_values = log_values

    async def edit(self, key: str, value: str | None) -> None:
        """Write *value* under *key* (insert or overwrite)."""
        await self.send(StorageCommand(operation=CommandOperation.EDIT, key=key, value=value))

    async def create(self, key: str, value: str | None) -> None:
        """Alias of :meth:`edit`; the producer does not distinguish new keys."""
        await self.edit(key, value)

    async def delete(self, key: str) -> None:
        await self.send(StorageCommand(operation=CommandOperation.DELETE, key=key))

    async def delete_all(self) -> None:
        await self.send(StorageCommand(operation=CommandOperation.DELETE_ALL))

    async def rename(self, old_key: str, new_key: str, current_value: str | None) -> None:
        """Move a value to a new key as ``delete(old_key)`` then ``edit(new_key)``.

        The two steps are not atomic.  If the delete goes out but the edit
        does not, the value is gone from the store and
        :class:`PartialRenameError` is raised so the caller can tell the
        user exactly what was lost.
        """
        # Validate both commands before sending either.
        delete_cmd = StorageCommand(operation=CommandOperation.DELETE, key=old_key)
        edit_cmd = StorageCommand(operation=CommandOperation.EDIT, key=new_key, value=current_value)

        await self.send(delete_cmd)
        try:
            await self.send(edit_cmd)
        except DispatchError as exc:
            raise PartialRenameError(
                f"Renamed {old_key!r} -> {new_key!r} only partially: old key deleted, new key not written ({exc})",
                old_key=old_key,
                new_key=new_key,
            ) from exc

    async def request_snapshot(self) -> None:
        """Ask the producer to re-post its full state.  Idempotent."""
        await self._call(REFRESH_EXTENSION, {}, operation="refresh", key=None)

    async def send(self, command: StorageCommand) -> None:
        await self._call(COMMAND_EXTENSION, command.to_message(), operation=command.operation.value, key=command.key)

    async def _call(self, method: str, args: dict[str, str], *, operation: str, key: str | None) -> dict[str, Any]:
        endpoint = self._locator.find_capable_endpoint({method})
        if endpoint is None:
            raise EndpointNotFoundError(
                f"No producer exposes {method}; is the inspected app running in debug mode?",
                operation=operation,
                key=key,
            )
        _logger.debug(
            "Dispatching %s via endpoint=%s args=%s",
            method,
            endpoint.name,
            redact_for_log(args, reveal_values=self._log_values),
        )
        try:
            return await endpoint.call_extension(method, args)
        except DispatchError:
            raise
        except Exception as exc:
            raise DispatchError(
                f"Failed to send {operation} command: {exc}",
                operation=operation,
                key=key,
            ) from exc
