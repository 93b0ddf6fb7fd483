"""Producer side: runs inside the inspected application.

:class:`StoragePublisher` posts full snapshots and per-key updates on the
debug channel and exposes a service endpoint that applies inspector
commands to the real store.  It only runs when the host app opts in; it
has no global registration state.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from pysecurestorage._constants import (
    COMMAND_EXTENSION,
    DEFAULT_POLL_INTERVAL,
    REFRESH_EXTENSION,
    SNAPSHOT_EVENT_KIND,
    UNKNOWN_DEVICE_NAME,
    UPDATE_EVENT_KIND,
)
from pysecurestorage.channel import LocalServiceEndpoint, ProducerChannel, Unsubscribe
from pysecurestorage.discovery import KeyDiscovery, PollingKeyDiscovery
from pysecurestorage.models._base import to_epoch_millis, utcnow
from pysecurestorage.models.command import CommandOperation, StorageCommand
from pysecurestorage.models.update import StorageOperation

_logger = logging.getLogger(__name__)


class SecureKeyValueStore(Protocol):
    """The application's secure store, as seen by the publisher."""

    async def read_all(self) -> dict[str, str]:
        ...

    async def write(self, key: str, value: str) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def delete_all(self) -> None:
        ...


class InMemorySecureStore:
    """Dict-backed :class:`SecureKeyValueStore` for examples and tests."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    async def read_all(self) -> dict[str, str]:
        return dict(self._data)

    async def write(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def delete_all(self) -> None:
        self._data.clear()


@dataclass(frozen=True)
class DeviceInfo:
    """Origin identifiers stamped on every event."""

    device_id: str
    device_name: str = UNKNOWN_DEVICE_NAME


class StoragePublisher:
    """Mirror a secure store onto a debug channel.

    Usage::

        publisher = StoragePublisher(store, channel, device=DeviceInfo("pixel-7", "Pixel 7"))
        async with publisher:
            await publisher.write("token", "abc")  # app write, mirrored as an update
    """

    def __init__(
        self,
        storage: SecureKeyValueStore,
        channel: ProducerChannel,
        *,
        device: DeviceInfo,
        discovery: KeyDiscovery | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._storage = storage
        self._channel = channel
        self._device = device
        self._discovery = discovery or PollingKeyDiscovery(self._read_keys)
        self._poll_interval = poll_interval
        self._clock = clock
        self._known_keys: set[str] = set()
        self._poll_task: asyncio.Task[None] | None = None
        self._withdraw: Unsubscribe | None = None
        self.endpoint = LocalServiceEndpoint(
            device.device_id,
            (COMMAND_EXTENSION, REFRESH_EXTENSION),
            self._handle_extension,
        )

    @property
    def known_keys(self) -> frozenset[str]:
        return frozenset(self._known_keys)

    async def _read_keys(self) -> set[str]:
        return set(await self._storage.read_all())

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> StoragePublisher:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    async def start(self) -> None:
        """Expose the command endpoint, post the initial snapshot and start polling."""
        if self._withdraw is None:
            self._withdraw = self._channel.expose(self.endpoint)
        await self.post_snapshot()
        if self._poll_task is None:
            self._poll_task = asyncio.create_task(self._poll_loop())
        _logger.debug("Storage publisher started device=%s", self._device.device_id)

    async def stop(self) -> None:
        task = self._poll_task
        self._poll_task = None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self._withdraw is not None:
            self._withdraw()
            self._withdraw = None

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self._poll_interval)
            try:
                await self.poll_once()
            except Exception:
                _logger.debug("Storage poll failed", exc_info=True)

    # ------------------------------------------------------------------
    # Posting
    # ------------------------------------------------------------------

    def _stamp(self) -> dict[str, Any]:
        return {
            "deviceId": self._device.device_id,
            "deviceName": self._device.device_name,
            "timestamp": to_epoch_millis(self._clock()),
        }

    async def post_snapshot(self) -> dict[str, Any]:
        """Read the whole store and post it as one ``SecureStorage`` event."""
        values = await self._storage.read_all()
        self._known_keys = set(values)
        payload: dict[str, Any] = {"storageData": dict(values), **self._stamp()}
        self._channel.post_event(SNAPSHOT_EVENT_KIND, payload)
        _logger.debug("Posted snapshot device=%s keys=%s", self._device.device_id, len(values))
        return payload

    def post_update(self, operation: StorageOperation, key: str = "", value: str | None = None) -> dict[str, Any]:
        """Post one ``SecureStorageUpdate`` event.  ``value`` is omitted when ``None``."""
        payload: dict[str, Any] = {"key": key, "operation": operation.value, **self._stamp()}
        if value is not None:
            payload["value"] = value
        self._channel.post_event(UPDATE_EVENT_KIND, payload)
        return payload

    async def poll_once(self) -> set[str]:
        """Post a ``set`` update for every key that appeared since the last look."""
        new_keys = await self._discovery.new_keys_since(self._known_keys)
        if not new_keys:
            return set()
        values = await self._storage.read_all()
        posted: set[str] = set()
        for key in sorted(new_keys):
            if key not in values:
                continue
            self.post_update(StorageOperation.SET, key, values[key])
            posted.add(key)
        self._known_keys |= posted
        return posted

    # ------------------------------------------------------------------
    # Mirrored writes (used by the app and by inspector commands)
    # ------------------------------------------------------------------

    async def write(self, key: str, value: str | None) -> None:
        """Write through to the store; a ``None`` value deletes the key."""
        if value is None:
            await self.delete(key)
            return
        await self._storage.write(key, value)
        self._known_keys.add(key)
        self.post_update(StorageOperation.SET, key, value)

    async def delete(self, key: str) -> None:
        await self._storage.delete(key)
        self._known_keys.discard(key)
        self.post_update(StorageOperation.DELETE, key)

    async def delete_all(self) -> None:
        await self._storage.delete_all()
        self._known_keys.clear()
        self.post_update(StorageOperation.DELETE_ALL)

    # ------------------------------------------------------------------
    # Service extensions
    # ------------------------------------------------------------------

    async def handle_command(self, args: dict[str, str]) -> dict[str, Any]:
        """Apply an inspector command.  Raises ``ValueError`` for malformed commands."""
        command = StorageCommand.from_message(args)
        _logger.debug("Applying %s command key=%s", command.operation.value, command.key)
        # StorageCommand guarantees a key for edit and delete.
        if command.operation == CommandOperation.DELETE_ALL:
            await self.delete_all()
        elif command.operation == CommandOperation.EDIT:
            await self.write(str(command.key), command.value)
        else:
            await self.delete(str(command.key))
        return {"type": "Success", "operation": command.operation.value}

    async def handle_refresh(self) -> dict[str, Any]:
        await self.post_snapshot()
        return {"type": "Success"}

    async def _handle_extension(self, method: str, args: dict[str, str]) -> dict[str, Any]:
        if method == COMMAND_EXTENSION:
            return await self.handle_command(args)
        if method == REFRESH_EXTENSION:
            return await self.handle_refresh()
        raise LookupError(f"unsupported extension {method!r}")
