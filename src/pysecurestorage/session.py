"""Inspector session: one connection to one debug channel.

A session replaces process-wide "already registered" flags with an
explicit object that is constructed, connected and torn down by its
owner.  It wires together the replay gate, the store, the settings and
the command dispatcher.
"""

from __future__ import annotations

import logging
from typing import Any

from pysecurestorage._redact import redact_for_log
from pysecurestorage.channel import ChannelEvent, DebugChannel, EndpointLocator, Unsubscribe
from pysecurestorage.commands import CommandDispatcher
from pysecurestorage.config import InspectorConfig
from pysecurestorage.exceptions import SecureStorageError, SettingsStoreError
from pysecurestorage.ingestion.parse import parse_event
from pysecurestorage.models.settings import InspectorSettings
from pysecurestorage.models.snapshot import StorageSnapshot
from pysecurestorage.models.update import StorageUpdate
from pysecurestorage.settings_store import JsonFileSettingsStore, MemorySettingsStore, SettingsStore
from pysecurestorage.state.gate import ReplayGate
from pysecurestorage.state.reconcile import ReconcileOutcome
from pysecurestorage.state.store import InspectorStore

_logger = logging.getLogger(__name__)


def _default_settings_store(config: InspectorConfig) -> SettingsStore:
    if config.settings_path:
        return JsonFileSettingsStore(config.settings_path)
    return MemorySettingsStore()


class InspectorSession:
    """Consumer side of the inspector.

    Usage::

        channel = InMemoryDebugChannel()
        async with InspectorSession(config, channel=channel) as session:
            await session.commands.edit("token", "abc")
            print(session.store.latest_snapshot("device-1"))

    ``locator`` defaults to *channel* when the channel can also find
    producer endpoints (both bundled channels can).
    """

    def __init__(
        self,
        config: InspectorConfig | None = None,
        *,
        channel: DebugChannel,
        locator: EndpointLocator | None = None,
        settings_store: SettingsStore | None = None,
    ) -> None:
        self._config = config or InspectorConfig()
        self._channel = channel
        if locator is None:
            if not isinstance(channel, EndpointLocator):
                raise SecureStorageError("channel cannot locate producer endpoints; pass locator=")
            locator = channel
        self._settings_store = settings_store or _default_settings_store(self._config)
        self._settings = InspectorSettings()
        self._gate = ReplayGate(warmup_delay=self._config.warmup_delay)
        self.store = InspectorStore(
            snapshot_capacity=self._config.snapshot_capacity,
            update_capacity=self._config.update_capacity,
        )
        self.commands = CommandDispatcher(locator, log_values=self._config.log_values)
        self._unsubscribe: Unsubscribe | None = None
        self._selected_device_id = ""

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> InspectorSession:
        self.open()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.close()

    def open(self) -> None:
        """Load settings, start the warm-up window and subscribe.

        Must be called with a running event loop.
        """
        self._settings = self._settings_store.load()
        self.store.set_newest_on_top(self._settings.show_newest_on_top)
        self.reconnect()

    def reconnect(self) -> None:
        """Start a new connection epoch (e.g. the inspector view was remounted)."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._settings.clear_on_reload:
            self.store.clear()
            self._selected_device_id = ""
            self._gate.connect()
        else:
            self._gate.connect(warmup_delay=0)
        self._unsubscribe = self._channel.subscribe(self.handle_event)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._gate.close()

    # ------------------------------------------------------------------
    # Event loop entry point
    # ------------------------------------------------------------------

    @property
    def gate(self) -> ReplayGate:
        return self._gate

    def handle_event(self, event: ChannelEvent) -> ReconcileOutcome | None:
        """Gate, parse and reconcile one channel event.  Never raises."""
        if not self._gate.admit():
            _logger.debug("Dropping %s event during warm-up (epoch=%s)", event.kind, self._gate.epoch)
            return None
        try:
            parsed = parse_event(event.kind, event.data)
            if parsed is None:
                return None
            if _logger.isEnabledFor(logging.DEBUG):
                _logger.debug(
                    "Applying %s %s",
                    event.kind,
                    redact_for_log(parsed.model_dump(mode="json"), reveal_values=self._config.log_values),
                )
            outcome = self.store.apply(parsed)
            self._note_device(parsed)
            return outcome
        except Exception:
            _logger.warning("Failed to process %s event", event.kind, exc_info=True)
            return None

    def _note_device(self, parsed: StorageSnapshot | StorageUpdate) -> None:
        if not self._selected_device_id and not parsed.is_error:
            self._selected_device_id = parsed.device_id

    # ------------------------------------------------------------------
    # Device selection
    # ------------------------------------------------------------------

    @property
    def selected_device_id(self) -> str:
        """Device shown by default: the first one seen unless changed."""
        return self._selected_device_id

    def select_device(self, device_id: str) -> None:
        if device_id not in self.store.devices():
            raise KeyError(device_id)
        self._selected_device_id = device_id

    def devices(self) -> dict[str, str]:
        return self.store.devices()

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    @property
    def settings(self) -> InspectorSettings:
        return self._settings

    def update_settings(self, **changes: bool) -> InspectorSettings:
        """Apply and persist preference changes.

        Persistence failures are logged; the in-memory preference still
        takes effect.  Unknown names raise ``TypeError``.
        """
        unknown = set(changes) - set(InspectorSettings.model_fields)
        if unknown:
            raise TypeError(f"Unknown inspector settings: {', '.join(sorted(unknown))}")
        updated = InspectorSettings.model_validate({**self._settings.model_dump(), **changes})
        if updated.show_newest_on_top != self._settings.show_newest_on_top:
            self.store.set_newest_on_top(updated.show_newest_on_top)
        self._settings = updated
        try:
            self._settings_store.save(updated)
        except SettingsStoreError:
            _logger.warning("Could not persist inspector settings", exc_info=True)
        return updated

    def set_show_newest_on_top(self, value: bool) -> InspectorSettings:
        return self.update_settings(show_newest_on_top=value)

    def set_clear_on_reload(self, value: bool) -> InspectorSettings:
        return self.update_settings(clear_on_reload=value)

    def set_hide_null_values(self, value: bool) -> InspectorSettings:
        return self.update_settings(hide_null_values=value)

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def clear_data(self) -> None:
        self.store.clear_snapshots()

    def clear_updates(self) -> None:
        self.store.clear_updates()

    def clear_all(self) -> None:
        self.store.clear()
        self._selected_device_id = ""
