"""pysecurestorage - Inspect and edit an app's secure key/value store over a debug channel."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pysecurestorage")
except PackageNotFoundError:
    __version__ = "0+local"
from pysecurestorage.channel import (
    ChannelEvent,
    DebugChannel,
    EndpointLocator,
    EndpointRegistry,
    InMemoryDebugChannel,
    LocalServiceEndpoint,
    ProducerChannel,
    ServiceEndpoint,
)
from pysecurestorage.commands import CommandDispatcher
from pysecurestorage.config import InspectorConfig, MqttSettings
from pysecurestorage.discovery import KeyDiscovery, ListenerKeyDiscovery, PollingKeyDiscovery
from pysecurestorage.exceptions import (
    ChannelError,
    DispatchError,
    EndpointNotFoundError,
    InspectorConfigError,
    PartialRenameError,
    SecureStorageError,
    SettingsStoreError,
)
from pysecurestorage.models import (
    CommandOperation,
    InspectorSettings,
    StorageCommand,
    StorageOperation,
    StorageSnapshot,
    StorageUpdate,
)
from pysecurestorage.producer import DeviceInfo, InMemorySecureStore, SecureKeyValueStore, StoragePublisher
from pysecurestorage.session import InspectorSession
from pysecurestorage.settings_store import JsonFileSettingsStore, MemorySettingsStore, SettingsStore
from pysecurestorage.state.gate import GateState, ReplayGate
from pysecurestorage.state.reconcile import ReconcileOutcome, ReconcileStatus, reconcile_update
from pysecurestorage.state.store import InspectorStore

__all__ = [
    "__version__",
    "ChannelError",
    "ChannelEvent",
    "CommandDispatcher",
    "CommandOperation",
    "DebugChannel",
    "DeviceInfo",
    "DispatchError",
    "EndpointLocator",
    "EndpointNotFoundError",
    "EndpointRegistry",
    "GateState",
    "InMemoryDebugChannel",
    "InMemorySecureStore",
    "InspectorConfig",
    "InspectorConfigError",
    "InspectorSession",
    "InspectorSettings",
    "InspectorStore",
    "JsonFileSettingsStore",
    "KeyDiscovery",
    "ListenerKeyDiscovery",
    "LocalServiceEndpoint",
    "MemorySettingsStore",
    "MqttSettings",
    "PartialRenameError",
    "PollingKeyDiscovery",
    "ProducerChannel",
    "ReconcileOutcome",
    "ReconcileStatus",
    "ReplayGate",
    "SecureKeyValueStore",
    "SecureStorageError",
    "ServiceEndpoint",
    "SettingsStore",
    "SettingsStoreError",
    "StorageCommand",
    "StorageOperation",
    "StoragePublisher",
    "StorageSnapshot",
    "StorageUpdate",
    "reconcile_update",
]
