"""MQTT-backed debug channel.

Lets an inspector attach to a producer running on another machine
through any MQTT broker.  Topic layout under ``<prefix>``:

* ``<prefix>/events`` carries ``{"kind": ..., "data": {...}}`` events.
* ``<prefix>/endpoints/<name>`` holds a retained ``{"name", "capabilities"}``
  announcement per producer; an empty retained payload withdraws it.
* ``<prefix>/commands/<name>`` carries ``{"method": ..., "args": {...}}``
  extension calls addressed to one producer.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, cast

import paho.mqtt.client as mqtt

from pysecurestorage.channel import (
    ChannelEvent,
    EndpointRegistry,
    EventCallback,
    ServiceEndpoint,
    Unsubscribe,
)
from pysecurestorage.config import InspectorConfig, MqttSettings
from pysecurestorage.exceptions import ChannelError

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MqttMessage:
    """Raw inbound message handed from the network thread to the loop."""

    topic: str
    payload: bytes
    retain: bool = False


def _dumps(obj: Any) -> bytes:
    return json.dumps(obj, separators=(",", ":")).encode("utf-8")


def _loads_object(payload: bytes) -> dict[str, Any] | None:
    try:
        decoded = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return None
    return decoded if isinstance(decoded, dict) else None


def encode_event(kind: str, data: dict[str, Any]) -> bytes:
    return _dumps({"kind": kind, "data": data})


def decode_event(payload: bytes) -> ChannelEvent | None:
    """Decode an events-topic message; ``None`` if it is not an event envelope."""
    parsed = _loads_object(payload)
    if parsed is None:
        return None
    kind = parsed.get("kind")
    if not isinstance(kind, str) or not kind:
        return None
    return ChannelEvent(kind=kind, data=parsed.get("data"))


def encode_call(method: str, args: dict[str, str]) -> bytes:
    return _dumps({"method": method, "args": args})


def decode_call(payload: bytes) -> tuple[str, dict[str, str]] | None:
    parsed = _loads_object(payload)
    if parsed is None:
        return None
    method = parsed.get("method")
    args = parsed.get("args")
    if not isinstance(method, str) or not isinstance(args, dict):
        return None
    return method, {str(k): str(v) for k, v in args.items() if v is not None}


class MqttChannelRuntime:
    """Threaded paho-mqtt runtime that emits raw messages onto an asyncio loop."""

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        settings: MqttSettings,
        on_message: Callable[[MqttMessage], None],
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._settings = settings
        self._on_message = on_message
        self._logger = logger or _logger
        self._client: mqtt.Client | None = None
        self._running = False
        self._topics: set[str] = set()

    @property
    def is_running(self) -> bool:
        """Whether the MQTT runtime is actively running."""
        return self._running

    def add_topic(self, topic: str) -> None:
        """Subscribe to *topic* now (if connected) and on every reconnect."""
        self._topics.add(topic)
        client = self._client
        if client is not None and client.is_connected():
            client.subscribe(topic, qos=1)

    def remove_topic(self, topic: str) -> None:
        self._topics.discard(topic)
        client = self._client
        if client is not None and client.is_connected():
            client.unsubscribe(topic)

    def start(self) -> None:
        """Connect to the broker and start the network loop thread."""
        self.stop()
        settings = self._settings
        self._logger.debug(
            "MQTT runtime start requested host=%s port=%s client_id=%s",
            settings.host,
            settings.port,
            settings.client_id or "<generated>",
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=settings.client_id,
            protocol=mqtt.MQTTv311,
        )
        client.enable_logger(self._logger)
        if settings.tls:
            client.tls_set()

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            self._logger.debug("MQTT connected reason=%s", reason_code)
            for topic in sorted(self._topics):
                self._logger.debug("MQTT subscribing topic=%s", topic)
                c.subscribe(topic, qos=1)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            message = MqttMessage(topic=msg.topic, payload=bytes(msg.payload), retain=bool(msg.retain))
            self._loop.call_soon_threadsafe(self._on_message, message)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.debug("MQTT disconnected: %s", reason_code)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        try:
            client.connect(settings.host, settings.port, keepalive=settings.keepalive)
        except OSError as exc:
            raise ChannelError(f"MQTT broker {settings.host}:{settings.port} unreachable: {exc}") from exc
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def publish(self, topic: str, payload: bytes, *, retain: bool = False) -> None:
        """Hand a message to the network thread.  Raises :class:`ChannelError`."""
        client = self._client
        if client is None or not self._running:
            raise ChannelError("MQTT runtime is not running")
        info = client.publish(topic, payload, qos=1, retain=retain)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise ChannelError(f"MQTT publish to {topic} failed rc={info.rc}")

    def stop(self) -> None:
        """Stop and disconnect current MQTT client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")


class MqttServiceEndpoint:
    """Remote producer endpoint reached by publishing to its command topic."""

    def __init__(
        self,
        name: str,
        capabilities: Iterable[str],
        *,
        runtime: MqttChannelRuntime,
        topic: str,
    ) -> None:
        self._name = name
        self._capabilities = frozenset(capabilities)
        self._runtime = runtime
        self._topic = topic

    @property
    def name(self) -> str:
        return self._name

    @property
    def capabilities(self) -> frozenset[str]:
        return self._capabilities

    async def call_extension(self, method: str, args: dict[str, str]) -> dict[str, Any]:
        if method not in self._capabilities:
            raise LookupError(f"endpoint {self._name!r} does not expose {method!r}")
        self._runtime.publish(self._topic, encode_call(method, args))
        # Fire-and-forget: the producer confirms through update events.
        return {}


class MqttDebugChannel:
    """Debug channel over an MQTT broker.

    Usage::

        async with MqttDebugChannel(config) as channel:
            async with InspectorSession(config, channel=channel) as session:
                ...
    """

    def __init__(self, config: InspectorConfig | MqttSettings) -> None:
        self._settings = config.mqtt if isinstance(config, InspectorConfig) else config
        prefix = self._settings.topic_prefix.rstrip("/")
        self._events_topic = f"{prefix}/events"
        self._endpoints_prefix = f"{prefix}/endpoints/"
        self._commands_prefix = f"{prefix}/commands/"
        self._runtime: MqttChannelRuntime | None = None
        self._subscribers: list[EventCallback] = []
        self._remote = EndpointRegistry()
        self._exposed: dict[str, ServiceEndpoint] = {}
        self._tasks: set[asyncio.Task[Any]] = set()

    async def __aenter__(self) -> MqttDebugChannel:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    def _require_runtime(self) -> MqttChannelRuntime:
        if self._runtime is None:
            raise ChannelError("Channel not started. Use 'async with MqttDebugChannel(...) as channel:'")
        return self._runtime

    async def start(self) -> None:
        loop = asyncio.get_running_loop()
        runtime = MqttChannelRuntime(loop=loop, settings=self._settings, on_message=self._on_message)
        runtime.add_topic(self._events_topic)
        runtime.add_topic(f"{self._endpoints_prefix}+")
        for name in self._exposed:
            runtime.add_topic(f"{self._commands_prefix}{name}")
        await loop.run_in_executor(None, runtime.start)
        self._runtime = runtime

    async def stop(self) -> None:
        runtime = self._runtime
        self._runtime = None
        for task in list(self._tasks):
            task.cancel()
        if runtime is None:
            return
        try:
            await asyncio.get_running_loop().run_in_executor(None, runtime.stop)
        except Exception:
            _logger.debug("MQTT runtime stop failed", exc_info=True)

    # ------------------------------------------------------------------
    # Consumer side
    # ------------------------------------------------------------------

    def subscribe(self, callback: EventCallback) -> Unsubscribe:
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def find_capable_endpoint(self, required: Iterable[str]) -> ServiceEndpoint | None:
        return self._remote.find_capable_endpoint(required)

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def post_event(self, kind: str, data: dict[str, Any]) -> None:
        self._require_runtime().publish(self._events_topic, encode_event(kind, data))

    def expose(self, endpoint: ServiceEndpoint) -> Unsubscribe:
        """Announce *endpoint* and route its command topic to it."""
        runtime = self._require_runtime()
        name = endpoint.name
        self._exposed[name] = endpoint
        runtime.add_topic(f"{self._commands_prefix}{name}")
        runtime.publish(
            f"{self._endpoints_prefix}{name}",
            _dumps({"name": name, "capabilities": sorted(endpoint.capabilities)}),
            retain=True,
        )

        def _withdraw() -> None:
            if self._exposed.get(name) is not endpoint:
                return
            self._exposed.pop(name, None)
            current = self._runtime
            if current is None:
                return
            current.remove_topic(f"{self._commands_prefix}{name}")
            try:
                current.publish(f"{self._endpoints_prefix}{name}", b"", retain=True)
            except ChannelError:
                _logger.debug("Endpoint withdrawal publish failed name=%s", name, exc_info=True)

        return _withdraw

    # ------------------------------------------------------------------
    # Inbound routing (runs on the event loop)
    # ------------------------------------------------------------------

    def _on_message(self, message: MqttMessage) -> None:
        topic = message.topic
        if topic == self._events_topic:
            self._handle_event(message)
        elif topic.startswith(self._endpoints_prefix):
            self._handle_announcement(topic[len(self._endpoints_prefix) :], message)
        elif topic.startswith(self._commands_prefix):
            self._handle_call(topic[len(self._commands_prefix) :], message)

    def _handle_event(self, message: MqttMessage) -> None:
        event = decode_event(message.payload)
        if event is None:
            _logger.debug("Ignoring non-event payload on %s", message.topic)
            return
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                _logger.debug("Debug channel subscriber failed kind=%s", event.kind, exc_info=True)

    def _handle_announcement(self, name: str, message: MqttMessage) -> None:
        if not message.payload:
            self._remote.remove(name)
            _logger.debug("Endpoint withdrawn name=%s", name)
            return
        parsed = _loads_object(message.payload)
        capabilities = parsed.get("capabilities") if parsed else None
        runtime = self._runtime
        if not isinstance(capabilities, list) or runtime is None:
            _logger.debug("Ignoring malformed endpoint announcement name=%s", name)
            return
        self._remote.register(
            MqttServiceEndpoint(
                name,
                [str(cap) for cap in capabilities],
                runtime=runtime,
                topic=f"{self._commands_prefix}{name}",
            )
        )

    def _handle_call(self, name: str, message: MqttMessage) -> None:
        endpoint = self._exposed.get(name)
        call = decode_call(message.payload)
        if endpoint is None or call is None:
            return
        method, args = call
        task = asyncio.ensure_future(endpoint.call_extension(method, args))
        self._tasks.add(task)
        task.add_done_callback(self._call_done)

    def _call_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.warning("Extension call failed: %s", exc)
