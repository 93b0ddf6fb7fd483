from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from pysecurestorage._mqtt import (
    MqttDebugChannel,
    MqttMessage,
    decode_call,
    decode_event,
    encode_event,
)
from pysecurestorage.channel import ChannelEvent, LocalServiceEndpoint
from pysecurestorage.config import MqttSettings
from pysecurestorage.exceptions import ChannelError

COMMAND = "ext.secure_storage.command"


class _FakeRuntime:
    def __init__(self) -> None:
        self.published: list[tuple[str, bytes, bool]] = []
        self.topics: set[str] = set()

    def publish(self, topic: str, payload: bytes, *, retain: bool = False) -> None:
        self.published.append((topic, payload, retain))

    def add_topic(self, topic: str) -> None:
        self.topics.add(topic)

    def remove_topic(self, topic: str) -> None:
        self.topics.discard(topic)


def _channel() -> tuple[MqttDebugChannel, _FakeRuntime]:
    channel = MqttDebugChannel(MqttSettings(topic_prefix="devtool/"))
    runtime = _FakeRuntime()
    channel._runtime = runtime  # type: ignore[assignment]
    return channel, runtime


def test_event_envelope() -> None:
    payload = encode_event("SecureStorage", {"deviceId": "d1"})
    assert json.loads(payload) == {"kind": "SecureStorage", "data": {"deviceId": "d1"}}
    assert decode_event(payload) == ChannelEvent(kind="SecureStorage", data={"deviceId": "d1"})


def test_decode_rejects_malformed_envelopes() -> None:
    assert decode_event(b"not json") is None
    assert decode_event(b'{"data": {}}') is None
    assert decode_call(b'{"method": "x", "args": "nope"}') is None


def test_decode_call_drops_null_args() -> None:
    assert decode_call(b'{"method": "m", "args": {"key": "k", "value": null}}') == ("m", {"key": "k"})


def test_post_event_requires_started_channel() -> None:
    channel = MqttDebugChannel(MqttSettings())
    with pytest.raises(ChannelError):
        channel.post_event("SecureStorage", {})


def test_events_are_delivered_to_subscribers() -> None:
    channel, _runtime = _channel()
    received: list[ChannelEvent] = []
    channel.subscribe(received.append)

    channel._on_message(MqttMessage("devtool/events", encode_event("SecureStorageUpdate", {"key": "a"})))

    assert received == [ChannelEvent(kind="SecureStorageUpdate", data={"key": "a"})]


@pytest.mark.asyncio
async def test_announced_endpoint_publishes_calls() -> None:
    channel, runtime = _channel()
    announcement = json.dumps({"name": "app", "capabilities": [COMMAND]}).encode()

    channel._on_message(MqttMessage("devtool/endpoints/app", announcement, retain=True))
    endpoint = channel.find_capable_endpoint({COMMAND})
    assert endpoint is not None

    await endpoint.call_extension(COMMAND, {"operation": "delete", "key": "a"})

    topic, payload, retain = runtime.published[-1]
    assert topic == "devtool/commands/app"
    assert json.loads(payload) == {"method": COMMAND, "args": {"operation": "delete", "key": "a"}}
    assert retain is False

    channel._on_message(MqttMessage("devtool/endpoints/app", b"", retain=True))
    assert channel.find_capable_endpoint({COMMAND}) is None


@pytest.mark.asyncio
async def test_exposed_endpoint_receives_calls() -> None:
    channel, runtime = _channel()
    calls: list[tuple[str, dict[str, str]]] = []

    async def handler(method: str, args: dict[str, str]) -> dict[str, Any]:
        calls.append((method, args))
        return {}

    withdraw = channel.expose(LocalServiceEndpoint("app", [COMMAND], handler))
    assert "devtool/commands/app" in runtime.topics
    assert runtime.published[-1][0] == "devtool/endpoints/app"
    assert runtime.published[-1][2] is True

    call = json.dumps({"method": COMMAND, "args": {"operation": "deleteAll"}}).encode()
    channel._on_message(MqttMessage("devtool/commands/app", call))
    await asyncio.sleep(0)

    assert calls == [(COMMAND, {"operation": "deleteAll"})]

    withdraw()
    assert "devtool/commands/app" not in runtime.topics
    assert runtime.published[-1] == ("devtool/endpoints/app", b"", True)
