from __future__ import annotations

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from pysecurestorage.channel import ChannelEvent, InMemoryDebugChannel
from pysecurestorage.discovery import ListenerKeyDiscovery, PollingKeyDiscovery
from pysecurestorage.producer import DeviceInfo, InMemorySecureStore, StoragePublisher

COMMAND = "ext.secure_storage.command"
REFRESH = "ext.secure_storage.refresh"


def _fixed_clock() -> datetime:
    return datetime(2026, 1, 1, tzinfo=UTC)


def _publisher(
    initial: dict[str, str] | None = None,
    **kwargs: object,
) -> tuple[StoragePublisher, InMemorySecureStore, list[ChannelEvent]]:
    channel = InMemoryDebugChannel()
    events: list[ChannelEvent] = []
    channel.subscribe(events.append)
    store = InMemorySecureStore(initial)
    publisher = StoragePublisher(
        store,
        channel,
        device=DeviceInfo("pixel-7", "Pixel 7"),
        clock=_fixed_clock,
        **kwargs,  # type: ignore[arg-type]
    )
    return publisher, store, events


@pytest.mark.asyncio
async def test_post_snapshot_payload() -> None:
    publisher, _store, events = _publisher({"token": "abc"})

    await publisher.post_snapshot()

    assert events == [
        ChannelEvent(
            kind="SecureStorage",
            data={
                "storageData": {"token": "abc"},
                "deviceId": "pixel-7",
                "deviceName": "Pixel 7",
                "timestamp": 1_767_225_600_000,
            },
        )
    ]
    assert publisher.known_keys == {"token"}


@pytest.mark.asyncio
async def test_edit_command_writes_and_posts_update() -> None:
    publisher, store, events = _publisher()

    result = await publisher.handle_command({"operation": "edit", "key": "a", "value": "1"})

    assert result == {"type": "Success", "operation": "edit"}
    assert await store.read_all() == {"a": "1"}
    assert events[-1].kind == "SecureStorageUpdate"
    assert events[-1].data["key"] == "a"
    assert events[-1].data["value"] == "1"
    assert events[-1].data["operation"] == "set"


@pytest.mark.asyncio
async def test_edit_without_value_deletes_key() -> None:
    publisher, store, events = _publisher({"a": "1"})

    await publisher.handle_command({"operation": "edit", "key": "a"})

    assert await store.read_all() == {}
    assert events[-1].data["operation"] == "delete"
    assert "value" not in events[-1].data


@pytest.mark.asyncio
async def test_delete_all_command() -> None:
    publisher, store, events = _publisher({"a": "1", "b": "2"})

    await publisher.handle_command({"operation": "deleteAll"})

    assert await store.read_all() == {}
    assert events[-1].data["operation"] == "deleteAll"


@pytest.mark.asyncio
async def test_malformed_command_raises() -> None:
    publisher, _store, events = _publisher()
    with pytest.raises(ValidationError):
        await publisher.handle_command({"operation": "edit"})
    assert events == []


@pytest.mark.asyncio
async def test_endpoint_routes_extensions() -> None:
    publisher, _store, events = _publisher({"a": "1"})

    assert publisher.endpoint.capabilities == {COMMAND, REFRESH}
    await publisher.endpoint.call_extension(REFRESH, {})
    assert events[-1].kind == "SecureStorage"

    with pytest.raises(LookupError):
        await publisher.endpoint.call_extension("ext.other", {})


@pytest.mark.asyncio
async def test_poll_once_posts_new_keys() -> None:
    publisher, store, events = _publisher({"a": "1"})
    await publisher.post_snapshot()

    # Written behind the publisher's back, e.g. by native code.
    await store.write("b", "2")
    posted = await publisher.poll_once()

    assert posted == {"b"}
    assert events[-1].data["key"] == "b"
    assert events[-1].data["value"] == "2"
    assert await publisher.poll_once() == set()


@pytest.mark.asyncio
async def test_listener_discovery_reports_notified_keys_once() -> None:
    discovery = ListenerKeyDiscovery()
    publisher, store, events = _publisher(discovery=discovery)
    await publisher.post_snapshot()

    await store.write("token", "abc")
    discovery.notify("token")

    assert await publisher.poll_once() == {"token"}
    assert await publisher.poll_once() == set()
    assert [event.data.get("key") for event in events[1:]] == ["token"]


@pytest.mark.asyncio
async def test_polling_discovery_diffs_against_known_keys() -> None:
    async def read_keys() -> set[str]:
        return {"a", "b", "c"}

    discovery = PollingKeyDiscovery(read_keys)
    assert await discovery.new_keys_since({"a"}) == {"b", "c"}


@pytest.mark.asyncio
async def test_start_exposes_endpoint_and_stop_withdraws_it() -> None:
    channel = InMemoryDebugChannel()
    publisher = StoragePublisher(InMemorySecureStore(), channel, device=DeviceInfo("d1"), poll_interval=60)

    await publisher.start()
    assert channel.find_capable_endpoint({COMMAND}) is publisher.endpoint

    await publisher.stop()
    assert channel.find_capable_endpoint({COMMAND}) is None
