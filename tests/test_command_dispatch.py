from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest
from pydantic import ValidationError

from pysecurestorage.channel import EndpointRegistry
from pysecurestorage.commands import CommandDispatcher
from pysecurestorage.exceptions import DispatchError, EndpointNotFoundError, PartialRenameError

COMMAND = "ext.secure_storage.command"
REFRESH = "ext.secure_storage.refresh"


class _RecordingEndpoint:
    def __init__(
        self,
        name: str = "app",
        capabilities: tuple[str, ...] = (COMMAND, REFRESH),
        fail_on: Callable[[str, dict[str, str]], bool] | None = None,
    ) -> None:
        self._name = name
        self._capabilities = frozenset(capabilities)
        self._fail_on = fail_on
        self.calls: list[tuple[str, dict[str, str]]] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def capabilities(self) -> frozenset[str]:
        return self._capabilities

    async def call_extension(self, method: str, args: dict[str, str]) -> dict[str, Any]:
        self.calls.append((method, dict(args)))
        if self._fail_on is not None and self._fail_on(method, args):
            raise ConnectionError("endpoint went away")
        return {}


def _dispatcher(endpoint: _RecordingEndpoint | None = None) -> CommandDispatcher:
    registry = EndpointRegistry()
    if endpoint is not None:
        registry.register(endpoint)
    return CommandDispatcher(registry)


@pytest.mark.asyncio
async def test_edit_sends_command_message() -> None:
    endpoint = _RecordingEndpoint()
    await _dispatcher(endpoint).edit("token", "abc")
    assert endpoint.calls == [(COMMAND, {"operation": "edit", "key": "token", "value": "abc"})]


@pytest.mark.asyncio
async def test_edit_with_null_value_omits_value() -> None:
    endpoint = _RecordingEndpoint()
    await _dispatcher(endpoint).create("token", None)
    assert endpoint.calls == [(COMMAND, {"operation": "edit", "key": "token"})]


@pytest.mark.asyncio
async def test_delete_and_delete_all() -> None:
    endpoint = _RecordingEndpoint()
    dispatcher = _dispatcher(endpoint)

    await dispatcher.delete("token")
    await dispatcher.delete_all()

    assert endpoint.calls == [
        (COMMAND, {"operation": "delete", "key": "token"}),
        (COMMAND, {"operation": "deleteAll"}),
    ]


@pytest.mark.asyncio
async def test_request_snapshot_calls_refresh_extension() -> None:
    endpoint = _RecordingEndpoint()
    await _dispatcher(endpoint).request_snapshot()
    assert endpoint.calls == [(REFRESH, {})]


@pytest.mark.asyncio
async def test_rename_deletes_then_edits() -> None:
    endpoint = _RecordingEndpoint()
    await _dispatcher(endpoint).rename("old", "new", "v")
    assert endpoint.calls == [
        (COMMAND, {"operation": "delete", "key": "old"}),
        (COMMAND, {"operation": "edit", "key": "new", "value": "v"}),
    ]


@pytest.mark.asyncio
async def test_rename_reports_partial_failure() -> None:
    endpoint = _RecordingEndpoint(fail_on=lambda _method, args: args.get("operation") == "edit")

    with pytest.raises(PartialRenameError) as excinfo:
        await _dispatcher(endpoint).rename("old", "new", "v")

    assert excinfo.value.old_key == "old"
    assert excinfo.value.new_key == "new"
    assert excinfo.value.deleted is True
    assert excinfo.value.operation == "rename"
    assert [args["operation"] for _method, args in endpoint.calls] == ["delete", "edit"]


@pytest.mark.asyncio
async def test_rename_with_invalid_key_sends_nothing() -> None:
    endpoint = _RecordingEndpoint()
    with pytest.raises(ValidationError):
        await _dispatcher(endpoint).rename("old", "", "v")
    assert endpoint.calls == []


@pytest.mark.asyncio
async def test_missing_endpoint_raises() -> None:
    with pytest.raises(EndpointNotFoundError) as excinfo:
        await _dispatcher().delete("token")
    assert excinfo.value.operation == "delete"
    assert excinfo.value.key == "token"


@pytest.mark.asyncio
async def test_endpoint_without_capability_is_not_used() -> None:
    endpoint = _RecordingEndpoint(capabilities=(REFRESH,))
    with pytest.raises(EndpointNotFoundError):
        await _dispatcher(endpoint).edit("a", "1")
    assert endpoint.calls == []


@pytest.mark.asyncio
async def test_transport_failure_is_wrapped() -> None:
    endpoint = _RecordingEndpoint(fail_on=lambda _method, _args: True)
    with pytest.raises(DispatchError) as excinfo:
        await _dispatcher(endpoint).edit("a", "1")
    assert excinfo.value.operation == "edit"
    assert isinstance(excinfo.value.__cause__, ConnectionError)
