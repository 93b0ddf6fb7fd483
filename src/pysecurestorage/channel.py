"""Debug channel and producer endpoint interfaces.

The debug channel is an opaque event bus between the inspected app and
the inspector.  It guarantees per-device send order only, and may replay
buffered events to a subscriber that (re)attaches.

Structural protocols keep the consumer independent of the concrete bus:
:class:`InMemoryDebugChannel` runs in-process (tests, embedded use) and
:class:`pysecurestorage._mqtt.MqttDebugChannel` runs over a broker.
"""

from __future__ import annotations

import contextlib
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChannelEvent:
    """One event as delivered by the debug channel."""

    kind: str
    data: Any


EventCallback = Callable[[ChannelEvent], None]
Unsubscribe = Callable[[], None]
ExtensionHandler = Callable[[str, dict[str, str]], Awaitable[dict[str, Any]]]


class DebugChannel(Protocol):
    def subscribe(self, callback: EventCallback) -> Unsubscribe:
        ...

    def post_event(self, kind: str, data: dict[str, Any]) -> None:
        ...


class ServiceEndpoint(Protocol):
    """A producer exposing named service extensions."""

    @property
    def name(self) -> str:
        ...

    @property
    def capabilities(self) -> frozenset[str]:
        ...

    async def call_extension(self, method: str, args: dict[str, str]) -> dict[str, Any]:
        ...


@runtime_checkable
class EndpointLocator(Protocol):
    def find_capable_endpoint(self, required: Iterable[str]) -> ServiceEndpoint | None:
        ...


class ProducerChannel(Protocol):
    """Producer-side view of the bus: post events, expose an endpoint."""

    def post_event(self, kind: str, data: dict[str, Any]) -> None:
        ...

    def expose(self, endpoint: ServiceEndpoint) -> Unsubscribe:
        ...


class EndpointRegistry:
    """Endpoints currently reachable, looked up by required capabilities."""

    def __init__(self) -> None:
        self._endpoints: dict[str, ServiceEndpoint] = {}

    def __len__(self) -> int:
        return len(self._endpoints)

    def register(self, endpoint: ServiceEndpoint) -> Unsubscribe:
        """Add (or replace, by name) an endpoint; return a callable that removes it."""
        self._endpoints[endpoint.name] = endpoint
        _logger.debug("Endpoint registered name=%s capabilities=%s", endpoint.name, sorted(endpoint.capabilities))

        def _unregister() -> None:
            if self._endpoints.get(endpoint.name) is endpoint:
                self._endpoints.pop(endpoint.name, None)

        return _unregister

    def remove(self, name: str) -> None:
        self._endpoints.pop(name, None)

    def find_capable_endpoint(self, required: Iterable[str]) -> ServiceEndpoint | None:
        """First registered endpoint exposing every extension in *required*."""
        needed = frozenset(required)
        for endpoint in self._endpoints.values():
            if needed <= endpoint.capabilities:
                return endpoint
        return None


class LocalServiceEndpoint:
    """In-process endpoint forwarding extension calls to a handler coroutine."""

    def __init__(self, name: str, capabilities: Iterable[str], handler: ExtensionHandler) -> None:
        self._name = name
        self._capabilities = frozenset(capabilities)
        self._handler = handler

    @property
    def name(self) -> str:
        return self._name

    @property
    def capabilities(self) -> frozenset[str]:
        return self._capabilities

    async def call_extension(self, method: str, args: dict[str, str]) -> dict[str, Any]:
        if method not in self._capabilities:
            raise LookupError(f"endpoint {self._name!r} does not expose {method!r}")
        return await self._handler(method, dict(args))


class InMemoryDebugChannel:
    """In-process debug bus.

    ``replay_limit`` keeps the most recent events and re-delivers them to
    every new subscriber, which is how real debug buses behave when an
    inspector reattaches.
    """

    def __init__(self, *, replay_limit: int = 0) -> None:
        self._subscribers: list[EventCallback] = []
        self._replay: deque[ChannelEvent] = deque(maxlen=max(replay_limit, 0))
        self.endpoints = EndpointRegistry()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, callback: EventCallback) -> Unsubscribe:
        self._subscribers.append(callback)
        for event in list(self._replay):
            self._deliver(callback, event)

        def _unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._subscribers.remove(callback)

        return _unsubscribe

    def post_event(self, kind: str, data: dict[str, Any]) -> None:
        event = ChannelEvent(kind=kind, data=data)
        if self._replay.maxlen:
            self._replay.append(event)
        for callback in list(self._subscribers):
            self._deliver(callback, event)

    def expose(self, endpoint: ServiceEndpoint) -> Unsubscribe:
        """Make a producer endpoint reachable by inspectors on this bus."""
        return self.endpoints.register(endpoint)

    def find_capable_endpoint(self, required: Iterable[str]) -> ServiceEndpoint | None:
        return self.endpoints.find_capable_endpoint(required)

    @staticmethod
    def _deliver(callback: EventCallback, event: ChannelEvent) -> None:
        try:
            callback(event)
        except Exception:
            _logger.debug("Debug channel subscriber failed kind=%s", event.kind, exc_info=True)
