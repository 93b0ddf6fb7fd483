"""Key discovery for producers.

Some secure stores push change notifications, others can only be
re-scanned.  Both satisfy :class:`KeyDiscovery`, so the publisher does not
care which kind it is driving.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Set


class KeyDiscovery:
    """Interface: report keys that appeared since *known_keys* was taken."""

    async def new_keys_since(self, known_keys: Set[str]) -> set[str]:
        raise NotImplementedError


class PollingKeyDiscovery(KeyDiscovery):
    """Re-reads every key on each call and diffs against *known_keys*."""

    def __init__(self, read_keys: Callable[[], Awaitable[Set[str]]]) -> None:
        self._read_keys = read_keys

    async def new_keys_since(self, known_keys: Set[str]) -> set[str]:
        current = await self._read_keys()
        return set(current) - set(known_keys)


class ListenerKeyDiscovery(KeyDiscovery):
    """Collects keys reported by a native change listener.

    Wire :meth:`notify` to the store's change callback.  Pending keys are
    handed out once and then forgotten.
    """

    def __init__(self) -> None:
        self._pending: set[str] = set()

    def notify(self, key: str) -> None:
        self._pending.add(key)

    async def new_keys_since(self, known_keys: Set[str]) -> set[str]:
        pending, self._pending = self._pending, set()
        return pending - set(known_keys)
