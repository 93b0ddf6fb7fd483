"""Replay suppression gate.

When an inspector (re)attaches, the debug channel may re-deliver events
buffered from a previous session.  The gate drops *every* inbound event
for a short warm-up window after each connect so stale state is never
shown as live.  Dropped events are lost, not queued.
"""

from __future__ import annotations

import asyncio
import logging
from enum import StrEnum

from pysecurestorage._constants import DEFAULT_WARMUP_DELAY

_logger = logging.getLogger(__name__)


class GateState(StrEnum):
    CONNECTING = "connecting"
    WARMING_UP = "warming_up"
    ACCEPTING = "accepting"
    CLOSED = "closed"


class ReplayGate:
    """Time-windowed gate: ``CONNECTING -> WARMING_UP -> ACCEPTING``.

    Each :meth:`connect` starts a new connection epoch and cancels the
    previous warm-up timer, so at most one timer is ever pending and a
    timer from a superseded epoch can never open the gate.
    """

    def __init__(
        self,
        *,
        warmup_delay: float = DEFAULT_WARMUP_DELAY,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        if warmup_delay < 0:
            raise ValueError(f"warmup_delay must be >= 0, got {warmup_delay}")
        self._warmup_delay = warmup_delay
        self._loop = loop
        self._state = GateState.CONNECTING
        self._epoch = 0
        self._timer: asyncio.TimerHandle | None = None
        self._dropped = 0

    @property
    def state(self) -> GateState:
        return self._state

    @property
    def accepting(self) -> bool:
        return self._state == GateState.ACCEPTING

    @property
    def epoch(self) -> int:
        """Connection epoch, incremented on every :meth:`connect`."""
        return self._epoch

    @property
    def dropped(self) -> int:
        """Events discarded during the current epoch's warm-up."""
        return self._dropped

    @property
    def warmup_delay(self) -> float:
        return self._warmup_delay

    def connect(self, *, warmup_delay: float | None = None) -> None:
        """Start a new connection epoch.

        A delay of ``0`` opens the gate immediately.  Otherwise the gate
        stays in ``WARMING_UP`` until the timer fires on the running loop.
        """
        delay = self._warmup_delay if warmup_delay is None else warmup_delay
        if delay < 0:
            raise ValueError(f"warmup_delay must be >= 0, got {delay}")

        self._cancel_timer()
        self._epoch += 1
        self._dropped = 0
        self._state = GateState.CONNECTING

        if delay == 0:
            self._state = GateState.ACCEPTING
            _logger.debug("Replay gate epoch=%s accepting immediately", self._epoch)
            return

        loop = self._loop or asyncio.get_running_loop()
        self._state = GateState.WARMING_UP
        self._timer = loop.call_later(delay, self._on_warmup_elapsed, self._epoch)
        _logger.debug("Replay gate epoch=%s warming up for %.3fs", self._epoch, delay)

    def admit(self) -> bool:
        """Return ``True`` if an inbound event may be processed now."""
        if self._state == GateState.ACCEPTING:
            return True
        if self._state == GateState.WARMING_UP:
            self._dropped += 1
        return False

    def close(self) -> None:
        """Tear down: cancel the pending timer and refuse all further events."""
        self._cancel_timer()
        self._state = GateState.CLOSED

    def _on_warmup_elapsed(self, epoch: int) -> None:
        if epoch != self._epoch or self._state != GateState.WARMING_UP:
            return
        self._timer = None
        self._state = GateState.ACCEPTING
        _logger.debug("Replay gate epoch=%s accepting (dropped %s replayed events)", epoch, self._dropped)

    def _cancel_timer(self) -> None:
        timer = self._timer
        self._timer = None
        if timer is not None:
            timer.cancel()
