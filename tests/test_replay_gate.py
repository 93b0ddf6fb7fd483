from __future__ import annotations

import asyncio

import pytest

from pysecurestorage.state.gate import GateState, ReplayGate


def test_gate_refuses_before_connect() -> None:
    gate = ReplayGate(warmup_delay=0.5)
    assert gate.state == GateState.CONNECTING
    assert gate.admit() is False


def test_zero_delay_accepts_immediately() -> None:
    gate = ReplayGate(warmup_delay=0)
    gate.connect()
    assert gate.accepting
    assert gate.admit() is True


def test_negative_delay_rejected() -> None:
    with pytest.raises(ValueError):
        ReplayGate(warmup_delay=-1)


@pytest.mark.asyncio
async def test_events_dropped_until_warmup_elapses() -> None:
    gate = ReplayGate(warmup_delay=0.05)
    gate.connect()

    assert gate.state == GateState.WARMING_UP
    assert [gate.admit() for _ in range(3)] == [False, False, False]
    assert gate.dropped == 3

    await asyncio.sleep(0.1)

    assert gate.state == GateState.ACCEPTING
    assert gate.admit() is True
    assert gate.dropped == 3


@pytest.mark.asyncio
async def test_reconnect_restarts_warmup_and_ignores_stale_timer() -> None:
    gate = ReplayGate(warmup_delay=0.05)
    gate.connect()
    first_epoch = gate.epoch

    await asyncio.sleep(0.03)
    gate.connect(warmup_delay=0.2)
    assert gate.epoch == first_epoch + 1
    assert gate.dropped == 0

    # The first epoch's deadline has passed, but its timer was cancelled.
    await asyncio.sleep(0.05)
    assert gate.state == GateState.WARMING_UP

    await asyncio.sleep(0.2)
    assert gate.accepting


@pytest.mark.asyncio
async def test_stale_epoch_callback_does_not_open_gate() -> None:
    gate = ReplayGate(warmup_delay=10)
    gate.connect()
    gate.connect()

    gate._on_warmup_elapsed(gate.epoch - 1)

    assert gate.state == GateState.WARMING_UP
    gate.close()


@pytest.mark.asyncio
async def test_close_cancels_pending_timer() -> None:
    gate = ReplayGate(warmup_delay=0.02)
    gate.connect()
    gate.close()

    await asyncio.sleep(0.05)

    assert gate.state == GateState.CLOSED
    assert gate.admit() is False
