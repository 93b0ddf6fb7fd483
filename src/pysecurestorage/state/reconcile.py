"""Snapshot/update reconciliation.

An update is merged into the most recent snapshot for the same device
without asking the producer for a fresh full read.  Snapshots are never
mutated: a patched copy replaces the original at its existing log
position.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum

from pysecurestorage.models.snapshot import StorageSnapshot
from pysecurestorage.models.update import StorageOperation, StorageUpdate
from pysecurestorage.state.log import BoundedLog

_logger = logging.getLogger(__name__)


class ReconcileStatus(StrEnum):
    PATCHED = "patched"
    UNMATCHED = "unmatched"
    IGNORED = "ignored"


@dataclass(frozen=True, slots=True)
class ReconcileOutcome:
    """Result of reconciling one update against the snapshot log."""

    status: ReconcileStatus
    index: int | None = None
    snapshot: StorageSnapshot | None = None


def apply_operation(
    entries: Mapping[str, str | None],
    update: StorageUpdate,
) -> dict[str, str | None] | None:
    """Return a new entries map with *update* applied.

    ``None`` means the operation is not a mutation (``error`` or an
    unrecognised operation) and the snapshot must be left untouched.
    """
    operation = update.operation
    if operation == StorageOperation.SET:
        patched = dict(entries)
        patched[update.key] = update.value
        return patched
    if operation == StorageOperation.DELETE:
        patched = dict(entries)
        patched.pop(update.key, None)
        return patched
    if operation.empties_store:
        return {}
    return None


def reconcile_update(
    update: StorageUpdate,
    snapshots: BoundedLog[StorageSnapshot],
) -> ReconcileOutcome:
    """Patch the latest snapshot for ``update.device_id`` in *snapshots*.

    A missing snapshot is an expected startup race (the update overtook
    the first full snapshot) and is reported as ``UNMATCHED``, never raised.
    """
    index = snapshots.find_latest(lambda snap: snap.device_id == update.device_id)
    if index is None:
        _logger.debug(
            "No snapshot for device=%s yet; update key=%s kept in log only",
            update.device_id,
            update.key,
        )
        return ReconcileOutcome(status=ReconcileStatus.UNMATCHED)

    current = snapshots[index]
    patched_entries = apply_operation(current.entries, update)
    if patched_entries is None:
        _logger.debug(
            "Update operation=%s for device=%s is not a mutation; snapshot unchanged",
            update.operation,
            update.device_id,
        )
        return ReconcileOutcome(status=ReconcileStatus.IGNORED, index=index, snapshot=current)

    patched = current.model_copy(update={"entries": patched_entries, "timestamp": update.timestamp})
    snapshots.replace(index, patched)
    return ReconcileOutcome(status=ReconcileStatus.PATCHED, index=index, snapshot=patched)
