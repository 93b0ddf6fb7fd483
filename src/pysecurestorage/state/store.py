"""In-memory inspector state.

This is the only component allowed to merge parsed events.  It holds two
bounded logs: full snapshots (the "all data" view) and point updates
(the change log).
"""

from __future__ import annotations

from datetime import datetime

from pysecurestorage._constants import SNAPSHOT_LOG_CAPACITY, UPDATE_LOG_CAPACITY
from pysecurestorage.models.snapshot import StorageSnapshot
from pysecurestorage.models.update import StorageUpdate
from pysecurestorage.state.log import BoundedLog
from pysecurestorage.state.reconcile import ReconcileOutcome, reconcile_update


def _snapshot_ts(snapshot: StorageSnapshot) -> datetime:
    return snapshot.timestamp


def _update_ts(update: StorageUpdate) -> datetime:
    return update.timestamp


class InspectorStore:
    """Deterministic store for reconciled storage state.

    Given the same sequence of snapshots and updates it produces the same
    logs; it never reads a clock and never blocks.
    """

    def __init__(
        self,
        *,
        snapshot_capacity: int = SNAPSHOT_LOG_CAPACITY,
        update_capacity: int = UPDATE_LOG_CAPACITY,
        newest_on_top: bool = False,
    ) -> None:
        self.snapshots: BoundedLog[StorageSnapshot] = BoundedLog(
            snapshot_capacity, timestamp_of=_snapshot_ts, newest_on_top=newest_on_top
        )
        self.updates: BoundedLog[StorageUpdate] = BoundedLog(
            update_capacity, timestamp_of=_update_ts, newest_on_top=newest_on_top
        )

    @property
    def newest_on_top(self) -> bool:
        return self.snapshots.newest_on_top

    def apply(self, event: StorageSnapshot | StorageUpdate) -> ReconcileOutcome | None:
        """Merge one parsed event."""
        if isinstance(event, StorageSnapshot):
            self.apply_snapshot(event)
            return None
        return self.apply_update(event)

    def apply_snapshot(self, snapshot: StorageSnapshot) -> StorageSnapshot | None:
        """Record a full snapshot; return the snapshot evicted to make room, if any."""
        return self.snapshots.insert(snapshot)

    def apply_update(self, update: StorageUpdate) -> ReconcileOutcome:
        """Log *update* and patch the device's latest snapshot."""
        self.updates.insert(update)
        return reconcile_update(update, self.snapshots)

    def set_newest_on_top(self, newest_on_top: bool) -> None:
        self.snapshots.reorder(newest_on_top)
        self.updates.reorder(newest_on_top)

    def clear_snapshots(self) -> None:
        self.snapshots.clear()

    def clear_updates(self) -> None:
        self.updates.clear()

    def clear(self) -> None:
        self.clear_snapshots()
        self.clear_updates()

    # ------------------------------------------------------------------
    # Per-device views
    # ------------------------------------------------------------------

    def devices(self) -> dict[str, str]:
        """Known devices as ``{device_id: device_name}`` in display order."""
        seen: dict[str, str] = {}
        for snapshot in self.snapshots:
            seen.setdefault(snapshot.device_id, snapshot.device_name)
        for update in self.updates:
            seen.setdefault(update.device_id, update.device_name)
        return seen

    def latest_snapshot(self, device_id: str) -> StorageSnapshot | None:
        """Canonical (most recently arrived) snapshot for *device_id*."""
        index = self.snapshots.find_latest(lambda snap: snap.device_id == device_id)
        return None if index is None else self.snapshots[index]

    def snapshots_for(self, device_id: str) -> list[StorageSnapshot]:
        return [snap for snap in self.snapshots if snap.device_id == device_id]

    def updates_for(self, device_id: str) -> list[StorageUpdate]:
        return [update for update in self.updates if update.device_id == device_id]
