#!/usr/bin/env python3
"""Command-line secure storage inspector over MQTT.

Attaches to the debug channel configured through ``SECSTORE_MQTT_*``
environment variables, then either watches reconciled state or sends one
command to the producer:

    inspect_storage.py watch --duration 30
    inspect_storage.py edit auth.token abc123
    inspect_storage.py rename old.key new.key --value "..."
    inspect_storage.py delete auth.token
    inspect_storage.py delete-all
    inspect_storage.py refresh
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pysecurestorage import DispatchError, InspectorConfig, InspectorSession, SecureStorageError  # noqa: E402
from pysecurestorage._mqtt import MqttDebugChannel  # noqa: E402
from pysecurestorage.formatting import format_relative_time, format_value, visible_entries  # noqa: E402

_LOG = logging.getLogger("inspect_storage")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Inspect and edit a remote secure store.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logs.")
    parser.add_argument(
        "--discovery-wait",
        type=float,
        default=2.0,
        help="Seconds to wait for producer endpoint announcements before sending commands.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    watch = sub.add_parser("watch", help="Print reconciled state as events arrive.")
    watch.add_argument("--duration", type=int, default=0, help="Maximum runtime in seconds (0 = until Ctrl+C).")
    watch.add_argument("--device", default="", help="Only show this device id.")

    edit = sub.add_parser("edit", help="Write a value under a key.")
    edit.add_argument("key")
    edit.add_argument("value")

    rename = sub.add_parser("rename", help="Move a value to a new key (delete then write).")
    rename.add_argument("old_key")
    rename.add_argument("new_key")
    rename.add_argument("--value", default=None, help="Value to write under the new key.")

    delete = sub.add_parser("delete", help="Delete one key.")
    delete.add_argument("key")

    sub.add_parser("delete-all", help="Delete every key.")
    sub.add_parser("refresh", help="Ask the producer to re-post its full snapshot.")
    return parser.parse_args()


def _print_state(session: InspectorSession, device_filter: str) -> None:
    hide_nulls = session.settings.hide_null_values
    for device_id, device_name in session.devices().items():
        if device_filter and device_id != device_filter:
            continue
        snapshot = session.store.latest_snapshot(device_id)
        if snapshot is None:
            continue
        print(f"[inspect] {device_name} ({device_id}) {format_relative_time(snapshot.timestamp)}")
        for key, value in visible_entries(snapshot, hide_nulls):
            rendered = format_value(value).replace("\n", "\n          ")
            print(f"[inspect]   {key} = {rendered}")


async def _watch(session: InspectorSession, args: argparse.Namespace) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    seen = 0
    started = loop.time()
    while not stop.is_set():
        total = len(session.store.snapshots) + len(session.store.updates)
        if total != seen:
            seen = total
            _print_state(session, args.device)
        if args.duration > 0 and loop.time() - started >= args.duration:
            print(f"[inspect] Reached --duration={args.duration}s, stopping.")
            break
        try:
            await asyncio.wait_for(stop.wait(), timeout=1.0)
        except TimeoutError:
            continue


async def _send(session: InspectorSession, args: argparse.Namespace) -> None:
    # Endpoint announcements are retained, so they arrive shortly after connecting.
    await asyncio.sleep(args.discovery_wait)
    _LOG.debug("Sending %s command", args.command)
    commands = session.commands
    if args.command == "edit":
        await commands.edit(args.key, args.value)
    elif args.command == "rename":
        await commands.rename(args.old_key, args.new_key, args.value)
    elif args.command == "delete":
        await commands.delete(args.key)
    elif args.command == "delete-all":
        await commands.delete_all()
    else:
        await commands.request_snapshot()
    print(f"[inspect] {args.command} sent")


async def _run(args: argparse.Namespace) -> int:
    config = InspectorConfig.from_env()
    async with MqttDebugChannel(config) as channel, InspectorSession(config, channel=channel) as session:
        if args.command == "watch":
            await _watch(session, args)
        else:
            await _send(session, args)
    return 0


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(_run(args))
    except DispatchError as exc:
        print(f"[inspect] {exc.operation or 'command'} failed: {exc}", file=sys.stderr)
        return 1
    except SecureStorageError as exc:
        print(f"[inspect] {exc}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(_main())
