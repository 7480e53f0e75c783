"""Command-line entry point for the sync agent."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from agent.config import (
    AgentConfig,
    default_config_path,
    load_config,
    save_config,
    validate_server_url,
)
from agent.errors import SyncError
from agent.models import SyncState
from agent.sync_client import SyncClient

if TYPE_CHECKING:
    from types import FrameType

    from agent.models import SyncStats

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


class _ConsoleObserver:
    def status_changed(self, state: SyncState, stats: SyncStats) -> None:
        if state is SyncState.ERROR:
            print(f"Sync error: {stats.last_error}")
        elif state is SyncState.OFFLINE and stats.last_error:
            print(f"Offline: {stats.last_error}")


def _parse_mapping(value: str) -> tuple[str, str]:
    canonical, sep, local = value.partition("=")
    if not sep or not canonical or not local:
        raise argparse.ArgumentTypeError(
            f"Mapping must look like CANONICAL=LOCAL, got {value!r}"
        )
    return canonical, local


def _print_config(config: AgentConfig, config_path: Path) -> None:
    print(f"Config file:   {config_path}")
    print(f"Server:        {config.server_url or '(not set)'}")
    print(f"Token:         {'(set)' if config.token else '(not set)'}")
    print(f"Machine:       {config.machine_name} ({config.machine_id})")
    print(f"Interval:      {config.sync_interval}s")
    print(f"Paused:        {'yes' if config.paused else 'no'}")
    print(f"Watching:      {config.watch_dir}")
    if config.path_mappings:
        print("Path mappings:")
        for canonical, local in config.path_mappings.items():
            print(f"  {canonical} -> {local}")


def cmd_config(args: argparse.Namespace, config: AgentConfig, config_path: Path) -> int:
    updates: dict[str, object] = {}
    if args.server is not None:
        try:
            updates["server_url"] = validate_server_url(args.server, args.allow_insecure_http)
        except ValueError as exc:
            print(f"Error: {exc}")
            return 1
    if args.token is not None:
        updates["token"] = args.token
    if args.name is not None:
        updates["machine_name"] = args.name
    if args.interval is not None:
        if args.interval < 1:
            print("Error: --interval must be at least 1 second")
            return 1
        updates["sync_interval"] = args.interval
    if args.base_dir is not None:
        updates["base_dir"] = Path(args.base_dir).expanduser()
    if args.pause:
        updates["paused"] = True
    if args.resume:
        updates["paused"] = False

    if updates:
        config = config.model_copy(update=updates)
        save_config(config, config_path)
        print(f"Saved configuration to {config_path}")
    _print_config(config, config_path)
    return 0


def cmd_mapping(args: argparse.Namespace, config: AgentConfig, config_path: Path) -> int:
    mappings = dict(config.path_mappings)
    changed = False
    for canonical, local in args.add or []:
        mappings[canonical] = local
        changed = True
    for canonical in args.remove or []:
        if mappings.pop(canonical, None) is None:
            print(f"Error: No mapping for {canonical}")
            return 1
        changed = True
    if args.anchored is not None:
        config = config.model_copy(update={"anchored_mappings": args.anchored})
        changed = True

    if changed:
        config = config.model_copy(update={"path_mappings": mappings})
        save_config(config, config_path)
    if not mappings:
        print("No path mappings configured.")
    for canonical, local in mappings.items():
        print(f"{canonical} -> {local}")
    return 0


def cmd_sync(config: AgentConfig) -> int:
    client = SyncClient(config)
    try:
        downloaded = client.sync_now()
    except SyncError as exc:
        print(f"Error: {exc}")
        return 1
    finally:
        client.close()
    stats = client.stats
    print(
        f"Sync complete. {stats.uploaded_count} file(s) sent, "
        f"{downloaded} file(s) received, {stats.total_files} tracked."
    )
    return 0


def cmd_status(config: AgentConfig, config_path: Path) -> int:
    _print_config(config, config_path)
    if not config.is_configured():
        print("Status:        offline (not configured)")
        return 0
    client = SyncClient(config)
    try:
        if not client.check_connection():
            print("Status:        offline (relay unreachable)")
            return 1
        print("Status:        online")
        try:
            summary = client.relay_stats()
        except SyncError as exc:
            print(f"Error: {exc}")
            return 1
    finally:
        client.close()
    print(f"Relay files:   {summary.get('file_count', 0)}")
    print(f"Relay size:    {summary.get('total_size', 0)} bytes")
    print(f"Machines:      {summary.get('client_count', 0)}")
    for machine in summary.get("clients") or []:
        print(
            f"  {machine.get('machine_name') or machine.get('machine_id')}"
            f" ({machine.get('file_count', 0)} files, last seen {machine.get('last_seen')})"
        )
    return 0


def cmd_run(config: AgentConfig) -> int:
    if not config.is_configured():
        print("Error: No server configured. Run 'relaysync config --server <url> --token <token>'.")
        return 1
    client = SyncClient(config)
    client.subscribe(_ConsoleObserver())
    done = threading.Event()

    def on_signal(signum: int, _frame: FrameType | None) -> None:
        logger.info("Received signal %d, stopping", signum)
        done.set()

    signal.signal(signal.SIGINT, on_signal)
    signal.signal(signal.SIGTERM, on_signal)

    print(f"Syncing {config.watch_dir} with {config.server_url} every {config.sync_interval}s")
    client.start()
    try:
        while not done.wait(1.0):
            pass
    finally:
        client.close()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="relaysync",
        description="Replicate a local directory tree through a relaysync relay",
    )
    parser.add_argument(
        "--config",
        "-c",
        default=None,
        help=f"Config file (default: {default_config_path()})",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("run", help="Sync continuously until interrupted")
    subparsers.add_parser("sync", help="Run one sync cycle")
    subparsers.add_parser("status", help="Show configuration and relay status")

    config_parser = subparsers.add_parser("config", help="Show or change configuration")
    config_parser.add_argument("--server", "-s", help="Relay URL")
    config_parser.add_argument(
        "--allow-insecure-http",
        action="store_true",
        help="Allow http:// server URLs for non-localhost hosts",
    )
    config_parser.add_argument("--token", "-t", help="Tenant token")
    config_parser.add_argument("--name", help="Machine name shown to other machines")
    config_parser.add_argument("--interval", type=int, help="Seconds between sync cycles")
    config_parser.add_argument("--base-dir", help="Directory containing the watched subtree")
    pause_group = config_parser.add_mutually_exclusive_group()
    pause_group.add_argument("--pause", action="store_true", help="Suspend scheduled cycles")
    pause_group.add_argument("--resume", action="store_true", help="Resume scheduled cycles")

    mapping_parser = subparsers.add_parser("mapping", help="Manage path mappings")
    mapping_parser.add_argument(
        "--add",
        action="append",
        type=_parse_mapping,
        metavar="CANONICAL=LOCAL",
        help="Add or replace a mapping",
    )
    mapping_parser.add_argument(
        "--remove", action="append", metavar="CANONICAL", help="Remove a mapping"
    )
    anchored_group = mapping_parser.add_mutually_exclusive_group()
    anchored_group.add_argument(
        "--anchored",
        dest="anchored",
        action="store_true",
        default=None,
        help="Only rewrite prefixes at word boundaries",
    )
    anchored_group.add_argument(
        "--unanchored",
        dest="anchored",
        action="store_false",
        help="Rewrite every textual occurrence of a prefix",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    config_path = Path(args.config).expanduser() if args.config else default_config_path()
    try:
        config = load_config(config_path)
    except ValueError as exc:
        print(f"Error: Invalid config file {config_path}: {exc}")
        return 1

    if args.command == "config":
        return cmd_config(args, config, config_path)
    if args.command == "mapping":
        return cmd_mapping(args, config, config_path)
    if args.command == "sync":
        return cmd_sync(config)
    if args.command == "status":
        return cmd_status(config, config_path)
    if args.command == "run":
        return cmd_run(config)
    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
