"""CLI entry point for orcasync."""

import argparse
import asyncio
import json
import logging
import sys
import traceback
from datetime import datetime
from pathlib import Path

from .config import Config, load_config
from .node import SyncNode, run_node
from .store import LocalStore
from .sync import (
    ConnectivityMonitor,
    ForceSyncStatus,
    SyncStateStore,
    SyncStatusSnapshot,
    describe_status,
)
from .sync.coordinator import LAST_SYNC_KEY


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = "".join(traceback.format_exception(*record.exc_info))

        try:
            return json.dumps(log_data)
        except (TypeError, ValueError):
            log_data["message"] = str(log_data["message"])
            if "exception" in log_data:
                log_data["exception"] = str(log_data["exception"])
            return json.dumps(log_data)


def setup_logging(verbose: bool = False, log_level: str | None = None, json_output: bool = False) -> None:
    """Configure logging.

    Args:
        verbose: Enable debug logging (ignored if log_level is set).
        log_level: Explicit log level (warning, info, debug).
        json_output: Output logs as JSON lines for machine parsing.
    """
    if log_level:
        level_map = {
            "warning": logging.WARNING,
            "info": logging.INFO,
            "debug": logging.DEBUG,
        }
        level = level_map.get(log_level, logging.INFO)
    else:
        level = logging.DEBUG if verbose else logging.INFO

    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)

    logging.basicConfig(
        level=level,
        handlers=[handler],
    )

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


async def collect_status(config: Config) -> SyncStatusSnapshot:
    """Build a status snapshot from local data and a single probe.

    Does not touch the remote document store.
    """
    store = LocalStore(config.local.db_path)
    store.connect()
    try:
        state = SyncStateStore(store)
        counts = state.get_counts(config.auth.user_id)

        last_sync = store.get_meta(LAST_SYNC_KEY)

        monitor = ConnectivityMonitor(
            probe_url=config.connectivity.probe_url,
            timeout=config.connectivity.probe_timeout_seconds,
        )
        online = await monitor.check_once()

        return SyncStatusSnapshot(
            is_online=online,
            is_syncing=False,
            pending_count=counts.pending_count,
            error_count=counts.error_count,
            last_sync_timestamp=datetime.fromisoformat(last_sync) if last_sync else None,
            user_id=config.auth.user_id,
        )
    finally:
        store.close()


async def cmd_status(args: argparse.Namespace) -> int:
    """Show local sync status."""
    config = load_config(args.config)
    status = await collect_status(config)
    label, detail = describe_status(status)

    if args.json:
        data = status.to_dict()
        data["label"] = label
        data["detail"] = detail
        print(json.dumps(data, indent=2))
        return 0

    print("orcasync Status")
    print("===============")
    print(f"Node: {config.node.name}")
    print(f"User: {status.user_id or 'not signed in'}")
    print(f"Status: {label}")
    print(f"  {detail}")
    print(f"Online: {'Yes' if status.is_online else 'No'}")
    print(f"Pending: {status.pending_count}")
    print(f"Errors: {status.error_count}")
    last_sync = status.last_sync_timestamp
    print(f"Last sync: {last_sync.isoformat() if last_sync else 'never'}")
    return 0


async def cmd_sync(args: argparse.Namespace) -> int:
    """Run one manual sync against the configured remote."""
    config = load_config(args.config)

    if not config.auth.user_id:
        print("Error: no user configured (auth.user_id)", file=sys.stderr)
        return 1

    try:
        node = SyncNode(config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    node.coordinator.add_notice_listener(lambda notice: print(notice.message))

    try:
        if node.connectivity.probe_url:
            await node.connectivity.check_once()
        result = await node.coordinator.force_sync()
    finally:
        await node.stop()

    if result.push:
        print(
            f"Pushed: {result.push.synced} synced, {result.push.failed} failed, "
            f"{result.push.deleted} deleted, "
            f"{result.push.delete_failures} deletions pending"
        )
    if result.pull:
        print(f"Pulled: {result.pull.upserted} records, {result.pull.removed} removed")
    if result.error:
        print(f"Error: {result.error}", file=sys.stderr)

    return 0 if result.status == ForceSyncStatus.COMPLETED else 1


async def cmd_run(args: argparse.Namespace) -> int:
    """Run the sync node in the foreground."""
    config = load_config(args.config)

    print(f"Starting orcasync node: {config.node.name}")
    print(f"Remote: {config.remote.base_url or 'not configured'}")
    print(f"User: {config.auth.user_id or 'not signed in'}")

    try:
        await run_node(config)
    except KeyboardInterrupt:
        print("\nShutting down...")
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


async def cmd_dashboard(args: argparse.Namespace) -> int:
    """Start the sync node with the web dashboard."""
    config = load_config(args.config)

    try:
        from .dashboard import create_app

        import uvicorn
    except ImportError as e:
        print(f"Dashboard dependencies not installed: {e}", file=sys.stderr)
        print("Install with: pip install orcasync[dashboard]", file=sys.stderr)
        return 1

    try:
        node = SyncNode(config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    host = args.host or config.dashboard.host
    port = args.port or config.dashboard.port

    print(f"Starting orcasync Dashboard")
    print(f"Node: {config.node.name}")
    print(f"URL: http://{host}:{port}")

    app = create_app(config, coordinator=node.coordinator, store=node.store)

    try:
        await node.start()
        verbose = getattr(args, "verbose", False)
        config_uvicorn = uvicorn.Config(
            app,
            host=host,
            port=port,
            log_level="info" if verbose else "warning",
        )
        server = uvicorn.Server(config_uvicorn)
        await server.serve()
    finally:
        await node.stop()

    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="orcasync",
        description="Offline-first sync between a local store and a remote document store",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to config file (default: none, environment only)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["warning", "info", "debug"],
        default=None,
        help="Set log level explicitly (overrides -v/--verbose)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Output logs as JSON for machine parsing",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    status_parser = subparsers.add_parser("status", help="Show local sync status")
    status_parser.add_argument(
        "--json",
        action="store_true",
        help="Output status as JSON",
    )
    status_parser.set_defaults(func=cmd_status)

    sync_parser = subparsers.add_parser("sync", help="Push pending changes, then pull")
    sync_parser.set_defaults(func=cmd_sync)

    run_parser = subparsers.add_parser("run", help="Run the sync node")
    run_parser.set_defaults(func=cmd_run)

    dashboard_parser = subparsers.add_parser("dashboard", help="Run the node with the web dashboard")
    dashboard_parser.add_argument(
        "-p", "--port",
        type=int,
        default=None,
        help="Port to run dashboard on (default: from config, 8090)",
    )
    dashboard_parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind dashboard to (default: from config, 127.0.0.1)",
    )
    dashboard_parser.set_defaults(func=cmd_dashboard)

    args = parser.parse_args()

    setup_logging(args.verbose, args.log_level, args.json_logs)

    if not args.command:
        parser.print_help()
        return 1

    func = args.func
    if asyncio.iscoroutinefunction(func):
        return asyncio.run(func(args))
    return func(args)


if __name__ == "__main__":
    sys.exit(main())
