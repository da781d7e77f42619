"""
Main Controller — NetMonitor
Metadata-only outbound connection monitor: reports internet reachability and
every new outbound TCP connection together with the process that owns it.
The optional dashboard runs in a daemon thread next to the poll loop.

Usage:
    python main.py [--interval SECONDS] [--port PORT] [--log-level LEVEL]
                   [--show-path] [--no-dashboard] [--export-csv PATH]
"""

import argparse
import asyncio
import logging
import signal
import sys
import threading

import config
from agent import event_log
from agent.process_resolver import ProcessNameResolver
from agent.scheduler import NetworkMonitor, TickResult
from dashboard.app import app as dashboard_app
from engine import allowlist
from engine.diff_engine import ConnectionDiffEngine
from network import connection_table
from network.interface_watcher import InterfaceWatcher
from network.reachability import ReachabilityProber

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    """Configure the root logger with the format specified in config."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=config.LOG_FORMAT,
        datefmt=config.LOG_DATE_FORMAT,
    )


def _parse_args() -> argparse.Namespace:
    """Parse and return command-line arguments."""
    parser = argparse.ArgumentParser(
        description="NetMonitor — metadata-only outbound connection monitor",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=config.POLL_INTERVAL,
        help=f"Seconds between polls (default: {config.POLL_INTERVAL})",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=config.DASHBOARD_PORT,
        help=f"Dashboard port (default: {config.DASHBOARD_PORT})",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=config.LOG_LEVEL,
        help=f"Logging verbosity (default: {config.LOG_LEVEL})",
    )
    parser.add_argument(
        "--show-path",
        action="store_true",
        default=config.SHOW_PROCESS_PATH,
        help="Append the executable path to process names",
    )
    parser.add_argument(
        "--no-dashboard",
        action="store_true",
        default=not config.DASHBOARD_ENABLED,
        help="Do not start the JSON dashboard",
    )
    parser.add_argument(
        "--export-csv",
        metavar="PATH",
        default=None,
        help="Export logs/connections.json to a CSV file and exit",
    )
    return parser.parse_args()


def _run_dashboard(port: int) -> None:
    """Start the Flask dashboard (blocking, runs in its own thread).

    Args:
        port: TCP port the dashboard listens on.
    """
    dashboard_app.run(debug=False, host=config.DASHBOARD_HOST, port=port, use_reloader=False)


class ConsoleSink:
    """Logs each tick: reachability and new outbound connections."""

    def __init__(self):
        self._last_reachable = None

    def __call__(self, result: TickResult) -> None:
        changed = self._last_reachable is not None and result.reachable != self._last_reachable
        self._last_reachable = result.reachable
        logger.info(
            "Internet: %s%s",
            "ON" if result.reachable else "OFF",
            " (changed)" if changed else "",
        )

        for event in result.events:
            if event.allowlisted:
                logger.debug(
                    "Allowlisted connection — PID: %s | Process: %s | %s → %s",
                    event.process_id,
                    event.process_name,
                    event.local,
                    event.remote,
                )
                continue
            logger.info(
                "NEW OUTBOUND — PID: %s | Process: %s | %s → %s",
                event.process_id,
                event.process_name,
                event.local,
                event.remote,
            )


def _allowlist_sink(result: TickResult) -> None:
    """Flag events whose process is on the allowlist."""
    allowlist.mark_allowlisted(result.events)


def _event_log_sink(result: TickResult) -> None:
    """Persist non-allowlisted events and refresh the live status."""
    for event in result.events:
        if not event.allowlisted:
            event_log.record_connection(event)
    event_log.record_tick(result)


def build_monitor(interval: float, show_path: bool) -> NetworkMonitor:
    """Wire the prober, diff engine and sinks into a NetworkMonitor."""
    resolver = ProcessNameResolver(show_path=show_path)
    engine = ConnectionDiffEngine(resolver, connection_table.snapshot)
    sinks = [_allowlist_sink, ConsoleSink()]
    if config.EVENT_LOG_ENABLED:
        sinks.append(_event_log_sink)
    event_log.record_interval(interval)
    return NetworkMonitor(
        ReachabilityProber(),
        engine,
        sinks=sinks,
        interval=interval,
        watcher=InterfaceWatcher(),
    )


async def _serve(monitor: NetworkMonitor) -> None:
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, monitor.stop)
        except (NotImplementedError, RuntimeError):
            # Windows event loops do not support signal handlers;
            # Ctrl+C surfaces as KeyboardInterrupt instead.
            pass
    await monitor.run()


def main() -> None:
    """Start the dashboard thread and run the poll loop until interrupted."""
    args = _parse_args()

    _configure_logging(args.log_level)

    # Handle --export-csv early exit
    if args.export_csv:
        out = event_log.export_connections_to_csv(args.export_csv)
        print(f"Connections exported to: {out}")
        sys.exit(0)

    if not args.no_dashboard:
        thread = threading.Thread(
            target=_run_dashboard,
            args=(args.port,),
            name="Dashboard",
            daemon=True,
        )
        thread.start()
        logger.info("Dashboard available at http://%s:%d/api/status", config.DASHBOARD_HOST, args.port)

    monitor = build_monitor(args.interval, args.show_path)
    logger.info("NetMonitor running. Press Ctrl+C to stop.")

    try:
        asyncio.run(_serve(monitor))
    except KeyboardInterrupt:
        logger.info("Shutting down NetMonitor.")


if __name__ == "__main__":
    main()
