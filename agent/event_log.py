"""
Event Log — NetMonitor
Keeps the audit trail of new outbound connections in logs/connections.json,
the live status shown by the dashboard, and CSV export.
"""

import csv
import json
import logging
import os
import threading
from datetime import datetime, timezone

import config

logger = logging.getLogger(__name__)

LOGS_DIR: str = config.LOGS_DIR
CONNECTIONS_FILE: str = os.path.join(LOGS_DIR, "connections.json")

CSV_FIELDS: list = ["timestamp", "pid", "name", "local_address", "remote_address"]

# Guards connections.json and the status snapshot; the dashboard thread reads both.
_LOG_LOCK = threading.Lock()

_status: dict = {
    "reachable": None,
    "interval": None,
    "last_tick": None,
    "ticks": 0,
    "new_connections": 0,
    "network_changed": None,
}


def _read_connections() -> list:
    if not os.path.isfile(CONNECTIONS_FILE):
        return []
    try:
        with open(CONNECTIONS_FILE, "r", encoding="utf-8") as f:
            return json.load(f)
    except (json.JSONDecodeError, IOError):
        logger.warning("connections.json was corrupted — starting fresh.")
        return []


def record_connection(event) -> None:
    """
    Append a new-connection event to logs/connections.json.

    Creates the logs directory and file if they do not exist.

    Args:
        event: A NewConnectionEvent.
    """
    os.makedirs(LOGS_DIR, exist_ok=True)

    with _LOG_LOCK:
        connections = _read_connections()
        connections.append(event.to_dict())
        with open(CONNECTIONS_FILE, "w", encoding="utf-8") as f:
            json.dump(connections, f, indent=2)


def load_connections() -> list:
    """Return every logged connection, or an empty list on error."""
    with _LOG_LOCK:
        return _read_connections()


def record_interval(interval: float) -> None:
    """Record the poll interval the running monitor was started with."""
    with _LOG_LOCK:
        _status["interval"] = interval


def record_tick(result) -> None:
    """Fold a TickResult into the live status snapshot."""
    with _LOG_LOCK:
        _status["reachable"] = result.reachable
        _status["last_tick"] = datetime.now(timezone.utc).isoformat()
        _status["ticks"] = result.tick
        _status["new_connections"] += len(result.events)
        if result.network_changed:
            _status["network_changed"] = _status["last_tick"]


def current_status() -> dict:
    """Return a copy of the live status snapshot."""
    with _LOG_LOCK:
        return dict(_status)


def export_connections_to_csv(output_path: str) -> str:
    """
    Export every logged connection to a CSV file.

    Args:
        output_path: Destination path for the CSV file.

    Returns:
        The absolute path to the generated CSV file.
    """
    connections = load_connections()

    with open(output_path, "w", newline="", encoding="utf-8") as csvfile:
        writer = csv.DictWriter(csvfile, fieldnames=CSV_FIELDS, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(connections)

    logger.info("Exported %d connections to %s", len(connections), output_path)
    return os.path.abspath(output_path)
