"""
Connection Diff Engine — NetMonitor

Turns repeated connection-table snapshots into a stream of "new outbound
connection" events.

Design:
  1. State filter     → only ESTABLISHED connections are reportable
  2. Key derivation   → (pid, local endpoint, remote endpoint, state)
  3. Seen-set check   → keys reported before are skipped
  4. Attribution      → new keys are resolved to a process name

The seen set only grows. A connection that stays ESTABLISHED is reported once;
a later, unrelated connection that reuses the exact same PID, endpoints and
state is indistinguishable from it and is not reported again.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, List, NamedTuple, Set

from network.connection_table import ConnectionRecord, ConnectionState, Endpoint

logger = logging.getLogger(__name__)

# States that describe an active, data-carrying session.
REPORTABLE_STATES: frozenset = frozenset({ConnectionState.ESTABLISHED})


class ConnectionKey(NamedTuple):
    """Deduplication identity of an observed connection."""

    pid: int
    local: Endpoint
    remote: Endpoint
    state: ConnectionState

    @classmethod
    def from_record(cls, record: ConnectionRecord) -> "ConnectionKey":
        return cls(record.pid, record.local, record.remote, record.state)


@dataclass
class NewConnectionEvent:
    """A connection seen for the first time, attributed to its owner."""

    process_id: int
    process_name: str
    local: Endpoint
    remote: Endpoint
    observed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    allowlisted: bool = False

    def to_dict(self) -> dict:
        return {
            "timestamp": self.observed_at.isoformat(),
            "pid": self.process_id,
            "name": self.process_name,
            "local_address": str(self.local),
            "remote_address": str(self.remote),
            "remote_ip": self.remote.ip,
            "remote_port": self.remote.port,
        }


def is_reportable(state: ConnectionState) -> bool:
    """Return True if connections in *state* are surfaced as new outbound."""
    return state in REPORTABLE_STATES


def diff(
    seen: Set[ConnectionKey],
    records: Iterable[ConnectionRecord],
    resolve: Callable[[int], str],
) -> List[NewConnectionEvent]:
    """
    Compare *records* against *seen* and return events for unseen keys.

    *seen* is updated in place with every key that produced an event. Events
    keep the order in which the table listed the records.
    """
    events: List[NewConnectionEvent] = []
    for record in records:
        if not is_reportable(record.state):
            continue

        key = ConnectionKey.from_record(record)
        if key in seen:
            continue
        seen.add(key)

        events.append(
            NewConnectionEvent(
                process_id=record.pid,
                process_name=resolve(record.pid),
                local=record.local,
                remote=record.remote,
            )
        )
    return events


class ConnectionDiffEngine:
    """Owns the seen set and the table reader for one monitor instance."""

    def __init__(self, resolver, reader: Callable[[], List[ConnectionRecord]]):
        self.resolver = resolver
        self.reader = reader
        self.seen: Set[ConnectionKey] = set()

    def diff(self, records: Iterable[ConnectionRecord]) -> List[NewConnectionEvent]:
        return diff(self.seen, records, self.resolver.resolve)

    def tick(self) -> List[NewConnectionEvent]:
        """Snapshot the connection table and return this tick's new events."""
        records = self.reader()
        events = self.diff(records)
        logger.debug(
            "Diffed %d connections: %d new, %d tracked.",
            len(records),
            len(events),
            len(self.seen),
        )
        return events
