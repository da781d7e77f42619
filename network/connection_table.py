"""
Connection Table Reader — NetMonitor
Snapshots the host's IPv4 TCP connection table together with the PID that
owns each socket.

On Windows the native extended TCP table is read directly (see tcp_table.py);
on every other platform psutil provides the same rows.
"""

import enum
import ipaddress
import logging
import struct
import sys
from typing import Callable, List, NamedTuple

import psutil

logger = logging.getLogger(__name__)


class ConnectionState(enum.IntEnum):
    """TCP connection state, numbered the way the OS table reports it."""

    UNKNOWN = 0
    CLOSED = 1
    LISTEN = 2
    SYN_SENT = 3
    SYN_RECEIVED = 4
    ESTABLISHED = 5
    FIN_WAIT1 = 6
    FIN_WAIT2 = 7
    CLOSE_WAIT = 8
    CLOSING = 9
    LAST_ACK = 10
    TIME_WAIT = 11
    DELETE_TCB = 12

    @classmethod
    def _missing_(cls, value):
        # Unmapped raw values become pseudo-members instead of raising.
        if not isinstance(value, int):
            return None
        member = int.__new__(cls, value)
        member._name_ = f"STATE_{value}"
        member._value_ = value
        return member


# psutil reports states as strings; map them onto the OS numbering.
PSUTIL_STATES: dict = {
    psutil.CONN_ESTABLISHED: ConnectionState.ESTABLISHED,
    psutil.CONN_SYN_SENT: ConnectionState.SYN_SENT,
    psutil.CONN_SYN_RECV: ConnectionState.SYN_RECEIVED,
    psutil.CONN_FIN_WAIT1: ConnectionState.FIN_WAIT1,
    psutil.CONN_FIN_WAIT2: ConnectionState.FIN_WAIT2,
    psutil.CONN_TIME_WAIT: ConnectionState.TIME_WAIT,
    psutil.CONN_CLOSE: ConnectionState.CLOSED,
    psutil.CONN_CLOSE_WAIT: ConnectionState.CLOSE_WAIT,
    psutil.CONN_LAST_ACK: ConnectionState.LAST_ACK,
    psutil.CONN_LISTEN: ConnectionState.LISTEN,
    psutil.CONN_CLOSING: ConnectionState.CLOSING,
    psutil.CONN_NONE: ConnectionState.UNKNOWN,
}


class Endpoint(NamedTuple):
    """An (IP address, port) pair."""

    ip: str
    port: int

    def __str__(self) -> str:
        if ":" in self.ip:
            return f"[{self.ip}]:{self.port}"
        return f"{self.ip}:{self.port}"


class ConnectionRecord(NamedTuple):
    """One TCP connection observed at a single point in time."""

    state: ConnectionState
    local: Endpoint
    remote: Endpoint
    pid: int


# MIB_TCPROW_OWNER_PID: six little-endian DWORDs
# (state, local addr, local port, remote addr, remote port, owning pid).
ROW_FORMAT: str = "<6I"
ROW_SIZE: int = struct.calcsize(ROW_FORMAT)
COUNT_FORMAT: str = "<I"
COUNT_SIZE: int = struct.calcsize(COUNT_FORMAT)


def ntohs(value: int) -> int:
    """Swap the two low bytes of a port stored in network byte order."""
    return ((value >> 8) & 0xFF) | ((value & 0xFF) << 8)


def _decode_address(value: int) -> str:
    # The DWORD holds the address bytes in wire order.
    return str(ipaddress.IPv4Address(struct.pack("<I", value)))


def decode_row(raw: bytes) -> ConnectionRecord:
    """
    Decode a single MIB_TCPROW_OWNER_PID row.

    Args:
        raw: Exactly ROW_SIZE bytes as laid out by the OS.

    Returns:
        A ConnectionRecord with addresses and ports in host order.
    """
    state, local_addr, local_port, remote_addr, remote_port, pid = struct.unpack(ROW_FORMAT, raw)
    return ConnectionRecord(
        state=ConnectionState(state),
        local=Endpoint(_decode_address(local_addr), ntohs(local_port & 0xFFFF)),
        remote=Endpoint(_decode_address(remote_addr), ntohs(remote_port & 0xFFFF)),
        pid=int(pid),
    )


def decode_table(buffer: bytes) -> List[ConnectionRecord]:
    """
    Decode a MIB_TCPTABLE_OWNER_PID buffer: an entry count followed by rows.

    Rows that the entry count claims but the buffer does not hold are ignored,
    so a truncated buffer never causes an out-of-bounds read.
    """
    if len(buffer) < COUNT_SIZE:
        return []

    (count,) = struct.unpack_from(COUNT_FORMAT, buffer, 0)
    available = (len(buffer) - COUNT_SIZE) // ROW_SIZE
    if count > available:
        logger.warning("TCP table claims %d rows but buffer holds %d.", count, available)
        count = available

    records: List[ConnectionRecord] = []
    for index in range(count):
        offset = COUNT_SIZE + index * ROW_SIZE
        records.append(decode_row(bytes(buffer[offset:offset + ROW_SIZE])))
    return records


# ---------------------------------------------------------------------------
# psutil backend (Linux, macOS, BSD)
# ---------------------------------------------------------------------------

_warned_no_perms = False


def _endpoint(addr) -> Endpoint:
    if not addr:
        return Endpoint("0.0.0.0", 0)
    return Endpoint(str(ipaddress.ip_address(addr.ip)), int(addr.port))


def _sort_key(record: ConnectionRecord) -> tuple:
    return (
        ipaddress.ip_address(record.local.ip).packed,
        record.local.port,
        ipaddress.ip_address(record.remote.ip).packed,
        record.remote.port,
    )


def snapshot_psutil(sort: bool = True) -> List[ConnectionRecord]:
    """
    Retrieve IPv4 TCP connections through psutil.

    Returns an empty list if the table cannot be read (e.g. insufficient
    privileges on macOS).
    """
    global _warned_no_perms  # pylint: disable=global-statement
    try:
        rows = psutil.net_connections(kind="tcp4")
    except (psutil.AccessDenied, PermissionError):
        if not _warned_no_perms:
            _warned_no_perms = True
            logger.warning(
                "Connection table unavailable: access denied. "
                "Run with elevated privileges for full visibility."
            )
        return []

    records: List[ConnectionRecord] = []
    for conn in rows:
        records.append(
            ConnectionRecord(
                state=PSUTIL_STATES.get(conn.status, ConnectionState.UNKNOWN),
                local=_endpoint(conn.laddr),
                remote=_endpoint(conn.raddr),
                pid=conn.pid or 0,
            )
        )

    if sort:
        records.sort(key=_sort_key)
    return records


def _default_backend() -> Callable[[bool], List[ConnectionRecord]]:
    if sys.platform == "win32":
        from network import tcp_table  # pylint: disable=import-outside-toplevel

        return tcp_table.snapshot_native
    return snapshot_psutil


def snapshot(sort: bool = True) -> List[ConnectionRecord]:
    """
    Return the current IPv4 TCP connections, or an empty list on failure.

    Never raises: a failed read costs one tick, not the monitor.
    """
    try:
        return _default_backend()(sort)
    except (OSError, MemoryError) as exc:
        logger.error("Connection table snapshot failed: %s", exc)
        return []

