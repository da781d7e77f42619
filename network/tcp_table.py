"""
Native TCP Table — NetMonitor
Reads the Windows extended TCP table (GetExtendedTcpTable, iphlpapi.dll)
with the size-then-fetch protocol the API requires.
"""

import contextlib
import ctypes
import logging
from typing import Callable, Iterator, List, Optional, Tuple

import config
from network.connection_table import ConnectionRecord, decode_table

logger = logging.getLogger(__name__)

AF_INET: int = 2
NO_ERROR: int = 0
ERROR_INSUFFICIENT_BUFFER: int = 122
TCP_TABLE_OWNER_PID_ALL: int = 5

# query(buffer, size) -> (status, required_size); buffer is None when only
# the size is wanted.
TableQuery = Callable[[Optional[ctypes.Array], int], Tuple[int, int]]


class TableUnavailable(Exception):
    """The OS refused to return the connection table."""

    def __init__(self, status: int):
        super().__init__(f"GetExtendedTcpTable returned status {status}")
        self.status = status


@contextlib.contextmanager
def table_buffer(size: int) -> Iterator[ctypes.Array]:
    """Allocate a native buffer of *size* bytes, released when the block exits."""
    buffer = ctypes.create_string_buffer(size)
    try:
        yield buffer
    finally:
        ctypes.memset(buffer, 0, size)
        del buffer


def query_table(query: TableQuery, attempts: int = config.TABLE_QUERY_ATTEMPTS) -> bytes:
    """
    Run the two-phase size/fetch query and return the raw table bytes.

    If the table grows between the size call and the fetch call the fetch
    reports ERROR_INSUFFICIENT_BUFFER; the whole two-phase query is then
    repeated, up to *attempts* rounds.

    Raises:
        TableUnavailable: the OS reported any other status, or the table
            kept growing for every attempt.
    """
    status = ERROR_INSUFFICIENT_BUFFER
    for attempt in range(1, attempts + 1):
        status, size = query(None, 0)
        if status != ERROR_INSUFFICIENT_BUFFER:
            raise TableUnavailable(status)

        with table_buffer(size) as buffer:
            status, _ = query(buffer, size)
            if status == NO_ERROR:
                return buffer.raw[:size]

        if status != ERROR_INSUFFICIENT_BUFFER:
            raise TableUnavailable(status)
        logger.debug("TCP table grew during query (attempt %d/%d); retrying.", attempt, attempts)

    raise TableUnavailable(status)


def _iphlpapi_query(sort: bool) -> TableQuery:
    get_table = ctypes.WinDLL("iphlpapi.dll").GetExtendedTcpTable  # type: ignore[attr-defined]
    get_table.restype = ctypes.c_uint32
    get_table.argtypes = [
        ctypes.c_void_p,
        ctypes.POINTER(ctypes.c_uint32),
        ctypes.c_int,
        ctypes.c_uint32,
        ctypes.c_int,
        ctypes.c_uint32,
    ]

    def query(buffer, size):
        out_len = ctypes.c_uint32(size)
        status = get_table(
            buffer,
            ctypes.byref(out_len),
            int(sort),
            AF_INET,
            TCP_TABLE_OWNER_PID_ALL,
            0,
        )
        return int(status), int(out_len.value)

    return query


def snapshot_native(sort: bool = True) -> List[ConnectionRecord]:
    """
    Read the IPv4 TCP table with owning PIDs from iphlpapi.

    Returns an empty list when the OS reports anything other than success.
    """
    try:
        raw = query_table(_iphlpapi_query(sort))
    except TableUnavailable as exc:
        logger.warning("Connection table unavailable: %s", exc)
        return []
    return decode_table(raw)
