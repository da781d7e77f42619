"""
Interface Watcher — NetMonitor
Notices network availability and address changes between polls by comparing
psutil interface snapshots.
"""

import logging
import socket

import psutil

from network.reachability import is_loopback, is_tunnel

logger = logging.getLogger(__name__)

_ADDRESS_FAMILIES: tuple = (socket.AF_INET, socket.AF_INET6)


def _interface_state() -> tuple:
    """Return (names of up external interfaces, frozenset of (interface, address)).

    Loopback and tunnel interfaces never count towards availability.
    """
    stats = psutil.net_if_stats()
    up = set()
    for name, stat in stats.items():
        flags = getattr(stat, "flags", "") or ""
        if stat.isup and not (is_loopback(name, flags) or is_tunnel(name, flags)):
            up.add(name)
    addresses = frozenset(
        (name, addr.address)
        for name, addrs in psutil.net_if_addrs().items()
        for addr in addrs
        if addr.family in _ADDRESS_FAMILIES
    )
    return frozenset(up), addresses


class InterfaceWatcher:
    """Reports whether the interface set changed since the previous check."""

    def __init__(self):
        self._previous = None

    def check(self) -> bool:
        """
        Compare the current interfaces with the previous check.

        The first call only records a baseline and returns False.
        """
        try:
            current = _interface_state()
        except OSError as exc:
            logger.debug("Interface snapshot failed: %s", exc)
            return False

        previous, self._previous = self._previous, current
        if previous is None or previous == current:
            return False

        prev_up, _ = previous
        up, _ = current
        if bool(prev_up) != bool(up):
            logger.info("Network availability changed: %s", "AVAILABLE" if up else "NOT AVAILABLE")
        logger.info("Network address changed.")
        return True
