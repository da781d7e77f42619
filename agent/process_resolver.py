"""
Process Identity Resolver — NetMonitor
Maps a PID to a human-readable process name, caching successful lookups for
the lifetime of the resolver.

PID reuse is not detected: once a name is cached for a PID, a later process
that the OS gives the same PID is reported under the cached name.
"""

import logging

import psutil

import config

logger = logging.getLogger(__name__)


class ProcessNameResolver:
    """PID → display name lookups backed by psutil and a positive-only cache."""

    def __init__(self, show_path: bool = config.SHOW_PROCESS_PATH):
        self.show_path = show_path
        self._cache: dict = {}

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, pid: int) -> bool:
        return pid in self._cache

    def clear(self) -> None:
        """Forget every cached name."""
        self._cache.clear()

    def resolve(self, pid: int) -> str:
        """
        Return the display name for *pid*.

        PIDs <= 0 and failed lookups resolve to config.UNKNOWN_PROCESS_NAME.
        Failures are not cached, so a PID that could not be read this poll is
        looked up again on the next one. Never raises.
        """
        if pid is None or pid <= 0:
            return config.UNKNOWN_PROCESS_NAME

        cached = self._cache.get(pid)
        if cached is not None:
            return cached

        name = self._lookup(pid)
        if name is None:
            return config.UNKNOWN_PROCESS_NAME

        self._cache[pid] = name
        return name

    def _lookup(self, pid: int) -> str | None:
        try:
            proc = psutil.Process(pid)
            with proc.oneshot():
                name = proc.name()
                if not self.show_path:
                    return name
                try:
                    path = proc.exe()
                except (psutil.AccessDenied, psutil.ZombieProcess, OSError):
                    path = None
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess) as exc:
            logger.debug("Could not resolve PID %d: %s", pid, exc)
            return None
        except (ValueError, OSError) as exc:
            logger.debug("Process lookup for PID %d failed: %s", pid, exc)
            return None

        return f"{name} ({path})" if path else name
