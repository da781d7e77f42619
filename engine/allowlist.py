"""
Allowlist — NetMonitor
Loads the set of process names whose outbound connections are expected, and
marks matching events so they are not treated as alerts.

The file holds ``{"allowlist": ["name", ...]}``. Entries are matched by
process name only, case-insensitively.
"""

import json
import logging
import os
from typing import Iterable, Optional

import config

logger = logging.getLogger(__name__)


def normalize_name(process_name: str) -> str:
    """Lower-case *process_name* and drop the " (path)" suffix of show_path mode."""
    return process_name.split(" (", 1)[0].strip().lower()


def parse_allowlist(data) -> frozenset:
    """
    Turn decoded allowlist JSON into a set of normalised names.

    Raises ValueError when the document does not hold a list of names under
    the ``allowlist`` key. Non-string entries are skipped.
    """
    if not isinstance(data, dict) or not isinstance(data.get("allowlist", []), list):
        raise ValueError('expected {"allowlist": [names]}')

    names = set()
    for entry in data.get("allowlist", []):
        if not isinstance(entry, str) or not entry.strip():
            logger.warning("Ignoring allowlist entry %r", entry)
            continue
        names.add(normalize_name(entry))
    return frozenset(names)


class Allowlist:
    """An allowlist file, re-read whenever its modification time changes."""

    def __init__(self, path: str):
        self.path = path
        self._names: frozenset = frozenset()
        self._mtime: Optional[float] = None

    def names(self) -> frozenset:
        """Return the current names; the last good set survives a bad reload."""
        try:
            mtime = os.path.getmtime(self.path)
        except OSError:
            if self._mtime is not None:
                logger.info("Allowlist %s removed", self.path)
            self._names, self._mtime = frozenset(), None
            return self._names

        if mtime == self._mtime:
            return self._names

        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                names = parse_allowlist(json.load(fh))
        except (OSError, ValueError) as exc:
            # json.JSONDecodeError is a ValueError
            logger.warning("Could not load allowlist %s: %s", self.path, exc)
            return self._names

        self._names, self._mtime = names, mtime
        logger.debug("Loaded %d allowlisted process name(s) from %s", len(names), self.path)
        return self._names

    def __contains__(self, process_name) -> bool:
        if not process_name:
            return False
        return normalize_name(process_name) in self.names()


default_allowlist = Allowlist(config.ALLOWLIST_PATH)


def is_allowlisted(process_name: str, allowlist: Optional[Allowlist] = None) -> bool:
    """Return True if *process_name* is on *allowlist* (the default file if omitted)."""
    return process_name in (allowlist if allowlist is not None else default_allowlist)


def mark_allowlisted(events: Iterable, allowlist: Optional[Allowlist] = None) -> list:
    """Set the ``allowlisted`` flag on each event and return them as a list."""
    if allowlist is None:
        allowlist = default_allowlist
    marked = []
    for event in events:
        event.allowlisted = event.process_name in allowlist
        marked.append(event)
    return marked
