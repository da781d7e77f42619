"""
Centralized Configuration — NetMonitor
All tuneable parameters live here so they can be adjusted without touching
business-logic code.
"""

import os

# ── Poll Loop ────────────────────────────────────────────────────────────────
POLL_INTERVAL: float = 2.0              # seconds between probe + diff cycles

# ── Reachability Prober ──────────────────────────────────────────────────────
# ICMP targets are tried in order; the first reply wins.
PROBE_HOSTS: tuple = (
    "1.1.1.1",                          # Cloudflare DNS
    "8.8.8.8",                          # Google DNS
)
PROBE_TIMEOUT: float = 1.2              # seconds per ICMP echo
ICMP_PRIVILEGED: bool = False           # True requires root / raw sockets
DNS_FALLBACK_HOST: str = "example.com"  # resolved when every ICMP probe fails
DNS_TIMEOUT: float = 3.0                # seconds for the whole DNS lookup

# Interfaces whose name starts with one of these are treated as tunnels and
# never satisfy the interface gate.
TUNNEL_INTERFACE_PREFIXES: tuple = (
    "tun",
    "tap",
    "utun",
    "wg",
    "ppp",
    "ipsec",
    "gif",
    "stf",
    "teredo",
    "isatap",
)

# ── Connection Table ─────────────────────────────────────────────────────────
TABLE_QUERY_ATTEMPTS: int = 2           # size/fetch rounds before giving up

# ── Process Resolution ───────────────────────────────────────────────────────
UNKNOWN_PROCESS_NAME: str = "Unknown"
SHOW_PROCESS_PATH: bool = False         # append the executable path to names

# ── Event Log ────────────────────────────────────────────────────────────────
EVENT_LOG_ENABLED: bool = True
LOGS_DIR: str = os.path.join(os.path.dirname(os.path.abspath(__file__)), "logs")
ALLOWLIST_PATH: str = os.path.join(os.path.dirname(os.path.abspath(__file__)), "allowlist.json")

# ── Dashboard ────────────────────────────────────────────────────────────────
DASHBOARD_ENABLED: bool = True
DASHBOARD_HOST: str = "127.0.0.1"
DASHBOARD_PORT: int = 5001

# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL: str = "INFO"
LOG_FORMAT: str = "%(asctime)s [%(levelname)s] %(name)s — %(message)s"
LOG_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"
