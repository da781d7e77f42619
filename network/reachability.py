"""
Reachability Prober — NetMonitor
Decides whether the host can reach the internet, cheapest signal first:

  1. Interface gate  → an up, non-loopback, non-tunnel interface with a gateway
  2. ICMP probes     → echo to each well-known host in order
  3. DNS fallback    → resolve a public hostname (works where ICMP is filtered)

Each step only runs when the previous one was inconclusive. A failed gate ends
the probe at once; the poll loop retries on its next tick.
"""

import logging
import re

import dns.asyncresolver
import dns.exception
import icmplib
import netifaces
import psutil

import config

logger = logging.getLogger(__name__)

_GATEWAY_FAMILIES: tuple = (netifaces.AF_INET, netifaces.AF_INET6)


def is_tunnel(name: str, flags: str) -> bool:
    lowered = name.lower()
    if any(lowered.startswith(prefix) for prefix in config.TUNNEL_INTERFACE_PREFIXES):
        return True
    return "pointopoint" in flags


def is_loopback(name: str, flags: str) -> bool:
    if "loopback" in flags or "loopback" in name.lower():
        return True
    return re.fullmatch(r"lo\d*", name) is not None


def _gateway_interfaces() -> set:
    """Names of interfaces that carry at least one IPv4 or IPv6 gateway."""
    try:
        gateways = netifaces.gateways()
    except (OSError, ValueError) as exc:
        logger.debug("Gateway enumeration failed: %s", exc)
        return set()

    names: set = set()
    for family in _GATEWAY_FAMILIES:
        for entry in gateways.get(family, []):
            # (gateway address, interface, is_default)
            if len(entry) >= 2 and entry[0]:
                names.add(entry[1])
    return names


class ReachabilityProber:
    """Layered internet reachability check."""

    def __init__(
        self,
        hosts: tuple = config.PROBE_HOSTS,
        timeout: float = config.PROBE_TIMEOUT,
        dns_host: str = config.DNS_FALLBACK_HOST,
        dns_timeout: float = config.DNS_TIMEOUT,
        privileged: bool = config.ICMP_PRIVILEGED,
    ):
        self.hosts = tuple(hosts)
        self.timeout = timeout
        self.dns_host = dns_host
        self.dns_timeout = dns_timeout
        self.privileged = privileged

    def has_usable_interface(self) -> bool:
        """
        Return True if some interface could route beyond the local link.

        The interface must be up, must not be loopback or a tunnel, and must
        own a gateway. When the gateway table names interfaces differently from
        psutil (Windows reports adapter GUIDs) any gateway together with any
        qualifying interface is accepted.
        """
        try:
            stats = psutil.net_if_stats()
        except OSError as exc:
            logger.debug("Interface enumeration failed: %s", exc)
            return False

        candidates = set()
        for name, stat in stats.items():
            flags = getattr(stat, "flags", "") or ""
            if not stat.isup:
                continue
            if is_loopback(name, flags) or is_tunnel(name, flags):
                continue
            candidates.add(name)

        if not candidates:
            return False

        gateway_ifaces = _gateway_interfaces()
        if not gateway_ifaces:
            return False
        if candidates & gateway_ifaces:
            return True
        return not (gateway_ifaces & set(stats))

    async def ping(self, host: str) -> bool:
        """Send one ICMP echo to *host*; any error counts as no reply."""
        try:
            reply = await icmplib.async_ping(
                host,
                count=1,
                timeout=self.timeout,
                privileged=self.privileged,
            )
        except (icmplib.ICMPLibError, OSError) as exc:
            logger.debug("ICMP probe to %s failed: %s", host, exc)
            return False
        return reply.is_alive

    async def resolve_fallback(self) -> bool:
        """Resolve the fallback hostname; any answer means reachable."""
        try:
            resolver = dns.asyncresolver.Resolver()
            answer = await resolver.resolve(self.dns_host, "A", lifetime=self.dns_timeout)
        except (dns.exception.DNSException, OSError) as exc:
            logger.debug("DNS fallback for %s failed: %s", self.dns_host, exc)
            return False
        return len(answer) > 0

    async def probe(self) -> bool:
        """Run the gate, then ICMP probes, then the DNS fallback."""
        if not self.has_usable_interface():
            logger.debug("No usable interface with a gateway; skipping probes.")
            return False

        for host in self.hosts:
            if await self.ping(host):
                return True

        return await self.resolve_fallback()
