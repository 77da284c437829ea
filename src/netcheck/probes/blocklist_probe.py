"""Blocklist probe - does a filtering DNS resolver refuse to resolve a domain?

Each public resolver is queried directly at its own IP over UDP port 53.
A domain counts as blocked by a resolver when resolution fails outright or
when any returned address is a known sinkhole / block-page IP.
"""

import asyncio
import logging
from typing import FrozenSet, List, NamedTuple, Optional, Sequence

import dns.asyncresolver
import dns.exception

from netcheck.util.hosts import clean_host
from netcheck.util.types import BlocklistEntry, BlocklistReport

logger = logging.getLogger(__name__)


class DNSServer(NamedTuple):
    name: str
    ip: str


BLOCKLIST_DNS_SERVERS: Sequence[DNSServer] = (
    DNSServer("AdGuard", "176.103.130.130"),
    DNSServer("AdGuard Family", "176.103.130.132"),
    DNSServer("CleanBrowsing Adult", "185.228.168.10"),
    DNSServer("CleanBrowsing Family", "185.228.168.168"),
    DNSServer("CleanBrowsing Security", "185.228.168.9"),
    DNSServer("CloudFlare", "1.1.1.1"),
    DNSServer("CloudFlare Family", "1.1.1.3"),
    DNSServer("Comodo Secure", "8.26.56.26"),
    DNSServer("Google DNS", "8.8.8.8"),
    DNSServer("Neustar Family", "156.154.70.3"),
    DNSServer("Neustar Protection", "156.154.70.2"),
    DNSServer("Norton Family", "199.85.126.20"),
    DNSServer("OpenDNS", "208.67.222.222"),
    DNSServer("OpenDNS Family", "208.67.222.123"),
    DNSServer("Quad9", "9.9.9.9"),
    DNSServer("Yandex Family", "77.88.8.7"),
    DNSServer("Yandex Safe", "77.88.8.88"),
)

# Addresses filtering resolvers answer with instead of the real record.
KNOWN_BLOCK_IPS: FrozenSet[str] = frozenset({
    "146.112.61.106",  # OpenDNS
    "185.228.168.10",  # CleanBrowsing
    "8.26.56.26",      # Comodo
    "208.69.38.170",   # OpenDNS
    "208.69.39.170",   # OpenDNS
    "208.67.222.222",  # OpenDNS
    "208.67.222.123",  # OpenDNS FamilyShield
    "199.85.126.10",   # Norton
    "199.85.126.20",   # Norton Family
    "156.154.70.22",   # Neustar
    "77.88.8.7",       # Yandex
})


def server_resolver(server_ip: str, timeout: float) -> dns.asyncresolver.Resolver:
    """Resolver that talks only to server_ip, ignoring the host configuration."""
    resolver = dns.asyncresolver.Resolver(configure=False)
    resolver.nameservers = [server_ip]
    resolver.port = 53
    resolver.timeout = timeout
    resolver.lifetime = timeout
    return resolver


class BlocklistProbe:
    """Checks a domain against a table of filtering public resolvers."""

    def __init__(
        self,
        timeout: float = 5.0,
        servers: Sequence[DNSServer] = BLOCKLIST_DNS_SERVERS,
        block_ips: FrozenSet[str] = KNOWN_BLOCK_IPS,
    ):
        """Initialize with per-server timeout and the server / sinkhole tables."""
        self.timeout = timeout
        self.servers = list(servers)
        self.block_ips = block_ips

    def _resolver(self, server_ip: str) -> dns.asyncresolver.Resolver:
        return server_resolver(server_ip, self.timeout)

    async def _addresses(self, resolver: dns.asyncresolver.Resolver, host: str) -> Optional[List[str]]:
        """A and AAAA answers from one server; None when neither resolves."""
        answers = await asyncio.gather(
            resolver.resolve(host, 'A'),
            resolver.resolve(host, 'AAAA'),
            return_exceptions=True
        )
        addresses: List[str] = []
        resolved = False
        for answer in answers:
            if isinstance(answer, dns.exception.DNSException):
                continue
            if isinstance(answer, BaseException):
                logger.warning(f"Unexpected blocklist lookup error for {host}: {answer!r}")
                continue
            resolved = True
            addresses.extend(rdata.address for rdata in answer)
        return addresses if resolved else None

    async def is_blocked(self, host: str, server: DNSServer) -> bool:
        addresses = await self._addresses(self._resolver(server.ip), host)
        if addresses is None:
            logger.debug(f"{server.name} ({server.ip}) did not resolve {host}")
            return True
        return any(address in self.block_ips for address in addresses)

    async def check(self, domain: str) -> BlocklistReport:
        """Query every server concurrently; results keep table order."""
        report = BlocklistReport(domain=domain)
        host = clean_host(domain)

        verdicts = await asyncio.gather(*(self.is_blocked(host, server) for server in self.servers))
        report.results = [
            BlocklistEntry(server=server.name, server_ip=server.ip, is_blocked=blocked)
            for server, blocked in zip(self.servers, verdicts)
        ]
        return report
