"""DNS probe - record lookups and address information.

A/AAAA come from one getaddrinfo call split by address family, exactly what
the system resolver hands to any client. CNAME, MX, TXT and NS are queried
with dnspython, each on its own, so one failing record type never hides the
others.
"""

import asyncio
import logging
import socket
from typing import Iterable, List, Optional, Protocol, Tuple

import dns.asyncresolver
import dns.exception

from netcheck.errors import describe_error
from netcheck.util.hosts import clean_host, is_ip_address
from netcheck.util.types import AddressReport, GeoLocation, NameResolutionReport

logger = logging.getLogger(__name__)


class GeoLocator(Protocol):
    """Source of location data for an IP address."""

    async def locate(self, ip: str) -> GeoLocation:
        ...


class UnknownGeoLocator:
    """Default locator: no provider is wired in, every field is "Unknown"."""

    async def locate(self, ip: str) -> GeoLocation:
        return GeoLocation()


def txt_strings(answer: Iterable) -> List[str]:
    """Decode TXT rdata, joining the character-strings of each record."""
    records = []
    for rdata in answer:
        records.append(b"".join(rdata.strings).decode("utf-8", errors="replace"))
    return records


def dedupe(values: Iterable[str]) -> List[str]:
    """Drop repeats, keep first-seen order."""
    return list(dict.fromkeys(values))


async def resolve_addresses(host: str, timeout: float) -> Tuple[List[str], List[str]]:
    """IPv4 and IPv6 addresses of host from a single getaddrinfo call."""
    loop = asyncio.get_running_loop()
    infos = await asyncio.wait_for(
        loop.getaddrinfo(host, None, type=socket.SOCK_STREAM),
        timeout=timeout
    )
    ipv4 = dedupe(info[4][0] for info in infos if info[0] == socket.AF_INET)
    ipv6 = dedupe(info[4][0] for info in infos if info[0] == socket.AF_INET6)
    return ipv4, ipv6


class DNSProbe:
    """Async DNS record lookups.

    Uses the system resolver configuration (/etc/resolv.conf) for the
    dnspython queries unless a resolver is injected.
    """

    def __init__(
        self,
        timeout: float = 5.0,
        resolver: Optional[dns.asyncresolver.Resolver] = None,
        geolocator: Optional[GeoLocator] = None,
    ):
        """Initialize DNS probe with timeout, resolver and geolocation source."""
        self.timeout = timeout
        if resolver is None:
            resolver = dns.asyncresolver.Resolver()
            resolver.lifetime = timeout
        self.resolver = resolver
        self.geolocator = geolocator or UnknownGeoLocator()

    async def _query(self, name: str, rdtype: str):
        return await self.resolver.resolve(name, rdtype)

    async def _locate(self, ip: str) -> GeoLocation:
        try:
            return await asyncio.wait_for(self.geolocator.locate(ip), timeout=self.timeout)
        except Exception as e:
            logger.warning(f"Geolocation lookup for {ip} failed: {e!r}")
            return GeoLocation()

    async def check(self, domain: str) -> NameResolutionReport:
        """Look up A/AAAA, CNAME, MX, TXT and NS records.

        ``error`` is only set when every lookup failed.
        """
        report = NameResolutionReport(domain=domain)
        host = clean_host(domain)

        results = await asyncio.gather(
            resolve_addresses(host, self.timeout),
            self._query(host, 'CNAME'),
            self._query(host, 'MX'),
            self._query(host, 'TXT'),
            self._query(host, 'NS'),
            return_exceptions=True
        )
        addresses, cname, mx, txt, ns = results

        failures = [r for r in results if isinstance(r, BaseException)]
        for failure in failures:
            if not isinstance(failure, (dns.exception.DNSException, OSError, asyncio.TimeoutError)):
                logger.warning(f"Unexpected DNS lookup error for {host}: {failure!r}")

        if not isinstance(addresses, BaseException):
            report.ipv4, report.ipv6 = addresses

        if not isinstance(cname, BaseException):
            targets = [rdata.target.to_text() for rdata in cname]
            report.cname = [t for t in targets if t.rstrip('.') != host.rstrip('.')]

        if not isinstance(mx, BaseException):
            report.mx = [f"{rdata.exchange.to_text()} (priority: {rdata.preference})" for rdata in mx]

        if not isinstance(txt, BaseException):
            report.txt = txt_strings(txt)

        if not isinstance(ns, BaseException):
            report.ns = [rdata.target.to_text() for rdata in ns]

        if len(failures) == len(results):
            report.error = f"DNS resolution failed: {describe_error(failures[0])}"
            logger.debug(f"All DNS lookups failed for {host}: {failures!r}")

        return report

    async def check_ip(self, value: str) -> AddressReport:
        """Report an IP literal directly, or resolve a hostname and use its first IPv4."""
        report = AddressReport(input=value)
        host = clean_host(value)

        if is_ip_address(host):
            report.is_domain = False
            report.ip = host
            report.apply_location(await self._locate(host))
            return report

        report.is_domain = True
        try:
            ipv4, _ = await resolve_addresses(host, self.timeout)
        except (OSError, UnicodeError, asyncio.TimeoutError) as e:
            report.error = f"Failed to resolve domain: {describe_error(e)}"
            return report

        report.resolved_ips = ipv4
        if not ipv4:
            report.error = "No IP addresses found for domain"
            return report

        report.ip = ipv4[0]
        report.apply_location(await self._locate(report.ip))
        return report
