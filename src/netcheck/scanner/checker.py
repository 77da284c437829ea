"""NetChecker - one object owning the HTTP session and every probe.

The API builds exactly one of these at startup. Probes are stateless apart
from their timeouts, so a single instance serves all requests concurrently.
"""

import logging
from typing import Optional, Tuple

import aiohttp

from netcheck.probes.blocklist_probe import BlocklistProbe
from netcheck.probes.crawl_probe import CrawlProbe
from netcheck.probes.dns_probe import DNSProbe, GeoLocator
from netcheck.probes.email_probe import EmailProbe
from netcheck.probes.fetch import PageFetcher
from netcheck.probes.http3_probe import HTTP3Probe
from netcheck.probes.http_probe import HTTPProbe
from netcheck.probes.og_probe import OpenGraphProbe
from netcheck.probes.tls_probe import TLSProbe
from netcheck.util.config import Config
from netcheck.util.types import (
    AddressReport,
    BlocklistReport,
    CertificateReport,
    EmailAuthReport,
    HSTSReport,
    HTMLFetchReport,
    NameResolutionReport,
    OpenGraphReport,
    RobotsReport,
    SitemapReport,
    TransportSettingsReport,
    TransportSupportReport,
)

logger = logging.getLogger(__name__)


class NetChecker:
    """Facade over all protocol probes.

    Usable as an async context manager, or via explicit ``start()`` /
    ``close()`` when the lifetime is tied to an application.
    """

    def __init__(self, config: Config, geolocator: Optional[GeoLocator] = None):
        """Initialize probes that need no session; the session comes with start()."""
        self.config = config
        self.session: Optional[aiohttp.ClientSession] = None

        self.tls = TLSProbe(timeout=config.http_timeout)
        self.http3 = HTTP3Probe(timeout=config.http3_timeout, handshake_timeout=config.quic_handshake_timeout)
        self.dns = DNSProbe(timeout=config.dns_timeout, geolocator=geolocator)
        self.email = EmailProbe(timeout=config.dns_timeout)
        self.blocklist = BlocklistProbe(timeout=config.blocklist_timeout)

        self.fetcher: Optional[PageFetcher] = None
        self.http: Optional[HTTPProbe] = None
        self.crawl: Optional[CrawlProbe] = None
        self.open_graph: Optional[OpenGraphProbe] = None

    async def start(self, session: Optional[aiohttp.ClientSession] = None) -> "NetChecker":
        """Open (or adopt) the shared HTTP session and wire the web probes to it."""
        if session is None:
            session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.config.http_timeout))
        self.session = session
        self.fetcher = PageFetcher(session, timeout=self.config.http_timeout)
        self.http = HTTPProbe(
            self.fetcher,
            timeout=self.config.http_timeout,
            html_timeout=self.config.html_proxy_timeout,
        )
        self.crawl = CrawlProbe(self.fetcher)
        self.open_graph = OpenGraphProbe(self.fetcher)
        logger.info("NetChecker HTTP session opened")
        return self

    async def close(self):
        if self.session is not None and not self.session.closed:
            await self.session.close()
            logger.info("NetChecker HTTP session closed")
        self.session = None

    async def __aenter__(self) -> "NetChecker":
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    # ===== CHECKS =====

    async def check_ssl(self, domain: str) -> CertificateReport:
        return await self.tls.check(domain)

    async def check_http3(self, domain: str) -> TransportSupportReport:
        return await self.http3.check(domain)

    async def check_dns(self, domain: str) -> NameResolutionReport:
        return await self.dns.check(domain)

    async def check_ip(self, value: str) -> AddressReport:
        return await self.dns.check_ip(value)

    async def check_my_ip(self, client_ip: str) -> AddressReport:
        """check_ip for the caller's own address, labelled as such."""
        report = await self.dns.check_ip(client_ip)
        report.input = f"Your IP: {client_ip}"
        return report

    async def check_web_settings(self, domain: str) -> TransportSettingsReport:
        return await self.http.check_web_settings(domain)

    async def check_hsts(self, domain: str) -> HSTSReport:
        return await self.http.check_hsts(domain)

    async def check_ssl_and_web_settings(self, domain: str) -> Tuple[CertificateReport, TransportSettingsReport]:
        return await self.http.check_ssl_and_web_settings(domain)

    async def check_email_config(self, domain: str) -> EmailAuthReport:
        return await self.email.check(domain)

    async def check_blocklist(self, domain: str) -> BlocklistReport:
        return await self.blocklist.check(domain)

    async def check_robots_txt(self, domain: str) -> RobotsReport:
        return await self.crawl.check_robots(domain)

    async def check_sitemap(self, domain: str) -> SitemapReport:
        return await self.crawl.check_sitemap(domain)

    async def check_og_image(self, url: str) -> OpenGraphReport:
        return await self.open_graph.check(url)

    async def fetch_html(self, url: str) -> HTMLFetchReport:
        return await self.http.fetch_html(url)
