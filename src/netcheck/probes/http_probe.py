"""HTTP probe - response headers, HSTS, and the raw HTML proxy.

Also hosts the combined certificate + settings check, which reads the TLS
certificate from the same connection that carries the HEAD request instead
of opening a second one.
"""

import logging
import re
import ssl
import time
from typing import Dict, List, Mapping, Optional, Tuple

import aiohttp

from netcheck.errors import describe_error
from netcheck.probes.fetch import FETCH_ERRORS, USER_AGENT, PageFetcher
from netcheck.probes.tls_probe import fill_certificate
from netcheck.util.hosts import downgrade_to_http, ensure_scheme
from netcheck.util.time import elapsed_ms
from netcheck.util.types import (
    CertificateReport,
    HSTSPolicy,
    HSTSReport,
    HTMLFetchReport,
    TransportSettingsReport,
)

logger = logging.getLogger(__name__)

_MAX_AGE = re.compile(r'max-age=(\d+)', re.I)


def parse_hsts(header: str) -> HSTSPolicy:
    """Parse a Strict-Transport-Security header value.

    >>> parse_hsts("max-age=31536000; includeSubDomains; preload").max_age
    31536000
    """
    policy = HSTSPolicy()
    if not header:
        policy.details = "HSTS header not present"
        return policy

    policy.enabled = True
    policy.directive = header

    match = _MAX_AGE.search(header)
    if match:
        policy.max_age = int(match.group(1))

    lowered = header.lower()
    policy.include_subdomains = 'includesubdomains' in lowered
    policy.preload = 'preload' in lowered

    details = [f"Max-Age: {policy.max_age} seconds"]
    details.append(f"Includes SubDomains: {'Yes' if policy.include_subdomains else 'No'}")
    if policy.preload:
        details.append("Preload: Yes")
    policy.details = ", ".join(details)
    return policy


def merge_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """Collapse repeated headers into one value joined with ', '."""
    merged: Dict[str, List[str]] = {}
    for name, value in headers.items():
        merged.setdefault(name, []).append(value)
    return {name: ", ".join(values) for name, values in merged.items()}


def fill_web_settings(report: TransportSettingsReport, status: int, headers, content_length) -> None:
    """Copy status and headers of a response into report."""
    report.status_code = status
    report.server = headers.get('Server', '')
    report.content_type = headers.get('Content-Type', '')
    report.last_modified = headers.get('Last-Modified', '')
    report.etag = headers.get('ETag', '')
    report.content_length = content_length
    if 300 <= status < 400:
        report.redirect_url = headers.get('Location', '')
    report.hsts = parse_hsts(headers.get('Strict-Transport-Security', ''))
    report.headers = merge_headers(headers)


class _CertificateCapture(ssl.SSLObject):
    """SSLObject that records the peer certificate when its handshake completes."""

    def do_handshake(self):
        super().do_handshake()
        self.context.peer_certificates.append(self.getpeercert(binary_form=True))


def certificate_capture_context(cafile: Optional[str] = None) -> ssl.SSLContext:
    """Verifying client context whose connections record their leaf certificate
    in ``context.peer_certificates``. cafile replaces the system trust store."""
    context = ssl.create_default_context(cafile=cafile)
    context.sslobject_class = _CertificateCapture
    context.peer_certificates = []
    return context


class HTTPProbe:
    """Front-page request and header collection.

    Redirects are not followed: a 3xx is reported with its Location.
    """

    def __init__(self, fetcher: PageFetcher, timeout: float = 15.0, html_timeout: float = 30.0):
        """Initialize HTTP probe with a fetcher and timeouts."""
        self.fetcher = fetcher
        self.timeout = timeout
        self.html_timeout = html_timeout

    @property
    def session(self) -> aiohttp.ClientSession:
        return self.fetcher.session

    async def check_web_settings(self, domain: str) -> TransportSettingsReport:
        """GET the site root and report status, headers, HSTS and latency."""
        report = TransportSettingsReport(domain=domain)
        url = ensure_scheme(domain)

        start = time.monotonic()
        try:
            fetched = await self.fetcher.fetch(url, timeout=self.timeout, read_body=False, allow_redirects=False)
        except FETCH_ERRORS as e:
            report.response_time_ms = elapsed_ms(start)
            logger.debug(f"Web settings request to {url} failed: {e!r}")
            report.error = f"Failed to connect: {describe_error(e)}"
            return report
        report.response_time_ms = elapsed_ms(start)

        fill_web_settings(report, fetched.status, fetched.headers, fetched.content_length)
        return report

    async def check_hsts(self, domain: str) -> HSTSReport:
        """HSTS view of check_web_settings."""
        settings = await self.check_web_settings(domain)
        return HSTSReport(domain=domain, hsts=settings.hsts, error=settings.error)

    async def check_ssl_and_web_settings(self, domain: str) -> Tuple[CertificateReport, TransportSettingsReport]:
        """One HEAD request; certificate and settings reports from the same connection.

        A failed request puts the same error in both reports. A completed
        request without a certificate (plain HTTP) only fails the certificate.
        """
        url = ensure_scheme(domain)
        certificate = CertificateReport(domain=domain)
        settings = TransportSettingsReport(domain=domain)

        context = certificate_capture_context()
        start = time.monotonic()
        try:
            async with self.session.head(
                url,
                ssl=context,
                allow_redirects=False,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={'User-Agent': USER_AGENT, 'Connection': 'close'},
            ) as resp:
                settings.response_time_ms = elapsed_ms(start)
                fill_web_settings(settings, resp.status, resp.headers, resp.content_length)
        except FETCH_ERRORS as e:
            settings.response_time_ms = elapsed_ms(start)
            logger.debug(f"Combined SSL/settings request to {url} failed: {e!r}")
            settings.error = f"Failed to connect: {describe_error(e)}"
            certificate.error = settings.error
            return certificate, settings

        der = context.peer_certificates[0] if context.peer_certificates else None
        fill_certificate(certificate, der)
        return certificate, settings

    async def fetch_html(self, url: str) -> HTMLFetchReport:
        """Raw HTML of url, HTTPS first with one HTTP retry."""
        target = ensure_scheme(url)
        report = HTMLFetchReport(url=target)
        try:
            fetched = await self.fetcher.fetch_with_fallback(target, timeout=self.html_timeout)
        except FETCH_ERRORS as e:
            report.url = downgrade_to_http(target)
            report.error = f"Failed to fetch: {describe_error(e)}"
            return report

        report.url = fetched.url
        report.status = fetched.status
        report.html = fetched.text()
        return report

