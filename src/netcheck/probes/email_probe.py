"""Email authentication probe - SPF, DKIM, DMARC and BIMI records.

All four are TXT records at well-known names. Each sub-check stands on its
own: a failed lookup marks that mechanism as not configured and never fails
the report as a whole.
"""

import asyncio
import logging
import re
from typing import List, Optional

import dns.asyncresolver
import dns.exception

from netcheck.errors import describe_error
from netcheck.probes.dns_probe import txt_strings
from netcheck.util.hosts import clean_host
from netcheck.util.types import (
    BIMIReport,
    DKIMReport,
    DMARCPolicy,
    DMARCReport,
    EmailAuthReport,
    SPFReport,
)

logger = logging.getLogger(__name__)

# Selectors probed under <selector>._domainkey.<domain>
DKIM_SELECTORS = ["default", "dkim", "key1", "selector1", "s1", "s2"]

_DMARC_POLICY = re.compile(r'(?:^|;)\s*p\s*=\s*([A-Za-z]+)', re.I)
_BIMI_LOGO = re.compile(r'(?:^|;)\s*l\s*=\s*([^;]*)', re.I)


def parse_dmarc_policy(record: str) -> DMARCPolicy:
    """Policy from the ``p=`` tag of a DMARC record (``sp=`` is ignored)."""
    match = _DMARC_POLICY.search(record)
    if not match:
        return DMARCPolicy.UNKNOWN
    try:
        return DMARCPolicy(match.group(1).lower())
    except ValueError:
        return DMARCPolicy.UNKNOWN


def parse_bimi_logo(record: str) -> str:
    """Logo URL from the ``l=`` tag of a BIMI record, up to the next ';'."""
    match = _BIMI_LOGO.search(record)
    return match.group(1).strip() if match else ""


def first_with_prefix(records: List[str], prefix: str) -> Optional[str]:
    """First record starting with prefix, compared case-insensitively."""
    prefix = prefix.lower()
    for record in records:
        if record.strip().lower().startswith(prefix):
            return record
    return None


class EmailProbe:
    """Email authentication record checker."""

    def __init__(self, timeout: float = 5.0, resolver: Optional[dns.asyncresolver.Resolver] = None):
        """Initialize email probe with lookup timeout and optional resolver."""
        if resolver is None:
            resolver = dns.asyncresolver.Resolver()
            resolver.lifetime = timeout
        self.resolver = resolver

    async def _query_txt(self, name: str) -> List[str]:
        """TXT records at name. Raises DNSException on lookup failure."""
        answer = await self.resolver.resolve(name, 'TXT')
        return txt_strings(answer)

    async def check_spf(self, domain: str) -> SPFReport:
        """SPF is the first ``v=spf1`` TXT record on the domain itself."""
        report = SPFReport()
        try:
            records = await self._query_txt(domain)
        except dns.exception.DNSException as e:
            logger.debug(f"SPF lookup failed for {domain}: {e!r}")
            report.details = "No SPF record found"
            report.error = f"Failed to lookup TXT records: {describe_error(e)}"
            return report

        record = first_with_prefix(records, 'v=spf1')
        if record is None:
            report.details = "No SPF record found"
            return report

        report.configured = True
        report.valid = True
        report.record = record
        report.details = "SPF record found and configured"
        return report

    async def _dkim_selector_present(self, domain: str, selector: str) -> bool:
        try:
            records = await self._query_txt(f"{selector}._domainkey.{domain}")
        except dns.exception.DNSException:
            return False
        return first_with_prefix(records, 'v=dkim1') is not None

    async def check_dkim(self, domain: str) -> DKIMReport:
        """Probe the common selectors and collect those publishing a ``v=DKIM1`` key."""
        report = DKIMReport()
        present = await asyncio.gather(
            *(self._dkim_selector_present(domain, selector) for selector in DKIM_SELECTORS)
        )
        report.selectors = [s for s, found in zip(DKIM_SELECTORS, present) if found]

        if report.selectors:
            report.configured = True
            report.valid = True
            report.details = f"DKIM records found for selectors: {', '.join(report.selectors)}"
        else:
            report.details = "No DKIM records found for common selectors"
        return report

    async def check_dmarc(self, domain: str) -> DMARCReport:
        """DMARC lives at _dmarc.<domain>; the policy comes from its ``p=`` tag."""
        report = DMARCReport()
        try:
            records = await self._query_txt(f"_dmarc.{domain}")
        except dns.exception.DNSException as e:
            logger.debug(f"DMARC lookup failed for {domain}: {e!r}")
            report.details = "No DMARC record found"
            report.error = f"Failed to lookup DMARC record: {describe_error(e)}"
            return report

        record = first_with_prefix(records, 'v=dmarc1')
        if record is None:
            report.details = "No DMARC record found"
            return report

        report.configured = True
        report.valid = True
        report.record = record
        report.policy = parse_dmarc_policy(record)
        report.details = f"DMARC record found with policy: {report.policy.value}"
        return report

    async def check_bimi(self, domain: str) -> BIMIReport:
        """BIMI lives at default._bimi.<domain>."""
        report = BIMIReport()
        try:
            records = await self._query_txt(f"default._bimi.{domain}")
        except dns.exception.DNSException as e:
            logger.debug(f"BIMI lookup failed for {domain}: {e!r}")
            report.details = "No BIMI record found"
            return report

        record = first_with_prefix(records, 'v=bimi1')
        if record is None:
            report.details = "No BIMI record found"
            return report

        report.configured = True
        report.valid = True
        report.record = record
        report.logo_url = parse_bimi_logo(record)
        if report.logo_url:
            report.details = f"BIMI record found with logo: {report.logo_url}"
        else:
            report.details = "BIMI record found"
        return report

    async def check(self, domain: str) -> EmailAuthReport:
        """Run all four sub-checks concurrently."""
        report = EmailAuthReport(domain=domain)
        host = clean_host(domain)
        report.spf, report.dkim, report.dmarc, report.bimi = await asyncio.gather(
            self.check_spf(host),
            self.check_dkim(host),
            self.check_dmarc(host),
            self.check_bimi(host),
        )
        return report
