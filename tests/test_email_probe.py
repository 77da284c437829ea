"""
Unit tests for SPF, DKIM, DMARC and BIMI checks
"""

import dns.exception
import pytest

from netcheck.probes.email_probe import EmailProbe, parse_bimi_logo, parse_dmarc_policy
from netcheck.util.types import DMARCPolicy

from fakes import FakeResolver, txt


class TestRecordParsing:
    @pytest.mark.parametrize("record,policy", [
        ("v=DMARC1; p=reject; rua=mailto:dmarc@example.com", DMARCPolicy.REJECT),
        ("v=DMARC1; p=none", DMARCPolicy.NONE),
        ("v=DMARC1;p=Quarantine;pct=50", DMARCPolicy.QUARANTINE),
        ("v=DMARC1; sp=reject; p=none", DMARCPolicy.NONE),
        ("v=DMARC1; rua=mailto:x@example.com", DMARCPolicy.UNKNOWN),
        ("v=DMARC1; p=bogus", DMARCPolicy.UNKNOWN),
    ])
    def test_dmarc_policy(self, record, policy):
        assert parse_dmarc_policy(record) == policy

    def test_bimi_logo(self):
        assert parse_bimi_logo("v=BIMI1; l=https://example.com/logo.svg; a=") == "https://example.com/logo.svg"
        assert parse_bimi_logo("v=BIMI1; a=https://example.com/vmc.pem") == ""


class TestEmailProbe:
    @pytest.fixture
    def resolver(self):
        return FakeResolver({
            ("example.com", "TXT"): txt("google-site-verification=abc", "v=spf1 include:_spf.example.net ~all"),
            ("selector1._domainkey.example.com", "TXT"): txt("v=DKIM1; k=rsa; p=MIGfMA0"),
            ("s2._domainkey.example.com", "TXT"): txt("V=DKIM1; p=MIIB"),
            ("dkim._domainkey.example.com", "TXT"): txt("unrelated"),
            ("_dmarc.example.com", "TXT"): txt("v=DMARC1; p=reject; rua=mailto:dmarc@example.com"),
            ("default._bimi.example.com", "TXT"): txt("v=BIMI1; l=https://example.com/logo.svg"),
        })

    @pytest.mark.asyncio
    async def test_fully_configured_domain(self, resolver):
        report = await EmailProbe(resolver=resolver).check("https://example.com")

        assert report.domain == "https://example.com"
        assert report.error == ""

        assert report.spf.configured and report.spf.valid
        assert report.spf.record == "v=spf1 include:_spf.example.net ~all"
        assert report.spf.details == "SPF record found and configured"

        assert report.dkim.selectors == ["selector1", "s2"]
        assert report.dkim.details == "DKIM records found for selectors: selector1, s2"

        assert report.dmarc.configured is True
        assert report.dmarc.policy == DMARCPolicy.REJECT
        assert report.dmarc.details == "DMARC record found with policy: reject"

        assert report.bimi.logo_url == "https://example.com/logo.svg"
        assert report.bimi.details == "BIMI record found with logo: https://example.com/logo.svg"

        data = report.to_dict()
        assert data["dmarc"]["policy"] == "reject"

    @pytest.mark.asyncio
    async def test_unconfigured_domain(self):
        report = await EmailProbe(resolver=FakeResolver()).check("bare.example")

        assert report.error == ""
        assert report.spf.configured is False
        assert report.spf.details == "No SPF record found"
        assert report.spf.error.startswith("Failed to lookup TXT records")
        assert report.dkim.configured is False
        assert report.dkim.details == "No DKIM records found for common selectors"
        assert report.dmarc.configured is False
        assert report.dmarc.policy is None
        assert report.bimi.configured is False
        assert report.bimi.details == "No BIMI record found"

    @pytest.mark.asyncio
    async def test_txt_without_spf(self):
        resolver = FakeResolver({("example.org", "TXT"): txt("hello")})
        report = await EmailProbe(resolver=resolver).check_spf("example.org")
        assert report.configured is False
        assert report.error == ""

    @pytest.mark.asyncio
    async def test_dmarc_lookup_timeout(self):
        resolver = FakeResolver({("_dmarc.example.org", "TXT"): dns.exception.Timeout()})
        report = await EmailProbe(resolver=resolver).check_dmarc("example.org")
        assert report.configured is False
        assert report.details == "No DMARC record found"
        assert report.error.startswith("Failed to lookup DMARC record")

    @pytest.mark.asyncio
    async def test_bimi_without_logo(self):
        resolver = FakeResolver({("default._bimi.example.org", "TXT"): txt("v=BIMI1;")})
        report = await EmailProbe(resolver=resolver).check_bimi("example.org")
        assert report.configured is True
        assert report.details == "BIMI record found"
