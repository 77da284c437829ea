"""
Unit tests for DNS record lookups and the IP check
"""

import socket
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import dns.exception
import dns.resolver
import pytest

from netcheck.probes.dns_probe import DNSProbe
from netcheck.util.types import GeoLocation

from fakes import FakeResolver, name, txt


class StaticGeoLocator:
    async def locate(self, ip):
        return GeoLocation(country="Wonderland", city="Teacup")


class TestDNSCheck:
    @pytest.mark.asyncio
    async def test_partial_failure_is_not_an_error(self):
        resolver = FakeResolver({
            ("example.com", "CNAME"): dns.resolver.NoAnswer(),
            ("example.com", "MX"): [SimpleNamespace(exchange=name("mail.example.com."), preference=10)],
            ("example.com", "TXT"): dns.exception.Timeout(),
            ("example.com", "NS"): [SimpleNamespace(target=name("ns1.example.com."))],
        })
        with patch("netcheck.probes.dns_probe.resolve_addresses",
                   AsyncMock(side_effect=socket.gaierror("Name or service not known"))):
            report = await DNSProbe(resolver=resolver).check("https://example.com/")

        assert report.domain == "https://example.com/"
        assert report.error == ""
        assert report.ipv4 == [] and report.ipv6 == []
        assert report.cname == []
        assert report.mx == ["mail.example.com. (priority: 10)"]
        assert report.txt == []
        assert report.ns == ["ns1.example.com."]

    @pytest.mark.asyncio
    async def test_all_records(self):
        resolver = FakeResolver({
            ("example.com", "CNAME"): [SimpleNamespace(target=name("edge.cdn.example."))],
            ("example.com", "MX"): [],
            ("example.com", "TXT"): txt("v=spf1 -all", "hello"),
            ("example.com", "NS"): [],
        })
        with patch("netcheck.probes.dns_probe.resolve_addresses",
                   AsyncMock(return_value=(["93.184.216.34"], ["2606:2800:220:1::"]))):
            report = await DNSProbe(resolver=resolver).check("example.com")

        assert report.ipv4 == ["93.184.216.34"]
        assert report.ipv6 == ["2606:2800:220:1::"]
        assert report.cname == ["edge.cdn.example."]
        assert report.txt == ["v=spf1 -all", "hello"]
        assert report.error == ""

    @pytest.mark.asyncio
    async def test_total_failure_sets_error(self):
        with patch("netcheck.probes.dns_probe.resolve_addresses",
                   AsyncMock(side_effect=socket.gaierror("nope"))):
            report = await DNSProbe(resolver=FakeResolver()).check("nx.invalid")

        assert report.domain == "nx.invalid"
        assert report.error.startswith("DNS resolution failed:")


class TestIPCheck:
    @pytest.mark.asyncio
    async def test_literal_ip(self):
        report = await DNSProbe(resolver=FakeResolver()).check_ip("8.8.8.8")
        assert report.is_domain is False
        assert report.ip == "8.8.8.8"
        assert report.resolved_ips == []
        assert report.country == "Unknown"
        assert report.error == ""

    @pytest.mark.asyncio
    async def test_hostname_uses_first_ipv4(self):
        with patch("netcheck.probes.dns_probe.resolve_addresses",
                   AsyncMock(return_value=(["10.0.0.1", "10.0.0.2"], ["fd00::1"]))):
            report = await DNSProbe(resolver=FakeResolver()).check_ip("example.com")

        assert report.is_domain is True
        assert report.resolved_ips == ["10.0.0.1", "10.0.0.2"]
        assert report.ip == report.resolved_ips[0]

    @pytest.mark.asyncio
    async def test_pluggable_geolocation(self):
        probe = DNSProbe(resolver=FakeResolver(), geolocator=StaticGeoLocator())
        report = await probe.check_ip("203.0.113.7")
        assert report.country == "Wonderland"
        assert report.city == "Teacup"
        assert report.isp == "Unknown"

    @pytest.mark.asyncio
    async def test_failing_geolocator_does_not_fail_report(self):
        broken = SimpleNamespace(locate=AsyncMock(side_effect=RuntimeError("provider down")))
        report = await DNSProbe(resolver=FakeResolver(), geolocator=broken).check_ip("203.0.113.7")
        assert report.error == ""
        assert report.country == "Unknown"

    @pytest.mark.asyncio
    async def test_unresolvable_hostname(self):
        with patch("netcheck.probes.dns_probe.resolve_addresses",
                   AsyncMock(side_effect=socket.gaierror("Name or service not known"))):
            report = await DNSProbe(resolver=FakeResolver()).check_ip("nx.invalid")
        assert report.is_domain is True
        assert report.error == "Failed to resolve domain: Name or service not known"

    @pytest.mark.asyncio
    async def test_hostname_without_ipv4(self):
        with patch("netcheck.probes.dns_probe.resolve_addresses", AsyncMock(return_value=([], ["::1"]))):
            report = await DNSProbe(resolver=FakeResolver()).check_ip("v6only.example")
        assert report.error == "No IP addresses found for domain"
