"""Crawler-facing files: robots.txt and sitemap.xml."""

import logging
import xml.etree.ElementTree as ET
from typing import Optional, Tuple

from netcheck.errors import describe_error
from netcheck.probes.fetch import FETCH_ERRORS, Fetched, PageFetcher
from netcheck.util.hosts import clean_host
from netcheck.util.types import RobotsReport, SitemapReport

logger = logging.getLogger(__name__)

SITEMAP_PATHS = ["/sitemap.xml", "/sitemap_index.xml", "/sitemap-index.xml", "/sitemaps.xml"]
MAX_SAMPLE_URLS = 10


def parse_robots(report: RobotsReport, content: str) -> None:
    """Fill the rule fields of report from robots.txt content.

    Disallow/Allow rules are attributed to the most recent User-agent line
    ("*" before the first one). Crawl-delay keeps the last value seen.
    """
    report.content = content
    report.lines = content.split("\n")

    agent = "*"
    for raw in report.lines:
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if ":" not in line:
            continue

        name, value = line.split(":", 1)
        name = name.strip().lower()
        value = value.strip()

        if name == "user-agent":
            agent = value
            report.user_agents.append(value)
        elif name == "disallow":
            if value:
                report.disallowed.append(f"{agent}: {value}")
        elif name == "allow":
            if value:
                report.allowed.append(f"{agent}: {value}")
        elif name == "sitemap":
            report.sitemaps.append(value)
        elif name == "crawl-delay":
            if value:
                report.crawl_delay = value


def _local(tag: str) -> str:
    """Element name without its ``{namespace}`` prefix."""
    return tag.rsplit("}", 1)[-1]


def _child_text(element: ET.Element, name: str) -> str:
    for child in element:
        if _local(child.tag) == name:
            return (child.text or "").strip()
    return ""


def parse_sitemap(report: SitemapReport, body: bytes) -> None:
    """Fill report from sitemap XML, trying the index schema before the urlset one.

    Sets ``error`` when the body is neither a non-empty ``<sitemapindex>`` nor
    a non-empty ``<urlset>``.
    """
    try:
        root = ET.fromstring(body)
    except ET.ParseError as e:
        logger.debug(f"Sitemap {report.sitemap_url} is not well-formed XML: {e}")
        root = None

    if root is not None and _local(root.tag) == "sitemapindex":
        locations = [_child_text(s, "loc") for s in root if _local(s.tag) == "sitemap"]
        if locations:
            report.is_sitemap_index = True
            report.url_count = len(locations)
            report.sub_sitemaps = locations
            return

    if root is not None and _local(root.tag) == "urlset":
        urls = [u for u in root if _local(u.tag) == "url"]
        if urls:
            report.url_count = len(urls)
            for url in urls[:MAX_SAMPLE_URLS]:
                report.sample_urls.append(_child_text(url, "loc"))
                lastmod = _child_text(url, "lastmod")
                if lastmod:
                    report.last_modified.append(lastmod)
            return

    report.error = "Sitemap found but could not parse XML structure"


class CrawlProbe:
    """robots.txt and sitemap discovery for a domain."""

    def __init__(self, fetcher: PageFetcher):
        self.fetcher = fetcher

    async def check_robots(self, domain: str) -> RobotsReport:
        """Fetch /robots.txt (HTTPS, then HTTP) and parse its rules.

        Any HTTP response counts as existing; ``status`` carries the code.
        """
        report = RobotsReport(domain=domain)
        host = clean_host(domain)
        try:
            fetched = await self.fetcher.fetch_with_fallback(f"https://{host}/robots.txt")
        except FETCH_ERRORS as e:
            report.status = "Not Found"
            report.error = f"Failed to fetch robots.txt: {describe_error(e)}"
            return report

        report.exists = True
        report.status = f"HTTP {fetched.status}"
        parse_robots(report, fetched.text())
        return report

    async def _find_sitemap(self, host: str) -> Tuple[Optional[Fetched], str]:
        """First sitemap location answering 200, and the last failure otherwise."""
        last_failure = ""
        for path in SITEMAP_PATHS:
            for scheme in ("https", "http"):
                url = f"{scheme}://{host}{path}"
                try:
                    fetched = await self.fetcher.fetch(url)
                except FETCH_ERRORS as e:
                    last_failure = describe_error(e)
                    continue
                if fetched.status == 200:
                    return fetched, ""
                last_failure = f"HTTP {fetched.status}"
        return None, last_failure

    async def check_sitemap(self, domain: str) -> SitemapReport:
        """Try the common sitemap locations and summarize the first one found."""
        report = SitemapReport(domain=domain)
        host = clean_host(domain)

        fetched, failure = await self._find_sitemap(host)
        if fetched is None:
            report.status = "Not Found"
            report.error = f"Failed to find sitemap: {failure}"
            return report

        report.sitemap_url = fetched.url
        report.exists = True
        report.status = f"HTTP {fetched.status}"
        parse_sitemap(report, fetched.body)
        return report
