"""Open Graph probe - social preview tags of a page and its preview image."""

import logging
from typing import Dict, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from netcheck.errors import describe_error
from netcheck.probes.fetch import FETCH_ERRORS, PageFetcher
from netcheck.util.hosts import clean_host, ensure_scheme
from netcheck.util.types import OpenGraphReport

logger = logging.getLogger(__name__)

# Tag name -> report attribute
OG_FIELDS = {
    'og:title': 'og_title',
    'og:description': 'og_description',
    'og:type': 'og_type',
    'og:url': 'og_url',
    'og:site_name': 'og_site_name',
    'og:locale': 'og_locale',
    'og:image:url': 'image_url_alt',
    'og:image:secure_url': 'image_secure',
    'og:image:width': 'image_width',
    'og:image:height': 'image_height',
    'og:image:type': 'image_type',
}

TWITTER_FIELDS = {
    'twitter:card': 'twitter_card',
    'twitter:site': 'twitter_site',
    'twitter:creator': 'twitter_creator',
    'twitter:title': 'twitter_title',
    'twitter:description': 'twitter_description',
    'twitter:image': 'twitter_image',
    'twitter:image:alt': 'twitter_image_alt',
}


def collect_meta_tags(soup: BeautifulSoup, prefix: str) -> Dict[str, str]:
    """All ``<meta property|name="prefix..." content="...">`` tags, lower-cased names.

    The first occurrence of a repeated tag wins. Empty content is skipped.
    """
    tags: Dict[str, str] = {}
    for meta in soup.find_all('meta'):
        name = meta.get('property') or meta.get('name') or ''
        name = name.strip().lower()
        content = (meta.get('content') or '').strip()
        if name.startswith(prefix) and content and name not in tags:
            tags[name] = content
    return tags


def _image_src_link(soup: BeautifulSoup) -> str:
    for link in soup.find_all('link', href=True):
        rel = link.get('rel') or []
        if isinstance(rel, str):
            rel = rel.split()
        if 'image_src' in [r.lower() for r in rel]:
            return link['href'].strip()
    return ''


def parse_open_graph(report: OpenGraphReport, html: str) -> None:
    """Fill the tag fields of report from page HTML.

    Image precedence: og:image, then twitter:image, then <link rel="image_src">.
    """
    soup = BeautifulSoup(html, 'html.parser')

    report.all_meta_tags = collect_meta_tags(soup, 'og:')
    report.all_twitter_tags = collect_meta_tags(soup, 'twitter:')

    for tag, attr in OG_FIELDS.items():
        if tag in report.all_meta_tags:
            setattr(report, attr, report.all_meta_tags[tag])
    for tag, attr in TWITTER_FIELDS.items():
        if tag in report.all_twitter_tags:
            setattr(report, attr, report.all_twitter_tags[tag])

    if soup.title and soup.title.string:
        report.meta_title = soup.title.string.strip()

    description = soup.find('meta', attrs={'name': lambda v: v and v.lower() == 'description'})
    if description and description.get('content'):
        report.meta_description = description['content'].strip()

    image = (report.all_meta_tags.get('og:image')
             or report.all_twitter_tags.get('twitter:image')
             or _image_src_link(soup))
    if image:
        report.found = True
        report.image_url = image


class OpenGraphProbe:
    """Fetches a page, extracts its preview tags and checks the preview image."""

    def __init__(self, fetcher: PageFetcher):
        self.fetcher = fetcher

    async def _check_image(self, report: OpenGraphReport, page_url: str) -> None:
        image_url = urljoin(page_url, report.image_url)
        try:
            fetched = await self.fetcher.fetch_with_fallback(image_url, read_body=False)
        except FETCH_ERRORS as e:
            logger.debug(f"Preview image {image_url} not reachable: {e!r}")
            report.image_error = f"Image not accessible: {describe_error(e)}"
            return

        report.status = fetched.status
        report.content_type = fetched.headers.get('Content-Type', '')
        report.size = fetched.content_length
        report.accessible = fetched.status < 400
        if not report.accessible:
            report.image_error = f"Image not accessible: HTTP {fetched.status}"

    async def check(self, url: str, timeout: Optional[float] = None) -> OpenGraphReport:
        """Open Graph report for url (a full URL or a bare domain)."""
        report = OpenGraphReport(url=url)
        target = ensure_scheme(url)
        report.domain = clean_host(target)

        try:
            fetched = await self.fetcher.fetch_with_fallback(target, timeout=timeout)
        except FETCH_ERRORS as e:
            report.error = f"Failed to fetch URL: {describe_error(e)}"
            return report

        if fetched.status != 200:
            report.error = f"HTTP {fetched.status}"
            return report

        parse_open_graph(report, fetched.text())
        if report.found:
            await self._check_image(report, fetched.url)
        return report
