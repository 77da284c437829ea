"""Network fakes shared by the probe tests."""

from types import SimpleNamespace
from typing import Dict, List, Optional, Tuple, Union

import aiohttp
import dns.resolver
from multidict import CIMultiDict, CIMultiDictProxy

from netcheck.probes.fetch import Fetched, PageFetcher


def txt(*records: str) -> List[SimpleNamespace]:
    """TXT answer with one rdata per record string."""
    return [SimpleNamespace(strings=(record.encode(),)) for record in records]


def name(text: str) -> SimpleNamespace:
    return SimpleNamespace(to_text=lambda: text)


class FakeResolver:
    """Resolver answering from a {(name, rdtype): answer | exception} table.

    Unknown queries raise NXDOMAIN.
    """

    def __init__(self, answers: Optional[Dict[Tuple[str, str], object]] = None):
        self.answers = answers or {}
        self.queries: List[Tuple[str, str]] = []

    async def resolve(self, qname: str, rdtype: str):
        self.queries.append((qname, rdtype))
        answer = self.answers.get((qname, rdtype))
        if answer is None:
            raise dns.resolver.NXDOMAIN()
        if isinstance(answer, BaseException):
            raise answer
        return answer


def response(url: str, status: int = 200, body: Union[str, bytes] = b"",
             headers: Optional[Dict[str, str]] = None) -> Fetched:
    if isinstance(body, str):
        body = body.encode()
    return Fetched(
        url=url,
        status=status,
        headers=CIMultiDictProxy(CIMultiDict(headers or {})),
        content_length=len(body),
        body=body,
    )


class FakeFetcher(PageFetcher):
    """PageFetcher serving canned responses per URL.

    URLs missing from the table fail with a connection error, so the
    real HTTPS -> HTTP fallback logic is exercised unchanged.
    """

    def __init__(self, pages: Optional[Dict[str, object]] = None):
        super().__init__(session=None, timeout=1.0)
        self.pages = pages or {}
        self.requested: List[str] = []

    async def fetch(self, url, timeout=None, read_body=True, allow_redirects=True) -> Fetched:
        self.requested.append(url)
        page = self.pages.get(url)
        if page is None:
            raise aiohttp.ClientConnectionError(f"Cannot connect to {url}")
        if isinstance(page, BaseException):
            raise page
        return page
