"""Shared HTTP fetching for the web-facing probes.

Wraps one aiohttp session. ``fetch_with_fallback`` is the fixed two-attempt
policy used by robots.txt, Open Graph and the HTML proxy: HTTPS first, then
the same URL over plain HTTP if the HTTPS request failed outright.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import aiohttp
from multidict import CIMultiDictProxy

from netcheck.util.hosts import downgrade_to_http

logger = logging.getLogger(__name__)

USER_AGENT = "NetCheck-API/1.0"

# Anything a remote host can make a request fail with.
FETCH_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError)


@dataclass
class Fetched:
    """A completed HTTP exchange."""
    url: str
    status: int
    headers: CIMultiDictProxy
    content_length: Optional[int]
    body: bytes = b""

    def text(self, encoding: str = "utf-8") -> str:
        return self.body.decode(encoding, errors="replace")


class PageFetcher:
    """Thin aiohttp wrapper returning fully-read responses."""

    def __init__(self, session: aiohttp.ClientSession, timeout: float = 15.0):
        """Initialize with a shared session and default per-request timeout."""
        self.session = session
        self.timeout = timeout

    async def fetch(
        self,
        url: str,
        timeout: Optional[float] = None,
        read_body: bool = True,
        allow_redirects: bool = True,
    ) -> Fetched:
        """GET url. Raises one of FETCH_ERRORS on failure."""
        client_timeout = aiohttp.ClientTimeout(total=timeout or self.timeout)
        async with self.session.get(
            url,
            timeout=client_timeout,
            allow_redirects=allow_redirects,
            headers={'User-Agent': USER_AGENT},
        ) as resp:
            body = await resp.read() if read_body else b""
            return Fetched(
                url=url,
                status=resp.status,
                headers=resp.headers,
                content_length=resp.content_length,
                body=body,
            )

    async def fetch_with_fallback(
        self,
        url: str,
        timeout: Optional[float] = None,
        read_body: bool = True,
    ) -> Fetched:
        """GET url; if an https:// request fails, retry once over http://.

        ``Fetched.url`` is the URL that produced the response. Raises the
        last error when both attempts fail.
        """
        try:
            return await self.fetch(url, timeout=timeout, read_body=read_body)
        except FETCH_ERRORS as e:
            fallback = downgrade_to_http(url)
            if fallback == url:
                raise
            logger.debug(f"HTTPS fetch of {url} failed ({e!r}), retrying over HTTP")
            return await self.fetch(fallback, timeout=timeout, read_body=read_body)
