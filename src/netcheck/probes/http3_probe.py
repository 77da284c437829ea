"""HTTP/3 probe over QUIC (aioquic).

A real HTTP/3 GET is attempted first. If it fails, a bare QUIC handshake
tells a host that speaks QUIC but refused the request apart from one that
does not speak QUIC at all.
"""

import asyncio
import logging
from typing import Dict, Optional
from urllib.parse import urlsplit

from aioquic.asyncio.client import connect
from aioquic.asyncio.protocol import QuicConnectionProtocol
from aioquic.h3.connection import H3_ALPN, H3Connection
from aioquic.h3.events import HeadersReceived
from aioquic.quic.configuration import QuicConfiguration
from aioquic.quic.events import ConnectionTerminated, QuicEvent

from netcheck.errors import describe_error
from netcheck.probes.fetch import USER_AGENT
from netcheck.util.hosts import ensure_scheme
from netcheck.util.types import TransportSupportReport

logger = logging.getLogger(__name__)

QUIC_PORT = 443

# Everything a QUIC dial or an H3 exchange fails with: resolution and socket
# errors, handshake failures (ConnectionError) and deadlines.
QUIC_ERRORS = (OSError, asyncio.TimeoutError, ValueError)


class H3StatusClient(QuicConnectionProtocol):
    """Minimal HTTP/3 client that only waits for the response status."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._http = H3Connection(self._quic)
        self._waiters: Dict[int, asyncio.Future] = {}

    async def get_status(self, authority: str, path: str) -> int:
        stream_id = self._quic.get_next_available_stream_id()
        self._http.send_headers(
            stream_id=stream_id,
            headers=[
                (b":method", b"GET"),
                (b":scheme", b"https"),
                (b":authority", authority.encode()),
                (b":path", path.encode()),
                (b"user-agent", USER_AGENT.encode()),
            ],
            end_stream=True,
        )
        waiter = asyncio.get_running_loop().create_future()
        self._waiters[stream_id] = waiter
        self.transmit()
        return await waiter

    def quic_event_received(self, event: QuicEvent) -> None:
        if isinstance(event, ConnectionTerminated):
            for waiter in self._waiters.values():
                if not waiter.done():
                    waiter.set_exception(ConnectionError(event.reason_phrase or "connection terminated"))
            self._waiters.clear()
            return

        for h3_event in self._http.handle_event(event):
            if not isinstance(h3_event, HeadersReceived):
                continue
            waiter = self._waiters.pop(h3_event.stream_id, None)
            if waiter is None or waiter.done():
                continue
            status = dict(h3_event.headers).get(b":status", b"0")
            try:
                waiter.set_result(int(status))
            except ValueError:
                waiter.set_exception(ValueError(f"malformed :status {status!r}"))


def quic_configuration(host: str, idle_timeout: float) -> QuicConfiguration:
    """Verifying client configuration offering the h3 ALPN tokens."""
    return QuicConfiguration(
        is_client=True,
        alpn_protocols=H3_ALPN,
        server_name=host,
        idle_timeout=idle_timeout,
    )


class HTTP3Probe:
    """HTTP/3 support detection."""

    def __init__(self, timeout: float = 10.0, handshake_timeout: float = 5.0, port: int = QUIC_PORT):
        """Initialize with request and fallback handshake timeouts."""
        self.timeout = timeout
        self.handshake_timeout = handshake_timeout
        self.port = port

    async def _request_status(self, host: str, path: str) -> int:
        async with connect(
            host,
            self.port,
            configuration=quic_configuration(host, self.timeout),
            create_protocol=H3StatusClient,
        ) as client:
            return await client.get_status(host, path)

    async def _handshake(self, host: str) -> None:
        async with connect(host, self.port, configuration=quic_configuration(host, self.handshake_timeout)):
            pass

    async def check(self, domain: str) -> TransportSupportReport:
        """Detect HTTP/3. Failures land in ``details``, ``error`` stays empty."""
        report = TransportSupportReport(domain=domain)
        parts = urlsplit(ensure_scheme(domain))
        host = parts.hostname or ""
        path = parts.path or "/"
        if parts.query:
            path = f"{path}?{parts.query}"

        try:
            status = await asyncio.wait_for(self._request_status(host, path), timeout=self.timeout)
        except QUIC_ERRORS as e:
            logger.debug(f"HTTP/3 request to {host} failed: {e!r}, trying bare QUIC handshake")
            return await self._check_handshake(report, host)

        report.status = status
        report.supported = True
        report.protocol = "HTTP/3.0"
        report.details = f"HTTP/3 supported! Status: {status}"
        return report

    async def _check_handshake(self, report: TransportSupportReport, host: Optional[str]) -> TransportSupportReport:
        try:
            await asyncio.wait_for(self._handshake(host), timeout=self.handshake_timeout)
        except QUIC_ERRORS as e:
            report.supported = False
            report.details = f"HTTP/3 not supported: {describe_error(e)}"
            return report

        report.supported = True
        report.protocol = "HTTP/3"
        report.details = "QUIC connection successful"
        return report
