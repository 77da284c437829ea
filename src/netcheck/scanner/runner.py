"""Comprehensive check - fans out to six probes and joins seven results.

The combined certificate + settings task produces two entries (ssl and
web_settings) from one connection; every other task produces one. Entries
travel through a bounded queue sized to the number of entries, so the join
counts entries rather than tasks.

An overall deadline bounds the whole run. When it fires, outstanding tasks
are cancelled and each missing entry is filled with an empty report of the
right type carrying ``error="Check timed out"``. The result always has the
same key set.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Tuple

from netcheck.errors import describe_error
from netcheck.scanner.checker import NetChecker
from netcheck.util.time import elapsed_ms
from netcheck.util.types import (
    CertificateReport,
    EmailAuthReport,
    NameResolutionReport,
    RobotsReport,
    SitemapReport,
    TransportSettingsReport,
    TransportSupportReport,
)

logger = logging.getLogger(__name__)

# Entry name -> report type used when the entry has to be synthesized.
ENTRY_REPORTS = {
    'ssl': CertificateReport,
    'web_settings': TransportSettingsReport,
    'http3': TransportSupportReport,
    'dns': NameResolutionReport,
    'email_config': EmailAuthReport,
    'robots_txt': RobotsReport,
    'sitemap': SitemapReport,
}
ENTRY_NAMES = tuple(ENTRY_REPORTS)

TIMED_OUT = "Check timed out"

CheckTask = Tuple[Tuple[str, ...], Callable[[], Awaitable[Any]]]


def placeholder(name: str, domain: str, error: str):
    """Empty report for entry name that only carries an error."""
    return ENTRY_REPORTS[name](domain=domain, error=error)


class ComprehensiveRunner:
    """Runs the comprehensive check for one domain at a time."""

    def __init__(self, checker: NetChecker, timeout: float = 45.0):
        """Initialize with the shared checker and the overall deadline (<= 0 disables it)."""
        self.checker = checker
        self.timeout = timeout

    def _tasks(self, domain: str) -> List[CheckTask]:
        checker = self.checker
        return [
            (('ssl', 'web_settings'), lambda: checker.check_ssl_and_web_settings(domain)),
            (('http3',), lambda: checker.check_http3(domain)),
            (('dns',), lambda: checker.check_dns(domain)),
            (('email_config',), lambda: checker.check_email_config(domain)),
            (('robots_txt',), lambda: checker.check_robots_txt(domain)),
            (('sitemap',), lambda: checker.check_sitemap(domain)),
        ]

    async def _timed(self, names: Tuple[str, ...], check: Callable[[], Awaitable[Any]],
                     domain: str, queue: asyncio.Queue):
        """Run one check and put one (name, report, elapsed_ms) entry per name."""
        start = time.monotonic()
        try:
            result = await check()
        except Exception as e:
            logger.exception(f"Check {'/'.join(names)} for {domain} raised")
            reports = tuple(placeholder(name, domain, f"Check failed: {describe_error(e)}") for name in names)
        else:
            reports = tuple(result) if len(names) > 1 else (result,)

        ms = elapsed_ms(start)
        for name, report in zip(names, reports):
            await queue.put((name, report, ms))

    async def run(self, domain: str) -> Dict[str, Any]:
        """Run all checks concurrently and return entry name -> report, plus ``_meta``."""
        start = time.monotonic()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout if self.timeout > 0 else None

        queue: asyncio.Queue = asyncio.Queue(maxsize=len(ENTRY_NAMES))
        tasks = [
            asyncio.create_task(self._timed(names, check, domain, queue))
            for names, check in self._tasks(domain)
        ]

        results: Dict[str, Any] = {}
        timings: Dict[str, int] = {}

        def take(entry):
            name, report, ms = entry
            results[name] = report
            timings[name] = ms

        try:
            while len(results) < len(ENTRY_NAMES):
                remaining = None if deadline is None else deadline - loop.time()
                if remaining is not None and remaining <= 0:
                    break
                try:
                    take(await asyncio.wait_for(queue.get(), timeout=remaining))
                except asyncio.TimeoutError:
                    break
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        while not queue.empty():
            take(queue.get_nowait())

        total = elapsed_ms(start)
        missing = [name for name in ENTRY_NAMES if name not in results]
        if missing:
            logger.warning(f"Comprehensive check for {domain} hit its {self.timeout:g}s deadline; "
                           f"timed out: {', '.join(missing)}")
        for name in missing:
            results[name] = placeholder(name, domain, TIMED_OUT)
            timings[name] = total

        timings['total'] = total
        results['_meta'] = {
            'timings': timings,
            'domain': domain,
            'total_ms': total,
        }
        logger.info(f"Comprehensive check for {domain} finished in {total}ms")
        return results
