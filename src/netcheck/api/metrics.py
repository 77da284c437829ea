"""Prometheus request metrics and the /metrics scrape endpoint.

Each application owns its registry, so several applications can share
one process.
"""

import time
from typing import Optional

from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Histogram, generate_latest

METRICS_PATH = '/metrics'
UNMATCHED_ROUTE = 'unmatched'
LABELS = ('method', 'route', 'status')


class RequestMetrics:
    """Request counter and latency histogram labelled by method, route and status."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self.requests = Counter(
            'requests', "HTTP requests served", LABELS,
            namespace='netcheck', registry=self.registry,
        )
        self.latency = Histogram(
            'request_duration_seconds', "HTTP request latency in seconds", LABELS,
            namespace='netcheck', registry=self.registry,
        )

    def observe(self, method: str, route: str, status: int, seconds: float) -> None:
        labels = (method, route, str(status))
        self.requests.labels(*labels).inc()
        self.latency.labels(*labels).observe(seconds)

    def render(self) -> bytes:
        return generate_latest(self.registry)


METRICS_KEY = web.AppKey("metrics", RequestMetrics)


def metric_route(request: web.Request) -> str:
    """Registered route path; unknown paths share one label."""
    route = request.match_info.route
    resource = route.resource if route is not None else None
    if resource is None:
        return UNMATCHED_ROUTE
    return resource.canonical


@web.middleware
async def metrics_middleware(request: web.Request, handler):
    """Record every request except the scrapes themselves."""
    if request.path == METRICS_PATH:
        return await handler(request)

    start = time.monotonic()
    status = 500
    try:
        response = await handler(request)
        status = response.status
        return response
    except web.HTTPException as e:
        status = e.status
        raise
    finally:
        request.app[METRICS_KEY].observe(request.method, metric_route(request), status, time.monotonic() - start)


async def handle_metrics(request: web.Request) -> web.Response:
    return web.Response(body=request.app[METRICS_KEY].render(), headers={'Content-Type': CONTENT_TYPE_LATEST})
