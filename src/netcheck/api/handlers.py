"""HTTP handlers for the check routes.

Each cached handler: validate parameters, look up the route's cache key,
run the check on a miss, store it if the route has a TTL, and wrap the
result in the success envelope.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from aiohttp import web

import netcheck
from netcheck.api.metrics import METRICS_PATH, handle_metrics
from netcheck.api.keys import CACHE_KEY, CHECKER_KEY, CONFIG_KEY, RUNNER_KEY
from netcheck.api.responses import real_client_ip, success
from netcheck.errors import MissingParameterError
from netcheck.util.cache import cache_key

logger = logging.getLogger(__name__)

PREFIX = '/checks'


def require(request: web.Request, *names: str, message: str) -> str:
    """First non-blank value among the named query parameters."""
    for name in names:
        value = request.query.get(name, '').strip()
        if value:
            return value
    raise MissingParameterError(message)


def require_domain(request: web.Request) -> str:
    return require(request, 'domain', message="Domain parameter is required")


async def cached(request: web.Request, params: Dict[str, str],
                 compute: Callable[[], Awaitable[Any]]) -> web.Response:
    """Serve route+params from the cache, computing and storing on a miss."""
    route = request.match_info.route.resource.canonical
    cache = request.app[CACHE_KEY]
    key = cache_key(route, params)

    value, found = cache.get(key)
    if found:
        logger.debug(f"Cache hit {key}")
        return success(value)

    value = await compute()
    ttl = request.app[CONFIG_KEY].route_ttls.get(route)
    if ttl:
        cache.set(key, value, ttl)
    return success(value)


async def handle_ssl(request: web.Request) -> web.Response:
    domain = require_domain(request)
    return await cached(request, {'domain': domain}, lambda: request.app[CHECKER_KEY].check_ssl(domain))


async def handle_http3(request: web.Request) -> web.Response:
    domain = require_domain(request)
    return await cached(request, {'domain': domain}, lambda: request.app[CHECKER_KEY].check_http3(domain))


async def handle_dns(request: web.Request) -> web.Response:
    domain = require_domain(request)
    return await cached(request, {'domain': domain}, lambda: request.app[CHECKER_KEY].check_dns(domain))


async def handle_ip(request: web.Request) -> web.Response:
    value = require(request, 'ip', 'domain', message="IP or domain parameter is required")
    return await cached(request, {'input': value}, lambda: request.app[CHECKER_KEY].check_ip(value))


async def handle_my_ip(request: web.Request) -> web.Response:
    client_ip = real_client_ip(request)
    if not client_ip:
        raise MissingParameterError("Could not determine client IP address")
    return await cached(request, {'ip': client_ip}, lambda: request.app[CHECKER_KEY].check_my_ip(client_ip))


async def handle_web_settings(request: web.Request) -> web.Response:
    domain = require_domain(request)
    return await cached(request, {'domain': domain}, lambda: request.app[CHECKER_KEY].check_web_settings(domain))


async def handle_email_config(request: web.Request) -> web.Response:
    domain = require_domain(request)
    return await cached(request, {'domain': domain}, lambda: request.app[CHECKER_KEY].check_email_config(domain))


async def handle_blocklist(request: web.Request) -> web.Response:
    domain = require_domain(request)
    return await cached(request, {'domain': domain}, lambda: request.app[CHECKER_KEY].check_blocklist(domain))


async def handle_hsts(request: web.Request) -> web.Response:
    domain = require_domain(request)
    return await cached(request, {'domain': domain}, lambda: request.app[CHECKER_KEY].check_hsts(domain))


async def handle_robots_txt(request: web.Request) -> web.Response:
    domain = require_domain(request)
    return await cached(request, {'domain': domain}, lambda: request.app[CHECKER_KEY].check_robots_txt(domain))


async def handle_sitemap(request: web.Request) -> web.Response:
    domain = require_domain(request)
    return await cached(request, {'domain': domain}, lambda: request.app[CHECKER_KEY].check_sitemap(domain))


async def handle_og_image(request: web.Request) -> web.Response:
    url = require(request, 'url', 'domain', message="URL or domain parameter is required")
    return await cached(request, {'url': url}, lambda: request.app[CHECKER_KEY].check_og_image(url))


async def handle_html_proxy(request: web.Request) -> web.Response:
    url = require(request, 'url', message="URL parameter is required")
    return await cached(request, {'url': url}, lambda: request.app[CHECKER_KEY].fetch_html(url))


async def handle_comprehensive(request: web.Request) -> web.Response:
    domain = require_domain(request)
    return await cached(request, {'domain': domain}, lambda: request.app[RUNNER_KEY].run(domain))


async def handle_health(request: web.Request) -> web.Response:
    return success({'version': netcheck.__version__, 'status': 'healthy'}, message="NetCheck API is running")


CHECK_ROUTES: Dict[str, Callable[[web.Request], Awaitable[web.Response]]] = {
    'ssl': handle_ssl,
    'http3': handle_http3,
    'dns': handle_dns,
    'ip': handle_ip,
    'my-ip': handle_my_ip,
    'web-settings': handle_web_settings,
    'email-config': handle_email_config,
    'blocklist': handle_blocklist,
    'hsts': handle_hsts,
    'robots-txt': handle_robots_txt,
    'sitemap': handle_sitemap,
    'og-image': handle_og_image,
    'html-proxy': handle_html_proxy,
    'comprehensive': handle_comprehensive,
}

# Example query for each route in the endpoint index.
_EXAMPLES: Dict[str, Optional[str]] = {
    'ip': "ip=8.8.8.8 or ?domain=example.com",
    'my-ip': None,
    'og-image': "url=https://example.com or ?domain=example.com",
    'html-proxy': "url=https://example.com",
}


async def handle_index(request: web.Request) -> web.Response:
    endpoints = {'health': "GET /health", 'metrics': f"GET {METRICS_PATH}"}
    for kind in CHECK_ROUTES:
        example = _EXAMPLES.get(kind, "domain=example.com")
        endpoints[kind] = f"GET {PREFIX}/{kind}" + (f"?{example}" if example else "")
    return success({'message': "NetCheck API", 'version': netcheck.__version__, 'endpoints': endpoints})


def register_routes(app: web.Application) -> None:
    app.router.add_get('/', handle_index)
    app.router.add_get('/health', handle_health)
    app.router.add_get(METRICS_PATH, handle_metrics)
    for kind, handler in CHECK_ROUTES.items():
        app.router.add_get(f"{PREFIX}/{kind}", handler)
