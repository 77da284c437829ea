"""Request middlewares, outermost first: error envelope, proxy auth, rate limit."""

import hmac
import logging

from aiohttp import web

from netcheck.api.keys import CONFIG_KEY, LIMITER_KEY
from netcheck.api.metrics import METRICS_PATH
from netcheck.api.responses import failure, real_client_ip
from netcheck.errors import MissingParameterError

logger = logging.getLogger(__name__)

CHECKS_PREFIX = '/checks/'


@web.middleware
async def error_middleware(request: web.Request, handler):
    """Turn every failure into the JSON envelope."""
    try:
        return await handler(request)
    except MissingParameterError as e:
        return failure(400, e.message)
    except web.HTTPException as e:
        if e.status < 400:
            raise
        return failure(e.status, e.reason)
    except Exception:
        logger.exception(f"Unhandled error serving {request.method} {request.path}")
        return failure(500, "Internal server error")


def provided_secret(request: web.Request) -> str:
    """Secret from X-API-Secret, else from an ``Authorization: Bearer`` header."""
    secret = request.headers.get('X-API-Secret', '')
    if secret:
        return secret
    authorization = request.headers.get('Authorization', '')
    if authorization.startswith('Bearer '):
        return authorization[len('Bearer '):]
    return ''


@web.middleware
async def auth_middleware(request: web.Request, handler):
    """Only the application proxy may call the engine in production.

    Development mode lets every request through. Metrics scrapes are
    never authenticated.
    """
    config = request.app[CONFIG_KEY]
    if config.is_development or request.path == METRICS_PATH:
        return await handler(request)

    if not config.api_secret:
        logger.error("API_SECRET_KEY is not configured; rejecting request")
        return failure(500, "API secret key not configured")

    if request.headers.get('X-Internal-Proxy') != 'true':
        return failure(403, "Direct API access not allowed. Requests must go through the application proxy.")

    if not hmac.compare_digest(provided_secret(request).encode(), config.api_secret.encode()):
        logger.warning(f"Rejected request with bad API secret from {real_client_ip(request)}")
        return failure(403, "Invalid or missing API secret key")

    return await handler(request)


def route_path(request: web.Request) -> str:
    """Registered path of the matched route, or the raw path when nothing matched."""
    route = request.match_info.route
    resource = route.resource if route is not None else None
    if resource is not None:
        return resource.canonical
    return request.path


@web.middleware
async def rate_limit_middleware(request: web.Request, handler):
    """Token-bucket admission per (real client IP, route) for the check routes."""
    path = route_path(request)
    if not path.startswith(CHECKS_PREFIX):
        return await handler(request)

    client_ip = real_client_ip(request)
    if not request.app[LIMITER_KEY].allow(client_ip, path):
        logger.info(f"Rate limited {client_ip} on {path}")
        return failure(429, "Too many requests")
    return await handler(request)
