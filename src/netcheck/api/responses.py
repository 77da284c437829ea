"""JSON envelope and request helpers shared by handlers and middlewares.

Every response body is ``{"success": bool, "data"?, "error"?, "message"?}``.
"""

import ipaddress
import json
from typing import Any, Optional

from aiohttp import web

from netcheck.util.types import to_jsonable

# Checked in order; the socket peer is the last resort.
CLIENT_IP_HEADERS = ('X-Real-IP', 'CF-Connecting-IP')


def _dumps(payload: Any) -> str:
    return json.dumps(payload, default=str)


def success(data: Any = None, message: Optional[str] = None) -> web.Response:
    body = {'success': True}
    if message:
        body['message'] = message
    if data is not None:
        body['data'] = to_jsonable(data)
    return web.json_response(body, dumps=_dumps)


def failure(status: int, error: str) -> web.Response:
    return web.json_response({'success': False, 'error': error}, status=status, dumps=_dumps)


def valid_ip(value: Optional[str]) -> Optional[str]:
    """value stripped, if it is an IPv4/IPv6 literal."""
    candidate = (value or '').strip()
    if not candidate:
        return None
    try:
        ipaddress.ip_address(candidate)
    except ValueError:
        return None
    return candidate


def real_client_ip(request: web.Request) -> str:
    """Address of the end user behind the calling proxy.

    The first X-Forwarded-For hop when it is an IP, then X-Real-IP, then
    CF-Connecting-IP, then the socket peer. Later forwarded hops are proxies.
    """
    ip = valid_ip(request.headers.get('X-Forwarded-For', '').split(',', 1)[0])
    if ip:
        return ip

    for header in CLIENT_IP_HEADERS:
        ip = valid_ip(request.headers.get(header))
        if ip:
            return ip

    return request.remote or ''
