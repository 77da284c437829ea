"""Input normalization for domains, URLs and IP literals."""

import ipaddress
from typing import Tuple
from urllib.parse import urlsplit


def clean_host(value: str) -> str:
    """Strip an http(s):// scheme and anything after the first slash.

    >>> clean_host("https://example.com/path")
    'example.com'
    """
    host = value.strip()
    for scheme in ("https://", "http://"):
        if host.startswith(scheme):
            host = host[len(scheme):]
            break
    return host.split("/", 1)[0]


def ensure_scheme(value: str, scheme: str = "https") -> str:
    """Prefix a bare domain or path-bearing host with a scheme."""
    value = value.strip()
    if value.startswith("https://") or value.startswith("http://"):
        return value
    return f"{scheme}://{value}"


def downgrade_to_http(url: str) -> str:
    """Rewrite an https:// URL to http://. Other URLs are returned unchanged."""
    if url.startswith("https://"):
        return "http://" + url[len("https://"):]
    return url


def is_ip_address(value: str) -> bool:
    """True if value is an IPv4 or IPv6 literal."""
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def host_and_port(value: str, default_port: int) -> Tuple[str, int]:
    """Bare host and port of a domain or URL; default_port when none is given.

    >>> host_and_port("https://example.com:8443/path", 443)
    ('example.com', 8443)

    Raises ValueError for a port that is not a number in 0-65535.
    """
    parts = urlsplit(ensure_scheme(value))
    port = parts.port
    return parts.hostname or "", port if port is not None else default_port
