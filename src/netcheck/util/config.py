"""Configuration for the diagnostics engine.

Loads all settings from .env with sensible defaults.
Per-route cache TTLs and rate-limit overrides are static tables below.
"""

import os
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv

from netcheck.errors import ConfigError

MODE_PRODUCTION = "production"
MODE_DEVELOPMENT = "development"

# Seconds each route's result stays cached. Routes missing here are never cached.
ROUTE_TTLS: Dict[str, float] = {
    "/checks/ssl": 5 * 60,
    "/checks/http3": 2 * 60,
    "/checks/dns": 2 * 60,
    "/checks/ip": 60,
    "/checks/my-ip": 30,  # client-specific
    "/checks/web-settings": 60,
    "/checks/email-config": 10 * 60,
    "/checks/blocklist": 10 * 60,
    "/checks/robots-txt": 10 * 60,
    "/checks/sitemap": 10 * 60,
    "/checks/og-image": 10 * 60,
}

# Requests per minute per client IP; heavy routes are stricter than the default.
ROUTE_RATE_LIMITS: Dict[str, int] = {
    "/checks/comprehensive": 6,
    "/checks/robots-txt": 10,
    "/checks/sitemap": 10,
    "/checks/blocklist": 10,
    "/checks/web-settings": 20,
    "/checks/og-image": 15,
}


def _float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None


def _int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


class Config:
    """Configuration for the NetCheck API process.

    Single source of truth for every tunable. Defaults match production.
    """

    def __init__(self, env_file: Optional[Path] = None):
        """Load configuration from the .env file (if present) and the environment."""
        if env_file is None:
            repo_root = Path(__file__).parent.parent.parent.parent
            env_file = repo_root / ".env"

        if env_file.exists():
            load_dotenv(env_file)

        # ===== SERVER =====
        self.mode = os.getenv("NETCHECK_MODE", MODE_PRODUCTION).strip().lower()
        if self.mode not in (MODE_PRODUCTION, MODE_DEVELOPMENT):
            raise ConfigError(
                f"NETCHECK_MODE must be '{MODE_PRODUCTION}' or '{MODE_DEVELOPMENT}', got {self.mode!r}"
            )
        self.api_secret = os.getenv("API_SECRET_KEY", "").strip()
        self.host = os.getenv("HOST", "0.0.0.0")
        self.port = _int("PORT", "8080")

        # ===== ADMISSION =====
        self.rate_limit_rpm = _int("RATE_LIMIT_RPM", "60")
        self.route_rate_limits = dict(ROUTE_RATE_LIMITS)
        self.route_ttls = dict(ROUTE_TTLS)

        # ===== NETWORK SETTINGS =====
        self.http_timeout = _float("HTTP_TIMEOUT", "15")
        self.http3_timeout = _float("HTTP3_TIMEOUT", "10")
        self.quic_handshake_timeout = _float("QUIC_HANDSHAKE_TIMEOUT", "5")
        self.dns_timeout = _float("DNS_TIMEOUT", "5")
        self.blocklist_timeout = _float("BLOCKLIST_TIMEOUT", "5")
        self.html_proxy_timeout = _float("HTML_PROXY_TIMEOUT", "30")
        self.comprehensive_timeout = _float("COMPREHENSIVE_TIMEOUT", "45")

        # ===== LOGGING =====
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        log_file = os.getenv("LOG_FILE", "").strip()
        self.log_file = Path(log_file) if log_file else None

    @property
    def is_development(self) -> bool:
        return self.mode == MODE_DEVELOPMENT

    def to_dict(self) -> dict:
        """Convert config to dict for logging. The secret is never included."""
        return {
            'mode': self.mode,
            'host': self.host,
            'port': self.port,
            'api_secret_configured': bool(self.api_secret),
            'rate_limit_rpm': self.rate_limit_rpm,
            'http_timeout': self.http_timeout,
            'http3_timeout': self.http3_timeout,
            'dns_timeout': self.dns_timeout,
            'blocklist_timeout': self.blocklist_timeout,
            'html_proxy_timeout': self.html_proxy_timeout,
            'comprehensive_timeout': self.comprehensive_timeout,
        }

    def __repr__(self) -> str:
        """Human-readable config summary."""
        return (
            f"Config(\n"
            f"  mode={self.mode}\n"
            f"  listen={self.host}:{self.port}\n"
            f"  rate_limit={self.rate_limit_rpm}rpm\n"
            f"  comprehensive_timeout={self.comprehensive_timeout}s\n"
            f")"
        )
