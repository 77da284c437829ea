"""NetCheck API - composition root and process entry point.

Usage:
    netcheck                 # serve on HOST:PORT from .env / environment
    python -m netcheck
"""

import logging
import sys
from typing import Optional

from aiohttp import web

import netcheck
from netcheck.api.handlers import register_routes
from netcheck.api.keys import CACHE_KEY, CHECKER_KEY, CONFIG_KEY, LIMITER_KEY, RUNNER_KEY
from netcheck.api.metrics import METRICS_KEY, RequestMetrics, metrics_middleware
from netcheck.api.middleware import auth_middleware, error_middleware, rate_limit_middleware
from netcheck.errors import ConfigError
from netcheck.scanner.checker import NetChecker
from netcheck.scanner.runner import ComprehensiveRunner
from netcheck.util.cache import ResponseCache
from netcheck.util.concurrency import RateLimiter
from netcheck.util.config import Config
from netcheck.util.log import setup_logging

logger = logging.getLogger(__name__)


def create_app(config: Config, checker: Optional[NetChecker] = None) -> web.Application:
    """Build the application and the services every request shares.

    When no checker is given, one is created here and its HTTP session is
    opened on startup and closed on cleanup. An injected checker is used
    as-is; its owner manages its lifetime.
    """
    app = web.Application(
        middlewares=[metrics_middleware, error_middleware, auth_middleware, rate_limit_middleware]
    )

    owns_checker = checker is None
    if owns_checker:
        checker = NetChecker(config)

    app[CONFIG_KEY] = config
    app[CHECKER_KEY] = checker
    app[RUNNER_KEY] = ComprehensiveRunner(checker, timeout=config.comprehensive_timeout)
    app[CACHE_KEY] = ResponseCache()
    app[LIMITER_KEY] = RateLimiter(default_rpm=config.rate_limit_rpm, per_route=config.route_rate_limits)
    app[METRICS_KEY] = RequestMetrics()

    if owns_checker:
        async def open_checker(app: web.Application):
            await app[CHECKER_KEY].start()

        async def close_checker(app: web.Application):
            await app[CHECKER_KEY].close()

        app.on_startup.append(open_checker)
        app.on_cleanup.append(close_checker)

    register_routes(app)
    return app


def main():
    """Load configuration, set up logging and serve until interrupted."""
    try:
        config = Config()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    setup_logging(config.log_file, config.log_level)

    logger.info("=" * 60)
    logger.info(f"NetCheck API {netcheck.__version__} starting on {config.host}:{config.port} (mode: {config.mode})")
    logger.info(f"Config: {config.to_dict()}")
    if config.is_development:
        logger.warning("DEVELOPMENT MODE: API access allowed without secret authentication")
    elif not config.api_secret:
        logger.warning("API_SECRET_KEY is not set: every request will be rejected")
    logger.info("=" * 60)

    web.run_app(create_app(config), host=config.host, port=config.port, print=None)


if __name__ == "__main__":
    main()
