"""Typed application keys for the services shared by all requests."""

from aiohttp import web

from netcheck.scanner.checker import NetChecker
from netcheck.scanner.runner import ComprehensiveRunner
from netcheck.util.cache import ResponseCache
from netcheck.util.concurrency import RateLimiter
from netcheck.util.config import Config

CONFIG_KEY = web.AppKey("config", Config)
CHECKER_KEY = web.AppKey("checker", NetChecker)
RUNNER_KEY = web.AppKey("runner", ComprehensiveRunner)
CACHE_KEY = web.AppKey("cache", ResponseCache)
LIMITER_KEY = web.AppKey("rate_limiter", RateLimiter)
