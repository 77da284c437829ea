"""Exception types raised by the engine itself.

Remote-side failures never show up here: probes turn them into the
``error`` field of their report.
"""

import asyncio


class NetCheckError(Exception):
    """Base class for engine errors."""


class ConfigError(NetCheckError, ValueError):
    """Invalid or missing configuration."""


class MissingParameterError(NetCheckError):
    """A required query parameter was not supplied."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def describe_error(exc: BaseException) -> str:
    """Short human-readable text for an exception, never empty."""
    text = str(exc).strip()
    if not text:
        if isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
            return "timed out"
        return type(exc).__name__
    return text
