"""aiohttp HTTP API in front of the checker."""
