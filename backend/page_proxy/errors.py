"""
Proxy error taxonomy.

Fetch and read failures are confined to the request that hit them; the
routes turn them into empty 5xx responses. Config failures only happen at
startup.
"""

from typing import Optional


class ProxyError(Exception):
    """Base class for page proxy errors."""


class ConfigLoadError(ProxyError):
    """Configuration file is missing, unparseable or invalid."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Failed to load config {path}: {reason}")
        self.path = path
        self.reason = reason


class FetchError(ProxyError):
    """Network or transport failure on the outbound request."""

    def __init__(self, url: str, reason: str, timed_out: bool = False):
        super().__init__(f"Failed to fetch {url}: {reason}")
        self.url = url
        self.reason = reason
        self.timed_out = timed_out


class UpstreamStatusError(FetchError):
    """Origin answered with a non-2xx status."""

    def __init__(self, url: str, status_code: int):
        super().__init__(url, f"upstream returned {status_code}")
        self.status_code = status_code


class ReadBodyError(ProxyError):
    """Failure while draining the origin response body."""

    def __init__(self, url: str, reason: Optional[str] = None):
        super().__init__(f"Failed to read body from {url}: {reason or 'unknown error'}")
        self.url = url
        self.reason = reason
