"""
Page Proxy Module

Single-origin caching reverse proxy. Fetches https://{origin}/ once,
serves it from the page cache afterwards and evicts the oldest page when
the configured KB budget is reached.
"""

from .app import create_app, main
from .config import ProxySettings, load_settings
from .errors import ConfigLoadError, FetchError, ProxyError, ReadBodyError, UpstreamStatusError
from .proxy_handler import ProxyHandler

__all__ = [
    "create_app",
    "main",
    "ProxySettings",
    "load_settings",
    "ConfigLoadError",
    "FetchError",
    "ProxyError",
    "ReadBodyError",
    "UpstreamStatusError",
    "ProxyHandler",
]
