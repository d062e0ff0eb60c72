"""
Page proxy test configuration.

Fixtures:
- clock: deterministic timestamp source for the page cache
- cache: an isolated PageCache per test
- settings: ProxySettings for a fake origin
- origin: a mock origin server behind httpx.MockTransport
"""

import asyncio
import sys
from pathlib import Path
from typing import List, Optional

import httpx
import pytest

# Add the backend directory to the path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from page_cache import PageCache
from page_proxy import ProxySettings

ORIGIN_HOST = "origin.example.com"


class FakeClock:
    """Returns 1.0, 2.0, 3.0, ... so creation order is explicit."""

    def __init__(self, start: float = 0.0, step: float = 1.0):
        self.now = start
        self.step = step

    def __call__(self) -> float:
        self.now += self.step
        return self.now


class MockOrigin:
    """
    Records outbound requests and answers them with a configurable handler.

    Usage:
        origin.body = b"<html>...</html>"
        origin.fail_with = httpx.ConnectError("refused")
    """

    def __init__(self, body: bytes = b"<html>origin</html>"):
        self.body = body
        self.status_code = 200
        self.fail_with: Optional[Exception] = None
        self.stream: Optional[httpx.AsyncByteStream] = None
        self.delay: float = 0.0
        self.requests: List[httpx.Request] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        if self.stream is not None:
            return httpx.Response(self.status_code, stream=self.stream)
        return httpx.Response(self.status_code, content=self.body)

    @property
    def calls(self) -> int:
        return len(self.requests)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return PageCache(budget_kb=10, clock=clock)


@pytest.fixture
def settings():
    return ProxySettings(
        Ip="127.0.0.1:8080",
        Address=ORIGIN_HOST,
        CacheSize=10,
        RefererIp="203.0.113.7",
        Timeout=5,
    )


@pytest.fixture
def origin():
    return MockOrigin()


@pytest.fixture
def http_client(origin):
    client = httpx.AsyncClient(transport=httpx.MockTransport(origin))
    yield client
    # teardown runs outside any test event loop
    asyncio.run(client.aclose())
    assert client.is_closed


def page_of(size: int, fill: bytes = b"x") -> bytes:
    """Build a page body of exactly size bytes."""
    return fill * size
