"""
Proxy Handler

Serves the configured origin's page through the page cache:

1. Looks the origin host up in the cache
2. On a miss, fetches https://{host}/ outside any cache lock
3. Charges, stores and maybe evicts in one cache step (populate)
4. Re-reads the entry and returns its bytes
"""

import logging

import httpx

from page_cache import PageCache

from .config import ProxySettings
from .errors import FetchError, ReadBodyError, UpstreamStatusError

logger = logging.getLogger(__name__)

# Header the upstream uses to identify the caller
ORIGIN_IP_HEADER = "Refer"


class ProxyHandler:
    """
    Fetch-and-populate flow for a single origin.

    The cache and the HTTP client are owned by the application and passed in,
    so tests can build isolated handlers.
    """

    def __init__(self, settings: ProxySettings, cache: PageCache, http_client: httpx.AsyncClient):
        self.settings = settings
        self.cache = cache
        self.http_client = http_client

    @property
    def cache_key(self) -> str:
        return self.settings.origin_host

    async def serve(self) -> bytes:
        """
        Return the origin page, from cache when possible.

        Raises:
            FetchError: the origin could not be reached or answered non-2xx
            ReadBodyError: the response body could not be drained
        """
        key = self.cache_key
        page, _, found = self.cache.get(key)

        if found:
            logger.debug(f"[PageProxy] Cache hit: {key}")
            return page

        logger.info(f"[PageProxy] Cache miss: {key}")
        body = await self.fetch()
        self.cache.populate(key, body)

        page, _, found = self.cache.get(key)
        if not found:
            # cleared by another request between populate and the re-read
            logger.debug(f"[PageProxy] Entry gone after populate: {key}")
            return body
        return page

    async def fetch(self) -> bytes:
        """Fetch the origin page body."""
        url = self.settings.origin_url
        headers = {
            "Host": self.settings.origin_host,
            ORIGIN_IP_HEADER: self.settings.referer_ip,
        }

        logger.info(f"[PageProxy] Fetching: {url}")
        try:
            async with self.http_client.stream("GET", url, headers=headers) as response:
                if not response.is_success:
                    logger.error(f"[PageProxy] HTTP error {response.status_code}: {url}")
                    raise UpstreamStatusError(url, response.status_code)
                try:
                    body = await response.aread()
                except httpx.HTTPError as e:
                    logger.error(f"[PageProxy] Read error: {e}")
                    raise ReadBodyError(url, str(e)) from e
        except httpx.TimeoutException as e:
            logger.error(f"[PageProxy] Timeout: {url}")
            raise FetchError(url, "timeout", timed_out=True) from e
        except httpx.HTTPError as e:
            logger.error(f"[PageProxy] Fetch error: {e}")
            raise FetchError(url, str(e)) from e

        logger.info(f"[PageProxy] Fetched: {url} ({len(body)} bytes)")
        return body
