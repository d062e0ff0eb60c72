"""
Page proxy application.

Composition point: settings are loaded once, the page cache and the
outbound client are built here and handed to the proxy handler.
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI

from page_cache import PageCache

from .config import ProxySettings, load_settings
from .errors import ConfigLoadError
from .proxy_handler import ProxyHandler
from .routes_fastapi import admin_router, router

logger = logging.getLogger(__name__)


def create_app(
    settings: ProxySettings,
    cache: Optional[PageCache] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """
    Build the FastAPI app for one origin.

    Args:
        settings: Loaded proxy settings
        cache: Page cache to use (a new one sized from settings by default)
        http_client: Outbound client (a new one with the configured timeout by default)
    """
    if cache is None:
        cache = PageCache(budget_kb=settings.cache_size_kb)

    owns_client = http_client is None
    if http_client is None:
        http_client = httpx.AsyncClient(timeout=settings.fetch_timeout)

    handler = ProxyHandler(settings, cache, http_client)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            f"[PageProxy] Proxying https://{settings.origin_host}/ "
            f"(budget {settings.cache_size_kb} KB)"
        )
        yield
        if owns_client:
            await http_client.aclose()
        logger.info("[PageProxy] Shut down")

    app = FastAPI(title="Page Proxy", lifespan=lifespan)
    app.state.proxy_handler = handler
    app.include_router(router)
    app.include_router(admin_router)
    return app


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def main(config_path: Optional[str] = None) -> None:
    """
    Load config, build the app and serve it with uvicorn.

    The config path is, in order: the argument, the first command line
    argument, $PAGE_PROXY_CONFIG, ./config.toml.
    """
    if config_path is None and len(sys.argv) > 1:
        config_path = sys.argv[1]

    try:
        settings = load_settings(config_path)
    except ConfigLoadError as e:
        logging.basicConfig(level=logging.INFO)
        logger.error(f"[PageProxy] {e}")
        sys.exit(1)

    configure_logging(settings.log_level)

    try:
        host, port = settings.bind()
    except ValueError as e:
        logger.error(f"[PageProxy] {e}")
        sys.exit(1)

    import uvicorn

    logger.info(f"[PageProxy] Server is listening on {host}:{port}")
    uvicorn.run(create_app(settings), host=host, port=port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
