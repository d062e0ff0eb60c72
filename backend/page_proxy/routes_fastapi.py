"""
Page Proxy API Routes

Provides endpoints for:
- Serving the proxied origin page (GET /)
- Cache statistics
- Health check
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response

from .errors import FetchError, ReadBodyError
from .proxy_handler import ProxyHandler

logger = logging.getLogger(__name__)

# ============================================
# Routers
# ============================================

router = APIRouter(tags=["Page Proxy"])
admin_router = APIRouter(prefix="/_proxy", tags=["Page Proxy Admin"])


def get_handler(request: Request) -> ProxyHandler:
    return request.app.state.proxy_handler


# ============================================
# Endpoints
# ============================================

@router.get("/")
async def proxy_page(request: Request):
    """
    Serve the configured origin page.

    Fetch and read failures stay confined to this request: they answer
    502 (504 on timeout) with an empty body and nothing is cached.
    """
    handler = get_handler(request)

    try:
        page = await handler.serve()
    except FetchError as e:
        status_code = 504 if e.timed_out else 502
        logger.error(f"[PageProxy] Responding {status_code}: {e}")
        return Response(status_code=status_code)
    except ReadBodyError as e:
        logger.error(f"[PageProxy] Responding 502: {e}")
        return Response(status_code=502)

    return Response(content=page, status_code=200)


@admin_router.get("/stats")
async def get_cache_stats(request: Request):
    """Get cache statistics."""
    stats = get_handler(request).cache.stats()
    return JSONResponse(content={
        "success": True,
        "stats": stats
    })


@admin_router.get("/health")
async def health_check(request: Request):
    """Health check endpoint."""
    handler = get_handler(request)
    return JSONResponse(content={
        "status": "healthy",
        "service": "page-proxy",
        "origin": handler.settings.origin_host,
        "cache_stats": handler.cache.stats()
    })
