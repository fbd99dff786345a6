import logging
from typing import Optional

import httpx

from config import settings

logger = logging.getLogger(__name__)


def build_http_client(timeout: Optional[float] = None) -> httpx.AsyncClient:
    """Create an AsyncClient with the connection limits used for catalog calls."""
    limits = httpx.Limits(
        max_keepalive_connections=10,
        max_connections=20,
        keepalive_expiry=30.0
    )
    read_timeout = timeout or settings.google_books_timeout
    return httpx.AsyncClient(
        limits=limits,
        timeout=httpx.Timeout(timeout=read_timeout, connect=5.0),
        follow_redirects=True,
    )


# Process-wide client, created lazily and closed on shutdown
_global_client: Optional[httpx.AsyncClient] = None


async def get_http_client() -> httpx.AsyncClient:
    """Return the shared HTTP client, creating it on first use."""
    global _global_client
    if _global_client is None or _global_client.is_closed:
        _global_client = build_http_client()
        logger.debug("Shared HTTP client created")
    return _global_client


async def cleanup_http_client() -> None:
    """Close the shared HTTP client."""
    global _global_client
    if _global_client is not None:
        await _global_client.aclose()
        _global_client = None
