import logging
from typing import Callable, Iterable, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from utils.cache import CacheStore

logger = logging.getLogger(__name__)

Limit = Tuple[str, int, int]  # (name, window seconds, max hits)


def is_allowed(cache: CacheStore, client: str, limits: Iterable[Limit]) -> bool:
    """Fixed-window counters, one per window; an unreachable cache never blocks."""
    if not cache.is_available():
        return True
    for name, window, max_hits in limits:
        hits = cache.increment(f"throttle:{name}:{client}", window)
        if hits is not None and hits > max_hits:
            logger.info("Rate limit '%s' exceeded for %s (%s/%s)", name, client, hits, max_hits)
            return False
    return True


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, cache_factory: Callable[[], CacheStore], limits: Iterable[Limit]):
        super().__init__(app)
        self.cache_factory = cache_factory
        self.limits = list(limits)

    async def dispatch(self, request: Request, call_next):
        client = request.client.host if request.client else "unknown"
        # redis calls block, keep them off the event loop
        allowed = await run_in_threadpool(is_allowed, self.cache_factory(), client, self.limits)
        if not allowed:
            return JSONResponse(status_code=429, content={"detail": "Too many requests"})
        return await call_next(request)
