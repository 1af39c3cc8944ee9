"""
Redis cache layer for priced product views, product list pages and the cart.

Redis is ONLY a cache, never the source of truth. Every failure here is
logged and treated as a miss (reads) or a no-op (writes and deletes), so
the database path always decides the response.

Cache keys:
- product:{product_id}                            single product view
- products_list:GET:/products:{sorted query json}  list pages
- cart:items                                       whole-cart aggregate
- throttle:{window}:{client}                       rate limit counters
"""

import functools
import json
import logging
from typing import Any, Callable, Dict, Iterable, Optional, Type, Union

import redis
from pydantic import BaseModel, ValidationError

from config import settings

logger = logging.getLogger(__name__)

PRODUCT_PREFIX = "product"
PRODUCTS_LIST_PREFIX = "products_list"
CART_PREFIX = "cart"
CART_KEY = f"{CART_PREFIX}:items"

PRODUCTS_LIST_PATTERN = f"{PRODUCTS_LIST_PREFIX}:*"
CART_PATTERN = f"{CART_PREFIX}:*"


class CacheStore:
    """Thin, failure-tolerant wrapper around a redis client."""

    def __init__(self, client: Optional[redis.Redis]):
        self.client = client

    def is_available(self) -> bool:
        if self.client is None:
            return False
        try:
            return bool(self.client.ping())
        except redis.RedisError as e:
            logger.warning("Redis ping failed: %s", e)
            return False

    def get(self, key: str) -> Optional[str]:
        if self.client is None:
            return None
        try:
            return self.client.get(key)
        except redis.RedisError as e:
            logger.warning("Cache read error for %s: %s", key, e)
            return None

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        if self.client is None:
            return False
        if ttl is not None and ttl <= 0:
            # an entry without a positive TTL would never expire
            logger.warning("Not caching %s: ttl must be positive, got %s", key, ttl)
            return False
        try:
            if ttl is not None:
                self.client.setex(key, ttl, value)
            else:
                self.client.set(key, value)
            return True
        except redis.RedisError as e:
            logger.warning("Cache write error for %s: %s", key, e)
            return False

    def delete(self, *keys: str) -> int:
        if self.client is None or not keys:
            return 0
        try:
            return int(self.client.delete(*keys))
        except redis.RedisError as e:
            logger.warning("Cache delete error for %s: %s", keys, e)
            return 0

    def delete_pattern(self, pattern: str, batch_size: int = 500) -> int:
        """Delete every key matching a glob pattern (SCAN, never KEYS)."""
        if self.client is None:
            return 0
        deleted = 0
        batch = []
        try:
            for key in self.client.scan_iter(match=pattern, count=batch_size):
                batch.append(key)
                if len(batch) >= batch_size:
                    deleted += int(self.client.delete(*batch))
                    batch = []
            if batch:
                deleted += int(self.client.delete(*batch))
        except redis.RedisError as e:
            logger.warning("Cache pattern delete error for %s: %s", pattern, e)
        return deleted

    def increment(self, key: str, ttl: int) -> Optional[int]:
        """INCR a counter, setting its expiry on the first hit."""
        if self.client is None:
            return None
        try:
            value = int(self.client.incr(key))
            if value == 1:
                self.client.expire(key, ttl)
            return value
        except redis.RedisError as e:
            logger.warning("Cache increment error for %s: %s", key, e)
            return None

    def get_json(self, key: str) -> Optional[Any]:
        raw = self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as e:
            logger.warning("Cache JSON decode error for %s: %s", key, e)
            return None

    def set_json(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.warning("Cache JSON encode error for %s: %s", key, e)
            return False
        return self.set(key, payload, ttl)


_cache_store: Optional[CacheStore] = None


def get_cache_store() -> CacheStore:
    """Process-wide cache store (FastAPI dependency)."""
    global _cache_store
    if _cache_store is None:
        if settings.CACHE_ENABLED:
            client = redis.Redis.from_url(
                settings.REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
                socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
            )
            _cache_store = CacheStore(client)
        else:
            _cache_store = CacheStore(None)
    return _cache_store


# ── Key derivation ──────────────────────────────────────────────────────


def _stable_json(data: Optional[Dict[str, Any]]) -> str:
    clean = {k: v for k, v in (data or {}).items() if v is not None}
    return json.dumps(clean, sort_keys=True, default=str, separators=(",", ":"))


def request_cache_key(
    prefix: str,
    method: str,
    path: str,
    query: Optional[Dict[str, Any]] = None,
    params: Optional[Dict[str, Any]] = None,
) -> str:
    """Default key: prefix, method and path, then route params and query if any.

    Both dicts are serialized with sorted keys and without None values, so
    the same request shape always maps to the same key.
    """
    key = f"{prefix}:{method.upper()}:{path}"
    if params and any(v is not None for v in params.values()):
        key += f":{_stable_json(params)}"
    if query and any(v is not None for v in query.values()):
        key += f":{_stable_json(query)}"
    return key


def product_key(product_id: str) -> str:
    return f"{PRODUCT_PREFIX}:{product_id}"


# ── Cache-aside read path ───────────────────────────────────────────────


def read_through(
    cache: CacheStore,
    key: str,
    ttl: int,
    compute: Callable[[], Optional[BaseModel]],
    schema: Type[BaseModel],
) -> Optional[BaseModel]:
    if not cache.is_available():
        return compute()

    cached_value = cache.get_json(key)
    if cached_value is not None:
        try:
            hit = schema.model_validate(cached_value)
            logger.debug("Cache hit for key: %s", key)
            return hit
        except ValidationError as e:
            logger.warning("Discarding unreadable cache entry %s: %s", key, e)

    logger.debug("Cache miss for key: %s", key)
    result = compute()
    if result is not None:
        if cache.set_json(key, result.model_dump(mode="json"), ttl):
            logger.debug("Cached result for key: %s with TTL: %ss", key, ttl)
    return result


def cached(
    ttl: Union[int, Callable[[], int]],
    key: Callable[..., str],
    schema: Type[BaseModel],
):
    """Cache-aside decorator for service read methods.

    The decorated method's owner must expose a ``cache`` attribute. ``key``
    receives the method arguments (without self) and returns the cache key,
    ``ttl`` is seconds or a callable returning seconds.
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            cache_key = key(*args, **kwargs)
            seconds = ttl() if callable(ttl) else ttl
            return read_through(
                self.cache,
                cache_key,
                seconds,
                lambda: func(self, *args, **kwargs),
                schema,
            )

        return wrapper

    return decorator


# ── Write invalidation ──────────────────────────────────────────────────


def invalidate(cache: CacheStore, keys: Iterable[str] = (), patterns: Iterable[str] = ()) -> None:
    """Drop exact keys and pattern-matched views after a committed write."""
    keys, patterns = list(keys), list(patterns)
    if keys:
        cache.delete(*keys)
    for pattern in patterns:
        cache.delete_pattern(pattern)
    logger.debug("Invalidated cache keys=%s patterns=%s", keys, patterns)
