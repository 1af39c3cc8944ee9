"""
Tests for the cache layer: failure-tolerant CacheStore, key derivation,
the cache-aside read path and write invalidation.

Runs against FakeRedis, so no Redis server is needed.
"""

import json

import pytest
from pydantic import BaseModel

from utils.cache import (
    CacheStore,
    cached,
    invalidate,
    product_key,
    read_through,
    request_cache_key,
)


class Item(BaseModel):
    id: str
    price: float


class Counter:
    """Owner object for @cached; counts real computations."""

    def __init__(self, cache):
        self.cache = cache
        self.calls = 0

    @cached(ttl=30, key=lambda item_id: f"item:{item_id}", schema=Item)
    def get(self, item_id):
        self.calls += 1
        return Item(id=item_id, price=9.99)

    @cached(ttl=lambda: 30, key=lambda item_id: f"item:{item_id}", schema=Item)
    def missing(self, item_id):
        self.calls += 1
        return None


# ── CacheStore ───────────────────────────────────────────────────────────


class TestCacheStore:

    def test_set_get_json(self, cache):
        assert cache.set_json("k", {"a": 1}, 10)
        assert cache.get_json("k") == {"a": 1}

    def test_ttl_expiry(self, cache, clock):
        cache.set_json("k", {"a": 1}, 10)
        clock.advance(seconds=11)
        assert cache.get_json("k") is None

    def test_errors_are_swallowed(self, cache, fake_redis):
        fake_redis.down = True
        assert cache.is_available() is False
        assert cache.get("k") is None
        assert cache.set("k", "v", 10) is False
        assert cache.delete("k") == 0
        assert cache.delete_pattern("k*") == 0
        assert cache.increment("k", 10) is None

    def test_unparseable_json_is_a_miss(self, cache, fake_redis):
        fake_redis.store["k"] = "{not json"
        assert cache.get_json("k") is None

    def test_unserializable_value_not_stored(self, cache):
        assert cache.set_json("k", {"a": object()}, 10) is False
        assert cache.get("k") is None

    def test_delete_pattern(self, cache):
        for key in ["products_list:a", "products_list:b", "product:1", "cart:items"]:
            cache.set(key, "x", 60)
        assert cache.delete_pattern("products_list:*") == 2
        assert cache.get("product:1") == "x"
        assert cache.get("cart:items") == "x"

    def test_delete_pattern_in_batches(self, cache, fake_redis):
        for i in range(7):
            cache.set(f"products_list:{i}", "x", 60)
        assert cache.delete_pattern("products_list:*", batch_size=3) == 7
        assert fake_redis.store == {}

    def test_increment_sets_expiry_once(self, cache, fake_redis, clock):
        assert cache.increment("throttle:short:1.2.3.4", 60) == 1
        clock.advance(seconds=30)
        assert cache.increment("throttle:short:1.2.3.4", 60) == 2
        assert fake_redis.ttl_of("throttle:short:1.2.3.4") == pytest.approx(30)

    def test_disabled_store(self):
        store = CacheStore(None)
        assert store.is_available() is False
        assert store.get("k") is None
        assert store.set("k", "v") is False


# ── Key derivation ───────────────────────────────────────────────────────


class TestKeys:

    def test_deterministic_regardless_of_order(self):
        k1 = request_cache_key("products_list", "GET", "/products", {"page": 1, "name": "x"})
        k2 = request_cache_key("products_list", "get", "/products", {"name": "x", "page": 1})
        assert k1 == k2

    def test_none_values_ignored(self):
        k1 = request_cache_key("products_list", "GET", "/products", {"page": 1})
        k2 = request_cache_key("products_list", "GET", "/products", {"page": 1, "name": None})
        assert k1 == k2

    def test_shape(self):
        assert request_cache_key("cache", "GET", "/products") == "cache:GET:/products"
        key = request_cache_key("product", "GET", "/products/1", params={"id": "1"}, query={"q": "a"})
        assert key == 'product:GET:/products/1:{"id":"1"}:{"q":"a"}'

    def test_different_query_different_key(self):
        k1 = request_cache_key("products_list", "GET", "/products", {"page": 1})
        k2 = request_cache_key("products_list", "GET", "/products", {"page": 2})
        assert k1 != k2

    def test_product_key(self):
        assert product_key("abc") == "product:abc"


# ── Cache-aside read path ────────────────────────────────────────────────


class TestReadThrough:

    def test_miss_then_hit(self, cache):
        owner = Counter(cache)
        first = owner.get("a")
        second = owner.get("a")
        assert first == second == Item(id="a", price=9.99)
        assert owner.calls == 1
        assert json.loads(cache.get("item:a")) == {"id": "a", "price": 9.99}

    def test_miss_stores_with_ttl(self, cache, clock):
        owner = Counter(cache)
        owner.get("a")
        clock.advance(seconds=31)
        owner.get("a")
        assert owner.calls == 2

    def test_unavailable_cache_skips_straight_to_compute(self, cache, fake_redis):
        fake_redis.down = True
        owner = Counter(cache)
        owner.get("a")
        owner.get("a")
        assert owner.calls == 2
        assert fake_redis.calls.count("get") == 0

    def test_fetch_error_falls_through(self, cache, fake_redis):
        fake_redis.failing.add("get")
        owner = Counter(cache)
        assert owner.get("a").id == "a"
        assert owner.calls == 1

    def test_store_failure_does_not_affect_result(self, cache, fake_redis):
        fake_redis.failing.add("setex")
        owner = Counter(cache)
        assert owner.get("a") == Item(id="a", price=9.99)
        assert "item:a" not in fake_redis.store

    def test_corrupt_entry_recomputed_and_replaced(self, cache, fake_redis):
        fake_redis.store["item:a"] = json.dumps({"unexpected": True})
        owner = Counter(cache)
        assert owner.get("a") == Item(id="a", price=9.99)
        assert owner.calls == 1
        assert json.loads(fake_redis.store["item:a"])["id"] == "a"

    def test_none_result_not_cached(self, cache, fake_redis):
        owner = Counter(cache)
        assert owner.missing("x") is None
        assert "item:x" not in fake_redis.store

    def test_errors_from_compute_propagate(self, cache):
        def boom():
            raise LookupError("gone")

        with pytest.raises(LookupError):
            read_through(cache, "k", 10, boom, Item)


# ── Invalidation ─────────────────────────────────────────────────────────


class TestInvalidate:

    def test_exact_keys_and_patterns(self, cache, fake_redis):
        for key in ["product:1", "product:2", "products_list:x", "cart:items"]:
            cache.set(key, "v", 60)
        invalidate(cache, keys=["product:1"], patterns=["products_list:*"])
        assert set(fake_redis.store) == {"product:2", "cart:items"}

    def test_failures_are_not_raised(self, cache, fake_redis):
        fake_redis.down = True
        invalidate(cache, keys=["product:1"], patterns=["products_list:*", "cart:*"])


class TestNonPositiveTtl:

    @pytest.mark.parametrize("ttl", [0, -5])
    def test_not_stored(self, cache, fake_redis, ttl):
        assert cache.set("k", "v", ttl) is False
        assert cache.set_json("j", {"a": 1}, ttl) is False
        assert fake_redis.store == {}

    def test_read_through_still_computes(self, cache, fake_redis):
        result = read_through(cache, "item:a", 0, lambda: Item(id="a", price=1.0), Item)
        assert result == Item(id="a", price=1.0)
        assert "item:a" not in fake_redis.store

    def test_settings_reject_zero_ttl(self, monkeypatch):
        from pydantic import ValidationError

        from config import Settings

        monkeypatch.setenv("CACHE_TTL_PRODUCT", "0")
        with pytest.raises(ValidationError):
            Settings()
