"""Shared fixtures and in-memory fakes for the catalog test suite."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from redis.exceptions import RedisError

from catalog.core.cache import ListingCache
from catalog.core.config import Settings
from catalog.core.errors import StoreError
from catalog.service import CatalogService


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeRedis:
    """Implements the subset of redis.asyncio.Redis used by ListingCache."""

    def __init__(self, clock):
        self.clock = clock
        self.store = {}
        self.fail = False
        self.set_calls = 0

    async def get(self, key):
        if self.fail:
            raise RedisError("connection refused")
        entry = self.store.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self.clock() >= expires_at:
            del self.store[key]
            return None
        return value

    async def setex(self, key, ttl, value):
        if self.fail:
            raise RedisError("connection refused")
        self.set_calls += 1
        self.store[key] = (value, self.clock() + ttl)

    async def ping(self):
        return True

    async def aclose(self):
        pass


class FakeRepository:
    """
    Stands in for ProductRepository. Listing rows are served as configured;
    every call is recorded so tests can assert on store access.
    """

    def __init__(self):
        self.listings = {
            "all": [],
            "new-arrivals": [],
            "best-sellers": [],
            "flash-deals": [],
            "search": [],
        }
        self.details = {}
        self.variants = {}
        self.images = []
        self.calls = []
        self.fail_on = set()
        self.failing_image_products = set()

    def _record(self, name, *args):
        self.calls.append((name, args))
        if name in self.fail_on:
            raise StoreError(f"{name} failed")

    def _check_image_failure(self, product_ids):
        if self.failing_image_products & set(product_ids):
            raise StoreError("image lookup failed")

    async def fetch_all(self, category_id=None):
        self._record("fetch_all", category_id)
        return [
            dict(r) for r in self.listings["all"]
            if category_id is None or r.get("category_id") == category_id
        ]

    async def fetch_new_arrivals(self):
        self._record("fetch_new_arrivals")
        return [dict(r) for r in self.listings["new-arrivals"]]

    async def fetch_best_sellers(self):
        self._record("fetch_best_sellers")
        return [dict(r) for r in self.listings["best-sellers"]]

    async def fetch_flash_deals(self):
        self._record("fetch_flash_deals")
        return [dict(r) for r in self.listings["flash-deals"]]

    async def search(self, text):
        self._record("search", text)
        return [dict(r) for r in self.listings["search"]]

    async def fetch_detail(self, product_id):
        self._record("fetch_detail", product_id)
        row = self.details.get(product_id)
        return dict(row) if row else None

    async def fetch_variants(self, product_id):
        self._record("fetch_variants", product_id)
        return [dict(v) for v in self.variants.get(product_id, [])]

    async def fetch_declared_images(self, product_ids):
        self._record("fetch_declared_images", *product_ids)
        self._check_image_failure(product_ids)
        rows = [dict(r) for r in self.images if r["product_id"] in product_ids]
        return sorted(rows, key=lambda r: (r["product_id"], r.get("sort_order") or 0))

    async def fetch_variant_images(self, product_ids):
        self._record("fetch_variant_images", *product_ids)
        self._check_image_failure(product_ids)
        rows = []
        for product_id in product_ids:
            for variant in self.variants.get(product_id, []):
                if variant.get("image_url") is not None:
                    rows.append({
                        "product_id": product_id,
                        "image_id": variant["variant_id"],
                        "image_url": variant["image_url"],
                    })
        return rows

    async def fetch_primary_image(self, product_id):
        self._record("fetch_primary_image", product_id)
        rows = sorted(
            (r for r in self.images if r["product_id"] == product_id),
            key=lambda r: r.get("sort_order") or 0,
        )
        return {"image_url": rows[0]["image_url"]} if rows else None

    def store_calls(self):
        return [name for name, _ in self.calls]


def make_row(product_id, **overrides):
    """Raw listing row shaped like the fetcher's output."""
    row = {
        "product_id": product_id,
        "name": f"Product {product_id}",
        "product_code": f"P-{product_id:03d}",
        "description": f"Description {product_id}",
        "category_id": 1,
        "category_name": "Shoes",
        "created_at": datetime(2026, 10, 1) - timedelta(days=product_id),
        "updated_at": datetime(2026, 10, 1),
        "is_featured": 0,
        "base_price": Decimal("49.90"),
        "discounted_price": None,
        "discount_percentage": "0",
        "average_rating": None,
        "review_count": "3",
        "base_stock": 5,
        "stock": 5,
        "has_variants": False,
    }
    row.update(overrides)
    return row


def make_image(product_id, image_id, url, sort_order=0, alt_text=""):
    return {
        "product_id": product_id,
        "image_id": image_id,
        "image_url": url,
        "sort_order": sort_order,
        "alt_text": alt_text,
    }


@pytest.fixture
def settings(tmp_path, monkeypatch):
    monkeypatch.setenv("UPLOADS_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("CACHE_TTL", "300")
    return Settings()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_redis(clock):
    return FakeRedis(clock)


@pytest.fixture
def cache(settings, fake_redis):
    return ListingCache(settings, client=fake_redis)


@pytest.fixture
def repository():
    return FakeRepository()


@pytest.fixture
def service(repository, cache):
    return CatalogService(repository, cache)
