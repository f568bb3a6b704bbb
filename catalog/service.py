"""
Catalog service - core pipeline for listing and detail requests.

Listing flow:
1. Check the listing cache
2. Fetch rows for the listing intent
3. Aggregate stock and drop unavailable products
4. Resolve images
5. Normalize into response models
6. Store the payload in the cache

A failure in steps 2-5 aborts before the cache write, so an older entry
(stale but valid) stays in place.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional
from catalog.core.cache import ListingCache
from catalog.core.errors import NotFoundError
from catalog.core.images import ImageResolver, classify_source
from catalog.core.normalizer import ResponseNormalizer, attribute_suffix, parse_attributes
from catalog.core.stock import aggregate_stock, effective_stock
from catalog.data.repository import ProductRepository
from catalog.models.models import ImageSource, ProductDetail

logger = logging.getLogger(__name__)

Payload = List[Dict[str, Any]]


class CatalogService:
    """
    Service layer for catalog reads.
    """

    def __init__(
        self,
        repository: ProductRepository,
        cache: ListingCache,
        resolver: Optional[ImageResolver] = None,
    ):
        self.repository = repository
        self.cache = cache
        self.resolver = resolver or ImageResolver(repository)
        self.normalizer = ResponseNormalizer()

    async def _cached(
        self,
        intent: str,
        params: Dict[str, Any],
        compute: Callable[[], Awaitable[Payload]],
    ) -> Payload:
        """
        Return the cached payload for (intent, params), computing and storing
        it on a miss. Concurrent misses may both compute; the last write wins.
        """
        cache_key = self.cache.listing_key(intent, params)
        cached_data = await self.cache.get(cache_key)
        if cached_data is not None:
            logger.info(f"Returning cached {intent} listing")
            return cached_data

        payload = await compute()
        await self.cache.set(cache_key, payload)
        return payload

    async def _listing(self, rows: List[Dict[str, Any]], include_images: bool, build) -> Payload:
        products = aggregate_stock(rows)
        await self.resolver.attach(products, include_images)
        return [build(row).model_dump(mode="json") for row in products]

    async def list_products(self, category_id: Optional[int] = None, include_images: bool = True) -> Payload:
        """
        All in-stock products, optionally filtered by category.

        Returns:
            List of normalized products; the view nests it under `products`
        """
        async def compute():
            rows = await self.repository.fetch_all(category_id)
            logger.info(f"All products loaded: {len(rows)}")
            return await self._listing(rows, include_images, self.normalizer.listing_product)

        params = {"category": category_id, "include_images": include_images}
        return await self._cached("all", params, compute)

    async def list_new_arrivals(self, include_images: bool = True) -> Payload:
        async def compute():
            rows = await self.repository.fetch_new_arrivals()
            logger.info(f"New arrivals found: {len(rows)}")
            return await self._listing(rows, include_images, self.normalizer.listing_product)

        return await self._cached("new-arrivals", {"include_images": include_images}, compute)

    async def list_best_sellers(self, include_images: bool = True) -> Payload:
        async def compute():
            rows = await self.repository.fetch_best_sellers()
            logger.info(f"Best sellers found: {len(rows)}")
            return await self._listing(rows, include_images, self.normalizer.best_seller)

        return await self._cached("best-sellers", {"include_images": include_images}, compute)

    async def list_flash_deals(self, include_images: bool = True) -> Payload:
        async def compute():
            rows = await self.repository.fetch_flash_deals()
            logger.info(f"Flash deals found: {len(rows)}")
            return await self._listing(rows, include_images, self.normalizer.listing_product)

        return await self._cached("flash-deals", {"include_images": include_images}, compute)

    async def search_products(self, query: Optional[str]) -> Payload:
        """
        Weighted substring search.
        A blank query returns an empty list without touching the cache or store.
        """
        text = (query or "").strip()
        if not text:
            logger.info("Empty product search query, returning empty results")
            return []

        async def compute():
            rows = await self.repository.search(text)
            logger.info(f"Found {len(rows)} product results for '{text}'")
            return await self._listing(rows, True, self.normalizer.search_result)

        return await self._cached("search", {"query": text.lower()}, compute)

    async def get_product_detail(self, product_id: int) -> ProductDetail:
        """
        Single product with variants and images, returned regardless of stock.
        Not cached.

        Raises:
            NotFoundError: If no product has this id
        """
        row = await self.repository.fetch_detail(product_id)
        if row is None:
            raise NotFoundError("Product", product_id)

        variant_rows = await self.repository.fetch_variants(product_id)
        row["stock"] = effective_stock(row.get("base_stock"), [v.get("stock") for v in variant_rows])

        await self.resolver.attach([row], include_images=True)

        name = row.get("name") or ""
        variants = []
        for variant_row in variant_rows:
            attributes = parse_attributes(variant_row.get("attributes"), variant_row.get("variant_id"))
            image = self.resolver.variant_image(variant_row, alt=f"{name} - {attribute_suffix(attributes)}")
            variants.append(self.normalizer.variant(variant_row, name, attributes, image))

        return self.normalizer.detail(row, variants, row["images"])

    async def get_product_image(self, product_id: int) -> Optional[ImageSource]:
        """
        Primary stored image of a product, classified by storage kind.

        Returns:
            The image source, or None if the product has no stored image
        """
        row = await self.repository.fetch_primary_image(product_id)
        if row is None:
            logger.info(f"No image found for product {product_id}")
            return None
        return classify_source(row.get("image_url"))
