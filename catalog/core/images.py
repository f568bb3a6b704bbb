"""
Image resolution for product batches.

Builds the product -> images mapping from two sources:
- declared images (product_images rows)
- variant images, used only for products with no declared images

Raw references are classified into blob / path / external sources and
rewritten into client-servable URLs. Images are de-duplicated per product by
resolved URL, so "photo.jpg" and "uploads/photo.jpg" collapse into one entry.

A failed lookup for one product never aborts the batch: outcomes are
collected per product and failures degrade to an empty image list.
"""

import asyncio
import hashlib
import logging
from pathlib import Path
from typing import List, Dict, Any, Optional, Union
from pydantic import BaseModel, Field
from catalog.core.config import IMAGE_ROUTE_PREFIX
from catalog.core.errors import StoreError
from catalog.core.normalizer import to_int
from catalog.models.models import (
    BlobImageSource,
    PathImageSource,
    ExternalImageSource,
    ImageSource,
    ImageRecord,
    ProductImage,
)

logger = logging.getLogger(__name__)

UPLOADS_PREFIX = "uploads/"


class ResolvedImages(BaseModel):
    """Successful resolution for one product."""
    product_id: int
    images: List[ProductImage] = Field(default_factory=list)


class ImageResolutionFailure(BaseModel):
    """Lookup or resolution failed for one product; it degrades to no images."""
    product_id: int
    error: str


ResolutionOutcome = Union[ResolvedImages, ImageResolutionFailure]


def classify_source(raw: Any) -> Optional[ImageSource]:
    """
    Classify a raw image column value.

    Returns:
        The matching image source, or None if the value is empty
    """
    if raw is None:
        return None
    if isinstance(raw, (bytes, bytearray, memoryview)):
        data = bytes(raw)
        return BlobImageSource(data=data) if data else None
    if isinstance(raw, str):
        value = raw.strip()
        if not value:
            return None
        if value.lower().startswith(("http://", "https://")):
            return ExternalImageSource(url=value)
        return PathImageSource(path=value)
    raise TypeError(f"Unsupported image reference type: {type(raw).__name__}")


def source_key(source: ImageSource) -> str:
    """Stable de-dup key for a raw reference (before URL resolution)."""
    if isinstance(source, BlobImageSource):
        return "blob:" + hashlib.sha1(source.data).hexdigest()
    if isinstance(source, ExternalImageSource):
        return source.url
    return source.path


def resolve_url(source: ImageSource, product_id: int) -> str:
    """
    Rewrite an image source into a client URL.

    - blob: served by the dedicated image endpoint for the product
    - external: used as-is
    - path starting with "/": used as-is
    - path starting with "uploads/": prefixed with "/"
    - bare filename: prefixed with "/uploads/"
    """
    if isinstance(source, BlobImageSource):
        return f"{IMAGE_ROUTE_PREFIX}/{product_id}"
    if isinstance(source, ExternalImageSource):
        return source.url
    if isinstance(source, PathImageSource):
        path = source.path
        if path.startswith("/"):
            return path
        if path.startswith(UPLOADS_PREFIX):
            return f"/{path}"
        return f"/{UPLOADS_PREFIX}{path}"
    raise TypeError(f"Unknown image source: {source!r}")


def resolve_upload_path(path: str, uploads_dir: Path) -> Optional[Path]:
    """
    Map a stored image path to a file inside the uploads directory.

    Returns:
        Absolute file path, or None if the path escapes the uploads directory
    """
    relative = path.lstrip("/")
    if relative.startswith(UPLOADS_PREFIX):
        relative = relative[len(UPLOADS_PREFIX):]

    root = uploads_dir.resolve()
    candidate = (root / relative).resolve()
    if candidate != root and root not in candidate.parents:
        logger.warning(f"Rejected image path outside uploads directory: {path}")
        return None
    return candidate


def _records_from_rows(rows: List[Dict[str, Any]], fallback: bool) -> Dict[int, List[ImageRecord]]:
    """Group image rows by product, discarding repeated (product_id, raw reference) pairs."""
    grouped: Dict[int, List[ImageRecord]] = {}
    seen = set()
    for row in rows:
        source = classify_source(row.get("image_url"))
        if source is None:
            continue
        product_id = row["product_id"]
        key = (product_id, source_key(source))
        if key in seen:
            continue
        seen.add(key)

        grouped.setdefault(product_id, []).append(
            ImageRecord(
                product_id=product_id,
                image_id=to_int(row.get("image_id")),
                source=source,
                raw_key=key[1],
                order=0 if fallback else to_int(row.get("sort_order")),
                alt="" if fallback else (row.get("alt_text") or ""),
            )
        )
    return grouped


class ImageResolver:
    """
    Resolves images for batches of product rows.
    """

    def __init__(self, repository):
        self.repository = repository

    async def _lookup(self, product_ids: List[int]) -> Dict[int, List[ImageRecord]]:
        """
        Fetch declared images for the batch, then variant images for products
        that have none.

        Raises:
            StoreError: If either query fails
        """
        declared_rows = await self.repository.fetch_declared_images(product_ids)
        records = _records_from_rows(declared_rows, fallback=False)

        missing = [pid for pid in product_ids if not records.get(pid)]
        if missing:
            variant_rows = await self.repository.fetch_variant_images(missing)
            for product_id, fallback in _records_from_rows(variant_rows, fallback=True).items():
                records.setdefault(product_id, []).extend(fallback)
        return records

    async def _lookup_one(self, product_id: int) -> Union[List[ImageRecord], ImageResolutionFailure]:
        try:
            records = await self._lookup([product_id])
            return records.get(product_id, [])
        except (StoreError, TypeError, KeyError, ValueError) as e:
            return ImageResolutionFailure(product_id=product_id, error=str(e))

    @staticmethod
    def build_images(product: Dict[str, Any], records: List[ImageRecord]) -> List[ProductImage]:
        """
        Merge records into the final image list for one product:
        resolve, de-duplicate by resolved URL, sort by order.
        """
        product_id = product["product_id"]
        images: List[ProductImage] = []
        seen_urls = set()
        for record in records:
            url = resolve_url(record.source, product_id)
            if url in seen_urls:
                continue
            seen_urls.add(url)
            images.append(
                ProductImage(
                    id=record.image_id or 0,
                    url=url,
                    alt=record.alt or product.get("name") or "",
                    order=record.order or 0,
                )
            )
        images.sort(key=lambda image: image.order)
        return images

    async def resolve_batch(
        self,
        products: List[Dict[str, Any]],
        include_images: bool = True,
    ) -> List[ResolutionOutcome]:
        """
        Resolve images for every product in the batch.

        Args:
            products: Product rows (must carry product_id and name)
            include_images: When False, no lookups are made and every
                product gets an empty image list

        Returns:
            One outcome per product, in batch order
        """
        if not include_images or not products:
            return [ResolvedImages(product_id=p["product_id"]) for p in products]

        product_ids = list(dict.fromkeys(p["product_id"] for p in products))
        per_product: Dict[int, Union[List[ImageRecord], ImageResolutionFailure]]

        try:
            records = await self._lookup(product_ids)
            per_product = {pid: records.get(pid, []) for pid in product_ids}
        except (StoreError, TypeError, KeyError, ValueError) as e:
            if len(product_ids) == 1:
                per_product = {
                    product_ids[0]: ImageResolutionFailure(product_id=product_ids[0], error=str(e))
                }
            else:
                logger.warning(f"Batch image lookup failed ({str(e)}), resolving per product")
                results = await asyncio.gather(*(self._lookup_one(pid) for pid in product_ids))
                per_product = dict(zip(product_ids, results))

        outcomes: List[ResolutionOutcome] = []
        for product in products:
            product_id = product["product_id"]
            found = per_product[product_id]
            if isinstance(found, ImageResolutionFailure):
                outcomes.append(found)
                continue
            try:
                outcomes.append(
                    ResolvedImages(product_id=product_id, images=self.build_images(product, found))
                )
            except (TypeError, ValueError) as e:
                outcomes.append(ImageResolutionFailure(product_id=product_id, error=str(e)))
        return outcomes

    async def attach(self, products: List[Dict[str, Any]], include_images: bool = True) -> None:
        """
        Resolve images and set `images` on every product row in place.
        Failed products get an empty list; failures are logged, never raised.
        """
        outcomes = await self.resolve_batch(products, include_images)
        failures = [o for o in outcomes if isinstance(o, ImageResolutionFailure)]
        for failure in failures:
            logger.error(f"Image resolution failed for product {failure.product_id}: {failure.error}")

        for product, outcome in zip(products, outcomes):
            product["images"] = outcome.images if isinstance(outcome, ResolvedImages) else []

        if failures:
            logger.warning(f"{len(failures)}/{len(products)} products degraded to no images")

    @staticmethod
    def variant_image(variant: Dict[str, Any], alt: str) -> Optional[ProductImage]:
        """
        Single image entry for a variant in the detail view, if it has one.

        Blob variant images are skipped: the image endpoint is keyed by
        product and serves the product's primary image, not the variant's.
        """
        source = classify_source(variant.get("image_url"))
        if source is None or isinstance(source, BlobImageSource):
            return None
        return ProductImage(
            id=f"variant-img-{variant['variant_id']}",
            url=resolve_url(source, variant["product_id"]),
            alt=alt,
            order=0,
        )
