"""
Product Controller.
Orchestrates the flow between the router, service, and view.
"""

from fastapi import HTTPException
import aiofiles
import aiofiles.os
import logging
import mimetypes
import re
from pathlib import Path
from typing import Any, Awaitable, Dict, List, Optional
from catalog.core.config import MAX_SEARCH_LENGTH
from catalog.core.errors import CatalogValidationError, NotFoundError, StoreError
from catalog.core.images import resolve_upload_path
from catalog.models.models import (
    BlobImageSource,
    ExternalImageSource,
    PathImageSource,
    ProductDetail,
)
from catalog.service import CatalogService
from catalog.views.product_view import ProductView

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def parse_include_images(value: Optional[str]) -> bool:
    """Images are included unless the flag is explicitly "false" or "0"."""
    return value not in ("false", "0")


async def _iter_file(path: Path):
    async with aiofiles.open(path, mode='rb') as f:
        while True:
            chunk = await f.read(CHUNK_SIZE)
            if not chunk:
                break
            yield chunk


class ProductController:
    """
    Controller for catalog read operations.
    """

    def __init__(self, service: CatalogService, uploads_dir: Path):
        self.service = service
        self.uploads_dir = uploads_dir

    @staticmethod
    def _validate_id(value: Optional[str], field: str) -> int:
        """
        Validate a numeric identifier.

        Requirements:
        - Digits only
        - Positive

        Raises:
            CatalogValidationError: If the value is malformed
        """
        text = (value or "").strip()
        if not re.match(r'^[0-9]{1,18}$', text) or int(text) <= 0:
            raise CatalogValidationError(f"{field} must be a positive integer", received=value)
        return int(text)

    async def _run(self, description: str, operation: Awaitable[Any]) -> Any:
        """
        Await a service call and map catalog errors to HTTP errors.
        Internal details never reach the client.
        """
        try:
            return await operation
        except NotFoundError as e:
            logger.info(f"{description}: {str(e)}")
            raise HTTPException(status_code=404, detail={"error": "Not found", "detail": str(e)})
        except StoreError as e:
            logger.error(f"Store error while {description}: {str(e)}", exc_info=True)
            raise HTTPException(
                status_code=500,
                detail={"error": "Internal server error", "detail": f"Server error while {description}"}
            )
        except Exception as e:
            logger.error(f"Unexpected error while {description}: {str(e)}", exc_info=True)
            raise HTTPException(
                status_code=500,
                detail={"error": "Internal server error", "detail": f"Server error while {description}"}
            )

    @staticmethod
    def _bad_request(error: CatalogValidationError) -> HTTPException:
        logger.warning(f"Validation failed: {error.message} (received {error.received!r})")
        return HTTPException(
            status_code=400,
            detail={"error": "Invalid request", "detail": error.message, "received": error.received}
        )

    async def list_products(self, category: Optional[str], include_images: Optional[str]) -> Dict[str, Any]:
        try:
            category_id = self._validate_id(category, "category") if category else None
        except CatalogValidationError as e:
            raise self._bad_request(e)

        products = await self._run(
            "fetching products",
            self.service.list_products(category_id, parse_include_images(include_images)),
        )
        return ProductView.render_all(products)

    async def list_new_arrivals(self, include_images: Optional[str]) -> List[Dict[str, Any]]:
        products = await self._run(
            "fetching new arrivals",
            self.service.list_new_arrivals(parse_include_images(include_images)),
        )
        return ProductView.render_list(products)

    async def list_best_sellers(self, include_images: Optional[str]) -> List[Dict[str, Any]]:
        products = await self._run(
            "fetching best sellers",
            self.service.list_best_sellers(parse_include_images(include_images)),
        )
        return ProductView.render_list(products)

    async def list_flash_deals(self, include_images: Optional[str]) -> List[Dict[str, Any]]:
        products = await self._run(
            "fetching flash deals",
            self.service.list_flash_deals(parse_include_images(include_images)),
        )
        return ProductView.render_list(products)

    async def search_products(self, query: Optional[str]) -> List[Dict[str, Any]]:
        if query is not None and len(query.strip()) > MAX_SEARCH_LENGTH:
            raise self._bad_request(
                CatalogValidationError(
                    f"query must be at most {MAX_SEARCH_LENGTH} characters", received=query[:MAX_SEARCH_LENGTH]
                )
            )
        logger.info(f"Product search query received: {query!r}")
        results = await self._run("searching products", self.service.search_products(query))
        return ProductView.render_list(results)

    async def get_product(self, product_id: str) -> Dict[str, Any]:
        try:
            pid = self._validate_id(product_id, "product id")
        except CatalogValidationError as e:
            raise self._bad_request(e)

        product: ProductDetail = await self._run(
            "fetching product details", self.service.get_product_detail(pid)
        )
        return ProductView.render_detail(product)

    async def serve_product_image(self, product_id: str):
        """
        Serve the primary image of a product.

        Returns:
            Raw bytes for blob images, a redirect for external URLs, or a
            file stream for images stored in the uploads directory

        Raises:
            HTTPException: 404 if there is no image or the file is missing
        """
        try:
            pid = self._validate_id(product_id, "product id")
        except CatalogValidationError as e:
            raise self._bad_request(e)

        source = await self._run("serving product image", self.service.get_product_image(pid))

        if source is None:
            raise HTTPException(status_code=404, detail={"error": "Image not found"})
        if isinstance(source, BlobImageSource):
            return ProductView.render_blob(source.data)
        if isinstance(source, ExternalImageSource):
            return ProductView.render_redirect(source.url)
        if isinstance(source, PathImageSource):
            file_path = resolve_upload_path(source.path, self.uploads_dir)
            if file_path is None or not await aiofiles.os.path.isfile(file_path):
                logger.info(f"Image file not found for product {pid}: {source.path}")
                raise HTTPException(status_code=404, detail={"error": "Image file not found"})

            media_type = mimetypes.guess_type(file_path.name)[0] or "image/jpeg"
            return ProductView.render_file(_iter_file(file_path), media_type)
        raise HTTPException(status_code=500, detail={"error": "Invalid image format"})
