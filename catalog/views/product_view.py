"""
Product View.
Responsible for shaping catalog payloads into API responses.
"""

from typing import Any, AsyncIterator, Dict, List
from fastapi import Response
from fastapi.responses import RedirectResponse, StreamingResponse
from catalog.models.models import ProductDetail

IMAGE_CACHE_CONTROL = "public, max-age=86400"


class ProductView:
    """
    View layer for Product resources.
    """

    @staticmethod
    def render_all(products: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        The "all products" listing nests its array under `products`;
        every other listing returns a bare array.
        """
        return {"products": products}

    @staticmethod
    def render_list(products: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return products

    @staticmethod
    def render_detail(product: ProductDetail) -> Dict[str, Any]:
        return product.model_dump(mode="json")

    @staticmethod
    def render_blob(data: bytes) -> Response:
        return Response(
            content=data,
            media_type="image/jpeg",
            headers={"Cache-Control": IMAGE_CACHE_CONTROL},
        )

    @staticmethod
    def render_file(chunks: AsyncIterator[bytes], media_type: str) -> StreamingResponse:
        return StreamingResponse(
            chunks,
            media_type=media_type,
            headers={"Cache-Control": IMAGE_CACHE_CONTROL},
        )

    @staticmethod
    def render_redirect(url: str) -> RedirectResponse:
        return RedirectResponse(url=url, status_code=302)
