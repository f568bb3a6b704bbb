"""
Product routes.
Handles catalog listing, search, detail and image endpoints.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Path, Query, Request
from catalog.models.models import (
    BestSellerProduct,
    ErrorResponse,
    ProductDetail,
    ProductListResponse,
    ProductSummary,
    SearchResult,
)
from catalog.controllers.product_controller import ProductController

router = APIRouter(
    prefix="/api/products",
    tags=["products"]
)


def get_controller(request: Request) -> ProductController:
    """Controller built during application startup."""
    return request.app.state.controller


INCLUDE_IMAGES_HELP = '"false" or "0" omits images'

ERROR_RESPONSES = {
    400: {"description": "Invalid request", "model": ErrorResponse},
    500: {"description": "Internal server error", "model": ErrorResponse},
}


async def list_products(
    category: Optional[str] = Query(None, description="Category id filter"),
    include_images: Optional[str] = Query(None, alias="includeImages", description=INCLUDE_IMAGES_HELP),
    controller: ProductController = Depends(get_controller),
):
    """
    All in-stock products, newest first.
    """
    return await controller.list_products(category, include_images)


async def list_new_arrivals(
    include_images: Optional[str] = Query(None, alias="includeImages", description=INCLUDE_IMAGES_HELP),
    controller: ProductController = Depends(get_controller),
):
    """In-stock products added in the last 30 days."""
    return await controller.list_new_arrivals(include_images)


async def list_best_sellers(
    include_images: Optional[str] = Query(None, alias="includeImages", description=INCLUDE_IMAGES_HELP),
    controller: ProductController = Depends(get_controller),
):
    """In-stock products ranked by completed-order sales."""
    return await controller.list_best_sellers(include_images)


async def list_flash_deals(
    include_images: Optional[str] = Query(None, alias="includeImages", description=INCLUDE_IMAGES_HELP),
    controller: ProductController = Depends(get_controller),
):
    """In-stock discounted products, deepest discount first."""
    return await controller.list_flash_deals(include_images)


async def search_products(
    query: Optional[str] = Query(None, description="Search text"),
    controller: ProductController = Depends(get_controller),
):
    """Weighted substring search over name, description, code and category."""
    return await controller.search_products(query)


async def serve_product_image(
    product_id: str = Path(..., description="Product id", examples=["42"]),
    controller: ProductController = Depends(get_controller),
):
    """Primary product image as bytes, a redirect, or a file stream."""
    return await controller.serve_product_image(product_id)


async def get_product(
    product_id: str = Path(..., description="Product id", examples=["42"]),
    controller: ProductController = Depends(get_controller),
):
    """
    Product detail with variants and images.
    Returned regardless of stock.
    """
    return await controller.get_product(product_id)


# Fixed paths are registered before /{product_id}
router.add_api_route(
    "",
    list_products,
    methods=["GET"],
    response_model=ProductListResponse,
    responses=ERROR_RESPONSES,
    summary="List all products"
)
router.add_api_route(
    "/new-arrivals",
    list_new_arrivals,
    methods=["GET"],
    response_model=list[ProductSummary],
    responses=ERROR_RESPONSES,
    summary="List new arrivals"
)
router.add_api_route(
    "/best-sellers",
    list_best_sellers,
    methods=["GET"],
    response_model=list[BestSellerProduct],
    responses=ERROR_RESPONSES,
    summary="List best sellers"
)
router.add_api_route(
    "/flash-deals",
    list_flash_deals,
    methods=["GET"],
    response_model=list[ProductSummary],
    responses=ERROR_RESPONSES,
    summary="List flash deals"
)
router.add_api_route(
    "/search",
    search_products,
    methods=["GET"],
    response_model=list[SearchResult],
    responses=ERROR_RESPONSES,
    summary="Search products"
)
router.add_api_route(
    "/image/{product_id}",
    serve_product_image,
    methods=["GET"],
    responses={
        200: {"content": {"image/jpeg": {}}, "description": "Image bytes"},
        302: {"description": "Redirect to an external image"},
        404: {"description": "Image not found", "model": ErrorResponse},
        **ERROR_RESPONSES,
    },
    summary="Serve product image"
)
router.add_api_route(
    "/{product_id}",
    get_product,
    methods=["GET"],
    response_model=ProductDetail,
    responses={
        404: {"description": "Product not found", "model": ErrorResponse},
        **ERROR_RESPONSES,
    },
    summary="Get product by id"
)
