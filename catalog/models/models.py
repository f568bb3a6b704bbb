"""
Data models for the catalog service.
All models use Pydantic for validation and static typing.
"""

from typing import Optional, Literal, List, Dict, Any, Union
from pydantic import BaseModel, Field
from datetime import datetime


class BlobImageSource(BaseModel):
    """
    Image stored inline in the database as binary data.
    Served through the dedicated image endpoint, never inlined.
    """
    kind: Literal["blob"] = "blob"
    data: bytes


class PathImageSource(BaseModel):
    """
    Image stored on local disk, referenced by a relative or absolute path.
    e.g. "photo.jpg", "uploads/photo.jpg", "/uploads/photo.jpg"
    """
    kind: Literal["path"] = "path"
    path: str


class ExternalImageSource(BaseModel):
    """
    Image hosted elsewhere, referenced by an absolute http(s) URL.
    """
    kind: Literal["external"] = "external"
    url: str


ImageSource = Union[BlobImageSource, PathImageSource, ExternalImageSource]


class ImageRecord(BaseModel):
    """
    A raw image reference attached to a product before URL resolution.
    Comes either from product_images (declared) or product_variants (fallback).
    """
    product_id: int
    image_id: int = 0
    source: ImageSource
    raw_key: str  # De-dup key for the raw reference
    order: int = 0
    alt: str = ""


class ProductImage(BaseModel):
    """
    Client-ready image reference.
    """
    id: Union[int, str] = 0
    url: str
    alt: str = ""
    order: int = 0


class ProductVariant(BaseModel):
    """
    Variant as returned in the product detail view.
    """
    variant_id: int
    product_id: int
    parent_product_id: int
    sku: Optional[str] = None
    name: str
    price: float = 0
    stock: int = 0
    image_url: Optional[str] = None
    attributes: Dict[str, Any] = Field(default_factory=dict)
    images: List[ProductImage] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProductSummary(BaseModel):
    """
    Product as returned by the aggregate listing views
    (all, new arrivals, flash deals).
    """
    product_id: int
    name: str
    product_code: Optional[str] = None
    description: Optional[str] = None
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    is_featured: bool = False
    price: float = 0
    discounted_price: float = 0
    discount_percentage: float = 0
    average_rating: float = 0
    review_count: int = 0
    stock: int = 0
    has_variants: bool = False
    variants: List[ProductVariant] = Field(default_factory=list)
    images: List[ProductImage] = Field(default_factory=list)


class BestSellerProduct(ProductSummary):
    """
    Listing product enriched with completed-order sales.
    """
    total_sold: int = 0


class SearchResult(BaseModel):
    """
    Compact product shape returned by the search endpoint.
    `image` is the first resolved image URL, if any.
    """
    product_id: int
    name: str
    description: str = ""
    product_code: str = ""
    category_name: str = "Uncategorized"
    category_id: Optional[int] = None
    price: float = 0
    average_rating: float = 0
    review_count: int = 0
    stock: int = 0
    image: Optional[str] = None
    images: List[ProductImage] = Field(default_factory=list)


class ProductDetail(BaseModel):
    """
    Single product view with nested variants and images.
    Returned regardless of stock.
    """
    product_id: int
    name: str
    product_code: Optional[str] = None
    description: Optional[str] = None
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    price: float = 0
    discounted_price: float = 0
    discount_percentage: float = 0
    average_rating: float = 0
    review_count: int = 0
    stock: int = 0
    has_variants: bool = False
    items_sold: int = 0
    variants: List[ProductVariant] = Field(default_factory=list)
    images: List[ProductImage] = Field(default_factory=list)


class ProductListResponse(BaseModel):
    """
    API response model for GET /api/products.
    The "all products" listing nests its array under `products`.
    """
    products: List[ProductSummary]


class ErrorResponse(BaseModel):
    """
    Standard error response model.
    """
    error: str
    detail: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)
