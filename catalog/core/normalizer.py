"""
Response normalization for raw catalog rows.
Coerces numeric fields, strips internal aliases and builds the
client-facing models for each listing intent.
"""

import json
import logging
import math
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional
from catalog.models.models import (
    BestSellerProduct,
    ProductDetail,
    ProductImage,
    ProductSummary,
    ProductVariant,
    SearchResult,
)

logger = logging.getLogger(__name__)

# Aliases the row fetcher selects for internal use only
INTERNAL_FIELDS = ("base_price", "base_stock")


def to_number(value: Any) -> float:
    """
    Parse a DB value as a number.
    None, NaN, infinities and unparseable strings become 0.
    """
    if value is None:
        return 0.0
    try:
        number = float(Decimal(value.strip()) if isinstance(value, str) else value)
    except (TypeError, ValueError, InvalidOperation):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def to_int(value: Any) -> int:
    """Integer variant of to_number (truncates toward zero)."""
    return int(to_number(value))


def parse_attributes(raw: Any, variant_id: Any = None) -> Dict[str, Any]:
    """
    Parse variant attributes stored as JSON text or a mapping.
    Malformed values yield an empty mapping.
    """
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return raw
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.error(f"Error parsing attributes for variant {variant_id}: {str(e)}")
        return {}
    if not isinstance(parsed, dict):
        logger.warning(f"Ignoring non-object attributes for variant {variant_id}")
        return {}
    return parsed


def attribute_suffix(attributes: Dict[str, Any]) -> str:
    """Attribute values joined by spaces, e.g. {"color": "red", "size": "M"} -> "red M"."""
    return " ".join(str(value) for value in attributes.values())


class ResponseNormalizer:
    """
    Turns coerced product rows into response models.
    """

    @staticmethod
    def _commercial_fields(row: Dict[str, Any], price_key: str = "base_price") -> Dict[str, Any]:
        price = row.get(price_key) if price_key in row else row.get("price")
        return {
            "price": to_number(price),
            "discounted_price": to_number(row.get("discounted_price")),
            "discount_percentage": to_number(row.get("discount_percentage")),
            "average_rating": to_number(row.get("average_rating")),
            "review_count": to_int(row.get("review_count")),
            "stock": max(0, to_int(row.get("stock"))),
        }

    @staticmethod
    def _public_fields(row: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in row.items() if k not in INTERNAL_FIELDS}

    @classmethod
    def listing_product(cls, row: Dict[str, Any]) -> ProductSummary:
        """Normalize a row for the all / new-arrivals / flash-deals listings."""
        data = cls._public_fields(row)
        data.update(cls._commercial_fields(row))
        data["is_featured"] = bool(row.get("is_featured"))
        data["variants"] = []
        data.setdefault("images", [])
        return ProductSummary.model_validate(data)

    @classmethod
    def best_seller(cls, row: Dict[str, Any]) -> BestSellerProduct:
        data = cls._public_fields(row)
        data.update(cls._commercial_fields(row))
        data["is_featured"] = bool(row.get("is_featured"))
        data["total_sold"] = to_int(row.get("total_sold"))
        data["variants"] = []
        data.setdefault("images", [])
        return BestSellerProduct.model_validate(data)

    @classmethod
    def search_result(cls, row: Dict[str, Any]) -> SearchResult:
        """
        Normalize a search row. The primary image is the first resolved image.
        """
        images: List[ProductImage] = row.get("images") or []
        return SearchResult(
            product_id=row["product_id"],
            name=row.get("name") or "",
            description=row.get("description") or "",
            product_code=row.get("product_code") or "",
            category_name=row.get("category_name") or "Uncategorized",
            category_id=row.get("category_id"),
            price=to_number(row.get("price")),
            average_rating=to_number(row.get("average_rating")),
            review_count=to_int(row.get("review_count")),
            stock=max(0, to_int(row.get("stock"))),
            image=images[0].url if images else None,
            images=images,
        )

    @staticmethod
    def variant(
        row: Dict[str, Any],
        product_name: str,
        attributes: Dict[str, Any],
        image: Optional[ProductImage] = None,
    ) -> ProductVariant:
        """
        Normalize a variant row for the detail view.
        The display name combines the product name with the attribute values.
        """
        suffix = attribute_suffix(attributes)
        return ProductVariant(
            variant_id=row["variant_id"],
            product_id=row["product_id"],
            parent_product_id=row["product_id"],
            sku=row.get("sku"),
            name=f"{product_name} - {suffix}" if suffix else product_name,
            price=to_number(row.get("price")),
            stock=max(0, to_int(row.get("stock"))),
            image_url=row.get("image_url") if isinstance(row.get("image_url"), str) else None,
            attributes=attributes,
            images=[image] if image else [],
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    @classmethod
    def detail(
        cls,
        row: Dict[str, Any],
        variants: List[ProductVariant],
        images: List[ProductImage],
    ) -> ProductDetail:
        """Normalize the detail row together with its variants and images."""
        data = cls._public_fields(row)
        data.update(cls._commercial_fields(row))
        data["has_variants"] = bool(variants) or bool(row.get("has_variants"))
        data["items_sold"] = to_int(row.get("items_sold"))
        data["variants"] = variants
        data["images"] = images
        return ProductDetail.model_validate(data)
