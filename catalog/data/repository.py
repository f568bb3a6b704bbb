"""
Row fetcher for the product catalog.

Issues the parameterized queries behind each listing intent and returns raw
rows. Effective stock and the has-variants flag are computed in the same
query pass so every listing applies the same availability rule.
"""

import logging
from typing import List, Dict, Any, Optional, Sequence
from catalog.core.config import (
    COMPLETED_ORDER_STATUSES,
    LISTING_LIMIT,
    NEW_ARRIVAL_DAYS,
    SEARCH_LIMIT,
)
from catalog.data.database import Database

logger = logging.getLogger(__name__)

EFFECTIVE_STOCK = """COALESCE(
          (SELECT SUM(pv.stock) FROM product_variants pv WHERE pv.product_id = p.product_id),
          p.stock,
          0
        )"""

HAS_VARIANTS = "EXISTS (SELECT 1 FROM product_variants pv WHERE pv.product_id = p.product_id)"

# Only quantities from orders in an allow-listed status are counted
TOTAL_SOLD = """COALESCE(
          (SELECT SUM(oi.quantity)
             FROM order_items oi
             JOIN orders o ON o.order_id = oi.order_id
            WHERE oi.product_id = p.product_id
              AND o.order_status = ANY({statuses}::text[])),
          0
        )"""

LISTING_COLUMNS = f"""
        p.product_id,
        p.name,
        p.product_code,
        p.description,
        p.category_id,
        p.created_at,
        p.updated_at,
        p.is_featured,
        p.price                AS base_price,
        p.discounted_price,
        p.discount_percentage,
        p.average_rating,
        p.review_count,
        c.name                 AS category_name,
        p.stock                AS base_stock,
        {EFFECTIVE_STOCK} AS stock,
        {HAS_VARIANTS} AS has_variants"""


def _escape_like(text: str) -> str:
    """Escape LIKE wildcards so user input matches literally."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class ProductRepository:
    """
    Read-only queries for every listing intent plus the image and variant
    lookups used by the image resolver and the detail view.
    """

    def __init__(self, db: Database):
        self.db = db

    async def fetch_all(self, category_id: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        All in-stock products, newest first, optionally filtered by category.
        No pagination limit is applied.
        """
        sql = f"""
      SELECT {LISTING_COLUMNS}
      FROM products p
      LEFT JOIN categories c ON p.category_id = c.category_id
      WHERE {EFFECTIVE_STOCK} > 0"""
        params: List[Any] = []

        if category_id is not None:
            params.append(category_id)
            sql += f" AND p.category_id = ${len(params)}"

        sql += """
      ORDER BY p.created_at DESC, p.product_id DESC"""

        return await self.db.fetch(sql, *params)

    async def fetch_new_arrivals(self) -> List[Dict[str, Any]]:
        """In-stock products created within the new-arrival window."""
        sql = f"""
      SELECT {LISTING_COLUMNS}
      FROM products p
      LEFT JOIN categories c ON p.category_id = c.category_id
      WHERE {EFFECTIVE_STOCK} > 0
        AND p.created_at >= NOW() - make_interval(days => $1)
      ORDER BY p.created_at DESC
      LIMIT $2"""
        return await self.db.fetch(sql, NEW_ARRIVAL_DAYS, LISTING_LIMIT)

    async def fetch_best_sellers(self) -> List[Dict[str, Any]]:
        """
        In-stock products with completed-order sales, best selling first.
        Ties on total_sold are broken by creation time, newest first.
        """
        total_sold = TOTAL_SOLD.format(statuses="$1")
        sql = f"""
      SELECT * FROM (
        SELECT {LISTING_COLUMNS},
          {total_sold} AS total_sold
        FROM products p
        LEFT JOIN categories c ON p.category_id = c.category_id
        WHERE {EFFECTIVE_STOCK} > 0
      ) ranked
      WHERE ranked.total_sold > 0
      ORDER BY ranked.total_sold DESC, ranked.created_at DESC
      LIMIT $2"""
        return await self.db.fetch(sql, list(COMPLETED_ORDER_STATUSES), LISTING_LIMIT)

    async def fetch_flash_deals(self) -> List[Dict[str, Any]]:
        """In-stock discounted products, deepest discount first."""
        sql = f"""
      SELECT {LISTING_COLUMNS}
      FROM products p
      LEFT JOIN categories c ON p.category_id = c.category_id
      WHERE {EFFECTIVE_STOCK} > 0
        AND p.discounted_price > 0
        AND p.discount_percentage > 0
      ORDER BY p.discount_percentage DESC, p.created_at DESC
      LIMIT $1"""
        return await self.db.fetch(sql, LISTING_LIMIT)

    async def search(self, text: str) -> List[Dict[str, Any]]:
        """
        Case-insensitive substring search over name, description, product
        code and category name.

        Ranking: name match (10) > description match (5) > anything else (1),
        ties broken by creation time, newest first.
        """
        term = f"%{_escape_like(text.lower())}%"
        sql = f"""
      SELECT
        p.product_id,
        p.name,
        p.description,
        p.product_code,
        p.price,
        p.category_id,
        p.average_rating,
        p.review_count,
        c.name AS category_name,
        {EFFECTIVE_STOCK} AS stock
      FROM products p
      LEFT JOIN categories c ON p.category_id = c.category_id
      WHERE (
          LOWER(p.name) LIKE $1
          OR LOWER(COALESCE(p.description, '')) LIKE $1
          OR LOWER(COALESCE(p.product_code, '')) LIKE $1
          OR LOWER(COALESCE(c.name, '')) LIKE $1
        )
        AND {EFFECTIVE_STOCK} > 0
      ORDER BY
        CASE
          WHEN LOWER(p.name) LIKE $1 THEN 10
          WHEN LOWER(COALESCE(p.description, '')) LIKE $1 THEN 5
          ELSE 1
        END DESC,
        p.created_at DESC
      LIMIT $2"""
        return await self.db.fetch(sql, term, SEARCH_LIMIT)

    async def fetch_detail(self, product_id: int) -> Optional[Dict[str, Any]]:
        """Single product with effective stock and completed-order sales."""
        total_sold = TOTAL_SOLD.format(statuses="$2")
        sql = f"""
      SELECT {LISTING_COLUMNS},
        {total_sold} AS items_sold
      FROM products p
      LEFT JOIN categories c ON p.category_id = c.category_id
      WHERE p.product_id = $1"""
        return await self.db.fetchrow(sql, product_id, list(COMPLETED_ORDER_STATUSES))

    async def fetch_variants(self, product_id: int) -> List[Dict[str, Any]]:
        sql = """
      SELECT variant_id, product_id, sku, price, stock, image_url, attributes,
             created_at, updated_at
      FROM product_variants
      WHERE product_id = $1
      ORDER BY variant_id"""
        return await self.db.fetch(sql, product_id)

    async def fetch_declared_images(self, product_ids: Sequence[int]) -> List[Dict[str, Any]]:
        """Declared product images for a batch, ordered by product then sort order."""
        sql = """
      SELECT DISTINCT pi.product_id, pi.image_id, pi.image_url,
             COALESCE(pi.sort_order, 0) AS sort_order,
             COALESCE(pi.alt_text, '') AS alt_text
      FROM product_images pi
      WHERE pi.product_id = ANY($1::int[])
      ORDER BY pi.product_id, sort_order"""
        return await self.db.fetch(sql, list(product_ids))

    async def fetch_variant_images(self, product_ids: Sequence[int]) -> List[Dict[str, Any]]:
        """Variant images for a batch; used as a fallback for undeclared products."""
        sql = """
      SELECT DISTINCT pv.product_id, pv.variant_id AS image_id, pv.image_url
      FROM product_variants pv
      WHERE pv.product_id = ANY($1::int[])
        AND pv.image_url IS NOT NULL
      ORDER BY pv.product_id, image_id"""
        return await self.db.fetch(sql, list(product_ids))

    async def fetch_primary_image(self, product_id: int) -> Optional[Dict[str, Any]]:
        sql = """
      SELECT image_url
      FROM product_images
      WHERE product_id = $1
      ORDER BY sort_order
      LIMIT 1"""
        return await self.db.fetchrow(sql, product_id)
