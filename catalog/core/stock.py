"""
Stock aggregation.

Effective stock is the sum of variant stocks when a product has variants,
otherwise the product's own stock. It is never negative and never null.
"""

import logging
from typing import List, Dict, Any, Optional, Sequence
from catalog.core.normalizer import to_int

logger = logging.getLogger(__name__)


def effective_stock(base_stock: Any, variant_stocks: Optional[Sequence[Any]] = None) -> int:
    """
    Compute effective stock from the product's own stock and its variants.

    Mirrors COALESCE(SUM(variant.stock), product.stock, 0): variants with a
    null stock are ignored, and if every variant stock is null the base
    stock applies.
    """
    known = [s for s in (variant_stocks or []) if s is not None]
    if known:
        total = sum(to_int(s) for s in known)
    else:
        total = to_int(base_stock)
    return max(0, total)


def aggregate_stock(rows: List[Dict[str, Any]], require_in_stock: bool = True) -> List[Dict[str, Any]]:
    """
    Coerce the raw aggregate stock of each row and attach the variants placeholder.

    Args:
        rows: Product rows carrying `stock` and `has_variants` from the fetcher
        require_in_stock: Drop rows whose effective stock is not positive

    Returns:
        The rows that remain, in their original order
    """
    aggregated = []
    for row in rows:
        row["stock"] = max(0, to_int(row.get("stock")))
        row["has_variants"] = bool(row.get("has_variants"))
        row["variants"] = []

        if require_in_stock and row["stock"] <= 0:
            logger.debug(f"Dropping product {row.get('product_id')} with no stock")
            continue
        aggregated.append(row)
    return aggregated
