"""
Domain: Inventory snapshots.

The catalog is periodically re-ingested by an external process; records here
are point-in-time and read-only from the dashboard's perspective.

Rules implemented here:
- Brand is derived from tag/description: NEREUS when either mentions it,
  otherwise TORNEL.
- Stock status: out (0), low (1..10), ok (> 10).
- Size search is flexible: "205/55R16", "205 55 16" and "2055516" match.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Sequence

LOW_STOCK_MAX = 10
INVENTORY_PAGE_SIZE = 50


class Brand(str, Enum):
    TORNEL = "TORNEL"
    NEREUS = "NEREUS"


class StockFilter(str, Enum):
    ALL = "all"
    LOW = "low"
    OUT = "out"


class InventorySortField(str, Enum):
    DESCRIPTION = "descripcion"
    SIZE = "medida"
    PRICE = "precio_con_iva"
    STOCK = "existencia"


@dataclass(frozen=True, slots=True)
class InventoryItem:
    """Point-in-time product record."""

    snapshot_id: str
    description: Optional[str]
    tag: Optional[str]
    size: Optional[str]
    price: Decimal
    price_with_tax: Decimal
    stock: int
    category: Optional[str] = None

    @property
    def brand(self) -> Brand:
        text = f"{self.tag or ''} {self.description or ''}".upper()
        if "NEREUS" in text:
            return Brand.NEREUS
        return Brand.TORNEL

    @property
    def is_out_of_stock(self) -> bool:
        return self.stock <= 0

    @property
    def is_low_stock(self) -> bool:
        return 0 < self.stock <= LOW_STOCK_MAX

    @property
    def stock_value(self) -> Decimal:
        return self.price_with_tax * max(self.stock, 0)


@dataclass(frozen=True, slots=True)
class InventoryKpis:
    total_products: int
    low_stock: int
    out_of_stock: int
    total_value: Decimal


_SEPARATORS = re.compile(r"[\s/\-.]+")


def normalize_size_query(text: str) -> str:
    """Strip spaces, separators and the radial 'R' for size matching."""

    return _SEPARATORS.sub("", text.lower()).replace("r", "")


def matches_search(item: InventoryItem, query: str) -> bool:
    """Free-text match on description, tag and (flexibly) size."""

    query = query.strip().lower()
    if not query:
        return True
    if query in (item.description or "").lower():
        return True
    if query in (item.tag or "").lower():
        return True
    if query in (item.size or "").lower():
        return True
    normalized = normalize_size_query(query)
    return bool(normalized) and normalized in normalize_size_query(item.size or "")


def compute_kpis(items: Sequence[InventoryItem]) -> InventoryKpis:
    return InventoryKpis(
        total_products=len(items),
        low_stock=sum(1 for i in items if i.is_low_stock),
        out_of_stock=sum(1 for i in items if i.is_out_of_stock),
        total_value=sum((i.stock_value for i in items), Decimal("0")),
    )


def filter_inventory(
    items: Sequence[InventoryItem],
    *,
    search: str = "",
    brand: Optional[Brand] = None,
    stock: StockFilter = StockFilter.ALL,
    sort_field: InventorySortField = InventorySortField.SIZE,
    descending: bool = False,
) -> List[InventoryItem]:
    result = [i for i in items if matches_search(i, search)]
    if brand is not None:
        result = [i for i in result if i.brand == brand]
    if stock == StockFilter.LOW:
        result = [i for i in result if i.is_low_stock]
    elif stock == StockFilter.OUT:
        result = [i for i in result if i.is_out_of_stock]

    if sort_field == InventorySortField.DESCRIPTION:
        result.sort(key=lambda i: (i.description or "").lower(), reverse=descending)
    elif sort_field == InventorySortField.PRICE:
        result.sort(key=lambda i: i.price_with_tax, reverse=descending)
    elif sort_field == InventorySortField.STOCK:
        result.sort(key=lambda i: i.stock, reverse=descending)
    else:
        result.sort(key=lambda i: (i.size or "").lower(), reverse=descending)
    return result


def paginate(items: Sequence, page: int, page_size: int = INVENTORY_PAGE_SIZE) -> List:
    """Return the 1-based `page` of `items`."""

    if page < 1:
        raise ValueError("page must be >= 1")
    start = (page - 1) * page_size
    return list(items[start:start + page_size])


def total_pages(count: int, page_size: int = INVENTORY_PAGE_SIZE) -> int:
    return math.ceil(count / page_size) if count else 0


__all__ = [
    "Brand",
    "INVENTORY_PAGE_SIZE",
    "InventoryItem",
    "InventoryKpis",
    "InventorySortField",
    "LOW_STOCK_MAX",
    "StockFilter",
    "compute_kpis",
    "filter_inventory",
    "matches_search",
    "normalize_size_query",
    "paginate",
    "total_pages",
]
