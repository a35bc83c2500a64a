"""
Orders and inventory tables.

Each table is fetched whole and then searched, filtered, sorted and paged
in memory, with KPIs computed over the unfiltered rows.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from domain.inventory import (
    INVENTORY_PAGE_SIZE,
    Brand,
    InventoryItem,
    InventoryKpis,
    InventorySortField,
    StockFilter,
    compute_kpis,
    filter_inventory,
    paginate,
    total_pages,
)
from domain.order import Order, OrderStatus
from domain.order_list import (
    ORDERS_PAGE_SIZE,
    OrderListKpis,
    OrderSortField,
    compute_order_kpis,
    filter_orders,
)
from domain.time import utc_now
from repositories import inventory_repository, order_repository

logger = logging.getLogger(__name__)

T = TypeVar("T")
K = TypeVar("K")


@dataclass(frozen=True)
class Page(Generic[T, K]):
    items: List[T]
    page: int
    total_pages: int
    total_count: int
    kpis: K


def _load_orders() -> List[Order]:
    try:
        return order_repository.list_orders()
    except RuntimeError as exc:
        logger.error("Error loading orders", extra={"error": str(exc)})
        return []


def _load_inventory() -> List[InventoryItem]:
    try:
        return inventory_repository.list_inventory()
    except RuntimeError as exc:
        logger.error("Error loading inventory", extra={"error": str(exc)})
        return []


def filtered_orders(
    *,
    search: str = "",
    status: Optional[OrderStatus] = None,
    sort_field: OrderSortField = OrderSortField.CREATED_AT,
    descending: bool = True,
) -> List[Order]:
    return filter_orders(
        _load_orders(), search=search, status=status, sort_field=sort_field, descending=descending
    )


def orders_page(
    *,
    page: int = 1,
    search: str = "",
    status: Optional[OrderStatus] = None,
    sort_field: OrderSortField = OrderSortField.CREATED_AT,
    descending: bool = True,
    now: Optional[datetime] = None,
) -> Page[Order, OrderListKpis]:
    orders = _load_orders()
    rows = filter_orders(
        orders, search=search, status=status, sort_field=sort_field, descending=descending
    )
    return Page(
        items=paginate(rows, page, ORDERS_PAGE_SIZE),
        page=page,
        total_pages=total_pages(len(rows), ORDERS_PAGE_SIZE),
        total_count=len(rows),
        kpis=compute_order_kpis(orders, now or utc_now()),
    )


def filtered_inventory(
    *,
    search: str = "",
    brand: Optional[Brand] = None,
    stock: StockFilter = StockFilter.ALL,
    sort_field: InventorySortField = InventorySortField.SIZE,
    descending: bool = False,
) -> List[InventoryItem]:
    return filter_inventory(
        _load_inventory(),
        search=search,
        brand=brand,
        stock=stock,
        sort_field=sort_field,
        descending=descending,
    )


def inventory_page(
    *,
    page: int = 1,
    search: str = "",
    brand: Optional[Brand] = None,
    stock: StockFilter = StockFilter.ALL,
    sort_field: InventorySortField = InventorySortField.SIZE,
    descending: bool = False,
) -> Page[InventoryItem, InventoryKpis]:
    items = _load_inventory()
    rows = filter_inventory(
        items, search=search, brand=brand, stock=stock, sort_field=sort_field, descending=descending
    )
    return Page(
        items=paginate(rows, page, INVENTORY_PAGE_SIZE),
        page=page,
        total_pages=total_pages(len(rows), INVENTORY_PAGE_SIZE),
        total_count=len(rows),
        kpis=compute_kpis(items),
    )


__all__ = ["Page", "filtered_inventory", "filtered_orders", "inventory_page", "orders_page"]
