"""
Domain: orders table view (search, filter, sort, KPIs).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Sequence

from .analytics import is_paid, period_windows
from .order import Order, OrderStatus

ORDERS_PAGE_SIZE = 20


class OrderSortField(str, Enum):
    CREATED_AT = "created_at"
    TOTAL = "total"
    CUSTOMER_NAME = "nombre_cliente"


@dataclass(frozen=True, slots=True)
class OrderListKpis:
    month_sales: Decimal
    pending_payment: int
    pending_shipment: int
    average_ticket: Decimal
    cancellation_rate: float
    month_orders: int


def compute_order_kpis(orders: Sequence[Order], now: datetime) -> OrderListKpis:
    """
    Month figures use created_at; pending counts and the average ticket span
    every order passed in.
    """

    start_of_month = period_windows(now).start_of_month
    month = [o for o in orders if o.created_at is not None and o.created_at >= start_of_month]
    paid = [o for o in orders if is_paid(o)]
    paid_month = [o for o in month if is_paid(o)]
    cancelled_month = sum(1 for o in month if o.status == OrderStatus.CANCELLED)
    paid_total = sum((o.total for o in paid), Decimal("0"))

    return OrderListKpis(
        month_sales=sum((o.total for o in paid_month), Decimal("0")),
        pending_payment=sum(1 for o in orders if o.status == OrderStatus.PENDING_PAYMENT),
        pending_shipment=sum(1 for o in orders if o.status == OrderStatus.PAID),
        average_ticket=paid_total / len(paid) if paid else Decimal("0"),
        cancellation_rate=cancelled_month / len(month) * 100 if month else 0.0,
        month_orders=len(month),
    )


def _matches(order: Order, search: str) -> bool:
    return (
        search in order.customer_name.lower()
        or search in (order.phone or "")
        or search in (order.customer_phone or "")
        or search in order.order_id.lower()
    )


def filter_orders(
    orders: Sequence[Order],
    *,
    search: str = "",
    status: Optional[OrderStatus] = None,
    sort_field: OrderSortField = OrderSortField.CREATED_AT,
    descending: bool = True,
) -> List[Order]:
    needle = search.strip().lower()
    result = [o for o in orders if not needle or _matches(o, needle)]
    if status is not None:
        result = [o for o in result if o.status == OrderStatus(status)]

    if sort_field == OrderSortField.TOTAL:
        result.sort(key=lambda o: o.total, reverse=descending)
    elif sort_field == OrderSortField.CUSTOMER_NAME:
        result.sort(key=lambda o: o.customer_name.lower(), reverse=descending)
    else:
        result.sort(
            key=lambda o: o.created_at.timestamp() if o.created_at else 0.0,
            reverse=descending,
        )
    return result


__all__ = [
    "ORDERS_PAGE_SIZE",
    "OrderListKpis",
    "OrderSortField",
    "compute_order_kpis",
    "filter_orders",
]
