"""
Analytics and dashboard read models.

Fetches the rows for a period and hands them to the pure calculators in
domain.analytics. Read-only: a failed fetch degrades to empty data and is
logged, so the page still renders.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Optional, TypeVar

from domain.analytics import (
    AnalyticsRange,
    AnalyticsSnapshot,
    DashboardSummary,
    PendingActions,
    compute_analytics,
    period_windows,
    sales_last_days,
    sales_metrics,
)
from domain.order import PAID_STATUSES, OrderStatus
from domain.time import utc_now
from repositories import (
    inventory_repository,
    message_repository,
    order_repository,
    session_repository,
)
from services.conversation_service import ATTENTION_LIMIT, conversations_requiring_attention

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _or_default(fetch: Callable[[], T], default: T, what: str) -> T:
    try:
        return fetch()
    except RuntimeError as exc:
        logger.error(f"Error fetching {what}", extra={"error": str(exc)})
        return default


def analytics_snapshot(
    date_range: AnalyticsRange, *, now: Optional[datetime] = None
) -> AnalyticsSnapshot:
    start = AnalyticsRange(date_range).start(now or utc_now())
    orders = _or_default(
        lambda: order_repository.list_paid_orders(PAID_STATUSES, paid_since=start), [], "paid orders"
    )
    sessions = _or_default(
        lambda: session_repository.list_sessions(created_since=start), [], "sessions"
    )
    messages = _or_default(lambda: message_repository.list_messages(since=start), [], "messages")
    return compute_analytics(orders, sessions, messages)


def pending_actions() -> PendingActions:
    return PendingActions(
        unread_sessions=_or_default(session_repository.count_unread_sessions, 0, "unread sessions"),
        orders_to_ship=_or_default(
            lambda: order_repository.count_orders_with_status(OrderStatus.PAID), 0, "orders to ship"
        ),
        pending_payment_links=_or_default(
            lambda: order_repository.count_orders_with_status(OrderStatus.PENDING_PAYMENT),
            0,
            "pending payment links",
        ),
    )


def dashboard_summary(*, now: Optional[datetime] = None) -> DashboardSummary:
    now = now or utc_now()
    # Last month is the oldest window the dashboard compares against.
    since = period_windows(now).start_of_last_month
    paid = _or_default(
        lambda: order_repository.list_paid_orders(PAID_STATUSES, paid_since=since), [], "sales"
    )
    out_of_stock: List = _or_default(inventory_repository.list_out_of_stock, [], "out of stock")

    return DashboardSummary(
        pending=pending_actions(),
        sales=sales_metrics(paid, now),
        last_days=sales_last_days(paid, now),
        low_stock=_or_default(inventory_repository.list_low_stock, [], "low stock"),
        out_of_stock=out_of_stock[: inventory_repository.ALERT_LIMIT],
        out_of_stock_total=len(out_of_stock),
        attention=[
            {
                "session_id": item.session_id,
                "phone": item.phone,
                "customer_name": item.customer_name,
                "last_message": item.last_message,
                "unread_count": item.unread_count,
                "wait": item.wait_label,
                "priority": item.priority,
            }
            for item in conversations_requiring_attention(ATTENTION_LIMIT)
        ],
    )


__all__ = ["analytics_snapshot", "dashboard_summary", "pending_actions"]
