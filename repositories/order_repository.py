"""
Order repository (persistence).

This module provides *only* persistence operations for the Order domain
entity. Status rules, timestamps and session sync live in the order service.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence

from domain.order import Order, OrderItem, OrderStatus, PaymentMethod, SaleOrigin
from domain.time import parse_optional_utc_datetime, to_iso_utc
from repositories.client import get_supabase, run_rows

# Supabase table name for Order records.
_ORDERS_TABLE: str = "pedidos"


def _decimal(value: Any) -> Decimal:
    return Decimal(str(value if value is not None else 0))


def _row_to_order(row: Mapping[str, Any]) -> Order:
    """Convert a Supabase row into a domain Order."""

    origin = row.get("origen")
    return Order(
        order_id=str(row["id"]),
        phone=str(row.get("telefono") or ""),
        customer_name=str(row.get("nombre_cliente") or ""),
        items=[OrderItem.from_row(item) for item in (row.get("items") or [])],
        subtotal=_decimal(row.get("subtotal")),
        shipping_cost=_decimal(row.get("costo_envio")),
        total=_decimal(row.get("total")),
        status=OrderStatus(row.get("estado") or OrderStatus.PENDING_PAYMENT.value),
        # A missing payment method is an online card payment.
        payment_method=PaymentMethod(row.get("metodo_pago") or PaymentMethod.ONLINE_CARD.value),
        origin=SaleOrigin(origin) if origin else None,
        customer_email=str(row.get("email_cliente") or ""),
        customer_phone=row.get("telefono_cliente") or None,
        shipping_address=str(row.get("direccion_envio") or ""),
        session_id=row.get("lead_id") or None,
        carrier=row.get("carrier") or None,
        tracking_number=row.get("numero_guia") or None,
        notes=row.get("notas"),
        payment_link_url=row.get("stripe_payment_link_url") or None,
        paid_at=parse_optional_utc_datetime(row.get("fecha_pago")),
        shipped_at=parse_optional_utc_datetime(row.get("fecha_envio")),
        delivered_at=parse_optional_utc_datetime(row.get("fecha_entrega")),
        created_at=parse_optional_utc_datetime(row.get("created_at")),
        updated_at=parse_optional_utc_datetime(row.get("updated_at")),
    )


def get_order(order_id: str) -> Optional[Order]:
    query = get_supabase().table(_ORDERS_TABLE).select("*").eq("id", order_id).limit(1)
    rows = run_rows(query, "fetch order")
    return _row_to_order(rows[0]) if rows else None


def get_order_link(order_id: str) -> Optional[Dict[str, Any]]:
    """Return the order's session link fields: ``{lead_id, telefono}``."""

    query = (
        get_supabase()
        .table(_ORDERS_TABLE)
        .select("lead_id, telefono")
        .eq("id", order_id)
        .limit(1)
    )
    rows = run_rows(query, "fetch order link")
    return dict(rows[0]) if rows else None


def list_orders() -> List[Order]:
    """All orders, newest first."""

    query = get_supabase().table(_ORDERS_TABLE).select("*").order("created_at", desc=True)
    return [_row_to_order(row) for row in run_rows(query, "list orders")]


def list_paid_orders(
    statuses: Sequence[OrderStatus], *, paid_since: Optional[datetime] = None
) -> List[Order]:
    """Orders in `statuses` whose fecha_pago is at or after `paid_since`."""

    query = (
        get_supabase()
        .table(_ORDERS_TABLE)
        .select("*")
        .in_("estado", [OrderStatus(s).value for s in statuses])
    )
    if paid_since is not None:
        query = query.gte("fecha_pago", to_iso_utc(paid_since, name="paid_since"))
    return [_row_to_order(row) for row in run_rows(query, "list paid orders")]


def count_orders_with_status(status: OrderStatus) -> int:
    query = get_supabase().table(_ORDERS_TABLE).select("id").eq("estado", OrderStatus(status).value)
    return len(run_rows(query, "count orders"))


def update_order(order_id: str, fields: Mapping[str, Any]) -> List[Mapping[str, Any]]:
    """
    Apply a partial update to one order.

    Returns the updated rows (empty when no order has `order_id`).
    Raises RuntimeError if Supabase returns an error.
    """

    query = get_supabase().table(_ORDERS_TABLE).update(dict(fields)).eq("id", order_id)
    return run_rows(query, "update order")


def insert_order(payload: Mapping[str, Any]) -> Mapping[str, Any]:
    """Insert an order row and return the stored row (with its generated id)."""

    query = get_supabase().table(_ORDERS_TABLE).insert(dict(payload))
    rows = run_rows(query, "insert order")
    if not rows:
        raise RuntimeError("Failed to insert order: no row returned")
    return rows[0]


__all__ = [
    "count_orders_with_status",
    "get_order",
    "get_order_link",
    "insert_order",
    "list_orders",
    "list_paid_orders",
    "update_order",
]
