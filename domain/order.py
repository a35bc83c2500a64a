"""
Domain: Orders and the order-status state machine.

Rules implemented here:
- An Order's status moves pendiente_pago -> pagado -> enviado -> entregado,
  with cancelado reachable from pendiente_pago and pagado.
- entregado and cancelado are terminal.
- total = subtotal + costo_envio (no tax line is modeled at this layer).
- Each forward status records exactly one timestamp (fecha_pago,
  fecha_envio, fecha_entrega).

This module contains only pure domain entities/value objects: no I/O, no
database, no frameworks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple

from .time import require_utc_timestamp


class OrderStatus(str, Enum):
    PENDING_PAYMENT = "pendiente_pago"
    PAID = "pagado"
    SHIPPED = "enviado"
    DELIVERED = "entregado"
    CANCELLED = "cancelado"

    @property
    def label(self) -> str:
        return ORDER_STATUS_LABELS[self]


ORDER_STATUS_LABELS: Dict[OrderStatus, str] = {
    OrderStatus.PENDING_PAYMENT: "Pendiente de Pago",
    OrderStatus.PAID: "Pagado",
    OrderStatus.SHIPPED: "Enviado",
    OrderStatus.DELIVERED: "Entregado",
    OrderStatus.CANCELLED: "Cancelado",
}


class PaymentMethod(str, Enum):
    ONLINE_CARD = "stripe"
    CASH_ON_DELIVERY = "efectivo_cod"
    IN_STORE_CASH = "efectivo_sucursal"
    IN_STORE_CARD = "tarjeta_sucursal"

    @property
    def label(self) -> str:
        return PAYMENT_METHOD_LABELS[self]


PAYMENT_METHOD_LABELS: Dict[PaymentMethod, str] = {
    PaymentMethod.ONLINE_CARD: "Tarjeta (Online)",
    PaymentMethod.CASH_ON_DELIVERY: "Efectivo (COD)",
    PaymentMethod.IN_STORE_CASH: "Efectivo (Sucursal)",
    PaymentMethod.IN_STORE_CARD: "Tarjeta (Sucursal)",
}


class SaleOrigin(str, Enum):
    BOT = "bot"
    STORE = "sucursal"
    PHONE = "telefono"
    WEB = "web"


# Legal next states for each status. Drives which actions are offered.
ORDER_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING_PAYMENT: frozenset({OrderStatus.PAID, OrderStatus.CANCELLED}),
    OrderStatus.PAID: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

# Timestamp column set when an order enters the given status.
STATUS_TIMESTAMP_FIELDS: Dict[OrderStatus, str] = {
    OrderStatus.PAID: "fecha_pago",
    OrderStatus.SHIPPED: "fecha_envio",
    OrderStatus.DELIVERED: "fecha_entrega",
}

# Statuses that trigger a customer notification.
NOTIFIABLE_STATUSES: FrozenSet[OrderStatus] = frozenset(
    {OrderStatus.PAID, OrderStatus.SHIPPED, OrderStatus.DELIVERED}
)

# Statuses counted as revenue.
PAID_STATUSES: Tuple[OrderStatus, ...] = (
    OrderStatus.PAID,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
)


def allowed_transitions(status: OrderStatus) -> FrozenSet[OrderStatus]:
    """Return the set of statuses reachable in one step from `status`."""

    return ORDER_TRANSITIONS[OrderStatus(status)]


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return OrderStatus(target) in allowed_transitions(current)


def is_terminal(status: OrderStatus) -> bool:
    return not allowed_transitions(status)


def status_timestamp_field(status: OrderStatus) -> Optional[str]:
    return STATUS_TIMESTAMP_FIELDS.get(OrderStatus(status))


def brand_from_description(description: Optional[str]) -> str:
    """Brand tag recorded on order lines created from the catalog."""

    text = (description or "").upper()
    if "NEREUS" in text:
        return "NEREUS"
    if "TORNEL" in text:
        return "TORNEL"
    return "Otro"


@dataclass(frozen=True, slots=True)
class OrderItem:
    """A single order line (size label, brand, description, qty, unit price)."""

    size: str
    brand: str
    description: str
    quantity: int
    unit_price: Decimal

    def __post_init__(self) -> None:
        if self.quantity < 1:
            raise ValueError("quantity must be >= 1")
        if self.unit_price < 0:
            raise ValueError("unit_price must be >= 0")

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    def to_row(self) -> dict:
        return {
            "medida": self.size,
            "marca": self.brand,
            "descripcion": self.description,
            "cantidad": self.quantity,
            "precio_unitario": float(self.unit_price),
        }

    @staticmethod
    def from_row(row: dict) -> "OrderItem":
        return OrderItem(
            size=str(row.get("medida") or "N/A"),
            brand=str(row.get("marca") or ""),
            description=str(row.get("descripcion") or ""),
            quantity=int(row.get("cantidad") or 1),
            unit_price=Decimal(str(row.get("precio_unitario") or 0)),
        )


def order_totals(
    items: List[OrderItem], shipping_cost: Decimal = Decimal("0")
) -> Tuple[Decimal, Decimal, Decimal]:
    """
    Compute (subtotal, shipping_cost, total) for new orders.

    total = subtotal + shipping_cost holds by construction.
    """

    if shipping_cost < 0:
        raise ValueError("shipping_cost must be >= 0")
    subtotal = sum((item.line_total for item in items), Decimal("0"))
    return subtotal, shipping_cost, subtotal + shipping_cost


@dataclass(frozen=True, slots=True)
class Order:
    """
    Commercial transaction.

    Orders are created by the chatbot flow or by a manual in-store sale and
    are never deleted. The status field only changes through the status
    actions in the order service.
    """

    order_id: str
    phone: str
    customer_name: str
    items: List[OrderItem]
    subtotal: Decimal
    shipping_cost: Decimal
    total: Decimal
    status: OrderStatus
    payment_method: PaymentMethod = PaymentMethod.ONLINE_CARD
    origin: Optional[SaleOrigin] = None
    customer_email: str = ""
    customer_phone: Optional[str] = None
    shipping_address: str = ""
    session_id: Optional[str] = None
    carrier: Optional[str] = None
    tracking_number: Optional[str] = None
    notes: Optional[str] = None
    payment_link_url: Optional[str] = None
    paid_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        for name in ("paid_at", "shipped_at", "delivered_at", "created_at", "updated_at"):
            value = getattr(self, name)
            if value is not None:
                require_utc_timestamp(name, value)

    @property
    def totals_consistent(self) -> bool:
        return self.total == self.subtotal + self.shipping_cost

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def contact_phone(self) -> str:
        return self.phone or (self.customer_phone or "")

    def next_statuses(self) -> FrozenSet[OrderStatus]:
        return allowed_transitions(self.status)


@dataclass(frozen=True, slots=True)
class ActionResult:
    """Outcome of a mutating action: ``{success, error}`` plus an optional id."""

    success: bool
    error: Optional[str] = None
    order_id: Optional[str] = None
    details: Dict[str, object] = field(default_factory=dict)

    @staticmethod
    def ok(order_id: Optional[str] = None, **details: object) -> "ActionResult":
        return ActionResult(success=True, order_id=order_id, details=dict(details))

    @staticmethod
    def fail(error: str) -> "ActionResult":
        return ActionResult(success=False, error=error)


__all__ = [
    "ActionResult",
    "NOTIFIABLE_STATUSES",
    "ORDER_STATUS_LABELS",
    "ORDER_TRANSITIONS",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PAID_STATUSES",
    "PAYMENT_METHOD_LABELS",
    "PaymentMethod",
    "STATUS_TIMESTAMP_FIELDS",
    "SaleOrigin",
    "allowed_transitions",
    "brand_from_description",
    "can_transition",
    "is_terminal",
    "order_totals",
    "status_timestamp_field",
]
