"""
Manual (in-store) sales.

An in-store sale is paid and picked up on the spot, so the order is created
directly as entregado with no shipping. When the sale is linked to a chat
session, that session is moved to entregado and pointed at the new order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from domain.order import (
    ActionResult,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    SaleOrigin,
    brand_from_description,
    order_totals,
)
from domain.session import ChatSession, PipelineStage
from domain.time import to_iso_utc, utc_now
from repositories import order_repository, session_repository
from services.app_state import AppState, View

logger = logging.getLogger(__name__)

PICKUP_ADDRESS = "Recoger en sucursal"

PHONE_REQUIRED = "El teléfono es requerido"
NAME_REQUIRED = "El nombre del cliente es requerido"
ITEMS_REQUIRED = "Debe agregar al menos un producto"


@dataclass(frozen=True, slots=True)
class ManualSaleItem:
    snapshot_id: str
    description: str
    size: str
    price_with_tax: Decimal
    quantity: int

    def to_order_item(self) -> OrderItem:
        return OrderItem(
            size=self.size or "N/A",
            brand=brand_from_description(self.description),
            description=self.description or "",
            quantity=self.quantity,
            unit_price=self.price_with_tax,
        )


@dataclass(frozen=True, slots=True)
class ManualSaleRequest:
    phone: str
    customer_name: str
    items: List[ManualSaleItem] = field(default_factory=list)
    payment_method: PaymentMethod = PaymentMethod.IN_STORE_CASH
    notes: Optional[str] = None
    session_id: Optional[str] = None


def validate_manual_sale(request: ManualSaleRequest) -> Optional[str]:
    """Return the first validation error, or None."""

    if not (request.phone or "").strip():
        return PHONE_REQUIRED
    if not (request.customer_name or "").strip():
        return NAME_REQUIRED
    if not request.items:
        return ITEMS_REQUIRED
    return None


def build_order_row(request: ManualSaleRequest, now: datetime) -> Dict[str, Any]:
    items = [item.to_order_item() for item in request.items]
    subtotal, shipping, total = order_totals(items)
    stamp = to_iso_utc(now, name="now")
    return {
        "telefono": request.phone,
        "nombre_cliente": request.customer_name,
        "email_cliente": "",
        "direccion_envio": PICKUP_ADDRESS,
        "telefono_cliente": request.phone,
        "items": [item.to_row() for item in items],
        "subtotal": float(subtotal),
        "costo_envio": float(shipping),
        "total": float(total),
        "estado": OrderStatus.DELIVERED.value,
        "fecha_pago": stamp,
        "fecha_entrega": stamp,
        "metodo_pago": PaymentMethod(request.payment_method).value,
        "origen": SaleOrigin.STORE.value,
        "lead_id": request.session_id or None,
        "notas": request.notes or None,
        "stripe_payment_link_id": None,
        "stripe_payment_link_url": None,
        "stripe_payment_intent_id": None,
        "stripe_session_id": None,
    }


def create_manual_sale(
    request: ManualSaleRequest,
    *,
    state: Optional[AppState] = None,
    now: Optional[datetime] = None,
) -> ActionResult:
    error = validate_manual_sale(request)
    if error:
        return ActionResult.fail(error)

    now = now or utc_now()
    try:
        row = order_repository.insert_order(build_order_row(request, now))
    except (RuntimeError, ValueError) as exc:
        logger.error("Error creating manual sale", extra={"error": str(exc)})
        return ActionResult.fail(str(exc))

    order_id = str(row["id"])

    if request.session_id:
        try:
            session_repository.update_session(
                request.session_id,
                {
                    "pipeline_stage": PipelineStage.DELIVERED.value,
                    "pedido_id": order_id,
                    "updated_at": to_iso_utc(now, name="now"),
                },
            )
        except RuntimeError as exc:
            logger.warning(
                "Manual sale created but session update failed",
                extra={"order_id": order_id, "session_id": request.session_id, "error": str(exc)},
            )

    if state is not None:
        state.invalidate(View.ORDERS, View.PIPELINE, View.CONVERSATIONS, View.DASHBOARD)

    logger.info("Manual sale created", extra={"order_id": order_id})
    return ActionResult.ok(order_id)


def find_sessions_by_phone(phone: str) -> List[ChatSession]:
    """Sessions to link a manual sale to; empty on lookup failure."""

    try:
        return session_repository.find_sessions_by_phone(phone)
    except RuntimeError as exc:
        logger.error("Error searching sessions by phone", extra={"error": str(exc)})
        return []


__all__ = [
    "ITEMS_REQUIRED",
    "ManualSaleItem",
    "ManualSaleRequest",
    "NAME_REQUIRED",
    "PHONE_REQUIRED",
    "PICKUP_ADDRESS",
    "build_order_row",
    "create_manual_sale",
    "find_sessions_by_phone",
    "validate_manual_sale",
]
