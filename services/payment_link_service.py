"""
Payment links for quotes.

Validates a quote-backed payment request and forwards it to the
`create-payment-link` edge function, which creates the pending order and
the card payment link. Response contract: ``{payment_link_url, pedido_id}``
on success, ``{error}`` otherwise.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from domain.quote import QuoteRequest, QuoteTotals
from repositories.edge_functions import CREATE_PAYMENT_LINK, invoke_edge_function
from services.auth_service import CurrentUser, creator_label

logger = logging.getLogger(__name__)

NAME_REQUIRED = "El nombre del cliente es requerido"
PHONE_REQUIRED = "El teléfono del cliente es requerido"
ITEMS_REQUIRED = "Se requiere al menos un producto"
TOTAL_REQUIRED = "El total debe ser mayor a 0"
GENERIC_ERROR = "Error al generar el link de pago"


@dataclass(frozen=True, slots=True)
class PaymentLinkItem:
    snapshot_id: str
    description: str
    size: str
    price_with_tax: Decimal
    quantity: int


@dataclass(frozen=True, slots=True)
class PaymentLinkExternalItem:
    item_id: str
    description: str
    price: Decimal
    quantity: int


@dataclass(frozen=True, slots=True)
class PaymentLinkRequest:
    customer_name: str
    customer_phone: str
    subtotal: Decimal
    shipping_cost: Decimal
    total: Decimal
    items: List[PaymentLinkItem] = field(default_factory=list)
    external_items: List[PaymentLinkExternalItem] = field(default_factory=list)
    alignment_cost: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")
    customer_email: Optional[str] = None
    shipping_address: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True, slots=True)
class PaymentLinkResult:
    success: bool
    payment_link_url: Optional[str] = None
    order_id: Optional[str] = None
    error: Optional[str] = None


def whatsapp_phone(phone: str) -> str:
    """Customer phone in the chatbot's format: ``whatsapp:+521<digits>``."""

    return f"whatsapp:+521{re.sub(r'[^0-9]', '', phone)}"


def request_from_quote(
    quote: QuoteRequest,
    totals: QuoteTotals,
    *,
    customer_email: Optional[str] = None,
    shipping_address: Optional[str] = None,
) -> PaymentLinkRequest:
    """Build a payment request from a computed quote."""

    return PaymentLinkRequest(
        customer_name=quote.customer_name.strip(),
        customer_phone=whatsapp_phone(quote.customer_phone) if quote.customer_phone.strip() else "",
        items=[
            PaymentLinkItem(
                snapshot_id=line.item.snapshot_id,
                description=line.item.description or "",
                size=line.item.size or "",
                price_with_tax=line.unit_price,
                quantity=line.quantity,
            )
            for line in quote.catalog_lines
        ],
        external_items=[
            PaymentLinkExternalItem(
                item_id=line.line_id,
                description=line.description,
                price=line.price,
                quantity=line.quantity,
            )
            for line in quote.external_lines
        ],
        subtotal=totals.subtotal,
        shipping_cost=totals.shipping,
        alignment_cost=totals.alignment,
        discount=totals.discount,
        total=totals.total,
        customer_email=(customer_email or "").strip() or None,
        shipping_address=(shipping_address or "").strip() or None,
    )


def validate_payment_link(request: PaymentLinkRequest) -> Optional[str]:
    if not (request.customer_name or "").strip():
        return NAME_REQUIRED
    if not (request.customer_phone or "").strip():
        return PHONE_REQUIRED
    if not request.items and not request.external_items:
        return ITEMS_REQUIRED
    if request.total <= 0:
        return TOTAL_REQUIRED
    return None


def build_payload(request: PaymentLinkRequest, user: Optional[CurrentUser]) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "nombre_cliente": request.customer_name,
        "telefono_cliente": request.customer_phone,
        "items": [
            {
                "snapshot_id": item.snapshot_id,
                "descripcion": item.description,
                "medida": item.size,
                "precio_con_iva": float(item.price_with_tax),
                "cantidad": item.quantity,
            }
            for item in request.items
        ],
        "items_externos": [
            {
                "id": item.item_id,
                "descripcion": item.description,
                "precio": float(item.price),
                "cantidad": item.quantity,
            }
            for item in request.external_items
        ],
        "subtotal": float(request.subtotal),
        "costo_envio": float(request.shipping_cost),
        "costo_alineacion": float(request.alignment_cost),
        "descuento": float(request.discount),
        "total": float(request.total),
        "creado_por": creator_label(user),
    }
    if request.customer_email:
        payload["email_cliente"] = request.customer_email
    if request.shipping_address:
        payload["direccion_envio"] = request.shipping_address
    if request.notes:
        payload["notas"] = request.notes
    return payload


def create_payment_link(
    request: PaymentLinkRequest, *, user: Optional[CurrentUser] = None
) -> PaymentLinkResult:
    error = validate_payment_link(request)
    if error:
        return PaymentLinkResult(success=False, error=error)

    try:
        response = invoke_edge_function(CREATE_PAYMENT_LINK, build_payload(request, user))
    except Exception as exc:
        logger.error("Error creating payment link", extra={"error": str(exc)})
        return PaymentLinkResult(success=False, error=str(exc))

    body = response.body
    if not response.ok:
        logger.error(
            "Payment link edge function failed",
            extra={"status_code": response.status_code, "error": body.get("error")},
        )
        return PaymentLinkResult(success=False, error=str(body.get("error") or GENERIC_ERROR))

    logger.info("Payment link created", extra={"order_id": body.get("pedido_id")})
    return PaymentLinkResult(
        success=True,
        payment_link_url=body.get("payment_link_url"),
        order_id=body.get("pedido_id"),
    )


__all__ = [
    "ITEMS_REQUIRED",
    "NAME_REQUIRED",
    "PHONE_REQUIRED",
    "PaymentLinkExternalItem",
    "PaymentLinkItem",
    "PaymentLinkRequest",
    "PaymentLinkResult",
    "TOTAL_REQUIRED",
    "build_payload",
    "create_payment_link",
    "request_from_quote",
    "validate_payment_link",
    "whatsapp_phone",
]
