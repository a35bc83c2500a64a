"""
Domain: Manual quote builder.

Pure arithmetic over explicit inputs:
- Catalog (tire) subtotal: unit price (override, else price incl. tax) x qty.
- External (ad-hoc) subtotal: price x qty. External lines never affect
  shipping.
- Shipping (only when enabled): 0 when the catalog subtotal alone reaches the
  free-shipping threshold, else ceil(total_tire_qty / 2) x per-pair rate.
- Discount: percentage (capped at 100, applied to the combined subtotal,
  rounded to whole pesos) or fixed (capped at the subtotal). Never negative.
- Total = catalog + external - discount + shipping + alignment fee.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import List, Optional

from .business import STORE, BusinessInfo
from .inventory import InventoryItem

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")

_MONTHS_ES = [
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
]


class DiscountType(str, Enum):
    NONE = "none"
    PERCENTAGE = "percentage"
    FIXED = "fixed"


@dataclass(frozen=True, slots=True)
class Discount:
    type: DiscountType = DiscountType.NONE
    value: Decimal = _ZERO

    @property
    def percentage_label(self) -> str:
        """Applied percentage as shown to the customer, capped at 100."""
        return f"{min(self.value, _HUNDRED).normalize():f}"

    def amount_for(self, subtotal: Decimal) -> Decimal:
        """Discount amount for `subtotal`; always within [0, subtotal]."""

        if self.type == DiscountType.NONE or self.value <= 0 or subtotal <= 0:
            return _ZERO
        if self.type == DiscountType.PERCENTAGE:
            percentage = min(self.value, _HUNDRED)
            amount = (subtotal * percentage / _HUNDRED).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
            return min(amount, subtotal)
        return min(self.value, subtotal)


@dataclass(frozen=True, slots=True)
class CatalogLine:
    item: InventoryItem
    quantity: int
    price_override: Optional[Decimal] = None

    def __post_init__(self) -> None:
        if self.quantity < 1:
            raise ValueError("quantity must be >= 1")

    @property
    def unit_price(self) -> Decimal:
        if self.price_override is not None:
            return self.price_override
        return self.item.price_with_tax

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True, slots=True)
class ExternalLine:
    line_id: str
    description: str
    price: Decimal
    quantity: int = 1

    def __post_init__(self) -> None:
        if not self.description.strip():
            raise ValueError("description is required")
        if self.price <= 0:
            raise ValueError("price must be > 0")
        if self.quantity < 1:
            raise ValueError("quantity must be >= 1")

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


@dataclass(frozen=True, slots=True)
class QuoteRequest:
    catalog_lines: List[CatalogLine] = field(default_factory=list)
    external_lines: List[ExternalLine] = field(default_factory=list)
    include_shipping: bool = False
    include_alignment: bool = False
    discount: Discount = Discount()
    customer_name: str = ""
    customer_phone: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.catalog_lines and not self.external_lines


@dataclass(frozen=True, slots=True)
class QuoteTotals:
    catalog_subtotal: Decimal
    external_subtotal: Decimal
    tire_count: int
    external_count: int
    shipping: Decimal
    alignment: Decimal
    discount: Decimal
    shipping_included: bool
    alignment_included: bool

    @property
    def subtotal(self) -> Decimal:
        return self.catalog_subtotal + self.external_subtotal

    @property
    def total(self) -> Decimal:
        return self.subtotal - self.discount + self.shipping + self.alignment

    @property
    def free_shipping(self) -> bool:
        return self.shipping_included and self.shipping == 0


def shipping_cost(
    tire_count: int,
    catalog_subtotal: Decimal,
    *,
    include_shipping: bool,
    business: BusinessInfo = STORE,
) -> Decimal:
    if not include_shipping:
        return _ZERO
    if catalog_subtotal >= business.free_shipping_threshold:
        return _ZERO
    pairs = math.ceil(tire_count / 2)
    return business.shipping_per_pair * pairs


def calculate_quote(request: QuoteRequest, business: BusinessInfo = STORE) -> QuoteTotals:
    catalog_subtotal = sum((line.line_total for line in request.catalog_lines), _ZERO)
    external_subtotal = sum((line.line_total for line in request.external_lines), _ZERO)
    tire_count = sum(line.quantity for line in request.catalog_lines)
    external_count = sum(line.quantity for line in request.external_lines)

    shipping = shipping_cost(
        tire_count,
        catalog_subtotal,
        include_shipping=request.include_shipping,
        business=business,
    )
    alignment = business.alignment_fee if request.include_alignment else _ZERO
    discount = request.discount.amount_for(catalog_subtotal + external_subtotal)

    return QuoteTotals(
        catalog_subtotal=catalog_subtotal,
        external_subtotal=external_subtotal,
        tire_count=tire_count,
        external_count=external_count,
        shipping=shipping,
        alignment=alignment,
        discount=discount,
        shipping_included=request.include_shipping,
        alignment_included=request.include_alignment,
    )


def split_tax(amount_with_tax: Decimal, business: BusinessInfo = STORE) -> tuple[Decimal, Decimal]:
    """Split a tax-inclusive amount into (net, tax), both rounded to cents."""

    net = (amount_with_tax / (1 + business.vat_rate)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return net, amount_with_tax - net


def money(amount: Decimal) -> str:
    """Peso amount as shown to customers: ``1,499`` or ``1,499.50``."""

    amount = Decimal(amount)
    if amount == amount.to_integral_value():
        return f"{amount.quantize(Decimal('1')):,}"
    return f"{amount.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP):,}"


def long_date_es(day: date) -> str:
    return f"{day.day} de {_MONTHS_ES[day.month - 1]} de {day.year}"


def render_quote_text(
    request: QuoteRequest,
    totals: QuoteTotals,
    *,
    today: date,
    business: BusinessInfo = STORE,
) -> str:
    """WhatsApp-formatted quote text; empty when the quote has no lines."""

    if request.is_empty:
        return ""

    lines: List[str] = [
        "*COTIZACIÓN RELUVSA*",
        f"📅 Fecha: {long_date_es(today)}",
    ]
    if request.customer_name:
        lines.append(f"👤 Cliente: {request.customer_name}")
    lines.extend(["", "*PRODUCTOS:*"])

    number = 1
    for line in request.catalog_lines:
        lines.extend([
            f"{number}. {line.item.description or ''}",
            f"   Medida: {line.item.size or ''}",
            f"   Cantidad: {line.quantity}",
            f"   Precio unitario: ${money(line.unit_price)} (IVA incluido)",
            f"   Subtotal: ${money(line.line_total)}",
            "",
        ])
        number += 1
    for ext in request.external_lines:
        lines.extend([
            f"{number}. {ext.description} _(Externo)_",
            f"   Cantidad: {ext.quantity}",
            f"   Precio unitario: ${money(ext.price)}",
            f"   Subtotal: ${money(ext.line_total)}",
            "",
        ])
        number += 1

    lines.append("*RESUMEN:*")
    lines.append(f"Subtotal productos: ${money(totals.subtotal)}")
    if totals.discount > 0:
        if request.discount.type == DiscountType.PERCENTAGE:
            lines.append(f"Descuento ({request.discount.percentage_label}%): -${money(totals.discount)}")
        else:
            lines.append(f"Descuento: -${money(totals.discount)}")
    if totals.shipping_included:
        if totals.free_shipping:
            lines.append(f"Envío: GRATIS (compra mayor a ${money(business.free_shipping_threshold)})")
        else:
            lines.append(f"Envío: ${money(totals.shipping)}")
    if totals.alignment_included:
        lines.append(f"Alineación: ${money(totals.alignment)}")

    lines.extend([
        "",
        f"*TOTAL: ${money(totals.total)} MXN*",
        "",
        "_Precios incluyen IVA_",
        f"_Cotización válida por {business.quote_validity_days} días_",
        "",
        f"📍 {business.address}",
        f"📞 {business.phone}",
    ])
    return "\n".join(lines) + "\n"


__all__ = [
    "CatalogLine",
    "Discount",
    "DiscountType",
    "ExternalLine",
    "QuoteRequest",
    "QuoteTotals",
    "calculate_quote",
    "long_date_es",
    "money",
    "render_quote_text",
    "shipping_cost",
    "split_tax",
]
