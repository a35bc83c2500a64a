"""
Domain: business constants for the store.

Shipping, alignment and tax figures used by the quote builder and by the
quote documents. Amounts are in MXN.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True, slots=True)
class BusinessInfo:
    name: str
    address: str
    phone: str
    maps_url: str
    alignment_fee: Decimal
    free_shipping_threshold: Decimal
    shipping_per_pair: Decimal
    vat_rate: Decimal
    quote_validity_days: int = 7


STORE = BusinessInfo(
    name="RELUVSA Berriozábal",
    address="Calle F. Berriozábal 1982, Comercial Dos Mil, 87058 Ciudad Victoria, Tamps.",
    phone="+52 834 270 9767",
    maps_url="https://share.google/MWTkvQe16I0veKV1p",
    alignment_fee=Decimal("250"),
    free_shipping_threshold=Decimal("2499"),
    shipping_per_pair=Decimal("299"),
    vat_rate=Decimal("0.16"),
)


def format_money(amount: Decimal, *, decimals: int = 2) -> str:
    """Format an amount with thousands separators, e.g. ``1,499.00``."""

    quantum = Decimal(1).scaleb(-decimals) if decimals else Decimal(1)
    return f"{Decimal(amount).quantize(quantum):,}"


__all__ = ["BusinessInfo", "STORE", "format_money"]
