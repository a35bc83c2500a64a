"""
Quote PDF document (PyMuPDF).

Layout: yellow header banner with the title and date, customer block,
product table (prices shown before VAT, continued on new pages as needed),
totals box (subtotal before VAT, VAT, discount, shipping, alignment, total),
notes and a footer banner with the store's contact details.
"""

from __future__ import annotations

import re
from datetime import date
from decimal import Decimal
from typing import List, Sequence, Tuple

import fitz  # PyMuPDF

from domain.business import STORE, BusinessInfo, format_money
from domain.quote import DiscountType, QuoteRequest, QuoteTotals, long_date_es, split_tax

PAGE_WIDTH, PAGE_HEIGHT = fitz.paper_size("letter")
MARGIN = 56.0
FOOTER_HEIGHT = 85.0
ROW_HEIGHT = 18.0

YELLOW = (1.0, 0.93, 0.0)
RED = (0.89, 0.1, 0.22)
BLACK = (0.0, 0.0, 0.0)
GRAY = (0.39, 0.39, 0.39)
GREEN = (0.13, 0.55, 0.13)
WHITE = (1.0, 1.0, 1.0)
LIGHT_YELLOW = (1.0, 0.99, 0.86)

REGULAR = "helv"
BOLD = "hebo"
ITALIC = "heit"

# (title, x offset from the left margin, right-aligned)
_COLUMNS: List[Tuple[str, float, bool]] = [
    ("#", 0.0, False),
    ("Descripcion", 24.0, False),
    ("Medida", 290.0, False),
    ("Cant.", 360.0, False),
    ("Precio Unit.", 470.0, True),
    ("Subtotal", 500.0, True),
]


def _money(amount: Decimal) -> str:
    return f"${format_money(amount)}"


def _right(page: fitz.Page, x_right: float, y: float, text: str, *, font: str = REGULAR,
           size: float = 10, color=BLACK) -> None:
    width = fitz.get_text_length(text, fontname=font, fontsize=size)
    page.insert_text((x_right - width, y), text, fontname=font, fontsize=size, color=color)


def _text(page: fitz.Page, x: float, y: float, text: str, *, font: str = REGULAR,
          size: float = 10, color=BLACK) -> None:
    page.insert_text((x, y), text, fontname=font, fontsize=size, color=color)


def _truncate(text: str, width: float, *, font: str = REGULAR, size: float = 9) -> str:
    if fitz.get_text_length(text, fontname=font, fontsize=size) <= width:
        return text
    while text and fitz.get_text_length(text + "...", fontname=font, fontsize=size) > width:
        text = text[:-1]
    return text + "..."


def quote_rows(request: QuoteRequest, business: BusinessInfo = STORE) -> List[List[str]]:
    """Product table rows with prices before VAT."""

    rows: List[List[str]] = []
    number = 1
    for line in request.catalog_lines:
        net_unit, _ = split_tax(line.unit_price, business)
        rows.append([
            str(number),
            line.item.description or "",
            line.item.size or "",
            str(line.quantity),
            _money(net_unit),
            _money(net_unit * line.quantity),
        ])
        number += 1
    for ext in request.external_lines:
        net_unit, _ = split_tax(ext.price, business)
        rows.append([
            str(number),
            f"{ext.description} (Externo)",
            "-",
            str(ext.quantity),
            _money(net_unit),
            _money(net_unit * ext.quantity),
        ])
        number += 1
    return rows


def quote_filename(customer_name: str, today: date) -> str:
    name = re.sub(r"\s+", "_", customer_name.strip())
    if name:
        return f"Cotizacion_RELUVSA_{name}_{today.isoformat()}.pdf"
    return f"Cotizacion_RELUVSA_{today.isoformat()}.pdf"


def _header(page: fitz.Page, today: date) -> None:
    page.draw_rect(fitz.Rect(0, 0, PAGE_WIDTH, 100), color=None, fill=YELLOW)
    _text(page, MARGIN, 55, "RELUVSA", font=BOLD, size=24)
    _text(page, MARGIN, 72, "AUTOPARTES", font=BOLD, size=10, color=RED)
    _right(page, PAGE_WIDTH - MARGIN, 50, "COTIZACION", font=BOLD, size=22)
    _right(page, PAGE_WIDTH - MARGIN, 72, long_date_es(today))


def _footer(page: fitz.Page, business: BusinessInfo) -> None:
    top = PAGE_HEIGHT - FOOTER_HEIGHT
    page.draw_rect(fitz.Rect(0, top, PAGE_WIDTH, PAGE_HEIGHT), color=None, fill=YELLOW)
    page.draw_line((0, top), (PAGE_WIDTH, top), color=RED, width=2)
    _text(page, MARGIN, top + 25, business.name, font=BOLD)
    _text(page, MARGIN, top + 42, business.address, size=9)
    _text(page, MARGIN, top + 58, f"Tel: {business.phone}", size=9)
    _right(page, PAGE_WIDTH - MARGIN, top + 42, "AUTOPARTES", font=BOLD, color=RED)


def _section_title(page: fitz.Page, y: float, title: str) -> None:
    _text(page, MARGIN, y, title, font=BOLD, size=12, color=RED)
    width = fitz.get_text_length(title, fontname=BOLD, fontsize=12)
    page.draw_line((MARGIN, y + 4), (MARGIN + width, y + 4), color=RED, width=0.5)


def _table_header(page: fitz.Page, y: float) -> float:
    page.draw_rect(fitz.Rect(MARGIN, y, PAGE_WIDTH - MARGIN, y + ROW_HEIGHT), color=None, fill=RED)
    for title, offset, right in _COLUMNS:
        if right:
            _right(page, MARGIN + offset, y + 13, title, font=BOLD, size=9, color=WHITE)
        else:
            _text(page, MARGIN + offset + 4, y + 13, title, font=BOLD, size=9, color=WHITE)
    return y + ROW_HEIGHT


def _table_row(page: fitz.Page, y: float, row: Sequence[str], shaded: bool) -> float:
    if shaded:
        page.draw_rect(
            fitz.Rect(MARGIN, y, PAGE_WIDTH - MARGIN, y + ROW_HEIGHT), color=None, fill=LIGHT_YELLOW
        )
    for (title, offset, right), value in zip(_COLUMNS, row):
        if right:
            _right(page, MARGIN + offset, y + 13, value, size=9)
        elif title == "Descripcion":
            _text(page, MARGIN + offset + 4, y + 13, _truncate(value, 255), size=9)
        else:
            _text(page, MARGIN + offset + 4, y + 13, value, size=9)
    return y + ROW_HEIGHT


def render_quote_pdf(
    request: QuoteRequest,
    totals: QuoteTotals,
    *,
    today: date,
    business: BusinessInfo = STORE,
) -> bytes:
    """Render the quote document and return the PDF bytes."""

    doc = fitz.open()
    bottom = PAGE_HEIGHT - FOOTER_HEIGHT - 20

    page = doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
    _header(page, today)
    _footer(page, business)

    y = 135.0
    _section_title(page, y, "DATOS DEL CLIENTE")
    y += 22
    if request.customer_name:
        _text(page, MARGIN, y, f"Cliente: {request.customer_name}")
        y += 15
    if request.customer_phone:
        _text(page, MARGIN, y, f"Telefono: {request.customer_phone}")
        y += 15
    if not request.customer_name and not request.customer_phone:
        _text(page, MARGIN, y, "Cliente general", color=GRAY)
        y += 15

    y += 15
    _section_title(page, y, "PRODUCTOS")
    y = _table_header(page, y + 12)
    for index, row in enumerate(quote_rows(request, business)):
        if y + ROW_HEIGHT > bottom:
            page = doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
            _footer(page, business)
            y = _table_header(page, MARGIN)
        y = _table_row(page, y, row, shaded=index % 2 == 1)

    # Totals box: subtotal, VAT, optional lines, total.
    lines: List[Tuple[str, str, tuple]] = []
    net_subtotal, vat = split_tax(totals.subtotal, business)
    label = f"Subtotal ({totals.tire_count} llanta{'' if totals.tire_count == 1 else 's'}"
    if totals.external_count:
        label += f" + {totals.external_count} ext."
    lines.append((label + "):", _money(net_subtotal), BLACK))
    lines.append((f"IVA ({int(business.vat_rate * 100)}%):", _money(vat), BLACK))
    if totals.discount > 0:
        if request.discount.type == DiscountType.PERCENTAGE:
            discount_label = f"Descuento ({request.discount.percentage_label}%):"
        else:
            discount_label = "Descuento:"
        lines.append((discount_label, f"-{_money(totals.discount)}", GREEN))
    if totals.shipping_included:
        if totals.free_shipping:
            lines.append(("Envio:", "GRATIS", GREEN))
        else:
            lines.append(("Envio:", _money(totals.shipping), BLACK))
    if totals.alignment_included:
        lines.append(("Alineacion:", _money(totals.alignment), BLACK))

    box_height = 24.0 * len(lines) + 50
    if y + 25 + box_height + 60 > bottom:
        page = doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
        _footer(page, business)
        y = MARGIN

    left = PAGE_WIDTH - MARGIN - 230
    right = PAGE_WIDTH - MARGIN - 10
    top = y + 25
    page.draw_rect(
        fitz.Rect(left - 12, top, PAGE_WIDTH - MARGIN, top + box_height),
        color=YELLOW,
        fill=(0.97, 0.98, 0.98),
        width=2,
    )
    line_y = top + 20
    for text, amount, color in lines:
        _text(page, left, line_y, text, color=color)
        _right(page, right, line_y, amount, color=color)
        line_y += 24
    page.draw_line((left, line_y - 10), (right, line_y - 10), color=RED, width=0.5)
    _text(page, left, line_y + 10, "TOTAL:", font=BOLD, size=13, color=RED)
    _right(page, right, line_y + 10, f"{_money(totals.total)} MXN", font=BOLD, size=13, color=RED)

    notes_y = top + box_height + 30
    _text(page, MARGIN, notes_y, "* Precios antes de IVA", font=ITALIC, size=9, color=GRAY)
    _text(
        page,
        MARGIN,
        notes_y + 13,
        f"* Cotizacion valida por {business.quote_validity_days} dias",
        font=ITALIC,
        size=9,
        color=GRAY,
    )
    if totals.free_shipping:
        _text(
            page,
            MARGIN,
            notes_y + 26,
            f"* Envio gratis por compra mayor a {_money(business.free_shipping_threshold)}",
            font=ITALIC,
            size=9,
            color=GRAY,
        )

    data = doc.tobytes()
    doc.close()
    return data


__all__ = ["quote_filename", "quote_rows", "render_quote_pdf"]
