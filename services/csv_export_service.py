"""
CSV exports for orders, inventory and analytics.

All exports are UTF-8 with a leading BOM (so spreadsheet apps detect the
encoding), comma-delimited, with every field double-quoted.

Security:
- CSV Injection Prevention: free-text fields are sanitized so that a cell
  cannot start a spreadsheet formula
- Security Logging: logs when dangerous characters are stripped

The analytics report is sectioned (``=== KPIs ===`` etc.) and its KPI
section can be parsed back with `parse_analytics_kpis`.
"""

from __future__ import annotations

import csv
import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from io import StringIO
from typing import Dict, Iterable, List, Optional, Sequence

from domain.analytics import AnalyticsKpis, AnalyticsRange, AnalyticsSnapshot
from domain.business import format_money
from domain.inventory import InventoryItem
from domain.order import PAYMENT_METHOD_LABELS, Order, PaymentMethod

logger = logging.getLogger(__name__)

BOM = "\ufeff"

ORDER_HEADERS = [
    "ID",
    "Cliente",
    "Telefono",
    "Email",
    "Items",
    "Subtotal",
    "Envio",
    "Total",
    "Metodo Pago",
    "Estado",
    "Fecha",
]

INVENTORY_HEADERS = [
    "Descripcion",
    "Medida",
    "Marca",
    "Precio",
    "Precio con IVA",
    "Existencia",
]

KPI_SECTION = "=== KPIs ==="
KPI_REVENUE = "Ingresos Totales"
KPI_ORDERS = "Pedidos Completados"
KPI_CONVERSION = "Tasa de Conversión"
KPI_TICKET = "Ticket Promedio"

_CENTS = Decimal("0.01")


class CsvFormatError(ValueError):
    """Raised when an analytics report cannot be parsed back."""


def sanitize_csv_field(value: str | None, field_name: str = "unknown") -> str:
    """
    Sanitize field to prevent CSV injection attacks with security logging.

    Strips leading characters that can trigger formula execution in
    Excel/Sheets: =, +, -, @, tab, carriage return.

    Example:
        sanitize_csv_field("=1+1", "nombre_cliente")
        # Returns "1+1" and logs warning about stripped "=" character
    """
    if value is None or value == "":
        return ""

    text = str(value).strip()
    original_text = text
    dangerous_chars = {'=', '+', '-', '@', '\t', '\r'}

    stripped_chars = []
    while text and text[0] in dangerous_chars:
        stripped_chars.append(text[0])
        text = text[1:]

    if stripped_chars:
        logger.warning(
            f"CSV injection character(s) stripped from field '{field_name}'",
            extra={
                "field_name": field_name,
                "stripped_characters": "".join(stripped_chars),
                "original_value": original_text[:100],
                "sanitized_value": text[:100],
                "modification_type": "csv_injection_prevention"
            }
        )

    return text


def _write(rows: Iterable[Sequence[object]]) -> str:
    output = StringIO()
    output.write(BOM)
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for row in rows:
        writer.writerow(row)
    return output.getvalue()


def short_date_es(day: date) -> str:
    """``d/m/yyyy``, the Mexican short date."""

    return f"{day.day}/{day.month}/{day.year}"


def _plain_number(value: Decimal) -> str:
    return format(Decimal(value).quantize(_CENTS), "f")


def orders_to_csv(orders: Sequence[Order]) -> str:
    rows: List[List[object]] = [ORDER_HEADERS]
    for order in orders:
        method = order.payment_method or PaymentMethod.ONLINE_CARD
        rows.append([
            order.order_id,
            sanitize_csv_field(order.customer_name, "nombre_cliente"),
            sanitize_csv_field(order.contact_phone, "telefono"),
            sanitize_csv_field(order.customer_email, "email_cliente"),
            order.item_count,
            _plain_number(order.subtotal),
            _plain_number(order.shipping_cost),
            _plain_number(order.total),
            PAYMENT_METHOD_LABELS.get(method, PAYMENT_METHOD_LABELS[PaymentMethod.ONLINE_CARD]),
            order.status.label,
            short_date_es(order.created_at.date()) if order.created_at else "",
        ])
    return _write(rows)


def inventory_to_csv(items: Sequence[InventoryItem]) -> str:
    rows: List[List[object]] = [INVENTORY_HEADERS]
    for item in items:
        rows.append([
            sanitize_csv_field(item.description, "descripcion"),
            sanitize_csv_field(item.size, "medida"),
            item.brand.value,
            _plain_number(item.price),
            _plain_number(item.price_with_tax),
            item.stock,
        ])
    return _write(rows)


def _money(amount: Decimal) -> str:
    return f"${format_money(amount)}"


def _percent(value: float) -> str:
    return f"{value:.1f}%"


def rounded_kpis(kpis: AnalyticsKpis) -> AnalyticsKpis:
    """KPIs at the precision written to the report (cents, one-decimal percent)."""

    return AnalyticsKpis(
        revenue=Decimal(kpis.revenue).quantize(_CENTS),
        orders=kpis.orders,
        conversion_rate=round(kpis.conversion_rate, 1),
        average_ticket=Decimal(kpis.average_ticket).quantize(_CENTS),
    )


def analytics_to_csv(
    snapshot: AnalyticsSnapshot,
    date_range: AnalyticsRange,
    *,
    generated_on: date,
) -> str:
    """The sectioned analytics report."""

    rows: List[List[object]] = [
        [f"RELUVSA Analytics Report - {short_date_es(generated_on)}"],
        [f"Período: {AnalyticsRange(date_range).value}"],
        [],
        [KPI_SECTION],
        ["Métrica", "Valor"],
        [KPI_REVENUE, _money(snapshot.kpis.revenue)],
        [KPI_ORDERS, snapshot.kpis.orders],
        [KPI_CONVERSION, _percent(snapshot.kpis.conversion_rate)],
        [KPI_TICKET, _money(snapshot.kpis.average_ticket)],
        [],
        ["=== Ingresos por Día ==="],
        ["Fecha", "Ingresos"],
    ]
    rows.extend([day, _money(amount)] for day, amount in snapshot.revenue_by_day)
    rows.append([])

    funnel = snapshot.funnel
    base = funnel.conversations or 1
    rows.extend([
        ["=== Embudo de Conversión ==="],
        ["Etapa", "Cantidad", "Porcentaje"],
        ["Conversaciones", funnel.conversations, "100%"],
        ["Con medida", funnel.with_size, _percent(funnel.with_size / base * 100)],
        ["Cotizado", funnel.quoted, _percent(funnel.quoted / base * 100)],
        ["Link enviado", funnel.link_sent, _percent(funnel.link_sent / base * 100)],
        ["Pagado", funnel.paid, _percent(funnel.paid / base * 100)],
        [],
        ["=== Top Medidas Buscadas ==="],
        ["Medida", "Cantidad"],
    ])
    rows.extend([sanitize_csv_field(size, "medida"), count] for size, count in snapshot.top_sizes)
    rows.append([])

    rows.extend([["=== Métodos de Pago ==="], ["Método", "Cantidad", "Ingresos"]])
    for stats in snapshot.payment_methods:
        try:
            label = PaymentMethod(stats.method).label
        except ValueError:
            label = stats.method
        rows.append([label, stats.count, _money(stats.revenue)])
    rows.append([])

    rows.extend([
        ["=== Bot vs Vendedor ==="],
        ["Atención", "Sesiones", "Conversiones", "Tasa", "Tiempo Respuesta (min)"],
    ])
    for label, stats in (("Bot", snapshot.bot), ("Vendedor", snapshot.agent)):
        rows.append([
            label,
            stats.sessions,
            stats.conversions,
            _percent(stats.conversion_rate),
            f"{stats.response_minutes:.1f}",
        ])
    rows.append([])

    rows.extend([["=== Actividad por Día de la Semana ==="], ["Día", "Mensajes"]])
    rows.extend([name, count] for name, count in snapshot.activity_by_weekday)
    rows.append([])

    rows.extend([["=== Actividad por Hora ==="], ["Hora", "Mensajes"]])
    rows.extend([f"{hour}:00", count] for hour, count in snapshot.activity_by_hour)

    return _write(rows)


def analytics_filename(date_range: AnalyticsRange, generated_on: date) -> str:
    stamp = short_date_es(generated_on).replace("/", "-")
    return f"reluvsa-analytics-{AnalyticsRange(date_range).value}-{stamp}.csv"


def _parse_money(text: str) -> Decimal:
    try:
        return Decimal(text.replace("$", "").replace(",", "").strip())
    except InvalidOperation as exc:
        raise CsvFormatError(f"Invalid amount: {text!r}") from exc


def _parse_percent(text: str) -> float:
    try:
        return float(text.replace("%", "").strip())
    except ValueError as exc:
        raise CsvFormatError(f"Invalid percentage: {text!r}") from exc


def parse_analytics_kpis(content: str) -> AnalyticsKpis:
    """
    Read the KPI section of an analytics report.

    Raises:
        CsvFormatError: If the KPI section or one of its rows is missing
    """

    values: Dict[str, str] = {}
    in_section = False
    for row in csv.reader(StringIO(content.lstrip(BOM))):
        if not row:
            if in_section:
                break
            continue
        if row[0] == KPI_SECTION:
            in_section = True
            continue
        if in_section and len(row) >= 2:
            values[row[0]] = row[1]

    missing: Optional[str] = next(
        (name for name in (KPI_REVENUE, KPI_ORDERS, KPI_CONVERSION, KPI_TICKET) if name not in values),
        None,
    )
    if missing is not None:
        raise CsvFormatError(f"KPI row missing from report: {missing}")

    try:
        orders = int(values[KPI_ORDERS])
    except ValueError as exc:
        raise CsvFormatError(f"Invalid order count: {values[KPI_ORDERS]!r}") from exc

    return AnalyticsKpis(
        revenue=_parse_money(values[KPI_REVENUE]),
        orders=orders,
        conversion_rate=_parse_percent(values[KPI_CONVERSION]),
        average_ticket=_parse_money(values[KPI_TICKET]),
    )


__all__ = [
    "BOM",
    "CsvFormatError",
    "INVENTORY_HEADERS",
    "ORDER_HEADERS",
    "analytics_filename",
    "analytics_to_csv",
    "inventory_to_csv",
    "orders_to_csv",
    "parse_analytics_kpis",
    "rounded_kpis",
    "sanitize_csv_field",
    "short_date_es",
]
