"""
Tests for `domain/analytics.py` and `services/analytics_service.py`.

Covers contract rules:
- Revenue counts paid orders only, bucketed by the UTC day of fecha_pago.
- The funnel is cumulative.
- Response time pairs a customer message with the next reply in the same
  session.
- Period comparisons are 0 when the previous period had no sales.
- The KPI section of the CSV report reads back to the rounded KPIs.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

import pytest

from domain.analytics import (
    AnalyticsRange,
    compute_analytics,
    percent_change,
    period_windows,
    sales_last_days,
    sales_metrics,
)
from domain.message import Message, MessageType
from domain.order import Order, OrderStatus, PaymentMethod
from domain.session import AttendedBy, ChatSession, PipelineStage
from services.analytics_service import analytics_snapshot, dashboard_summary
from services.csv_export_service import (
    BOM,
    CsvFormatError,
    analytics_filename,
    analytics_to_csv,
    parse_analytics_kpis,
    rounded_kpis,
)
from tests.fakes import order_row, session_row


def _utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def _order(
    order_id: str,
    total: str,
    status: OrderStatus = OrderStatus.PAID,
    paid_at: Optional[datetime] = None,
    method: PaymentMethod = PaymentMethod.ONLINE_CARD,
) -> Order:
    amount = Decimal(total)
    return Order(
        order_id=order_id,
        phone="5512345678",
        customer_name="Cliente",
        items=[],
        subtotal=amount,
        shipping_cost=Decimal("0"),
        total=amount,
        status=status,
        payment_method=method,
        paid_at=paid_at,
    )


def _session(
    session_id: str,
    stage: PipelineStage,
    size: Optional[str] = None,
    attended_by: AttendedBy = AttendedBy.BOT,
) -> ChatSession:
    return ChatSession(
        session_id=session_id,
        phone="5512345678",
        pipeline_stage=stage,
        selected_size=size,
        attended_by=attended_by,
    )


def _message(session_id: str, kind: MessageType, minute: int, hour: int = 10) -> Message:
    return Message(
        message_id=f"{session_id}-{hour}-{minute}",
        session_id=session_id,
        type=kind,
        created_at=_utc(2025, 3, 2, hour, minute),  # a Sunday
    )


@pytest.fixture
def snapshot():
    orders = [
        _order("o1", "1000", OrderStatus.PAID, _utc(2025, 3, 3, 12)),
        _order("o2", "2000", OrderStatus.DELIVERED, _utc(2025, 3, 3, 20), PaymentMethod.IN_STORE_CASH),
        _order("o3", "500", OrderStatus.PENDING_PAYMENT),
        _order("o4", "700", OrderStatus.CANCELLED),
    ]
    sessions = [
        _session("s1", PipelineStage.EXPLORING, "205/55R16"),
        _session("s2", PipelineStage.QUOTED, "205/55R16"),
        _session("s3", PipelineStage.LINK_SENT, "185/65R15"),
        _session("s4", PipelineStage.PAID, attended_by=AttendedBy.AGENT),
        _session("s5", PipelineStage.DELIVERED),
        _session("s6", PipelineStage.LOST),
    ]
    messages = [
        _message("s1", MessageType.CUSTOMER, 0),
        _message("s1", MessageType.BOT, 2),
        _message("s1", MessageType.CUSTOMER, 10),
        _message("s1", MessageType.AGENT, 20),
        _message("s2", MessageType.CUSTOMER, 0, hour=11),
        _message("s2", MessageType.CUSTOMER, 5, hour=11),
        _message("s2", MessageType.BOT, 6, hour=11),
    ]
    return compute_analytics(orders, sessions, messages)


def test_kpis_count_paid_orders_only(snapshot) -> None:
    assert snapshot.kpis.revenue == Decimal("3000")
    assert snapshot.kpis.orders == 2
    assert snapshot.kpis.average_ticket == Decimal("1500")
    assert snapshot.kpis.conversion_rate == pytest.approx(100 / 3)
    assert snapshot.revenue_by_day == [("2025-03-03", Decimal("3000"))]


def test_funnel_is_cumulative(snapshot) -> None:
    funnel = snapshot.funnel
    assert (funnel.conversations, funnel.with_size, funnel.quoted, funnel.link_sent, funnel.paid) == (
        6,
        3,
        4,
        3,
        2,
    )
    assert funnel.conversations >= funnel.quoted >= funnel.link_sent >= funnel.paid


def test_top_sizes_and_payment_methods(snapshot) -> None:
    assert snapshot.top_sizes == [("205/55R16", 2), ("185/65R15", 1)]
    methods = {m.method: (m.count, m.revenue) for m in snapshot.payment_methods}
    assert methods == {
        "stripe": (1, Decimal("1000")),
        "efectivo_sucursal": (1, Decimal("2000")),
    }


def test_bot_versus_agent(snapshot) -> None:
    assert (snapshot.bot.sessions, snapshot.bot.conversions) == (5, 1)
    assert (snapshot.agent.sessions, snapshot.agent.conversions) == (1, 1)
    assert snapshot.agent.conversion_rate == 100.0
    assert snapshot.bot.response_minutes == pytest.approx(1.5)
    assert snapshot.agent.response_minutes == pytest.approx(10.0)


def test_activity_counts_customer_messages(snapshot) -> None:
    assert snapshot.activity_by_weekday[0] == ("Dom", 4)
    assert sum(count for _, count in snapshot.activity_by_weekday) == 4
    hours = dict(snapshot.activity_by_hour)
    assert hours[10] == 2 and hours[11] == 2
    assert len(snapshot.activity_by_hour) == 24


def test_empty_inputs_give_zeroes() -> None:
    empty = compute_analytics([], [], [])
    assert empty.kpis.revenue == 0
    assert empty.kpis.conversion_rate == 0.0
    assert empty.bot.conversion_rate == 0.0
    assert empty.revenue_by_day == []


def test_period_windows_start_weeks_on_sunday() -> None:
    w = period_windows(_utc(2025, 3, 12, 15))  # Wednesday
    assert w.today == _utc(2025, 3, 12)
    assert w.yesterday == _utc(2025, 3, 11)
    assert w.start_of_week == _utc(2025, 3, 9)
    assert w.start_of_last_week == _utc(2025, 3, 2)
    assert w.start_of_month == _utc(2025, 3, 1)
    assert w.start_of_last_month == _utc(2025, 2, 1)


def test_sales_metrics_compare_with_previous_periods() -> None:
    orders = [
        _order("today", "500", paid_at=_utc(2025, 3, 12, 10)),
        _order("yesterday", "250", paid_at=_utc(2025, 3, 11, 10)),
        _order("this-week", "1000", OrderStatus.SHIPPED, _utc(2025, 3, 10, 10)),
        _order("last-week", "2000", OrderStatus.DELIVERED, _utc(2025, 3, 5, 10)),
        _order("last-month", "4000", paid_at=_utc(2025, 2, 15, 10)),
        _order("unpaid", "9999", OrderStatus.CANCELLED, _utc(2025, 3, 12, 9)),
    ]

    metrics = sales_metrics(orders, _utc(2025, 3, 12, 15))

    assert metrics.today == Decimal("500")
    assert metrics.today_change == pytest.approx(100.0)
    assert metrics.week == Decimal("1750")
    assert metrics.week_change == pytest.approx(-12.5)
    assert metrics.month == Decimal("3750")
    assert metrics.month_change == pytest.approx(-6.25)
    assert metrics.month_orders == 4
    assert metrics.average_ticket == Decimal("937.5")

    assert sales_last_days(orders, _utc(2025, 3, 12, 15), days=3) == [
        (date(2025, 3, 10), Decimal("1000")),
        (date(2025, 3, 11), Decimal("250")),
        (date(2025, 3, 12), Decimal("500")),
    ]


def test_percent_change_without_previous_sales() -> None:
    assert percent_change(Decimal("100"), Decimal("0")) == 0.0


def test_range_start() -> None:
    now = _utc(2025, 3, 31)
    assert AnalyticsRange.LAST_30_DAYS.start(now) == _utc(2025, 3, 1)
    assert AnalyticsRange.ALL.start(now) is None


# -- CSV report ------------------------------------------------------------


def test_kpi_section_reads_back(snapshot) -> None:
    content = analytics_to_csv(snapshot, AnalyticsRange.LAST_30_DAYS, generated_on=date(2025, 3, 12))
    assert parse_analytics_kpis(content) == rounded_kpis(snapshot.kpis)


def test_kpi_section_reads_back_with_odd_amounts() -> None:
    odd = compute_analytics(
        [
            _order("a", "1234.567", paid_at=_utc(2025, 3, 1)),
            _order("b", "0.01", paid_at=_utc(2025, 3, 2)),
            _order("c", "99999.99", paid_at=_utc(2025, 3, 2)),
        ],
        [_session("x", PipelineStage.PAID), _session("y", PipelineStage.LOST), _session("z", PipelineStage.LOST)],
        [],
    )
    content = analytics_to_csv(odd, AnalyticsRange.ALL, generated_on=date(2025, 3, 12))

    kpis = parse_analytics_kpis(content)

    assert kpis == rounded_kpis(odd.kpis)
    assert kpis.conversion_rate == 33.3


def test_report_layout(snapshot) -> None:
    content = analytics_to_csv(snapshot, AnalyticsRange.LAST_7_DAYS, generated_on=date(2025, 3, 12))
    assert content.startswith(BOM)
    assert '"RELUVSA Analytics Report - 12/3/2025"' in content
    assert '"Ingresos Totales","$3,000.00"' in content
    assert '"=== Embudo de Conversión ==="' in content
    assert '"Efectivo (Sucursal)","1","$2,000.00"' in content
    assert analytics_filename(AnalyticsRange.LAST_7_DAYS, date(2025, 3, 12)) == "reluvsa-analytics-7d-12-3-2025.csv"


def test_missing_kpi_section_is_an_error() -> None:
    with pytest.raises(CsvFormatError):
        parse_analytics_kpis('"Fecha","Ingresos"\n')


# -- service ---------------------------------------------------------------


def test_analytics_snapshot_reads_from_repositories(fake_db) -> None:
    fake_db.tables["pedidos"] = [
        order_row("o1", estado="pagado", total=1000, subtotal=1000, fecha_pago="2025-03-10T10:00:00+00:00"),
        order_row("o2", estado="pendiente_pago"),
    ]
    fake_db.tables["sesiones_chat"] = [
        session_row("s1", pipeline_stage="pagado", created_at="2025-03-09T10:00:00+00:00"),
        session_row("s2", created_at="2025-03-09T11:00:00+00:00"),
    ]
    fake_db.tables["mensajes"] = []

    snapshot = analytics_snapshot(AnalyticsRange.LAST_7_DAYS, now=_utc(2025, 3, 12))

    assert snapshot.kpis.orders == 1
    assert snapshot.kpis.revenue == Decimal("1000")
    assert snapshot.kpis.conversion_rate == 50.0


def test_analytics_snapshot_degrades_on_fetch_errors(fake_db) -> None:
    fake_db.failing_tables.update({"pedidos", "sesiones_chat", "mensajes"})
    snapshot = analytics_snapshot(AnalyticsRange.ALL, now=_utc(2025, 3, 12))
    assert snapshot.kpis.orders == 0
    assert snapshot.funnel.conversations == 0


def test_dashboard_summary_pending_actions(fake_db) -> None:
    fake_db.tables["pedidos"] = [
        order_row("o1", estado="pagado", fecha_pago="2025-03-12T09:00:00+00:00"),
        order_row("o2", estado="pendiente_pago"),
        order_row("o3", estado="pendiente_pago"),
    ]
    fake_db.tables["sesiones_chat"] = [session_row("s1", mensajes_no_leidos=2), session_row("s2")]
    fake_db.tables["inventario"] = []
    fake_db.rpc_results["get_conversaciones_requieren_atencion"] = []

    summary = dashboard_summary(now=_utc(2025, 3, 12, 15))

    assert summary.pending.orders_to_ship == 1
    assert summary.pending.pending_payment_links == 2
    assert summary.pending.unread_sessions == 1
    assert summary.sales.today == Decimal("2998")
    assert len(summary.last_days) == 7
    assert summary.attention == []
