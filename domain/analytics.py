"""
Domain: business analytics and dashboard metrics (pure).

Everything here is computed from already-fetched rows. Day boundaries are
UTC calendar days; weeks start on Sunday.

Rules implemented here:
- Revenue counts only paid orders (pagado, enviado, entregado), dated by
  fecha_pago. A missing payment method counts as online card.
- Conversion rate = sessions in pagado/entregado / all sessions, in percent.
- Funnel stages are cumulative: a session in link_enviado also counts as
  cotizado.
- Response time pairs each customer message with the immediately following
  message of the same session; only bot or staff replies are timed.
- Period comparison is 0 when the previous period had no sales.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .message import Message, MessageType
from .order import PAID_STATUSES, Order, PaymentMethod
from .session import CONVERTED_STAGES, ChatSession, PipelineStage

_ZERO = Decimal("0")

WEEKDAY_NAMES = ["Dom", "Lun", "Mar", "Mié", "Jue", "Vie", "Sáb"]

TOP_SIZES_LIMIT = 10

_QUOTED_OR_LATER = frozenset(
    {PipelineStage.QUOTED, PipelineStage.LINK_SENT, PipelineStage.PAID, PipelineStage.DELIVERED}
)
_LINK_OR_LATER = frozenset({PipelineStage.LINK_SENT, PipelineStage.PAID, PipelineStage.DELIVERED})


class AnalyticsRange(str, Enum):
    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    LAST_90_DAYS = "90d"
    ALL = "all"

    @property
    def label(self) -> str:
        return {
            AnalyticsRange.LAST_7_DAYS: "Últimos 7 días",
            AnalyticsRange.LAST_30_DAYS: "Últimos 30 días",
            AnalyticsRange.LAST_90_DAYS: "Últimos 90 días",
            AnalyticsRange.ALL: "Todo el tiempo",
        }[self]

    def start(self, now: datetime) -> Optional[datetime]:
        """Inclusive lower bound of the range, or None for all time."""

        if self == AnalyticsRange.ALL:
            return None
        return now - timedelta(days=int(self.value[:-1]))


@dataclass(frozen=True, slots=True)
class AnalyticsKpis:
    revenue: Decimal
    orders: int
    conversion_rate: float
    average_ticket: Decimal


@dataclass(frozen=True, slots=True)
class Funnel:
    conversations: int
    with_size: int
    quoted: int
    link_sent: int
    paid: int


@dataclass(frozen=True, slots=True)
class PaymentMethodStats:
    method: str
    count: int
    revenue: Decimal


@dataclass(frozen=True, slots=True)
class AttentionStats:
    sessions: int
    conversions: int
    response_minutes: float

    @property
    def conversion_rate(self) -> float:
        return self.conversions / self.sessions * 100 if self.sessions else 0.0


@dataclass(frozen=True, slots=True)
class AnalyticsSnapshot:
    kpis: AnalyticsKpis
    revenue_by_day: List[Tuple[str, Decimal]]
    funnel: Funnel
    top_sizes: List[Tuple[str, int]]
    payment_methods: List[PaymentMethodStats]
    bot: AttentionStats
    agent: AttentionStats
    activity_by_weekday: List[Tuple[str, int]]
    activity_by_hour: List[Tuple[int, int]]


def is_paid(order: Order) -> bool:
    return order.status in PAID_STATUSES


def _sum_totals(orders: Iterable[Order]) -> Decimal:
    return sum((o.total for o in orders), _ZERO)


def conversion_rate(sessions: Sequence[ChatSession]) -> float:
    if not sessions:
        return 0.0
    converted = sum(1 for s in sessions if s.pipeline_stage in CONVERTED_STAGES)
    return converted / len(sessions) * 100


def _weekday_sunday_first(day: datetime) -> int:
    # datetime.weekday(): Monday=0. Report order starts on Sunday.
    return (day.weekday() + 1) % 7


def mean_response_minutes(messages: Sequence[Message], responder: MessageType) -> float:
    """Mean minutes between a customer message and the next `responder` message."""

    by_session: Dict[str, List[Message]] = defaultdict(list)
    for message in sorted(messages, key=lambda m: m.created_at):
        by_session[message.session_id].append(message)

    gaps: List[float] = []
    for thread in by_session.values():
        for current, following in zip(thread, thread[1:]):
            if current.type == MessageType.CUSTOMER and following.type == responder:
                gaps.append((following.created_at - current.created_at).total_seconds() / 60)
    return sum(gaps) / len(gaps) if gaps else 0.0


def compute_analytics(
    orders: Sequence[Order],
    sessions: Sequence[ChatSession],
    messages: Sequence[Message],
) -> AnalyticsSnapshot:
    """Build the analytics report from rows already restricted to the range."""

    paid = [o for o in orders if is_paid(o)]
    revenue = _sum_totals(paid)
    average_ticket = revenue / len(paid) if paid else _ZERO

    revenue_map: Dict[str, Decimal] = defaultdict(lambda: _ZERO)
    for order in paid:
        if order.paid_at is not None:
            revenue_map[order.paid_at.date().isoformat()] += order.total
    revenue_by_day = sorted(revenue_map.items())

    funnel = Funnel(
        conversations=len(sessions),
        with_size=sum(1 for s in sessions if s.selected_size),
        quoted=sum(1 for s in sessions if s.pipeline_stage in _QUOTED_OR_LATER),
        link_sent=sum(1 for s in sessions if s.pipeline_stage in _LINK_OR_LATER),
        paid=sum(1 for s in sessions if s.pipeline_stage in CONVERTED_STAGES),
    )

    size_counts = Counter(s.selected_size for s in sessions if s.selected_size)
    top_sizes = size_counts.most_common(TOP_SIZES_LIMIT)

    method_counts: Dict[str, int] = {}
    method_revenue: Dict[str, Decimal] = {}
    for order in paid:
        method = (order.payment_method or PaymentMethod.ONLINE_CARD).value
        method_counts[method] = method_counts.get(method, 0) + 1
        method_revenue[method] = method_revenue.get(method, _ZERO) + order.total
    payment_methods = [
        PaymentMethodStats(method=m, count=method_counts[m], revenue=method_revenue[m])
        for m in method_counts
    ]

    bot_sessions = [s for s in sessions if not s.is_handoff]
    agent_sessions = [s for s in sessions if s.is_handoff]
    bot = AttentionStats(
        sessions=len(bot_sessions),
        conversions=sum(1 for s in bot_sessions if s.is_converted),
        response_minutes=mean_response_minutes(messages, MessageType.BOT),
    )
    agent = AttentionStats(
        sessions=len(agent_sessions),
        conversions=sum(1 for s in agent_sessions if s.is_converted),
        response_minutes=mean_response_minutes(messages, MessageType.AGENT),
    )

    customer_messages = [m for m in messages if m.type == MessageType.CUSTOMER]
    weekday_counts = Counter(_weekday_sunday_first(m.created_at) for m in customer_messages)
    hour_counts = Counter(m.created_at.hour for m in customer_messages)

    return AnalyticsSnapshot(
        kpis=AnalyticsKpis(
            revenue=revenue,
            orders=len(paid),
            conversion_rate=conversion_rate(sessions),
            average_ticket=average_ticket,
        ),
        revenue_by_day=revenue_by_day,
        funnel=funnel,
        top_sizes=top_sizes,
        payment_methods=payment_methods,
        bot=bot,
        agent=agent,
        activity_by_weekday=[(name, weekday_counts.get(i, 0)) for i, name in enumerate(WEEKDAY_NAMES)],
        activity_by_hour=[(hour, hour_counts.get(hour, 0)) for hour in range(24)],
    )


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PeriodWindows:
    today: datetime
    yesterday: datetime
    start_of_week: datetime
    start_of_last_week: datetime
    start_of_month: datetime
    start_of_last_month: datetime


def period_windows(now: datetime) -> PeriodWindows:
    today = datetime.combine(now.astimezone(timezone.utc).date(), time.min, tzinfo=timezone.utc)
    start_of_week = today - timedelta(days=_weekday_sunday_first(today))
    start_of_month = today.replace(day=1)
    last_month_day = start_of_month - timedelta(days=1)
    return PeriodWindows(
        today=today,
        yesterday=today - timedelta(days=1),
        start_of_week=start_of_week,
        start_of_last_week=start_of_week - timedelta(days=7),
        start_of_month=start_of_month,
        start_of_last_month=last_month_day.replace(day=1),
    )


def percent_change(current: Decimal, previous: Decimal) -> float:
    if previous <= 0:
        return 0.0
    return float((current - previous) / previous * 100)


def _paid_between(
    orders: Iterable[Order], start: datetime, end: Optional[datetime] = None
) -> List[Order]:
    result = []
    for order in orders:
        if not is_paid(order) or order.paid_at is None:
            continue
        if order.paid_at < start:
            continue
        if end is not None and order.paid_at >= end:
            continue
        result.append(order)
    return result


@dataclass(frozen=True, slots=True)
class SalesMetrics:
    today: Decimal
    today_change: float
    week: Decimal
    week_change: float
    month: Decimal
    month_change: float
    average_ticket: Decimal
    month_orders: int


def sales_metrics(orders: Sequence[Order], now: datetime) -> SalesMetrics:
    """Sales today/this week/this month, each compared with the previous period."""

    w = period_windows(now)
    today = _sum_totals(_paid_between(orders, w.today))
    yesterday = _sum_totals(_paid_between(orders, w.yesterday, w.today))
    week = _sum_totals(_paid_between(orders, w.start_of_week))
    last_week = _sum_totals(_paid_between(orders, w.start_of_last_week, w.start_of_week))
    month_orders = _paid_between(orders, w.start_of_month)
    month = _sum_totals(month_orders)
    last_month = _sum_totals(_paid_between(orders, w.start_of_last_month, w.start_of_month))

    return SalesMetrics(
        today=today,
        today_change=percent_change(today, yesterday),
        week=week,
        week_change=percent_change(week, last_week),
        month=month,
        month_change=percent_change(month, last_month),
        average_ticket=month / len(month_orders) if month_orders else _ZERO,
        month_orders=len(month_orders),
    )


def sales_last_days(orders: Sequence[Order], now: datetime, days: int = 7) -> List[Tuple[date, Decimal]]:
    """Paid sales per calendar day, oldest first, ending today."""

    today = period_windows(now).today
    series: List[Tuple[date, Decimal]] = []
    for offset in range(days - 1, -1, -1):
        start = today - timedelta(days=offset)
        total = _sum_totals(_paid_between(orders, start, start + timedelta(days=1)))
        series.append((start.date(), total))
    return series


@dataclass(frozen=True, slots=True)
class PendingActions:
    unread_sessions: int = 0
    orders_to_ship: int = 0
    pending_payment_links: int = 0


@dataclass(frozen=True, slots=True)
class DashboardSummary:
    pending: PendingActions
    sales: SalesMetrics
    last_days: List[Tuple[date, Decimal]]
    low_stock: List = field(default_factory=list)
    out_of_stock: List = field(default_factory=list)
    out_of_stock_total: int = 0
    attention: List[Dict] = field(default_factory=list)


__all__ = [
    "AnalyticsKpis",
    "AnalyticsRange",
    "AnalyticsSnapshot",
    "AttentionStats",
    "DashboardSummary",
    "Funnel",
    "PaymentMethodStats",
    "PendingActions",
    "PeriodWindows",
    "SalesMetrics",
    "TOP_SIZES_LIMIT",
    "WEEKDAY_NAMES",
    "compute_analytics",
    "conversion_rate",
    "is_paid",
    "mean_response_minutes",
    "percent_change",
    "period_windows",
    "sales_last_days",
    "sales_metrics",
]
