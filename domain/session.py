"""
Domain: Chat sessions (leads) and the sales pipeline.

Rules implemented here:
- A session's pipeline stage is one of explorando, cotizado, link_enviado,
  pagado, entregado, or the terminal perdido. A missing stage reads as
  explorando.
- Once an order exists, the stage mirrors the order status through a fixed
  mapping. There is no "shipped" stage: enviado maps to pagado.
- Stage sync never touches the assignment fields (atendido_por,
  vendedor_asignado_id, vendedor_asignado_at).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from .order import OrderStatus
from .time import require_utc_timestamp


class PipelineStage(str, Enum):
    EXPLORING = "explorando"
    QUOTED = "cotizado"
    LINK_SENT = "link_enviado"
    PAID = "pagado"
    DELIVERED = "entregado"
    LOST = "perdido"

    @property
    def label(self) -> str:
        return PIPELINE_STAGE_LABELS[self]

    @staticmethod
    def parse(value: Optional[str]) -> "PipelineStage":
        """Read a stored stage; NULL means the lead is still exploring."""

        if not value:
            return PipelineStage.EXPLORING
        return PipelineStage(value)


# Board column order.
PIPELINE_STAGES: List[PipelineStage] = [
    PipelineStage.EXPLORING,
    PipelineStage.QUOTED,
    PipelineStage.LINK_SENT,
    PipelineStage.PAID,
    PipelineStage.DELIVERED,
    PipelineStage.LOST,
]

PIPELINE_STAGE_LABELS: Dict[PipelineStage, str] = {
    PipelineStage.EXPLORING: "Explorando",
    PipelineStage.QUOTED: "Cotizado",
    PipelineStage.LINK_SENT: "Link Enviado",
    PipelineStage.PAID: "Pagado",
    PipelineStage.DELIVERED: "Entregado",
    PipelineStage.LOST: "Perdido",
}

ORDER_STATUS_TO_PIPELINE_STAGE: Dict[OrderStatus, PipelineStage] = {
    OrderStatus.PENDING_PAYMENT: PipelineStage.LINK_SENT,
    OrderStatus.PAID: PipelineStage.PAID,
    OrderStatus.SHIPPED: PipelineStage.PAID,
    OrderStatus.DELIVERED: PipelineStage.DELIVERED,
    OrderStatus.CANCELLED: PipelineStage.LOST,
}

# Stages that count as a converted lead.
CONVERTED_STAGES = frozenset({PipelineStage.PAID, PipelineStage.DELIVERED})

# Fields that only explicit take-over / return-to-bot actions may write.
ASSIGNMENT_FIELDS = frozenset({"atendido_por", "vendedor_asignado_id", "vendedor_asignado_at"})


def pipeline_stage_for_order_status(status: OrderStatus) -> PipelineStage:
    return ORDER_STATUS_TO_PIPELINE_STAGE[OrderStatus(status)]


class AttendedBy(str, Enum):
    BOT = "bot"
    AGENT = "vendedor"


@dataclass(frozen=True, slots=True)
class ChatSession:
    """
    A customer's chat interaction record, independent of whether it produced
    an order.
    """

    session_id: str
    phone: str
    pipeline_stage: PipelineStage = PipelineStage.EXPLORING
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    selected_size: Optional[str] = None
    cart: List[Dict[str, Any]] = field(default_factory=list)
    last_message: Optional[str] = None
    last_message_at: Optional[datetime] = None
    unread_count: int = 0
    attended_by: AttendedBy = AttendedBy.BOT
    handoff_reason: Optional[str] = None
    assigned_agent_id: Optional[str] = None
    assigned_at: Optional[datetime] = None
    order_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        for name in ("last_message_at", "assigned_at", "created_at", "updated_at"):
            value = getattr(self, name)
            if value is not None:
                require_utc_timestamp(name, value)

    @property
    def is_handoff(self) -> bool:
        return self.attended_by == AttendedBy.AGENT

    @property
    def is_converted(self) -> bool:
        return self.pipeline_stage in CONVERTED_STAGES

    @property
    def activity_at(self) -> Optional[datetime]:
        """Most recent activity: last message, else creation time."""

        return self.last_message_at or self.created_at

    def with_stage(self, stage: PipelineStage) -> "ChatSession":
        return replace(self, pipeline_stage=PipelineStage(stage))


class ConversationFilter(str, Enum):
    ALL = "todas"
    MINE = "mias"
    HANDOFF = "handoff"
    BOT = "bot"


def _matches_search(session: ChatSession, search: str) -> bool:
    if not search:
        return True
    needle = search.lower()
    return any(
        needle in (value or "").lower()
        for value in (session.phone, session.customer_name, session.last_message)
    )


def filter_conversations(
    sessions: Sequence[ChatSession],
    conversation_filter: ConversationFilter = ConversationFilter.ALL,
    *,
    search: str = "",
    current_user_id: Optional[str] = None,
) -> List[ChatSession]:
    """Apply the conversation-list tab and free-text search."""

    result: List[ChatSession] = []
    for session in sessions:
        if not _matches_search(session, search.strip()):
            continue
        if conversation_filter == ConversationFilter.MINE:
            if current_user_id is None or session.assigned_agent_id != current_user_id:
                continue
        elif conversation_filter == ConversationFilter.HANDOFF:
            if not session.is_handoff:
                continue
        elif conversation_filter == ConversationFilter.BOT:
            if session.is_handoff:
                continue
        result.append(session)
    return result


def _activity_ts(session: ChatSession) -> float:
    at = session.activity_at
    return at.timestamp() if at is not None else 0.0


def sort_conversations(sessions: Sequence[ChatSession]) -> List[ChatSession]:
    """Handoff first, then most unread, then most recent activity."""

    return sorted(
        sessions,
        key=lambda s: (
            0 if s.is_handoff else 1,
            -s.unread_count,
            -_activity_ts(s),
        ),
    )


def format_wait_time(minutes: int) -> str:
    """Compact waiting-time label: ``45m``, ``3h``, ``2d``."""

    if minutes < 60:
        return f"{minutes}m"
    if minutes < 1440:
        return f"{minutes // 60}h"
    return f"{minutes // 1440}d"


__all__ = [
    "ASSIGNMENT_FIELDS",
    "AttendedBy",
    "CONVERTED_STAGES",
    "ChatSession",
    "ConversationFilter",
    "ORDER_STATUS_TO_PIPELINE_STAGE",
    "PIPELINE_STAGES",
    "PIPELINE_STAGE_LABELS",
    "PipelineStage",
    "filter_conversations",
    "format_wait_time",
    "pipeline_stage_for_order_status",
    "sort_conversations",
]
