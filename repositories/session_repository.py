"""
Chat session repository (persistence).

Persistence operations for the `sesiones_chat` table and the conversation
RPC functions. No pipeline rules belong here.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from domain.session import AttendedBy, ChatSession, PipelineStage
from domain.time import parse_optional_utc_datetime, to_iso_utc
from repositories.client import get_supabase, run_query, run_rows

logger = logging.getLogger(__name__)

# Supabase table name for chat sessions.
_SESSIONS_TABLE: str = "sesiones_chat"

PHONE_SEARCH_LIMIT = 10


def _stage(value: Any, session_id: str) -> PipelineStage:
    try:
        return PipelineStage.parse(value)
    except ValueError:
        logger.warning(
            "Unknown pipeline stage, reading as explorando",
            extra={"session_id": session_id, "pipeline_stage": value},
        )
        return PipelineStage.EXPLORING


def row_to_session(row: Mapping[str, Any]) -> ChatSession:
    """Convert a Supabase row (or realtime record) into a ChatSession."""

    session_id = str(row["id"])
    attended = row.get("atendido_por")
    return ChatSession(
        session_id=session_id,
        phone=str(row.get("telefono") or ""),
        pipeline_stage=_stage(row.get("pipeline_stage"), session_id),
        customer_name=row.get("nombre_cliente") or None,
        customer_phone=row.get("telefono_cliente") or None,
        selected_size=row.get("medida_seleccionada") or None,
        cart=list(row.get("carrito") or []),
        last_message=row.get("ultimo_mensaje") or None,
        last_message_at=parse_optional_utc_datetime(row.get("ultimo_mensaje_at")),
        unread_count=int(row.get("mensajes_no_leidos") or 0),
        attended_by=AttendedBy(attended) if attended else AttendedBy.BOT,
        handoff_reason=row.get("motivo_handoff") or None,
        assigned_agent_id=row.get("vendedor_asignado_id") or None,
        assigned_at=parse_optional_utc_datetime(row.get("vendedor_asignado_at")),
        order_id=row.get("pedido_id") or None,
        created_at=parse_optional_utc_datetime(row.get("created_at")),
        updated_at=parse_optional_utc_datetime(row.get("updated_at")),
    )


def normalize_phone(phone: str) -> str:
    """Keep only digits and '+'."""

    return re.sub(r"[^\d+]", "", phone or "")


def list_sessions(*, created_since: Optional[datetime] = None) -> List[ChatSession]:
    """Sessions ordered by most recent message first."""

    query = get_supabase().table(_SESSIONS_TABLE).select("*")
    if created_since is not None:
        query = query.gte("created_at", to_iso_utc(created_since, name="created_since"))
    query = query.order("ultimo_mensaje_at", desc=True)
    return [row_to_session(row) for row in run_rows(query, "list sessions")]


def get_session(session_id: str) -> Optional[ChatSession]:
    query = get_supabase().table(_SESSIONS_TABLE).select("*").eq("id", session_id).limit(1)
    rows = run_rows(query, "fetch session")
    return row_to_session(rows[0]) if rows else None


def update_session(session_id: str, fields: Mapping[str, Any]) -> List[Mapping[str, Any]]:
    query = get_supabase().table(_SESSIONS_TABLE).update(dict(fields)).eq("id", session_id)
    return run_rows(query, "update session")


def update_sessions_by_phone(phone: str, fields: Mapping[str, Any]) -> List[Mapping[str, Any]]:
    query = get_supabase().table(_SESSIONS_TABLE).update(dict(fields)).eq("telefono", phone)
    return run_rows(query, "update session by phone")


def find_sessions_by_phone(phone: str, *, limit: int = PHONE_SEARCH_LIMIT) -> List[ChatSession]:
    """
    Sessions whose telefono or telefono_cliente contains the normalized phone,
    most recent message first. An empty phone matches nothing.
    """

    needle = normalize_phone(phone)
    if not needle:
        return []
    query = (
        get_supabase()
        .table(_SESSIONS_TABLE)
        .select("*")
        .or_(f"telefono.ilike.%{needle}%,telefono_cliente.ilike.%{needle}%")
        .order("ultimo_mensaje_at", desc=True)
        .limit(limit)
    )
    return [row_to_session(row) for row in run_rows(query, "search sessions by phone")]


def count_unread_sessions() -> int:
    query = get_supabase().table(_SESSIONS_TABLE).select("id").gt("mensajes_no_leidos", 0)
    return len(run_rows(query, "count unread sessions"))


def reset_unread_messages(session_id: str) -> None:
    run_query(
        get_supabase().rpc("reset_unread_messages", {"sesion_id_param": session_id}),
        "reset unread messages",
    )


def return_to_bot(session_id: str) -> None:
    run_query(
        get_supabase().rpc("return_to_bot", {"sesion_id_param": session_id}),
        "return session to bot",
    )


def conversations_requiring_attention(limit: int) -> List[Dict[str, Any]]:
    """Attention-ranked conversations as returned by the database function."""

    rows = run_rows(
        get_supabase().rpc("get_conversaciones_requieren_atencion", {"limite": limit}),
        "fetch conversations requiring attention",
    )
    return [dict(row) for row in rows]


__all__ = [
    "PHONE_SEARCH_LIMIT",
    "conversations_requiring_attention",
    "count_unread_sessions",
    "find_sessions_by_phone",
    "get_session",
    "list_sessions",
    "normalize_phone",
    "reset_unread_messages",
    "return_to_bot",
    "row_to_session",
    "update_session",
    "update_sessions_by_phone",
]
