"""
Message repository (persistence).

Read-only access to the `mensajes` table.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Mapping, Optional

from domain.message import Message, MessageType
from domain.time import parse_utc_datetime, to_iso_utc
from repositories.client import get_supabase, run_rows

_MESSAGES_TABLE: str = "mensajes"


def _row_to_message(row: Mapping[str, Any]) -> Message:
    return Message(
        message_id=str(row.get("id") or ""),
        session_id=str(row["sesion_id"]),
        type=MessageType(row["tipo"]),
        created_at=parse_utc_datetime(row["created_at"]),
        content=str(row.get("contenido") or ""),
        phone=row.get("telefono"),
        read=bool(row.get("leido")),
    )


def list_messages(*, since: Optional[datetime] = None) -> List[Message]:
    """Messages in chronological order, optionally from `since` on."""

    query = get_supabase().table(_MESSAGES_TABLE).select("*")
    if since is not None:
        query = query.gte("created_at", to_iso_utc(since, name="since"))
    query = query.order("created_at")
    return [_row_to_message(row) for row in run_rows(query, "list messages")]


def list_session_messages(session_id: str) -> List[Message]:
    query = (
        get_supabase()
        .table(_MESSAGES_TABLE)
        .select("*")
        .eq("sesion_id", session_id)
        .order("created_at")
    )
    return [_row_to_message(row) for row in run_rows(query, "list session messages")]


__all__ = ["list_messages", "list_session_messages"]
