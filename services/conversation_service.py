"""
Conversations inbox: listing, take-over, return to bot, replies.

Take-over and return-to-bot are the only actions that write the assignment
fields (atendido_por, vendedor_asignado_id, vendedor_asignado_at).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from domain.message import Message
from domain.order import ActionResult
from domain.session import (
    AttendedBy,
    ChatSession,
    ConversationFilter,
    filter_conversations,
    format_wait_time,
    sort_conversations,
)
from domain.time import to_iso_utc, utc_now
from repositories import message_repository, profile_repository, session_repository
from repositories.edge_functions import VENDOR_REPLY, invoke_edge_function
from services.app_state import AppState, View
from services.auth_service import CurrentUser

logger = logging.getLogger(__name__)

ATTENTION_LIMIT = 5

LOGIN_REQUIRED = "Debes iniciar sesión"
EMPTY_MESSAGE = "El mensaje no puede estar vacío"
SEND_ERROR = "Error al enviar mensaje"


@dataclass(frozen=True, slots=True)
class AttentionItem:
    """A row of the attention-ranked list, as returned by the database function."""

    session_id: str
    phone: str
    customer_name: Optional[str]
    pipeline_stage: Optional[str]
    last_message: Optional[str]
    unread_count: int
    handoff_reason: Optional[str]
    attended_by: Optional[str]
    wait_minutes: int
    priority: int

    @property
    def wait_label(self) -> str:
        return format_wait_time(self.wait_minutes)


def _attention_item(row: Mapping[str, Any]) -> AttentionItem:
    return AttentionItem(
        session_id=str(row["id"]),
        phone=str(row.get("telefono") or ""),
        customer_name=row.get("nombre_cliente"),
        pipeline_stage=row.get("pipeline_stage"),
        last_message=row.get("ultimo_mensaje"),
        unread_count=int(row.get("mensajes_no_leidos") or 0),
        handoff_reason=row.get("motivo_handoff"),
        attended_by=row.get("atendido_por"),
        wait_minutes=int(row.get("tiempo_espera_minutos") or 0),
        priority=int(row.get("prioridad") or 0),
    )


def load_sessions(state: AppState, *, force: bool = False) -> List[ChatSession]:
    """Cached session list; empty (and logged) when the fetch fails."""

    try:
        return state.load_sessions(session_repository.list_sessions, force=force)
    except RuntimeError as exc:
        logger.error("Error loading sessions", extra={"error": str(exc)})
        return []


def list_conversations(
    state: AppState,
    *,
    conversation_filter: Optional[ConversationFilter] = None,
    search: str = "",
    user: Optional[CurrentUser] = None,
) -> List[ChatSession]:
    """Filtered and prioritised conversation list."""

    if conversation_filter is not None:
        state.set_conversation_filter(conversation_filter)
    sessions = load_sessions(state)
    filtered = filter_conversations(
        sessions,
        state.conversation_filter,
        search=search,
        current_user_id=user.user_id if user else None,
    )
    return sort_conversations(filtered)


def get_conversation(session_id: str) -> Optional[Tuple[ChatSession, List[Message]]]:
    session = session_repository.get_session(session_id)
    if session is None:
        return None
    try:
        messages = message_repository.list_session_messages(session_id)
    except RuntimeError as exc:
        logger.error("Error loading messages", extra={"session_id": session_id, "error": str(exc)})
        messages = []
    return session, messages


def assigned_agent_name(session: ChatSession) -> Optional[str]:
    """Display name of the staff member handling `session`, if any."""

    if not session.assigned_agent_id:
        return None
    try:
        profile = profile_repository.get_profile(session.assigned_agent_id)
    except RuntimeError as exc:
        logger.warning("Error loading profile", extra={"user_id": session.assigned_agent_id, "error": str(exc)})
        return None
    return profile.display_name if profile else None


def take_over(
    session_id: str,
    user: Optional[CurrentUser],
    *,
    state: Optional[AppState] = None,
    now: Optional[datetime] = None,
) -> ActionResult:
    """Assign the conversation to `user` and stop the bot from answering."""

    if user is None:
        return ActionResult.fail(LOGIN_REQUIRED)
    fields: Dict[str, Any] = {
        "vendedor_asignado_id": user.user_id,
        "vendedor_asignado_at": to_iso_utc(now or utc_now(), name="now"),
        "atendido_por": AttendedBy.AGENT.value,
    }
    try:
        rows = session_repository.update_session(session_id, fields)
    except RuntimeError as exc:
        logger.error("Error taking over conversation", extra={"session_id": session_id, "error": str(exc)})
        return ActionResult.fail(str(exc))
    if not rows:
        return ActionResult.fail("Conversación no encontrada")
    if state is not None:
        state.invalidate(View.CONVERSATIONS)
    return ActionResult.ok(session_id=session_id)


def return_to_bot(session_id: str, *, state: Optional[AppState] = None) -> ActionResult:
    try:
        session_repository.return_to_bot(session_id)
    except RuntimeError as exc:
        logger.error("Error returning conversation to bot", extra={"session_id": session_id, "error": str(exc)})
        return ActionResult.fail(str(exc))
    if state is not None:
        state.invalidate(View.CONVERSATIONS)
    return ActionResult.ok(session_id=session_id)


def mark_read(session_id: str, *, state: Optional[AppState] = None) -> ActionResult:
    try:
        session_repository.reset_unread_messages(session_id)
    except RuntimeError as exc:
        logger.error("Error resetting unread messages", extra={"session_id": session_id, "error": str(exc)})
        return ActionResult.fail(str(exc))
    if state is not None:
        state.invalidate(View.CONVERSATIONS, View.DASHBOARD)
    return ActionResult.ok(session_id=session_id)


def send_reply(
    session_id: str,
    message: str,
    user: Optional[CurrentUser],
    *,
    state: Optional[AppState] = None,
) -> ActionResult:
    """Send a staff reply over WhatsApp; the edge function also assigns the user."""

    text = (message or "").strip()
    if not text:
        return ActionResult.fail(EMPTY_MESSAGE)
    if user is None:
        return ActionResult.fail(LOGIN_REQUIRED)

    payload = {"sesion_id": session_id, "mensaje": text, "user_id": user.user_id}
    try:
        response = invoke_edge_function(VENDOR_REPLY, payload)
    except Exception as exc:
        logger.error("Error sending reply", extra={"session_id": session_id, "error": str(exc)})
        return ActionResult.fail(SEND_ERROR)

    if not response.body.get("success"):
        error = str(response.body.get("error") or SEND_ERROR)
        logger.error("Reply rejected", extra={"session_id": session_id, "error": error})
        return ActionResult.fail(error)

    if state is not None:
        state.invalidate(View.CONVERSATIONS)
    return ActionResult.ok(session_id=session_id)


def conversations_requiring_attention(limit: int = ATTENTION_LIMIT) -> List[AttentionItem]:
    try:
        rows = session_repository.conversations_requiring_attention(limit)
    except RuntimeError as exc:
        logger.error("Error fetching conversations requiring attention", extra={"error": str(exc)})
        return []
    return [_attention_item(row) for row in rows]


__all__ = [
    "ATTENTION_LIMIT",
    "AttentionItem",
    "assigned_agent_name",
    "conversations_requiring_attention",
    "get_conversation",
    "list_conversations",
    "load_sessions",
    "mark_read",
    "return_to_bot",
    "send_reply",
    "take_over",
]
