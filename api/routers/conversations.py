"""
Conversations API Endpoints.

Inbox of WhatsApp conversations and the staff actions on them.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.converters import action_response, message_response, session_response
from api.dependencies import get_current_user, get_state, raise_for_result
from api.models import (
    ActionResponse,
    AttentionItemResponse,
    ConversationResponse,
    ReplyRequest,
    SessionResponse,
)
from domain.session import ConversationFilter
from services.app_state import AppState
from services.auth_service import CurrentUser
from services.conversation_service import (
    ATTENTION_LIMIT,
    LOGIN_REQUIRED,
    SEND_ERROR,
    conversations_requiring_attention,
    assigned_agent_name,
    get_conversation,
    list_conversations,
    mark_read,
    return_to_bot,
    send_reply,
    take_over,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/conversations",
    response_model=List[SessionResponse],
    summary="List Conversations",
    description="Handoff first, then unread count, then most recent activity.",
)
def get_conversations(
    filter: Optional[str] = Query(None, description="todas, mias, handoff or bot"),
    search: str = Query("", description="Matches phone, name or last message"),
    refresh: bool = Query(False),
    state: AppState = Depends(get_state),
    user: Optional[CurrentUser] = Depends(get_current_user),
):
    conversation_filter = None
    if filter:
        try:
            conversation_filter = ConversationFilter(filter)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid filter. Got '{filter}'")
    if refresh:
        state.mark_sessions_stale()
    sessions = list_conversations(
        state, conversation_filter=conversation_filter, search=search, user=user
    )
    return [session_response(session) for session in sessions]


@router.get(
    "/conversations/attention",
    response_model=List[AttentionItemResponse],
    summary="Conversations Requiring Attention",
)
def get_attention(limit: int = Query(ATTENTION_LIMIT, ge=1, le=50)):
    return [
        AttentionItemResponse(
            session_id=item.session_id,
            phone=item.phone,
            customer_name=item.customer_name,
            pipeline_stage=item.pipeline_stage,
            last_message=item.last_message,
            unread_count=item.unread_count,
            handoff_reason=item.handoff_reason,
            attended_by=item.attended_by,
            wait_minutes=item.wait_minutes,
            wait=item.wait_label,
            priority=item.priority,
        )
        for item in conversations_requiring_attention(limit)
    ]


@router.get(
    "/conversations/{session_id}",
    response_model=ConversationResponse,
    summary="Get Conversation",
)
def get_conversation_detail(session_id: str):
    try:
        found = get_conversation(session_id)
    except RuntimeError as e:
        raise HTTPException(status_code=500, detail=str(e))
    if found is None:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    session, messages = found
    return ConversationResponse(
        session=session_response(session),
        messages=[message_response(message) for message in messages],
        assigned_agent_name=assigned_agent_name(session),
    )


@router.post(
    "/conversations/{session_id}/take-over",
    response_model=ActionResponse,
    summary="Take Over Conversation",
)
def take_over_conversation(
    session_id: str,
    state: AppState = Depends(get_state),
    user: Optional[CurrentUser] = Depends(get_current_user),
):
    result = take_over(session_id, user, state=state)
    if result.error == LOGIN_REQUIRED:
        raise HTTPException(status_code=401, detail=result.error)
    raise_for_result(result, not_found="Conversación no encontrada")
    return action_response(result)


@router.post(
    "/conversations/{session_id}/return-to-bot",
    response_model=ActionResponse,
    summary="Return Conversation To Bot",
)
def return_conversation(session_id: str, state: AppState = Depends(get_state)):
    result = return_to_bot(session_id, state=state)
    raise_for_result(result, status_code=500)
    return action_response(result)


@router.post(
    "/conversations/{session_id}/read",
    response_model=ActionResponse,
    summary="Mark Conversation Read",
)
def read_conversation(session_id: str, state: AppState = Depends(get_state)):
    result = mark_read(session_id, state=state)
    raise_for_result(result, status_code=500)
    return action_response(result)


@router.post(
    "/conversations/{session_id}/reply",
    response_model=ActionResponse,
    summary="Send Staff Reply",
    description="Send a WhatsApp message as the signed-in staff member.",
)
def reply(
    session_id: str,
    request: ReplyRequest,
    state: AppState = Depends(get_state),
    user: Optional[CurrentUser] = Depends(get_current_user),
):
    result = send_reply(session_id, request.message, user, state=state)
    if result.error == LOGIN_REQUIRED:
        raise HTTPException(status_code=401, detail=result.error)
    if result.error == SEND_ERROR:
        raise HTTPException(status_code=502, detail=result.error)
    raise_for_result(result)
    return action_response(result)
