"""
Pipeline board service.

Loads the board from the shared session cache and moves cards through the
optimistic drag-and-drop flow: the cached stage changes first, the stage
write follows, and a failed write restores the stage captured at drag
start.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from domain.pipeline_board import DateFilter, Notification, PipelineBoard
from domain.session import ChatSession, PipelineStage
from domain.time import to_iso_utc, utc_now
from repositories import session_repository
from services.app_state import AppState, View
from services.conversation_service import load_sessions

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MoveResult:
    success: bool
    session: Optional[ChatSession]
    notification: Optional[Notification]


def persist_stage(session_id: str, stage: PipelineStage, *, now: Optional[datetime] = None) -> None:
    """
    Write a session's pipeline stage.

    Raises RuntimeError when the write fails or no session matches.
    """

    fields = {
        "pipeline_stage": PipelineStage(stage).value,
        "updated_at": to_iso_utc(now or utc_now(), name="now"),
    }
    rows = session_repository.update_session(session_id, fields)
    if not rows:
        raise RuntimeError(f"Session not found: {session_id}")


def board_for(state: AppState) -> PipelineBoard:
    return PipelineBoard(load_sessions(state))


def board_columns(
    state: AppState, date_filter: DateFilter, now: Optional[datetime] = None
) -> Dict[PipelineStage, List[ChatSession]]:
    return board_for(state).columns(DateFilter(date_filter), now or utc_now())


def move_session(
    state: AppState,
    session_id: str,
    over_id: str,
    *,
    now: Optional[datetime] = None,
) -> MoveResult:
    """Drag `session_id` onto a column or card (`over_id`) and drop it there."""

    board = board_for(state)
    if board.drag_start(session_id) is None:
        return MoveResult(success=False, session=None, notification=None)

    board.drag_over(over_id)
    success = board.drop(over_id, lambda sid, stage: persist_stage(sid, stage, now=now))

    session = board.sessions.get(session_id)
    if session is not None:
        state.upsert_session(session)
    if success:
        state.invalidate(View.CONVERSATIONS)
    notification = board.notifications[-1] if board.notifications else None
    return MoveResult(success=success, session=session, notification=notification)


__all__ = ["MoveResult", "board_columns", "board_for", "move_session", "persist_stage"]
