"""
Domain: Kanban pipeline board with optimistic drag-and-drop.

Flow:
- drag_start captures the dragged session and its current stage.
- drag_over a column (or another card) speculatively changes only the
  in-memory stage of the dragged session. Nothing is persisted.
- drop resolves the target stage (the column, or the stage of the card
  dropped on) and persists it. On failure the stage captured at drag start
  is restored and an error notification is recorded; on success a
  confirmation naming the destination stage is recorded.

Realtime changes are merged by primary key. A remote update arriving
mid-drag can be overwritten by the subsequent optimistic write.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from .optimistic import OptimisticUpdate
from .session import PIPELINE_STAGES, ChatSession, PipelineStage
from .session_cache import ChangeEvent, KeyedCache

logger = logging.getLogger(__name__)

MOVE_ERROR_MESSAGE = "Error al mover la sesión"


class DateFilter(str, Enum):
    LAST_7_DAYS = "7"
    LAST_30_DAYS = "30"
    LAST_90_DAYS = "90"
    ALL = "all"

    @property
    def days(self) -> Optional[int]:
        return None if self == DateFilter.ALL else int(self.value)


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class Notification:
    level: NotificationLevel
    message: str


def _stage_id(value: str) -> Optional[PipelineStage]:
    try:
        return PipelineStage(value)
    except ValueError:
        return None


def filter_by_recency(
    sessions: Iterable[ChatSession], date_filter: DateFilter, now: datetime
) -> List[ChatSession]:
    """Keep sessions active within the window; sessions without dates only show in ALL."""

    days = DateFilter(date_filter).days
    if days is None:
        return list(sessions)
    cutoff = now - timedelta(days=days)
    return [s for s in sessions if s.activity_at is not None and s.activity_at >= cutoff]


class PipelineBoard:
    def __init__(self, sessions: Iterable[ChatSession]) -> None:
        self.sessions: KeyedCache[ChatSession] = KeyedCache(sessions, key=lambda s: s.session_id)
        self.notifications: List[Notification] = []
        self.active_session_id: Optional[str] = None
        self._pending: OptimisticUpdate[PipelineStage] = OptimisticUpdate()

    # -- views ---------------------------------------------------------

    def visible_sessions(self, date_filter: DateFilter, now: datetime) -> List[ChatSession]:
        return filter_by_recency(self.sessions, date_filter, now)

    def columns(
        self, date_filter: DateFilter, now: datetime
    ) -> Dict[PipelineStage, List[ChatSession]]:
        """Per-stage card lists, most recent activity first."""

        columns: Dict[PipelineStage, List[ChatSession]] = {stage: [] for stage in PIPELINE_STAGES}
        for session in self.visible_sessions(date_filter, now):
            columns[session.pipeline_stage].append(session)
        for cards in columns.values():
            cards.sort(
                key=lambda s: s.activity_at.timestamp() if s.activity_at else 0.0,
                reverse=True,
            )
        return columns

    # -- realtime ------------------------------------------------------

    def apply_change(self, event: ChangeEvent[ChatSession]) -> None:
        self.sessions.apply(event)

    # -- drag and drop -------------------------------------------------

    def drag_start(self, session_id: str) -> Optional[ChatSession]:
        session = self.sessions.get(session_id)
        self.active_session_id = session.session_id if session else None
        self._pending = OptimisticUpdate()
        if session is not None:
            self._pending.begin(session.pipeline_stage)
        return session

    def _resolve_stage(self, over_id: str) -> Optional[PipelineStage]:
        stage = _stage_id(over_id)
        if stage is not None:
            return stage
        over_session = self.sessions.get(over_id)
        if over_session is not None:
            return over_session.pipeline_stage
        return None

    def _set_stage(self, session_id: str, stage: PipelineStage) -> None:
        session = self.sessions.get(session_id)
        if session is not None and session.pipeline_stage != stage:
            self.sessions.upsert(session.with_stage(stage))

    def drag_over(self, over_id: Optional[str]) -> None:
        if self.active_session_id is None or not over_id or over_id == self.active_session_id:
            return
        stage = self._resolve_stage(over_id)
        if stage is not None:
            self._set_stage(self.active_session_id, stage)

    def drop(
        self,
        over_id: Optional[str],
        persist: Callable[[str, PipelineStage], None],
    ) -> bool:
        """
        Finish the drag and persist the target stage.

        `persist(session_id, stage)` must raise on failure. Returns True when
        the stage was written.
        """

        session_id = self.active_session_id
        self.active_session_id = None
        pending = self._pending
        self._pending = OptimisticUpdate()

        if session_id is None or not over_id:
            return False
        target = self._resolve_stage(over_id)
        if target is None or session_id not in self.sessions:
            return False

        try:
            persist(session_id, target)
        except Exception as exc:
            logger.error("Error updating pipeline stage for %s: %s", session_id, exc)
            original = pending.rollback(str(exc)) if pending.snapshot is not None else None
            if original is not None:
                self._set_stage(session_id, original)
            self.notifications.append(Notification(NotificationLevel.ERROR, MOVE_ERROR_MESSAGE))
            return False

        self._set_stage(session_id, target)
        pending.commit()
        self.notifications.append(
            Notification(NotificationLevel.SUCCESS, f'Movido a "{target.label}"')
        )
        return True

    def drag_cancel(self) -> None:
        """Abandon the drag and restore the stage captured at drag start."""

        session_id = self.active_session_id
        self.active_session_id = None
        if session_id is not None and self._pending.snapshot is not None:
            self._set_stage(session_id, self._pending.rollback())
        self._pending = OptimisticUpdate()


__all__ = [
    "DateFilter",
    "MOVE_ERROR_MESSAGE",
    "Notification",
    "NotificationLevel",
    "PipelineBoard",
    "filter_by_recency",
]
