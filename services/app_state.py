"""
Application state shared by the dashboard services.

One AppState is created at startup and handed to whatever needs it (the
FastAPI app stores it on `app.state`). It holds:
- the conversation-list filter,
- the session cache patched by realtime events; without a live realtime
  subscription every read reloads it,
- per-view versions bumped by mutation actions, so readers can tell that
  a cached view is stale.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from domain.session import ChatSession, ConversationFilter
from domain.session_cache import ChangeEvent, KeyedCache


class View(str, Enum):
    ORDERS = "pedidos"
    ORDER_DETAIL = "pedido"
    PIPELINE = "pipeline"
    CONVERSATIONS = "conversations"
    DASHBOARD = "dashboard"


# Views backed by the session cache.
_SESSION_VIEWS = frozenset({View.PIPELINE, View.CONVERSATIONS})


def _session_key(session: ChatSession) -> str:
    return session.session_id


@dataclass
class AppState:
    conversation_filter: ConversationFilter = ConversationFilter.ALL
    sessions: KeyedCache[ChatSession] = field(
        default_factory=lambda: KeyedCache([], key=_session_key)
    )
    sessions_loaded: bool = False
    realtime_active: bool = False
    versions: Dict[str, int] = field(default_factory=dict)
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def set_conversation_filter(self, value: ConversationFilter) -> None:
        self.conversation_filter = ConversationFilter(value)

    # -- invalidation --------------------------------------------------

    @staticmethod
    def _view_key(view: View, item_id: Optional[str] = None) -> str:
        return f"{view.value}/{item_id}" if item_id else view.value

    def invalidate(self, *views: View, item_id: Optional[str] = None) -> None:
        """Bump the version of each view. ORDER_DETAIL is tracked per item."""

        with self._lock:
            for view in views:
                key = self._view_key(view, item_id if view == View.ORDER_DETAIL else None)
                self.versions[key] = self.versions.get(key, 0) + 1
                if view in _SESSION_VIEWS:
                    self.sessions_loaded = False

    def mark_sessions_stale(self) -> None:
        with self._lock:
            self.sessions_loaded = False

    def version(self, view: View, item_id: Optional[str] = None) -> int:
        return self.versions.get(self._view_key(view, item_id), 0)

    # -- session cache -------------------------------------------------

    def set_realtime_active(self, active: bool) -> None:
        """Realtime subscription status; while inactive the cache is bypassed."""

        with self._lock:
            self.realtime_active = active
            if not active:
                self.sessions_loaded = False

    def load_sessions(
        self, loader: Callable[[], Iterable[ChatSession]], *, force: bool = False
    ) -> List[ChatSession]:
        """Cached sessions; reloaded when stale, forced, or realtime is off."""

        with self._lock:
            if force or not self.sessions_loaded or not self.realtime_active:
                self.sessions.reset(loader())
                self.sessions_loaded = True
            return self.sessions.values()

    def apply_session_change(self, event: ChangeEvent[ChatSession]) -> None:
        with self._lock:
            self.sessions.apply(event)

    def upsert_session(self, session: ChatSession) -> None:
        with self._lock:
            self.sessions.upsert(session)


__all__ = ["AppState", "View"]
