"""
Realtime session feed.

Subscribes to Postgres changes on `sesiones_chat` and merges them into the
shared session cache by primary key (insert/update upsert, delete removes).
Last writer wins; no conflict resolution.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from supabase import AsyncClient, acreate_client  # type: ignore[import-not-found]

from domain.session import ChatSession
from domain.session_cache import ChangeEvent, ChangeType
from repositories.client import supabase_key, supabase_url
from repositories.session_repository import row_to_session
from services.app_state import AppState

logger = logging.getLogger(__name__)

SESSIONS_TABLE = "sesiones_chat"
CHANNEL_NAME = "sesiones-chat-changes"


def change_event_from_payload(payload: Mapping[str, Any]) -> Optional[ChangeEvent[ChatSession]]:
    """
    Translate a postgres_changes payload into a ChangeEvent.

    Accepts both the nested ``{"data": {"type", "record", "old_record"}}``
    shape and the flat ``{"eventType", "new", "old"}`` shape. Returns None
    for payloads that carry no usable record.
    """

    data = payload.get("data", payload) or {}
    raw_type = data.get("type") or data.get("eventType") or ""
    try:
        change_type = ChangeType(str(raw_type).upper())
    except ValueError:
        logger.warning("Ignoring realtime payload with unknown type", extra={"type": raw_type})
        return None

    if change_type == ChangeType.DELETE:
        old = data.get("old_record") or data.get("old") or {}
        old_id = old.get("id")
        if old_id is None:
            return None
        return ChangeEvent(type=change_type, old_key=str(old_id))

    record = data.get("record") or data.get("new")
    if not record or "id" not in record:
        return None
    return ChangeEvent(type=change_type, record=row_to_session(record))


class SessionRealtimeListener:
    def __init__(self, state: AppState) -> None:
        self.state = state
        self._client: Optional[AsyncClient] = None
        self._channel: Any = None

    def handle(self, payload: Mapping[str, Any]) -> None:
        try:
            event = change_event_from_payload(payload)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Malformed realtime payload", extra={"error": str(exc)})
            return
        if event is not None:
            self.state.apply_session_change(event)

    async def start(self) -> None:
        self._client = await acreate_client(supabase_url(), supabase_key())
        channel = self._client.channel(CHANNEL_NAME)
        channel.on_postgres_changes(
            event="*",
            schema="public",
            table=SESSIONS_TABLE,
            callback=self.handle,
        )
        await channel.subscribe()
        self._channel = channel
        logger.info("Subscribed to session changes", extra={"channel": CHANNEL_NAME})

    async def stop(self) -> None:
        if self._client is not None and self._channel is not None:
            await self._client.remove_channel(self._channel)
        self._channel = None
        self._client = None


__all__ = ["SessionRealtimeListener", "change_event_from_payload"]
