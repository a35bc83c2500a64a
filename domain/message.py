"""
Domain: chat messages.

Messages are written by the chatbot and by the staff-reply edge function;
the dashboard only reads them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from .time import require_utc_timestamp


class MessageType(str, Enum):
    CUSTOMER = "cliente"
    BOT = "bot"
    AGENT = "vendedor"


@dataclass(frozen=True, slots=True)
class Message:
    message_id: str
    session_id: str
    type: MessageType
    created_at: datetime
    content: str = ""
    phone: Optional[str] = None
    read: bool = False

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)


__all__ = ["Message", "MessageType"]
