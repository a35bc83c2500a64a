"""
Domain: optimistic local mutation with rollback.

One mutable entity moves through:

    idle -> pending(snapshot) -> committed | rolled_back

The local change is applied first, the remote write second; a failed write
restores the snapshot taken before the local change.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


class OptimisticState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass
class OptimisticUpdate(Generic[T]):
    state: OptimisticState = OptimisticState.IDLE
    snapshot: Optional[T] = None
    error: Optional[str] = None

    def begin(self, snapshot: T) -> None:
        if self.state == OptimisticState.PENDING:
            raise RuntimeError("An optimistic update is already pending")
        self.state = OptimisticState.PENDING
        self.snapshot = snapshot
        self.error = None

    def commit(self) -> None:
        self._require_pending()
        self.state = OptimisticState.COMMITTED

    def rollback(self, error: Optional[str] = None) -> T:
        """Mark the update as rolled back and return the saved snapshot."""

        self._require_pending()
        self.state = OptimisticState.ROLLED_BACK
        self.error = error
        return self.snapshot  # type: ignore[return-value]

    def run(
        self,
        snapshot: T,
        apply: Callable[[], None],
        persist: Callable[[], None],
        restore: Callable[[T], None],
    ) -> bool:
        """
        Apply locally, persist remotely, roll back on failure.

        Returns True when the remote write succeeded.
        """

        self.begin(snapshot)
        apply()
        try:
            persist()
        except Exception as exc:
            logger.error("Optimistic update failed, rolling back: %s", exc)
            restore(self.rollback(str(exc)))
            return False
        self.commit()
        return True

    def _require_pending(self) -> None:
        if self.state != OptimisticState.PENDING:
            raise RuntimeError(f"No pending update (state: {self.state.value})")


__all__ = ["OptimisticState", "OptimisticUpdate"]
