"""
Tests for `domain/pipeline_board.py` and `services/pipeline_service.py`.

Covers contract rules:
- A drop moves the card locally before the stage is written.
- A failed write reverts the card to the stage it had at drag start and
  records an error notification.
- Cards dropped on another card join that card's column.
- The recency filter hides sessions without activity unless showing all.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from domain.pipeline_board import (
    MOVE_ERROR_MESSAGE,
    DateFilter,
    NotificationLevel,
    PipelineBoard,
    filter_by_recency,
)
from domain.session import PIPELINE_STAGES, ChatSession, PipelineStage
from domain.session_cache import ChangeEvent, ChangeType
from services.app_state import AppState, View
from services.pipeline_service import board_columns, move_session
from tests.fakes import session_row

NOW = datetime(2025, 3, 10, 12, 0, 0, tzinfo=timezone.utc)


def _session(session_id: str, stage: PipelineStage = PipelineStage.EXPLORING, days_ago: int = 1) -> ChatSession:
    return ChatSession(
        session_id=session_id,
        phone="5512345678",
        pipeline_stage=stage,
        last_message_at=NOW - timedelta(days=days_ago),
    )


def test_failed_persist_reverts_card_and_records_error() -> None:
    """Drag A from explorando to cotizado; the write fails; A is back in explorando."""

    board = PipelineBoard([_session("A"), _session("B", PipelineStage.QUOTED)])
    seen = {}

    def failing_persist(session_id: str, stage: PipelineStage) -> None:
        seen["stage_during_write"] = board.sessions.get(session_id).pipeline_stage
        raise RuntimeError("network down")

    board.drag_start("A")
    board.drag_over("cotizado")
    assert board.sessions.get("A").pipeline_stage == PipelineStage.QUOTED

    assert board.drop("cotizado", failing_persist) is False

    assert seen["stage_during_write"] == PipelineStage.QUOTED
    assert board.sessions.get("A").pipeline_stage == PipelineStage.EXPLORING
    assert board.notifications[-1].level == NotificationLevel.ERROR
    assert board.notifications[-1].message == MOVE_ERROR_MESSAGE


def test_successful_drop_keeps_new_stage() -> None:
    board = PipelineBoard([_session("A")])
    writes = []

    board.drag_start("A")
    assert board.drop("link_enviado", lambda sid, stage: writes.append((sid, stage))) is True

    assert writes == [("A", PipelineStage.LINK_SENT)]
    assert board.sessions.get("A").pipeline_stage == PipelineStage.LINK_SENT
    assert board.notifications[-1].level == NotificationLevel.SUCCESS
    assert board.notifications[-1].message == 'Movido a "Link Enviado"'


def test_drop_on_card_uses_that_cards_column() -> None:
    board = PipelineBoard([_session("A"), _session("B", PipelineStage.PAID)])
    writes = []

    board.drag_start("A")
    board.drag_over("B")
    board.drop("B", lambda sid, stage: writes.append(stage))

    assert writes == [PipelineStage.PAID]


def test_revert_goes_to_drag_start_stage_after_several_hovers() -> None:
    board = PipelineBoard([_session("A", PipelineStage.QUOTED)])

    board.drag_start("A")
    board.drag_over("pagado")
    board.drag_over("entregado")

    def fail(session_id: str, stage: PipelineStage) -> None:
        raise RuntimeError("boom")

    board.drop("perdido", fail)
    assert board.sessions.get("A").pipeline_stage == PipelineStage.QUOTED


def test_drop_without_target_or_drag_is_ignored() -> None:
    board = PipelineBoard([_session("A")])

    assert board.drop("cotizado", lambda sid, stage: None) is False  # nothing dragged
    board.drag_start("A")
    assert board.drop("not-a-stage-or-card", lambda sid, stage: None) is False
    assert board.notifications == []


def test_drag_cancel_restores_original_stage() -> None:
    board = PipelineBoard([_session("A")])
    board.drag_start("A")
    board.drag_over("pagado")
    board.drag_cancel()
    assert board.sessions.get("A").pipeline_stage == PipelineStage.EXPLORING
    assert board.active_session_id is None


def test_columns_cover_every_stage_most_recent_first() -> None:
    board = PipelineBoard([
        _session("old", days_ago=5),
        _session("new", days_ago=1),
        _session("quoted", PipelineStage.QUOTED, days_ago=2),
    ])

    columns = board.columns(DateFilter.ALL, NOW)

    assert list(columns) == PIPELINE_STAGES
    assert [s.session_id for s in columns[PipelineStage.EXPLORING]] == ["new", "old"]
    assert [s.session_id for s in columns[PipelineStage.QUOTED]] == ["quoted"]
    assert columns[PipelineStage.LOST] == []


def test_recency_filter() -> None:
    sessions = [
        _session("recent", days_ago=3),
        _session("stale", days_ago=40),
        ChatSession(session_id="undated", phone="1"),
    ]

    assert [s.session_id for s in filter_by_recency(sessions, DateFilter.LAST_7_DAYS, NOW)] == ["recent"]
    assert {s.session_id for s in filter_by_recency(sessions, DateFilter.LAST_90_DAYS, NOW)} == {"recent", "stale"}
    assert len(filter_by_recency(sessions, DateFilter.ALL, NOW)) == 3


def test_realtime_change_reaches_board() -> None:
    board = PipelineBoard([_session("A")])
    board.apply_change(ChangeEvent(ChangeType.UPDATE, record=_session("A", PipelineStage.PAID)))
    board.apply_change(ChangeEvent(ChangeType.INSERT, record=_session("C")))
    board.apply_change(ChangeEvent(ChangeType.DELETE, old_key="missing"))

    assert board.sessions.get("A").pipeline_stage == PipelineStage.PAID
    assert [s.session_id for s in board.sessions] == ["C", "A"]


# -- service ---------------------------------------------------------------


@pytest.fixture
def seeded(fake_db):
    fake_db.tables["sesiones_chat"] = [
        session_row("A", pipeline_stage="explorando", ultimo_mensaje_at="2025-03-09T12:00:00+00:00"),
        session_row("B", pipeline_stage="cotizado", ultimo_mensaje_at="2025-03-08T12:00:00+00:00"),
    ]
    return fake_db


def test_move_session_persists_and_updates_shared_state(seeded) -> None:
    state = AppState()

    result = move_session(state, "A", "cotizado", now=NOW)

    assert result.success
    assert result.session.pipeline_stage == PipelineStage.QUOTED
    assert seeded.tables["sesiones_chat"][0]["pipeline_stage"] == "cotizado"
    assert state.version(View.CONVERSATIONS) == 1


def test_move_session_reverts_shared_state_on_write_failure(seeded) -> None:
    state = AppState()
    seeded.failing_updates.add("sesiones_chat")

    result = move_session(state, "A", "cotizado", now=NOW)

    assert not result.success
    assert result.notification.message == MOVE_ERROR_MESSAGE
    assert state.sessions.get("A").pipeline_stage == PipelineStage.EXPLORING
    assert seeded.tables["sesiones_chat"][0]["pipeline_stage"] == "explorando"


def test_move_unknown_session(seeded) -> None:
    result = move_session(AppState(), "missing", "cotizado", now=NOW)
    assert not result.success
    assert result.session is None


def test_board_columns_reads_through_cache_while_realtime_is_live(seeded) -> None:
    state = AppState()
    state.set_realtime_active(True)
    columns = board_columns(state, DateFilter.LAST_7_DAYS, NOW)
    assert [s.session_id for s in columns[PipelineStage.EXPLORING]] == ["A"]
    assert [s.session_id for s in columns[PipelineStage.QUOTED]] == ["B"]
    assert state.sessions_loaded

    seeded.tables["sesiones_chat"][1]["pipeline_stage"] = "pagado"
    columns = board_columns(state, DateFilter.LAST_7_DAYS, NOW)
    assert [s.session_id for s in columns[PipelineStage.QUOTED]] == ["B"]


def test_board_columns_follow_the_database_without_realtime(seeded) -> None:
    state = AppState()
    board_columns(state, DateFilter.LAST_7_DAYS, NOW)

    seeded.tables["sesiones_chat"][1]["pipeline_stage"] = "pagado"
    seeded.tables["sesiones_chat"].append(
        session_row("C", pipeline_stage="explorando", ultimo_mensaje_at="2025-03-09T13:00:00+00:00")
    )
    columns = board_columns(state, DateFilter.LAST_7_DAYS, NOW)

    assert {s.session_id for s in columns[PipelineStage.EXPLORING]} == {"A", "C"}
    assert columns[PipelineStage.QUOTED] == []
    assert [s.session_id for s in columns[PipelineStage.PAID]] == ["B"]
