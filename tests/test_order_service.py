"""
Tests for `services/order_service.py`.

Covers contract rules:
- A status change writes estado, updated_at and exactly one status
  timestamp; other timestamps are left alone.
- The linked session's pipeline_stage follows the order status, looked up
  by lead_id first and by phone otherwise.
- The session sync never writes the assignment fields.
- An empty tracking number is rejected before any database or network call.
- A failed customer notification does not fail the status change.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from domain.order import OrderStatus
from domain.session import ASSIGNMENT_FIELDS
from repositories.edge_functions import EdgeFunctionError
from services import notification_service
from services.app_state import AppState, View
from services.order_service import (
    ORDER_NOT_FOUND,
    TRACKING_REQUIRED,
    mark_as_shipped,
    status_update_fields,
    update_order_notes,
    update_order_status,
    update_tracking_info,
)
from tests.fakes import EdgeRecorder, order_row, session_row

NOW = datetime(2025, 3, 10, 15, 30, 0, tzinfo=timezone.utc)

TIMESTAMP_COLUMNS = {"fecha_pago", "fecha_envio", "fecha_entrega"}


@pytest.fixture
def edge(monkeypatch):
    recorder = EdgeRecorder(body={"success": True})
    monkeypatch.setattr(notification_service, "invoke_edge_function", recorder)
    return recorder


@pytest.mark.parametrize(
    "status, expected",
    [
        (OrderStatus.PAID, {"fecha_pago"}),
        (OrderStatus.SHIPPED, {"fecha_envio"}),
        (OrderStatus.DELIVERED, {"fecha_entrega"}),
        (OrderStatus.CANCELLED, set()),
        (OrderStatus.PENDING_PAYMENT, set()),
    ],
)
def test_status_update_writes_only_its_own_timestamp(status, expected) -> None:
    fields = status_update_fields(status, NOW)
    assert fields["estado"] == status.value
    assert fields["updated_at"] == NOW.isoformat()
    assert set(fields) & TIMESTAMP_COLUMNS == expected


def test_update_status_writes_order_and_syncs_session_by_lead_id(fake_db, edge) -> None:
    """pagado on an order linked by lead_id moves that session to pagado."""

    fake_db.tables["pedidos"] = [order_row("order-1", lead_id="session-1")]
    fake_db.tables["sesiones_chat"] = [
        session_row("session-1", pipeline_stage="link_enviado"),
        session_row("session-2", pipeline_stage="explorando"),
    ]

    result = update_order_status("order-1", OrderStatus.PAID, now=NOW)

    assert result.success
    assert result.details["pipeline_stage"] == "pagado"
    assert result.details["notification_sent"] is True
    order = fake_db.tables["pedidos"][0]
    assert order["estado"] == "pagado"
    assert order["fecha_pago"] == NOW.isoformat()
    assert "fecha_envio" not in order and "fecha_entrega" not in order

    stages = {row["id"]: row["pipeline_stage"] for row in fake_db.tables["sesiones_chat"]}
    assert stages == {"session-1": "pagado", "session-2": "explorando"}
    assert edge.calls == [("order-notification", {"pedido_id": "order-1", "nuevo_estado": "pagado"})]


@pytest.mark.parametrize(
    "status, stage",
    [
        (OrderStatus.PENDING_PAYMENT, "link_enviado"),
        (OrderStatus.PAID, "pagado"),
        (OrderStatus.SHIPPED, "pagado"),
        (OrderStatus.DELIVERED, "entregado"),
        (OrderStatus.CANCELLED, "perdido"),
    ],
)
def test_pipeline_stage_follows_order_status_by_phone(fake_db, edge, status, stage) -> None:
    """Without a lead_id the sessions sharing the order's phone are updated."""

    fake_db.tables["pedidos"] = [order_row("order-1", lead_id=None, telefono="5511112222")]
    fake_db.tables["sesiones_chat"] = [
        session_row("session-1", telefono="5511112222"),
        session_row("session-2", telefono="5533334444"),
    ]

    result = update_order_status("order-1", status, now=NOW)

    assert result.success
    rows = {row["id"]: row for row in fake_db.tables["sesiones_chat"]}
    assert rows["session-1"]["pipeline_stage"] == stage
    assert rows["session-2"]["pipeline_stage"] == "explorando"


def test_status_change_never_touches_assignment_fields(fake_db, edge) -> None:
    fake_db.tables["pedidos"] = [order_row("order-1", lead_id="session-1")]
    fake_db.tables["sesiones_chat"] = [
        session_row(
            "session-1",
            atendido_por="vendedor",
            vendedor_asignado_id="user-7",
            vendedor_asignado_at="2025-03-09T10:00:00+00:00",
        )
    ]

    for status in (OrderStatus.PAID, OrderStatus.SHIPPED, OrderStatus.DELIVERED):
        assert update_order_status("order-1", status, now=NOW).success

    for fields in fake_db.updates_to("sesiones_chat"):
        assert not set(fields) & ASSIGNMENT_FIELDS
    session = fake_db.tables["sesiones_chat"][0]
    assert session["atendido_por"] == "vendedor"
    assert session["vendedor_asignado_id"] == "user-7"


def test_invalid_status_is_rejected_without_writes(fake_db, edge) -> None:
    fake_db.tables["pedidos"] = [order_row("order-1")]

    result = update_order_status("order-1", "perdido")

    assert not result.success
    assert result.error == "Estado inválido: perdido"
    assert fake_db.updates == []
    assert edge.calls == []


def test_unknown_order_reports_not_found(fake_db, edge) -> None:
    result = update_order_status("missing", OrderStatus.PAID, now=NOW)
    assert not result.success
    assert result.error == ORDER_NOT_FOUND
    assert edge.calls == []


def test_database_error_is_returned_as_failure(fake_db, edge) -> None:
    fake_db.tables["pedidos"] = [order_row("order-1")]
    fake_db.failing_updates.add("pedidos")

    result = update_order_status("order-1", OrderStatus.PAID, now=NOW)

    assert not result.success
    assert "Failed to update order" in (result.error or "")


def test_enforced_transitions_reject_illegal_moves(fake_db, edge) -> None:
    fake_db.tables["pedidos"] = [order_row("order-1", estado="entregado")]

    result = update_order_status("order-1", OrderStatus.PAID, now=NOW, enforce_transitions=True)

    assert not result.success
    assert result.error.startswith("Transición no permitida")
    assert fake_db.updates == []


def test_staff_can_correct_status_without_enforcement(fake_db, edge) -> None:
    fake_db.tables["pedidos"] = [order_row("order-1", estado="entregado")]
    assert update_order_status("order-1", OrderStatus.SHIPPED, now=NOW).success
    assert fake_db.tables["pedidos"][0]["estado"] == "enviado"


def test_notification_failure_does_not_fail_the_update(fake_db, monkeypatch) -> None:
    monkeypatch.setattr(
        notification_service,
        "invoke_edge_function",
        EdgeRecorder(error=EdgeFunctionError("Edge function order-notification timed out")),
    )
    fake_db.tables["pedidos"] = [order_row("order-1")]

    result = update_order_status("order-1", OrderStatus.PAID, now=NOW)

    assert result.success
    assert result.details["notification_sent"] is False
    assert fake_db.tables["pedidos"][0]["estado"] == "pagado"


def test_cancelled_orders_do_not_notify(fake_db, edge) -> None:
    fake_db.tables["pedidos"] = [order_row("order-1")]
    assert update_order_status("order-1", OrderStatus.CANCELLED, now=NOW).success
    assert edge.calls == []


def test_session_sync_failure_does_not_fail_the_update(fake_db, edge) -> None:
    fake_db.tables["pedidos"] = [order_row("order-1", lead_id="session-1")]
    fake_db.tables["sesiones_chat"] = [session_row("session-1")]
    fake_db.failing_updates.add("sesiones_chat")

    result = update_order_status("order-1", OrderStatus.DELIVERED, now=NOW)

    assert result.success
    assert result.details["pipeline_stage"] is None


@pytest.mark.parametrize("tracking", ["", "   ", None])
def test_empty_tracking_number_is_rejected_before_any_call(fake_db, edge, tracking) -> None:
    fake_db.tables["pedidos"] = [order_row("order-1", estado="pagado")]

    result = mark_as_shipped("order-1", tracking, "Estafeta", now=NOW)  # type: ignore[arg-type]

    assert not result.success
    assert result.error == TRACKING_REQUIRED
    assert fake_db.updates == []
    assert edge.calls == []
    assert fake_db.tables["pedidos"][0]["estado"] == "pagado"


def test_mark_as_shipped_writes_tracking_and_notifies(fake_db, edge) -> None:
    fake_db.tables["pedidos"] = [order_row("order-1", estado="pagado", lead_id="session-1")]
    fake_db.tables["sesiones_chat"] = [session_row("session-1", pipeline_stage="pagado")]

    result = mark_as_shipped("order-1", " 1234567890 ", " Estafeta ", now=NOW)

    assert result.success
    order = fake_db.tables["pedidos"][0]
    assert order["estado"] == "enviado"
    assert order["numero_guia"] == "1234567890"
    assert order["carrier"] == "Estafeta"
    assert order["fecha_envio"] == NOW.isoformat()
    assert fake_db.tables["sesiones_chat"][0]["pipeline_stage"] == "pagado"
    assert edge.calls == [
        (
            "order-notification",
            {
                "pedido_id": "order-1",
                "nuevo_estado": "enviado",
                "numero_guia": "1234567890",
                "carrier": "Estafeta",
            },
        )
    ]


def test_tracking_and_notes_updates(fake_db, edge) -> None:
    fake_db.tables["pedidos"] = [order_row("order-1", estado="enviado")]

    assert update_tracking_info("order-1", "999", "DHL", now=NOW).success
    assert update_order_notes("order-1", "Cliente recoge en sucursal", now=NOW).success

    order = fake_db.tables["pedidos"][0]
    assert order["numero_guia"] == "999"
    assert order["carrier"] == "DHL"
    assert order["notas"] == "Cliente recoge en sucursal"
    assert order["estado"] == "enviado"
    assert edge.calls == []


def test_successful_action_invalidates_views(fake_db, edge) -> None:
    fake_db.tables["pedidos"] = [order_row("order-1")]
    state = AppState()

    update_order_status("order-1", OrderStatus.PAID, state=state, now=NOW)

    assert state.version(View.ORDERS) == 1
    assert state.version(View.ORDER_DETAIL, "order-1") == 1
    assert state.version(View.ORDER_DETAIL, "order-2") == 0
    assert state.version(View.PIPELINE) == 1
