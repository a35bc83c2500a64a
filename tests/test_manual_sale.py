"""
Tests for `services/manual_sale_service.py`.

Covers contract rules:
- Phone, customer name and at least one item are required, checked before
  any database call.
- A manual sale is stored as a delivered, already-paid in-store order.
- A linked session is closed as entregado; failing to update it does not
  undo the sale.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from domain.order import PaymentMethod
from services.app_state import AppState, View
from services.manual_sale_service import (
    ITEMS_REQUIRED,
    NAME_REQUIRED,
    PHONE_REQUIRED,
    PICKUP_ADDRESS,
    ManualSaleItem,
    ManualSaleRequest,
    build_order_row,
    create_manual_sale,
    find_sessions_by_phone,
    validate_manual_sale,
)
from tests.fakes import session_row

NOW = datetime(2025, 3, 10, 18, 0, 0, tzinfo=timezone.utc)

ITEM = ManualSaleItem(
    snapshot_id="inv-1",
    description="LLANTA 185/65R15 NEREUS",
    size="185/65R15",
    price_with_tax=Decimal("1199.50"),
    quantity=4,
)


def _request(**overrides) -> ManualSaleRequest:
    fields = dict(phone="5512345678", customer_name="Maria Lopez", items=[ITEM])
    fields.update(overrides)
    return ManualSaleRequest(**fields)


def test_validation_order() -> None:
    assert validate_manual_sale(_request(phone="  ")) == PHONE_REQUIRED
    assert validate_manual_sale(_request(customer_name="")) == NAME_REQUIRED
    assert validate_manual_sale(_request(items=[])) == ITEMS_REQUIRED
    assert validate_manual_sale(_request()) is None


def test_invalid_request_makes_no_database_call(fake_db) -> None:
    result = create_manual_sale(_request(items=[]), now=NOW)
    assert not result.success
    assert result.error == ITEMS_REQUIRED
    assert fake_db.inserts == []


def test_order_row_is_a_delivered_store_sale() -> None:
    row = build_order_row(_request(payment_method=PaymentMethod.IN_STORE_CARD, notes="Factura"), NOW)

    assert row["estado"] == "entregado"
    assert row["fecha_pago"] == row["fecha_entrega"] == NOW.isoformat()
    assert row["origen"] == "sucursal"
    assert row["metodo_pago"] == "tarjeta_sucursal"
    assert row["direccion_envio"] == PICKUP_ADDRESS
    assert row["subtotal"] == 4798.0
    assert row["costo_envio"] == 0.0
    assert row["total"] == 4798.0
    assert row["notas"] == "Factura"
    assert row["items"] == [
        {
            "medida": "185/65R15",
            "marca": "NEREUS",
            "descripcion": "LLANTA 185/65R15 NEREUS",
            "cantidad": 4,
            "precio_unitario": 1199.5,
        }
    ]


def test_create_manual_sale_closes_linked_session(fake_db) -> None:
    fake_db.tables["sesiones_chat"] = [session_row("session-1", pipeline_stage="cotizado")]
    state = AppState()

    result = create_manual_sale(_request(session_id="session-1"), state=state, now=NOW)

    assert result.success
    assert result.order_id == fake_db.tables["pedidos"][0]["id"]
    session = fake_db.tables["sesiones_chat"][0]
    assert session["pipeline_stage"] == "entregado"
    assert session["pedido_id"] == result.order_id
    assert state.version(View.ORDERS) == 1
    assert state.version(View.DASHBOARD) == 1


def test_session_update_failure_keeps_the_sale(fake_db) -> None:
    fake_db.tables["sesiones_chat"] = [session_row("session-1")]
    fake_db.failing_updates.add("sesiones_chat")

    result = create_manual_sale(_request(session_id="session-1"), now=NOW)

    assert result.success
    assert len(fake_db.tables["pedidos"]) == 1


def test_insert_failure_is_reported(fake_db) -> None:
    fake_db.failing_tables.add("pedidos")
    result = create_manual_sale(_request(), now=NOW)
    assert not result.success
    assert "Failed to insert order" in (result.error or "")


def test_find_sessions_by_phone_matches_partial_numbers(fake_db) -> None:
    fake_db.tables["sesiones_chat"] = [
        session_row("session-1", telefono="5215512345678"),
        session_row("session-2", telefono="5599990000", telefono_cliente="55 1234 5678"),
        session_row("session-3", telefono="5599990000"),
    ]

    found = {session.session_id for session in find_sessions_by_phone("(55) 1234-5678")}

    assert "session-1" in found
    assert "session-3" not in found
    assert find_sessions_by_phone("") == []


def test_find_sessions_by_phone_degrades_to_empty(fake_db) -> None:
    fake_db.failing_tables.add("sesiones_chat")
    assert find_sessions_by_phone("5512345678") == []
