"""
Tests for `domain/order.py`.

Covers contract rules:
- The transition table allows exactly the documented moves.
- Terminal statuses have no outgoing transitions.
- Each forward status maps to exactly one timestamp column.
- Order timestamps must be UTC.
"""

from __future__ import annotations

from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from domain.order import (
    ActionResult,
    Order,
    OrderItem,
    OrderStatus,
    allowed_transitions,
    brand_from_description,
    can_transition,
    is_terminal,
    order_totals,
    status_timestamp_field,
)


def _order(**overrides) -> Order:
    fields = dict(
        order_id="order-1",
        phone="5512345678",
        customer_name="Juan Perez",
        items=[OrderItem("205/55R16", "TORNEL", "LLANTA 205/55R16 TORNEL", 2, Decimal("1499"))],
        subtotal=Decimal("2998"),
        shipping_cost=Decimal("0"),
        total=Decimal("2998"),
        status=OrderStatus.PAID,
    )
    fields.update(overrides)
    return Order(**fields)


def test_transition_table_matches_order_lifecycle() -> None:
    """Verify the allowed next states for every status."""

    assert allowed_transitions(OrderStatus.PENDING_PAYMENT) == {OrderStatus.PAID, OrderStatus.CANCELLED}
    assert allowed_transitions(OrderStatus.PAID) == {OrderStatus.SHIPPED, OrderStatus.CANCELLED}
    assert allowed_transitions(OrderStatus.SHIPPED) == {OrderStatus.DELIVERED}
    assert allowed_transitions(OrderStatus.DELIVERED) == frozenset()
    assert allowed_transitions(OrderStatus.CANCELLED) == frozenset()


def test_can_transition_rejects_everything_outside_the_table() -> None:
    """Every (current, target) pair not in the table is rejected."""

    allowed = {
        (OrderStatus.PENDING_PAYMENT, OrderStatus.PAID),
        (OrderStatus.PENDING_PAYMENT, OrderStatus.CANCELLED),
        (OrderStatus.PAID, OrderStatus.SHIPPED),
        (OrderStatus.PAID, OrderStatus.CANCELLED),
        (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
    }
    for current in OrderStatus:
        for target in OrderStatus:
            assert can_transition(current, target) is ((current, target) in allowed)


def test_terminal_statuses() -> None:
    assert is_terminal(OrderStatus.DELIVERED)
    assert is_terminal(OrderStatus.CANCELLED)
    assert not is_terminal(OrderStatus.SHIPPED)


def test_status_timestamp_fields() -> None:
    """pagado/enviado/entregado each set one column; the others set none."""

    assert status_timestamp_field(OrderStatus.PAID) == "fecha_pago"
    assert status_timestamp_field(OrderStatus.SHIPPED) == "fecha_envio"
    assert status_timestamp_field(OrderStatus.DELIVERED) == "fecha_entrega"
    assert status_timestamp_field(OrderStatus.CANCELLED) is None
    assert status_timestamp_field(OrderStatus.PENDING_PAYMENT) is None


def test_status_accepts_stored_string_values() -> None:
    assert can_transition("pagado", "enviado")  # type: ignore[arg-type]
    assert OrderStatus("pendiente_pago").label == "Pendiente de Pago"


def test_order_requires_utc_timestamps() -> None:
    with pytest.raises(ValueError):
        _order(created_at=datetime(2025, 1, 1, 12, 0, 0))

    with pytest.raises(ValueError):
        _order(paid_at=datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone(timedelta(hours=-6))))

    order = _order(paid_at=datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc))
    assert order.paid_at is not None


def test_order_is_immutable_and_exposes_next_statuses() -> None:
    order = _order()
    with pytest.raises(FrozenInstanceError):
        order.status = OrderStatus.SHIPPED  # type: ignore[misc]
    assert order.next_statuses() == {OrderStatus.SHIPPED, OrderStatus.CANCELLED}
    assert order.item_count == 2
    assert order.totals_consistent


def test_contact_phone_falls_back_to_customer_phone() -> None:
    assert _order(phone="", customer_phone="5599999999").contact_phone == "5599999999"


def test_order_totals() -> None:
    items = [
        OrderItem("205/55R16", "TORNEL", "A", 2, Decimal("1499")),
        OrderItem("185/65R15", "NEREUS", "B", 1, Decimal("999.50")),
    ]
    subtotal, shipping, total = order_totals(items, Decimal("250"))
    assert subtotal == Decimal("3997.50")
    assert total == subtotal + shipping

    with pytest.raises(ValueError):
        order_totals(items, Decimal("-1"))


def test_order_item_row_round_trip_uses_defaults() -> None:
    item = OrderItem.from_row({"descripcion": "LLANTA NEREUS", "precio_unitario": "1200"})
    assert item.size == "N/A"
    assert item.quantity == 1
    assert item.unit_price == Decimal("1200")


def test_brand_from_description() -> None:
    assert brand_from_description("LLANTA 205/55R16 nereus") == "NEREUS"
    assert brand_from_description("LLANTA TORNEL") == "TORNEL"
    assert brand_from_description(None) == "Otro"


def test_action_result_helpers() -> None:
    ok = ActionResult.ok("order-1", status="pagado")
    assert ok.success and ok.order_id == "order-1" and ok.details == {"status": "pagado"}

    failed = ActionResult.fail("boom")
    assert not failed.success and failed.error == "boom"
