"""
Order actions: status changes, shipping, tracking and notes.

Rules implemented here:
- A status change writes estado, updated_at and exactly one status
  timestamp (pagado -> fecha_pago, enviado -> fecha_envio,
  entregado -> fecha_entrega).
- After a successful write the linked chat session's pipeline_stage is
  synced (lookup by lead_id, else by phone). Assignment fields are never
  written by the sync.
- pagado, enviado and entregado notify the customer. Sync and notification
  failures are logged only: the order write already succeeded.
- The stored status is not re-read before writing, so staff can correct a
  status in any direction. Pass ``enforce_transitions=True`` to reject
  moves outside the transition table.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from domain.order import ActionResult, OrderStatus, can_transition, status_timestamp_field
from domain.session import PipelineStage, pipeline_stage_for_order_status
from domain.time import to_iso_utc, utc_now
from repositories import order_repository, session_repository
from services.app_state import AppState, View
from services.notification_service import send_status_notification

logger = logging.getLogger(__name__)

ORDER_NOT_FOUND = "Pedido no encontrado"
TRACKING_REQUIRED = "Por favor ingresa el numero de guia"


def _invalidate(state: Optional[AppState], order_id: str, *views: View) -> None:
    if state is not None:
        state.invalidate(*views, item_id=order_id)


def status_update_fields(new_status: OrderStatus, now: datetime) -> Dict[str, Any]:
    """Row fields written by a status change."""

    status = OrderStatus(new_status)
    stamp = to_iso_utc(now, name="now")
    fields: Dict[str, Any] = {"estado": status.value, "updated_at": stamp}
    timestamp_field = status_timestamp_field(status)
    if timestamp_field is not None:
        fields[timestamp_field] = stamp
    return fields


def sync_pipeline_stage(
    order_id: str, new_status: OrderStatus, *, now: Optional[datetime] = None
) -> Optional[PipelineStage]:
    """
    Mirror the order status onto the linked session's pipeline stage.

    Returns the stage written, or None when the order has no linked session.
    Raises RuntimeError on database errors.
    """

    link = order_repository.get_order_link(order_id)
    if link is None:
        return None

    stage = pipeline_stage_for_order_status(new_status)
    fields = {
        "pipeline_stage": stage.value,
        "updated_at": to_iso_utc(now or utc_now(), name="now"),
    }

    if link.get("lead_id"):
        session_repository.update_session(str(link["lead_id"]), fields)
    elif link.get("telefono"):
        session_repository.update_sessions_by_phone(str(link["telefono"]), fields)
    else:
        return None
    return stage


def _sync_quietly(order_id: str, status: OrderStatus, now: datetime) -> Optional[PipelineStage]:
    try:
        return sync_pipeline_stage(order_id, status, now=now)
    except Exception as exc:
        logger.warning(
            "Pipeline stage sync failed",
            extra={"order_id": order_id, "status": status.value, "error": str(exc)},
        )
        return None


def _write_order(order_id: str, fields: Dict[str, Any], action: str) -> Optional[str]:
    """Apply the update; return an error message or None on success."""

    try:
        rows = order_repository.update_order(order_id, fields)
    except RuntimeError as exc:
        logger.error(f"Error {action}", extra={"order_id": order_id, "error": str(exc)})
        return str(exc)
    if not rows:
        return ORDER_NOT_FOUND
    return None


def update_order_status(
    order_id: str,
    new_status: OrderStatus | str,
    *,
    state: Optional[AppState] = None,
    now: Optional[datetime] = None,
    enforce_transitions: bool = False,
) -> ActionResult:
    try:
        status = OrderStatus(new_status)
    except ValueError:
        return ActionResult.fail(f"Estado inválido: {new_status}")

    if enforce_transitions:
        current = order_repository.get_order(order_id)
        if current is None:
            return ActionResult.fail(ORDER_NOT_FOUND)
        if not can_transition(current.status, status):
            return ActionResult.fail(
                f"Transición no permitida: {current.status.label} -> {status.label}"
            )

    now = now or utc_now()
    error = _write_order(order_id, status_update_fields(status, now), "updating order status")
    if error:
        return ActionResult.fail(error)

    stage = _sync_quietly(order_id, status, now)
    notification = send_status_notification(order_id, status)

    _invalidate(state, order_id, View.ORDERS, View.ORDER_DETAIL, View.PIPELINE, View.CONVERSATIONS)
    return ActionResult.ok(
        order_id,
        status=status.value,
        pipeline_stage=stage.value if stage else None,
        notification_sent=notification.sent,
    )


def mark_as_shipped(
    order_id: str,
    tracking_number: str,
    carrier: str,
    *,
    state: Optional[AppState] = None,
    now: Optional[datetime] = None,
) -> ActionResult:
    """Move an order to enviado together with its tracking number and carrier."""

    tracking_number = (tracking_number or "").strip()
    if not tracking_number:
        return ActionResult.fail(TRACKING_REQUIRED)
    carrier = (carrier or "").strip()

    now = now or utc_now()
    fields = status_update_fields(OrderStatus.SHIPPED, now)
    fields["numero_guia"] = tracking_number
    fields["carrier"] = carrier

    error = _write_order(order_id, fields, "marking order as shipped")
    if error:
        return ActionResult.fail(error)

    stage = _sync_quietly(order_id, OrderStatus.SHIPPED, now)
    notification = send_status_notification(
        order_id,
        OrderStatus.SHIPPED,
        tracking_number=tracking_number,
        carrier=carrier,
    )

    _invalidate(state, order_id, View.ORDERS, View.ORDER_DETAIL, View.PIPELINE, View.CONVERSATIONS)
    return ActionResult.ok(
        order_id,
        status=OrderStatus.SHIPPED.value,
        pipeline_stage=stage.value if stage else None,
        notification_sent=notification.sent,
    )


def update_tracking_info(
    order_id: str,
    tracking_number: str,
    carrier: str,
    *,
    state: Optional[AppState] = None,
    now: Optional[datetime] = None,
) -> ActionResult:
    fields = {
        "numero_guia": tracking_number,
        "carrier": carrier,
        "updated_at": to_iso_utc(now or utc_now(), name="now"),
    }
    error = _write_order(order_id, fields, "updating tracking info")
    if error:
        return ActionResult.fail(error)
    _invalidate(state, order_id, View.ORDERS, View.ORDER_DETAIL)
    return ActionResult.ok(order_id)


def update_order_notes(
    order_id: str,
    notes: str,
    *,
    state: Optional[AppState] = None,
    now: Optional[datetime] = None,
) -> ActionResult:
    fields = {"notas": notes, "updated_at": to_iso_utc(now or utc_now(), name="now")}
    error = _write_order(order_id, fields, "updating order notes")
    if error:
        return ActionResult.fail(error)
    _invalidate(state, order_id, View.ORDERS, View.ORDER_DETAIL)
    return ActionResult.ok(order_id)


__all__ = [
    "ORDER_NOT_FOUND",
    "TRACKING_REQUIRED",
    "mark_as_shipped",
    "status_update_fields",
    "sync_pipeline_stage",
    "update_order_notes",
    "update_order_status",
    "update_tracking_info",
]
