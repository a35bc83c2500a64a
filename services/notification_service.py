"""
Customer notifications for order status changes.

Calls the `order-notification` edge function, which sends the WhatsApp
message. Notification is best effort: the status change has already been
stored, so failures are logged and reported in the result, never raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from domain.order import NOTIFIABLE_STATUSES, OrderStatus
from repositories.edge_functions import ORDER_NOTIFICATION, invoke_edge_function

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class NotificationResult:
    sent: bool
    error: Optional[str] = None


def send_status_notification(
    order_id: str,
    new_status: OrderStatus,
    *,
    tracking_number: Optional[str] = None,
    carrier: Optional[str] = None,
) -> NotificationResult:
    """
    Notify the customer of `new_status` (pagado, enviado, entregado only).

    Response contract: ``{success, skipped?, error?}``. A skipped
    notification counts as not sent.
    """

    status = OrderStatus(new_status)
    if status not in NOTIFIABLE_STATUSES:
        return NotificationResult(sent=False)

    payload: Dict[str, Any] = {"pedido_id": order_id, "nuevo_estado": status.value}
    if tracking_number is not None:
        payload["numero_guia"] = tracking_number
        payload["carrier"] = carrier or ""

    try:
        response = invoke_edge_function(ORDER_NOTIFICATION, payload)
    except Exception as exc:
        logger.warning(
            "Order notification failed",
            extra={"order_id": order_id, "status": status.value, "error": str(exc)},
        )
        return NotificationResult(sent=False, error=str(exc))

    body = response.body
    if body.get("success"):
        logger.info(
            "Order notification sent",
            extra={"order_id": order_id, "status": status.value, "skipped": bool(body.get("skipped"))},
        )
        return NotificationResult(sent=not body.get("skipped"))

    error = str(body.get("error") or f"status {response.status_code}")
    logger.warning(
        "Order notification rejected",
        extra={"order_id": order_id, "status": status.value, "error": error},
    )
    return NotificationResult(sent=False, error=error)


__all__ = ["NotificationResult", "send_status_notification"]
