"""
Domain object to API model conversion shared by the routers.
"""

from domain.inventory import InventoryItem
from domain.message import Message
from domain.order import ActionResult, Order
from domain.quote import QuoteTotals
from domain.session import ChatSession

from api.models import (
    ActionResponse,
    InventoryItemResponse,
    MessageResponse,
    OrderItemResponse,
    OrderResponse,
    QuoteTotalsResponse,
    SessionResponse,
)


def action_response(result: ActionResult) -> ActionResponse:
    return ActionResponse(
        success=result.success,
        error=result.error,
        order_id=result.order_id,
        details=dict(result.details),
    )


def order_response(order: Order) -> OrderResponse:
    return OrderResponse(
        order_id=order.order_id,
        phone=order.contact_phone,
        customer_name=order.customer_name,
        items=[
            OrderItemResponse(
                size=item.size,
                brand=item.brand,
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
            )
            for item in order.items
        ],
        subtotal=order.subtotal,
        shipping_cost=order.shipping_cost,
        total=order.total,
        status=order.status.value,
        status_label=order.status.label,
        next_statuses=sorted(status.value for status in order.next_statuses()),
        payment_method=order.payment_method.value,
        origin=order.origin.value if order.origin else None,
        customer_email=order.customer_email,
        shipping_address=order.shipping_address,
        carrier=order.carrier,
        tracking_number=order.tracking_number,
        notes=order.notes,
        payment_link_url=order.payment_link_url,
        paid_at=order.paid_at,
        shipped_at=order.shipped_at,
        delivered_at=order.delivered_at,
        created_at=order.created_at,
    )


def session_response(session: ChatSession) -> SessionResponse:
    return SessionResponse(
        session_id=session.session_id,
        phone=session.phone,
        pipeline_stage=session.pipeline_stage.value,
        pipeline_stage_label=session.pipeline_stage.label,
        customer_name=session.customer_name,
        customer_phone=session.customer_phone,
        selected_size=session.selected_size,
        last_message=session.last_message,
        last_message_at=session.last_message_at,
        unread_count=session.unread_count,
        attended_by=session.attended_by.value,
        handoff_reason=session.handoff_reason,
        assigned_agent_id=session.assigned_agent_id,
        order_id=session.order_id,
        created_at=session.created_at,
    )


def message_response(message: Message) -> MessageResponse:
    return MessageResponse(
        message_id=message.message_id,
        type=message.type.value,
        content=message.content,
        created_at=message.created_at,
        read=message.read,
    )


def inventory_item_response(item: InventoryItem) -> InventoryItemResponse:
    return InventoryItemResponse(
        snapshot_id=item.snapshot_id,
        description=item.description,
        size=item.size,
        brand=item.brand.value,
        price=item.price,
        price_with_tax=item.price_with_tax,
        stock=item.stock,
        category=item.category,
    )


def totals_response(totals: QuoteTotals) -> QuoteTotalsResponse:
    return QuoteTotalsResponse(
        catalog_subtotal=totals.catalog_subtotal,
        external_subtotal=totals.external_subtotal,
        subtotal=totals.subtotal,
        discount=totals.discount,
        shipping=totals.shipping,
        alignment=totals.alignment,
        total=totals.total,
        tire_count=totals.tire_count,
        external_count=totals.external_count,
        free_shipping=totals.free_shipping,
    )
