"""
Orders API Endpoints.

Endpoints for the orders table, order detail, status actions, manual
in-store sales and CSV export.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from api.converters import action_response, order_response, session_response
from api.dependencies import get_state, raise_for_result
from api.models import (
    ActionResponse,
    ManualSaleRequest as APIManualSaleRequest,
    NotesRequest,
    OrderKpisResponse,
    OrderListResponse,
    OrderResponse,
    SessionResponse,
    ShipRequest,
    StatusUpdateRequest,
)
from domain.order import OrderStatus, PaymentMethod
from domain.order_list import OrderSortField
from domain.time import utc_now
from repositories.order_repository import get_order
from services.app_state import AppState
from services.csv_export_service import orders_to_csv
from services.listing_service import filtered_orders, orders_page
from services.manual_sale_service import (
    ManualSaleItem,
    ManualSaleRequest,
    create_manual_sale,
    find_sessions_by_phone,
)
from services.order_service import (
    ORDER_NOT_FOUND,
    mark_as_shipped,
    update_order_notes,
    update_order_status,
    update_tracking_info,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _status_filter(status: Optional[str]) -> Optional[OrderStatus]:
    if not status or status == "all":
        return None
    try:
        return OrderStatus(status)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid status. Got '{status}'")


def _sort_field(sort: str) -> OrderSortField:
    try:
        return OrderSortField(sort)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid sort field. Got '{sort}'")


@router.get(
    "/orders",
    response_model=OrderListResponse,
    summary="List Orders",
    description="Search, filter, sort and page the orders table. KPIs cover all orders.",
)
def list_orders(
    page: int = Query(1, ge=1, description="Page number (20 orders per page)"),
    search: str = Query("", description="Matches customer name, phones or order id"),
    status: Optional[str] = Query(None, description="Filter by status, e.g. 'pagado'"),
    sort: str = Query("created_at", description="created_at, total or nombre_cliente"),
    descending: bool = Query(True),
):
    """
    **Example usage:**
    - Latest orders: `GET /api/v1/orders`
    - Paid orders by total: `GET /api/v1/orders?status=pagado&sort=total`
    """
    status_filter = _status_filter(status)
    sort_field = _sort_field(sort)
    try:
        result = orders_page(
            page=page,
            search=search,
            status=status_filter,
            sort_field=sort_field,
            descending=descending,
        )
    except Exception as e:
        logger.exception("Failed to list orders")
        raise HTTPException(status_code=500, detail=f"Failed to list orders: {str(e)}")

    kpis = result.kpis
    return OrderListResponse(
        items=[order_response(order) for order in result.items],
        page=result.page,
        total_pages=result.total_pages,
        total_count=result.total_count,
        kpis=OrderKpisResponse(
            month_sales=kpis.month_sales,
            month_orders=kpis.month_orders,
            pending_payment=kpis.pending_payment,
            pending_shipment=kpis.pending_shipment,
            average_ticket=kpis.average_ticket,
            cancellation_rate=kpis.cancellation_rate,
        ),
    )


@router.get(
    "/orders/export",
    summary="Export Orders CSV",
    description="Download the filtered orders as CSV (UTF-8 with BOM).",
)
def export_orders(
    search: str = Query(""),
    status: Optional[str] = Query(None),
    sort: str = Query("created_at"),
    descending: bool = Query(True),
):
    orders = filtered_orders(
        search=search,
        status=_status_filter(status),
        sort_field=_sort_field(sort),
        descending=descending,
    )
    filename = f"pedidos-{utc_now().date().isoformat()}.csv"
    return Response(
        content=orders_to_csv(orders).encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get(
    "/orders/sessions-by-phone",
    response_model=List[SessionResponse],
    summary="Find Sessions By Phone",
    description="Chat sessions whose phone matches, to link a manual sale to a lead.",
)
def sessions_by_phone(phone: str = Query("", description="Full or partial phone number")):
    return [session_response(session) for session in find_sessions_by_phone(phone)]


@router.post(
    "/orders/manual-sale",
    response_model=ActionResponse,
    status_code=201,
    summary="Register Manual Sale",
    description="Create a paid order for an in-store sale and optionally close the linked lead.",
)
def register_manual_sale(request: APIManualSaleRequest, state: AppState = Depends(get_state)):
    try:
        payment_method = PaymentMethod(request.payment_method)
    except ValueError:
        raise HTTPException(
            status_code=400, detail=f"Invalid payment_method. Got '{request.payment_method}'"
        )

    result = create_manual_sale(
        ManualSaleRequest(
            phone=request.phone,
            customer_name=request.customer_name,
            items=[
                ManualSaleItem(
                    snapshot_id=item.snapshot_id,
                    description=item.description,
                    size=item.size,
                    price_with_tax=item.price_with_tax,
                    quantity=item.quantity,
                )
                for item in request.items
            ],
            payment_method=payment_method,
            notes=request.notes,
            session_id=request.session_id,
        ),
        state=state,
    )
    raise_for_result(result)
    return action_response(result)


@router.get(
    "/orders/{order_id}",
    response_model=OrderResponse,
    summary="Get Order",
)
def get_order_detail(order_id: str):
    try:
        order = get_order(order_id)
    except RuntimeError as e:
        raise HTTPException(status_code=500, detail=str(e))
    if order is None:
        raise HTTPException(status_code=404, detail=ORDER_NOT_FOUND)
    return order_response(order)


@router.post(
    "/orders/{order_id}/status",
    response_model=ActionResponse,
    summary="Update Order Status",
    description="Write the new status and its timestamp, sync the lead's pipeline stage and notify the customer.",
)
def change_status(
    order_id: str,
    request: StatusUpdateRequest,
    state: AppState = Depends(get_state),
):
    """
    **Example request:**
    ```json
    {"status": "entregado"}
    ```
    """
    result = update_order_status(order_id, request.status, state=state)
    raise_for_result(result, not_found=ORDER_NOT_FOUND)
    return action_response(result)


@router.post(
    "/orders/{order_id}/ship",
    response_model=ActionResponse,
    summary="Mark Order As Shipped",
)
def ship_order(order_id: str, request: ShipRequest, state: AppState = Depends(get_state)):
    result = mark_as_shipped(order_id, request.tracking_number, request.carrier, state=state)
    raise_for_result(result, not_found=ORDER_NOT_FOUND)
    return action_response(result)


@router.put(
    "/orders/{order_id}/tracking",
    response_model=ActionResponse,
    summary="Update Tracking Info",
)
def change_tracking(order_id: str, request: ShipRequest, state: AppState = Depends(get_state)):
    result = update_tracking_info(order_id, request.tracking_number, request.carrier, state=state)
    raise_for_result(result, not_found=ORDER_NOT_FOUND)
    return action_response(result)


@router.put(
    "/orders/{order_id}/notes",
    response_model=ActionResponse,
    summary="Update Order Notes",
)
def change_notes(order_id: str, request: NotesRequest, state: AppState = Depends(get_state)):
    result = update_order_notes(order_id, request.notes, state=state)
    raise_for_result(result, not_found=ORDER_NOT_FOUND)
    return action_response(result)
