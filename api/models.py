"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ============================================================================
# Shared Models
# ============================================================================

class ActionResponse(BaseModel):
    """Outcome of a mutating action."""
    success: bool
    error: Optional[str] = None
    order_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "error": None,
                "order_id": "7f0c1f9e-2b1a-4b8e-9d55-1c2a3b4c5d6e",
                "details": {"status": "enviado", "pipeline_stage": "pagado", "notification_sent": True}
            }
        }


# ============================================================================
# Order Models
# ============================================================================

class OrderItemResponse(BaseModel):
    """Single line of an order."""
    size: str
    brand: str
    description: str
    quantity: int
    unit_price: Decimal


class OrderResponse(BaseModel):
    """Order with its line items."""
    order_id: str
    phone: str
    customer_name: str
    items: List[OrderItemResponse]
    subtotal: Decimal
    shipping_cost: Decimal
    total: Decimal
    status: str
    status_label: str
    next_statuses: List[str]
    payment_method: str
    origin: Optional[str] = None
    customer_email: str = ""
    shipping_address: str = ""
    carrier: Optional[str] = None
    tracking_number: Optional[str] = None
    notes: Optional[str] = None
    payment_link_url: Optional[str] = None
    paid_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        json_schema_extra = {
            "example": {
                "order_id": "7f0c1f9e-2b1a-4b8e-9d55-1c2a3b4c5d6e",
                "phone": "5512345678",
                "customer_name": "Juan Perez",
                "items": [
                    {
                        "size": "205/55R16",
                        "brand": "TORNEL",
                        "description": "LLANTA 205/55R16 TORNEL",
                        "quantity": 2,
                        "unit_price": "1499.00"
                    }
                ],
                "subtotal": "2998.00",
                "shipping_cost": "0.00",
                "total": "2998.00",
                "status": "pagado",
                "status_label": "Pagado",
                "next_statuses": ["enviado", "cancelado"],
                "payment_method": "stripe"
            }
        }


class OrderKpisResponse(BaseModel):
    """KPIs of the orders table."""
    month_sales: Decimal
    month_orders: int
    pending_payment: int
    pending_shipment: int
    average_ticket: Decimal
    cancellation_rate: float


class OrderListResponse(BaseModel):
    """One page of the orders table."""
    items: List[OrderResponse]
    page: int
    total_pages: int
    total_count: int
    kpis: OrderKpisResponse


class StatusUpdateRequest(BaseModel):
    """Request to move an order to a new status."""
    status: str = Field(..., description="Target status, e.g. 'pagado' or 'entregado'")

    class Config:
        json_schema_extra = {"example": {"status": "entregado"}}


class ShipRequest(BaseModel):
    """Tracking data for a shipped order."""
    tracking_number: str = Field("", description="Carrier tracking number")
    carrier: str = Field("", description="Carrier name")

    class Config:
        json_schema_extra = {"example": {"tracking_number": "1234567890", "carrier": "Estafeta"}}


class NotesRequest(BaseModel):
    """Internal order notes."""
    notes: str = ""


class ManualSaleItemRequest(BaseModel):
    snapshot_id: str
    description: str
    size: str
    price_with_tax: Decimal = Field(..., gt=0)
    quantity: int = Field(1, ge=1)


class ManualSaleRequest(BaseModel):
    """In-store sale registered from the dashboard."""
    phone: str = ""
    customer_name: str = ""
    items: List[ManualSaleItemRequest] = Field(default_factory=list)
    payment_method: str = "efectivo_sucursal"
    notes: Optional[str] = None
    session_id: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "phone": "5512345678",
                "customer_name": "Juan Perez",
                "items": [
                    {
                        "snapshot_id": "inv-205-55-16",
                        "description": "LLANTA 205/55R16 TORNEL",
                        "size": "205/55R16",
                        "price_with_tax": "1499.00",
                        "quantity": 4
                    }
                ],
                "payment_method": "efectivo_sucursal"
            }
        }


# ============================================================================
# Session Models
# ============================================================================

class SessionResponse(BaseModel):
    """Chat session (lead)."""
    session_id: str
    phone: str
    pipeline_stage: str
    pipeline_stage_label: str
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    selected_size: Optional[str] = None
    last_message: Optional[str] = None
    last_message_at: Optional[datetime] = None
    unread_count: int = 0
    attended_by: str
    handoff_reason: Optional[str] = None
    assigned_agent_id: Optional[str] = None
    order_id: Optional[str] = None
    created_at: Optional[datetime] = None


class MessageResponse(BaseModel):
    message_id: str
    type: str
    content: str
    created_at: datetime
    read: bool = False


class ConversationResponse(BaseModel):
    """A session with its message history."""
    session: SessionResponse
    messages: List[MessageResponse]
    assigned_agent_name: Optional[str] = None


class ReplyRequest(BaseModel):
    message: str = ""


class AttentionItemResponse(BaseModel):
    session_id: str
    phone: str
    customer_name: Optional[str] = None
    pipeline_stage: Optional[str] = None
    last_message: Optional[str] = None
    unread_count: int = 0
    handoff_reason: Optional[str] = None
    attended_by: Optional[str] = None
    wait_minutes: int = 0
    wait: str
    priority: int = 0


# ============================================================================
# Pipeline Models
# ============================================================================

class PipelineColumnResponse(BaseModel):
    stage: str
    label: str
    sessions: List[SessionResponse]


class PipelineResponse(BaseModel):
    """Kanban columns in pipeline order."""
    date_filter: str
    columns: List[PipelineColumnResponse]


class MoveRequest(BaseModel):
    """Drop target: a stage id or the id of a card in the target column."""
    over_id: str

    class Config:
        json_schema_extra = {"example": {"over_id": "cotizado"}}


class NotificationResponse(BaseModel):
    level: str
    message: str


class MoveResponse(BaseModel):
    success: bool
    session: Optional[SessionResponse] = None
    notification: Optional[NotificationResponse] = None


# ============================================================================
# Quote Models
# ============================================================================

class QuoteCatalogLine(BaseModel):
    snapshot_id: str
    quantity: int = Field(1, ge=1)
    price_override: Optional[Decimal] = Field(None, gt=0)


class QuoteExternalLine(BaseModel):
    line_id: str
    description: str
    price: Decimal = Field(..., gt=0)
    quantity: int = Field(1, ge=1)


class QuoteDiscount(BaseModel):
    type: str = "none"
    value: Decimal = Decimal("0")


class QuoteRequest(BaseModel):
    """Quote builder input."""
    catalog_lines: List[QuoteCatalogLine] = Field(default_factory=list)
    external_lines: List[QuoteExternalLine] = Field(default_factory=list)
    include_shipping: bool = False
    include_alignment: bool = False
    discount: QuoteDiscount = Field(default_factory=QuoteDiscount)
    customer_name: str = ""
    customer_phone: str = ""

    class Config:
        json_schema_extra = {
            "example": {
                "catalog_lines": [{"snapshot_id": "inv-205-55-16", "quantity": 1}],
                "external_lines": [],
                "include_shipping": True,
                "include_alignment": False,
                "discount": {"type": "percentage", "value": "10"},
                "customer_name": "Juan Perez",
                "customer_phone": "5512345678"
            }
        }


class QuoteTotalsResponse(BaseModel):
    """Computed quote totals."""
    catalog_subtotal: Decimal
    external_subtotal: Decimal
    subtotal: Decimal
    discount: Decimal
    shipping: Decimal
    alignment: Decimal
    total: Decimal
    tire_count: int
    external_count: int
    free_shipping: bool

    class Config:
        json_schema_extra = {
            "example": {
                "catalog_subtotal": "1499.00",
                "external_subtotal": "0",
                "subtotal": "1499.00",
                "discount": "150",
                "shipping": "250",
                "alignment": "0",
                "total": "1599.00",
                "tire_count": 1,
                "external_count": 0,
                "free_shipping": False
            }
        }


class QuoteTextResponse(BaseModel):
    totals: QuoteTotalsResponse
    text: str


class PaymentLinkRequest(BaseModel):
    """Quote plus the delivery details needed for a payment link."""
    quote: QuoteRequest
    customer_email: Optional[str] = None
    shipping_address: Optional[str] = None
    notes: Optional[str] = None


class PaymentLinkResponse(BaseModel):
    success: bool
    payment_link_url: Optional[str] = None
    order_id: Optional[str] = None
    error: Optional[str] = None


# ============================================================================
# Inventory Models
# ============================================================================

class InventoryItemResponse(BaseModel):
    """Single inventory item in API response."""
    snapshot_id: str
    description: Optional[str] = None
    size: Optional[str] = None
    brand: str
    price: Decimal
    price_with_tax: Decimal
    stock: int
    category: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "snapshot_id": "inv-205-55-16",
                "description": "LLANTA 205/55R16 TORNEL",
                "size": "205/55R16",
                "brand": "TORNEL",
                "price": "1292.24",
                "price_with_tax": "1499.00",
                "stock": 8,
                "category": "Llantas"
            }
        }


class InventoryKpisResponse(BaseModel):
    total_products: int
    low_stock: int
    out_of_stock: int
    total_value: Decimal


class InventoryListResponse(BaseModel):
    """One page of the inventory table."""
    items: List[InventoryItemResponse]
    page: int
    total_pages: int
    total_count: int
    kpis: InventoryKpisResponse


# ============================================================================
# Dashboard Models
# ============================================================================

class DailySales(BaseModel):
    day: date
    total: Decimal


class DashboardResponse(BaseModel):
    """Landing page summary."""
    pending: Dict[str, int]
    sales: Dict[str, Any]
    last_days: List[DailySales]
    low_stock: List[InventoryItemResponse]
    out_of_stock: List[InventoryItemResponse]
    out_of_stock_total: int
    attention: List[Dict[str, Any]]


# ============================================================================
# Auth Models
# ============================================================================

class LoginRequest(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    user_id: str
    email: Optional[str] = None


class LoginResponse(BaseModel):
    """Tokens to send back as `Authorization: Bearer <access_token>`."""
    user: UserResponse
    access_token: str
    refresh_token: Optional[str] = None


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    status_code: int

    class Config:
        json_schema_extra = {
            "example": {
                "error": "Invalid request",
                "detail": "Pedido no encontrado",
                "status_code": 404
            }
        }
