"""
Quotes API Endpoints.

Endpoints for the quote builder: totals, WhatsApp text, PDF document and
payment link.
"""

import logging
from dataclasses import replace
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response

from api.converters import totals_response
from api.dependencies import get_current_user
from api.models import (
    PaymentLinkRequest as APIPaymentLinkRequest,
    PaymentLinkResponse,
    QuoteRequest as APIQuoteRequest,
    QuoteTextResponse,
    QuoteTotalsResponse,
)
from domain.quote import (
    CatalogLine,
    Discount,
    DiscountType,
    ExternalLine,
    QuoteRequest,
    calculate_quote,
    render_quote_text,
)
from domain.time import utc_now
from repositories.inventory_repository import get_items
from services.auth_service import CurrentUser
from services.payment_link_service import create_payment_link, request_from_quote
from services.quote_pdf_service import quote_filename, render_quote_pdf

logger = logging.getLogger(__name__)

router = APIRouter()


def _build_quote(request: APIQuoteRequest) -> QuoteRequest:
    """Resolve catalog lines against the inventory and validate the rest."""
    try:
        discount_type = DiscountType(request.discount.type)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid discount type. Must be 'none', 'percentage' or 'fixed', got '{request.discount.type}'"
        )

    snapshot_ids = [line.snapshot_id for line in request.catalog_lines]
    try:
        items = {item.snapshot_id: item for item in get_items(snapshot_ids)}
    except RuntimeError as e:
        raise HTTPException(status_code=500, detail=str(e))

    missing_ids = [sid for sid in snapshot_ids if sid not in items]
    if missing_ids:
        raise HTTPException(
            status_code=404,
            detail=f"Some inventory items not found: {missing_ids}"
        )

    try:
        return QuoteRequest(
            catalog_lines=[
                CatalogLine(
                    item=items[line.snapshot_id],
                    quantity=line.quantity,
                    price_override=line.price_override,
                )
                for line in request.catalog_lines
            ],
            external_lines=[
                ExternalLine(
                    line_id=line.line_id,
                    description=line.description,
                    price=line.price,
                    quantity=line.quantity,
                )
                for line in request.external_lines
            ],
            include_shipping=request.include_shipping,
            include_alignment=request.include_alignment,
            discount=Discount(type=discount_type, value=request.discount.value),
            customer_name=request.customer_name.strip(),
            customer_phone=request.customer_phone.strip(),
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post(
    "/quotes",
    response_model=QuoteTotalsResponse,
    summary="Calculate Quote",
    description="Subtotal, discount, shipping, alignment and total for the quote builder.",
)
def calculate(request: APIQuoteRequest):
    """
    **Example request:**
    ```json
    {
      "catalog_lines": [{"snapshot_id": "inv-205-55-16", "quantity": 1}],
      "include_shipping": true,
      "discount": {"type": "percentage", "value": "10"}
    }
    ```
    """
    return totals_response(calculate_quote(_build_quote(request)))


@router.post(
    "/quotes/text",
    response_model=QuoteTextResponse,
    summary="Quote WhatsApp Text",
)
def quote_text(request: APIQuoteRequest):
    quote = _build_quote(request)
    totals = calculate_quote(quote)
    return QuoteTextResponse(
        totals=totals_response(totals),
        text=render_quote_text(quote, totals, today=utc_now().date()),
    )


@router.post(
    "/quotes/pdf",
    summary="Quote PDF",
    description="Download the quote as a PDF document with prices shown before VAT.",
    responses={200: {"content": {"application/pdf": {}}}},
)
def quote_pdf(request: APIQuoteRequest):
    quote = _build_quote(request)
    if quote.is_empty:
        raise HTTPException(status_code=400, detail="La cotización no tiene productos")
    today = utc_now().date()
    try:
        content = render_quote_pdf(quote, calculate_quote(quote), today=today)
    except Exception as e:
        logger.exception("Failed to render quote PDF")
        raise HTTPException(status_code=500, detail=f"Failed to render quote PDF: {str(e)}")
    filename = quote_filename(quote.customer_name, today)
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post(
    "/quotes/payment-link",
    response_model=PaymentLinkResponse,
    summary="Create Payment Link",
    description="Create a pending order and its card payment link, sent to the customer's WhatsApp.",
)
def payment_link(
    request: APIPaymentLinkRequest,
    user: Optional[CurrentUser] = Depends(get_current_user),
):
    quote = _build_quote(request.quote)
    totals = calculate_quote(quote)
    link_request = request_from_quote(
        quote,
        totals,
        customer_email=request.customer_email,
        shipping_address=request.shipping_address,
    )
    if request.notes and request.notes.strip():
        link_request = replace(link_request, notes=request.notes.strip())

    result = create_payment_link(link_request, user=user)
    return PaymentLinkResponse(
        success=result.success,
        payment_link_url=result.payment_link_url,
        order_id=result.order_id,
        error=result.error,
    )
