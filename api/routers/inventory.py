"""
Inventory API Endpoints.

Endpoints for browsing the tire inventory snapshot and exporting it.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Response

from api.converters import inventory_item_response
from api.models import InventoryKpisResponse, InventoryListResponse
from domain.inventory import Brand, InventorySortField, StockFilter
from domain.time import utc_now
from services.csv_export_service import inventory_to_csv
from services.listing_service import filtered_inventory, inventory_page

logger = logging.getLogger(__name__)

router = APIRouter()


def _filters(brand: Optional[str], stock: str, sort: str):
    brand_filter = None
    if brand and brand != "all":
        try:
            brand_filter = Brand(brand.upper())
        except ValueError:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid brand. Must be 'TORNEL' or 'NEREUS', got '{brand}'"
            )
    try:
        stock_filter = StockFilter(stock)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid stock filter. Got '{stock}'")
    try:
        sort_field = InventorySortField(sort)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid sort field. Got '{sort}'")
    return brand_filter, stock_filter, sort_field


@router.get(
    "/inventory",
    response_model=InventoryListResponse,
    summary="Query Inventory",
    description="Search, filter, sort and page the inventory. KPIs cover the whole snapshot.",
)
def get_inventory(
    page: int = Query(1, ge=1, description="Page number (50 items per page)"),
    search: str = Query("", description="Description or size; '205/55R16' also matches '20555'"),
    brand: Optional[str] = Query(None, description="TORNEL or NEREUS"),
    stock: str = Query("all", description="all, low or out"),
    sort: str = Query("medida", description="descripcion, medida, precio_con_iva or existencia"),
    descending: bool = Query(False),
):
    """
    **Example usage:**
    - All inventory: `GET /api/v1/inventory`
    - Low stock NEREUS: `GET /api/v1/inventory?brand=NEREUS&stock=low`
    - Size search: `GET /api/v1/inventory?search=205/55R16`
    """
    brand_filter, stock_filter, sort_field = _filters(brand, stock, sort)
    try:
        result = inventory_page(
            page=page,
            search=search,
            brand=brand_filter,
            stock=stock_filter,
            sort_field=sort_field,
            descending=descending,
        )
    except Exception as e:
        logger.exception("Failed to query inventory")
        raise HTTPException(status_code=500, detail=f"Failed to query inventory: {str(e)}")

    return InventoryListResponse(
        items=[inventory_item_response(item) for item in result.items],
        page=result.page,
        total_pages=result.total_pages,
        total_count=result.total_count,
        kpis=InventoryKpisResponse(
            total_products=result.kpis.total_products,
            low_stock=result.kpis.low_stock,
            out_of_stock=result.kpis.out_of_stock,
            total_value=result.kpis.total_value,
        ),
    )


@router.get(
    "/inventory/export",
    summary="Export Inventory CSV",
)
def export_inventory(
    search: str = Query(""),
    brand: Optional[str] = Query(None),
    stock: str = Query("all"),
    sort: str = Query("medida"),
    descending: bool = Query(False),
):
    brand_filter, stock_filter, sort_field = _filters(brand, stock, sort)
    items = filtered_inventory(
        search=search,
        brand=brand_filter,
        stock=stock_filter,
        sort_field=sort_field,
        descending=descending,
    )
    filename = f"inventario-{utc_now().date().isoformat()}.csv"
    return Response(
        content=inventory_to_csv(items).encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
