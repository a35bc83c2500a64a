"""
Analytics and Dashboard API Endpoints.

Read-only reports: the analytics snapshot for a date range, its CSV
report, and the landing-page dashboard summary.
"""

import logging
from dataclasses import asdict, replace

from fastapi import APIRouter, HTTPException, Query, Response

from api.converters import inventory_item_response
from api.models import DailySales, DashboardResponse
from domain.analytics import AnalyticsRange
from domain.time import utc_now
from services.analytics_service import analytics_snapshot, dashboard_summary
from services.csv_export_service import analytics_filename, analytics_to_csv, rounded_kpis

logger = logging.getLogger(__name__)

router = APIRouter()


def _range(value: str) -> AnalyticsRange:
    try:
        return AnalyticsRange(value)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid range. Must be '7d', '30d', '90d' or 'all', got '{value}'"
        )


@router.get(
    "/analytics",
    summary="Analytics Snapshot",
    description="KPIs, revenue by day, funnel, top sizes, payment methods, bot vs staff and activity.",
)
def get_analytics(range: str = Query("30d", description="7d, 30d, 90d or all")):
    date_range = _range(range)
    snapshot = analytics_snapshot(date_range)
    payload = asdict(replace(snapshot, kpis=rounded_kpis(snapshot.kpis)))
    payload["range"] = date_range.value
    payload["range_label"] = date_range.label
    payload["bot"]["conversion_rate"] = snapshot.bot.conversion_rate
    payload["agent"]["conversion_rate"] = snapshot.agent.conversion_rate
    return payload


@router.get(
    "/analytics/export",
    summary="Export Analytics CSV",
    description="Sectioned analytics report (UTF-8 with BOM).",
)
def export_analytics(range: str = Query("30d", description="7d, 30d, 90d or all")):
    date_range = _range(range)
    today = utc_now().date()
    content = analytics_to_csv(analytics_snapshot(date_range), date_range, generated_on=today)
    filename = analytics_filename(date_range, today)
    return Response(
        content=content.encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get(
    "/dashboard",
    response_model=DashboardResponse,
    summary="Dashboard Summary",
    description="Pending actions, sales with period comparison, last 7 days, stock alerts and attention list.",
)
def get_dashboard():
    try:
        summary = dashboard_summary()
    except Exception as e:
        logger.exception("Failed to build dashboard")
        raise HTTPException(status_code=500, detail=f"Failed to build dashboard: {str(e)}")

    return DashboardResponse(
        pending=asdict(summary.pending),
        sales=asdict(summary.sales),
        last_days=[DailySales(day=day, total=total) for day, total in summary.last_days],
        low_stock=[inventory_item_response(item) for item in summary.low_stock],
        out_of_stock=[inventory_item_response(item) for item in summary.out_of_stock],
        out_of_stock_total=summary.out_of_stock_total,
        attention=summary.attention,
    )
