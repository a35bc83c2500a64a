"""
Inventory repository (persistence).

Read-only access to the `inventario` snapshot table. The catalog is written
by an external ingestion process; nothing here mutates it.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, List, Mapping

from domain.inventory import InventoryItem
from repositories.client import get_supabase, run_rows

# Supabase table name for inventory snapshots.
_INVENTORY_TABLE: str = "inventario"

# Dashboard alert thresholds: "low" here means 1..3 units left.
ALERT_LOW_STOCK_BELOW = 4
ALERT_LIMIT = 5


def _row_to_item(row: Mapping[str, Any]) -> InventoryItem:
    """Convert a Supabase row into an InventoryItem."""

    return InventoryItem(
        snapshot_id=str(row["snapshot_id"]),
        description=row.get("descripcion"),
        tag=row.get("tag"),
        size=row.get("medida"),
        price=Decimal(str(row.get("precio") or 0)),
        price_with_tax=Decimal(str(row.get("precio_con_iva") or 0)),
        stock=int(row.get("existencia") or 0),
        category=row.get("categoria"),
    )


def list_inventory() -> List[InventoryItem]:
    """All inventory items ordered by size."""

    query = get_supabase().table(_INVENTORY_TABLE).select("*").order("medida")
    return [_row_to_item(row) for row in run_rows(query, "list inventory")]


def get_items(snapshot_ids: List[str]) -> List[InventoryItem]:
    if not snapshot_ids:
        return []
    query = get_supabase().table(_INVENTORY_TABLE).select("*").in_("snapshot_id", snapshot_ids)
    return [_row_to_item(row) for row in run_rows(query, "fetch inventory items")]


def list_low_stock(limit: int = ALERT_LIMIT) -> List[InventoryItem]:
    """Items with 1..3 units, fewest first."""

    query = (
        get_supabase()
        .table(_INVENTORY_TABLE)
        .select("*")
        .gt("existencia", 0)
        .lt("existencia", ALERT_LOW_STOCK_BELOW)
        .order("existencia")
        .limit(limit)
    )
    return [_row_to_item(row) for row in run_rows(query, "list low stock")]


def list_out_of_stock() -> List[InventoryItem]:
    query = get_supabase().table(_INVENTORY_TABLE).select("*").eq("existencia", 0)
    return [_row_to_item(row) for row in run_rows(query, "list out of stock")]


__all__ = [
    "ALERT_LIMIT",
    "ALERT_LOW_STOCK_BELOW",
    "get_items",
    "list_inventory",
    "list_low_stock",
    "list_out_of_stock",
]
