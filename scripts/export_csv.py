#!/usr/bin/env python3
"""
CSV Export Script

Exports orders, inventory or the analytics report from the Supabase
database to CSV (UTF-8 with BOM, opens cleanly in Excel).

Usage:
    python export_csv.py orders --output pedidos.csv
    python export_csv.py orders --status pagado --output pagados.csv
    python export_csv.py inventory --stock low --output bajo_stock.csv
    python export_csv.py analytics --range 30d
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.analytics import AnalyticsRange
from domain.inventory import Brand, StockFilter
from domain.order import OrderStatus
from domain.time import utc_now
from services.analytics_service import analytics_snapshot
from services.csv_export_service import (
    analytics_filename,
    analytics_to_csv,
    inventory_to_csv,
    orders_to_csv,
)
from services.listing_service import filtered_inventory, filtered_orders


def write_export(content: str, output_path: str) -> None:
    # The BOM is part of the content, so no utf-8-sig here.
    with open(output_path, "w", newline="", encoding="utf-8") as f:
        f.write(content)


def export_orders(status: Optional[str], search: str) -> tuple[str, int]:
    orders = filtered_orders(
        search=search,
        status=OrderStatus(status) if status else None,
    )
    return orders_to_csv(orders), len(orders)


def export_inventory(brand: Optional[str], stock: str, search: str) -> tuple[str, int]:
    items = filtered_inventory(
        search=search,
        brand=Brand(brand) if brand else None,
        stock=StockFilter(stock),
    )
    return inventory_to_csv(items), len(items)


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Export dashboard data from Supabase to CSV",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Export all orders
  python export_csv.py orders --output pedidos.csv

  # Export orders waiting for shipment
  python export_csv.py orders --status pagado --output por_enviar.csv

  # Export out-of-stock NEREUS tires
  python export_csv.py inventory --brand NEREUS --stock out --output agotados.csv

  # Export the last 90 days analytics report (default file name)
  python export_csv.py analytics --range 90d
        """
    )

    parser.add_argument(
        "kind",
        choices=["orders", "inventory", "analytics"],
        help="What to export"
    )
    parser.add_argument("--output", "-o", help="Path to output CSV file")
    parser.add_argument(
        "--status",
        choices=[status.value for status in OrderStatus],
        help="Orders: filter by status"
    )
    parser.add_argument(
        "--brand",
        choices=[brand.value for brand in Brand],
        help="Inventory: filter by brand"
    )
    parser.add_argument(
        "--stock",
        choices=[stock.value for stock in StockFilter],
        default=StockFilter.ALL.value,
        help="Inventory: all, low or out"
    )
    parser.add_argument("--search", default="", help="Orders/inventory: free-text search")
    parser.add_argument(
        "--range",
        choices=[r.value for r in AnalyticsRange],
        default=AnalyticsRange.LAST_30_DAYS.value,
        help="Analytics: date range"
    )

    args = parser.parse_args()
    today = utc_now().date()

    try:
        print(f"Fetching {args.kind} from database...")

        if args.kind == "orders":
            content, count = export_orders(args.status, args.search)
            output = args.output or f"pedidos-{today.isoformat()}.csv"
        elif args.kind == "inventory":
            content, count = export_inventory(args.brand, args.stock, args.search)
            output = args.output or f"inventario-{today.isoformat()}.csv"
        else:
            date_range = AnalyticsRange(args.range)
            snapshot = analytics_snapshot(date_range)
            content = analytics_to_csv(snapshot, date_range, generated_on=today)
            count = snapshot.kpis.orders
            output = args.output or analytics_filename(date_range, today)

        if args.kind != "analytics" and count == 0:
            print("No rows found matching the specified filters")
            return 1

        write_export(content, output)

        print()
        print("=" * 60)
        print("EXPORT SUMMARY")
        print("=" * 60)
        if args.kind == "analytics":
            print(f"Range: {AnalyticsRange(args.range).label}")
            print(f"Paid orders in range: {count}")
        else:
            print(f"Rows exported: {count}")
        print(f"Output file: {output}")
        print("=" * 60)

        return 0

    except KeyboardInterrupt:
        print("\n\nExport interrupted by user")
        return 130

    except Exception as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
