"""
Reporting

Pure aggregation over records that are already loaded in memory:
- current stock per product (purchased minus sold)
- dense per-day sales totals
- per-product revenue ranking, best/worst sellers and revenue per category
- dashboard KPIs

Nothing here is persisted; every report is recomputed on read.
"""

from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Iterable

from .models import (
    CategorySales,
    DailySales,
    Product,
    ProductSalesRow,
    Purchase,
    Sale,
    SalesKpis,
    StockRow,
)

LOW_STOCK_THRESHOLD = 10
TOP_N = 5
UNKNOWN_CATEGORY = "unknown"

STOCK_OUT = "out of stock"
STOCK_LOW = "low stock"
STOCK_OK = "in stock"


def _decimal(value: Any) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _item_field(item: Any, field: str, default: Any = None) -> Any:
    # Items come back from the JSON column as dicts, or as SaleItem models
    if isinstance(item, dict):
        return item.get(field, default)
    return getattr(item, field, default)


def sale_day(sale_date: datetime) -> date:
    """Calendar day of a sale. Naive datetimes are taken as UTC."""
    if sale_date.tzinfo is None:
        sale_date = sale_date.replace(tzinfo=timezone.utc)
    return sale_date.astimezone(timezone.utc).date()


# ============ STOCK ============

def classify_stock(current_stock: int) -> str:
    if current_stock <= 0:
        return STOCK_OUT
    if current_stock <= LOW_STOCK_THRESHOLD:
        return STOCK_LOW
    return STOCK_OK


def compute_stock(
    products: Iterable[Product],
    sales: Iterable[Sale],
    purchases: Iterable[Purchase],
) -> list[StockRow]:
    """
    Stock view, one row per product, most critical first.

    A purchase counts for the product it is linked to; unlinked purchases
    count for every product whose name matches theirs ignoring case.
    Purchases matching no product are ignored. Negative stock is reported as is.
    """
    purchased_by_id: dict[str, int] = defaultdict(int)
    purchased_by_name: dict[str, int] = defaultdict(int)
    for purchase in purchases:
        if purchase.product_id:
            purchased_by_id[purchase.product_id] += purchase.quantity
        else:
            purchased_by_name[purchase.product_name.lower()] += purchase.quantity

    sold: dict[str, int] = defaultdict(int)
    for sale in sales:
        for item in sale.items or []:
            sold[_item_field(item, "id")] += int(_item_field(item, "quantity", 0))

    rows = []
    for product in products:
        initial_stock = purchased_by_id[product.id] + purchased_by_name[product.name.lower()]
        units_sold = sold[product.id]
        current_stock = initial_stock - units_sold
        rows.append(
            StockRow(
                product_id=product.id,
                product_name=product.name,
                category=product.category,
                initial_stock=initial_stock,
                units_sold=units_sold,
                current_stock=current_stock,
                status=classify_stock(current_stock),
            )
        )
    rows.sort(key=lambda row: row.current_stock)
    return rows


def filter_stock(rows: list[StockRow], search: str | None) -> list[StockRow]:
    if not search:
        return rows
    needle = search.lower()
    return [
        row for row in rows
        if needle in row.product_name.lower() or needle in row.category.lower()
    ]


# ============ SALES ============

def sales_in_range(sales: Iterable[Sale], start: date, end: date) -> list[Sale]:
    return [s for s in sales if start <= sale_day(s.sale_date) <= end]


def sales_by_day(sales: Iterable[Sale], start: date, end: date) -> list[DailySales]:
    """Total sold per day from start to end inclusive, with empty days as zero."""
    if end < start:
        start, end = end, start

    totals: dict[date, Decimal] = defaultdict(Decimal)
    for sale in sales_in_range(sales, start, end):
        totals[sale_day(sale.sale_date)] += _decimal(sale.total_price)

    series = []
    day = start
    while day <= end:
        series.append(DailySales(day=day, sales=float(totals[day])))
        day += timedelta(days=1)
    return series


def product_sales(sales: list[Sale], products: list[Product]) -> list[ProductSalesRow]:
    """Revenue per sold product, highest first."""
    if not sales or not products:
        return []

    categories = {p.id: p.category for p in products}
    revenue: dict[str, Decimal] = {}
    names: dict[str, str] = {}
    for sale in sales:
        for item in sale.items or []:
            item_id = _item_field(item, "id")
            amount = _decimal(_item_field(item, "price", 0)) * int(_item_field(item, "quantity", 0))
            if item_id not in revenue:
                revenue[item_id] = Decimal("0")
                names[item_id] = _item_field(item, "name", "")
            revenue[item_id] += amount

    rows = [
        ProductSalesRow(
            id=item_id,
            name=names[item_id],
            category=categories.get(item_id) or UNKNOWN_CATEGORY,
            sales=float(total),
        )
        for item_id, total in revenue.items()
    ]
    rows.sort(key=lambda row: row.sales, reverse=True)
    return rows


def best_selling(ranking: list[ProductSalesRow]) -> list[ProductSalesRow]:
    return ranking[:TOP_N]


def worst_selling(ranking: list[ProductSalesRow]) -> list[ProductSalesRow]:
    # Only products outside the top group; lowest first
    return list(reversed(ranking[TOP_N:][-TOP_N:]))


def sales_by_category(sales: list[Sale], products: list[Product]) -> list[CategorySales]:
    """Revenue per category. Items whose product no longer exists are skipped."""
    if not sales or not products:
        return []

    categories = {p.id: p.category for p in products}
    totals: dict[str, Decimal] = {}
    for sale in sales:
        for item in sale.items or []:
            category = categories.get(_item_field(item, "id"))
            if category is None:
                continue
            amount = _decimal(_item_field(item, "price", 0)) * int(_item_field(item, "quantity", 0))
            totals[category] = totals.get(category, Decimal("0")) + amount

    return [CategorySales(name=name, value=float(value)) for name, value in totals.items()]


def sales_kpis(sales: list[Sale], customers: list[Any]) -> SalesKpis:
    total_revenue = sum((_decimal(s.total_price) for s in sales), Decimal("0"))
    total_sales = len(sales)
    avg_ticket = total_revenue / total_sales if total_sales else Decimal("0")
    return SalesKpis(
        total_revenue=float(total_revenue),
        total_sales=total_sales,
        avg_ticket=float(round(avg_ticket, 2)),
        total_customers=len(customers),
    )
