from datetime import date, datetime, timedelta, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from . import models, records_service, reporting, store
from .db import get_session
from .errors import BusinessRuleError
from .permissions import Permissions
from .security import PermissionChecker, RequestContext

router = APIRouter()

# Default window of the sales chart, today included
DEFAULT_RANGE_DAYS = 30
MAX_RANGE_DAYS = 366

ReadReports = Annotated[RequestContext, Depends(PermissionChecker(Permissions.REPORTS_READ))]


@router.get("/reports/stock", response_model=list[models.StockRow])
def stock_report(
    context: Annotated[RequestContext, Depends(PermissionChecker(Permissions.STOCK_READ))],
    session: Session | None = Depends(get_session),
    search: str | None = Query(default=None, description="Filter by product or category name"),
):
    """Current stock per product, lowest first."""
    restaurant_id = context.active_restaurant_id
    rows = reporting.compute_stock(
        store.get_for_restaurant(session, "products", restaurant_id),
        store.get_for_restaurant(session, "sales", restaurant_id),
        store.get_for_restaurant(session, "purchases", restaurant_id),
    )
    return reporting.filter_stock(rows, search)


@router.get("/reports/sales-by-day", response_model=list[models.DailySales])
def sales_by_day_report(
    context: ReadReports,
    session: Session | None = Depends(get_session),
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
):
    """Daily sales totals with every day of the range present."""
    end = end or datetime.now(timezone.utc).date()
    start = start or end - timedelta(days=DEFAULT_RANGE_DAYS - 1)
    if abs((end - start).days) >= MAX_RANGE_DAYS:
        raise BusinessRuleError(f"El rango de fechas no puede superar {MAX_RANGE_DAYS} días.")
    sales = records_service.list_sales(session, context)
    return reporting.sales_by_day(sales, start, end)


@router.get("/reports/dashboard", response_model=models.DashboardResponse)
def dashboard_report(
    context: ReadReports,
    session: Session | None = Depends(get_session),
):
    restaurant_id = context.active_restaurant_id
    sales = records_service.list_sales(session, context)
    products = records_service.list_products(session, restaurant_id)
    customers = records_service.list_customers(session, restaurant_id)

    ranking = reporting.product_sales(sales, products)
    return models.DashboardResponse(
        kpis=reporting.sales_kpis(sales, customers),
        best_selling=reporting.best_selling(ranking),
        worst_selling=reporting.worst_selling(ranking),
        sales_by_category=reporting.sales_by_category(sales, products),
    )
