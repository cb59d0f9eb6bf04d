import logging
from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from sqlmodel import Session

from . import models, records_service, reporting, store
from .db import get_session
from .permissions import Permissions
from .security import SESSION_SALE_TO_EDIT_ID, PermissionChecker, RequestContext

logger = logging.getLogger(__name__)

router = APIRouter()

ReadSales = Annotated[RequestContext, Depends(PermissionChecker(Permissions.SALES_READ))]
UpdateSales = Annotated[RequestContext, Depends(PermissionChecker(Permissions.SALES_UPDATE))]


@router.get("/sales", response_model=list[models.SaleRead])
def list_sales(
    context: ReadSales,
    session: Session | None = Depends(get_session),
    start: date | None = Query(default=None, description="First day (inclusive)"),
    end: date | None = Query(default=None, description="Last day (inclusive)"),
):
    """
    Sales history of the active restaurant, newest first.
    Waiters only get the sales they took.
    """
    sales = records_service.list_sales(session, context)
    if start is not None or end is not None:
        sales = reporting.sales_in_range(sales, start or date.min, end or date.max)
    return sales


@router.get("/sales/{sale_id}", response_model=models.SaleRead)
def get_sale(
    sale_id: str,
    context: ReadSales,
    session: Session | None = Depends(get_session),
):
    sale = records_service.get_sale(session, context, sale_id)
    if sale is None:
        raise HTTPException(status_code=404, detail="Comanda no encontrada.")
    return sale


@router.post("/sales", response_model=models.SaleRead)
def create_sale(
    sale_in: models.SaleCreate,
    context: Annotated[RequestContext, Depends(PermissionChecker(Permissions.SALES_CREATE))],
    session: Session | None = Depends(get_session),
):
    """Save an order as pending, snapshotting the ordered products."""
    sale = records_service.add_sale(session, context, sale_in)
    logger.info(f"Sale {sale.id} saved for table {sale.table_number} by user {context.user.id}")
    return sale


@router.put("/sales/{sale_id}", response_model=models.SaleRead)
def update_sale(
    request: Request,
    sale_id: str,
    sale_update: models.SaleUpdate,
    context: UpdateSales,
    session: Session | None = Depends(get_session),
):
    sale = records_service.update_sale(session, context, sale_id, sale_update)
    # Editing is done; the order screen goes back to a fresh order
    if request.session.get(SESSION_SALE_TO_EDIT_ID) == sale_id:
        request.session.pop(SESSION_SALE_TO_EDIT_ID, None)
    return sale


@router.put("/sales/{sale_id}/status", response_model=models.SaleRead)
def update_sale_status(
    sale_id: str,
    status_update: models.SaleStatusUpdate,
    context: Annotated[RequestContext, Depends(PermissionChecker(Permissions.SALES_PAY))],
    session: Session | None = Depends(get_session),
):
    return records_service.update_sale_status(session, context, sale_id, status_update.status)


@router.post("/sales/bulk-delete")
def delete_sales(
    payload: models.SaleBulkDelete,
    context: Annotated[RequestContext, Depends(PermissionChecker(Permissions.SALES_DELETE))],
    session: Session | None = Depends(get_session),
):
    deleted = records_service.delete_sales(session, context, payload.ids)
    logger.info(f"Deleted {deleted} sales for restaurant {context.active_restaurant_id}")
    return {"deleted": deleted}


@router.get("/sales/{sale_id}/ticket")
def get_sale_ticket(
    sale_id: str,
    context: ReadSales,
    session: Session | None = Depends(get_session),
):
    """Download the ticket copy of a sale as PDF."""
    from .pdf_generator import generate_sale_ticket_pdf

    sale = records_service.get_sale(session, context, sale_id)
    if sale is None:
        raise HTTPException(status_code=404, detail="Comanda no encontrada.")

    restaurant = store.get_doc(session, "restaurants", sale.restaurant_id)
    sale_data = models.SaleRead.model_validate(sale).model_dump(mode="json")
    pdf_buffer = generate_sale_ticket_pdf(sale_data, restaurant.name if restaurant else "")

    return StreamingResponse(
        pdf_buffer,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="ticket-{sale.id}.pdf"'},
    )
