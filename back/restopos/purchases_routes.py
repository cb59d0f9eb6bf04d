from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from . import models, records_service
from .db import get_session
from .permissions import Permissions
from .security import PermissionChecker, RequestContext

router = APIRouter()

ReadPurchases = Annotated[RequestContext, Depends(PermissionChecker(Permissions.PURCHASES_READ))]
ManagePurchases = Annotated[RequestContext, Depends(PermissionChecker(Permissions.PURCHASES_MANAGE))]


@router.get("/purchases", response_model=list[models.PurchaseRead])
def list_purchases(
    context: ReadPurchases,
    session: Session | None = Depends(get_session),
):
    """Stock purchases of the active restaurant, newest first."""
    purchases = records_service.list_purchases(session, context.active_restaurant_id)
    return sorted(purchases, key=lambda p: p.purchase_date, reverse=True)


@router.get("/purchases/{purchase_id}", response_model=models.PurchaseRead)
def get_purchase(
    purchase_id: str,
    context: ReadPurchases,
    session: Session | None = Depends(get_session),
):
    purchase = records_service.get_purchase(session, context, purchase_id)
    if purchase is None:
        raise HTTPException(status_code=404, detail="Compra no encontrada.")
    return purchase


@router.post("/purchases", response_model=models.PurchaseRead)
def create_purchase(
    purchase_in: models.PurchaseCreate,
    context: ManagePurchases,
    session: Session | None = Depends(get_session),
):
    return records_service.add_purchase(session, context, purchase_in)


@router.put("/purchases/{purchase_id}", response_model=models.PurchaseRead)
def update_purchase(
    purchase_id: str,
    purchase_update: models.PurchaseUpdate,
    context: ManagePurchases,
    session: Session | None = Depends(get_session),
):
    return records_service.update_purchase(session, context, purchase_id, purchase_update)


@router.delete("/purchases/{purchase_id}")
def delete_purchase(
    purchase_id: str,
    context: ManagePurchases,
    session: Session | None = Depends(get_session),
):
    records_service.delete_purchase(session, context, purchase_id)
    return {"message": "Purchase deleted"}
