from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from . import models, records_service
from .db import get_session
from .permissions import Permissions
from .security import PermissionChecker, RequestContext

router = APIRouter()

ReadCustomers = Annotated[RequestContext, Depends(PermissionChecker(Permissions.CUSTOMERS_READ))]
ManageCustomers = Annotated[RequestContext, Depends(PermissionChecker(Permissions.CUSTOMERS_MANAGE))]


@router.get("/customers", response_model=list[models.CustomerRead])
def list_customers(
    context: ReadCustomers,
    session: Session | None = Depends(get_session),
):
    return records_service.list_customers(session, context.active_restaurant_id)


@router.get("/customers/{customer_id}", response_model=models.CustomerRead)
def get_customer(
    customer_id: str,
    context: ReadCustomers,
    session: Session | None = Depends(get_session),
):
    customer = records_service.get_customer(session, context, customer_id)
    if customer is None:
        raise HTTPException(status_code=404, detail="Cliente no encontrado.")
    return customer


@router.post("/customers", response_model=models.CustomerRead)
def create_customer(
    customer_in: models.CustomerCreate,
    context: ManageCustomers,
    session: Session | None = Depends(get_session),
):
    return records_service.add_customer(session, context, customer_in)


@router.put("/customers/{customer_id}", response_model=models.CustomerRead)
def update_customer(
    customer_id: str,
    customer_update: models.CustomerUpdate,
    context: ManageCustomers,
    session: Session | None = Depends(get_session),
):
    return records_service.update_customer(session, context, customer_id, customer_update)


@router.delete("/customers/{customer_id}")
def delete_customer(
    customer_id: str,
    context: Annotated[RequestContext, Depends(PermissionChecker(Permissions.CUSTOMERS_DELETE))],
    session: Session | None = Depends(get_session),
):
    records_service.delete_customer(session, context, customer_id)
    return {"message": "Customer deleted"}
