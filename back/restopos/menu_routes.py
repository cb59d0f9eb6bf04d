from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from . import models, records_service
from .db import get_session
from .permissions import Permissions
from .security import PermissionChecker, RequestContext

router = APIRouter()

ManageCategories = Annotated[RequestContext, Depends(PermissionChecker(Permissions.CATEGORIES_MANAGE))]
ManageProducts = Annotated[RequestContext, Depends(PermissionChecker(Permissions.PRODUCTS_MANAGE))]


# ============ CATEGORIES ============

@router.get("/categories", response_model=list[models.CategoryRead])
def list_categories(
    context: Annotated[RequestContext, Depends(PermissionChecker(Permissions.CATEGORIES_READ))],
    session: Session | None = Depends(get_session),
):
    """Categories of the active restaurant; under "all" they are merged by name."""
    return records_service.list_categories(session, context.active_restaurant_id)


@router.post("/categories", response_model=models.CategoryRead)
def create_category(
    category_in: models.CategoryCreate,
    context: ManageCategories,
    session: Session | None = Depends(get_session),
):
    return records_service.add_category(session, context, category_in)


@router.put("/categories/{category_id}", response_model=models.CategoryRead)
def update_category(
    category_id: str,
    category_update: models.CategoryUpdate,
    context: ManageCategories,
    session: Session | None = Depends(get_session),
):
    return records_service.update_category(session, context, category_id, category_update)


@router.delete("/categories/{category_id}")
def delete_category(
    category_id: str,
    context: ManageCategories,
    session: Session | None = Depends(get_session),
):
    records_service.delete_category(session, context, category_id)
    return {"message": "Category deleted"}


# ============ PRODUCTS ============

@router.get("/products", response_model=list[models.ProductRead])
def list_products(
    context: Annotated[RequestContext, Depends(PermissionChecker(Permissions.PRODUCTS_READ))],
    session: Session | None = Depends(get_session),
):
    return records_service.list_products(session, context.active_restaurant_id)


@router.get("/products/{product_id}", response_model=models.ProductRead)
def get_product(
    product_id: str,
    context: Annotated[RequestContext, Depends(PermissionChecker(Permissions.PRODUCTS_READ))],
    session: Session | None = Depends(get_session),
):
    product = records_service.get_product(session, context, product_id)
    if product is None:
        raise HTTPException(status_code=404, detail="Producto no encontrado.")
    return product


@router.post("/products", response_model=models.ProductRead)
def create_product(
    product_in: models.ProductCreate,
    context: ManageProducts,
    session: Session | None = Depends(get_session),
):
    return records_service.add_product(session, context, product_in)


@router.put("/products/{product_id}", response_model=models.ProductRead)
def update_product(
    product_id: str,
    product_update: models.ProductUpdate,
    context: ManageProducts,
    session: Session | None = Depends(get_session),
):
    return records_service.update_product(session, context, product_id, product_update)


@router.delete("/products/{product_id}")
def delete_product(
    product_id: str,
    context: ManageProducts,
    session: Session | None = Depends(get_session),
):
    records_service.delete_product(session, context, product_id)
    return {"message": "Product deleted"}
