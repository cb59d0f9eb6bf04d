import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlmodel import Session

from . import models, records_service, restaurant_service, store
from .db import get_session
from .errors import BusinessRuleError
from .models import ALL_RESTAURANTS, SaleStatus
from .permissions import Permissions
from .security import (
    SESSION_ACTIVE_RESTAURANT_ID,
    SESSION_LOGGED_IN_RESTAURANT_ID,
    SESSION_SALE_TO_EDIT_ID,
    PermissionChecker,
    RequestContext,
    end_session,
    get_request_context,
    start_session,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _session_read(request: Request, context: RequestContext) -> models.SessionRead:
    return models.SessionRead(
        user=models.UserRead.model_validate(context.user),
        active_restaurant_id=context.active_restaurant_id,
        logged_in_restaurant_id=request.session.get(
            SESSION_LOGGED_IN_RESTAURANT_ID, context.user.restaurant_id
        ),
        sale_to_edit_id=context.sale_to_edit_id,
        permissions=sorted(context.permissions()),
    )


@router.post("/register", response_model=models.RestaurantRead)
def register(
    payload: models.RestaurantRegister,
    session: Session | None = Depends(get_session),
):
    """Sign up a restaurant with its first admin."""
    return restaurant_service.create_restaurant(session, payload.restaurant, payload.admin)


@router.post("/login", response_model=models.SessionRead)
def login(
    request: Request,
    credentials: models.LoginRequest,
    session: Session | None = Depends(get_session),
):
    store.require_session(session, "iniciar sesión")
    user = restaurant_service.authenticate(session, credentials.email, credentials.password)
    if user is None:
        logger.info(f"Failed login for {credentials.email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Correo electrónico o contraseña incorrectos.",
        )
    active_restaurant_id = start_session(request, user)
    logger.info(f"User {user.id} logged in (restaurant {active_restaurant_id})")
    return _session_read(request, RequestContext(user=user, active_restaurant_id=active_restaurant_id))


@router.post("/logout")
def logout(request: Request):
    end_session(request)
    return {"message": "Logged out successfully"}


@router.get("/session", response_model=models.SessionRead)
def read_session(
    request: Request,
    context: Annotated[RequestContext, Depends(get_request_context)],
):
    return _session_read(request, context)


@router.put("/session/restaurant", response_model=models.SessionRead)
def switch_restaurant(
    request: Request,
    payload: models.ActiveRestaurantUpdate,
    context: Annotated[RequestContext, Depends(PermissionChecker(Permissions.TENANTS_ALL))],
    session: Session | None = Depends(get_session),
):
    """Change the restaurant the superadmin is working on, or "all"."""
    if payload.restaurant_id != ALL_RESTAURANTS:
        if store.get_doc(session, "restaurants", payload.restaurant_id) is None:
            raise HTTPException(status_code=404, detail="Restaurante no encontrado.")

    request.session[SESSION_ACTIVE_RESTAURANT_ID] = payload.restaurant_id
    request.session.pop(SESSION_SALE_TO_EDIT_ID, None)
    context.active_restaurant_id = payload.restaurant_id
    context.sale_to_edit_id = None
    return _session_read(request, context)


@router.put("/session/sale-to-edit", response_model=models.SessionRead)
def set_sale_to_edit(
    request: Request,
    payload: models.SaleToEditUpdate,
    context: Annotated[RequestContext, Depends(PermissionChecker(Permissions.SALES_UPDATE))],
    session: Session | None = Depends(get_session),
):
    """Mark a saved order to be reopened in the order screen; null clears the mark."""
    if payload.sale_id is None:
        request.session.pop(SESSION_SALE_TO_EDIT_ID, None)
    else:
        sale = records_service.get_sale(session, context, payload.sale_id)
        if sale is None:
            raise HTTPException(status_code=404, detail="Comanda no encontrada.")
        if sale.status == SaleStatus.paid:
            raise BusinessRuleError(records_service.PAID_SALE_LOCKED)
        request.session[SESSION_SALE_TO_EDIT_ID] = payload.sale_id
    context.sale_to_edit_id = payload.sale_id
    return _session_read(request, context)
