from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlmodel import Session

from . import models, restaurant_service
from .db import get_session
from .models import ALL_RESTAURANTS
from .permissions import Permissions
from .security import SESSION_ACTIVE_RESTAURANT_ID, PermissionChecker, RequestContext

router = APIRouter()

ManageRestaurants = Annotated[RequestContext, Depends(PermissionChecker(Permissions.RESTAURANTS_MANAGE))]


@router.get("/restaurants", response_model=list[models.RestaurantRead])
def list_restaurants(
    context: ManageRestaurants,
    session: Session | None = Depends(get_session),
):
    """All restaurants with their users."""
    return restaurant_service.get_all_restaurants_with_users(session)


@router.get("/restaurants/{restaurant_id}", response_model=models.RestaurantRead)
def get_restaurant(
    restaurant_id: str,
    context: ManageRestaurants,
    session: Session | None = Depends(get_session),
):
    restaurant = restaurant_service.get_restaurant_by_id(session, restaurant_id)
    if restaurant is None:
        raise HTTPException(status_code=404, detail="Restaurante no encontrado.")
    return restaurant


@router.post("/restaurants", response_model=models.RestaurantRead)
def create_restaurant(
    payload: models.RestaurantRegister,
    context: ManageRestaurants,
    session: Session | None = Depends(get_session),
):
    return restaurant_service.create_restaurant(session, payload.restaurant, payload.admin)


@router.put("/restaurants/{restaurant_id}", response_model=models.RestaurantRead)
def update_restaurant(
    restaurant_id: str,
    payload: models.RestaurantUpdateRequest,
    context: ManageRestaurants,
    session: Session | None = Depends(get_session),
):
    """Update restaurant details and, optionally, its admin's email/password."""
    return restaurant_service.update_restaurant(
        session, restaurant_id, payload.restaurant, payload.admin
    )


@router.delete("/restaurants/{restaurant_id}")
def delete_restaurant(
    request: Request,
    restaurant_id: str,
    context: ManageRestaurants,
    session: Session | None = Depends(get_session),
):
    """Delete a restaurant with all its users and records."""
    restaurant_service.delete_restaurant(session, restaurant_id, acting_user=context.user)
    if request.session.get(SESSION_ACTIVE_RESTAURANT_ID) == restaurant_id:
        request.session[SESSION_ACTIVE_RESTAURANT_ID] = ALL_RESTAURANTS
    return {"message": "Restaurant deleted"}
