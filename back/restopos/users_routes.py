from typing import Annotated

from fastapi import APIRouter, Depends
from sqlmodel import Session

from . import models, restaurant_service
from .db import get_session
from .permissions import Permissions
from .security import PermissionChecker, RequestContext

router = APIRouter()


@router.get("/users", response_model=list[models.UserRead])
def list_users(
    context: Annotated[RequestContext, Depends(PermissionChecker(Permissions.USERS_READ))],
    session: Session | None = Depends(get_session),
):
    """List the users of the active restaurant."""
    return restaurant_service.list_users(session, context)


@router.post("/users", response_model=models.UserRead)
def create_user(
    user_in: models.UserCreate,
    context: Annotated[RequestContext, Depends(PermissionChecker(Permissions.USERS_MANAGE))],
    session: Session | None = Depends(get_session),
):
    return restaurant_service.add_user(session, context, user_in)


@router.put("/users/{user_id}", response_model=models.UserRead)
def update_user(
    user_id: str,
    user_update: models.UserUpdate,
    context: Annotated[RequestContext, Depends(PermissionChecker(Permissions.USERS_MANAGE))],
    session: Session | None = Depends(get_session),
):
    """Update a user (including role assignment)."""
    return restaurant_service.update_user(session, context, user_id, user_update)


@router.delete("/users/{user_id}")
def delete_user(
    user_id: str,
    context: Annotated[RequestContext, Depends(PermissionChecker(Permissions.USERS_MANAGE))],
    session: Session | None = Depends(get_session),
):
    restaurant_service.delete_user(session, context, user_id)
    return {"message": "User deleted"}
