from dataclasses import dataclass
from typing import Annotated

import bcrypt
from fastapi import Depends, HTTPException, Request, status
from sqlmodel import Session

from .db import get_session
from .errors import RestaurantNotSelectedError
from .models import ALL_RESTAURANTS, User, UserRole
from .permissions import PermissionService
from .store import DatabaseNotConnectedError

# Keys stored in the signed session cookie
SESSION_USER_ID = "user_id"
SESSION_ACTIVE_RESTAURANT_ID = "active_restaurant_id"
SESSION_LOGGED_IN_RESTAURANT_ID = "logged_in_restaurant_id"
SESSION_SALE_TO_EDIT_ID = "sale_to_edit_id"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"), hashed_password.encode("utf-8")
        )
    except (ValueError, TypeError):
        return False


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


@dataclass
class RequestContext:
    """Who is calling and which restaurant they are working on, for one request."""
    user: User
    active_restaurant_id: str
    sale_to_edit_id: str | None = None

    @property
    def role(self) -> UserRole:
        return self.user.role

    @property
    def is_all_restaurants(self) -> bool:
        return self.active_restaurant_id == ALL_RESTAURANTS

    def require_restaurant(self) -> str:
        """Restaurant id for writes; the "all" view cannot own new records."""
        if self.is_all_restaurants:
            raise RestaurantNotSelectedError()
        return self.active_restaurant_id

    def permissions(self) -> set[str]:
        return PermissionService.get_role_permissions(self.role)


def start_session(request: Request, user: User) -> str:
    """Store the logged-in user in the session and pick the starting restaurant."""
    active_restaurant_id = (
        ALL_RESTAURANTS if user.role == UserRole.superadmin else user.restaurant_id
    )
    request.session.clear()
    request.session[SESSION_USER_ID] = user.id
    request.session[SESSION_ACTIVE_RESTAURANT_ID] = active_restaurant_id
    request.session[SESSION_LOGGED_IN_RESTAURANT_ID] = user.restaurant_id
    return active_restaurant_id


def end_session(request: Request) -> None:
    request.session.clear()


def get_request_context(
    request: Request,
    session: Annotated[Session | None, Depends(get_session)],
) -> RequestContext:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
    )
    user_id = request.session.get(SESSION_USER_ID)
    if not user_id:
        raise credentials_exception
    if session is None:
        raise DatabaseNotConnectedError("verificar la sesión")

    user = session.get(User, user_id)
    if user is None:
        # The account was deleted while the session was alive
        end_session(request)
        raise credentials_exception

    active_restaurant_id = request.session.get(SESSION_ACTIVE_RESTAURANT_ID) or user.restaurant_id
    if user.role != UserRole.superadmin:
        # Only superadmins may look at other restaurants or at "all"
        active_restaurant_id = user.restaurant_id

    return RequestContext(
        user=user,
        active_restaurant_id=active_restaurant_id,
        sale_to_edit_id=request.session.get(SESSION_SALE_TO_EDIT_ID),
    )


class PermissionChecker:
    """Dependency that resolves the request context and checks one permission."""

    def __init__(self, required_permission: str):
        self.required_permission = required_permission

    def __call__(
        self, context: Annotated[RequestContext, Depends(get_request_context)]
    ) -> RequestContext:
        if not PermissionService.has_permission(context.role, self.required_permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not authorized",
            )
        return context
