"""
Restaurant Service

Restaurant and user actions:
- Restaurant creation together with its first admin (one transaction)
- Restaurant + admin updates (one transaction)
- Cascading restaurant deletion (one transaction, batched deletes)
- User management with the last-admin / self-deletion rules
"""

import logging
from collections import defaultdict

from sqlmodel import Session

from . import store
from .errors import BusinessRuleError, PermissionDeniedError
from .models import (
    AdminCreate,
    AdminUpdate,
    Restaurant,
    RestaurantCreate,
    RestaurantRead,
    RestaurantUpdate,
    User,
    UserCreate,
    UserRead,
    UserRole,
    UserUpdate,
)
from .security import RequestContext, get_password_hash, verify_password
from .settings import settings

logger = logging.getLogger(__name__)

ADMIN_ROLES = (UserRole.admin, UserRole.superadmin)

DEFAULT_RESTAURANT = RestaurantCreate(name="Sede Principal (Default)", address="Sistema", phone="000")


def _read(restaurant: Restaurant, users: list[User]) -> RestaurantRead:
    return RestaurantRead(
        id=restaurant.id,
        name=restaurant.name,
        address=restaurant.address,
        phone=restaurant.phone,
        created_at=restaurant.created_at,
        users=[UserRead.model_validate(u) for u in users],
    )


# ============ RESTAURANTS ============

def get_all_restaurants_with_users(session: Session | None) -> list[RestaurantRead]:
    """Every restaurant with its users nested."""
    restaurants = store.get_all(session, "restaurants")
    if not restaurants:
        return []
    users_by_restaurant: dict[str, list[User]] = defaultdict(list)
    for user in store.get_all(session, "users"):
        users_by_restaurant[user.restaurant_id].append(user)
    return [_read(r, users_by_restaurant[r.id]) for r in restaurants]


def get_restaurant_by_id(session: Session | None, restaurant_id: str) -> RestaurantRead | None:
    restaurant = store.get_doc(session, "restaurants", restaurant_id)
    if restaurant is None:
        return None
    return _read(restaurant, store.find_where(session, "users", restaurant_id=restaurant_id))


def create_restaurant(
    session: Session | None,
    restaurant_data: RestaurantCreate,
    admin_data: AdminCreate,
) -> RestaurantRead:
    """
    Create a restaurant and its initial admin.

    The very first restaurant's admin becomes the superadmin; later ones get
    the admin role. Duplicate names/emails are only checked once the system
    has at least one restaurant.
    """
    session = store.require_session(session, "crear el restaurante")
    existing = store.get_all(session, "restaurants")
    is_first_restaurant = not existing

    if not is_first_restaurant:
        if any(r.name == restaurant_data.name for r in existing):
            raise BusinessRuleError("Ya existe un restaurante con este nombre.")
        if store.find_where(session, "users", email=admin_data.email):
            raise BusinessRuleError("Este correo electrónico ya está registrado.")

    admin_role = UserRole.superadmin if is_first_restaurant else UserRole.admin

    with store.transaction(session, "crear el restaurante"):
        restaurant = store.add_doc(session, "restaurants", restaurant_data.model_dump(), commit=False)
        store.add_doc(
            session,
            "users",
            {
                "name": admin_data.name,
                "email": admin_data.email,
                "hashed_password": get_password_hash(admin_data.password),
                "role": admin_role,
                "restaurant_id": restaurant.id,
            },
            commit=False,
        )
        restaurant_id = restaurant.id

    logger.info(f"Restaurant {restaurant_id} created with initial {admin_role.value}")
    return get_restaurant_by_id(session, restaurant_id)


def update_restaurant(
    session: Session | None,
    restaurant_id: str,
    restaurant_data: RestaurantUpdate,
    admin_data: AdminUpdate | None = None,
) -> RestaurantRead:
    """Update restaurant fields and, optionally, its admin's email/password atomically."""
    with store.transaction(session, "actualizar el restaurante") as session:
        if session.get(Restaurant, restaurant_id) is None:
            raise store.DocumentNotFoundError("restaurants", restaurant_id, "Restaurante no encontrado.")

        store.update_doc(
            session,
            "restaurants",
            restaurant_id,
            restaurant_data.model_dump(exclude_unset=True, exclude_none=True),
            commit=False,
        )

        if admin_data is not None:
            admin = session.get(User, admin_data.id)
            if admin is None or admin.restaurant_id != restaurant_id:
                raise store.DocumentNotFoundError("users", admin_data.id, "Administrador no encontrado.")
            if admin_data.email != admin.email:
                _ensure_email_free(session, restaurant_id, admin_data.email)
            changes = {"email": admin_data.email}
            if admin_data.password:
                changes["hashed_password"] = get_password_hash(admin_data.password)
            store.update_doc(session, "users", admin.id, changes, commit=False)

    result = get_restaurant_by_id(session, restaurant_id)
    if result is None:
        raise store.DocumentNotFoundError(
            "restaurants", restaurant_id, "No se pudo obtener el restaurante actualizado."
        )
    return result


def delete_restaurant(
    session: Session | None,
    restaurant_id: str,
    batch_size: int | None = None,
    acting_user: User | None = None,
) -> None:
    """
    Delete a restaurant and everything it owns.

    Sub-collections are removed in batches and the restaurant last, inside a
    single transaction: a failure part-way leaves nothing deleted.
    """
    session = store.require_session(session, "eliminar el restaurante")
    batch_size = batch_size or settings.delete_batch_size

    restaurants = store.get_all(session, "restaurants")
    if len(restaurants) <= 1:
        raise BusinessRuleError("No se puede eliminar el único restaurante que queda.")
    if not any(r.id == restaurant_id for r in restaurants):
        raise store.DocumentNotFoundError("restaurants", restaurant_id, "Restaurante no encontrado.")
    if acting_user is not None and acting_user.restaurant_id == restaurant_id:
        raise BusinessRuleError("No puedes eliminar el restaurante al que pertenece tu cuenta.")

    with store.transaction(session, "eliminar el restaurante"):
        for collection in store.RESTAURANT_SUBCOLLECTIONS:
            store.delete_for_restaurant(session, collection, restaurant_id, batch_size)
        store.delete_doc(session, "restaurants", restaurant_id, commit=False)

    logger.info(f"Restaurant {restaurant_id} deleted with all its records")


def ensure_superadmin(
    session: Session | None, name: str, email: str, password: str
) -> tuple[User, bool]:
    """
    Make sure the system has a superadmin.

    Returns the existing one, or creates a new superadmin in the default
    restaurant, reusing it when it already exists. The boolean tells whether
    anything was created.
    """
    session = store.require_session(session, "crear el superadministrador")
    existing = store.find_where(session, "users", role=UserRole.superadmin)
    if existing:
        return existing[0], False
    if store.find_where(session, "users", email=email):
        raise BusinessRuleError("Este correo electrónico ya está registrado.")

    defaults = store.find_where(session, "restaurants", name=DEFAULT_RESTAURANT.name)
    with store.transaction(session, "crear el superadministrador"):
        if defaults:
            restaurant = defaults[0]
        else:
            restaurant = store.add_doc(session, "restaurants", DEFAULT_RESTAURANT.model_dump(), commit=False)
        user = store.add_doc(
            session,
            "users",
            {
                "name": name,
                "email": email,
                "hashed_password": get_password_hash(password),
                "role": UserRole.superadmin,
                "restaurant_id": restaurant.id,
            },
            commit=False,
        )
    session.refresh(user)
    logger.info(f"Default superadmin {email} created")
    return user, True


# ============ USERS ============

def authenticate(session: Session | None, email: str, password: str) -> User | None:
    """Find the user with this email whose password matches, in any restaurant."""
    for user in store.find_where(session, "users", email=email):
        if verify_password(password, user.hashed_password):
            return user
    return None


def list_users(session: Session | None, context: RequestContext) -> list[User]:
    users = store.get_for_restaurant(session, "users", context.active_restaurant_id)
    if context.role == UserRole.admin:
        users = [u for u in users if u.role != UserRole.superadmin]
    return users


def _ensure_email_free(session: Session, restaurant_id: str, email: str) -> None:
    if store.find_where(session, "users", restaurant_id=restaurant_id, email=email):
        raise BusinessRuleError("El correo electrónico ya existe en este restaurante.")


def _check_role_assignment(context: RequestContext, role: UserRole) -> None:
    # Only a superadmin hands out the admin and superadmin roles
    if role in ADMIN_ROLES and context.role != UserRole.superadmin:
        raise PermissionDeniedError("No puedes crear o asignar roles de administrador.")


def _get_managed_user(session: Session | None, context: RequestContext, user_id: str) -> User:
    """Load a user the caller is allowed to manage."""
    user = store.get_doc(session, "users", user_id)
    if user is None:
        raise store.DocumentNotFoundError("users", user_id, "Usuario no encontrado.")
    if context.role != UserRole.superadmin and user.restaurant_id != context.user.restaurant_id:
        raise store.DocumentNotFoundError("users", user_id, "Usuario no encontrado.")
    if (
        context.role == UserRole.admin
        and user.role in ADMIN_ROLES
        and user.id != context.user.id
    ):
        raise PermissionDeniedError("No tienes permiso para modificar a este usuario.")
    return user


def _ensure_admins_remain(session: Session, user: User, new_role: UserRole | None) -> None:
    """
    Reject losing the last superadmin of the system or the last admin of a
    restaurant. `new_role` is None when the user is being deleted.
    """
    removing = "eliminar" if new_role is None else "quitar el rol"
    if user.role == UserRole.superadmin and new_role != UserRole.superadmin:
        superadmins = store.find_where(session, "users", role=UserRole.superadmin)
        if len(superadmins) <= 1:
            raise BusinessRuleError(f"No se puede {removing} al último superadministrador.")
    if user.role == UserRole.admin and new_role not in ADMIN_ROLES:
        local_admins = [
            u for u in store.find_where(session, "users", restaurant_id=user.restaurant_id)
            if u.role in ADMIN_ROLES
        ]
        if len(local_admins) <= 1:
            raise BusinessRuleError(f"No se puede {removing} al último administrador del restaurante.")


def add_user(session: Session | None, context: RequestContext, data: UserCreate) -> User:
    session = store.require_session(session, "añadir el usuario")
    restaurant_id = context.require_restaurant()
    _check_role_assignment(context, data.role)
    _ensure_email_free(session, restaurant_id, data.email)

    return store.add_doc(
        session,
        "users",
        {
            "name": data.name,
            "email": data.email,
            "hashed_password": get_password_hash(data.password),
            "role": data.role,
            "restaurant_id": restaurant_id,
        },
    )


def update_user(
    session: Session | None, context: RequestContext, user_id: str, data: UserUpdate
) -> User:
    session = store.require_session(session, "actualizar el usuario")
    user = _get_managed_user(session, context, user_id)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)

    new_role = changes.get("role")
    if new_role is not None and new_role != user.role:
        if user.id == context.user.id:
            raise PermissionDeniedError("No puedes cambiar tu propio rol.")
        _check_role_assignment(context, new_role)
        _ensure_admins_remain(session, user, new_role)
    else:
        changes.pop("role", None)

    if "email" in changes and changes["email"] != user.email:
        _ensure_email_free(session, user.restaurant_id, changes["email"])

    password = changes.pop("password", None)
    if password:
        changes["hashed_password"] = get_password_hash(password)

    return store.update_doc(session, "users", user.id, changes)


def delete_user(session: Session | None, context: RequestContext, user_id: str) -> None:
    if user_id == context.user.id:
        raise BusinessRuleError("No puedes eliminar tu propia cuenta.")
    session = store.require_session(session, "eliminar el usuario")
    user = _get_managed_user(session, context, user_id)
    _ensure_admins_remain(session, user, None)
    store.delete_doc(session, "users", user.id)
