from enum import Enum
from typing import Set

from .models import UserRole


class Permissions(str, Enum):
    # Reports & Stock
    REPORTS_READ = "reports:read"
    STOCK_READ = "stock:read"

    # Sales / Orders
    SALES_READ = "sales:read"
    SALES_READ_ALL = "sales:read_all"  # Otherwise only the user's own sales
    SALES_CREATE = "sales:create"
    SALES_UPDATE = "sales:update"
    SALES_PAY = "sales:pay"  # Mark orders paid
    SALES_DELETE = "sales:delete"

    # Menu
    PRODUCTS_READ = "products:read"
    PRODUCTS_MANAGE = "products:manage"  # Create, Update, Delete
    CATEGORIES_READ = "categories:read"
    CATEGORIES_MANAGE = "categories:manage"

    # Back office
    PURCHASES_READ = "purchases:read"
    PURCHASES_MANAGE = "purchases:manage"
    CUSTOMERS_READ = "customers:read"
    CUSTOMERS_MANAGE = "customers:manage"
    CUSTOMERS_DELETE = "customers:delete"

    # Users & Restaurants
    USERS_READ = "users:read"
    USERS_MANAGE = "users:manage"
    RESTAURANTS_MANAGE = "restaurants:manage"
    TENANTS_ALL = "tenants:all"  # May use the "all" restaurant id


_SELLER = {
    Permissions.REPORTS_READ,
    Permissions.STOCK_READ,
    Permissions.SALES_READ,
    Permissions.SALES_READ_ALL,
    Permissions.SALES_CREATE,
    Permissions.SALES_UPDATE,
    Permissions.SALES_PAY,
    Permissions.PRODUCTS_READ,
    Permissions.PURCHASES_READ,
    Permissions.PURCHASES_MANAGE,
    Permissions.CUSTOMERS_READ,
    Permissions.CUSTOMERS_MANAGE,
}

_ADMIN = _SELLER | {
    Permissions.SALES_DELETE,
    Permissions.PRODUCTS_MANAGE,
    Permissions.CATEGORIES_READ,
    Permissions.CATEGORIES_MANAGE,
    Permissions.CUSTOMERS_DELETE,
    Permissions.USERS_READ,
    Permissions.USERS_MANAGE,
}

ROLE_PERMISSIONS: dict[UserRole, frozenset[Permissions]] = {
    UserRole.superadmin: frozenset(Permissions),
    UserRole.admin: frozenset(_ADMIN),
    UserRole.seller: frozenset(_SELLER),
    UserRole.waiter: frozenset({
        Permissions.SALES_READ,
        Permissions.SALES_CREATE,
        Permissions.SALES_UPDATE,
        Permissions.PRODUCTS_READ,
    }),
}


class PermissionService:
    @staticmethod
    def get_role_permissions(role: UserRole) -> Set[str]:
        """Get all permissions granted to a role."""
        return {p.value for p in ROLE_PERMISSIONS.get(role, frozenset())}

    @staticmethod
    def has_permission(role: UserRole, required_permission: str) -> bool:
        """Check if a role grants a specific permission."""
        return Permissions(required_permission).value in PermissionService.get_role_permissions(role)
