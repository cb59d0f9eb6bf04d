"""
Records Service

Per-restaurant records behind the back office: menu (categories, products),
customers, purchases and sales. Every call receives the request context so
reads and writes stay inside the active restaurant.
"""

import logging
from decimal import Decimal
from typing import Any

from sqlmodel import Session

from . import store
from .errors import BusinessRuleError
from .models import (
    ALL_RESTAURANTS,
    DEFAULT_CUSTOMER_NAME,
    CategoryCreate,
    CategoryRead,
    CategoryUpdate,
    CustomerCreate,
    CustomerUpdate,
    Product,
    ProductCreate,
    ProductUpdate,
    PurchaseCreate,
    PurchaseUpdate,
    Sale,
    SaleCreate,
    SaleItem,
    SaleLine,
    SaleStatus,
    SaleUpdate,
    utcnow,
)
from .permissions import Permissions, PermissionService
from .security import RequestContext

logger = logging.getLogger(__name__)

PAID_SALE_LOCKED = "Esta comanda ya está pagada y no se puede modificar."


# ============ SCOPED HELPERS ============

def _in_scope(context: RequestContext, doc: Any) -> bool:
    return context.is_all_restaurants or doc.restaurant_id == context.active_restaurant_id


def _get_scoped(session: Session | None, context: RequestContext, collection: str, doc_id: str) -> Any | None:
    doc = store.get_doc(session, collection, doc_id)
    if doc is None or not _in_scope(context, doc):
        return None
    return doc


def _require_scoped(session: Session | None, context: RequestContext, collection: str, doc_id: str) -> Any:
    store.require_session(session, "actualizar")
    doc = _get_scoped(session, context, collection, doc_id)
    if doc is None:
        raise store.DocumentNotFoundError(collection, doc_id)
    return doc


def _ensure_unique_name(
    session: Session | None,
    collection: str,
    restaurant_id: str,
    name: str,
    message: str,
    exclude_id: str | None = None,
) -> None:
    """Names are unique per restaurant, ignoring case."""
    wanted = name.strip().lower()
    for doc in store.get_for_restaurant(session, collection, restaurant_id):
        if doc.id != exclude_id and doc.name.strip().lower() == wanted:
            raise BusinessRuleError(message)


def _add_scoped(session: Session | None, context: RequestContext, collection: str, data: dict) -> Any:
    store.require_session(session, "añadir")
    data["restaurant_id"] = context.require_restaurant()
    return store.add_doc(session, collection, data)


def _update_scoped(
    session: Session | None, context: RequestContext, collection: str, doc_id: str, data: dict
) -> Any:
    _require_scoped(session, context, collection, doc_id)
    return store.update_doc(session, collection, doc_id, data)


def _delete_scoped(session: Session | None, context: RequestContext, collection: str, doc_id: str) -> None:
    store.require_session(session, "eliminar")
    doc = _get_scoped(session, context, collection, doc_id)
    if doc is None:
        raise store.DocumentNotFoundError(collection, doc_id)
    store.delete_doc(session, collection, doc_id)


# ============ CATEGORIES ============

def list_categories(session: Session | None, restaurant_id: str) -> list[CategoryRead]:
    """
    Categories of a restaurant. With "all", names are merged across
    restaurants and each row uses its name as id (display only, not persistable).
    """
    categories = store.get_for_restaurant(session, "categories", restaurant_id)
    if restaurant_id != ALL_RESTAURANTS:
        return [CategoryRead.model_validate(c) for c in categories]

    unique_names = list(dict.fromkeys(c.name for c in categories))
    return [CategoryRead(id=name, name=name, restaurant_id=ALL_RESTAURANTS) for name in unique_names]


def add_category(session: Session | None, context: RequestContext, data: CategoryCreate):
    _ensure_unique_name(
        session, "categories", context.require_restaurant(), data.name,
        f'Ya existe una categoría con el nombre "{data.name}".',
    )
    return _add_scoped(session, context, "categories", data.model_dump())


def update_category(session: Session | None, context: RequestContext, category_id: str, data: CategoryUpdate):
    category = _require_scoped(session, context, "categories", category_id)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    if "name" in changes:
        _ensure_unique_name(
            session, "categories", category.restaurant_id, changes["name"],
            f'Ya existe una categoría con el nombre "{changes["name"]}".',
            exclude_id=category_id,
        )
    return store.update_doc(session, "categories", category_id, changes)


def delete_category(session: Session | None, context: RequestContext, category_id: str) -> None:
    _delete_scoped(session, context, "categories", category_id)


# ============ PRODUCTS ============

def list_products(session: Session | None, restaurant_id: str) -> list[Product]:
    return store.get_for_restaurant(session, "products", restaurant_id)


def get_product(session: Session | None, context: RequestContext, product_id: str) -> Product | None:
    return _get_scoped(session, context, "products", product_id)


def add_product(session: Session | None, context: RequestContext, data: ProductCreate) -> Product:
    _ensure_unique_name(
        session, "products", context.require_restaurant(), data.name,
        f'Ya existe un producto con el nombre "{data.name}".',
    )
    return _add_scoped(session, context, "products", data.model_dump())


def update_product(
    session: Session | None, context: RequestContext, product_id: str, data: ProductUpdate
) -> Product:
    product = _require_scoped(session, context, "products", product_id)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    if "name" in changes:
        _ensure_unique_name(
            session, "products", product.restaurant_id, changes["name"],
            f'Ya existe un producto con el nombre "{changes["name"]}".',
            exclude_id=product_id,
        )
    return store.update_doc(session, "products", product_id, changes)


def delete_product(session: Session | None, context: RequestContext, product_id: str) -> None:
    # Past sales keep their own snapshot of the product.
    _delete_scoped(session, context, "products", product_id)


# ============ CUSTOMERS ============

def list_customers(session: Session | None, restaurant_id: str) -> list:
    return store.get_for_restaurant(session, "customers", restaurant_id)


def get_customer(session: Session | None, context: RequestContext, customer_id: str):
    return _get_scoped(session, context, "customers", customer_id)


def add_customer(session: Session | None, context: RequestContext, data: CustomerCreate):
    return _add_scoped(session, context, "customers", data.model_dump())


def update_customer(session: Session | None, context: RequestContext, customer_id: str, data: CustomerUpdate):
    return _update_scoped(
        session, context, "customers", customer_id, data.model_dump(exclude_unset=True, exclude_none=True)
    )


def delete_customer(session: Session | None, context: RequestContext, customer_id: str) -> None:
    _delete_scoped(session, context, "customers", customer_id)


# ============ PURCHASES ============

def _check_linked_product(session: Session | None, restaurant_id: str, product_id: str | None) -> None:
    if product_id is None:
        return
    product = store.get_doc(session, "products", product_id)
    if product is None or product.restaurant_id != restaurant_id:
        raise BusinessRuleError("El producto indicado no existe en este restaurante.")


def list_purchases(session: Session | None, restaurant_id: str) -> list:
    return store.get_for_restaurant(session, "purchases", restaurant_id)


def get_purchase(session: Session | None, context: RequestContext, purchase_id: str):
    return _get_scoped(session, context, "purchases", purchase_id)


def add_purchase(session: Session | None, context: RequestContext, data: PurchaseCreate):
    store.require_session(session, "registrar la compra")
    restaurant_id = context.require_restaurant()
    _check_linked_product(session, restaurant_id, data.product_id)
    values = data.model_dump()
    if values["purchase_date"] is None:
        values["purchase_date"] = utcnow()
    return _add_scoped(session, context, "purchases", values)


def update_purchase(session: Session | None, context: RequestContext, purchase_id: str, data: PurchaseUpdate):
    purchase = _require_scoped(session, context, "purchases", purchase_id)
    changes = data.model_dump(exclude_unset=True)
    # product_id may be cleared explicitly; other fields ignore nulls
    changes = {k: v for k, v in changes.items() if v is not None or k == "product_id"}
    if changes.get("product_id"):
        _check_linked_product(session, purchase.restaurant_id, changes["product_id"])
    return store.update_doc(session, "purchases", purchase_id, changes)


def delete_purchase(session: Session | None, context: RequestContext, purchase_id: str) -> None:
    _delete_scoped(session, context, "purchases", purchase_id)


def backfill_purchase_product_ids(session: Session | None, restaurant_id: str) -> int:
    """
    Link unlinked purchases to their product using the stock name rule
    (same restaurant, exact name ignoring case). Purchases whose name matches
    no product, or more than one, are left untouched.
    """
    session = store.require_session(session, "enlazar las compras")
    products_by_key: dict[tuple[str, str], list[Product]] = {}
    for product in store.get_for_restaurant(session, "products", restaurant_id):
        key = (product.restaurant_id, product.name.lower())
        products_by_key.setdefault(key, []).append(product)

    linked = 0
    with store.transaction(session, "enlazar las compras"):
        for purchase in store.get_for_restaurant(session, "purchases", restaurant_id):
            if purchase.product_id:
                continue
            matches = products_by_key.get((purchase.restaurant_id, purchase.product_name.lower()), [])
            if len(matches) != 1:
                if len(matches) > 1:
                    logger.warning(
                        f"Purchase {purchase.id} matches {len(matches)} products named "
                        f"{purchase.product_name!r}; left unlinked"
                    )
                continue
            purchase.product_id = matches[0].id
            session.add(purchase)
            linked += 1

    logger.info(f"Linked {linked} purchases to products for restaurant {restaurant_id}")
    return linked


# ============ SALES ============

def build_sale_items(products: list[Product], lines: list[SaleLine]) -> list[SaleItem]:
    """Snapshot the ordered products; repeated lines for a product are merged."""
    by_id = {p.id: p for p in products}
    items: dict[str, SaleItem] = {}
    for line in lines:
        product = by_id.get(line.product_id)
        if product is None:
            raise BusinessRuleError(f"Producto no encontrado: {line.product_id}")
        if line.product_id in items:
            items[line.product_id].quantity += line.quantity
            continue
        items[line.product_id] = SaleItem(
            id=product.id,
            name=product.name,
            price=Decimal(str(product.price)),
            category=product.category,
            restaurant_id=product.restaurant_id,
            quantity=line.quantity,
        )
    return list(items.values())


def sale_total(items: list[SaleItem]) -> Decimal:
    return sum((Decimal(str(item.price)) * item.quantity for item in items), Decimal("0"))


def _can_read_all_sales(context: RequestContext) -> bool:
    return PermissionService.has_permission(context.role, Permissions.SALES_READ_ALL)


def list_sales(session: Session | None, context: RequestContext) -> list[Sale]:
    """Sales of the active restaurant, newest first. Waiters only see their own."""
    sales = store.get_for_restaurant(session, "sales", context.active_restaurant_id)
    if not _can_read_all_sales(context):
        sales = [s for s in sales if s.user_id == context.user.id]
    return sorted(sales, key=lambda s: s.sale_date, reverse=True)


def get_sale(session: Session | None, context: RequestContext, sale_id: str) -> Sale | None:
    sale = _get_scoped(session, context, "sales", sale_id)
    if sale is not None and not _can_read_all_sales(context) and sale.user_id != context.user.id:
        return None
    return sale


def add_sale(session: Session | None, context: RequestContext, data: SaleCreate) -> Sale:
    session = store.require_session(session, "guardar la comanda")
    restaurant_id = context.require_restaurant()
    if not data.items:
        raise BusinessRuleError("Añade productos antes de guardar.")
    if not data.table_number or not data.table_number.strip():
        raise BusinessRuleError("Por favor, introduce un número de mesa.")

    items = build_sale_items(list_products(session, restaurant_id), data.items)
    customer_name = (data.customer_name or "").strip() or DEFAULT_CUSTOMER_NAME

    return store.add_doc(
        session,
        "sales",
        {
            "customer_name": customer_name,
            "table_number": data.table_number.strip(),
            "items": [item.model_dump(mode="json") for item in items],
            "total_price": sale_total(items),
            "sale_date": utcnow(),
            "user_id": context.user.id,
            "user_name": context.user.name or context.user.email,
            "restaurant_id": restaurant_id,
            "status": SaleStatus.pending,
        },
    )


def update_sale(session: Session | None, context: RequestContext, sale_id: str, data: SaleUpdate) -> Sale:
    """Edit a saved order; new items refresh the snapshot, total and date."""
    session = store.require_session(session, "actualizar la comanda")
    sale = get_sale(session, context, sale_id)
    if sale is None:
        raise store.DocumentNotFoundError("sales", sale_id, "Comanda no encontrada.")
    if sale.status == SaleStatus.paid:
        raise BusinessRuleError(PAID_SALE_LOCKED)

    changes: dict[str, Any] = {}
    if data.customer_name is not None:
        changes["customer_name"] = data.customer_name.strip() or DEFAULT_CUSTOMER_NAME
    if data.table_number is not None:
        if not data.table_number.strip():
            raise BusinessRuleError("Por favor, introduce un número de mesa.")
        changes["table_number"] = data.table_number.strip()
    if data.items is not None:
        if not data.items:
            raise BusinessRuleError("Añade productos antes de guardar.")
        items = build_sale_items(list_products(session, sale.restaurant_id), data.items)
        changes["items"] = [item.model_dump(mode="json") for item in items]
        changes["total_price"] = sale_total(items)
        changes["sale_date"] = utcnow()

    return store.update_doc(session, "sales", sale_id, changes)


def update_sale_status(
    session: Session | None, context: RequestContext, sale_id: str, status: SaleStatus
) -> Sale:
    session = store.require_session(session, "actualizar la comanda")
    if get_sale(session, context, sale_id) is None:
        raise store.DocumentNotFoundError("sales", sale_id, "Comanda no encontrada.")
    return store.update_doc(session, "sales", sale_id, {"status": status})


def delete_sales(session: Session | None, context: RequestContext, ids: list[str]) -> int:
    """Bulk delete; ids outside the active restaurant are ignored."""
    session = store.require_session(session, "eliminar las ventas")
    in_scope = [sale_id for sale_id in ids if _get_scoped(session, context, "sales", sale_id) is not None]
    return store.delete_docs(session, "sales", in_scope)
