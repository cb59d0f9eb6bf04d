"""
Persistence gateway

Generic get/add/update/delete over named collections, plus the
restaurant-scoped read used by every tenant listing:
- a concrete restaurant id filters on `restaurant_id`
- the "all" sentinel returns every record across restaurants

Without a configured database, reads degrade to empty results (with a
warning) and writes raise DatabaseNotConnectedError.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlmodel import Session, SQLModel, delete, select

from .models import (
    ALL_RESTAURANTS,
    Category,
    Customer,
    Product,
    Purchase,
    Restaurant,
    Sale,
    User,
)

logger = logging.getLogger(__name__)


COLLECTIONS: dict[str, type[SQLModel]] = {
    "restaurants": Restaurant,
    "users": User,
    "products": Product,
    "categories": Category,
    "customers": Customer,
    "purchases": Purchase,
    "sales": Sale,
}

# Collections owned by a restaurant, in cascade-delete order.
RESTAURANT_SUBCOLLECTIONS = ("users", "products", "categories", "customers", "purchases", "sales")


class DatabaseNotConnectedError(Exception):
    """Raised when a write is attempted without a configured database."""
    def __init__(self, action: str = "completar la operación"):
        super().__init__(f"No se pudo {action}. La base de datos no está conectada.")


class DocumentNotFoundError(Exception):
    """Raised when a document that must exist for the operation is missing."""
    def __init__(self, collection: str, doc_id: str, message: str | None = None):
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(message or f"No se encontró el documento {doc_id} en {collection}.")


def model_for(collection: str) -> type[SQLModel]:
    try:
        return COLLECTIONS[collection]
    except KeyError:
        raise ValueError(f"Unknown collection: {collection}") from None


def require_session(session: Session | None, action: str) -> Session:
    if session is None:
        raise DatabaseNotConnectedError(action)
    return session


@contextmanager
def transaction(session: Session | None, action: str = "completar la operación") -> Iterator[Session]:
    """Commit everything done inside the block at once, or nothing."""
    session = require_session(session, action)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise


# ============ READS ============

def get_all(session: Session | None, collection: str) -> list[Any]:
    if session is None:
        logger.warning(f"Database not available; cannot load collection {collection!r}")
        return []
    return list(session.exec(select(model_for(collection))).all())


def get_for_restaurant(session: Session | None, collection: str, restaurant_id: str) -> list[Any]:
    """All records of a collection for one restaurant, or for every restaurant with "all"."""
    if session is None:
        logger.warning(f"Database not available; cannot load {collection!r} for restaurant {restaurant_id!r}")
        return []
    model = model_for(collection)
    statement = select(model)
    if restaurant_id != ALL_RESTAURANTS:
        statement = statement.where(model.restaurant_id == restaurant_id)
    return list(session.exec(statement).all())


def find_where(session: Session | None, collection: str, **filters: Any) -> list[Any]:
    """Equality-filtered query, e.g. find_where(s, "users", email=...)."""
    if session is None:
        logger.warning(f"Database not available; cannot query {collection!r}")
        return []
    model = model_for(collection)
    statement = select(model)
    for field, value in filters.items():
        statement = statement.where(getattr(model, field) == value)
    return list(session.exec(statement).all())


def get_doc(session: Session | None, collection: str, doc_id: str) -> Any | None:
    if session is None:
        logger.warning(f"Database not available; cannot load {collection}/{doc_id}")
        return None
    return session.get(model_for(collection), doc_id)


# ============ WRITES ============

def add_doc(session: Session | None, collection: str, data: dict, commit: bool = True) -> Any:
    session = require_session(session, "añadir")
    doc = model_for(collection)(**data)
    session.add(doc)
    if commit:
        session.commit()
        session.refresh(doc)
    else:
        session.flush()
    return doc


def update_doc(
    session: Session | None, collection: str, doc_id: str, data: dict, commit: bool = True
) -> Any:
    """Partial update: only the keys present in `data` are written."""
    session = require_session(session, "actualizar")
    model = model_for(collection)
    unknown = set(data) - set(model.model_fields)
    if unknown or "id" in data:
        raise ValueError(f"Cannot update fields {sorted(unknown | ({'id'} & set(data)))} on {collection}")

    doc = session.get(model, doc_id)
    if doc is None:
        raise DocumentNotFoundError(collection, doc_id, "No se pudo actualizar el documento.")

    for field, value in data.items():
        setattr(doc, field, value)
    session.add(doc)
    if commit:
        session.commit()
        session.refresh(doc)
    else:
        session.flush()
    return doc


def delete_doc(session: Session | None, collection: str, doc_id: str, commit: bool = True) -> None:
    """Delete one document. Deleting a missing document is a no-op."""
    session = require_session(session, "eliminar")
    doc = session.get(model_for(collection), doc_id)
    if doc is not None:
        session.delete(doc)
    if commit:
        session.commit()


def delete_docs(session: Session | None, collection: str, ids: list[str], commit: bool = True) -> int:
    """Delete many documents by id in a single statement."""
    session = require_session(session, "eliminar")
    if not ids:
        return 0
    model = model_for(collection)
    result = session.exec(delete(model).where(model.id.in_(ids)))
    if commit:
        session.commit()
    return result.rowcount or 0


def delete_for_restaurant(
    session: Session | None, collection: str, restaurant_id: str, batch_size: int = 100
) -> int:
    """
    Delete a restaurant's records in batches of `batch_size`.
    Does not commit; callers wrap it in a transaction.
    """
    session = require_session(session, "eliminar")
    if restaurant_id == ALL_RESTAURANTS:
        raise ValueError("Refusing to delete records for every restaurant")
    model = model_for(collection)
    deleted = 0
    while True:
        ids = session.exec(
            select(model.id)
            .where(model.restaurant_id == restaurant_id)
            .order_by(model.id)
            .limit(batch_size)
        ).all()
        if not ids:
            break
        session.exec(delete(model).where(model.id.in_(ids)))
        session.flush()
        deleted += len(ids)
    logger.info(f"Deleted {deleted} {collection} for restaurant {restaurant_id}")
    return deleted
