"""
Pytest configuration and fixtures for backend tests.
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from restopos import store
from restopos.db import get_session, set_engine
from restopos.main import app
from restopos.models import AdminCreate, RestaurantCreate, UserRole
from restopos.restaurant_service import create_restaurant
from restopos.security import get_password_hash


# SQLite in-memory database shared by every connection of the test
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

SUPERADMIN = ("super@test.com", "superpass")
ADMIN = ("admin@test.com", "adminpass")
SELLER = ("seller@test.com", "sellerpass")
WAITER = ("waiter@test.com", "waiterpass")


@pytest.fixture(scope="function")
def db_session():
    """Fresh database for each test."""
    SQLModel.metadata.create_all(engine)
    session = Session(engine)
    try:
        yield session
    finally:
        session.close()
        SQLModel.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def make_client(db_session):
    """
    Build API clients that share the test database.
    Each client keeps its own session cookie.
    """
    def override_get_session():
        yield db_session

    app.dependency_overrides[get_session] = override_get_session
    set_engine(engine)

    def _make(credentials: tuple[str, str] | None = None) -> TestClient:
        test_client = TestClient(app)
        if credentials is not None:
            email, password = credentials
            response = test_client.post("/login", json={"email": email, "password": password})
            assert response.status_code == 200, f"Login failed: {response.json()}"
        return test_client

    yield _make

    app.dependency_overrides.clear()
    set_engine(None)


@pytest.fixture
def client(make_client):
    """Anonymous client."""
    return make_client()


@pytest.fixture
def seed(db_session):
    """
    Two restaurants:
    - "La Tasca": the first one, its admin is the superadmin
    - "El Puerto": an admin, a seller and a waiter
    """
    first = create_restaurant(
        db_session,
        RestaurantCreate(name="La Tasca", address="Calle Mayor 1", phone="600000001"),
        AdminCreate(name="Super", email=SUPERADMIN[0], password=SUPERADMIN[1]),
    )
    second = create_restaurant(
        db_session,
        RestaurantCreate(name="El Puerto", address="Paseo Marítimo 3", phone="600000002"),
        AdminCreate(name="Ana", email=ADMIN[0], password=ADMIN[1]),
    )
    seller = store.add_doc(db_session, "users", {
        "name": "Sergio",
        "email": SELLER[0],
        "hashed_password": get_password_hash(SELLER[1]),
        "role": UserRole.seller,
        "restaurant_id": second.id,
    })
    waiter = store.add_doc(db_session, "users", {
        "name": "Wendy",
        "email": WAITER[0],
        "hashed_password": get_password_hash(WAITER[1]),
        "role": UserRole.waiter,
        "restaurant_id": second.id,
    })
    return SimpleNamespace(
        first=first,
        second=second,
        superadmin_id=first.users[0].id,
        admin_id=second.users[0].id,
        seller_id=seller.id,
        waiter_id=waiter.id,
    )


@pytest.fixture
def super_client(make_client, seed):
    return make_client(SUPERADMIN)


@pytest.fixture
def admin_client(make_client, seed):
    return make_client(ADMIN)


@pytest.fixture
def seller_client(make_client, seed):
    return make_client(SELLER)


@pytest.fixture
def waiter_client(make_client, seed):
    return make_client(WAITER)


@pytest.fixture
def menu(db_session, seed):
    """A small menu for "El Puerto"."""
    rid = seed.second.id
    categories = [
        store.add_doc(db_session, "categories", {"name": "Bebidas", "restaurant_id": rid}),
        store.add_doc(db_session, "categories", {"name": "Postres", "restaurant_id": rid}),
    ]
    products = {
        "agua": store.add_doc(db_session, "products", {
            "name": "Agua", "price": Decimal("2.00"), "category": "Bebidas", "restaurant_id": rid,
        }),
        "cerveza": store.add_doc(db_session, "products", {
            "name": "Cerveza", "price": Decimal("3.50"), "category": "Bebidas", "restaurant_id": rid,
        }),
        "flan": store.add_doc(db_session, "products", {
            "name": "Flan", "price": Decimal("4.25"), "category": "Postres", "restaurant_id": rid,
        }),
    }
    return SimpleNamespace(categories=categories, products=products)
