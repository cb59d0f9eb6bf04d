from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from uuid import uuid4

from sqlalchemy import JSON, DateTime, Numeric
from sqlmodel import Field, Relationship, SQLModel


# Reserved tenant id meaning "every restaurant" (superadmin only).
ALL_RESTAURANTS = "all"

DEFAULT_CUSTOMER_NAME = "Consumidor Final"


def new_id() -> str:
    return uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRole(str, Enum):
    superadmin = "superadmin"
    admin = "admin"
    seller = "seller"
    waiter = "waiter"


class SaleStatus(str, Enum):
    pending = "pending"
    paid = "paid"


class Restaurant(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    name: str = Field(index=True)
    address: str = ""
    phone: str = ""
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))

    users: list["User"] = Relationship(back_populates="restaurant")


class RestaurantMixin(SQLModel):
    restaurant_id: str = Field(foreign_key="restaurant.id", index=True)


class User(RestaurantMixin, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    name: str = ""
    email: str = Field(index=True)  # unique per restaurant, enforced in the service layer
    hashed_password: str
    role: UserRole = Field(default=UserRole.waiter, index=True)

    restaurant: Restaurant | None = Relationship(back_populates="users")


class Category(RestaurantMixin, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    name: str = Field(index=True)


class Product(RestaurantMixin, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    name: str = Field(index=True)
    price: Decimal = Field(default=Decimal("0"), sa_type=Numeric(12, 2))
    category: str = Field(default="", index=True)  # Category name, not id


class Customer(RestaurantMixin, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    name: str
    email: str = ""
    phone: str = ""


class Purchase(RestaurantMixin, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    product_name: str = Field(index=True)  # Free text, matched to Product.name
    # Explicit link to the product; when empty, stock falls back to name matching.
    product_id: str | None = Field(default=None, index=True)
    supplier: str | None = None
    quantity: int = 0
    unit_price: Decimal = Field(default=Decimal("0"), sa_type=Numeric(12, 2))
    purchase_date: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class Sale(RestaurantMixin, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    customer_name: str = DEFAULT_CUSTOMER_NAME
    table_number: str
    # Snapshot of each product at sale time plus the quantity ordered
    items: list[dict] = Field(default_factory=list, sa_type=JSON)
    total_price: Decimal = Field(default=Decimal("0"), sa_type=Numeric(12, 2))
    sale_date: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True), index=True)
    user_id: str
    user_name: str
    status: SaleStatus = Field(default=SaleStatus.pending, index=True)


# ============ REQUEST / RESPONSE MODELS ============

class UserRead(SQLModel):
    id: str
    name: str
    email: str
    role: UserRole
    restaurant_id: str


class RestaurantRead(SQLModel):
    id: str
    name: str
    address: str
    phone: str
    created_at: datetime | None = None
    users: list[UserRead] = []


class RestaurantCreate(SQLModel):
    name: str
    address: str = ""
    phone: str = ""


class AdminCreate(SQLModel):
    name: str = ""
    email: str
    password: str


class RestaurantRegister(SQLModel):
    restaurant: RestaurantCreate
    admin: AdminCreate


class RestaurantUpdate(SQLModel):
    name: str | None = None
    address: str | None = None
    phone: str | None = None


class AdminUpdate(SQLModel):
    id: str
    email: str
    password: str | None = None


class RestaurantUpdateRequest(SQLModel):
    restaurant: RestaurantUpdate = RestaurantUpdate()
    admin: AdminUpdate | None = None


class UserCreate(SQLModel):
    name: str = ""
    email: str
    password: str
    role: UserRole = UserRole.waiter


class UserUpdate(SQLModel):
    name: str | None = None
    email: str | None = None
    password: str | None = None
    role: UserRole | None = None


class CategoryCreate(SQLModel):
    name: str


class CategoryUpdate(SQLModel):
    name: str | None = None


class CategoryRead(SQLModel):
    id: str
    name: str
    restaurant_id: str


class ProductCreate(SQLModel):
    name: str
    price: Decimal  # Numeric strings such as "2.50" are accepted
    category: str = ""


class ProductUpdate(SQLModel):
    name: str | None = None
    price: Decimal | None = None
    category: str | None = None


class ProductRead(SQLModel):
    id: str
    name: str
    price: float
    category: str
    restaurant_id: str


class CustomerCreate(SQLModel):
    name: str
    email: str = ""
    phone: str = ""


class CustomerUpdate(SQLModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None


class CustomerRead(SQLModel):
    id: str
    name: str
    email: str
    phone: str
    restaurant_id: str


class PurchaseCreate(SQLModel):
    product_name: str
    product_id: str | None = None
    supplier: str | None = None
    quantity: int
    unit_price: Decimal
    purchase_date: datetime | None = None


class PurchaseUpdate(SQLModel):
    product_name: str | None = None
    product_id: str | None = None
    supplier: str | None = None
    quantity: int | None = None
    unit_price: Decimal | None = None
    purchase_date: datetime | None = None


class PurchaseRead(SQLModel):
    id: str
    product_name: str
    product_id: str | None
    supplier: str | None
    quantity: int
    unit_price: float
    purchase_date: datetime
    restaurant_id: str


class SaleItem(SQLModel):
    """A product as it was when the sale was taken."""
    id: str
    name: str
    price: Decimal
    category: str = ""
    restaurant_id: str = ""
    quantity: int


class SaleLine(SQLModel):
    product_id: str
    quantity: int = Field(gt=0)


class SaleCreate(SQLModel):
    customer_name: str | None = None
    table_number: str
    items: list[SaleLine]


class SaleUpdate(SQLModel):
    customer_name: str | None = None
    table_number: str | None = None
    items: list[SaleLine] | None = None


class SaleStatusUpdate(SQLModel):
    status: SaleStatus


class SaleBulkDelete(SQLModel):
    ids: list[str]


class SaleRead(SQLModel):
    id: str
    customer_name: str
    table_number: str
    items: list[SaleItem]
    total_price: float
    sale_date: datetime
    user_id: str
    user_name: str
    restaurant_id: str
    status: SaleStatus


class StockRow(SQLModel):
    product_id: str
    product_name: str
    category: str
    initial_stock: int
    units_sold: int
    current_stock: int
    status: str


class DailySales(SQLModel):
    day: date
    sales: float


class ProductSalesRow(SQLModel):
    id: str
    name: str
    category: str
    sales: float


class CategorySales(SQLModel):
    name: str
    value: float


class SalesKpis(SQLModel):
    total_revenue: float
    total_sales: int
    avg_ticket: float
    total_customers: int


class DashboardResponse(SQLModel):
    kpis: SalesKpis
    best_selling: list[ProductSalesRow]
    worst_selling: list[ProductSalesRow]
    sales_by_category: list[CategorySales]


class LoginRequest(SQLModel):
    email: str
    password: str


class ActiveRestaurantUpdate(SQLModel):
    restaurant_id: str


class SaleToEditUpdate(SQLModel):
    sale_id: str | None = None


class SessionRead(SQLModel):
    user: UserRead
    active_restaurant_id: str
    logged_in_restaurant_id: str
    sale_to_edit_id: str | None = None
    permissions: list[str] = []
