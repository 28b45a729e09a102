import datetime as dt
from typing import List, Literal, Optional

from pydantic import BaseModel
from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

OrderType = Literal["sale", "purchase"]
OrderStatus = Literal["pending", "partial", "completed", "cancelled"]
PaymentStatus = Literal["pending", "partial", "completed"]
PaymentMode = Literal["cash", "cheque", "bank_transfer", "upi"]
ProductTypeCategory = Literal["sale", "purchase", "both"]


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class OrderBase(SQLModel):
    type: str = Field(index=True)  # sale, purchase
    date: dt.date = Field(default_factory=dt.date.today, index=True)
    customer: Optional[str] = Field(default=None, index=True)  # sale only
    supplier: Optional[str] = Field(default=None, index=True)  # purchase only
    total_quantity: float = Field(default=0.0)
    remaining_quantity: float = Field(default=0.0)
    status: str = Field(default="pending")  # pending, partial, completed, cancelled
    payment_status: str = Field(default="pending")  # pending, partial, completed
    notes: Optional[str] = None
    user_id: Optional[int] = Field(default=None, foreign_key="users.id")
    created_at: dt.datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: dt.datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class Order(OrderBase, table=True):
    __tablename__ = "orders"

    id: str = Field(primary_key=True)  # SO-20240105-001, PO-...


class OrderItem(SQLModel, table=True):
    __tablename__ = "order_items"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: str = Field(foreign_key="orders.id", index=True)
    name: str
    quantity: float
    unit: str = Field(default="kg")
    price: float = Field(default=0.0)
    commission: float = Field(default=0.0)


class Dispatch(SQLModel, table=True):
    __tablename__ = "dispatches"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: str = Field(foreign_key="orders.id", index=True)
    date: dt.date = Field(default_factory=dt.date.today)
    quantity: float
    dispatch_price: float = Field(default=0.0)
    invoice_number: Optional[str] = None
    notes: Optional[str] = None

    # Billing adjustments
    product_type: Optional[str] = None
    gauge_difference: Optional[float] = None
    loading_charge: Optional[float] = None
    tax_rate: Optional[float] = None  # percent

    user_id: Optional[int] = Field(default=None, foreign_key="users.id")
    created_at: dt.datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class Payment(SQLModel, table=True):
    __tablename__ = "payments"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: str = Field(foreign_key="orders.id", index=True)
    amount: float
    payment_date: dt.date = Field(default_factory=dt.date.today)
    payment_mode: str = Field(default="cash")  # cash, cheque, bank_transfer, upi
    payment_status: str = Field(default="partial")
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    user_id: Optional[int] = Field(default=None, foreign_key="users.id")
    created_at: dt.datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


# Master data: plain lookup tables, nothing references them by key
class Product(SQLModel, table=True):
    __tablename__ = "products"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    user_id: Optional[int] = Field(default=None, foreign_key="users.id")
    created_at: dt.datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: dt.datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class Customer(SQLModel, table=True):
    __tablename__ = "customers"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    user_id: Optional[int] = Field(default=None, foreign_key="users.id")
    created_at: dt.datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: dt.datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class Supplier(SQLModel, table=True):
    __tablename__ = "suppliers"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    user_id: Optional[int] = Field(default=None, foreign_key="users.id")
    created_at: dt.datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: dt.datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class ProductType(SQLModel, table=True):
    __tablename__ = "product_types"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)  # 40x3, 65x8 ...
    gauge_difference: float = Field(default=0.0)
    type: str = Field(default="both")  # sale, purchase, both
    user_id: Optional[int] = Field(default=None, foreign_key="users.id")
    created_at: dt.datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: dt.datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True)
    password_hash: str
    role: str = Field(default="staff")  # admin, staff
    token_version: int = Field(default=1)


# Schemas for API

class OrderItemCreate(BaseModel):
    name: str
    quantity: float
    unit: str = "kg"
    price: float = 0.0
    commission: float = 0.0


class OrderCreate(BaseModel):
    type: OrderType
    date: Optional[dt.date] = None
    customer: Optional[str] = None
    supplier: Optional[str] = None
    items: List[OrderItemCreate]
    notes: Optional[str] = None


class OrderUpdate(BaseModel):
    date: Optional[dt.date] = None
    customer: Optional[str] = None
    supplier: Optional[str] = None
    status: Optional[OrderStatus] = None
    notes: Optional[str] = None


class DispatchCreate(BaseModel):
    date: Optional[dt.date] = None
    quantity: float
    dispatch_price: Optional[float] = None
    invoice_number: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[OrderStatus] = None  # order status to set after this dispatch
    product_type: Optional[str] = None
    gauge_difference: Optional[float] = None
    loading_charge: Optional[float] = None
    tax_rate: Optional[float] = None


class BatchDispatchCreate(BaseModel):
    entries: List[DispatchCreate]


class PaymentCreate(BaseModel):
    amount: float
    payment_date: Optional[dt.date] = None
    payment_mode: PaymentMode = "cash"
    payment_status: PaymentStatus = "partial"
    reference_number: Optional[str] = None
    notes: Optional[str] = None


class CustomerCreate(BaseModel):
    name: str
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None


class ProductCreate(BaseModel):
    name: str


class ProductTypeCreate(BaseModel):
    name: str
    gauge_difference: float = 0.0
    type: ProductTypeCategory = "both"


class OrderRead(OrderBase):
    id: str
    items: List[OrderItem] = []
    dispatches: List[Dispatch] = []
    payments: List[Payment] = []
    total_amount: float = 0.0


class DispatchResult(BaseModel):
    dispatch: Dispatch
    order: OrderRead


class BatchDispatchResult(BaseModel):
    dispatches: List[Dispatch]
    order: OrderRead
    total_batch_quantity: float


class BatchPreview(BaseModel):
    entries: List[DispatchCreate]
    running_totals: List[float]
    total_batch_quantity: float
    remaining_quantity: float
    remaining_after_batch: float


class DashboardStats(BaseModel):
    total_sales_amount: float = 0.0
    total_purchase_amount: float = 0.0
    sales_quantity: float = 0.0
    purchase_quantity: float = 0.0
    sales_dispatched: float = 0.0
    purchase_dispatched: float = 0.0
    sales_remaining: float = 0.0
    purchase_remaining: float = 0.0
    total_receivable: float = 0.0
