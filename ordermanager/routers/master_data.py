from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ..database import get_session
from ..logger import get_logger
from ..models import (
    Customer,
    CustomerCreate,
    Product,
    ProductCreate,
    ProductType,
    ProductTypeCreate,
    Supplier,
    User,
)
from .auth import get_current_user

router = APIRouter(prefix="/master", tags=["master"])
logger = get_logger("master_data")

# Standard gauge differences per section size
DEFAULT_PRODUCT_TYPES = {
    "40x3": 7800,
    "30x3": 7800,
    "32x3": 7500,
    "35x5": 7200,
    "35x4": 7500,
    "40x5": 7000,
    "40x6": 7000,
    "50x5": 6400,
    "65x5": 6400,
    "75x5": 6400,
    "50x6": 6100,
    "65x6": 6100,
    "75x6": 6100,
    "65x8": 6400,
    "75x8": 6400,
    "65x10": 6700,
    "75x10": 6700,
    "50x4": 7500,
    "40x4": 7500,
    "45x4": 7800,
    "45x5": 7200,
}


def seed_product_types(session: Session) -> int:
    if session.exec(select(ProductType)).first() is not None:
        return 0
    for name, gauge in DEFAULT_PRODUCT_TYPES.items():
        session.add(ProductType(name=name, gauge_difference=gauge, type="both"))
    session.commit()
    logger.info(f"Seeded {len(DEFAULT_PRODUCT_TYPES)} default product types")
    return len(DEFAULT_PRODUCT_TYPES)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


def _required_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="Name is required")
    return name


def _save(session: Session, row, kind: str):
    try:
        session.add(row)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception(f"Failed to create {kind} {row.name}")
        raise HTTPException(status_code=500, detail=f"Failed to create {kind}. Please try again.")

    session.refresh(row)
    logger.info(f"Created {kind} {row.name} (id {row.id})")
    return row


# PRODUCTS
@router.post("/products", response_model=Product)
def create_product(payload: ProductCreate, session: Session = Depends(get_session), current_user: User = Depends(get_current_user)):
    product = Product(name=_required_name(payload.name), user_id=current_user.id)
    return _save(session, product, "product")


@router.get("/products", response_model=List[Product])
def read_products(session: Session = Depends(get_session)):
    return session.exec(select(Product).order_by(Product.name)).all()


# CUSTOMERS
@router.post("/customers", response_model=Customer)
def create_customer(payload: CustomerCreate, session: Session = Depends(get_session), current_user: User = Depends(get_current_user)):
    customer = Customer(
        name=_required_name(payload.name),
        contact_person=_clean(payload.contact_person),
        phone=_clean(payload.phone),
        email=_clean(payload.email),
        address=_clean(payload.address),
        user_id=current_user.id,
    )
    return _save(session, customer, "customer")


@router.get("/customers", response_model=List[Customer])
def read_customers(session: Session = Depends(get_session)):
    return session.exec(select(Customer).order_by(Customer.name)).all()


# SUPPLIERS (same shape as customers)
@router.post("/suppliers", response_model=Supplier)
def create_supplier(payload: CustomerCreate, session: Session = Depends(get_session), current_user: User = Depends(get_current_user)):
    supplier = Supplier(
        name=_required_name(payload.name),
        contact_person=_clean(payload.contact_person),
        phone=_clean(payload.phone),
        email=_clean(payload.email),
        address=_clean(payload.address),
        user_id=current_user.id,
    )
    return _save(session, supplier, "supplier")


@router.get("/suppliers", response_model=List[Supplier])
def read_suppliers(session: Session = Depends(get_session)):
    return session.exec(select(Supplier).order_by(Supplier.name)).all()


# PRODUCT TYPES
@router.post("/product-types", response_model=ProductType)
def create_product_type(payload: ProductTypeCreate, session: Session = Depends(get_session), current_user: User = Depends(get_current_user)):
    name = _required_name(payload.name)
    existing = session.exec(select(ProductType).where(ProductType.name == name)).first()
    if existing:
        raise HTTPException(status_code=400, detail=f"Product type {name} already exists")

    product_type = ProductType(
        name=name,
        gauge_difference=payload.gauge_difference,
        type=payload.type,
        user_id=current_user.id,
    )
    return _save(session, product_type, "product type")


@router.get("/product-types", response_model=List[ProductType])
def read_product_types(type: Optional[str] = None, session: Session = Depends(get_session)):
    statement = select(ProductType)
    if type:
        # "both" types apply to sale and purchase orders alike
        statement = statement.where(ProductType.type.in_([type, "both"]))
    return session.exec(statement.order_by(ProductType.name)).all()
