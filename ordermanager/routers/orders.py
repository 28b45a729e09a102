from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional, Sequence

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from .. import calculations
from ..database import get_session
from ..logger import get_logger
from ..models import (
    Dispatch,
    Order,
    OrderCreate,
    OrderItem,
    OrderRead,
    OrderType,
    OrderUpdate,
    Payment,
    User,
    utcnow,
)
from .auth import get_current_user

router = APIRouter(prefix="/orders", tags=["orders"])
logger = get_logger("orders")

ORDER_ID_PREFIX = {"sale": "SO", "purchase": "PO"}


def generate_order_id(session: Session, order_type: str, on_date: Optional[date] = None) -> str:
    """Next id of the form SO-20240105-001 for the given type and day."""
    on_date = on_date or date.today()
    prefix = f"{ORDER_ID_PREFIX[order_type]}-{on_date:%Y%m%d}-"
    existing = session.exec(select(Order.id).where(Order.id.startswith(prefix))).all()

    max_seq = 0
    for order_id in existing:
        suffix = order_id[len(prefix):]
        if suffix.isdigit():
            max_seq = max(max_seq, int(suffix))
    return f"{prefix}{max_seq + 1:03d}"


def get_order_or_404(session: Session, order_id: str, for_update: bool = False) -> Order:
    statement = select(Order).where(Order.id == order_id)
    if for_update:
        statement = statement.with_for_update()
    order = session.exec(statement).first()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


def load_children(session: Session, order_ids: Sequence[str]):
    """Items, dispatches and payments for many orders, keyed by order id."""
    items_by: Dict[str, list] = defaultdict(list)
    dispatches_by: Dict[str, list] = defaultdict(list)
    payments_by: Dict[str, list] = defaultdict(list)
    if not order_ids:
        return items_by, dispatches_by, payments_by

    for item in session.exec(select(OrderItem).where(OrderItem.order_id.in_(order_ids))).all():
        items_by[item.order_id].append(item)
    for d in session.exec(
        select(Dispatch).where(Dispatch.order_id.in_(order_ids)).order_by(Dispatch.date.desc())
    ).all():
        dispatches_by[d.order_id].append(d)
    for p in session.exec(
        select(Payment).where(Payment.order_id.in_(order_ids)).order_by(Payment.created_at.desc())
    ).all():
        payments_by[p.order_id].append(p)
    return items_by, dispatches_by, payments_by


def build_order_read(order: Order, items: list, dispatches: list, payments: list) -> OrderRead:
    total_quantity = calculations.order_total_quantity(order, items)
    data = order.model_dump()
    data.update(
        total_quantity=total_quantity,
        remaining_quantity=calculations.remaining_quantity(total_quantity, dispatches),
        payment_status=calculations.payment_status(payments, order.payment_status),
        total_amount=calculations.order_amount(items),
        items=items,
        dispatches=dispatches,
        payments=payments,
    )
    return OrderRead(**data)


def read_orders(session: Session, orders: Sequence[Order]) -> List[OrderRead]:
    items_by, dispatches_by, payments_by = load_children(session, [o.id for o in orders])
    return [
        build_order_read(o, items_by[o.id], dispatches_by[o.id], payments_by[o.id])
        for o in orders
    ]


def read_order(session: Session, order: Order) -> OrderRead:
    return read_orders(session, [order])[0]


def validate_order(payload: OrderCreate):
    if not payload.items:
        raise HTTPException(status_code=400, detail="At least one item is required")

    contact = payload.customer if payload.type == "sale" else payload.supplier
    if not contact or not contact.strip():
        label = "Customer" if payload.type == "sale" else "Supplier"
        raise HTTPException(status_code=400, detail=f"{label} is required for a {payload.type} order")

    for item in payload.items:
        if not item.name.strip():
            raise HTTPException(status_code=400, detail="Item name is required")
        if item.quantity <= 0:
            raise HTTPException(status_code=400, detail="Quantity must be greater than 0")
        if item.price < 0:
            raise HTTPException(status_code=400, detail="Price cannot be negative")
        if item.commission < 0:
            raise HTTPException(status_code=400, detail="Commission cannot be negative")


def validate_order_update(order: Order, updates: OrderUpdate) -> dict:
    """Fields to apply to an existing order, with the create-time rules enforced."""
    update_data = updates.model_dump(exclude_unset=True)
    for field in ("date", "status"):
        if field in update_data and update_data[field] is None:
            raise HTTPException(status_code=400, detail=f"{field.capitalize()} cannot be empty")

    # Contact fields only apply to the matching order type
    contact_field = "customer" if order.type == "sale" else "supplier"
    update_data.pop("supplier" if order.type == "sale" else "customer", None)
    if contact_field in update_data:
        contact = (update_data[contact_field] or "").strip()
        if not contact:
            raise HTTPException(
                status_code=400,
                detail=f"{contact_field.capitalize()} is required for a {order.type} order",
            )
        update_data[contact_field] = contact
    return update_data


@router.post("/", response_model=OrderRead)
def create_order(payload: OrderCreate, session: Session = Depends(get_session), current_user: User = Depends(get_current_user)):
    validate_order(payload)

    total_quantity = calculations.items_quantity(payload.items)
    order = Order(
        id=generate_order_id(session, payload.type),
        type=payload.type,
        date=payload.date or date.today(),
        customer=payload.customer.strip() if payload.type == "sale" else None,
        supplier=payload.supplier.strip() if payload.type == "purchase" else None,
        total_quantity=total_quantity,
        remaining_quantity=total_quantity,
        status="pending",
        payment_status="pending",
        notes=payload.notes,
        user_id=current_user.id,
    )
    items = [
        OrderItem(
            order_id=order.id,
            name=item.name.strip(),
            quantity=item.quantity,
            unit=item.unit,
            price=item.price,
            commission=item.commission,
        )
        for item in payload.items
    ]

    try:
        session.add(order)
        session.flush()
        session.add_all(items)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception(f"Failed to create {payload.type} order")
        raise HTTPException(status_code=500, detail="Failed to create order. Please try again.")

    session.refresh(order)
    logger.info(f"Order {order.id} created by {current_user.username}: {total_quantity} units")
    return read_order(session, order)


@router.get("/", response_model=List[OrderRead])
def list_orders(
    type: Optional[OrderType] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    q: Optional[str] = None,
    session: Session = Depends(get_session),
):
    statement = select(Order)
    if type:
        statement = statement.where(Order.type == type)
    if start_date:
        statement = statement.where(Order.date >= start_date)
    if end_date:
        statement = statement.where(Order.date <= end_date)
    if q:
        pattern = f"%{q}%"
        statement = statement.where(
            or_(Order.customer.ilike(pattern), Order.supplier.ilike(pattern), Order.id.ilike(pattern))
        )

    # Date-range views read chronologically, everything else newest-first
    if start_date or end_date:
        statement = statement.order_by(Order.date.desc(), Order.created_at.desc())
    else:
        statement = statement.order_by(Order.created_at.desc())

    orders = session.exec(statement).all()
    return read_orders(session, orders)


@router.get("/{order_id}", response_model=OrderRead)
def get_order(order_id: str, session: Session = Depends(get_session)):
    return read_order(session, get_order_or_404(session, order_id))


@router.put("/{order_id}", response_model=OrderRead)
def update_order(order_id: str, updates: OrderUpdate, session: Session = Depends(get_session), current_user: User = Depends(get_current_user)):
    order = get_order_or_404(session, order_id)

    update_data = validate_order_update(order, updates)
    for key, value in update_data.items():
        setattr(order, key, value)
    order.updated_at = utcnow()

    try:
        session.add(order)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception(f"Failed to update order {order_id}")
        raise HTTPException(status_code=500, detail="Failed to update order. Please try again.")

    session.refresh(order)
    logger.info(f"Order {order_id} updated by {current_user.username}: {sorted(update_data)}")
    return read_order(session, order)


@router.delete("/{order_id}")
def delete_order(order_id: str, session: Session = Depends(get_session), current_user: User = Depends(get_current_user)):
    order = get_order_or_404(session, order_id)

    try:
        # Children first, nothing cascades at the database level
        for model in (OrderItem, Dispatch, Payment):
            for row in session.exec(select(model).where(model.order_id == order_id)).all():
                session.delete(row)
        session.delete(order)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception(f"Failed to delete order {order_id}")
        raise HTTPException(status_code=500, detail="Failed to delete order. Please try again.")

    logger.info(f"Order {order_id} deleted by {current_user.username}")
    return {"ok": True}
