from datetime import date
from typing import List, Sequence

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from .. import calculations
from ..database import get_session
from ..logger import get_logger
from ..models import (
    BatchDispatchCreate,
    BatchDispatchResult,
    BatchPreview,
    Dispatch,
    DispatchCreate,
    DispatchResult,
    Order,
    OrderItem,
    ProductType,
    User,
    utcnow,
)
from .auth import get_current_user
from .orders import get_order_or_404, read_order

router = APIRouter(prefix="/orders", tags=["dispatches"])
logger = get_logger("dispatches")

CLOSED_STATUSES = ("completed", "cancelled")
# Float slack when comparing summed quantities
QUANTITY_TOLERANCE = 1e-6


def validate_dispatch(entry: DispatchCreate, label: str = ""):
    if entry.quantity is None or entry.quantity <= 0:
        raise HTTPException(status_code=400, detail=f"{label}Quantity must be greater than 0")
    if entry.dispatch_price is not None and entry.dispatch_price < 0:
        raise HTTPException(status_code=400, detail=f"{label}Price cannot be negative")
    if entry.loading_charge is not None and entry.loading_charge < 0:
        raise HTTPException(status_code=400, detail=f"{label}Loading charge cannot be negative")
    if entry.tax_rate is not None and entry.tax_rate < 0:
        raise HTTPException(status_code=400, detail=f"{label}Tax rate cannot be negative")


def validate_batch(entries: Sequence[DispatchCreate]):
    if not entries:
        raise HTTPException(status_code=400, detail="No dispatch entries to submit")
    for index, entry in enumerate(entries, start=1):
        validate_dispatch(entry, label=f"Entry {index}: ")


def ensure_open(order: Order):
    if order.status in CLOSED_STATUSES:
        raise HTTPException(
            status_code=400,
            detail=f"Order {order.id} is {order.status}. No further dispatches can be recorded.",
        )


def current_remaining(session: Session, order: Order, items: list) -> float:
    existing = session.exec(select(Dispatch).where(Dispatch.order_id == order.id)).all()
    total = calculations.order_total_quantity(order, items)
    return calculations.remaining_quantity(total, existing)


def gauge_lookup(session: Session, entries: Sequence[DispatchCreate]) -> dict:
    names = {e.product_type for e in entries if e.product_type and e.gauge_difference is None}
    if not names:
        return {}
    rows = session.exec(select(ProductType).where(ProductType.name.in_(names))).all()
    return {pt.name: pt.gauge_difference for pt in rows}


def build_dispatch(order: Order, entry: DispatchCreate, items: list, gauges: dict, user: User) -> Dispatch:
    gauge = entry.gauge_difference
    if gauge is None and entry.product_type:
        gauge = gauges.get(entry.product_type)

    # Price defaults to the order's average item price
    price = entry.dispatch_price
    if price is None:
        price = calculations.average_item_price(items)

    return Dispatch(
        order_id=order.id,
        date=entry.date or date.today(),
        quantity=entry.quantity,
        dispatch_price=price,
        invoice_number=entry.invoice_number,
        notes=entry.notes,
        product_type=entry.product_type,
        gauge_difference=gauge,
        loading_charge=entry.loading_charge,
        tax_rate=entry.tax_rate,
        user_id=user.id,
    )


def commit_dispatches(session: Session, order: Order, dispatches: List[Dispatch], remaining: float, status: str, error_detail: str):
    """Dispatch rows and the order's new remaining quantity land in one commit."""
    order.remaining_quantity = remaining
    order.status = status
    order.updated_at = utcnow()
    try:
        session.add_all(dispatches)
        session.add(order)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception(f"Failed to record dispatches for order {order.id}")
        raise HTTPException(status_code=500, detail=error_detail)

    for d in dispatches:
        session.refresh(d)
    session.refresh(order)


@router.post("/{order_id}/dispatches", response_model=DispatchResult)
def create_dispatch(order_id: str, entry: DispatchCreate, session: Session = Depends(get_session), current_user: User = Depends(get_current_user)):
    validate_dispatch(entry)
    order = get_order_or_404(session, order_id, for_update=True)
    ensure_open(order)

    items = session.exec(select(OrderItem).where(OrderItem.order_id == order_id)).all()
    remaining = current_remaining(session, order, items)
    if entry.quantity > remaining + QUANTITY_TOLERANCE:
        logger.warning(f"Dispatch of {entry.quantity} rejected for {order_id}: only {remaining} remaining")
        raise HTTPException(
            status_code=400,
            detail=f"Dispatch quantity exceeds remaining. Remaining: {remaining:.2f}, Requested: {entry.quantity:.2f}",
        )

    dispatch = build_dispatch(order, entry, items, gauge_lookup(session, [entry]), current_user)
    commit_dispatches(
        session,
        order,
        [dispatch],
        remaining - entry.quantity,
        entry.status or order.status,
        "Failed to create dispatch. Please try again.",
    )

    logger.info(f"Dispatch of {dispatch.quantity} recorded for {order_id}, remaining {order.remaining_quantity}")
    return DispatchResult(dispatch=dispatch, order=read_order(session, order))


@router.post("/{order_id}/dispatches/batch", response_model=BatchDispatchResult)
def create_batch_dispatches(order_id: str, batch: BatchDispatchCreate, session: Session = Depends(get_session), current_user: User = Depends(get_current_user)):
    validate_batch(batch.entries)
    entries = calculations.apply_batch_defaults(batch.entries)

    order = get_order_or_404(session, order_id, for_update=True)
    ensure_open(order)

    items = session.exec(select(OrderItem).where(OrderItem.order_id == order_id)).all()
    remaining = current_remaining(session, order, items)
    batch_total = calculations.running_totals(entries)[-1]
    if batch_total > remaining + QUANTITY_TOLERANCE:
        logger.warning(f"Batch of {batch_total} rejected for {order_id}: only {remaining} remaining")
        raise HTTPException(
            status_code=400,
            detail=f"Total batch quantity exceeds remaining. Remaining: {remaining:.2f}, Requested: {batch_total:.2f}",
        )

    gauges = gauge_lookup(session, entries)
    dispatches = [build_dispatch(order, e, items, gauges, current_user) for e in entries]
    final_status = entries[-1].status or "partial"
    commit_dispatches(
        session,
        order,
        dispatches,
        remaining - batch_total,
        final_status,
        "Failed to create dispatches. Please try again.",
    )

    logger.info(f"Batch of {len(dispatches)} dispatches ({batch_total}) recorded for {order_id}")
    return BatchDispatchResult(
        dispatches=dispatches,
        order=read_order(session, order),
        total_batch_quantity=batch_total,
    )


@router.post("/{order_id}/dispatches/batch/preview", response_model=BatchPreview)
def preview_batch(order_id: str, batch: BatchDispatchCreate, session: Session = Depends(get_session)):
    """Pending batch totals without writing anything."""
    validate_batch(batch.entries)
    entries = calculations.apply_batch_defaults(batch.entries)

    order = get_order_or_404(session, order_id)
    items = session.exec(select(OrderItem).where(OrderItem.order_id == order_id)).all()
    remaining = current_remaining(session, order, items)
    totals = calculations.running_totals(entries)

    return BatchPreview(
        entries=entries,
        running_totals=totals,
        total_batch_quantity=totals[-1],
        remaining_quantity=remaining,
        remaining_after_batch=remaining - totals[-1],
    )


@router.get("/{order_id}/dispatches", response_model=List[Dispatch])
def list_dispatches(order_id: str, session: Session = Depends(get_session)):
    get_order_or_404(session, order_id)
    statement = select(Dispatch).where(Dispatch.order_id == order_id).order_by(Dispatch.date.desc())
    return session.exec(statement).all()
