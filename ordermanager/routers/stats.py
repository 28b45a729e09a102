from datetime import date
from typing import Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session, select

from .. import calculations
from ..database import get_session
from ..models import DashboardStats, Dispatch, Order
from .orders import load_children

router = APIRouter(prefix="/stats", tags=["stats"])


class DashboardFilters(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    supplier: Optional[str] = None
    customer: Optional[str] = None
    order_id: Optional[str] = None


def apply_order_filters(statement, filters: DashboardFilters):
    if filters.start_date:
        statement = statement.where(Order.date >= filters.start_date)
    if filters.end_date:
        statement = statement.where(Order.date <= filters.end_date)
    if filters.supplier:
        statement = statement.where(Order.supplier.ilike(f"%{filters.supplier}%"))
    if filters.customer:
        statement = statement.where(Order.customer.ilike(f"%{filters.customer}%"))
    if filters.order_id:
        statement = statement.where(Order.id.ilike(f"%{filters.order_id}%"))
    return statement


@router.get("/dashboard", response_model=DashboardStats)
def get_dashboard_stats(filters: DashboardFilters = Depends(), session: Session = Depends(get_session)):
    orders = session.exec(apply_order_filters(select(Order), filters)).all()
    items_by, dispatches_by, _ = load_children(session, [o.id for o in orders])
    return DashboardStats(**calculations.summarize_orders(orders, items_by, dispatches_by))


@router.get("/receivable", response_model=Dict[str, float])
def get_total_receivable(filters: DashboardFilters = Depends(), session: Session = Depends(get_session)):
    statement = select(Dispatch).join(Order, Dispatch.order_id == Order.id)
    dispatches = session.exec(apply_order_filters(statement, filters)).all()
    return {"total_receivable": calculations.total_receivable(dispatches)}
