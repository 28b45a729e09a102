from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ..database import get_session
from ..logger import get_logger
from ..models import Payment, PaymentCreate, User, utcnow
from .auth import get_current_user
from .orders import get_order_or_404

router = APIRouter(tags=["payments"])
logger = get_logger("payments")


@router.post("/orders/{order_id}/payments", response_model=Payment)
def create_payment(order_id: str, payload: PaymentCreate, session: Session = Depends(get_session), current_user: User = Depends(get_current_user)):
    if payload.amount <= 0:
        raise HTTPException(status_code=400, detail="Amount must be greater than 0")

    order = get_order_or_404(session, order_id)
    payment = Payment(
        order_id=order_id,
        amount=payload.amount,
        payment_date=payload.payment_date or date.today(),
        payment_mode=payload.payment_mode,
        payment_status=payload.payment_status,
        reference_number=payload.reference_number,
        notes=payload.notes,
        user_id=current_user.id,
    )

    # The newest payment decides the order's payment status
    order.payment_status = payload.payment_status
    order.updated_at = utcnow()

    try:
        session.add(payment)
        session.add(order)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception(f"Failed to record payment for order {order_id}")
        raise HTTPException(status_code=500, detail="Failed to record payment. Please try again.")

    session.refresh(payment)
    logger.info(f"Payment of {payment.amount} ({payment.payment_mode}) recorded for {order_id}")
    return payment


@router.get("/orders/{order_id}/payments", response_model=List[Payment])
def list_order_payments(order_id: str, session: Session = Depends(get_session)):
    get_order_or_404(session, order_id)
    statement = select(Payment).where(Payment.order_id == order_id).order_by(Payment.created_at.desc())
    return session.exec(statement).all()


@router.get("/payments/", response_model=List[Payment])
def list_payments(order_id: Optional[str] = None, session: Session = Depends(get_session)):
    statement = select(Payment)
    if order_id:
        statement = statement.where(Payment.order_id == order_id)
    return session.exec(statement.order_by(Payment.created_at.desc())).all()
