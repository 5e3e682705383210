"""Shop payment review queue"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pawn_gateway.api.dependencies import get_actor
from pawn_gateway.api.v1.loans import payment_to_response
from pawn_gateway.api.v1.schemas import PaymentListResponse, PaymentResponse
from pawn_gateway.domain.models import Actor
from pawn_gateway.infrastructure.database.session import get_db
from pawn_gateway.services import payments as payment_service

router = APIRouter()


@router.get("/payments/queue", response_model=PaymentListResponse)
def review_queue(actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    payments = payment_service.list_review_queue(db, actor)
    return PaymentListResponse(payments=[payment_to_response(p) for p in payments])


@router.post("/payments/{payment_id}/approve", response_model=PaymentResponse)
def approve_payment(payment_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    """Apply a pending payment to its loan; 409 if it was already processed"""
    return payment_to_response(payment_service.approve_payment(db, actor, payment_id))


@router.post("/payments/{payment_id}/decline", response_model=PaymentResponse)
def decline_payment(payment_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return payment_to_response(payment_service.decline_payment(db, actor, payment_id))
