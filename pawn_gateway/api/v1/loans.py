"""Loan ledger endpoints: read-through accrual, top-ups, settlement, default, payments"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pawn_gateway.api.dependencies import get_actor
from pawn_gateway.api.v1.schemas import (
    AmountRequest,
    CashPaymentRequest,
    LoanResponse,
    PaymentListResponse,
    PaymentResponse,
    PaymentSubmitRequest,
)
from pawn_gateway.domain.models import Actor
from pawn_gateway.infrastructure.database.models import Loan, Payment
from pawn_gateway.infrastructure.database.session import get_db
from pawn_gateway.services import ledger
from pawn_gateway.services import offers as offer_service
from pawn_gateway.services import payments as payment_service

router = APIRouter()


def loan_to_response(loan: Loan) -> LoanResponse:
    return LoanResponse(
        loan_id=str(loan.id),
        collateral_id=str(loan.collateral_id),
        customer_id=loan.customer_id,
        shop_id=loan.shop_id,
        status=loan.status,
        principal_cents=loan.principal_cents,
        max_principal_allowed_cents=loan.max_principal_allowed_cents,
        appraised_value_cents=loan.appraised_value_cents,
        ltv_percent=loan.ltv_percent,
        apr_percent=loan.apr_percent,
        term_days=loan.term_days,
        outstanding_principal_cents=loan.outstanding_principal_cents,
        accrued_interest_cents=loan.accrued_interest_cents,
        late_fees_cents=loan.late_fees_cents,
        total_due_cents=loan.balances.total_cents,
        total_paid_cents=loan.total_paid_cents,
        last_accrual_at=loan.last_accrual_at,
        start_at=loan.start_at,
        due_at=loan.due_at,
        updated_at=loan.updated_at,
    )


def payment_to_response(payment: Payment) -> PaymentResponse:
    return PaymentResponse(
        payment_id=str(payment.id),
        loan_id=str(payment.loan_id),
        amount_cents=payment.amount_cents,
        kind=payment.kind,
        status=payment.status,
        method=payment.method,
        note=payment.note,
        paid_at=payment.paid_at,
        created_by=payment.created_by,
        decided_by=payment.decided_by,
        created_at=payment.created_at,
    )


@router.get("/loans/{loan_id}", response_model=LoanResponse)
def get_loan(loan_id: str, db: Session = Depends(get_db)):
    """Loan with interest accrued through now, so total_due_cents is current"""
    return loan_to_response(ledger.get_loan(db, loan_id))


@router.post("/loans/{loan_id}/accept", response_model=LoanResponse)
def accept_offer(loan_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return loan_to_response(offer_service.accept_offer(db, actor, loan_id))


@router.post("/loans/{loan_id}/decline", response_model=LoanResponse)
def decline_offer(loan_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    """Owner declines, or the offering shop withdraws, a pending offer"""
    return loan_to_response(offer_service.decline_offer(db, actor, loan_id))


@router.post("/loans/{loan_id}/accrue", response_model=LoanResponse)
def accrue(loan_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return loan_to_response(ledger.accrue_to_now(db, loan_id, actor=actor))


@router.post("/loans/{loan_id}/topup", response_model=LoanResponse)
def topup(
    loan_id: str,
    body: AmountRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return loan_to_response(ledger.apply_topup(db, actor, loan_id, body.amount_cents))


@router.post("/loans/{loan_id}/settle", response_model=PaymentResponse)
def settle(loan_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    """Pay off the loan in full; returns the settlement payment"""
    return payment_to_response(ledger.settle(db, actor, loan_id))


@router.post("/loans/{loan_id}/default", response_model=LoanResponse)
def mark_defaulted(loan_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return loan_to_response(ledger.mark_defaulted(db, actor, loan_id))


@router.post("/loans/{loan_id}/late-fees", response_model=LoanResponse)
def assess_late_fee(
    loan_id: str,
    body: AmountRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return loan_to_response(ledger.assess_late_fee(db, actor, loan_id, body.amount_cents))


@router.post("/loans/{loan_id}/cash-payments", response_model=PaymentResponse, status_code=201)
def record_cash_payment(
    loan_id: str,
    body: CashPaymentRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Shop records cash collected at the counter; applied immediately"""
    payment = ledger.record_cash_payment(
        db,
        actor,
        loan_id,
        body.amount_cents,
        kind=body.kind,
        method=body.method,
        note=body.note,
        paid_at=body.paid_at,
    )
    return payment_to_response(payment)


@router.post("/loans/{loan_id}/payments", response_model=PaymentResponse, status_code=201)
def submit_payment(
    loan_id: str,
    body: PaymentSubmitRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Customer reports a payment for shop review"""
    payment = payment_service.submit_payment(
        db, actor, loan_id, body.amount_cents, kind=body.kind, method=body.method, note=body.note
    )
    return payment_to_response(payment)


@router.get("/loans/{loan_id}/payments", response_model=PaymentListResponse)
def list_payments(loan_id: str, db: Session = Depends(get_db)):
    payments = payment_service.list_loan_payments(db, loan_id)
    return PaymentListResponse(payments=[payment_to_response(p) for p in payments])
