"""Payment application: customer submissions and the shop review queue"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from pawn_gateway.domain.exceptions import AlreadyProcessed, Forbidden, StateConflict, ValidationError
from pawn_gateway.domain.lifecycle import require_positive
from pawn_gateway.domain.models import (
    Actor,
    LoanStatus,
    PaymentKind,
    PaymentStatus,
    REPAYMENT_KINDS,
)
from pawn_gateway.infrastructure.database.models import Payment
from pawn_gateway.infrastructure.database.repositories import LoanRepository, PaymentRepository
from pawn_gateway.infrastructure.observability.logging import log_ledger_event
from pawn_gateway.infrastructure.observability.metrics import record_payment
from pawn_gateway.services.events import record_event
from pawn_gateway.services.guards import parse_id, require_found, require_owner, require_shop
from pawn_gateway.services.ledger import accrue_loan, apply_approved_payment
from pawn_gateway.services.transactions import run_in_transaction
from pawn_gateway.utils.date_utils import utcnow


def submit_payment(
    db: Session,
    actor: Actor,
    loan_id,
    amount_cents: int,
    kind: PaymentKind = PaymentKind.PRINCIPAL,
    method: Optional[str] = None,
    note: Optional[str] = None,
) -> Payment:
    """Customer reports a payment; it waits in the shop's queue as pending"""
    require_positive(amount_cents)
    if kind not in REPAYMENT_KINDS:
        raise ValidationError(f"Payments cannot be submitted as {kind.value}")
    lid = parse_id(loan_id, "loan")

    def work() -> Payment:
        loan = require_found(LoanRepository(db).get_by_id(lid), "Loan")
        require_owner(actor, loan.customer_id)
        if loan.status != LoanStatus.ACTIVE.value:
            raise StateConflict(f"Loan is {loan.status}, not active")
        return PaymentRepository(db).create(
            loan_id=loan.id,
            amount_cents=amount_cents,
            kind=kind.value,
            status=PaymentStatus.PENDING.value,
            method=method,
            note=note,
            created_by=actor.actor_id,
        )

    payment = run_in_transaction(db, work)
    record_payment(kind.value, "submitted")
    log_ledger_event(
        "payment_submitted", "payment", str(payment.id), actor.actor_id,
        loan_id=str(payment.loan_id), amount_cents=amount_cents,
    )
    return payment


def approve_payment(db: Session, actor: Actor, payment_id, now: Optional[datetime] = None) -> Payment:
    """
    Apply a pending payment to its loan.

    The payment's status flip and the loan's balance change commit together
    or not at all. A concurrent approval of the same payment loses the
    version check, retries, and then sees AlreadyProcessed.
    """
    now = now or utcnow()
    pid = parse_id(payment_id, "payment")

    def work() -> Payment:
        payment = require_found(PaymentRepository(db).get_by_id(pid), "Payment")
        loan = require_found(LoanRepository(db).get_by_id(payment.loan_id), "Loan")
        require_shop(actor, loan.shop_id)
        if payment.status != PaymentStatus.PENDING.value:
            raise AlreadyProcessed(f"Payment already {payment.status}")
        if loan.status != LoanStatus.ACTIVE.value:
            raise StateConflict(f"Loan is {loan.status}, not active")

        accrue_loan(loan, now)
        apply_approved_payment(db, loan, PaymentKind(payment.kind), payment.amount_cents)
        payment.status = PaymentStatus.APPROVED.value
        payment.decided_by = actor.actor_id
        payment.decided_at = now
        payment.paid_at = payment.paid_at or now
        record_event(
            db,
            "payment.approved",
            payment_id=payment.id,
            loan_id=loan.id,
            customer_id=loan.customer_id,
            amount_cents=payment.amount_cents,
        )
        return payment

    payment = run_in_transaction(db, work)
    record_payment(payment.kind, "approved")
    log_ledger_event(
        "payment_approved", "payment", str(payment.id), actor.actor_id,
        loan_id=str(payment.loan_id), amount_cents=payment.amount_cents,
    )
    return payment


def decline_payment(db: Session, actor: Actor, payment_id, now: Optional[datetime] = None) -> Payment:
    """Reject a pending payment; balances are untouched"""
    now = now or utcnow()
    pid = parse_id(payment_id, "payment")

    def work() -> Payment:
        payment = require_found(PaymentRepository(db).get_by_id(pid), "Payment")
        loan = require_found(LoanRepository(db).get_by_id(payment.loan_id), "Loan")
        require_shop(actor, loan.shop_id)
        if payment.status != PaymentStatus.PENDING.value:
            raise AlreadyProcessed(f"Payment already {payment.status}")
        payment.status = PaymentStatus.DECLINED.value
        payment.decided_by = actor.actor_id
        payment.decided_at = now
        record_event(db, "payment.declined", payment_id=payment.id, loan_id=loan.id)
        return payment

    payment = run_in_transaction(db, work)
    record_payment(payment.kind, "declined")
    log_ledger_event("payment_declined", "payment", str(payment.id), actor.actor_id)
    return payment


def list_loan_payments(db: Session, loan_id) -> List[Payment]:
    lid = parse_id(loan_id, "loan")
    require_found(LoanRepository(db).get_by_id(lid), "Loan")
    return PaymentRepository(db).list_by_loan(lid)


def list_review_queue(db: Session, actor: Actor) -> List[Payment]:
    """Pending payments on loans of the actor's shop, oldest first"""
    if actor.shop_id is None:
        raise Forbidden("Only shop staff can review payments")
    return PaymentRepository(db).list_pending_for_shop(actor.shop_id)
