"""
Loan ledger: running balances, accrual, top-ups, settlement and default.

Every balance-mutating operation accrues interest first inside the same
transaction, so callers never act on a stale total.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from pawn_gateway.domain.accrual import accrue_interest
from pawn_gateway.domain.exceptions import Forbidden, NothingToSettle, StateConflict, ValidationError
from pawn_gateway.domain.lifecycle import (
    apply_repayment,
    check_loan_transition,
    check_topup,
    require_positive,
)
from pawn_gateway.domain.models import (
    Actor,
    CollateralStatus,
    LoanBalances,
    LoanStatus,
    PaymentKind,
    PaymentStatus,
    REPAYMENT_KINDS,
)
from pawn_gateway.infrastructure.database.models import Loan, Payment
from pawn_gateway.infrastructure.database.repositories import (
    CollateralRepository,
    LoanRepository,
    PaymentRepository,
)
from pawn_gateway.infrastructure.observability.logging import log_ledger_event
from pawn_gateway.infrastructure.observability.metrics import (
    loan_event_counter,
    record_accrual,
    record_payment,
)
from pawn_gateway.services.collateral import move_collateral
from pawn_gateway.services.events import record_event
from pawn_gateway.services.guards import (
    parse_id,
    require_found,
    require_owner,
    require_shop,
    require_verified,
)
from pawn_gateway.services.transactions import run_in_transaction
from pawn_gateway.utils.date_utils import as_utc, utcnow

logger = logging.getLogger(__name__)


def accrue_loan(loan: Loan, now: datetime) -> int:
    """Add interest due since the last checkpoint; no-op unless the loan is active"""
    if loan.status != LoanStatus.ACTIVE.value or loan.last_accrual_at is None:
        return 0

    result = accrue_interest(
        loan.outstanding_principal_cents,
        loan.apr_percent,
        loan.last_accrual_at,
        now,
    )
    if result.whole_days <= 0:
        return 0

    loan.accrued_interest_cents += result.interest_delta_cents
    loan.last_accrual_at = result.checkpoint
    return result.interest_delta_cents


def close_if_repaid(db: Session, loan: Loan) -> bool:
    """Settle an active loan whose outstanding principal reached zero and release its collateral"""
    if loan.status != LoanStatus.ACTIVE.value or loan.outstanding_principal_cents > 0:
        return False

    check_loan_transition(loan.status, LoanStatus.SETTLED)
    loan.status = LoanStatus.SETTLED.value
    collateral = require_found(CollateralRepository(db).get_by_id(loan.collateral_id), "Collateral")
    move_collateral(collateral, CollateralStatus.REDEEMED)
    record_event(db, "loan.settled", loan_id=loan.id, total_paid_cents=loan.total_paid_cents)
    loan_event_counter.labels(event="settled").inc()
    return True


def _load_loan(db: Session, loan_id) -> Loan:
    return require_found(LoanRepository(db).get_by_id(parse_id(loan_id, "loan")), "Loan")


def _require_active(loan: Loan) -> None:
    if loan.status != LoanStatus.ACTIVE.value:
        raise StateConflict(f"Loan is {loan.status}, not active")


def _require_party(actor: Actor, loan: Loan) -> None:
    """Customer who owns the loan or staff of the lending shop"""
    require_verified(actor)
    if actor.actor_id != loan.customer_id and actor.shop_id != loan.shop_id:
        raise Forbidden("Actor is not a party to this loan")


def get_loan(db: Session, loan_id, now: Optional[datetime] = None) -> Loan:
    """Read-through: accrue before returning so the total due is current"""
    return accrue_to_now(db, loan_id, now)


def accrue_to_now(
    db: Session,
    loan_id,
    now: Optional[datetime] = None,
    actor: Optional[Actor] = None,
) -> Loan:
    """
    Bring accrued interest up to `now`.

    Idempotent within a day: a second call before another whole day has
    elapsed changes nothing. When `actor` is given it must be a party to the
    loan; reads that accrue through pass none.
    """
    now = now or utcnow()
    deltas = []

    def work() -> Loan:
        deltas.clear()
        loan = _load_loan(db, loan_id)
        if actor is not None:
            _require_party(actor, loan)
        deltas.append(accrue_loan(loan, now))
        return loan

    loan = run_in_transaction(db, work)
    if deltas and deltas[0] > 0:
        record_accrual(deltas[0])
        log_ledger_event("interest_accrued", "loan", str(loan.id), interest_delta_cents=deltas[0])
    return loan


def apply_topup(
    db: Session,
    actor: Actor,
    loan_id,
    amount_cents: int,
    now: Optional[datetime] = None,
) -> Loan:
    """
    Customer draws more principal against the same collateral.

    Raises:
        ValidationError: amount is not positive
        CapExceeded: outstanding principal would exceed max_principal_allowed
    """
    require_verified(actor)
    require_positive(amount_cents)
    now = now or utcnow()

    def work() -> Loan:
        loan = _load_loan(db, loan_id)
        require_owner(actor, loan.customer_id)
        _require_active(loan)
        accrue_loan(loan, now)
        loan.outstanding_principal_cents = check_topup(
            loan.balances, amount_cents, loan.max_principal_allowed_cents
        )
        loan.principal_cents += amount_cents
        PaymentRepository(db).create(
            loan_id=loan.id,
            amount_cents=amount_cents,
            kind=PaymentKind.TOPUP.value,
            status=PaymentStatus.APPROVED.value,
            created_by=actor.actor_id,
            decided_at=now,
            paid_at=now,
        )
        return loan

    loan = run_in_transaction(db, work)
    loan_event_counter.labels(event="topup").inc()
    record_payment(PaymentKind.TOPUP.value, "approved")
    log_ledger_event(
        "loan_topup", "loan", str(loan.id), actor.actor_id,
        amount_cents=amount_cents, outstanding_principal_cents=loan.outstanding_principal_cents,
    )
    return loan


def settle(db: Session, actor: Actor, loan_id, now: Optional[datetime] = None) -> Payment:
    """
    Pay off principal, interest and late fees in one operation.

    Records a single settlement payment, zeroes the balances and redeems the
    collateral. A second call finds nothing to settle.
    """
    now = now or utcnow()

    def work() -> Payment:
        loan = _load_loan(db, loan_id)
        _require_party(actor, loan)
        if loan.status == LoanStatus.SETTLED.value:
            raise NothingToSettle("Loan is already settled")
        _require_active(loan)

        accrue_loan(loan, now)
        total = loan.balances.total_cents
        if total <= 0:
            raise NothingToSettle("Loan has no outstanding balance")

        payment = PaymentRepository(db).create(
            loan_id=loan.id,
            amount_cents=total,
            kind=PaymentKind.SETTLEMENT.value,
            status=PaymentStatus.APPROVED.value,
            created_by=actor.actor_id,
            decided_at=now,
            paid_at=now,
        )
        loan.balances = LoanBalances(0, 0, 0)
        loan.total_paid_cents += total
        close_if_repaid(db, loan)
        return payment

    payment = run_in_transaction(db, work)
    record_payment(PaymentKind.SETTLEMENT.value, "approved")
    log_ledger_event(
        "loan_settled", "loan", str(payment.loan_id), actor.actor_id, amount_cents=payment.amount_cents
    )
    return payment


def mark_defaulted(db: Session, actor: Actor, loan_id, now: Optional[datetime] = None) -> Loan:
    """Shop declares the loan failed; balances are kept for reference"""
    now = now or utcnow()

    def work() -> Loan:
        loan = _load_loan(db, loan_id)
        require_shop(actor, loan.shop_id)
        check_loan_transition(loan.status, LoanStatus.DEFAULTED)
        accrue_loan(loan, now)
        loan.status = LoanStatus.DEFAULTED.value
        collateral = require_found(CollateralRepository(db).get_by_id(loan.collateral_id), "Collateral")
        move_collateral(collateral, CollateralStatus.DEFAULTED)
        record_event(
            db,
            "loan.defaulted",
            loan_id=loan.id,
            collateral_id=collateral.id,
            customer_id=loan.customer_id,
            total_due_cents=loan.balances.total_cents,
        )
        return loan

    loan = run_in_transaction(db, work)
    loan_event_counter.labels(event="defaulted").inc()
    log_ledger_event("loan_defaulted", "loan", str(loan.id), actor.actor_id)
    return loan


def assess_late_fee(
    db: Session,
    actor: Actor,
    loan_id,
    amount_cents: int,
    now: Optional[datetime] = None,
) -> Loan:
    """Shop charges a late fee on an active loan past its due date"""
    require_positive(amount_cents)
    now = now or utcnow()

    def work() -> Loan:
        loan = _load_loan(db, loan_id)
        require_shop(actor, loan.shop_id)
        _require_active(loan)
        if loan.due_at is None or as_utc(now) < loan.due_at:
            raise StateConflict("Loan is not past due")
        accrue_loan(loan, now)
        loan.late_fees_cents += amount_cents
        return loan

    loan = run_in_transaction(db, work)
    loan_event_counter.labels(event="late_fee").inc()
    log_ledger_event("late_fee_assessed", "loan", str(loan.id), actor.actor_id, amount_cents=amount_cents)
    return loan


def apply_approved_payment(db: Session, loan: Loan, kind: PaymentKind, amount_cents: int) -> None:
    """Decrement the balance named by `kind` and close the loan once principal is repaid"""
    loan.balances = apply_repayment(loan.balances, kind, amount_cents)
    loan.total_paid_cents += amount_cents
    close_if_repaid(db, loan)


def record_cash_payment(
    db: Session,
    actor: Actor,
    loan_id,
    amount_cents: int,
    kind: PaymentKind = PaymentKind.PRINCIPAL,
    method: Optional[str] = "cash",
    note: Optional[str] = None,
    paid_at: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> Payment:
    """
    Manual ledger adjustment for cash collected at the counter.

    The payment is recorded as approved and decrements exactly one balance,
    floored at zero.
    """
    require_positive(amount_cents)
    if kind not in REPAYMENT_KINDS:
        raise ValidationError(f"Cash payments cannot be of kind {kind.value}")
    now = now or utcnow()

    def work() -> Payment:
        loan = _load_loan(db, loan_id)
        require_shop(actor, loan.shop_id)
        _require_active(loan)
        accrue_loan(loan, now)
        payment = PaymentRepository(db).create(
            loan_id=loan.id,
            amount_cents=amount_cents,
            kind=kind.value,
            status=PaymentStatus.APPROVED.value,
            method=method,
            note=note,
            paid_at=paid_at or now,
            created_by=actor.actor_id,
            decided_by=actor.actor_id,
            decided_at=now,
        )
        apply_approved_payment(db, loan, kind, amount_cents)
        record_event(db, "payment.approved", payment_id=payment.id, loan_id=loan.id, amount_cents=amount_cents)
        return payment

    payment = run_in_transaction(db, work)
    record_payment(kind.value, "approved")
    log_ledger_event(
        "cash_payment_recorded", "payment", str(payment.id), actor.actor_id,
        loan_id=str(payment.loan_id), amount_cents=amount_cents, kind=kind.value,
    )
    return payment
