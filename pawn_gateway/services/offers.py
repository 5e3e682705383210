"""Loan offer negotiation: shop appraisal offers and customer loan requests"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from pawn_gateway.domain.exceptions import Forbidden, StateConflict, ValidationError
from pawn_gateway.domain.lifecycle import check_loan_transition, offer_principal, require_positive
from pawn_gateway.domain.models import (
    Actor,
    CollateralStatus,
    LoanRequestStatus,
    LoanStatus,
)
from pawn_gateway.infrastructure.database.models import Collateral, Loan, LoanRequest
from pawn_gateway.infrastructure.database.repositories import (
    CollateralRepository,
    LoanRepository,
    LoanRequestRepository,
)
from pawn_gateway.infrastructure.observability.logging import log_ledger_event
from pawn_gateway.infrastructure.observability.metrics import loan_event_counter
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
from pawn_gateway.utils.date_utils import add_days, utcnow

logger = logging.getLogger(__name__)


def _ensure_no_open_loan(db: Session, collateral: Collateral, allowed: Optional[Loan] = None) -> None:
    existing = LoanRepository(db).get_open_for_collateral(collateral.id)
    if existing is not None and existing is not allowed:
        raise StateConflict("Collateral already backs an open loan")


def activate_loan(db: Session, loan: Loan, collateral: Collateral, now: datetime) -> None:
    """
    The single "loan created" transition shared by both entry paths.

    Disburses principal, starts the accrual clock and pledges the collateral.
    """
    check_loan_transition(loan.status, LoanStatus.ACTIVE)
    loan.status = LoanStatus.ACTIVE.value
    loan.start_at = now
    loan.due_at = add_days(now, loan.term_days)
    loan.last_accrual_at = now
    loan.outstanding_principal_cents = loan.principal_cents
    move_collateral(collateral, CollateralStatus.PLEDGED, loan_id=loan.id)
    record_event(
        db,
        "loan.activated",
        loan_id=loan.id,
        collateral_id=collateral.id,
        customer_id=loan.customer_id,
        shop_id=loan.shop_id,
        principal_cents=loan.principal_cents,
        due_at=loan.due_at,
    )


def create_offer(
    db: Session,
    actor: Actor,
    collateral_id,
    appraised_value_cents: int,
    ltv_percent: float,
    apr_percent: float,
    term_days: int,
) -> Loan:
    """
    Shop appraises an item and offers a loan against it.

    The loan stays `pending_offer` until the owner accepts it.
    """
    require_verified(actor)
    if actor.shop_id is None:
        raise Forbidden("Only shop staff can appraise collateral")
    require_positive(appraised_value_cents, "appraised_value_cents")
    if ltv_percent is None or ltv_percent <= 0 or ltv_percent > 100:
        raise ValidationError("ltv_percent must be between 0 and 100")
    if apr_percent is None or apr_percent <= 0:
        raise ValidationError("apr_percent must be positive")
    if term_days is None or term_days < 1:
        raise ValidationError("term_days must be at least 1")

    principal = offer_principal(appraised_value_cents, ltv_percent)
    if principal <= 0:
        raise ValidationError("Offer principal rounds down to zero")
    cid = parse_id(collateral_id, "collateral")

    def work() -> Loan:
        collateral = require_found(CollateralRepository(db).get_by_id(cid), "Collateral")
        _ensure_no_open_loan(db, collateral)
        loan = LoanRepository(db).create(
            collateral_id=collateral.id,
            customer_id=collateral.owner_id,
            shop_id=actor.shop_id,
            principal_cents=principal,
            max_principal_allowed_cents=appraised_value_cents,
            appraised_value_cents=appraised_value_cents,
            ltv_percent=ltv_percent,
            apr_percent=apr_percent,
            term_days=term_days,
            status=LoanStatus.PENDING_OFFER.value,
        )
        collateral.appraised_value_cents = appraised_value_cents
        move_collateral(collateral, CollateralStatus.APPRAISED, loan_id=loan.id)
        return loan

    loan = run_in_transaction(db, work)
    loan_event_counter.labels(event="offered").inc()
    log_ledger_event(
        "loan_offered", "loan", str(loan.id), actor.actor_id,
        principal_cents=principal, appraised_value_cents=appraised_value_cents,
    )
    return loan


def accept_offer(db: Session, actor: Actor, loan_id, now: Optional[datetime] = None) -> Loan:
    """Collateral owner accepts a pending offer, activating the loan"""
    require_verified(actor)
    now = now or utcnow()
    lid = parse_id(loan_id, "loan")

    def work() -> Loan:
        loan = require_found(LoanRepository(db).get_by_id(lid), "Loan")
        require_owner(actor, loan.customer_id)
        if loan.status != LoanStatus.PENDING_OFFER.value:
            raise StateConflict(f"Loan is {loan.status}, not an open offer")
        collateral = require_found(CollateralRepository(db).get_by_id(loan.collateral_id), "Collateral")
        _ensure_no_open_loan(db, collateral, allowed=loan)
        activate_loan(db, loan, collateral, now)
        return loan

    loan = run_in_transaction(db, work)
    loan_event_counter.labels(event="activated").inc()
    log_ledger_event("loan_activated", "loan", str(loan.id), actor.actor_id, principal_cents=loan.principal_cents)
    return loan


def decline_offer(db: Session, actor: Actor, loan_id) -> Loan:
    """
    Close a pending offer without lending.

    The collateral owner may decline it or the offering shop may withdraw it.
    The item goes back to `available` and keeps its appraised value.
    """
    require_verified(actor)
    lid = parse_id(loan_id, "loan")

    def work() -> Loan:
        loan = require_found(LoanRepository(db).get_by_id(lid), "Loan")
        if actor.actor_id != loan.customer_id and actor.shop_id != loan.shop_id:
            raise Forbidden("Actor is not a party to this offer")
        if loan.status != LoanStatus.PENDING_OFFER.value:
            raise StateConflict(f"Loan is {loan.status}, not an open offer")
        check_loan_transition(loan.status, LoanStatus.DECLINED)
        loan.status = LoanStatus.DECLINED.value

        collateral = require_found(CollateralRepository(db).get_by_id(loan.collateral_id), "Collateral")
        move_collateral(collateral, CollateralStatus.AVAILABLE)
        collateral.loan_id = None
        record_event(
            db,
            "loan.offer_declined",
            loan_id=loan.id,
            collateral_id=collateral.id,
            declined_by=actor.actor_id,
        )
        return loan

    loan = run_in_transaction(db, work)
    loan_event_counter.labels(event="declined").inc()
    log_ledger_event("loan_offer_declined", "loan", str(loan.id), actor.actor_id)
    return loan


def submit_loan_request(
    db: Session,
    actor: Actor,
    collateral_id,
    shop_id: str,
    amount_requested_cents: int,
    duration_days: int,
    interest_percent: float,
) -> LoanRequest:
    """Customer asks a chosen shop for a loan against their own item"""
    require_verified(actor)
    if not shop_id:
        raise ValidationError("shop_id is required")
    require_positive(amount_requested_cents, "amount_requested_cents")
    if duration_days is None or duration_days < 1:
        raise ValidationError("duration_days must be at least 1")
    if interest_percent is None or interest_percent < 0:
        raise ValidationError("interest_percent must not be negative")
    cid = parse_id(collateral_id, "collateral")

    def work() -> LoanRequest:
        collateral = require_found(CollateralRepository(db).get_by_id(cid), "Collateral")
        require_owner(actor, collateral.owner_id)
        if collateral.status != CollateralStatus.AVAILABLE.value:
            raise StateConflict(f"Collateral is {collateral.status}, not available")
        _ensure_no_open_loan(db, collateral)
        return LoanRequestRepository(db).create(
            collateral_id=collateral.id,
            customer_id=actor.actor_id,
            shop_id=shop_id,
            amount_requested_cents=amount_requested_cents,
            duration_days=duration_days,
            interest_percent=interest_percent,
            status=LoanRequestStatus.PENDING.value,
        )

    loan_request = run_in_transaction(db, work)
    log_ledger_event(
        "loan_requested", "loan_request", str(loan_request.id), actor.actor_id,
        amount_cents=amount_requested_cents,
    )
    return loan_request


def _request_cap(collateral: Collateral, principal_cents: int) -> int:
    valuation = collateral.appraised_value_cents or collateral.estimated_value_cents or 0
    return max(principal_cents, valuation)


def accept_loan_request(
    db: Session,
    actor: Actor,
    request_id,
    now: Optional[datetime] = None,
) -> Loan:
    """Shop accepts a customer request; the loan is created directly as active"""
    require_verified(actor)
    now = now or utcnow()
    rid = parse_id(request_id, "loan request")

    def work() -> Loan:
        loan_request = require_found(LoanRequestRepository(db).get_by_id(rid), "Loan request")
        require_shop(actor, loan_request.shop_id)
        if loan_request.status != LoanRequestStatus.PENDING.value:
            raise StateConflict(f"Loan request already {loan_request.status}")

        collateral = require_found(
            CollateralRepository(db).get_by_id(loan_request.collateral_id), "Collateral"
        )
        _ensure_no_open_loan(db, collateral)
        loan = LoanRepository(db).create(
            collateral_id=collateral.id,
            customer_id=loan_request.customer_id,
            shop_id=loan_request.shop_id,
            loan_request_id=loan_request.id,
            principal_cents=loan_request.amount_requested_cents,
            max_principal_allowed_cents=_request_cap(collateral, loan_request.amount_requested_cents),
            appraised_value_cents=collateral.appraised_value_cents,
            apr_percent=loan_request.interest_percent,
            term_days=loan_request.duration_days,
            status=LoanStatus.PENDING_OFFER.value,
        )
        activate_loan(db, loan, collateral, now)
        loan_request.status = LoanRequestStatus.ACCEPTED.value
        loan_request.loan_id = loan.id
        return loan

    loan = run_in_transaction(db, work)
    loan_event_counter.labels(event="activated").inc()
    log_ledger_event(
        "loan_request_accepted", "loan", str(loan.id), actor.actor_id,
        principal_cents=loan.principal_cents,
    )
    return loan


def decline_loan_request(db: Session, actor: Actor, request_id) -> LoanRequest:
    require_verified(actor)
    rid = parse_id(request_id, "loan request")

    def work() -> LoanRequest:
        loan_request = require_found(LoanRequestRepository(db).get_by_id(rid), "Loan request")
        require_shop(actor, loan_request.shop_id)
        if loan_request.status != LoanRequestStatus.PENDING.value:
            raise StateConflict(f"Loan request already {loan_request.status}")
        loan_request.status = LoanRequestStatus.DECLINED.value
        return loan_request

    loan_request = run_in_transaction(db, work)
    log_ledger_event("loan_request_declined", "loan_request", str(loan_request.id), actor.actor_id)
    return loan_request


def get_loan_request(db: Session, request_id) -> LoanRequest:
    return require_found(
        LoanRequestRepository(db).get_by_id(parse_id(request_id, "loan request")), "Loan request"
    )


def list_loan_requests(db: Session, actor: Actor, status: Optional[str] = None) -> List[LoanRequest]:
    """Requests addressed to the actor's shop"""
    if actor.shop_id is None:
        raise Forbidden("Only shop staff can list loan requests")
    if status is not None and status not in {s.value for s in LoanRequestStatus}:
        raise ValidationError(f"Unknown loan request status: {status}")
    return LoanRequestRepository(db).list_by_shop(actor.shop_id, status)
