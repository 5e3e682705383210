"""State machines and balance arithmetic for collateral, loans and auctions"""

import math
from decimal import Decimal
from typing import Dict, Set

from pawn_gateway.domain.exceptions import CapExceeded, StateConflict, ValidationError
from pawn_gateway.domain.models import (
    AuctionStatus,
    CollateralStatus,
    LoanBalances,
    LoanStatus,
    PaymentKind,
)

COLLATERAL_TRANSITIONS: Dict[CollateralStatus, Set[CollateralStatus]] = {
    CollateralStatus.AVAILABLE: {CollateralStatus.APPRAISED, CollateralStatus.PLEDGED},
    CollateralStatus.APPRAISED: {CollateralStatus.PLEDGED, CollateralStatus.DEFAULTED, CollateralStatus.AVAILABLE},
    CollateralStatus.PLEDGED: {CollateralStatus.REDEEMED, CollateralStatus.DEFAULTED},
    CollateralStatus.REDEEMED: set(),
    CollateralStatus.DEFAULTED: set(),
}

LOAN_TRANSITIONS: Dict[LoanStatus, Set[LoanStatus]] = {
    LoanStatus.PENDING_OFFER: {LoanStatus.ACTIVE, LoanStatus.DEFAULTED, LoanStatus.DECLINED},
    LoanStatus.ACTIVE: {LoanStatus.SETTLED, LoanStatus.DEFAULTED},
    LoanStatus.SETTLED: set(),
    LoanStatus.DEFAULTED: set(),
    LoanStatus.DECLINED: set(),
}

AUCTION_TRANSITIONS: Dict[AuctionStatus, Set[AuctionStatus]] = {
    AuctionStatus.SCHEDULED: {AuctionStatus.LIVE, AuctionStatus.ENDED},
    AuctionStatus.LIVE: {AuctionStatus.ENDED},
    AuctionStatus.ENDED: {AuctionStatus.SETTLEMENT_PENDING, AuctionStatus.SETTLED},
    AuctionStatus.SETTLEMENT_PENDING: {AuctionStatus.SETTLED},
    AuctionStatus.SETTLED: set(),
}


def _check(kind: str, transitions: dict, current, target) -> None:
    if target not in transitions[current]:
        raise StateConflict(f"{kind} cannot move from {current.value} to {target.value}")


def check_collateral_transition(current: str, target: CollateralStatus) -> None:
    _check("Collateral", COLLATERAL_TRANSITIONS, CollateralStatus(current), target)


def check_loan_transition(current: str, target: LoanStatus) -> None:
    _check("Loan", LOAN_TRANSITIONS, LoanStatus(current), target)


def check_auction_transition(current: str, target: AuctionStatus) -> None:
    _check("Auction", AUCTION_TRANSITIONS, AuctionStatus(current), target)


def require_positive(amount_cents: int, field: str = "amount_cents") -> None:
    if amount_cents is None or amount_cents <= 0:
        raise ValidationError(f"{field} must be positive")


def offer_principal(appraised_value_cents: int, ltv_percent: float) -> int:
    """
    Principal for a shop-initiated offer.

    floor(appraised value x LTV / 100) in whole currency units, so the
    cents part of the offer is always zero.
    """
    units = Decimal(appraised_value_cents) / 100 * Decimal(str(ltv_percent)) / 100
    return math.floor(units) * 100


def check_topup(balances: LoanBalances, amount_cents: int, max_principal_allowed_cents: int) -> int:
    """Validate a top-up and return the new outstanding principal"""
    require_positive(amount_cents)
    new_outstanding = balances.outstanding_principal_cents + amount_cents
    if new_outstanding > max_principal_allowed_cents:
        raise CapExceeded(
            f"Top-up of {amount_cents} would raise principal to {new_outstanding}, "
            f"above the cap of {max_principal_allowed_cents}"
        )
    return new_outstanding


def apply_repayment(balances: LoanBalances, kind: PaymentKind, amount_cents: int) -> LoanBalances:
    """
    Decrement exactly one balance by a payment amount, floored at zero.

    Never increases a balance; top-ups and settlements go through their own
    operations.
    """
    require_positive(amount_cents)
    principal = balances.outstanding_principal_cents
    interest = balances.accrued_interest_cents
    fees = balances.late_fees_cents

    if kind == PaymentKind.PRINCIPAL:
        principal = max(0, principal - amount_cents)
    elif kind == PaymentKind.INTEREST:
        interest = max(0, interest - amount_cents)
    elif kind == PaymentKind.LATE_FEE:
        fees = max(0, fees - amount_cents)
    else:
        raise ValidationError(f"Payment kind {kind.value} does not reduce a balance")

    return LoanBalances(
        outstanding_principal_cents=principal,
        accrued_interest_cents=interest,
        late_fees_cents=fees,
    )
