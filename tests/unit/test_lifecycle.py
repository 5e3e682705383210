"""Unit tests for state machines and balance arithmetic"""

import pytest

from pawn_gateway.domain.exceptions import CapExceeded, StateConflict, ValidationError
from pawn_gateway.domain.lifecycle import (
    apply_repayment,
    check_auction_transition,
    check_collateral_transition,
    check_loan_transition,
    check_topup,
    offer_principal,
)
from pawn_gateway.domain.models import (
    AuctionStatus,
    CollateralStatus,
    LoanBalances,
    LoanStatus,
    PaymentKind,
)


def test_offer_principal_floors_to_whole_units():
    assert offer_principal(80_000, 62.5) == 50_000
    # 999.99 * 50% = 499.995 -> 499.00
    assert offer_principal(99_999, 50) == 49_900
    assert offer_principal(80_000, 100) == 80_000


def test_topup_within_cap():
    """outstanding 500.00, cap 800.00: +250.00 -> 750.00"""
    balances = LoanBalances(50_000, 0, 0)
    assert check_topup(balances, 25_000, 80_000) == 75_000


def test_topup_over_cap_rejected():
    """outstanding 500.00, cap 800.00: +350.00 -> 850.00 rejected"""
    with pytest.raises(CapExceeded):
        check_topup(LoanBalances(50_000, 0, 0), 35_000, 80_000)


def test_topup_exactly_to_cap_allowed():
    assert check_topup(LoanBalances(50_000, 0, 0), 30_000, 80_000) == 80_000


@pytest.mark.parametrize("amount", [0, -100])
def test_topup_non_positive_rejected(amount):
    with pytest.raises(ValidationError):
        check_topup(LoanBalances(50_000, 0, 0), amount, 80_000)


def test_repayment_touches_only_named_balance():
    balances = LoanBalances(50_000, 1_200, 500)

    after = apply_repayment(balances, PaymentKind.INTEREST, 700)

    assert after.outstanding_principal_cents == 50_000
    assert after.accrued_interest_cents == 500
    assert after.late_fees_cents == 500


def test_repayment_floors_at_zero():
    after = apply_repayment(LoanBalances(10_000, 0, 300), PaymentKind.LATE_FEE, 1_000)
    assert after.late_fees_cents == 0

    after = apply_repayment(LoanBalances(10_000, 0, 0), PaymentKind.PRINCIPAL, 25_000)
    assert after.outstanding_principal_cents == 0


def test_repayment_rejects_non_repayment_kinds():
    with pytest.raises(ValidationError):
        apply_repayment(LoanBalances(10_000, 0, 0), PaymentKind.TOPUP, 1_000)


def test_balances_total():
    assert LoanBalances(50_000, 658, 1_000).total_cents == 51_658


def test_collateral_terminal_states():
    for terminal in ("redeemed", "defaulted"):
        with pytest.raises(StateConflict):
            check_collateral_transition(terminal, CollateralStatus.PLEDGED)


def test_collateral_both_pledge_paths_allowed():
    check_collateral_transition("available", CollateralStatus.APPRAISED)
    check_collateral_transition("appraised", CollateralStatus.PLEDGED)
    check_collateral_transition("available", CollateralStatus.PLEDGED)


def test_settled_loan_cannot_default():
    with pytest.raises(StateConflict):
        check_loan_transition("settled", LoanStatus.DEFAULTED)
    check_loan_transition("pending_offer", LoanStatus.DEFAULTED)
    check_loan_transition("active", LoanStatus.DEFAULTED)


def test_auction_cannot_skip_ended():
    with pytest.raises(StateConflict):
        check_auction_transition("live", AuctionStatus.SETTLED)
    check_auction_transition("ended", AuctionStatus.SETTLED)
    check_auction_transition("settlement_pending", AuctionStatus.SETTLED)


def test_pending_offer_can_be_declined_and_item_released():
    check_loan_transition("pending_offer", LoanStatus.DECLINED)
    check_collateral_transition("appraised", CollateralStatus.AVAILABLE)
    with pytest.raises(StateConflict):
        check_loan_transition("active", LoanStatus.DECLINED)
    with pytest.raises(StateConflict):
        check_loan_transition("declined", LoanStatus.ACTIVE)
    with pytest.raises(StateConflict):
        check_collateral_transition("pledged", CollateralStatus.AVAILABLE)
