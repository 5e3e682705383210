"""Simple daily interest accrual on an outstanding principal"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from pawn_gateway.domain.models import AccrualResult
from pawn_gateway.utils.date_utils import whole_days_between

DAYS_PER_YEAR = 365


def round_half_up_cents(amount_cents: Decimal) -> int:
    """Round a fractional cent amount half-up to a whole cent (round2 in currency units)"""
    return int(amount_cents.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def daily_rate(apr_percent: float) -> Decimal:
    """APR percent -> daily rate as a fraction"""
    return Decimal(str(apr_percent)) / Decimal(100) / Decimal(DAYS_PER_YEAR)


def accrue_interest(
    outstanding_principal_cents: int,
    apr_percent: float,
    last_accrual_at: datetime,
    now: datetime,
) -> AccrualResult:
    """
    Compute interest accrued since the last checkpoint.

    Only whole elapsed days count. Non-compounding: the delta is computed on
    outstanding principal only and rounded once per call.

    Returns:
        AccrualResult with the interest delta and the new checkpoint. When no
        whole day has elapsed the delta is zero and the checkpoint is unchanged.

    Example:
        100000 cents at 24% APR for 10 days
        100000 * 0.24 / 365 * 10 = 657.53 -> 658 cents
    """
    days = whole_days_between(last_accrual_at, now)
    if days <= 0:
        return AccrualResult(interest_delta_cents=0, checkpoint=last_accrual_at, whole_days=0)

    raw = Decimal(outstanding_principal_cents) * daily_rate(apr_percent) * days
    return AccrualResult(
        interest_delta_cents=round_half_up_cents(raw),
        checkpoint=now,
        whole_days=days,
    )
