"""Auction bidding rules: minimum increments, liveness and winner resolution"""

from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from pawn_gateway.domain.accrual import round_half_up_cents
from pawn_gateway.domain.exceptions import ValidationError
from pawn_gateway.domain.models import AuctionOutcome, AuctionStatus
from pawn_gateway.utils.date_utils import as_utc

# base_cents -> increment_cents
IncrementPolicy = Callable[[int], int]

# (upper bound exclusive, increment), amounts in cents
TIERED_INCREMENTS = [
    (100_000, 1_000),  # below 1000: +10
    (500_000, 5_000),  # below 5000: +50
]
TOP_TIER_INCREMENT = 10_000  # +100


def tiered_increment(base_cents: int) -> int:
    """Fixed increment chosen from a price-tier table"""
    for upper, increment in TIERED_INCREMENTS:
        if base_cents < upper:
            return increment
    return TOP_TIER_INCREMENT


def percent_increment(percent: float) -> IncrementPolicy:
    """Build a policy adding `percent` of the base, never less than one cent"""
    rate = Decimal(str(percent)) / Decimal(100)

    def policy(base_cents: int) -> int:
        return max(1, round_half_up_cents(Decimal(base_cents) * rate))

    return policy


def get_increment_policy(name: str, percent: float = 1.0) -> IncrementPolicy:
    """Resolve a configured policy name"""
    if name == "tiered":
        return tiered_increment
    if name == "percent":
        return percent_increment(percent)
    raise ValidationError(f"Unknown bid increment policy: {name}")


def minimum_next_bid(
    start_price_cents: int,
    highest_bid_cents: Optional[int],
    policy: IncrementPolicy,
) -> int:
    """
    Smallest acceptable next bid.

    The base is the larger of the start price and the current highest bid,
    so the first bid must already clear the start price by one increment.
    """
    base = max(start_price_cents or 0, highest_bid_cents or 0)
    return base + policy(base)


def is_live(status: str, start_at: datetime, end_at: datetime, now: datetime) -> bool:
    """Open for bidding: status is live and now is within [start_at, end_at)"""
    now = as_utc(now)
    return status == AuctionStatus.LIVE.value and as_utc(start_at) <= now < as_utc(end_at)


def has_ended(status: str, end_at: datetime, now: datetime) -> bool:
    if status in (
        AuctionStatus.ENDED.value,
        AuctionStatus.SETTLEMENT_PENDING.value,
        AuctionStatus.SETTLED.value,
    ):
        return True
    return as_utc(now) >= as_utc(end_at)


def resolve_outcome(
    highest_bid_cents: int,
    highest_bidder_id: Optional[str],
    reserve_price_cents: Optional[int] = None,
) -> AuctionOutcome:
    """Winner is the highest bidder if any bid exists and the reserve (if set) is met"""
    if not highest_bid_cents or highest_bid_cents <= 0 or highest_bidder_id is None:
        return AuctionOutcome(winner_id=None, winning_bid_cents=0, reserve_met=False)

    reserve_met = reserve_price_cents is None or highest_bid_cents >= reserve_price_cents
    return AuctionOutcome(
        winner_id=highest_bidder_id if reserve_met else None,
        winning_bid_cents=highest_bid_cents if reserve_met else 0,
        reserve_met=reserve_met,
    )
