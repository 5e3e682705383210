"""Auction settlement: creation, bidding, boundary sweep and proceeds reconciliation"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from pawn_gateway.config import settings
from pawn_gateway.domain.bidding import (
    IncrementPolicy,
    get_increment_policy,
    has_ended,
    is_live,
    minimum_next_bid,
    resolve_outcome,
)
from pawn_gateway.domain.exceptions import Forbidden, StateConflict, ValidationError
from pawn_gateway.domain.lifecycle import check_auction_transition, require_positive
from pawn_gateway.domain.models import Actor, AuctionStatus, CollateralStatus, LoanStatus
from pawn_gateway.infrastructure.database.models import Auction, Bid
from pawn_gateway.infrastructure.database.repositories import (
    AuctionRepository,
    CollateralRepository,
    LoanRepository,
)
from pawn_gateway.infrastructure.observability.logging import log_ledger_event
from pawn_gateway.infrastructure.observability.metrics import auction_transition_counter, bid_counter
from pawn_gateway.services.events import record_event
from pawn_gateway.services.guards import (
    parse_id,
    require_found,
    require_shop,
    require_verified,
)
from pawn_gateway.services.transactions import run_in_transaction
from pawn_gateway.utils.date_utils import as_utc, utcnow

logger = logging.getLogger(__name__)


def configured_policy() -> IncrementPolicy:
    return get_increment_policy(settings.bid_increment_policy, settings.bid_increment_percent)


def _load_auction(db: Session, auction_id) -> Auction:
    return require_found(AuctionRepository(db).get_by_id(parse_id(auction_id, "auction")), "Auction")


def _move(auction: Auction, target: AuctionStatus) -> None:
    check_auction_transition(auction.status, target)
    auction.status = target.value
    auction_transition_counter.labels(to_status=target.value).inc()


def create_auction(
    db: Session,
    actor: Actor,
    collateral_id,
    title: str,
    start_price_cents: int,
    start_at: datetime,
    end_at: datetime,
    description: Optional[str] = None,
    image_urls: Optional[List[str]] = None,
    reserve_price_cents: Optional[int] = None,
) -> Auction:
    """Schedule a sale of a defaulted item held by the actor's shop"""
    require_verified(actor)
    if actor.shop_id is None:
        raise Forbidden("Only shop staff can create auctions")
    if not title or not title.strip():
        raise ValidationError("title is required")
    require_positive(start_price_cents, "start_price_cents")
    if reserve_price_cents is not None and reserve_price_cents < 0:
        raise ValidationError("reserve_price_cents must not be negative")
    if start_at is None or end_at is None:
        raise ValidationError("start_at and end_at are required")
    if as_utc(end_at) <= as_utc(start_at):
        raise ValidationError("end_at must be after start_at")
    cid = parse_id(collateral_id, "collateral")

    def work() -> Auction:
        collateral = require_found(CollateralRepository(db).get_by_id(cid), "Collateral")
        if collateral.status != CollateralStatus.DEFAULTED.value:
            raise StateConflict(f"Collateral is {collateral.status}, only defaulted items can be auctioned")
        loan = LoanRepository(db).get_latest_for_collateral(collateral.id)
        if loan is None or loan.status != LoanStatus.DEFAULTED.value:
            raise StateConflict("Collateral has no defaulted loan")
        require_shop(actor, loan.shop_id)

        repo = AuctionRepository(db)
        if repo.get_unsettled_for_collateral(collateral.id) is not None:
            raise StateConflict("Collateral already has an auction in progress")
        return repo.create(
            collateral_id=collateral.id,
            loan_id=loan.id,
            shop_id=loan.shop_id,
            title=title.strip(),
            description=description,
            image_urls=list(image_urls or collateral.image_urls or []),
            start_price_cents=start_price_cents,
            reserve_price_cents=reserve_price_cents,
            start_at=as_utc(start_at),
            end_at=as_utc(end_at),
            status=AuctionStatus.SCHEDULED.value,
        )

    auction = run_in_transaction(db, work)
    log_ledger_event(
        "auction_created", "auction", str(auction.id), actor.actor_id, start_price_cents=start_price_cents
    )
    return auction


def get_auction(db: Session, auction_id) -> Auction:
    return _load_auction(db, auction_id)


def list_bids(db: Session, auction_id, limit: int = 100) -> List[Bid]:
    auction = _load_auction(db, auction_id)
    return AuctionRepository(db).list_bids(auction.id, limit)


def place_bid(
    db: Session,
    actor: Actor,
    auction_id,
    amount_cents: int,
    now: Optional[datetime] = None,
    policy: Optional[IncrementPolicy] = None,
) -> Auction:
    """
    Accept a bid if the auction is live and the amount clears the minimum.

    The highest-bid projection is updated in the same transaction as the bid
    insert and guarded by the auction's version, so a lower bid validated
    against a stale highest can never overwrite a higher concurrent one:
    the loser retries and is re-validated against the new highest.
    """
    require_verified(actor)
    require_positive(amount_cents)
    now = now or utcnow()
    policy = policy or configured_policy()
    rejection = {}

    def work() -> Auction:
        auction = _load_auction(db, auction_id)
        if actor.shop_id is not None and actor.shop_id == auction.shop_id:
            rejection["outcome"] = "own_auction"
            raise Forbidden("Shop staff cannot bid on their own auction")
        if not is_live(auction.status, auction.start_at, auction.end_at, now):
            rejection["outcome"] = "not_live"
            raise StateConflict("Auction is not live")

        minimum = minimum_next_bid(auction.start_price_cents, auction.highest_bid_cents, policy)
        if amount_cents < minimum:
            rejection["outcome"] = "below_minimum"
            raise StateConflict(f"Bid must be at least {minimum} cents")

        AuctionRepository(db).add_bid(auction.id, actor.actor_id, amount_cents)
        auction.highest_bid_cents = amount_cents
        auction.highest_bidder_id = actor.actor_id
        auction.bid_count += 1
        return auction

    try:
        auction = run_in_transaction(db, work)
    except (StateConflict, Forbidden):
        if "outcome" in rejection:
            bid_counter.labels(outcome=rejection["outcome"]).inc()
        raise

    bid_counter.labels(outcome="accepted").inc()
    log_ledger_event("bid_accepted", "auction", str(auction.id), actor.actor_id, amount_cents=amount_cents)
    return auction


def _close(db: Session, auction: Auction) -> None:
    _move(auction, AuctionStatus.ENDED)
    outcome = resolve_outcome(
        auction.highest_bid_cents, auction.highest_bidder_id, auction.reserve_price_cents
    )
    auction.winner_id = outcome.winner_id
    record_event(
        db,
        "auction.ended",
        auction_id=auction.id,
        winner_id=outcome.winner_id,
        winning_bid_cents=outcome.winning_bid_cents,
        reserve_met=outcome.reserve_met,
    )


def sweep_auctions(db: Session, now: Optional[datetime] = None) -> Dict[str, int]:
    """
    Periodic reconciliation of time-driven transitions.

    scheduled -> live once start_at passes; scheduled/live -> ended once
    end_at passes. Each auction is re-checked and committed on its own, so
    re-running the sweep is a no-op for auctions already moved.
    """
    now = as_utc(now or utcnow())
    repo = AuctionRepository(db)
    counts = {"started": 0, "ended": 0}

    for auction_id in [a.id for a in repo.list_due_to_start(now)]:
        def start(auction_id=auction_id) -> bool:
            auction = repo.get_by_id(auction_id)
            if auction.status != AuctionStatus.SCHEDULED.value or not (auction.start_at <= now < auction.end_at):
                return False
            _move(auction, AuctionStatus.LIVE)
            return True

        if run_in_transaction(db, start):
            counts["started"] += 1

    for auction_id in [a.id for a in repo.list_due_to_end(now)]:
        def end(auction_id=auction_id) -> bool:
            auction = repo.get_by_id(auction_id)
            if auction.status not in (AuctionStatus.SCHEDULED.value, AuctionStatus.LIVE.value):
                return False
            if not has_ended(auction.status, auction.end_at, now):
                return False
            _close(db, auction)
            return True

        if run_in_transaction(db, end):
            counts["ended"] += 1

    if counts["started"] or counts["ended"]:
        logger.info("Auction sweep", extra=counts)
    return counts


def begin_settlement(db: Session, actor: Actor, auction_id) -> Auction:
    """Shop starts collecting from the winner"""

    def work() -> Auction:
        auction = _load_auction(db, auction_id)
        require_shop(actor, auction.shop_id)
        _move(auction, AuctionStatus.SETTLEMENT_PENDING)
        return auction

    auction = run_in_transaction(db, work)
    log_ledger_event("auction_settlement_started", "auction", str(auction.id), actor.actor_id)
    return auction


def settle_auction(db: Session, actor: Actor, auction_id, now: Optional[datetime] = None) -> Auction:
    """
    Reconcile proceeds against the originating defaulted loan and close the auction.

    Proceeds are the winning bid (zero without a winner). The shortfall is the
    loan's total due minus proceeds; negative means a surplus. The defaulted
    loan's balances are left as they are.
    """
    now = now or utcnow()

    def work() -> Auction:
        auction = _load_auction(db, auction_id)
        require_shop(actor, auction.shop_id)
        _move(auction, AuctionStatus.SETTLED)

        proceeds = auction.highest_bid_cents if auction.winner_id else 0
        total_due = 0
        if auction.loan_id is not None:
            loan = LoanRepository(db).get_by_id(auction.loan_id)
            if loan is not None:
                total_due = loan.balances.total_cents
        auction.proceeds_cents = proceeds
        auction.shortfall_cents = total_due - proceeds
        auction.settled_at = now
        record_event(
            db,
            "auction.settled",
            auction_id=auction.id,
            loan_id=auction.loan_id,
            proceeds_cents=proceeds,
            shortfall_cents=auction.shortfall_cents,
        )
        return auction

    auction = run_in_transaction(db, work)
    log_ledger_event(
        "auction_settled", "auction", str(auction.id), actor.actor_id,
        proceeds_cents=auction.proceeds_cents, shortfall_cents=auction.shortfall_cents,
    )
    return auction
