"""Auction creation, bidding, sweep and settlement"""

import pytest
from datetime import timedelta
from prometheus_client import REGISTRY

from pawn_gateway.domain.bidding import tiered_increment
from pawn_gateway.domain.exceptions import Forbidden, StateConflict, ValidationError
from pawn_gateway.domain.models import Actor
from pawn_gateway.infrastructure.database.models import Auction, Bid, Collateral, Loan, OutboundEvent
from pawn_gateway.services import auctions


@pytest.fixture
def window(now):
    """Auction opens five days after the default and runs for two days"""
    start = now + timedelta(days=50)
    return start, start + timedelta(days=2)


@pytest.fixture
def auction(db, shop, defaulted_loan, window):
    start, end = window
    return auctions.create_auction(
        db, shop, defaulted_loan.collateral_id,
        title="Gold necklace, 22k", start_price_cents=100_000, start_at=start, end_at=end,
    )


@pytest.fixture
def live_auction(db, auction, window):
    auctions.sweep_auctions(db, now=window[0] + timedelta(hours=1))
    db.refresh(auction)
    return auction


def test_created_auction_is_scheduled(auction, defaulted_loan):
    assert auction.status == "scheduled"
    assert auction.loan_id == defaulted_loan.id
    assert auction.shop_id == "shop_colombo"
    assert auction.highest_bid_cents == 0
    assert auction.image_urls == ["https://img/1.jpg"]


def test_only_defaulted_collateral_can_be_auctioned(db, shop, active_loan, window):
    with pytest.raises(StateConflict):
        auctions.create_auction(
            db, shop, active_loan.collateral_id,
            title="Necklace", start_price_cents=100_000, start_at=window[0], end_at=window[1],
        )


def test_customer_cannot_create_auction(db, customer, defaulted_loan, window):
    with pytest.raises(Forbidden):
        auctions.create_auction(
            db, customer, defaulted_loan.collateral_id,
            title="Necklace", start_price_cents=100_000, start_at=window[0], end_at=window[1],
        )


def test_window_must_be_ordered(db, shop, defaulted_loan, window):
    with pytest.raises(ValidationError):
        auctions.create_auction(
            db, shop, defaulted_loan.collateral_id,
            title="Necklace", start_price_cents=100_000, start_at=window[1], end_at=window[0],
        )


def test_one_auction_at_a_time(db, shop, auction, window):
    with pytest.raises(StateConflict):
        auctions.create_auction(
            db, shop, auction.collateral_id,
            title="Again", start_price_cents=90_000, start_at=window[0], end_at=window[1],
        )


def test_bid_rejected_until_sweep_opens_auction(db, bidder, auction, window):
    """Inside the window but still scheduled"""
    with pytest.raises(StateConflict, match="not live"):
        auctions.place_bid(db, bidder, auction.id, 150_000, now=window[0] + timedelta(hours=1))


def test_sweep_is_idempotent(db, auction, window):
    at = window[0] + timedelta(hours=1)

    assert auctions.sweep_auctions(db, now=at) == {"started": 1, "ended": 0}
    assert auctions.sweep_auctions(db, now=at) == {"started": 0, "ended": 0}

    db.refresh(auction)
    assert auction.status == "live"


def test_sweep_before_start_does_nothing(db, auction, window):
    assert auctions.sweep_auctions(db, now=window[0] - timedelta(minutes=1)) == {"started": 0, "ended": 0}


def test_bid_below_one_percent_increment_rejected(db, bidder, live_auction, window):
    """start 1000.00: 1005.00 is too low, 1010.00 clears"""
    at = window[0] + timedelta(hours=2)

    with pytest.raises(StateConflict):
        auctions.place_bid(db, bidder, live_auction.id, 100_500, now=at)

    updated = auctions.place_bid(db, bidder, live_auction.id, 101_000, now=at)
    assert updated.highest_bid_cents == 101_000
    assert updated.highest_bidder_id == bidder.actor_id
    assert updated.bid_count == 1


def test_tiered_policy_can_be_injected(db, bidder, live_auction, window):
    at = window[0] + timedelta(hours=2)

    with pytest.raises(StateConflict):
        auctions.place_bid(db, bidder, live_auction.id, 104_000, now=at, policy=tiered_increment)
    auctions.place_bid(db, bidder, live_auction.id, 105_000, now=at, policy=tiered_increment)


def test_highest_bid_is_monotonic(db, bidder, rival_bidder, live_auction, window):
    at = window[0] + timedelta(hours=2)

    auctions.place_bid(db, bidder, live_auction.id, 110_000, now=at)
    auctions.place_bid(db, rival_bidder, live_auction.id, 120_000, now=at)
    with pytest.raises(StateConflict):
        auctions.place_bid(db, bidder, live_auction.id, 115_000, now=at)

    db.refresh(live_auction)
    amounts = [b.amount_cents for b in auctions.list_bids(db, live_auction.id)]
    assert live_auction.highest_bid_cents == max(amounts) == 120_000
    assert live_auction.highest_bidder_id == rival_bidder.actor_id
    assert amounts == [120_000, 110_000]


def test_stale_lower_bid_cannot_overwrite_higher(db, other_db, bidder, rival_bidder, live_auction, window):
    """Rival validated against an old highest; after retry it sees the new one"""
    at = window[0] + timedelta(hours=2)
    other_db.get(Auction, live_auction.id)

    auctions.place_bid(db, bidder, live_auction.id, 150_000, now=at)

    with pytest.raises(StateConflict):
        auctions.place_bid(other_db, rival_bidder, live_auction.id, 102_000, now=at)

    db.expire_all()
    current = db.get(Auction, live_auction.id)
    assert current.highest_bid_cents == 150_000
    assert current.highest_bidder_id == bidder.actor_id
    assert db.query(Bid).filter(Bid.auction_id == live_auction.id).count() == 1


def test_shop_cannot_bid_on_own_auction(db, shop, live_auction, window):
    with pytest.raises(Forbidden):
        auctions.place_bid(db, shop, live_auction.id, 150_000, now=window[0] + timedelta(hours=2))


def test_end_of_window_closes_auction_with_winner(db, bidder, live_auction, window):
    auctions.place_bid(db, bidder, live_auction.id, 130_000, now=window[0] + timedelta(hours=2))

    assert auctions.sweep_auctions(db, now=window[1]) == {"started": 0, "ended": 1}
    assert auctions.sweep_auctions(db, now=window[1]) == {"started": 0, "ended": 0}

    db.refresh(live_auction)
    assert live_auction.status == "ended"
    assert live_auction.winner_id == bidder.actor_id
    assert db.query(OutboundEvent).filter(OutboundEvent.event_type == "auction.ended").count() == 1

    with pytest.raises(StateConflict):
        auctions.place_bid(db, bidder, live_auction.id, 200_000, now=window[1])


def test_bid_at_end_instant_rejected_before_sweep(db, bidder, live_auction, window):
    with pytest.raises(StateConflict):
        auctions.place_bid(db, bidder, live_auction.id, 150_000, now=window[1])


def test_missed_auction_ends_straight_from_scheduled(db, auction, window):
    assert auctions.sweep_auctions(db, now=window[1] + timedelta(days=1)) == {"started": 0, "ended": 1}

    db.refresh(auction)
    assert auction.status == "ended"
    assert auction.winner_id is None


def test_settlement_records_proceeds_and_surplus(db, shop, bidder, live_auction, defaulted_loan, window, now):
    auctions.place_bid(db, bidder, live_auction.id, 120_000, now=window[0] + timedelta(hours=2))
    auctions.sweep_auctions(db, now=window[1])

    pending = auctions.begin_settlement(db, shop, live_auction.id)
    assert pending.status == "settlement_pending"

    settled = auctions.settle_auction(db, shop, live_auction.id, now=window[1] + timedelta(days=1))

    assert settled.status == "settled"
    assert settled.proceeds_cents == 120_000
    # Loan total due at default: 500.00 principal + 14.79 interest
    assert settled.shortfall_cents == 51_479 - 120_000
    assert settled.settled_at == window[1] + timedelta(days=1)

    loan = db.get(Loan, defaulted_loan.id)
    assert loan.status == "defaulted"
    assert loan.outstanding_principal_cents == 50_000
    assert db.get(Collateral, loan.collateral_id).status == "defaulted"


def test_settlement_without_winner_records_full_shortfall(db, shop, live_auction, window):
    auctions.sweep_auctions(db, now=window[1])

    settled = auctions.settle_auction(db, shop, live_auction.id, now=window[1])

    assert settled.proceeds_cents == 0
    assert settled.shortfall_cents == 51_479


def test_reserve_not_met_means_no_winner(db, shop, bidder, defaulted_loan, window):
    auction = auctions.create_auction(
        db, shop, defaulted_loan.collateral_id,
        title="Necklace", start_price_cents=100_000, reserve_price_cents=200_000,
        start_at=window[0], end_at=window[1],
    )
    auctions.sweep_auctions(db, now=window[0])
    auctions.place_bid(db, bidder, auction.id, 150_000, now=window[0])
    auctions.sweep_auctions(db, now=window[1])

    settled = auctions.settle_auction(db, shop, auction.id, now=window[1])

    assert settled.winner_id is None
    assert settled.proceeds_cents == 0


def test_live_auction_cannot_be_settled(db, shop, live_auction):
    with pytest.raises(StateConflict):
        auctions.settle_auction(db, shop, live_auction.id)


def test_other_shop_cannot_settle(db, live_auction, window):
    auctions.sweep_auctions(db, now=window[1])
    other_shop = Actor(actor_id="staff_zed", email_verified=True, shop_id="shop_kandy")

    with pytest.raises(Forbidden):
        auctions.settle_auction(db, other_shop, live_auction.id)


def test_new_auction_allowed_after_settlement(db, shop, auction, window):
    auctions.sweep_auctions(db, now=window[1])
    auctions.settle_auction(db, shop, auction.id, now=window[1])

    relisted = auctions.create_auction(
        db, shop, auction.collateral_id,
        title="Relisted", start_price_cents=80_000,
        start_at=window[1] + timedelta(days=1), end_at=window[1] + timedelta(days=3),
    )
    assert relisted.status == "scheduled"


def _bid_count(outcome):
    return REGISTRY.get_sample_value("pawn_bids_total", {"outcome": outcome}) or 0


def test_rejected_bids_are_counted_by_reason(db, shop, bidder, auction, window):
    before = {o: _bid_count(o) for o in ("not_live", "below_minimum", "own_auction", "accepted")}

    with pytest.raises(StateConflict):
        auctions.place_bid(db, bidder, auction.id, 150_000, now=window[0] + timedelta(hours=1))

    auctions.sweep_auctions(db, now=window[0] + timedelta(hours=1))
    at = window[0] + timedelta(hours=2)
    with pytest.raises(StateConflict):
        auctions.place_bid(db, bidder, auction.id, 100_500, now=at)
    with pytest.raises(Forbidden):
        auctions.place_bid(db, shop, auction.id, 150_000, now=at)
    auctions.place_bid(db, bidder, auction.id, 101_000, now=at)

    assert _bid_count("not_live") == before["not_live"] + 1
    assert _bid_count("below_minimum") == before["below_minimum"] + 1
    assert _bid_count("own_auction") == before["own_auction"] + 1
    assert _bid_count("accepted") == before["accepted"] + 1
