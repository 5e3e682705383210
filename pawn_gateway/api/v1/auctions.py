"""Auctions of defaulted collateral: creation, bidding, boundary sweep, settlement"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from pawn_gateway.api.dependencies import get_actor
from pawn_gateway.api.v1.schemas import (
    AuctionCreateRequest,
    AuctionResponse,
    BidListResponse,
    BidRequest,
    BidResponse,
    SweepResponse,
)
from pawn_gateway.domain.bidding import is_live, minimum_next_bid
from pawn_gateway.domain.models import Actor
from pawn_gateway.infrastructure.database.models import Auction
from pawn_gateway.infrastructure.database.session import get_db
from pawn_gateway.services import auctions as auction_service
from pawn_gateway.utils.date_utils import utcnow

router = APIRouter()


def auction_to_response(auction: Auction) -> AuctionResponse:
    return AuctionResponse(
        auction_id=str(auction.id),
        collateral_id=str(auction.collateral_id),
        loan_id=str(auction.loan_id) if auction.loan_id else None,
        shop_id=auction.shop_id,
        title=auction.title,
        description=auction.description,
        image_urls=auction.image_urls or [],
        start_price_cents=auction.start_price_cents,
        reserve_price_cents=auction.reserve_price_cents,
        start_at=auction.start_at,
        end_at=auction.end_at,
        status=auction.status,
        is_live=is_live(auction.status, auction.start_at, auction.end_at, utcnow()),
        highest_bid_cents=auction.highest_bid_cents,
        minimum_next_bid_cents=minimum_next_bid(
            auction.start_price_cents, auction.highest_bid_cents, auction_service.configured_policy()
        ),
        bid_count=auction.bid_count,
        winner_id=auction.winner_id,
        proceeds_cents=auction.proceeds_cents,
        shortfall_cents=auction.shortfall_cents,
    )


@router.post("/auctions", response_model=AuctionResponse, status_code=201)
def create_auction(
    body: AuctionCreateRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    auction = auction_service.create_auction(
        db,
        actor,
        body.collateral_id,
        title=body.title,
        start_price_cents=body.start_price_cents,
        start_at=body.start_at,
        end_at=body.end_at,
        description=body.description,
        image_urls=body.image_urls,
        reserve_price_cents=body.reserve_price_cents,
    )
    return auction_to_response(auction)


@router.post("/auctions/sweep", response_model=SweepResponse)
def sweep(db: Session = Depends(get_db)):
    """
    Boundary transitions for a periodic trigger (cron).

    Takes no actor: the scheduler is the caller and the transitions depend
    only on the clock. Expose it on the internal network only. Safe to call
    repeatedly; auctions already moved are skipped.
    """
    return SweepResponse(**auction_service.sweep_auctions(db))


@router.get("/auctions/{auction_id}", response_model=AuctionResponse)
def get_auction(auction_id: str, db: Session = Depends(get_db)):
    return auction_to_response(auction_service.get_auction(db, auction_id))


@router.post("/auctions/{auction_id}/bids", response_model=AuctionResponse, status_code=201)
def place_bid(
    auction_id: str,
    body: BidRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return auction_to_response(auction_service.place_bid(db, actor, auction_id, body.amount_cents))


@router.get("/auctions/{auction_id}/bids", response_model=BidListResponse)
def list_bids(
    auction_id: str,
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    bids = auction_service.list_bids(db, auction_id, limit)
    return BidListResponse(
        auction_id=auction_id,
        bids=[
            BidResponse(bidder_id=b.bidder_id, amount_cents=b.amount_cents, created_at=b.created_at)
            for b in bids
        ],
    )


@router.post("/auctions/{auction_id}/settlement", response_model=AuctionResponse)
def begin_settlement(auction_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return auction_to_response(auction_service.begin_settlement(db, actor, auction_id))


@router.post("/auctions/{auction_id}/settle", response_model=AuctionResponse)
def settle_auction(auction_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    """Reconcile proceeds against the defaulted loan and close the auction"""
    return auction_to_response(auction_service.settle_auction(db, actor, auction_id))
