"""Data access layer for collateral, loans, payments, auctions and outbound events"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from pawn_gateway.infrastructure.database.models import (
    Auction,
    Bid,
    Collateral,
    Loan,
    LoanRequest,
    OutboundEvent,
    Payment,
)
from pawn_gateway.domain.models import AuctionStatus, EventStatus, OPEN_LOAN_STATUSES, PaymentStatus


class CollateralRepository:
    """Repository for pledged items"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, **fields: Any) -> Collateral:
        collateral = Collateral(**fields)
        self.db.add(collateral)
        self.db.flush()
        return collateral

    def get_by_id(self, collateral_id: uuid.UUID) -> Optional[Collateral]:
        return self.db.get(Collateral, collateral_id)

    def list_by_owner(self, owner_id: str) -> List[Collateral]:
        return (
            self.db.query(Collateral)
            .filter(Collateral.owner_id == owner_id)
            .order_by(Collateral.created_at.desc())
            .all()
        )


class LoanRequestRepository:
    """Repository for customer loan requests"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, **fields: Any) -> LoanRequest:
        loan_request = LoanRequest(**fields)
        self.db.add(loan_request)
        self.db.flush()
        return loan_request

    def get_by_id(self, request_id: uuid.UUID) -> Optional[LoanRequest]:
        return self.db.get(LoanRequest, request_id)

    def list_by_shop(self, shop_id: str, status: Optional[str] = None) -> List[LoanRequest]:
        query = self.db.query(LoanRequest).filter(LoanRequest.shop_id == shop_id)
        if status is not None:
            query = query.filter(LoanRequest.status == status)
        return query.order_by(LoanRequest.created_at.desc()).all()


class LoanRepository:
    """Repository for loans"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, **fields: Any) -> Loan:
        loan = Loan(**fields)
        self.db.add(loan)
        self.db.flush()  # Get ID and hit the open-loan index without committing
        return loan

    def get_by_id(self, loan_id: uuid.UUID) -> Optional[Loan]:
        return self.db.get(Loan, loan_id)

    def get_open_for_collateral(self, collateral_id: uuid.UUID) -> Optional[Loan]:
        """Loan in pending_offer or active state backed by this collateral"""
        return (
            self.db.query(Loan)
            .filter(Loan.collateral_id == collateral_id)
            .filter(Loan.status.in_([s.value for s in OPEN_LOAN_STATUSES]))
            .first()
        )

    def get_latest_for_collateral(self, collateral_id: uuid.UUID) -> Optional[Loan]:
        return (
            self.db.query(Loan)
            .filter(Loan.collateral_id == collateral_id)
            .order_by(Loan.created_at.desc())
            .first()
        )


class PaymentRepository:
    """Repository for payments"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, **fields: Any) -> Payment:
        payment = Payment(**fields)
        self.db.add(payment)
        self.db.flush()
        return payment

    def get_by_id(self, payment_id: uuid.UUID) -> Optional[Payment]:
        return self.db.get(Payment, payment_id)

    def list_by_loan(self, loan_id: uuid.UUID) -> List[Payment]:
        return (
            self.db.query(Payment)
            .filter(Payment.loan_id == loan_id)
            .order_by(Payment.created_at.desc())
            .all()
        )

    def list_pending_for_shop(self, shop_id: str) -> List[Payment]:
        """Shop review queue"""
        return (
            self.db.query(Payment)
            .join(Loan, Payment.loan_id == Loan.id)
            .filter(Loan.shop_id == shop_id)
            .filter(Payment.status == PaymentStatus.PENDING.value)
            .order_by(Payment.created_at)
            .all()
        )


class AuctionRepository:
    """Repository for auctions and their bid log"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, **fields: Any) -> Auction:
        auction = Auction(**fields)
        self.db.add(auction)
        self.db.flush()
        return auction

    def get_by_id(self, auction_id: uuid.UUID) -> Optional[Auction]:
        return self.db.get(Auction, auction_id)

    def get_unsettled_for_collateral(self, collateral_id: uuid.UUID) -> Optional[Auction]:
        return (
            self.db.query(Auction)
            .filter(Auction.collateral_id == collateral_id)
            .filter(Auction.status != AuctionStatus.SETTLED.value)
            .first()
        )

    def list_due_to_start(self, now: datetime) -> List[Auction]:
        """Scheduled auctions whose window has opened but not yet closed"""
        return (
            self.db.query(Auction)
            .filter(Auction.status == AuctionStatus.SCHEDULED.value)
            .filter(Auction.start_at <= now)
            .filter(Auction.end_at > now)
            .all()
        )

    def list_due_to_end(self, now: datetime) -> List[Auction]:
        """Scheduled or live auctions whose window has closed"""
        return (
            self.db.query(Auction)
            .filter(Auction.status.in_([AuctionStatus.SCHEDULED.value, AuctionStatus.LIVE.value]))
            .filter(Auction.end_at <= now)
            .all()
        )

    def add_bid(self, auction_id: uuid.UUID, bidder_id: str, amount_cents: int) -> Bid:
        bid = Bid(auction_id=auction_id, bidder_id=bidder_id, amount_cents=amount_cents)
        self.db.add(bid)
        return bid

    def list_bids(self, auction_id: uuid.UUID, limit: int = 100) -> List[Bid]:
        return (
            self.db.query(Bid)
            .filter(Bid.auction_id == auction_id)
            .order_by(Bid.amount_cents.desc(), Bid.created_at)
            .limit(limit)
            .all()
        )


class EventRepository:
    """Outbox of facts for the notifier"""

    def __init__(self, db: Session):
        self.db = db

    def record(self, event_type: str, payload: Dict[str, Any]) -> OutboundEvent:
        event = OutboundEvent(event_type=event_type, payload=payload)
        self.db.add(event)
        return event

    def list_pending(self, limit: int = 50) -> List[OutboundEvent]:
        return (
            self.db.query(OutboundEvent)
            .filter(OutboundEvent.status == EventStatus.PENDING.value)
            .order_by(OutboundEvent.created_at)
            .limit(limit)
            .all()
        )
