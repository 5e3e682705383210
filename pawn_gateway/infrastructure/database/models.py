"""SQLAlchemy ORM models for collateral, loans, payments and auctions"""

import uuid
from datetime import timezone
from sqlalchemy import Column, String, BigInteger, Float, DateTime, Integer, ForeignKey, Text, JSON, Index, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator

from pawn_gateway.domain.models import (
    AuctionStatus,
    CollateralStatus,
    EventStatus,
    LoanBalances,
    LoanRequestStatus,
    LoanStatus,
    PaymentStatus,
)
from pawn_gateway.utils.date_utils import utcnow

Base = declarative_base()


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetimes, also on backends that store naive values (SQLite)"""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class Collateral(Base):
    """Physical item pledged by a customer"""

    __tablename__ = "collateral"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(Text, nullable=False, index=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    estimated_value_cents = Column(BigInteger, nullable=True)
    appraised_value_cents = Column(BigInteger, nullable=True)
    image_urls = Column(JSON, nullable=False, default=list)
    status = Column(String(32), nullable=False, default=CollateralStatus.AVAILABLE.value)
    loan_id = Column(UUID(as_uuid=True), nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version}


class LoanRequest(Base):
    """Customer-initiated ask for a loan from a chosen shop"""

    __tablename__ = "loan_request"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    collateral_id = Column(UUID(as_uuid=True), ForeignKey("collateral.id"), nullable=False)
    customer_id = Column(Text, nullable=False, index=True)
    shop_id = Column(Text, nullable=False, index=True)
    amount_requested_cents = Column(BigInteger, nullable=False)
    duration_days = Column(Integer, nullable=False)
    interest_percent = Column(Float, nullable=False)
    status = Column(String(32), nullable=False, default=LoanRequestStatus.PENDING.value)
    loan_id = Column(UUID(as_uuid=True), nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version}


class Loan(Base):
    """Cash loan secured against one collateral item"""

    __tablename__ = "loan"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    collateral_id = Column(UUID(as_uuid=True), ForeignKey("collateral.id"), nullable=False)
    customer_id = Column(Text, nullable=False, index=True)
    shop_id = Column(Text, nullable=False, index=True)
    loan_request_id = Column(UUID(as_uuid=True), ForeignKey("loan_request.id"), nullable=True)
    principal_cents = Column(BigInteger, nullable=False)
    max_principal_allowed_cents = Column(BigInteger, nullable=False)
    appraised_value_cents = Column(BigInteger, nullable=True)
    ltv_percent = Column(Float, nullable=True)
    apr_percent = Column(Float, nullable=False)
    term_days = Column(Integer, nullable=False)
    outstanding_principal_cents = Column(BigInteger, nullable=False, default=0)
    accrued_interest_cents = Column(BigInteger, nullable=False, default=0)
    late_fees_cents = Column(BigInteger, nullable=False, default=0)
    total_paid_cents = Column(BigInteger, nullable=False, default=0)
    last_accrual_at = Column(UTCDateTime, nullable=True)
    start_at = Column(UTCDateTime, nullable=True)
    due_at = Column(UTCDateTime, nullable=True)
    status = Column(String(32), nullable=False, default=LoanStatus.PENDING_OFFER.value)
    version = Column(Integer, nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        # At most one open loan per collateral item
        Index(
            "uq_loan_open_collateral",
            "collateral_id",
            unique=True,
            postgresql_where=text("status IN ('pending_offer', 'active')"),
            sqlite_where=text("status IN ('pending_offer', 'active')"),
        ),
    )
    __mapper_args__ = {"version_id_col": version}

    @property
    def balances(self) -> LoanBalances:
        return LoanBalances(
            outstanding_principal_cents=self.outstanding_principal_cents,
            accrued_interest_cents=self.accrued_interest_cents,
            late_fees_cents=self.late_fees_cents,
        )

    @balances.setter
    def balances(self, value: LoanBalances) -> None:
        self.outstanding_principal_cents = value.outstanding_principal_cents
        self.accrued_interest_cents = value.accrued_interest_cents
        self.late_fees_cents = value.late_fees_cents


class Payment(Base):
    """Money movement against a loan"""

    __tablename__ = "payment"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    loan_id = Column(UUID(as_uuid=True), ForeignKey("loan.id"), nullable=False, index=True)
    amount_cents = Column(BigInteger, nullable=False)
    kind = Column(String(32), nullable=False)
    status = Column(String(32), nullable=False, default=PaymentStatus.PENDING.value)
    method = Column(Text, nullable=True)
    note = Column(Text, nullable=True)
    paid_at = Column(UTCDateTime, nullable=True)
    created_by = Column(Text, nullable=False)
    decided_by = Column(Text, nullable=True)
    decided_at = Column(UTCDateTime, nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version}


class Auction(Base):
    """Time-boxed sale of a defaulted collateral item"""

    __tablename__ = "auction"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    collateral_id = Column(UUID(as_uuid=True), ForeignKey("collateral.id"), nullable=False, index=True)
    loan_id = Column(UUID(as_uuid=True), ForeignKey("loan.id"), nullable=True)
    shop_id = Column(Text, nullable=False, index=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    image_urls = Column(JSON, nullable=False, default=list)
    start_price_cents = Column(BigInteger, nullable=False)
    reserve_price_cents = Column(BigInteger, nullable=True)
    start_at = Column(UTCDateTime, nullable=False)
    end_at = Column(UTCDateTime, nullable=False)
    status = Column(String(32), nullable=False, default=AuctionStatus.SCHEDULED.value)
    # Cached projection of the bid log, updated in the same transaction as each accepted bid
    highest_bid_cents = Column(BigInteger, nullable=False, default=0)
    highest_bidder_id = Column(Text, nullable=True)
    bid_count = Column(Integer, nullable=False, default=0)
    winner_id = Column(Text, nullable=True)
    proceeds_cents = Column(BigInteger, nullable=True)
    shortfall_cents = Column(BigInteger, nullable=True)
    settled_at = Column(UTCDateTime, nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version}


class Bid(Base):
    """Append-only bid record"""

    __tablename__ = "bid"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    auction_id = Column(UUID(as_uuid=True), ForeignKey("auction.id"), nullable=False, index=True)
    bidder_id = Column(Text, nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)


class OutboundEvent(Base):
    """Ledger facts queued for the notifier, with retry tracking"""

    __tablename__ = "outbound_event"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    event_type = Column(Text, nullable=False)
    payload = Column(JSON, nullable=False)
    status = Column(Text, nullable=False, default=EventStatus.PENDING.value)
    last_attempt_at = Column(UTCDateTime, nullable=True)
    attempts = Column(Integer, nullable=False, default=0)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
