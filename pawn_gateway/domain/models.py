"""Domain models - pure Python dataclasses and enums representing business entities"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class CollateralStatus(str, Enum):
    AVAILABLE = "available"
    APPRAISED = "appraised"
    PLEDGED = "pledged"
    REDEEMED = "redeemed"
    DEFAULTED = "defaulted"


class LoanStatus(str, Enum):
    PENDING_OFFER = "pending_offer"
    ACTIVE = "active"
    SETTLED = "settled"
    DEFAULTED = "defaulted"
    DECLINED = "declined"


class LoanRequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class PaymentKind(str, Enum):
    PRINCIPAL = "principal"
    INTEREST = "interest"
    LATE_FEE = "late_fee"
    TOPUP = "topup"
    SETTLEMENT = "settlement"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"


class AuctionStatus(str, Enum):
    SCHEDULED = "scheduled"
    LIVE = "live"
    ENDED = "ended"
    SETTLEMENT_PENDING = "settlement_pending"
    SETTLED = "settled"


class EventStatus(str, Enum):
    PENDING = "pending"
    DELIVERED = "delivered"
    FAILED = "failed"


OPEN_LOAN_STATUSES = (LoanStatus.PENDING_OFFER, LoanStatus.ACTIVE)

# Kinds a shop may collect as cash or a customer may submit for review
REPAYMENT_KINDS = (PaymentKind.PRINCIPAL, PaymentKind.INTEREST, PaymentKind.LATE_FEE)


@dataclass(frozen=True)
class Actor:
    """Authenticated caller resolved by the identity provider and membership directory"""

    actor_id: str
    email_verified: bool
    shop_id: Optional[str] = None


@dataclass
class AccrualResult:
    """Outcome of one interest accrual step"""

    interest_delta_cents: int
    checkpoint: datetime
    whole_days: int


@dataclass
class LoanBalances:
    """Running balances of a loan in cents"""

    outstanding_principal_cents: int
    accrued_interest_cents: int
    late_fees_cents: int

    @property
    def total_cents(self) -> int:
        return self.outstanding_principal_cents + self.accrued_interest_cents + self.late_fees_cents


@dataclass
class AuctionOutcome:
    """Winner resolution at auction close"""

    winner_id: Optional[str]
    winning_bid_cents: int
    reserve_met: bool
