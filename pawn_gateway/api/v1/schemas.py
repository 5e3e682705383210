"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional
from pawn_gateway.domain.models import PaymentKind


class CollateralCreateRequest(BaseModel):
    """Request body for POST /v1/collateral"""

    title: str = Field(..., min_length=1, description="Short item title")
    description: Optional[str] = None
    estimated_value_cents: Optional[int] = Field(None, ge=0, description="Owner's own estimate")
    image_urls: List[str] = Field(default_factory=list, description="Object storage URLs")


class CollateralResponse(BaseModel):
    collateral_id: str
    owner_id: str
    title: str
    description: Optional[str] = None
    estimated_value_cents: Optional[int] = None
    appraised_value_cents: Optional[int] = None
    image_urls: List[str]
    status: str
    loan_id: Optional[str] = None
    updated_at: datetime


class CollateralListResponse(BaseModel):
    owner_id: str
    items: List[CollateralResponse]


class OfferCreateRequest(BaseModel):
    """Request body for POST /v1/collateral/{collateral_id}/offers"""

    appraised_value_cents: int = Field(..., gt=0)
    ltv_percent: float = Field(..., gt=0, le=100, description="Loan-to-value percent")
    apr_percent: float = Field(..., gt=0, description="Annual interest rate in percent")
    term_days: int = Field(..., ge=1)


class LoanRequestCreateRequest(BaseModel):
    """Request body for POST /v1/loan-requests"""

    collateral_id: str
    shop_id: str = Field(..., min_length=1)
    amount_requested_cents: int = Field(..., gt=0)
    duration_days: int = Field(..., ge=1)
    interest_percent: float = Field(..., ge=0)


class LoanRequestResponse(BaseModel):
    request_id: str
    collateral_id: str
    customer_id: str
    shop_id: str
    amount_requested_cents: int
    duration_days: int
    interest_percent: float
    status: str
    loan_id: Optional[str] = None
    created_at: datetime


class LoanRequestListResponse(BaseModel):
    shop_id: str
    requests: List[LoanRequestResponse]


class LoanResponse(BaseModel):
    """Loan with balances accrued up to the read"""

    loan_id: str
    collateral_id: str
    customer_id: str
    shop_id: str
    status: str
    principal_cents: int
    max_principal_allowed_cents: int
    appraised_value_cents: Optional[int] = None
    ltv_percent: Optional[float] = None
    apr_percent: float
    term_days: int
    outstanding_principal_cents: int
    accrued_interest_cents: int
    late_fees_cents: int
    total_due_cents: int
    total_paid_cents: int
    last_accrual_at: Optional[datetime] = None
    start_at: Optional[datetime] = None
    due_at: Optional[datetime] = None
    updated_at: datetime


class AmountRequest(BaseModel):
    """Body for top-ups and late fees"""

    amount_cents: int = Field(..., gt=0)


class PaymentSubmitRequest(BaseModel):
    """Request body for POST /v1/loans/{loan_id}/payments"""

    amount_cents: int = Field(..., gt=0)
    kind: PaymentKind = PaymentKind.PRINCIPAL
    method: Optional[str] = None
    note: Optional[str] = None


class CashPaymentRequest(PaymentSubmitRequest):
    """Request body for POST /v1/loans/{loan_id}/cash-payments"""

    method: Optional[str] = "cash"
    paid_at: Optional[datetime] = None


class PaymentResponse(BaseModel):
    payment_id: str
    loan_id: str
    amount_cents: int
    kind: str
    status: str
    method: Optional[str] = None
    note: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_by: str
    decided_by: Optional[str] = None
    created_at: datetime


class PaymentListResponse(BaseModel):
    payments: List[PaymentResponse]


class AuctionCreateRequest(BaseModel):
    """Request body for POST /v1/auctions"""

    collateral_id: str
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    image_urls: List[str] = Field(default_factory=list)
    start_price_cents: int = Field(..., gt=0)
    reserve_price_cents: Optional[int] = Field(None, ge=0)
    start_at: datetime
    end_at: datetime


class AuctionResponse(BaseModel):
    auction_id: str
    collateral_id: str
    loan_id: Optional[str] = None
    shop_id: str
    title: str
    description: Optional[str] = None
    image_urls: List[str]
    start_price_cents: int
    reserve_price_cents: Optional[int] = None
    start_at: datetime
    end_at: datetime
    status: str
    is_live: bool
    highest_bid_cents: int
    minimum_next_bid_cents: int
    bid_count: int
    winner_id: Optional[str] = None
    proceeds_cents: Optional[int] = None
    shortfall_cents: Optional[int] = None


class BidRequest(BaseModel):
    amount_cents: int = Field(..., gt=0)


class BidResponse(BaseModel):
    bidder_id: str
    amount_cents: int
    created_at: datetime


class BidListResponse(BaseModel):
    auction_id: str
    bids: List[BidResponse]


class SweepResponse(BaseModel):
    started: int
    ended: int


class DispatchResponse(BaseModel):
    delivered: int
    failed: int
