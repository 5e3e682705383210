"""Customer-initiated loan requests and the shop's accept/decline decision"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from pawn_gateway.api.dependencies import get_actor
from pawn_gateway.api.v1.loans import loan_to_response
from pawn_gateway.api.v1.schemas import (
    LoanRequestCreateRequest,
    LoanRequestListResponse,
    LoanRequestResponse,
    LoanResponse,
)
from pawn_gateway.domain.models import Actor
from pawn_gateway.infrastructure.database.models import LoanRequest
from pawn_gateway.infrastructure.database.session import get_db
from pawn_gateway.services import offers as offer_service

router = APIRouter()


def request_to_response(loan_request: LoanRequest) -> LoanRequestResponse:
    return LoanRequestResponse(
        request_id=str(loan_request.id),
        collateral_id=str(loan_request.collateral_id),
        customer_id=loan_request.customer_id,
        shop_id=loan_request.shop_id,
        amount_requested_cents=loan_request.amount_requested_cents,
        duration_days=loan_request.duration_days,
        interest_percent=loan_request.interest_percent,
        status=loan_request.status,
        loan_id=str(loan_request.loan_id) if loan_request.loan_id else None,
        created_at=loan_request.created_at,
    )


@router.post("/loan-requests", response_model=LoanRequestResponse, status_code=201)
def submit_loan_request(
    body: LoanRequestCreateRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    loan_request = offer_service.submit_loan_request(
        db,
        actor,
        body.collateral_id,
        shop_id=body.shop_id,
        amount_requested_cents=body.amount_requested_cents,
        duration_days=body.duration_days,
        interest_percent=body.interest_percent,
    )
    return request_to_response(loan_request)


@router.get("/loan-requests", response_model=LoanRequestListResponse)
def list_loan_requests(
    status: Optional[str] = Query(None, description="pending | accepted | declined"),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Requests addressed to the caller's shop"""
    requests = offer_service.list_loan_requests(db, actor, status)
    return LoanRequestListResponse(
        shop_id=actor.shop_id,
        requests=[request_to_response(r) for r in requests],
    )


@router.get("/loan-requests/{request_id}", response_model=LoanRequestResponse)
def get_loan_request(request_id: str, db: Session = Depends(get_db)):
    return request_to_response(offer_service.get_loan_request(db, request_id))


@router.post("/loan-requests/{request_id}/accept", response_model=LoanResponse)
def accept_loan_request(request_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    """Shop accepts; the loan is created already active"""
    return loan_to_response(offer_service.accept_loan_request(db, actor, request_id))


@router.post("/loan-requests/{request_id}/decline", response_model=LoanRequestResponse)
def decline_loan_request(request_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return request_to_response(offer_service.decline_loan_request(db, actor, request_id))
