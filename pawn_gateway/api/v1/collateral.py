"""Collateral registry and shop appraisal offers"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pawn_gateway.api.dependencies import get_actor
from pawn_gateway.api.v1.loans import loan_to_response
from pawn_gateway.api.v1.schemas import (
    CollateralCreateRequest,
    CollateralListResponse,
    CollateralResponse,
    LoanResponse,
    OfferCreateRequest,
)
from pawn_gateway.domain.models import Actor
from pawn_gateway.infrastructure.database.models import Collateral
from pawn_gateway.infrastructure.database.session import get_db
from pawn_gateway.services import collateral as collateral_service
from pawn_gateway.services import offers as offer_service

router = APIRouter()


def collateral_to_response(collateral: Collateral) -> CollateralResponse:
    return CollateralResponse(
        collateral_id=str(collateral.id),
        owner_id=collateral.owner_id,
        title=collateral.title,
        description=collateral.description,
        estimated_value_cents=collateral.estimated_value_cents,
        appraised_value_cents=collateral.appraised_value_cents,
        image_urls=collateral.image_urls or [],
        status=collateral.status,
        loan_id=str(collateral.loan_id) if collateral.loan_id else None,
        updated_at=collateral.updated_at,
    )


@router.post("/collateral", response_model=CollateralResponse, status_code=201)
def register_collateral(
    body: CollateralCreateRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Customer registers an item they own"""
    collateral = collateral_service.register_collateral(
        db,
        actor,
        title=body.title,
        description=body.description,
        estimated_value_cents=body.estimated_value_cents,
        image_urls=body.image_urls,
    )
    return collateral_to_response(collateral)


@router.get("/collateral", response_model=CollateralListResponse)
def list_collateral(actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    """Items owned by the calling customer"""
    items = collateral_service.list_owned_collateral(db, actor)
    return CollateralListResponse(owner_id=actor.actor_id, items=[collateral_to_response(c) for c in items])


@router.get("/collateral/{collateral_id}", response_model=CollateralResponse)
def get_collateral(collateral_id: str, db: Session = Depends(get_db)):
    return collateral_to_response(collateral_service.get_collateral(db, collateral_id))


@router.post("/collateral/{collateral_id}/offers", response_model=LoanResponse, status_code=201)
def create_offer(
    collateral_id: str,
    body: OfferCreateRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """
    Shop appraises the item and offers a loan.

    Returns the loan in `pending_offer` until the owner accepts it.
    """
    loan = offer_service.create_offer(
        db,
        actor,
        collateral_id,
        appraised_value_cents=body.appraised_value_cents,
        ltv_percent=body.ltv_percent,
        apr_percent=body.apr_percent,
        term_days=body.term_days,
    )
    return loan_to_response(loan)
