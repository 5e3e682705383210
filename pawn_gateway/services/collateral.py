"""Collateral registry: item registration and pledge-state transitions"""

import uuid
from typing import List, Optional

from sqlalchemy.orm import Session

from pawn_gateway.domain.exceptions import Forbidden, ValidationError
from pawn_gateway.domain.lifecycle import check_collateral_transition
from pawn_gateway.domain.models import Actor, CollateralStatus
from pawn_gateway.infrastructure.database.models import Collateral
from pawn_gateway.infrastructure.database.repositories import CollateralRepository
from pawn_gateway.infrastructure.observability.logging import log_ledger_event
from pawn_gateway.services.guards import parse_id, require_found, require_verified
from pawn_gateway.services.transactions import run_in_transaction


def register_collateral(
    db: Session,
    actor: Actor,
    title: str,
    description: Optional[str] = None,
    estimated_value_cents: Optional[int] = None,
    image_urls: Optional[List[str]] = None,
) -> Collateral:
    """Register an item owned by the calling customer; starts `available`"""
    require_verified(actor)
    if not title or not title.strip():
        raise ValidationError("title is required")
    if estimated_value_cents is not None and estimated_value_cents < 0:
        raise ValidationError("estimated_value_cents must not be negative")

    def work() -> Collateral:
        return CollateralRepository(db).create(
            owner_id=actor.actor_id,
            title=title.strip(),
            description=description,
            estimated_value_cents=estimated_value_cents,
            image_urls=list(image_urls or []),
            status=CollateralStatus.AVAILABLE.value,
        )

    collateral = run_in_transaction(db, work)
    log_ledger_event("collateral_registered", "collateral", str(collateral.id), actor.actor_id)
    return collateral


def get_collateral(db: Session, collateral_id) -> Collateral:
    return require_found(
        CollateralRepository(db).get_by_id(parse_id(collateral_id, "collateral")), "Collateral"
    )


def list_owned_collateral(db: Session, actor: Actor) -> List[Collateral]:
    """Items registered by the calling customer, newest first"""
    if not actor.actor_id:
        raise Forbidden("Authentication required")
    return CollateralRepository(db).list_by_owner(actor.actor_id)


def move_collateral(
    collateral: Collateral,
    target: CollateralStatus,
    loan_id: Optional[uuid.UUID] = None,
) -> None:
    """Apply a pledge-state transition, rejecting moves the state machine forbids"""
    check_collateral_transition(collateral.status, target)
    collateral.status = target.value
    if loan_id is not None:
        collateral.loan_id = loan_id
