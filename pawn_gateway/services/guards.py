"""Actor and lookup preconditions shared by the services"""

import uuid
from typing import Optional, TypeVar

from pawn_gateway.domain.exceptions import Forbidden, NotFound, ValidationError
from pawn_gateway.domain.models import Actor

T = TypeVar("T")


def parse_id(value, name: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError as e:
        raise ValidationError(f"Invalid {name} id format") from e


def require_found(record: Optional[T], name: str) -> T:
    if record is None:
        raise NotFound(f"{name} not found")
    return record


def require_verified(actor: Actor) -> None:
    """Mutations are only accepted from actors with a verified email"""
    if not actor.actor_id:
        raise Forbidden("Authentication required")
    if not actor.email_verified:
        raise Forbidden("Verify your email first")


def require_shop(actor: Actor, shop_id: str) -> None:
    require_verified(actor)
    if actor.shop_id is None or actor.shop_id != shop_id:
        raise Forbidden("Actor does not act for this shop")


def require_owner(actor: Actor, owner_id: str) -> None:
    require_verified(actor)
    if actor.actor_id != owner_id:
        raise Forbidden("Actor does not own this record")
