"""Dependency injection for FastAPI endpoints"""

from typing import Optional
from fastapi import Header, Request
from pawn_gateway.domain.models import Actor
from pawn_gateway.infrastructure.clients.notifier import NotifierClient


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_actor(
    x_actor_id: str = Header(default="", description="Authenticated actor id from the identity provider"),
    x_email_verified: bool = Header(default=False, description="Identity provider's email-verified flag"),
    x_shop_id: Optional[str] = Header(default=None, description="Shop resolved by the membership directory"),
) -> Actor:
    """Actor as asserted by the upstream identity provider and membership directory"""
    return Actor(actor_id=x_actor_id, email_verified=x_email_verified, shop_id=x_shop_id or None)


def get_notifier_client() -> NotifierClient:
    """Provide notifier webhook client instance"""
    return NotifierClient()
