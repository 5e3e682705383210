"""Outbox of ledger facts and their delivery to the notifier"""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

import httpx
from sqlalchemy.orm import Session

from pawn_gateway.config import settings
from pawn_gateway.domain.models import EventStatus
from pawn_gateway.infrastructure.clients.notifier import NotifierClient, is_retryable
from pawn_gateway.infrastructure.database.repositories import EventRepository
from pawn_gateway.utils.date_utils import utcnow

logger = logging.getLogger(__name__)


def _jsonable(value: Any) -> Any:
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def record_event(db: Session, event_type: str, **payload: Any) -> None:
    """Queue a fact inside the caller's transaction"""
    EventRepository(db).record(event_type, {k: _jsonable(v) for k, v in payload.items()})


async def dispatch_pending_events(
    db: Session,
    client: NotifierClient,
    limit: Optional[int] = None,
) -> Dict[str, int]:
    """
    Deliver queued events in creation order.

    Each event is committed on its own so a failure part-way leaves the
    already delivered ones marked. Transient failures stay pending for the
    next run; a rejection by the notifier (4xx) or running out of
    `event_max_attempts` parks the event as `failed` so it no longer holds
    back newer ones.
    """
    events = EventRepository(db).list_pending(limit or settings.event_dispatch_batch_size)
    delivered = failed = 0

    for event in events:
        event.attempts += 1
        event.last_attempt_at = utcnow()
        try:
            await client.send_event(
                {"event_id": str(event.id), "event_type": event.event_type, **event.payload}
            )
            event.status = EventStatus.DELIVERED.value
            delivered += 1
        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            failed += 1
            if not is_retryable(e) or event.attempts >= settings.event_max_attempts:
                event.status = EventStatus.FAILED.value
            logger.error(
                f"Notifier delivery failed: {e}",
                extra={
                    "event_id": str(event.id),
                    "event_type": event.event_type,
                    "attempts": event.attempts,
                    "status": event.status,
                },
            )
        db.commit()

    return {"delivered": delivered, "failed": failed}
