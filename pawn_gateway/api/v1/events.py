"""POST /v1/events/dispatch - deliver queued ledger facts to the notifier"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pawn_gateway.api.dependencies import get_notifier_client
from pawn_gateway.api.v1.schemas import DispatchResponse
from pawn_gateway.infrastructure.clients.notifier import NotifierClient
from pawn_gateway.infrastructure.database.session import get_db
from pawn_gateway.services.events import dispatch_pending_events

router = APIRouter()


@router.post("/events/dispatch", response_model=DispatchResponse)
async def dispatch_events(
    db: Session = Depends(get_db),
    notifier: NotifierClient = Depends(get_notifier_client),
):
    """
    Push one batch of pending events to the notifier.

    Takes no actor: called by the scheduler on the internal network, and it
    moves no balances. Transient failures stay queued for the next call.
    """
    return DispatchResponse(**await dispatch_pending_events(db, notifier))
