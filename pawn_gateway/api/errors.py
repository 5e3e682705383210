"""Translate domain exceptions into HTTP responses"""

import logging
from fastapi import Request
from fastapi.responses import JSONResponse
from pawn_gateway.api.dependencies import get_request_id
from pawn_gateway.domain.exceptions import (
    CapExceeded,
    DomainException,
    Forbidden,
    NotFound,
    StateConflict,
    ValidationError,
    WriteConflict,
)

logger = logging.getLogger(__name__)

# Most specific first; subclasses of StateConflict share its status
STATUS_BY_EXCEPTION = [
    (ValidationError, 422),
    (Forbidden, 403),
    (NotFound, 404),
    (CapExceeded, 409),
    (StateConflict, 409),
    (WriteConflict, 503),
]


def status_for(error: DomainException) -> int:
    for exc_type, status in STATUS_BY_EXCEPTION:
        if isinstance(error, exc_type):
            return status
    return 400


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    status = status_for(exc)
    logger.warning(
        f"{type(exc).__name__}: {exc}",
        extra={"request_id": get_request_id(request), "status_code": status},
    )
    headers = {"Retry-After": "1"} if isinstance(exc, WriteConflict) else None
    return JSONResponse(
        status_code=status,
        content={"error": type(exc).__name__, "detail": str(exc)},
        headers=headers,
    )
