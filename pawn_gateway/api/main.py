"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from pawn_gateway.api.errors import domain_exception_handler
from pawn_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from pawn_gateway.api.v1 import auctions, collateral, events, loan_requests, loans, payments
from pawn_gateway.domain.exceptions import DomainException
from pawn_gateway.infrastructure.observability.logging import setup_logging
from pawn_gateway.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Pawn Gateway",
        description="Collateral-backed loan ledger and auction settlement service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(DomainException, domain_exception_handler)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(collateral.router, prefix="/v1", tags=["collateral"])
    app.include_router(loan_requests.router, prefix="/v1", tags=["loan-requests"])
    app.include_router(loans.router, prefix="/v1", tags=["loans"])
    app.include_router(payments.router, prefix="/v1", tags=["payments"])
    app.include_router(auctions.router, prefix="/v1", tags=["auctions"])
    app.include_router(events.router, prefix="/v1", tags=["events"])

    return app


app = create_app()
