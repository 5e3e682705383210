"""Pytest fixtures for testing"""

import pytest
from datetime import datetime, timedelta, timezone
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
from pawn_gateway.api.main import create_app
from pawn_gateway.config import settings
from pawn_gateway.domain.models import Actor
from pawn_gateway.infrastructure.database.models import Base
from pawn_gateway.infrastructure.database.session import build_engine, build_session_factory, get_db
from pawn_gateway.services import collateral as collateral_service
from pawn_gateway.services import ledger
from pawn_gateway.services import offers


# Test database
TEST_DATABASE_URL = "sqlite:///./test_pawn.db"
engine = build_engine(TEST_DATABASE_URL)
TestingSessionLocal = build_session_factory(engine)

T0 = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def no_conflict_backoff(monkeypatch):
    """Retry immediately on write conflicts"""
    monkeypatch.setattr(settings, "write_conflict_backoff_seconds", 0.0)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def other_db(db: Session) -> Generator[Session, None, None]:
    """Second session on the same database, for concurrent-writer scenarios"""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def now() -> datetime:
    return T0


@pytest.fixture
def customer() -> Actor:
    return Actor(actor_id="cust_ana", email_verified=True)


@pytest.fixture
def shop() -> Actor:
    return Actor(actor_id="staff_bo", email_verified=True, shop_id="shop_colombo")


@pytest.fixture
def bidder() -> Actor:
    return Actor(actor_id="bidder_kim", email_verified=True)


@pytest.fixture
def rival_bidder() -> Actor:
    return Actor(actor_id="bidder_lee", email_verified=True)


@pytest.fixture
def collateral(db: Session, customer: Actor):
    """Registered item, status available"""
    return collateral_service.register_collateral(
        db, customer, title="Gold necklace", estimated_value_cents=120_000, image_urls=["https://img/1.jpg"]
    )


@pytest.fixture
def active_loan(db: Session, customer: Actor, shop: Actor, collateral, now: datetime):
    """
    Accepted shop offer: appraised 800.00 at 62.5% LTV -> principal 500.00,
    24% APR, 30 days, started at T0.
    """
    offer = offers.create_offer(
        db, shop, collateral.id,
        appraised_value_cents=80_000, ltv_percent=62.5, apr_percent=24.0, term_days=30,
    )
    return offers.accept_offer(db, customer, offer.id, now=now)


@pytest.fixture
def defaulted_loan(db: Session, shop: Actor, active_loan, now: datetime):
    return ledger.mark_defaulted(db, shop, active_loan.id, now=now + timedelta(days=45))


@pytest.fixture
def auth_headers():
    """Build the identity headers the upstream gateway would attach"""

    def build(actor: Actor) -> dict:
        headers = {
            "X-Actor-Id": actor.actor_id,
            "X-Email-Verified": "true" if actor.email_verified else "false",
        }
        if actor.shop_id:
            headers["X-Shop-Id"] = actor.shop_id
        return headers

    return build
