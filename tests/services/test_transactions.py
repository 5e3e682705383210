"""Commit, rollback and retry behaviour of transactional units"""

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from pawn_gateway.domain.exceptions import NotFound, StateConflict, WriteConflict
from pawn_gateway.infrastructure.database.models import Collateral, Loan
from pawn_gateway.services.transactions import run_in_transaction


def test_work_is_committed(db, customer):
    def work():
        collateral = Collateral(owner_id=customer.actor_id, title="Watch", image_urls=[])
        db.add(collateral)
        return collateral

    collateral = run_in_transaction(db, work)

    db.expire_all()
    assert db.get(Collateral, collateral.id).title == "Watch"


def test_conflict_is_retried_then_succeeds(db):
    calls = []

    def work():
        calls.append(1)
        if len(calls) < 3:
            raise StaleDataError("row changed")
        return "done"

    assert run_in_transaction(db, work, max_attempts=3, backoff_seconds=0) == "done"
    assert len(calls) == 3


def test_conflict_exhaustion_raises_write_conflict(db):
    calls = []

    def work():
        calls.append(1)
        raise StaleDataError("row changed")

    with pytest.raises(WriteConflict):
        run_in_transaction(db, work, max_attempts=2, backoff_seconds=0)
    assert len(calls) == 2


def test_domain_errors_roll_back_and_propagate(db, customer):
    def work():
        db.add(Collateral(owner_id=customer.actor_id, title="Ring", image_urls=[]))
        db.flush()
        raise NotFound("Loan not found")

    with pytest.raises(NotFound):
        run_in_transaction(db, work)
    assert db.query(Collateral).count() == 0


def test_integrity_error_becomes_state_conflict(db):
    def work():
        raise IntegrityError("INSERT", {}, Exception("duplicate key"))

    with pytest.raises(StateConflict):
        run_in_transaction(db, work)


def test_second_open_loan_hits_unique_index(db, shop, active_loan):
    """The partial index rejects a second open loan even if the status check is bypassed"""

    def work():
        db.add(
            Loan(
                collateral_id=active_loan.collateral_id,
                customer_id=active_loan.customer_id,
                shop_id=shop.shop_id,
                principal_cents=10_000,
                max_principal_allowed_cents=10_000,
                apr_percent=12.0,
                term_days=30,
                status="pending_offer",
            )
        )
        db.flush()

    with pytest.raises(StateConflict):
        run_in_transaction(db, work)
