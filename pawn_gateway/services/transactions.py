"""Atomic read-check-write units with bounded retry on concurrent writes"""

import logging
import time
from typing import Callable, Optional, TypeVar
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from pawn_gateway.config import settings
from pawn_gateway.domain.exceptions import StateConflict, WriteConflict
from pawn_gateway.infrastructure.observability.metrics import write_conflict_counter

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_in_transaction(
    db: Session,
    work: Callable[[], T],
    max_attempts: Optional[int] = None,
    backoff_seconds: Optional[float] = None,
) -> T:
    """
    Run `work` and commit it as one unit.

    `work` must re-read every record it checks: on a version conflict the
    session is rolled back (expiring all loaded state) and `work` runs again
    from scratch. Domain errors roll back and propagate unchanged.

    Raises:
        WriteConflict: the record kept changing underneath for max_attempts tries
        StateConflict: a unique constraint rejected the write
    """
    attempts = max_attempts or settings.write_conflict_max_attempts
    backoff = settings.write_conflict_backoff_seconds if backoff_seconds is None else backoff_seconds

    for attempt in range(1, attempts + 1):
        try:
            result = work()
            db.commit()
            return result

        except (StaleDataError, WriteConflict) as e:
            db.rollback()
            if attempt >= attempts:
                write_conflict_counter.labels(outcome="exhausted").inc()
                logger.warning("Write conflict not resolved", extra={"attempts": attempt})
                raise WriteConflict("Record was modified concurrently, try again") from e

            write_conflict_counter.labels(outcome="retried").inc()
            time.sleep(backoff * attempt)

        except IntegrityError as e:
            db.rollback()
            raise StateConflict("Conflicting record already exists") from e

        except Exception:
            db.rollback()
            raise

    raise WriteConflict("Record was modified concurrently, try again")
