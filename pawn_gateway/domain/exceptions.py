"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """Input rejected before any mutation (non-positive amount, missing field)"""

    pass


class Forbidden(DomainException):
    """Actor may not perform the operation (unverified email, not the owner or shop)"""

    pass


class NotFound(DomainException):
    """Referenced loan, collateral, payment or auction does not exist"""

    pass


class StateConflict(DomainException):
    """Operation is invalid for the record's current status"""

    pass


class NothingToSettle(StateConflict):
    """Loan has no balance left to settle"""

    pass


class AlreadyProcessed(StateConflict):
    """Payment already left the pending state"""

    pass


class CapExceeded(DomainException):
    """Top-up would push outstanding principal above the allowed maximum"""

    pass


class WriteConflict(DomainException):
    """Concurrent transaction touched the same record; safe to retry"""

    pass
