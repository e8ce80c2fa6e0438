"""
Ledger exception hierarchy.

Every error raised by the loan accounting engine carries an error code and
the HTTP status the API layer renders it with.
"""

from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base exception for all ledger errors."""

    error_code = "ERR_LEDGER"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class InvalidArgumentError(LedgerError):
    """Raised when an amount, rate or id fails validation before any write."""

    error_code = "ERR_INVALID_ARGUMENT"
    status_code = 400


class NotFoundError(LedgerError):
    """Raised when a referenced loan account or party does not exist."""

    error_code = "ERR_NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(message, details={"resource": resource, "id": resource_id})


class InvalidStateError(LedgerError):
    """Raised when the loan's state forbids the operation (closed loan, overpayment)."""

    error_code = "ERR_INVALID_STATE"
    status_code = 409


class LedgerImmutableError(InvalidStateError):
    """Raised on an attempt to edit or delete a posted ledger entry."""

    error_code = "ERR_LEDGER_IMMUTABLE"


class PersistenceError(LedgerError):
    """Raised when the store rejects or fails the atomic commit."""

    error_code = "ERR_PERSISTENCE"
    status_code = 500


class ConcurrencyConflictError(PersistenceError):
    """Raised when another writer updated the same loan account first."""

    error_code = "ERR_CONCURRENT_UPDATE"
    status_code = 409
