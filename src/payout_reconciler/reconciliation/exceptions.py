"""Exceptions raised by payout reconciliation."""

from typing import Optional, Dict, Any


class ReconciliationError(Exception):
    """Base class for reconciliation failures."""
    error_code = "RECONCILIATION_ERROR"

    def __init__(
        self,
        message: str,
        payout_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.payout_id = payout_id
        self.details = details or {}
        super().__init__(self.message)


class FetchError(ReconciliationError):
    """The ledger API call failed (network, auth, not found)."""
    error_code = "FETCH_ERROR"


class EmptyResultError(ReconciliationError):
    """A paid payout has no ledger entries."""
    error_code = "NO_TRANSACTIONS_FOUND"

    def __init__(self, payout_id: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            f"No balance transactions found for payout {payout_id}",
            payout_id=payout_id,
            details=details,
        )


class PersistenceError(ReconciliationError):
    """Writing the payout summary failed after a successful aggregation."""
    error_code = "PERSISTENCE_ERROR"


class DiscoveryError(ReconciliationError):
    """The tenant/payout discovery query failed; the run cannot proceed."""
    error_code = "DISCOVERY_ERROR"


class RunInProgressError(ReconciliationError):
    """Another batch run holds the run lock."""
    error_code = "RUN_IN_PROGRESS"

    def __init__(self, message: str = "Another reconciliation run is in progress"):
        super().__init__(message)


class PayoutNotFoundError(ReconciliationError):
    """No payout summary exists for the requested payout."""
    error_code = "PAYOUT_NOT_FOUND"


class AccountNotConnectedError(ReconciliationError):
    """The church owning a payout has no connected account."""
    error_code = "ACCOUNT_NOT_CONNECTED"
