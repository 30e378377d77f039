"""Payout reconciliation.

Reconstructs what each paid payout actually contained by paging through
the payment platform's balance transactions for that payout, classifying
every entry, and writing one summary per payout.

Features:
- Cursor-following ledger fetch, paced by a shared token bucket
- Sign-aware classification of charges, payments, refunds and disputes
- Exactly-once summary update guarded by ``reconciled_at``
- Per-payout failure isolation across a serial batch over all churches
- Run lease, optional run deadline, JSON/CSV/text run reports
"""

from .models import (
    EntryType,
    ContributionCategory,
    RunStatus,
    LedgerEntry,
    Contribution,
    ReconciliationResult,
    PendingPayout,
    PayoutOutcome,
    TenantError,
    BatchRunResult,
)
from .exceptions import (
    ReconciliationError,
    FetchError,
    EmptyResultError,
    PersistenceError,
    DiscoveryError,
    RunInProgressError,
    PayoutNotFoundError,
    AccountNotConnectedError,
)
from .rate_limiter import TokenBucket
from .ledger_pager import (
    LedgerPagerBase,
    StripeLedgerPager,
    get_ledger_pager,
)
from .classifier import TransactionClassifier
from .aggregator import SummaryAggregator
from .coordinator import ReconciliationCoordinator
from .scanner import TenantPayoutScanner
from .config import ReconciliationSettings
from .runner import BatchRunner, build_batch_runner
from .report import ReportGenerator

__all__ = [
    # Models
    "EntryType",
    "ContributionCategory",
    "RunStatus",
    "LedgerEntry",
    "Contribution",
    "ReconciliationResult",
    "PendingPayout",
    "PayoutOutcome",
    "TenantError",
    "BatchRunResult",
    # Errors
    "ReconciliationError",
    "FetchError",
    "EmptyResultError",
    "PersistenceError",
    "DiscoveryError",
    "RunInProgressError",
    "PayoutNotFoundError",
    "AccountNotConnectedError",
    # Ledger access
    "TokenBucket",
    "LedgerPagerBase",
    "StripeLedgerPager",
    "get_ledger_pager",
    # Core components
    "TransactionClassifier",
    "SummaryAggregator",
    "ReconciliationCoordinator",
    "TenantPayoutScanner",
    "ReconciliationSettings",
    "BatchRunner",
    "build_batch_runner",
    "ReportGenerator",
]
