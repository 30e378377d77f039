# payout_reconciler package
__version__ = "0.1.0"

from .database import (
    Church,
    StripeConnectAccount,
    PayoutSummary,
    PayoutStatus,
    init_db,
    close_db,
    get_db,
)

# Reconciliation exports
from .reconciliation import (
    BatchRunner,
    BatchRunResult,
    ReconciliationCoordinator,
    ReconciliationResult,
    ReconciliationSettings,
    SummaryAggregator,
    TenantPayoutScanner,
    TransactionClassifier,
    LedgerEntry,
    get_ledger_pager,
    build_batch_runner,
)
