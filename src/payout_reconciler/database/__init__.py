"""Database module for payout reconciliation persistence."""

from .models import (
    Base,
    Church,
    StripeConnectAccount,
    PayoutSummary,
    PayoutStatus,
    ReconciliationRunLock,
)
from .session import (
    get_db,
    get_database_url,
    init_db,
    close_db,
    create_async_engine,
    get_async_session_factory,
    get_db_context,
)
from .repository import (
    ChurchRepository,
    PayoutSummaryRepository,
    RunLockRepository,
    DEFAULT_RUN_LOCK_TTL_SECONDS,
)

__all__ = [
    # Models
    "Base",
    "Church",
    "StripeConnectAccount",
    "PayoutSummary",
    "PayoutStatus",
    "ReconciliationRunLock",
    # Session management
    "get_db",
    "get_database_url",
    "init_db",
    "close_db",
    "create_async_engine",
    "get_async_session_factory",
    "get_db_context",
    # Repositories
    "ChurchRepository",
    "PayoutSummaryRepository",
    "RunLockRepository",
    "DEFAULT_RUN_LOCK_TTL_SECONDS",
]
