"""Shared test fixtures and configuration."""

import os
import pytest
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

# Set up test environment variables before importing modules
os.environ.setdefault("STRIPE_API_KEY", "sk_test_dummy_key_for_testing")
os.environ.setdefault("API_KEY", "test_api_key_12345")
os.environ.setdefault("CRON_SECRET", "test_cron_secret")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from payout_reconciler.database import (
    Base,
    Church,
    StripeConnectAccount,
    PayoutSummary,
    PayoutStatus,
    create_async_engine,
    get_async_session_factory,
)
from payout_reconciler.reconciliation import (
    FetchError,
    LedgerEntry,
    LedgerPagerBase,
)


class FakeLedgerPager(LedgerPagerBase):
    """In-memory pager returning canned entries per payout."""

    def __init__(
        self,
        entries_by_payout: Optional[Dict[str, List[LedgerEntry]]] = None,
        failing: Iterable[str] = (),
    ):
        self.entries_by_payout = entries_by_payout or {}
        self.failing = set(failing)
        self.calls: List[tuple] = []

    async def fetch_entries(self, payout_id: str, account_id: str) -> List[LedgerEntry]:
        self.calls.append((payout_id, account_id))
        if payout_id in self.failing:
            raise FetchError(f"Stripe API error for {payout_id}", payout_id=payout_id)
        return list(self.entries_by_payout.get(payout_id, []))


class FakeClock:
    """Manually advanced monotonic clock with a matching async sleep."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def make_entry(
    id: str,
    type: str,
    amount: int,
    fee: int = 0,
    reporting_category: Optional[str] = None,
) -> LedgerEntry:
    return LedgerEntry.from_ledger(
        id=id,
        type=type,
        amount=amount,
        fee=fee,
        reporting_category=reporting_category or type,
    )


@pytest.fixture
def entry_factory():
    """Build LedgerEntry objects the way the Stripe pager does."""
    return make_entry


@pytest.fixture
def fake_pager_class():
    return FakeLedgerPager


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def sample_entries() -> List[LedgerEntry]:
    """Charge plus partial refund from a single donation."""
    return [
        make_entry("txn_charge_1", "charge", 10000, 320),
        make_entry("txn_refund_1", "refund", -2000, -65),
    ]


# Database fixtures
@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite database for testing."""
    engine = create_async_engine(
        database_url="sqlite+aiosqlite:///:memory:",
        echo=False
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine):
    """Create a database session for testing."""
    session_factory = get_async_session_factory(db_engine)
    async with session_factory() as session:
        yield session


@pytest.fixture
def seed(db_session):
    """Helpers to insert churches, connected accounts and payout summaries."""

    class Seeder:
        async def church(self, name: str = "Grace Chapel", account_id: Optional[str] = "acct_grace") -> Church:
            church = Church(name=name)
            db_session.add(church)
            await db_session.flush()
            if account_id:
                db_session.add(StripeConnectAccount(church_id=church.id, stripe_account_id=account_id))
            await db_session.commit()
            return church

        async def payout(
            self,
            church: Church,
            payout_id: str,
            status: str = PayoutStatus.PAID.value,
            amount: int = 0,
            reconciled_at: Optional[datetime] = None,
            days_ago: int = 1,
        ) -> PayoutSummary:
            payout = PayoutSummary(
                stripe_payout_id=payout_id,
                church_id=church.id,
                payout_date=datetime.utcnow() - timedelta(days=days_ago),
                amount=amount,
                status=status,
                reconciled_at=reconciled_at,
            )
            db_session.add(payout)
            await db_session.commit()
            return payout

    return Seeder()
