"""Repository layer for payout reconciliation persistence operations."""

import logging
from datetime import datetime, timedelta
from typing import Optional, Dict, List

from sqlalchemy import select, insert, update, delete, and_, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    Church,
    StripeConnectAccount,
    PayoutSummary,
    PayoutStatus,
    ReconciliationRunLock,
)

logger = logging.getLogger(__name__)

# Default run lease TTL in seconds
DEFAULT_RUN_LOCK_TTL_SECONDS = 3600

RUN_LOCK_NAME = "payout_reconciliation"


def _pending_predicate():
    """Rows still waiting for reconciliation: paid and never reconciled."""
    return and_(
        PayoutSummary.status == PayoutStatus.PAID.value,
        PayoutSummary.reconciled_at.is_(None),
    )


class ChurchRepository:
    """Read access to tenants and their connected accounts."""

    def __init__(self, session: AsyncSession):
        """Initialize the repository with a database session.

        Args:
            session: AsyncSession instance for database operations.
        """
        self.session = session

    async def get_by_id(self, church_id: str) -> Optional[Church]:
        result = await self.session.execute(
            select(Church).where(Church.id == church_id)
        )
        return result.scalar_one_or_none()

    async def get_connected_account_id(self, church_id: str) -> Optional[str]:
        """Get the external account id a church's ledger queries are scoped to.

        Args:
            church_id: Church identifier.

        Returns:
            The connected account id, or None if the church has no payment setup.
        """
        result = await self.session.execute(
            select(StripeConnectAccount.stripe_account_id).where(
                StripeConnectAccount.church_id == church_id
            )
        )
        return result.scalar_one_or_none()

    async def list_with_pending_payouts(self) -> List[Church]:
        """List churches that have at least one pending payout summary.

        Returns:
            List of Church instances ordered by name.
        """
        pending_church_ids = (
            select(PayoutSummary.church_id)
            .where(_pending_predicate())
            .distinct()
        )
        result = await self.session.execute(
            select(Church)
            .where(Church.id.in_(pending_church_ids))
            .order_by(Church.name)
        )
        return list(result.scalars().all())


class PayoutSummaryRepository:
    """Repository for PayoutSummary reads and the reconciliation update."""

    def __init__(self, session: AsyncSession):
        """Initialize the repository with a database session.

        Args:
            session: AsyncSession instance for database operations.
        """
        self.session = session

    async def get_by_stripe_payout_id(self, stripe_payout_id: str) -> Optional[PayoutSummary]:
        """Get a payout summary by its external payout id.

        Args:
            stripe_payout_id: Payment platform payout identifier.

        Returns:
            PayoutSummary instance if found, None otherwise.
        """
        result = await self.session.execute(
            select(PayoutSummary)
            .where(PayoutSummary.stripe_payout_id == stripe_payout_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_pending_for_church(self, church_id: str) -> List[PayoutSummary]:
        """List paid, unreconciled payouts of one church, oldest first.

        Args:
            church_id: Church identifier.

        Returns:
            List of PayoutSummary instances.
        """
        result = await self.session.execute(
            select(PayoutSummary)
            .where(
                and_(
                    PayoutSummary.church_id == church_id,
                    _pending_predicate(),
                )
            )
            .order_by(PayoutSummary.payout_date, PayoutSummary.stripe_payout_id)
        )
        return list(result.scalars().all())

    async def mark_reconciled(
        self,
        stripe_payout_id: str,
        totals: Dict[str, int],
        reconciled_at: Optional[datetime] = None,
        only_if_pending: bool = True,
    ) -> int:
        """Write reconciliation totals and stamp reconciled_at in one statement.

        Args:
            stripe_payout_id: Payment platform payout identifier.
            totals: Mapping of aggregate column name to value.
            reconciled_at: Timestamp to record. Defaults to now.
            only_if_pending: Only update a row whose reconciled_at is still NULL.

        Returns:
            Number of rows updated (0 or 1).
        """
        now = reconciled_at or datetime.utcnow()
        conditions = [PayoutSummary.stripe_payout_id == stripe_payout_id]
        if only_if_pending:
            conditions.append(PayoutSummary.reconciled_at.is_(None))

        result = await self.session.execute(
            update(PayoutSummary)
            .where(and_(*conditions))
            .values(**totals, reconciled_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        logger.debug(f"Reconciliation update for payout {stripe_payout_id} touched {result.rowcount} row(s)")
        return result.rowcount

    async def get_statistics(self, church_id: str) -> Dict[str, int]:
        """Count payouts of a church by reconciliation state.

        Args:
            church_id: Church identifier.

        Returns:
            Dictionary with total, reconciled, pending and failed counts.
        """
        result = await self.session.execute(
            select(
                func.count(PayoutSummary.id),
                func.count(PayoutSummary.reconciled_at),
                func.count(PayoutSummary.id).filter(_pending_predicate()),
                func.count(PayoutSummary.id).filter(
                    PayoutSummary.status == PayoutStatus.FAILED.value
                ),
            ).where(PayoutSummary.church_id == church_id)
        )
        total, reconciled, pending, failed = result.one()
        return {
            "total": total,
            "reconciled": reconciled,
            "pending": pending,
            "failed": failed,
        }

    async def list_recent(self, church_id: str, limit: int = 10) -> List[PayoutSummary]:
        """List the most recent payouts of a church by payout date.

        Args:
            church_id: Church identifier.
            limit: Maximum number of results.

        Returns:
            List of PayoutSummary instances, newest first.
        """
        result = await self.session.execute(
            select(PayoutSummary)
            .where(PayoutSummary.church_id == church_id)
            .order_by(PayoutSummary.payout_date.desc())
            .limit(limit)
        )
        return list(result.scalars().all())


class RunLockRepository:
    """Database lease used to keep batch runs from overlapping."""

    def __init__(self, session: AsyncSession):
        """Initialize the repository with a database session.

        Args:
            session: AsyncSession instance for database operations.
        """
        self.session = session

    async def acquire(
        self,
        owner: str,
        name: str = RUN_LOCK_NAME,
        ttl_seconds: int = DEFAULT_RUN_LOCK_TTL_SECONDS,
    ) -> bool:
        """Try to take the lease.

        An expired lease is taken over; a live lease held by someone else
        is left alone.

        Args:
            owner: Identifier of the run taking the lease.
            name: Lease name.
            ttl_seconds: Lease lifetime in seconds.

        Returns:
            True if the lease is now held by ``owner``.
        """
        now = datetime.utcnow()
        expires_at = now + timedelta(seconds=ttl_seconds)

        result = await self.session.execute(
            update(ReconciliationRunLock)
            .where(
                and_(
                    ReconciliationRunLock.name == name,
                    ReconciliationRunLock.expires_at < now,
                )
            )
            .values(owner=owner, acquired_at=now, expires_at=expires_at)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            await self.session.commit()
            logger.warning(f"Took over expired run lock {name!r} for run {owner}")
            return True

        try:
            await self.session.execute(
                insert(ReconciliationRunLock).values(
                    name=name,
                    owner=owner,
                    acquired_at=now,
                    expires_at=expires_at,
                )
            )
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            logger.info(f"Run lock {name!r} is held by another run")
            return False

        logger.debug(f"Acquired run lock {name!r} for run {owner}")
        return True

    async def release(self, owner: str, name: str = RUN_LOCK_NAME) -> None:
        """Release the lease if ``owner`` still holds it."""
        await self.session.execute(
            delete(ReconciliationRunLock).where(
                and_(
                    ReconciliationRunLock.name == name,
                    ReconciliationRunLock.owner == owner,
                )
            )
        )
        await self.session.commit()
        logger.debug(f"Released run lock {name!r} for run {owner}")
