"""Batch reconciliation across all churches."""

import time
import uuid
import logging
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import ChurchRepository, PayoutSummaryRepository, RunLockRepository
from .config import ReconciliationSettings
from .coordinator import ReconciliationCoordinator
from .exceptions import (
    AccountNotConnectedError,
    DiscoveryError,
    PayoutNotFoundError,
    RunInProgressError,
)
from .ledger_pager import LedgerPagerBase, get_ledger_pager
from .models import (
    BatchRunResult,
    PayoutOutcome,
    PendingPayout,
    RunStatus,
    TenantError,
)
from .rate_limiter import TokenBucket
from .scanner import TenantPayoutScanner

logger = logging.getLogger(__name__)


class BatchRunner:
    """Reconciles every pending payout of every church, one at a time.

    Churches and payouts are processed serially; ledger requests are paced
    by the pager's token bucket. A failing payout or church is recorded
    and skipped. Only a failing run lock or discovery query aborts the run.
    """

    def __init__(
        self,
        session: AsyncSession,
        ledger_pager: LedgerPagerBase,
        settings: Optional[ReconciliationSettings] = None,
        coordinator: Optional[ReconciliationCoordinator] = None,
        scanner: Optional[TenantPayoutScanner] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """Initialize the runner.

        Args:
            session: Async database session.
            ledger_pager: Pager shared by every payout of the run.
            settings: Run settings. Defaults to ReconciliationSettings().
            coordinator: Optional coordinator. Will create default if not provided.
            scanner: Optional scanner. Will create default if not provided.
            clock: Monotonic clock used for the run deadline.
        """
        self.session = session
        self.settings = settings or ReconciliationSettings()
        self.coordinator = coordinator or ReconciliationCoordinator(session, ledger_pager)
        self.scanner = scanner or TenantPayoutScanner(session)
        self.church_repo = ChurchRepository(session)
        self.payout_repo = PayoutSummaryRepository(session)
        self.lock_repo = RunLockRepository(session)
        self._clock = clock or time.monotonic
        self._deadline_at: Optional[float] = None

    def _start_deadline(self) -> None:
        if self.settings.deadline_seconds is None:
            self._deadline_at = None
        else:
            self._deadline_at = self._clock() + self.settings.deadline_seconds

    def _deadline_exceeded(self) -> bool:
        return self._deadline_at is not None and self._clock() >= self._deadline_at

    async def run(self) -> BatchRunResult:
        """Run a full reconciliation pass over all churches.

        Returns:
            BatchRunResult with one outcome per processed payout.

        Raises:
            RunInProgressError: If another run holds the run lock.
            DiscoveryError: If the run lock could not be taken or churches with
                pending payouts could not be listed.
        """
        result = BatchRunResult(run_id=str(uuid.uuid4()), status=RunStatus.IN_PROGRESS)

        try:
            acquired = await self.lock_repo.acquire(
                result.run_id, ttl_seconds=self.settings.lock_ttl_seconds
            )
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Failed to acquire run lock for run {result.run_id}: {e}")
            raise DiscoveryError("Failed to acquire the reconciliation run lock") from e
        if not acquired:
            logger.warning("Another reconciliation run is in progress; not starting")
            raise RunInProgressError()

        try:
            await self._run_with_lock(result)
        finally:
            try:
                await self.lock_repo.release(result.run_id)
            except SQLAlchemyError as e:
                logger.error(f"Failed to release run lock for run {result.run_id}: {e}")

        return result

    async def _run_with_lock(self, result: BatchRunResult) -> None:
        logger.info(f"Starting payout reconciliation run {result.run_id}")
        self._start_deadline()

        try:
            churches = await self.church_repo.list_with_pending_payouts()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Discovery query failed for run {result.run_id}: {e}")
            result.status = RunStatus.FAILED
            result.error_message = "Failed to list churches with pending payouts"
            result.completed_at = datetime.utcnow()
            raise DiscoveryError(result.error_message) from e

        logger.info(f"Found {len(churches)} churches with pending payouts")

        # Plain values; a rollback later in the run expires ORM instances
        targets = [(church.id, church.name) for church in churches]

        # Churches reached after the deadline are only scanned; their payouts go to deferred_payouts
        for church_id, church_name in targets:
            logger.info(f"Processing church {church_name} ({church_id})")
            result.tenants_scanned += 1

            try:
                pending = await self.scanner.scan(church_id)
            except SQLAlchemyError as e:
                await self.session.rollback()
                logger.error(f"Failed to scan payouts for church {church_id}: {e}")
                result.tenant_errors.append(TenantError(church_id=church_id, error=str(e)))
                continue

            await self._process_payouts(pending, result)

        self._finish(result)

    async def _process_payouts(
        self,
        pending: List[PendingPayout],
        result: BatchRunResult,
        force: bool = False,
    ) -> None:
        for index, payout in enumerate(pending):
            if self._deadline_exceeded():
                remaining = [p.payout_id for p in pending[index:]]
                logger.warning(
                    f"Deadline reached; deferring {len(remaining)} payouts to the next run"
                )
                result.deferred_payouts.extend(remaining)
                return
            result.outcomes.append(await self.coordinator.run(payout, force=force))

    def _finish(self, result: BatchRunResult) -> None:
        result.status = RunStatus.COMPLETED
        result.completed_at = datetime.utcnow()

        log = logger.warning if result.failed or result.tenant_errors else logger.info
        log(
            f"Reconciliation run {result.run_id} completed: "
            f"{result.tenants_scanned} churches scanned, "
            f"{result.succeeded} payouts reconciled, {result.failed} failed, "
            f"{len(result.deferred_payouts)} deferred"
        )
        for outcome in result.outcomes:
            if not outcome.success:
                logger.error(f"Payout {outcome.payout_id} failed: {outcome.error}")

    async def run_for_church(self, church_id: str) -> BatchRunResult:
        """Reconcile the pending payouts of a single church.

        Runs without the batch run lock. A payout reconciled concurrently by
        a batch run is left unchanged by the conditional summary update.

        Args:
            church_id: Church identifier.

        Returns:
            BatchRunResult covering only this church.
        """
        result = BatchRunResult(run_id=str(uuid.uuid4()), status=RunStatus.IN_PROGRESS)
        self._start_deadline()

        logger.info(f"Starting reconciliation run {result.run_id} for church {church_id}")
        pending = await self.scanner.scan(church_id)
        result.tenants_scanned = 1
        await self._process_payouts(pending, result)
        self._finish(result)
        return result

    async def reconcile_payout(self, payout_id: str, force: bool = True) -> PayoutOutcome:
        """Reconcile one payout on demand, by default even if already reconciled.

        Args:
            payout_id: External payout ID.
            force: Overwrite an existing summary.

        Returns:
            PayoutOutcome for the payout.

        Raises:
            PayoutNotFoundError: If no payout summary exists for the ID.
            AccountNotConnectedError: If the owning church has no connected account.
        """
        summary = await self.payout_repo.get_by_stripe_payout_id(payout_id)
        if summary is None:
            raise PayoutNotFoundError(f"Payout {payout_id} not found", payout_id=payout_id)

        account_id = await self.church_repo.get_connected_account_id(summary.church_id)
        if not account_id:
            raise AccountNotConnectedError(
                f"Church {summary.church_id} has no connected account",
                payout_id=payout_id,
            )

        logger.info(f"Manual reconciliation requested for payout {payout_id}")
        return await self.coordinator.run(
            PendingPayout(
                payout_id=payout_id,
                church_id=summary.church_id,
                account_id=account_id,
                expected_amount=summary.amount,
            ),
            force=force,
        )


def build_batch_runner(
    session: AsyncSession,
    settings: Optional[ReconciliationSettings] = None,
    api_key: Optional[str] = None,
) -> BatchRunner:
    """Wire a BatchRunner with a rate-limited ledger pager.

    Args:
        session: Async database session.
        settings: Run settings. Defaults to ReconciliationSettings.from_env().
        api_key: Optional ledger provider API key.

    Returns:
        Configured BatchRunner.
    """
    settings = settings or ReconciliationSettings.from_env()
    bucket = TokenBucket(rate=settings.rate_per_second, capacity=settings.burst)
    pager = get_ledger_pager(
        settings.provider,
        api_key=api_key,
        rate_limiter=bucket,
        page_size=settings.page_size,
    )
    return BatchRunner(session, pager, settings=settings)
