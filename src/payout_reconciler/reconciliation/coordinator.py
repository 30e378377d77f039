"""Per-payout reconciliation: fetch, classify, aggregate, persist."""

import logging
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import PayoutSummaryRepository
from .aggregator import SummaryAggregator
from .exceptions import EmptyResultError, PersistenceError, ReconciliationError
from .ledger_pager import LedgerPagerBase
from .models import PayoutOutcome, PendingPayout, ReconciliationResult

logger = logging.getLogger(__name__)


class ReconciliationCoordinator:
    """Reconciles one payout end to end.

    A payout moves from pending (``reconciled_at`` NULL) to reconciled in a
    single UPDATE issued only after the complete ledger has been fetched
    and aggregated. Any failure before that leaves the row untouched, so
    the payout is simply picked up again by the next run.
    """

    def __init__(
        self,
        session: AsyncSession,
        ledger_pager: LedgerPagerBase,
        aggregator: Optional[SummaryAggregator] = None,
    ):
        """Initialize the coordinator.

        Args:
            session: Async database session.
            ledger_pager: Pager used to fetch ledger entries.
            aggregator: Optional aggregator. Will create default if not provided.
        """
        self.session = session
        self.ledger_pager = ledger_pager
        self.aggregator = aggregator or SummaryAggregator()
        self.payout_repo = PayoutSummaryRepository(session)

    async def reconcile(
        self,
        payout_id: str,
        account_id: str,
        force: bool = False,
    ) -> ReconciliationResult:
        """Reconcile a payout and persist its summary.

        Args:
            payout_id: External payout ID.
            account_id: Connected account the ledger lives in.
            force: Overwrite the summary even if the payout is already reconciled.

        Returns:
            ReconciliationResult for the payout. It is not written when the
            payout was already reconciled and force is False.

        Raises:
            FetchError: If the ledger could not be fetched.
            EmptyResultError: If the payout has no ledger entries.
            PersistenceError: If the summary row could not be updated.
        """
        result, _ = await self._reconcile(payout_id, account_id, force=force)
        return result

    async def _reconcile(
        self,
        payout_id: str,
        account_id: str,
        force: bool,
    ) -> Tuple[ReconciliationResult, bool]:
        logger.info(f"Starting reconciliation for payout {payout_id}")

        entries = await self.ledger_pager.fetch_entries(payout_id, account_id)
        if not entries:
            raise EmptyResultError(payout_id, details={"account_id": account_id})

        result = self.aggregator.aggregate(entries)
        written = await self._persist(payout_id, result, force=force)

        logger.info(
            f"Reconciled payout {payout_id}: {result.transaction_count} transactions, "
            f"gross={result.gross_volume} fees={result.total_fees} "
            f"refunds={result.total_refunds} disputes={result.total_disputes} "
            f"net={result.net_amount}"
        )
        return result, written

    async def _persist(self, payout_id: str, result: ReconciliationResult, force: bool) -> bool:
        try:
            updated = await self.payout_repo.mark_reconciled(
                payout_id,
                result.to_totals(),
                reconciled_at=datetime.utcnow(),
                only_if_pending=not force,
            )
            if not updated:
                existing = await self.payout_repo.get_by_stripe_payout_id(payout_id)
                if existing is None:
                    raise PersistenceError(
                        f"No payout summary found for payout {payout_id}",
                        payout_id=payout_id,
                    )
                logger.warning(
                    f"Payout {payout_id} was already reconciled at "
                    f"{existing.reconciled_at}; leaving it unchanged"
                )
            await self.session.commit()
            return bool(updated)
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Failed to persist summary for payout {payout_id}: {e}")
            raise PersistenceError(
                f"Failed to persist summary for payout {payout_id}",
                payout_id=payout_id,
            ) from e

    async def run(self, pending: PendingPayout, force: bool = False) -> PayoutOutcome:
        """Reconcile a payout and report the outcome instead of raising.

        Args:
            pending: Payout to reconcile.
            force: Overwrite an already reconciled summary.

        Returns:
            PayoutOutcome describing success or failure.
        """
        try:
            result, written = await self._reconcile(pending.payout_id, pending.account_id, force=force)
        except EmptyResultError as e:
            logger.warning(e.message)
            return PayoutOutcome(
                payout_id=pending.payout_id,
                church_id=pending.church_id,
                success=False,
                error=e.message,
                error_code=e.error_code,
            )
        except ReconciliationError as e:
            logger.error(f"Reconciliation failed for payout {pending.payout_id}: {e.message}")
            return PayoutOutcome(
                payout_id=pending.payout_id,
                church_id=pending.church_id,
                success=False,
                error=e.message,
                error_code=e.error_code,
            )
        except Exception as e:
            logger.exception(f"Unexpected error reconciling payout {pending.payout_id}")
            return PayoutOutcome(
                payout_id=pending.payout_id,
                church_id=pending.church_id,
                success=False,
                error=str(e) or type(e).__name__,
                error_code="UNEXPECTED_ERROR",
            )

        discrepancy = None
        if pending.expected_amount is not None and result.net_amount != pending.expected_amount:
            discrepancy = result.net_amount - pending.expected_amount
            logger.warning(
                f"Payout {pending.payout_id} net amount {result.net_amount} does not match "
                f"reported payout amount {pending.expected_amount} (difference {discrepancy})"
            )

        return PayoutOutcome(
            payout_id=pending.payout_id,
            church_id=pending.church_id,
            success=True,
            summary=result,
            amount_discrepancy=discrepancy,
            already_reconciled=not written,
        )
