"""Classification of ledger entries into payout summary contributions."""

import logging

from .models import (
    Contribution,
    ContributionCategory,
    EntryType,
    LedgerEntry,
    DISPUTE_REPORTING_CATEGORY,
)

logger = logging.getLogger(__name__)


class TransactionClassifier:
    """Maps a ledger entry to what it adds to each payout total.

    Sign conventions:
    - charges and payments add ``amount`` to gross volume and ``fee`` to fees
    - refunds add ``abs(amount)`` to refunds and ``fee`` to fees; refund fees
      are negative, so they reduce the fee total
    - dispute adjustments add ``abs(amount)`` to disputes
    - any other adjustment or type contributes nothing but is still counted
      and logged as unclassified
    """

    def classify(self, entry: LedgerEntry) -> Contribution:
        """Classify a single ledger entry.

        Args:
            entry: Ledger entry to classify.

        Returns:
            Contribution for the entry.
        """
        if entry.type in (EntryType.CHARGE, EntryType.PAYMENT):
            return Contribution(
                entry_id=entry.id,
                category=ContributionCategory.GROSS,
                gross=entry.amount,
                fees=entry.fee,
            )

        if entry.type == EntryType.REFUND:
            return Contribution(
                entry_id=entry.id,
                category=ContributionCategory.REFUND,
                refunds=abs(entry.amount),
                fees=entry.fee,
            )

        if entry.type == EntryType.ADJUSTMENT and entry.reporting_category == DISPUTE_REPORTING_CATEGORY:
            return Contribution(
                entry_id=entry.id,
                category=ContributionCategory.DISPUTE,
                disputes=abs(entry.amount),
            )

        return self._unclassified(entry)

    def _unclassified(self, entry: LedgerEntry) -> Contribution:
        logger.warning(
            f"Unclassified balance transaction {entry.id}: "
            f"type={entry.raw_type or entry.type.value} "
            f"reporting_category={entry.reporting_category} "
            f"amount={entry.amount} fee={entry.fee}"
        )
        return Contribution(
            entry_id=entry.id,
            category=ContributionCategory.UNCLASSIFIED,
        )
