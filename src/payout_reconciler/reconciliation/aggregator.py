"""Folding classified ledger entries into a payout summary."""

import logging
from typing import Iterable, Optional

from .classifier import TransactionClassifier
from .models import ContributionCategory, LedgerEntry, ReconciliationResult

logger = logging.getLogger(__name__)


class SummaryAggregator:
    """Sums ledger entry contributions into a ReconciliationResult.

    The fold is pure integer addition, so the result does not depend on
    entry order and never involves floating point.
    """

    def __init__(self, classifier: Optional[TransactionClassifier] = None):
        self.classifier = classifier or TransactionClassifier()

    def aggregate(self, entries: Iterable[LedgerEntry]) -> ReconciliationResult:
        """Aggregate the full entry set of one payout.

        Args:
            entries: Every ledger entry of the payout.

        Returns:
            ReconciliationResult where transaction_count counts every entry and
            net_amount = gross_volume - total_fees - total_refunds - total_disputes.
        """
        transaction_count = 0
        unclassified_count = 0
        gross_volume = 0
        total_fees = 0
        total_refunds = 0
        total_disputes = 0

        for entry in entries:
            contribution = self.classifier.classify(entry)
            transaction_count += 1
            if contribution.category == ContributionCategory.UNCLASSIFIED:
                unclassified_count += 1
            gross_volume += contribution.gross
            total_fees += contribution.fees
            total_refunds += contribution.refunds
            total_disputes += contribution.disputes

        net_amount = gross_volume - total_fees - total_refunds - total_disputes

        if unclassified_count:
            logger.warning(
                f"{unclassified_count} of {transaction_count} balance transactions were not classified"
            )

        return ReconciliationResult(
            transaction_count=transaction_count,
            gross_volume=gross_volume,
            total_fees=total_fees,
            total_refunds=total_refunds,
            total_disputes=total_disputes,
            net_amount=net_amount,
            unclassified_count=unclassified_count,
        )
