"""Discovery of payouts awaiting reconciliation."""

import logging
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from ..database import ChurchRepository, PayoutSummaryRepository
from .models import PendingPayout

logger = logging.getLogger(__name__)


class TenantPayoutScanner:
    """Finds a church's paid payouts that have not been reconciled yet."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.church_repo = ChurchRepository(session)
        self.payout_repo = PayoutSummaryRepository(session)

    async def scan(self, church_id: str) -> List[PendingPayout]:
        """List pending payouts of a church.

        A church without a connected account has nothing to reconcile and
        yields an empty list.

        Args:
            church_id: Church identifier.

        Returns:
            PendingPayout list in discovery order (oldest payout first).
        """
        account_id = await self.church_repo.get_connected_account_id(church_id)
        if not account_id:
            logger.info(f"Church {church_id} has no connected account; nothing to reconcile")
            return []

        payouts = await self.payout_repo.list_pending_for_church(church_id)
        logger.info(f"Found {len(payouts)} pending payouts for church {church_id}")

        return [
            PendingPayout(
                payout_id=p.stripe_payout_id,
                church_id=church_id,
                account_id=account_id,
                expected_amount=p.amount,
            )
            for p in payouts
        ]
