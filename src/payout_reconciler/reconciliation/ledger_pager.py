"""Ledger fetching for payout reconciliation."""

import asyncio
import os
import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional

import stripe

from .exceptions import FetchError
from .models import LedgerEntry
from .rate_limiter import TokenBucket

logger = logging.getLogger(__name__)

# Stripe max page size for list endpoints
MAX_PAGE_SIZE = 100


class LedgerPagerBase(ABC):
    """Base class for payout ledger pagers."""

    @abstractmethod
    async def fetch_entries(self, payout_id: str, account_id: str) -> List[LedgerEntry]:
        """Fetch every ledger entry attributed to a payout.

        Args:
            payout_id: External payout ID.
            account_id: Connected account the query is scoped to.

        Returns:
            Fully materialized list of LedgerEntry, in ledger order.

        Raises:
            FetchError: If any page request fails.
        """
        raise NotImplementedError


class StripeLedgerPager(LedgerPagerBase):
    """Pages through Stripe balance transactions for a payout on a connected account."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        page_size: int = MAX_PAGE_SIZE,
        rate_limiter: Optional[TokenBucket] = None,
    ):
        """Initialize the Stripe pager.

        Args:
            api_key: Stripe API key. Falls back to STRIPE_API_KEY env var.
            page_size: Entries requested per page (capped at 100).
            rate_limiter: Token bucket awaited before every page request.

        Raises:
            ValueError: If no API key is provided or found.
        """
        self._api_key = api_key or os.getenv("STRIPE_API_KEY")
        if not self._api_key:
            raise ValueError(
                "STRIPE_API_KEY must be provided either as argument or environment variable"
            )
        self.page_size = max(1, min(page_size, MAX_PAGE_SIZE))
        self.rate_limiter = rate_limiter

    def _configure_stripe(self) -> None:
        """Configure the Stripe SDK with the API key."""
        stripe.api_key = self._api_key

    @staticmethod
    def _convert_to_ledger_entry(balance_transaction: Any) -> LedgerEntry:
        """Convert a Stripe BalanceTransaction to a LedgerEntry.

        Args:
            balance_transaction: Stripe BalanceTransaction object.

        Returns:
            LedgerEntry object.
        """
        return LedgerEntry.from_ledger(
            id=balance_transaction.id,
            type=balance_transaction.type,
            amount=balance_transaction.amount,
            fee=balance_transaction.fee,
            reporting_category=balance_transaction.reporting_category,
        )

    def _list_page(self, payout_id: str, account_id: str, starting_after: Optional[str]) -> Any:
        params = {
            "payout": payout_id,
            "limit": self.page_size,
        }
        if starting_after:
            params["starting_after"] = starting_after
        return stripe.BalanceTransaction.list(stripe_account=account_id, **params)

    async def fetch_entries(self, payout_id: str, account_id: str) -> List[LedgerEntry]:
        """Fetch all balance transactions of a payout, following cursors.

        Args:
            payout_id: Stripe payout ID.
            account_id: Stripe connected account ID.

        Returns:
            List of LedgerEntry objects.

        Raises:
            ValueError: If either identifier is empty.
            FetchError: If Stripe rejects or fails any page request.
        """
        if not payout_id or not account_id:
            raise ValueError("payout_id and account_id must be non-empty")

        self._configure_stripe()

        entries: List[LedgerEntry] = []
        starting_after: Optional[str] = None
        pages = 0

        logger.info(f"Fetching balance transactions for payout {payout_id}")

        while True:
            if self.rate_limiter is not None:
                await self.rate_limiter.acquire()

            try:
                page = await asyncio.to_thread(self._list_page, payout_id, account_id, starting_after)
            except stripe.AuthenticationError as e:
                logger.error("Stripe authentication failed")
                raise FetchError("Invalid Stripe API key", payout_id=payout_id) from e
            except stripe.APIConnectionError as e:
                logger.error("Failed to connect to Stripe API")
                raise FetchError("Failed to connect to Stripe API", payout_id=payout_id) from e
            except stripe.StripeError as e:
                logger.error(f"Stripe API error for payout {payout_id}: {type(e).__name__}")
                raise FetchError(f"Stripe API error: {e}", payout_id=payout_id) from e

            pages += 1
            batch = list(page.data)
            entries.extend(self._convert_to_ledger_entry(bt) for bt in batch)

            if not page.has_more:
                break
            if not batch:
                logger.warning(
                    f"Stripe reported more balance transactions for payout {payout_id} "
                    f"but returned an empty page; stopping"
                )
                break
            starting_after = batch[-1].id

        logger.info(f"Fetched {len(entries)} balance transactions for payout {payout_id} in {pages} page(s)")
        return entries


def get_ledger_pager(
    provider: str = "stripe",
    api_key: Optional[str] = None,
    rate_limiter: Optional[TokenBucket] = None,
    page_size: int = MAX_PAGE_SIZE,
) -> LedgerPagerBase:
    """Factory function to get the appropriate ledger pager.

    Args:
        provider: Payment platform name.
        api_key: Optional API key for the provider.
        rate_limiter: Optional token bucket shared across the run.
        page_size: Entries requested per page.

    Returns:
        LedgerPagerBase implementation for the provider.

    Raises:
        ValueError: If the provider is not supported.
    """
    pagers = {
        "stripe": StripeLedgerPager,
    }

    pager_class = pagers.get(provider.lower())
    if not pager_class:
        raise ValueError(f"Unsupported ledger provider: {provider}")

    return pager_class(api_key=api_key, page_size=page_size, rate_limiter=rate_limiter)
