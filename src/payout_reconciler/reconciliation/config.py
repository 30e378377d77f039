"""Runtime settings for payout reconciliation."""

import os
from typing import Optional

from pydantic import BaseModel, Field

from ..database import DEFAULT_RUN_LOCK_TTL_SECONDS
from .ledger_pager import MAX_PAGE_SIZE


def _optional_float(name: str) -> Optional[float]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    return float(value)


class ReconciliationSettings(BaseModel):
    """Pacing, deadline and locking parameters of a reconciliation run."""
    provider: str = Field(default="stripe", description="Ledger provider name")
    rate_per_second: float = Field(default=1.0, gt=0, description="Ledger requests per second")
    burst: int = Field(default=1, ge=1, description="Requests allowed back to back")
    page_size: int = Field(default=MAX_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    deadline_seconds: Optional[float] = Field(None, gt=0, description="Overall run deadline")
    lock_ttl_seconds: int = Field(default=DEFAULT_RUN_LOCK_TTL_SECONDS, ge=1)

    @classmethod
    def from_env(cls) -> "ReconciliationSettings":
        """Build settings from RECONCILIATION_* environment variables."""
        return cls(
            provider=os.getenv("RECONCILIATION_PROVIDER", "stripe"),
            rate_per_second=float(os.getenv("RECONCILIATION_RATE_PER_SECOND", "1.0")),
            burst=int(os.getenv("RECONCILIATION_BURST", "1")),
            page_size=int(os.getenv("LEDGER_PAGE_SIZE", str(MAX_PAGE_SIZE))),
            deadline_seconds=_optional_float("RECONCILIATION_DEADLINE_SECONDS"),
            lock_ttl_seconds=int(
                os.getenv("RECONCILIATION_LOCK_TTL_SECONDS", str(DEFAULT_RUN_LOCK_TTL_SECONDS))
            ),
        )
