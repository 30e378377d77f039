"""Models for payout reconciliation."""

import enum
from datetime import datetime
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, ConfigDict, Field, field_validator


class EntryType(str, enum.Enum):
    """Ledger entry types the classifier knows how to treat."""
    CHARGE = "charge"
    PAYMENT = "payment"
    REFUND = "refund"
    ADJUSTMENT = "adjustment"
    OTHER = "other"


class ContributionCategory(str, enum.Enum):
    """Where a ledger entry lands in the payout summary."""
    GROSS = "gross"
    REFUND = "refund"
    DISPUTE = "dispute"
    UNCLASSIFIED = "unclassified"


class RunStatus(str, enum.Enum):
    """Status of a batch reconciliation run."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


DISPUTE_REPORTING_CATEGORY = "dispute"


class LedgerEntry(BaseModel):
    """One balance transaction attributed to a payout."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Balance transaction ID")
    type: EntryType = Field(..., description="Entry type, unknown types collapse to 'other'")
    raw_type: Optional[str] = Field(None, description="Type string as returned by the ledger API")
    amount: int = Field(..., description="Signed amount in minor units")
    fee: int = Field(default=0, description="Signed fee in minor units")
    reporting_category: Optional[str] = Field(None, description="Ledger reporting category")

    @field_validator("type", mode="before")
    @classmethod
    def _collapse_unknown_type(cls, value: Any) -> Any:
        if isinstance(value, EntryType):
            return value
        try:
            return EntryType(str(value).lower())
        except ValueError:
            return EntryType.OTHER

    @classmethod
    def from_ledger(
        cls,
        id: str,
        type: str,
        amount: int,
        fee: int = 0,
        reporting_category: Optional[str] = None,
    ) -> "LedgerEntry":
        """Build an entry keeping the upstream type string next to the parsed one."""
        return cls(
            id=id,
            type=type,
            raw_type=type,
            amount=amount,
            fee=fee or 0,
            reporting_category=reporting_category,
        )


class Contribution(BaseModel):
    """What a single ledger entry adds to each running total."""
    model_config = ConfigDict(frozen=True)

    entry_id: str
    category: ContributionCategory
    gross: int = 0
    fees: int = 0
    refunds: int = 0
    disputes: int = 0


class ReconciliationResult(BaseModel):
    """Aggregated breakdown of one payout, all figures in minor units."""
    model_config = ConfigDict(frozen=True)

    transaction_count: int = Field(default=0, ge=0)
    gross_volume: int = 0
    total_fees: int = 0
    total_refunds: int = 0
    total_disputes: int = 0
    net_amount: int = 0
    unclassified_count: int = Field(default=0, ge=0, description="Entries counted but not aggregated")

    def to_totals(self) -> Dict[str, int]:
        """Column values written to the payout summary row."""
        return {
            "transaction_count": self.transaction_count,
            "gross_volume": self.gross_volume,
            "total_fees": self.total_fees,
            "total_refunds": self.total_refunds,
            "total_disputes": self.total_disputes,
            "net_amount": self.net_amount,
        }


class PendingPayout(BaseModel):
    """A paid, unreconciled payout and the account its ledger lives in."""
    payout_id: str = Field(..., description="External payout ID")
    church_id: str = Field(..., description="Owning church")
    account_id: str = Field(..., description="Connected account the ledger query is scoped to")
    expected_amount: Optional[int] = Field(None, description="Payout amount reported by the platform")


class PayoutOutcome(BaseModel):
    """Per-payout entry of a run result."""
    payout_id: str
    church_id: Optional[str] = None
    success: bool
    summary: Optional[ReconciliationResult] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    amount_discrepancy: Optional[int] = Field(
        None, description="net_amount minus the reported payout amount, when they differ"
    )
    already_reconciled: bool = Field(
        default=False, description="Summary was already stored; nothing was written"
    )
    processed_at: datetime = Field(default_factory=datetime.utcnow)


class TenantError(BaseModel):
    """A church that could not be scanned."""
    church_id: str
    error: str


class BatchRunResult(BaseModel):
    """Complete result of one batch reconciliation run."""
    run_id: str = Field(..., description="Run ID")
    status: RunStatus = Field(default=RunStatus.PENDING)
    started_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    tenants_scanned: int = 0
    outcomes: List[PayoutOutcome] = Field(default_factory=list)
    tenant_errors: List[TenantError] = Field(default_factory=list)
    deferred_payouts: List[str] = Field(default_factory=list)

    error_message: Optional[str] = Field(None, description="Error message if the run failed")

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.success)

    def to_summary_dict(self) -> Dict[str, Any]:
        """Return a summary of the run without per-payout records."""
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "tenants_scanned": self.tenants_scanned,
            "statistics": {
                "payouts_processed": len(self.outcomes),
                "succeeded": self.succeeded,
                "failed": self.failed,
                "deferred": len(self.deferred_payouts),
                "tenant_errors": len(self.tenant_errors),
            },
            "error_message": self.error_message,
        }

    def to_full_dict(self) -> Dict[str, Any]:
        """Return the complete run result including every payout outcome."""
        result = self.to_summary_dict()
        result["results"] = [
            o.model_dump(mode="json", exclude_none=True) for o in self.outcomes
        ]
        result["tenant_errors"] = [e.model_dump() for e in self.tenant_errors]
        result["deferred_payouts"] = list(self.deferred_payouts)
        return result
