"""SQLAlchemy models for payout reconciliation persistence."""

import uuid
from datetime import datetime
from typing import Optional, Dict, Any, List

from sqlalchemy import (
    String,
    Integer,
    DateTime,
    ForeignKey,
    Text,
    Index,
)
from sqlalchemy.orm import DeclarativeBase, relationship, Mapped, mapped_column
import enum


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class PayoutStatus(str, enum.Enum):
    """Payout statuses as reported by the payment platform."""
    PENDING = "pending"
    IN_TRANSIT = "in_transit"
    PAID = "paid"
    FAILED = "failed"
    CANCELED = "canceled"


class Church(Base):
    """Tenant organization. Owned by account management; read-only here."""
    __tablename__ = "churches"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    stripe_connect_account: Mapped[Optional["StripeConnectAccount"]] = relationship(
        "StripeConnectAccount",
        back_populates="church",
        uselist=False,
    )
    payout_summaries: Mapped[List["PayoutSummary"]] = relationship(
        "PayoutSummary",
        back_populates="church",
        cascade="all, delete-orphan",
    )


class StripeConnectAccount(Base):
    """Connected payment sub-account of a church."""
    __tablename__ = "stripe_connect_accounts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    church_id: Mapped[str] = mapped_column(String(36), ForeignKey("churches.id"), nullable=False, unique=True)
    stripe_account_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    church: Mapped["Church"] = relationship("Church", back_populates="stripe_connect_account")


class PayoutSummary(Base):
    """One row per external payout.

    Rows are created by payout ingestion with ``reconciled_at`` unset;
    reconciliation fills in the aggregate columns and stamps
    ``reconciled_at`` exactly once.
    """
    __tablename__ = "payout_summaries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    stripe_payout_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    church_id: Mapped[str] = mapped_column(String(36), ForeignKey("churches.id"), nullable=False)

    payout_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    arrival_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="usd")
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Aggregates, all in minor currency units
    transaction_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    gross_volume: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_fees: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_refunds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_disputes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    net_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # NULL until reconciled
    reconciled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    church: Mapped["Church"] = relationship("Church", back_populates="payout_summaries")

    __table_args__ = (
        Index("ix_payout_summaries_church_id", "church_id"),
        Index("ix_payout_summaries_status", "status"),
        Index("ix_payout_summaries_payout_date", "payout_date"),
        Index("ix_payout_summaries_church_id_payout_date", "church_id", "payout_date"),
    )

    @property
    def is_reconciled(self) -> bool:
        return self.reconciled_at is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert payout summary to dictionary representation."""
        return {
            "id": self.id,
            "stripe_payout_id": self.stripe_payout_id,
            "church_id": self.church_id,
            "payout_date": self.payout_date.isoformat() if self.payout_date else None,
            "arrival_date": self.arrival_date.isoformat() if self.arrival_date else None,
            "amount": self.amount,
            "currency": self.currency,
            "status": self.status,
            "transaction_count": self.transaction_count,
            "gross_volume": self.gross_volume,
            "total_fees": self.total_fees,
            "total_refunds": self.total_refunds,
            "total_disputes": self.total_disputes,
            "net_amount": self.net_amount,
            "reconciled_at": self.reconciled_at.isoformat() if self.reconciled_at else None,
        }


class ReconciliationRunLock(Base):
    """Lease row that keeps two batch runs from overlapping."""
    __tablename__ = "reconciliation_run_locks"

    name: Mapped[str] = mapped_column(String(100), primary_key=True)
    owner: Mapped[str] = mapped_column(String(36), nullable=False)
    acquired_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
