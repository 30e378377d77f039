"""API endpoints for payout reconciliation."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db, ChurchRepository, PayoutSummaryRepository
from ..auth import verify_api_key, verify_cron_secret, limiter
from .exceptions import (
    AccountNotConnectedError,
    DiscoveryError,
    PayoutNotFoundError,
    RunInProgressError,
)
from .runner import build_batch_runner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reconciliation", tags=["reconciliation"])


class ReconciliationStatistics(BaseModel):
    total: int = 0
    reconciled: int = 0
    pending: int = 0
    failed: int = 0


class RecentPayout(BaseModel):
    stripe_payout_id: str
    payout_date: datetime
    arrival_date: Optional[datetime] = None
    amount: int
    status: str
    reconciled_at: Optional[datetime] = None
    transaction_count: int
    gross_volume: int
    total_fees: int
    net_amount: int


class ReconciliationStatusResponse(BaseModel):
    """Reconciliation state of one church."""
    success: bool = True
    church_id: str
    church_name: str
    statistics: ReconciliationStatistics
    recent_payouts: List[RecentPayout]


@router.api_route("/cron", methods=["GET", "POST"], dependencies=[Depends(verify_cron_secret)])
async def run_scheduled_reconciliation(
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """
    Scheduled trigger for the batch reconciliation run.

    Requires the shared cron secret as a bearer token. Returns the number
    of churches scanned and one result entry per processed payout.
    """
    runner = build_batch_runner(db)

    try:
        result = await runner.run()
    except RunInProgressError as e:
        raise HTTPException(status_code=409, detail=e.message)
    except DiscoveryError as e:
        logger.error(f"Scheduled reconciliation aborted: {e.message}")
        raise HTTPException(status_code=500, detail=e.message)

    payload = result.to_full_dict()
    payload["success"] = result.failed == 0 and not result.tenant_errors
    return payload


@router.post("/payouts/{payout_id}")
@limiter.limit("20/minute")
async def reconcile_single_payout(
    request: Request,
    payout_id: str,
    db: AsyncSession = Depends(get_db),
    api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    """
    Reconcile one payout on demand, overwriting any previous summary.
    """
    runner = build_batch_runner(db)

    try:
        outcome = await runner.reconcile_payout(payout_id)
    except PayoutNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except AccountNotConnectedError as e:
        raise HTTPException(status_code=400, detail=e.message)

    if not outcome.success:
        raise HTTPException(status_code=500, detail=outcome.error or "Reconciliation failed")

    return {
        "success": True,
        "message": f"Payout {payout_id} reconciled successfully",
        "summary": outcome.summary.model_dump(),
        "amount_discrepancy": outcome.amount_discrepancy,
    }


@router.post("/churches/{church_id}")
@limiter.limit("20/minute")
async def reconcile_church(
    request: Request,
    church_id: str,
    db: AsyncSession = Depends(get_db),
    api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    """
    Reconcile all pending payouts of one church.
    """
    church = await ChurchRepository(db).get_by_id(church_id)
    if church is None:
        raise HTTPException(status_code=404, detail="Church not found")
    church_name = church.name

    runner = build_batch_runner(db)
    result = await runner.run_for_church(church_id)

    payload = result.to_full_dict()
    payload["success"] = result.failed == 0
    payload["message"] = f"Reconciliation completed for church {church_name}"
    return payload


@router.get("/churches/{church_id}/status", response_model=ReconciliationStatusResponse)
async def get_reconciliation_status(
    church_id: str,
    db: AsyncSession = Depends(get_db),
    api_key: str = Depends(verify_api_key),
):
    """
    Payout counts by reconciliation state and the ten most recent payouts.
    """
    church = await ChurchRepository(db).get_by_id(church_id)
    if church is None:
        raise HTTPException(status_code=404, detail="Church not found")

    payout_repo = PayoutSummaryRepository(db)
    statistics = await payout_repo.get_statistics(church_id)
    recent = await payout_repo.list_recent(church_id, limit=10)

    return ReconciliationStatusResponse(
        church_id=church.id,
        church_name=church.name,
        statistics=ReconciliationStatistics(**statistics),
        recent_payouts=[
            RecentPayout(
                stripe_payout_id=p.stripe_payout_id,
                payout_date=p.payout_date,
                arrival_date=p.arrival_date,
                amount=p.amount,
                status=p.status,
                reconciled_at=p.reconciled_at,
                transaction_count=p.transaction_count,
                gross_volume=p.gross_volume,
                total_fees=p.total_fees,
                net_amount=p.net_amount,
            )
            for p in recent
        ],
    )


@router.get("/health")
async def reconciliation_health():
    """Health check endpoint for reconciliation service."""
    return {"status": "healthy", "service": "reconciliation"}
