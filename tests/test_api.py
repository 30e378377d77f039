"""Tests for API endpoints."""

import os
import pytest
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch
from fastapi.testclient import TestClient

# Set environment variables before importing app
os.environ.setdefault("STRIPE_API_KEY", "sk_test_dummy")
os.environ.setdefault("API_KEY", "test_api_key_12345")
os.environ.setdefault("CRON_SECRET", "test_cron_secret")

from payout_reconciler.api import app
from payout_reconciler.auth import limiter
from payout_reconciler.database import get_db
from payout_reconciler.reconciliation import (
    AccountNotConnectedError,
    BatchRunResult,
    DiscoveryError,
    PayoutNotFoundError,
    PayoutOutcome,
    ReconciliationResult,
    RunInProgressError,
    RunStatus,
    TenantError,
)

API = "payout_reconciler.reconciliation.api"


@pytest.fixture
def client():
    """Create test client with the database dependency stubbed out."""
    session = MagicMock()

    async def override_get_db():
        yield session

    app.dependency_overrides[get_db] = override_get_db
    limiter.reset()
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"Authorization": "Bearer test_api_key_12345"}


@pytest.fixture
def cron_headers():
    return {"Authorization": "Bearer test_cron_secret"}


@pytest.fixture
def summary():
    return ReconciliationResult(
        transaction_count=2,
        gross_volume=10000,
        total_fees=255,
        total_refunds=2000,
        total_disputes=0,
        net_amount=7745,
    )


@pytest.fixture
def run_result(summary):
    return BatchRunResult(
        run_id="run-1",
        status=RunStatus.COMPLETED,
        completed_at=datetime.utcnow(),
        tenants_scanned=2,
        outcomes=[
            PayoutOutcome(payout_id="po_1", church_id="ch_1", success=True, summary=summary),
            PayoutOutcome(
                payout_id="po_2",
                church_id="ch_1",
                success=False,
                error="Stripe API error: timeout",
                error_code="FETCH_ERROR",
            ),
        ],
    )


def _runner(**methods):
    runner = MagicMock()
    for name, value in methods.items():
        setattr(runner, name, value)
    return runner


class TestHealth:

    def test_root_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_reconciliation_health(self, client):
        response = client.get("/reconciliation/health")
        assert response.status_code == 200
        assert response.json()["service"] == "reconciliation"


class TestCronEndpoint:
    """Tests for the scheduled trigger."""

    def test_missing_secret_rejected(self, client):
        with patch(f"{API}.build_batch_runner") as mock_build:
            response = client.get("/reconciliation/cron")

        assert response.status_code == 401
        mock_build.assert_not_called()

    def test_wrong_secret_rejected(self, client):
        with patch(f"{API}.build_batch_runner") as mock_build:
            response = client.get(
                "/reconciliation/cron",
                headers={"Authorization": "Bearer wrong_secret"},
            )

        assert response.status_code == 401
        mock_build.assert_not_called()

    def test_unconfigured_secret_is_server_error(self, client):
        with patch.dict(os.environ, {"CRON_SECRET": ""}):
            response = client.get(
                "/reconciliation/cron",
                headers={"Authorization": "Bearer anything"},
            )

        assert response.status_code == 500

    def test_run_result_returned(self, client, cron_headers, run_result):
        runner = _runner(run=AsyncMock(return_value=run_result))
        with patch(f"{API}.build_batch_runner", return_value=runner):
            response = client.get("/reconciliation/cron", headers=cron_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert data["tenants_scanned"] == 2
        assert data["statistics"]["succeeded"] == 1
        assert data["statistics"]["failed"] == 1
        assert [r["payout_id"] for r in data["results"]] == ["po_1", "po_2"]
        assert data["results"][0]["summary"]["net_amount"] == 7745
        assert data["results"][1]["error"] == "Stripe API error: timeout"

    def test_post_also_accepted(self, client, cron_headers):
        result = BatchRunResult(run_id="run-2", status=RunStatus.COMPLETED)
        runner = _runner(run=AsyncMock(return_value=result))
        with patch(f"{API}.build_batch_runner", return_value=runner):
            response = client.post("/reconciliation/cron", headers=cron_headers)

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert response.json()["results"] == []

    def test_tenant_errors_mark_unsuccessful(self, client, cron_headers):
        result = BatchRunResult(
            run_id="run-3",
            status=RunStatus.COMPLETED,
            tenant_errors=[TenantError(church_id="ch_9", error="timeout")],
        )
        runner = _runner(run=AsyncMock(return_value=result))
        with patch(f"{API}.build_batch_runner", return_value=runner):
            response = client.get("/reconciliation/cron", headers=cron_headers)

        assert response.json()["success"] is False
        assert response.json()["tenant_errors"] == [{"church_id": "ch_9", "error": "timeout"}]

    def test_overlapping_run_conflict(self, client, cron_headers):
        runner = _runner(run=AsyncMock(side_effect=RunInProgressError()))
        with patch(f"{API}.build_batch_runner", return_value=runner):
            response = client.get("/reconciliation/cron", headers=cron_headers)

        assert response.status_code == 409

    def test_discovery_failure_is_server_error(self, client, cron_headers):
        runner = _runner(run=AsyncMock(side_effect=DiscoveryError("Failed to list churches")))
        with patch(f"{API}.build_batch_runner", return_value=runner):
            response = client.get("/reconciliation/cron", headers=cron_headers)

        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to list churches"


class TestReconcilePayoutEndpoint:

    def test_requires_api_key(self, client):
        response = client.post("/reconciliation/payouts/po_1")
        assert response.status_code in (401, 403)

    def test_invalid_api_key(self, client):
        response = client.post(
            "/reconciliation/payouts/po_1",
            headers={"Authorization": "Bearer invalid_key"},
        )
        assert response.status_code == 401

    def test_success(self, client, auth_headers, summary):
        outcome = PayoutOutcome(payout_id="po_1", church_id="ch_1", success=True, summary=summary)
        runner = _runner(reconcile_payout=AsyncMock(return_value=outcome))
        with patch(f"{API}.build_batch_runner", return_value=runner):
            response = client.post("/reconciliation/payouts/po_1", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["summary"]["net_amount"] == 7745
        assert data["amount_discrepancy"] is None
        runner.reconcile_payout.assert_awaited_once_with("po_1")

    def test_not_found(self, client, auth_headers):
        runner = _runner(reconcile_payout=AsyncMock(
            side_effect=PayoutNotFoundError("Payout po_x not found", payout_id="po_x")
        ))
        with patch(f"{API}.build_batch_runner", return_value=runner):
            response = client.post("/reconciliation/payouts/po_x", headers=auth_headers)

        assert response.status_code == 404

    def test_account_not_connected(self, client, auth_headers):
        runner = _runner(reconcile_payout=AsyncMock(
            side_effect=AccountNotConnectedError("Church ch_1 has no connected account")
        ))
        with patch(f"{API}.build_batch_runner", return_value=runner):
            response = client.post("/reconciliation/payouts/po_1", headers=auth_headers)

        assert response.status_code == 400

    def test_failed_reconciliation(self, client, auth_headers):
        outcome = PayoutOutcome(
            payout_id="po_1",
            success=False,
            error="No balance transactions found for payout po_1",
            error_code="NO_TRANSACTIONS_FOUND",
        )
        runner = _runner(reconcile_payout=AsyncMock(return_value=outcome))
        with patch(f"{API}.build_batch_runner", return_value=runner):
            response = client.post("/reconciliation/payouts/po_1", headers=auth_headers)

        assert response.status_code == 500
        assert "No balance transactions" in response.json()["detail"]


class TestChurchEndpoints:

    def _church(self):
        church = MagicMock()
        church.id = "ch_1"
        church.name = "Grace Chapel"
        return church

    def test_reconcile_church(self, client, auth_headers, run_result):
        church_repo = MagicMock()
        church_repo.get_by_id = AsyncMock(return_value=self._church())
        runner = _runner(run_for_church=AsyncMock(return_value=run_result))

        with patch(f"{API}.ChurchRepository", return_value=church_repo), \
                patch(f"{API}.build_batch_runner", return_value=runner):
            response = client.post("/reconciliation/churches/ch_1", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Reconciliation completed for church Grace Chapel"
        assert data["success"] is False
        runner.run_for_church.assert_awaited_once_with("ch_1")

    def test_reconcile_unknown_church(self, client, auth_headers):
        church_repo = MagicMock()
        church_repo.get_by_id = AsyncMock(return_value=None)

        with patch(f"{API}.ChurchRepository", return_value=church_repo):
            response = client.post("/reconciliation/churches/ch_x", headers=auth_headers)

        assert response.status_code == 404

    def test_status(self, client, auth_headers):
        church_repo = MagicMock()
        church_repo.get_by_id = AsyncMock(return_value=self._church())

        recent = MagicMock(
            stripe_payout_id="po_1",
            payout_date=datetime(2024, 3, 1),
            arrival_date=datetime(2024, 3, 3),
            amount=7745,
            status="paid",
            reconciled_at=datetime(2024, 3, 2),
            transaction_count=2,
            gross_volume=10000,
            total_fees=255,
            net_amount=7745,
        )
        payout_repo = MagicMock()
        payout_repo.get_statistics = AsyncMock(
            return_value={"total": 3, "reconciled": 1, "pending": 1, "failed": 1}
        )
        payout_repo.list_recent = AsyncMock(return_value=[recent])

        with patch(f"{API}.ChurchRepository", return_value=church_repo), \
                patch(f"{API}.PayoutSummaryRepository", return_value=payout_repo):
            response = client.get("/reconciliation/churches/ch_1/status", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["church_name"] == "Grace Chapel"
        assert data["statistics"] == {"total": 3, "reconciled": 1, "pending": 1, "failed": 1}
        assert data["recent_payouts"][0]["stripe_payout_id"] == "po_1"
        assert data["recent_payouts"][0]["net_amount"] == 7745
        payout_repo.list_recent.assert_awaited_once_with("ch_1", limit=10)

    def test_status_unknown_church(self, client, auth_headers):
        church_repo = MagicMock()
        church_repo.get_by_id = AsyncMock(return_value=None)

        with patch(f"{API}.ChurchRepository", return_value=church_repo):
            response = client.get("/reconciliation/churches/ch_x/status", headers=auth_headers)

        assert response.status_code == 404
