"""Report generation for batch reconciliation runs."""

import json
import csv
import io

from .models import BatchRunResult

CSV_COLUMNS = [
    "payout_id", "church_id", "success", "transaction_count", "gross_volume",
    "total_fees", "total_refunds", "total_disputes", "net_amount",
    "amount_discrepancy", "error_code", "error",
]


class ReportGenerator:
    """Generator for run reports in various formats."""

    def __init__(self, result: BatchRunResult):
        """Initialize the report generator.

        Args:
            result: The batch run result to generate output from.
        """
        self.result = result

    def to_json(self, include_details: bool = True, indent: int = 2) -> str:
        """Generate JSON representation of the run.

        Args:
            include_details: If True, include every payout outcome. If False, only summary.
            indent: JSON indentation level.

        Returns:
            JSON string representation of the run.
        """
        if include_details:
            data = self.result.to_full_dict()
        else:
            data = self.result.to_summary_dict()
        return json.dumps(data, indent=indent)

    def to_csv(self) -> str:
        """Generate CSV with one row per processed payout.

        Returns:
            CSV string including a header row.
        """
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(CSV_COLUMNS)

        for outcome in self.result.outcomes:
            summary = outcome.summary
            writer.writerow([
                outcome.payout_id,
                outcome.church_id or "",
                "true" if outcome.success else "false",
                summary.transaction_count if summary else "",
                summary.gross_volume if summary else "",
                summary.total_fees if summary else "",
                summary.total_refunds if summary else "",
                summary.total_disputes if summary else "",
                summary.net_amount if summary else "",
                "" if outcome.amount_discrepancy is None else outcome.amount_discrepancy,
                outcome.error_code or "",
                outcome.error or "",
            ])

        return output.getvalue()

    def to_summary_text(self) -> str:
        """Generate a human-readable text summary of the run.

        Returns:
            Formatted text summary.
        """
        summary = self.result.to_summary_dict()
        stats = summary["statistics"]

        lines = [
            "=" * 60,
            "PAYOUT RECONCILIATION RUN SUMMARY",
            "=" * 60,
            f"Run ID: {summary['run_id']}",
            f"Status: {summary['status']}",
            "",
            "Statistics:",
            f"  Churches Scanned: {summary['tenants_scanned']}",
            f"  Payouts Processed: {stats['payouts_processed']}",
            f"  Reconciled: {stats['succeeded']}",
            f"  Failed: {stats['failed']}",
            f"  Deferred: {stats['deferred']}",
            f"  Church Errors: {stats['tenant_errors']}",
            "",
            f"Started At: {summary['started_at']}",
            f"Completed At: {summary['completed_at'] or 'N/A'}",
        ]

        if summary.get("error_message"):
            lines.extend([
                "",
                "Error:",
                f"  {summary['error_message']}",
            ])

        lines.append("=" * 60)

        return "\n".join(lines)

    def to_detailed_text(self) -> str:
        """Generate a detailed text report listing every payout.

        Returns:
            Formatted text with summary, failures and reconciled payouts.
        """
        lines = [self.to_summary_text(), ""]

        failures = [o for o in self.result.outcomes if not o.success]
        if failures:
            lines.extend([
                "FAILED PAYOUTS",
                "-" * 40,
            ])
            for o in failures:
                lines.append(f"  {o.payout_id} [{o.error_code}]: {o.error}")
            lines.append("")

        reconciled = [o for o in self.result.outcomes if o.success]
        if reconciled:
            lines.extend([
                "RECONCILED PAYOUTS",
                "-" * 40,
            ])
            for o in reconciled:
                s = o.summary
                line = (
                    f"  {o.payout_id}: {s.transaction_count} txns, "
                    f"gross {s.gross_volume}, fees {s.total_fees}, "
                    f"refunds {s.total_refunds}, disputes {s.total_disputes}, "
                    f"net {s.net_amount}"
                )
                if o.amount_discrepancy is not None:
                    line += f" (differs from payout by {o.amount_discrepancy})"
                if o.already_reconciled:
                    line += " (already reconciled, not written)"
                lines.append(line)
            lines.append("")

        if self.result.deferred_payouts:
            lines.extend([
                "DEFERRED PAYOUTS",
                "-" * 40,
                *[f"  {p}" for p in self.result.deferred_payouts],
                "",
            ])

        return "\n".join(lines)
