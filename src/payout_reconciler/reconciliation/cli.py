#!/usr/bin/env python3
"""Command-line interface for payout reconciliation.

Runs the same batch job the scheduled trigger runs, or a narrower
per-church or per-payout reconciliation, against the configured database.

Usage:
    python -m payout_reconciler.reconciliation.cli run
    python -m payout_reconciler.reconciliation.cli run --church-id 0b6c... --format text
    python -m payout_reconciler.reconciliation.cli payout po_1Nx... --output result.json
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from ..database import (
    Base,
    create_async_engine,
    get_async_session_factory,
    get_database_url,
)
from .config import ReconciliationSettings
from .exceptions import (
    AccountNotConnectedError,
    DiscoveryError,
    PayoutNotFoundError,
    RunInProgressError,
)
from .models import BatchRunResult
from .report import ReportGenerator
from .runner import build_batch_runner

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_PAYOUT_FAILURES = 1
EXIT_RUN_FAILED = 2
EXIT_RUN_IN_PROGRESS = 3


def render(result: BatchRunResult, output_format: str = "json", include_details: bool = True) -> str:
    """Render a run result in the requested format.

    Args:
        result: Run result to render.
        output_format: 'json', 'csv', 'text' or 'detailed_text'.
        include_details: Include per-payout records (JSON only).

    Returns:
        Rendered report.

    Raises:
        ValueError: If the format is unknown.
    """
    generator = ReportGenerator(result)

    if output_format == "json":
        return generator.to_json(include_details=include_details)
    elif output_format == "csv":
        return generator.to_csv()
    elif output_format == "text":
        return generator.to_summary_text()
    elif output_format == "detailed_text":
        return generator.to_detailed_text()
    else:
        raise ValueError(f"Unsupported report format: {output_format}")


def _write(output: str, output_file: Optional[str]) -> None:
    if output_file:
        with open(output_file, 'w') as f:
            f.write(output)
        logger.info(f"Report written to {output_file}")
    else:
        print(output)


async def run_batch_async(
    settings: ReconciliationSettings,
    church_id: Optional[str] = None,
    output_file: Optional[str] = None,
    output_format: str = "json",
    include_details: bool = True,
) -> int:
    """Run the batch (or a single church) asynchronously.

    Returns:
        Exit code (0 all reconciled, 1 some payouts failed, 2 run failed,
        3 another run in progress).
    """
    engine = create_async_engine(database_url=get_database_url())

    # Create tables if they don't exist
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = get_async_session_factory(engine)

    try:
        async with session_factory() as session:
            runner = build_batch_runner(session, settings=settings)

            try:
                if church_id:
                    result = await runner.run_for_church(church_id)
                else:
                    result = await runner.run()
            except RunInProgressError as e:
                logger.warning(e.message)
                return EXIT_RUN_IN_PROGRESS
            except DiscoveryError as e:
                logger.error(f"Reconciliation run failed: {e.message}")
                return EXIT_RUN_FAILED

            _write(render(result, output_format, include_details), output_file)

            if result.failed or result.tenant_errors:
                logger.warning(
                    f"Reconciliation completed with issues: "
                    f"{result.failed} failed payouts, "
                    f"{len(result.tenant_errors)} church errors"
                )
                return EXIT_PAYOUT_FAILURES
            return EXIT_OK
    finally:
        await engine.dispose()


async def reconcile_payout_async(
    settings: ReconciliationSettings,
    payout_id: str,
    output_file: Optional[str] = None,
) -> int:
    """Reconcile one payout on demand.

    Returns:
        Exit code (0 reconciled, 1 reconciliation failed, 2 payout unusable).
    """
    engine = create_async_engine(database_url=get_database_url())
    session_factory = get_async_session_factory(engine)

    try:
        async with session_factory() as session:
            runner = build_batch_runner(session, settings=settings)
            try:
                outcome = await runner.reconcile_payout(payout_id)
            except (PayoutNotFoundError, AccountNotConnectedError) as e:
                logger.error(e.message)
                return EXIT_RUN_FAILED

            _write(outcome.model_dump_json(indent=2, exclude_none=True), output_file)
            return EXIT_OK if outcome.success else EXIT_PAYOUT_FAILURES
    finally:
        await engine.dispose()


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        prog="payout-reconciler",
        description="Reconcile paid payouts against their ledger entries.",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Run command
    run_parser = subparsers.add_parser(
        "run",
        help="Reconcile all pending payouts",
    )
    run_parser.add_argument(
        "--church-id", "-c",
        help="Only reconcile this church's payouts",
    )
    run_parser.add_argument(
        "--deadline",
        type=float,
        help="Stop starting new payouts after this many seconds",
    )
    run_parser.add_argument(
        "--rate",
        type=float,
        help="Ledger requests per second (default: RECONCILIATION_RATE_PER_SECOND or 1.0)",
    )
    run_parser.add_argument(
        "--output", "-o",
        help="Output file path (default: stdout)",
    )
    run_parser.add_argument(
        "--format", "-f",
        choices=["json", "csv", "text", "detailed_text"],
        default="json",
        help="Output format (default: json)",
    )
    run_parser.add_argument(
        "--summary-only",
        action="store_true",
        help="Only include summary statistics, not per-payout results",
    )

    # Payout command
    payout_parser = subparsers.add_parser(
        "payout",
        help="Reconcile one payout, even if already reconciled",
    )
    payout_parser.add_argument("payout_id", help="External payout ID")
    payout_parser.add_argument(
        "--output", "-o",
        help="Output file path (default: stdout)",
    )

    return parser


def main(args: Optional[list] = None) -> int:
    """Main entry point for the CLI.

    Args:
        args: Optional list of command-line arguments (for testing).

    Returns:
        Exit code.
    """
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    settings = ReconciliationSettings.from_env()

    if parsed_args.command == "run":
        overrides = {}
        if parsed_args.deadline is not None:
            overrides["deadline_seconds"] = parsed_args.deadline
        if parsed_args.rate is not None:
            overrides["rate_per_second"] = parsed_args.rate
        if overrides:
            settings = ReconciliationSettings(**{**settings.model_dump(), **overrides})

        return asyncio.run(run_batch_async(
            settings=settings,
            church_id=parsed_args.church_id,
            output_file=parsed_args.output,
            output_format=parsed_args.format,
            include_details=not parsed_args.summary_only,
        ))

    if parsed_args.command == "payout":
        return asyncio.run(reconcile_payout_async(
            settings=settings,
            payout_id=parsed_args.payout_id,
            output_file=parsed_args.output,
        ))

    return 0


if __name__ == "__main__":
    sys.exit(main())
