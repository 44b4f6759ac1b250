"""
Run the installment status update from the command line.

Usage:
    cd apps/api
    python -m app.modules.installment_statuses.cli
    python -m app.modules.installment_statuses.cli --as-of 2025-11-10T07:00:00+00:00 --json

Exit code is 0 when every agency succeeded, 1 otherwise.
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime

from app.core.database import close_db
from app.modules.installment_statuses.service import (
    JobLogUnavailableError,
    run_status_update_job,
)

logger = logging.getLogger(__name__)


def _aware_datetime(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid ISO 8601 datetime: {value!r}") from e
    if parsed.tzinfo is None:
        raise argparse.ArgumentTypeError("datetime must include a timezone offset")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="update-installment-statuses",
        description="Mark pending installments past their agency cutoff as overdue.",
    )
    parser.add_argument(
        "--as-of",
        type=_aware_datetime,
        default=None,
        help="Evaluate at this instant instead of now (ISO 8601 with offset)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full per-agency result as JSON",
    )
    return parser


async def _run(as_of: datetime | None, as_json: bool) -> int:
    try:
        result = await run_status_update_job(as_of=as_of)
    except JobLogUnavailableError as e:
        print(f"Failed to start job logging: {e}", file=sys.stderr)
        return 1
    finally:
        await close_db()

    if as_json:
        print(
            json.dumps(
                {
                    "job_log_id": result.job_log_id,
                    "success": result.success,
                    "recordsUpdated": result.records_updated,
                    "notificationsCreated": result.notifications_created,
                    "agencies": result.agencies,
                    "notificationErrors": result.notification_errors,
                    "error": result.error,
                },
                indent=2,
            )
        )
    else:
        print(f"Status: {'success' if result.success else 'failed'}")
        print(f"  Installments marked overdue: {result.records_updated}")
        print(f"  Agencies processed: {len(result.agencies)}")
        print(f"  Agencies failed: {len(result.failed_agencies)}")
        print(f"  Notifications created: {result.notifications_created}")
        for agency in result.failed_agencies:
            print(f"  [FAIL] {agency['agency_id']} ({agency['error_type']}): {agency['error']}")

    return 0 if result.success else 1


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return asyncio.run(_run(args.as_of, args.json))


if __name__ == "__main__":
    sys.exit(main())
