#!/usr/bin/env python3
"""Command-line interface for running direct debit settlements."""

import argparse
import asyncio
import sys
from datetime import date

from sqlalchemy.orm import Session, sessionmaker

from debit_gateway.config import settings
from debit_gateway.domain.exceptions import InvalidDateError, SettlementLoadError
from debit_gateway.domain.money import format_currency
from debit_gateway.domain.schedule import parse_obligation_date
from debit_gateway.infrastructure.clients.notifications import NotificationClient
from debit_gateway.infrastructure.database.models import Base
from debit_gateway.infrastructure.database.repositories import (
    AccountRepository,
    LedgerRepository,
    ObligationRepository,
)
from debit_gateway.infrastructure.database.session import build_engine
from debit_gateway.infrastructure.observability.logging import setup_logging
from debit_gateway.services.direct_debits import DirectDebitService


def build_service(db: Session, notify: bool = True) -> DirectDebitService:
    """Settlement service over the SQL repositories"""
    return DirectDebitService(
        obligations=ObligationRepository(db),
        accounts=AccountRepository(db),
        ledger=LedgerRepository(db),
        notifier=NotificationClient() if notify else None,
    )


async def run_process(service: DirectDebitService, user_id: str, today: date | None, dry_run: bool) -> int:
    """Run (or preview) a settlement and print the outcome."""
    if dry_run:
        simulation = await service.simulate_today(user_id, today)
        if not simulation.success:
            print(f"Error: {simulation.error}", file=sys.stderr)
            return 1
        if simulation.message:
            print(simulation.message)
            return 0

        print(f"{len(simulation.items)} direct debit(s) due today:")
        for item in simulation.items:
            status = "ready" if item.will_succeed else "will fail"
            print(
                f"  {item.obligation.name}: {format_currency(item.amount)} from {item.source_account_name}"
                f" [{status}, available {item.available_balance}]"
            )
        return 0

    result = await service.process_due(user_id, today)
    if not result.success:
        print(f"Error: {result.error}", file=sys.stderr)
        return 1
    if result.message:
        print(result.message)
        return 0

    print(f"{result.total_processed} processed, {result.total_failed} failed")
    for payment in result.processed:
        print(f"  ✓ {payment.obligation.name}: {format_currency(payment.amount)} ({payment.transaction_id})")
    for failure in result.failed:
        print(f"  ✗ {failure.obligation.name}: {failure.error_kind} - {failure.message}")
    return 0


async def run_upcoming(service: DirectDebitService, user_id: str, days: int) -> int:
    """Print direct debits due in the next N days."""
    try:
        upcoming = await service.get_upcoming(user_id, days)
    except SettlementLoadError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not upcoming:
        print(f"No direct debits due in the next {days} days")
        return 0

    for item in upcoming:
        when = "today" if item.days_until_payment == 0 else f"in {item.days_until_payment} day(s)"
        print(f"  {item.obligation.next_date.isoformat()}  {item.obligation.name}: {item.obligation.amount} ({when})")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Settle due direct debits against card balances",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  debit-gateway init-db
  debit-gateway process --user-id u123
  debit-gateway process --user-id u123 --dry-run
  debit-gateway process --user-id u123 --date 05/03/2024
  debit-gateway upcoming --user-id u123 --days 14
        """,
    )
    parser.add_argument(
        "--database-url",
        default=settings.database_url,
        help="SQLAlchemy database URL (default: DATABASE_URL setting)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Verbose (DEBUG) logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create database tables")

    process = subparsers.add_parser("process", help="Process direct debits due today")
    process.add_argument("--user-id", required=True, help="User identifier")
    process.add_argument(
        "--date",
        help="Settlement day, YYYY-MM-DD or DD/MM/YYYY (default: today)",
    )
    process.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be charged without charging",
    )
    process.add_argument(
        "--no-notify",
        action="store_true",
        help="Don't send notifications",
    )

    upcoming = subparsers.add_parser("upcoming", help="List upcoming direct debits")
    upcoming.add_argument("--user-id", required=True, help="User identifier")
    upcoming.add_argument(
        "--days",
        type=int,
        default=settings.upcoming_window_days,
        help=f"Lookahead window in days (default: {settings.upcoming_window_days})",
    )

    args = parser.parse_args(argv)
    setup_logging("DEBUG" if args.verbose else settings.log_level)

    engine = build_engine(args.database_url)

    if args.command == "init-db":
        Base.metadata.create_all(bind=engine)
        print("Database tables created")
        return 0

    today = None
    if args.command == "process" and args.date:
        try:
            today = parse_obligation_date(args.date)
        except InvalidDateError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    db = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        if args.command == "process":
            service = build_service(db, notify=not args.no_notify)
            return asyncio.run(run_process(service, args.user_id, today, args.dry_run))
        return asyncio.run(run_upcoming(build_service(db, notify=False), args.user_id, args.days))
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
