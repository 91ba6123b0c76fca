#!/usr/bin/env python3
"""
Run dairy automation jobs from the command line.

Every job subcommand goes through JobRunner, so it is recorded in
automation_job_runs and obeys idempotency keys.  Results print as JSON.

Usage:
    python3 scripts/run_automation.py [--config PATH] [--db-url URL] <command> [options]

Examples:
    # Create tables in the configured database
    python3 scripts/run_automation.py init-db

    # Tomorrow's deliveries, then a week ahead
    python3 scripts/run_automation.py schedule-deliveries --date 2026-03-02
    python3 scripts/run_automation.py schedule-deliveries --days 7

    # Last month's invoices (or an explicit month), exactly once
    python3 scripts/run_automation.py generate-invoices --year 2026 --month 2 --key invoices-202602

    # Run the configured recurring jobs until interrupted
    python3 scripts/run_automation.py scheduler --tick-seconds 60
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from datetime import date
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

TASK_COMMANDS = {
    "schedule-deliveries": "deliveries.schedule",
    "auto-deliver": "deliveries.auto_deliver",
    "generate-invoices": "billing.monthly_invoices",
    "sync-ledger": "ledger.sync_invoices",
    "cattle-status": "cattle.status_sweep",
    "integrity-check": "integrity.check",
}


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Dairy automation: deliveries, invoices, ledger, cattle.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", type=Path, default=None, help="YAML config (default: DAIRY_CONFIG or packaged defaults).")
    parser.add_argument("--db-url", default=None, help="Database URL (overrides config).")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create all tables.")
    sub.add_parser("migrate-schedules", help="Move legacy 'Schedule:{json}' notes into delivery_schedule.")

    def job_parser(name: str, help_text: str) -> argparse.ArgumentParser:
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--key", default=None, help="Idempotency key (default: unique per invocation).")
        return p

    p = job_parser("schedule-deliveries", "Create deliveries for due customers.")
    p.add_argument("--date", type=date.fromisoformat, default=None, help="First date (YYYY-MM-DD). Default: today.")
    p.add_argument("--days", type=int, default=1, help="Number of consecutive days (default: 1).")
    p.add_argument("--auto-mark-delivered", action="store_true", help="Create deliveries as delivered.")

    p = job_parser("auto-deliver", "Schedule and mark the day's deliveries delivered.")
    p.add_argument("--date", type=date.fromisoformat, default=None, help="Delivery date. Default: today.")

    p = job_parser("generate-invoices", "Generate monthly invoices.")
    p.add_argument("--year", type=int, default=None)
    p.add_argument("--month", type=int, default=None)

    p = job_parser("sync-ledger", "Post missing invoice debits to the ledger.")
    p.add_argument("--customer-id", default=None, help="One customer (default: all).")

    job_parser("cattle-status", "Update lactation statuses.")
    job_parser("integrity-check", "Run financial integrity checks.")

    p = sub.add_parser("scheduler", help="Run configured jobs until interrupted.")
    p.add_argument("--tick-seconds", type=int, default=60, help="Polling interval (default: 60).")

    return parser.parse_args(argv)


def _task_parameters(args: argparse.Namespace) -> dict:
    params: dict = {}
    if args.command == "schedule-deliveries":
        params["days"] = args.days
        if args.auto_mark_delivered:
            params["auto_mark_delivered"] = True
    if getattr(args, "date", None) is not None:
        params["date"] = args.date.isoformat()
    if args.command == "generate-invoices":
        if args.year is not None:
            params["year"] = args.year
        if args.month is not None:
            params["month"] = args.month
    if getattr(args, "customer_id", None):
        params["customer_id"] = args.customer_id
    return params


def _print_json(payload: dict) -> None:
    print(json.dumps(payload, indent=2, default=str))


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    # Lazy imports so we fail fast on args first
    from dairy_batch.orchestrator import AutomationOrchestrator
    from dairy_config import get_active_config
    from dairy_kernel.db.engine import create_tables, get_session, get_session_factory, init_engine_from_url
    from dairy_kernel.domain.clock import SystemClock
    from dairy_kernel.exceptions import DairyKernelError
    from dairy_kernel.logging_config import configure_logging
    from dairy_services.delivery_scheduler import DeliveryScheduler

    configure_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        config = get_active_config(args.config)
    except (OSError, ValueError, KeyError) as e:
        print(f"ERROR: Failed to load config: {e}", file=sys.stderr)
        return 1

    try:
        init_engine_from_url(args.db_url or config.database.url, echo=config.database.echo)
    except Exception as e:
        print(f"ERROR: Database init failed: {e}", file=sys.stderr)
        return 1

    if args.command == "init-db":
        create_tables()
        print("Tables created.")
        return 0

    clock = SystemClock()
    session = get_session()
    try:
        if args.command == "migrate-schedules":
            migrated = DeliveryScheduler(session, clock, config).migrate_legacy_schedules()
            _print_json({"migrated": migrated})
            return 0

        orchestrator = AutomationOrchestrator.from_session(session, config=config, clock=clock)

        if args.command == "scheduler":
            scheduler = orchestrator.create_scheduler(get_session_factory(), args.tick_seconds)
            scheduler.start()
            print(f"Scheduler running {len(config.jobs)} job(s); Ctrl-C to stop.")
            try:
                scheduler.wait()
            except KeyboardInterrupt:
                pass
            finally:
                scheduler.stop()
            return 0

        try:
            result = orchestrator.run_task(
                TASK_COMMANDS[args.command], _task_parameters(args), args.key,
            )
        except DairyKernelError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1

        _print_json(asdict(result))
        return 0 if result.status.value == "completed" else 2
    finally:
        session.close()


if __name__ == "__main__":
    sys.exit(main())
