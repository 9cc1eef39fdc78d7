#!/usr/bin/env python3
"""Run the scheduled earnings and payout jobs once.

Intended for a daily cron. Without --apply nothing is written.

Usage:
  ./venv/bin/python scripts/run_scheduled_jobs.py --job all
  ./venv/bin/python scripts/run_scheduled_jobs.py --job payouts --apply
"""

import argparse
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from interactive_video.logging_config import configure_logging  # noqa: E402


def run_earnings(runtime, apply_changes):
    created = runtime.schedule_earnings_periods(dry_run=not apply_changes)
    mode = "APPLY" if apply_changes else "DRY-RUN"
    print(f"[{mode}] earnings periods created for {len(created)} creators")
    for uid in created:
        print(f"       {uid}")
    return 0


def run_payouts(runtime, apply_changes):
    triggered, failed = runtime.run_scheduled_payouts(dry_run=not apply_changes)
    mode = "APPLY" if apply_changes else "DRY-RUN"
    print(f"[{mode}] payouts due={len(triggered)} failed={len(failed)}")
    for uid in failed:
        print(f"       failed: {uid}")
    return 1 if failed else 0


def main():
    parser = argparse.ArgumentParser(description="Run scheduled earnings and payout jobs.")
    parser.add_argument("--job", default="all", choices=["earnings", "payouts", "all"], help="Which job to run")
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Apply changes. Without this flag, the script runs in dry-run mode.",
    )
    args = parser.parse_args()

    configure_logging(os.getenv("LOG_LEVEL", "INFO"))
    from interactive_video import runtime

    if runtime.db is None:
        print(f"Firestore is not available: {runtime.firebase_init_error}")
        return 2

    exit_code = 0
    if args.job in ("earnings", "all"):
        exit_code = max(exit_code, run_earnings(runtime, args.apply))
    if args.job in ("payouts", "all"):
        exit_code = max(exit_code, run_payouts(runtime, args.apply))
    if not args.apply:
        print("No changes were written. Re-run with --apply to persist.")
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
