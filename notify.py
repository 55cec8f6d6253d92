#!/usr/bin/env python3
"""
Vehicle Notifier

Reads the vehicle workbook, works out which rows need attention today
(aging stock, tax renewals coming due, values below a threshold) and sends
chat notifications to the recipients configured for each job.

Usage:
  python notify.py                                   # run every active job
  python notify.py notify-vehicles-near-tax-deadline # run one job
  python notify.py --dry-run                         # print messages, send nothing
"""

import argparse
import logging
import os
import ssl
import sys
from datetime import timedelta

import certifi

import config
from cooldown import CooldownTracker
from job_store import build_job_store
from messaging import DispatchFailure, build_messenger
from runner import JobRunner
from sheets import SheetsRowSource, authorize

# Fix macOS SSL certificate issue
os.environ.setdefault("SSL_CERT_FILE", certifi.where())
ssl._create_default_https_context = lambda: ssl.create_default_context(cafile=certifi.where())

log = logging.getLogger(__name__)


def build_runner(dry_run: bool = False) -> tuple[JobRunner, object]:
    """Validate config and wire the runner to the real Sheets/chat/config clients."""
    config.validate_config()

    messenger = build_messenger()
    if not messenger.validate_connection():
        raise RuntimeError(f"{config.CHAT_PROVIDER} connection failed")

    runner = JobRunner(
        store=build_job_store(),
        row_source=SheetsRowSource(authorize()),
        messenger=messenger,
        cooldown=CooldownTracker(
            window=timedelta(minutes=config.COOLDOWN_MINUTES),
            state_path=config.COOLDOWN_STATE_PATH or None,
        ),
        dry_run=dry_run,
    )
    return runner, messenger


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    parser = argparse.ArgumentParser(description="Vehicle Notifier")
    parser.add_argument(
        "job_name",
        nargs="?",
        default=None,
        help="Run only this job (default: every active job in the config store)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print messages without sending them",
    )
    parser.add_argument(
        "--ping",
        action="store_true",
        help="Send a startup message before running (always on when APP_ENV=production)",
    )
    args = parser.parse_args()

    log.info("Starting vehicle notifier (%s)", args.job_name or "all jobs")

    try:
        runner, messenger = build_runner(dry_run=args.dry_run)

        if (args.ping or config.APP_ENV == "production") and not args.dry_run:
            try:
                messenger.send_startup_message(args.job_name)
                log.info("Startup message sent")
            except DispatchFailure:
                log.exception("Failed to send startup message")

        reports = runner.run_all([args.job_name] if args.job_name else None)
    except Exception:
        log.exception("Vehicle notifier failed")
        sys.exit(1)

    for report in reports:
        log.info(report.summary())
    log.info(
        "Done. %d job(s) run%s.",
        len(reports),
        " (dry run)" if args.dry_run else "",
    )


if __name__ == "__main__":
    main()
