from __future__ import annotations

import argparse
import faulthandler
import json
import logging
import sys
from dataclasses import asdict
from datetime import date
from pathlib import Path

from roster_sync import __version__
from roster_sync.bootstrap.container import build_container
from roster_sync.bootstrap.logging import configure_logging, install_exception_hook, log_run_summary
from roster_sync.bootstrap.settings import resolve_log_dir
from roster_sync.core.errors import AppError
from roster_sync.core.metrics import metrics_registry
from roster_sync.domain.models import SyncPlan
from roster_sync.infrastructure.local_config import load_settings

EXIT_OK = 0
EXIT_RUN_FAILED = 1
EXIT_CONFIG_ERROR = 2


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected YYYY-MM-DD") from exc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="roster-sync", description="Sync today's roster to the record store")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.json")
    parser.add_argument("--date", type=_parse_date, default=None, help="Sync this day instead of today (YYYY-MM-DD)")
    parser.add_argument("--dry-run", action="store_true", help="Print what would be pushed without writing anything")
    parser.add_argument("--verbose", action="store_true", help="Also log to stderr")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def plan_to_dict(plan: SyncPlan) -> dict[str, object]:
    return {
        "date_key": plan.date_key,
        "fingerprint": plan.fingerprint,
        "stored_fingerprint": plan.stored_fingerprint,
        "changed": plan.changed,
        "updates": [asdict(update) for update in plan.updates],
        "rejected": [
            {
                "row": rejected.row.row_number,
                "person": str(rejected.row.person_name),
                "shift": rejected.shift_label,
                "reason": rejected.reason,
            }
            for rejected in plan.rejected
        ],
    }


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        log_dir = resolve_log_dir()
    except AppError as exc:
        sys.stderr.write(f"roster-sync: {exc}\n")
        return EXIT_CONFIG_ERROR
    configure_logging(log_dir, console=args.verbose)
    install_exception_hook()
    faulthandler.enable()
    logger = logging.getLogger("roster_sync.cli")
    logger.info("Log dir: %s", log_dir)

    try:
        settings = load_settings(args.config)
        container = build_container(settings)
    except AppError as exc:
        logger.error("Cannot start roster sync: %s", exc)
        sys.stderr.write(f"roster-sync: {exc}\n")
        return EXIT_CONFIG_ERROR

    try:
        if args.dry_run:
            plan = container.sync_use_case.plan(args.date)
            sys.stdout.write(json.dumps(plan_to_dict(plan), ensure_ascii=False, indent=2) + "\n")
            return EXIT_OK
        result = container.sync_use_case.run(args.date)
    except AppError as exc:
        logger.error("Roster sync aborted: %s", exc)
        sys.stderr.write(f"roster-sync: {exc}\n")
        return EXIT_RUN_FAILED
    finally:
        container.close()

    sys.stdout.write(result.status_message + "\n")
    log_run_summary(logger, result, metrics_registry.snapshot())
    return EXIT_OK if result.succeeded else EXIT_RUN_FAILED


if __name__ == "__main__":
    raise SystemExit(main())
