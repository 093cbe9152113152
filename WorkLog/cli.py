# WorkLog/cli.py

import argparse
import asyncio
import logging
import sys
from datetime import date

from dotenv import load_dotenv
load_dotenv()

from WorkLog.aggregation.engine import build_engine
from WorkLog.config import Settings
from WorkLog.database import LedgerStore, init_database
from WorkLog.enrichment.category_classifier import CategoryClassifier
from WorkLog.llm.gemini import GeminiClient
from WorkLog.models import ScreenAnalysis
from WorkLog.summary.daily import build_daily_report

logging.basicConfig(
    format="%(asctime)s | %(levelname)-8s | %(name)-20s | %(funcName)-25s | %(message)s",
    level=logging.INFO,
)
log = logging.getLogger("WorkLog.cli")


def _print_entries(entries):
    if not entries:
        print("Ledger is empty.")
        return
    for e in entries:
        print(f"{e.id:>20}  {e.date:%Y-%m-%d}  {e.time_in_minutes:>5} min  {e.client_name} / {e.project_name}")
        for line in e.description.splitlines():
            print(f"{'':>24}{line}")


def handle_init_db(args_ns, current_settings: Settings):
    init_database(current_settings.db_path)
    log.info(f"DuckDB ledger initialized at {current_settings.db_path}.")


def handle_ledger_list(args_ns, current_settings: Settings):
    store = LedgerStore(current_settings.db_path)
    entries = store.get_entries_for_day(args_ns.day) if args_ns.day else store.get_all_entries()
    _print_entries(entries)


def handle_ledger_normalize(args_ns, current_settings: Settings):
    store = LedgerStore(current_settings.db_path)
    entries = store.get_all_entries()
    log.info(f"CLI: Normalizing {len(entries)} ledger entries...")
    engine = build_engine(current_settings)
    update = asyncio.run(engine.normalize_ledger(entries))
    if args_ns.dry_run:
        log.info(f"Dry run: would upsert {len(update.upserts)} and retire {len(update.retired_ids)} entries.")
        _print_entries(update.upserts)
        return
    store.apply_update(update)


def handle_track(args_ns, current_settings: Settings):
    store = LedgerStore(current_settings.db_path)
    analysis = ScreenAnalysis(
        client_name=args_ns.client,
        project_name=args_ns.project,
        activity_description=args_ns.description,
        partner=args_ns.partner,
        hourly_rate=args_ns.rate,
    )
    engine = build_engine(current_settings)
    update = asyncio.run(engine.fold_observation(analysis, store.get_all_entries()))
    store.apply_update(update)
    _print_entries(update.upserts)


def handle_categorize(args_ns, current_settings: Settings):
    classifier = CategoryClassifier(GeminiClient(current_settings), current_settings)
    print(asyncio.run(classifier.categorize_description(args_ns.text)))


def handle_report_daily(args_ns, current_settings: Settings):
    store = LedgerStore(current_settings.db_path)
    target_day = args_ns.day or date.today()
    report = build_daily_report(store.get_all_entries(), current_settings, day=target_day)
    if report.is_empty():
        print(f"No entries for {target_day}.")
        return
    print(report)


def main():
    settings = Settings()

    parser = argparse.ArgumentParser(
        prog="worklog",
        description="WorkLog: WIP ledger aggregation for time tracking and invoicing"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging for all WorkLog modules."
    )
    subparsers = parser.add_subparsers(dest="command", title="Available Commands", required=True)

    # --- Database Init Subcommand ---
    parser_dbinit = subparsers.add_parser("init-db", help="Create the DuckDB ledger tables.")
    parser_dbinit.set_defaults(func=handle_init_db)

    # --- Ledger Subcommands ---
    parser_ledger = subparsers.add_parser("ledger", help="Inspect or normalize the WIP ledger.")
    ledger_subparsers = parser_ledger.add_subparsers(dest="ledger_command", title="Ledger Commands", required=True)
    parser_list = ledger_subparsers.add_parser("list", help="List ledger entries.")
    parser_list.add_argument("--day", type=lambda s: date.fromisoformat(s) if s else None, help="Day YYYY-MM-DD (UTC).")
    parser_list.set_defaults(func=handle_ledger_list)
    parser_normalize = ledger_subparsers.add_parser("normalize", help="Cluster and consolidate the whole ledger.")
    parser_normalize.add_argument("--dry-run", action="store_true", help="Show the consolidated entries without writing.")
    parser_normalize.set_defaults(func=handle_ledger_normalize)

    # --- Track Subcommand ---
    parser_track = subparsers.add_parser("track", help="Fold one minute of observed work into the ledger.")
    parser_track.add_argument("--client", default="Unknown", help="Client name (default: Unknown).")
    parser_track.add_argument("--project", default="", help="Project name.")
    parser_track.add_argument("--description", required=True, help="What was worked on.")
    parser_track.add_argument("--partner", default=None, help="Partner name (default: from user settings).")
    parser_track.add_argument("--rate", type=float, default=None, help="Hourly rate (default: from user settings).")
    parser_track.set_defaults(func=handle_track)

    # --- Categorize Subcommand ---
    parser_categorize = subparsers.add_parser("categorize", help="Classify a work description into a service category.")
    parser_categorize.add_argument("text", help="Work description.")
    parser_categorize.set_defaults(func=handle_categorize)

    # --- Report Subcommand ---
    parser_report = subparsers.add_parser("report", help="Summarize the ledger.")
    report_subparsers = parser_report.add_subparsers(dest="report_type", title="Report Types", required=True)
    parser_report_daily = report_subparsers.add_parser("daily", help="Time and amount per client/project for a day.")
    parser_report_daily.add_argument("--day", type=lambda s: date.fromisoformat(s) if s else None, help="Day YYYY-MM-DD (default: today).")
    parser_report_daily.set_defaults(func=handle_report_daily)

    args = parser.parse_args()

    if args.debug:
        logging.getLogger("WorkLog").setLevel(logging.DEBUG)
        root_logger = logging.getLogger()
        root_logger.setLevel(logging.DEBUG)
        for handler in root_logger.handlers:
            handler.setLevel(logging.DEBUG)
        log.debug("Debug logging enabled via CLI.")

    if hasattr(args, "func"):
        args.func(args, settings)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
