#!/usr/bin/env python3
"""
Knowledge Base Core - command line entry point.

Inventory batch jobs (movement import, ABC analysis, demand forecast)
and database initialization. Every command runs for one tenant.

Usage:
    python main.py init-db
    python main.py import-movements movements.xlsx --tenant acme
    python main.py abc --start 2025-01-01 --end 2025-12-31 --tenant acme
    python main.py forecast P-100 --periods 6 --lookback 12 --tenant acme
"""

import sys
import argparse
import logging
from datetime import date, datetime, timedelta
from typing import List, Optional

from config import APP_NAME, APP_VERSION, create_app_context, get_settings
from data import create_database
from domain.exceptions import KnowledgeBaseError


def setup_logging(level: str = "INFO"):
    """
    Configure logging for the application.

    Sets up console output with pretty formatting.
    Suppresses noisy third-party loggers.
    """
    # Create formatter with timestamp, level, module name
    formatter = logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )

    # Console handler (stdout)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)

    # Root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers = [console_handler]

    # Suppress noisy third-party loggers
    logging.getLogger('pandas').setLevel(logging.WARNING)
    logging.getLogger('openpyxl').setLevel(logging.WARNING)

    logging.info("=" * 60)
    logging.info(f"{APP_NAME} {APP_VERSION}")
    logging.info(f"Logging initialized - Level: {level.upper()}")
    logging.info("=" * 60)


def _parse_date(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected YYYY-MM-DD")


def _parse_end_date(value: str) -> datetime:
    """Period end; a bare date covers that whole day."""
    end = _parse_date(value)
    try:
        date.fromisoformat(value)
    except ValueError:
        return end
    return end + timedelta(days=1) - timedelta(microseconds=1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="kbcore", description=f"{APP_NAME} {APP_VERSION}")
    parser.add_argument("--database", default=None, help="SQLite database path (default: settings)")
    parser.add_argument("--tenant", default=None, help="Tenant id (default: KB_DEFAULT_TENANT)")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create the database and apply migrations")

    import_cmd = commands.add_parser("import-movements", help="Import stock movements from Excel/CSV")
    import_cmd.add_argument("file", help="Path to .xlsx, .xls or .csv file")

    abc_cmd = commands.add_parser("abc", help="Run ABC classification for a period")
    abc_cmd.add_argument("--start", required=True, type=_parse_date, help="Period start (YYYY-MM-DD)")
    abc_cmd.add_argument("--end", required=True, type=_parse_end_date, help="Period end (YYYY-MM-DD, inclusive)")
    abc_cmd.add_argument("--export", default=None, help="Also write the result to .xlsx or .csv")

    forecast_cmd = commands.add_parser("forecast", help="Forecast monthly demand for a part")
    forecast_cmd.add_argument("part_id")
    forecast_cmd.add_argument("--periods", type=int, default=None, help="Months to forecast")
    forecast_cmd.add_argument("--lookback", type=int, default=None, help="Months of history to use")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main application entry point."""
    args = build_parser().parse_args(argv)
    settings = get_settings()

    # Setup logging FIRST
    setup_logging(args.log_level or settings.log_level)
    logger = logging.getLogger("main")

    from operations.inventory_ops import (
        export_classification,
        generate_demand_forecast,
        import_movements_from_file,
        run_abc_analysis,
    )

    db = create_database(settings.database_type, args.database or settings.database_path)
    ctx = create_app_context(db, settings=settings, tenant_id=args.tenant)

    try:
        if args.command == "init-db":
            print(f"Database ready: {args.database or settings.database_path}")

        elif args.command == "import-movements":
            result = import_movements_from_file(db, ctx, args.file)
            print(f"Imported {result['imported']} movements, skipped {len(result['skipped'])} rows")

        elif args.command == "abc":
            result = run_abc_analysis(db, ctx, args.start, args.end)
            for cls, bucket in result["summary"].items():
                print(f"{cls}: {bucket['count']:>5} items  {bucket['value_percentage']:>6.2f}% of value")
            if args.export and result["records"]:
                path = export_classification(db, ctx, args.export, result["analysis_run_id"])
                print(f"Exported to {path}")

        elif args.command == "forecast":
            forecasts = generate_demand_forecast(
                db, ctx, args.part_id, periods=args.periods, lookback_months=args.lookback
            )
            for forecast in forecasts:
                print(forecast)

    except KnowledgeBaseError as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error ({e.kind}): {e.message}", file=sys.stderr)
        return 1
    finally:
        db.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
