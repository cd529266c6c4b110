import argparse
import io
import logging
import os
import sys
from typing import List, Optional

from csv_reader import CsvParseError
from csv_writer import write_accounts
from payments_engine import PaymentsEngine

LOG_LEVEL_ENV = "PAYMENTS_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "WARNING"


def configure_logging(level: Optional[str]) -> None:
    """Log to stderr; --log-level wins over PAYMENTS_LOG_LEVEL, which wins over WARNING."""
    level_name = (level or os.environ.get(LOG_LEVEL_ENV) or DEFAULT_LOG_LEVEL).strip().upper()
    if not isinstance(logging.getLevelName(level_name), int):
        print(f"Unknown log level {level_name!r}, using {DEFAULT_LOG_LEVEL}", file=sys.stderr)
        level_name = DEFAULT_LOG_LEVEL

    logging.basicConfig(
        level=level_name,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="payments-engine",
        description="Compute final client account balances from a CSV of account activity.",
    )
    parser.add_argument("path", help="input CSV file (type, client, tx, amount)")
    parser.add_argument("--silent", action="store_true", help="process the input but write no output")
    parser.add_argument("--workers", type=int, default=1, help="number of worker threads (default: 1)")
    parser.add_argument("--log-level", default=None, help=f"log level (default: ${LOG_LEVEL_ENV} or {DEFAULT_LOG_LEVEL})")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.workers < 1:
        parser.error("--workers must be at least 1")

    configure_logging(args.log_level)

    engine = PaymentsEngine(num_workers=args.workers)
    try:
        accounts = engine.process_file(args.path)
    except OSError as e:
        print(f"Unable to open input file: {e}", file=sys.stderr)
        return 1
    except CsvParseError as e:
        print(f"Processing input file failed: {e}", file=sys.stderr)
        return 1

    output = io.StringIO() if args.silent else sys.stdout
    write_accounts((account.snapshot() for account in accounts.values()), output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
