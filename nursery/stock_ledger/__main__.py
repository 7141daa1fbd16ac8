"""
CLI entry point for the stock ledger.

Usage:
    python -m nursery.stock_ledger --data export.json --batch B-1001
    python -m nursery.stock_ledger --data export.json --batch B-1001 --output-csv ledger.csv
    python -m nursery.stock_ledger --data export.json --batch B-1001 --json
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from nursery.settings import get_settings

from .adapters import JsonLedgerSource, load_ledger
from .builder import filter_movements
from .report import export_ledger_csv, format_ledger


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="stock_ledger",
        description="Stock Ledger - Rebuild a batch's stock movements from its history",
    )

    parser.add_argument(
        "--data",
        required=True,
        metavar="FILE",
        help="JSON export with batches, events and allocations",
    )

    parser.add_argument(
        "--batch",
        required=True,
        help="Batch id to ledger",
    )

    parser.add_argument(
        "--search",
        help="Only show movements matching this text",
    )

    parser.add_argument(
        "--type",
        dest="movement_type",
        help="Only show movements of this type (e.g. picked, loss)",
    )

    parser.add_argument(
        "--output-csv",
        metavar="FILE",
        help="Output CSV file path",
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the ledger as JSON instead of a table",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Debug logging",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else get_settings().LOG_LEVEL)

    data_path = Path(args.data)
    if not data_path.exists():
        print(f"Error: Data file not found: {data_path}", file=sys.stderr)
        sys.exit(1)

    try:
        source = JsonLedgerSource(data_path)
        ledger = load_ledger(source, args.batch)

        if args.search or args.movement_type:
            ledger.movements = filter_movements(
                ledger.movements, query=args.search, movement_type=args.movement_type
            )

        if args.json:
            print(json.dumps(ledger.to_dict(), indent=2))
        else:
            batch = source.get_batch(args.batch)
            print(format_ledger(ledger, batch_label=batch.batch_number or batch.id))

        if args.output_csv:
            output_path = Path(args.output_csv)
            with open(output_path, "w", newline="") as f:
                export_ledger_csv(ledger.movements, output=f)
            if not args.json:
                print(f"\nCSV exported to: {output_path}")

    except (LookupError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
