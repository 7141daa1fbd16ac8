"""
CLI entry point for order extraction matching.

Usage:
    python -m nursery.order_match --extraction order.json --catalog catalogs.json
    python -m nursery.order_match --csv order.csv --supplier "Kernock Park Plants" --catalog catalogs.xlsx
    python -m nursery.order_match --csv order.csv --catalog catalogs.json --output-csv matches.csv
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from nursery.settings import get_settings

from .catalog_loader import load_reference_data
from .config import load_config
from .csv_parser import load_order_csv
from .matcher import match_extraction
from .models import OrderExtraction
from .report import export_matches_csv, format_review, generate_report_filename


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="order_match",
        description="Order Match - Resolve an extracted supplier order against the catalogs",
    )

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--extraction",
        metavar="FILE",
        help="Extraction JSON (supplier_name, order_reference, line_items, ...)",
    )
    source.add_argument(
        "--csv",
        metavar="FILE",
        help="Supplier order spreadsheet exported as CSV",
    )

    parser.add_argument(
        "--supplier",
        help="Supplier name for a CSV order (CSVs rarely carry one)",
    )

    parser.add_argument(
        "--catalog",
        required=True,
        metavar="FILE",
        help="Catalog export with varieties, sizes and suppliers (JSON or XLSX)",
    )

    parser.add_argument(
        "--config",
        default=None,
        metavar="FILE",
        help="Match config file (default: NURSERY_MATCH_CONFIG or the module's match_config.json)",
    )

    parser.add_argument(
        "--output-csv",
        nargs="?",
        const="",
        metavar="FILE",
        help="Output CSV file path (no value: order_match_<ref>_<date>.csv)",
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the matched extraction as JSON",
    )

    parser.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Suppress console output (only output CSV)",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Debug logging",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else get_settings().LOG_LEVEL)

    try:
        config = load_config(args.config)
        reference_data = load_reference_data(args.catalog)

        if args.csv:
            extraction = load_order_csv(args.csv, supplier_name=args.supplier)
        else:
            extraction_path = Path(args.extraction)
            if not extraction_path.exists():
                raise FileNotFoundError(f"Extraction file not found: {extraction_path}")
            with open(extraction_path, "r") as f:
                extraction = OrderExtraction.model_validate(json.load(f))
            if args.supplier:
                extraction.supplier_name = args.supplier

        matched = match_extraction(extraction, reference_data, config)

        if args.json:
            print(matched.model_dump_json(indent=2))
        elif not args.quiet:
            print(format_review(matched))

        if args.output_csv is not None:
            output_path = Path(
                args.output_csv or generate_report_filename(matched.order_reference)
            )
            with open(output_path, "w", newline="") as f:
                export_matches_csv(matched, output=f)
            if not args.quiet and not args.json:
                print(f"\nCSV exported to: {output_path}")

    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        # pydantic's ValidationError and CsvFormatError are ValueErrors
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
