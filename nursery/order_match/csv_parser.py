"""
Order CSV Parser - Turn a supplier's order spreadsheet export into an
OrderExtraction.

Supplier CSVs have no fixed layout. We find the header row by looking for
known column names, map columns by alias, and parse numbers in either
European (1.234,56) or US (1,234.56) format.
"""

import csv
import io
import logging
import re
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

from .models import OrderExtraction, OrderLineItem

logger = logging.getLogger(__name__)


class CsvFormatError(ValueError):
    """Raised when a CSV lacks the columns needed to build line items."""


# How many leading rows to search for the header row
HEADER_SEARCH_ROWS = 10

# Column aliases (compared after header normalization)
COLUMN_PATTERNS = {
    "quantity": ["qty", "quantity", "units", "pcs", "pieces", "aantal", "anzahl", "menge", "stk"],
    "variety": [
        "variety", "variety name", "plant", "plant name", "product", "product name",
        "description", "item", "item description", "article", "name",
        "omschrijving", "artikel", "sorte",
    ],
    "size": [
        "size", "pot size", "tray", "tray size", "container", "format", "plug size",
        "pack size", "potmaat", "grosse", "größe",
    ],
    "unit_price": ["price", "unit price", "price each", "each", "rate", "prijs", "preis", "stuckpreis"],
    "line_total": ["total", "line total", "amount", "value", "net amount", "subtotal", "totaal", "betrag"],
    "reference": [
        "order", "order number", "order no", "order ref", "order reference",
        "reference", "ref", "po", "po number", "bestelnummer",
    ],
    "genus": ["genus", "gattung"],
    "cultivar": ["cultivar", "cv"],
    "container_type": ["container type", "pot type", "tray type"],
    "cell_multiple": ["cell multiple", "cells", "cells per tray", "plugs per tray"],
}

REQUIRED_COLUMNS = ("quantity", "variety")

_US_THOUSANDS = re.compile(r"^\d{1,3}(,\d{3})+$")
_EU_THOUSANDS = re.compile(r"^\d{1,3}(\.\d{3}){2,}$")


def normalize_header(header) -> str:
    """Lowercase, punctuation to spaces, collapse whitespace."""
    if header is None:
        return ""
    text = re.sub(r"[^\w\s]", " ", str(header).lower())
    return re.sub(r"\s+", " ", text).strip()


def find_columns(headers: list[str]) -> dict[str, int]:
    """Map each known field to the first header matching one of its aliases."""
    normalized = [normalize_header(h) for h in headers]
    columns = {}
    for field_name, aliases in COLUMN_PATTERNS.items():
        for i, header in enumerate(normalized):
            if header in aliases and i not in columns.values():
                columns[field_name] = i
                break
    return columns


def parse_number(value) -> Optional[Decimal]:
    """
    Parse a number written in European or US format.

    Examples:
        "1.234,56" -> 1234.56   (European)
        "1,234.56" -> 1234.56   (US)
        "12,5"     -> 12.5      (European decimal comma)
        "1,234"    -> 1234      (US thousands)
        "1.234.567"-> 1234567   (European thousands)
        "€ 3,20"   -> 3.20
    """
    if value is None:
        return None
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        number = Decimal(str(value))
        return number if number.is_finite() else None

    text = re.sub(r"[€£$\s]", "", str(value))
    if not text:
        return None

    negative = text.startswith("-")
    text = text.lstrip("+-")

    if "," in text and "." in text:
        # Whichever separator comes last is the decimal point
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif "," in text:
        if _US_THOUSANDS.match(text):
            text = text.replace(",", "")
        else:
            text = text.replace(",", ".")
    elif _EU_THOUSANDS.match(text):
        text = text.replace(".", "")

    try:
        number = Decimal(text)
    except InvalidOperation:
        return None
    if not number.is_finite():
        return None  # "NaN", "inf"
    return -number if negative else number


def _sniff_dialect(text: str):
    try:
        return csv.Sniffer().sniff(text[:4096], delimiters=",;\t")
    except csv.Error:
        return csv.excel


def _find_header_row(rows: list[list[str]]) -> tuple[int, dict[str, int]]:
    """Index of the first row that names every required column."""
    for index, row in enumerate(rows[:HEADER_SEARCH_ROWS]):
        columns = find_columns(row)
        if all(name in columns for name in REQUIRED_COLUMNS):
            return index, columns
    raise CsvFormatError(
        f"No header row with {' and '.join(REQUIRED_COLUMNS)} columns "
        f"in the first {HEADER_SEARCH_ROWS} rows"
    )


def parse_order_csv(text: str, supplier_name: Optional[str] = None) -> OrderExtraction:
    """
    Parse CSV text into an OrderExtraction.

    Args:
        text: CSV content (comma, semicolon or tab separated)
        supplier_name: Supplier to attach, since CSVs rarely name it

    Returns:
        OrderExtraction with one line item per usable row

    Raises:
        CsvFormatError: no header row with quantity and variety columns
    """
    rows = [row for row in csv.reader(io.StringIO(text), _sniff_dialect(text))]
    header_index, columns = _find_header_row(rows)

    def cell(row: list[str], field_name: str) -> Optional[str]:
        idx = columns.get(field_name)
        if idx is None or idx >= len(row):
            return None
        value = row[idx].strip()
        return value or None

    line_items = []
    order_reference = None

    for row_num, row in enumerate(rows[header_index + 1:], start=header_index + 2):
        if order_reference is None:
            order_reference = cell(row, "reference")

        variety = cell(row, "variety")
        if not variety:
            continue

        quantity = parse_number(cell(row, "quantity"))
        if quantity is None or quantity <= 0:
            logger.debug("Row %d: no usable quantity, skipping", row_num)
            continue

        cell_multiple = parse_number(cell(row, "cell_multiple"))

        line_items.append(OrderLineItem(
            quantity=int(quantity.to_integral_value()),
            variety_name=variety,
            genus=cell(row, "genus"),
            cultivar=cell(row, "cultivar"),
            size_description=cell(row, "size"),
            cell_multiple=int(cell_multiple) if cell_multiple is not None else None,
            container_type=cell(row, "container_type"),
            unit_price=parse_number(cell(row, "unit_price")),
            line_total=parse_number(cell(row, "line_total")),
        ))

    totals = [item.line_total for item in line_items]
    total_amount = sum(totals, Decimal("0")) if totals and None not in totals else None

    logger.info("Parsed %d order lines from CSV", len(line_items))

    return OrderExtraction(
        supplier_name=supplier_name,
        order_reference=order_reference,
        line_items=line_items,
        total_amount=total_amount,
    )


def load_order_csv(path: str | Path, supplier_name: Optional[str] = None) -> OrderExtraction:
    """Read and parse an order CSV file (UTF-8, BOM tolerated)."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Order CSV not found: {path}")
    with open(path, "r", encoding="utf-8-sig", newline="") as f:
        return parse_order_csv(f.read(), supplier_name=supplier_name)
