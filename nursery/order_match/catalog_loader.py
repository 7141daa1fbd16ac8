"""
Catalog Loader - Read the reference catalogs (varieties, sizes, suppliers).

Two export formats are supported:
- JSON: {"varieties": [...], "sizes": [...], "suppliers": [...]}
- XLSX: one sheet per catalog, header names on the first row
"""

import json
import logging
from pathlib import Path
from typing import Optional

from openpyxl import load_workbook
from openpyxl.worksheet.worksheet import Worksheet

from .csv_parser import normalize_header
from .models import PlantSize, PlantVariety, ReferenceData, Supplier

logger = logging.getLogger(__name__)

SHEET_NAMES = {
    "varieties": ["varieties", "plant varieties", "variety"],
    "sizes": ["sizes", "plant sizes", "size"],
    "suppliers": ["suppliers", "supplier"],
}

# Column mappings per catalog sheet (compared after header normalization)
COLUMN_PATTERNS = {
    "varieties": {
        "id": ["id", "variety id"],
        "name": ["name", "variety", "variety name"],
        "genus": ["genus"],
        "family": ["family"],
    },
    "sizes": {
        "id": ["id", "size id"],
        "name": ["name", "size", "size name"],
        "cell_multiple": ["cell multiple", "cell_multiple", "cellmultiple", "cells"],
        "container_type": ["container type", "container_type", "containertype"],
    },
    "suppliers": {
        "id": ["id", "supplier id"],
        "name": ["name", "supplier", "supplier name"],
    },
}

MODELS = {
    "varieties": PlantVariety,
    "sizes": PlantSize,
    "suppliers": Supplier,
}


def load_reference_data(path: str | Path) -> ReferenceData:
    """
    Load catalogs from a JSON or XLSX export.

    Raises:
        FileNotFoundError: path does not exist
        ValueError: unsupported file extension
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Catalog file not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".json":
        with open(path, "r") as f:
            reference = ReferenceData.model_validate(json.load(f))
    elif suffix in (".xlsx", ".xlsm"):
        reference = load_catalog_workbook(path)
    else:
        raise ValueError(f"Unsupported catalog format: {suffix}")

    logger.info(
        "Loaded catalogs from %s: %d varieties, %d sizes, %d suppliers",
        path.name,
        len(reference.varieties),
        len(reference.sizes),
        len(reference.suppliers),
    )
    return reference


def _find_sheet(workbook, kind: str) -> Optional[Worksheet]:
    """Find the sheet for a catalog kind by name (case-insensitive)."""
    wanted = SHEET_NAMES[kind]
    for name in workbook.sheetnames:
        if name.strip().lower() in wanted:
            return workbook[name]
    return None


def _find_column_index(headers: list[str], patterns: list[str]) -> Optional[int]:
    """Find column index matching any of the patterns."""
    for i, header in enumerate(headers):
        if header in patterns:
            return i
    return None


def _read_sheet(sheet: Worksheet, kind: str) -> list[dict]:
    """Read a catalog sheet into row dicts keyed by model field."""
    rows = sheet.iter_rows(values_only=True)
    try:
        headers = [normalize_header(value) for value in next(rows)]
    except StopIteration:
        return []

    col_idx = {
        field_name: _find_column_index(headers, patterns)
        for field_name, patterns in COLUMN_PATTERNS[kind].items()
    }
    missing = [f for f in ("id", "name") if col_idx.get(f) is None]
    if missing:
        raise ValueError(f"Missing required columns in sheet {sheet.title!r}: {missing}")

    records = []
    for row in rows:
        record = {}
        for field_name, idx in col_idx.items():
            if idx is None or idx >= len(row) or row[idx] is None:
                continue
            value = row[idx]
            record[field_name] = value.strip() if isinstance(value, str) else value

        if not record.get("id") or not record.get("name"):
            continue  # Skip blank / partial rows
        record["id"] = str(record["id"])
        if isinstance(record.get("cell_multiple"), float):
            record["cell_multiple"] = int(record["cell_multiple"])
        records.append(record)

    return records


def load_catalog_workbook(path: str | Path) -> ReferenceData:
    """Load catalogs from an XLSX workbook; a missing sheet gives an empty catalog."""
    workbook = load_workbook(path, read_only=True, data_only=True)
    try:
        catalogs = {}
        for kind, model in MODELS.items():
            sheet = _find_sheet(workbook, kind)
            if sheet is None:
                logger.warning("No %s sheet in %s", kind, path)
                catalogs[kind] = []
                continue
            catalogs[kind] = [model.model_validate(row) for row in _read_sheet(sheet, kind)]
    finally:
        workbook.close()

    return ReferenceData(**catalogs)
