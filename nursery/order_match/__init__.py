# Extraction matching: resolve supplier order lines against the catalogs

from .models import (
    MatchConfidence,
    OrderLineItem,
    OrderExtraction,
    PlantVariety,
    PlantSize,
    Supplier,
    ReferenceData,
    VarietyMatch,
    SizeMatch,
    MatchedLineItem,
    MatchedExtraction,
)
from .config import MatchConfig, MatchSettings, load_config, resolve_supplier_alias
from .matcher import (
    match_variety,
    match_size,
    match_supplier,
    match_line_item,
    match_extraction,
    summarize_extraction,
)
from .csv_parser import CsvFormatError, parse_order_csv, load_order_csv, parse_number
from .catalog_loader import load_reference_data, load_catalog_workbook
from .report import format_review, export_matches_csv

__all__ = [
    # Models
    "MatchConfidence",
    "OrderLineItem",
    "OrderExtraction",
    "PlantVariety",
    "PlantSize",
    "Supplier",
    "ReferenceData",
    "VarietyMatch",
    "SizeMatch",
    "MatchedLineItem",
    "MatchedExtraction",
    # Config
    "MatchConfig",
    "MatchSettings",
    "load_config",
    "resolve_supplier_alias",
    # Matcher
    "match_variety",
    "match_size",
    "match_supplier",
    "match_line_item",
    "match_extraction",
    "summarize_extraction",
    # Inputs
    "CsvFormatError",
    "parse_order_csv",
    "load_order_csv",
    "parse_number",
    "load_reference_data",
    "load_catalog_workbook",
    # Report
    "format_review",
    "export_matches_csv",
]
