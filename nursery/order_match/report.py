"""
Report Generator - Format match results for the review screen and export.

Produces console output and CSV export for a matched extraction.
"""

import csv
import io
from datetime import datetime
from typing import TextIO

from .matcher import summarize_extraction
from .models import MatchedExtraction, MatchedLineItem


def _line_label(line: MatchedLineItem) -> str:
    size = f" [{line.extracted_size}]" if line.extracted_size else ""
    return f"{line.extracted_quantity:>6} x {(line.extracted_variety_name or '?')[:30]}{size}"


def _match_label(name: str | None, confidence) -> str:
    if not name:
        return "-"
    return f"{name[:25]} ({confidence.value})"


def format_review(matched: MatchedExtraction) -> str:
    """
    Format a matched extraction for console review.

    Lines are split into MATCHED (both matches HIGH or better), REVIEW
    (something matched, below HIGH) and UNMATCHED (no variety at all).

    Returns:
        Formatted string for console output
    """
    lines = []

    supplier = matched.matched_supplier_name or "NOT FOUND"
    lines.append(f"\nSUPPLIER: {matched.extracted_supplier_name or '-'} -> {supplier}")
    if matched.order_reference:
        lines.append(f"ORDER:    {matched.order_reference}")
    if matched.expected_date:
        lines.append(f"DATE:     {matched.expected_date.isoformat()}")
    lines.append("=" * 70)

    if not matched.line_items:
        lines.append("No line items extracted.")

    confident = [line for line in matched.line_items if line.is_matched]
    unmatched = [line for line in matched.line_items if line.matched_variety_id is None]
    review = [
        line for line in matched.line_items
        if line.needs_review and line.matched_variety_id is not None
    ]

    sections = [
        ("MATCHED", confident, "Ready to import"),
        ("REVIEW", review, "Check variety or size"),
        ("UNMATCHED", unmatched, "Pick from the catalog"),
    ]
    for title, section, hint in sections:
        if not section:
            continue
        lines.append(f"\n{title} ({len(section)}) - {hint}")
        lines.append("-" * 70)
        lines.append(f"{'EXTRACTED':<42} {'VARIETY':<32} {'SIZE'}")
        lines.append("-" * 70)
        for line in section:
            variety = _match_label(line.matched_variety_name, line.variety_match_confidence)
            size = _match_label(line.matched_size_name, line.size_match_confidence)
            lines.append(f"{_line_label(line):<42} {variety:<32} {size}")

    summary = summarize_extraction(matched)
    lines.append("\n" + "=" * 70)
    lines.append("SUMMARY")
    lines.append(f"  Total lines:    {summary['total']}")
    lines.append(f"  Matched:        {summary['matched']}")
    lines.append(f"  Needs review:   {summary['needs_review']}")
    lines.append(f"  Supplier found: {'yes' if summary['supplier_matched'] else 'no'}")
    if matched.total_amount is not None:
        lines.append(f"  Order total:    {matched.total_amount}")
    lines.append("=" * 70)

    return "\n".join(lines)


def export_matches_csv(matched: MatchedExtraction, output: TextIO | None = None) -> str:
    """
    Export matched line items to CSV format.

    Args:
        matched: Matched extraction to export
        output: Optional file handle to write to

    Returns:
        CSV string (also writes to output if provided)
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer)

    writer.writerow([
        "quantity",
        "extracted_variety",
        "extracted_size",
        "unit_price",
        "line_total",
        "variety_id",
        "variety_name",
        "variety_confidence",
        "size_id",
        "size_name",
        "size_confidence",
        "needs_review",
    ])

    for line in matched.line_items:
        writer.writerow([
            line.extracted_quantity,
            line.extracted_variety_name or "",
            line.extracted_size or "",
            str(line.unit_price) if line.unit_price is not None else "",
            str(line.line_total) if line.line_total is not None else "",
            line.matched_variety_id or "",
            line.matched_variety_name or "",
            line.variety_match_confidence.value,
            line.matched_size_id or "",
            line.matched_size_name or "",
            line.size_match_confidence.value,
            "yes" if line.needs_review else "no",
        ])

    csv_content = buffer.getvalue()

    if output:
        output.write(csv_content)

    return csv_content


def generate_report_filename(order_reference: str | None = None, extension: str = "csv") -> str:
    """
    Generate a filename for the report.

    Returns:
        Filename like "order_match_PO-4471_2026-03-02.csv"
    """
    date_str = datetime.now().strftime("%Y-%m-%d")
    if order_reference:
        safe_ref = "".join(c if c.isalnum() or c in "-_" else "_" for c in order_reference)
        return f"order_match_{safe_ref}_{date_str}.{extension}"
    return f"order_match_{date_str}.{extension}"
