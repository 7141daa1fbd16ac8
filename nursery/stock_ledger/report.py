"""
Report Generator - Format a stock ledger for human consumption.

Produces console output and CSV export.
"""

import csv
import io
from typing import TextIO

from .formatters import format_units
from .models import StockLedger, StockMovement

# Display labels for movement types
TYPE_LABELS = {
    "initial": "Initial",
    "checkin": "Check In",
    "check_in": "Check In",
    "create": "Created",
    "transplant_in": "Transplant In",
    "transplant_from": "Transplant In",
    "propagation_in": "Propagation In",
    "move_in": "Moved In",
    "transplant_out": "Transplant Out",
    "transplant_to": "Transplant Out",
    "move": "Moved Out",
    "consumed": "Consumed",
    "allocated": "Reserved",
    "picked": "Sold",
    "sale": "Sold",
    "dispatch": "Dispatched",
    "loss": "Loss",
    "dump": "Dumped",
    "adjustment": "Adjustment",
}


def type_label(movement_type: str) -> str:
    return TYPE_LABELS.get(movement_type, movement_type)


def _signed(value) -> str:
    return f"+{format_units(value)}" if value > 0 else f"-{format_units(abs(value))}"


def format_ledger(ledger: StockLedger, batch_label: str | None = None) -> str:
    """
    Format a ledger for console display.

    Args:
        ledger: Movements and summary to render
        batch_label: Optional batch number/id for the header

    Returns:
        Formatted string for console output
    """
    lines = []
    if batch_label:
        lines.append(f"\nBATCH: {batch_label}")
        lines.append("=" * 90)

    if not ledger.movements:
        lines.append("No stock movements recorded.")
    else:
        lines.append(f"{'DATE':<17} {'TYPE':<15} {'QTY':>9} {'BALANCE':>9}  DESCRIPTION")
        lines.append("-" * 90)
        for m in ledger.movements:
            balance = format_units(m.running_balance) if m.running_balance is not None else "-"
            lines.append(
                f"{m.at.strftime('%Y-%m-%d %H:%M'):<17} {type_label(m.type)[:15]:<15} "
                f"{_signed(m.quantity):>9} {balance:>9}  {m.title}"
            )

    s = ledger.summary
    lines.append("\n" + "=" * 90)
    lines.append("SUMMARY")
    lines.append(f"  Total in:         {format_units(s.total_in)}")
    lines.append(f"  Total out:        {format_units(s.total_out)}")
    lines.append(f"    Sold to orders: {format_units(s.sold_to_orders)}")
    lines.append(f"    Transplanted:   {format_units(s.transplanted_out)}")
    lines.append(f"    Losses:         {format_units(s.losses)}")
    lines.append(f"  Reserved:         {format_units(s.allocated)}")
    lines.append(f"  Current balance:  {format_units(s.current_balance)}")
    lines.append("=" * 90)

    return "\n".join(lines)


def export_ledger_csv(
    movements: list[StockMovement],
    output: TextIO | None = None,
) -> str:
    """
    Export movements to CSV format.

    Args:
        movements: Ledger movements to export
        output: Optional file handle to write to

    Returns:
        CSV string (also writes to output if provided)
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer)

    writer.writerow([
        "at",
        "type",
        "quantity",
        "running_balance",
        "title",
        "details",
        "destination_type",
        "destination_ref",
        "user_id",
    ])

    for m in movements:
        dest = m.destination
        dest_ref = ""
        if dest is not None:
            dest_ref = (
                dest.order_number or dest.batch_number or dest.batch_id
                or dest.supplier_name or dest.loss_reason or ""
            )
        writer.writerow([
            m.at.isoformat(),
            m.type,
            m.quantity,
            "" if m.running_balance is None else m.running_balance,
            m.title,
            m.details or "",
            dest.type if dest else "",
            dest_ref,
            m.user_id or "",
        ])

    csv_content = buffer.getvalue()

    if output:
        output.write(csv_content)

    return csv_content
