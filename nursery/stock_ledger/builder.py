"""
Stock Ledger Builder - Replay a batch's history into stock movements.

Inputs are pre-fetched by the caller:
1. Batch metadata (initial quantity, created date)
2. The batch's event log
3. Allocations against the batch, with order/customer references
4. Child batches, for naming transplant destinations

Output is a chronological list of StockMovement with a running balance,
plus a summary of what went in and where it went out.

Replay rules:
| Source                         | Ledger entry        | Balance effect |
|--------------------------------|---------------------|----------------|
| initial_quantity > 0           | initial             | +qty           |
| stock event with quantity      | lowercase type      | signed qty     |
| creation event, initial > 0    | (suppressed)        | none           |
| full MOVE (no split/partial)   | (suppressed)        | none           |
| allocation, status=picked      | picked (unless a sale event exists for the order item) | -qty |
| allocation, status=allocated   | allocated           | none           |
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence

from .events import (
    CREATION_EVENT_TYPES,
    SALE_EVENT_TYPES,
    extract_quantity,
    get_id,
    get_string,
    is_full_move,
    is_stock_event,
    normalize_type,
    parse_payload,
    signed_quantity,
    to_datetime,
    validate_batch_id,
)
from .formatters import FormatContext, format_event, format_units
from .models import (
    Allocation,
    Batch,
    BatchEvent,
    ChildBatch,
    Destination,
    LedgerSummary,
    OrderRef,
    StockLedger,
    StockMovement,
)

logger = logging.getLogger(__name__)

UNKNOWN_CUSTOMER = "Unknown Customer"


def build_stock_movements(
    batch_id: str,
    events: Iterable[BatchEvent],
    allocations: Iterable[Allocation],
    batch: Optional[Batch] = None,
    child_batches: Iterable[ChildBatch] = (),
    now: Optional[datetime] = None,
) -> list[StockMovement]:
    """
    Build the stock movement history for a batch.

    Args:
        batch_id: Batch being ledgered (validated before anything else)
        events: Batch event log, oldest first
        allocations: Allocation rows referencing the batch
        batch: Batch metadata; None is treated as initial_quantity 0
        child_batches: Batches split or transplanted off this one
        now: Fallback timestamp for undated rows (default: current UTC time)

    Returns:
        Movements sorted by timestamp, running balances filled in

    Raises:
        InvalidBatchIdError: batch_id is malformed
    """
    validate_batch_id(batch_id)
    now = to_datetime(now) or datetime.now(timezone.utc)
    events = list(events)
    allocations = list(allocations)

    initial_qty = (batch.initial_quantity if batch is not None else 0) or 0
    child_lookup = {child.id: child.batch_number for child in child_batches}
    order_lookup = {
        str(alloc.order.order_item_id): alloc.order
        for alloc in allocations
        if alloc.order is not None and alloc.order.order_item_id
    }

    movements: list[StockMovement] = []

    if initial_qty > 0:
        movements.append(StockMovement(
            id=f"initial-{batch_id}",
            batch_id=batch_id,
            at=to_datetime(batch.created_at) or now,
            type="initial",
            quantity=initial_qty,
            title=f"Initial stock: {format_units(initial_qty)} units",
        ))

    for event in events:
        movement = _event_to_movement(
            batch_id, event, initial_qty, child_lookup, order_lookup, now
        )
        if movement is not None:
            movements.append(movement)

    picked_item_ids = _sold_order_item_ids(events)
    for alloc in allocations:
        movement = _allocation_to_movement(batch_id, alloc, picked_item_ids, now)
        if movement is not None:
            movements.append(movement)

    # Stable sort: equal timestamps keep initial, events, allocations order
    movements.sort(key=lambda m: m.at)
    _apply_running_balance(movements)

    logger.debug("Built %d movements for batch %s", len(movements), batch_id)
    return movements


def _event_to_movement(
    batch_id: str,
    event: BatchEvent,
    initial_qty: int,
    child_lookup: dict[str, str],
    order_lookup: dict[str, OrderRef],
    now: datetime,
) -> Optional[StockMovement]:
    """Turn one event into a movement, or None when it has no stock effect."""
    upper_type = normalize_type(event.type)
    if not is_stock_event(upper_type):
        return None

    payload = parse_payload(event.payload)
    event_type = event.type.lower() if event.type else "event"

    raw_qty = extract_quantity(payload)
    if raw_qty is None:
        logger.debug("Event %s (%s) has no quantity, skipping", event.id, upper_type)
        return None

    quantity = signed_quantity(upper_type, raw_qty)
    if quantity == 0:
        return None

    # initial_quantity already accounts for the batch's creation
    if upper_type in CREATION_EVENT_TYPES and initial_qty > 0:
        return None

    if upper_type == "MOVE" and is_full_move(payload):
        return None

    title, destination = format_event(upper_type, FormatContext(
        event_type=event_type,
        quantity=quantity,
        payload=payload,
        child_batches=child_lookup,
        orders=order_lookup,
    ))

    return StockMovement(
        id=event.id,
        batch_id=batch_id,
        at=to_datetime(event.at) or now,
        type=event_type,
        quantity=quantity,
        title=title,
        details=get_string(payload, "notes") or get_string(payload, "details"),
        destination=destination,
        user_id=event.by_user_id,
        user_name=get_string(payload, "by_user"),
    )


def _sold_order_item_ids(events: Sequence[BatchEvent]) -> set[str]:
    """Order items that already have a PICKED/SALE/DISPATCH event."""
    item_ids = set()
    for event in events:
        if normalize_type(event.type) in SALE_EVENT_TYPES:
            item_id = get_id(parse_payload(event.payload), "order_item_id")
            if item_id:
                item_ids.add(item_id)
    return item_ids


def _allocation_to_movement(
    batch_id: str,
    alloc: Allocation,
    picked_item_ids: set[str],
    now: datetime,
) -> Optional[StockMovement]:
    """
    Turn an allocation into a ledger entry.

    allocated -> reservation, shown negative but never touching the balance
    picked    -> sale, unless the event log already recorded it
    """
    order = alloc.order
    if order is None:
        logger.debug("Allocation %s has no order reference, skipping", alloc.id)
        return None

    qty = alloc.quantity or 0
    if qty <= 0:
        return None

    customer = order.customer_name or UNKNOWN_CUSTOMER
    destination = Destination(
        type="order",
        order_id=order.order_id,
        order_number=order.order_number,
        customer_name=customer,
    )
    details = f"Order #{order.order_number or '?'} - {customer}"
    at = to_datetime(alloc.created_at) or now

    if alloc.status == "allocated":
        return StockMovement(
            id=f"alloc-{alloc.id}",
            batch_id=batch_id,
            at=at,
            type="allocated",
            quantity=-qty,
            title=f"{format_units(qty)} units reserved",
            details=details,
            destination=destination,
        )

    if alloc.status == "picked":
        if order.order_item_id and str(order.order_item_id) in picked_item_ids:
            return None
        return StockMovement(
            id=f"sold-{alloc.id}",
            batch_id=batch_id,
            at=at,
            type="picked",
            quantity=-qty,
            title=f"{format_units(qty)} units sold",
            details=details,
            destination=destination,
        )

    return None


def _apply_running_balance(movements: list[StockMovement]) -> None:
    """Fill running_balance in list order; reservations stay None."""
    balance = 0
    for movement in movements:
        if movement.is_reservation:
            movement.running_balance = None
            continue
        balance += movement.quantity
        movement.running_balance = balance


def summarize_movements(movements: Iterable[StockMovement]) -> LedgerSummary:
    """
    Total the ledger in a single pass.

    Reservations are counted under `allocated` only. Outgoing stock is also
    broken down by destination: orders, batches (transplants) and losses.
    """
    summary = LedgerSummary()

    for m in movements:
        if m.is_reservation:
            summary.allocated += abs(m.quantity)
            continue

        if m.quantity > 0:
            summary.total_in += m.quantity
        else:
            out = abs(m.quantity)
            summary.total_out += out
            dest_type = m.destination.type if m.destination else None
            if dest_type == "order":
                summary.sold_to_orders += out
            elif dest_type == "batch":
                summary.transplanted_out += out
            elif dest_type == "loss":
                summary.losses += out

    summary.current_balance = summary.total_in - summary.total_out
    return summary


def get_stock_movements_with_details(
    batch_id: str,
    events: Iterable[BatchEvent],
    allocations: Iterable[Allocation],
    batch: Optional[Batch] = None,
    child_batches: Iterable[ChildBatch] = (),
    now: Optional[datetime] = None,
) -> StockLedger:
    """Build movements for a batch and summarize them."""
    movements = build_stock_movements(
        batch_id, events, allocations, batch, child_batches, now
    )
    return StockLedger(movements=movements, summary=summarize_movements(movements))


def filter_movements(
    movements: Iterable[StockMovement],
    query: Optional[str] = None,
    movement_type: Optional[str] = None,
) -> list[StockMovement]:
    """
    Filter movements by type and free-text search.

    The search is case-insensitive over title, details, destination
    customer name and destination batch number.
    """
    needle = query.lower() if query else None
    results = []

    for m in movements:
        if movement_type and m.type != movement_type:
            continue
        if needle:
            haystack = [m.title, m.details]
            if m.destination is not None:
                haystack += [m.destination.customer_name, m.destination.batch_number]
            if not any(needle in text.lower() for text in haystack if text):
                continue
        results.append(m)

    return results
