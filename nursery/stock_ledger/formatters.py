"""
Ledger line formatting.

One formatter per event type family, looked up from FORMATTERS by the
upper-cased event type. Each formatter returns the human-readable title and,
when the payload (or a lookup table) says where the stock went, a Destination.
"""

from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional

from .events import get_id, get_string
from .models import Destination, OrderRef


@dataclass
class FormatContext:
    """Everything a formatter may look at for one event."""
    event_type: str              # lowercase, as shown in the ledger
    quantity: float              # signed
    payload: dict
    child_batches: Mapping[str, str] = field(default_factory=dict)  # id -> batch number
    orders: Mapping[str, OrderRef] = field(default_factory=dict)    # order item id -> order

    @property
    def units(self) -> str:
        return format_units(abs(self.quantity))


Formatter = Callable[[FormatContext], tuple[str, Optional[Destination]]]


def format_units(value: float) -> str:
    """Render a quantity with thousands separators, dropping a .0 suffix."""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return f"{value:,}"


def format_signed(value: float) -> str:
    return f"+{format_units(value)}" if value > 0 else f"-{format_units(abs(value))}"


def _format_checkin(ctx: FormatContext):
    title = f"Checked in {ctx.units} units"
    supplier = get_string(ctx.payload, "supplier") or get_string(ctx.payload, "supplier_name")
    if supplier:
        return f"{title} from {supplier}", Destination(type="supplier", supplier_name=supplier)
    return title, None


def _format_created(ctx: FormatContext):
    return f"Batch created with {ctx.units} units", None


def _format_transplant_in(ctx: FormatContext):
    verb = "moved" if ctx.event_type == "move_in" else "transplanted"
    title = f"{ctx.units} units {verb} in"
    from_number = get_string(ctx.payload, "from_batch_number")
    if from_number:
        destination = Destination(
            type="batch",
            batch_id=get_string(ctx.payload, "from_batch_id"),
            batch_number=from_number,
        )
        return f"{title} from batch {from_number}", destination
    return title, None


def _format_transplant_out(ctx: FormatContext):
    title = f"{ctx.units} units transplanted out"
    to_number = get_string(ctx.payload, "to_batch_number")
    to_id = get_string(ctx.payload, "to_batch_id")
    if not to_number and to_id:
        to_number = ctx.child_batches.get(to_id)
    if to_number:
        return f"{title} to batch {to_number}", Destination(
            type="batch", batch_id=to_id, batch_number=to_number
        )
    return title, None


def _format_partial_move(ctx: FormatContext):
    title = f"{ctx.units} units moved out"
    split_number = get_string(ctx.payload, "split_batch_number")
    split_id = get_string(ctx.payload, "split_batch_id")
    if not split_number and split_id:
        split_number = ctx.child_batches.get(split_id)
    if split_number:
        return f"{title} to batch {split_number}", Destination(
            type="batch", batch_id=split_id, batch_number=split_number
        )
    location = get_string(ctx.payload, "to_location_name")
    if location:
        return f"{title} to {location}", None
    return title, None


def _format_sale(ctx: FormatContext):
    title = f"{ctx.units} units sold"
    order_number = get_string(ctx.payload, "order_number")
    customer = get_string(ctx.payload, "customer_name")
    order_id = get_string(ctx.payload, "order_id")

    if not (order_number and customer):
        # Fall back to the allocation that booked this order item
        order = ctx.orders.get(get_id(ctx.payload, "order_item_id") or "")
        if order is not None:
            order_id = order.order_id
            order_number = order.order_number
            customer = order.customer_name or "Unknown Customer"

    if order_number and customer:
        return f"{title} - Order #{order_number} ({customer})", Destination(
            type="order",
            order_id=order_id,
            order_number=order_number,
            customer_name=customer,
        )

    notes = get_string(ctx.payload, "notes")
    if get_string(ctx.payload, "pick_item_id") and notes:
        title += f" - {notes}"
    return title, None


def _format_consumed(ctx: FormatContext):
    consumer_id = get_string(ctx.payload, "consumedByBatch")
    if consumer_id and consumer_id in ctx.child_batches:
        number = ctx.child_batches[consumer_id]
        return f"{ctx.units} units transplanted to batch {number}", Destination(
            type="batch", batch_id=consumer_id, batch_number=number
        )
    title = f"{ctx.units} units consumed (transplant actualized)"
    if consumer_id:
        return title, Destination(type="batch", batch_id=consumer_id)
    return title, None


def _format_loss(ctx: FormatContext):
    reason = get_string(ctx.payload, "reason") or "Unknown"
    return f"{ctx.units} units lost: {reason}", Destination(type="loss", loss_reason=reason)


def _format_adjustment(ctx: FormatContext):
    title = f"Adjustment: {format_signed(ctx.quantity)} units"
    reason = get_string(ctx.payload, "reason") or get_string(ctx.payload, "notes")
    if reason:
        return f"{title} - {reason}", Destination(type="adjustment", loss_reason=reason)
    return title, None


def format_default(ctx: FormatContext):
    return f"{format_signed(ctx.quantity)} units ({ctx.event_type})", None


FORMATTERS: dict[str, Formatter] = {
    "CHECKIN": _format_checkin,
    "CHECK_IN": _format_checkin,
    "CREATE": _format_created,
    "PROPAGATE": _format_created,
    "STOCK_RECEIVED": _format_created,
    "BATCH_ACTUALIZED": _format_created,
    "ACTUALIZED": _format_created,
    "TRANSPLANT_IN": _format_transplant_in,
    "TRANSPLANT_FROM": _format_transplant_in,
    "PROPAGATION_IN": _format_transplant_in,
    "MOVE_IN": _format_transplant_in,
    "TRANSPLANT_OUT": _format_transplant_out,
    "TRANSPLANT_TO": _format_transplant_out,
    "MOVE": _format_partial_move,
    "PICKED": _format_sale,
    "SALE": _format_sale,
    "DISPATCH": _format_sale,
    "CONSUMED": _format_consumed,
    "LOSS": _format_loss,
    "DUMP": _format_loss,
    "ADJUSTMENT": _format_adjustment,
}


def format_event(upper_type: str, ctx: FormatContext) -> tuple[str, Optional[Destination]]:
    """Title and destination for an event, falling back to the signed delta."""
    return FORMATTERS.get(upper_type, format_default)(ctx)
