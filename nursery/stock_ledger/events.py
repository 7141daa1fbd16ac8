"""
Event classification and payload helpers.

Batch events carry an open `type` string and an untyped payload. This module
turns them into the handful of facts the ledger needs:
- is the event stock-related at all?
- does it add stock, remove stock, or carry its own sign?
- how many units did it move?
"""

import json
import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from .models import RawTimestamp

logger = logging.getLogger(__name__)


class InvalidBatchIdError(ValueError):
    """Raised when a batch identifier is malformed."""


# Event types that can change stock on hand
STOCK_EVENT_TYPES = frozenset({
    "CHECKIN", "CHECK_IN", "CREATE", "TRANSPLANT_IN", "TRANSPLANT_FROM", "PROPAGATION_IN",
    "MOVE_IN", "PROPAGATE", "STOCK_RECEIVED", "BATCH_ACTUALIZED", "ACTUALIZED",
    "TRANSPLANT_OUT", "TRANSPLANT_TO", "MOVE", "CONSUMED",
    "PICKED", "SALE", "DISPATCH", "LOSS", "DUMP", "ADJUSTMENT",
})

# Creation events duplicate initial_quantity when the batch already has one
CREATION_EVENT_TYPES = frozenset({
    "CREATE", "MOVE_IN", "PROPAGATE", "CHECK_IN", "CHECKIN",
    "STOCK_RECEIVED", "BATCH_ACTUALIZED", "ACTUALIZED",
})

IN_EVENT_TYPES = frozenset({
    "CHECKIN", "CHECK_IN", "CREATE", "TRANSPLANT_IN", "TRANSPLANT_FROM", "PROPAGATION_IN",
    "MOVE_IN", "PROPAGATE", "STOCK_RECEIVED", "BATCH_ACTUALIZED", "ACTUALIZED",
})

OUT_EVENT_TYPES = frozenset({
    "TRANSPLANT_OUT", "TRANSPLANT_TO", "MOVE", "CONSUMED",
    "PICKED", "SALE", "DISPATCH", "LOSS", "DUMP",
})

# Events that record a sale against an order item
SALE_EVENT_TYPES = frozenset({"PICKED", "SALE", "DISPATCH"})

# Payload keys probed for a quantity, first present wins
QUANTITY_KEYS = (
    "qty",
    "quantity",
    "units_picked",
    "units",
    "units_dumped",      # legacy dump events
    "units_moved",
    "units_received",
    "computed_units",
    "consumedQuantity",  # transplant actualization
    "actualQuantity",    # planned batch actualized
    "diff",
)

_BATCH_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


def validate_batch_id(batch_id: Any) -> str:
    """Return batch_id unchanged, or raise InvalidBatchIdError."""
    if not isinstance(batch_id, str) or not _BATCH_ID_PATTERN.match(batch_id):
        raise InvalidBatchIdError("Invalid batch ID provided.")
    return batch_id


def normalize_type(event_type: Optional[str]) -> str:
    return (event_type or "").upper()


def is_stock_event(event_type: Optional[str]) -> bool:
    return normalize_type(event_type) in STOCK_EVENT_TYPES


def is_in_event(event_type: Optional[str]) -> bool:
    return normalize_type(event_type) in IN_EVENT_TYPES


def is_out_event(event_type: Optional[str]) -> bool:
    return normalize_type(event_type) in OUT_EVENT_TYPES


def parse_payload(raw: Any) -> dict:
    """
    Parse an event payload into a dict.

    Dicts pass through; strings are decoded as JSON. Anything empty,
    unparseable or not a JSON object becomes an empty dict.
    """
    if not raw:
        return {}
    if isinstance(raw, dict):
        return raw
    try:
        parsed = json.loads(str(raw))
    except (ValueError, TypeError):
        logger.debug("Unparseable event payload: %r", raw)
        return {}
    return parsed if isinstance(parsed, dict) else {}


def get_string(payload: dict, key: str) -> Optional[str]:
    value = payload.get(key)
    return value if isinstance(value, str) else None


def get_number(payload: dict, key: str) -> Optional[float]:
    value = payload.get(key)
    # bool is an int subclass but never a quantity
    if isinstance(value, bool):
        return None
    if not isinstance(value, (int, float)):
        return None
    # NaN / Infinity survive json.loads
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def get_id(payload: dict, key: str) -> Optional[str]:
    """Identifier under key as a string; JSON exports mix int and str ids."""
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        return None
    return str(value) or None


def extract_quantity(payload: dict, keys: Iterable[str] = QUANTITY_KEYS) -> Optional[float]:
    """Return the first numeric value found under keys, in order."""
    for key in keys:
        value = get_number(payload, key)
        if value is not None:
            return value
    return None


def signed_quantity(event_type: Optional[str], raw_qty: float) -> float:
    """
    Apply the direction of an event type to a raw quantity.

    Out events are forced negative, in events positive; anything else
    (ADJUSTMENT, unknown types) keeps the sign it was recorded with.
    """
    if is_out_event(event_type):
        return -abs(raw_qty)
    if is_in_event(event_type):
        return abs(raw_qty)
    return raw_qty


def is_full_move(payload: dict) -> bool:
    """A MOVE without partial flag or split batch is a location change only."""
    return payload.get("partial") is not True and get_string(payload, "split_batch_id") is None


def to_datetime(value: RawTimestamp) -> Optional[datetime]:
    """
    Coerce a raw timestamp to an aware datetime.

    Accepts datetimes, ISO-8601 strings (including a trailing "Z") and epoch
    seconds. Naive values are taken as UTC. Returns None when unparseable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, bool):
        return None
    elif isinstance(value, (int, float)):
        try:
            dt = datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
