"""
Data models for the stock ledger.

All structured data uses dataclasses for type hints, __eq__, and __repr__.
Events and allocations are inputs; movements and the summary are derived
fresh on every call and never stored.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Union


# Raw timestamps as they come out of the data layer
RawTimestamp = Union[datetime, str, int, float, None]


@dataclass
class Batch:
    """
    An inventory unit.

    Quantity on hand is derived from the ledger, never read from here.
    """
    id: str
    initial_quantity: int = 0
    created_at: RawTimestamp = None
    batch_number: Optional[str] = None


@dataclass
class BatchEvent:
    """
    An immutable, timestamped fact about a batch.

    `type` is an open string (case-insensitive). `payload` may be a dict,
    a JSON-encoded string, or None.
    """
    id: str
    type: Optional[str]
    at: RawTimestamp = None
    by_user_id: Optional[str] = None
    payload: Any = None


@dataclass
class OrderRef:
    """Order / customer reference joined onto an allocation."""
    order_id: Optional[str]
    order_number: Optional[str]
    customer_name: Optional[str] = None
    order_item_id: Optional[str] = None


@dataclass
class Allocation:
    """
    A reservation (status "allocated") or consumption (status "picked")
    of batch quantity against an order line.

    Allocations without an order reference are orphans and are skipped.
    """
    id: str
    quantity: int
    status: str
    created_at: RawTimestamp = None
    order: Optional[OrderRef] = None


@dataclass
class ChildBatch:
    """A batch split or transplanted off the batch being ledgered."""
    id: str
    batch_number: str


@dataclass
class Destination:
    """
    Where stock came from or went to.

    `type` is one of: supplier, batch, order, loss, adjustment.
    Only the fields relevant to the type are populated.
    """
    type: str
    supplier_name: Optional[str] = None
    batch_id: Optional[str] = None
    batch_number: Optional[str] = None
    order_id: Optional[str] = None
    order_number: Optional[str] = None
    customer_name: Optional[str] = None
    loss_reason: Optional[str] = None

    def to_dict(self) -> dict:
        """Render with camelCase keys, dropping unset fields."""
        keys = {
            "supplier_name": "supplierName",
            "batch_id": "batchId",
            "batch_number": "batchNumber",
            "order_id": "orderId",
            "order_number": "orderNumber",
            "customer_name": "customerName",
            "loss_reason": "lossReason",
        }
        data = {"type": self.type}
        for attr, key in keys.items():
            value = getattr(self, attr)
            if value is not None:
                data[key] = value
        return data


@dataclass
class StockMovement:
    """
    One line of the stock ledger.

    quantity is signed (positive = stock increase). running_balance is None
    for reservations, which never touch the balance.
    """
    id: str
    batch_id: str
    at: datetime
    type: str
    quantity: int
    title: str
    running_balance: Optional[int] = None
    details: Optional[str] = None
    destination: Optional[Destination] = None
    user_id: Optional[str] = None
    user_name: Optional[str] = None

    @property
    def is_reservation(self) -> bool:
        return self.type == "allocated"

    def to_dict(self) -> dict:
        """JSON-ready dict in the shape the ledger UI consumes."""
        return {
            "id": self.id,
            "batchId": self.batch_id,
            "at": self.at.isoformat(),
            "type": self.type,
            "quantity": self.quantity,
            "runningBalance": self.running_balance,
            "title": self.title,
            "details": self.details,
            "destination": self.destination.to_dict() if self.destination else None,
            "userId": self.user_id,
            "userName": self.user_name,
        }


@dataclass
class LedgerSummary:
    """Totals over the non-reservation movements of a ledger."""
    total_in: int = 0
    total_out: int = 0
    current_balance: int = 0
    sold_to_orders: int = 0
    transplanted_out: int = 0
    losses: int = 0
    allocated: int = 0  # Reserved but not yet picked

    def to_dict(self) -> dict:
        return {
            "totalIn": self.total_in,
            "totalOut": self.total_out,
            "currentBalance": self.current_balance,
            "soldToOrders": self.sold_to_orders,
            "transplantedOut": self.transplanted_out,
            "losses": self.losses,
            "allocated": self.allocated,
        }


@dataclass
class StockLedger:
    """Movements plus their summary for a single batch."""
    movements: list[StockMovement] = field(default_factory=list)
    summary: LedgerSummary = field(default_factory=LedgerSummary)

    def to_dict(self) -> dict:
        return {
            "movements": [m.to_dict() for m in self.movements],
            "summary": self.summary.to_dict(),
        }
