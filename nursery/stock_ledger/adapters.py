"""
Ledger Sources - Bridge to batch history data.

The adapter pattern lets us swap implementations (in-memory for testing,
a JSON export for offline inspection) without changing builder logic.
The builder itself never fetches anything.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from .builder import get_stock_movements_with_details
from .events import validate_batch_id
from .models import Allocation, Batch, BatchEvent, ChildBatch, OrderRef, StockLedger

logger = logging.getLogger(__name__)


class LedgerSource(ABC):
    """
    Abstract interface for batch history access.

    Implementations return one batch's rows; the caller is responsible for
    the snapshot being consistent.
    """

    @abstractmethod
    def get_batch(self, batch_id: str) -> Optional[Batch]:
        """Fetch batch metadata, or None if the batch does not exist."""
        pass

    @abstractmethod
    def get_events(self, batch_id: str) -> list[BatchEvent]:
        """Fetch the batch's events ordered by timestamp."""
        pass

    @abstractmethod
    def get_allocations(self, batch_id: str) -> list[Allocation]:
        """Fetch allocations against the batch, order references joined."""
        pass

    @abstractmethod
    def get_child_batches(self, batch_id: str) -> list[ChildBatch]:
        """Fetch batches whose parent is batch_id."""
        pass


class InMemoryLedgerSource(LedgerSource):
    """
    In-memory source for programmatic test setup.

    Rows are keyed by batch id.
    """

    def __init__(self):
        self._batches: dict[str, Batch] = {}
        self._events: dict[str, list[BatchEvent]] = {}
        self._allocations: dict[str, list[Allocation]] = {}
        self._children: dict[str, list[ChildBatch]] = {}

    def add_batch(self, batch: Batch, parent_id: Optional[str] = None):
        self._batches[batch.id] = batch
        if parent_id:
            self._children.setdefault(parent_id, []).append(
                ChildBatch(id=batch.id, batch_number=batch.batch_number or batch.id)
            )

    def add_event(self, batch_id: str, event: BatchEvent):
        self._events.setdefault(batch_id, []).append(event)

    def add_allocation(self, batch_id: str, allocation: Allocation):
        self._allocations.setdefault(batch_id, []).append(allocation)

    def get_batch(self, batch_id: str) -> Optional[Batch]:
        return self._batches.get(batch_id)

    def get_events(self, batch_id: str) -> list[BatchEvent]:
        return list(self._events.get(batch_id, []))

    def get_allocations(self, batch_id: str) -> list[Allocation]:
        return list(self._allocations.get(batch_id, []))

    def get_child_batches(self, batch_id: str) -> list[ChildBatch]:
        return list(self._children.get(batch_id, []))


class JsonLedgerSource(InMemoryLedgerSource):
    """
    Source backed by a JSON export of the batch tables.

    Expected format:
        {
          "batches": [{"id", "batch_number", "initial_quantity", "created_at", "parent_batch_id"}],
          "events": [{"id", "batch_id", "type", "at", "by_user_id", "payload"}],
          "allocations": [{"id", "batch_id", "quantity", "status", "created_at",
                           "order_items": {"id", "orders": {"id", "order_number",
                                                            "customers": {"name"}}}}]
        }
    """

    def __init__(self, data_path: str | Path):
        super().__init__()
        self._data_path = Path(data_path)
        self._load_data()

    def _load_data(self):
        if not self._data_path.exists():
            raise FileNotFoundError(f"Ledger data file not found: {self._data_path}")

        with open(self._data_path, "r") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object in {self._data_path}")

        for row in data.get("batches", []):
            self.add_batch(
                Batch(
                    id=str(row["id"]),
                    initial_quantity=row.get("initial_quantity") or 0,
                    created_at=row.get("created_at"),
                    batch_number=row.get("batch_number"),
                ),
                parent_id=row.get("parent_batch_id"),
            )

        for row in data.get("events", []):
            self.add_event(str(row["batch_id"]), BatchEvent(
                id=str(row["id"]),
                type=row.get("type"),
                at=row.get("at"),
                by_user_id=row.get("by_user_id"),
                payload=row.get("payload"),
            ))

        for row in data.get("allocations", []):
            self.add_allocation(str(row["batch_id"]), Allocation(
                id=str(row["id"]),
                quantity=row.get("quantity") or 0,
                status=row.get("status") or "",
                created_at=row.get("created_at"),
                order=_parse_order_ref(row.get("order_items")),
            ))

        logger.info(
            "Loaded %d batches from %s", len(self._batches), self._data_path
        )


def _parse_order_ref(order_item: Optional[dict]) -> Optional[OrderRef]:
    """Flatten the order_items -> orders -> customers join; None when orphaned."""
    if not order_item:
        return None
    order = order_item.get("orders")
    if not order:
        return None
    customer = order.get("customers") or {}
    return OrderRef(
        order_id=_to_str(order.get("id")),
        order_number=_to_str(order.get("order_number")),
        customer_name=customer.get("name"),
        order_item_id=_to_str(order_item.get("id")),
    )


def _to_str(value) -> Optional[str]:
    """Ids arrive as ints or strings depending on the exporter; compare as str."""
    return str(value) if value is not None else None


def load_ledger(source: LedgerSource, batch_id: str) -> StockLedger:
    """
    Fetch a batch's history from a source and build its ledger.

    Raises:
        InvalidBatchIdError: batch_id is malformed (checked before any fetch)
        LookupError: the source has no such batch
    """
    validate_batch_id(batch_id)

    batch = source.get_batch(batch_id)
    if batch is None:
        raise LookupError(f"Batch not found: {batch_id}")

    return get_stock_movements_with_details(
        batch_id,
        events=source.get_events(batch_id),
        allocations=source.get_allocations(batch_id),
        batch=batch,
        child_batches=source.get_child_batches(batch_id),
    )
