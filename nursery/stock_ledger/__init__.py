# Stock ledger: per-batch movements and running balance
# Pure computation over pre-fetched rows - no database access

from .models import (
    Batch,
    BatchEvent,
    Allocation,
    OrderRef,
    ChildBatch,
    Destination,
    StockMovement,
    LedgerSummary,
    StockLedger,
)
from .events import InvalidBatchIdError, validate_batch_id
from .builder import (
    build_stock_movements,
    get_stock_movements_with_details,
    summarize_movements,
    filter_movements,
)
from .adapters import LedgerSource, InMemoryLedgerSource, JsonLedgerSource, load_ledger
from .report import format_ledger, export_ledger_csv

__all__ = [
    # Models
    "Batch",
    "BatchEvent",
    "Allocation",
    "OrderRef",
    "ChildBatch",
    "Destination",
    "StockMovement",
    "LedgerSummary",
    "StockLedger",
    # Validation
    "InvalidBatchIdError",
    "validate_batch_id",
    # Builder
    "build_stock_movements",
    "get_stock_movements_with_details",
    "summarize_movements",
    "filter_movements",
    # Sources
    "LedgerSource",
    "InMemoryLedgerSource",
    "JsonLedgerSource",
    "load_ledger",
    # Report
    "format_ledger",
    "export_ledger_csv",
]
