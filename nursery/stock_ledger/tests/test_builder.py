"""
Tests for the stock ledger builder.

Run with: pytest nursery/stock_ledger/tests/test_builder.py -v
"""

import json
from datetime import datetime, timezone

import pytest

from nursery.stock_ledger.builder import (
    build_stock_movements,
    filter_movements,
    get_stock_movements_with_details,
)
from nursery.stock_ledger.events import InvalidBatchIdError
from nursery.stock_ledger.models import (
    Allocation,
    Batch,
    BatchEvent,
    ChildBatch,
    OrderRef,
)


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def ts(day: int, hour: int = 9) -> str:
    return f"2026-02-{day:02d}T{hour:02d}:00:00Z"


@pytest.fixture
def batch():
    return Batch(id="batch-1", initial_quantity=100, created_at=ts(1), batch_number="B-1001")


@pytest.fixture
def order():
    return OrderRef(
        order_id="ord-1", order_number="SO-5001",
        customer_name="Greenfield Garden Centre", order_item_id="item-1",
    )


def build(batch, events=(), allocations=(), children=()):
    return build_stock_movements(batch.id, events, allocations, batch, children, now=NOW)


class TestInitialStock:
    """Synthetic initial entry from initial_quantity."""

    def test_initial_entry(self, batch):
        movements = build(batch)

        assert len(movements) == 1
        assert movements[0].type == "initial"
        assert movements[0].id == "initial-batch-1"
        assert movements[0].quantity == 100
        assert movements[0].running_balance == 100
        assert movements[0].title == "Initial stock: 100 units"

    def test_no_initial_entry_when_zero(self):
        empty = Batch(id="batch-2", initial_quantity=0, created_at=ts(1))
        events = [BatchEvent(id="e1", type="CHECKIN", at=ts(2), payload={"qty": 50})]
        movements = build(empty, events)

        assert [m.type for m in movements] == ["checkin"]
        assert movements[0].running_balance == 50

    def test_missing_batch_meta(self):
        events = [BatchEvent(id="e1", type="LOSS", at=ts(2), payload={"qty": 5})]
        movements = build_stock_movements("batch-9", events, [], None, now=NOW)

        assert len(movements) == 1
        assert movements[0].running_balance == -5

    def test_undated_batch_falls_back_to_now(self):
        undated = Batch(id="batch-3", initial_quantity=10, created_at=None)
        movements = build(undated)

        assert movements[0].at == NOW

    def test_thousands_separator(self):
        big = Batch(id="batch-4", initial_quantity=12000, created_at=ts(1))
        assert build(big)[0].title == "Initial stock: 12,000 units"

    def test_naive_now_mixed_with_dated_rows(self, batch):
        events = [
            BatchEvent(id="e1", type="LOSS", at=None, payload={"qty": 5}),
            BatchEvent(id="e2", type="LOSS", at=ts(2), payload={"qty": 3}),
        ]
        naive_now = datetime(2026, 3, 1, 12, 0)
        movements = build_stock_movements(batch.id, events, [], batch, now=naive_now)

        assert [m.id for m in movements] == ["initial-batch-1", "e2", "e1"]
        assert movements[-1].at == NOW
        assert movements[-1].running_balance == 92


class TestLedgerExample:
    """Initial stock, one pick event, one reservation."""

    def test_pick_and_reservation(self, batch, order):
        events = [BatchEvent(id="e1", type="PICKED", at=ts(2), payload={"units_picked": 30})]
        allocations = [
            Allocation(id="a1", quantity=10, status="allocated", created_at=ts(3), order=order),
        ]
        ledger = get_stock_movements_with_details(
            batch.id, events, allocations, batch, now=NOW
        )
        movements = ledger.movements

        assert [m.type for m in movements] == ["initial", "picked", "allocated"]
        assert [m.quantity for m in movements] == [100, -30, -10]
        assert [m.running_balance for m in movements] == [100, 70, None]
        assert ledger.summary.current_balance == 70
        assert ledger.summary.total_in == 100
        assert ledger.summary.total_out == 30
        assert ledger.summary.allocated == 10


class TestQuantityExtraction:
    """Payload parsing and quantity probing."""

    def test_json_string_payload(self, batch):
        events = [BatchEvent(id="e1", type="LOSS", at=ts(2),
                             payload=json.dumps({"qty": 4, "reason": "Botrytis"}))]
        movements = build(batch, events)

        assert movements[1].quantity == -4
        assert movements[1].title == "4 units lost: Botrytis"

    def test_first_key_wins(self, batch):
        events = [BatchEvent(id="e1", type="DUMP", at=ts(2),
                             payload={"units_dumped": 7, "diff": 99})]
        assert build(batch, events)[1].quantity == -7

    def test_non_finite_quantity_skipped(self, batch):
        events = [
            BatchEvent(id="e1", type="LOSS", at=ts(2), payload='{"qty": NaN}'),
            BatchEvent(id="e2", type="LOSS", at=ts(3), payload='{"qty": Infinity}'),
            BatchEvent(id="e3", type="LOSS", at=ts(4), payload={"qty": 4}),
        ]
        movements = build(batch, events)

        assert [m.id for m in movements] == ["initial-batch-1", "e3"]
        assert movements[-1].running_balance == 96

    def test_malformed_payload_skipped(self, batch):
        events = [BatchEvent(id="e1", type="LOSS", at=ts(2), payload="{not json")]
        assert len(build(batch, events)) == 1

    def test_zero_quantity_skipped(self, batch):
        events = [BatchEvent(id="e1", type="ADJUSTMENT", at=ts(2), payload={"diff": 0})]
        assert len(build(batch, events)) == 1

    def test_non_numeric_quantity_ignored(self, batch):
        events = [BatchEvent(id="e1", type="LOSS", at=ts(2), payload={"qty": "12"})]
        assert len(build(batch, events)) == 1

    def test_unrecognized_type_skipped(self, batch):
        events = [BatchEvent(id="e1", type="NOTE", at=ts(2), payload={"qty": 5})]
        assert len(build(batch, events)) == 1

    def test_type_is_case_insensitive(self, batch):
        events = [BatchEvent(id="e1", type="loss", at=ts(2), payload={"qty": 3})]
        movements = build(batch, events)

        assert movements[1].type == "loss"
        assert movements[1].quantity == -3


class TestSigning:
    """Direction of quantities by event type."""

    def test_out_event_forced_negative(self, batch):
        events = [BatchEvent(id="e1", type="SALE", at=ts(2), payload={"qty": -12})]
        assert build(batch, events)[1].quantity == -12

    def test_in_event_forced_positive(self, batch):
        events = [BatchEvent(id="e1", type="TRANSPLANT_IN", at=ts(2), payload={"qty": -8})]
        assert build(batch, events)[1].quantity == 8

    def test_adjustment_keeps_sign(self, batch):
        events = [
            BatchEvent(id="e1", type="ADJUSTMENT", at=ts(2), payload={"diff": -6, "reason": "Recount"}),
            BatchEvent(id="e2", type="ADJUSTMENT", at=ts(3), payload={"diff": 2}),
        ]
        movements = build(batch, events)

        assert movements[1].quantity == -6
        assert movements[1].title == "Adjustment: -6 units - Recount"
        assert movements[1].destination.type == "adjustment"
        assert movements[2].title == "Adjustment: +2 units"
        assert movements[2].destination is None
        assert movements[2].running_balance == 96


class TestSuppression:
    """Creation-duplicate and full-move suppression."""

    @pytest.mark.parametrize("event_type", [
        "CREATE", "MOVE_IN", "PROPAGATE", "CHECK_IN", "CHECKIN",
        "STOCK_RECEIVED", "BATCH_ACTUALIZED", "ACTUALIZED",
    ])
    def test_creation_events_suppressed_with_initial(self, batch, event_type):
        events = [BatchEvent(id="e1", type=event_type, at=ts(1), payload={"qty": 100})]
        movements = build(batch, events)

        assert [m.type for m in movements] == ["initial"]

    def test_creation_event_kept_without_initial(self):
        planned = Batch(id="batch-5", initial_quantity=0, created_at=ts(1))
        events = [BatchEvent(id="e1", type="ACTUALIZED", at=ts(2), payload={"actualQuantity": 480})]
        movements = build(planned, events)

        assert movements[0].title == "Batch created with 480 units"
        assert movements[0].running_balance == 480

    def test_full_move_suppressed(self, batch):
        events = [BatchEvent(id="e1", type="MOVE", at=ts(2),
                             payload={"units_moved": 100, "to_location_name": "Tunnel 4"})]
        assert len(build(batch, events)) == 1

    def test_partial_move_kept(self, batch):
        events = [BatchEvent(id="e1", type="MOVE", at=ts(2),
                             payload={"units_moved": 25, "partial": True, "to_location_name": "Tunnel 4"})]
        movements = build(batch, events)

        assert movements[1].quantity == -25
        assert movements[1].title == "25 units moved out to Tunnel 4"

    def test_split_move_kept(self, batch):
        events = [BatchEvent(id="e1", type="MOVE", at=ts(2), payload={
            "units_moved": 40, "split_batch_id": "batch-7", "split_batch_number": "B-1007",
        })]
        movements = build(batch, events)

        assert movements[1].title == "40 units moved out to batch B-1007"
        assert movements[1].destination.batch_id == "batch-7"


class TestPickDedup:
    """Picked allocations versus PICKED/SALE/DISPATCH events."""

    def test_pick_event_and_picked_allocation_counted_once(self, batch, order):
        events = [BatchEvent(id="e1", type="PICKED", at=ts(2),
                             payload={"units_picked": 20, "order_item_id": "item-1"})]
        allocations = [Allocation(id="a1", quantity=20, status="picked", created_at=ts(2), order=order)]
        movements = build(batch, events, allocations)

        picks = [m for m in movements if m.quantity == -20]
        assert len(picks) == 1
        assert picks[0].id == "e1"
        assert movements[-1].running_balance == 80

    def test_numeric_order_item_ids_still_dedup(self, batch):
        numeric = OrderRef(order_id="ord-1", order_number="SO-5001", order_item_id=77)
        events = [BatchEvent(id="e1", type="PICKED", at=ts(2),
                             payload={"units_picked": 20, "order_item_id": 77})]
        allocations = [Allocation(id="a1", quantity=20, status="picked", created_at=ts(2), order=numeric)]
        movements = build(batch, events, allocations)

        assert [m.id for m in movements] == ["initial-batch-1", "e1"]
        assert movements[-1].running_balance == 80

    @pytest.mark.parametrize("event_type", ["SALE", "DISPATCH"])
    def test_dedup_applies_to_sale_and_dispatch(self, batch, order, event_type):
        events = [BatchEvent(id="e1", type=event_type, at=ts(2),
                             payload={"qty": 20, "order_item_id": "item-1"})]
        allocations = [Allocation(id="a1", quantity=20, status="picked", created_at=ts(2), order=order)]

        assert len(build(batch, events, allocations)) == 2

    def test_historical_picked_allocation_without_event(self, batch, order):
        allocations = [Allocation(id="a1", quantity=15, status="picked", created_at=ts(4), order=order)]
        movements = build(batch, (), allocations)

        assert movements[1].id == "sold-a1"
        assert movements[1].type == "picked"
        assert movements[1].quantity == -15
        assert movements[1].running_balance == 85
        assert movements[1].details == "Order #SO-5001 - Greenfield Garden Centre"
        assert movements[1].destination.order_number == "SO-5001"

    def test_pick_event_enriched_from_allocation(self, batch, order):
        events = [BatchEvent(id="e1", type="PICKED", at=ts(2),
                             payload={"units_picked": 20, "order_item_id": "item-1"})]
        allocations = [Allocation(id="a1", quantity=20, status="picked", created_at=ts(2), order=order)]
        pick = build(batch, events, allocations)[1]

        assert pick.title == "20 units sold - Order #SO-5001 (Greenfield Garden Centre)"
        assert pick.destination.type == "order"

    def test_orphaned_allocation_skipped(self, batch):
        allocations = [Allocation(id="a1", quantity=15, status="picked", created_at=ts(4), order=None)]
        assert len(build(batch, (), allocations)) == 1

    def test_other_status_skipped(self, batch, order):
        allocations = [Allocation(id="a1", quantity=5, status="short", created_at=ts(4), order=order)]
        assert len(build(batch, (), allocations)) == 1

    def test_missing_customer_name(self, batch):
        bare = OrderRef(order_id="ord-2", order_number="SO-5002")
        allocations = [Allocation(id="a1", quantity=5, status="allocated", created_at=ts(4), order=bare)]
        reserved = build(batch, (), allocations)[1]

        assert reserved.destination.customer_name == "Unknown Customer"


class TestOrderingAndBalance:
    """Timestamp ordering and balance conservation."""

    def test_allocations_interleaved_by_timestamp(self, batch, order):
        events = [
            BatchEvent(id="e1", type="LOSS", at=ts(2), payload={"qty": 5}),
            BatchEvent(id="e2", type="LOSS", at=ts(6), payload={"qty": 5}),
        ]
        allocations = [Allocation(id="a1", quantity=10, status="picked", created_at=ts(4), order=order)]
        movements = build(batch, events, allocations)

        assert [m.id for m in movements] == ["initial-batch-1", "e1", "sold-a1", "e2"]
        assert [m.running_balance for m in movements] == [100, 95, 85, 80]

    def test_timestamps_monotonic(self, batch, order):
        events = [
            BatchEvent(id="e2", type="LOSS", at=ts(9), payload={"qty": 1}),
            BatchEvent(id="e1", type="LOSS", at=ts(3), payload={"qty": 1}),
        ]
        allocations = [Allocation(id="a1", quantity=4, status="allocated", created_at=ts(5), order=order)]
        movements = build(batch, events, allocations)

        assert all(a.at <= b.at for a, b in zip(movements, movements[1:]))

    def test_balance_conservation(self, batch, order):
        events = [
            BatchEvent(id="e1", type="TRANSPLANT_OUT", at=ts(2), payload={"qty": 12}),
            BatchEvent(id="e2", type="ADJUSTMENT", at=ts(3), payload={"diff": 3}),
            BatchEvent(id="e3", type="DUMP", at=ts(4), payload={"units_dumped": 6}),
        ]
        allocations = [Allocation(id="a1", quantity=9, status="allocated", created_at=ts(5), order=order)]
        ledger = get_stock_movements_with_details(batch.id, events, allocations, batch, now=NOW)

        settled = [m for m in ledger.movements if m.type != "allocated"]
        expected = batch.initial_quantity + sum(m.quantity for m in settled if m.type != "initial")
        assert settled[-1].running_balance == expected == 85
        assert ledger.summary.current_balance == settled[-1].running_balance

    def test_reservations_never_have_balance(self, batch, order):
        allocations = [
            Allocation(id="a1", quantity=4, status="allocated", created_at=ts(5), order=order),
            Allocation(id="a2", quantity=6, status="allocated", created_at=ts(6), order=order),
        ]
        movements = build(batch, (), allocations)

        reserved = [m for m in movements if m.type == "allocated"]
        assert len(reserved) == 2
        assert all(m.running_balance is None for m in reserved)
        assert reserved[0].title == "4 units reserved"

    def test_no_creation_types_with_initial(self, batch):
        events = [
            BatchEvent(id="e1", type="CREATE", at=ts(1), payload={"qty": 100}),
            BatchEvent(id="e2", type="STOCK_RECEIVED", at=ts(2), payload={"units_received": 20}),
        ]
        creation = {"create", "move_in", "propagate", "check_in", "checkin",
                    "stock_received", "batch_actualized", "actualized"}
        assert not any(m.type in creation for m in build(batch, events))


class TestDestinations:
    """Per-type titles and destination tagging."""

    def test_checkin_supplier(self):
        fresh = Batch(id="batch-6", initial_quantity=0)
        events = [BatchEvent(id="e1", type="CHECKIN", at=ts(2),
                             payload={"qty": 1040, "supplier_name": "Kernock Plants"})]
        movement = build(fresh, events)[0]

        assert movement.title == "Checked in 1,040 units from Kernock Plants"
        assert movement.destination.supplier_name == "Kernock Plants"

    def test_transplant_in_from_batch(self, batch):
        events = [BatchEvent(id="e1", type="TRANSPLANT_IN", at=ts(2), payload={
            "qty": 50, "from_batch_id": "batch-0", "from_batch_number": "B-0999",
        })]
        movement = build(batch, events)[1]

        assert movement.title == "50 units transplanted in from batch B-0999"
        assert movement.destination.batch_id == "batch-0"

    def test_transplant_out_uses_child_lookup(self, batch):
        events = [BatchEvent(id="e1", type="TRANSPLANT_OUT", at=ts(2),
                             payload={"qty": 30, "to_batch_id": "batch-8"})]
        children = [ChildBatch(id="batch-8", batch_number="B-1008")]
        movement = build(batch, events, (), children)[1]

        assert movement.title == "30 units transplanted out to batch B-1008"
        assert movement.destination.batch_number == "B-1008"

    def test_consumed_by_child(self, batch):
        events = [BatchEvent(id="e1", type="CONSUMED", at=ts(2),
                             payload={"consumedQuantity": 60, "consumedByBatch": "batch-8"})]
        children = [ChildBatch(id="batch-8", batch_number="B-1008")]
        movement = build(batch, events, (), children)[1]

        assert movement.title == "60 units transplanted to batch B-1008"

    def test_consumed_unknown_child(self, batch):
        events = [BatchEvent(id="e1", type="CONSUMED", at=ts(2),
                             payload={"consumedQuantity": 60, "consumedByBatch": "batch-x"})]
        movement = build(batch, events)[1]

        assert movement.title == "60 units consumed (transplant actualized)"
        assert movement.destination.batch_id == "batch-x"
        assert movement.destination.batch_number is None

    def test_sale_with_payload_order(self, batch):
        events = [BatchEvent(id="e1", type="DISPATCH", at=ts(2), payload={
            "qty": 12, "order_id": "ord-3", "order_number": "SO-5003", "customer_name": "Hillside Nurseries",
        })]
        movement = build(batch, events)[1]

        assert movement.title == "12 units sold - Order #SO-5003 (Hillside Nurseries)"
        assert movement.destination.order_id == "ord-3"

    def test_loss_default_reason(self, batch):
        events = [BatchEvent(id="e1", type="LOSS", at=ts(2), payload={"qty": 2})]
        movement = build(batch, events)[1]

        assert movement.title == "2 units lost: Unknown"
        assert movement.destination.loss_reason == "Unknown"

    def test_details_and_user(self, batch):
        events = [BatchEvent(id="e1", type="LOSS", at=ts(2), by_user_id="u-1",
                             payload={"qty": 2, "notes": "Frost damage", "by_user": "Aoife"})]
        movement = build(batch, events)[1]

        assert movement.details == "Frost damage"
        assert movement.user_id == "u-1"
        assert movement.user_name == "Aoife"


class TestSummary:
    """Summary totals by destination."""

    def test_out_breakdown(self, batch, order):
        events = [
            BatchEvent(id="e1", type="TRANSPLANT_OUT", at=ts(2),
                       payload={"qty": 10, "to_batch_number": "B-1008"}),
            BatchEvent(id="e2", type="LOSS", at=ts(3), payload={"qty": 5, "reason": "Vine weevil"}),
        ]
        allocations = [
            Allocation(id="a1", quantity=20, status="picked", created_at=ts(4), order=order),
            Allocation(id="a2", quantity=7, status="allocated", created_at=ts(5), order=order),
        ]
        summary = get_stock_movements_with_details(
            batch.id, events, allocations, batch, now=NOW
        ).summary

        assert summary.total_in == 100
        assert summary.total_out == 35
        assert summary.sold_to_orders == 20
        assert summary.transplanted_out == 10
        assert summary.losses == 5
        assert summary.allocated == 7
        assert summary.current_balance == 65

    def test_to_dict_shape(self, batch):
        ledger = get_stock_movements_with_details(batch.id, [], [], batch, now=NOW)
        data = ledger.to_dict()

        assert data["summary"]["currentBalance"] == 100
        assert data["movements"][0]["runningBalance"] == 100
        assert data["movements"][0]["batchId"] == "batch-1"
        assert data["movements"][0]["destination"] is None


class TestInvalidInput:
    """Batch id validation."""

    @pytest.mark.parametrize("bad_id", ["", "has space", "../etc", None, 42, "x" * 129])
    def test_invalid_batch_id(self, bad_id):
        with pytest.raises(InvalidBatchIdError):
            build_stock_movements(bad_id, [], [], None)

    def test_invalid_id_is_value_error(self):
        with pytest.raises(ValueError, match="Invalid batch ID"):
            get_stock_movements_with_details("bad id", [], [])


class TestFilterMovements:
    """Search and type filtering."""

    def test_filter(self, batch, order):
        events = [
            BatchEvent(id="e1", type="LOSS", at=ts(2), payload={"qty": 5, "reason": "Frost"}),
            BatchEvent(id="e2", type="TRANSPLANT_OUT", at=ts(3),
                       payload={"qty": 10, "to_batch_number": "B-1008"}),
        ]
        allocations = [Allocation(id="a1", quantity=3, status="allocated", created_at=ts(4), order=order)]
        movements = build(batch, events, allocations)

        assert [m.id for m in filter_movements(movements, query="frost")] == ["e1"]
        assert [m.id for m in filter_movements(movements, query="b-1008")] == ["e2"]
        assert [m.id for m in filter_movements(movements, query="greenfield")] == ["alloc-a1"]
        assert [m.id for m in filter_movements(movements, movement_type="loss")] == ["e1"]
        assert len(filter_movements(movements)) == 4
