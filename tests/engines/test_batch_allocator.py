"""
Tests for BatchAllocator and CostMethod.

Tests cover:
- FIFO / LIFO ordering and the documented 15-unit examples
- Receipt-sequence tie breaking on equal received dates
- Shortfall reporting without raising
- Eligibility (inactive and empty batches are skipped)
- CostMethod parsing, defaulting and strict mode
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from inventory_engines.allocation import BatchAllocation, BatchAllocator, CostMethod
from inventory_kernel.domain.dtos import StockBatch
from inventory_kernel.exceptions import InvalidCostMethodError

PRODUCT = uuid4()


def make_batch(
    available: int,
    cost: str,
    received: date,
    sequence: int = 1,
    quantity: int | None = None,
    is_active: bool = True,
) -> StockBatch:
    return StockBatch(
        id=uuid4(),
        product_id=PRODUCT,
        quantity=quantity if quantity is not None else available,
        available_quantity=available,
        cost_price=Decimal(cost),
        received_date=received,
        receipt_sequence=sequence,
        is_active=is_active,
    )


@pytest.fixture
def allocator() -> BatchAllocator:
    return BatchAllocator()


@pytest.fixture
def b1() -> StockBatch:
    return make_batch(10, "5.00", date(2024, 1, 1), sequence=1)


@pytest.fixture
def b2() -> StockBatch:
    return make_batch(10, "7.00", date(2024, 1, 5), sequence=2)


class TestOrdering:

    def test_fifo_takes_oldest_first(self, allocator, b1, b2):
        plan = allocator.allocate(batches=[b2, b1], quantity=15, method=CostMethod.FIFO)

        assert plan.as_pairs() == [(b1, 10), (b2, 5)]
        assert plan.total_cost == Decimal("85.00")

    def test_lifo_takes_newest_first(self, allocator, b1, b2):
        plan = allocator.allocate(batches=[b1, b2], quantity=15, method=CostMethod.LIFO)

        assert plan.as_pairs() == [(b2, 10), (b1, 5)]
        assert plan.total_cost == Decimal("95.00")

    def test_same_day_receipts_ordered_by_sequence(self, allocator):
        day = date(2024, 3, 1)
        first = make_batch(4, "1.00", day, sequence=1)
        second = make_batch(4, "2.00", day, sequence=2)

        fifo = allocator.allocate(batches=[second, first], quantity=5, method=CostMethod.FIFO)
        lifo = allocator.allocate(batches=[first, second], quantity=5, method=CostMethod.LIFO)

        assert fifo.as_pairs() == [(first, 4), (second, 1)]
        assert lifo.as_pairs() == [(second, 4), (first, 1)]

    def test_allocation_is_deterministic_for_a_snapshot(self, allocator, b1, b2):
        runs = {
            tuple(allocator.allocate(batches=batches, quantity=12, method=CostMethod.FIFO).as_pairs())
            for batches in ([b1, b2], [b2, b1])
        }
        assert len(runs) == 1

    def test_exact_cover_stops_at_first_batch(self, allocator, b1, b2):
        plan = allocator.allocate(batches=[b1, b2], quantity=10, method=CostMethod.FIFO)

        assert plan.as_pairs() == [(b1, 10)]
        assert plan.is_complete


class TestEligibilityAndShortfall:

    def test_inactive_and_empty_batches_skipped(self, allocator, b1):
        inactive = make_batch(10, "1.00", date(2023, 1, 1), is_active=False)
        empty = make_batch(0, "1.00", date(2023, 6, 1), quantity=10)

        plan = allocator.allocate(batches=[inactive, empty, b1], quantity=3, method=CostMethod.FIFO)

        assert plan.as_pairs() == [(b1, 3)]
        assert plan.available_total == 10

    def test_shortfall_reported_not_raised(self, allocator, b1, b2):
        plan = allocator.allocate(batches=[b1, b2], quantity=25, method=CostMethod.FIFO)

        assert not plan.is_complete
        assert plan.allocated_quantity == 20
        assert plan.shortfall == 5
        assert plan.available_total == 20

    def test_no_batches_means_full_shortfall(self, allocator):
        plan = allocator.allocate(batches=[], quantity=1, method=CostMethod.LIFO)

        assert plan.allocations == ()
        assert plan.shortfall == 1

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_non_positive_quantity_rejected(self, allocator, b1, quantity):
        with pytest.raises(ValueError):
            allocator.allocate(batches=[b1], quantity=quantity, method=CostMethod.FIFO)

    def test_allocation_cannot_exceed_batch(self, b1):
        with pytest.raises(ValueError):
            BatchAllocation(batch=b1, quantity=11)


class TestCostMethodParse:

    @pytest.mark.parametrize(
        "value, expected",
        [
            (CostMethod.LIFO, CostMethod.LIFO),
            ("FIFO", CostMethod.FIFO),
            ("lifo", CostMethod.LIFO),
            (" Lifo ", CostMethod.LIFO),
        ],
    )
    def test_known_values(self, value, expected):
        assert CostMethod.parse(value) is expected

    def test_unknown_value_defaults_to_fifo_and_logs(self, captured_logs):
        assert CostMethod.parse("AVERAGE") is CostMethod.FIFO

        warnings = [r for r in captured_logs() if r["message"] == "cost_method_defaulted"]
        assert len(warnings) == 1
        assert warnings[0]["requested_method"] == "AVERAGE"
        assert warnings[0]["resolved_method"] == "FIFO"

    def test_unknown_value_rejected_in_strict_mode(self):
        with pytest.raises(InvalidCostMethodError) as exc_info:
            CostMethod.parse("FEFO", strict=True)

        assert exc_info.value.code == "INVALID_COST_METHOD"
        assert exc_info.value.method == "FEFO"

    def test_none_defaults_to_fifo(self):
        assert CostMethod.parse(None) is CostMethod.FIFO
