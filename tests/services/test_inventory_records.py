"""
Tests for InventoryService record operations.

Tests cover:
- create_inventory validation, NotFound, AlreadyExists idempotence
- Opening-balance movement
- adjust_stock / update_stock (admin override) and their movements
- reserve / release round trip and clamping
- Low/zero stock queries and reorder levels
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from inventory_kernel.domain.dtos import MovementType, ReferenceType
from inventory_kernel.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    InventoryAlreadyExistsError,
    InventoryNotFoundError,
    NotFoundError,
    ProductNotFoundError,
)
from inventory_services.inventory_service import SYSTEM_ACTOR_ID


class TestCreateInventory:

    def test_create_returns_record(self, inventory_service, product_id):
        record = inventory_service.create_inventory(product_id, 0, 10, 100)

        assert record.product_id == product_id
        assert record.quantity == 0
        assert record.reserved_quantity == 0
        assert (record.reorder_level, record.max_level) == (10, 100)

    @pytest.mark.parametrize(
        "args, field",
        [
            ((-1, 0, 0), "initial_quantity"),
            ((0, -1, 0), "reorder_level"),
            ((0, 0, -1), "max_level"),
        ],
    )
    def test_negative_inputs_rejected(self, inventory_service, product_id, args, field):
        with pytest.raises(InvalidQuantityError) as exc_info:
            inventory_service.create_inventory(product_id, *args)

        assert exc_info.value.field == field
        with pytest.raises(InventoryNotFoundError):
            inventory_service.get_inventory(product_id)

    def test_unknown_product_is_not_found(self, inventory_service):
        with pytest.raises(ProductNotFoundError) as exc_info:
            inventory_service.create_inventory(uuid4(), 0, 0, 0)

        assert isinstance(exc_info.value, NotFoundError)
        assert exc_info.value.code == "NOT_FOUND"

    def test_second_create_fails_and_leaves_record_untouched(
        self, inventory_service, product_id, test_actor_id
    ):
        first = inventory_service.create_inventory(product_id, 7, 3, 50, actor_id=test_actor_id)

        with pytest.raises(InventoryAlreadyExistsError) as exc_info:
            inventory_service.create_inventory(product_id, 99, 1, 1)

        assert exc_info.value.code == "ALREADY_EXISTS"
        current = inventory_service.get_inventory(product_id)
        assert (current.quantity, current.reorder_level, current.max_level) == (7, 3, 50)
        assert current.id == first.id
        assert len(inventory_service.get_movements_by_product(product_id)) == 1

    def test_initial_quantity_written_as_opening_balance(
        self, inventory_service, product_id, test_actor_id
    ):
        inventory_service.create_inventory(product_id, 12, 0, 0, actor_id=test_actor_id)

        [movement] = inventory_service.get_movements_by_product(product_id)
        assert movement.movement_type is MovementType.IN
        assert movement.quantity == 12
        assert movement.reference_type == ReferenceType.OPENING_BALANCE.value
        assert movement.actor_id == test_actor_id
        assert movement.batch_id is None

    def test_zero_initial_quantity_writes_no_movement(self, inventory_service, product_id):
        inventory_service.create_inventory(product_id)

        assert inventory_service.get_movements_by_product(product_id) == []

    def test_system_actor_used_when_none_given(self, inventory_service, product_id):
        inventory_service.create_inventory(product_id, 1)

        [movement] = inventory_service.get_movements_by_product(product_id)
        assert movement.actor_id == SYSTEM_ACTOR_ID


class TestAdjustStock:

    def test_positive_adjustment_writes_in_movement(
        self, inventory_service, product_id, test_actor_id
    ):
        inventory_service.create_inventory(product_id, 5)

        change = inventory_service.adjust_stock(product_id, 3, test_actor_id, "found stock")

        assert change.previous_quantity == 5
        assert change.record.quantity == 8
        assert change.delta == 3
        assert change.movement.movement_type is MovementType.IN
        assert change.movement.quantity == 3
        assert change.movement.notes == "found stock"

    def test_negative_adjustment_writes_out_movement(
        self, inventory_service, product_id, test_actor_id
    ):
        inventory_service.create_inventory(product_id, 5)

        change = inventory_service.adjust_stock(product_id, -5, test_actor_id)

        assert change.record.quantity == 0
        assert change.movement.movement_type is MovementType.OUT
        assert change.movement.quantity == 5

    def test_zero_adjustment_is_noop(self, inventory_service, product_id, test_actor_id):
        inventory_service.create_inventory(product_id, 5)

        change = inventory_service.adjust_stock(product_id, 0, test_actor_id)

        assert change.movement is None
        assert len(inventory_service.get_movements_by_product(product_id)) == 1

    def test_adjusting_below_zero_fails(self, inventory_service, product_id, test_actor_id):
        inventory_service.create_inventory(product_id, 5)

        with pytest.raises(InsufficientStockError) as exc_info:
            inventory_service.adjust_stock(product_id, -6, test_actor_id)

        assert exc_info.value.requested == 6
        assert exc_info.value.available == 5
        assert inventory_service.get_inventory(product_id).quantity == 5

    def test_adjusting_below_reserved_fails(self, inventory_service, product_id, test_actor_id):
        inventory_service.create_inventory(product_id, 10)
        inventory_service.reserve_stock(product_id, 8)

        with pytest.raises(InsufficientStockError):
            inventory_service.adjust_stock(product_id, -3, test_actor_id)

        record = inventory_service.get_inventory(product_id)
        assert (record.quantity, record.reserved_quantity) == (10, 8)

    def test_missing_record_is_not_found(self, inventory_service, test_actor_id):
        with pytest.raises(InventoryNotFoundError):
            inventory_service.adjust_stock(uuid4(), 1, test_actor_id)

    def test_adjustment_priced_at_average_cost(
        self, inventory_service, two_batches, product_id, test_actor_id
    ):
        change = inventory_service.adjust_stock(product_id, -2, test_actor_id)

        assert change.movement.unit_cost == Decimal("6.00")
        assert change.movement.total_cost == Decimal("12.00")


class TestUpdateStock:

    def test_sets_absolute_quantity(self, inventory_service, product_id, test_actor_id):
        inventory_service.create_inventory(product_id, 10)

        change = inventory_service.update_stock(product_id, 4, test_actor_id, "cycle count")

        assert change.record.quantity == 4
        assert change.movement.movement_type is MovementType.OUT
        assert change.movement.quantity == 6
        assert change.movement.reference_type == ReferenceType.STOCK_UPDATE.value

    def test_same_quantity_writes_nothing(self, inventory_service, product_id, test_actor_id):
        inventory_service.create_inventory(product_id, 10)

        change = inventory_service.update_stock(product_id, 10, test_actor_id)

        assert change.movement is None

    def test_negative_target_rejected(self, inventory_service, product_id, test_actor_id):
        inventory_service.create_inventory(product_id, 10)

        with pytest.raises(InvalidQuantityError):
            inventory_service.update_stock(product_id, -1, test_actor_id)

    def test_target_below_reserved_rejected(self, inventory_service, product_id, test_actor_id):
        inventory_service.create_inventory(product_id, 10)
        inventory_service.reserve_stock(product_id, 6)

        with pytest.raises(InsufficientStockError):
            inventory_service.update_stock(product_id, 5, test_actor_id)

    def test_missing_record_is_not_found(self, inventory_service, test_actor_id):
        with pytest.raises(InventoryNotFoundError):
            inventory_service.update_stock(uuid4(), 3, test_actor_id)

    def test_override_is_logged(self, inventory_service, product_id, test_actor_id, captured_logs):
        inventory_service.create_inventory(product_id, 10)
        inventory_service.update_stock(product_id, 12, test_actor_id)

        [entry] = [r for r in captured_logs() if r["message"] == "stock_overridden"]
        assert entry["level"] == "WARNING"
        assert entry["admin_override"] is True
        assert entry["previous_quantity"] == 10


class TestReservations:

    def test_reserve_then_release_restores_reserved(self, inventory_service, product_id):
        inventory_service.create_inventory(product_id, 10)
        inventory_service.reserve_stock(product_id, 2)
        before = inventory_service.get_inventory(product_id).reserved_quantity

        inventory_service.reserve_stock(product_id, 5)
        inventory_service.release_reserved_stock(product_id, 5)

        assert inventory_service.get_inventory(product_id).reserved_quantity == before

    def test_reserve_reduces_available(self, inventory_service, product_id):
        inventory_service.create_inventory(product_id, 10)

        record = inventory_service.reserve_stock(product_id, 4)

        assert record.reserved_quantity == 4
        assert record.available_quantity == 6

    def test_reserve_more_than_available_fails(self, inventory_service, product_id):
        inventory_service.create_inventory(product_id, 10)
        inventory_service.reserve_stock(product_id, 7)

        with pytest.raises(InsufficientStockError) as exc_info:
            inventory_service.reserve_stock(product_id, 4)

        assert exc_info.value.available == 3
        assert inventory_service.get_inventory(product_id).reserved_quantity == 7

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_non_positive_quantities_rejected(self, inventory_service, product_id, quantity):
        inventory_service.create_inventory(product_id, 10)

        with pytest.raises(InvalidQuantityError):
            inventory_service.reserve_stock(product_id, quantity)
        with pytest.raises(InvalidQuantityError):
            inventory_service.release_reserved_stock(product_id, quantity)

    def test_release_is_clamped_at_zero(self, inventory_service, product_id, captured_logs):
        inventory_service.create_inventory(product_id, 10)
        inventory_service.reserve_stock(product_id, 3)

        record = inventory_service.release_reserved_stock(product_id, 5)

        assert record.reserved_quantity == 0
        assert any(r["message"] == "reservation_release_clamped" for r in captured_logs())

    def test_reservations_write_no_movements(self, inventory_service, product_id):
        inventory_service.create_inventory(product_id, 10)
        inventory_service.reserve_stock(product_id, 3)
        inventory_service.release_reserved_stock(product_id, 3)

        assert len(inventory_service.get_movements_by_product(product_id)) == 1


class TestStockLevelQueries:

    def test_low_and_zero_stock(self, inventory_service, make_product):
        low, ok, empty, no_reorder = (make_product() for _ in range(4))
        inventory_service.create_inventory(low, 3, 5, 0)
        inventory_service.create_inventory(ok, 30, 5, 0)
        inventory_service.create_inventory(empty, 0, 5, 0)
        inventory_service.create_inventory(no_reorder, 1, 0, 0)

        low_ids = {r.product_id for r in inventory_service.get_low_stock()}
        zero_ids = {r.product_id for r in inventory_service.get_zero_stock()}

        assert low_ids == {low, empty}
        assert zero_ids == {empty}

    def test_total_stock_defaults_to_zero(self, inventory_service, product_id):
        assert inventory_service.get_total_stock(product_id) == 0
        inventory_service.create_inventory(product_id, 9)
        assert inventory_service.get_total_stock(product_id) == 9

    def test_update_reorder_levels(self, inventory_service, product_id):
        inventory_service.create_inventory(product_id, 1, 0, 0)

        record = inventory_service.update_reorder_levels(product_id, 4, 40)

        assert (record.reorder_level, record.max_level) == (4, 40)
        assert record.is_low_stock

    def test_update_reorder_levels_validation(self, inventory_service, product_id):
        with pytest.raises(InvalidQuantityError):
            inventory_service.update_reorder_levels(product_id, -1, 0)
        with pytest.raises(InventoryNotFoundError):
            inventory_service.update_reorder_levels(product_id, 1, 1)
