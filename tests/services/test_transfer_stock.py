"""Direct transfers through the orchestrator."""

from uuid import uuid4

import pytest

from inventory_kernel.domain.events import DomainEventType
from inventory_kernel.exceptions import (
    HolderNotFoundError,
    InsufficientQuantityError,
    InvalidTransferError,
    StockItemNotFoundError,
    UnauthorizedError,
)


class TestTransferStock:

    def test_allocation_from_central_pool(self, orchestrator, actors, stocked_item):
        item_id = stocked_item.item_id
        movement = orchestrator.transfer_stock(
            item_id, None, actors.keeper, 30, actors.keeper, notes="restock shelf",
        )

        assert movement.kind == "allocation"
        assert movement.sequence == 1
        assert (movement.from_holder_id, movement.to_holder_id) == (None, actors.keeper)
        assert orchestrator.get_balance(item_id, None) == 70
        assert orchestrator.get_balance(item_id, actors.keeper) == 30
        assert orchestrator.verify_conservation(item_id) == 100

    def test_round_trip_restores_balances(self, orchestrator, actors, stocked_item):
        item_id = stocked_item.item_id
        orchestrator.transfer_stock(item_id, None, actors.keeper, 40, actors.keeper)
        before = (
            orchestrator.get_balance(item_id, actors.keeper),
            orchestrator.get_balance(item_id, actors.keeper_2),
        )

        orchestrator.transfer_stock(item_id, actors.keeper, actors.keeper_2, 15, actors.keeper)
        orchestrator.transfer_stock(item_id, actors.keeper_2, actors.keeper, 15, actors.keeper_2)

        after = (
            orchestrator.get_balance(item_id, actors.keeper),
            orchestrator.get_balance(item_id, actors.keeper_2),
        )
        assert after == before
        movements = orchestrator.list_movements(item_id)
        assert [m.kind for m in movements] == ["allocation", "share", "share"]
        assert [m.sequence for m in movements] == [1, 2, 3]

    def test_return_to_central_pool(self, orchestrator, actors, stocked_item):
        item_id = stocked_item.item_id
        orchestrator.transfer_stock(item_id, None, actors.keeper, 10, actors.keeper)
        movement = orchestrator.transfer_stock(item_id, actors.keeper, None, 10, actors.keeper)

        assert movement.kind == "return"
        assert orchestrator.get_balance(item_id, None) == 100
        assert orchestrator.list_allocations(holder_id=actors.keeper) == []

    def test_insufficient_quantity_changes_nothing(self, orchestrator, actors, stocked_item):
        item_id = stocked_item.item_id
        with pytest.raises(InsufficientQuantityError) as exc_info:
            orchestrator.transfer_stock(item_id, None, actors.keeper, 101, actors.keeper)

        assert exc_info.value.available == 100
        assert exc_info.value.requested == 101
        assert orchestrator.get_balance(item_id, None) == 100
        assert orchestrator.get_balance(item_id, actors.keeper) == 0
        assert orchestrator.list_movements(item_id) == []

    @pytest.mark.parametrize("quantity", [0, -5, 2.5, True])
    def test_invalid_quantity(self, orchestrator, actors, stocked_item, quantity):
        with pytest.raises(InvalidTransferError):
            orchestrator.transfer_stock(
                stocked_item.item_id, None, actors.keeper, quantity, actors.keeper,
            )

    def test_same_source_and_destination(self, orchestrator, actors, stocked_item):
        with pytest.raises(InvalidTransferError):
            orchestrator.transfer_stock(
                stocked_item.item_id, actors.keeper, actors.keeper, 1, actors.keeper,
            )

    def test_actor_without_move_capability(self, orchestrator, actors, stocked_item):
        with pytest.raises(UnauthorizedError):
            orchestrator.transfer_stock(
                stocked_item.item_id, None, actors.keeper, 1, actors.marketer,
            )

    def test_unknown_holder(self, orchestrator, actors, stocked_item):
        with pytest.raises(HolderNotFoundError):
            orchestrator.transfer_stock(stocked_item.item_id, None, uuid4(), 1, actors.keeper)

    def test_unknown_item(self, orchestrator, actors):
        with pytest.raises(StockItemNotFoundError):
            orchestrator.transfer_stock(uuid4(), None, actors.keeper, 1, actors.keeper)

    def test_event_published_after_commit(self, orchestrator, actors, stocked_item, event_bus):
        movement = orchestrator.transfer_stock(
            stocked_item.item_id, None, actors.keeper, 5, actors.keeper,
        )
        events = event_bus.of_type(DomainEventType.STOCK_TRANSFERRED)
        assert len(events) == 1
        assert events[0].payload["movement_id"] == str(movement.movement_id)
        assert events[0].item_id == stocked_item.item_id

    def test_failed_transfer_publishes_nothing(self, orchestrator, actors, stocked_item, event_bus):
        with pytest.raises(InsufficientQuantityError):
            orchestrator.transfer_stock(stocked_item.item_id, None, actors.keeper, 500, actors.keeper)
        assert event_bus.events == []

    def test_publisher_failure_does_not_undo_transfer(self, orchestrator, actors, stocked_item, event_bus):
        def explode(event):
            raise RuntimeError("notification channel down")

        event_bus.subscribe(explode)
        orchestrator.transfer_stock(stocked_item.item_id, None, actors.keeper, 5, actors.keeper)
        assert orchestrator.get_balance(stocked_item.item_id, actors.keeper) == 5


class TestReads:

    def test_get_stock_item(self, orchestrator, stocked_item):
        record = orchestrator.get_stock_item(stocked_item.item_id)
        assert record.name == "Amoxicillin 500mg"
        assert record.quantity == 100

    def test_get_stock_item_unknown(self, orchestrator):
        with pytest.raises(StockItemNotFoundError):
            orchestrator.get_stock_item(uuid4())

    def test_get_balance_unknown_holder(self, orchestrator, stocked_item):
        with pytest.raises(HolderNotFoundError):
            orchestrator.get_balance(stocked_item.item_id, uuid4())

    def test_list_allocations_filters(self, orchestrator, actors, stocked_item):
        other = orchestrator.register_stock_item(actors.keeper, "Bandage", 10)
        orchestrator.transfer_stock(stocked_item.item_id, None, actors.keeper, 3, actors.keeper)
        orchestrator.transfer_stock(other.item_id, None, actors.keeper, 4, actors.keeper)

        mine = orchestrator.list_allocations(holder_id=actors.keeper)
        assert sorted(b.quantity for b in mine) == [3, 4]
        per_item = orchestrator.list_allocations(item_id=other.item_id)
        assert {(b.holder_id, b.quantity) for b in per_item} == {
            (None, 6), (actors.keeper, 4),
        }

    def test_list_movements_across_items(self, orchestrator, actors, stocked_item, clock):
        other = orchestrator.register_stock_item(actors.keeper, "Bandage", 10)
        orchestrator.transfer_stock(stocked_item.item_id, None, actors.keeper, 1, actors.keeper)
        clock.tick()
        orchestrator.transfer_stock(other.item_id, None, actors.keeper, 1, actors.keeper)

        movements = orchestrator.list_movements()
        assert [m.item_id for m in movements] == [stocked_item.item_id, other.item_id]
