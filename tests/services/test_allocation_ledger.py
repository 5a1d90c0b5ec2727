"""AllocationLedger: balances, non-negativity, conservation."""

from uuid import uuid4

import pytest

from inventory_kernel.exceptions import (
    ConservationViolationError,
    InsufficientQuantityError,
    InvalidStockItemError,
    StockItemNotFoundError,
)
from inventory_kernel.models.allocation import Allocation
from inventory_kernel.services.allocation_ledger import AllocationLedger
from inventory_kernel.services.catalog_service import CatalogService


@pytest.fixture
def ledger(session, clock):
    return AllocationLedger(session, clock)


@pytest.fixture
def item(session, clock):
    return CatalogService(session, clock).register_item(uuid4(), "Gauze", 50)


class TestRegistration:

    def test_full_quantity_starts_in_central_pool(self, ledger, item):
        assert ledger.get_balance(item.item_id, None) == 50
        assert ledger.verify_conservation(item.item_id) == 50

    def test_zero_quantity_item_has_no_rows(self, session, clock, ledger):
        empty = CatalogService(session, clock).register_item(uuid4(), "Empty", 0)
        assert session.query(Allocation).filter_by(item_id=empty.item_id).count() == 0
        assert ledger.verify_conservation(empty.item_id) == 0

    @pytest.mark.parametrize("name,quantity", [("", 1), ("Gloves", -1), ("Gloves", 2.5)])
    def test_rejects_malformed_items(self, session, clock, name, quantity):
        with pytest.raises(InvalidStockItemError):
            CatalogService(session, clock).register_item(uuid4(), name, quantity)


class TestAdjust:

    def test_missing_row_reads_zero(self, ledger, item):
        assert ledger.get_balance(item.item_id, uuid4()) == 0

    def test_paired_adjustment_is_balanced(self, ledger, item):
        holder = uuid4()
        ledger.lock_item(item.item_id)
        assert ledger.adjust(item.item_id, None, -20) == 30
        assert ledger.adjust(item.item_id, holder, 20) == 20
        ledger.assert_balanced()
        assert ledger.get_balance(item.item_id, holder) == 20

    def test_negative_balance_rejected_without_write(self, ledger, item):
        holder = uuid4()
        with pytest.raises(InsufficientQuantityError) as exc_info:
            ledger.adjust(item.item_id, holder, -1)
        assert exc_info.value.available == 0
        assert exc_info.value.requested == 1
        assert ledger.get_balance(item.item_id, holder) == 0

    def test_zero_balance_row_is_pruned(self, session, ledger, item):
        ledger.adjust(item.item_id, None, -50)
        ledger.adjust(item.item_id, uuid4(), 50)
        rows = session.query(Allocation).filter_by(item_id=item.item_id).all()
        assert [r.holder_id is None for r in rows] == [False]

    def test_zero_rows_kept_when_pruning_disabled(self, session, clock, item):
        ledger = AllocationLedger(session, clock, prune_zero=False)
        ledger.adjust(item.item_id, None, -50)
        ledger.adjust(item.item_id, uuid4(), 50)
        central = session.query(Allocation).filter(
            Allocation.item_id == item.item_id, Allocation.holder_id.is_(None),
        ).one()
        assert central.quantity == 0

    def test_unpaired_adjustment_is_a_conservation_violation(self, ledger, item):
        ledger.adjust(item.item_id, uuid4(), 5)
        with pytest.raises(ConservationViolationError) as exc_info:
            ledger.assert_balanced()
        assert exc_info.value.expected == 50
        assert exc_info.value.actual == 55


class TestLocking:

    def test_lock_unknown_item(self, ledger):
        with pytest.raises(StockItemNotFoundError):
            ledger.lock_item(uuid4())

    def test_verify_unknown_item(self, ledger):
        with pytest.raises(StockItemNotFoundError):
            ledger.verify_conservation(uuid4())
