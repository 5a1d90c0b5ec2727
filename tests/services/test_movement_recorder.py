"""MovementRecorder: append-only, per-item sequence, monotonic moved_at."""

from datetime import timedelta
from uuid import uuid4

import pytest

from inventory_kernel.exceptions import ImmutabilityViolationError, InvalidTransferError
from inventory_kernel.models.movement import Movement, MovementKind
from inventory_kernel.services.catalog_service import CatalogService
from inventory_kernel.services.movement_recorder import MovementRecorder


@pytest.fixture
def item(session, clock):
    return CatalogService(session, clock).register_item(uuid4(), "Syringe", 10)


@pytest.fixture
def recorder(session, clock):
    return MovementRecorder(session, clock)


class TestMovementKind:

    def test_classify(self):
        a, b = uuid4(), uuid4()
        assert MovementKind.classify(None, a) == MovementKind.ALLOCATION
        assert MovementKind.classify(a, None) == MovementKind.RETURN
        assert MovementKind.classify(a, b) == MovementKind.SHARE


class TestRecord:

    def test_sequence_is_per_item_and_monotonic(self, session, clock, recorder, item):
        other = CatalogService(session, clock).register_item(uuid4(), "Other", 5)
        holder, actor = uuid4(), uuid4()
        first = recorder.record(item.item_id, None, holder, 1, actor)
        recorder.record(other.item_id, None, holder, 1, actor)
        second = recorder.record(item.item_id, holder, None, 1, actor)
        assert (first.sequence, second.sequence) == (1, 2)
        assert second.kind == MovementKind.RETURN.value

    def test_moved_at_never_goes_backwards(self, clock, recorder, item):
        holder, actor = uuid4(), uuid4()
        first = recorder.record(item.item_id, None, holder, 1, actor)
        clock.set_time(clock.now() - timedelta(hours=1))
        second = recorder.record(item.item_id, None, holder, 1, actor)
        assert second.moved_at >= first.moved_at

    def test_rejects_central_to_central(self, recorder, item):
        with pytest.raises(InvalidTransferError):
            recorder.record(item.item_id, None, None, 1, uuid4())

    def test_rejects_non_positive_quantity(self, recorder, item):
        with pytest.raises(InvalidTransferError):
            recorder.record(item.item_id, None, uuid4(), 0, uuid4())


class TestImmutability:

    def test_update_rejected(self, session, recorder, item):
        record = recorder.record(item.item_id, None, uuid4(), 3, uuid4())
        movement = session.get(Movement, record.movement_id)
        movement.quantity = 4
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_delete_rejected(self, session, recorder, item):
        record = recorder.record(item.item_id, None, uuid4(), 3, uuid4())
        session.delete(session.get(Movement, record.movement_id))
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_violation_is_logged_with_invariant(self, session, recorder, item, captured_logs):
        record = recorder.record(item.item_id, None, uuid4(), 3, uuid4())
        session.get(Movement, record.movement_id).notes = "rewritten"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        violation = next(r for r in captured_logs() if r["message"] == "immutability_violation")
        assert violation["invariant"] == "append_only_ledger"
        assert violation["entity_type"] == "Movement"
