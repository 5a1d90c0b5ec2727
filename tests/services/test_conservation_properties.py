"""
Property-based checks of the allocation ledger.

For any sequence of transfers, each either commits in full or fails with
InsufficientQuantityError and changes nothing; balances never go
negative and always sum to the item quantity.
"""

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from inventory_kernel.exceptions import InsufficientQuantityError

HOLDERS = ("central", "keeper", "keeper_2", "product_manager")

transfers = st.lists(
    st.tuples(
        st.sampled_from(HOLDERS),
        st.sampled_from(HOLDERS),
        st.integers(min_value=1, max_value=60),
    ).filter(lambda t: t[0] != t[1]),
    min_size=1,
    max_size=12,
)


@settings(
    max_examples=25,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)
@given(steps=transfers, initial=st.integers(min_value=0, max_value=100))
def test_random_transfers_conserve_quantity(orchestrator, actors, steps, initial):
    ids = {
        "central": None,
        "keeper": actors.keeper,
        "keeper_2": actors.keeper_2,
        "product_manager": actors.product_manager,
    }
    item = orchestrator.register_stock_item(actors.keeper, "Fuzzed item", initial)
    expected = {name: 0 for name in HOLDERS}
    expected["central"] = initial
    committed = 0

    for source, destination, quantity in steps:
        try:
            orchestrator.transfer_stock(
                item.item_id, ids[source], ids[destination], quantity, actors.keeper,
            )
        except InsufficientQuantityError as exc:
            assert exc.available == expected[source] < quantity
            continue
        expected[source] -= quantity
        expected[destination] += quantity
        committed += 1

    for name in HOLDERS:
        assert orchestrator.get_balance(item.item_id, ids[name]) == expected[name] >= 0
    assert orchestrator.verify_conservation(item.item_id) == initial
    assert len(orchestrator.list_movements(item.item_id)) == committed
