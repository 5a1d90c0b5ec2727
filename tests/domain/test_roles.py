"""Role table and capability lookup."""

import pytest

from inventory_kernel.domain.roles import (
    ROLE_CAPABILITIES,
    Capability,
    Role,
    display_name,
    has_capability,
)


class TestHasCapability:

    @pytest.mark.parametrize("role", [
        Role.CEO, Role.SALES_MANAGER, Role.PRODUCT_MANAGER, Role.STOCK_KEEPER,
    ])
    def test_roles_that_move_stock(self, role):
        assert has_capability(role, Capability.MOVE_STOCK)

    @pytest.mark.parametrize("role", [
        Role.MARKETER, Role.STOCK_MANAGER, Role.ADMIN, Role.MEDICAL_REP,
    ])
    def test_roles_that_cannot_move_stock(self, role):
        assert not has_capability(role, Capability.MOVE_STOCK)

    def test_only_product_manager_creates_and_shares(self):
        creators = {r for r in Role if has_capability(r, Capability.CREATE_REQUESTS)}
        sharers = {r for r in Role if has_capability(r, Capability.SHARE_INVENTORY)}
        assert creators == {Role.PRODUCT_MANAGER}
        assert sharers == {Role.PRODUCT_MANAGER}

    def test_stock_keeper_manages_requests(self):
        assert has_capability(Role.STOCK_KEEPER, Capability.MANAGE_REQUESTS)

    def test_accepts_raw_string_values(self):
        assert has_capability("stockKeeper", "canMoveStock")
        assert not has_capability("medicalRep", "canMoveStock")

    def test_unknown_names_grant_nothing(self):
        assert not has_capability("janitor", "canMoveStock")
        assert not has_capability("ceo", "canLaunchRockets")

    def test_medical_rep_has_no_capabilities(self):
        assert ROLE_CAPABILITIES[Role.MEDICAL_REP] == frozenset()

    def test_every_role_has_a_table_entry_and_display_name(self):
        for role in Role:
            assert role in ROLE_CAPABILITIES
            assert display_name(role)
