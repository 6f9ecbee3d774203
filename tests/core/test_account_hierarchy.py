"""
Ledgerline — Account Hierarchy Tests
=====================================
Tests for: AccountHierarchy arena, cycle detection, structural checks,
activation rules.
"""

import uuid
from dataclasses import replace

import pytest

from core.commands.rejection import ReasonCode
from core.config.rules import HierarchyConfig
from core.primitives.account_types import AccountType
from core.primitives.exceptions import (
    AccountNotFoundError,
    AccountValidationError,
    CircularReferenceError,
    ControlAccountError,
    InvariantViolationError,
)
from core.primitives.hierarchy import (
    AccountHierarchy,
    ProposedMove,
    find_cycles_in_plan,
    would_create_cycle,
)
from core.primitives.money import Money


def usd(amount: str) -> Money:
    return Money.of(amount, "USD")


def _asset_tree(config=None):
    """Assets(1000) > Current Assets(1100) > Cash(1110)."""
    hierarchy = AccountHierarchy(config or HierarchyConfig())
    assets = hierarchy.create("1000", "Assets", AccountType.ASSETS, "USD")
    current = hierarchy.create(
        "1100", "Current Assets", AccountType.CURRENT_ASSETS, "USD", assets.account_id
    )
    cash = hierarchy.create("1110", "Cash", AccountType.CASH, "USD", current.account_id)
    return hierarchy, assets, current, cash


def _with_balance(hierarchy, account_id, amount):
    hierarchy.put(replace(hierarchy.get(account_id), balance=usd(amount)))


# ══════════════════════════════════════════════════════════════
# PURE CYCLE WALKS
# ══════════════════════════════════════════════════════════════

class TestCycleDetection:

    def test_walk_reaches_self(self):
        a, b, c = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        parents = {b: a, c: b}
        assert would_create_cycle(a, c, parents.get)
        assert not would_create_cycle(c, a, parents.get)

    def test_corrupt_data_terminates(self):
        a, b, c = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        parents = {a: b, b: a}
        assert would_create_cycle(c, a, parents.get)

    def test_plan_cross_move_cycle(self):
        a, b = uuid.uuid4(), uuid.uuid4()
        moves = [ProposedMove(a, b), ProposedMove(b, a)]
        assert set(find_cycles_in_plan(moves, lambda _id: None)) == {a, b}

    def test_plan_without_cycle(self):
        a, b, root = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        moves = [ProposedMove(a, root), ProposedMove(b, a)]
        assert find_cycles_in_plan(moves, lambda _id: None) == []


# ══════════════════════════════════════════════════════════════
# STRUCTURE
# ══════════════════════════════════════════════════════════════

class TestHierarchyStructure:

    def test_path_and_level(self):
        hierarchy, assets, current, cash = _asset_tree()
        assert hierarchy.hierarchy_path(cash.account_id) == "1000 > 1100 > 1110"
        assert hierarchy.hierarchy_level(cash.account_id) == 2
        assert hierarchy.hierarchy_level(assets.account_id) == 0
        assert hierarchy.root_of(cash.account_id).code == "1000"

    def test_parent_child_consistency(self):
        hierarchy, assets, current, cash = _asset_tree()
        assert hierarchy.get(current.account_id).child_ids == frozenset({cash.account_id})
        assert hierarchy.get(cash.account_id).parent_id == current.account_id
        assert [a.code for a in hierarchy.children(assets.account_id)] == ["1100"]
        assert [a.code for a in hierarchy.roots()] == ["1000"]

    def test_descendants_and_ancestry(self):
        hierarchy, assets, current, cash = _asset_tree()
        assert [a.code for a in hierarchy.descendants(assets.account_id)] == ["1100", "1110"]
        assert hierarchy.is_ancestor_of(assets.account_id, cash.account_id)
        assert hierarchy.is_descendant_of(cash.account_id, assets.account_id)
        assert not hierarchy.is_ancestor_of(cash.account_id, assets.account_id)
        assert hierarchy.subtree_height(assets.account_id) == 2

    def test_total_balance_rolls_up(self):
        hierarchy, assets, current, cash = _asset_tree()
        _with_balance(hierarchy, cash.account_id, "70")
        _with_balance(hierarchy, current.account_id, "5")
        assert hierarchy.calculate_total_balance(assets.account_id) == usd("75")

    def test_drain_changes_parents_first(self):
        hierarchy, assets, current, cash = _asset_tree()
        codes = [a.code for a in hierarchy.drain_changes()]
        assert codes == ["1000", "1100", "1110"]
        assert hierarchy.drain_changes() == []

    def test_find_by_code(self):
        hierarchy, _, _, cash = _asset_tree()
        assert hierarchy.find_by_code("1110").account_id == cash.account_id
        assert hierarchy.find_by_code("9999") is None
        assert cash.account_id in hierarchy
        assert len(hierarchy) == 3

    def test_get_unknown(self):
        hierarchy = AccountHierarchy()
        with pytest.raises(AccountNotFoundError, match="Account not found"):
            hierarchy.get(uuid.uuid4())


# ══════════════════════════════════════════════════════════════
# CREATION CHECKS
# ══════════════════════════════════════════════════════════════

class TestHierarchyCreation:

    def test_code_pattern_enforced(self):
        hierarchy = AccountHierarchy()
        with pytest.raises(AccountValidationError, match="doesn't match expected pattern") as exc:
            hierarchy.create("2100", "Cash", AccountType.CASH, "USD")
        assert exc.value.code == ReasonCode.INVALID_ACCOUNT_CODE
        assert len(hierarchy) == 0

    def test_duplicate_code(self):
        hierarchy, _, _, _ = _asset_tree()
        with pytest.raises(AccountValidationError, match="already in use") as exc:
            hierarchy.create("1110", "Another cash", AccountType.CASH, "USD")
        assert exc.value.code == ReasonCode.DUPLICATE_ACCOUNT_CODE

    def test_unknown_parent(self):
        hierarchy = AccountHierarchy()
        with pytest.raises(AccountNotFoundError, match="Parent account"):
            hierarchy.create("1110", "Cash", AccountType.CASH, "USD", uuid.uuid4())

    def test_category_mismatch(self):
        hierarchy, assets, _, _ = _asset_tree()
        with pytest.raises(AccountValidationError) as exc:
            hierarchy.create("2100", "AP", AccountType.ACCOUNTS_PAYABLE, "USD", assets.account_id)
        assert exc.value.code == ReasonCode.CATEGORY_MISMATCH

    def test_currency_mismatch(self):
        hierarchy, _, current, _ = _asset_tree()
        with pytest.raises(AccountValidationError) as exc:
            hierarchy.create("1120", "Cash EUR", AccountType.CASH, "EUR", current.account_id)
        assert exc.value.code == ReasonCode.CURRENCY_MISMATCH

    def test_incompatible_parent_type(self):
        hierarchy, _, _, cash = _asset_tree()
        with pytest.raises(AccountValidationError) as exc:
            hierarchy.create("1111", "Stock", AccountType.INVENTORY, "USD", cash.account_id)
        assert exc.value.code == ReasonCode.INCOMPATIBLE_PARENT_TYPE

    def test_same_type_nesting(self):
        hierarchy, _, _, cash = _asset_tree()
        petty = hierarchy.create("1111", "Petty Cash", AccountType.CASH, "USD", cash.account_id)
        assert hierarchy.hierarchy_level(petty.account_id) == 3

    def test_depth_limit(self):
        hierarchy, _, _, cash = _asset_tree(HierarchyConfig(max_hierarchy_depth=2))
        with pytest.raises(AccountValidationError, match=r"depth \(3\) exceeds maximum allowed \(2\)") as exc:
            hierarchy.create("1111", "Petty Cash", AccountType.CASH, "USD", cash.account_id)
        assert exc.value.code == ReasonCode.HIERARCHY_TOO_DEEP

    def test_children_limit(self):
        hierarchy, _, current, _ = _asset_tree(HierarchyConfig(max_children_per_account=1))
        with pytest.raises(AccountValidationError) as exc:
            hierarchy.create("1120", "AR", AccountType.ACCOUNTS_RECEIVABLE, "USD", current.account_id)
        assert exc.value.code == ReasonCode.TOO_MANY_CHILDREN

    def test_control_account_cannot_be_parent(self):
        hierarchy, _, _, cash = _asset_tree()
        hierarchy.mark_as_control_account(cash.account_id)
        with pytest.raises(ControlAccountError):
            hierarchy.create("1111", "Petty Cash", AccountType.CASH, "USD", cash.account_id)


# ══════════════════════════════════════════════════════════════
# RE-PARENTING
# ══════════════════════════════════════════════════════════════

class TestHierarchyReparenting:

    def test_cycle_rejected_and_hierarchy_unchanged(self):
        """Moving Assets under its own grandchild fails."""
        hierarchy, assets, current, cash = _asset_tree()
        hierarchy.drain_changes()
        with pytest.raises(CircularReferenceError, match="circular reference"):
            hierarchy.set_parent(assets.account_id, cash.account_id)
        assert hierarchy.get(assets.account_id).parent_id is None
        assert hierarchy.hierarchy_path(cash.account_id) == "1000 > 1100 > 1110"
        assert hierarchy.drain_changes() == []

    def test_self_parent_rejected(self):
        hierarchy, assets, _, _ = _asset_tree()
        with pytest.raises(CircularReferenceError):
            hierarchy.set_parent(assets.account_id, assets.account_id)

    def test_move_updates_both_parents(self):
        hierarchy, assets, current, cash = _asset_tree()
        moved = hierarchy.set_parent(cash.account_id, assets.account_id)
        assert moved.parent_id == assets.account_id
        assert cash.account_id not in hierarchy.get(current.account_id).child_ids
        assert cash.account_id in hierarchy.get(assets.account_id).child_ids
        assert hierarchy.hierarchy_path(cash.account_id) == "1000 > 1110"

    def test_move_checks_subtree_depth(self):
        hierarchy = AccountHierarchy(HierarchyConfig(max_hierarchy_depth=2))
        assets = hierarchy.create("1000", "Assets", AccountType.ASSETS, "USD")
        current = hierarchy.create(
            "1100", "Current Assets", AccountType.CURRENT_ASSETS, "USD", assets.account_id
        )
        hierarchy.create("1110", "Cash", AccountType.CASH, "USD", current.account_id)
        other = hierarchy.create("1001", "Other Assets", AccountType.ASSETS, "USD")
        hierarchy.set_parent(other.account_id, assets.account_id)
        # Current Assets carries one level below it: 1 + 1 + 1 > 2.
        with pytest.raises(AccountValidationError) as exc:
            hierarchy.set_parent(current.account_id, other.account_id)
        assert exc.value.code == ReasonCode.HIERARCHY_TOO_DEEP
        assert hierarchy.get(current.account_id).parent_id == assets.account_id

    def test_remove_parent(self):
        hierarchy, _, current, cash = _asset_tree()
        root = hierarchy.remove_parent(cash.account_id)
        assert root.is_root
        assert hierarchy.get(current.account_id).is_leaf


# ══════════════════════════════════════════════════════════════
# ACTIVATION / CONTROL
# ══════════════════════════════════════════════════════════════

class TestHierarchyActivation:

    def test_deactivate_with_balance_rejected(self):
        hierarchy, _, _, cash = _asset_tree()
        _with_balance(hierarchy, cash.account_id, "50.00")
        with pytest.raises(InvariantViolationError) as exc:
            hierarchy.deactivate(cash.account_id)
        assert exc.value.code == ReasonCode.NON_ZERO_BALANCE
        assert hierarchy.get(cash.account_id).is_active

    def test_deactivate_with_active_children_rejected(self):
        hierarchy, _, current, _ = _asset_tree()
        with pytest.raises(InvariantViolationError) as exc:
            hierarchy.deactivate(current.account_id)
        assert exc.value.code == ReasonCode.ACTIVE_CHILDREN

    def test_deactivate_zero_balance_leaf(self):
        hierarchy, _, current, cash = _asset_tree()
        hierarchy.deactivate(cash.account_id, actor="controller", reason="Closed bank")
        parent = hierarchy.deactivate(current.account_id)
        assert not parent.is_active
        assert hierarchy.get(cash.account_id).status_change_reason == "Closed bank"

    def test_reactivate(self):
        hierarchy, _, _, cash = _asset_tree()
        hierarchy.deactivate(cash.account_id)
        assert hierarchy.activate(cash.account_id).is_active

    def test_deactivate_inactive_account_stages_nothing(self):
        hierarchy, _, _, cash = _asset_tree()
        hierarchy.deactivate(cash.account_id, reason="Closed bank")
        hierarchy.drain_changes()
        again = hierarchy.deactivate(cash.account_id, reason="Twice")
        assert again.status_change_reason == "Closed bank"
        assert hierarchy.drain_changes() == []

    def test_inactive_snapshot_cannot_carry_balance(self):
        hierarchy, _, _, cash = _asset_tree()
        off = hierarchy.deactivate(cash.account_id)
        with pytest.raises(ValueError, match="zero balance"):
            replace(off, balance=usd("100.00"))

    def test_control_snapshot_cannot_allow_direct_posting(self):
        hierarchy, _, _, cash = _asset_tree()
        control = hierarchy.mark_as_control_account(cash.account_id)
        with pytest.raises(ValueError, match="direct posting"):
            replace(control, allows_direct_posting=True)
        with pytest.raises(ValueError, match="direct posting"):
            replace(cash, is_control_account=True)

    def test_archive(self):
        hierarchy, _, _, cash = _asset_tree()
        archived = hierarchy.archive(cash.account_id, actor="System", reason="Unused")
        assert archived.is_archived
        assert not archived.is_active

    def test_control_account_only_on_leaf(self):
        hierarchy, _, current, cash = _asset_tree()
        with pytest.raises(ControlAccountError):
            hierarchy.mark_as_control_account(current.account_id)
        control = hierarchy.mark_as_control_account(cash.account_id)
        assert not control.allows_direct_posting
        plain = hierarchy.remove_control_account_designation(cash.account_id)
        assert plain.allows_direct_posting


# ══════════════════════════════════════════════════════════════
# CODES / CURRENCY
# ══════════════════════════════════════════════════════════════

class TestHierarchyCodes:

    def test_change_code(self):
        hierarchy, _, _, cash = _asset_tree()
        hierarchy.change_code(cash.account_id, "1115")
        assert hierarchy.find_by_code("1115").account_id == cash.account_id
        assert hierarchy.find_by_code("1110") is None

    def test_change_code_rejects_duplicate_and_pattern(self):
        hierarchy, _, _, cash = _asset_tree()
        with pytest.raises(AccountValidationError, match="already in use"):
            hierarchy.change_code(cash.account_id, "1100")
        with pytest.raises(AccountValidationError, match="expected pattern"):
            hierarchy.change_code(cash.account_id, "4110")

    def test_update_currency_whole_subtree(self):
        hierarchy, assets, _, _ = _asset_tree()
        updated = hierarchy.update_currency(assets.account_id, "EUR")
        assert len(updated) == 3
        assert all(a.currency == "EUR" for a in hierarchy)

    def test_update_currency_requires_zero_balances(self):
        hierarchy, assets, _, cash = _asset_tree()
        _with_balance(hierarchy, cash.account_id, "1")
        with pytest.raises(InvariantViolationError):
            hierarchy.update_currency(assets.account_id, "EUR")

    def test_update_currency_must_match_parent(self):
        hierarchy, _, current, _ = _asset_tree()
        with pytest.raises(AccountValidationError) as exc:
            hierarchy.update_currency(current.account_id, "EUR")
        assert exc.value.code == ReasonCode.CURRENCY_MISMATCH
