"""
Ledgerline Account Hierarchy — Arena of Chart Nodes
====================================================
Engine: Core Primitives
Authority: Ledgerline Doctrine — Invariant-Preserving Domain Core

The chart of accounts is a forest. Accounts live in one table keyed by
account_id; parent and children are id references into that table.
Cycle checks are plain walks over the table.

RULES (NON-NEGOTIABLE):
- Code matches the category pattern of the account type
- Child category and currency equal the parent's
- No account is its own ancestor
- Depth from any root <= HierarchyConfig.max_hierarchy_depth
- A control account is a leaf and never accepts direct posting
- Deactivation needs zero balance and inactive direct children
- Every check runs before the table is touched; a failed operation
  leaves the table unchanged

The arena records which snapshots changed (drain_changes) so a caller
can persist exactly those through the repository.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date
from typing import (
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Optional,
    Sequence,
    Set,
)

from core.commands.rejection import ReasonCode
from core.config.rules import DEFAULT_HIERARCHY_CONFIG, HierarchyConfig
from core.primitives.account import Account
from core.primitives.account_types import AccountType
from core.primitives.exceptions import (
    AccountNotFoundError,
    AccountValidationError,
    CircularReferenceError,
    ControlAccountError,
    InvariantViolationError,
)
from core.primitives.money import Money

PATH_SEPARATOR = " > "

ParentLookup = Callable[[uuid.UUID], Optional[uuid.UUID]]


# ══════════════════════════════════════════════════════════════
# CYCLE DETECTION (pure graph walks)
# ══════════════════════════════════════════════════════════════

def would_create_cycle(
    account_id: uuid.UUID,
    proposed_parent_id: uuid.UUID,
    parent_of: ParentLookup,
) -> bool:
    """
    Walk upward from the proposed parent.

    True if the walk reaches account_id, or revisits any id (the
    stored data is already corrupt). The visited set bounds the walk.
    """
    current: Optional[uuid.UUID] = proposed_parent_id
    visited: Set[uuid.UUID] = set()
    while current is not None:
        if current == account_id or current in visited:
            return True
        visited.add(current)
        current = parent_of(current)
    return False


@dataclass(frozen=True)
class ProposedMove:
    """One entry of a batch reorganization: account → new parent."""
    account_id: uuid.UUID
    new_parent_id: Optional[uuid.UUID]


def find_cycles_in_plan(
    moves: Sequence[ProposedMove],
    stored_parent_of: ParentLookup,
) -> List[uuid.UUID]:
    """
    Cross-move cycle detection for a batch of moves.

    Walks each move's chain preferring the proposed parent map and
    falling back to the stored parent for accounts not being moved.
    Returns the account ids whose move would close a cycle.
    """
    proposed: Dict[uuid.UUID, Optional[uuid.UUID]] = {
        move.account_id: move.new_parent_id for move in moves
    }

    def parent_of(account_id: uuid.UUID) -> Optional[uuid.UUID]:
        if account_id in proposed:
            return proposed[account_id]
        return stored_parent_of(account_id)

    return [
        move.account_id
        for move in moves
        if move.new_parent_id is not None
        and would_create_cycle(move.account_id, move.new_parent_id, parent_of)
    ]


# ══════════════════════════════════════════════════════════════
# HIERARCHY ARENA
# ══════════════════════════════════════════════════════════════

class AccountHierarchy:
    """
    In-memory chart of accounts arena.

    Load persisted snapshots with `put` (trusted, no checks); build and
    change the tree with the named operations (fully checked).
    """

    def __init__(
        self,
        config: HierarchyConfig = DEFAULT_HIERARCHY_CONFIG,
        accounts: Iterable[Account] = (),
    ) -> None:
        self._config = config
        self._accounts: Dict[uuid.UUID, Account] = {}
        self._by_code: Dict[str, uuid.UUID] = {}
        self._dirty: Set[uuid.UUID] = set()
        for account in accounts:
            self.put(account)

    @property
    def config(self) -> HierarchyConfig:
        return self._config

    # ── Table access ──────────────────────────────────────────

    def put(self, account: Account) -> None:
        """Store a snapshot as-is (e.g. the result of repository.save)."""
        previous = self._accounts.get(account.account_id)
        if previous is not None and previous.code != account.code:
            self._by_code.pop(previous.code, None)
        self._accounts[account.account_id] = account
        self._by_code[account.code] = account.account_id

    def _stage(self, account: Account) -> Account:
        self.put(account)
        self._dirty.add(account.account_id)
        return account

    def drain_changes(self) -> List[Account]:
        """Changed snapshots since the last drain, parents before children."""
        changed = [self._accounts[i] for i in self._dirty]
        self._dirty.clear()
        return sorted(changed, key=lambda a: (self.hierarchy_level(a.account_id), a.code))

    def find(self, account_id: uuid.UUID) -> Optional[Account]:
        return self._accounts.get(account_id)

    def get(self, account_id: uuid.UUID, role: str = "Account") -> Account:
        account = self._accounts.get(account_id)
        if account is None:
            raise AccountNotFoundError(account_id, role)
        return account

    def find_by_code(self, code: str) -> Optional[Account]:
        account_id = self._by_code.get(code)
        return self._accounts.get(account_id) if account_id else None

    def parent_of(self, account_id: uuid.UUID) -> Optional[uuid.UUID]:
        account = self._accounts.get(account_id)
        return account.parent_id if account else None

    def children(self, account_id: uuid.UUID) -> List[Account]:
        account = self.get(account_id)
        return sorted(
            (self._accounts[c] for c in account.child_ids if c in self._accounts),
            key=lambda a: a.code,
        )

    def roots(self) -> List[Account]:
        return sorted(
            (a for a in self._accounts.values() if a.is_root),
            key=lambda a: a.code,
        )

    def __contains__(self, account_id: object) -> bool:
        return account_id in self._accounts

    def __len__(self) -> int:
        return len(self._accounts)

    def __iter__(self) -> Iterator[Account]:
        return iter(sorted(self._accounts.values(), key=lambda a: a.code))

    # ── Derived facts ─────────────────────────────────────────

    def ancestors(self, account_id: uuid.UUID) -> List[Account]:
        """Parent chain, nearest first. Raises on corrupt (cyclic) data."""
        chain: List[Account] = []
        seen: Set[uuid.UUID] = {account_id}
        current = self.get(account_id).parent_id
        while current is not None:
            if current in seen:
                raise CircularReferenceError(account_id, current)
            seen.add(current)
            parent = self.get(current, role="Parent account")
            chain.append(parent)
            current = parent.parent_id
        return chain

    def hierarchy_level(self, account_id: uuid.UUID) -> int:
        """Root = 0."""
        return len(self.ancestors(account_id))

    def hierarchy_path(self, account_id: uuid.UUID) -> str:
        """Root → self code chain, e.g. '1000 > 1100 > 1110'."""
        account = self.get(account_id)
        codes = [a.code for a in reversed(self.ancestors(account_id))]
        codes.append(account.code)
        return PATH_SEPARATOR.join(codes)

    def root_of(self, account_id: uuid.UUID) -> Account:
        chain = self.ancestors(account_id)
        return chain[-1] if chain else self.get(account_id)

    def descendants(self, account_id: uuid.UUID) -> List[Account]:
        """All accounts below account_id, depth-first, children by code."""
        result: List[Account] = []
        stack = list(reversed(self.children(account_id)))
        seen: Set[uuid.UUID] = {account_id}
        while stack:
            node = stack.pop()
            if node.account_id in seen:
                raise CircularReferenceError(account_id, node.account_id)
            seen.add(node.account_id)
            result.append(node)
            stack.extend(reversed(self.children(node.account_id)))
        return result

    def subtree_height(self, account_id: uuid.UUID) -> int:
        """Levels below account_id (leaf = 0)."""
        base = self.hierarchy_level(account_id)
        return max(
            (self.hierarchy_level(d.account_id) - base for d in self.descendants(account_id)),
            default=0,
        )

    def is_ancestor_of(self, ancestor_id: uuid.UUID, account_id: uuid.UUID) -> bool:
        return any(a.account_id == ancestor_id for a in self.ancestors(account_id))

    def is_descendant_of(self, account_id: uuid.UUID, ancestor_id: uuid.UUID) -> bool:
        return self.is_ancestor_of(ancestor_id, account_id)

    def calculate_total_balance(self, account_id: uuid.UUID) -> Money:
        """Own balance plus every descendant's balance."""
        account = self.get(account_id)
        total = account.balance
        for descendant in self.descendants(account_id):
            total = total + descendant.balance
        return total

    def would_create_cycle(self, account_id: uuid.UUID, proposed_parent_id: uuid.UUID) -> bool:
        return would_create_cycle(account_id, proposed_parent_id, self.parent_of)

    # ── Checks ────────────────────────────────────────────────

    def _check_parent(self, account: Account, parent: Account, *, new_child: bool) -> None:
        """Raise on the first rule a parent/child pair breaks."""
        if parent.category != account.category:
            raise AccountValidationError(
                [f"Parent account '{parent.code}' category {parent.category.value} "
                 f"differs from {account.category.value}"],
                code=ReasonCode.CATEGORY_MISMATCH,
            )
        if parent.currency != account.currency:
            raise AccountValidationError(
                [f"Parent account '{parent.code}' currency {parent.currency} "
                 f"differs from {account.currency}"],
                code=ReasonCode.CURRENCY_MISMATCH,
            )
        if not self._config.can_be_child_of(account.account_type, parent.account_type):
            raise AccountValidationError(
                [f"Account type '{account.account_type.value}' cannot be a child "
                 f"of '{parent.account_type.value}'"],
                code=ReasonCode.INCOMPATIBLE_PARENT_TYPE,
            )
        if parent.is_control_account:
            raise ControlAccountError(
                parent.code, "control accounts must remain leaf accounts."
            )
        if new_child and len(parent.child_ids) >= self._config.max_children_per_account:
            raise AccountValidationError(
                [f"Parent account '{parent.code}' already has "
                 f"{len(parent.child_ids)} children (maximum "
                 f"{self._config.max_children_per_account})"],
                code=ReasonCode.TOO_MANY_CHILDREN,
            )

    def _check_depth(self, parent: Account, subtree_height: int) -> None:
        depth = self.hierarchy_level(parent.account_id) + 1 + subtree_height
        if depth > self._config.max_hierarchy_depth:
            raise AccountValidationError(
                [f"Account hierarchy depth ({depth}) exceeds maximum allowed "
                 f"({self._config.max_hierarchy_depth})"],
                code=ReasonCode.HIERARCHY_TOO_DEEP,
            )

    # ── Creation ──────────────────────────────────────────────

    def create(
        self,
        code: str,
        name: str,
        account_type: AccountType,
        currency: str,
        parent_id: Optional[uuid.UUID] = None,
        *,
        description: str = "",
        is_system_account: bool = False,
        requires_reconciliation: bool = False,
        created_on: Optional[date] = None,
        account_id: Optional[uuid.UUID] = None,
    ) -> Account:
        """
        Validated factory.

        Raises AccountValidationError (code pattern, duplicate code,
        parent category/currency/type, depth), AccountNotFoundError
        (unknown parent) or CircularReferenceError.
        """
        if not self._config.is_valid_code(code, account_type):
            raise AccountValidationError(
                [f"Account code '{code}' doesn't match expected pattern for "
                 f"{account_type.value}"],
                code=ReasonCode.INVALID_ACCOUNT_CODE,
            )
        if code in self._by_code:
            raise AccountValidationError(
                [f"Account code '{code}' is already in use"],
                code=ReasonCode.DUPLICATE_ACCOUNT_CODE,
            )
        if account_id is not None and account_id in self._accounts:
            raise AccountValidationError(
                [f"Account id {account_id} is already in use"],
                code=ReasonCode.DUPLICATE_ACCOUNT_CODE,
            )

        account = Account.new(
            code=code,
            name=name,
            account_type=account_type,
            currency=currency,
            parent_id=parent_id,
            description=description,
            is_system_account=is_system_account,
            requires_reconciliation=requires_reconciliation,
            created_on=created_on,
            account_id=account_id,
        )

        parent: Optional[Account] = None
        if parent_id is not None:
            parent = self.get(parent_id, role="Parent account")
            self._check_parent(account, parent, new_child=True)
            if self.would_create_cycle(account.account_id, parent_id):
                raise CircularReferenceError(account.account_id, parent_id)
            self._check_depth(parent, subtree_height=0)

        self._stage(account)
        if parent is not None:
            self._stage(parent.with_child_added(account.account_id))
        return account

    # ── Re-parenting ──────────────────────────────────────────

    def set_parent(self, account_id: uuid.UUID, parent_id: uuid.UUID) -> Account:
        """
        Move account_id under parent_id.

        Cycles (self-parenting included) are checked first; then
        category/currency/type mismatch, control-account parent,
        children limit and depth overflow.
        """
        account = self.get(account_id)
        if parent_id == account_id:
            raise CircularReferenceError(account_id, parent_id)
        parent = self.get(parent_id, role="Parent account")
        if account.parent_id == parent_id:
            return account

        if self.would_create_cycle(account_id, parent_id):
            raise CircularReferenceError(account_id, parent_id)
        self._check_parent(account, parent, new_child=True)
        self._check_depth(parent, subtree_height=self.subtree_height(account_id))

        self._detach(account)
        self._stage(self.get(parent_id).with_child_added(account_id))
        return self._stage(self.get(account_id).with_parent(parent_id))

    def remove_parent(self, account_id: uuid.UUID) -> Account:
        """Make account_id a root."""
        account = self.get(account_id)
        if account.parent_id is None:
            return account
        self._detach(account)
        return self._stage(self.get(account_id).with_parent(None))

    def _detach(self, account: Account) -> None:
        if account.parent_id is None:
            return
        old_parent = self._accounts.get(account.parent_id)
        if old_parent is not None:
            self._stage(old_parent.with_child_removed(account.account_id))

    # ── Activation ────────────────────────────────────────────

    def _require_children_inactive(self, account: Account) -> None:
        active = [c.code for c in self.children(account.account_id) if c.is_active]
        if active:
            raise InvariantViolationError(
                f"Cannot deactivate account {account.code} with active child "
                f"accounts: {', '.join(active)}.",
                code=ReasonCode.ACTIVE_CHILDREN,
            )

    def activate(self, account_id: uuid.UUID, actor: Optional[str] = None) -> Account:
        account = self.get(account_id)
        updated = account.activate(actor=actor)
        if updated is account:
            return account
        return self._stage(updated)

    def deactivate(
        self,
        account_id: uuid.UUID,
        actor: Optional[str] = None,
        reason: str = "",
    ) -> Account:
        """Requires exactly zero balance and all direct children inactive."""
        account = self.get(account_id)
        self._require_children_inactive(account)
        updated = account.deactivated(actor=actor, reason=reason)
        if updated is account:
            return account
        return self._stage(updated)

    def archive(
        self,
        account_id: uuid.UUID,
        actor: Optional[str] = None,
        reason: str = "",
    ) -> Account:
        account = self.get(account_id)
        self._require_children_inactive(account)
        return self._stage(account.archived(actor=actor, reason=reason))

    # ── Control accounts ──────────────────────────────────────

    def mark_as_control_account(self, account_id: uuid.UUID) -> Account:
        return self._stage(self.get(account_id).mark_as_control_account())

    def remove_control_account_designation(self, account_id: uuid.UUID) -> Account:
        return self._stage(self.get(account_id).remove_control_account_designation())

    # ── Codes / currency ──────────────────────────────────────

    def change_code(self, account_id: uuid.UUID, new_code: str) -> Account:
        account = self.get(account_id)
        if new_code == account.code:
            return account
        if not self._config.is_valid_code(new_code, account.account_type):
            raise AccountValidationError(
                [f"Account code '{new_code}' doesn't match expected pattern for "
                 f"{account.account_type.value}"],
                code=ReasonCode.INVALID_ACCOUNT_CODE,
            )
        if new_code in self._by_code:
            raise AccountValidationError(
                [f"Account code '{new_code}' is already in use"],
                code=ReasonCode.DUPLICATE_ACCOUNT_CODE,
            )
        return self._stage(account.with_code(new_code))

    def update_currency(self, account_id: uuid.UUID, currency: str) -> List[Account]:
        """Change currency of a whole subtree. Every balance must be zero."""
        account = self.get(account_id)
        if account.parent_id is not None:
            parent = self.get(account.parent_id, role="Parent account")
            if parent.currency != currency:
                raise AccountValidationError(
                    [f"Parent account '{parent.code}' uses {parent.currency}; "
                     f"subtree cannot switch to {currency}"],
                    code=ReasonCode.CURRENCY_MISMATCH,
                )
        subtree = [account] + self.descendants(account_id)
        updated = [a.with_currency(currency) for a in subtree]
        return [self._stage(a) for a in updated]
