"""
Ledgerline Account Primitive — Chart of Accounts Node
======================================================
Engine: Core Primitives
Authority: Ledgerline Doctrine — Invariant-Preserving Domain Core

An Account is one node of the chart of accounts. It carries identity,
code, type, currency, balance, activation state and id references to
its parent and direct children.

RULES (NON-NEGOTIABLE):
- Accounts are immutable snapshots; named operations return new ones
- Parent/children are id references into an AccountHierarchy arena,
  never object pointers
- Balance currency always equals account currency
- Accounts are never deleted — deactivated or archived instead
- Structural rules that need neighbours (code pattern, depth, parent
  category/currency, cycles, active children) are enforced by
  AccountHierarchy, not here
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import date
from typing import FrozenSet, List, Optional

from core.commands.rejection import ReasonCode
from core.primitives.account_types import AccountCategory, AccountType, BalanceSide
from core.primitives.exceptions import (
    ControlAccountError,
    CurrencyMismatchError,
    InvariantViolationError,
    StateTransitionError,
)
from core.primitives.money import Money


@dataclass(frozen=True)
class Account:
    """
    Chart of accounts node (snapshot).

    Fields:
        account_id:              Opaque identity
        code:                    Chart code, e.g. "1110"
        name:                    Display name
        account_type:            Fine-grained AccountType
        currency:                ISO 4217 code of the account
        balance:                 Balance on the account's normal side
                                 (positive = normal, negative = contra)
        is_active:               Accepts postings when True
        is_control_account:      Aggregates a subsidiary ledger
        allows_direct_posting:   False for control accounts
        requires_subsidiary:     True for control accounts
        requires_reconciliation: Flag for bank-like accounts
        is_system_account:       Activation changes need an actor
        is_archived:             Retired; implies inactive
        parent_id:               Non-owning reference to the parent
        child_ids:               Owned set of direct children ids
        last_activity_date:      Last posting date (or creation date)
        version:                 Optimistic concurrency stamp
    """

    account_id: uuid.UUID
    code: str
    name: str
    account_type: AccountType
    currency: str
    balance: Money
    is_active: bool = True
    is_control_account: bool = False
    allows_direct_posting: bool = True
    requires_subsidiary: bool = False
    requires_reconciliation: bool = False
    is_system_account: bool = False
    is_archived: bool = False
    parent_id: Optional[uuid.UUID] = None
    child_ids: FrozenSet[uuid.UUID] = field(default_factory=frozenset)
    description: str = ""
    last_activity_date: Optional[date] = None
    status_changed_by: Optional[str] = None
    status_change_reason: str = ""
    version: int = 0

    def __post_init__(self):
        if not isinstance(self.account_id, uuid.UUID):
            raise ValueError("account_id must be UUID.")
        if not self.code or not isinstance(self.code, str):
            raise ValueError("code must be a non-empty string.")
        if not self.name or not isinstance(self.name, str):
            raise ValueError("name must be a non-empty string.")
        if not isinstance(self.account_type, AccountType):
            raise ValueError("account_type must be an AccountType enum.")
        if not isinstance(self.balance, Money):
            raise TypeError("balance must be Money.")
        if self.balance.currency != self.currency:
            raise ValueError(
                f"Balance currency {self.balance.currency} does not match "
                f"account currency {self.currency}."
            )
        if not isinstance(self.child_ids, frozenset):
            object.__setattr__(self, "child_ids", frozenset(self.child_ids))
        if self.parent_id == self.account_id:
            raise ValueError(f"Account {self.code} cannot be its own parent.")
        if self.account_id in self.child_ids:
            raise ValueError(f"Account {self.code} cannot be its own child.")
        if self.parent_id is not None and self.parent_id in self.child_ids:
            raise ValueError(
                f"Account {self.code} lists its parent as a child."
            )
        if self.is_archived and self.is_active:
            raise ValueError(f"Archived account {self.code} cannot be active.")
        if not self.is_active and not self.balance.is_zero():
            raise ValueError(
                f"Inactive account {self.code} must have a zero balance, "
                f"has {self.balance}."
            )
        if self.is_control_account and self.allows_direct_posting:
            raise ValueError(
                f"Control account {self.code} cannot allow direct posting."
            )
        if self.version < 0:
            raise ValueError("version must be >= 0.")

    # ── Factory ───────────────────────────────────────────────

    @classmethod
    def new(
        cls,
        *,
        code: str,
        name: str,
        account_type: AccountType,
        currency: str,
        parent_id: Optional[uuid.UUID] = None,
        description: str = "",
        is_system_account: bool = False,
        requires_reconciliation: bool = False,
        created_on: Optional[date] = None,
        account_id: Optional[uuid.UUID] = None,
    ) -> Account:
        """Fresh, active, zero-balance account. No hierarchy checks."""
        return cls(
            account_id=account_id or uuid.uuid4(),
            code=code,
            name=name,
            account_type=account_type,
            currency=currency,
            balance=Money.zero(currency),
            parent_id=parent_id,
            description=description,
            is_system_account=is_system_account,
            requires_reconciliation=requires_reconciliation,
            last_activity_date=created_on,
        )

    # ── Derived ───────────────────────────────────────────────

    @property
    def category(self) -> AccountCategory:
        return self.account_type.category

    @property
    def normal_balance(self) -> BalanceSide:
        return self.account_type.normal_balance

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    @property
    def is_leaf(self) -> bool:
        return not self.child_ids

    def posting_delta(self, debit: Money, credit: Money) -> Money:
        """Balance change caused by a debit/credit pair on this account."""
        if self.normal_balance is BalanceSide.DEBIT:
            return debit - credit
        return credit - debit

    # ── Balance ───────────────────────────────────────────────

    def with_balance(self, new_balance: Money, on: Optional[date] = None) -> Account:
        """
        Replace the balance. Requires same currency, an active account
        and direct posting allowed.
        """
        if new_balance.currency != self.currency:
            raise CurrencyMismatchError(
                self.currency, new_balance.currency, f"account {self.code}"
            )
        if not self.is_active:
            raise InvariantViolationError(
                f"Cannot update balance of inactive account {self.code}.",
                code=ReasonCode.ACCOUNT_INACTIVE,
            )
        if not self.allows_direct_posting:
            raise InvariantViolationError(
                f"Account {self.code} does not allow direct posting.",
                code=ReasonCode.DIRECT_POSTING_FORBIDDEN,
            )
        last_activity = self.last_activity_date
        if on is not None and (last_activity is None or on > last_activity):
            last_activity = on
        return replace(self, balance=new_balance, last_activity_date=last_activity)

    def add_to_balance(self, amount: Money, on: Optional[date] = None) -> Account:
        if amount.currency != self.currency:
            raise CurrencyMismatchError(self.currency, amount.currency, f"account {self.code}")
        return self.with_balance(self.balance + amount, on=on)

    def subtract_from_balance(self, amount: Money, on: Optional[date] = None) -> Account:
        if amount.currency != self.currency:
            raise CurrencyMismatchError(self.currency, amount.currency, f"account {self.code}")
        return self.with_balance(self.balance - amount, on=on)

    # ── Activation ────────────────────────────────────────────

    def _require_actor(self, actor: Optional[str], action: str) -> None:
        if self.is_system_account and not actor:
            raise InvariantViolationError(
                f"System account {self.code} requires an explicit actor to {action}.",
                code=ReasonCode.ACTOR_REQUIRED,
            )

    def activate(self, actor: Optional[str] = None) -> Account:
        if self.is_archived:
            raise StateTransitionError(
                f"Archived account {self.code} cannot be reactivated."
            )
        self._require_actor(actor, "activate")
        if self.is_active:
            return self
        return replace(
            self,
            is_active=True,
            status_changed_by=actor,
            status_change_reason="",
        )

    def deactivated(self, actor: Optional[str] = None, reason: str = "") -> Account:
        """
        Low-level deactivation: zero balance and actor rules only.

        AccountHierarchy.deactivate additionally requires every direct
        child to be inactive; callers go through the hierarchy.
        """
        if not self.balance.is_zero():
            raise InvariantViolationError(
                f"Cannot deactivate account {self.code} with non-zero "
                f"balance: {self.balance}.",
                code=ReasonCode.NON_ZERO_BALANCE,
            )
        self._require_actor(actor, "deactivate")
        if not self.is_active:
            return self
        return replace(
            self,
            is_active=False,
            status_changed_by=actor,
            status_change_reason=reason,
        )

    def archived(self, actor: Optional[str] = None, reason: str = "") -> Account:
        """Retire an account. Inactive afterwards; never deleted."""
        account = self.deactivated(actor=actor, reason=reason) if self.is_active else self
        return replace(account, is_archived=True, status_change_reason=reason)

    # ── Control account ───────────────────────────────────────

    def mark_as_control_account(self) -> Account:
        if not self.is_leaf:
            raise ControlAccountError(
                self.code, "only leaf accounts can be marked as control accounts."
            )
        return replace(
            self,
            is_control_account=True,
            allows_direct_posting=False,
            requires_subsidiary=True,
        )

    def remove_control_account_designation(self) -> Account:
        if not self.balance.is_zero():
            raise InvariantViolationError(
                f"Cannot remove control designation from account {self.code} "
                f"with non-zero balance: {self.balance}.",
                code=ReasonCode.NON_ZERO_BALANCE,
            )
        return replace(
            self,
            is_control_account=False,
            allows_direct_posting=True,
            requires_subsidiary=False,
        )

    # ── Structure (low level, used by AccountHierarchy) ───────

    def with_parent(self, parent_id: Optional[uuid.UUID]) -> Account:
        return replace(self, parent_id=parent_id)

    def with_child_added(self, child_id: uuid.UUID) -> Account:
        if self.is_control_account:
            raise ControlAccountError(
                self.code, "control accounts must remain leaf accounts."
            )
        return replace(self, child_ids=self.child_ids | {child_id})

    def with_child_removed(self, child_id: uuid.UUID) -> Account:
        return replace(self, child_ids=self.child_ids - {child_id})

    def with_code(self, code: str) -> Account:
        return replace(self, code=code)

    def with_currency(self, currency: str) -> Account:
        if not self.balance.is_zero():
            raise InvariantViolationError(
                f"Cannot change currency of account {self.code} with "
                f"non-zero balance: {self.balance}.",
                code=ReasonCode.NON_ZERO_BALANCE,
            )
        return replace(self, currency=currency, balance=Money.zero(currency))

    def with_version(self, version: int) -> Account:
        return replace(self, version=version)

    # ── Reporting ─────────────────────────────────────────────

    def validate_business_rules(self, parent: Optional[Account] = None) -> List[str]:
        """Report rule violations without raising."""
        violations: List[str] = []
        if self.is_control_account and not self.is_leaf:
            violations.append("Control accounts must be leaf accounts")
        if self.requires_subsidiary and not self.is_control_account:
            violations.append("Only control accounts should require subsidiary ledgers")
        if parent is not None:
            if parent.category != self.category:
                violations.append("Parent and child accounts must have the same category")
            if parent.currency != self.currency:
                violations.append("Parent and child accounts must use the same currency")
        return violations

    def to_dict(self) -> dict:
        return {
            "account_id": str(self.account_id),
            "code": self.code,
            "name": self.name,
            "account_type": self.account_type.value,
            "category": self.category.value,
            "currency": self.currency,
            "balance": self.balance.to_dict(),
            "is_active": self.is_active,
            "is_control_account": self.is_control_account,
            "allows_direct_posting": self.allows_direct_posting,
            "requires_subsidiary": self.requires_subsidiary,
            "requires_reconciliation": self.requires_reconciliation,
            "is_system_account": self.is_system_account,
            "is_archived": self.is_archived,
            "parent_id": str(self.parent_id) if self.parent_id else None,
            "child_ids": sorted(str(c) for c in self.child_ids),
            "description": self.description,
            "last_activity_date": (
                self.last_activity_date.isoformat() if self.last_activity_date else None
            ),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Account:
        return cls(
            account_id=uuid.UUID(data["account_id"]),
            code=data["code"],
            name=data["name"],
            account_type=AccountType(data["account_type"]),
            currency=data["currency"],
            balance=Money.from_dict(data["balance"]),
            is_active=data.get("is_active", True),
            is_control_account=data.get("is_control_account", False),
            allows_direct_posting=data.get("allows_direct_posting", True),
            requires_subsidiary=data.get("requires_subsidiary", False),
            requires_reconciliation=data.get("requires_reconciliation", False),
            is_system_account=data.get("is_system_account", False),
            is_archived=data.get("is_archived", False),
            parent_id=uuid.UUID(data["parent_id"]) if data.get("parent_id") else None,
            child_ids=frozenset(uuid.UUID(c) for c in data.get("child_ids", ())),
            description=data.get("description", ""),
            last_activity_date=(
                date.fromisoformat(data["last_activity_date"])
                if data.get("last_activity_date") else None
            ),
            version=data.get("version", 0),
        )
