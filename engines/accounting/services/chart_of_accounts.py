"""
Ledgerline Accounting Engine — Chart of Accounts Service
=========================================================
Builds, validates, reorganizes, merges and archives chart of accounts
nodes, and computes the trial balance from stored balances.

Operation contracts:
- create_account, set_parent, activate, deactivate and control-account
  designation fail fast with a typed error; nothing is written on failure
- validate_account_hierarchy never raises; it returns a report
- reorganize_chart_structure and archive_unused_accounts are best effort:
  one item's failure is recorded in the result and the batch continues
- merge_accounts is all-or-nothing inside repository.atomic(); failure
  is reported as success=False with the store unchanged

Every completed mutation emits one audit fact.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Set, Tuple

from core.audit import AuditSink
from core.commands.rejection import ReasonCode
from core.config.rules import DEFAULT_HIERARCHY_CONFIG, HierarchyConfig
from core.primitives.account import Account
from core.primitives.account_types import AccountCategory, AccountType, BalanceSide
from core.primitives.exceptions import (
    AccountNotFoundError,
    AccountValidationError,
    CurrencyMismatchError,
    LedgerError,
)
from core.primitives.hierarchy import AccountHierarchy, ProposedMove, find_cycles_in_plan
from core.primitives.money import Money
from core.time.clock import Clock, get_default_clock
from engines.accounting.events import (
    account_activation_changed_fact,
    account_archived_fact,
    account_control_designated_fact,
    account_created_fact,
    account_merged_fact,
    account_parent_changed_fact,
    chart_created_fact,
    chart_reorganized_fact,
)
from engines.accounting.repository import LedgerRepository

logger = logging.getLogger("ledgerline.accounts")

SYSTEM_ACTOR = "System"
ARCHIVE_REASON = "Archived due to inactivity"
DEFAULT_CURRENCY = "USD"
DEFAULT_MINIMUM_INACTIVE_DAYS = 365

AccountChange = Tuple[Account, Account]


# ══════════════════════════════════════════════════════════════
# STANDARD CHART CATALOG
# ══════════════════════════════════════════════════════════════

T = AccountType

ROOT_ACCOUNTS: Tuple[Tuple[str, str, AccountType], ...] = (
    ("1000", "Assets", T.ASSETS),
    ("2000", "Liabilities", T.LIABILITIES),
    ("3000", "Equity", T.EQUITY),
    ("4000", "Revenue", T.REVENUE),
    ("5000", "Expenses", T.EXPENSES),
)

# (code, name, type, parent code)
STANDARD_SUB_ACCOUNTS: Tuple[Tuple[str, str, AccountType, str], ...] = (
    ("1100", "Current Assets", T.CURRENT_ASSETS, "1000"),
    ("1110", "Cash", T.CASH, "1100"),
    ("1120", "Accounts Receivable", T.ACCOUNTS_RECEIVABLE, "1100"),
    ("1130", "Inventory", T.INVENTORY, "1100"),
    ("1140", "Prepaid Expenses", T.PREPAID_EXPENSES, "1100"),
    ("1200", "Fixed Assets", T.FIXED_ASSETS, "1000"),
    ("1210", "Property, Plant and Equipment", T.PROPERTY_PLANT_EQUIPMENT, "1200"),
    ("1220", "Accumulated Depreciation", T.ACCUMULATED_DEPRECIATION, "1200"),
    ("2100", "Current Liabilities", T.CURRENT_LIABILITIES, "2000"),
    ("2110", "Accounts Payable", T.ACCOUNTS_PAYABLE, "2100"),
    ("2120", "Accrued Liabilities", T.ACCRUED_LIABILITIES, "2100"),
    ("2130", "Short-term Debt", T.SHORT_TERM_DEBT, "2100"),
    ("2200", "Long-term Liabilities", T.LONG_TERM_LIABILITIES, "2000"),
    ("2210", "Long-term Debt", T.LONG_TERM_DEBT, "2200"),
    ("2220", "Deferred Tax Liability", T.DEFERRED_TAX_LIABILITY, "2200"),
    ("3100", "Owner's Equity", T.OWNERS_EQUITY, "3000"),
    ("3200", "Retained Earnings", T.RETAINED_EARNINGS, "3000"),
    ("3300", "Current Year Earnings", T.CURRENT_YEAR_EARNINGS, "3000"),
    ("4100", "Sales Revenue", T.SALES_REVENUE, "4000"),
    ("4200", "Service Revenue", T.SERVICE_REVENUE, "4000"),
    ("4300", "Other Income", T.OTHER_INCOME, "4000"),
    ("5100", "Cost of Goods Sold", T.COST_OF_GOODS_SOLD, "5000"),
    ("5200", "Operating Expenses", T.OPERATING_EXPENSES, "5000"),
    ("5300", "Administrative Expenses", T.ADMINISTRATIVE_EXPENSES, "5000"),
    ("5400", "Selling Expenses", T.SELLING_EXPENSES, "5000"),
)

DETAILED_SUB_ACCOUNTS: Tuple[Tuple[str, str, AccountType, str], ...] = (
    ("1111", "Petty Cash", T.CASH, "1110"),
    ("1112", "Checking Account", T.CASH, "1110"),
    ("1113", "Savings Account", T.CASH, "1110"),
    ("1121", "Trade Receivables", T.ACCOUNTS_RECEIVABLE, "1120"),
    ("1122", "Other Receivables", T.ACCOUNTS_RECEIVABLE, "1120"),
    ("1123", "Allowance for Doubtful Accounts", T.ALLOWANCE_DOUBTFUL_ACCOUNTS, "1120"),
    ("2111", "Trade Payables", T.ACCOUNTS_PAYABLE, "2110"),
    ("2112", "Other Payables", T.ACCOUNTS_PAYABLE, "2110"),
    ("2121", "Accrued Wages", T.ACCRUED_LIABILITIES, "2120"),
    ("2122", "Accrued Taxes", T.ACCRUED_LIABILITIES, "2120"),
    ("2123", "Accrued Interest", T.ACCRUED_LIABILITIES, "2120"),
    ("3110", "Common Stock", T.COMMON_STOCK, "3100"),
    ("3120", "Preferred Stock", T.PREFERRED_STOCK, "3100"),
    ("3130", "Additional Paid-in Capital", T.ADDITIONAL_PAID_IN_CAPITAL, "3100"),
    ("3140", "Treasury Stock", T.TREASURY_STOCK, "3100"),
    ("4110", "Product Sales", T.SALES_REVENUE, "4100"),
    ("4120", "Sales Returns and Allowances", T.SALES_RETURNS_ALLOWANCES, "4100"),
    ("4130", "Sales Discounts", T.SALES_DISCOUNTS, "4100"),
    ("4210", "Consulting Revenue", T.SERVICE_REVENUE, "4200"),
    ("4220", "Maintenance Revenue", T.SERVICE_REVENUE, "4200"),
    ("4310", "Interest Income", T.INTEREST_INCOME, "4300"),
    ("4320", "Dividend Income", T.DIVIDEND_INCOME, "4300"),
    ("5110", "Direct Materials", T.COST_OF_GOODS_SOLD, "5100"),
    ("5120", "Direct Labor", T.COST_OF_GOODS_SOLD, "5100"),
    ("5130", "Manufacturing Overhead", T.COST_OF_GOODS_SOLD, "5100"),
    ("5210", "Salaries and Wages", T.OPERATING_EXPENSES, "5200"),
    ("5220", "Rent", T.OPERATING_EXPENSES, "5200"),
    ("5230", "Utilities", T.OPERATING_EXPENSES, "5200"),
    ("5240", "Insurance", T.OPERATING_EXPENSES, "5200"),
    ("5250", "Depreciation Expense", T.DEPRECIATION_EXPENSE, "5200"),
    ("5310", "Office Supplies", T.ADMINISTRATIVE_EXPENSES, "5300"),
    ("5320", "Professional Fees", T.ADMINISTRATIVE_EXPENSES, "5300"),
    ("5330", "Travel", T.ADMINISTRATIVE_EXPENSES, "5300"),
    ("5410", "Advertising", T.SELLING_EXPENSES, "5400"),
    ("5420", "Sales Commissions", T.SELLING_EXPENSES, "5400"),
    ("5430", "Marketing", T.SELLING_EXPENSES, "5400"),
)

del T

DEFAULT_STARTING_NUMBERS: Dict[AccountCategory, int] = {
    AccountCategory.ASSET: 1000,
    AccountCategory.LIABILITY: 2000,
    AccountCategory.EQUITY: 3000,
    AccountCategory.REVENUE: 4000,
    AccountCategory.EXPENSE: 5000,
}


# ══════════════════════════════════════════════════════════════
# RESULTS AND PLANS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ChartOfAccountsStructure:
    company_name: str
    base_currency: str
    root_accounts: Tuple[Account, ...]
    accounts: Tuple[Account, ...]
    created_date: date
    is_standard_structure: bool = True

    @property
    def total_accounts(self) -> int:
        return len(self.accounts)


@dataclass(frozen=True)
class AccountHierarchyValidation:
    """Report of every structural check; never raised."""
    is_valid: bool
    issues: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()
    recommended_actions: Tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "issues": list(self.issues),
            "warnings": list(self.warnings),
            "recommended_actions": list(self.recommended_actions),
        }


@dataclass(frozen=True)
class AccountMove:
    account_id: uuid.UUID
    new_parent_id: Optional[uuid.UUID]
    order: int = 0


@dataclass(frozen=True)
class AccountRenumberingRules:
    """
    preserve_existing_codes=True renumbers only the moved accounts;
    False renumbers each moved account and its whole subtree.
    """
    preserve_existing_codes: bool = True
    starting_numbers: Dict[AccountCategory, int] = field(
        default_factory=lambda: dict(DEFAULT_STARTING_NUMBERS)
    )
    increment: int = 10

    def __post_init__(self):
        if self.increment <= 0:
            raise ValueError("increment must be > 0.")
        missing = set(AccountCategory) - set(self.starting_numbers)
        if missing:
            raise ValueError(
                f"starting_numbers missing categories: "
                f"{', '.join(sorted(c.value for c in missing))}."
            )


@dataclass(frozen=True)
class ChartReorganizationPlan:
    moves: Tuple[AccountMove, ...]
    update_account_codes: bool = False
    renumbering_rules: AccountRenumberingRules = field(default_factory=AccountRenumberingRules)

    def __post_init__(self):
        if not isinstance(self.moves, tuple):
            object.__setattr__(self, "moves", tuple(self.moves))


@dataclass(frozen=True)
class ChartReorganizationResult:
    success: bool
    moved_accounts: Tuple[uuid.UUID, ...] = ()
    renumbered_accounts: Tuple[uuid.UUID, ...] = ()
    errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AccountMergeResult:
    success: bool
    source_account_id: uuid.UUID
    target_account_id: uuid.UUID
    source_balance: Optional[Money]
    target_balance_before: Optional[Money]
    target_balance_after: Optional[Money]
    reassigned_count: int
    merge_date: date
    merge_reason: str
    errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AccountArchiveResult:
    success: bool
    candidate_accounts: Tuple[uuid.UUID, ...]
    archived_accounts: Tuple[uuid.UUID, ...]
    errors: Tuple[str, ...] = ()
    is_dry_run: bool = False


@dataclass(frozen=True)
class TrialBalanceEntry:
    account_id: uuid.UUID
    account_code: str
    account_name: str
    account_type: AccountType
    debit_amount: Money
    credit_amount: Money
    balance: Money

    def to_dict(self) -> dict:
        return {
            "account_id": str(self.account_id),
            "account_code": self.account_code,
            "account_name": self.account_name,
            "account_type": self.account_type.value,
            "debit_amount": self.debit_amount.to_dict(),
            "credit_amount": self.credit_amount.to_dict(),
            "balance": self.balance.to_dict(),
        }


@dataclass(frozen=True)
class TrialBalance:
    as_of_date: date
    currency: str
    entries: Tuple[TrialBalanceEntry, ...]
    total_debits: Money
    total_credits: Money
    generated_at: datetime

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits

    @property
    def difference(self) -> Money:
        return self.total_debits - self.total_credits

    def to_dict(self) -> dict:
        return {
            "as_of_date": self.as_of_date.isoformat(),
            "currency": self.currency,
            "entries": [e.to_dict() for e in self.entries],
            "total_debits": self.total_debits.to_dict(),
            "total_credits": self.total_credits.to_dict(),
            "is_balanced": self.is_balanced,
            "generated_at": self.generated_at.isoformat(),
        }


def classify_balance(account: Account, balance: Money) -> Tuple[Money, Money]:
    """
    (debit column, credit column) for a balance kept on the normal side.

    A negative (contra) balance lands in the opposite column as an
    absolute amount.
    """
    zero = Money.zero(balance.currency)
    on_debit_side = (account.normal_balance == BalanceSide.DEBIT) != balance.is_negative()
    if balance.is_zero():
        return zero, zero
    if on_debit_side:
        return abs(balance), zero
    return zero, abs(balance)


# ══════════════════════════════════════════════════════════════
# SERVICE
# ══════════════════════════════════════════════════════════════

class ChartOfAccountsService:

    def __init__(
        self,
        *,
        repository: LedgerRepository,
        audit_sink: Optional[AuditSink] = None,
        clock: Optional[Clock] = None,
        config: HierarchyConfig = DEFAULT_HIERARCHY_CONFIG,
    ):
        self._repository = repository
        self._audit_sink = audit_sink
        self._clock = clock or get_default_clock()
        self._config = config

    # ── Plumbing ──────────────────────────────────────────────

    def load_hierarchy(self) -> AccountHierarchy:
        """Fresh arena over every stored account."""
        return AccountHierarchy(self._config, self._repository.find_all())

    def _persist(self, hierarchy: AccountHierarchy) -> List[Account]:
        """Save every staged snapshot, parents first, in one atomic block."""
        saved: List[Account] = []
        with self._repository.atomic():
            for account in hierarchy.drain_changes():
                stored = self._repository.save(account)
                hierarchy.put(stored)
                saved.append(stored)
        return saved

    def _emit(self, fact) -> None:
        if self._audit_sink is not None:
            self._audit_sink.record(fact)

    # ── Standard chart ────────────────────────────────────────

    def create_standard_chart_of_accounts(
        self,
        company_name: str,
        currency: str = DEFAULT_CURRENCY,
        detailed: bool = False,
        actor: Optional[str] = None,
    ) -> ChartOfAccountsStructure:
        """
        Create the five category roots and the fixed sub-account catalog.

        Roots are system accounts and are persisted before any child.
        Raises AccountValidationError if a catalog code is already taken;
        nothing is written in that case.
        """
        today = self._clock.today()
        hierarchy = self.load_hierarchy()
        created: List[uuid.UUID] = []

        for code, name, account_type in ROOT_ACCOUNTS:
            account = hierarchy.create(
                code, name, account_type, currency,
                is_system_account=True, created_on=today,
            )
            created.append(account.account_id)

        catalog = STANDARD_SUB_ACCOUNTS + (DETAILED_SUB_ACCOUNTS if detailed else ())
        for code, name, account_type, parent_code in catalog:
            parent = hierarchy.find_by_code(parent_code)
            account = hierarchy.create(
                code, name, account_type, currency,
                parent_id=parent.account_id,
                requires_reconciliation=account_type == AccountType.CASH,
                created_on=today,
            )
            created.append(account.account_id)

        self._persist(hierarchy)
        accounts = [hierarchy.get(account_id) for account_id in created]
        roots = [a for a in accounts if a.is_root]

        now = self._clock.now_utc()
        for account in accounts:
            self._emit(account_created_fact(account, now, actor_id=actor))
        self._emit(chart_created_fact(company_name, currency, accounts, detailed, now, actor_id=actor))
        logger.info(
            f"Created {'detailed' if detailed else 'standard'} chart of accounts "
            f"for {company_name}: {len(accounts)} accounts in {currency}"
        )
        return ChartOfAccountsStructure(
            company_name=company_name,
            base_currency=currency,
            root_accounts=tuple(roots),
            accounts=tuple(accounts),
            created_date=today,
        )

    # ── Validation ────────────────────────────────────────────

    def validate_account_hierarchy(
        self,
        account: Account,
        parent: Optional[Account] = None,
    ) -> AccountHierarchyValidation:
        """Run every structural check for account under parent; never raises."""
        try:
            hierarchy = self.load_hierarchy()
        except LedgerError as exc:
            return AccountHierarchyValidation(
                is_valid=False, issues=(f"Chart of accounts could not be loaded: {exc}",),
            )
        return self._validate(hierarchy, account, parent)

    def _validate(
        self,
        hierarchy: AccountHierarchy,
        account: Account,
        parent: Optional[Account],
    ) -> AccountHierarchyValidation:
        config = self._config
        issues: List[str] = []
        warnings: List[str] = []
        recommendations: List[str] = []

        if not config.is_valid_code(account.code, account.account_type):
            issues.append(
                f"Account code '{account.code}' doesn't match expected pattern "
                f"for {account.account_type.value}"
            )
            recommendations.append(
                f"Use account code pattern: {account.category.suggested_code_pattern}"
            )

        holder = hierarchy.find_by_code(account.code)
        if holder is not None and holder.account_id != account.account_id:
            issues.append(f"Account code '{account.code}' is already in use")

        if parent is not None:
            issues.extend(self._parent_issues(hierarchy, account, parent, warnings, recommendations))

        return AccountHierarchyValidation(
            is_valid=not issues,
            issues=tuple(issues),
            warnings=tuple(warnings),
            recommended_actions=tuple(recommendations),
        )

    def _parent_issues(
        self,
        hierarchy: AccountHierarchy,
        account: Account,
        parent: Account,
        warnings: List[str],
        recommendations: List[str],
    ) -> List[str]:
        config = self._config
        issues: List[str] = []

        if parent.account_id == account.account_id or (
            account.account_id in hierarchy
            and parent.account_id in hierarchy
            and hierarchy.would_create_cycle(account.account_id, parent.account_id)
        ):
            issues.append(
                "Creating this parent-child relationship would create a circular reference"
            )
            recommendations.append("Choose a different parent account to avoid circular references")

        try:
            parent_level = (
                hierarchy.hierarchy_level(parent.account_id)
                if parent.account_id in hierarchy else 0
            )
            below = (
                hierarchy.subtree_height(account.account_id)
                if account.account_id in hierarchy else 0
            )
        except LedgerError as exc:
            issues.append(f"Parent chain of '{parent.code}' is corrupt: {exc}")
        else:
            depth = parent_level + 1 + below
            if depth > config.max_hierarchy_depth:
                issues.append(
                    f"Account hierarchy depth ({depth}) exceeds maximum allowed "
                    f"({config.max_hierarchy_depth})"
                )
                recommendations.append(
                    "Consider restructuring account hierarchy to reduce nesting levels"
                )

        if parent.category != account.category:
            issues.append(
                f"Parent account category ({parent.category.value}) differs from "
                f"account category ({account.category.value})"
            )
        elif not config.can_be_child_of(account.account_type, parent.account_type):
            issues.append(
                f"Account type '{account.account_type.value}' cannot be a child of "
                f"'{parent.account_type.value}'"
            )

        if parent.currency != account.currency:
            issues.append(
                f"Child account currency ({account.currency}) differs from parent "
                f"({parent.currency})"
            )
            recommendations.append(
                "Consider using the same currency as parent account for consistency"
            )

        if parent.is_control_account:
            issues.append(f"Control account '{parent.code}' cannot have child accounts")

        if len(parent.child_ids - {account.account_id}) >= config.max_children_per_account:
            issues.append(
                f"Parent account '{parent.code}' already has the maximum of "
                f"{config.max_children_per_account} child accounts"
            )

        if not parent.is_active:
            warnings.append(f"Parent account '{parent.code}' is not active")
        if not parent.balance.is_zero():
            warnings.append(
                f"Parent account '{parent.code}' carries a balance of {parent.balance}"
            )
        return issues

    # ── Single-account operations ─────────────────────────────

    def create_account(
        self,
        code: str,
        name: str,
        account_type: AccountType,
        currency: str = DEFAULT_CURRENCY,
        parent_id: Optional[uuid.UUID] = None,
        *,
        description: str = "",
        is_system_account: bool = False,
        requires_reconciliation: bool = False,
        actor: Optional[str] = None,
    ) -> Account:
        """
        Validate, create and persist one account.

        Raises AccountNotFoundError for an unknown parent and
        AccountValidationError carrying every issue of the report.
        """
        hierarchy = self.load_hierarchy()
        parent = None
        if parent_id is not None:
            parent = hierarchy.find(parent_id)
            if parent is None:
                raise AccountNotFoundError(parent_id, "Parent account")

        candidate = Account.new(
            code=code,
            name=name,
            account_type=account_type,
            currency=currency,
            parent_id=parent_id,
            description=description,
            is_system_account=is_system_account,
            requires_reconciliation=requires_reconciliation,
            created_on=self._clock.today(),
        )
        report = self._validate(hierarchy, candidate, parent)
        if not report.is_valid:
            logger.warning(f"Account {code} rejected: {'; '.join(report.issues)}")
            raise AccountValidationError(report.issues)

        hierarchy.create(
            code, name, account_type, currency, parent_id,
            description=description,
            is_system_account=is_system_account,
            requires_reconciliation=requires_reconciliation,
            created_on=self._clock.today(),
            account_id=candidate.account_id,
        )
        self._persist(hierarchy)
        saved = hierarchy.get(candidate.account_id)

        self._emit(account_created_fact(saved, self._clock.now_utc(), actor_id=actor))
        logger.info(f"Created account {saved.code} {saved.name} ({account_type.value})")
        return saved

    def set_parent(
        self,
        account_id: uuid.UUID,
        parent_id: Optional[uuid.UUID],
        actor: Optional[str] = None,
    ) -> Account:
        """Move an account under parent_id (None makes it a root)."""
        hierarchy = self.load_hierarchy()
        before = hierarchy.get(account_id)
        try:
            if parent_id is None:
                hierarchy.remove_parent(account_id)
            else:
                hierarchy.set_parent(account_id, parent_id)
        except LedgerError as exc:
            logger.warning(f"Re-parenting of {before.code} rejected: {exc}")
            raise
        self._persist(hierarchy)
        after = hierarchy.get(account_id)
        if after.parent_id != before.parent_id:
            self._emit(account_parent_changed_fact(before, after, self._clock.now_utc(), actor_id=actor))
            logger.info(f"Account {after.code} moved to {hierarchy.hierarchy_path(account_id)}")
        return after

    def activate(self, account_id: uuid.UUID, actor: Optional[str] = None) -> Account:
        hierarchy = self.load_hierarchy()
        before = hierarchy.get(account_id)
        try:
            hierarchy.activate(account_id, actor=actor)
        except LedgerError as exc:
            logger.warning(f"Activation of {before.code} rejected: {exc}")
            raise
        self._persist(hierarchy)
        after = hierarchy.get(account_id)
        if after.is_active != before.is_active:
            self._emit(account_activation_changed_fact(
                before, after, self._clock.now_utc(), actor_id=actor
            ))
            logger.info(f"Account {after.code} activated by {actor or 'unknown'}")
        return after

    def deactivate(
        self,
        account_id: uuid.UUID,
        actor: Optional[str] = None,
        reason: str = "",
    ) -> Account:
        """Raises InvariantViolationError for a non-zero balance or active children."""
        hierarchy = self.load_hierarchy()
        before = hierarchy.get(account_id)
        try:
            hierarchy.deactivate(account_id, actor=actor, reason=reason)
        except LedgerError as exc:
            logger.warning(f"Deactivation of {before.code} rejected: {exc}")
            raise
        self._persist(hierarchy)
        after = hierarchy.get(account_id)
        if after.is_active != before.is_active:
            self._emit(account_activation_changed_fact(
                before, after, self._clock.now_utc(), actor_id=actor, reason=reason
            ))
            logger.info(f"Account {after.code} deactivated by {actor or 'unknown'}")
        return after

    def mark_as_control_account(self, account_id: uuid.UUID, actor: Optional[str] = None) -> Account:
        hierarchy = self.load_hierarchy()
        before = hierarchy.get(account_id)
        try:
            hierarchy.mark_as_control_account(account_id)
        except LedgerError as exc:
            logger.warning(f"Control designation of {before.code} rejected: {exc}")
            raise
        self._persist(hierarchy)
        after = hierarchy.get(account_id)
        self._emit(account_control_designated_fact(before, after, self._clock.now_utc(), actor_id=actor))
        logger.info(f"Account {after.code} designated as control account")
        return after

    def remove_control_account_designation(
        self, account_id: uuid.UUID, actor: Optional[str] = None,
    ) -> Account:
        hierarchy = self.load_hierarchy()
        before = hierarchy.get(account_id)
        try:
            hierarchy.remove_control_account_designation(account_id)
        except LedgerError as exc:
            logger.warning(f"Removing control designation of {before.code} rejected: {exc}")
            raise
        self._persist(hierarchy)
        after = hierarchy.get(account_id)
        self._emit(account_control_designated_fact(before, after, self._clock.now_utc(), actor_id=actor))
        logger.info(f"Account {after.code} is no longer a control account")
        return after

    # ── Reorganization ────────────────────────────────────────

    def _plan_errors(self, hierarchy: AccountHierarchy, plan: ChartReorganizationPlan) -> List[str]:
        errors: List[str] = []
        seen: Set[uuid.UUID] = set()
        duplicated: List[uuid.UUID] = []
        for move in plan.moves:
            if move.account_id in seen and move.account_id not in duplicated:
                duplicated.append(move.account_id)
            seen.add(move.account_id)
        if duplicated:
            errors.append(
                f"Multiple moves specified for accounts: "
                f"{', '.join(str(i) for i in duplicated)}"
            )
            return errors

        for move in plan.moves:
            if move.account_id not in hierarchy:
                errors.append(f"Account {move.account_id} not found")
            if move.new_parent_id is not None and move.new_parent_id not in hierarchy:
                errors.append(f"Parent account {move.new_parent_id} not found")
        if errors:
            return errors

        proposed = [ProposedMove(m.account_id, m.new_parent_id) for m in plan.moves]
        for account_id in find_cycles_in_plan(proposed, hierarchy.parent_of):
            errors.append(f"Move {account_id} would create circular reference")
        return errors

    def reorganize_chart_structure(
        self,
        plan: ChartReorganizationPlan,
        actor: Optional[str] = None,
    ) -> ChartReorganizationResult:
        """
        Validate the whole plan, then apply moves in order (best effort).

        An invalid plan (duplicate moves, unknown ids, cross-move cycles)
        is refused before any move runs. After validation each move is
        applied and persisted on its own; a failing move is reported and
        the rest continue.
        """
        hierarchy = self.load_hierarchy()
        plan_errors = self._plan_errors(hierarchy, plan)
        if plan_errors:
            logger.warning(f"Reorganization plan rejected: {'; '.join(plan_errors)}")
            return ChartReorganizationResult(success=False, errors=tuple(plan_errors))

        errors: List[str] = []
        warnings: List[str] = []
        changes: List[AccountChange] = []
        moved: List[uuid.UUID] = []

        for move in sorted(plan.moves, key=lambda m: m.order):
            before = hierarchy.get(move.account_id)
            if before.parent_id == move.new_parent_id:
                warnings.append(f"Account {before.code} is already under the requested parent")
                continue
            try:
                if move.new_parent_id is None:
                    hierarchy.remove_parent(move.account_id)
                else:
                    hierarchy.set_parent(move.account_id, move.new_parent_id)
                self._persist(hierarchy)
            except LedgerError as exc:
                hierarchy = self.load_hierarchy()
                errors.append(f"Failed to move account {move.account_id}: {exc}")
                logger.warning(f"Move of {before.code} failed: {exc}")
                continue
            after = hierarchy.get(move.account_id)
            changes.append((before, after))
            moved.append(move.account_id)
            self._emit(account_parent_changed_fact(before, after, self._clock.now_utc(), actor_id=actor))

        renumbered: List[uuid.UUID] = []
        if plan.update_account_codes and moved:
            renumbered_changes = self._renumber(hierarchy, moved, plan.renumbering_rules, errors)
            changes.extend(renumbered_changes)
            renumbered = [after.account_id for _, after in renumbered_changes]

        self._emit(chart_reorganized_fact(changes, errors, self._clock.now_utc(), actor_id=actor))
        logger.info(
            f"Reorganization applied {len(moved)}/{len(plan.moves)} moves, "
            f"renumbered {len(renumbered)}, {len(errors)} errors"
        )
        return ChartReorganizationResult(
            success=not errors,
            moved_accounts=tuple(moved),
            renumbered_accounts=tuple(renumbered),
            errors=tuple(errors),
            warnings=tuple(warnings),
        )

    def _next_free_code(
        self,
        hierarchy: AccountHierarchy,
        account: Account,
        rules: AccountRenumberingRules,
    ) -> str:
        number = rules.starting_numbers[account.category]
        while True:
            code = str(number)
            if not self._config.is_valid_code(code, account.account_type):
                raise AccountValidationError(
                    [f"No free account code left for {account.account_type.value} "
                     f"starting at {rules.starting_numbers[account.category]}"],
                    code=ReasonCode.INVALID_ACCOUNT_CODE,
                )
            if hierarchy.find_by_code(code) is None:
                return code
            number += rules.increment

    def _renumber(
        self,
        hierarchy: AccountHierarchy,
        moved: Iterable[uuid.UUID],
        rules: AccountRenumberingRules,
        errors: List[str],
    ) -> List[AccountChange]:
        """Give moved accounts fresh codes from their category sequence."""
        targets: List[uuid.UUID] = []
        for account_id in moved:
            targets.append(account_id)
            if not rules.preserve_existing_codes:
                targets.extend(d.account_id for d in hierarchy.descendants(account_id))

        changes: List[AccountChange] = []
        done: Set[uuid.UUID] = set()
        for account_id in targets:
            if account_id in done:
                continue
            done.add(account_id)
            before = hierarchy.get(account_id)
            try:
                hierarchy.change_code(account_id, self._next_free_code(hierarchy, before, rules))
                self._persist(hierarchy)
            except LedgerError as exc:
                hierarchy = self.load_hierarchy()
                errors.append(f"Failed to renumber account {before.code}: {exc}")
                logger.warning(f"Renumbering of {before.code} failed: {exc}")
                continue
            changes.append((before, hierarchy.get(account_id)))
        return changes

    # ── Merge ─────────────────────────────────────────────────

    def merge_accounts(
        self,
        source_id: uuid.UUID,
        target_id: uuid.UUID,
        effective_date: date,
        reason: str,
        actor: Optional[str] = None,
    ) -> AccountMergeResult:
        """
        Move every ledger line of source onto target and deactivate source.

        All-or-nothing: the reassignment and the deactivation share one
        repository.atomic() block. Failures are reported, never raised.
        """
        source = self._repository.find_by_id(source_id)
        target = self._repository.find_by_id(target_id)

        def _failed(errors: List[str], warnings: Iterable[str] = ()) -> AccountMergeResult:
            logger.warning(f"Merge of {source_id} into {target_id} refused: {'; '.join(errors)}")
            return AccountMergeResult(
                success=False,
                source_account_id=source_id,
                target_account_id=target_id,
                source_balance=source.balance if source else None,
                target_balance_before=target.balance if target else None,
                target_balance_after=target.balance if target else None,
                reassigned_count=0,
                merge_date=effective_date,
                merge_reason=reason,
                errors=tuple(errors),
                warnings=tuple(warnings),
            )

        issues: List[str] = []
        if source is None:
            issues.append(f"Source account {source_id} not found")
        if target is None:
            issues.append(f"Target account {target_id} not found")
        if issues:
            return _failed(issues)

        warnings: List[str] = []
        if source_id == target_id:
            issues.append("Cannot merge an account into itself")
        if source.account_type != target.account_type:
            issues.append(
                f"Cannot merge accounts of different types: "
                f"{source.account_type.value} vs {target.account_type.value}"
            )
        if source.currency != target.currency:
            issues.append(
                f"Cannot merge accounts with different currencies: "
                f"{source.currency} vs {target.currency}"
            )
        if source.child_ids:
            issues.append(f"Source account {source.code} has child accounts")
        if target.is_archived:
            issues.append(f"Target account {target.code} is archived")
        elif not target.is_active:
            issues.append(f"Target account {target.code} is not active")
        if not target.allows_direct_posting:
            issues.append(f"Target account {target.code} does not allow direct posting")
        if not source.is_active:
            warnings.append("Source account is not active")
        if issues:
            return _failed(issues, warnings)

        try:
            with self._repository.atomic():
                source_balance = self._repository.calculate_balance(source_id)
                target_before = self._repository.calculate_balance(target_id)
                count = self._repository.reassign_transactions(source_id, target_id, effective_date)
                hierarchy = self.load_hierarchy()
                hierarchy.deactivate(source_id, actor=actor or SYSTEM_ACTOR, reason=reason)
                self._persist(hierarchy)
                target_after = self._repository.calculate_balance(target_id)
        except LedgerError as exc:
            return _failed([f"Merge failed: {exc}"], warnings)

        source_after = self._repository.find_by_id(source_id)
        target_after_account = self._repository.find_by_id(target_id)
        self._emit(account_merged_fact(
            source, target, source_after, target_after_account, count,
            effective_date, reason, self._clock.now_utc(), actor_id=actor,
        ))
        logger.info(
            f"Merged {source.code} into {target.code}: {count} lines, "
            f"target balance {target_before} → {target_after}"
        )
        return AccountMergeResult(
            success=True,
            source_account_id=source_id,
            target_account_id=target_id,
            source_balance=source_balance,
            target_balance_before=target_before,
            target_balance_after=target_after,
            reassigned_count=count,
            merge_date=effective_date,
            merge_reason=reason,
            warnings=tuple(warnings),
        )

    # ── Archival ──────────────────────────────────────────────

    def find_archive_candidates(
        self,
        inactive_since: date,
        minimum_inactive_days: int = DEFAULT_MINIMUM_INACTIVE_DAYS,
    ) -> List[Account]:
        """
        Accounts with no activity since inactive_since, a zero balance
        and at least minimum_inactive_days without activity. Accounts
        that never had activity qualify.
        """
        candidates: List[Account] = []
        for account in self._repository.find_inactive_accounts_since(inactive_since):
            if account.is_archived or not account.balance.is_zero():
                continue
            days = self._repository.get_days_since_last_activity(account.account_id)
            if days is not None and days < minimum_inactive_days:
                continue
            candidates.append(account)
        return candidates

    def archive_unused_accounts(
        self,
        inactive_since: date,
        minimum_inactive_days: int = DEFAULT_MINIMUM_INACTIVE_DAYS,
        dry_run: bool = False,
    ) -> AccountArchiveResult:
        """
        Archive every candidate (best effort).

        Children are archived before their parents so a parent whose
        children all qualify can follow them. dry_run reports candidates
        without writing.
        """
        candidates = self.find_archive_candidates(inactive_since, minimum_inactive_days)
        candidate_ids = tuple(a.account_id for a in candidates)
        if dry_run:
            logger.info(f"Archive dry run: {len(candidates)} candidates")
            return AccountArchiveResult(
                success=True,
                candidate_accounts=candidate_ids,
                archived_accounts=(),
                is_dry_run=True,
            )

        hierarchy = self.load_hierarchy()
        ordered = sorted(
            candidates,
            key=lambda a: (-hierarchy.hierarchy_level(a.account_id), a.code),
        )
        archived: List[uuid.UUID] = []
        errors: List[str] = []
        for candidate in ordered:
            before = hierarchy.get(candidate.account_id)
            try:
                hierarchy.archive(candidate.account_id, actor=SYSTEM_ACTOR, reason=ARCHIVE_REASON)
                self._persist(hierarchy)
            except LedgerError as exc:
                hierarchy = self.load_hierarchy()
                errors.append(f"Failed to archive account {candidate.code}: {exc}")
                logger.warning(f"Archiving {candidate.code} failed: {exc}")
                continue
            after = hierarchy.get(candidate.account_id)
            archived.append(candidate.account_id)
            self._emit(account_archived_fact(before, after, self._clock.now_utc(), actor_id=SYSTEM_ACTOR))

        logger.info(f"Archived {len(archived)} of {len(candidates)} candidate accounts")
        return AccountArchiveResult(
            success=not errors,
            candidate_accounts=candidate_ids,
            archived_accounts=tuple(archived),
            errors=tuple(errors),
        )

    # ── Trial balance ─────────────────────────────────────────

    def calculate_trial_balance(
        self,
        as_of: date,
        currency: Optional[str] = None,
        include_zero: bool = False,
    ) -> TrialBalance:
        """
        Classify each account balance as of a date into debit/credit columns.

        Without a currency every account is included and all of them
        must share one currency; mixed currencies raise
        CurrencyMismatchError.
        """
        if currency is not None:
            accounts = self._repository.find_by_currency(currency)
        else:
            accounts = self._repository.find_all()
            currencies = sorted({a.currency for a in accounts})
            if len(currencies) > 1:
                raise CurrencyMismatchError(
                    currencies[0], currencies[1], "trial balance needs a currency filter"
                )
            currency = currencies[0] if currencies else DEFAULT_CURRENCY

        total_debits = Money.zero(currency)
        total_credits = Money.zero(currency)
        entries: List[TrialBalanceEntry] = []
        for account in sorted(accounts, key=lambda a: a.code):
            balance = self._repository.calculate_balance(account.account_id, as_of)
            if balance.is_zero() and not include_zero:
                continue
            debit, credit = classify_balance(account, balance)
            total_debits = total_debits + debit
            total_credits = total_credits + credit
            entries.append(TrialBalanceEntry(
                account_id=account.account_id,
                account_code=account.code,
                account_name=account.name,
                account_type=account.account_type,
                debit_amount=debit,
                credit_amount=credit,
                balance=balance,
            ))

        trial_balance = TrialBalance(
            as_of_date=as_of,
            currency=currency,
            entries=tuple(entries),
            total_debits=total_debits,
            total_credits=total_credits,
            generated_at=self._clock.now_utc(),
        )
        if not trial_balance.is_balanced:
            logger.warning(
                f"Trial balance as of {as_of.isoformat()} out of balance by "
                f"{trial_balance.difference}"
            )
        return trial_balance
