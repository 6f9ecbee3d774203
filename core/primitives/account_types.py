"""
Ledgerline Account Types — Static Classification Taxonomy
==========================================================
Every account has a fine-grained AccountType. Every AccountType belongs
to exactly one AccountCategory, and the category fixes the account's
normal balance side and its code pattern.

Normal balance: ASSET/EXPENSE = DEBIT, LIABILITY/EQUITY/REVENUE = CREDIT.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict


# ══════════════════════════════════════════════════════════════
# BALANCE SIDE
# ══════════════════════════════════════════════════════════════

class BalanceSide(Enum):
    """Ledger side. Every line is either a debit or a credit."""
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"

    @property
    def opposite(self) -> BalanceSide:
        return BalanceSide.CREDIT if self is BalanceSide.DEBIT else BalanceSide.DEBIT


# ══════════════════════════════════════════════════════════════
# ACCOUNT CATEGORY
# ══════════════════════════════════════════════════════════════

class AccountCategory(Enum):
    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    REVENUE = "REVENUE"
    EXPENSE = "EXPENSE"

    @property
    def normal_balance(self) -> BalanceSide:
        return NORMAL_BALANCE[self]

    @property
    def suggested_code_pattern(self) -> str:
        return SUGGESTED_CODE_PATTERNS[self]


NORMAL_BALANCE: Dict[AccountCategory, BalanceSide] = {
    AccountCategory.ASSET: BalanceSide.DEBIT,
    AccountCategory.LIABILITY: BalanceSide.CREDIT,
    AccountCategory.EQUITY: BalanceSide.CREDIT,
    AccountCategory.REVENUE: BalanceSide.CREDIT,
    AccountCategory.EXPENSE: BalanceSide.DEBIT,
}

SUGGESTED_CODE_PATTERNS: Dict[AccountCategory, str] = {
    AccountCategory.ASSET: "1XXX (Assets: 1000-1999)",
    AccountCategory.LIABILITY: "2XXX (Liabilities: 2000-2999)",
    AccountCategory.EQUITY: "3XXX (Equity: 3000-3999)",
    AccountCategory.REVENUE: "4XXX (Revenue: 4000-4999)",
    AccountCategory.EXPENSE: "5XXX-9XXX (Expenses: 5000-9999)",
}


# ══════════════════════════════════════════════════════════════
# ACCOUNT TYPE
# ══════════════════════════════════════════════════════════════

class AccountType(Enum):
    """Fine-grained account classification."""

    # ── Assets ────────────────────────────────────────────────
    ASSETS = "ASSETS"
    CURRENT_ASSETS = "CURRENT_ASSETS"
    FIXED_ASSETS = "FIXED_ASSETS"
    CASH = "CASH"
    ACCOUNTS_RECEIVABLE = "ACCOUNTS_RECEIVABLE"
    INVENTORY = "INVENTORY"
    PREPAID_EXPENSES = "PREPAID_EXPENSES"
    PROPERTY_PLANT_EQUIPMENT = "PROPERTY_PLANT_EQUIPMENT"
    ACCUMULATED_DEPRECIATION = "ACCUMULATED_DEPRECIATION"
    ALLOWANCE_DOUBTFUL_ACCOUNTS = "ALLOWANCE_DOUBTFUL_ACCOUNTS"

    # ── Liabilities ───────────────────────────────────────────
    LIABILITIES = "LIABILITIES"
    CURRENT_LIABILITIES = "CURRENT_LIABILITIES"
    LONG_TERM_LIABILITIES = "LONG_TERM_LIABILITIES"
    ACCOUNTS_PAYABLE = "ACCOUNTS_PAYABLE"
    ACCRUED_LIABILITIES = "ACCRUED_LIABILITIES"
    SHORT_TERM_DEBT = "SHORT_TERM_DEBT"
    LONG_TERM_DEBT = "LONG_TERM_DEBT"
    DEFERRED_TAX_LIABILITY = "DEFERRED_TAX_LIABILITY"

    # ── Equity ────────────────────────────────────────────────
    EQUITY = "EQUITY"
    OWNERS_EQUITY = "OWNERS_EQUITY"
    RETAINED_EARNINGS = "RETAINED_EARNINGS"
    CURRENT_YEAR_EARNINGS = "CURRENT_YEAR_EARNINGS"
    COMMON_STOCK = "COMMON_STOCK"
    PREFERRED_STOCK = "PREFERRED_STOCK"
    ADDITIONAL_PAID_IN_CAPITAL = "ADDITIONAL_PAID_IN_CAPITAL"
    TREASURY_STOCK = "TREASURY_STOCK"

    # ── Revenue ───────────────────────────────────────────────
    REVENUE = "REVENUE"
    SALES_REVENUE = "SALES_REVENUE"
    SERVICE_REVENUE = "SERVICE_REVENUE"
    OTHER_INCOME = "OTHER_INCOME"
    INTEREST_INCOME = "INTEREST_INCOME"
    DIVIDEND_INCOME = "DIVIDEND_INCOME"
    SALES_RETURNS_ALLOWANCES = "SALES_RETURNS_ALLOWANCES"
    SALES_DISCOUNTS = "SALES_DISCOUNTS"

    # ── Expenses ──────────────────────────────────────────────
    EXPENSES = "EXPENSES"
    COST_OF_GOODS_SOLD = "COST_OF_GOODS_SOLD"
    OPERATING_EXPENSES = "OPERATING_EXPENSES"
    ADMINISTRATIVE_EXPENSES = "ADMINISTRATIVE_EXPENSES"
    SELLING_EXPENSES = "SELLING_EXPENSES"
    DEPRECIATION_EXPENSE = "DEPRECIATION_EXPENSE"

    @property
    def category(self) -> AccountCategory:
        return TYPE_CATEGORY[self]

    @property
    def normal_balance(self) -> BalanceSide:
        return TYPE_CATEGORY[self].normal_balance

    @property
    def is_root_type(self) -> bool:
        """True for the five category header types (ASSETS, ...)."""
        return self in ROOT_TYPES

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()


def _category_map() -> Dict[AccountType, AccountCategory]:
    groups = {
        AccountCategory.ASSET: (
            AccountType.ASSETS, AccountType.CURRENT_ASSETS,
            AccountType.FIXED_ASSETS, AccountType.CASH,
            AccountType.ACCOUNTS_RECEIVABLE, AccountType.INVENTORY,
            AccountType.PREPAID_EXPENSES, AccountType.PROPERTY_PLANT_EQUIPMENT,
            AccountType.ACCUMULATED_DEPRECIATION,
            AccountType.ALLOWANCE_DOUBTFUL_ACCOUNTS,
        ),
        AccountCategory.LIABILITY: (
            AccountType.LIABILITIES, AccountType.CURRENT_LIABILITIES,
            AccountType.LONG_TERM_LIABILITIES, AccountType.ACCOUNTS_PAYABLE,
            AccountType.ACCRUED_LIABILITIES, AccountType.SHORT_TERM_DEBT,
            AccountType.LONG_TERM_DEBT, AccountType.DEFERRED_TAX_LIABILITY,
        ),
        AccountCategory.EQUITY: (
            AccountType.EQUITY, AccountType.OWNERS_EQUITY,
            AccountType.RETAINED_EARNINGS, AccountType.CURRENT_YEAR_EARNINGS,
            AccountType.COMMON_STOCK, AccountType.PREFERRED_STOCK,
            AccountType.ADDITIONAL_PAID_IN_CAPITAL, AccountType.TREASURY_STOCK,
        ),
        AccountCategory.REVENUE: (
            AccountType.REVENUE, AccountType.SALES_REVENUE,
            AccountType.SERVICE_REVENUE, AccountType.OTHER_INCOME,
            AccountType.INTEREST_INCOME, AccountType.DIVIDEND_INCOME,
            AccountType.SALES_RETURNS_ALLOWANCES, AccountType.SALES_DISCOUNTS,
        ),
        AccountCategory.EXPENSE: (
            AccountType.EXPENSES, AccountType.COST_OF_GOODS_SOLD,
            AccountType.OPERATING_EXPENSES, AccountType.ADMINISTRATIVE_EXPENSES,
            AccountType.SELLING_EXPENSES, AccountType.DEPRECIATION_EXPENSE,
        ),
    }
    return {t: category for category, types in groups.items() for t in types}


TYPE_CATEGORY: Dict[AccountType, AccountCategory] = _category_map()

ROOT_TYPES = frozenset({
    AccountType.ASSETS,
    AccountType.LIABILITIES,
    AccountType.EQUITY,
    AccountType.REVENUE,
    AccountType.EXPENSES,
})
