"""
Ledgerline Core Config — Chart of Accounts Hierarchy Rules
===========================================================
Doctrine: No process-wide statics for structural limits.
Depth limits, code-length bounds, code patterns and parent/child
compatibility live in one immutable HierarchyConfig that is passed
to the hierarchy arena and the chart service. Tests vary limits by
building a different config, never by patching globals.

Deployments may override defaults through the optional Django
setting LEDGERLINE_HIERARCHY (a plain dict, see from_mapping()).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, FrozenSet, Mapping, Optional

from core.primitives.account_types import AccountCategory, AccountType

logger = logging.getLogger("ledgerline.config")


# ══════════════════════════════════════════════════════════════
# DEFAULTS
# ══════════════════════════════════════════════════════════════

MAX_HIERARCHY_DEPTH = 10
MIN_ACCOUNT_CODE_LENGTH = 3
MAX_ACCOUNT_CODE_LENGTH = 20
MAX_CHILDREN_PER_ACCOUNT = 1000

DEFAULT_CODE_PATTERNS: Dict[AccountCategory, str] = {
    AccountCategory.ASSET: r"^1[0-9]{2,4}$",
    AccountCategory.LIABILITY: r"^2[0-9]{2,4}$",
    AccountCategory.EQUITY: r"^3[0-9]{2,4}$",
    AccountCategory.REVENUE: r"^4[0-9]{2,4}$",
    AccountCategory.EXPENSE: r"^[5-9][0-9]{2,4}$",
}


def _parents(*types: AccountType) -> FrozenSet[AccountType]:
    return frozenset(types)


T = AccountType

# child type → parent types it may sit under (besides its own type).
# Every AccountType has an entry; category headers only nest under
# their own type.
DEFAULT_PARENT_RULES: Dict[AccountType, FrozenSet[AccountType]] = {
    # Assets
    T.ASSETS: _parents(),
    T.CURRENT_ASSETS: _parents(T.ASSETS),
    T.FIXED_ASSETS: _parents(T.ASSETS),
    T.CASH: _parents(T.CURRENT_ASSETS, T.ASSETS),
    T.ACCOUNTS_RECEIVABLE: _parents(T.CURRENT_ASSETS, T.ASSETS),
    T.INVENTORY: _parents(T.CURRENT_ASSETS, T.ASSETS),
    T.PREPAID_EXPENSES: _parents(T.CURRENT_ASSETS, T.ASSETS),
    T.ALLOWANCE_DOUBTFUL_ACCOUNTS: _parents(
        T.ACCOUNTS_RECEIVABLE, T.CURRENT_ASSETS, T.ASSETS,
    ),
    T.PROPERTY_PLANT_EQUIPMENT: _parents(T.FIXED_ASSETS, T.ASSETS),
    T.ACCUMULATED_DEPRECIATION: _parents(T.FIXED_ASSETS, T.ASSETS),
    # Liabilities
    T.LIABILITIES: _parents(),
    T.CURRENT_LIABILITIES: _parents(T.LIABILITIES),
    T.LONG_TERM_LIABILITIES: _parents(T.LIABILITIES),
    T.ACCOUNTS_PAYABLE: _parents(T.CURRENT_LIABILITIES, T.LIABILITIES),
    T.ACCRUED_LIABILITIES: _parents(T.CURRENT_LIABILITIES, T.LIABILITIES),
    T.SHORT_TERM_DEBT: _parents(T.CURRENT_LIABILITIES, T.LIABILITIES),
    T.LONG_TERM_DEBT: _parents(T.LONG_TERM_LIABILITIES, T.LIABILITIES),
    T.DEFERRED_TAX_LIABILITY: _parents(T.LONG_TERM_LIABILITIES, T.LIABILITIES),
    # Equity
    T.EQUITY: _parents(),
    T.OWNERS_EQUITY: _parents(T.EQUITY),
    T.RETAINED_EARNINGS: _parents(T.EQUITY),
    T.CURRENT_YEAR_EARNINGS: _parents(T.EQUITY),
    T.COMMON_STOCK: _parents(T.OWNERS_EQUITY, T.EQUITY),
    T.PREFERRED_STOCK: _parents(T.OWNERS_EQUITY, T.EQUITY),
    T.ADDITIONAL_PAID_IN_CAPITAL: _parents(T.OWNERS_EQUITY, T.EQUITY),
    T.TREASURY_STOCK: _parents(T.OWNERS_EQUITY, T.EQUITY),
    # Revenue
    T.REVENUE: _parents(),
    T.SALES_REVENUE: _parents(T.REVENUE),
    T.SERVICE_REVENUE: _parents(T.REVENUE),
    T.OTHER_INCOME: _parents(T.REVENUE),
    T.SALES_RETURNS_ALLOWANCES: _parents(T.SALES_REVENUE, T.REVENUE),
    T.SALES_DISCOUNTS: _parents(T.SALES_REVENUE, T.REVENUE),
    T.INTEREST_INCOME: _parents(T.OTHER_INCOME, T.REVENUE),
    T.DIVIDEND_INCOME: _parents(T.OTHER_INCOME, T.REVENUE),
    # Expenses
    T.EXPENSES: _parents(),
    T.COST_OF_GOODS_SOLD: _parents(T.EXPENSES),
    T.OPERATING_EXPENSES: _parents(T.EXPENSES),
    T.ADMINISTRATIVE_EXPENSES: _parents(T.EXPENSES),
    T.SELLING_EXPENSES: _parents(T.EXPENSES),
    T.DEPRECIATION_EXPENSE: _parents(T.OPERATING_EXPENSES, T.EXPENSES),
}

del T


# ══════════════════════════════════════════════════════════════
# HIERARCHY CONFIG
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class HierarchyConfig:
    """
    Structural limits for a chart of accounts.

    Fields:
        max_hierarchy_depth:      Deepest allowed level (root = 0)
        min_code_length:          Shortest account code
        max_code_length:          Longest account code
        max_children_per_account: Direct children limit per account
        code_patterns:            Regex per category the code must match
        parent_rules:             child type → allowed parent types
        allow_same_type_nesting:  Child may sit under a parent of its own
                                  type (e.g. Petty Cash under Cash)
    """

    max_hierarchy_depth: int = MAX_HIERARCHY_DEPTH
    min_code_length: int = MIN_ACCOUNT_CODE_LENGTH
    max_code_length: int = MAX_ACCOUNT_CODE_LENGTH
    max_children_per_account: int = MAX_CHILDREN_PER_ACCOUNT
    code_patterns: Dict[AccountCategory, str] = field(
        default_factory=lambda: dict(DEFAULT_CODE_PATTERNS)
    )
    parent_rules: Dict[AccountType, FrozenSet[AccountType]] = field(
        default_factory=lambda: dict(DEFAULT_PARENT_RULES)
    )
    allow_same_type_nesting: bool = True

    def __post_init__(self) -> None:
        if self.max_hierarchy_depth < 0:
            raise ValueError(
                f"max_hierarchy_depth must be >= 0, got {self.max_hierarchy_depth}."
            )
        if not 1 <= self.min_code_length <= self.max_code_length:
            raise ValueError(
                f"Code length bounds invalid: "
                f"{self.min_code_length}..{self.max_code_length}."
            )
        if self.max_children_per_account < 1:
            raise ValueError("max_children_per_account must be positive.")
        missing = [c.value for c in AccountCategory if c not in self.code_patterns]
        if missing:
            raise ValueError(f"code_patterns missing categories: {missing}.")
        for category, pattern in self.code_patterns.items():
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValueError(
                    f"Invalid code pattern for {category.value}: {pattern!r}."
                ) from exc

    # ── Checks ────────────────────────────────────────────────

    def is_valid_code(self, code: str, account_type: AccountType) -> bool:
        """Code length within bounds and matching the category pattern."""
        if not isinstance(code, str):
            return False
        if not self.min_code_length <= len(code) <= self.max_code_length:
            return False
        pattern = self.code_patterns[account_type.category]
        return re.fullmatch(pattern, code) is not None

    def can_be_child_of(self, child_type: AccountType, parent_type: AccountType) -> bool:
        """
        Explicit parent/child compatibility.

        Types absent from parent_rules are refused.
        """
        if child_type.category != parent_type.category:
            return False
        if self.allow_same_type_nesting and child_type == parent_type:
            return True
        allowed = self.parent_rules.get(child_type)
        if allowed is None:
            return False
        return parent_type in allowed

    # ── Construction ──────────────────────────────────────────

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> HierarchyConfig:
        """
        Build a config from a plain mapping, e.g. Django settings:

            LEDGERLINE_HIERARCHY = {
                "max_hierarchy_depth": 6,
                "code_patterns": {"EXPENSE": r"^[5-8][0-9]{3}$"},
            }
        """
        config = cls()
        overrides: Dict[str, Any] = {}
        for key in ("max_hierarchy_depth", "min_code_length",
                    "max_code_length", "max_children_per_account",
                    "allow_same_type_nesting"):
            if key in data:
                overrides[key] = data[key]
        if "code_patterns" in data:
            patterns = dict(config.code_patterns)
            for category, pattern in data["code_patterns"].items():
                patterns[AccountCategory(category)] = pattern
            overrides["code_patterns"] = patterns
        if "parent_rules" in data:
            rules = dict(config.parent_rules)
            for child, parents in data["parent_rules"].items():
                rules[AccountType(child)] = frozenset(AccountType(p) for p in parents)
            overrides["parent_rules"] = rules
        unknown = set(data) - set(overrides) - {"code_patterns", "parent_rules"}
        if unknown:
            raise ValueError(f"Unknown hierarchy config keys: {sorted(unknown)}.")
        return replace(config, **overrides)


DEFAULT_HIERARCHY_CONFIG = HierarchyConfig()


def load_hierarchy_config(settings_obj: Optional[Any] = None) -> HierarchyConfig:
    """
    Resolve the hierarchy config from Django settings.

    Falls back to DEFAULT_HIERARCHY_CONFIG when Django settings are not
    configured or carry no LEDGERLINE_HIERARCHY entry.
    """
    if settings_obj is None:
        from django.conf import settings as django_settings

        if not django_settings.configured:
            return DEFAULT_HIERARCHY_CONFIG
        settings_obj = django_settings

    overrides = getattr(settings_obj, "LEDGERLINE_HIERARCHY", None)
    if not overrides:
        return DEFAULT_HIERARCHY_CONFIG

    config = HierarchyConfig.from_mapping(overrides)
    logger.info(
        f"Hierarchy config loaded from settings: depth={config.max_hierarchy_depth}, "
        f"code length {config.min_code_length}..{config.max_code_length}."
    )
    return config
