"""
Ledgerline Accounting Engine — Application Services
====================================================
ChartOfAccountsService builds and maintains the chart of accounts,
LedgerPostingService posts and reverses journal entries, and
FiscalPeriodService moves fiscal periods through their statuses.

All three take their collaborators as keyword arguments
(repository=, audit_sink=, clock=).
"""

from engines.accounting.services.chart_of_accounts import (
    AccountArchiveResult,
    AccountHierarchyValidation,
    AccountMergeResult,
    AccountMove,
    AccountRenumberingRules,
    ChartOfAccountsService,
    ChartOfAccountsStructure,
    ChartReorganizationPlan,
    ChartReorganizationResult,
    TrialBalance,
    TrialBalanceEntry,
)
from engines.accounting.services.periods import FiscalPeriodService
from engines.accounting.services.posting import LedgerPostingService

__all__ = [
    "AccountArchiveResult",
    "AccountHierarchyValidation",
    "AccountMergeResult",
    "AccountMove",
    "AccountRenumberingRules",
    "ChartOfAccountsService",
    "ChartOfAccountsStructure",
    "ChartReorganizationPlan",
    "ChartReorganizationResult",
    "FiscalPeriodService",
    "LedgerPostingService",
    "TrialBalance",
    "TrialBalanceEntry",
]
