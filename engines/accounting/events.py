"""
Ledgerline Accounting Engine — Fact Names and Fact Builders
============================================================
Engine: Accounting
Authority: Ledgerline Doctrine — Every Mutation Leaves a Fact

Services emit one AuditFact per completed mutation. Builders here are
pure: they take domain snapshots and return facts with before/after
values.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, List, Optional

from core.audit import AuditFact, create_audit_fact
from core.primitives.account import Account
from core.primitives.fiscal_period import FiscalPeriod, FiscalPeriodStatus
from core.primitives.ledger import JournalEntry


# ══════════════════════════════════════════════════════════════
# FACT NAME CONSTANTS
# ══════════════════════════════════════════════════════════════

ACCOUNTING_ACCOUNT_CREATED_V1 = "accounting.account.created.v1"
ACCOUNTING_ACCOUNT_PARENT_CHANGED_V1 = "accounting.account.parent_changed.v1"
ACCOUNTING_ACCOUNT_ACTIVATION_CHANGED_V1 = "accounting.account.activation_changed.v1"
ACCOUNTING_ACCOUNT_CONTROL_DESIGNATED_V1 = "accounting.account.control_designated.v1"
ACCOUNTING_ACCOUNT_MERGED_V1 = "accounting.account.merged.v1"
ACCOUNTING_ACCOUNT_ARCHIVED_V1 = "accounting.account.archived.v1"
ACCOUNTING_JOURNAL_POSTED_V1 = "accounting.journal.posted.v1"
ACCOUNTING_JOURNAL_REVERSED_V1 = "accounting.journal.reversed.v1"
ACCOUNTING_CHART_CREATED_V1 = "accounting.chart.created.v1"
ACCOUNTING_CHART_REORGANIZED_V1 = "accounting.chart.reorganized.v1"
ACCOUNTING_PERIOD_STATUS_CHANGED_V1 = "accounting.period.status_changed.v1"

ACCOUNTING_FACT_NAMES = (
    ACCOUNTING_ACCOUNT_CREATED_V1,
    ACCOUNTING_ACCOUNT_PARENT_CHANGED_V1,
    ACCOUNTING_ACCOUNT_ACTIVATION_CHANGED_V1,
    ACCOUNTING_ACCOUNT_CONTROL_DESIGNATED_V1,
    ACCOUNTING_ACCOUNT_MERGED_V1,
    ACCOUNTING_ACCOUNT_ARCHIVED_V1,
    ACCOUNTING_JOURNAL_POSTED_V1,
    ACCOUNTING_JOURNAL_REVERSED_V1,
    ACCOUNTING_CHART_CREATED_V1,
    ACCOUNTING_CHART_REORGANIZED_V1,
    ACCOUNTING_PERIOD_STATUS_CHANGED_V1,
)


# ══════════════════════════════════════════════════════════════
# FACT BUILDERS
# ══════════════════════════════════════════════════════════════

def _account_fact(
    fact_name: str,
    account: Account,
    occurred_at: datetime,
    actor_id: Optional[str],
    before: dict,
    after: dict,
    metadata: Optional[dict] = None,
) -> AuditFact:
    return create_audit_fact(
        fact_name=fact_name,
        subject_type="account",
        subject_id=account.account_id,
        occurred_at=occurred_at,
        actor_id=actor_id,
        before=before,
        after=after,
        metadata={"code": account.code, **(metadata or {})},
    )


def account_created_fact(
    account: Account, occurred_at: datetime, actor_id: Optional[str] = None,
) -> AuditFact:
    return _account_fact(
        ACCOUNTING_ACCOUNT_CREATED_V1, account, occurred_at, actor_id,
        before={},
        after={
            "code": account.code,
            "name": account.name,
            "account_type": account.account_type.value,
            "currency": account.currency,
            "parent_id": str(account.parent_id) if account.parent_id else None,
        },
    )


def account_parent_changed_fact(
    before: Account, after: Account, occurred_at: datetime, actor_id: Optional[str] = None,
) -> AuditFact:
    return _account_fact(
        ACCOUNTING_ACCOUNT_PARENT_CHANGED_V1, after, occurred_at, actor_id,
        before={"parent_id": str(before.parent_id) if before.parent_id else None},
        after={"parent_id": str(after.parent_id) if after.parent_id else None},
    )


def account_activation_changed_fact(
    before: Account,
    after: Account,
    occurred_at: datetime,
    actor_id: Optional[str] = None,
    reason: str = "",
) -> AuditFact:
    return _account_fact(
        ACCOUNTING_ACCOUNT_ACTIVATION_CHANGED_V1, after, occurred_at, actor_id,
        before={"is_active": before.is_active},
        after={"is_active": after.is_active},
        metadata={"reason": reason} if reason else None,
    )


def account_control_designated_fact(
    before: Account, after: Account, occurred_at: datetime, actor_id: Optional[str] = None,
) -> AuditFact:
    def _flags(a: Account) -> dict:
        return {
            "is_control_account": a.is_control_account,
            "allows_direct_posting": a.allows_direct_posting,
            "requires_subsidiary": a.requires_subsidiary,
        }

    return _account_fact(
        ACCOUNTING_ACCOUNT_CONTROL_DESIGNATED_V1, after, occurred_at, actor_id,
        before=_flags(before),
        after=_flags(after),
    )


def account_merged_fact(
    source_before: Account,
    target_before: Account,
    source_after: Account,
    target_after: Account,
    reassigned_count: int,
    effective_date: date,
    reason: str,
    occurred_at: datetime,
    actor_id: Optional[str] = None,
) -> AuditFact:
    return _account_fact(
        ACCOUNTING_ACCOUNT_MERGED_V1, source_after, occurred_at, actor_id,
        before={
            "source_balance": source_before.balance.to_dict(),
            "target_balance": target_before.balance.to_dict(),
            "source_active": source_before.is_active,
        },
        after={
            "source_balance": source_after.balance.to_dict(),
            "target_balance": target_after.balance.to_dict(),
            "source_active": source_after.is_active,
        },
        metadata={
            "target_account_id": str(target_after.account_id),
            "target_code": target_after.code,
            "reassigned_count": reassigned_count,
            "effective_date": effective_date.isoformat(),
            "reason": reason,
        },
    )


def account_archived_fact(
    before: Account, after: Account, occurred_at: datetime, actor_id: Optional[str] = None,
) -> AuditFact:
    return _account_fact(
        ACCOUNTING_ACCOUNT_ARCHIVED_V1, after, occurred_at, actor_id,
        before={"is_active": before.is_active, "is_archived": before.is_archived},
        after={"is_active": after.is_active, "is_archived": after.is_archived},
    )


def journal_posted_fact(
    entry: JournalEntry,
    balance_changes: Iterable[tuple],
    occurred_at: datetime,
) -> AuditFact:
    """balance_changes: (before Account, after Account) pairs."""
    before: dict = {}
    after: dict = {}
    for old, new in balance_changes:
        before[str(old.account_id)] = old.balance.to_dict()
        after[str(new.account_id)] = new.balance.to_dict()
    return create_audit_fact(
        fact_name=ACCOUNTING_JOURNAL_POSTED_V1,
        subject_type="journal_entry",
        subject_id=entry.entry_id,
        occurred_at=occurred_at,
        actor_id=entry.posted_by,
        before={"balances": before},
        after={"balances": after},
        metadata={
            "entry_number": entry.entry_number,
            "entry_date": entry.entry_date.isoformat(),
            "operation_type": entry.operation_type.value,
            "line_count": len(entry.lines),
            "reversal_of_entry_id": (
                str(entry.reversal_of_entry_id) if entry.reversal_of_entry_id else None
            ),
        },
    )


def journal_reversed_fact(
    original: JournalEntry,
    reversal: JournalEntry,
    reason: str,
    occurred_at: datetime,
    actor_id: Optional[str] = None,
) -> AuditFact:
    return create_audit_fact(
        fact_name=ACCOUNTING_JOURNAL_REVERSED_V1,
        subject_type="journal_entry",
        subject_id=original.entry_id,
        occurred_at=occurred_at,
        actor_id=actor_id,
        before={"status": "POSTED"},
        after={"status": original.status.value},
        metadata={
            "reversal_entry_id": str(reversal.entry_id),
            "reversal_entry_number": reversal.entry_number,
            "reason": reason,
        },
    )


def chart_created_fact(
    company_name: str,
    currency: str,
    accounts: List[Account],
    detailed: bool,
    occurred_at: datetime,
    actor_id: Optional[str] = None,
) -> AuditFact:
    return create_audit_fact(
        fact_name=ACCOUNTING_CHART_CREATED_V1,
        subject_type="chart_of_accounts",
        subject_id=company_name,
        occurred_at=occurred_at,
        actor_id=actor_id,
        after={
            "currency": currency,
            "detailed": detailed,
            "account_codes": [a.code for a in accounts],
        },
    )


def chart_reorganized_fact(
    moved: List[tuple],
    errors: List[str],
    occurred_at: datetime,
    actor_id: Optional[str] = None,
) -> AuditFact:
    """moved: (before Account, after Account) pairs."""
    return create_audit_fact(
        fact_name=ACCOUNTING_CHART_REORGANIZED_V1,
        subject_type="chart_of_accounts",
        subject_id="reorganization",
        occurred_at=occurred_at,
        actor_id=actor_id,
        before={
            str(old.account_id): {
                "code": old.code,
                "parent_id": str(old.parent_id) if old.parent_id else None,
            }
            for old, _ in moved
        },
        after={
            str(new.account_id): {
                "code": new.code,
                "parent_id": str(new.parent_id) if new.parent_id else None,
            }
            for _, new in moved
        },
        metadata={"error_count": len(errors)},
    )


def period_status_changed_fact(
    period: FiscalPeriod,
    previous: FiscalPeriodStatus,
    occurred_at: datetime,
    actor_id: Optional[str] = None,
) -> AuditFact:
    return create_audit_fact(
        fact_name=ACCOUNTING_PERIOD_STATUS_CHANGED_V1,
        subject_type="fiscal_period",
        subject_id=period.period_id,
        occurred_at=occurred_at,
        actor_id=actor_id,
        before={"status": previous.status_type.value},
        after={"status": period.status.status_type.value},
        metadata={
            "fiscal_year": period.fiscal_year,
            "period_number": period.period_number,
            "reason": period.status.status_change_reason,
        },
    )
