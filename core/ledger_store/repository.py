"""
Ledgerline Ledger Store - Django Repository
============================================
LedgerRepository over the Django ORM. Rows map 1:1 onto the frozen
snapshots of core.primitives; child_ids are derived from parent links.

The caller owns business validation; this layer enforces only version
stamps and code uniqueness, and wraps every multi-row write in
transaction.atomic().
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import ContextManager, Dict, Iterable, List, Optional, Set

from django.db import transaction
from django.db.models import F, Q, Sum

from core.audit import AuditFact
from core.commands.rejection import ReasonCode
from core.ledger_store.models import (
    AuditFactRecord,
    JournalEntryRecord,
    LedgerAccount,
    TransactionLineRecord,
)
from core.primitives.account import Account
from core.primitives.account_types import AccountType
from core.primitives.exceptions import (
    AccountNotFoundError,
    AccountValidationError,
    ConcurrencyConflictError,
)
from core.primitives.fiscal_period import OperationType
from core.primitives.ledger import (
    JournalEntry,
    JournalEntryStatus,
    JournalEntryType,
    TransactionLine,
)
from core.primitives.money import Money
from core.time.clock import Clock, get_default_clock

logger = logging.getLogger("ledgerline.store")

BALANCE_AFFECTING_STATUSES = (
    JournalEntryStatus.POSTED.value,
    JournalEntryStatus.REVERSED.value,
)


# ══════════════════════════════════════════════════════════════
# ROW MAPPING
# ══════════════════════════════════════════════════════════════

def _children_by_parent(parent_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, Set[uuid.UUID]]:
    children: Dict[uuid.UUID, Set[uuid.UUID]] = defaultdict(set)
    rows = LedgerAccount.objects.filter(parent_id__in=list(parent_ids)).values_list(
        "parent_id", "account_id"
    )
    for parent_id, account_id in rows:
        children[parent_id].add(account_id)
    return children


def _account_from_row(row: LedgerAccount, child_ids: Iterable[uuid.UUID]) -> Account:
    return Account(
        account_id=row.account_id,
        code=row.code,
        name=row.name,
        account_type=AccountType(row.account_type),
        currency=row.currency,
        balance=Money(amount=row.balance, currency=row.currency),
        is_active=row.is_active,
        is_control_account=row.is_control_account,
        allows_direct_posting=row.allows_direct_posting,
        requires_subsidiary=row.requires_subsidiary,
        requires_reconciliation=row.requires_reconciliation,
        is_system_account=row.is_system_account,
        is_archived=row.is_archived,
        parent_id=row.parent_id,
        child_ids=frozenset(child_ids),
        description=row.description,
        last_activity_date=row.last_activity_date,
        status_changed_by=row.status_changed_by,
        status_change_reason=row.status_change_reason,
        version=row.version,
    )


def _accounts_from_rows(rows: Iterable[LedgerAccount]) -> List[Account]:
    rows = list(rows)
    children = _children_by_parent(r.account_id for r in rows)
    return [_account_from_row(r, children.get(r.account_id, ())) for r in rows]


def _account_fields(account: Account) -> dict:
    return {
        "code": account.code,
        "name": account.name,
        "account_type": account.account_type.value,
        "currency": account.currency,
        "balance": account.balance.amount,
        "is_active": account.is_active,
        "is_control_account": account.is_control_account,
        "allows_direct_posting": account.allows_direct_posting,
        "requires_subsidiary": account.requires_subsidiary,
        "requires_reconciliation": account.requires_reconciliation,
        "is_system_account": account.is_system_account,
        "is_archived": account.is_archived,
        "parent_id": account.parent_id,
        "description": account.description,
        "last_activity_date": account.last_activity_date,
        "status_changed_by": account.status_changed_by,
        "status_change_reason": account.status_change_reason,
    }


def _line_from_row(row: TransactionLineRecord) -> TransactionLine:
    return TransactionLine(
        line_id=row.line_id,
        entry_id=row.entry_id,
        account_id=row.account_id,
        line_number=row.line_number,
        debit_amount=Money(amount=row.debit_amount, currency=row.currency),
        credit_amount=Money(amount=row.credit_amount, currency=row.currency),
        description=row.description,
    )


def _entry_from_row(row: JournalEntryRecord) -> JournalEntry:
    lines = sorted(row.lines.all(), key=lambda line: line.line_number)
    return JournalEntry(
        entry_id=row.entry_id,
        entry_number=row.entry_number,
        entry_date=row.entry_date,
        description=row.description,
        lines=tuple(_line_from_row(line) for line in lines),
        entry_type=JournalEntryType(row.entry_type),
        status=JournalEntryStatus(row.status),
        fiscal_period_id=row.fiscal_period_id,
        reference=row.reference,
        reversal_of_entry_id=row.reversal_of_entry_id,
        operation_type_override=(
            OperationType(row.operation_type_override)
            if row.operation_type_override else None
        ),
        submitted_by=row.submitted_by,
        approved_by=row.approved_by,
        rejected_reason=row.rejected_reason,
        posted_by=row.posted_by,
        posted_at=row.posted_at,
        version=row.version,
    )


def _entry_fields(entry: JournalEntry) -> dict:
    return {
        "entry_number": entry.entry_number,
        "entry_date": entry.entry_date,
        "description": entry.description,
        "entry_type": entry.entry_type.value,
        "status": entry.status.value,
        "fiscal_period_id": entry.fiscal_period_id,
        "reference": entry.reference,
        "reversal_of_entry_id": entry.reversal_of_entry_id,
        "operation_type_override": (
            entry.operation_type_override.value if entry.operation_type_override else None
        ),
        "submitted_by": entry.submitted_by,
        "approved_by": entry.approved_by,
        "rejected_reason": entry.rejected_reason,
        "posted_by": entry.posted_by,
        "posted_at": entry.posted_at,
    }


# ══════════════════════════════════════════════════════════════
# REPOSITORY
# ══════════════════════════════════════════════════════════════

class DjangoLedgerRepository:
    """LedgerRepository backed by the core_ledger_store tables."""

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock = clock or get_default_clock()

    # ── Accounts ──────────────────────────────────────────────

    def find_by_id(self, account_id: uuid.UUID) -> Optional[Account]:
        row = LedgerAccount.objects.filter(account_id=account_id).first()
        if row is None:
            return None
        return _accounts_from_rows([row])[0]

    def find_by_code(self, code: str) -> Optional[Account]:
        row = LedgerAccount.objects.filter(code=code).first()
        if row is None:
            return None
        return _accounts_from_rows([row])[0]

    def find_all(self) -> List[Account]:
        return _accounts_from_rows(LedgerAccount.objects.order_by("code"))

    def find_by_currency(self, currency: str) -> List[Account]:
        return _accounts_from_rows(
            LedgerAccount.objects.filter(currency=currency).order_by("code")
        )

    def _get_row(self, account_id: uuid.UUID) -> LedgerAccount:
        row = LedgerAccount.objects.filter(account_id=account_id).first()
        if row is None:
            raise AccountNotFoundError(account_id)
        return row

    def save(self, account: Account) -> Account:
        with transaction.atomic():
            row = (
                LedgerAccount.objects.select_for_update()
                .filter(account_id=account.account_id)
                .first()
            )
            stored_version = row.version if row is not None else 0
            if account.version != stored_version:
                logger.warning(
                    f"Version conflict on account {account.code}: "
                    f"snapshot v{account.version}, stored v{stored_version}"
                )
                raise ConcurrencyConflictError(
                    "Account", account.account_id, account.version,
                    row.version if row is not None else None,
                )
            taken = (
                LedgerAccount.objects.filter(code=account.code)
                .exclude(account_id=account.account_id)
                .exists()
            )
            if taken:
                raise AccountValidationError(
                    [f"Account code '{account.code}' is already in use"],
                    code=ReasonCode.DUPLICATE_ACCOUNT_CODE,
                )
            LedgerAccount.objects.update_or_create(
                account_id=account.account_id,
                defaults={**_account_fields(account), "version": stored_version + 1},
            )
        return account.with_version(stored_version + 1)

    def _posted_sums(self, account_id: uuid.UUID, after: date) -> Dict[str, Decimal]:
        totals = TransactionLineRecord.objects.filter(
            account_id=account_id,
            entry__status__in=BALANCE_AFFECTING_STATUSES,
            entry__entry_date__gt=after,
        ).aggregate(debit=Sum("debit_amount"), credit=Sum("credit_amount"))
        return {
            "debit": totals["debit"] or Decimal("0"),
            "credit": totals["credit"] or Decimal("0"),
        }

    def calculate_balance(self, account_id: uuid.UUID, as_of: Optional[date] = None) -> Money:
        row = self._get_row(account_id)
        account = _account_from_row(row, ())
        if as_of is None:
            return account.balance
        later = self._posted_sums(account_id, as_of)
        delta = account.posting_delta(
            Money(amount=later["debit"], currency=account.currency),
            Money(amount=later["credit"], currency=account.currency),
        )
        return account.balance - delta

    def reassign_transactions(
        self, from_id: uuid.UUID, to_id: uuid.UUID, effective_date: date,
    ) -> int:
        """
        Move every line of from_id onto to_id; target absorbs the balance.

        Raises InvariantViolationError, before anything moves, when the
        target is inactive or a control account.
        """
        with transaction.atomic():
            source = LedgerAccount.objects.select_for_update().get(account_id=from_id)
            target = LedgerAccount.objects.select_for_update().get(account_id=to_id)
            _account_from_row(target, ()).add_to_balance(
                Money(amount=source.balance, currency=source.currency), on=effective_date
            )

            moved_lines = TransactionLineRecord.objects.filter(account_id=from_id)
            entry_ids = list(moved_lines.order_by().values_list("entry_id", flat=True).distinct())
            count = moved_lines.update(account_id=to_id)
            JournalEntryRecord.objects.filter(entry_id__in=entry_ids).update(
                version=F("version") + 1
            )

            activity = [
                d for d in (source.last_activity_date, target.last_activity_date, effective_date)
                if d is not None
            ]
            target.balance = target.balance + source.balance
            target.last_activity_date = max(activity)
            target.version = target.version + 1
            target.save()

            source.balance = Decimal("0")
            source.version = source.version + 1
            source.save()

        logger.info(
            f"Reassigned {count} lines from {source.code} to {target.code} "
            f"effective {effective_date.isoformat()}"
        )
        return count

    def find_inactive_accounts_since(self, cutoff: date) -> List[Account]:
        return _accounts_from_rows(
            LedgerAccount.objects.filter(
                Q(last_activity_date__isnull=True) | Q(last_activity_date__lt=cutoff)
            ).order_by("code")
        )

    def get_days_since_last_activity(self, account_id: uuid.UUID) -> Optional[int]:
        last = self._get_row(account_id).last_activity_date
        if last is None:
            return None
        return (self._clock.today() - last).days

    # ── Journal entries ───────────────────────────────────────

    def save_entry(self, entry: JournalEntry) -> JournalEntry:
        with transaction.atomic():
            row = (
                JournalEntryRecord.objects.select_for_update()
                .filter(entry_id=entry.entry_id)
                .first()
            )
            stored_version = row.version if row is not None else 0
            if entry.version != stored_version:
                raise ConcurrencyConflictError(
                    "JournalEntry", entry.entry_id, entry.version,
                    row.version if row is not None else None,
                )
            record, _ = JournalEntryRecord.objects.update_or_create(
                entry_id=entry.entry_id,
                defaults={**_entry_fields(entry), "version": stored_version + 1},
            )
            TransactionLineRecord.objects.filter(entry_id=entry.entry_id).delete()
            TransactionLineRecord.objects.bulk_create([
                TransactionLineRecord(
                    line_id=line.line_id,
                    entry=record,
                    account_id=line.account_id,
                    line_number=line.line_number,
                    debit_amount=line.debit_amount.amount,
                    credit_amount=line.credit_amount.amount,
                    currency=line.currency,
                    description=line.description,
                )
                for line in entry.lines
            ])
        return entry.with_version(stored_version + 1)

    def find_entry(self, entry_id: uuid.UUID) -> Optional[JournalEntry]:
        row = (
            JournalEntryRecord.objects.prefetch_related("lines")
            .filter(entry_id=entry_id)
            .first()
        )
        return _entry_from_row(row) if row is not None else None

    def find_entries_for_account(self, account_id: uuid.UUID) -> List[JournalEntry]:
        rows = (
            JournalEntryRecord.objects.filter(lines__account_id=account_id)
            .distinct()
            .prefetch_related("lines")
            .order_by("entry_date", "entry_number")
        )
        return [_entry_from_row(row) for row in rows]

    # ── Transactions ──────────────────────────────────────────

    def atomic(self) -> ContextManager[None]:
        return transaction.atomic()


class DjangoAuditSink:
    """AuditSink that appends facts to ledgerline_audit_facts."""

    def record(self, fact: AuditFact) -> None:
        AuditFactRecord.objects.create(
            fact_id=fact.fact_id,
            fact_name=fact.fact_name,
            subject_type=fact.subject_type,
            subject_id=fact.subject_id,
            occurred_at=fact.occurred_at,
            actor_id=fact.actor_id,
            before=fact.before,
            after=fact.after,
            metadata=fact.metadata,
        )

    def query_by_name(self, fact_name: str) -> List[AuditFact]:
        return [
            AuditFact(
                fact_id=row.fact_id,
                fact_name=row.fact_name,
                subject_type=row.subject_type,
                subject_id=row.subject_id,
                occurred_at=row.occurred_at,
                actor_id=row.actor_id,
                before=row.before,
                after=row.after,
                metadata=row.metadata,
            )
            for row in AuditFactRecord.objects.filter(fact_name=fact_name)
        ]
