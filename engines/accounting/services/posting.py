"""
Ledgerline Accounting Engine — Ledger Posting Service
======================================================
Posts journal entries to account balances.

Contract: strictly all-or-nothing.
- Every check (entry state, balance, line count, accounts, period)
  runs before anything is written
- The entry, its lines and every touched account balance are written
  inside one repository.atomic() block
- On any failure the store is unchanged and a typed error is raised
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Dict, List, Optional, Tuple

from core.audit import AuditSink
from core.commands.rejection import ReasonCode, RejectionReason
from core.primitives.account import Account
from core.primitives.exceptions import (
    JournalEntryNotFoundError,
    PostingRejectedError,
)
from core.primitives.fiscal_period import FiscalPeriod, OperationType
from core.primitives.ledger import JournalEntry
from core.time.clock import Clock, get_default_clock
from engines.accounting.events import journal_posted_fact, journal_reversed_fact
from engines.accounting.policies import (
    account_accepts_posting_policy,
    evaluate_entry_policies,
    period_allows_operation_policy,
)
from engines.accounting.repository import LedgerRepository

logger = logging.getLogger("ledgerline.posting")

BalanceChange = Tuple[Account, Account]


class LedgerPostingService:
    """Stateless coordinator; all state lives in the repository."""

    def __init__(
        self,
        *,
        repository: LedgerRepository,
        audit_sink: Optional[AuditSink] = None,
        clock: Optional[Clock] = None,
    ):
        self._repository = repository
        self._audit_sink = audit_sink
        self._clock = clock or get_default_clock()

    # ── Preview ───────────────────────────────────────────────

    def _load_accounts(self, entry: JournalEntry) -> Dict[uuid.UUID, Optional[Account]]:
        return {
            account_id: self._repository.find_by_id(account_id)
            for account_id in entry.account_ids
        }

    def check_entry(self, entry: JournalEntry, period: FiscalPeriod) -> Optional[RejectionReason]:
        """Run every posting policy without raising or writing."""
        return (
            evaluate_entry_policies(entry)
            or account_accepts_posting_policy(entry, self._load_accounts(entry))
            or period_allows_operation_policy(entry, period)
        )

    # ── Posting ───────────────────────────────────────────────

    def _prepare(
        self, entry: JournalEntry, period: FiscalPeriod, posted_by: str,
    ) -> Tuple[JournalEntry, List[BalanceChange]]:
        # Raises UnbalancedEntryError / InvariantViolationError / InvalidEntryStateError.
        posted = entry.post(posted_by, self._clock.now_utc())

        accounts = self._load_accounts(entry)
        rejection = (
            account_accepts_posting_policy(entry, accounts)
            or period_allows_operation_policy(entry, period)
        )
        if rejection is not None:
            logger.warning(
                f"Posting of {entry.entry_number} rejected: "
                f"{rejection.code} {rejection.message}"
            )
            raise PostingRejectedError(entry.entry_id, rejection)

        updated: Dict[uuid.UUID, Account] = {}
        for line in entry.lines:
            account = updated.get(line.account_id) or accounts[line.account_id]
            delta = account.posting_delta(line.debit_amount, line.credit_amount)
            updated[line.account_id] = account.add_to_balance(delta, on=entry.entry_date)

        changes = [(accounts[account_id], after) for account_id, after in updated.items()]
        return posted, changes

    def _write(self, posted: JournalEntry, changes: List[BalanceChange]) -> JournalEntry:
        for _, after in changes:
            self._repository.save(after)
        return self._repository.save_entry(posted)

    def _emit(self, fact) -> None:
        if self._audit_sink is not None:
            self._audit_sink.record(fact)

    def post_entry(
        self, entry: JournalEntry, period: FiscalPeriod, posted_by: str,
    ) -> JournalEntry:
        """
        Post a DRAFT or APPROVED entry into period.

        Returns the stored POSTED entry. Raises UnbalancedEntryError,
        InvariantViolationError, InvalidEntryStateError or
        PostingRejectedError before any write; ConcurrencyConflictError
        from inside the atomic block rolls everything back.
        """
        posted, changes = self._prepare(entry, period, posted_by)
        with self._repository.atomic():
            saved = self._write(posted, changes)

        self._emit(journal_posted_fact(saved, changes, self._clock.now_utc()))
        logger.info(
            f"Posted {saved.entry_number} ({len(saved.lines)} lines, "
            f"{saved.operation_type.value}) by {posted_by}"
        )
        return saved

    def reverse_entry(
        self,
        entry_id: uuid.UUID,
        period: FiscalPeriod,
        reversed_by: str,
        reversal_date: date,
        reason: str,
    ) -> JournalEntry:
        """
        Post the compensating entry and mark the original REVERSED.

        Both writes share one atomic block. Returns the posted reversal.
        """
        original = self._repository.find_entry(entry_id)
        if original is None:
            raise JournalEntryNotFoundError(entry_id)
        if not period.allows_operation(OperationType.REVERSAL):
            rejection = RejectionReason(
                code=ReasonCode.REVERSAL_NOT_ALLOWED,
                message=f"Period {period.name} is {period.status.name}; reversals are not allowed.",
                policy_name="period_allows_operation_policy",
            )
            logger.warning(f"Reversal of {original.entry_number} rejected: {rejection.message}")
            raise PostingRejectedError(entry_id, rejection)

        reversal = original.create_reversal_entry(
            reversal_date, reason, fiscal_period_id=period.period_id
        )
        marked = original.mark_reversed()
        posted, changes = self._prepare(reversal, period, reversed_by)

        with self._repository.atomic():
            saved = self._write(posted, changes)
            marked = self._repository.save_entry(marked)

        now = self._clock.now_utc()
        self._emit(journal_posted_fact(saved, changes, now))
        self._emit(journal_reversed_fact(marked, saved, reason, now, actor_id=reversed_by))
        logger.info(
            f"Reversed {original.entry_number} with {saved.entry_number} by {reversed_by}"
        )
        return saved
