"""
Ledgerline Accounting Engine — Repository Contract and In-Memory Store
=======================================================================
Services talk to persistence only through LedgerRepository.

RULES (NON-NEGOTIABLE):
- save() accepts a snapshot only if its version equals the stored
  version (0 for new rows), then stores version + 1
- Account codes are unique
- atomic() is all-or-nothing: an exception inside the block leaves
  the store exactly as it was before the block
- Balances as of a date are stored balance minus the effect of posted
  lines dated after that date

The in-memory store is deterministic and used by the core layer and tests.
core.ledger_store provides the Django ORM implementation.
"""

from __future__ import annotations

import copy
import logging
import uuid
from contextlib import contextmanager
from dataclasses import replace
from datetime import date
from typing import ContextManager, Dict, Iterator, List, Optional, Protocol

from core.commands.rejection import ReasonCode
from core.primitives.account import Account
from core.primitives.exceptions import (
    AccountNotFoundError,
    AccountValidationError,
    ConcurrencyConflictError,
    JournalEntryNotFoundError,
)
from core.primitives.ledger import JournalEntry, JournalEntryStatus
from core.primitives.money import Money
from core.time.clock import Clock, get_default_clock

logger = logging.getLogger("ledgerline.store")

BALANCE_AFFECTING_STATUSES = (JournalEntryStatus.POSTED, JournalEntryStatus.REVERSED)


class LedgerRepository(Protocol):
    # ── Accounts ──────────────────────────────────────────────

    def find_by_id(self, account_id: uuid.UUID) -> Optional[Account]:
        ...

    def find_by_code(self, code: str) -> Optional[Account]:
        ...

    def find_all(self) -> List[Account]:
        ...

    def find_by_currency(self, currency: str) -> List[Account]:
        ...

    def save(self, account: Account) -> Account:
        ...

    def calculate_balance(self, account_id: uuid.UUID, as_of: Optional[date] = None) -> Money:
        ...

    def reassign_transactions(
        self, from_id: uuid.UUID, to_id: uuid.UUID, effective_date: date,
    ) -> int:
        ...

    def find_inactive_accounts_since(self, cutoff: date) -> List[Account]:
        ...

    def get_days_since_last_activity(self, account_id: uuid.UUID) -> Optional[int]:
        ...

    # ── Journal entries ───────────────────────────────────────

    def save_entry(self, entry: JournalEntry) -> JournalEntry:
        ...

    def find_entry(self, entry_id: uuid.UUID) -> Optional[JournalEntry]:
        ...

    def find_entries_for_account(self, account_id: uuid.UUID) -> List[JournalEntry]:
        ...

    # ── Transactions ──────────────────────────────────────────

    def atomic(self) -> ContextManager[None]:
        ...


def _by_code(accounts) -> List[Account]:
    return sorted(accounts, key=lambda a: a.code)


class InMemoryLedgerRepository:
    """
    Dict-backed LedgerRepository.

    atomic() snapshots both tables and restores them if the block raises.
    """

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock = clock or get_default_clock()
        self._accounts: Dict[uuid.UUID, Account] = {}
        self._entries: Dict[uuid.UUID, JournalEntry] = {}

    # ── Accounts ──────────────────────────────────────────────

    def find_by_id(self, account_id: uuid.UUID) -> Optional[Account]:
        return self._accounts.get(account_id)

    def get(self, account_id: uuid.UUID) -> Account:
        account = self._accounts.get(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    def find_by_code(self, code: str) -> Optional[Account]:
        for account in self._accounts.values():
            if account.code == code:
                return account
        return None

    def find_all(self) -> List[Account]:
        return _by_code(self._accounts.values())

    def find_by_currency(self, currency: str) -> List[Account]:
        return _by_code(a for a in self._accounts.values() if a.currency == currency)

    def save(self, account: Account) -> Account:
        stored = self._accounts.get(account.account_id)
        stored_version = stored.version if stored is not None else 0
        if account.version != stored_version:
            logger.warning(
                f"Version conflict on account {account.code}: "
                f"snapshot v{account.version}, stored v{stored_version}"
            )
            raise ConcurrencyConflictError(
                "Account", account.account_id, account.version,
                stored.version if stored is not None else None,
            )
        holder = self.find_by_code(account.code)
        if holder is not None and holder.account_id != account.account_id:
            raise AccountValidationError(
                [f"Account code '{account.code}' is already in use"],
                code=ReasonCode.DUPLICATE_ACCOUNT_CODE,
            )
        saved = account.with_version(stored_version + 1)
        self._accounts[saved.account_id] = saved
        return saved

    def _posted_lines(self, account_id: uuid.UUID):
        for entry in self._entries.values():
            if entry.status not in BALANCE_AFFECTING_STATUSES:
                continue
            for line in entry.lines:
                if line.account_id == account_id:
                    yield entry, line

    def calculate_balance(self, account_id: uuid.UUID, as_of: Optional[date] = None) -> Money:
        account = self.get(account_id)
        balance = account.balance
        if as_of is None:
            return balance
        for entry, line in self._posted_lines(account_id):
            if entry.entry_date > as_of:
                balance = balance - account.posting_delta(line.debit_amount, line.credit_amount)
        return balance

    def reassign_transactions(
        self, from_id: uuid.UUID, to_id: uuid.UUID, effective_date: date,
    ) -> int:
        """
        Move every posted line of from_id onto to_id.

        Source balance becomes zero; target absorbs it. Returns the
        number of lines moved. Raises InvariantViolationError, before
        anything moves, when the target is inactive or a control account.
        """
        source = self.get(from_id)
        target = self.get(to_id)
        absorbed = target.add_to_balance(source.balance, on=effective_date)
        count = 0
        for entry_id, entry in list(self._entries.items()):
            if not any(line.account_id == from_id for line in entry.lines):
                continue
            lines = []
            for line in entry.lines:
                if line.account_id == from_id:
                    line = replace(line, account_id=to_id)
                    count += 1
                lines.append(line)
            self._entries[entry_id] = replace(
                entry, lines=tuple(lines), version=entry.version + 1
            )

        last_activity = max(
            (d for d in (source.last_activity_date, target.last_activity_date, effective_date)
             if d is not None),
        )
        self._accounts[to_id] = replace(
            absorbed,
            last_activity_date=last_activity,
            version=target.version + 1,
        )
        self._accounts[from_id] = replace(
            source,
            balance=Money.zero(source.currency),
            version=source.version + 1,
        )
        logger.info(
            f"Reassigned {count} lines from {source.code} to {target.code} "
            f"effective {effective_date.isoformat()}"
        )
        return count

    def find_inactive_accounts_since(self, cutoff: date) -> List[Account]:
        """Accounts with no recorded activity on or after cutoff."""
        return _by_code(
            a for a in self._accounts.values()
            if a.last_activity_date is None or a.last_activity_date < cutoff
        )

    def get_days_since_last_activity(self, account_id: uuid.UUID) -> Optional[int]:
        last = self.get(account_id).last_activity_date
        if last is None:
            return None
        return (self._clock.today() - last).days

    # ── Journal entries ───────────────────────────────────────

    def save_entry(self, entry: JournalEntry) -> JournalEntry:
        stored = self._entries.get(entry.entry_id)
        stored_version = stored.version if stored is not None else 0
        if entry.version != stored_version:
            raise ConcurrencyConflictError(
                "JournalEntry", entry.entry_id, entry.version,
                stored.version if stored is not None else None,
            )
        saved = entry.with_version(stored_version + 1)
        self._entries[saved.entry_id] = saved
        return saved

    def find_entry(self, entry_id: uuid.UUID) -> Optional[JournalEntry]:
        return self._entries.get(entry_id)

    def get_entry(self, entry_id: uuid.UUID) -> JournalEntry:
        entry = self._entries.get(entry_id)
        if entry is None:
            raise JournalEntryNotFoundError(entry_id)
        return entry

    def find_entries_for_account(self, account_id: uuid.UUID) -> List[JournalEntry]:
        return sorted(
            (e for e in self._entries.values()
             if any(line.account_id == account_id for line in e.lines)),
            key=lambda e: (e.entry_date, e.entry_number),
        )

    # ── Transactions ──────────────────────────────────────────

    @contextmanager
    def atomic(self) -> Iterator[None]:
        accounts = copy.copy(self._accounts)
        entries = copy.copy(self._entries)
        try:
            yield
        except Exception:
            self._accounts = accounts
            self._entries = entries
            logger.warning("In-memory transaction rolled back")
            raise
