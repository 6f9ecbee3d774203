from __future__ import annotations

import uuid
from datetime import date, datetime, timezone

import pytest

from core.audit import create_audit_fact
from core.commands.rejection import ReasonCode
from core.ledger_store.models import LedgerAccount, TransactionLineRecord
from core.ledger_store.repository import DjangoAuditSink, DjangoLedgerRepository
from core.primitives.account_types import AccountType
from core.primitives.exceptions import (
    AccountValidationError,
    ConcurrencyConflictError,
    InvariantViolationError,
)
from core.primitives.hierarchy import AccountHierarchy
from core.primitives.ledger import JournalEntry, JournalEntryStatus
from core.primitives.money import Money
from core.time.clock import FixedClock

pytestmark = pytest.mark.django_db(transaction=True)


NOW = datetime(2026, 2, 19, 12, 0, 0, tzinfo=timezone.utc)
CASH_ID = uuid.uuid5(uuid.NAMESPACE_URL, "ledgerline-store-cash")
SALES_ID = uuid.uuid5(uuid.NAMESPACE_URL, "ledgerline-store-sales")


def usd(amount: str) -> Money:
    return Money.of(amount, "USD")


def _repository() -> DjangoLedgerRepository:
    return DjangoLedgerRepository(clock=FixedClock(NOW))


def _seed(repository: DjangoLedgerRepository) -> AccountHierarchy:
    hierarchy = AccountHierarchy()
    assets = hierarchy.create("1000", "Assets", AccountType.ASSETS, "USD", created_on=date(2026, 1, 1))
    hierarchy.create(
        "1110", "Cash", AccountType.CASH, "USD", assets.account_id,
        account_id=CASH_ID, created_on=date(2026, 1, 1),
    )
    hierarchy.create(
        "4100", "Sales", AccountType.SALES_REVENUE, "USD",
        account_id=SALES_ID, created_on=date(2026, 1, 1),
    )
    for account in hierarchy.drain_changes():
        hierarchy.put(repository.save(account))
    return hierarchy


def _post(repository: DjangoLedgerRepository, number: str, on: date, amount: str) -> JournalEntry:
    entry = (
        JournalEntry.draft(number, on, "Cash sale")
        .add_debit(CASH_ID, usd(amount))
        .add_credit(SALES_ID, usd(amount))
        .post("accountant", NOW)
    )
    for line in entry.lines:
        account = repository.find_by_id(line.account_id)
        delta = account.posting_delta(line.debit_amount, line.credit_amount)
        repository.save(account.add_to_balance(delta, on=on))
    return repository.save_entry(entry)


def test_save_and_load_round_trip_derives_children() -> None:
    repository = _repository()
    hierarchy = _seed(repository)

    cash = repository.find_by_id(CASH_ID)
    assets = repository.find_by_code("1000")

    assert cash.version == 1
    assert cash.parent_id == assets.account_id
    assert assets.child_ids == frozenset({CASH_ID})
    assert cash == hierarchy.get(CASH_ID)
    assert [a.code for a in repository.find_all()] == ["1000", "1110", "4100"]
    assert len(repository.find_by_currency("USD")) == 3
    assert repository.find_by_currency("EUR") == []


def test_save_rejects_stale_version() -> None:
    repository = _repository()
    _seed(repository)
    stale = repository.find_by_id(CASH_ID)
    repository.save(stale.with_code("1111"))

    with pytest.raises(ConcurrencyConflictError):
        repository.save(stale.with_code("1112"))
    assert repository.find_by_id(CASH_ID).code == "1111"


def test_save_rejects_duplicate_code() -> None:
    repository = _repository()
    _seed(repository)
    cash = repository.find_by_id(CASH_ID)

    with pytest.raises(AccountValidationError, match="already in use"):
        repository.save(cash.with_code("1000"))
    assert LedgerAccount.objects.get(account_id=CASH_ID).code == "1110"


def test_save_entry_persists_lines_and_balance_as_of() -> None:
    repository = _repository()
    _seed(repository)
    _post(repository, "JE-0001", date(2026, 1, 10), "100.00")
    second = _post(repository, "JE-0002", date(2026, 2, 10), "40.00")

    stored = repository.find_entry(second.entry_id)
    assert stored.status == JournalEntryStatus.POSTED
    assert [line.line_number for line in stored.lines] == [1, 2]
    assert stored.lines[0].debit_amount == usd("40.00")

    assert repository.calculate_balance(CASH_ID) == usd("140.00")
    assert repository.calculate_balance(CASH_ID, as_of=date(2026, 1, 31)) == usd("100.00")
    assert repository.calculate_balance(SALES_ID, as_of=date(2026, 1, 31)) == usd("100.00")
    assert [e.entry_number for e in repository.find_entries_for_account(CASH_ID)] == [
        "JE-0001", "JE-0002",
    ]


def test_reassign_transactions_moves_lines_and_balance() -> None:
    repository = _repository()
    hierarchy = _seed(repository)
    bank = hierarchy.create(
        "1120", "Bank", AccountType.CASH, "USD",
        hierarchy.get(CASH_ID).parent_id, created_on=date(2026, 1, 1),
    )
    for account in hierarchy.drain_changes():
        repository.save(account)
    _post(repository, "JE-0001", date(2026, 1, 10), "75.00")

    moved = repository.reassign_transactions(CASH_ID, bank.account_id, date(2026, 2, 1))

    assert moved == 1
    assert not TransactionLineRecord.objects.filter(account_id=CASH_ID).exists()
    assert repository.find_by_id(CASH_ID).balance == usd("0")
    target = repository.find_by_id(bank.account_id)
    assert target.balance == usd("75.00")
    assert target.last_activity_date == date(2026, 2, 1)


def test_reassign_into_inactive_account_moves_nothing() -> None:
    repository = _repository()
    hierarchy = _seed(repository)
    bank = hierarchy.create(
        "1120", "Bank", AccountType.CASH, "USD",
        hierarchy.get(CASH_ID).parent_id, created_on=date(2026, 1, 1),
    )
    hierarchy.deactivate(bank.account_id, reason="Closed")
    for account in hierarchy.drain_changes():
        repository.save(account)
    _post(repository, "JE-0001", date(2026, 1, 10), "75.00")

    with pytest.raises(InvariantViolationError) as exc:
        repository.reassign_transactions(CASH_ID, bank.account_id, date(2026, 2, 1))

    assert exc.value.code == ReasonCode.ACCOUNT_INACTIVE
    assert TransactionLineRecord.objects.filter(account_id=CASH_ID).count() == 1
    assert repository.find_by_id(CASH_ID).balance == usd("75.00")
    assert repository.find_by_id(bank.account_id).balance == usd("0")


def test_inactive_accounts_and_days_since_activity() -> None:
    repository = _repository()
    _seed(repository)
    _post(repository, "JE-0001", date(2026, 2, 9), "1.00")

    inactive = repository.find_inactive_accounts_since(date(2026, 2, 1))
    assert [a.code for a in inactive] == ["1000"]
    assert repository.get_days_since_last_activity(CASH_ID) == 10


def test_atomic_rolls_back() -> None:
    repository = _repository()
    _seed(repository)

    with pytest.raises(ConcurrencyConflictError):
        with repository.atomic():
            cash = repository.find_by_id(CASH_ID)
            repository.save(cash.with_code("1115"))
            repository.save(cash.with_code("1116"))

    assert repository.find_by_id(CASH_ID).code == "1110"


def test_django_audit_sink_round_trip() -> None:
    sink = DjangoAuditSink()
    fact = create_audit_fact(
        fact_name="ledger.account.created.v1",
        subject_type="Account",
        subject_id=str(CASH_ID),
        occurred_at=NOW,
        actor_id="controller",
        after={"code": "1110"},
    )
    sink.record(fact)

    stored = sink.query_by_name("ledger.account.created.v1")
    assert len(stored) == 1
    assert stored[0].subject_id == str(CASH_ID)
    assert stored[0].after == {"code": "1110"}
