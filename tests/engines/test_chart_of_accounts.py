"""
Ledgerline — Chart of Accounts Service Tests
=============================================
Tests for: standard chart creation, hierarchy validation reports,
account creation, reorganization, merge, archival and trial balance.

All tests run against InMemoryLedgerRepository + InMemoryAuditLog with
a FixedClock.
"""

import uuid
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone

import pytest

from core.audit import InMemoryAuditLog
from core.commands.rejection import ReasonCode
from core.config.rules import HierarchyConfig
from core.primitives.account import Account
from core.primitives.account_types import AccountCategory, AccountType
from core.primitives.exceptions import (
    AccountNotFoundError,
    AccountValidationError,
    CircularReferenceError,
    ConcurrencyConflictError,
    CurrencyMismatchError,
    InvariantViolationError,
)
from core.primitives.fiscal_period import FiscalPeriod, FiscalPeriodStatus
from core.primitives.ledger import JournalEntry
from core.primitives.money import Money
from core.time.clock import FixedClock
from engines.accounting.events import (
    ACCOUNTING_ACCOUNT_ACTIVATION_CHANGED_V1,
    ACCOUNTING_ACCOUNT_ARCHIVED_V1,
    ACCOUNTING_ACCOUNT_CREATED_V1,
    ACCOUNTING_ACCOUNT_MERGED_V1,
    ACCOUNTING_ACCOUNT_PARENT_CHANGED_V1,
    ACCOUNTING_CHART_CREATED_V1,
    ACCOUNTING_CHART_REORGANIZED_V1,
)
from engines.accounting.repository import InMemoryLedgerRepository
from engines.accounting.services import (
    AccountMove,
    AccountRenumberingRules,
    ChartOfAccountsService,
    ChartReorganizationPlan,
    LedgerPostingService,
)

NOW = datetime(2026, 2, 19, 12, 0, 0, tzinfo=timezone.utc)
FEBRUARY = FiscalPeriod.create_monthly_periods(2026, status=FiscalPeriodStatus.open())[1]


def usd(amount: str) -> Money:
    return Money.of(amount, "USD")


class _Ledger:
    """Service bundle sharing one repository, audit log and clock."""

    def __init__(self, config: HierarchyConfig = HierarchyConfig()):
        self.clock = FixedClock(NOW)
        self.repository = InMemoryLedgerRepository(clock=self.clock)
        self.audit = InMemoryAuditLog()
        self.chart = ChartOfAccountsService(
            repository=self.repository, audit_sink=self.audit,
            clock=self.clock, config=config,
        )
        self.posting = LedgerPostingService(
            repository=self.repository, audit_sink=self.audit, clock=self.clock,
        )
        self._numbers = 0

    def account(self, code: str) -> Account:
        return self.repository.find_by_code(code)

    def post(self, debit_code: str, credit_code: str, amount: str, on: date = None):
        self._numbers += 1
        entry = (
            JournalEntry.draft(f"JE-{self._numbers:04d}", on or NOW.date(), "Test posting")
            .add_debit(self.account(debit_code).account_id, usd(amount))
            .add_credit(self.account(credit_code).account_id, usd(amount))
        )
        return self.posting.post_entry(entry, FEBRUARY, "accountant")


@pytest.fixture
def ledger():
    ledger = _Ledger()
    ledger.chart.create_standard_chart_of_accounts("Acme Ltd")
    return ledger


# ══════════════════════════════════════════════════════════════
# STANDARD CHART
# ══════════════════════════════════════════════════════════════

class TestStandardChart:

    def test_standard_chart_counts(self):
        ledger = _Ledger()
        structure = ledger.chart.create_standard_chart_of_accounts("Acme Ltd")
        assert structure.total_accounts == 30
        assert [a.code for a in structure.root_accounts] == ["1000", "2000", "3000", "4000", "5000"]
        assert structure.base_currency == "USD"
        assert structure.created_date == NOW.date()
        assert len(ledger.repository.find_all()) == 30

    def test_detailed_chart_counts(self):
        ledger = _Ledger()
        structure = ledger.chart.create_standard_chart_of_accounts(
            "Acme Ltd", currency="EUR", detailed=True
        )
        assert structure.total_accounts == 66
        assert all(a.currency == "EUR" for a in structure.accounts)
        assert ledger.account("1111").parent_id == ledger.account("1110").account_id

    def test_roots_are_system_accounts(self, ledger):
        assert ledger.account("1000").is_system_account
        assert not ledger.account("1100").is_system_account
        assert ledger.account("1110").requires_reconciliation

    def test_structure_is_linked(self, ledger):
        hierarchy = ledger.chart.load_hierarchy()
        cash = ledger.account("1110")
        assert hierarchy.hierarchy_path(cash.account_id) == "1000 > 1100 > 1110"
        current = ledger.account("1100")
        assert cash.account_id in current.child_ids
        for account in ledger.repository.find_all():
            if account.parent_id is not None:
                parent = ledger.repository.find_by_id(account.parent_id)
                assert parent.category == account.category

    def test_audit_facts(self, ledger):
        assert len(ledger.audit.query_by_name(ACCOUNTING_ACCOUNT_CREATED_V1)) == 30
        assert len(ledger.audit.query_by_name(ACCOUNTING_CHART_CREATED_V1)) == 1

    def test_second_chart_refused_without_writes(self, ledger):
        with pytest.raises(AccountValidationError, match="already in use"):
            ledger.chart.create_standard_chart_of_accounts("Acme Again")
        assert len(ledger.repository.find_all()) == 30


# ══════════════════════════════════════════════════════════════
# VALIDATION REPORT
# ══════════════════════════════════════════════════════════════

class TestValidateAccountHierarchy:

    def test_valid_candidate(self, ledger):
        candidate = Account.new(
            code="1150", name="Deposits", account_type=AccountType.CASH, currency="USD",
        )
        report = ledger.chart.validate_account_hierarchy(candidate, ledger.account("1100"))
        assert report.is_valid
        assert report.issues == ()

    def test_collects_every_issue(self, ledger):
        candidate = Account.new(
            code="2150", name="Wrong", account_type=AccountType.CASH, currency="EUR",
        )
        report = ledger.chart.validate_account_hierarchy(candidate, ledger.account("2100"))
        assert not report.is_valid
        text = " | ".join(report.issues)
        assert "doesn't match expected pattern for CASH" in text
        assert "Parent account category (LIABILITY) differs from account category (ASSET)" in text
        assert "Child account currency (EUR) differs from parent (USD)" in text
        assert "Use account code pattern: 1XXX (Assets: 1000-1999)" in report.recommended_actions

    def test_duplicate_code(self, ledger):
        candidate = Account.new(
            code="1110", name="Cash again", account_type=AccountType.CASH, currency="USD",
        )
        report = ledger.chart.validate_account_hierarchy(candidate)
        assert report.issues == ("Account code '1110' is already in use",)

    def test_cycle(self, ledger):
        report = ledger.chart.validate_account_hierarchy(
            ledger.account("1000"), ledger.account("1110")
        )
        assert not report.is_valid
        assert (
            "Creating this parent-child relationship would create a circular reference"
            in report.issues
        )

    def test_depth(self):
        ledger = _Ledger(HierarchyConfig(max_hierarchy_depth=2))
        ledger.chart.create_standard_chart_of_accounts("Acme Ltd")
        candidate = Account.new(
            code="1119", name="Till", account_type=AccountType.CASH, currency="USD",
        )
        report = ledger.chart.validate_account_hierarchy(candidate, ledger.account("1110"))
        assert "Account hierarchy depth (3) exceeds maximum allowed (2)" in report.issues

    def test_incompatible_type(self, ledger):
        candidate = Account.new(
            code="1119", name="Stock", account_type=AccountType.INVENTORY, currency="USD",
        )
        report = ledger.chart.validate_account_hierarchy(candidate, ledger.account("1110"))
        assert report.issues == ("Account type 'INVENTORY' cannot be a child of 'CASH'",)

    def test_control_parent(self, ledger):
        ledger.chart.mark_as_control_account(ledger.account("1120").account_id)
        candidate = Account.new(
            code="1129", name="Sub", account_type=AccountType.ACCOUNTS_RECEIVABLE, currency="USD",
        )
        report = ledger.chart.validate_account_hierarchy(candidate, ledger.account("1120"))
        assert report.issues == ("Control account '1120' cannot have child accounts",)

    def test_warnings_do_not_invalidate(self, ledger):
        ledger.chart.deactivate(ledger.account("1140").account_id)
        ledger.post("1110", "4100", "10.00")
        prepaid = Account.new(
            code="1149", name="Prepaid rent", account_type=AccountType.PREPAID_EXPENSES,
            currency="USD",
        )
        report = ledger.chart.validate_account_hierarchy(prepaid, ledger.account("1140"))
        assert report.is_valid
        assert report.warnings == ("Parent account '1140' is not active",)

        petty = Account.new(
            code="1119", name="Petty", account_type=AccountType.CASH, currency="USD",
        )
        report = ledger.chart.validate_account_hierarchy(petty, ledger.account("1110"))
        assert report.is_valid
        assert report.warnings == ("Parent account '1110' carries a balance of 10.00 USD",)

    def test_to_dict(self, ledger):
        candidate = Account.new(
            code="1110", name="Dup", account_type=AccountType.CASH, currency="USD",
        )
        d = ledger.chart.validate_account_hierarchy(candidate).to_dict()
        assert d["is_valid"] is False
        assert d["issues"] == ["Account code '1110' is already in use"]


# ══════════════════════════════════════════════════════════════
# SINGLE-ACCOUNT OPERATIONS
# ══════════════════════════════════════════════════════════════

class TestAccountOperations:

    def test_create_account(self, ledger):
        bank = ledger.chart.create_account(
            "1150", "Bank", AccountType.CASH, parent_id=ledger.account("1100").account_id,
            actor="controller",
        )
        assert bank.version == 1
        assert bank.last_activity_date == NOW.date()
        assert bank.account_id in ledger.account("1100").child_ids
        facts = ledger.audit.query_by_subject(bank.account_id)
        assert [f.fact_name for f in facts] == [ACCOUNTING_ACCOUNT_CREATED_V1]
        assert facts[0].actor_id == "controller"

    def test_create_account_unknown_parent(self, ledger):
        with pytest.raises(AccountNotFoundError, match="Parent account not found"):
            ledger.chart.create_account("1150", "Bank", AccountType.CASH, parent_id=uuid.uuid4())

    def test_create_account_invalid(self, ledger):
        with pytest.raises(AccountValidationError) as exc:
            ledger.chart.create_account(
                "4150", "Bank", AccountType.CASH, parent_id=ledger.account("1100").account_id,
            )
        assert len(exc.value.issues) == 1
        assert ledger.account("4150") is None

    def test_set_parent_cycle_rejected(self, ledger):
        with pytest.raises(CircularReferenceError):
            ledger.chart.set_parent(ledger.account("1000").account_id, ledger.account("1110").account_id)
        assert ledger.account("1000").parent_id is None
        assert ledger.audit.query_by_name(ACCOUNTING_ACCOUNT_PARENT_CHANGED_V1) == []

    def test_set_parent_and_back_to_root(self, ledger):
        prepaid = ledger.account("1140")
        moved = ledger.chart.set_parent(prepaid.account_id, ledger.account("1000").account_id)
        assert moved.parent_id == ledger.account("1000").account_id
        assert prepaid.account_id not in ledger.account("1100").child_ids
        root = ledger.chart.set_parent(prepaid.account_id, None)
        assert root.is_root
        assert len(ledger.audit.query_by_name(ACCOUNTING_ACCOUNT_PARENT_CHANGED_V1)) == 2

    def test_deactivate_with_balance(self, ledger):
        ledger.post("1110", "4100", "50.00")
        with pytest.raises(InvariantViolationError) as exc:
            ledger.chart.deactivate(ledger.account("1110").account_id)
        assert exc.value.code == ReasonCode.NON_ZERO_BALANCE
        assert ledger.account("1110").is_active

    def test_deactivate_and_reactivate(self, ledger):
        inventory = ledger.account("1130")
        off = ledger.chart.deactivate(inventory.account_id, actor="controller", reason="No stock")
        assert not off.is_active
        assert ledger.chart.activate(inventory.account_id, actor="controller").is_active

    def test_repeated_deactivate_records_one_fact(self, ledger):
        inventory = ledger.account("1130")
        ledger.chart.deactivate(inventory.account_id, actor="controller", reason="No stock")
        again = ledger.chart.deactivate(inventory.account_id, actor="controller", reason="Still none")

        assert not again.is_active
        assert again.status_change_reason == "No stock"
        assert again.version == inventory.version + 1
        facts = ledger.audit.query_by_name(ACCOUNTING_ACCOUNT_ACTIVATION_CHANGED_V1)
        assert len(facts) == 1

    def test_system_account_deactivation_needs_actor(self, ledger):
        ledger.chart.create_account("1900", "Suspense", AccountType.ASSETS, is_system_account=True)
        with pytest.raises(InvariantViolationError) as exc:
            ledger.chart.deactivate(ledger.account("1900").account_id)
        assert exc.value.code == ReasonCode.ACTOR_REQUIRED

    def test_control_designation(self, ledger):
        receivable = ledger.chart.mark_as_control_account(ledger.account("1120").account_id)
        assert receivable.is_control_account
        assert not ledger.account("1120").allows_direct_posting
        plain = ledger.chart.remove_control_account_designation(receivable.account_id)
        assert plain.allows_direct_posting


# ══════════════════════════════════════════════════════════════
# REORGANIZATION
# ══════════════════════════════════════════════════════════════

class TestReorganization:

    def test_moves_applied_in_order(self, ledger):
        assets = ledger.account("1000").account_id
        plan = ChartReorganizationPlan(moves=[
            AccountMove(ledger.account("1140").account_id, assets, order=2),
            AccountMove(ledger.account("1130").account_id, assets, order=1),
        ])
        result = ledger.chart.reorganize_chart_structure(plan, actor="controller")
        assert result.success
        assert result.moved_accounts == (
            ledger.account("1130").account_id, ledger.account("1140").account_id,
        )
        assert ledger.account("1140").parent_id == assets
        assert len(ledger.audit.query_by_name(ACCOUNTING_CHART_REORGANIZED_V1)) == 1

    def test_duplicate_moves_refused(self, ledger):
        prepaid = ledger.account("1140").account_id
        assets = ledger.account("1000").account_id
        plan = ChartReorganizationPlan(moves=[AccountMove(prepaid, assets), AccountMove(prepaid, None)])
        result = ledger.chart.reorganize_chart_structure(plan)
        assert not result.success
        assert result.errors[0].startswith("Multiple moves specified for accounts")
        assert ledger.account("1140").parent_id == ledger.account("1100").account_id

    def test_unknown_ids_refused(self, ledger):
        missing = uuid.uuid4()
        plan = ChartReorganizationPlan(moves=[AccountMove(missing, ledger.account("1000").account_id)])
        result = ledger.chart.reorganize_chart_structure(plan)
        assert result.errors == (f"Account {missing} not found",)

    def test_cross_move_cycle_refused_before_any_move(self, ledger):
        assets = ledger.account("1000").account_id
        current = ledger.account("1100").account_id
        prepaid = ledger.account("1140").account_id
        plan = ChartReorganizationPlan(moves=[
            AccountMove(prepaid, assets),
            AccountMove(assets, current),
        ])
        result = ledger.chart.reorganize_chart_structure(plan)
        assert not result.success
        assert f"Move {assets} would create circular reference" in result.errors
        assert result.moved_accounts == ()
        assert ledger.account("1140").parent_id == current

    def test_failing_move_does_not_stop_batch(self, ledger):
        cash = ledger.account("1110").account_id
        prepaid = ledger.account("1140").account_id
        plan = ChartReorganizationPlan(moves=[
            AccountMove(cash, ledger.account("2000").account_id, order=1),
            AccountMove(prepaid, ledger.account("1000").account_id, order=2),
        ])
        result = ledger.chart.reorganize_chart_structure(plan)
        assert not result.success
        assert result.moved_accounts == (prepaid,)
        assert result.errors[0].startswith(f"Failed to move account {cash}")
        assert ledger.account("1110").parent_id == ledger.account("1100").account_id

    def test_move_to_current_parent_warns(self, ledger):
        plan = ChartReorganizationPlan(moves=[
            AccountMove(ledger.account("1110").account_id, ledger.account("1100").account_id),
        ])
        result = ledger.chart.reorganize_chart_structure(plan)
        assert result.success
        assert result.moved_accounts == ()
        assert result.warnings == ("Account 1110 is already under the requested parent",)

    def test_renumber_moved_accounts(self, ledger):
        prepaid = ledger.account("1140").account_id
        plan = ChartReorganizationPlan(
            moves=[AccountMove(prepaid, ledger.account("1000").account_id)],
            update_account_codes=True,
        )
        result = ledger.chart.reorganize_chart_structure(plan)
        assert result.renumbered_accounts == (prepaid,)
        assert ledger.repository.find_by_id(prepaid).code == "1010"

    def test_renumber_whole_subtree(self, ledger):
        other = ledger.chart.create_account(
            "1150", "Other Current Assets", AccountType.CURRENT_ASSETS,
            parent_id=ledger.account("1000").account_id,
        )
        deposit = ledger.chart.create_account(
            "1151", "Deposits", AccountType.CASH, parent_id=other.account_id,
        )
        rules = AccountRenumberingRules(preserve_existing_codes=False)
        plan = ChartReorganizationPlan(
            moves=[AccountMove(other.account_id, ledger.account("1100").account_id)],
            update_account_codes=True,
            renumbering_rules=rules,
        )
        result = ledger.chart.reorganize_chart_structure(plan)
        assert result.success
        assert ledger.repository.find_by_id(other.account_id).code == "1010"
        assert ledger.repository.find_by_id(deposit.account_id).code == "1020"

    def test_renumbering_rules_validation(self):
        with pytest.raises(ValueError, match="increment"):
            AccountRenumberingRules(increment=0)
        with pytest.raises(ValueError, match="missing categories"):
            AccountRenumberingRules(starting_numbers={AccountCategory.ASSET: 1000})


# ══════════════════════════════════════════════════════════════
# MERGE
# ══════════════════════════════════════════════════════════════

class TestMerge:

    def _with_bank(self, ledger):
        bank = ledger.chart.create_account(
            "1150", "Bank", AccountType.CASH, parent_id=ledger.account("1100").account_id,
        )
        ledger.post("1150", "4100", "100.00", on=date(2026, 2, 10))
        return bank

    def test_merge_moves_lines_and_balance(self, ledger):
        bank = self._with_bank(ledger)
        cash = ledger.account("1110")
        result = ledger.chart.merge_accounts(
            bank.account_id, cash.account_id, date(2026, 2, 19), "Consolidate banks",
            actor="controller",
        )
        assert result.success
        assert result.reassigned_count == 1
        assert result.source_balance == usd("100.00")
        assert result.target_balance_before == usd("0")
        assert result.target_balance_after == usd("100.00")

        source = ledger.repository.find_by_id(bank.account_id)
        assert not source.is_active
        assert source.balance == usd("0")
        assert ledger.account("1110").balance == usd("100.00")
        entries = ledger.repository.find_entries_for_account(cash.account_id)
        assert len(entries) == 1
        assert ledger.repository.find_entries_for_account(bank.account_id) == []
        assert len(ledger.audit.query_by_name(ACCOUNTING_ACCOUNT_MERGED_V1)) == 1

    def test_merge_different_types(self, ledger):
        result = ledger.chart.merge_accounts(
            ledger.account("1110").account_id, ledger.account("1120").account_id,
            NOW.date(), "Wrong",
        )
        assert not result.success
        assert result.errors == ("Cannot merge accounts of different types: CASH vs ACCOUNTS_RECEIVABLE",)
        assert ledger.account("1110").is_active

    def test_merge_different_currencies(self, ledger):
        euro = ledger.chart.create_account("1900", "Euro Cash", AccountType.CASH, currency="EUR")
        result = ledger.chart.merge_accounts(
            euro.account_id, ledger.account("1110").account_id, NOW.date(), "Wrong",
        )
        assert result.errors == ("Cannot merge accounts with different currencies: EUR vs USD",)

    def test_merge_source_with_children(self, ledger):
        cash = ledger.account("1110")
        petty = ledger.chart.create_account("1115", "Petty", AccountType.CASH, parent_id=cash.account_id)
        result = ledger.chart.merge_accounts(cash.account_id, petty.account_id, NOW.date(), "Flatten")
        assert result.errors == ("Source account 1110 has child accounts",)

    def test_merge_into_itself(self, ledger):
        cash = ledger.account("1110").account_id
        result = ledger.chart.merge_accounts(cash, cash, NOW.date(), "Noop")
        assert "Cannot merge an account into itself" in result.errors

    def test_merge_unknown_account(self, ledger):
        missing = uuid.uuid4()
        result = ledger.chart.merge_accounts(missing, ledger.account("1110").account_id, NOW.date(), "x")
        assert result.errors == (f"Source account {missing} not found",)
        assert result.source_balance is None

    def test_merge_into_inactive_target_refused(self, ledger):
        bank = self._with_bank(ledger)
        spare = ledger.chart.create_account(
            "1160", "Spare", AccountType.CASH, parent_id=ledger.account("1100").account_id,
        )
        ledger.chart.deactivate(spare.account_id)
        result = ledger.chart.merge_accounts(bank.account_id, spare.account_id, NOW.date(), "Park")

        assert not result.success
        assert result.errors == ("Target account 1160 is not active",)
        source = ledger.repository.find_by_id(bank.account_id)
        assert source.is_active
        assert source.balance == usd("100.00")
        assert ledger.account("1160").balance.is_zero()
        assert ledger.audit.query_by_name(ACCOUNTING_ACCOUNT_MERGED_V1) == []

    def test_merge_into_control_target_refused(self, ledger):
        bank = self._with_bank(ledger)
        subledger = ledger.chart.create_account(
            "1170", "Card Clearing", AccountType.CASH, parent_id=ledger.account("1100").account_id,
        )
        ledger.chart.mark_as_control_account(subledger.account_id)
        result = ledger.chart.merge_accounts(bank.account_id, subledger.account_id, NOW.date(), "Park")

        assert not result.success
        assert result.errors == ("Target account 1170 does not allow direct posting",)
        source = ledger.repository.find_by_id(bank.account_id)
        assert source.is_active
        assert source.balance == usd("100.00")
        assert ledger.account("1170").balance.is_zero()
        assert ledger.repository.find_entries_for_account(subledger.account_id) == []

    def test_merge_into_archived_target_refused(self, ledger):
        bank = self._with_bank(ledger)
        spare = ledger.chart.create_account(
            "1160", "Spare", AccountType.CASH, parent_id=ledger.account("1100").account_id,
        )
        ledger.repository.save(ledger.account("1160").archived(actor="controller"))
        result = ledger.chart.merge_accounts(bank.account_id, spare.account_id, NOW.date(), "Park")

        assert not result.success
        assert result.errors == ("Target account 1160 is archived",)
        assert ledger.repository.find_by_id(bank.account_id).balance == usd("100.00")

    def test_repository_refuses_reassignment_into_control_account(self, ledger):
        bank = self._with_bank(ledger)
        ledger.chart.mark_as_control_account(ledger.account("1140").account_id)

        with pytest.raises(InvariantViolationError) as exc:
            ledger.repository.reassign_transactions(
                bank.account_id, ledger.account("1140").account_id, NOW.date(),
            )
        assert exc.value.code == ReasonCode.DIRECT_POSTING_FORBIDDEN
        assert ledger.account("1150").balance == usd("100.00")
        assert len(ledger.repository.find_entries_for_account(bank.account_id)) == 1

    def test_failed_merge_leaves_store_unchanged(self):
        ledger = _Ledger()
        repository = _FailingSaveRepository(clock=ledger.clock)
        ledger.repository = repository
        ledger.chart = ChartOfAccountsService(
            repository=repository, audit_sink=ledger.audit, clock=ledger.clock,
        )
        ledger.posting = LedgerPostingService(
            repository=repository, audit_sink=ledger.audit, clock=ledger.clock,
        )
        ledger.chart.create_standard_chart_of_accounts("Acme Ltd")
        bank = self._with_bank(ledger)
        repository.fail_on = bank.account_id

        result = ledger.chart.merge_accounts(
            bank.account_id, ledger.account("1110").account_id, NOW.date(), "Consolidate",
        )

        assert not result.success
        assert result.errors[0].startswith("Merge failed:")
        assert result.reassigned_count == 0
        assert repository.find_by_id(bank.account_id).balance == usd("100.00")
        assert repository.find_by_id(bank.account_id).is_active
        assert ledger.account("1110").balance == usd("0")
        assert len(repository.find_entries_for_account(bank.account_id)) == 1
        assert ledger.audit.query_by_name(ACCOUNTING_ACCOUNT_MERGED_V1) == []


class _FailingSaveRepository(InMemoryLedgerRepository):
    """Refuses to save one account with a version conflict."""

    fail_on = None

    def save(self, account):
        if account.account_id == self.fail_on:
            raise ConcurrencyConflictError("Account", account.account_id, account.version, None)
        return super().save(account)


# ══════════════════════════════════════════════════════════════
# ARCHIVAL
# ══════════════════════════════════════════════════════════════

class TestArchive:

    def _age(self, ledger, days=400):
        ledger.clock.advance(days=days)
        return ledger.clock.today() - timedelta(days=365)

    def test_dry_run_then_archive(self, ledger):
        cutoff = self._age(ledger)

        preview = ledger.chart.archive_unused_accounts(cutoff, 365, dry_run=True)
        assert preview.is_dry_run
        assert preview.success
        assert len(preview.candidate_accounts) == 30
        assert preview.archived_accounts == ()
        assert not any(a.is_archived for a in ledger.repository.find_all())

        result = ledger.chart.archive_unused_accounts(cutoff, 365)
        assert result.success
        assert set(result.archived_accounts) == set(preview.candidate_accounts)
        assert all(a.is_archived and not a.is_active for a in ledger.repository.find_all())
        assert len(ledger.audit.query_by_name(ACCOUNTING_ACCOUNT_ARCHIVED_V1)) == 30

    def test_children_archived_before_parents(self, ledger):
        cutoff = self._age(ledger)
        result = ledger.chart.archive_unused_accounts(cutoff)
        order = [ledger.repository.find_by_id(i).code for i in result.archived_accounts]
        assert order.index("1110") < order.index("1100") < order.index("1000")

    def test_balances_exclude_and_block_parents(self, ledger):
        ledger.post("1110", "4100", "25.00", on=date(2026, 2, 10))
        cutoff = self._age(ledger)

        candidates = {a.code for a in ledger.chart.find_archive_candidates(cutoff)}
        assert "1110" not in candidates
        assert "4100" not in candidates
        assert "1100" in candidates

        result = ledger.chart.archive_unused_accounts(cutoff)
        assert not result.success
        assert any(e.startswith("Failed to archive account 1100:") for e in result.errors)
        assert ledger.account("1100").is_active
        assert ledger.account("1120").is_archived

    def test_balance_gained_after_dry_run(self, ledger):
        cutoff = self._age(ledger)
        preview = ledger.chart.archive_unused_accounts(cutoff, dry_run=True)
        cash = ledger.account("1110")
        assert cash.account_id in preview.candidate_accounts

        ledger.repository.save(replace(cash, balance=usd("3.00")))
        result = ledger.chart.archive_unused_accounts(cutoff)
        assert cash.account_id not in result.archived_accounts
        assert not ledger.account("1110").is_archived

    def test_minimum_inactive_days(self, ledger):
        cutoff = self._age(ledger)
        assert ledger.chart.find_archive_candidates(cutoff, minimum_inactive_days=500) == []

    def test_recent_activity_not_a_candidate(self, ledger):
        assert ledger.chart.archive_unused_accounts(NOW.date(), 0, dry_run=True).candidate_accounts == ()


# ══════════════════════════════════════════════════════════════
# TRIAL BALANCE
# ══════════════════════════════════════════════════════════════

class TestTrialBalance:

    def test_balanced_trial_balance(self, ledger):
        ledger.post("1110", "4100", "100.00", on=date(2026, 2, 10))
        ledger.post("5200", "1110", "30.00", on=date(2026, 2, 20))

        tb = ledger.chart.calculate_trial_balance(date(2026, 2, 28))
        assert tb.is_balanced
        assert tb.currency == "USD"
        assert tb.total_debits == usd("100.00")
        assert tb.total_credits == usd("100.00")
        rows = {e.account_code: (e.debit_amount, e.credit_amount) for e in tb.entries}
        assert rows == {
            "1110": (usd("70.00"), usd("0")),
            "4100": (usd("0"), usd("100.00")),
            "5200": (usd("30.00"), usd("0")),
        }

    def test_as_of_excludes_later_postings(self, ledger):
        ledger.post("1110", "4100", "100.00", on=date(2026, 2, 10))
        ledger.post("5200", "1110", "30.00", on=date(2026, 2, 20))

        tb = ledger.chart.calculate_trial_balance(date(2026, 2, 15))
        assert [e.account_code for e in tb.entries] == ["1110", "4100"]
        assert tb.total_debits == usd("100.00")

    def test_contra_balance_in_opposite_column(self, ledger):
        ledger.post("5200", "1110", "150.00")
        tb = ledger.chart.calculate_trial_balance(NOW.date())
        cash = next(e for e in tb.entries if e.account_code == "1110")
        assert cash.balance == usd("-150.00")
        assert cash.debit_amount == usd("0")
        assert cash.credit_amount == usd("150.00")
        assert tb.is_balanced

    def test_include_zero(self, ledger):
        assert ledger.chart.calculate_trial_balance(NOW.date()).entries == ()
        tb = ledger.chart.calculate_trial_balance(NOW.date(), include_zero=True)
        assert len(tb.entries) == 30
        assert tb.difference == usd("0")

    def test_mixed_currencies_need_filter(self, ledger):
        ledger.chart.create_account("1900", "Euro Cash", AccountType.CASH, currency="EUR")
        with pytest.raises(CurrencyMismatchError):
            ledger.chart.calculate_trial_balance(NOW.date())
        tb = ledger.chart.calculate_trial_balance(NOW.date(), currency="EUR", include_zero=True)
        assert [e.account_code for e in tb.entries] == ["1900"]

    def test_empty_chart(self):
        tb = _Ledger().chart.calculate_trial_balance(NOW.date())
        assert tb.currency == "USD"
        assert tb.is_balanced

    def test_to_dict(self, ledger):
        ledger.post("1110", "4100", "1.00")
        d = ledger.chart.calculate_trial_balance(NOW.date()).to_dict()
        assert d["is_balanced"] is True
        assert d["total_debits"] == {"amount": "1.00", "currency": "USD"}
        assert d["entries"][0]["account_code"] == "1110"
