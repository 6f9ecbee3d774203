"""
Ledgerline Accounting Engine — Posting Policies
================================================
Each policy inspects a journal entry (plus what it needs to look at)
and returns None to allow or a RejectionReason to refuse.
Policies never raise and never write.
"""

from __future__ import annotations

import uuid
from typing import Callable, Mapping, Optional, Sequence

from core.commands.rejection import ReasonCode, RejectionReason
from core.primitives.account import Account
from core.primitives.fiscal_period import FiscalPeriod
from core.primitives.ledger import MIN_LINES_PER_ENTRY, JournalEntry

EntryPolicy = Callable[[JournalEntry], Optional[RejectionReason]]


def minimum_lines_policy(entry: JournalEntry) -> Optional[RejectionReason]:
    """Reject entries with fewer than two lines."""
    if entry.has_minimum_lines():
        return None
    return RejectionReason(
        code=ReasonCode.INSUFFICIENT_LINES,
        message=(
            f"Journal entry must have at least {MIN_LINES_PER_ENTRY} lines, "
            f"has {len(entry.lines)}."
        ),
        policy_name="minimum_lines_policy",
    )


def balanced_entry_policy(entry: JournalEntry) -> Optional[RejectionReason]:
    """Reject if any currency's debits != credits."""
    unbalanced = {
        currency: variance
        for currency, variance in entry.variance_by_currency().items()
        if not variance.is_zero()
    }
    if not unbalanced:
        return None
    detail = ", ".join(
        f"{currency} variance {variance.amount}"
        for currency, variance in sorted(unbalanced.items())
    )
    return RejectionReason(
        code=ReasonCode.UNBALANCED_ENTRY,
        message=f"Journal entry unbalanced: {detail}.",
        policy_name="balanced_entry_policy",
    )


def account_accepts_posting_policy(
    entry: JournalEntry,
    accounts: Mapping[uuid.UUID, Optional[Account]],
) -> Optional[RejectionReason]:
    """Every line's account must exist, be active, allow direct posting and share the line currency."""
    for line in entry.lines:
        account = accounts.get(line.account_id)
        if account is None:
            return RejectionReason(
                code=ReasonCode.ACCOUNT_NOT_FOUND,
                message=f"Line {line.line_number}: account {line.account_id} not found.",
                policy_name="account_accepts_posting_policy",
            )
        if not account.is_active:
            return RejectionReason(
                code=ReasonCode.ACCOUNT_INACTIVE,
                message=f"Line {line.line_number}: account {account.code} is inactive.",
                policy_name="account_accepts_posting_policy",
            )
        if not account.allows_direct_posting:
            return RejectionReason(
                code=ReasonCode.DIRECT_POSTING_FORBIDDEN,
                message=(
                    f"Line {line.line_number}: account {account.code} does not "
                    f"allow direct posting."
                ),
                policy_name="account_accepts_posting_policy",
            )
        if account.currency != line.currency:
            return RejectionReason(
                code=ReasonCode.CURRENCY_MISMATCH,
                message=(
                    f"Line {line.line_number}: account {account.code} uses "
                    f"{account.currency}, line uses {line.currency}."
                ),
                policy_name="account_accepts_posting_policy",
            )
    return None


def period_allows_operation_policy(
    entry: JournalEntry,
    period: FiscalPeriod,
) -> Optional[RejectionReason]:
    """The period must cover the entry date and accept its operation type."""
    if entry.fiscal_period_id is not None and entry.fiscal_period_id != period.period_id:
        return RejectionReason(
            code=ReasonCode.PERIOD_MISMATCH,
            message=(
                f"Entry {entry.entry_number} belongs to period "
                f"{entry.fiscal_period_id}, not {period.period_id}."
            ),
            policy_name="period_allows_operation_policy",
        )
    if not period.contains_date(entry.entry_date):
        return RejectionReason(
            code=ReasonCode.DATE_OUTSIDE_PERIOD,
            message=(
                f"Entry date {entry.entry_date.isoformat()} is outside period "
                f"{period.name} ({period.start_date.isoformat()} to "
                f"{period.end_date.isoformat()})."
            ),
            policy_name="period_allows_operation_policy",
        )
    operation = entry.operation_type
    if not period.allows_operation(operation):
        return RejectionReason(
            code=ReasonCode.PERIOD_CLOSED_FOR_OPERATION,
            message=(
                f"Period {period.name} is {period.status.name}; "
                f"{operation.value} postings are not allowed."
            ),
            policy_name="period_allows_operation_policy",
        )
    return None


ENTRY_POLICIES: Sequence[EntryPolicy] = (
    minimum_lines_policy,
    balanced_entry_policy,
)


def evaluate_entry_policies(
    entry: JournalEntry,
    policies: Sequence[EntryPolicy] = ENTRY_POLICIES,
) -> Optional[RejectionReason]:
    """First rejection wins."""
    for policy in policies:
        rejection = policy(entry)
        if rejection is not None:
            return rejection
    return None
