"""
Ledgerline Core — Exceptions
=============================
Structured errors raised by the accounting core.

Taxonomy:
    LedgerValidationError   — structural/format violation, checked
                              before any mutation
    InvariantViolationError — cycle, unbalanced entry, non-leaf control
                              account; rejected atomically
    StateTransitionError    — illegal lifecycle move; state retained
    NotFoundError           — unknown id; surfaced, never retried
    PostingRejectedError    — a posting policy refused the entry
    ConcurrencyConflictError — optimistic version mismatch on save

Every error carries a machine-readable `code` (see ReasonCode).
Report-style operations never raise these; they return reports.
"""

from __future__ import annotations

from typing import Iterable, Optional

from core.commands.rejection import ReasonCode, RejectionReason


class LedgerError(Exception):
    """Base error for accounting core operations."""

    code: str = "LEDGER_ERROR"


# ══════════════════════════════════════════════════════════════
# VALIDATION
# ══════════════════════════════════════════════════════════════

class LedgerValidationError(LedgerError):
    """A structural or format rule was violated."""

    def __init__(self, message: str, code: str = ReasonCode.ACCOUNT_VALIDATION_FAILED):
        self.code = code
        super().__init__(message)


class AccountValidationError(LedgerValidationError):
    """Account creation or change failed one or more hierarchy checks."""

    def __init__(
        self,
        issues: Iterable[str],
        code: str = ReasonCode.ACCOUNT_VALIDATION_FAILED,
    ):
        self.issues = tuple(issues)
        super().__init__(
            f"Account validation failed: {', '.join(self.issues)}",
            code=code,
        )


class CurrencyMismatchError(LedgerValidationError):

    def __init__(self, expected: str, actual: str, context: str = ""):
        self.expected = expected
        self.actual = actual
        suffix = f" ({context})" if context else ""
        super().__init__(
            f"Currency mismatch: expected {expected}, got {actual}{suffix}.",
            code=ReasonCode.CURRENCY_MISMATCH,
        )


# ══════════════════════════════════════════════════════════════
# INVARIANTS
# ══════════════════════════════════════════════════════════════

class InvariantViolationError(LedgerError):
    """A domain invariant would be broken. State is unchanged."""

    def __init__(self, message: str, code: str):
        self.code = code
        super().__init__(message)


class CircularReferenceError(InvariantViolationError):

    def __init__(self, account_id, proposed_parent_id):
        self.account_id = account_id
        self.proposed_parent_id = proposed_parent_id
        super().__init__(
            f"Setting parent {proposed_parent_id} on account {account_id} "
            f"would create a circular reference.",
            code=ReasonCode.CIRCULAR_REFERENCE,
        )


class UnbalancedEntryError(InvariantViolationError):
    """Journal entry does not net to zero in every currency."""

    def __init__(self, entry_id, variances: dict):
        self.entry_id = entry_id
        self.variances = dict(variances)
        detail = ", ".join(
            f"{currency}: {amount}" for currency, amount in sorted(self.variances.items())
        )
        super().__init__(
            f"LEDGER INVARIANT VIOLATION: Journal entry {entry_id} is "
            f"unbalanced (debits - credits = {detail}).",
            code=ReasonCode.UNBALANCED_ENTRY,
        )


class ControlAccountError(InvariantViolationError):

    def __init__(self, account_code: str, message: str):
        self.account_code = account_code
        super().__init__(
            f"Account '{account_code}': {message}",
            code=ReasonCode.NOT_A_LEAF,
        )


# ══════════════════════════════════════════════════════════════
# STATE TRANSITIONS
# ══════════════════════════════════════════════════════════════

class StateTransitionError(LedgerError):
    """Illegal lifecycle transition. Current state is retained."""

    code = ReasonCode.INVALID_STATUS_TRANSITION


class InvalidStatusTransitionError(StateTransitionError):
    """Fiscal period status transition not in the adjacency table."""

    def __init__(self, from_status: str, to_status: str, allowed: Iterable[str]):
        self.from_status = from_status
        self.to_status = to_status
        self.allowed = tuple(sorted(allowed))
        super().__init__(
            f"Invalid status transition: {from_status} → {to_status}. "
            f"Allowed: {list(self.allowed)}."
        )


class InvalidEntryStateError(StateTransitionError):
    """Journal entry operation not legal in the entry's current status."""

    code = ReasonCode.INVALID_ENTRY_STATE

    def __init__(self, entry_id, status: str, operation: str):
        self.entry_id = entry_id
        self.status = status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} journal entry {entry_id} in status {status}."
        )


# ══════════════════════════════════════════════════════════════
# LOOKUP
# ══════════════════════════════════════════════════════════════

class NotFoundError(LedgerError):
    """Referenced entity does not exist."""


class AccountNotFoundError(NotFoundError):

    code = ReasonCode.ACCOUNT_NOT_FOUND

    def __init__(self, account_ref, role: str = "Account"):
        self.account_ref = account_ref
        self.role = role
        super().__init__(f"{role} not found: {account_ref}")


class JournalEntryNotFoundError(NotFoundError):

    code = ReasonCode.ENTRY_NOT_FOUND

    def __init__(self, entry_id):
        self.entry_id = entry_id
        super().__init__(f"Journal entry not found: {entry_id}")


# ══════════════════════════════════════════════════════════════
# POSTING / PERSISTENCE
# ══════════════════════════════════════════════════════════════

class PostingRejectedError(LedgerError):
    """A posting policy refused the journal entry. Nothing was written."""

    def __init__(self, entry_id, reason: RejectionReason):
        self.entry_id = entry_id
        self.reason = reason
        self.code = reason.code
        super().__init__(
            f"Posting of journal entry {entry_id} rejected by "
            f"{reason.policy_name}: {reason.message}"
        )


class ConcurrencyConflictError(LedgerError):
    """Stored version differs from the version the caller read."""

    code = ReasonCode.VERSION_CONFLICT

    def __init__(self, entity: str, entity_id, expected: int, actual: Optional[int]):
        self.entity = entity
        self.entity_id = entity_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{entity} {entity_id} was modified concurrently: "
            f"expected version {expected}, stored version {actual}."
        )
