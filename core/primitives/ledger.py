"""
Ledgerline Ledger Primitive — Double-Entry Journal Core
========================================================
Engine: Core Primitives
Authority: Ledgerline Doctrine — Invariant-Preserving Domain Core

RULES (NON-NEGOTIABLE):
- Every TransactionLine has exactly one positive side; the other side is
  a zero in the same currency (guaranteed by the factories)
- A JournalEntry reaches POSTED only if every currency nets to zero
  and it has at least two lines
- Posted entries are never edited; a reversal is a new entry with
  debit/credit swapped
- Amounts are Decimal Money; currency is explicit on every line

This file contains NO persistence logic.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

from core.commands.rejection import ReasonCode
from core.primitives.account_types import BalanceSide
from core.primitives.exceptions import (
    InvalidEntryStateError,
    InvariantViolationError,
    UnbalancedEntryError,
)
from core.primitives.fiscal_period import OperationType
from core.primitives.money import Money

MIN_LINES_PER_ENTRY = 2


# ══════════════════════════════════════════════════════════════
# ENUMS
# ══════════════════════════════════════════════════════════════

class JournalEntryStatus(Enum):
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    POSTED = "POSTED"
    REJECTED = "REJECTED"
    REVERSED = "REVERSED"


class JournalEntryType(Enum):
    MANUAL = "MANUAL"
    AUTOMATIC = "AUTOMATIC"
    INVOICE = "INVOICE"
    PAYMENT = "PAYMENT"
    PAYROLL = "PAYROLL"
    DEPRECIATION = "DEPRECIATION"
    ADJUSTMENT = "ADJUSTMENT"
    CLOSING = "CLOSING"
    REVERSAL = "REVERSAL"
    ACCRUAL = "ACCRUAL"
    PREPAYMENT = "PREPAYMENT"

    @property
    def operation_type(self) -> OperationType:
        return ENTRY_TYPE_OPERATIONS[self]


ENTRY_TYPE_OPERATIONS: Dict[JournalEntryType, OperationType] = {
    JournalEntryType.MANUAL: OperationType.REGULAR,
    JournalEntryType.AUTOMATIC: OperationType.REGULAR,
    JournalEntryType.INVOICE: OperationType.REGULAR,
    JournalEntryType.PAYMENT: OperationType.REGULAR,
    JournalEntryType.PAYROLL: OperationType.REGULAR,
    JournalEntryType.PREPAYMENT: OperationType.REGULAR,
    JournalEntryType.DEPRECIATION: OperationType.ACCRUAL,
    JournalEntryType.ACCRUAL: OperationType.ACCRUAL,
    JournalEntryType.ADJUSTMENT: OperationType.ADJUSTMENT,
    JournalEntryType.CLOSING: OperationType.YEAR_END_ADJUSTMENT,
    JournalEntryType.REVERSAL: OperationType.REVERSAL,
}


# ══════════════════════════════════════════════════════════════
# TRANSACTION LINE
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TransactionLine:
    """
    One side of a journal entry against one account.

    Build with create_debit / create_credit; the opposite side is set
    to a same-currency zero.
    """
    line_id: uuid.UUID
    entry_id: uuid.UUID
    account_id: uuid.UUID
    line_number: int
    debit_amount: Money
    credit_amount: Money
    description: str = ""

    def __post_init__(self):
        for name in ("line_id", "entry_id", "account_id"):
            if not isinstance(getattr(self, name), uuid.UUID):
                raise ValueError(f"{name} must be UUID.")
        if not isinstance(self.line_number, int) or self.line_number < 1:
            raise ValueError(f"line_number must be an int >= 1, got {self.line_number!r}.")
        if not isinstance(self.debit_amount, Money) or not isinstance(self.credit_amount, Money):
            raise TypeError("debit_amount and credit_amount must be Money.")
        if self.debit_amount.currency != self.credit_amount.currency:
            raise ValueError(
                f"Line sides must share a currency: "
                f"{self.debit_amount.currency} vs {self.credit_amount.currency}."
            )
        if self.debit_amount.is_negative() or self.credit_amount.is_negative():
            raise ValueError("Line amounts cannot be negative.")
        if self.debit_amount.is_zero() == self.credit_amount.is_zero():
            raise ValueError(
                "Exactly one of debit_amount / credit_amount must be positive."
            )

    @classmethod
    def create_debit(
        cls,
        entry_id: uuid.UUID,
        account_id: uuid.UUID,
        amount: Money,
        line_number: int,
        description: str = "",
        line_id: Optional[uuid.UUID] = None,
    ) -> TransactionLine:
        return cls(
            line_id=line_id or uuid.uuid4(),
            entry_id=entry_id,
            account_id=account_id,
            line_number=line_number,
            debit_amount=amount,
            credit_amount=Money.zero(amount.currency),
            description=description,
        )

    @classmethod
    def create_credit(
        cls,
        entry_id: uuid.UUID,
        account_id: uuid.UUID,
        amount: Money,
        line_number: int,
        description: str = "",
        line_id: Optional[uuid.UUID] = None,
    ) -> TransactionLine:
        return cls(
            line_id=line_id or uuid.uuid4(),
            entry_id=entry_id,
            account_id=account_id,
            line_number=line_number,
            debit_amount=Money.zero(amount.currency),
            credit_amount=amount,
            description=description,
        )

    @property
    def side(self) -> BalanceSide:
        return BalanceSide.DEBIT if self.debit_amount.is_positive() else BalanceSide.CREDIT

    @property
    def is_debit(self) -> bool:
        return self.side is BalanceSide.DEBIT

    @property
    def amount(self) -> Money:
        return self.debit_amount if self.is_debit else self.credit_amount

    @property
    def signed_amount(self) -> Money:
        """debit − credit."""
        return self.debit_amount - self.credit_amount

    @property
    def currency(self) -> str:
        return self.debit_amount.currency

    def reversed(self, entry_id: uuid.UUID, line_number: Optional[int] = None) -> TransactionLine:
        """Compensating line for a reversal entry: sides swapped."""
        return TransactionLine(
            line_id=uuid.uuid4(),
            entry_id=entry_id,
            account_id=self.account_id,
            line_number=line_number or self.line_number,
            debit_amount=self.credit_amount,
            credit_amount=self.debit_amount,
            description=f"Reversal: {self.description}" if self.description else "Reversal",
        )

    def to_dict(self) -> dict:
        return {
            "line_id": str(self.line_id),
            "entry_id": str(self.entry_id),
            "account_id": str(self.account_id),
            "line_number": self.line_number,
            "debit_amount": self.debit_amount.to_dict(),
            "credit_amount": self.credit_amount.to_dict(),
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict) -> TransactionLine:
        return cls(
            line_id=uuid.UUID(data["line_id"]),
            entry_id=uuid.UUID(data["entry_id"]),
            account_id=uuid.UUID(data["account_id"]),
            line_number=data["line_number"],
            debit_amount=Money.from_dict(data["debit_amount"]),
            credit_amount=Money.from_dict(data["credit_amount"]),
            description=data.get("description", ""),
        )


# ══════════════════════════════════════════════════════════════
# JOURNAL ENTRY
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class JournalEntry:
    """
    Ordered set of TransactionLines plus metadata.

    Lifecycle: DRAFT → (PENDING_APPROVAL → APPROVED →) POSTED → REVERSED.
    A PENDING_APPROVAL entry can also go to REJECTED. Every operation
    returns a new entry.
    """
    entry_id: uuid.UUID
    entry_number: str
    entry_date: date
    description: str
    lines: Tuple[TransactionLine, ...] = ()
    entry_type: JournalEntryType = JournalEntryType.MANUAL
    status: JournalEntryStatus = JournalEntryStatus.DRAFT
    fiscal_period_id: Optional[uuid.UUID] = None
    reference: str = ""
    reversal_of_entry_id: Optional[uuid.UUID] = None
    operation_type_override: Optional[OperationType] = None
    submitted_by: Optional[str] = None
    approved_by: Optional[str] = None
    rejected_reason: Optional[str] = None
    posted_by: Optional[str] = None
    posted_at: Optional[datetime] = None
    version: int = 0

    def __post_init__(self):
        if not isinstance(self.entry_id, uuid.UUID):
            raise ValueError("entry_id must be UUID.")
        if not self.entry_number or not isinstance(self.entry_number, str):
            raise ValueError("entry_number must be a non-empty string.")
        if not isinstance(self.entry_date, date):
            raise ValueError("entry_date must be a date.")
        if not isinstance(self.entry_type, JournalEntryType):
            raise ValueError("entry_type must be JournalEntryType enum.")
        if not isinstance(self.status, JournalEntryStatus):
            raise ValueError("status must be JournalEntryStatus enum.")
        if not isinstance(self.lines, tuple):
            raise TypeError("lines must be a tuple of TransactionLine.")
        for index, line in enumerate(self.lines, start=1):
            if not isinstance(line, TransactionLine):
                raise TypeError("lines must be a tuple of TransactionLine.")
            if line.entry_id != self.entry_id:
                raise ValueError(
                    f"Line {line.line_number} belongs to entry {line.entry_id}, "
                    f"not {self.entry_id}."
                )
            if line.line_number != index:
                raise ValueError(
                    f"Line numbers must be sequential from 1; "
                    f"expected {index}, got {line.line_number}."
                )
        if self.posted_at is not None and self.posted_at.tzinfo is None:
            raise ValueError("posted_at must be timezone-aware.")
        if self.version < 0:
            raise ValueError("version cannot be negative.")

        if self.status in (JournalEntryStatus.POSTED, JournalEntryStatus.REVERSED):
            self._assert_postable()

    @classmethod
    def draft(
        cls,
        entry_number: str,
        entry_date: date,
        description: str,
        entry_type: JournalEntryType = JournalEntryType.MANUAL,
        fiscal_period_id: Optional[uuid.UUID] = None,
        reference: str = "",
        entry_id: Optional[uuid.UUID] = None,
    ) -> JournalEntry:
        return cls(
            entry_id=entry_id or uuid.uuid4(),
            entry_number=entry_number,
            entry_date=entry_date,
            description=description,
            entry_type=entry_type,
            fiscal_period_id=fiscal_period_id,
            reference=reference,
        )

    # ── Lines ─────────────────────────────────────────────────

    def add_line(
        self,
        account_id: uuid.UUID,
        amount: Money,
        side: BalanceSide,
        description: str = "",
    ) -> JournalEntry:
        """Append a line. DRAFT only."""
        self._require_status("add_line", JournalEntryStatus.DRAFT)
        factory = (
            TransactionLine.create_debit
            if side is BalanceSide.DEBIT
            else TransactionLine.create_credit
        )
        line = factory(
            entry_id=self.entry_id,
            account_id=account_id,
            amount=amount,
            line_number=len(self.lines) + 1,
            description=description,
        )
        return replace(self, lines=self.lines + (line,))

    def add_debit(self, account_id: uuid.UUID, amount: Money, description: str = "") -> JournalEntry:
        return self.add_line(account_id, amount, BalanceSide.DEBIT, description)

    def add_credit(self, account_id: uuid.UUID, amount: Money, description: str = "") -> JournalEntry:
        return self.add_line(account_id, amount, BalanceSide.CREDIT, description)

    @property
    def debit_lines(self) -> List[TransactionLine]:
        return [line for line in self.lines if line.is_debit]

    @property
    def credit_lines(self) -> List[TransactionLine]:
        return [line for line in self.lines if not line.is_debit]

    @property
    def account_ids(self) -> List[uuid.UUID]:
        seen: Dict[uuid.UUID, None] = {}
        for line in self.lines:
            seen.setdefault(line.account_id, None)
        return list(seen)

    @property
    def operation_type(self) -> OperationType:
        return self.operation_type_override or self.entry_type.operation_type

    # ── Balance ───────────────────────────────────────────────

    def totals_by_currency(self) -> Dict[str, Tuple[Money, Money]]:
        """currency → (total debits, total credits)."""
        totals: Dict[str, Tuple[Money, Money]] = {}
        for line in self.lines:
            debit, credit = totals.get(
                line.currency, (Money.zero(line.currency), Money.zero(line.currency))
            )
            totals[line.currency] = (debit + line.debit_amount, credit + line.credit_amount)
        return totals

    def variance_by_currency(self) -> Dict[str, Money]:
        """currency → debits − credits."""
        return {
            currency: debit - credit
            for currency, (debit, credit) in self.totals_by_currency().items()
        }

    def is_balanced(self) -> bool:
        return all(v.is_zero() for v in self.variance_by_currency().values())

    def has_minimum_lines(self) -> bool:
        return len(self.lines) >= MIN_LINES_PER_ENTRY

    def _assert_postable(self) -> None:
        if not self.has_minimum_lines():
            raise InvariantViolationError(
                f"Journal entry {self.entry_number} must have at least "
                f"{MIN_LINES_PER_ENTRY} lines, has {len(self.lines)}.",
                code=ReasonCode.INSUFFICIENT_LINES,
            )
        variances = {c: v for c, v in self.variance_by_currency().items() if not v.is_zero()}
        if variances:
            raise UnbalancedEntryError(self.entry_id, variances)

    # ── Lifecycle ─────────────────────────────────────────────

    def _require_status(self, operation: str, *allowed: JournalEntryStatus) -> None:
        if self.status not in allowed:
            raise InvalidEntryStateError(self.entry_id, self.status.value, operation)

    def submit_for_approval(self, submitted_by: Optional[str] = None) -> JournalEntry:
        self._require_status("submit_for_approval", JournalEntryStatus.DRAFT)
        self._assert_postable()
        return replace(
            self, status=JournalEntryStatus.PENDING_APPROVAL, submitted_by=submitted_by
        )

    def approve(self, approved_by: str) -> JournalEntry:
        self._require_status("approve", JournalEntryStatus.PENDING_APPROVAL)
        return replace(self, status=JournalEntryStatus.APPROVED, approved_by=approved_by)

    def reject(self, reason: str) -> JournalEntry:
        self._require_status("reject", JournalEntryStatus.PENDING_APPROVAL)
        return replace(self, status=JournalEntryStatus.REJECTED, rejected_reason=reason)

    def post(self, posted_by: str, at: datetime) -> JournalEntry:
        """
        DRAFT or APPROVED → POSTED.

        Raises UnbalancedEntryError when any currency does not net to
        zero, InvariantViolationError with fewer than two lines. The
        entry is unchanged on failure.
        """
        self._require_status("post", JournalEntryStatus.DRAFT, JournalEntryStatus.APPROVED)
        self._assert_postable()
        return replace(
            self, status=JournalEntryStatus.POSTED, posted_by=posted_by, posted_at=at
        )

    def mark_reversed(self) -> JournalEntry:
        self._require_status("mark_reversed", JournalEntryStatus.POSTED)
        return replace(self, status=JournalEntryStatus.REVERSED)

    def create_reversal_entry(
        self,
        reversal_date: date,
        reason: str,
        fiscal_period_id: Optional[uuid.UUID] = None,
        entry_id: Optional[uuid.UUID] = None,
    ) -> JournalEntry:
        """
        New DRAFT entry with every line's sides swapped.

        The original entry is not modified; mark it with mark_reversed
        once the reversal is posted.
        """
        self._require_status("create_reversal_entry", JournalEntryStatus.POSTED)
        reversal_id = entry_id or uuid.uuid4()
        return JournalEntry(
            entry_id=reversal_id,
            entry_number=f"REV-{self.entry_number}-{reversal_date:%Y%m%d}",
            entry_date=reversal_date,
            description=f"Reversal of {self.entry_number}: {reason}",
            lines=tuple(line.reversed(reversal_id) for line in self.lines),
            entry_type=JournalEntryType.REVERSAL,
            fiscal_period_id=fiscal_period_id or self.fiscal_period_id,
            reference=f"Reversal of entry {self.entry_number}",
            reversal_of_entry_id=self.entry_id,
        )

    def with_version(self, version: int) -> JournalEntry:
        return replace(self, version=version)

    # ── Serialization ─────────────────────────────────────────

    def to_dict(self) -> dict:
        return {
            "entry_id": str(self.entry_id),
            "entry_number": self.entry_number,
            "entry_date": self.entry_date.isoformat(),
            "description": self.description,
            "lines": [line.to_dict() for line in self.lines],
            "entry_type": self.entry_type.value,
            "status": self.status.value,
            "fiscal_period_id": str(self.fiscal_period_id) if self.fiscal_period_id else None,
            "reference": self.reference,
            "reversal_of_entry_id": (
                str(self.reversal_of_entry_id) if self.reversal_of_entry_id else None
            ),
            "operation_type": self.operation_type.value,
            "posted_by": self.posted_by,
            "posted_at": self.posted_at.isoformat() if self.posted_at else None,
            "version": self.version,
        }
