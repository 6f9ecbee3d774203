"""
Ledgerline Fiscal Period Primitive — Status State Machine
==========================================================
Engine: Core Primitives
Authority: Ledgerline Doctrine — Data-Driven State Tables

A fiscal period's status gates which postings are legal. The machine is
two pieces of data:

- STATUS_PERMISSIONS: state → StatusPermissions (pure function of the tag)
- STATUS_TRANSITIONS: state → set of legal next states

RULES (NON-NEGOTIABLE):
- Permissions are derived from the state tag only; no stored override
- A transition is legal only if the target is in the adjacency set
- Final states (PERMANENTLY_CLOSED, ARCHIVED) have no way out
- Deadlines are plain dates; "today" is always an argument
- Nothing here transitions by itself; due_auto_transition only reports
"""

from __future__ import annotations

import calendar
import uuid
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple

from core.primitives.exceptions import InvalidStatusTransitionError

DEADLINE_WARNING_DAYS = 7
MAX_DESCRIPTION_LENGTH = 500
MAX_REASON_LENGTH = 1000


# ══════════════════════════════════════════════════════════════
# ENUMS
# ══════════════════════════════════════════════════════════════

class StatusGroup(Enum):
    PLANNING = "PLANNING"
    ACTIVE = "ACTIVE"
    CLOSING = "CLOSING"
    CLOSED = "CLOSED"
    ADJUSTMENT = "ADJUSTMENT"
    SPECIAL = "SPECIAL"
    ERROR = "ERROR"
    MAINTENANCE = "MAINTENANCE"
    FUTURE = "FUTURE"


class FiscalPeriodStatusType(Enum):
    # Planning
    PLANNING = "PLANNING"
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    # Active
    OPEN = "OPEN"
    CURRENT = "CURRENT"
    ACTIVE = "ACTIVE"
    # Closing
    SOFT_CLOSE = "SOFT_CLOSE"
    HARD_CLOSE = "HARD_CLOSE"
    CLOSING_IN_PROGRESS = "CLOSING_IN_PROGRESS"
    PRELIMINARY_CLOSE = "PRELIMINARY_CLOSE"
    # Closed
    CLOSED = "CLOSED"
    PERMANENTLY_CLOSED = "PERMANENTLY_CLOSED"
    ARCHIVED = "ARCHIVED"
    # Adjustment
    ADJUSTMENT_PERIOD = "ADJUSTMENT_PERIOD"
    YEAR_END_ADJUSTMENTS = "YEAR_END_ADJUSTMENTS"
    AUDIT_ADJUSTMENTS = "AUDIT_ADJUSTMENTS"
    PRIOR_PERIOD_ADJUSTMENTS = "PRIOR_PERIOD_ADJUSTMENTS"
    # Special
    SUSPENDED = "SUSPENDED"
    LOCKED = "LOCKED"
    FROZEN = "FROZEN"
    UNDER_REVIEW = "UNDER_REVIEW"
    # Error
    ERROR_STATE = "ERROR_STATE"
    RECONCILIATION_REQUIRED = "RECONCILIATION_REQUIRED"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    DATA_INCONSISTENCY = "DATA_INCONSISTENCY"
    # Maintenance
    MAINTENANCE_MODE = "MAINTENANCE_MODE"
    ROLLBACK_IN_PROGRESS = "ROLLBACK_IN_PROGRESS"
    BACKUP_RESTORE = "BACKUP_RESTORE"
    # Future
    FUTURE_PERIOD = "FUTURE_PERIOD"
    SCHEDULED_OPEN = "SCHEDULED_OPEN"
    SCHEDULED_CLOSE = "SCHEDULED_CLOSE"

    @property
    def permissions(self) -> StatusPermissions:
        return STATUS_PERMISSIONS[self]

    @property
    def group(self) -> StatusGroup:
        return STATUS_PERMISSIONS[self].group

    @property
    def display_name(self) -> str:
        return STATUS_PERMISSIONS[self].display_name

    @property
    def next_possible_statuses(self) -> FrozenSet[FiscalPeriodStatusType]:
        return STATUS_TRANSITIONS[self]


class FiscalPeriodPriority(Enum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"
    URGENT = "URGENT"


class OperationType(Enum):
    """Classification of a posting for period gating."""
    REGULAR = "REGULAR"
    ACCRUAL = "ACCRUAL"
    REVERSAL = "REVERSAL"
    RECLASSIFICATION = "RECLASSIFICATION"
    ADJUSTMENT = "ADJUSTMENT"
    YEAR_END_ADJUSTMENT = "YEAR_END_ADJUSTMENT"
    AUDIT_ADJUSTMENT = "AUDIT_ADJUSTMENT"
    PRIOR_PERIOD_ADJUSTMENT = "PRIOR_PERIOD_ADJUSTMENT"

    @property
    def is_adjustment(self) -> bool:
        return self in ADJUSTMENT_OPERATIONS


ADJUSTMENT_OPERATIONS: FrozenSet[OperationType] = frozenset({
    OperationType.RECLASSIFICATION,
    OperationType.ADJUSTMENT,
    OperationType.YEAR_END_ADJUSTMENT,
    OperationType.AUDIT_ADJUSTMENT,
    OperationType.PRIOR_PERIOD_ADJUSTMENT,
})


# ══════════════════════════════════════════════════════════════
# PERMISSION TABLE
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class StatusPermissions:
    """Everything a state tag implies. One row per FiscalPeriodStatusType."""
    display_name: str
    group: StatusGroup
    is_active: bool
    allows_editing: bool
    allows_new_transactions: bool
    allows_adjustments: bool
    allows_reversals: bool
    restrict_to_adjustments_only: bool
    adjustment_kinds: FrozenSet[OperationType]
    requires_approval: bool
    requires_approval_signature: bool
    requires_compliance_validation: bool
    is_final: bool
    has_deadlines: bool
    notify_stakeholders: bool
    supports_automated_processing: bool
    default_priority: FiscalPeriodPriority


S = FiscalPeriodStatusType
P = FiscalPeriodPriority

_DISPLAY_NAMES: Dict[S, str] = {
    S.PLANNING: "Planning",
    S.DRAFT: "Draft",
    S.PENDING_APPROVAL: "Pending Approval",
    S.APPROVED: "Approved",
    S.OPEN: "Open",
    S.CURRENT: "Current",
    S.ACTIVE: "Active",
    S.SOFT_CLOSE: "Soft Close",
    S.HARD_CLOSE: "Hard Close",
    S.CLOSING_IN_PROGRESS: "Closing in Progress",
    S.PRELIMINARY_CLOSE: "Preliminary Close",
    S.CLOSED: "Closed",
    S.PERMANENTLY_CLOSED: "Permanently Closed",
    S.ARCHIVED: "Archived",
    S.ADJUSTMENT_PERIOD: "Adjustment Period",
    S.YEAR_END_ADJUSTMENTS: "Year-End Adjustments",
    S.AUDIT_ADJUSTMENTS: "Audit Adjustments",
    S.PRIOR_PERIOD_ADJUSTMENTS: "Prior Period Adjustments",
    S.SUSPENDED: "Suspended",
    S.LOCKED: "Locked",
    S.FROZEN: "Frozen",
    S.UNDER_REVIEW: "Under Review",
    S.ERROR_STATE: "Error State",
    S.RECONCILIATION_REQUIRED: "Reconciliation Required",
    S.VALIDATION_FAILED: "Validation Failed",
    S.DATA_INCONSISTENCY: "Data Inconsistency",
    S.MAINTENANCE_MODE: "Maintenance Mode",
    S.ROLLBACK_IN_PROGRESS: "Rollback in Progress",
    S.BACKUP_RESTORE: "Backup/Restore",
    S.FUTURE_PERIOD: "Future Period",
    S.SCHEDULED_OPEN: "Scheduled to Open",
    S.SCHEDULED_CLOSE: "Scheduled to Close",
}

_GROUPS: Dict[StatusGroup, Tuple[S, ...]] = {
    StatusGroup.PLANNING: (S.PLANNING, S.DRAFT, S.PENDING_APPROVAL, S.APPROVED),
    StatusGroup.ACTIVE: (S.OPEN, S.CURRENT, S.ACTIVE),
    StatusGroup.CLOSING: (
        S.SOFT_CLOSE, S.HARD_CLOSE, S.CLOSING_IN_PROGRESS, S.PRELIMINARY_CLOSE,
    ),
    StatusGroup.CLOSED: (S.CLOSED, S.PERMANENTLY_CLOSED, S.ARCHIVED),
    StatusGroup.ADJUSTMENT: (
        S.ADJUSTMENT_PERIOD, S.YEAR_END_ADJUSTMENTS,
        S.AUDIT_ADJUSTMENTS, S.PRIOR_PERIOD_ADJUSTMENTS,
    ),
    StatusGroup.SPECIAL: (S.SUSPENDED, S.LOCKED, S.FROZEN, S.UNDER_REVIEW),
    StatusGroup.ERROR: (
        S.ERROR_STATE, S.RECONCILIATION_REQUIRED,
        S.VALIDATION_FAILED, S.DATA_INCONSISTENCY,
    ),
    StatusGroup.MAINTENANCE: (
        S.MAINTENANCE_MODE, S.ROLLBACK_IN_PROGRESS, S.BACKUP_RESTORE,
    ),
    StatusGroup.FUTURE: (S.FUTURE_PERIOD, S.SCHEDULED_OPEN, S.SCHEDULED_CLOSE),
}

_ADJUSTMENT_STATES = frozenset(_GROUPS[StatusGroup.ADJUSTMENT])

_ACTIVE = frozenset({S.OPEN, S.CURRENT, S.ACTIVE}) | _ADJUSTMENT_STATES
_EDITING = frozenset({S.PLANNING, S.DRAFT, S.OPEN, S.ACTIVE}) | _ADJUSTMENT_STATES
_NEW_TRANSACTIONS = _ACTIVE
_ADJUSTMENTS = _ACTIVE | {S.SOFT_CLOSE, S.HARD_CLOSE}
_REVERSALS = frozenset({
    S.OPEN, S.CURRENT, S.ACTIVE, S.SOFT_CLOSE, S.ADJUSTMENT_PERIOD,
})
_APPROVAL = frozenset({
    S.PENDING_APPROVAL, S.CLOSING_IN_PROGRESS, S.PRELIMINARY_CLOSE,
    S.YEAR_END_ADJUSTMENTS, S.AUDIT_ADJUSTMENTS,
})
_SIGNATURE = frozenset({S.CLOSED, S.PERMANENTLY_CLOSED, S.YEAR_END_ADJUSTMENTS})
_COMPLIANCE = _SIGNATURE | {S.AUDIT_ADJUSTMENTS}
_FINAL = frozenset({S.PERMANENTLY_CLOSED, S.ARCHIVED})
_DEADLINES = frozenset({
    S.SOFT_CLOSE, S.HARD_CLOSE, S.CLOSING_IN_PROGRESS, S.PRELIMINARY_CLOSE,
    S.YEAR_END_ADJUSTMENTS, S.AUDIT_ADJUSTMENTS,
})
_NOTIFY = frozenset({
    S.OPEN, S.CURRENT, S.SOFT_CLOSE, S.HARD_CLOSE, S.CLOSED,
    S.ERROR_STATE, S.SUSPENDED,
})
_AUTOMATED = frozenset({
    S.OPEN, S.CURRENT, S.ACTIVE, S.SCHEDULED_OPEN, S.SCHEDULED_CLOSE,
})

_PRIORITY: Dict[S, P] = {
    S.ERROR_STATE: P.CRITICAL,
    S.VALIDATION_FAILED: P.CRITICAL,
    S.DATA_INCONSISTENCY: P.CRITICAL,
    S.CURRENT: P.HIGH,
    S.RECONCILIATION_REQUIRED: P.HIGH,
    S.SUSPENDED: P.HIGH,
    S.CLOSING_IN_PROGRESS: P.HIGH,
    S.SOFT_CLOSE: P.NORMAL,
    S.HARD_CLOSE: P.NORMAL,
    S.UNDER_REVIEW: P.NORMAL,
    S.PENDING_APPROVAL: P.NORMAL,
}

_GENERIC_ADJUSTMENTS = frozenset({
    OperationType.ADJUSTMENT, OperationType.RECLASSIFICATION,
})

# Adjustment-only states: which adjustment operations each accepts.
_ADJUSTMENT_KINDS: Dict[S, FrozenSet[OperationType]] = {
    S.ADJUSTMENT_PERIOD: ADJUSTMENT_OPERATIONS,
    S.YEAR_END_ADJUSTMENTS: _GENERIC_ADJUSTMENTS | {OperationType.YEAR_END_ADJUSTMENT},
    S.AUDIT_ADJUSTMENTS: _GENERIC_ADJUSTMENTS | {OperationType.AUDIT_ADJUSTMENT},
    S.PRIOR_PERIOD_ADJUSTMENTS: _GENERIC_ADJUSTMENTS | {OperationType.PRIOR_PERIOD_ADJUSTMENT},
}


def _group_of(status: S) -> StatusGroup:
    for group, members in _GROUPS.items():
        if status in members:
            return group
    raise KeyError(status)


STATUS_PERMISSIONS: Dict[S, StatusPermissions] = {
    status: StatusPermissions(
        display_name=_DISPLAY_NAMES[status],
        group=_group_of(status),
        is_active=status in _ACTIVE,
        allows_editing=status in _EDITING,
        allows_new_transactions=status in _NEW_TRANSACTIONS,
        allows_adjustments=status in _ADJUSTMENTS,
        allows_reversals=status in _REVERSALS,
        restrict_to_adjustments_only=status in _ADJUSTMENT_STATES,
        adjustment_kinds=_ADJUSTMENT_KINDS.get(status, ADJUSTMENT_OPERATIONS),
        requires_approval=status in _APPROVAL,
        requires_approval_signature=status in _SIGNATURE,
        requires_compliance_validation=status in _COMPLIANCE,
        is_final=status in _FINAL,
        has_deadlines=status in _DEADLINES,
        notify_stakeholders=status in _NOTIFY,
        supports_automated_processing=status in _AUTOMATED,
        default_priority=_PRIORITY.get(status, P.LOW),
    )
    for status in S
}


# ══════════════════════════════════════════════════════════════
# ADJACENCY MAP
# ══════════════════════════════════════════════════════════════

STATUS_TRANSITIONS: Dict[S, FrozenSet[S]] = {
    S.PLANNING: frozenset({S.DRAFT, S.PENDING_APPROVAL}),
    S.DRAFT: frozenset({S.PLANNING, S.PENDING_APPROVAL, S.OPEN}),
    S.PENDING_APPROVAL: frozenset({S.APPROVED, S.DRAFT}),
    S.APPROVED: frozenset({S.OPEN, S.SCHEDULED_OPEN}),
    S.OPEN: frozenset({S.CURRENT, S.ACTIVE, S.SOFT_CLOSE, S.SUSPENDED, S.LOCKED}),
    S.CURRENT: frozenset({S.ACTIVE, S.SOFT_CLOSE, S.ADJUSTMENT_PERIOD, S.SUSPENDED}),
    S.ACTIVE: frozenset({S.CURRENT, S.SOFT_CLOSE, S.ADJUSTMENT_PERIOD, S.SUSPENDED}),
    S.SOFT_CLOSE: frozenset({
        S.OPEN, S.HARD_CLOSE, S.CLOSING_IN_PROGRESS, S.ADJUSTMENT_PERIOD,
    }),
    S.HARD_CLOSE: frozenset({S.SOFT_CLOSE, S.CLOSED, S.ADJUSTMENT_PERIOD}),
    S.CLOSING_IN_PROGRESS: frozenset({S.SOFT_CLOSE, S.PRELIMINARY_CLOSE, S.CLOSED}),
    S.PRELIMINARY_CLOSE: frozenset({S.SOFT_CLOSE, S.CLOSED, S.YEAR_END_ADJUSTMENTS}),
    S.CLOSED: frozenset({
        S.PERMANENTLY_CLOSED, S.ARCHIVED,
        S.AUDIT_ADJUSTMENTS, S.PRIOR_PERIOD_ADJUSTMENTS,
    }),
    S.PERMANENTLY_CLOSED: frozenset(),
    S.ARCHIVED: frozenset(),
    S.ADJUSTMENT_PERIOD: frozenset({S.OPEN, S.SOFT_CLOSE, S.CLOSED}),
    S.YEAR_END_ADJUSTMENTS: frozenset({S.CLOSED, S.PRELIMINARY_CLOSE}),
    S.AUDIT_ADJUSTMENTS: frozenset({S.CLOSED, S.UNDER_REVIEW}),
    # Returns to CLOSED once the correction is booked; not a dead end.
    S.PRIOR_PERIOD_ADJUSTMENTS: frozenset({S.CLOSED}),
    S.SUSPENDED: frozenset({S.OPEN, S.ACTIVE, S.LOCKED, S.ERROR_STATE}),
    S.LOCKED: frozenset({S.OPEN, S.SUSPENDED, S.FROZEN}),
    S.FROZEN: frozenset({S.LOCKED, S.MAINTENANCE_MODE}),
    S.UNDER_REVIEW: frozenset({S.OPEN, S.CLOSED, S.ERROR_STATE}),
    S.ERROR_STATE: frozenset({S.MAINTENANCE_MODE, S.ROLLBACK_IN_PROGRESS, S.SUSPENDED}),
    S.RECONCILIATION_REQUIRED: frozenset({S.OPEN, S.UNDER_REVIEW, S.ERROR_STATE}),
    S.VALIDATION_FAILED: frozenset({S.DRAFT, S.ERROR_STATE, S.MAINTENANCE_MODE}),
    S.DATA_INCONSISTENCY: frozenset({
        S.RECONCILIATION_REQUIRED, S.ERROR_STATE, S.MAINTENANCE_MODE,
    }),
    S.MAINTENANCE_MODE: frozenset({S.OPEN, S.SUSPENDED, S.BACKUP_RESTORE}),
    S.ROLLBACK_IN_PROGRESS: frozenset({S.OPEN, S.ERROR_STATE, S.MAINTENANCE_MODE}),
    S.BACKUP_RESTORE: frozenset({S.MAINTENANCE_MODE, S.OPEN}),
    S.FUTURE_PERIOD: frozenset({S.SCHEDULED_OPEN, S.PLANNING}),
    S.SCHEDULED_OPEN: frozenset({S.OPEN, S.FUTURE_PERIOD}),
    S.SCHEDULED_CLOSE: frozenset({S.SOFT_CLOSE, S.ACTIVE}),
}

_REOPENABLE = frozenset({S.SOFT_CLOSE, S.HARD_CLOSE, S.CLOSED})
_REACTIVATABLE = frozenset({S.SUSPENDED, S.LOCKED, S.FROZEN})
_ATTENTION_STATES = frozenset({
    S.ERROR_STATE, S.VALIDATION_FAILED, S.DATA_INCONSISTENCY,
    S.RECONCILIATION_REQUIRED,
})


# ══════════════════════════════════════════════════════════════
# FISCAL PERIOD STATUS (value object)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class FiscalPeriodStatus:
    """
    Immutable status of one fiscal period.

    Permission flags come from STATUS_PERMISSIONS; instance fields hold
    only what varies per period (deadlines, priority, change history).
    """
    status_type: FiscalPeriodStatusType
    reason: Optional[str] = None
    description: Optional[str] = None
    soft_close_deadline: Optional[date] = None
    hard_close_deadline: Optional[date] = None
    final_reporting_deadline: Optional[date] = None
    compliance_deadline: Optional[date] = None
    priority: Optional[FiscalPeriodPriority] = None
    escalation_required: bool = False
    auto_transition_enabled: bool = False
    auto_transition_date: Optional[date] = None
    auto_transition_conditions: Optional[str] = None
    status_changed_at: Optional[datetime] = None
    status_changed_by: Optional[str] = None
    previous_status: Optional[FiscalPeriodStatusType] = None
    status_change_reason: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.status_type, FiscalPeriodStatusType):
            raise ValueError("status_type must be FiscalPeriodStatusType enum.")
        if self.priority is None:
            object.__setattr__(
                self, "priority", self.status_type.permissions.default_priority
            )
        elif not isinstance(self.priority, FiscalPeriodPriority):
            raise ValueError("priority must be FiscalPeriodPriority enum.")

        if self.description is not None and len(self.description) > MAX_DESCRIPTION_LENGTH:
            raise ValueError(
                f"Status description cannot exceed {MAX_DESCRIPTION_LENGTH} characters."
            )
        if self.reason is not None and len(self.reason) > MAX_REASON_LENGTH:
            raise ValueError(f"Status reason cannot exceed {MAX_REASON_LENGTH} characters.")
        if self.status_changed_by is not None and not self.status_changed_by.strip():
            raise ValueError("status_changed_by cannot be blank if provided.")
        if self.status_changed_at is not None and self.status_changed_at.tzinfo is None:
            raise ValueError("status_changed_at must be timezone-aware.")

        if (
            self.soft_close_deadline is not None
            and self.hard_close_deadline is not None
            and self.hard_close_deadline < self.soft_close_deadline
        ):
            raise ValueError("Hard close deadline cannot be before soft close deadline.")
        if (
            self.hard_close_deadline is not None
            and self.final_reporting_deadline is not None
            and self.final_reporting_deadline < self.hard_close_deadline
        ):
            raise ValueError(
                "Final reporting deadline cannot be before hard close deadline."
            )
        if self.auto_transition_date is not None and not self.auto_transition_enabled:
            raise ValueError(
                "Auto transition must be enabled if transition date is provided."
            )

    # ── Factories ─────────────────────────────────────────────

    @classmethod
    def planning(cls, reason: Optional[str] = None) -> FiscalPeriodStatus:
        return cls(S.PLANNING, reason=reason, description="Period is in planning phase")

    @classmethod
    def draft(cls, created_by: Optional[str] = None) -> FiscalPeriodStatus:
        return cls(
            S.DRAFT,
            status_changed_by=created_by,
            description="Period is drafted but not finalized",
        )

    @classmethod
    def open(cls, opened_by: Optional[str] = None) -> FiscalPeriodStatus:
        return cls(S.OPEN, status_changed_by=opened_by, reason="Period opened for transactions")

    @classmethod
    def current(cls, activated_by: Optional[str] = None) -> FiscalPeriodStatus:
        return cls(
            S.CURRENT,
            status_changed_by=activated_by,
            reason="Period is currently active",
            priority=P.HIGH,
        )

    @classmethod
    def soft_close(
        cls, closed_by: Optional[str] = None, deadline: Optional[date] = None,
    ) -> FiscalPeriodStatus:
        return cls(
            S.SOFT_CLOSE,
            status_changed_by=closed_by,
            soft_close_deadline=deadline,
            reason="Period in soft close - limited access",
        )

    @classmethod
    def hard_close(
        cls, closed_by: Optional[str] = None, deadline: Optional[date] = None,
    ) -> FiscalPeriodStatus:
        return cls(
            S.HARD_CLOSE,
            status_changed_by=closed_by,
            hard_close_deadline=deadline,
            reason="Period in hard close - no new transactions",
        )

    @classmethod
    def closed(
        cls, closed_by: str, final_reporting_deadline: Optional[date] = None,
    ) -> FiscalPeriodStatus:
        return cls(
            S.CLOSED,
            status_changed_by=closed_by,
            final_reporting_deadline=final_reporting_deadline,
            reason="Period has been closed",
        )

    @classmethod
    def adjustment_period(
        cls, reason: str, approved_by: Optional[str] = None,
    ) -> FiscalPeriodStatus:
        return cls(
            S.ADJUSTMENT_PERIOD,
            reason=reason,
            status_changed_by=approved_by,
            description="Period for adjustments only",
        )

    @classmethod
    def suspended(cls, reason: str, suspended_by: Optional[str] = None) -> FiscalPeriodStatus:
        return cls(S.SUSPENDED, reason=reason, status_changed_by=suspended_by, priority=P.HIGH)

    @classmethod
    def error_state(
        cls, error_description: str, detected_by: Optional[str] = None,
    ) -> FiscalPeriodStatus:
        return cls(
            S.ERROR_STATE,
            reason=error_description,
            status_changed_by=detected_by,
            priority=P.CRITICAL,
            escalation_required=True,
        )

    @classmethod
    def future_period(cls, scheduled_open_date: Optional[date] = None) -> FiscalPeriodStatus:
        return cls(
            S.FUTURE_PERIOD,
            auto_transition_enabled=scheduled_open_date is not None,
            auto_transition_date=scheduled_open_date,
            description="Future period not yet active",
        )

    # ── Derived permissions ───────────────────────────────────

    @property
    def permissions(self) -> StatusPermissions:
        return self.status_type.permissions

    @property
    def name(self) -> str:
        return self.status_type.display_name

    @property
    def is_active(self) -> bool:
        return self.permissions.is_active

    @property
    def allows_editing(self) -> bool:
        return self.permissions.allows_editing

    @property
    def allows_new_transactions(self) -> bool:
        return self.permissions.allows_new_transactions

    @property
    def allows_adjustments(self) -> bool:
        return self.permissions.allows_adjustments

    @property
    def allows_reversals(self) -> bool:
        return self.permissions.allows_reversals

    @property
    def restrict_to_adjustments_only(self) -> bool:
        return self.permissions.restrict_to_adjustments_only

    @property
    def requires_approval(self) -> bool:
        return self.permissions.requires_approval

    @property
    def is_final(self) -> bool:
        return self.permissions.is_final

    @property
    def has_deadlines(self) -> bool:
        return self.permissions.has_deadlines or bool(self.deadlines)

    @property
    def next_possible_statuses(self) -> FrozenSet[FiscalPeriodStatusType]:
        return self.status_type.next_possible_statuses

    @property
    def is_operationally_active(self) -> bool:
        return self.is_active and not self.is_final and self.allows_new_transactions

    @property
    def requires_immediate_attention(self) -> bool:
        return (
            self.priority in (P.CRITICAL, P.URGENT)
            or self.escalation_required
            or self.status_type in _ATTENTION_STATES
        )

    # ── Transitions ───────────────────────────────────────────

    def can_transition_to(self, target: FiscalPeriodStatusType) -> bool:
        return target in self.next_possible_statuses

    def transition_to(
        self,
        target: FiscalPeriodStatusType,
        reason: Optional[str] = None,
        changed_by: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> FiscalPeriodStatus:
        """
        New status for `target`, or InvalidStatusTransitionError.

        The current status is never modified.
        """
        if not self.can_transition_to(target):
            raise InvalidStatusTransitionError(
                from_status=self.status_type.value,
                to_status=target.value,
                allowed=sorted(s.value for s in self.next_possible_statuses),
            )
        return FiscalPeriodStatus(
            status_type=target,
            reason=reason,
            status_changed_at=at,
            status_changed_by=changed_by,
            previous_status=self.status_type,
            status_change_reason=reason,
        )

    def can_reopen(self) -> bool:
        return self.status_type in _REOPENABLE and not self.is_final

    # ── Operation gating ──────────────────────────────────────

    def is_transaction_allowed(self, operation_type: OperationType) -> bool:
        perms = self.permissions
        if operation_type is OperationType.REVERSAL:
            return perms.allows_reversals
        if not perms.allows_new_transactions:
            return False
        if perms.restrict_to_adjustments_only:
            return operation_type in perms.adjustment_kinds
        return True

    def allows_operation(self, operation_type: OperationType) -> bool:
        """
        Posting gate.

        Adjustment operations are also accepted in states that allow
        adjustments without allowing new transactions (soft/hard close).
        """
        if self.is_transaction_allowed(operation_type):
            return True
        perms = self.permissions
        return (
            operation_type.is_adjustment
            and perms.allows_adjustments
            and not perms.restrict_to_adjustments_only
        )

    # ── Descriptive lists ─────────────────────────────────────

    def validation_rules(self) -> List[str]:
        perms = self.permissions
        rules: List[str] = []
        if perms.requires_approval:
            rules.append("Requires approval before processing")
        if perms.requires_approval_signature:
            rules.append("Requires digital signature for approval")
        if perms.requires_compliance_validation:
            rules.append("Must pass compliance validation")
        if perms.restrict_to_adjustments_only:
            rules.append("Only adjustment transactions allowed")
        if not perms.allows_new_transactions:
            rules.append("No new transactions allowed")
        if not perms.allows_reversals:
            rules.append("Transaction reversals not allowed")
        if self.has_deadlines:
            rules.append("Must meet specified deadlines")
        return rules

    def available_actions(self) -> List[str]:
        perms = self.permissions
        actions: List[str] = []
        if perms.allows_editing:
            actions.append("Edit Period Settings")
        if perms.allows_new_transactions:
            actions.append("Create New Transactions")
            actions.append("Create Accruals")
        if perms.allows_adjustments:
            actions.append("Make Adjustments")
            actions.append("Reclassify Entries")
        if perms.allows_reversals:
            actions.append("Reverse Transactions")
        for target in sorted(self.next_possible_statuses, key=lambda s: s.value):
            actions.append(f"Transition to {target.display_name}")
        if self.status_type in _REACTIVATABLE:
            actions.append("Reactivate Period")
        if self.status_type is S.ERROR_STATE:
            actions.extend(["Diagnose Issues", "Attempt Recovery"])
        if self.status_type is S.RECONCILIATION_REQUIRED:
            actions.append("Perform Reconciliation")
        return actions

    # ── Deadlines (pure functions of `today`) ─────────────────

    @property
    def deadlines(self) -> Tuple[date, ...]:
        return tuple(
            d for d in (
                self.soft_close_deadline,
                self.hard_close_deadline,
                self.final_reporting_deadline,
                self.compliance_deadline,
            )
            if d is not None
        )

    def has_approaching_deadlines(
        self, today: date, warning_days: int = DEADLINE_WARNING_DAYS,
    ) -> bool:
        window = timedelta(days=warning_days)
        return any(d - window <= today <= d for d in self.deadlines)

    def has_missed_deadlines(self, today: date) -> bool:
        return any(d < today for d in self.deadlines)

    def next_deadline(self, today: date) -> Optional[date]:
        upcoming = [d for d in self.deadlines if d >= today]
        return min(upcoming) if upcoming else None

    def days_until_next_deadline(self, today: date) -> Optional[int]:
        deadline = self.next_deadline(today)
        return (deadline - today).days if deadline is not None else None

    def due_auto_transition(self, today: date) -> bool:
        return (
            self.auto_transition_enabled
            and self.auto_transition_date is not None
            and self.auto_transition_date <= today
        )

    def summary(self, today: date) -> str:
        parts = [self.name]
        if not self.is_active:
            parts.append("[INACTIVE]")
        if self.is_final:
            parts.append("[FINAL]")
        if self.requires_immediate_attention:
            parts.append("[URGENT]")
        text = " ".join(parts)
        if self.reason:
            text += f" - {self.reason}"
        if self.has_approaching_deadlines(today):
            text += f" (Deadline in {self.days_until_next_deadline(today)} days)"
        if self.has_missed_deadlines(today):
            text += " [DEADLINE MISSED]"
        if self.escalation_required:
            text += " [ESCALATION REQUIRED]"
        return text

    # ── Copies ────────────────────────────────────────────────

    def with_deadlines(
        self,
        soft_close: Optional[date] = None,
        hard_close: Optional[date] = None,
        final_reporting: Optional[date] = None,
        compliance: Optional[date] = None,
    ) -> FiscalPeriodStatus:
        return replace(
            self,
            soft_close_deadline=soft_close,
            hard_close_deadline=hard_close,
            final_reporting_deadline=final_reporting,
            compliance_deadline=compliance,
        )

    def with_auto_transition(
        self, transition_date: date, conditions: Optional[str] = None,
    ) -> FiscalPeriodStatus:
        return replace(
            self,
            auto_transition_enabled=True,
            auto_transition_date=transition_date,
            auto_transition_conditions=conditions,
        )

    def with_priority(
        self, priority: FiscalPeriodPriority, escalate: bool = False,
    ) -> FiscalPeriodStatus:
        return replace(self, priority=priority, escalation_required=escalate)

    def to_dict(self) -> dict:
        def _iso(value):
            return value.isoformat() if value is not None else None

        return {
            "status_type": self.status_type.value,
            "reason": self.reason,
            "description": self.description,
            "soft_close_deadline": _iso(self.soft_close_deadline),
            "hard_close_deadline": _iso(self.hard_close_deadline),
            "final_reporting_deadline": _iso(self.final_reporting_deadline),
            "compliance_deadline": _iso(self.compliance_deadline),
            "priority": self.priority.value,
            "escalation_required": self.escalation_required,
            "auto_transition_enabled": self.auto_transition_enabled,
            "auto_transition_date": _iso(self.auto_transition_date),
            "status_changed_at": _iso(self.status_changed_at),
            "status_changed_by": self.status_changed_by,
            "previous_status": (
                self.previous_status.value if self.previous_status else None
            ),
            "status_change_reason": self.status_change_reason,
        }


# ══════════════════════════════════════════════════════════════
# FISCAL PERIOD (aggregate)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class FiscalPeriod:
    """A bounded window of the fiscal year plus its status."""
    period_id: uuid.UUID
    fiscal_year: int
    period_number: int
    name: str
    start_date: date
    end_date: date
    status: FiscalPeriodStatus

    def __post_init__(self):
        if not isinstance(self.period_id, uuid.UUID):
            raise ValueError("period_id must be UUID.")
        if self.period_number < 1:
            raise ValueError("period_number must be >= 1.")
        if not self.name or not isinstance(self.name, str):
            raise ValueError("name must be a non-empty string.")
        if self.end_date < self.start_date:
            raise ValueError("end_date cannot be before start_date.")
        if not isinstance(self.status, FiscalPeriodStatus):
            raise TypeError("status must be FiscalPeriodStatus.")

    def contains_date(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def allows_operation(self, operation_type: OperationType) -> bool:
        return self.status.allows_operation(operation_type)

    def transition_to(
        self,
        target: FiscalPeriodStatusType,
        reason: Optional[str] = None,
        changed_by: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> FiscalPeriod:
        return replace(
            self,
            status=self.status.transition_to(target, reason, changed_by, at),
        )

    @classmethod
    def create_monthly_periods(
        cls,
        fiscal_year: int,
        start_date: Optional[date] = None,
        status: Optional[FiscalPeriodStatus] = None,
    ) -> List[FiscalPeriod]:
        """Twelve consecutive calendar-month periods starting at start_date."""
        start = start_date or date(fiscal_year, 1, 1)
        if start.day != 1:
            raise ValueError("Monthly periods must start on the first day of a month.")
        initial = status or FiscalPeriodStatus.future_period()

        periods: List[FiscalPeriod] = []
        year, month = start.year, start.month
        for number in range(1, 13):
            last_day = calendar.monthrange(year, month)[1]
            periods.append(cls(
                period_id=uuid.uuid4(),
                fiscal_year=fiscal_year,
                period_number=number,
                name=f"{calendar.month_name[month]} {year}",
                start_date=date(year, month, 1),
                end_date=date(year, month, last_day),
                status=initial,
            ))
            month += 1
            if month > 12:
                year, month = year + 1, 1
        return periods
