"""
Ledgerline Rejection Model
===========================
Structured rejection reasons for refused ledger operations.

A rejection is NOT an error object. It is the explanation structure
that posting policies return and that typed errors and audit facts
carry along.

Every rejection must be:
- Deterministic (same input → same rejection)
- Auditable (code + message + policy)
- Machine-readable (reason code)
- Human-readable (message)
"""

from __future__ import annotations

from dataclasses import dataclass


# ══════════════════════════════════════════════════════════════
# REJECTION REASON (frozen explanation structure)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RejectionReason:
    """
    Structured reason for a refused operation.

    Fields:
        code:        Machine-readable code (e.g. 'UNBALANCED_ENTRY').
        message:     Human-readable explanation.
        policy_name: Name of the policy or check that refused.
    """

    code: str
    message: str
    policy_name: str

    def __post_init__(self):
        if not self.code or not isinstance(self.code, str):
            raise ValueError("code must be a non-empty string.")

        if not self.message or not isinstance(self.message, str):
            raise ValueError("message must be a non-empty string.")

        if not self.policy_name or not isinstance(self.policy_name, str):
            raise ValueError("policy_name must be a non-empty string.")

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "policy_name": self.policy_name,
        }


# ══════════════════════════════════════════════════════════════
# STANDARD REASON CODES
# ══════════════════════════════════════════════════════════════

class ReasonCode:
    """
    Known reason codes.

    Convention: SCREAMING_SNAKE_CASE.
    """

    # ── Structure / format ────────────────────────────────────
    INVALID_ACCOUNT_CODE = "INVALID_ACCOUNT_CODE"
    CURRENCY_MISMATCH = "CURRENCY_MISMATCH"
    CATEGORY_MISMATCH = "CATEGORY_MISMATCH"
    INCOMPATIBLE_PARENT_TYPE = "INCOMPATIBLE_PARENT_TYPE"
    HIERARCHY_TOO_DEEP = "HIERARCHY_TOO_DEEP"
    TOO_MANY_CHILDREN = "TOO_MANY_CHILDREN"
    DUPLICATE_ACCOUNT_CODE = "DUPLICATE_ACCOUNT_CODE"
    ACCOUNT_VALIDATION_FAILED = "ACCOUNT_VALIDATION_FAILED"

    # ── Invariants ────────────────────────────────────────────
    CIRCULAR_REFERENCE = "CIRCULAR_REFERENCE"
    UNBALANCED_ENTRY = "UNBALANCED_ENTRY"
    INSUFFICIENT_LINES = "INSUFFICIENT_LINES"
    NOT_A_LEAF = "NOT_A_LEAF"
    NON_ZERO_BALANCE = "NON_ZERO_BALANCE"
    ACTIVE_CHILDREN = "ACTIVE_CHILDREN"
    ACTOR_REQUIRED = "ACTOR_REQUIRED"

    # ── Posting ───────────────────────────────────────────────
    ACCOUNT_INACTIVE = "ACCOUNT_INACTIVE"
    DIRECT_POSTING_FORBIDDEN = "DIRECT_POSTING_FORBIDDEN"
    PERIOD_CLOSED_FOR_OPERATION = "PERIOD_CLOSED_FOR_OPERATION"
    DATE_OUTSIDE_PERIOD = "DATE_OUTSIDE_PERIOD"
    PERIOD_MISMATCH = "PERIOD_MISMATCH"
    REVERSAL_NOT_ALLOWED = "REVERSAL_NOT_ALLOWED"

    # ── State ─────────────────────────────────────────────────
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"
    INVALID_ENTRY_STATE = "INVALID_ENTRY_STATE"

    # ── Lookup / persistence ──────────────────────────────────
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
    ENTRY_NOT_FOUND = "ENTRY_NOT_FOUND"
    VERSION_CONFLICT = "VERSION_CONFLICT"
