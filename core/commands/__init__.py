"""
Ledgerline Rejection Layer — Public API
========================================
Refused operations are first-class: policies return a RejectionReason,
typed errors carry it.
"""

from core.commands.rejection import (
    ReasonCode,
    RejectionReason,
)

__all__ = [
    "ReasonCode",
    "RejectionReason",
]
