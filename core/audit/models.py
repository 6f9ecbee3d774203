"""
Ledgerline Core Audit — Immutable Audit Facts
==============================================
A fact is a named, append-only record of a completed mutation with
before/after values. Facts are frozen dataclasses; once created,
never modified. Deletion of facts is forbidden.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

_VERSIONED_NAME = re.compile(r"\.v\d+$")


# ══════════════════════════════════════════════════════════════
# AUDIT FACT
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AuditFact:
    """
    Immutable record of one domain change.

    fact_name is versioned (e.g. "accounting.account.created.v1");
    before/after carry the values the change touched.
    """

    fact_id: uuid.UUID
    fact_name: str
    subject_type: str
    subject_id: str
    occurred_at: datetime
    actor_id: Optional[str] = None
    before: dict = field(default_factory=dict)
    after: dict = field(default_factory=dict)
    metadata: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.fact_name or not _VERSIONED_NAME.search(self.fact_name):
            raise ValueError(
                f"AuditFact name must be versioned (*.vN), got '{self.fact_name}'."
            )
        if not self.subject_type or not self.subject_id:
            raise ValueError("AuditFact requires subject_type and subject_id.")
        if self.occurred_at.tzinfo is None:
            raise ValueError("AuditFact occurred_at must be timezone-aware.")

    def to_dict(self) -> dict:
        return {
            "fact_id": str(self.fact_id),
            "fact_name": self.fact_name,
            "subject_type": self.subject_type,
            "subject_id": self.subject_id,
            "occurred_at": self.occurred_at.isoformat(),
            "actor_id": self.actor_id,
            "before": dict(self.before),
            "after": dict(self.after),
            "metadata": dict(self.metadata),
        }
