"""
Ledgerline Core Audit — Pure Audit Functions
=============================================
Factory for audit facts. Pure: returns new frozen objects.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from core.audit.models import AuditFact


def create_audit_fact(
    fact_name: str,
    subject_type: str,
    subject_id,
    occurred_at: datetime,
    actor_id: Optional[str] = None,
    before: Optional[dict] = None,
    after: Optional[dict] = None,
    metadata: Optional[dict] = None,
) -> AuditFact:
    """Create an immutable audit fact. subject_id is stringified."""
    return AuditFact(
        fact_id=uuid.uuid4(),
        fact_name=fact_name,
        subject_type=subject_type,
        subject_id=str(subject_id),
        occurred_at=occurred_at,
        actor_id=actor_id,
        before=before or {},
        after=after or {},
        metadata=metadata or {},
    )
