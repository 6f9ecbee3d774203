"""
Ledgerline Core Audit — Sinks
==============================
Services emit facts to an AuditSink. The in-memory log below is the
core-layer implementation; the Django store provides a persistent one.
Append-only: no updates, no deletes.
"""

from __future__ import annotations

from typing import List, Protocol

from core.audit.models import AuditFact


class AuditSink(Protocol):
    """Anything that accepts audit facts."""

    def record(self, fact: AuditFact) -> None:
        ...  # pragma: no cover


class InMemoryAuditLog:
    """Append-only list of facts."""

    def __init__(self) -> None:
        self._facts: List[AuditFact] = []

    def record(self, fact: AuditFact) -> None:
        self._facts.append(fact)

    def query_by_name(self, fact_name: str) -> List[AuditFact]:
        return [f for f in self._facts if f.fact_name == fact_name]

    def query_by_subject(self, subject_id) -> List[AuditFact]:
        key = str(subject_id)
        return [f for f in self._facts if f.subject_id == key]

    @property
    def facts(self) -> List[AuditFact]:
        """Read-only copy of all facts, oldest first."""
        return list(self._facts)

    def __len__(self) -> int:
        return len(self._facts)
