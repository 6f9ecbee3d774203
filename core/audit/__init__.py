"""
Ledgerline Core Audit — Public API
===================================
Immutable audit facts and the sinks that receive them.
"""

from core.audit.functions import create_audit_fact
from core.audit.log import AuditSink, InMemoryAuditLog
from core.audit.models import AuditFact

__all__ = [
    "AuditFact",
    "AuditSink",
    "InMemoryAuditLog",
    "create_audit_fact",
]
