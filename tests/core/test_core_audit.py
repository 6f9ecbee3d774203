"""
Tests for core.audit — Audit facts and the in-memory sink.
"""

import uuid
import pytest
from datetime import datetime, timezone

from core.audit import AuditFact, InMemoryAuditLog, create_audit_fact


NOW = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)
ACCOUNT_ID = uuid.uuid4()


# ── AuditFact Tests ──────────────────────────────────────────

class TestAuditFact:
    def test_create_valid_fact(self):
        fact = create_audit_fact(
            fact_name="accounting.account.created.v1",
            subject_type="account",
            subject_id=ACCOUNT_ID,
            occurred_at=NOW,
            actor_id="user-1",
            after={"code": "1110"},
        )
        assert fact.subject_id == str(ACCOUNT_ID)
        assert fact.before == {}
        assert fact.after == {"code": "1110"}
        assert isinstance(fact.fact_id, uuid.UUID)

    def test_frozen_immutability(self):
        fact = create_audit_fact(
            "accounting.account.created.v1", "account", ACCOUNT_ID, NOW,
        )
        with pytest.raises(AttributeError):
            fact.actor_id = "someone-else"

    def test_unversioned_name_rejected(self):
        with pytest.raises(ValueError, match="versioned"):
            create_audit_fact("accounting.account.created", "account", ACCOUNT_ID, NOW)

    def test_naive_timestamp_rejected(self):
        with pytest.raises(ValueError, match="timezone-aware"):
            create_audit_fact(
                "accounting.account.created.v1", "account", ACCOUNT_ID,
                datetime(2025, 6, 15, 12, 0, 0),
            )

    def test_missing_subject_rejected(self):
        with pytest.raises(ValueError, match="subject"):
            AuditFact(
                fact_id=uuid.uuid4(),
                fact_name="accounting.account.created.v1",
                subject_type="",
                subject_id="x",
                occurred_at=NOW,
            )

    def test_to_dict(self):
        fact = create_audit_fact(
            "accounting.account.parent_changed.v1", "account", ACCOUNT_ID, NOW,
            before={"parent_id": None}, after={"parent_id": "p"},
        )
        d = fact.to_dict()
        assert d["fact_name"] == "accounting.account.parent_changed.v1"
        assert d["occurred_at"] == NOW.isoformat()
        assert d["before"] == {"parent_id": None}
        assert d["after"] == {"parent_id": "p"}


# ── InMemoryAuditLog Tests ───────────────────────────────────

class TestInMemoryAuditLog:
    def _log(self):
        log = InMemoryAuditLog()
        other = uuid.uuid4()
        log.record(create_audit_fact("accounting.account.created.v1", "account", ACCOUNT_ID, NOW))
        log.record(create_audit_fact("accounting.account.created.v1", "account", other, NOW))
        log.record(create_audit_fact(
            "accounting.account.activation_changed.v1", "account", ACCOUNT_ID, NOW,
        ))
        return log

    def test_append_only_length(self):
        assert len(self._log()) == 3

    def test_query_by_name(self):
        log = self._log()
        assert len(log.query_by_name("accounting.account.created.v1")) == 2
        assert log.query_by_name("accounting.journal.posted.v1") == []

    def test_query_by_subject(self):
        log = self._log()
        facts = log.query_by_subject(ACCOUNT_ID)
        assert [f.fact_name for f in facts] == [
            "accounting.account.created.v1",
            "accounting.account.activation_changed.v1",
        ]

    def test_facts_is_a_copy(self):
        log = self._log()
        facts = log.facts
        facts.clear()
        assert len(log) == 3
