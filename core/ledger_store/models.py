"""
Ledgerline Ledger Store - Relational Ledger Model
==================================================
Row shapes for the domain snapshots in core.primitives.

RULES (NON-NEGOTIABLE):
- Rows are never deleted; accounts are deactivated or archived
- version is the optimistic concurrency stamp; the repository bumps it
- Amounts are stored as DecimalField, never float
- Children are not stored; they are the rows whose parent points here

This file contains NO business logic.
"""

from __future__ import annotations

import uuid

from django.db import models

AMOUNT_DIGITS = 24
AMOUNT_PLACES = 6


class LedgerAccount(models.Model):
    account_id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    code = models.CharField(max_length=20, unique=True)
    name = models.CharField(max_length=255)
    account_type = models.CharField(max_length=64)
    currency = models.CharField(max_length=3)
    balance = models.DecimalField(
        max_digits=AMOUNT_DIGITS, decimal_places=AMOUNT_PLACES, default=0,
    )
    is_active = models.BooleanField(default=True)
    is_control_account = models.BooleanField(default=False)
    allows_direct_posting = models.BooleanField(default=True)
    requires_subsidiary = models.BooleanField(default=False)
    requires_reconciliation = models.BooleanField(default=False)
    is_system_account = models.BooleanField(default=False)
    is_archived = models.BooleanField(default=False)
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="children",
        db_column="parent_id",
    )
    description = models.TextField(blank=True, default="")
    last_activity_date = models.DateField(null=True, blank=True)
    status_changed_by = models.CharField(max_length=255, null=True, blank=True)
    status_change_reason = models.TextField(blank=True, default="")
    version = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "ledgerline_accounts"
        ordering = ["code"]
        indexes = [
            models.Index(fields=["currency"], name="idx_account_currency"),
            models.Index(fields=["last_activity_date"], name="idx_account_activity"),
        ]

    def __str__(self) -> str:
        return f"{self.code} {self.name}"


class JournalEntryRecord(models.Model):
    entry_id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    entry_number = models.CharField(max_length=64, unique=True)
    entry_date = models.DateField()
    description = models.TextField()
    entry_type = models.CharField(max_length=32)
    status = models.CharField(max_length=32)
    fiscal_period_id = models.UUIDField(null=True, blank=True)
    reference = models.CharField(max_length=255, blank=True, default="")
    reversal_of_entry_id = models.UUIDField(null=True, blank=True)
    operation_type_override = models.CharField(max_length=64, null=True, blank=True)
    submitted_by = models.CharField(max_length=255, null=True, blank=True)
    approved_by = models.CharField(max_length=255, null=True, blank=True)
    rejected_reason = models.TextField(null=True, blank=True)
    posted_by = models.CharField(max_length=255, null=True, blank=True)
    posted_at = models.DateTimeField(null=True, blank=True)
    version = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "ledgerline_journal_entries"
        ordering = ["entry_date", "entry_number"]
        indexes = [
            models.Index(fields=["status", "entry_date"], name="idx_entry_status_date"),
        ]

    def __str__(self) -> str:
        return self.entry_number


class TransactionLineRecord(models.Model):
    line_id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    entry = models.ForeignKey(
        JournalEntryRecord,
        on_delete=models.CASCADE,
        related_name="lines",
        db_column="entry_id",
    )
    account = models.ForeignKey(
        LedgerAccount,
        on_delete=models.PROTECT,
        related_name="lines",
        db_column="account_id",
    )
    line_number = models.PositiveIntegerField()
    debit_amount = models.DecimalField(max_digits=AMOUNT_DIGITS, decimal_places=AMOUNT_PLACES)
    credit_amount = models.DecimalField(max_digits=AMOUNT_DIGITS, decimal_places=AMOUNT_PLACES)
    currency = models.CharField(max_length=3)
    description = models.TextField(blank=True, default="")

    class Meta:
        db_table = "ledgerline_transaction_lines"
        ordering = ["entry_id", "line_number"]
        constraints = [
            models.UniqueConstraint(
                fields=["entry", "line_number"],
                name="uq_entry_line_number",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.entry_id}:{self.line_number}"


class AuditFactRecord(models.Model):
    fact_id = models.UUIDField(primary_key=True, editable=False)
    fact_name = models.CharField(max_length=128)
    subject_type = models.CharField(max_length=64)
    subject_id = models.CharField(max_length=255)
    occurred_at = models.DateTimeField()
    actor_id = models.CharField(max_length=255, null=True, blank=True)
    before = models.JSONField(default=dict)
    after = models.JSONField(default=dict)
    metadata = models.JSONField(default=dict)

    class Meta:
        db_table = "ledgerline_audit_facts"
        ordering = ["occurred_at", "fact_id"]
        indexes = [
            models.Index(fields=["fact_name"], name="idx_fact_name"),
            models.Index(fields=["subject_type", "subject_id"], name="idx_fact_subject"),
        ]

    def __str__(self) -> str:
        return f"{self.fact_name}:{self.subject_id}"
