import uuid

from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="LedgerAccount",
            fields=[
                (
                    "account_id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("code", models.CharField(max_length=20, unique=True)),
                ("name", models.CharField(max_length=255)),
                ("account_type", models.CharField(max_length=64)),
                ("currency", models.CharField(max_length=3)),
                ("balance", models.DecimalField(decimal_places=6, default=0, max_digits=24)),
                ("is_active", models.BooleanField(default=True)),
                ("is_control_account", models.BooleanField(default=False)),
                ("allows_direct_posting", models.BooleanField(default=True)),
                ("requires_subsidiary", models.BooleanField(default=False)),
                ("requires_reconciliation", models.BooleanField(default=False)),
                ("is_system_account", models.BooleanField(default=False)),
                ("is_archived", models.BooleanField(default=False)),
                ("description", models.TextField(blank=True, default="")),
                ("last_activity_date", models.DateField(blank=True, null=True)),
                ("status_changed_by", models.CharField(blank=True, max_length=255, null=True)),
                ("status_change_reason", models.TextField(blank=True, default="")),
                ("version", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "parent",
                    models.ForeignKey(
                        blank=True,
                        db_column="parent_id",
                        null=True,
                        on_delete=models.deletion.PROTECT,
                        related_name="children",
                        to="core_ledger_store.ledgeraccount",
                    ),
                ),
            ],
            options={
                "db_table": "ledgerline_accounts",
                "ordering": ["code"],
                "indexes": [
                    models.Index(fields=["currency"], name="idx_account_currency"),
                    models.Index(fields=["last_activity_date"], name="idx_account_activity"),
                ],
            },
        ),
        migrations.CreateModel(
            name="JournalEntryRecord",
            fields=[
                (
                    "entry_id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("entry_number", models.CharField(max_length=64, unique=True)),
                ("entry_date", models.DateField()),
                ("description", models.TextField()),
                ("entry_type", models.CharField(max_length=32)),
                ("status", models.CharField(max_length=32)),
                ("fiscal_period_id", models.UUIDField(blank=True, null=True)),
                ("reference", models.CharField(blank=True, default="", max_length=255)),
                ("reversal_of_entry_id", models.UUIDField(blank=True, null=True)),
                ("operation_type_override", models.CharField(blank=True, max_length=64, null=True)),
                ("submitted_by", models.CharField(blank=True, max_length=255, null=True)),
                ("approved_by", models.CharField(blank=True, max_length=255, null=True)),
                ("rejected_reason", models.TextField(blank=True, null=True)),
                ("posted_by", models.CharField(blank=True, max_length=255, null=True)),
                ("posted_at", models.DateTimeField(blank=True, null=True)),
                ("version", models.PositiveIntegerField(default=0)),
            ],
            options={
                "db_table": "ledgerline_journal_entries",
                "ordering": ["entry_date", "entry_number"],
                "indexes": [
                    models.Index(fields=["status", "entry_date"], name="idx_entry_status_date"),
                ],
            },
        ),
        migrations.CreateModel(
            name="TransactionLineRecord",
            fields=[
                (
                    "line_id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("line_number", models.PositiveIntegerField()),
                ("debit_amount", models.DecimalField(decimal_places=6, max_digits=24)),
                ("credit_amount", models.DecimalField(decimal_places=6, max_digits=24)),
                ("currency", models.CharField(max_length=3)),
                ("description", models.TextField(blank=True, default="")),
                (
                    "entry",
                    models.ForeignKey(
                        db_column="entry_id",
                        on_delete=models.deletion.CASCADE,
                        related_name="lines",
                        to="core_ledger_store.journalentryrecord",
                    ),
                ),
                (
                    "account",
                    models.ForeignKey(
                        db_column="account_id",
                        on_delete=models.deletion.PROTECT,
                        related_name="lines",
                        to="core_ledger_store.ledgeraccount",
                    ),
                ),
            ],
            options={
                "db_table": "ledgerline_transaction_lines",
                "ordering": ["entry_id", "line_number"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("entry", "line_number"),
                        name="uq_entry_line_number",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="AuditFactRecord",
            fields=[
                (
                    "fact_id",
                    models.UUIDField(editable=False, primary_key=True, serialize=False),
                ),
                ("fact_name", models.CharField(max_length=128)),
                ("subject_type", models.CharField(max_length=64)),
                ("subject_id", models.CharField(max_length=255)),
                ("occurred_at", models.DateTimeField()),
                ("actor_id", models.CharField(blank=True, max_length=255, null=True)),
                ("before", models.JSONField(default=dict)),
                ("after", models.JSONField(default=dict)),
                ("metadata", models.JSONField(default=dict)),
            ],
            options={
                "db_table": "ledgerline_audit_facts",
                "ordering": ["occurred_at", "fact_id"],
                "indexes": [
                    models.Index(fields=["fact_name"], name="idx_fact_name"),
                    models.Index(fields=["subject_type", "subject_id"], name="idx_fact_subject"),
                ],
            },
        ),
    ]
