"""
Ledgerline Ledger Store - App Configuration
============================================
Relational storage for accounts, journal entries, transaction lines
and audit facts.
"""

from django.apps import AppConfig


class CoreLedgerStoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core.ledger_store"
    label = "core_ledger_store"
    verbose_name = "Ledgerline Ledger Store"
