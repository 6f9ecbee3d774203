"""
Ledgerline Core Primitives — Accounting Building Blocks
========================================================
Primitives are the engine-agnostic building blocks of the ledger:

- Pure Python (no Django dependency)
- Immutable (frozen dataclasses; mutators return new snapshots)
- Deterministic (time is always an argument)

Primitives:
    money          — Decimal amount + ISO currency
    account_types  — AccountType taxonomy, categories, normal sides
    account        — Account snapshot and its named mutators
    hierarchy      — AccountHierarchy arena, cycle checks
    ledger         — TransactionLine / JournalEntry
    fiscal_period  — Fiscal period status state machine
    exceptions     — Ledger error tree
"""
