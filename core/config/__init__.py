"""
Ledgerline Core Config — Public API
====================================
Immutable structural rules for the chart of accounts.
Doctrine: limits are data passed to components, not globals.
"""

from core.config.rules import (
    DEFAULT_HIERARCHY_CONFIG,
    HierarchyConfig,
    load_hierarchy_config,
)

__all__ = [
    "DEFAULT_HIERARCHY_CONFIG",
    "HierarchyConfig",
    "load_hierarchy_config",
]
