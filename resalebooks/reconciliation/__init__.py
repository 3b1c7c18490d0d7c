"""
Reconciliation: record intake and cross-record side effects.
"""

from resalebooks.reconciliation.normalize import (
    describe_expense,
    map_gl_account,
    map_platform,
    to_money,
)
from resalebooks.reconciliation.service import (
    ExpenseEntry,
    InventoryEntry,
    RebateEntry,
    ReconciliationService,
    RefundEntry,
    RefundProvenance,
    RefundRecorded,
    SaleEntry,
    SaleRecorded,
    match_inventory,
)

__all__ = [
    "ExpenseEntry",
    "InventoryEntry",
    "RebateEntry",
    "ReconciliationService",
    "RefundEntry",
    "RefundProvenance",
    "RefundRecorded",
    "SaleEntry",
    "SaleRecorded",
    "describe_expense",
    "map_gl_account",
    "map_platform",
    "match_inventory",
    "to_money",
]
