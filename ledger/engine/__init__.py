"""
Budget Ledger Reconciliation Engine

Pure snapshot → snapshot transforms. No I/O, no encryption, no network.
"""

from ledger.engine.merge import merge_snapshots
from ledger.engine.months import current_month_key, is_month_key, month_key
from ledger.engine.mutations import (
    add_planned_expense,
    add_recurring_expense,
    delete_planned_expense,
    delete_recurring_expense,
    ensure_budget_month,
    find_planned_expense,
    recompute_budget_month,
    recompute_budget_months,
    update_planned_expense,
    update_recurring_expense,
)
from ledger.engine.normalise import load_snapshot, normalise_budget_month_for_selectors
from ledger.engine.selectors import (
    aggregate_totals,
    all_actuals,
    all_adjustments,
    all_planned_items,
    all_unassigned_actuals,
    find_planned_expense_month,
    get_budget_month,
    list_budget_months,
)
from ledger.engine.sync import (
    planned_item_from_expense,
    resolve_month_currency,
    sync_planned_entries_for_month,
)
from ledger.engine.totals import compute_totals

__all__ = [
    # Month keys
    "current_month_key",
    "is_month_key",
    "month_key",
    # Totals
    "compute_totals",
    # Synchronizer
    "planned_item_from_expense",
    "resolve_month_currency",
    "sync_planned_entries_for_month",
    # Normalizer
    "load_snapshot",
    "normalise_budget_month_for_selectors",
    # Mutations
    "add_planned_expense",
    "add_recurring_expense",
    "delete_planned_expense",
    "delete_recurring_expense",
    "ensure_budget_month",
    "find_planned_expense",
    "recompute_budget_month",
    "recompute_budget_months",
    "update_planned_expense",
    "update_recurring_expense",
    # Selectors
    "aggregate_totals",
    "all_actuals",
    "all_adjustments",
    "all_planned_items",
    "all_unassigned_actuals",
    "find_planned_expense_month",
    "get_budget_month",
    "list_budget_months",
    # Merge
    "merge_snapshots",
]
