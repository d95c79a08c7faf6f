"""
Read-side selectors.

Every selector reads months through the legacy normalizer, so consumers
(UI, insights) never see a legacy-shaped month.
"""

from decimal import Decimal
from typing import Optional

from ledger.engine.mutations import find_planned_expense
from ledger.engine.normalise import TOTALS_FIELDS, normalise_budget_month_for_selectors
from ledger.engine.sync import resolve_month_currency
from ledger.models.budget import (
    BudgetActual,
    BudgetAdjustment,
    BudgetMonth,
    BudgetMonthTotals,
    BudgetPlannedItem,
    FinancialSnapshot,
)


def get_budget_month(snapshot: FinancialSnapshot, key: str) -> BudgetMonth:
    """Normalized month `key`; an empty month if the ledger has none."""
    month = snapshot.budget_months.get(key)
    return normalise_budget_month_for_selectors(
        key, month, resolve_month_currency(month, snapshot)
    )


def list_budget_months(snapshot: FinancialSnapshot) -> list[BudgetMonth]:
    """All normalized months, oldest first."""
    return [get_budget_month(snapshot, key) for key in sorted(snapshot.budget_months)]


def aggregate_totals(snapshot: FinancialSnapshot) -> BudgetMonthTotals:
    """Field-wise sum of every month's totals."""
    sums = {field: Decimal("0") for field in TOTALS_FIELDS}
    for month in list_budget_months(snapshot):
        for field in TOTALS_FIELDS:
            sums[field] += getattr(month.totals, field)
    return BudgetMonthTotals(**sums)


def all_planned_items(snapshot: FinancialSnapshot) -> list[BudgetPlannedItem]:
    return [item for month in list_budget_months(snapshot) for item in month.planned_items]


def all_actuals(snapshot: FinancialSnapshot) -> list[BudgetActual]:
    return [item for month in list_budget_months(snapshot) for item in month.actuals]


def all_unassigned_actuals(snapshot: FinancialSnapshot) -> list[BudgetActual]:
    return [item for month in list_budget_months(snapshot) for item in month.unassigned_actuals]


def all_adjustments(snapshot: FinancialSnapshot) -> list[BudgetAdjustment]:
    return [item for month in list_budget_months(snapshot) for item in month.adjustments]


def find_planned_expense_month(snapshot: FinancialSnapshot, expense_id: str) -> Optional[str]:
    located = find_planned_expense(snapshot, expense_id)
    return located[0] if located else None
