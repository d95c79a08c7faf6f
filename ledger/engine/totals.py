"""
Totals calculator.

difference = planned + rollover_from_previous - rollover_to_next - actual

Planned and assigned-actual sums read the modern lists when they are
non-empty and fall back to the legacy planned expenses otherwise. The
two are never added together.
"""

from decimal import Decimal
from typing import Iterable, Optional

from ledger.models.budget import BudgetMonth, BudgetMonthTotals


def _sum(values: Iterable[Optional[Decimal]]) -> Decimal:
    return sum((v for v in values if v is not None), Decimal("0"))


def compute_totals(month: BudgetMonth) -> BudgetMonthTotals:
    """Compute the totals of one month. Pure; calling it twice gives the same result."""
    if month.planned_items:
        planned = _sum(item.planned_amount for item in month.planned_items)
    else:
        planned = _sum(item.planned_amount for item in month.planned_expenses)

    if month.actuals:
        actual_assigned = _sum(item.amount for item in month.actuals)
    else:
        actual_assigned = _sum(item.actual_amount for item in month.planned_expenses)

    unassigned = _sum(item.amount for item in month.unassigned_actuals)
    actual = actual_assigned + unassigned

    # Direction is decided by the tags, not by which month stores the adjustment
    rollover_from_previous = _sum(
        adj.amount for adj in month.adjustments
        if adj.rollover_target_month == month.month
    )
    rollover_to_next = _sum(
        adj.amount for adj in month.adjustments
        if adj.rollover_source_month == month.month
    )

    return BudgetMonthTotals(
        planned=planned,
        actual=actual,
        difference=planned + rollover_from_previous - rollover_to_next - actual,
        rollover_from_previous=rollover_from_previous,
        rollover_to_next=rollover_to_next,
    )
