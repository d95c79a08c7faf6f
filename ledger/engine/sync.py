"""
Dual-representation synchronizer.

A month carries its planned spend twice: the legacy `planned_expenses`
list and the modern `planned_items` list. This is the only place the two
are written, and they are always written together.
"""

from datetime import datetime
from typing import Iterable, Mapping, Optional

from ledger.engine.months import timestamp_order
from ledger.models.budget import (
    DEFAULT_CURRENCY,
    BudgetMonth,
    BudgetPlannedItem,
    Currency,
    FinancialSnapshot,
    PlannedExpenseItem,
    utc_now_iso,
)


def resolve_month_currency(
    month: Optional[BudgetMonth],
    snapshot: FinancialSnapshot,
) -> Currency:
    """Month currency, else profile currency, else the hard default."""
    if month is not None and month.currency is not None:
        return month.currency
    return snapshot.profile_currency or DEFAULT_CURRENCY


def planned_item_from_expense(
    expense: PlannedExpenseItem,
    currency: Currency,
) -> BudgetPlannedItem:
    """Map a legacy planned expense to its modern planned item."""
    return BudgetPlannedItem(
        id=expense.id,
        category_id=expense.category_id,
        name=expense.name,
        planned_amount=expense.planned_amount,
        rollover_amount=expense.remainder_amount,
        currency=currency,
        notes=expense.notes,
    )


def sync_planned_entries_for_month(
    snapshot: FinancialSnapshot,
    key: str,
    planned_expenses: Iterable[PlannedExpenseItem],
) -> FinancialSnapshot:
    """
    Replace both planned lists of month `key`.

    Returns the snapshot unchanged when the month doesn't exist.
    Totals are NOT recomputed here; callers recompute afterwards.
    """
    month = snapshot.budget_months.get(key)
    if month is None:
        return snapshot

    currency = resolve_month_currency(month, snapshot)
    expenses = list(planned_expenses)

    synced = month.model_copy(update={
        "planned_expenses": expenses,
        "planned_items": [planned_item_from_expense(e, currency) for e in expenses],
        "updated_at": utc_now_iso(),
    })
    return snapshot.model_copy(update={
        "budget_months": {**snapshot.budget_months, key: synced},
    })


def planned_expense_owners(months: Mapping[str, BudgetMonth]) -> dict[str, str]:
    """
    expense id -> month key holding its newest copy.

    A planned expense belongs to exactly one month. When two months hold
    the same id (an unfinished move, or a merge), the copy with the
    latest `updated_at` wins; on a tie the earlier month keeps it.
    """
    owners: dict[str, tuple[str, datetime]] = {}
    for key, month in months.items():
        for expense in month.planned_expenses:
            stamp = timestamp_order(expense.updated_at)
            current = owners.get(expense.id)
            if current is None or stamp > current[1]:
                owners[expense.id] = (key, stamp)
    return {expense_id: owner[0] for expense_id, owner in owners.items()}
