"""
Cross-month mutation coordinator.

Every operation takes a snapshot and returns a new one; nothing is
mutated in place. Planned-expense writes always go through the
synchronizer, and every touched month is recomputed exactly once.

An unknown id is not an error: the input snapshot is returned as-is
(the very same object), so callers can detect a no-op with `is`.
"""

from typing import Any, Iterable, Mapping, Optional, TypeVar

import structlog

from ledger.engine.months import month_key
from ledger.engine.normalise import recurring_allocation_for_month
from ledger.engine.sync import resolve_month_currency, sync_planned_entries_for_month
from ledger.engine.totals import compute_totals
from ledger.models.budget import (
    BudgetMonth,
    FinancialSnapshot,
    LedgerModel,
    PlannedExpenseItem,
    RecurringExpense,
    utc_now_iso,
)

logger = structlog.get_logger(__name__)

RecordT = TypeVar("RecordT", bound=LedgerModel)


def _apply_updates(record: RecordT, updates: Mapping[str, Any]) -> RecordT:
    """Validated copy of `record` with `updates` applied; the id never changes."""
    data = {**record.model_dump(), **dict(updates)}
    data["id"] = getattr(record, "id")
    data["updated_at"] = utc_now_iso()
    return type(record).model_validate(data)


def planned_expense_key(expense: PlannedExpenseItem) -> str:
    """Owning month; a blank due date still wins over created_at and maps to the current month."""
    return month_key(expense.created_at if expense.due_date is None else expense.due_date)


def _recurring_key(expense: RecurringExpense) -> str:
    return month_key(expense.due_reference)


# =============================================================================
# MONTH STORE
# =============================================================================

def ensure_budget_month(snapshot: FinancialSnapshot, key: str) -> FinancialSnapshot:
    """Create month `key` if it doesn't exist yet."""
    if key in snapshot.budget_months:
        return snapshot
    month = BudgetMonth.empty(key, resolve_month_currency(None, snapshot))
    months = dict(sorted({**snapshot.budget_months, key: month}.items()))
    return snapshot.model_copy(update={"budget_months": months})


def recompute_budget_month(snapshot: FinancialSnapshot, key: str) -> FinancialSnapshot:
    """
    Rebuild recurring allocations and totals of month `key`.

    Allocations are rebuilt from the whole recurring expense list every
    time, never patched.
    """
    month = snapshot.budget_months.get(key)
    if month is None:
        return snapshot

    currency = resolve_month_currency(month, snapshot)
    allocations = [
        recurring_allocation_for_month(expense, key, currency)
        for expense in snapshot.recurring_expenses
        if _recurring_key(expense) == key
    ]
    rebuilt = month.model_copy(update={"recurring_allocations": allocations})
    rebuilt = rebuilt.model_copy(update={
        "totals": compute_totals(rebuilt),
        "updated_at": utc_now_iso(),
    })
    return snapshot.model_copy(update={
        "budget_months": {**snapshot.budget_months, key: rebuilt},
    })


def recompute_budget_months(
    snapshot: FinancialSnapshot,
    keys: Iterable[str],
) -> FinancialSnapshot:
    """Ensure and recompute each distinct key once."""
    for key in sorted(set(keys)):
        snapshot = ensure_budget_month(snapshot, key)
        snapshot = recompute_budget_month(snapshot, key)
    return snapshot


def find_planned_expense(
    snapshot: FinancialSnapshot,
    expense_id: str,
) -> Optional[tuple[str, PlannedExpenseItem]]:
    """(month key, expense) owning `expense_id`, by scanning every month."""
    for key, month in snapshot.budget_months.items():
        for expense in month.planned_expenses:
            if expense.id == expense_id:
                return key, expense
    return None


def _find_recurring(
    snapshot: FinancialSnapshot,
    expense_id: str,
) -> Optional[RecurringExpense]:
    return next((e for e in snapshot.recurring_expenses if e.id == expense_id), None)


def _without_planned(
    snapshot: FinancialSnapshot,
    key: str,
    expense_id: str,
) -> FinancialSnapshot:
    month = snapshot.budget_months[key]
    remaining = [e for e in month.planned_expenses if e.id != expense_id]
    return sync_planned_entries_for_month(snapshot, key, remaining)


def _with_planned(
    snapshot: FinancialSnapshot,
    key: str,
    expense: PlannedExpenseItem,
) -> FinancialSnapshot:
    """Replace the entry with the same id in place, else append."""
    snapshot = ensure_budget_month(snapshot, key)
    current = snapshot.budget_months[key].planned_expenses
    if any(e.id == expense.id for e in current):
        expenses = [expense if e.id == expense.id else e for e in current]
    else:
        expenses = [*current, expense]
    return sync_planned_entries_for_month(snapshot, key, expenses)


# =============================================================================
# PLANNED EXPENSES
# =============================================================================

def add_planned_expense(
    snapshot: FinancialSnapshot,
    expense: PlannedExpenseItem,
) -> FinancialSnapshot:
    """
    File a planned expense under the month of its due date.

    Re-adding an id that already lives in another month moves it, so an
    id is never owned by two months.
    """
    key = planned_expense_key(expense)
    touched = {key}

    located = find_planned_expense(snapshot, expense.id)
    if located is not None and located[0] != key:
        snapshot = _without_planned(snapshot, located[0], expense.id)
        touched.add(located[0])

    snapshot = _with_planned(snapshot, key, expense)
    return recompute_budget_months(snapshot, touched)


def update_planned_expense(
    snapshot: FinancialSnapshot,
    expense_id: str,
    updates: Mapping[str, Any],
) -> FinancialSnapshot:
    """
    Patch a planned expense, moving it if its owning month changed.

    `updates` uses attribute names (e.g. `due_date`, `planned_amount`).
    """
    located = find_planned_expense(snapshot, expense_id)
    if located is None:
        logger.info("planned_expense_not_found", expense_id=expense_id, operation="update")
        return snapshot

    old_key, existing = located
    updated = _apply_updates(existing, updates)
    next_key = planned_expense_key(updated)

    if next_key != old_key:
        snapshot = _without_planned(snapshot, old_key, expense_id)
        logger.debug("planned_expense_moved", expense_id=expense_id, source=old_key, target=next_key)
    snapshot = _with_planned(snapshot, next_key, updated)

    return recompute_budget_months(snapshot, {old_key, next_key})


def delete_planned_expense(
    snapshot: FinancialSnapshot,
    expense_id: str,
) -> FinancialSnapshot:
    located = find_planned_expense(snapshot, expense_id)
    if located is None:
        logger.info("planned_expense_not_found", expense_id=expense_id, operation="delete")
        return snapshot

    key, _ = located
    snapshot = _without_planned(snapshot, key, expense_id)
    return recompute_budget_month(snapshot, key)


# =============================================================================
# RECURRING EXPENSES
# =============================================================================

def add_recurring_expense(
    snapshot: FinancialSnapshot,
    expense: RecurringExpense,
) -> FinancialSnapshot:
    """Append to the global recurring list and recompute its month."""
    if _find_recurring(snapshot, expense.id) is not None:
        return update_recurring_expense(snapshot, expense.id, expense.model_dump())

    snapshot = snapshot.model_copy(update={
        "recurring_expenses": [*snapshot.recurring_expenses, expense],
    })
    return recompute_budget_months(snapshot, {_recurring_key(expense)})


def update_recurring_expense(
    snapshot: FinancialSnapshot,
    expense_id: str,
    updates: Mapping[str, Any],
) -> FinancialSnapshot:
    """Patch a recurring expense; both its old and new months are recomputed."""
    existing = _find_recurring(snapshot, expense_id)
    if existing is None:
        logger.info("recurring_expense_not_found", expense_id=expense_id, operation="update")
        return snapshot

    updated = _apply_updates(existing, updates)
    snapshot = snapshot.model_copy(update={
        "recurring_expenses": [
            updated if e.id == expense_id else e for e in snapshot.recurring_expenses
        ],
    })
    return recompute_budget_months(snapshot, {_recurring_key(existing), _recurring_key(updated)})


def delete_recurring_expense(
    snapshot: FinancialSnapshot,
    expense_id: str,
) -> FinancialSnapshot:
    existing = _find_recurring(snapshot, expense_id)
    if existing is None:
        logger.info("recurring_expense_not_found", expense_id=expense_id, operation="delete")
        return snapshot

    snapshot = snapshot.model_copy(update={
        "recurring_expenses": [e for e in snapshot.recurring_expenses if e.id != expense_id],
    })
    return recompute_budget_months(snapshot, {_recurring_key(existing)})
