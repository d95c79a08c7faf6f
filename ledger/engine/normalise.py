"""
Legacy normalizer.

Stored months come in several generations of shape:
- planned spend only in the legacy `plannedExpenses` list
- actuals only as `actualAmount` on legacy planned expenses
- `unassignedActuals` holding raw transactions instead of actuals
- rollovers in a `rollovers` list instead of adjustments
- raw recurring expenses in place of recurring allocations

`normalise_budget_month_for_selectors` rebuilds a complete modern month
from any of them for read-only consumers. It never mutates its input and
its output is never written back. `load_snapshot` runs the same
conversion once at load time so the live snapshot only holds modern
months.

The shape sniffing here is a compatibility shim; it should go once the
legacy formats are retired.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional, TypeVar, Union

import structlog
from pydantic import BaseModel, ValidationError
from pydantic.alias_generators import to_camel, to_snake

from ledger.engine.months import current_month_key, is_month_key, month_key
from ledger.engine.sync import (
    planned_expense_owners,
    planned_item_from_expense,
    resolve_month_currency,
    sync_planned_entries_for_month,
)
from ledger.engine.totals import compute_totals
from ledger.models.budget import (
    DEFAULT_CURRENCY,
    BudgetActual,
    BudgetAdjustment,
    BudgetMonth,
    BudgetMonthTotals,
    BudgetPlannedItem,
    BudgetRecurringAllocation,
    Currency,
    FinancialSnapshot,
    PlannedExpenseItem,
    Profile,
    RecurringExpense,
    Transaction,
    utc_now_iso,
)

logger = structlog.get_logger(__name__)

RawMonth = Union[BudgetMonth, Mapping[str, Any], None]

TOTALS_FIELDS = tuple(BudgetMonthTotals.model_fields)

# Category for legacy planned expenses stored without one
UNCATEGORISED = "uncategorised"

ModelT = TypeVar("ModelT", bound=BaseModel)


# =============================================================================
# RAW VALUE HELPERS
# =============================================================================

def _as_number(value: Any) -> Optional[Decimal]:
    """Decimal for a finite numeric value, None for anything else."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float, Decimal, str)):
        try:
            number = Decimal(str(value))
        except InvalidOperation:
            return None
        return number if number.is_finite() else None
    return None


def _field(entry: Any, name: str) -> Any:
    """Read `name` from a model or from a camelCase / snake_case mapping."""
    if isinstance(entry, Mapping):
        camel = to_camel(name)
        if camel in entry:
            return entry[camel]
        return entry.get(name)
    return getattr(entry, name, None)


def _has_field(entry: Any, name: str) -> bool:
    if isinstance(entry, Mapping):
        return to_camel(name) in entry or name in entry
    return getattr(entry, name, None) is not None


def _non_empty(value: Any) -> Optional[list]:
    if isinstance(value, (list, tuple)) and len(value) > 0:
        return list(value)
    return None


def _raw_month(month: Union[BudgetMonth, Mapping[str, Any]]) -> dict[str, Any]:
    """A camelCase dict view of a stored month."""
    if isinstance(month, BudgetMonth):
        return month.model_dump(by_alias=True)

    raw = dict(month)
    for name, info in BudgetMonth.model_fields.items():
        alias = info.alias or name
        if name != alias and name in raw and alias not in raw:
            raw[alias] = raw.pop(name)
    return raw


def _currency(value: Any, fallback: Optional[Currency]) -> Optional[Currency]:
    """`value` as a known currency code, else `fallback`."""
    if isinstance(value, Currency):
        return value
    try:
        return Currency(value)
    except ValueError:
        return fallback


def _validate_dropping_bad_fields(model: type[ModelT], data: dict[str, Any], **context) -> ModelT:
    """
    Validate `data`, dropping top-level fields that fail so their defaults apply.

    Only for models whose fields all have defaults, or whose required
    fields the caller has already filled.
    """
    try:
        return model.model_validate(data)
    except ValidationError as e:
        bad = {str(error["loc"][0]) for error in e.errors() if error["loc"]}
        logger.warning("invalid_fields_reset", model=model.__name__, fields=sorted(bad), **context)
        for name in bad:
            for variant in (name, to_camel(name), to_snake(name)):
                data.pop(variant, None)
        return model.model_validate(data)


def _validated_entries(
    model: type[ModelT],
    entries: Optional[Iterable[Any]],
    currency: Optional[Currency] = None,
    **context,
) -> list[ModelT]:
    """
    Validate stored entries one by one.

    With a `currency`, an entry with a missing or unknown code gets the
    month's. Entries that still don't validate are dropped and logged.
    """
    validated = []
    for entry in entries or []:
        if isinstance(entry, model):
            validated.append(entry)
            continue
        if not isinstance(entry, Mapping):
            logger.warning("stored_entry_dropped", model=model.__name__, reason="not a mapping", **context)
            continue

        cleaned = dict(entry)
        if currency is not None:
            cleaned["currency"] = _currency(cleaned.get("currency"), currency)
        elif cleaned.get("currency") is not None:
            # Optional on these records; an unknown code is cleared
            cleaned["currency"] = _currency(cleaned["currency"], None)
        try:
            validated.append(model.model_validate(cleaned))
        except ValidationError as e:
            logger.warning(
                "stored_entry_dropped",
                model=model.__name__,
                entry_id=cleaned.get("id"),
                error_count=e.error_count(),
                **context,
            )
    return validated


# =============================================================================
# CONVERSIONS
# =============================================================================

def legacy_planned_expenses(entries: Optional[Iterable[Any]]) -> list[PlannedExpenseItem]:
    """
    Parse legacy planned expenses.

    Non-numeric actual/remainder amounts are treated as absent, an
    expense without a category is filed under UNCATEGORISED, and other
    unreadable fields fall back to their defaults. Only entries without
    a usable id or planned amount are dropped and logged.
    """
    expenses = []
    for entry in entries or []:
        if isinstance(entry, PlannedExpenseItem):
            expenses.append(entry)
            continue
        if not isinstance(entry, Mapping):
            continue

        cleaned = dict(entry)
        for name in ("actual_amount", "remainder_amount"):
            for key in (to_camel(name), name):
                if key in cleaned:
                    cleaned[key] = _as_number(cleaned[key])
        category_id = _field(cleaned, "category_id")
        cleaned.pop("category_id", None)
        cleaned["categoryId"] = UNCATEGORISED if category_id in (None, "") else str(category_id)
        if not isinstance(cleaned.get("name"), str):
            cleaned["name"] = str(cleaned.get("id") or "")
        try:
            expenses.append(_validate_dropping_bad_fields(
                PlannedExpenseItem, cleaned, expense_id=cleaned.get("id")
            ))
        except ValidationError as e:
            logger.warning(
                "legacy_planned_expense_dropped",
                expense_id=entry.get("id"),
                error_count=e.error_count(),
            )
    return expenses


def actual_from_planned_expense(
    expense: PlannedExpenseItem,
    currency: Currency,
) -> Optional[BudgetActual]:
    """The actual recorded on a legacy planned expense, if it has one."""
    if expense.actual_amount is None:
        return None
    return BudgetActual(
        id=f"{expense.id}-actual",
        category_id=expense.category_id,
        description=expense.name,
        amount=expense.actual_amount,
        currency=currency,
        occurred_on=expense.due_date,
    )


def actual_from_transaction(
    transaction: Union[Transaction, Mapping[str, Any]],
    currency: Currency,
) -> Optional[BudgetActual]:
    """Spend from a raw transaction, as a positive actual; None if it can't be read."""
    amount = _as_number(_field(transaction, "amount"))
    if amount is None:
        return None
    transaction_id = str(_field(transaction, "id"))
    try:
        return BudgetActual(
            id=transaction_id,
            category_id=_field(transaction, "category_id"),
            description=_field(transaction, "description") or "",
            amount=abs(amount),
            currency=_currency(_field(transaction, "currency"), currency),
            occurred_on=_field(transaction, "date"),
            transaction_id=transaction_id,
        )
    except ValidationError as e:
        logger.warning(
            "legacy_transaction_dropped",
            transaction_id=transaction_id,
            error_count=e.error_count(),
        )
        return None


def adjustment_from_rollover(
    key: str,
    index: int,
    rollover: Any,
    currency: Currency,
) -> Optional[BudgetAdjustment]:
    """A legacy rollover entry as an adjustment leaving month `key`."""
    amount = _as_number(_field(rollover, "remainder_amount"))
    if amount is None or amount == 0:
        return None
    try:
        return BudgetAdjustment(
            id=str(_field(rollover, "id") or f"{key}-rollover-{index}"),
            category_id=_field(rollover, "category_id"),
            amount=amount,
            currency=currency,
            reason=_field(rollover, "reason") or _field(rollover, "name") or "Rollover",
            rollover_source_month=key,
            rollover_target_month=_field(rollover, "rollover_target_month"),
        )
    except ValidationError as e:
        logger.warning("legacy_rollover_dropped", month=key, index=index, error_count=e.error_count())
        return None


def recurring_allocation_for_month(
    expense: RecurringExpense,
    key: str,
    currency: Currency,
) -> BudgetRecurringAllocation:
    return BudgetRecurringAllocation(
        id=f"{expense.id}-{key}",
        recurring_expense_id=expense.id,
        category_id=expense.category_id,
        amount=expense.amount,
        currency=currency,
        start_month=key,
        end_month=key,
    )


# =============================================================================
# READ PATH
# =============================================================================

def _resolve_unassigned(entries: Optional[list], key: str, currency: Currency) -> list[BudgetActual]:
    if not entries:
        return []
    if _has_field(entries[0], "account_id"):
        actuals = (actual_from_transaction(t, currency) for t in entries)
        return [a for a in actuals if a is not None]
    return _validated_entries(BudgetActual, entries, currency, month=key, field="unassignedActuals")


def _resolve_recurring(
    entries: Optional[list],
    key: str,
    currency: Currency,
) -> list[BudgetRecurringAllocation]:
    allocations = []
    for entry in entries or []:
        if _has_field(entry, "recurring_expense_id"):
            allocations.extend(_validated_entries(
                BudgetRecurringAllocation, [entry], currency, month=key, field="recurringAllocations"
            ))
            continue
        try:
            expense = (
                entry if isinstance(entry, RecurringExpense)
                else RecurringExpense.model_validate(entry)
            )
        except ValidationError:
            logger.warning("legacy_recurring_entry_dropped", month=key)
            continue
        allocations.append(recurring_allocation_for_month(expense, key, currency))
    return allocations


def _resolve_totals(raw_totals: Any) -> dict[str, Decimal]:
    totals = {field: Decimal("0") for field in TOTALS_FIELDS}
    if isinstance(raw_totals, (Mapping, BudgetMonthTotals)):
        for field in TOTALS_FIELDS:
            value = _as_number(_field(raw_totals, field))
            if value is not None:
                totals[field] = value
    return totals


def normalise_budget_month_for_selectors(
    key: str,
    month: RawMonth,
    currency: Currency,
) -> BudgetMonth:
    """
    Rebuild a complete modern month for read-only consumers.

    Prefers modern fields, falls back to legacy ones, else empty. Stored
    totals are shown as persisted, never recomputed here. Entries that
    can't be read are dropped one by one, so a partly damaged month
    never fails as a whole.
    """
    base = BudgetMonth.empty(key, currency)
    if month is None:
        return base

    raw = _raw_month(month)
    resolved_currency = _currency(raw.get("currency"), currency)
    legacy = legacy_planned_expenses(raw.get("plannedExpenses"))

    planned_items = _validated_entries(
        BudgetPlannedItem, _non_empty(raw.get("plannedItems")), resolved_currency,
        month=key, field="plannedItems",
    )
    if not planned_items:
        planned_items = [planned_item_from_expense(e, resolved_currency) for e in legacy]

    actuals = _validated_entries(
        BudgetActual, _non_empty(raw.get("actuals")), resolved_currency,
        month=key, field="actuals",
    )
    if not actuals:
        derived = (actual_from_planned_expense(e, resolved_currency) for e in legacy)
        actuals = [a for a in derived if a is not None]

    unassigned = _resolve_unassigned(_non_empty(raw.get("unassignedActuals")), key, resolved_currency)

    adjustments = _validated_entries(
        BudgetAdjustment, _non_empty(raw.get("adjustments")), resolved_currency,
        month=key, field="adjustments",
    )
    if not adjustments:
        rollovers = raw.get("rollovers")
        derived = (
            adjustment_from_rollover(key, index, entry, resolved_currency)
            for index, entry in enumerate(rollovers if isinstance(rollovers, (list, tuple)) else [])
        )
        adjustments = [a for a in derived if a is not None]

    recurring_entries = raw.get("recurringAllocations")
    recurring = _resolve_recurring(
        recurring_entries if isinstance(recurring_entries, (list, tuple)) else None,
        key,
        resolved_currency,
    )

    merged = {
        **base.model_dump(by_alias=True),
        **raw,
        "month": key,
        "currency": resolved_currency,
        "plannedItems": planned_items,
        "plannedExpenses": legacy,
        "actuals": actuals,
        "unassignedActuals": unassigned,
        "adjustments": adjustments,
        "recurringAllocations": recurring,
        "totals": _resolve_totals(raw.get("totals")),
    }
    return _validate_dropping_bad_fields(BudgetMonth, merged, month=key)


# =============================================================================
# LOAD PATH
# =============================================================================

def _months_from_payload(payload: Any, fallback: str) -> list[tuple[str, Any]]:
    if isinstance(payload, Mapping):
        entries = [
            (stored_key or _field(month, "month"), month)
            for stored_key, month in payload.items()
        ]
    elif isinstance(payload, (list, tuple)):
        entries = [(_field(month, "month"), month) for month in payload]
    else:
        entries = []

    months = []
    for stored_key, month in entries:
        if not month:
            continue
        if not isinstance(month, (Mapping, BudgetMonth)):
            logger.warning("stored_month_dropped", month=repr(stored_key), reason="not a mapping")
            continue
        key = stored_key if is_month_key(stored_key) else month_key(stored_key, fallback)
        months.append((key, month))
    return months


def _months_from_legacy_list(
    expenses: list[PlannedExpenseItem],
    currency: Currency,
    fallback: str,
) -> dict[str, BudgetMonth]:
    grouped: dict[str, list[PlannedExpenseItem]] = {}
    for expense in expenses:
        key = month_key(expense.due_date, fallback)
        grouped.setdefault(key, []).append(expense)
    return {
        key: normalise_budget_month_for_selectors(key, {"plannedExpenses": items}, currency)
        for key, items in grouped.items()
    }


def _single_owner(months: dict[str, BudgetMonth]) -> dict[str, BudgetMonth]:
    """Drop every copy of a planned expense except its owner's."""
    owners = planned_expense_owners(months)
    result = {}
    for key, month in months.items():
        expenses = [e for e in month.planned_expenses if owners[e.id] == key]
        if len(expenses) == len(month.planned_expenses):
            result[key] = month
            continue
        dropped = [e.id for e in month.planned_expenses if owners[e.id] != key]
        logger.warning("duplicate_planned_expense_dropped", month=key, expense_ids=dropped)
        items = [item for item in month.planned_items if owners.get(item.id, key) == key]
        result[key] = month.model_copy(update={"planned_expenses": expenses, "planned_items": items})
    return result


def _reconcile_month(snapshot: FinancialSnapshot, key: str) -> FinancialSnapshot:
    """Bring both planned lists into agreement and refresh totals."""
    month = snapshot.budget_months[key]
    legacy_ids = set(month.planned_expense_ids)
    # Planned items missing from the legacy list are carried over, not dropped
    expenses = list(month.planned_expenses) + [
        PlannedExpenseItem(
            id=item.id,
            name=item.name,
            planned_amount=item.planned_amount,
            remainder_amount=item.rollover_amount,
            category_id=item.category_id,
            notes=item.notes,
            created_at=month.created_at,
            updated_at=month.updated_at,
        )
        for item in month.planned_items
        if item.id not in legacy_ids
    ]
    currency = resolve_month_currency(month, snapshot)
    in_step = (
        expenses == month.planned_expenses
        and [planned_item_from_expense(e, currency) for e in expenses] == month.planned_items
    )
    if not in_step:
        snapshot = sync_planned_entries_for_month(snapshot, key, expenses)
        month = snapshot.budget_months[key]

    totals = compute_totals(month)
    if totals == month.totals:
        return snapshot
    return snapshot.model_copy(update={
        "budget_months": {**snapshot.budget_months, key: month.model_copy(update={"totals": totals})},
    })


def _snapshot_fields(data: dict[str, Any]) -> dict[str, Any]:
    """Validate the top-level records entry by entry, like the months."""
    for name, model in (("transactions", Transaction), ("recurring_expenses", RecurringExpense)):
        camel = to_camel(name)
        entries = data.pop(camel, data.pop(name, None))
        if entries is not None:
            data[camel] = _validated_entries(
                model, entries if isinstance(entries, (list, tuple)) else [], field=camel
            )

    profile = data.pop("profile", None)
    if isinstance(profile, Mapping):
        cleaned = dict(profile)
        if "currency" in cleaned:
            cleaned["currency"] = _currency(cleaned["currency"], DEFAULT_CURRENCY)
        data["profile"] = _validate_dropping_bad_fields(Profile, cleaned, field="profile")
    elif isinstance(profile, Profile):
        data["profile"] = profile
    return data


def load_snapshot(
    raw: Optional[Mapping[str, Any]],
    now: Optional[str] = None,
) -> FinancialSnapshot:
    """
    Migrate a persisted snapshot of any version to the modern shape.

    Safe to run on every load: a snapshot that is already modern comes
    back with the same months and entries. Unreadable entries are
    dropped and logged instead of failing the load, and a planned
    expense stored in two months keeps only its newest copy.
    """
    now = now or utc_now_iso()
    fallback = month_key(now, current_month_key())
    data = dict(raw or {})

    snake_months = data.pop("budget_months", None)
    payload = data.pop("budgetMonths", snake_months)
    snake_expenses = data.pop("planned_expenses", None)
    data["plannedExpenses"] = legacy_planned_expenses(data.pop("plannedExpenses", snake_expenses))
    snapshot = _validate_dropping_bad_fields(FinancialSnapshot, _snapshot_fields(data))
    currency = snapshot.profile_currency or DEFAULT_CURRENCY

    months: dict[str, BudgetMonth] = {}
    for key, stored in _months_from_payload(payload, fallback):
        months[key] = normalise_budget_month_for_selectors(key, stored, currency)

    if not months and snapshot.planned_expenses:
        months = _months_from_legacy_list(snapshot.planned_expenses, currency, fallback)

    if not months:
        months = {fallback: BudgetMonth.empty(fallback, currency)}

    months = _single_owner(dict(sorted(months.items())))
    snapshot = snapshot.model_copy(update={"budget_months": months})
    for key in snapshot.budget_months:
        snapshot = _reconcile_month(snapshot, key)

    logger.debug("snapshot_loaded", months=len(snapshot.budget_months))
    return snapshot
