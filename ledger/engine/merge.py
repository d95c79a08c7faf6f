"""
Snapshot merge.

Combines a local snapshot with one pulled from another device. Merge is
not reconciliation: once the lists are combined, every month goes back
through the synchronizer and is recomputed, so the merged ledger obeys
the same invariants as one built by mutations.

Timestamps are compared as instants, not strings, so "Z" and "+00:00"
or different fractional precision don't change the outcome.
"""

from typing import Sequence, TypeVar

import structlog

from ledger.engine.months import current_month_key, month_key, timestamp_order
from ledger.engine.mutations import recompute_budget_months
from ledger.engine.sync import planned_expense_owners, sync_planned_entries_for_month
from ledger.models.budget import BudgetMonth, FinancialSnapshot, LedgerModel

logger = structlog.get_logger(__name__)

RecordT = TypeVar("RecordT", bound=LedgerModel)

MONTH_LISTS = (
    "planned_expenses",
    "actuals",
    "unassigned_actuals",
    "adjustments",
)


def merge_by_id(local: Sequence[RecordT], remote: Sequence[RecordT]) -> list[RecordT]:
    """Remote entries win; local entries unknown to remote are kept."""
    merged = {item.id: item for item in remote}
    for item in local:
        merged.setdefault(item.id, item)
    return list(merged.values())


def merge_by_updated_at(local: Sequence[RecordT], remote: Sequence[RecordT]) -> list[RecordT]:
    """The newer `updated_at` wins; ties go to local. Ordered oldest first."""
    merged = {item.id: item for item in remote}
    for item in local:
        existing = merged.get(item.id)
        if existing is None or timestamp_order(existing.updated_at) <= timestamp_order(item.updated_at):
            merged[item.id] = item
    return sorted(merged.values(), key=lambda item: timestamp_order(item.updated_at))


def _merge_month(local: BudgetMonth, remote: BudgetMonth) -> BudgetMonth:
    update = {
        field: merge_by_id(getattr(local, field), getattr(remote, field))
        for field in MONTH_LISTS
    }
    update["currency"] = remote.currency or local.currency
    return remote.model_copy(update=update)


def merge_snapshots(local: FinancialSnapshot, remote: FinancialSnapshot) -> FinancialSnapshot:
    """Merge two snapshots and re-run sync + recompute over every month."""
    if local.profile is None or remote.profile is None:
        profile = local.profile or remote.profile
    elif timestamp_order(local.profile.updated_at) >= timestamp_order(remote.profile.updated_at):
        profile = local.profile
    else:
        profile = remote.profile

    months = {}
    for key in sorted(set(local.budget_months) | set(remote.budget_months)):
        local_month = local.budget_months.get(key)
        remote_month = remote.budget_months.get(key)
        if local_month is not None and remote_month is not None:
            months[key] = _merge_month(local_month, remote_month)
        else:
            months[key] = local_month or remote_month

    last_change = max(
        local.last_local_change_at,
        remote.last_local_change_at,
        key=timestamp_order,
    )
    merged = local.model_copy(update={
        "profile": profile,
        "transactions": merge_by_updated_at(local.transactions, remote.transactions),
        "planned_expenses": merge_by_updated_at(local.planned_expenses, remote.planned_expenses),
        "recurring_expenses": merge_by_updated_at(local.recurring_expenses, remote.recurring_expenses),
        "budget_months": months,
        "revision": max(local.revision, remote.revision),
        "last_local_change_at": last_change,
    })

    # A planned expense moved on one side would otherwise live in two months
    owners = planned_expense_owners(months)
    for key, month in months.items():
        owned = [e for e in month.planned_expenses if owners[e.id] == key]
        merged = sync_planned_entries_for_month(merged, key, owned)

    # Recurring expenses may be due in a month neither side has created yet
    keys = set(months) | {month_key(e.due_reference) for e in merged.recurring_expenses}
    merged = recompute_budget_months(merged, keys or [current_month_key()])

    logger.debug("snapshots_merged", months=len(merged.budget_months))
    return merged
