"""
Ledger Session for Budget Ledger

This module ties the pure engine to storage and auditing. A session is
the single writer the engine assumes: it holds the current snapshot,
applies one mutation at a time, and swaps in the result.

DESIGN DECISION: The session enforces the boundaries:
- Snapshots are migrated on load, before anyone reads them
- Only mutations that changed something bump the revision and persist
- Every operation is audited, including ignored ones

The engine stays free of I/O; everything with side effects lives here.
"""

from typing import Any, Callable, Mapping, Optional
from uuid import UUID

from ledger.audit import AuditLogger, create_correlation_id
from ledger.config import get_settings
from ledger.engine import (
    add_planned_expense,
    add_recurring_expense,
    aggregate_totals,
    delete_planned_expense,
    delete_recurring_expense,
    find_planned_expense,
    get_budget_month,
    list_budget_months,
    load_snapshot,
    merge_snapshots,
    update_planned_expense,
    update_recurring_expense,
)
from ledger.engine.months import month_key
from ledger.models.audit import AuditEventType
from ledger.models.budget import (
    BudgetMonth,
    BudgetMonthTotals,
    FinancialSnapshot,
    PlannedExpenseItem,
    Profile,
    RecurringExpense,
    utc_now_iso,
)
from ledger.services.storage import (
    InMemoryAuditStorage,
    JsonFileSnapshotStorage,
    JsonLinesAuditStorage,
    SnapshotStorageInterface,
    StorageError,
)


class LedgerSession:
    """
    Holds one ledger snapshot and sequences every write to it.

    Flow for a mutation:
    1. Engine transform → new snapshot (or the same one for a no-op)
    2. Revision bump (only if something changed)
    3. Audit event
    4. Autosave (if storage is configured)
    """

    def __init__(
        self,
        snapshot: Optional[FinancialSnapshot] = None,
        storage: Optional[SnapshotStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        autosave: Optional[bool] = None,
    ):
        settings = get_settings()
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()
        self._autosave = settings.storage.autosave if autosave is None else autosave
        self._snapshot = snapshot or FinancialSnapshot(
            profile=Profile(currency=settings.ledger.default_currency),
        )

    @property
    def snapshot(self) -> FinancialSnapshot:
        return self._snapshot

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def load(self, correlation_id: Optional[UUID] = None) -> FinancialSnapshot:
        """
        Load and migrate the stored snapshot.

        With no storage, or nothing stored yet, the current snapshot is
        migrated in place so it still gets a month to write into.

        Raises:
            StorageError: If the backend can't be read or holds an
                undecodable snapshot (logged as a system error first)
        """
        try:
            raw = self._storage.load() if self._storage else None
        except StorageError as e:
            self._audit_logger.log_error(
                error_type=type(e).__name__,
                error_message=str(e),
                details={"operation": "load"},
                correlation_id=correlation_id,
            )
            raise
        if raw is None:
            raw = self._snapshot.to_wire()
        self._snapshot = load_snapshot(raw)
        self._audit_logger.log_snapshot_loaded(
            month_count=len(self._snapshot.budget_months),
            revision=self._snapshot.revision,
            correlation_id=correlation_id,
        )
        return self._snapshot

    def save(self, correlation_id: Optional[UUID] = None) -> bool:
        """
        Persist the current snapshot.

        Raises:
            StorageError: If the backend fails (after its retries)
        """
        if not self._storage:
            return False
        try:
            self._storage.save(self._snapshot)
        except StorageError as e:
            self._audit_logger.log_save_failed(str(e), correlation_id=correlation_id)
            raise
        self._audit_logger.log_snapshot_saved(self._snapshot.revision, correlation_id=correlation_id)
        return True

    def _commit(
        self,
        result: FinancialSnapshot,
        correlation_id: Optional[UUID],
        audit: Callable[[], None],
    ) -> bool:
        """
        Swap in `result`, audit it, then autosave.

        False when the engine returned the input unchanged. The audit
        event is written before saving so a failed save still leaves a
        record of the change it failed to persist.
        """
        if result is self._snapshot:
            return False
        self._snapshot = result.model_copy(update={
            "revision": result.revision + 1,
            "last_local_change_at": utc_now_iso(),
        })
        audit()
        if self._autosave:
            self.save(correlation_id=correlation_id)
        return True

    # =========================================================================
    # PLANNED EXPENSES
    # =========================================================================

    def _owning_month(self, expense_id: str) -> str:
        return find_planned_expense(self._snapshot, expense_id)[0]

    def add_planned_expense(
        self,
        expense: PlannedExpenseItem,
        correlation_id: Optional[UUID] = None,
    ) -> FinancialSnapshot:
        result = add_planned_expense(self._snapshot, expense)
        self._commit(result, correlation_id, lambda: self._audit_logger.log_planned_expense_added(
            expense_id=expense.id,
            month=self._owning_month(expense.id),
            correlation_id=correlation_id,
        ))
        return self._snapshot

    def update_planned_expense(
        self,
        expense_id: str,
        updates: Mapping[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> FinancialSnapshot:
        before = find_planned_expense(self._snapshot, expense_id)
        result = update_planned_expense(self._snapshot, expense_id, updates)
        committed = self._commit(result, correlation_id, lambda: self._audit_logger.log_planned_expense_updated(
            expense_id=expense_id,
            source_month=before[0],
            target_month=self._owning_month(expense_id),
            correlation_id=correlation_id,
        ))
        if not committed:
            self._audit_logger.log_mutation_ignored(
                "update_planned_expense", expense_id, correlation_id=correlation_id
            )
        return self._snapshot

    def delete_planned_expense(
        self,
        expense_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> FinancialSnapshot:
        before = find_planned_expense(self._snapshot, expense_id)
        result = delete_planned_expense(self._snapshot, expense_id)
        committed = self._commit(result, correlation_id, lambda: self._audit_logger.log_planned_expense_deleted(
            expense_id=expense_id,
            month=before[0],
            correlation_id=correlation_id,
        ))
        if not committed:
            self._audit_logger.log_mutation_ignored(
                "delete_planned_expense", expense_id, correlation_id=correlation_id
            )
        return self._snapshot

    # =========================================================================
    # RECURRING EXPENSES
    # =========================================================================

    def _recurring_month(self, expense_id: str) -> list[str]:
        expense = next((e for e in self._snapshot.recurring_expenses if e.id == expense_id), None)
        return [month_key(expense.due_reference)] if expense else []

    def _log_recurring(
        self,
        event_type: AuditEventType,
        expense_id: str,
        months: list[str],
        correlation_id: Optional[UUID],
    ) -> Callable[[], None]:
        return lambda: self._audit_logger.log_recurring_expense_changed(
            event_type,
            expense_id=expense_id,
            months=months + self._recurring_month(expense_id),
            correlation_id=correlation_id,
        )

    def add_recurring_expense(
        self,
        expense: RecurringExpense,
        correlation_id: Optional[UUID] = None,
    ) -> FinancialSnapshot:
        result = add_recurring_expense(self._snapshot, expense)
        self._commit(result, correlation_id, self._log_recurring(
            AuditEventType.RECURRING_EXPENSE_ADDED, expense.id, [], correlation_id
        ))
        return self._snapshot

    def update_recurring_expense(
        self,
        expense_id: str,
        updates: Mapping[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> FinancialSnapshot:
        months = self._recurring_month(expense_id)
        result = update_recurring_expense(self._snapshot, expense_id, updates)
        committed = self._commit(result, correlation_id, self._log_recurring(
            AuditEventType.RECURRING_EXPENSE_UPDATED, expense_id, months, correlation_id
        ))
        if not committed:
            self._audit_logger.log_mutation_ignored(
                "update_recurring_expense", expense_id, correlation_id=correlation_id
            )
        return self._snapshot

    def delete_recurring_expense(
        self,
        expense_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> FinancialSnapshot:
        months = self._recurring_month(expense_id)
        result = delete_recurring_expense(self._snapshot, expense_id)
        committed = self._commit(result, correlation_id, self._log_recurring(
            AuditEventType.RECURRING_EXPENSE_DELETED, expense_id, months, correlation_id
        ))
        if not committed:
            self._audit_logger.log_mutation_ignored(
                "delete_recurring_expense", expense_id, correlation_id=correlation_id
            )
        return self._snapshot

    # =========================================================================
    # SYNC
    # =========================================================================

    def merge_remote(
        self,
        remote: Mapping[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> FinancialSnapshot:
        """
        Merge a raw snapshot from another device into this session.

        The remote snapshot goes through migration first, since it may
        come from an older client version.
        """
        correlation_id = correlation_id or create_correlation_id()
        merged = merge_snapshots(self._snapshot, load_snapshot(remote))
        self._commit(merged, correlation_id, lambda: self._audit_logger.log_snapshots_merged(
            months=list(self._snapshot.budget_months),
            revision=self._snapshot.revision,
            correlation_id=correlation_id,
        ))
        return self._snapshot


    # =========================================================================
    # READ SIDE
    # =========================================================================

    def month(self, key: str) -> BudgetMonth:
        return get_budget_month(self._snapshot, key)

    def months(self) -> list[BudgetMonth]:
        return list_budget_months(self._snapshot)

    def totals(self) -> BudgetMonthTotals:
        return aggregate_totals(self._snapshot)


def create_session(use_storage: bool = True) -> LedgerSession:
    """
    Factory function to create a session from settings.

    Args:
        use_storage: Whether to persist to the configured JSON files.
                    Set to False for an in-memory session.

    Returns:
        A loaded LedgerSession
    """
    storage = None
    audit_logger = None

    if use_storage:
        storage = JsonFileSnapshotStorage()
        try:
            audit_logger = AuditLogger(JsonLinesAuditStorage())
        except StorageError:
            # No audit log path configured - log locally only
            audit_logger = AuditLogger()
    else:
        audit_logger = AuditLogger(InMemoryAuditStorage())

    session = LedgerSession(storage=storage, audit_logger=audit_logger)
    session.load()
    return session
