"""
Audit Logger

DESIGN DECISION: Every ledger mutation, load, save and merge is logged.
This provides:
1. Traceability of how each month reached its totals
2. Debugging capability for legacy-data reconciliation
3. A record of mutations ignored because their id was unknown

The audit logger:
- Is synchronous, like the engine it reports on
- Gracefully handles failures (doesn't crash the ledger if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from ledger.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from ledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("ledger.audit")

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def log_planned_expense_added(
        self,
        expense_id: str,
        month: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.planned_expense_added(
            expense_id=expense_id,
            month=month,
            correlation_id=correlation_id,
        ))

    def log_planned_expense_updated(
        self,
        expense_id: str,
        source_month: str,
        target_month: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an update; a changed owning month is logged as a move."""
        self.log(AuditEventBuilder.planned_expense_updated(
            expense_id=expense_id,
            source_month=source_month,
            target_month=target_month,
            correlation_id=correlation_id,
        ))

    def log_planned_expense_deleted(
        self,
        expense_id: str,
        month: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.planned_expense_deleted(
            expense_id=expense_id,
            month=month,
            correlation_id=correlation_id,
        ))

    def log_recurring_expense_changed(
        self,
        event_type: AuditEventType,
        expense_id: str,
        months: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.recurring_expense_changed(
            event_type=event_type,
            expense_id=expense_id,
            months=months,
            correlation_id=correlation_id,
        ))

    def log_mutation_ignored(
        self,
        operation: str,
        entity_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a mutation that found no record with the given id."""
        self.log(AuditEventBuilder.mutation_ignored(
            operation=operation,
            entity_id=entity_id,
            correlation_id=correlation_id,
        ))

    def log_snapshot_loaded(
        self,
        month_count: int,
        revision: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.snapshot_loaded(
            month_count=month_count,
            revision=revision,
            correlation_id=correlation_id,
        ))

    def log_snapshot_saved(
        self,
        revision: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.snapshot_saved(
            revision=revision,
            correlation_id=correlation_id,
        ))

    def log_save_failed(
        self,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.save_failed(
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_snapshots_merged(
        self,
        months: list[str],
        revision: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.snapshots_merged(
            months=months,
            revision=revision,
            correlation_id=correlation_id,
        ))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a multi-step action (e.g., a sync cycle).
    Pass it through all subsequent operations.
    """
    return uuid4()
