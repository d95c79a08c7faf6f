"""
Audit Models for Budget Ledger

Every ledger mutation, load, save and merge is logged for audit purposes.
This provides:
1. Traceability of how each month reached its current totals
2. Debugging information when legacy data reconciles unexpectedly
3. Visibility of mutations that were ignored (unknown ids)

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Planned expenses
    PLANNED_EXPENSE_ADDED = "planned_expense_added"
    PLANNED_EXPENSE_UPDATED = "planned_expense_updated"
    PLANNED_EXPENSE_MOVED = "planned_expense_moved"
    PLANNED_EXPENSE_DELETED = "planned_expense_deleted"

    # Recurring expenses
    RECURRING_EXPENSE_ADDED = "recurring_expense_added"
    RECURRING_EXPENSE_UPDATED = "recurring_expense_updated"
    RECURRING_EXPENSE_DELETED = "recurring_expense_deleted"

    # Unknown id, snapshot left unchanged
    MUTATION_IGNORED = "mutation_ignored"

    # Persistence and sync
    SNAPSHOT_LOADED = "snapshot_loaded"
    SNAPSHOT_SAVED = "snapshot_saved"
    SAVE_FAILED = "save_failed"
    SNAPSHOTS_MERGED = "snapshots_merged"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant ledger action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'planned_expense', 'snapshot')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    months: list[str] = Field(
        default_factory=list,
        description="Month keys touched by the event"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one sync cycle)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "months": self.months,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.planned_expense_added(expense_id, "2024-02")
        event = AuditEventBuilder.mutation_ignored("update_planned_expense", expense_id)
    """

    @staticmethod
    def planned_expense_added(
        expense_id: str,
        month: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PLANNED_EXPENSE_ADDED,
            entity_type="planned_expense",
            entity_id=expense_id,
            months=[month],
            correlation_id=correlation_id,
            description=f"Planned expense added to {month}",
        )

    @staticmethod
    def planned_expense_updated(
        expense_id: str,
        source_month: str,
        target_month: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        if source_month == target_month:
            return AuditEvent(
                event_type=AuditEventType.PLANNED_EXPENSE_UPDATED,
                entity_type="planned_expense",
                entity_id=expense_id,
                months=[source_month],
                correlation_id=correlation_id,
                description=f"Planned expense updated in {source_month}",
            )
        return AuditEvent(
            event_type=AuditEventType.PLANNED_EXPENSE_MOVED,
            entity_type="planned_expense",
            entity_id=expense_id,
            months=[source_month, target_month],
            correlation_id=correlation_id,
            description=f"Planned expense moved from {source_month} to {target_month}",
            details={
                "source_month": source_month,
                "target_month": target_month,
            },
        )

    @staticmethod
    def planned_expense_deleted(
        expense_id: str,
        month: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PLANNED_EXPENSE_DELETED,
            entity_type="planned_expense",
            entity_id=expense_id,
            months=[month],
            correlation_id=correlation_id,
            description=f"Planned expense deleted from {month}",
        )

    @staticmethod
    def recurring_expense_changed(
        event_type: AuditEventType,
        expense_id: str,
        months: list[str],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        action = event_type.value.rsplit("_", 1)[-1]
        return AuditEvent(
            event_type=event_type,
            entity_type="recurring_expense",
            entity_id=expense_id,
            months=sorted(set(months)),
            correlation_id=correlation_id,
            description=f"Recurring expense {action}",
        )

    @staticmethod
    def mutation_ignored(
        operation: str,
        entity_id: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_IGNORED,
            severity=AuditSeverity.WARNING,
            entity_type=operation.split("_", 1)[-1],
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"{operation} ignored: unknown id {entity_id}",
            details={
                "operation": operation,
            },
        )

    @staticmethod
    def snapshot_loaded(
        month_count: int,
        revision: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_LOADED,
            entity_type="snapshot",
            correlation_id=correlation_id,
            description=f"Snapshot loaded with {month_count} months",
            details={
                "month_count": month_count,
                "revision": revision,
            },
        )

    @staticmethod
    def snapshot_saved(
        revision: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_SAVED,
            entity_type="snapshot",
            correlation_id=correlation_id,
            description=f"Snapshot saved at revision {revision}",
            details={
                "revision": revision,
            },
        )

    @staticmethod
    def save_failed(
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="snapshot",
            correlation_id=correlation_id,
            description="Snapshot could not be saved",
            error_message=error_message,
        )

    @staticmethod
    def snapshots_merged(
        months: list[str],
        revision: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOTS_MERGED,
            entity_type="snapshot",
            months=months,
            correlation_id=correlation_id,
            description=f"Remote snapshot merged into {len(months)} months",
            details={
                "revision": revision,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
