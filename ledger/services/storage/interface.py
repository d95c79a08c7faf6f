"""
Abstract Storage Interface

DESIGN DECISION: The ledger engine never touches storage. The session
hands whole snapshots to a storage backend and gets raw snapshots back.
This allows us to:
1. Swap the JSON file for an encrypted store or a database later
2. Use in-memory storage for testing
3. Feed snapshots written by older client versions through migration

Backends return RAW mappings on load (whatever shape was persisted);
migrating them to the current shape is the engine's job, not storage's.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from ledger.models.audit import AuditEvent
from ledger.models.budget import FinancialSnapshot


class SnapshotStorageInterface(ABC):
    """
    Abstract interface for snapshot storage.

    A backend stores exactly one snapshot: the latest.
    """

    @abstractmethod
    def load(self) -> Optional[dict[str, Any]]:
        """
        Load the persisted snapshot.

        Returns:
            The raw camelCase mapping, or None if nothing was saved yet

        Raises:
            CorruptSnapshotError: If the stored data can't be decoded
            StorageError: If the backend can't be read
        """
        pass

    @abstractmethod
    def save(self, snapshot: FinancialSnapshot) -> bool:
        """
        Replace the persisted snapshot.

        Args:
            snapshot: The snapshot to persist

        Returns:
            True if saved successfully

        Raises:
            StorageError: If save fails
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Args:
            event: The audit event to log

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Args:
            entity_type: Type of entity (e.g., 'planned_expense')
            entity_id: The entity's ID

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Args:
            limit: Maximum number of events to return

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class CorruptSnapshotError(StorageError):
    """Stored snapshot could not be decoded."""
    pass


class ConnectionError(StorageError):
    """Could not reach the storage backend."""
    pass
