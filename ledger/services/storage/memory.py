"""
In-memory storage backends.

Used by tests and by sessions that don't persist anything. The snapshot
is kept as its serialized wire form, so a save/load cycle goes through
the same migration path as a real file.
"""

from typing import Any, Optional

from ledger.models.audit import AuditEvent
from ledger.models.budget import FinancialSnapshot
from ledger.services.storage.interface import (
    AuditStorageInterface,
    SnapshotStorageInterface,
)


class InMemorySnapshotStorage(SnapshotStorageInterface):
    """Keeps the latest snapshot in memory."""

    def __init__(self, initial: Optional[dict[str, Any]] = None):
        self._data = initial
        self.save_count = 0

    def load(self) -> Optional[dict[str, Any]]:
        return dict(self._data) if self._data is not None else None

    def save(self, snapshot: FinancialSnapshot) -> bool:
        self._data = snapshot.to_wire()
        self.save_count += 1
        return True


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    def get_events_by_entity(self, entity_type: str, entity_id: str) -> list[AuditEvent]:
        return [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
