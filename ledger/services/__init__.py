"""Services package."""

from ledger.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    CorruptSnapshotError,
    InMemoryAuditStorage,
    InMemorySnapshotStorage,
    JsonFileSnapshotStorage,
    JsonLinesAuditStorage,
    SnapshotStorageInterface,
    StorageError,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "CorruptSnapshotError",
    "InMemoryAuditStorage",
    "InMemorySnapshotStorage",
    "JsonFileSnapshotStorage",
    "JsonLinesAuditStorage",
    "SnapshotStorageInterface",
    "StorageError",
]
