"""
Storage Services Package

Provides abstract interfaces and concrete implementations for snapshot
and audit storage. The JSON file backend is the default; in-memory
backends serve tests and throwaway sessions.
"""

from ledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    CorruptSnapshotError,
    SnapshotStorageInterface,
    StorageError,
)
from ledger.services.storage.json_file import (
    JsonFileSnapshotStorage,
    JsonLinesAuditStorage,
)
from ledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemorySnapshotStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "SnapshotStorageInterface",
    # Exceptions
    "ConnectionError",
    "CorruptSnapshotError",
    "StorageError",
    # JSON file implementation
    "JsonFileSnapshotStorage",
    "JsonLinesAuditStorage",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemorySnapshotStorage",
]
