"""
JSON File Storage Implementation

DESIGN DECISION: A single local JSON file is the default backend because:
1. The ledger is personal, one snapshot per household
2. No database setup required
3. The file is the same camelCase shape other clients already read

TRADEOFFS:
- The whole snapshot is rewritten on every save (fine at household scale)
- No encryption here; an encrypting backend can wrap or replace this one

Writes go to a temporary file first and are moved into place, so a
crash mid-write never leaves a half-written snapshot behind.
"""

import json
import os
from pathlib import Path
from typing import Any, Optional

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ledger.config import get_settings
from ledger.models.audit import AuditEvent
from ledger.models.budget import FinancialSnapshot
from ledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    CorruptSnapshotError,
    SnapshotStorageInterface,
    StorageError,
)


def _retrying(attempts: int) -> Retrying:
    return Retrying(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(OSError),
        reraise=True,
    )


class JsonFileSnapshotStorage(SnapshotStorageInterface):
    """
    Stores the snapshot as one JSON document on disk.

    Transient OS errors (locked file, full buffer, network mount hiccup)
    are retried with exponential backoff.
    """

    def __init__(
        self,
        path: Optional[str] = None,
        retry_attempts: Optional[int] = None,
    ):
        settings = get_settings().storage
        self._path = Path(path or settings.snapshot_path).expanduser()
        self._retry = _retrying(retry_attempts or settings.retry_attempts)

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> str:
        return self._path.read_text(encoding="utf-8")

    def _write(self, payload: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(payload, encoding="utf-8")
        os.replace(tmp_path, self._path)

    def load(self) -> Optional[dict[str, Any]]:
        if not self._path.exists():
            return None
        try:
            text = self._retry(self._read)
        except OSError as e:
            raise ConnectionError(f"Failed to read snapshot {self._path}: {e}")

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise CorruptSnapshotError(f"Snapshot {self._path} is not valid JSON: {e}")
        if not isinstance(data, dict):
            raise CorruptSnapshotError(
                f"Snapshot {self._path} must hold a JSON object, got {type(data).__name__}"
            )
        return data

    def save(self, snapshot: FinancialSnapshot) -> bool:
        payload = json.dumps(snapshot.to_wire(), indent=2, ensure_ascii=False)
        try:
            self._retry(self._write, payload)
        except OSError as e:
            raise ConnectionError(f"Failed to write snapshot {self._path}: {e}")
        return True


class JsonLinesAuditStorage(AuditStorageInterface):
    """
    Append-only audit log, one JSON event per line.
    """

    def __init__(
        self,
        path: Optional[str] = None,
        retry_attempts: Optional[int] = None,
    ):
        settings = get_settings().storage
        resolved = path or settings.audit_log_path
        if not resolved:
            raise StorageError("No audit log path configured (LEDGER_STORAGE_AUDIT_LOG_PATH)")
        self._path = Path(resolved).expanduser()
        self._retry = _retrying(retry_attempts or settings.retry_attempts)

    def _append(self, line: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")

    def _read_events(self) -> list[AuditEvent]:
        if not self._path.exists():
            return []
        lines = self._retry(self._path.read_text, encoding="utf-8").splitlines()
        return [AuditEvent.model_validate_json(line) for line in lines if line.strip()]

    def append_event(self, event: AuditEvent) -> bool:
        try:
            self._retry(self._append, event.model_dump_json())
        except OSError as e:
            raise ConnectionError(f"Failed to append audit event: {e}")
        return True

    def get_events_by_entity(self, entity_type: str, entity_id: str) -> list[AuditEvent]:
        return [
            e for e in self._read_events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._read_events()))[:limit]
