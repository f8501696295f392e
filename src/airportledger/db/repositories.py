from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from threading import Lock
from typing import Any, Protocol
from uuid import uuid4

from airportledger.db.supabase_client import get_client
from airportledger.models.domain import LedgerSnapshot

SNAPSHOT_TABLE = "ledger_snapshots"
MEMORY_SNAPSHOT_LIMIT = 3


class StorageBackend(str, Enum):
    MEMORY = "memory"
    SUPABASE = "supabase"


class SnapshotStore(Protocol):
    def load(self) -> LedgerSnapshot | None: ...

    def save(self, snapshot: LedgerSnapshot) -> None: ...


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class _MemoryState:
    snapshots: list[dict[str, Any]] = field(default_factory=list)
    lock: Lock = field(default_factory=Lock)

    def reset(self) -> None:
        with self.lock:
            self.snapshots.clear()


_MEMORY_STATE = _MemoryState()


class SnapshotRepository:
    """Keeps serialized ledger snapshots; the newest one is what ``load`` returns.

    Each save writes a complete new row instead of patching the previous one,
    so a failed write never damages the last good snapshot. The memory backend
    only keeps the newest ``MEMORY_SNAPSHOT_LIMIT`` rows.
    """

    def __init__(self, backend: StorageBackend | str = StorageBackend.MEMORY, client: Any | None = None) -> None:
        self.backend = StorageBackend(backend)
        self.client = client
        if self.backend == StorageBackend.SUPABASE and self.client is None:
            self.client = get_client()

    def reset(self) -> None:
        if self.backend == StorageBackend.MEMORY:
            _MEMORY_STATE.reset()
            return
        self.client.table(SNAPSHOT_TABLE).delete().neq("id", "").execute()

    def save(self, snapshot: LedgerSnapshot) -> None:
        row = {
            "id": str(uuid4()),
            "taken_at": snapshot.taken_at.isoformat(),
            "payload": snapshot.model_dump(mode="json"),
            "created_at": _now_iso(),
        }
        if self.backend == StorageBackend.MEMORY:
            with _MEMORY_STATE.lock:
                _MEMORY_STATE.snapshots.append(row)
                del _MEMORY_STATE.snapshots[:-MEMORY_SNAPSHOT_LIMIT]
            return
        self.client.table(SNAPSHOT_TABLE).insert(row).execute()

    def load(self) -> LedgerSnapshot | None:
        row = self._latest_row()
        if row is None:
            return None
        return LedgerSnapshot.model_validate(row["payload"])

    def count(self) -> int:
        if self.backend == StorageBackend.MEMORY:
            with _MEMORY_STATE.lock:
                return len(_MEMORY_STATE.snapshots)
        response = self.client.table(SNAPSHOT_TABLE).select("id").execute()
        return len(response.data or [])

    def _latest_row(self) -> dict[str, Any] | None:
        if self.backend == StorageBackend.MEMORY:
            with _MEMORY_STATE.lock:
                return _MEMORY_STATE.snapshots[-1] if _MEMORY_STATE.snapshots else None
        response = (
            self.client.table(SNAPSHOT_TABLE)
            .select("*")
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        rows = response.data or []
        return rows[0] if rows else None


def reset_memory_backend() -> None:
    _MEMORY_STATE.reset()
