from __future__ import annotations

from datetime import datetime, timezone
from itertools import count
from threading import Lock
from typing import Any, Iterator, Protocol

from airportledger.models.domain import AuditEntry
from airportledger.observability import get_logger

logger = get_logger(__name__)


class AuditPublisher(Protocol):
    def publish(self, entry: AuditEntry) -> None: ...


class AuditReplay:
    """Finite, restartable view of the trail.

    Each iteration captures the entries present when it starts and yields them
    one at a time ordered by timestamp, ties broken by insertion order.
    """

    def __init__(self, store: AuditStore, target: str | None = None) -> None:
        self._store = store
        self._target = target

    def __iter__(self) -> Iterator[AuditEntry]:
        for entry in self._store._ordered(self._target):
            yield entry.model_copy(deep=True)

    def __len__(self) -> int:
        return len(self._store._ordered(self._target))


class AuditStore:
    def __init__(self, publisher: AuditPublisher | None = None) -> None:
        self.publisher = publisher
        self._entries: list[AuditEntry] = []
        self._sequence = count(1)
        self._lock = Lock()

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()
            self._sequence = count(1)

    def record(
        self,
        actor: str,
        action: str,
        target: str,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
        role: str = "",
        timestamp: datetime | None = None,
    ) -> AuditEntry:
        with self._lock:
            entry = AuditEntry(
                sequence=next(self._sequence),
                timestamp=timestamp or datetime.now(timezone.utc),
                actor=actor,
                role=role,
                action=str(getattr(action, "value", action)),
                target=target,
                before=before or {},
                after=after or {},
            )
            self._entries.append(entry)
        self._publish(entry)
        return entry.model_copy(deep=True)

    def replay(self) -> AuditReplay:
        return AuditReplay(self)

    def history(self, target: str) -> list[AuditEntry]:
        return list(AuditReplay(self, target=target))

    def _ordered(self, target: str | None) -> list[AuditEntry]:
        with self._lock:
            entries = [entry for entry in self._entries if target is None or entry.target == target]
        return sorted(entries, key=lambda entry: (entry.timestamp, entry.sequence))

    def _publish(self, entry: AuditEntry) -> None:
        if self.publisher is None:
            return
        try:
            self.publisher.publish(entry)
        except Exception:
            # The entry is already part of the trail; a lost bus message must not undo it.
            logger.exception("audit_publish_failed", entry_id=entry.entry_id, action=entry.action, target=entry.target)
