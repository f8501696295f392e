from __future__ import annotations

from collections import defaultdict
from threading import Lock

from airportledger.bus.routing import topic_for
from airportledger.models.domain import AuditEntry


class InMemoryBus:
    def __init__(self) -> None:
        self.topics: dict[str, list[AuditEntry]] = defaultdict(list)
        self._lock = Lock()

    def publish(self, entry: AuditEntry) -> None:
        with self._lock:
            self.topics[topic_for(entry.action)].append(entry)

    def counts(self) -> dict[str, int]:
        with self._lock:
            return {topic: len(entries) for topic, entries in sorted(self.topics.items())}
